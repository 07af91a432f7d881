import base64
import logging
from datetime import datetime, timedelta, timezone
from io import BytesIO
from typing import Protocol

import qrcode
from jose import jwt, JWTError
from passlib.context import CryptContext

from salonhub.core.config import settings
from salonhub.services.two_factor_store import SecretStore

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

TWO_FA_PURPOSE = "2fa"

def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)

def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


class CredentialVerifier(Protocol):
    async def verify(self, identity_id: str, password: str) -> bool: ...


class PasswordCredentialVerifier:
    """Re-checks the account password against the stored bcrypt hash."""

    def __init__(self, store: SecretStore):
        self.store = store

    async def verify(self, identity_id: str, password: str) -> bool:
        hashed = await self.store.get_password_hash(identity_id)
        if not hashed or not password:
            return False
        return verify_password(password, hashed)


# --- short-lived "2FA just verified" marker ---

def create_two_factor_marker(subject: str, expires_minutes: int | None = None) -> str:
    now = datetime.now(tz=timezone.utc)
    to_encode = {
        "sub": subject,
        "purpose": TWO_FA_PURPOSE,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes or settings.TWO_FA_MARKER_EXPIRE_MINUTES),
    }
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

def read_two_factor_marker(token: str) -> str | None:
    """Returns the marker's subject, or None if it is invalid, expired or not a 2FA marker."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    if payload.get("purpose") != TWO_FA_PURPOSE:
        return None
    sub = payload.get("sub")
    return sub if isinstance(sub, str) and sub else None


# -- QR PNG in base64 for the setup screen --
def qr_png_base64_from_text(text: str) -> str | None:
    try:
        img = qrcode.make(text)
        buf = BytesIO()
        img.save(buf, "PNG")
    except (OSError, ValueError) as exc:
        logger.warning("QR rendering failed, returning otpauth URL only: %s", exc)
        return None
    return base64.b64encode(buf.getvalue()).decode("ascii")
