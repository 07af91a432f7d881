import logging
from typing import Protocol

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salonhub.core.config import settings
from salonhub.core.db import get_db
from salonhub.core.security import PasswordCredentialVerifier, read_two_factor_marker
from salonhub.models.user import User
from salonhub.services.recovery_codes import RecoveryCodeVault
from salonhub.services.totp import TOTPConfig
from salonhub.services.two_factor import TwoFactorService
from salonhub.services.two_factor_store import SqlSecretStore

logger = logging.getLogger(__name__)

TWO_FA_HEADER = "X-2FA-Token"

bearer = HTTPBearer(auto_error=True)

async def get_current_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> User:
    token = creds.credentials
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        sub: str | None = payload.get("sub")
        if not sub:
            raise HTTPException(status_code=401, detail="Invalid token")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")

    # 2FA markers are not access tokens
    if payload.get("purpose"):
        raise HTTPException(status_code=401, detail="Invalid token")

    result = await db.execute(select(User).where(User.id == sub))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=403, detail="Inactive user")

    return user

# --- 2FA service wiring ---
def get_totp_config() -> TOTPConfig:
    return TOTPConfig.from_settings(settings)

def get_two_factor_service(
    db: AsyncSession = Depends(get_db),
    config: TOTPConfig = Depends(get_totp_config),
) -> TwoFactorService:
    store = SqlSecretStore(db)
    vault = RecoveryCodeVault(
        store,
        count=settings.RECOVERY_CODE_COUNT,
        num_bytes=settings.RECOVERY_CODE_BYTES,
    )
    return TwoFactorService(store, PasswordCredentialVerifier(store), config=config, vault=vault)

# --- Access gate ---
class TwoFactorVerificationSignal(Protocol):
    def is_two_factor_verified(self, request: Request, user: User) -> bool: ...

class SignedMarkerSignal:
    """
    Accepts the short-lived marker handed out by POST /2fa/verify, sent back
    in the X-2FA-Token header. The marker must belong to the caller.
    """

    header = TWO_FA_HEADER

    def is_two_factor_verified(self, request: Request, user: User) -> bool:
        token = request.headers.get(self.header)
        if not token:
            return False
        return read_two_factor_marker(token) == user.id

def get_verification_signal() -> TwoFactorVerificationSignal:
    return SignedMarkerSignal()

async def require_two_factor(
    request: Request,
    user: User = Depends(get_current_user),
    service: TwoFactorService = Depends(get_two_factor_service),
    signal: TwoFactorVerificationSignal = Depends(get_verification_signal),
) -> User:
    """Admits users without 2FA; users with 2FA need a fresh verification marker."""
    if not await service.requires_2fa(user.id):
        return user
    if not signal.is_two_factor_verified(request, user):
        logger.warning("2FA verification required for user %s", user.id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="2FA verification required")
    return user
