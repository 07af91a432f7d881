"""TOTP primitives: secret provisioning, otpauth URIs and windowed verification.

The HMAC / dynamic-truncation part is pyotp's; this module adds the format
checks, the explicit tolerance window and the escalating-tolerance policy.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import quote

import pyotp

from salonhub.services.errors import InvalidTokenFormatError

logger = logging.getLogger(__name__)

# 32 base32 chars = 160 bits
SECRET_LENGTH = 32

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class TOTPConfig:
    issuer: str = "Salon Hub"
    algorithm: str = "SHA1"
    digits: int = 6
    period: int = 30
    tolerance_tiers: tuple[int, ...] = (2, 5, 10)

    @classmethod
    def from_settings(cls, settings) -> "TOTPConfig":
        return cls(
            issuer=settings.TOTP_ISSUER,
            digits=settings.TOTP_DIGITS,
            period=settings.TOTP_PERIOD,
            tolerance_tiers=tuple(settings.TOTP_TOLERANCE_TIERS),
        )

    def descriptor(self, label: str) -> "ProvisioningDescriptor":
        return ProvisioningDescriptor(
            label=label,
            issuer=self.issuer,
            algorithm=self.algorithm,
            digits=self.digits,
            period=self.period,
        )


@dataclass(frozen=True)
class ProvisioningDescriptor:
    label: str
    issuer: str
    algorithm: str = "SHA1"
    digits: int = 6
    period: int = 30


def generate_secret() -> str:
    return pyotp.random_base32(length=SECRET_LENGTH)


def build_provisioning_uri(descriptor: ProvisioningDescriptor, secret: str) -> str:
    """
    otpauth://totp/<issuer>:<label>?secret=..&issuer=..&algorithm=..&digits=..&period=..

    All parameters are always written, in this order; authenticator apps
    parse this string so the layout must not drift.
    """
    issuer = quote(descriptor.issuer, safe="")
    label = quote(descriptor.label, safe="")
    return (
        f"otpauth://totp/{issuer}:{label}"
        f"?secret={secret.rstrip('=')}"
        f"&issuer={issuer}"
        f"&algorithm={descriptor.algorithm}"
        f"&digits={descriptor.digits}"
        f"&period={descriptor.period}"
    )


def _timestamp(now: float | int | datetime) -> float:
    if isinstance(now, datetime):
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.timestamp()
    return float(now)


def _totp(secret: str, config: TOTPConfig) -> pyotp.TOTP:
    return pyotp.TOTP(secret, digits=config.digits, digest=hashlib.sha1, interval=config.period)


def counter_for(now: float | int | datetime, config: TOTPConfig = TOTPConfig()) -> int:
    return math.floor(_timestamp(now) / config.period)


def code_at(secret: str, now: float | int | datetime, config: TOTPConfig = TOTPConfig()) -> str:
    return _totp(secret, config).generate_otp(counter_for(now, config))


def normalize_token(candidate: str | None, digits: int = 6) -> str:
    """Strips whitespace and checks for exactly ``digits`` ASCII digits."""
    cleaned = _WHITESPACE.sub("", candidate or "")
    if len(cleaned) != digits or not all("0" <= ch <= "9" for ch in cleaned):
        raise InvalidTokenFormatError(f"Invalid token format. Token must be {digits} digits")
    return cleaned


def verify_totp(
    secret: str,
    candidate: str | None,
    now: float | int | datetime,
    tolerance_steps: int,
    config: TOTPConfig = TOTPConfig(),
) -> bool:
    """
    True if ``candidate`` matches the code of any counter within
    ``tolerance_steps`` of the counter at ``now``.

    Raises InvalidTokenFormatError before any HMAC work on malformed input.
    """
    token = normalize_token(candidate, config.digits)
    totp = _totp(secret, config)
    counter = counter_for(now, config)

    for c in range(max(0, counter - tolerance_steps), counter + tolerance_steps + 1):
        if hmac.compare_digest(token, totp.generate_otp(c)):
            return True
    return False


def verify_with_escalation(
    secret: str,
    candidate: str | None,
    now: float | int | datetime,
    config: TOTPConfig = TOTPConfig(),
    identity_id: str | None = None,
) -> bool:
    """
    Tries each tolerance tier in ``config.tolerance_tiers`` in order and
    accepts on the first match.
    """
    token = normalize_token(candidate, config.digits)
    for tier, steps in enumerate(config.tolerance_tiers, start=1):
        if verify_totp(secret, token, now, steps, config):
            if tier == 1:
                logger.info("TOTP accepted for user %s (±%d steps)", identity_id, steps)
            else:
                logger.warning(
                    "TOTP accepted for user %s only with widened window (tier %d, ±%d steps); clock skew?",
                    identity_id, tier, steps,
                )
            return True
        logger.info("TOTP tier %d (±%d steps) failed for user %s", tier, steps, identity_id)

    logger.warning("All TOTP verification tiers failed for user %s", identity_id)
    return False
