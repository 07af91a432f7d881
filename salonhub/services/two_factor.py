"""Two-factor lifecycle: setup -> enable -> verify -> disable.

States, derived from the stored profile:

    NOT_CONFIGURED  no secret
    CONFIGURED      secret present, enabled=False
    ENABLED         secret present, enabled=True, recovery codes issued

``setup`` moves any state to CONFIGURED (a fresh setup revokes the old
factor and its recovery codes), ``enable`` moves CONFIGURED to ENABLED,
``disable`` clears everything. Every mutation runs in one transaction.

``verify_2fa`` is the single verification entry point for login challenges
and step-up checks: TOTP first, then a recovery code.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable

from salonhub.core.db import run_in_transaction
from salonhub.core.security import CredentialVerifier
from salonhub.services.errors import (
    IdentityNotFoundError,
    InvalidTokenError,
    InvalidTokenFormatError,
    NotConfiguredError,
    UnauthorizedError,
)
from salonhub.services.recovery_codes import RecoveryCodeVault
from salonhub.services.totp import (
    ProvisioningDescriptor,
    TOTPConfig,
    build_provisioning_uri,
    generate_secret,
    normalize_token,
    verify_with_escalation,
)
from salonhub.services.two_factor_store import SecretStore, SecurityProfile

logger = logging.getLogger(__name__)


class TwoFactorState(str, enum.Enum):
    NOT_CONFIGURED = "not_configured"
    CONFIGURED = "configured"
    ENABLED = "enabled"

    @classmethod
    def of(cls, profile: SecurityProfile) -> "TwoFactorState":
        if profile.secret is None:
            return cls.NOT_CONFIGURED
        return cls.ENABLED if profile.enabled else cls.CONFIGURED


@dataclass(frozen=True)
class SetupResult:
    secret: str
    provisioning_uri: str
    descriptor: ProvisioningDescriptor


@dataclass(frozen=True)
class EnableResult:
    enabled: bool
    recovery_codes: list[str]


@dataclass(frozen=True)
class TwoFactorStatus:
    enabled: bool
    configured: bool
    remaining_recovery_codes: int


class TwoFactorService:
    def __init__(
        self,
        store: SecretStore,
        credentials: CredentialVerifier,
        config: TOTPConfig = TOTPConfig(),
        vault: RecoveryCodeVault | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.credentials = credentials
        self.config = config
        self.vault = vault or RecoveryCodeVault(store)
        self.clock = clock

    async def _profile_or_404(self, identity_id: str) -> SecurityProfile:
        profile = await self.store.get_profile(identity_id)
        if profile is None:
            raise IdentityNotFoundError()
        return profile

    def _check_totp(self, profile: SecurityProfile, token: str) -> None:
        assert profile.secret is not None
        if not verify_with_escalation(profile.secret, token, self.clock(), self.config, profile.identity_id):
            raise InvalidTokenError(
                "Invalid 2FA token. Please check the code from your authenticator app."
            )

    # ---------- setup ----------
    async def setup(self, identity_id: str, label: str | None = None) -> SetupResult:
        async def work(_db) -> SetupResult:
            profile = await self._profile_or_404(identity_id)
            if profile.secret is not None:
                logger.warning("User %s already has a 2FA secret; replacing it", identity_id)
                if profile.enabled:
                    logger.warning("2FA was enabled for user %s; new setup disables it", identity_id)

            secret = generate_secret()
            await self.store.save_secret(identity_id, secret)
            removed = await self.store.delete_recovery_codes(identity_id)

            descriptor = self.config.descriptor(label or profile.email)
            logger.info(
                "2FA secret provisioned for user %s (%d old recovery codes deleted)",
                identity_id, removed,
            )
            return SetupResult(
                secret=secret,
                provisioning_uri=build_provisioning_uri(descriptor, secret),
                descriptor=descriptor,
            )

        return await run_in_transaction(self.store.session, work)

    # ---------- enable ----------
    async def enable(self, identity_id: str, token: str) -> EnableResult:
        token = normalize_token(token, self.config.digits)

        async def work(_db) -> EnableResult:
            profile = await self._profile_or_404(identity_id)
            if profile.secret is None:
                raise NotConfiguredError()
            self._check_totp(profile, token)

            codes = await self.vault.generate(identity_id)
            if not await self.store.mark_enabled(identity_id):
                # secret vanished under us; roll back the new batch too
                raise NotConfiguredError()
            logger.info("2FA enabled for user %s", identity_id)
            return EnableResult(enabled=True, recovery_codes=codes)

        return await run_in_transaction(self.store.session, work)

    # ---------- disable ----------
    async def disable(self, identity_id: str, password: str) -> None:
        async def work(_db) -> None:
            await self._profile_or_404(identity_id)
            if not await self.credentials.verify(identity_id, password):
                logger.warning("Invalid password attempt while disabling 2FA for user %s", identity_id)
                raise UnauthorizedError()

            removed = await self.store.delete_recovery_codes(identity_id)
            await self.store.clear_secret(identity_id)
            logger.info("2FA disabled for user %s (%d recovery codes deleted)", identity_id, removed)

        return await run_in_transaction(self.store.session, work)

    # ---------- status ----------
    async def status(self, identity_id: str) -> TwoFactorStatus:
        profile = await self._profile_or_404(identity_id)
        return TwoFactorStatus(
            enabled=profile.enabled,
            configured=profile.configured,
            remaining_recovery_codes=await self.vault.remaining(identity_id),
        )

    async def state(self, identity_id: str) -> TwoFactorState:
        return TwoFactorState.of(await self._profile_or_404(identity_id))

    async def requires_2fa(self, identity_id: str) -> bool:
        profile = await self.store.get_profile(identity_id)
        return bool(profile and profile.enabled and profile.secret)

    # ---------- recovery codes ----------
    async def regenerate_recovery_codes(self, identity_id: str, token: str) -> list[str]:
        token = normalize_token(token, self.config.digits)

        async def work(_db) -> list[str]:
            profile = await self._profile_or_404(identity_id)
            if TwoFactorState.of(profile) is not TwoFactorState.ENABLED:
                raise NotConfiguredError("Two-factor authentication is not enabled")
            self._check_totp(profile, token)

            codes = await self.vault.generate(identity_id)
            logger.info("Recovery codes regenerated for user %s", identity_id)
            return codes

        return await run_in_transaction(self.store.session, work)

    # ---------- verification ----------
    async def verify_2fa(self, identity_id: str, code: str) -> bool:
        """
        True if ``code`` is a current TOTP code or an unused recovery code.
        Bad input of any kind is reported as False, never raised.
        """
        profile = await self.store.get_profile(identity_id)
        if profile is None or not profile.enabled or profile.secret is None:
            logger.warning("2FA verification requested for user %s without active 2FA", identity_id)
            return False

        try:
            if verify_with_escalation(profile.secret, code, self.clock(), self.config, identity_id):
                return True
        except InvalidTokenFormatError:
            # not a TOTP code; may still be a recovery code
            pass

        return await run_in_transaction(
            self.store.session,
            lambda _db: self.vault.verify(identity_id, code),
        )
