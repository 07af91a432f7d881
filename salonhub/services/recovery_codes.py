import hashlib
import logging
import secrets

from salonhub.services.two_factor_store import SecretStore

logger = logging.getLogger(__name__)


def normalize_recovery_code(code: str) -> str:
    return (code or "").strip().upper()


def hash_recovery_code(code: str) -> str:
    # deterministic so a code can be looked up by hash
    return hashlib.sha256(normalize_recovery_code(code).encode("utf-8")).hexdigest()


class RecoveryCodeVault:
    """
    Single-use backup codes. Plaintexts are returned once by ``generate`` and
    only their sha256 is stored. Call both methods inside the caller's
    transaction; nothing here commits.
    """

    def __init__(self, store: SecretStore, count: int = 10, num_bytes: int = 4):
        self.store = store
        self.count = count
        self.num_bytes = num_bytes

    def _new_batch(self) -> list[str]:
        codes: list[str] = []
        while len(codes) < self.count:
            code = secrets.token_hex(self.num_bytes).upper()
            if code not in codes:
                codes.append(code)
        return codes

    async def generate(self, identity_id: str) -> list[str]:
        removed = await self.store.delete_recovery_codes(identity_id)
        codes = self._new_batch()
        await self.store.add_recovery_codes(identity_id, [hash_recovery_code(c) for c in codes])
        logger.info(
            "Issued %d recovery codes for user %s (%d previous codes revoked)",
            len(codes), identity_id, removed,
        )
        return codes

    async def verify(self, identity_id: str, candidate: str) -> bool:
        """
        Consumes ``candidate`` if it is an unused code of ``identity_id``.
        Wrong and already-used codes both come back as False.
        """
        if not normalize_recovery_code(candidate):
            return False

        code_id = await self.store.find_unused_code_id(identity_id, hash_recovery_code(candidate))
        if code_id is None or not await self.store.mark_code_used(code_id):
            logger.warning("Recovery code rejected for user %s", identity_id)
            return False

        logger.info("Recovery code consumed for user %s", identity_id)
        return True

    async def remaining(self, identity_id: str) -> int:
        return await self.store.count_unused_codes(identity_id)
