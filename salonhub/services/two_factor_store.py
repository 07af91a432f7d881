"""Persistence for the per-user 2FA profile and the recovery-code rows.

Nothing here commits: callers group operations with ``run_in_transaction``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from salonhub.models.recovery_code import RecoveryCode
from salonhub.models.user import User


@dataclass(frozen=True)
class SecurityProfile:
    identity_id: str
    email: str
    secret: str | None
    enabled: bool

    @property
    def configured(self) -> bool:
        return self.secret is not None


class SecretStore(Protocol):
    session: AsyncSession

    async def get_profile(self, identity_id: str) -> SecurityProfile | None: ...
    async def save_secret(self, identity_id: str, secret: str) -> None: ...
    async def mark_enabled(self, identity_id: str) -> bool: ...
    async def clear_secret(self, identity_id: str) -> None: ...
    async def delete_recovery_codes(self, identity_id: str) -> int: ...
    async def add_recovery_codes(self, identity_id: str, code_hashes: list[str]) -> None: ...
    async def find_unused_code_id(self, identity_id: str, code_hash: str) -> int | None: ...
    async def mark_code_used(self, code_id: int) -> bool: ...
    async def count_unused_codes(self, identity_id: str) -> int: ...
    async def get_password_hash(self, identity_id: str) -> str | None: ...


class SqlSecretStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_profile(self, identity_id: str) -> SecurityProfile | None:
        q = select(User.id, User.email, User.twofa_secret, User.is_2fa_enabled).where(User.id == identity_id)
        row = (await self.session.execute(q)).one_or_none()
        if row is None:
            return None
        return SecurityProfile(
            identity_id=row.id,
            email=row.email,
            secret=row.twofa_secret,
            enabled=bool(row.is_2fa_enabled),
        )

    async def save_secret(self, identity_id: str, secret: str) -> None:
        # a new secret always starts disabled
        await self.session.execute(
            update(User)
            .where(User.id == identity_id)
            .values(twofa_secret=secret, is_2fa_enabled=False)
        )

    async def mark_enabled(self, identity_id: str) -> bool:
        res = await self.session.execute(
            update(User)
            .where(User.id == identity_id, User.twofa_secret.is_not(None))
            .values(is_2fa_enabled=True)
        )
        return res.rowcount == 1

    async def clear_secret(self, identity_id: str) -> None:
        await self.session.execute(
            update(User)
            .where(User.id == identity_id)
            .values(twofa_secret=None, is_2fa_enabled=False)
        )

    async def delete_recovery_codes(self, identity_id: str) -> int:
        res = await self.session.execute(delete(RecoveryCode).where(RecoveryCode.user_id == identity_id))
        return res.rowcount or 0

    async def add_recovery_codes(self, identity_id: str, code_hashes: list[str]) -> None:
        self.session.add_all(
            [RecoveryCode(user_id=identity_id, code_hash=h, used=False) for h in code_hashes]
        )
        await self.session.flush()

    async def find_unused_code_id(self, identity_id: str, code_hash: str) -> int | None:
        q = (
            select(RecoveryCode.id)
            .where(
                RecoveryCode.user_id == identity_id,
                RecoveryCode.code_hash == code_hash,
                RecoveryCode.used.is_(False),
            )
            .limit(1)
        )
        return (await self.session.execute(q)).scalar_one_or_none()

    async def mark_code_used(self, code_id: int) -> bool:
        # conditional flip: of two racing requests only one sees rowcount == 1
        res = await self.session.execute(
            update(RecoveryCode)
            .where(RecoveryCode.id == code_id, RecoveryCode.used.is_(False))
            .values(used=True, used_at=datetime.now(timezone.utc).replace(tzinfo=None))
        )
        return res.rowcount == 1

    async def count_unused_codes(self, identity_id: str) -> int:
        q = select(func.count(RecoveryCode.id)).where(
            RecoveryCode.user_id == identity_id,
            RecoveryCode.used.is_(False),
        )
        return int((await self.session.execute(q)).scalar_one())

    async def get_password_hash(self, identity_id: str) -> str | None:
        q = select(User.hashed_password).where(User.id == identity_id)
        return (await self.session.execute(q)).scalar_one_or_none()
