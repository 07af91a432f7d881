"""Shared fixtures: in-memory SQLite per test, a user, a deterministic clock."""

from __future__ import annotations

import os

# settings are read at import time
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime, timedelta, timezone

import httpx
import pytest
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from salonhub.core.config import settings
from salonhub.core.db import Base, get_db
from salonhub.core.security import PasswordCredentialVerifier, hash_password
from salonhub.models.user import RoleEnum, User
from salonhub.services.two_factor import TwoFactorService
from salonhub.services.two_factor_store import SqlSecretStore

PASSWORD = "correct-password"
# 2023-11-14 22:13:20 UTC, counter 56666666
T0 = 1_700_000_000


class FakeClock:
    def __init__(self, now: float):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


async def _create_user(db, email: str) -> str:
    user = User(
        email=email,
        full_name="Salon Owner",
        role=RoleEnum.salon_owner,
        hashed_password=hash_password(PASSWORD),
    )
    db.add(user)
    await db.commit()
    return user.id


@pytest.fixture
async def user_id(db) -> str:
    return await _create_user(db, "owner@example.com")


@pytest.fixture
async def other_user_id(db) -> str:
    return await _create_user(db, "other@example.com")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(T0)


@pytest.fixture
def store(db) -> SqlSecretStore:
    return SqlSecretStore(db)


@pytest.fixture
def service(store, clock) -> TwoFactorService:
    return TwoFactorService(store, PasswordCredentialVerifier(store), clock=clock)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


def access_token_for(user_id: str) -> str:
    now = datetime.now(tz=timezone.utc)
    return jwt.encode(
        {"sub": user_id, "iat": now, "exp": now + timedelta(minutes=30)},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


@pytest.fixture
def app(session_factory):
    from salonhub.main import app as _app

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    _app.dependency_overrides[get_db] = _override_get_db
    yield _app
    _app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def auth_client(client, user_id):
    client.headers["Authorization"] = f"Bearer {access_token_for(user_id)}"
    return client
