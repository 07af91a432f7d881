"""Tests for the /2fa routes and the 2FA access gate."""

from __future__ import annotations

import base64
from datetime import datetime, timedelta, timezone

import pyotp
from jose import jwt

from salonhub.core.config import settings
from salonhub.core.security import create_two_factor_marker

from conftest import PASSWORD, access_token_for


def _now_code(secret: str) -> str:
    return pyotp.TOTP(secret).now()


async def _setup(auth_client) -> str:
    resp = await auth_client.post("/2fa/setup")
    assert resp.status_code == 200
    return resp.json()["secret"]


async def _enable(auth_client) -> tuple[str, list[str]]:
    secret = await _setup(auth_client)
    resp = await auth_client.post("/2fa/enable", json={"token": _now_code(secret)})
    assert resp.status_code == 200
    return secret, resp.json()["recovery_codes"]


class TestAuth:
    async def test_requires_bearer(self, client):
        resp = await client.post("/2fa/setup")
        assert resp.status_code in (401, 403)

    async def test_rejects_bad_token(self, client):
        client.headers["Authorization"] = "Bearer not-a-jwt"
        resp = await client.get("/2fa/status")
        assert resp.status_code == 401

    async def test_marker_is_not_an_access_token(self, client, user_id):
        client.headers["Authorization"] = f"Bearer {create_two_factor_marker(user_id)}"
        resp = await client.get("/2fa/status")
        assert resp.status_code == 401

    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.json() == {"status": "ok"}
        assert resp.headers["X-Request-ID"]


class TestSetupRoute:
    async def test_setup_returns_secret_uri_and_qr(self, auth_client):
        resp = await auth_client.post("/2fa/setup")
        assert resp.status_code == 200
        data = resp.json()
        assert data["otpauth_url"] == (
            f"otpauth://totp/Salon%20Hub:owner%40example.com?secret={data['secret']}"
            "&issuer=Salon%20Hub&algorithm=SHA1&digits=6&period=30"
        )
        assert base64.b64decode(data["qr_base64_png"])[:8] == b"\x89PNG\r\n\x1a\n"

    async def test_setup_twice_gives_new_secret(self, auth_client):
        s1 = await _setup(auth_client)
        s2 = await _setup(auth_client)
        assert s1 != s2

        stale = _now_code(s1)
        if stale != _now_code(s2):
            resp = await auth_client.post("/2fa/enable", json={"token": stale})
            assert resp.status_code == 401

    async def test_setup_for_deleted_user(self, client):
        client.headers["Authorization"] = f"Bearer {access_token_for('ghost')}"
        resp = await client.post("/2fa/setup")
        assert resp.status_code == 401


class TestEnableRoute:
    async def test_enable_returns_codes(self, auth_client):
        _, codes = await _enable(auth_client)
        assert len(codes) == 10

        resp = await auth_client.get("/2fa/status")
        assert resp.json() == {"enabled": True, "configured": True, "remaining_recovery_codes": 10}

    async def test_enable_without_setup(self, auth_client):
        resp = await auth_client.post("/2fa/enable", json={"token": "123456"})
        assert resp.status_code == 400
        assert "setup" in resp.json()["detail"].lower()

    async def test_enable_malformed_token(self, auth_client):
        await _setup(auth_client)
        resp = await auth_client.post("/2fa/enable", json={"token": "12ab"})
        assert resp.status_code == 422
        assert "6 digits" in resp.json()["detail"]


class TestDisableRoute:
    async def test_wrong_password(self, auth_client):
        await _enable(auth_client)
        resp = await auth_client.post("/2fa/disable", json={"password": "wrong-password"})
        assert resp.status_code == 401

        resp = await auth_client.get("/2fa/status")
        assert resp.json()["enabled"] is True

    async def test_correct_password(self, auth_client):
        await _enable(auth_client)
        resp = await auth_client.post("/2fa/disable", json={"password": PASSWORD})
        assert resp.status_code == 200
        assert resp.json()["enabled"] is False

        resp = await auth_client.get("/2fa/status")
        assert resp.json() == {"enabled": False, "configured": False, "remaining_recovery_codes": 0}


class TestVerifyRoute:
    async def test_totp_code_returns_marker(self, auth_client, user_id):
        secret, _ = await _enable(auth_client)
        resp = await auth_client.post("/2fa/verify", json={"code": _now_code(secret)})
        data = resp.json()
        assert resp.status_code == 200
        assert data["valid"] is True
        claims = jwt.decode(data["verification_token"], settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        assert claims["sub"] == user_id
        assert claims["purpose"] == "2fa"

    async def test_recovery_code_once(self, auth_client):
        _, codes = await _enable(auth_client)
        first = await auth_client.post("/2fa/verify", json={"code": codes[0]})
        second = await auth_client.post("/2fa/verify", json={"code": codes[0]})
        assert first.json()["valid"] is True
        assert second.status_code == 200
        assert second.json() == {"valid": False, "verification_token": None, "message": "Invalid code"}

    async def test_invalid_code_is_200_false(self, auth_client):
        await _enable(auth_client)
        resp = await auth_client.post("/2fa/verify", json={"code": "nope"})
        assert resp.status_code == 200
        assert resp.json()["valid"] is False


class TestRegenerateRoute:
    async def test_regenerate_invalidates_old_batch(self, auth_client):
        secret, old = await _enable(auth_client)
        resp = await auth_client.post("/2fa/recovery-codes/regenerate", json={"token": _now_code(secret)})
        assert resp.status_code == 200
        new = resp.json()["recovery_codes"]
        assert len(new) == 10

        stale = next(c for c in old if c not in new)
        resp = await auth_client.post("/2fa/verify", json={"code": stale})
        assert resp.json()["valid"] is False

    async def test_regenerate_before_enable(self, auth_client):
        secret = await _setup(auth_client)
        resp = await auth_client.post("/2fa/recovery-codes/regenerate", json={"token": _now_code(secret)})
        assert resp.status_code == 400


class TestAccessGate:
    async def test_admits_without_2fa(self, auth_client):
        resp = await auth_client.get("/users/me")
        assert resp.status_code == 200
        assert resp.json()["email"] == "owner@example.com"

    async def test_blocks_without_marker(self, auth_client):
        await _enable(auth_client)
        resp = await auth_client.get("/users/me")
        assert resp.status_code == 401
        assert resp.json()["detail"] == "2FA verification required"

    async def test_admits_with_marker_from_verify(self, auth_client):
        secret, _ = await _enable(auth_client)
        token = (await auth_client.post("/2fa/verify", json={"code": _now_code(secret)})).json()["verification_token"]
        resp = await auth_client.get("/users/me", headers={"X-2FA-Token": token})
        assert resp.status_code == 200
        assert resp.json()["is_2fa_enabled"] is True

    async def test_rejects_marker_of_other_user(self, auth_client, other_user_id):
        await _enable(auth_client)
        resp = await auth_client.get("/users/me", headers={"X-2FA-Token": create_two_factor_marker(other_user_id)})
        assert resp.status_code == 401

    async def test_rejects_expired_marker(self, auth_client, user_id):
        await _enable(auth_client)
        past = datetime.now(tz=timezone.utc) - timedelta(minutes=10)
        expired = jwt.encode(
            {"sub": user_id, "purpose": "2fa", "iat": past, "exp": past + timedelta(minutes=5)},
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
        )
        resp = await auth_client.get("/users/me", headers={"X-2FA-Token": expired})
        assert resp.status_code == 401

    async def test_rejects_plain_header_flag(self, auth_client):
        await _enable(auth_client)
        resp = await auth_client.get("/users/me", headers={"X-2FA-Token": "true"})
        assert resp.status_code == 401
