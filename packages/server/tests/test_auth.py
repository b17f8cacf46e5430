"""
Tests for authentication.

Covers:
- Password hashing
- JWT creation, decoding and expiry
- Bearer header parsing
- Register / login / by-email endpoints
- Uniform 401 for missing, invalid and orphaned tokens
"""

from __future__ import annotations

import uuid
from datetime import timedelta

import jwt
import pytest
from sqlalchemy import delete

from app.core.auth import (
    create_access_token,
    decode_access_token,
    extract_bearer_token,
    hash_password,
    verify_password,
)
from app.core.config import Settings
from app.core.errors import AuthError
from app.models.user import User
from app.services import users as users_service

SETTINGS = Settings(secret_key="unit-test-secret-key-long-enough-for-hs256", bcrypt_rounds=10)


# ---------------------------------------------------------------------------
# Unit Tests: Password hashing
# ---------------------------------------------------------------------------

class TestPasswordHashing:
    def test_hash_and_verify(self):
        password = "MySecureP@ssw0rd!"
        hashed = hash_password(password, rounds=10)
        assert hashed != password
        assert verify_password(password, hashed)

    def test_wrong_password_fails(self):
        hashed = hash_password("correct-password", rounds=10)
        assert not verify_password("wrong-password", hashed)

    def test_different_hashes_for_same_password(self):
        """bcrypt uses random salt, so hashes differ."""
        h1 = hash_password("same", rounds=10)
        h2 = hash_password("same", rounds=10)
        assert h1 != h2
        assert verify_password("same", h1)
        assert verify_password("same", h2)

    def test_cost_factor_is_encoded(self):
        assert hash_password("pw", rounds=11).startswith("$2b$11$")

    def test_malformed_hash_does_not_verify(self):
        assert not verify_password("pw", "not-a-bcrypt-hash")

    def test_settings_reject_low_cost(self):
        with pytest.raises(ValueError):
            Settings(bcrypt_rounds=4)


# ---------------------------------------------------------------------------
# Unit Tests: JWT
# ---------------------------------------------------------------------------

class TestJWT:
    def test_round_trip(self):
        uid = uuid.uuid4()
        token = create_access_token(uid, SETTINGS)
        assert decode_access_token(token, SETTINGS) == uid

    def test_claims(self):
        uid = uuid.uuid4()
        token = create_access_token(uid, SETTINGS)
        payload = jwt.decode(token, SETTINGS.secret_key, algorithms=["HS256"])
        assert payload["sub"] == str(uid)
        assert payload["exp"] - payload["iat"] == SETTINGS.jwt_expire_minutes * 60

    def test_expired_token(self):
        token = create_access_token(uuid.uuid4(), SETTINGS, expires_delta=timedelta(seconds=-5))
        with pytest.raises(AuthError, match="expired"):
            decode_access_token(token, SETTINGS)

    def test_wrong_secret(self):
        other = Settings(secret_key="another-secret-key-that-is-also-long-enough")
        token = create_access_token(uuid.uuid4(), other)
        with pytest.raises(AuthError, match="invalid token"):
            decode_access_token(token, SETTINGS)

    def test_garbage_token(self):
        with pytest.raises(AuthError):
            decode_access_token("not.a.jwt", SETTINGS)

    def test_non_uuid_subject(self):
        token = jwt.encode(
            {"sub": "someone", "exp": 9999999999}, SETTINGS.secret_key, algorithm="HS256"
        )
        with pytest.raises(AuthError):
            decode_access_token(token, SETTINGS)


class TestBearerHeader:
    def test_extracts_token(self):
        assert extract_bearer_token("Bearer abc.def") == "abc.def"

    @pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer ", "bearer abc"])
    def test_rejects_bad_headers(self, header):
        with pytest.raises(AuthError, match="token missing"):
            extract_bearer_token(header)


# ---------------------------------------------------------------------------
# Integration Tests: endpoints
# ---------------------------------------------------------------------------

class TestRegister:
    async def test_register_returns_user_and_token(self, client):
        resp = await client.post(
            "/api/v1/auth/register",
            json={"username": "ada", "email": "Ada@Example.com", "password": "secret123"},
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "success"
        assert body["data"]["user"]["email"] == "ada@example.com"
        assert body["data"]["user"]["role"] == "user"
        assert body["data"]["token"]
        assert "passwordHash" not in body["data"]["user"]

    async def test_password_is_hashed(self, app, client):
        await client.post(
            "/api/v1/auth/register",
            json={"username": "ada", "email": "ada@example.com", "password": "secret123"},
        )
        async with app.state.db.session() as session:
            user = (await session.execute(User.__table__.select())).first()
        assert user.password_hash.startswith("$2b$10$")

    @pytest.mark.parametrize(
        "payload",
        [
            {"email": "a@example.com", "password": "secret123"},
            {"username": "a", "password": "secret123"},
            {"username": "a", "email": "a@example.com"},
            {"username": "  ", "email": "a@example.com", "password": "secret123"},
        ],
    )
    async def test_missing_fields(self, client, payload):
        resp = await client.post("/api/v1/auth/register", json=payload)
        assert resp.status_code == 400
        assert resp.json() == {"status": "error", "message": "All fields are required"}

    async def test_short_password(self, client):
        resp = await client.post(
            "/api/v1/auth/register",
            json={"username": "a", "email": "a@example.com", "password": "12345"},
        )
        assert resp.status_code == 400

    async def test_duplicate_email(self, client, make_user):
        await make_user("ada")
        resp = await client.post(
            "/api/v1/auth/register",
            json={"username": "ada2", "email": "ADA@example.com", "password": "secret123"},
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "User already exists"

    async def test_password_over_bcrypt_limit(self, client):
        resp = await client.post(
            "/api/v1/auth/register",
            json={"username": "a", "email": "a@example.com", "password": "x" * 80},
        )
        assert resp.status_code == 400
        assert resp.json() == {"status": "error", "message": "Password must be at most 72 bytes"}

    async def test_password_limit_counts_bytes(self, client):
        # 24 three-byte characters is 72 bytes, one more is over
        ok = await client.post(
            "/api/v1/auth/register",
            json={"username": "a", "email": "a@example.com", "password": "€" * 24},
        )
        assert ok.status_code == 201
        too_long = await client.post(
            "/api/v1/auth/register",
            json={"username": "b", "email": "b@example.com", "password": "€" * 25},
        )
        assert too_long.status_code == 400

    async def test_lost_email_race_is_conflict(self, client, make_user, monkeypatch):
        """A duplicate that slips past the lookup still hits the unique index."""
        await make_user("ada")

        async def not_taken(session, email):
            return False

        monkeypatch.setattr(users_service, "_email_taken", not_taken)
        resp = await client.post(
            "/api/v1/auth/register",
            json={"username": "ada2", "email": "ada@example.com", "password": "secret123"},
        )
        assert resp.status_code == 400
        assert resp.json() == {"status": "error", "message": "User already exists"}


class TestLogin:
    async def test_login_success(self, client, make_user):
        user = await make_user("ada")
        resp = await client.post(
            "/api/v1/auth/login", json={"email": "ada@example.com", "password": "secret123"}
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["user"]["id"] == user.id

    async def test_unknown_email_and_wrong_password_look_the_same(self, client, make_user):
        await make_user("ada")
        unknown = await client.post(
            "/api/v1/auth/login", json={"email": "nobody@example.com", "password": "secret123"}
        )
        wrong = await client.post(
            "/api/v1/auth/login", json={"email": "ada@example.com", "password": "wrong-pass"}
        )
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json() == {
            "status": "error",
            "message": "Invalid email or password",
        }
        assert unknown.headers["WWW-Authenticate"] == "Bearer"


class TestProtectedRoutes:
    async def test_missing_token(self, client):
        resp = await client.get("/api/v1/projects")
        assert resp.status_code == 401
        assert resp.json()["status"] == "error"

    async def test_invalid_token(self, client):
        resp = await client.get("/api/v1/projects", headers={"Authorization": "Bearer junk"})
        assert resp.status_code == 401

    async def test_token_for_deleted_user(self, app, client, make_user):
        user = await make_user("ada")
        async with app.state.db.session() as session:
            await session.execute(delete(User).where(User.id == uuid.UUID(user.id)))
        resp = await client.get("/api/v1/projects", headers=user.headers)
        assert resp.status_code == 401
        assert resp.json()["message"] == "User no longer exists"


class TestByEmail:
    async def test_found(self, client, make_user):
        caller = await make_user("caller")
        target = await make_user("target")
        resp = await client.get(
            "/api/v1/auth/by-email", params={"email": "TARGET@example.com"}, headers=caller.headers
        )
        assert resp.status_code == 200
        assert resp.json()["data"] == {
            "id": target.id,
            "username": "target",
            "email": "target@example.com",
        }

    async def test_blank_email(self, client, make_user):
        caller = await make_user()
        resp = await client.get("/api/v1/auth/by-email", headers=caller.headers)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Email required"

    async def test_unknown_email(self, client, make_user):
        caller = await make_user()
        resp = await client.get(
            "/api/v1/auth/by-email", params={"email": "ghost@example.com"}, headers=caller.headers
        )
        assert resp.status_code == 404
        assert resp.json()["message"] == "User not found"

    async def test_requires_auth(self, client):
        resp = await client.get("/api/v1/auth/by-email", params={"email": "a@example.com"})
        assert resp.status_code == 401
