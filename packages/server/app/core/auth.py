"""
Authentication for TaskHub.

- Password hashing with bcrypt (cost factor from Settings)
- Stateless bearer JWTs carrying the user id
- FastAPI dependency resolving the caller from the Authorization header
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.database import get_session
from app.core.errors import AuthError
from app.models.user import User

log = structlog.get_logger()

authorization_header = APIKeyHeader(name="Authorization", auto_error=False)

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # Malformed stored hash
        return False


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_access_token(
    user_id: uuid.UUID,
    settings: Settings,
    *,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed, time-limited JWT for a user."""
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": exp,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> uuid.UUID:
    """Decode a JWT and return the user id it carries. Raises AuthError."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Not authorized, token expired")
    except jwt.PyJWTError:
        raise AuthError("Not authorized, invalid token")

    try:
        return uuid.UUID(payload["sub"])
    except (TypeError, ValueError):
        raise AuthError("Not authorized, invalid token")


def extract_bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("Not authorized, token missing")
    token = authorization[7:].strip()
    if not token:
        raise AuthError("Not authorized, token missing")
    return token


async def verify_token(token: str, settings: Settings, session: AsyncSession) -> User:
    """Resolve a bearer token to a live user."""
    user_id = decode_access_token(token, settings)
    user = await session.get(User, user_id)
    if not user:
        log.info("auth.token_user_missing", user_id=str(user_id))
        raise AuthError("User no longer exists")
    return user


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_current_user(
    authorization: Optional[str] = Depends(authorization_header),
    settings: Settings = Depends(get_app_settings),
    session: AsyncSession = Depends(get_session),
) -> User:
    """Main authentication dependency: `Authorization: Bearer <jwt>`."""
    token = extract_bearer_token(authorization)
    return await verify_token(token, settings, session)
