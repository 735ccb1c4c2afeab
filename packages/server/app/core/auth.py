"""
Authentication and authorization for the SkillForge API.

Supports:
- Password hashing (bcrypt, cost 12)
- Access and refresh JWTs (PyJWT) with issuer/audience claims
- Revocation list for logged-out access tokens (Redis)
- Bearer-token dependencies for REST routes and the socket connection gate
- Role guards
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import AuthenticationError, PermissionDeniedError
from app.core.redis import get_redis
from app.models.user import User

log = structlog.get_logger()
settings = get_settings()

authorization_header = APIKeyHeader(name="Authorization", auto_error=False)

REVOKED_KEY_PREFIX = "sf:jwt:revoked:"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_access_token(
    user_id: uuid.UUID,
    email: str,
    role: str,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed access token. Returns (token, jti)."""
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "type": "access",
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def create_refresh_token(user_id: uuid.UUID) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": "refresh",
        "iat": now,
        "exp": now + timedelta(days=settings.refresh_expire_days),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict:
    """Decode and verify an access token. Raises jwt.PyJWTError on failure."""
    payload = jwt.decode(
        token,
        settings.secret_key,
        algorithms=[settings.jwt_algorithm],
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
        options={"require": ["sub", "exp"]},
    )
    if payload.get("type") != "access":
        raise jwt.InvalidTokenError("Invalid token type")
    return payload


def decode_refresh_token(token: str) -> dict:
    """Decode a refresh token. Raises jwt.PyJWTError on failure or wrong type."""
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    if payload.get("type") != "refresh":
        raise jwt.InvalidTokenError("Invalid token type")
    return payload


# ---------------------------------------------------------------------------
# JWT Revocation (Redis)
# ---------------------------------------------------------------------------

async def revoke_jwt(jti: str, exp: int | None = None) -> None:
    """Add a token ID to the revocation list until the token would expire anyway."""
    ttl = settings.jwt_expire_minutes * 60
    if exp is not None:
        ttl = max(int(exp - datetime.now(timezone.utc).timestamp()), 1)
    redis = await get_redis()
    await redis.setex(f"{REVOKED_KEY_PREFIX}{jti}", ttl, "1")


async def is_jwt_revoked(jti: str) -> bool:
    redis = await get_redis()
    return await redis.exists(f"{REVOKED_KEY_PREFIX}{jti}") > 0


# ---------------------------------------------------------------------------
# Token → user
# ---------------------------------------------------------------------------

def extract_bearer(value: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer <token>`` value."""
    if not value:
        return None
    if value.startswith("Bearer "):
        value = value[7:]
    return value.strip() or None


async def authenticate_token(token: str, session: AsyncSession) -> tuple[User, dict]:
    """Resolve an access token to an active user.

    Raises AuthenticationError when the token is invalid, expired or revoked,
    or when the user no longer exists or has been deactivated.
    """
    try:
        payload = decode_access_token(token)
    except jwt.PyJWTError as exc:
        log.info("auth.token_rejected", reason=str(exc))
        raise AuthenticationError("Invalid or expired token") from exc

    jti = payload.get("jti")
    if jti and await is_jwt_revoked(jti):
        raise AuthenticationError("Token has been revoked")

    try:
        user_id = uuid.UUID(payload["sub"])
    except ValueError as exc:
        raise AuthenticationError("Invalid or expired token") from exc

    user = await session.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("User not found or inactive")
    return user, payload


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

async def get_current_user(
    authorization: Optional[str] = Depends(authorization_header),
    session: AsyncSession = Depends(get_session),
) -> User:
    """Require a valid bearer token."""
    token = extract_bearer(authorization)
    if not token:
        raise AuthenticationError("Access token required")
    user, _ = await authenticate_token(token, session)
    return user


async def get_optional_user(
    authorization: Optional[str] = Depends(authorization_header),
    session: AsyncSession = Depends(get_session),
) -> Optional[User]:
    """Resolve the caller if a usable token is present; anonymous otherwise."""
    token = extract_bearer(authorization)
    if not token:
        return None
    try:
        user, _ = await authenticate_token(token, session)
    except AuthenticationError:
        return None
    return user


async def get_token_claims(
    authorization: Optional[str] = Depends(authorization_header),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Claims of the caller's access token (used by logout)."""
    token = extract_bearer(authorization)
    if not token:
        raise AuthenticationError("Access token required")
    _, payload = await authenticate_token(token, session)
    return payload


def require_role(*roles: str):
    """Dependency factory: the caller must hold one of ``roles``."""

    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise PermissionDeniedError("Insufficient permissions")
        return user

    return _check
