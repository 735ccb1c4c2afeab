"""
Authentication endpoints.

- Email/password registration and login
- Access/refresh token pair issuance and rotation
- Logout (revokes the presented access token)
- Password reset by emailed token
"""

from __future__ import annotations

import uuid

import jwt
import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    get_current_user,
    get_token_claims,
    revoke_jwt,
)
from app.core.database import get_session
from app.core.errors import AuthenticationError
from app.models.user import User
from app.services import users as user_service
from skillforge_shared.schemas.users import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenPair,
    UserRead,
)

log = structlog.get_logger()
router = APIRouter()

RESET_REQUESTED_MESSAGE = "If an account with that email exists, we sent a password reset link"


def _issue_tokens(user: User) -> TokenPair:
    token, _ = create_access_token(user.id, user.email, user.role)
    return TokenPair(token=token, refresh_token=create_refresh_token(user.id))


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(body: RegisterRequest, session: AsyncSession = Depends(get_session)):
    user = await user_service.register_user(session, body)
    pair = _issue_tokens(user)
    return AuthResponse(user=UserRead.model_validate(user), **pair.model_dump())


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, session: AsyncSession = Depends(get_session)):
    user = await user_service.authenticate_credentials(session, body.email, body.password)
    pair = _issue_tokens(user)
    return AuthResponse(user=UserRead.model_validate(user), **pair.model_dump())


@router.post("/refresh", response_model=TokenPair)
async def refresh(body: RefreshRequest, session: AsyncSession = Depends(get_session)):
    """Exchange a refresh token for a fresh token pair."""
    try:
        payload = decode_refresh_token(body.refresh_token)
        user_id = uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError) as exc:
        raise AuthenticationError("Invalid refresh token") from exc

    user = await session.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("User not found or inactive")
    return _issue_tokens(user)


@router.post("/logout")
async def logout(claims: dict = Depends(get_token_claims)):
    if claims.get("jti"):
        await revoke_jwt(claims["jti"], claims.get("exp"))
    log.info("auth.logout", user_id=claims.get("sub"))
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserRead)
async def me(user: User = Depends(get_current_user)):
    return user


@router.post("/forgot-password")
async def forgot_password(body: ForgotPasswordRequest, session: AsyncSession = Depends(get_session)):
    """Start a password reset. The reply never reveals whether the email is registered."""
    # TODO: deliver the token by email once an outbound mail provider is configured.
    await user_service.request_password_reset(session, body.email)
    return {"message": RESET_REQUESTED_MESSAGE}


@router.post("/reset-password")
async def reset_password(body: ResetPasswordRequest, session: AsyncSession = Depends(get_session)):
    await user_service.reset_password(session, body.token, body.password)
    return {"message": "Password reset successful"}
