"""
Socket.IO handshake authentication.

The client presents its access token either in the Socket.IO ``auth``
payload (``{"token": "..."}``) or as an ``Authorization: Bearer`` header on
the handshake request. The token goes through the same checks as a REST
bearer token.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import authenticate_token, extract_bearer
from app.core.errors import AuthenticationError
from skillforge_shared.schemas.realtime import SocketUser


def socket_user(user) -> SocketUser:
    """The identity a user carries on connections and in notification payloads."""
    return SocketUser(id=str(user.id), email=user.email, username=user.username, role=user.role)


def _scope_header(scope: dict, name: bytes) -> Optional[str]:
    for key, value in scope.get("headers") or ():
        if key.lower() == name:
            return value.decode("latin-1")
    return None


def extract_handshake_token(environ: dict, auth: Any) -> Optional[str]:
    if isinstance(auth, dict) and auth.get("token"):
        return extract_bearer(str(auth["token"]))

    header = environ.get("HTTP_AUTHORIZATION")
    if header is None and isinstance(environ.get("asgi.scope"), dict):
        header = _scope_header(environ["asgi.scope"], b"authorization")
    return extract_bearer(header)


async def authenticate_handshake(
    session: AsyncSession, environ: dict, auth: Any = None
) -> SocketUser:
    """Resolve the connecting client to an active user or raise AuthenticationError."""
    token = extract_handshake_token(environ, auth)
    if not token:
        raise AuthenticationError("No token provided")
    user, _ = await authenticate_token(token, session)
    return socket_user(user)
