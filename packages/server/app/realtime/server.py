"""
Socket.IO server construction and the process-wide namespace handle.
"""

from __future__ import annotations

from typing import Optional

import socketio
import structlog

from app.core.config import Settings
from app.realtime.namespace import SkillForgeNamespace
from app.realtime.notifier import notifier

log = structlog.get_logger()

_namespace: Optional[SkillForgeNamespace] = None


def create_socket_server(settings: Settings) -> socketio.AsyncServer:
    """Build the AsyncServer, register the namespace and bind the shared notifier."""
    global _namespace

    client_manager = None
    if settings.socket_redis_enabled:
        client_manager = socketio.AsyncRedisManager(settings.redis_url)

    origins = settings.cors_origins
    sio = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=origins if origins != ["*"] else "*",
        client_manager=client_manager,
        logger=False,
        engineio_logger=False,
    )
    _namespace = SkillForgeNamespace("/", notifier=notifier)
    sio.register_namespace(_namespace)
    notifier.bind(sio, "/")
    log.info("socket.server_created", redis_fanout=settings.socket_redis_enabled)
    return sio


def get_namespace() -> Optional[SkillForgeNamespace]:
    return _namespace


async def disconnect_user(user_id) -> int:
    """Drop the live connections of a user, if this process holds any."""
    if _namespace is None:
        return 0
    return await _namespace.disconnect_user(str(user_id))
