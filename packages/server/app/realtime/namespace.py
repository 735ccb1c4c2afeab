"""
The SkillForge Socket.IO namespace.

Client events use ``:`` separated names (``project:like``, ``join:room``);
``trigger_event`` maps them onto ``on_project_like`` style handlers.

Connection lifecycle:
1. Handshake is authenticated; failures refuse the connection before any
   room is entered.
2. The connection joins its personal room plus ``general`` and
   ``notifications``.
3. Further rooms are joined on request, subject to ``RoomPolicy``.
4. On disconnect the connection is unregistered and peers are told.

Handler failures never propagate to the transport: the caller gets an
``error`` event and nobody else hears about it.
"""

from __future__ import annotations

import uuid
from typing import Any, Awaitable, Callable, Optional

import socketio
import structlog
from pydantic import ValidationError as PayloadError
from redis.exceptions import RedisError
from socketio import exceptions as sio_exceptions
from sqlalchemy.exc import SQLAlchemyError

from app.core.database import get_session_context
from app.core.errors import AuthenticationError, SkillForgeError, StoreError
from app.realtime.gate import authenticate_handshake
from app.realtime.notifier import Notifier, notifier as default_notifier
from app.realtime.rooms import (
    DEFAULT_ROOMS,
    ConnectionRegistry,
    RoomPolicy,
    typing_room,
    user_room,
)
from app.services import interactions
from skillforge_shared.schemas.realtime import (
    ForumReplyEvent,
    ProjectCommentEvent,
    ProjectLikeEvent,
    SocketUser,
    StatusEvent,
    TypingEvent,
)

log = structlog.get_logger()


class SkillForgeNamespace(socketio.AsyncNamespace):
    def __init__(
        self,
        namespace: str = "/",
        *,
        registry: Optional[ConnectionRegistry] = None,
        policy: Optional[RoomPolicy] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        super().__init__(namespace)
        self.registry = registry or ConnectionRegistry()
        self.policy = policy or RoomPolicy()
        self.notifier = notifier or default_notifier

    async def trigger_event(self, event: str, *args):
        return await super().trigger_event(event.replace(":", "_"), *args)

    # -- lifecycle ----------------------------------------------------------

    async def on_connect(self, sid: str, environ: dict, auth: Any = None) -> None:
        try:
            async with get_session_context() as session:
                user = await authenticate_handshake(session, environ, auth)
        except AuthenticationError as exc:
            log.info("socket.auth_rejected", sid=sid, reason=exc.message)
            raise sio_exceptions.ConnectionRefusedError(f"Authentication error: {exc.message}")
        except (SQLAlchemyError, RedisError):
            log.exception("socket.auth_failed", sid=sid)
            raise sio_exceptions.ConnectionRefusedError("Authentication error: Authentication failed")

        self.registry.register(sid, user)
        for room in (user_room(user.id), *DEFAULT_ROOMS):
            await self.enter_room(sid, room)
            self.registry.add_room(sid, room)
        log.info("socket.connected", sid=sid, user_id=user.id, username=user.username)

    async def on_disconnect(self, sid: str, reason: Any = None) -> None:
        conn = self.registry.unregister(sid)
        if conn is None:
            return
        reason = str(reason) if reason else "client disconnect"
        log.info("socket.disconnected", sid=sid, user_id=conn.user.id, reason=reason)
        await self.emit(
            "user:offline",
            {"userId": conn.user.id, "user": conn.user.model_dump(), "reason": reason},
            skip_sid=sid,
        )

    # -- rooms --------------------------------------------------------------

    async def on_join_room(self, sid: str, room: Any) -> None:
        user = self._user(sid)
        if user is None:
            return
        if not isinstance(room, str) or not room:
            await self._error(sid, "Invalid room")
            return

        async with get_session_context() as session:
            allowed = await self.policy.can_join(session, user, room)
        if not allowed:
            log.info("socket.join_denied", sid=sid, user_id=user.id, room=room)
            await self._error(sid, "Not allowed to join room")
            return

        await self.enter_room(sid, room)
        self.registry.add_room(sid, room)
        log.debug("socket.joined", sid=sid, room=room)

    async def on_leave_room(self, sid: str, room: Any) -> None:
        if self._user(sid) is None or not isinstance(room, str):
            return
        await self.leave_room(sid, room)
        self.registry.remove_room(sid, room)
        log.debug("socket.left", sid=sid, room=room)

    # -- interactions -------------------------------------------------------

    async def on_project_like(self, sid: str, data: Any) -> None:
        async def like(user: SocketUser) -> None:
            event = ProjectLikeEvent.model_validate(data)
            async with get_session_context() as session:
                result = await interactions.toggle_project_like(
                    session, uuid.UUID(user.id), event.project_id
                )
            await self.notifier.project_like_toggled(result, user)

        await self._handle(sid, "project:like", "Failed to like project", like)

    async def on_project_comment(self, sid: str, data: Any) -> None:
        async def comment(user: SocketUser) -> None:
            event = ProjectCommentEvent.model_validate(data)
            async with get_session_context() as session:
                result = await interactions.add_project_comment(
                    session, uuid.UUID(user.id), event.project_id, event.content
                )
            await self.notifier.project_commented(result, user)

        await self._handle(sid, "project:comment", "Failed to add comment", comment)

    async def on_forum_reply(self, sid: str, data: Any) -> None:
        async def reply(user: SocketUser) -> None:
            event = ForumReplyEvent.model_validate(data)
            async with get_session_context() as session:
                result = await interactions.add_forum_reply(
                    session, uuid.UUID(user.id), event.post_id, event.content, event.parent_id
                )
            await self.notifier.forum_replied(result, user)

        await self._handle(sid, "forum:reply", "Failed to add reply", reply)

    # -- presence -----------------------------------------------------------

    async def on_typing_start(self, sid: str, data: Any) -> None:
        await self._relay_typing(sid, "typing:start", data)

    async def on_typing_stop(self, sid: str, data: Any) -> None:
        await self._relay_typing(sid, "typing:stop", data)

    async def on_status_update(self, sid: str, data: Any) -> None:
        async def status(user: SocketUser) -> None:
            event = StatusEvent.model_validate(data)
            await self.emit(
                "user:status",
                {"userId": user.id, "status": event.status, "user": user.model_dump()},
                skip_sid=sid,
            )

        await self._handle(sid, "status:update", "Failed to update status", status)

    async def _relay_typing(self, sid: str, name: str, data: Any) -> None:
        async def relay(user: SocketUser) -> None:
            event = TypingEvent.model_validate(data)
            await self.emit(
                name,
                {"user": user.model_dump(), "type": event.type, "id": event.id},
                room=typing_room(event.type, event.id),
                skip_sid=sid,
            )

        await self._handle(sid, name, "Failed to relay typing", relay)

    # -- moderation ---------------------------------------------------------

    async def disconnect_user(self, user_id: str) -> int:
        """Drop every live connection of a user. Returns how many were dropped."""
        connections = self.registry.connections_for_user(user_id)
        for conn in connections:
            await self.disconnect(conn.sid)
        if connections:
            log.info("socket.user_disconnected", user_id=str(user_id), count=len(connections))
        return len(connections)

    # -- helpers ------------------------------------------------------------

    def _user(self, sid: str) -> Optional[SocketUser]:
        conn = self.registry.get(sid)
        return conn.user if conn else None

    async def _error(self, sid: str, message: str) -> None:
        await self.emit("error", {"message": message}, to=sid)

    async def _handle(
        self,
        sid: str,
        event: str,
        failure_message: str,
        action: Callable[[SocketUser], Awaitable[None]],
    ) -> None:
        """Run one client event, reporting any failure to the caller only."""
        user = self._user(sid)
        if user is None:
            await self._error(sid, "Not authenticated")
            return
        try:
            await action(user)
        except PayloadError as exc:
            log.info("socket.invalid_payload", sid=sid, event_name=event, errors=exc.error_count())
            await self._error(sid, "Invalid payload")
        except StoreError as exc:
            await self._error(sid, exc.message)
        except SkillForgeError as exc:
            log.info("socket.event_rejected", sid=sid, event_name=event, reason=exc.message)
            await self._error(sid, exc.message)
        except Exception:
            log.exception("socket.event_failed", sid=sid, event_name=event)
            await self._error(sid, failure_message)
