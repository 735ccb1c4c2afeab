"""
Room naming, the in-process connection registry and the room join policy.

Room names:
- ``user:{id}``          personal room, one per user, joined on connect
- ``general``            everybody, joined on connect
- ``notifications``      everybody, joined on connect
- ``project:{id}``       watchers of a project (like/comment updates)
- ``forum:{id}``         watchers of a forum post (new replies)
- ``room:{type}:{id}``   typing indicators for a project or forum post
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.forum import ForumPost
from app.models.project import Project
from skillforge_shared.schemas.realtime import SocketUser

log = structlog.get_logger()

GENERAL_ROOM = "general"
NOTIFICATIONS_ROOM = "notifications"
DEFAULT_ROOMS = (GENERAL_ROOM, NOTIFICATIONS_ROOM)


def user_room(user_id) -> str:
    return f"user:{user_id}"


def project_room(project_id) -> str:
    return f"project:{project_id}"


def forum_room(post_id) -> str:
    return f"forum:{post_id}"


def typing_room(kind: str, target_id) -> str:
    return f"room:{kind}:{target_id}"


# ---------------------------------------------------------------------------
# Connection registry
# ---------------------------------------------------------------------------


class Connection:
    """One authenticated Socket.IO connection."""

    __slots__ = ("sid", "user", "rooms", "connected_at")

    def __init__(self, sid: str, user: SocketUser):
        self.sid = sid
        self.user = user
        self.rooms: set[str] = set()
        self.connected_at = datetime.now(timezone.utc)


class ConnectionRegistry:
    """Live connections of this process, keyed by Socket.IO session id."""

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}

    def register(self, sid: str, user: SocketUser) -> Connection:
        conn = Connection(sid, user)
        self._connections[sid] = conn
        return conn

    def unregister(self, sid: str) -> Optional[Connection]:
        return self._connections.pop(sid, None)

    def get(self, sid: str) -> Optional[Connection]:
        return self._connections.get(sid)

    def add_room(self, sid: str, room: str) -> None:
        conn = self._connections.get(sid)
        if conn is not None:
            conn.rooms.add(room)

    def remove_room(self, sid: str, room: str) -> None:
        conn = self._connections.get(sid)
        if conn is not None:
            conn.rooms.discard(room)

    def rooms_of(self, sid: str) -> set[str]:
        conn = self._connections.get(sid)
        return set(conn.rooms) if conn else set()

    def connections_for_user(self, user_id: str) -> list[Connection]:
        return [c for c in self._connections.values() if c.user.id == str(user_id)]

    def online_user_ids(self) -> set[str]:
        return {c.user.id for c in self._connections.values()}

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, sid: object) -> bool:
        return sid in self._connections


# ---------------------------------------------------------------------------
# Join policy
# ---------------------------------------------------------------------------


def _parse_id(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(value)
    except ValueError:
        return None


class RoomPolicy:
    """Decides whether a user may join a named room."""

    async def can_join(self, session: AsyncSession, user: SocketUser, room: str) -> bool:
        if room in DEFAULT_ROOMS:
            return True

        kind, _, rest = room.partition(":")
        if kind == "room":
            kind, _, rest = rest.partition(":")
        elif kind == "user":
            return rest == user.id

        target_id = _parse_id(rest)
        if target_id is None:
            return False

        if kind == "project":
            project = await session.get(Project, target_id)
            if project is None:
                return False
            return project.is_published or str(project.author_id) == user.id
        if kind == "forum":
            return await session.get(ForumPost, target_id) is not None
        return False
