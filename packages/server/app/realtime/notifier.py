"""
Fan-out of interaction results to Socket.IO rooms.

Used by both the socket handlers and the REST routes, so a like toggled over
HTTP reaches the same rooms as one toggled over the socket. The owner of the
target is notified in their personal room unless they are the actor; the
target's topic room always gets the updated state.
"""

from __future__ import annotations

from typing import Any, Optional

import socketio
import structlog

from app.realtime.rooms import forum_room, project_room, user_room
from app.services.forum import reply_read
from app.services.interactions import CommentResult, LikeResult, ReplyResult
from app.services.projects import comment_read
from skillforge_shared.schemas.realtime import SocketUser

log = structlog.get_logger()


class Notifier:
    def __init__(self, server: Optional[socketio.AsyncServer] = None, namespace: str = "/"):
        self.server = server
        self.namespace = namespace

    def bind(self, server: socketio.AsyncServer, namespace: str = "/") -> None:
        self.server = server
        self.namespace = namespace

    async def emit(
        self, event: str, payload: Any, *, room: Optional[str] = None, skip_sid: Optional[str] = None
    ) -> None:
        if self.server is None:
            log.debug("socket.emit_skipped", event=event, room=room)
            return
        await self.server.emit(
            event, payload, room=room, skip_sid=skip_sid, namespace=self.namespace
        )

    async def notify_owner(self, owner_id, actor: SocketUser, event: str, payload: dict) -> None:
        if str(owner_id) == actor.id:
            return
        await self.emit(event, payload, room=user_room(owner_id))

    # -- interactions -------------------------------------------------------

    async def project_like_toggled(self, result: LikeResult, actor: SocketUser) -> None:
        project = result.project
        await self.notify_owner(
            project.author_id,
            actor,
            "project:liked" if result.liked else "project:unliked",
            {
                "projectId": str(project.id),
                "projectTitle": project.title,
                "user": actor.model_dump(),
            },
        )
        await self.emit(
            "project:like:update",
            {"projectId": str(project.id), "liked": result.liked, "likes": project.likes},
            room=project_room(project.id),
        )

    async def project_commented(self, result: CommentResult, actor: SocketUser) -> None:
        project, comment = result.project, result.comment
        await self.notify_owner(
            project.author_id,
            actor,
            "project:commented",
            {
                "projectId": str(project.id),
                "projectTitle": project.title,
                "comment": {"id": str(comment.id), "content": comment.content, "user": actor.model_dump()},
            },
        )
        await self.emit(
            "project:comment:new",
            comment_read(comment, result.author).model_dump(mode="json"),
            room=project_room(project.id),
        )

    async def forum_replied(self, result: ReplyResult, actor: SocketUser) -> None:
        post, reply = result.post, result.reply
        await self.notify_owner(
            post.author_id,
            actor,
            "forum:replied",
            {
                "postId": str(post.id),
                "postTitle": post.title,
                "reply": {"id": str(reply.id), "content": reply.content, "user": actor.model_dump()},
            },
        )
        await self.emit(
            "forum:reply:new",
            reply_read(reply, result.author).model_dump(mode="json"),
            room=forum_room(post.id),
        )


notifier = Notifier()

