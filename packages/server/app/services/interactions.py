"""
Counter-bearing interactions shared by the REST routes and the socket handlers.

Each operation validates its input, checks the target exists, then writes the
child row and moves the target's denormalised counter in one transaction.
Counter moves are single ``UPDATE ... SET n = n + 1`` statements so that
concurrent writers never lose an increment. Writers on the same target inside
this process are additionally serialised through ``target_locks``.
"""

from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import structlog
from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, StoreError, ValidationError
from app.models.forum import ForumPost, ForumReply
from app.models.project import Project, ProjectComment, ProjectLike
from app.models.user import User

log = structlog.get_logger()


class TargetLocks:
    """One asyncio.Lock per target key, dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


target_locks = TargetLocks()


@dataclass
class LikeResult:
    project: Project
    liked: bool


@dataclass
class CommentResult:
    project: Project
    comment: ProjectComment
    author: User


@dataclass
class ReplyResult:
    post: ForumPost
    reply: ForumReply
    author: User


def _require_content(content: Optional[str], message: str) -> str:
    text = (content or "").strip()
    if not text:
        raise ValidationError(message)
    return text


async def _author(session: AsyncSession, user_id: uuid.UUID) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


async def toggle_project_like(
    session: AsyncSession, user_id: uuid.UUID, project_id: uuid.UUID
) -> LikeResult:
    """Like the project if the user has not, otherwise remove the like."""
    async with target_locks.hold(f"project:{project_id}"):
        project = await session.get(Project, project_id)
        if project is None:
            raise NotFoundError("Project not found")

        try:
            removed = await session.execute(
                delete(ProjectLike).where(
                    ProjectLike.user_id == user_id, ProjectLike.project_id == project_id
                )
            )
            liked = removed.rowcount == 0
            if liked:
                session.add(ProjectLike(user_id=user_id, project_id=project_id))
                await session.flush()
            await session.execute(
                update(Project)
                .where(Project.id == project_id)
                .values(likes=Project.likes + (1 if liked else -1))
            )
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            log.exception("project.like_failed", project_id=str(project_id), user_id=str(user_id))
            raise StoreError("Failed to like project") from exc

        await session.refresh(project)

    log.info(
        "project.liked" if liked else "project.unliked",
        project_id=str(project_id),
        user_id=str(user_id),
        likes=project.likes,
    )
    return LikeResult(project=project, liked=liked)


async def add_project_comment(
    session: AsyncSession, user_id: uuid.UUID, project_id: uuid.UUID, content: Optional[str]
) -> CommentResult:
    text = _require_content(content, "Comment content is required")

    async with target_locks.hold(f"project:{project_id}"):
        project = await session.get(Project, project_id)
        if project is None:
            raise NotFoundError("Project not found")
        author = await _author(session, user_id)

        comment = ProjectComment(project_id=project_id, user_id=user_id, content=text)
        try:
            session.add(comment)
            await session.flush()
            await session.execute(
                update(Project)
                .where(Project.id == project_id)
                .values(comments=Project.comments + 1)
            )
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            log.exception("project.comment_failed", project_id=str(project_id), user_id=str(user_id))
            raise StoreError("Failed to add comment") from exc

        await session.refresh(project)
        await session.refresh(comment)

    log.info("project.commented", project_id=str(project_id), comment_id=str(comment.id))
    return CommentResult(project=project, comment=comment, author=author)


# ---------------------------------------------------------------------------
# Forum
# ---------------------------------------------------------------------------


async def add_forum_reply(
    session: AsyncSession,
    user_id: uuid.UUID,
    post_id: uuid.UUID,
    content: Optional[str],
    parent_id: Optional[uuid.UUID] = None,
) -> ReplyResult:
    """Reply to a post, optionally under an existing reply of the same post."""
    text = _require_content(content, "Reply content is required")

    async with target_locks.hold(f"forum:{post_id}"):
        post = await session.get(ForumPost, post_id)
        if post is None:
            raise NotFoundError("Forum post not found")

        if parent_id is not None:
            parent = await session.get(ForumReply, parent_id)
            if parent is None or parent.post_id != post_id:
                raise NotFoundError("Parent reply not found")

        author = await _author(session, user_id)
        reply = ForumReply(post_id=post_id, user_id=user_id, parent_id=parent_id, content=text)
        try:
            session.add(reply)
            await session.flush()
            await session.execute(
                update(ForumPost)
                .where(ForumPost.id == post_id)
                .values(replies=ForumPost.replies + 1)
            )
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            log.exception("forum.reply_failed", post_id=str(post_id), user_id=str(user_id))
            raise StoreError("Failed to add reply") from exc

        await session.refresh(post)
        await session.refresh(reply)

    log.info("forum.replied", post_id=str(post_id), reply_id=str(reply.id))
    return ReplyResult(post=post, reply=reply, author=author)
