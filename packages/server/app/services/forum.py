"""
Community forum service: posts, threads, reply edits, categories and trending.

Reply creation lives in ``app.services.interactions`` alongside the other
counter-bearing interactions.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import timedelta
from typing import Optional, Sequence

import structlog
from sqlalchemy import case, delete, func, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import NotFoundError, StoreError, ValidationError
from app.models.base import utcnow
from app.models.forum import ForumPost, ForumReply
from app.models.user import User
from app.services.query import contains_ci, json_array_contains, order_column, paginate
from app.services.users import author_summary, load_authors
from skillforge_shared.schemas.common import Pagination
from skillforge_shared.schemas.forum import (
    CategoryCount,
    ForumPostCreate,
    ForumPostList,
    ForumPostRead,
    ForumPostUpdate,
    ForumReplyRead,
    ForumThread,
)

log = structlog.get_logger()

SORTABLE_FIELDS = ("created_at", "updated_at", "likes", "views", "replies", "title")
TRENDING_WINDOW = timedelta(days=7)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def post_read(post: ForumPost, author: Optional[User]) -> ForumPostRead:
    data = ForumPostRead.model_validate(post)
    data.author = author_summary(author)
    return data


def reply_read(reply: ForumReply, author: Optional[User]) -> ForumReplyRead:
    data = ForumReplyRead.model_validate(reply)
    data.user = author_summary(author)
    return data


async def _enrich(session: AsyncSession, posts: Sequence[ForumPost]) -> list[ForumPostRead]:
    authors = await load_authors(session, (p.author_id for p in posts))
    return [post_read(p, authors.get(p.author_id)) for p in posts]


async def get_post_or_404(session: AsyncSession, post_id: uuid.UUID) -> ForumPost:
    post = await session.get(ForumPost, post_id)
    if post is None:
        raise NotFoundError("Forum post not found")
    return post


async def get_owned_post(session: AsyncSession, post_id: uuid.UUID, user: User) -> ForumPost:
    post = await session.get(ForumPost, post_id)
    if post is None or post.author_id != user.id:
        raise NotFoundError("Post not found or not authorized")
    return post


async def get_owned_reply(session: AsyncSession, reply_id: uuid.UUID, user: User) -> ForumReply:
    reply = await session.get(ForumReply, reply_id)
    if reply is None or reply.user_id != user.id:
        raise NotFoundError("Reply not found or not authorized")
    return reply


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


async def list_posts(
    session: AsyncSession,
    *,
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    category: Optional[str] = None,
    solved: Optional[bool] = None,
    sort_by: str = "created_at",
    descending: bool = True,
) -> ForumPostList:
    stmt = select(ForumPost)
    if search:
        stmt = stmt.where(
            or_(contains_ci(ForumPost.title, search), contains_ci(ForumPost.content, search))
        )
    if category:
        stmt = stmt.where(ForumPost.category == category)
    if solved is not None:
        stmt = stmt.where(ForumPost.is_solved == solved)
    stmt = stmt.order_by(
        ForumPost.is_pinned.desc(),
        order_column(ForumPost, sort_by, SORTABLE_FIELDS, descending),
    )
    posts, total = await paginate(session, stmt, page, limit)
    return ForumPostList(
        posts=await _enrich(session, posts),
        pagination=Pagination.build(page, limit, total),
    )


async def view_thread(session: AsyncSession, post_id: uuid.UUID) -> ForumThread:
    """A post with its top-level replies, each carrying every reply beneath it.

    Counts the view.
    """
    post = await get_post_or_404(session, post_id)
    await session.execute(
        update(ForumPost).where(ForumPost.id == post_id).values(views=ForumPost.views + 1)
    )
    await session.commit()
    await session.refresh(post)

    result = await session.execute(
        select(ForumReply)
        .where(ForumReply.post_id == post_id)
        .order_by(ForumReply.created_at.asc())
    )
    replies = result.scalars().all()
    authors = await load_authors(
        session, [post.author_id, *(r.user_id for r in replies)]
    )

    # Replies deeper than one level are shown under their top-level ancestor.
    root_of: dict[uuid.UUID, uuid.UUID] = {}
    children: dict[uuid.UUID, list[ForumReplyRead]] = defaultdict(list)
    top_level: list[ForumReplyRead] = []
    for reply in replies:
        item = reply_read(reply, authors.get(reply.user_id))
        if reply.parent_id is None or reply.parent_id not in root_of:
            root_of[reply.id] = reply.id
            top_level.append(item)
        else:
            root_of[reply.id] = root_of[reply.parent_id]
            children[root_of[reply.id]].append(item)
    for item in top_level:
        item.children = children.get(item.id, [])

    return ForumThread(post=post_read(post, authors.get(post.author_id)), replies=top_level)


async def create_post(session: AsyncSession, author: User, req: ForumPostCreate) -> ForumPostRead:
    post = ForumPost(author_id=author.id, **req.model_dump())
    session.add(post)
    await session.commit()
    await session.refresh(post)
    log.info("forum.post_created", post_id=str(post.id), author_id=str(author.id))
    return post_read(post, author)


async def update_post(
    session: AsyncSession, post_id: uuid.UUID, author: User, req: ForumPostUpdate
) -> ForumPostRead:
    post = await get_owned_post(session, post_id, author)
    for field, value in req.model_dump().items():
        setattr(post, field, value)
    session.add(post)
    await session.commit()
    await session.refresh(post)
    return post_read(post, author)


async def delete_post(session: AsyncSession, post_id: uuid.UUID, author: User) -> None:
    post = await get_owned_post(session, post_id, author)
    await session.delete(post)
    await session.commit()
    log.info("forum.post_deleted", post_id=str(post_id))


async def mark_solved(session: AsyncSession, post_id: uuid.UUID, author: User) -> ForumPostRead:
    post = await get_owned_post(session, post_id, author)
    post.is_solved = True
    session.add(post)
    await session.commit()
    await session.refresh(post)
    log.info("forum.post_solved", post_id=str(post.id))
    return post_read(post, author)


async def set_pinned(session: AsyncSession, post_id: uuid.UUID) -> ForumPostRead:
    """Flip the pinned flag (moderation)."""
    post = await get_post_or_404(session, post_id)
    post.is_pinned = not post.is_pinned
    session.add(post)
    await session.commit()
    await session.refresh(post)
    log.info("forum.post_pinned", post_id=str(post.id), is_pinned=post.is_pinned)
    author = await session.get(User, post.author_id)
    return post_read(post, author)


# ---------------------------------------------------------------------------
# Replies
# ---------------------------------------------------------------------------


async def update_reply(
    session: AsyncSession, reply_id: uuid.UUID, author: User, content: str
) -> ForumReplyRead:
    text = content.strip()
    if not text:
        raise ValidationError("Reply content is required")
    reply = await get_owned_reply(session, reply_id, author)
    reply.content = text
    session.add(reply)
    await session.commit()
    await session.refresh(reply)
    return reply_read(reply, author)


async def _subtree_ids(session: AsyncSession, reply_id: uuid.UUID) -> list[uuid.UUID]:
    """``reply_id`` plus the ids of every reply nested beneath it."""
    ids = [reply_id]
    frontier = [reply_id]
    while frontier:
        result = await session.execute(
            select(ForumReply.id).where(ForumReply.parent_id.in_(frontier))
        )
        frontier = list(result.scalars().all())
        ids.extend(frontier)
    return ids


async def delete_reply(session: AsyncSession, reply_id: uuid.UUID, author: User) -> None:
    """Remove a reply with everything beneath it and keep the post counter in step."""
    reply = await get_owned_reply(session, reply_id, author)
    post_id = reply.post_id
    doomed = await _subtree_ids(session, reply_id)
    removed = len(doomed)
    try:
        await session.execute(delete(ForumReply).where(ForumReply.id.in_(doomed)))
        await session.execute(
            update(ForumPost)
            .where(ForumPost.id == post_id)
            .values(
                replies=case(
                    (ForumPost.replies > removed, ForumPost.replies - removed), else_=0
                )
            )
        )
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StoreError("Failed to delete reply") from exc
    log.info("forum.reply_deleted", reply_id=str(reply_id), post_id=str(post_id), removed=removed)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


async def categories(session: AsyncSession) -> list[CategoryCount]:
    count = func.count(ForumPost.id)
    result = await session.execute(
        select(ForumPost.category, count)
        .group_by(ForumPost.category)
        .order_by(count.desc(), ForumPost.category.asc())
    )
    return [CategoryCount(name=name, count=n) for name, n in result.all()]


async def search_posts(
    session: AsyncSession, q: str, *, page: int = 1, limit: int = 20
) -> ForumPostList:
    stmt = (
        select(ForumPost)
        .where(
            or_(
                contains_ci(ForumPost.title, q),
                contains_ci(ForumPost.content, q),
                json_array_contains(ForumPost.tags, q),
            )
        )
        .order_by(ForumPost.is_pinned.desc(), ForumPost.created_at.desc())
    )
    posts, total = await paginate(session, stmt, page, limit)
    return ForumPostList(
        posts=await _enrich(session, posts),
        pagination=Pagination.build(page, limit, total),
    )


async def trending_posts(session: AsyncSession, limit: int = 10) -> ForumPostList:
    since = utcnow() - TRENDING_WINDOW
    result = await session.execute(
        select(ForumPost)
        .where(ForumPost.created_at >= since)
        .order_by(ForumPost.likes.desc(), ForumPost.views.desc())
        .limit(limit)
    )
    return ForumPostList(posts=await _enrich(session, result.scalars().all()))
