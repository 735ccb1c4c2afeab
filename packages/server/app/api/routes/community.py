"""
Community forum endpoints: posts, threaded replies, discovery.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.realtime.gate import socket_user
from app.realtime.notifier import notifier
from app.services import forum as forum_service
from app.services import interactions
from skillforge_shared.schemas.common import SortOrder
from skillforge_shared.schemas.forum import (
    CategoryCount,
    ForumPostCreate,
    ForumPostList,
    ForumPostRead,
    ForumPostUpdate,
    ForumReplyCreate,
    ForumReplyRead,
    ForumReplyUpdate,
    ForumThread,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


@router.get("/posts", response_model=ForumPostList)
async def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=50),
    category: Optional[str] = None,
    solved: Optional[bool] = None,
    sort_by: str = "created_at",
    sort_order: SortOrder = SortOrder.DESC,
    session: AsyncSession = Depends(get_session),
):
    """Pinned posts come first regardless of the requested sort."""
    return await forum_service.list_posts(
        session,
        page=page,
        limit=limit,
        category=category,
        solved=solved,
        sort_by=sort_by,
        descending=sort_order == SortOrder.DESC,
    )


@router.get("/posts/{post_id}", response_model=ForumThread)
async def get_post(post_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    return await forum_service.view_thread(session, post_id)


@router.post("/posts", response_model=ForumPostRead, status_code=201)
async def create_post(
    body: ForumPostCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await forum_service.create_post(session, user, body)


@router.put("/posts/{post_id}", response_model=ForumPostRead)
async def update_post(
    post_id: uuid.UUID,
    body: ForumPostUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await forum_service.update_post(session, post_id, user, body)


@router.delete("/posts/{post_id}")
async def delete_post(
    post_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await forum_service.delete_post(session, post_id, user)
    return {"message": "Post deleted successfully"}


@router.patch("/posts/{post_id}/solve", response_model=ForumPostRead)
async def mark_solved(
    post_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await forum_service.mark_solved(session, post_id, user)


# ---------------------------------------------------------------------------
# Replies
# ---------------------------------------------------------------------------


@router.post("/posts/{post_id}/replies", response_model=ForumReplyRead, status_code=201)
async def add_reply(
    post_id: uuid.UUID,
    body: ForumReplyCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    result = await interactions.add_forum_reply(
        session, user.id, post_id, body.content, body.parent_id
    )
    await notifier.forum_replied(result, socket_user(user))
    return forum_service.reply_read(result.reply, result.author)


@router.put("/replies/{reply_id}", response_model=ForumReplyRead)
async def update_reply(
    reply_id: uuid.UUID,
    body: ForumReplyUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await forum_service.update_reply(session, reply_id, user, body.content)


@router.delete("/replies/{reply_id}")
async def delete_reply(
    reply_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await forum_service.delete_reply(session, reply_id, user)
    return {"message": "Reply deleted successfully"}


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


@router.get("/categories", response_model=List[CategoryCount])
async def list_categories(session: AsyncSession = Depends(get_session)):
    return await forum_service.categories(session)


@router.get("/search", response_model=ForumPostList)
async def search_posts(
    q: str = Query(..., min_length=1),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=50),
    session: AsyncSession = Depends(get_session),
):
    return await forum_service.search_posts(session, q, page=page, limit=limit)


@router.get("/trending", response_model=ForumPostList)
async def trending_posts(
    limit: int = Query(10, ge=1, le=50),
    session: AsyncSession = Depends(get_session),
):
    return await forum_service.trending_posts(session, limit)
