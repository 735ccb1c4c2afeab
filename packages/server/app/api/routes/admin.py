"""
Moderation endpoints (ADMIN only).
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import require_role
from app.core.database import get_session
from app.core.errors import ValidationError
from app.models.user import User
from app.realtime.server import disconnect_user
from app.services import forum as forum_service
from app.services import learning as learning_service
from app.services import projects as project_service
from app.services import users as user_service
from skillforge_shared.schemas.common import Difficulty, Role, SortOrder
from skillforge_shared.schemas.forum import ForumPostList, ForumPostRead
from skillforge_shared.schemas.learning import TrackLevel, TrackList, TrackRead
from skillforge_shared.schemas.projects import ProjectList, ProjectRead
from skillforge_shared.schemas.users import AdminUserList, RoleUpdate, StatusUpdate, UserRead

log = structlog.get_logger()
router = APIRouter()

require_admin = require_role("ADMIN")


@router.get("/users", response_model=AdminUserList)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[Role] = None,
    sort_by: str = "join_date",
    sort_order: SortOrder = SortOrder.DESC,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await user_service.list_users(
        session,
        page=page,
        limit=limit,
        search=search,
        role=role.value if role else None,
        sort_by=sort_by,
        descending=sort_order == SortOrder.DESC,
    )


@router.patch("/users/{user_id}/role", response_model=UserRead)
async def change_role(
    user_id: uuid.UUID,
    body: RoleUpdate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await user_service.set_role(session, user_id, body.role.value)


@router.patch("/users/{user_id}/status", response_model=UserRead)
async def change_status(
    user_id: uuid.UUID,
    body: StatusUpdate,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Activate or deactivate an account. Deactivation drops live sockets."""
    if user_id == admin.id and not body.is_active:
        raise ValidationError("Cannot deactivate your own account")
    user = await user_service.set_active(session, user_id, body.is_active)
    if not user.is_active:
        dropped = await disconnect_user(user.id)
        log.info("admin.user_deactivated", user_id=str(user.id), sockets_dropped=dropped)
    return user


@router.patch("/projects/{project_id}/feature", response_model=ProjectRead)
async def toggle_featured(
    project_id: uuid.UUID,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await project_service.set_featured(session, project_id)


@router.patch("/posts/{post_id}/pin", response_model=ForumPostRead)
async def toggle_pinned(
    post_id: uuid.UUID,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await forum_service.set_pinned(session, post_id)


@router.get("/projects", response_model=ProjectList)
async def list_projects(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    difficulty: Optional[Difficulty] = None,
    sort_by: str = "created_at",
    sort_order: SortOrder = SortOrder.DESC,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """All projects, drafts included."""
    return await project_service.list_all_projects(
        session,
        page=page,
        limit=limit,
        search=search,
        difficulty=difficulty.value if difficulty else None,
        sort_by=sort_by,
        descending=sort_order == SortOrder.DESC,
    )


@router.get("/posts", response_model=ForumPostList)
async def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    category: Optional[str] = None,
    solved: Optional[bool] = None,
    sort_by: str = "created_at",
    sort_order: SortOrder = SortOrder.DESC,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await forum_service.list_posts(
        session,
        page=page,
        limit=limit,
        search=search,
        category=category,
        solved=solved,
        sort_by=sort_by,
        descending=sort_order == SortOrder.DESC,
    )


@router.get("/tracks", response_model=TrackList)
async def list_tracks(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    level: Optional[TrackLevel] = None,
    sort_by: str = "created_at",
    sort_order: SortOrder = SortOrder.DESC,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """All learning tracks, unpublished included."""
    return await learning_service.list_all_tracks(
        session,
        page=page,
        limit=limit,
        search=search,
        level=level.value if level else None,
        sort_by=sort_by,
        descending=sort_order == SortOrder.DESC,
    )


@router.patch("/tracks/{track_id}/publish", response_model=TrackRead)
async def toggle_published(
    track_id: uuid.UUID,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await learning_service.set_published(session, track_id)
