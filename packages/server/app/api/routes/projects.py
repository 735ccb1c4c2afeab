"""
Project showcase endpoints.

Likes and comments go through the same interaction service as the socket
handlers and fan out the same realtime notifications.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, get_optional_user
from app.core.database import get_session
from app.models.user import User
from app.realtime.gate import socket_user
from app.realtime.notifier import notifier
from app.services import interactions
from app.services import projects as project_service
from skillforge_shared.schemas.common import Difficulty, SortOrder
from skillforge_shared.schemas.projects import (
    CommentCreate,
    CommentList,
    CommentRead,
    LikeToggleRead,
    ProjectCreate,
    ProjectList,
    ProjectRead,
    ProjectUpdate,
)

router = APIRouter()


@router.get("", response_model=ProjectList)
async def list_projects(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=50),
    difficulty: Optional[Difficulty] = None,
    technology: Optional[str] = None,
    featured: Optional[bool] = None,
    sort_by: str = "created_at",
    sort_order: SortOrder = SortOrder.DESC,
    session: AsyncSession = Depends(get_session),
):
    return await project_service.list_projects(
        session,
        page=page,
        limit=limit,
        difficulty=difficulty.value if difficulty else None,
        technology=technology,
        featured=featured,
        sort_by=sort_by,
        descending=sort_order == SortOrder.DESC,
    )


@router.get("/search", response_model=ProjectList)
async def search_projects(
    q: str = Query(..., min_length=1),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=50),
    session: AsyncSession = Depends(get_session),
):
    return await project_service.search_projects(session, q, page=page, limit=limit)


@router.get("/featured", response_model=ProjectList)
async def featured_projects(
    limit: int = Query(6, ge=1, le=50),
    session: AsyncSession = Depends(get_session),
):
    return await project_service.featured_projects(session, limit)


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project(
    project_id: uuid.UUID,
    viewer: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    return await project_service.view_project(session, project_id, viewer)


@router.post("", response_model=ProjectRead, status_code=201)
async def create_project(
    body: ProjectCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await project_service.create_project(session, user, body)


@router.put("/{project_id}", response_model=ProjectRead)
async def update_project(
    project_id: uuid.UUID,
    body: ProjectUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await project_service.update_project(session, project_id, user, body)


@router.delete("/{project_id}")
async def delete_project(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await project_service.delete_project(session, project_id, user)
    return {"message": "Project deleted successfully"}


# ---------------------------------------------------------------------------
# Interactions
# ---------------------------------------------------------------------------


@router.post("/{project_id}/like", response_model=LikeToggleRead)
async def toggle_like(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    result = await interactions.toggle_project_like(session, user.id, project_id)
    await notifier.project_like_toggled(result, socket_user(user))
    return LikeToggleRead(project_id=project_id, liked=result.liked, likes=result.project.likes)


@router.get("/{project_id}/comments", response_model=CommentList)
async def list_comments(
    project_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    return await project_service.list_comments(session, project_id, page=page, limit=limit)


@router.post("/{project_id}/comments", response_model=CommentRead, status_code=201)
async def add_comment(
    project_id: uuid.UUID,
    body: CommentCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    result = await interactions.add_project_comment(session, user.id, project_id, body.content)
    await notifier.project_commented(result, socket_user(user))
    return project_service.comment_read(result.comment, result.author)
