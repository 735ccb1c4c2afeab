"""
Learning track endpoints: catalogue, enrollment, module content and progress.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, get_optional_user, require_role
from app.core.database import get_session
from app.models.user import User
from app.services import learning as learning_service
from skillforge_shared.schemas.common import SortOrder
from skillforge_shared.schemas.learning import (
    EnrollmentList,
    EnrollmentRead,
    ModuleContent,
    ModuleCreate,
    ModuleProgressRead,
    ModuleRead,
    ProgressUpdate,
    TrackCreate,
    TrackDetailRead,
    TrackLevel,
    TrackList,
    TrackRead,
)

router = APIRouter()

require_instructor = require_role("INSTRUCTOR", "ADMIN")


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------


@router.get("/tracks", response_model=TrackList)
async def list_tracks(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    level: Optional[TrackLevel] = None,
    sort_by: str = "created_at",
    sort_order: SortOrder = SortOrder.DESC,
    session: AsyncSession = Depends(get_session),
):
    return await learning_service.list_tracks(
        session,
        page=page,
        limit=limit,
        level=level.value if level else None,
        sort_by=sort_by,
        descending=sort_order == SortOrder.DESC,
    )


@router.get("/search", response_model=TrackList)
async def search_tracks(
    q: str = Query(..., min_length=1),
    level: Optional[TrackLevel] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    session: AsyncSession = Depends(get_session),
):
    return await learning_service.search_tracks(
        session, q, level=level.value if level else None, page=page, limit=limit
    )


@router.get("/tracks/{track_id}", response_model=TrackDetailRead)
async def get_track(
    track_id: uuid.UUID,
    viewer: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    """Track with its modules; signed-in callers also see their enrollment."""
    return await learning_service.get_track_detail(session, track_id, viewer)


@router.post("/tracks", response_model=TrackRead, status_code=201)
async def create_track(
    body: TrackCreate,
    user: User = Depends(require_instructor),
    session: AsyncSession = Depends(get_session),
):
    return await learning_service.create_track(session, user, body)


@router.post("/tracks/{track_id}/modules", response_model=ModuleRead, status_code=201)
async def create_module(
    track_id: uuid.UUID,
    body: ModuleCreate,
    user: User = Depends(require_instructor),
    session: AsyncSession = Depends(get_session),
):
    return await learning_service.create_module(session, track_id, user, body)


# ---------------------------------------------------------------------------
# Enrollment
# ---------------------------------------------------------------------------


@router.post("/tracks/{track_id}/enroll", response_model=EnrollmentRead, status_code=201)
async def enroll(
    track_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await learning_service.enroll(session, track_id, user)


@router.get("/enrollments", response_model=EnrollmentList)
async def list_enrollments(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await learning_service.list_enrollments(session, user, page=page, limit=limit)


@router.patch("/enrollments/{enrollment_id}/progress", response_model=EnrollmentRead)
async def update_enrollment_progress(
    enrollment_id: uuid.UUID,
    body: ProgressUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await learning_service.update_enrollment_progress(
        session, enrollment_id, user, body.progress
    )


# ---------------------------------------------------------------------------
# Modules
# ---------------------------------------------------------------------------


@router.get("/modules/{module_id}", response_model=ModuleContent)
async def get_module(
    module_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await learning_service.get_module_content(session, module_id, user)


@router.patch("/modules/{module_id}/progress", response_model=ModuleProgressRead)
async def update_module_progress(
    module_id: uuid.UUID,
    body: ProgressUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await learning_service.update_module_progress(session, module_id, user, body.progress)
