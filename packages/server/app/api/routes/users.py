"""
Public profiles, portfolios, user search and the caller's dashboard.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services import users as user_service
from skillforge_shared.schemas.common import SortOrder
from skillforge_shared.schemas.users import (
    Dashboard,
    Portfolio,
    ProfileUpdate,
    PublicProfile,
    UserBadgeRead,
    UserProjectList,
    UserRead,
    UserSearchList,
)

router = APIRouter()


@router.get("/search", response_model=UserSearchList)
async def search_users(
    q: str = Query(..., min_length=1),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    session: AsyncSession = Depends(get_session),
):
    return await user_service.search_users(session, q, page=page, limit=limit)


@router.get("/dashboard", response_model=Dashboard)
async def dashboard(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await user_service.get_dashboard(session, user)


@router.get("/profile/{username}", response_model=PublicProfile)
async def get_profile(username: str, session: AsyncSession = Depends(get_session)):
    return await user_service.get_public_profile(session, username)


@router.put("/profile", response_model=UserRead)
async def update_profile(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await user_service.update_profile(session, user, body)


@router.get("/portfolio/{username}", response_model=Portfolio)
async def get_portfolio(username: str, session: AsyncSession = Depends(get_session)):
    return await user_service.get_portfolio(session, username)


@router.get("/{username}/projects", response_model=UserProjectList)
async def list_user_projects(
    username: str,
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=50),
    sort_by: str = "created_at",
    sort_order: SortOrder = SortOrder.DESC,
    session: AsyncSession = Depends(get_session),
):
    return await user_service.list_user_projects(
        session,
        username,
        page=page,
        limit=limit,
        sort_by=sort_by,
        descending=sort_order == SortOrder.DESC,
    )


@router.get("/{username}/badges", response_model=List[UserBadgeRead])
async def list_user_badges(username: str, session: AsyncSession = Depends(get_session)):
    return await user_service.list_user_badges(session, username)
