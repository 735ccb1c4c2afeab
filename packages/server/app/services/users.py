"""
User service: registration, credential checks, profiles and moderation.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import structlog
from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import hash_password, verify_password
from app.core.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from app.models.base import utcnow
from app.models.badge import Badge, UserBadge
from app.models.learning import Enrollment, LearningTrack
from app.models.project import Project
from app.models.user import User
from app.services.query import contains_ci, order_column, paginate
from skillforge_shared.schemas.common import AuthorSummary, Pagination
from skillforge_shared.schemas.users import (
    AdminUserList,
    AdminUserRead,
    BadgeRead,
    Dashboard,
    DashboardEnrollment,
    DashboardStats,
    Portfolio,
    ProfileUpdate,
    PublicProfile,
    PublicProjectSummary,
    RegisterRequest,
    UserBadgeRead,
    UserProjectList,
    UserSearchList,
    UserSearchResult,
)

log = structlog.get_logger()

PROFILE_PROJECT_COUNT = 6
PROFILE_BADGE_COUNT = 8
DASHBOARD_ITEM_COUNT = 5
PROJECT_SORTABLE_FIELDS = ("created_at", "updated_at", "likes", "views", "rating", "title")
ADMIN_SORTABLE_FIELDS = ("join_date", "last_active", "username", "email", "total_xp", "role")
RESET_TOKEN_TTL = timedelta(hours=1)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_user_or_404(session: AsyncSession, user_id: uuid.UUID) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def load_authors(
    session: AsyncSession, user_ids: Iterable[uuid.UUID]
) -> dict[uuid.UUID, User]:
    """Fetch the users behind a batch of author ids in one query."""
    ids = set(user_ids)
    if not ids:
        return {}
    result = await session.execute(select(User).where(User.id.in_(ids)))
    return {user.id: user for user in result.scalars().all()}


def author_summary(user: Optional[User]) -> Optional[AuthorSummary]:
    if user is None:
        return None
    return AuthorSummary.model_validate(user)


# ---------------------------------------------------------------------------
# Registration / login
# ---------------------------------------------------------------------------


async def register_user(session: AsyncSession, req: RegisterRequest) -> User:
    """Create a STUDENT account. Email and username must both be unused."""
    email = req.email.lower()
    result = await session.execute(
        select(User).where(or_(User.email == email, User.username == req.username))
    )
    existing = result.scalars().first()
    if existing is not None:
        field = "email" if existing.email == email else "username"
        raise ConflictError(f"User with this {field} already exists")

    user = User(
        email=email,
        username=req.username,
        first_name=req.first_name,
        last_name=req.last_name,
        password_hash=hash_password(req.password),
        last_active=utcnow(),
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    log.info("auth.registered", user_id=str(user.id), username=user.username)
    return user


async def authenticate_credentials(
    session: AsyncSession, email: str, password: str
) -> User:
    result = await session.execute(select(User).where(User.email == email.lower()))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(password, user.password_hash):
        log.info("auth.login_failure", email=email)
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    user.last_active = utcnow()
    session.add(user)
    await session.commit()
    await session.refresh(user)
    log.info("auth.login_success", user_id=str(user.id))
    return user


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


async def request_password_reset(session: AsyncSession, email: str) -> Optional[str]:
    """Issue a one-hour reset token for an active account.

    Returns the plaintext token, or None when no such account exists. The
    token is ``<user id hex>.<secret>``; only a bcrypt hash of the secret is
    stored.
    """
    result = await session.execute(select(User).where(User.email == email.lower()))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        log.info("auth.reset_requested_unknown", email=email)
        return None

    secret = secrets.token_urlsafe(32)
    user.password_reset_hash = hash_password(secret)
    user.password_reset_expires = utcnow() + RESET_TOKEN_TTL
    session.add(user)
    await session.commit()
    log.info("auth.reset_requested", user_id=str(user.id))
    return f"{user.id.hex}.{secret}"


async def reset_password(session: AsyncSession, token: str, password: str) -> User:
    invalid = ValidationError("Invalid or expired reset token")
    hint, _, secret = token.partition(".")
    try:
        user_id = uuid.UUID(hex=hint)
    except ValueError:
        raise invalid from None

    user = await session.get(User, user_id)
    if (
        user is None
        or not user.password_reset_hash
        or user.password_reset_expires is None
        or _as_aware(user.password_reset_expires) <= utcnow()
        or not verify_password(secret, user.password_reset_hash)
    ):
        log.info("auth.reset_rejected", user_id=hint)
        raise invalid

    user.password_hash = hash_password(password)
    user.password_reset_hash = None
    user.password_reset_expires = None
    session.add(user)
    await session.commit()
    await session.refresh(user)
    log.info("auth.reset_completed", user_id=str(user.id))
    return user


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


def record_learning_activity(user: User) -> None:
    """Extend, restart or keep the daily streak for activity today."""
    today = utcnow().date()
    if user.last_streak_date == today:
        return
    if user.last_streak_date == today - timedelta(days=1):
        user.learning_streak += 1
    else:
        user.learning_streak = 1
    user.last_streak_date = today


def current_streak(user: User) -> int:
    """The streak as of today: zero once a whole day has passed without activity."""
    if user.last_streak_date is None:
        return user.learning_streak
    if user.last_streak_date < utcnow().date() - timedelta(days=1):
        return 0
    return user.learning_streak


async def get_active_user_by_username(session: AsyncSession, username: str) -> User:
    result = await session.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise NotFoundError("User not found")
    return user


async def load_badges(
    session: AsyncSession, user_id: uuid.UUID, limit: Optional[int] = None
) -> list[UserBadgeRead]:
    """Badges a user holds, most recently earned first."""
    stmt = (
        select(UserBadge, Badge)
        .join(Badge, Badge.id == UserBadge.badge_id)
        .where(UserBadge.user_id == user_id)
        .order_by(UserBadge.earned_at.desc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await session.execute(stmt)
    return [
        UserBadgeRead(badge=BadgeRead.model_validate(badge), earned_at=held.earned_at)
        for held, badge in result.all()
    ]


def _published_projects(user_id: uuid.UUID):
    return select(Project).where(
        Project.author_id == user_id, Project.is_published == True  # noqa: E712
    )


def _profile_fields(user: User) -> dict:
    return dict(
        id=user.id,
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
        avatar=user.avatar,
        bio=user.bio,
        location=user.location,
        website=user.website,
        github_url=user.github_url,
        linkedin_url=user.linkedin_url,
        total_xp=user.total_xp,
        current_level=user.current_level,
        join_date=user.join_date,
        last_active=user.last_active,
    )


async def get_public_profile(session: AsyncSession, username: str) -> PublicProfile:
    user = await get_active_user_by_username(session, username)
    projects = await session.execute(
        _published_projects(user.id)
        .order_by(Project.created_at.desc())
        .limit(PROFILE_PROJECT_COUNT)
    )
    return PublicProfile(
        **_profile_fields(user),
        projects=[PublicProjectSummary.model_validate(p) for p in projects.scalars().all()],
        badges=await load_badges(session, user.id, PROFILE_BADGE_COUNT),
    )


async def get_portfolio(session: AsyncSession, username: str) -> Portfolio:
    """Like the public profile, but with every published project and badge."""
    user = await get_active_user_by_username(session, username)
    projects = await session.execute(
        _published_projects(user.id).order_by(Project.created_at.desc())
    )
    return Portfolio(
        **_profile_fields(user),
        learning_streak=current_streak(user),
        projects=[PublicProjectSummary.model_validate(p) for p in projects.scalars().all()],
        badges=await load_badges(session, user.id),
    )


async def list_user_projects(
    session: AsyncSession,
    username: str,
    *,
    page: int = 1,
    limit: int = 12,
    sort_by: str = "created_at",
    descending: bool = True,
) -> UserProjectList:
    user = await get_active_user_by_username(session, username)
    stmt = _published_projects(user.id).order_by(
        order_column(Project, sort_by, PROJECT_SORTABLE_FIELDS, descending)
    )
    projects, total = await paginate(session, stmt, page, limit)
    return UserProjectList(
        projects=[PublicProjectSummary.model_validate(p) for p in projects],
        pagination=Pagination.build(page, limit, total),
    )


async def list_user_badges(session: AsyncSession, username: str) -> list[UserBadgeRead]:
    user = await get_active_user_by_username(session, username)
    return await load_badges(session, user.id)


async def search_users(
    session: AsyncSession, q: str, *, page: int = 1, limit: int = 10
) -> UserSearchList:
    stmt = (
        select(User)
        .where(
            User.is_active == True,  # noqa: E712
            or_(
                contains_ci(User.username, q),
                contains_ci(User.first_name, q),
                contains_ci(User.last_name, q),
            ),
        )
        .order_by(User.total_xp.desc(), User.username.asc())
    )
    users, total = await paginate(session, stmt, page, limit)
    return UserSearchList(
        users=[UserSearchResult.model_validate(u) for u in users],
        pagination=Pagination.build(page, limit, total),
    )


async def get_dashboard(session: AsyncSession, user: User) -> Dashboard:
    """The caller's stats and their most recent projects, enrollments and badges."""
    streak = current_streak(user)
    if streak != user.learning_streak:
        user.learning_streak = streak
        session.add(user)
        await session.commit()
        await session.refresh(user)

    projects = await session.execute(
        select(Project)
        .where(Project.author_id == user.id)
        .order_by(Project.created_at.desc())
        .limit(DASHBOARD_ITEM_COUNT)
    )
    enrollments = await session.execute(
        select(Enrollment, LearningTrack)
        .join(LearningTrack, LearningTrack.id == Enrollment.track_id)
        .where(Enrollment.user_id == user.id)
        .order_by(Enrollment.created_at.desc())
        .limit(DASHBOARD_ITEM_COUNT)
    )
    return Dashboard(
        user=DashboardStats.model_validate(user),
        recent_projects=[PublicProjectSummary.model_validate(p) for p in projects.scalars().all()],
        recent_enrollments=[
            DashboardEnrollment(
                id=enrollment.id,
                track_id=track.id,
                track_title=track.title,
                track_level=track.level,
                track_thumbnail=track.thumbnail,
                progress=enrollment.progress,
                is_completed=enrollment.is_completed,
                created_at=enrollment.created_at,
            )
            for enrollment, track in enrollments.all()
        ],
        recent_badges=await load_badges(session, user.id, DASHBOARD_ITEM_COUNT),
    )


async def update_profile(session: AsyncSession, user: User, req: ProfileUpdate) -> User:
    """Apply only the fields the caller sent; empty strings clear a field."""
    changes = req.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if value == "" and field not in ("first_name", "last_name"):
            value = None
        setattr(user, field, value)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    log.info("user.profile_updated", user_id=str(user.id), fields=sorted(changes))
    return user


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------


async def set_role(session: AsyncSession, user_id: uuid.UUID, role: str) -> User:
    user = await get_user_or_404(session, user_id)
    user.role = role
    session.add(user)
    await session.commit()
    await session.refresh(user)
    log.info("user.role_changed", user_id=str(user.id), role=role)
    return user


async def set_active(session: AsyncSession, user_id: uuid.UUID, is_active: bool) -> User:
    user = await get_user_or_404(session, user_id)
    user.is_active = is_active
    session.add(user)
    await session.commit()
    await session.refresh(user)
    log.info("user.status_changed", user_id=str(user.id), is_active=is_active)
    return user


async def list_users(
    session: AsyncSession,
    *,
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    role: Optional[str] = None,
    sort_by: str = "join_date",
    descending: bool = True,
) -> AdminUserList:
    """Every account, deactivated ones included, with activity counts."""
    stmt = select(User)
    if search:
        stmt = stmt.where(
            or_(
                contains_ci(User.email, search),
                contains_ci(User.username, search),
                contains_ci(User.first_name, search),
                contains_ci(User.last_name, search),
            )
        )
    if role:
        stmt = stmt.where(User.role == role)
    stmt = stmt.order_by(order_column(User, sort_by, ADMIN_SORTABLE_FIELDS, descending))
    users, total = await paginate(session, stmt, page, limit)

    ids = [u.id for u in users]
    counts = {
        name: await _count_by_user(session, column, ids)
        for name, column in (
            ("project_count", Project.author_id),
            ("enrollment_count", Enrollment.user_id),
            ("badge_count", UserBadge.user_id),
        )
    }
    rows = []
    for user in users:
        data = AdminUserRead.model_validate(user)
        for name, by_user in counts.items():
            setattr(data, name, by_user.get(user.id, 0))
        rows.append(data)
    return AdminUserList(users=rows, pagination=Pagination.build(page, limit, total))


async def _count_by_user(session: AsyncSession, column, user_ids) -> dict[uuid.UUID, int]:
    if not user_ids:
        return {}
    result = await session.execute(
        select(column, func.count()).where(column.in_(user_ids)).group_by(column)
    )
    return dict(result.all())
