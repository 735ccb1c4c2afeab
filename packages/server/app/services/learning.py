"""
Learning service: tracks, modules, enrollments and progress.

Only published tracks are visible to learners. Finishing a track awards XP
once; finishing a module counts toward the daily learning streak.
"""

from __future__ import annotations

import uuid
from typing import Optional, Sequence

import structlog
from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from app.models.base import utcnow
from app.models.learning import Enrollment, LearningTrack, Module, ModuleProgress
from app.models.user import User
from app.services.query import contains_ci, order_column, paginate
from app.services.users import author_summary, load_authors, record_learning_activity
from skillforge_shared.schemas.common import Pagination
from skillforge_shared.schemas.learning import (
    EnrollmentList,
    EnrollmentRead,
    EnrollmentStatus,
    ModuleContent,
    ModuleCreate,
    ModuleProgressRead,
    ModuleRead,
    ModuleSummary,
    TrackCreate,
    TrackDetailRead,
    TrackList,
    TrackRead,
    TrackSummary,
)

log = structlog.get_logger()

SORTABLE_FIELDS = ("created_at", "updated_at", "rating", "total_students", "title")
ADMIN_SORTABLE_FIELDS = SORTABLE_FIELDS + ("is_published",)
TRACK_COMPLETION_XP = 100
XP_PER_LEVEL = 1000


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _modules_by_track(
    session: AsyncSession, track_ids: Sequence[uuid.UUID]
) -> dict[uuid.UUID, list[Module]]:
    grouped: dict[uuid.UUID, list[Module]] = {tid: [] for tid in track_ids}
    if not track_ids:
        return grouped
    result = await session.execute(
        select(Module).where(Module.track_id.in_(track_ids)).order_by(Module.order.asc())
    )
    for module in result.scalars().all():
        grouped[module.track_id].append(module)
    return grouped


async def _enrich(session: AsyncSession, tracks: Sequence[LearningTrack]) -> list[TrackRead]:
    ids = [t.id for t in tracks]
    modules = await _modules_by_track(session, ids)
    authors = await load_authors(session, (t.author_id for t in tracks if t.author_id))
    out = []
    for track in tracks:
        data = TrackRead.model_validate(track)
        data.author = author_summary(authors.get(track.author_id))
        data.modules = [ModuleSummary.model_validate(m) for m in modules[track.id]]
        out.append(data)
    return out


def track_summary(track: LearningTrack, modules: Sequence[Module] = ()) -> TrackSummary:
    data = TrackSummary.model_validate(track)
    data.modules = [ModuleSummary.model_validate(m) for m in modules]
    return data


async def get_track_or_404(session: AsyncSession, track_id: uuid.UUID) -> LearningTrack:
    track = await session.get(LearningTrack, track_id)
    if track is None:
        raise NotFoundError("Learning track not found")
    return track


async def get_published_track(session: AsyncSession, track_id: uuid.UUID) -> LearningTrack:
    track = await session.get(LearningTrack, track_id)
    if track is None or not track.is_published:
        raise NotFoundError("Learning track not found")
    return track


async def find_enrollment(
    session: AsyncSession, user_id: uuid.UUID, track_id: uuid.UUID
) -> Optional[Enrollment]:
    result = await session.execute(
        select(Enrollment).where(Enrollment.user_id == user_id, Enrollment.track_id == track_id)
    )
    return result.scalar_one_or_none()


def level_for(total_xp: int) -> int:
    return total_xp // XP_PER_LEVEL + 1


async def _award_completion_xp(session: AsyncSession, user_id: uuid.UUID) -> None:
    await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(total_xp=User.total_xp + TRACK_COMPLETION_XP)
    )
    user = await session.get(User, user_id)
    await session.refresh(user)
    # Levels only go up, even if XP was adjusted by hand.
    user.current_level = max(user.current_level, level_for(user.total_xp))
    session.add(user)


# ---------------------------------------------------------------------------
# Tracks
# ---------------------------------------------------------------------------


async def list_tracks(
    session: AsyncSession,
    *,
    page: int = 1,
    limit: int = 10,
    level: Optional[str] = None,
    sort_by: str = "created_at",
    descending: bool = True,
) -> TrackList:
    stmt = select(LearningTrack).where(LearningTrack.is_published == True)  # noqa: E712
    if level:
        stmt = stmt.where(LearningTrack.level == level)
    stmt = stmt.order_by(order_column(LearningTrack, sort_by, SORTABLE_FIELDS, descending))

    tracks, total = await paginate(session, stmt, page, limit)
    return TrackList(
        tracks=await _enrich(session, tracks),
        pagination=Pagination.build(page, limit, total),
    )


async def search_tracks(
    session: AsyncSession,
    q: str,
    *,
    level: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> TrackList:
    stmt = select(LearningTrack).where(
        LearningTrack.is_published == True,  # noqa: E712
        or_(contains_ci(LearningTrack.title, q), contains_ci(LearningTrack.description, q)),
    )
    if level:
        stmt = stmt.where(LearningTrack.level == level)
    stmt = stmt.order_by(LearningTrack.rating.desc(), LearningTrack.created_at.desc())

    tracks, total = await paginate(session, stmt, page, limit)
    return TrackList(
        tracks=await _enrich(session, tracks),
        pagination=Pagination.build(page, limit, total),
    )


async def get_track_detail(
    session: AsyncSession, track_id: uuid.UUID, viewer: Optional[User]
) -> TrackDetailRead:
    track = await get_published_track(session, track_id)
    modules = (await _modules_by_track(session, [track.id]))[track.id]
    author = await session.get(User, track.author_id) if track.author_id else None

    data = TrackDetailRead.model_validate(track)
    data.author = author_summary(author)
    data.modules = [ModuleRead.model_validate(m) for m in modules]
    if viewer is not None:
        enrollment = await find_enrollment(session, viewer.id, track.id)
        if enrollment is not None:
            data.user_enrollment = EnrollmentStatus.model_validate(enrollment)
    return data


async def create_track(session: AsyncSession, author: User, req: TrackCreate) -> TrackRead:
    track = LearningTrack(author_id=author.id, **req.model_dump(mode="json"))
    session.add(track)
    await session.commit()
    await session.refresh(track)
    log.info("learning.track_created", track_id=str(track.id), author_id=str(author.id))
    data = TrackRead.model_validate(track)
    data.author = author_summary(author)
    return data


async def create_module(
    session: AsyncSession, track_id: uuid.UUID, author: User, req: ModuleCreate
) -> ModuleRead:
    """Add a module to any existing track. Instructors share authorship of tracks."""
    track = await get_track_or_404(session, track_id)
    module = Module(track_id=track.id, **req.model_dump(mode="json"))
    session.add(module)
    await session.commit()
    await session.refresh(module)
    log.info(
        "learning.module_created",
        module_id=str(module.id),
        track_id=str(track.id),
        author_id=str(author.id),
    )
    return ModuleRead.model_validate(module)


async def list_all_tracks(
    session: AsyncSession,
    *,
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    level: Optional[str] = None,
    sort_by: str = "created_at",
    descending: bool = True,
) -> TrackList:
    """Moderation listing, unpublished tracks included."""
    stmt = select(LearningTrack)
    if search:
        stmt = stmt.where(
            or_(contains_ci(LearningTrack.title, search), contains_ci(LearningTrack.description, search))
        )
    if level:
        stmt = stmt.where(LearningTrack.level == level)
    stmt = stmt.order_by(order_column(LearningTrack, sort_by, ADMIN_SORTABLE_FIELDS, descending))

    tracks, total = await paginate(session, stmt, page, limit)
    return TrackList(
        tracks=await _enrich(session, tracks),
        pagination=Pagination.build(page, limit, total),
    )


async def set_published(session: AsyncSession, track_id: uuid.UUID) -> TrackRead:
    """Flip the published flag (moderation)."""
    track = await get_track_or_404(session, track_id)
    track.is_published = not track.is_published
    session.add(track)
    await session.commit()
    await session.refresh(track)
    log.info("learning.track_published", track_id=str(track.id), is_published=track.is_published)
    return (await _enrich(session, [track]))[0]


# ---------------------------------------------------------------------------
# Enrollments
# ---------------------------------------------------------------------------


async def enroll(session: AsyncSession, track_id: uuid.UUID, user: User) -> EnrollmentRead:
    track = await get_published_track(session, track_id)
    if await find_enrollment(session, user.id, track.id) is not None:
        raise ValidationError("Already enrolled in this track")

    enrollment = Enrollment(user_id=user.id, track_id=track.id)
    session.add(enrollment)
    await session.execute(
        update(LearningTrack)
        .where(LearningTrack.id == track.id)
        .values(total_students=LearningTrack.total_students + 1)
    )
    await session.commit()
    await session.refresh(enrollment)
    log.info("learning.enrolled", track_id=str(track.id), user_id=str(user.id))

    data = EnrollmentRead.model_validate(enrollment)
    data.track = track_summary(track)
    return data


async def list_enrollments(
    session: AsyncSession, user: User, *, page: int = 1, limit: int = 10
) -> EnrollmentList:
    stmt = (
        select(Enrollment)
        .where(Enrollment.user_id == user.id)
        .order_by(Enrollment.created_at.desc())
    )
    enrollments, total = await paginate(session, stmt, page, limit)

    track_ids = [e.track_id for e in enrollments]
    tracks = {}
    if track_ids:
        result = await session.execute(select(LearningTrack).where(LearningTrack.id.in_(track_ids)))
        tracks = {t.id: t for t in result.scalars().all()}
    modules = await _modules_by_track(session, list(tracks))

    out = []
    for enrollment in enrollments:
        data = EnrollmentRead.model_validate(enrollment)
        track = tracks.get(enrollment.track_id)
        if track is not None:
            data.track = track_summary(track, modules[track.id])
        out.append(data)
    return EnrollmentList(enrollments=out, pagination=Pagination.build(page, limit, total))


async def update_enrollment_progress(
    session: AsyncSession, enrollment_id: uuid.UUID, user: User, progress: int
) -> EnrollmentRead:
    """Set track progress. The first time it reaches 100 the learner earns XP."""
    enrollment = await session.get(Enrollment, enrollment_id)
    if enrollment is None or enrollment.user_id != user.id:
        raise NotFoundError("Enrollment not found")

    newly_completed = progress >= 100 and not enrollment.is_completed
    enrollment.progress = progress
    enrollment.is_completed = progress >= 100
    if not enrollment.is_completed:
        enrollment.completed_at = None
    elif newly_completed:
        enrollment.completed_at = utcnow()
    session.add(enrollment)

    if newly_completed:
        await _award_completion_xp(session, user.id)
    await session.commit()
    await session.refresh(enrollment)

    track = await session.get(LearningTrack, enrollment.track_id)
    if newly_completed:
        log.info("learning.track_completed", track_id=str(track.id), user_id=str(user.id))

    data = EnrollmentRead.model_validate(enrollment)
    data.track = track_summary(track)
    return data


# ---------------------------------------------------------------------------
# Modules
# ---------------------------------------------------------------------------


async def _module_in_published_track(
    session: AsyncSession, module_id: uuid.UUID
) -> tuple[Module, LearningTrack]:
    module = await session.get(Module, module_id)
    track = await session.get(LearningTrack, module.track_id) if module else None
    if module is None or track is None or not track.is_published:
        raise NotFoundError("Module not found")
    return module, track


async def _module_progress(
    session: AsyncSession, user_id: uuid.UUID, module_id: uuid.UUID
) -> Optional[ModuleProgress]:
    result = await session.execute(
        select(ModuleProgress).where(
            ModuleProgress.user_id == user_id, ModuleProgress.module_id == module_id
        )
    )
    return result.scalar_one_or_none()


async def get_module_content(
    session: AsyncSession, module_id: uuid.UUID, user: User
) -> ModuleContent:
    module, track = await _module_in_published_track(session, module_id)
    if await find_enrollment(session, user.id, track.id) is None:
        raise PermissionDeniedError("You must be enrolled in this track to access modules")

    progress = await _module_progress(session, user.id, module.id)
    return ModuleContent(
        **ModuleRead.model_validate(module).model_dump(),
        content=module.content,
        track=track_summary(track),
        user_progress=ModuleProgressRead.model_validate(progress) if progress else None,
    )


async def update_module_progress(
    session: AsyncSession, module_id: uuid.UUID, user: User, progress: int
) -> ModuleProgressRead:
    module = await session.get(Module, module_id)
    if module is None:
        raise NotFoundError("Module not found")
    enrollment = await find_enrollment(session, user.id, module.track_id)
    if enrollment is None:
        raise PermissionDeniedError("You must be enrolled in this track")

    row = await _module_progress(session, user.id, module.id)
    if row is None:
        row = ModuleProgress(user_id=user.id, module_id=module.id, enrollment_id=enrollment.id)
    was_completed = row.is_completed
    row.progress = progress
    row.is_completed = progress >= 100
    if not row.is_completed:
        row.completed_at = None
    elif not was_completed:
        row.completed_at = utcnow()
    session.add(row)

    if row.is_completed and not was_completed:
        record_learning_activity(user)
        session.add(user)
    await session.commit()
    await session.refresh(row)
    log.info(
        "learning.module_progress",
        module_id=str(module.id),
        user_id=str(user.id),
        progress=progress,
    )
    return ModuleProgressRead.model_validate(row)
