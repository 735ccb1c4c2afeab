"""
Project showcase service: listing, search, detail views, CRUD and comments.

Like toggles and comment creation live in ``app.services.interactions``
because the socket handlers share them.
"""

from __future__ import annotations

import uuid
from typing import Optional, Sequence

import structlog
from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import NotFoundError
from app.models.project import Project, ProjectComment, ProjectLike
from app.models.user import User
from app.services.query import contains_ci, json_array_contains, order_column, paginate
from app.services.users import author_summary, load_authors
from skillforge_shared.schemas.common import Pagination
from skillforge_shared.schemas.projects import (
    CommentList,
    CommentRead,
    ProjectCreate,
    ProjectList,
    ProjectRead,
    ProjectUpdate,
)

log = structlog.get_logger()

SORTABLE_FIELDS = ("created_at", "updated_at", "likes", "views", "comments", "rating", "title")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def project_read(
    project: Project, author: Optional[User], user_liked: Optional[bool] = None
) -> ProjectRead:
    data = ProjectRead.model_validate(project)
    data.author = author_summary(author)
    data.user_liked = user_liked
    return data


def comment_read(comment: ProjectComment, author: Optional[User]) -> CommentRead:
    data = CommentRead.model_validate(comment)
    data.user = author_summary(author)
    return data


async def _enrich(session: AsyncSession, projects: Sequence[Project]) -> list[ProjectRead]:
    authors = await load_authors(session, (p.author_id for p in projects))
    return [project_read(p, authors.get(p.author_id)) for p in projects]


async def get_project_or_404(session: AsyncSession, project_id: uuid.UUID) -> Project:
    project = await session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project not found")
    return project


async def get_owned_project(
    session: AsyncSession, project_id: uuid.UUID, user: User
) -> Project:
    """A project the caller authored. Someone else's project reads as missing."""
    project = await session.get(Project, project_id)
    if project is None or project.author_id != user.id:
        raise NotFoundError("Project not found or not authorized")
    return project


def is_visible_to(project: Project, user: Optional[User]) -> bool:
    return project.is_published or (user is not None and project.author_id == user.id)


async def has_liked(session: AsyncSession, user_id: uuid.UUID, project_id: uuid.UUID) -> bool:
    result = await session.execute(
        select(ProjectLike.id).where(
            ProjectLike.user_id == user_id, ProjectLike.project_id == project_id
        )
    )
    return result.first() is not None


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def list_projects(
    session: AsyncSession,
    *,
    page: int = 1,
    limit: int = 12,
    difficulty: Optional[str] = None,
    technology: Optional[str] = None,
    featured: Optional[bool] = None,
    sort_by: str = "created_at",
    descending: bool = True,
) -> ProjectList:
    stmt = select(Project).where(Project.is_published == True)  # noqa: E712
    if difficulty:
        stmt = stmt.where(Project.difficulty == difficulty)
    if technology:
        stmt = stmt.where(json_array_contains(Project.technology, technology))
    if featured is not None:
        stmt = stmt.where(Project.is_featured == featured)
    stmt = stmt.order_by(order_column(Project, sort_by, SORTABLE_FIELDS, descending))

    projects, total = await paginate(session, stmt, page, limit)
    return ProjectList(
        projects=await _enrich(session, projects),
        pagination=Pagination.build(page, limit, total),
    )


async def list_all_projects(
    session: AsyncSession,
    *,
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    difficulty: Optional[str] = None,
    sort_by: str = "created_at",
    descending: bool = True,
) -> ProjectList:
    """Moderation listing, unpublished projects included."""
    stmt = select(Project)
    if search:
        stmt = stmt.where(
            or_(contains_ci(Project.title, search), contains_ci(Project.description, search))
        )
    if difficulty:
        stmt = stmt.where(Project.difficulty == difficulty)
    stmt = stmt.order_by(order_column(Project, sort_by, SORTABLE_FIELDS, descending))

    projects, total = await paginate(session, stmt, page, limit)
    return ProjectList(
        projects=await _enrich(session, projects),
        pagination=Pagination.build(page, limit, total),
    )


async def search_projects(
    session: AsyncSession, q: str, *, page: int = 1, limit: int = 12
) -> ProjectList:
    stmt = (
        select(Project)
        .where(
            Project.is_published == True,  # noqa: E712
            or_(
                contains_ci(Project.title, q),
                contains_ci(Project.description, q),
                json_array_contains(Project.tags, q),
            ),
        )
        .order_by(Project.likes.desc(), Project.created_at.desc())
    )
    projects, total = await paginate(session, stmt, page, limit)
    return ProjectList(
        projects=await _enrich(session, projects),
        pagination=Pagination.build(page, limit, total),
    )


async def featured_projects(session: AsyncSession, limit: int = 6) -> ProjectList:
    result = await session.execute(
        select(Project)
        .where(Project.is_published == True, Project.is_featured == True)  # noqa: E712
        .order_by(Project.created_at.desc())
        .limit(limit)
    )
    return ProjectList(projects=await _enrich(session, result.scalars().all()))


async def view_project(
    session: AsyncSession, project_id: uuid.UUID, viewer: Optional[User]
) -> ProjectRead:
    """Detail view. Counts the view and reports whether the viewer liked it."""
    project = await session.get(Project, project_id)
    if project is None or not is_visible_to(project, viewer):
        raise NotFoundError("Project not found")

    await session.execute(
        update(Project).where(Project.id == project_id).values(views=Project.views + 1)
    )
    await session.commit()
    await session.refresh(project)

    author = await session.get(User, project.author_id)
    liked = await has_liked(session, viewer.id, project.id) if viewer else None
    return project_read(project, author, liked)


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_project(session: AsyncSession, author: User, req: ProjectCreate) -> ProjectRead:
    project = Project(author_id=author.id, **req.model_dump(mode="json"))
    session.add(project)
    await session.commit()
    await session.refresh(project)
    log.info("project.created", project_id=str(project.id), author_id=str(author.id))
    return project_read(project, author)


async def update_project(
    session: AsyncSession, project_id: uuid.UUID, author: User, req: ProjectUpdate
) -> ProjectRead:
    project = await get_owned_project(session, project_id, author)
    for field, value in req.model_dump(mode="json").items():
        setattr(project, field, value)
    session.add(project)
    await session.commit()
    await session.refresh(project)
    log.info("project.updated", project_id=str(project.id))
    return project_read(project, author)


async def delete_project(session: AsyncSession, project_id: uuid.UUID, author: User) -> None:
    project = await get_owned_project(session, project_id, author)
    await session.delete(project)
    await session.commit()
    log.info("project.deleted", project_id=str(project_id))


async def set_featured(session: AsyncSession, project_id: uuid.UUID) -> ProjectRead:
    """Flip the featured flag (moderation)."""
    project = await get_project_or_404(session, project_id)
    project.is_featured = not project.is_featured
    session.add(project)
    await session.commit()
    await session.refresh(project)
    log.info("project.featured", project_id=str(project.id), is_featured=project.is_featured)
    author = await session.get(User, project.author_id)
    return project_read(project, author)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


async def list_comments(
    session: AsyncSession, project_id: uuid.UUID, *, page: int = 1, limit: int = 20
) -> CommentList:
    await get_project_or_404(session, project_id)
    stmt = (
        select(ProjectComment)
        .where(ProjectComment.project_id == project_id)
        .order_by(ProjectComment.created_at.desc())
    )
    comments, total = await paginate(session, stmt, page, limit)
    authors = await load_authors(session, (c.user_id for c in comments))
    return CommentList(
        comments=[comment_read(c, authors.get(c.user_id)) for c in comments],
        pagination=Pagination.build(page, limit, total),
    )
