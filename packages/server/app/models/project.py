"""Project showcase models: projects, likes and comments."""

from typing import List, Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin, counter_field


class Project(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "projects"

    author_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    title: str = Field(nullable=False)
    description: str = Field(nullable=False)
    content: Optional[str] = None
    difficulty: str = Field(nullable=False)  # BEGINNER | INTERMEDIATE | ADVANCED
    technology: List[str] = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
    tags: List[str] = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
    thumbnail: Optional[str] = None
    github_url: Optional[str] = None
    live_url: Optional[str] = None
    is_published: bool = Field(default=True, nullable=False)
    is_featured: bool = Field(default=False, nullable=False)
    likes: int = counter_field()
    views: int = counter_field()
    comments: int = counter_field()
    rating: float = Field(default=0.0, nullable=False)


class ProjectLike(UUIDMixin, TimestampMixin, SQLModel, table=True):
    """At most one row per (user, project)."""

    __tablename__ = "project_likes"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "project_id", name="uq_project_like_user_project"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    project_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )


class ProjectComment(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "project_comments"

    project_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    content: str = Field(nullable=False)
