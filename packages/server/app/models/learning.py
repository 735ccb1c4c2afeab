"""Learning tracks, their modules, and per-user enrollment and progress."""

from datetime import datetime
from typing import Any, List, Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin, counter_field


class LearningTrack(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "learning_tracks"

    author_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", index=True)
    title: str = Field(nullable=False)
    description: str = Field(nullable=False)
    level: str = Field(nullable=False, index=True)  # BEGINNER | INTERMEDIATE | ADVANCED | EXPERT
    duration: str = Field(nullable=False)
    thumbnail: Optional[str] = None
    rating: float = Field(default=0.0, nullable=False)
    total_students: int = counter_field()
    is_published: bool = Field(default=False, nullable=False)


class Module(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "modules"

    track_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("learning_tracks.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    title: str = Field(nullable=False)
    description: str = Field(nullable=False)
    order: int = Field(nullable=False)
    duration: int = Field(nullable=False)  # minutes
    content: Optional[str] = None
    video_url: Optional[str] = None
    resources: List[dict[str, Any]] = Field(default_factory=list, sa_type=sa.JSON, nullable=False)


class Enrollment(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "enrollments"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "track_id", name="uq_enrollment_user_track"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    track_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("learning_tracks.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    progress: int = Field(default=0, nullable=False)
    is_completed: bool = Field(default=False, nullable=False)
    completed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))


class ModuleProgress(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "module_progress"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "module_id", name="uq_module_progress_user_module"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    module_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    enrollment_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("enrollments.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    progress: int = Field(default=0, nullable=False)
    is_completed: bool = Field(default=False, nullable=False)
    completed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
