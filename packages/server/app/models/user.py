"""User model."""

from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class User(UUIDMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(unique=True, index=True, nullable=False)
    username: str = Field(unique=True, index=True, nullable=False)
    first_name: str = Field(nullable=False)
    last_name: str = Field(nullable=False)
    password_hash: str = Field(nullable=False)
    role: str = Field(default="STUDENT", nullable=False)  # STUDENT | INSTRUCTOR | ADMIN
    is_active: bool = Field(default=True, nullable=False)
    is_email_verified: bool = Field(default=False, nullable=False)
    avatar: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    github_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    total_xp: int = Field(default=0, nullable=False)
    current_level: int = Field(default=1, nullable=False)
    learning_streak: int = Field(default=0, nullable=False)
    last_streak_date: Optional[date] = None
    join_date: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )
    last_active: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))

    # bcrypt hash of the outstanding reset token, if any
    password_reset_hash: Optional[str] = None
    password_reset_expires: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))

