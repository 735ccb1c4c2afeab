"""Achievement badges and the users who hold them."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin, utcnow


class Badge(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "badges"

    name: str = Field(unique=True, nullable=False)
    description: str = Field(nullable=False)
    icon: Optional[str] = None
    category: Optional[str] = None
    xp_reward: int = Field(default=0, nullable=False)


class UserBadge(UUIDMixin, SQLModel, table=True):
    __tablename__ = "user_badges"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "badge_id", name="uq_user_badge_user_badge"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    badge_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("badges.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    earned_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
