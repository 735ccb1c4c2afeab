"""Community forum models."""

from typing import List, Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin, counter_field


class ForumPost(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "forum_posts"

    author_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    title: str = Field(nullable=False)
    content: str = Field(nullable=False)
    category: str = Field(nullable=False, index=True)
    tags: List[str] = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
    is_solved: bool = Field(default=False, nullable=False)
    is_pinned: bool = Field(default=False, nullable=False)
    likes: int = counter_field()
    views: int = counter_field()
    replies: int = counter_field()


class ForumReply(UUIDMixin, TimestampMixin, SQLModel, table=True):
    """A reply to a post, optionally threaded under another reply of the same post."""

    __tablename__ = "forum_replies"

    post_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("forum_posts.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    parent_id: Optional[uuid.UUID] = Field(
        default=None,
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("forum_replies.id", ondelete="CASCADE"), nullable=True, index=True
        ),
    )
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    content: str = Field(nullable=False)
