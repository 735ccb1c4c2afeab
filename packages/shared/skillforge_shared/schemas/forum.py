"""Community forum schemas: posts, threaded replies, categories."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .common import AuthorSummary, Pagination


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------

class ForumPostCreate(BaseModel):
    title: str = Field(min_length=5, max_length=200)
    content: str = Field(min_length=10, max_length=5000)
    category: str = Field(min_length=1, max_length=50)
    tags: List[str] = Field(default_factory=list)


class ForumPostUpdate(ForumPostCreate):
    pass


class ForumPostRead(BaseModel):
    id: UUID
    title: str
    content: str
    category: str
    tags: List[str] = Field(default_factory=list)
    is_solved: bool = False
    is_pinned: bool = False
    likes: int = 0
    views: int = 0
    replies: int = 0
    author: Optional[AuthorSummary] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ForumPostList(BaseModel):
    posts: List[ForumPostRead]
    pagination: Optional[Pagination] = None


# ---------------------------------------------------------------------------
# Replies
# ---------------------------------------------------------------------------

class ForumReplyCreate(BaseModel):
    # Blank content is rejected by the interaction service after trimming.
    content: str = Field(max_length=2000)
    parent_id: Optional[UUID] = None


class ForumReplyUpdate(BaseModel):
    content: str = Field(max_length=2000)


class ForumReplyRead(BaseModel):
    id: UUID
    post_id: UUID
    parent_id: Optional[UUID] = None
    content: str
    user: Optional[AuthorSummary] = None
    created_at: datetime
    updated_at: datetime
    children: List["ForumReplyRead"] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class ForumThread(BaseModel):
    """A post together with its top-level replies and their direct children."""
    post: ForumPostRead
    replies: List[ForumReplyRead]


class CategoryCount(BaseModel):
    name: str
    count: int
