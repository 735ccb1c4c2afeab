from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
from uuid import UUID
from datetime import datetime
from .common import AuthorSummary, Difficulty, Pagination, optional_url


class ProjectBase(BaseModel):
    title: str = Field(min_length=5, max_length=100)
    description: str = Field(min_length=10, max_length=1000)
    content: Optional[str] = None
    difficulty: Difficulty
    technology: List[str] = Field(min_length=1)
    tags: List[str] = Field(default_factory=list)
    github_url: Optional[str] = None
    live_url: Optional[str] = None
    thumbnail: Optional[str] = None
    is_published: bool = True

    @field_validator("github_url", "live_url", "thumbnail")
    @classmethod
    def check_url(cls, v: Optional[str]) -> Optional[str]:
        return optional_url(v)


class ProjectCreate(ProjectBase):
    pass


class ProjectUpdate(ProjectBase):
    """PUT replaces the editable fields, same rules as create."""


class ProjectRead(BaseModel):
    id: UUID
    title: str
    description: str
    content: Optional[str] = None
    difficulty: Difficulty
    technology: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    thumbnail: Optional[str] = None
    github_url: Optional[str] = None
    live_url: Optional[str] = None
    is_published: bool
    is_featured: bool = False
    likes: int = 0
    views: int = 0
    comments: int = 0
    rating: float = 0.0
    author: Optional[AuthorSummary] = None
    user_liked: Optional[bool] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProjectList(BaseModel):
    projects: List[ProjectRead]
    pagination: Optional[Pagination] = None


class LikeToggleRead(BaseModel):
    project_id: UUID
    liked: bool
    likes: int


class CommentCreate(BaseModel):
    content: str = Field(max_length=2000)


class CommentRead(BaseModel):
    id: UUID
    project_id: UUID
    content: str
    user: Optional[AuthorSummary] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CommentList(BaseModel):
    comments: List[CommentRead]
    pagination: Pagination
