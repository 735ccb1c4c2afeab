"""Learning track, module and enrollment schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from .common import AuthorSummary, Pagination, optional_url


class TrackLevel(str, Enum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"
    EXPERT = "EXPERT"


class ResourceLink(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    url: str
    type: Optional[str] = None

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        return optional_url(v)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class TrackCreate(BaseModel):
    title: str = Field(min_length=5, max_length=100)
    description: str = Field(min_length=10, max_length=1000)
    level: TrackLevel
    duration: str = Field(min_length=1, max_length=50)
    thumbnail: Optional[str] = None
    is_published: bool = False

    @field_validator("thumbnail")
    @classmethod
    def check_thumbnail(cls, v: Optional[str]) -> Optional[str]:
        return optional_url(v)


class ModuleCreate(BaseModel):
    title: str = Field(min_length=3, max_length=100)
    description: str = Field(min_length=10, max_length=1000)
    order: int = Field(ge=1)
    duration: int = Field(ge=1, description="Minutes")
    content: Optional[str] = None
    video_url: Optional[str] = None
    resources: List[ResourceLink] = Field(default_factory=list)

    @field_validator("video_url")
    @classmethod
    def check_video_url(cls, v: Optional[str]) -> Optional[str]:
        return optional_url(v)


class ProgressUpdate(BaseModel):
    """Progress of 100 marks the item complete."""
    progress: int = Field(ge=0, le=100)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class ModuleSummary(BaseModel):
    id: UUID
    title: str
    order: int
    duration: int

    model_config = {"from_attributes": True}


class ModuleRead(ModuleSummary):
    track_id: UUID
    description: str
    video_url: Optional[str] = None
    resources: List[ResourceLink] = Field(default_factory=list)
    created_at: datetime


class TrackRead(BaseModel):
    id: UUID
    title: str
    description: str
    level: TrackLevel
    duration: str
    thumbnail: Optional[str] = None
    rating: float = 0.0
    total_students: int = 0
    is_published: bool
    author: Optional[AuthorSummary] = None
    modules: List[ModuleSummary] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class EnrollmentStatus(BaseModel):
    """The caller's own standing in a track."""
    progress: int
    is_completed: bool
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TrackDetailRead(TrackRead):
    modules: List[ModuleRead] = Field(default_factory=list)
    user_enrollment: Optional[EnrollmentStatus] = None


class TrackList(BaseModel):
    tracks: List[TrackRead]
    pagination: Optional[Pagination] = None


class TrackSummary(BaseModel):
    id: UUID
    title: str
    description: str
    level: TrackLevel
    duration: str
    thumbnail: Optional[str] = None
    modules: List[ModuleSummary] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class EnrollmentRead(BaseModel):
    id: UUID
    track_id: UUID
    progress: int
    is_completed: bool
    completed_at: Optional[datetime] = None
    created_at: datetime
    track: Optional[TrackSummary] = None

    model_config = {"from_attributes": True}


class EnrollmentList(BaseModel):
    enrollments: List[EnrollmentRead]
    pagination: Pagination


class ModuleProgressRead(BaseModel):
    id: UUID
    module_id: UUID
    enrollment_id: UUID
    progress: int
    is_completed: bool
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ModuleContent(ModuleRead):
    """A module opened by an enrolled learner, with their progress on it."""
    content: Optional[str] = None
    track: TrackSummary
    user_progress: Optional[ModuleProgressRead] = None
