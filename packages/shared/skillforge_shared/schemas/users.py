"""User, authentication and profile schemas."""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, UUID4, field_validator

from .common import Pagination, Role, optional_url

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]")


def check_password_strength(v: str) -> str:
    if not PASSWORD_PATTERN.match(v):
        raise ValueError(
            "Password must contain at least one uppercase letter, one lowercase "
            "letter, one number, and one special character"
        )
    return v


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    email: EmailStr
    username: str = Field(min_length=3, max_length=30)
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    password: str = Field(min_length=8)

    @field_validator("username")
    @classmethod
    def username_alphanumeric(cls, v: str) -> str:
        if not v.isalnum():
            raise ValueError("Username must contain only alphanumeric characters")
        return v

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return check_password_strength(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class ProfileUpdate(BaseModel):
    """Partial profile update. Empty strings clear optional fields."""
    first_name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    bio: Optional[str] = Field(default=None, max_length=500)
    location: Optional[str] = Field(default=None, max_length=100)
    website: Optional[str] = None
    github_url: Optional[str] = None
    linkedin_url: Optional[str] = None

    @field_validator("website", "github_url", "linkedin_url")
    @classmethod
    def empty_or_url(cls, v: Optional[str]) -> Optional[str]:
        return optional_url(v)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserRead(BaseModel):
    """The authenticated user's own view of their account."""
    id: UUID4
    email: str
    username: str
    first_name: str
    last_name: str
    role: Role
    avatar: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    github_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    total_xp: int = 0
    current_level: int = 1
    join_date: datetime
    last_active: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PublicProjectSummary(BaseModel):
    id: UUID4
    title: str
    description: str
    difficulty: str
    technology: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    thumbnail: Optional[str] = None
    likes: int = 0
    views: int = 0
    rating: float = 0.0
    github_url: Optional[str] = None
    live_url: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BadgeRead(BaseModel):
    id: UUID4
    name: str
    description: str
    icon: Optional[str] = None
    category: Optional[str] = None
    xp_reward: int = 0

    model_config = {"from_attributes": True}


class UserBadgeRead(BaseModel):
    badge: BadgeRead
    earned_at: datetime


class PublicProfile(BaseModel):
    id: UUID4
    username: str
    first_name: str
    last_name: str
    avatar: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    github_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    total_xp: int = 0
    current_level: int = 1
    join_date: datetime
    last_active: Optional[datetime] = None
    projects: List[PublicProjectSummary] = Field(default_factory=list)
    badges: List[UserBadgeRead] = Field(default_factory=list)


class AuthResponse(BaseModel):
    """Returned by register and login."""
    user: UserRead
    token: str
    refresh_token: str


class TokenPair(BaseModel):
    token: str
    refresh_token: str


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------

class RoleUpdate(BaseModel):
    role: Role


class StatusUpdate(BaseModel):
    is_active: bool


class AdminUserRead(UserRead):
    is_active: bool
    project_count: int = 0
    enrollment_count: int = 0
    badge_count: int = 0


class AdminUserList(BaseModel):
    users: List[AdminUserRead]
    pagination: Pagination


# ---------------------------------------------------------------------------
# Discovery and portfolio
# ---------------------------------------------------------------------------

class UserSearchResult(BaseModel):
    id: UUID4
    username: str
    first_name: str
    last_name: str
    avatar: Optional[str] = None
    bio: Optional[str] = None
    total_xp: int = 0
    current_level: int = 1

    model_config = {"from_attributes": True}


class UserSearchList(BaseModel):
    users: List[UserSearchResult]
    pagination: Pagination


class UserProjectList(BaseModel):
    projects: List[PublicProjectSummary]
    pagination: Pagination


class Portfolio(PublicProfile):
    """Every published project and badge, plus the learning streak."""
    learning_streak: int = 0


class DashboardStats(BaseModel):
    id: UUID4
    first_name: str
    last_name: str
    total_xp: int = 0
    current_level: int = 1
    learning_streak: int = 0
    last_streak_date: Optional[date] = None

    model_config = {"from_attributes": True}


class DashboardEnrollment(BaseModel):
    id: UUID4
    track_id: UUID4
    track_title: str
    track_level: str
    track_thumbnail: Optional[str] = None
    progress: int
    is_completed: bool
    created_at: datetime


class Dashboard(BaseModel):
    user: DashboardStats
    recent_projects: List[PublicProjectSummary] = Field(default_factory=list)
    recent_enrollments: List[DashboardEnrollment] = Field(default_factory=list)
    recent_badges: List[UserBadgeRead] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------

class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=8)

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return check_password_strength(v)
