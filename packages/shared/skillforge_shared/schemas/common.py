import math
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, HttpUrl, TypeAdapter

class Role(str, Enum):
    STUDENT = "STUDENT"
    INSTRUCTOR = "INSTRUCTOR"
    ADMIN = "ADMIN"

class Difficulty(str, Enum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"

class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if limit else 0)

class AuthorSummary(BaseModel):
    """Public slice of a user embedded in project/post/comment payloads."""
    id: UUID
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = None
    total_xp: int = 0
    current_level: int = 1

    model_config = {"from_attributes": True}

_URL = TypeAdapter(HttpUrl)

def optional_url(value: Optional[str]) -> Optional[str]:
    """Accept None or "" unchanged, otherwise require an http(s) URL."""
    if not value:
        return value
    return str(_URL.validate_python(value))
