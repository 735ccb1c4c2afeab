"""Socket.IO event payloads.

Inbound payloads use the camelCase keys the web client sends
(``projectId``, ``postId``, ``parentId``); the models accept snake_case too.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class _Inbound(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ProjectLikeEvent(_Inbound):
    project_id: UUID = Field(alias="projectId")


class ProjectCommentEvent(_Inbound):
    project_id: UUID = Field(alias="projectId")
    content: str = ""


class ForumReplyEvent(_Inbound):
    post_id: UUID = Field(alias="postId")
    content: str = ""
    parent_id: Optional[UUID] = Field(default=None, alias="parentId")


class TypingEvent(_Inbound):
    type: str = Field(min_length=1, max_length=32)
    id: str = Field(min_length=1, max_length=64)


class StatusEvent(_Inbound):
    status: str = Field(min_length=1, max_length=32)


class SocketUser(BaseModel):
    """Identity attached to a connection and echoed in notifications."""
    id: str
    email: str
    username: str
    role: str
