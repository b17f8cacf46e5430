"""Task-related Pydantic schemas for shared use across server and clients."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field, field_validator

from .common import CamelModel, TaskPriority, TaskStatus
from .users import UserSummary


def _clean_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    if tags is None:
        return None
    seen: list[str] = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


# ---------------------------------------------------------------------------
# Comments & attachments
# ---------------------------------------------------------------------------

class CommentCreate(CamelModel):
    text: Optional[str] = None


class CommentRead(CamelModel):
    id: UUID
    user: Optional[UserSummary] = None
    text: str
    created_at: datetime


class AttachmentRemove(CamelModel):
    url: Optional[str] = None


class AttachmentRead(CamelModel):
    url: str
    name: str
    uploaded_by: UUID
    uploaded_at: datetime


class UploadRead(CamelModel):
    url: str
    name: str


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------

class TaskCreate(CamelModel):
    title: Optional[str] = None
    project_id: Optional[UUID] = None
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v):
        return _clean_tags(v)


class TaskUpdate(CamelModel):
    """General fields only. Status has its own endpoint."""
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    tags: Optional[List[str]] = None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v):
        return _clean_tags(v)


class TaskStatusUpdate(CamelModel):
    # Validated against TaskStatus by the service so the error is "Invalid status"
    status: Optional[str] = None


class TaskAssign(CamelModel):
    user_id: Optional[UUID] = None


class TaskRead(CamelModel):
    id: UUID
    title: str
    description: str = ""
    project_id: UUID
    project_owner_id: Optional[UUID] = None
    creator: Optional[UserSummary] = None
    assignees: List[UserSummary] = Field(default_factory=list)
    status: TaskStatus
    priority: TaskPriority
    tags: List[str] = Field(default_factory=list)
    due_date: Optional[datetime] = None
    attachments: List[AttachmentRead] = Field(default_factory=list)
    comments: List[CommentRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
