"""Task model and its task-scoped collections."""

from datetime import datetime
from typing import List, Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UTCDateTime, UUIDMixin, utcnow


class Task(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "tasks"

    title: str = Field(nullable=False)
    description: str = Field(default="", nullable=False)
    # No FK: tasks are orphaned, not cascaded, when their project is deleted
    project_id: uuid.UUID = Field(nullable=False, index=True)
    creator_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    status: str = Field(nullable=False, default="todo", index=True)  # todo | in-progress | done
    priority: str = Field(nullable=False, default="medium")  # low | medium | high
    tags: List[str] = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
    due_date: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)


def _task_fk() -> sa.Column:
    return sa.Column(
        sa.Uuid, sa.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )


class TaskAssignee(SQLModel, table=True):
    __tablename__ = "task_assignees"

    task_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True
        )
    )
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    assigned_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=UTCDateTime,
    )


class TaskComment(UUIDMixin, SQLModel, table=True):
    __tablename__ = "task_comments"

    task_id: uuid.UUID = Field(sa_column=_task_fk())
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    text: str = Field(nullable=False)
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=UTCDateTime,
    )


class TaskAttachment(UUIDMixin, SQLModel, table=True):
    __tablename__ = "task_attachments"

    task_id: uuid.UUID = Field(sa_column=_task_fk())
    url: str = Field(nullable=False)
    name: str = Field(nullable=False)
    uploaded_by: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    uploaded_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=UTCDateTime,
    )
