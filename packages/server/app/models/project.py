"""Project model and its member set."""

from datetime import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UTCDateTime, UUIDMixin, utcnow


class Project(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "projects"

    name: str = Field(nullable=False, index=True)
    description: str = Field(default="", nullable=False)
    owner_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)


class ProjectMember(SQLModel, table=True):
    """One row per (project, user); the composite key makes the set unique."""

    __tablename__ = "project_members"

    project_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True
        )
    )
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    added_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=UTCDateTime,
    )
