"""Join request model."""

import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class JoinRequest(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "join_requests"
    __table_args__ = (
        # At most one pending request per (project, user)
        sa.Index(
            "uq_join_requests_pending",
            "project_id",
            "user_id",
            unique=True,
            postgresql_where=sa.text("status = 'pending'"),
            sqlite_where=sa.text("status = 'pending'"),
        ),
    )

    # No FK: requests outlive a deleted project
    project_id: uuid.UUID = Field(nullable=False, index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    status: str = Field(default="pending", nullable=False)  # pending | approved | rejected
