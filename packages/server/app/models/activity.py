"""Activity model (append-only audit trail)."""

from datetime import datetime
from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import UTCDateTime, UUIDMixin, utcnow


class Activity(UUIDMixin, SQLModel, table=True):
    __tablename__ = "activities"

    # No FKs: the log outlives the project/task it describes
    project_id: uuid.UUID = Field(nullable=False, index=True)
    task_id: Optional[uuid.UUID] = Field(default=None, index=True)
    user_id: uuid.UUID = Field(nullable=False, index=True)
    action: str = Field(nullable=False)
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        index=True,
        sa_type=UTCDateTime,
    )
