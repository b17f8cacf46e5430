from datetime import datetime
from typing import Optional
from uuid import UUID

from .common import CamelModel
from .users import UserSummary


class ActivityTaskRef(CamelModel):
    id: UUID
    title: str


class ActivityRead(CamelModel):
    id: UUID
    project_id: UUID
    action: str
    user: Optional[UserSummary] = None
    task: Optional[ActivityTaskRef] = None
    created_at: datetime
