from datetime import datetime
from typing import List, Optional
from uuid import UUID

from .common import CamelModel
from .users import UserPublic, UserSummary


class ProjectCreate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None


class ProjectUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None


class ProjectRead(CamelModel):
    id: UUID
    name: str
    description: str = ""
    owner: UserSummary
    members: List[UserSummary]
    created_at: datetime
    updated_at: datetime


class ProjectPublicRead(CamelModel):
    """Reduced projection: member identities are hidden behind a count."""
    id: UUID
    name: str
    description: str = ""
    owner: Optional[UserPublic] = None
    members_count: int
    created_at: datetime
