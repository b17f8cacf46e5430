"""Join-request and direct-membership schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from .common import CamelModel, JoinRequestAction, JoinRequestStatus
from .users import UserSummary


class JoinRequestRead(CamelModel):
    id: UUID
    project_id: UUID
    user_id: UUID
    user: Optional[UserSummary] = None
    status: JoinRequestStatus
    created_at: datetime
    updated_at: datetime


class JoinRequestDecision(CamelModel):
    """Body for PATCH .../join-requests/{requestId}.

    Kept as a plain string so an unknown action gets the "Invalid action"
    message instead of a schema error.
    """
    action: Optional[str] = None

    def parsed(self) -> Optional[JoinRequestAction]:
        try:
            return JoinRequestAction(self.action)
        except ValueError:
            return None


class MemberChange(CamelModel):
    """Body for add-member / remove-member."""
    user_id: Optional[UUID] = None
