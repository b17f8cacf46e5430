"""User, auth and dashboard schemas."""

from __future__ import annotations

from typing import Optional

from pydantic import UUID4, Field

from .common import CamelModel, Role


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RegisterRequest(CamelModel):
    # Blank/missing values are rejected by the service with a single message
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserPublic(CamelModel):
    """Identity shown to anonymous callers: no contact details."""
    id: UUID4
    username: str


class UserSummary(UserPublic):
    """Projection of a user embedded wherever an authenticated caller sees one."""
    email: str


class UserRead(UserSummary):
    role: Role = Role.USER


class AuthPayload(CamelModel):
    user: UserRead
    token: str


class DashboardStats(CamelModel):
    total_projects: int = Field(ge=0)
    assigned_tasks: int = Field(ge=0)
    created_tasks: int = Field(ge=0)
    completed_tasks: int = Field(ge=0)
    pending_tasks: int = Field(ge=0)
    tasks_today: int = Field(ge=0)
    tasks_this_week: int = Field(ge=0)
    recent_activity: int = Field(ge=0)
