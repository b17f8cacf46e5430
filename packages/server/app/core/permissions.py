"""
Authorization: capability queries over projects, tasks and comments.

Every operation asks one of the ``can_*`` functions and calls ``enforce()``
on the returned Decision. Role checks are never inlined in handlers.

Rules:
- Reads (project, activity, tasks) require owner or member. Admins get no
  read override.
- Admin overrides ownership, creator and author checks on mutations.
- Creating tasks, comments and attachments requires real membership.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import AbstractSet, Optional

from app.core.errors import ForbiddenError
from app.models.project import Project
from app.models.task import Task, TaskComment
from app.models.user import User


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.allowed

    def enforce(self) -> None:
        if not self.allowed:
            raise ForbiddenError(self.reason or "Not allowed")


ALLOW = Decision(True)


def deny(reason: str) -> Decision:
    return Decision(False, reason)


@dataclass(frozen=True)
class ProjectAccess:
    """A project plus its member ids, loaded once per request."""
    project: Project
    member_ids: AbstractSet[uuid.UUID]


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

def is_admin(user: User) -> bool:
    return user.role == "admin"


def is_owner(access: ProjectAccess, user_id: uuid.UUID) -> bool:
    return access.project.owner_id == user_id


def is_member(access: ProjectAccess, user_id: uuid.UUID) -> bool:
    return is_owner(access, user_id) or user_id in access.member_ids


def is_creator(task: Task, user_id: uuid.UUID) -> bool:
    return task.creator_id == user_id


def is_assignee(assignee_ids: AbstractSet[uuid.UUID], user_id: uuid.UUID) -> bool:
    return user_id in assignee_ids


# ---------------------------------------------------------------------------
# Project capabilities
# ---------------------------------------------------------------------------

def can_view_project(access: ProjectAccess, user: User) -> Decision:
    if is_member(access, user.id):
        return ALLOW
    return deny("You do not have access")


def can_manage_project(access: ProjectAccess, user: User) -> Decision:
    """Update/delete the project, handle join requests, add/remove members."""
    if is_owner(access, user.id) or is_admin(user):
        return ALLOW
    return deny("Not allowed")


def can_contribute(access: ProjectAccess, user: User) -> Decision:
    """Create tasks, comment, add/remove attachments."""
    if is_member(access, user.id):
        return ALLOW
    return deny("Not a project member")


# ---------------------------------------------------------------------------
# Task capabilities
# ---------------------------------------------------------------------------

def can_edit_task(access: ProjectAccess, task: Task, user: User) -> Decision:
    if is_owner(access, user.id) or is_creator(task, user.id) or is_admin(user):
        return ALLOW
    return deny("Not allowed")


def can_delete_task(access: ProjectAccess, task: Task, user: User) -> Decision:
    return can_edit_task(access, task, user)


def can_update_status(
    access: ProjectAccess,
    task: Task,
    assignee_ids: AbstractSet[uuid.UUID],
    user: User,
) -> Decision:
    if can_edit_task(access, task, user) or is_assignee(assignee_ids, user.id):
        return ALLOW
    return deny("Not allowed")


def can_assign(access: ProjectAccess, task: Task, user: User) -> Decision:
    if can_edit_task(access, task, user):
        return ALLOW
    return deny("Only owner or creator can assign")


def can_unassign(
    access: ProjectAccess, task: Task, user: User, target_id: Optional[uuid.UUID]
) -> Decision:
    if can_edit_task(access, task, user) or target_id == user.id:
        return ALLOW
    return deny("Only owner, creator or the assignee can unassign")


def can_delete_comment(comment: TaskComment, user: User) -> Decision:
    if comment.user_id == user.id or is_admin(user):
        return ALLOW
    return deny("Not allowed")
