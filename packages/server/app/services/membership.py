"""
Membership workflow: join requests and direct member management.

JoinRequest moves pending -> approved | rejected exactly once; the move is a
conditional UPDATE on ``status = 'pending'`` so two concurrent decisions
cannot both succeed.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import insert_if_absent
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.permissions import can_manage_project, is_member, is_owner
from app.models.base import utcnow
from app.models.join_request import JoinRequest
from app.models.project import Project, ProjectMember
from app.models.user import User
from app.services.projects import add_member_row, load_access
from app.services.users import get_user_or_404, get_users_by_ids, to_summary
from taskhub_shared.schemas.common import (
    JOIN_REQUEST_TRANSITIONS,
    JoinRequestAction,
    JoinRequestStatus,
)
from taskhub_shared.schemas.membership import (
    JoinRequestDecision,
    JoinRequestRead,
    MemberChange,
)

log = structlog.get_logger()


def to_read(request: JoinRequest, user: User | None = None) -> JoinRequestRead:
    return JoinRequestRead(
        id=request.id,
        project_id=request.project_id,
        user_id=request.user_id,
        user=to_summary(user) if user else None,
        status=request.status,
        created_at=request.created_at,
        updated_at=request.updated_at,
    )


# ---------------------------------------------------------------------------
# Join requests
# ---------------------------------------------------------------------------


async def request_to_join(
    session: AsyncSession, project_id: uuid.UUID, user: User
) -> JoinRequest:
    access = await load_access(session, project_id)
    if is_member(access, user.id):
        raise ConflictError("You are already a member of this project")

    now = utcnow()
    request_id = uuid.uuid4()
    # The partial unique index on pending rows turns a duplicate into a no-op
    inserted = await insert_if_absent(
        session,
        JoinRequest,
        {
            "id": request_id,
            "project_id": project_id,
            "user_id": user.id,
            "status": JoinRequestStatus.PENDING.value,
            "created_at": now,
            "updated_at": now,
        },
    )
    if not inserted:
        raise ConflictError("Join request already pending")

    log.info("membership.join_requested", project_id=str(project_id), user_id=str(user.id))
    return await session.get(JoinRequest, request_id)


async def list_join_requests(
    session: AsyncSession, project_id: uuid.UUID, user: User
) -> list[JoinRequestRead]:
    access = await load_access(session, project_id)
    can_manage_project(access, user).enforce()

    result = await session.execute(
        select(JoinRequest)
        .where(
            JoinRequest.project_id == project_id,
            JoinRequest.status == JoinRequestStatus.PENDING.value,
        )
        .order_by(JoinRequest.created_at)
    )
    requests = result.scalars().all()
    users = await get_users_by_ids(session, {r.user_id for r in requests})
    return [to_read(r, users.get(r.user_id)) for r in requests]


async def handle_join_request(
    session: AsyncSession,
    project_id: uuid.UUID,
    request_id: uuid.UUID,
    body: JoinRequestDecision,
    user: User,
) -> tuple[Project, JoinRequest, JoinRequestAction]:
    action = body.parsed()
    if action is None:
        raise ValidationError("Invalid action")

    access = await load_access(session, project_id)
    can_manage_project(access, user).enforce()

    request = await session.get(JoinRequest, request_id)
    if not request:
        raise NotFoundError("Join request not found")
    if request.project_id != project_id:
        raise ValidationError("Request does not belong to this project")

    target = JOIN_REQUEST_TRANSITIONS[JoinRequestStatus(request.status)].get(action)
    if target is None:
        raise ConflictError("Request already processed")

    if action == JoinRequestAction.APPROVE:
        await add_member_row(session, project_id, request.user_id)

    result = await session.execute(
        update(JoinRequest)
        .where(
            JoinRequest.id == request.id,
            JoinRequest.status == JoinRequestStatus.PENDING.value,
        )
        .values(status=target.value, updated_at=utcnow())
    )
    if result.rowcount != 1:
        raise ConflictError("Request already processed")
    await session.refresh(request)

    log.info(
        "membership.join_request_handled",
        project_id=str(project_id),
        request_id=str(request.id),
        status=request.status,
        user_id=str(user.id),
    )
    return access.project, request, action


# ---------------------------------------------------------------------------
# Direct membership
# ---------------------------------------------------------------------------


def _require_user_id(body: MemberChange) -> uuid.UUID:
    if body.user_id is None:
        raise ValidationError("userId is required")
    return body.user_id


async def add_member(
    session: AsyncSession, project_id: uuid.UUID, body: MemberChange, user: User
) -> tuple[Project, User]:
    target_id = _require_user_id(body)
    access = await load_access(session, project_id)
    can_manage_project(access, user).enforce()

    target = await get_user_or_404(session, target_id)
    if is_owner(access, target.id) or not await add_member_row(session, project_id, target.id):
        raise ConflictError("User is already a member of this project")

    log.info("membership.member_added", project_id=str(project_id), member_id=str(target.id))
    return access.project, target


async def remove_member(
    session: AsyncSession, project_id: uuid.UUID, body: MemberChange, user: User
) -> Project:
    target_id = _require_user_id(body)
    access = await load_access(session, project_id)
    can_manage_project(access, user).enforce()

    if is_owner(access, target_id):
        raise ValidationError("Owner cannot be removed from the project")

    result = await session.execute(
        delete(ProjectMember).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == target_id,
        )
    )
    if result.rowcount == 0:
        raise ValidationError("User is not a member of this project")

    log.info("membership.member_removed", project_id=str(project_id), member_id=str(target_id))
    return access.project
