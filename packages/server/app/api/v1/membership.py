"""
Membership endpoints: join requests and direct add/remove of members.
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.activity import ActivityRecorder, get_activity_recorder
from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services import membership as membership_service
from app.services import projects as project_service
from taskhub_shared.schemas.common import APIResponse, JoinRequestAction
from taskhub_shared.schemas.membership import (
    JoinRequestDecision,
    JoinRequestRead,
    MemberChange,
)
from taskhub_shared.schemas.projects import ProjectRead

router = APIRouter()


@router.post(
    "/projects/{project_id}/join-request",
    response_model=APIResponse[JoinRequestRead],
    status_code=201,
)
async def request_to_join(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    request = await membership_service.request_to_join(session, project_id, user)
    await session.commit()
    activity.record(project_id, user.id, "requested to join the project")
    return APIResponse[JoinRequestRead](data=membership_service.to_read(request, user))


@router.get(
    "/projects/{project_id}/join-requests",
    response_model=APIResponse[List[JoinRequestRead]],
)
async def list_join_requests(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Pending requests for the project (owner or admin)."""
    requests = await membership_service.list_join_requests(session, project_id, user)
    return APIResponse[List[JoinRequestRead]](data=requests)


@router.patch(
    "/projects/{project_id}/join-requests/{request_id}",
    response_model=APIResponse[JoinRequestRead],
)
async def handle_join_request(
    project_id: uuid.UUID,
    request_id: uuid.UUID,
    body: JoinRequestDecision,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    """Approve or reject a pending join request."""
    project, request, action = await membership_service.handle_join_request(
        session, project_id, request_id, body, user
    )
    await session.commit()
    verb = "approved" if action == JoinRequestAction.APPROVE else "rejected"
    activity.record(project.id, user.id, f"{verb} join request for project: {project.name}")
    return APIResponse[JoinRequestRead](data=membership_service.to_read(request))


@router.patch("/projects/{project_id}/add-member", response_model=APIResponse[ProjectRead])
async def add_member(
    project_id: uuid.UUID,
    body: MemberChange,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    project, member = await membership_service.add_member(session, project_id, body, user)
    await session.commit()
    activity.record(project.id, user.id, f"added member: {member.username}")
    return APIResponse[ProjectRead](data=await project_service.enrich_project(session, project))


@router.patch("/projects/{project_id}/remove-member", response_model=APIResponse[ProjectRead])
async def remove_member(
    project_id: uuid.UUID,
    body: MemberChange,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    project = await membership_service.remove_member(session, project_id, body, user)
    await session.commit()
    activity.record(project.id, user.id, "removed a member")
    return APIResponse[ProjectRead](data=await project_service.enrich_project(session, project))
