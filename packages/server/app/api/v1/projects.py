"""
Project endpoints: public listing, CRUD and the activity feed.

Public routes are declared before ``/{project_id}`` so ``/public`` is not
parsed as an id.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.activity import ActivityRecorder, get_activity_recorder
from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services import activity as activity_service
from app.services import projects as project_service
from taskhub_shared.schemas.activity import ActivityRead
from taskhub_shared.schemas.common import APIResponse, MessageResponse, PageResponse
from taskhub_shared.schemas.projects import (
    ProjectCreate,
    ProjectPublicRead,
    ProjectRead,
    ProjectUpdate,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------


@router.get("/public", response_model=PageResponse[ProjectPublicRead])
async def list_public_projects(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    session: AsyncSession = Depends(get_session),
):
    """All projects, reduced projection. No authentication."""
    items, pagination = await project_service.list_public_projects(session, search, page, limit)
    return PageResponse[ProjectPublicRead].build(items, pagination)


@router.get("/public/{project_id}", response_model=APIResponse[ProjectPublicRead])
async def get_public_project(
    project_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
):
    project = await project_service.get_public_project(session, project_id)
    return APIResponse[ProjectPublicRead](data=project)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("", response_model=APIResponse[ProjectRead], status_code=201)
async def create_project(
    body: ProjectCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    """Create a project. The caller becomes its owner and first member."""
    project = await project_service.create_project(session, body, user)
    await session.commit()
    activity.record(project.id, user.id, f"created project: {project.name}")
    return APIResponse[ProjectRead](data=await project_service.enrich_project(session, project))


@router.get("", response_model=PageResponse[ProjectRead])
async def list_projects(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Projects the caller owns or is a member of."""
    items, pagination = await project_service.list_projects(session, user, search, page, limit)
    return PageResponse[ProjectRead].build(items, pagination)


@router.get("/{project_id}", response_model=APIResponse[ProjectRead])
async def get_project(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    project = await project_service.get_project(session, project_id, user)
    return APIResponse[ProjectRead](data=project)


@router.patch("/{project_id}", response_model=APIResponse[ProjectRead])
async def update_project(
    project_id: uuid.UUID,
    body: ProjectUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    project = await project_service.update_project(session, project_id, body, user)
    await session.commit()
    activity.record(project.id, user.id, f"updated project: {project.name}")
    return APIResponse[ProjectRead](data=await project_service.enrich_project(session, project))


@router.delete("/{project_id}", response_model=MessageResponse)
async def delete_project(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    project = await project_service.delete_project(session, project_id, user)
    await session.commit()
    activity.record(project.id, user.id, f"deleted project: {project.name}")
    return MessageResponse(message="Project deleted")


@router.get("/{project_id}/activity", response_model=APIResponse[List[ActivityRead]])
async def list_project_activity(
    project_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Project activity feed, newest first."""
    entries = await activity_service.list_activity(session, project_id, user)
    return APIResponse[List[ActivityRead]](data=entries)
