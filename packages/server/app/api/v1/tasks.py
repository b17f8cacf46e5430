"""
Task endpoints: CRUD, status, assignment, comments and attachments.

``/assigned`` is declared before ``/{task_id}`` so it is not parsed as an id.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.activity import ActivityRecorder, get_activity_recorder
from app.core.auth import get_current_user
from app.core.database import get_session
from app.core.storage import FileStorage, get_storage
from app.models.user import User
from app.services import tasks as task_service
from taskhub_shared.schemas.common import APIResponse, MessageResponse, PageResponse
from taskhub_shared.schemas.tasks import (
    AttachmentRemove,
    CommentCreate,
    TaskAssign,
    TaskCreate,
    TaskRead,
    TaskStatusUpdate,
    TaskUpdate,
)

router = APIRouter()


async def _respond(session: AsyncSession, task) -> APIResponse[TaskRead]:
    return APIResponse[TaskRead](data=await task_service.enrich_task(session, task))


@router.post("", response_model=APIResponse[TaskRead], status_code=201)
async def create_task(
    body: TaskCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    task = await task_service.create_task(session, body, user)
    await session.commit()
    activity.record(task.project_id, user.id, f"created task: {task.title}", task.id)
    return await _respond(session, task)


@router.get("", response_model=PageResponse[TaskRead])
async def list_tasks(
    project_id: Optional[uuid.UUID] = Query(None, alias="projectId"),
    status: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Tasks in the caller's projects, newest first."""
    items, pagination = await task_service.list_tasks(
        session, user, project_id, status, priority, search, page, limit
    )
    return PageResponse[TaskRead].build(items, pagination)


@router.get("/assigned", response_model=PageResponse[TaskRead])
async def list_assigned_tasks(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    items, pagination = await task_service.list_assigned_tasks(session, user, page, limit)
    return PageResponse[TaskRead].build(items, pagination)


@router.get("/{task_id}", response_model=APIResponse[TaskRead])
async def get_task(
    task_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    task = await task_service.get_task(session, task_id, user)
    return APIResponse[TaskRead](data=task)


@router.patch("/{task_id}", response_model=APIResponse[TaskRead])
async def update_task(
    task_id: uuid.UUID,
    body: TaskUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    """Update general fields. Status is changed through /status."""
    task = await task_service.update_task(session, task_id, body, user)
    await session.commit()
    activity.record(task.project_id, user.id, f"updated task: {task.title}", task.id)
    return await _respond(session, task)


@router.patch("/{task_id}/status", response_model=APIResponse[TaskRead])
async def update_task_status(
    task_id: uuid.UUID,
    body: TaskStatusUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    task = await task_service.update_status(session, task_id, body, user)
    await session.commit()
    activity.record(
        task.project_id, user.id, f"changed status of task: {task.title} to {task.status}", task.id
    )
    return await _respond(session, task)


@router.delete("/{task_id}", response_model=MessageResponse)
async def delete_task(
    task_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    task = await task_service.delete_task(session, task_id, user)
    await session.commit()
    activity.record(task.project_id, user.id, f"deleted task: {task.title}", task.id)
    return MessageResponse(message="Task deleted")


# ---------------------------------------------------------------------------
# Assignment
# ---------------------------------------------------------------------------


@router.patch("/{task_id}/assign", response_model=APIResponse[TaskRead])
async def assign_task(
    task_id: uuid.UUID,
    body: TaskAssign,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    task = await task_service.assign_task(session, task_id, body, user)
    await session.commit()
    activity.record(task.project_id, user.id, f"assigned a user to task: {task.title}", task.id)
    return await _respond(session, task)


@router.patch("/{task_id}/unassign", response_model=APIResponse[TaskRead])
async def unassign_task(
    task_id: uuid.UUID,
    body: TaskAssign,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    task = await task_service.unassign_task(session, task_id, body, user)
    await session.commit()
    activity.record(
        task.project_id, user.id, f"unassigned a user from task: {task.title}", task.id
    )
    return await _respond(session, task)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


@router.post("/{task_id}/comments", response_model=APIResponse[TaskRead], status_code=201)
async def add_comment(
    task_id: uuid.UUID,
    body: CommentCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    task = await task_service.add_comment(session, task_id, body, user)
    await session.commit()
    activity.record(task.project_id, user.id, f"commented on task: {task.title}", task.id)
    return await _respond(session, task)


@router.delete("/{task_id}/comments/{comment_id}", response_model=APIResponse[TaskRead])
async def delete_comment(
    task_id: uuid.UUID,
    comment_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    task = await task_service.delete_comment(session, task_id, comment_id, user)
    await session.commit()
    activity.record(task.project_id, user.id, f"deleted a comment on task: {task.title}", task.id)
    return await _respond(session, task)


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------


@router.post("/{task_id}/attachments", response_model=APIResponse[TaskRead], status_code=201)
async def add_attachment(
    task_id: uuid.UUID,
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    storage: FileStorage = Depends(get_storage),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    task = await task_service.add_attachment(session, task_id, file, user, storage)
    await session.commit()
    activity.record(task.project_id, user.id, f"added an attachment to task: {task.title}", task.id)
    return await _respond(session, task)


@router.delete("/{task_id}/attachments", response_model=APIResponse[TaskRead])
async def remove_attachment(
    task_id: uuid.UUID,
    body: AttachmentRemove,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
):
    task = await task_service.remove_attachment(session, task_id, body, user)
    await session.commit()
    activity.record(
        task.project_id, user.id, f"removed an attachment from task: {task.title}", task.id
    )
    return await _respond(session, task)
