"""
Task service layer: business logic for tasks and their collections.

Handles:
- Task CRUD scoped to the projects the caller belongs to
- Status changes (validated against TaskStatus before anything is loaded)
- Assignment with an atomic add-if-absent on task_assignees
- Comments and attachments
- Enrichment of task data for API responses
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from typing import Optional, Sequence

import structlog
from fastapi import UploadFile
from sqlalchemy import delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import insert_if_absent
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.permissions import (
    ProjectAccess,
    can_assign,
    can_contribute,
    can_delete_comment,
    can_delete_task,
    can_edit_task,
    can_unassign,
    can_update_status,
    can_view_project,
    is_member,
)
from app.core.storage import FileStorage
from app.models.base import as_utc, utcnow
from app.models.project import Project, ProjectMember
from app.models.task import Task, TaskAssignee, TaskAttachment, TaskComment
from app.models.user import User
from app.services.projects import load_access
from app.services.users import get_users_by_ids, to_summary
from taskhub_shared.schemas.common import (
    Pagination,
    TaskPriority,
    TaskStatus,
    clamp_limit,
    paginate,
)
from taskhub_shared.schemas.tasks import (
    AttachmentRead,
    AttachmentRemove,
    CommentCreate,
    CommentRead,
    TaskAssign,
    TaskCreate,
    TaskRead,
    TaskStatusUpdate,
    TaskUpdate,
)

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_task_or_404(session: AsyncSession, task_id: uuid.UUID) -> Task:
    task = await session.get(Task, task_id)
    if not task:
        raise NotFoundError("Task not found")
    return task


async def _load(
    session: AsyncSession, task_id: uuid.UUID
) -> tuple[Task, ProjectAccess]:
    task = await get_task_or_404(session, task_id)
    return task, await load_access(session, task.project_id)


async def _get_assignee_ids(session: AsyncSession, task_id: uuid.UUID) -> set[uuid.UUID]:
    result = await session.execute(
        select(TaskAssignee.user_id).where(TaskAssignee.task_id == task_id)
    )
    return {row[0] for row in result.all()}


def parse_status(value: Optional[str]) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError:
        raise ValidationError("Invalid status")


def parse_priority(value: Optional[str]) -> TaskPriority:
    try:
        return TaskPriority(value)
    except ValueError:
        raise ValidationError("Invalid priority")


async def enrich_tasks(session: AsyncSession, tasks: Sequence[Task]) -> list[TaskRead]:
    """Convert Task rows to TaskRead, batching each related collection."""
    if not tasks:
        return []
    ids = [t.id for t in tasks]

    assignees: dict[uuid.UUID, list[uuid.UUID]] = defaultdict(list)
    rows = await session.execute(
        select(TaskAssignee.task_id, TaskAssignee.user_id)
        .where(TaskAssignee.task_id.in_(ids))
        .order_by(TaskAssignee.assigned_at)
    )
    for task_id, user_id in rows.all():
        assignees[task_id].append(user_id)

    comments: dict[uuid.UUID, list[TaskComment]] = defaultdict(list)
    rows = await session.execute(
        select(TaskComment).where(TaskComment.task_id.in_(ids)).order_by(TaskComment.created_at)
    )
    for comment in rows.scalars().all():
        comments[comment.task_id].append(comment)

    attachments: dict[uuid.UUID, list[TaskAttachment]] = defaultdict(list)
    rows = await session.execute(
        select(TaskAttachment)
        .where(TaskAttachment.task_id.in_(ids))
        .order_by(TaskAttachment.uploaded_at)
    )
    for attachment in rows.scalars().all():
        attachments[attachment.task_id].append(attachment)

    owners = dict(
        (
            await session.execute(
                select(Project.id, Project.owner_id).where(
                    Project.id.in_({t.project_id for t in tasks})
                )
            )
        ).all()
    )

    wanted = {t.creator_id for t in tasks}
    for user_ids in assignees.values():
        wanted.update(user_ids)
    for task_comments in comments.values():
        wanted.update(c.user_id for c in task_comments)
    users = await get_users_by_ids(session, wanted)

    def summary(user_id):
        return to_summary(users[user_id]) if user_id in users else None

    return [
        TaskRead(
            id=t.id,
            title=t.title,
            description=t.description,
            project_id=t.project_id,
            project_owner_id=owners.get(t.project_id),
            creator=summary(t.creator_id),
            assignees=[to_summary(users[u]) for u in assignees[t.id] if u in users],
            status=t.status,
            priority=t.priority,
            tags=t.tags or [],
            due_date=t.due_date,
            attachments=[
                AttachmentRead(
                    url=a.url, name=a.name, uploaded_by=a.uploaded_by, uploaded_at=a.uploaded_at
                )
                for a in attachments[t.id]
            ],
            comments=[
                CommentRead(id=c.id, user=summary(c.user_id), text=c.text, created_at=c.created_at)
                for c in comments[t.id]
            ],
            created_at=t.created_at,
            updated_at=t.updated_at,
        )
        for t in tasks
    ]


async def enrich_task(session: AsyncSession, task: Task) -> TaskRead:
    return (await enrich_tasks(session, [task]))[0]


async def _page(
    session: AsyncSession, stmt, page: int, limit: int
) -> tuple[list[Task], Pagination]:
    limit = clamp_limit(limit)
    total = (
        await session.execute(select(func.count()).select_from(stmt.subquery()))
    ).scalar_one()
    offset = (page - 1) * limit
    if offset >= total:
        return [], paginate(page, limit, total)
    result = await session.execute(
        stmt.order_by(Task.created_at.desc()).offset(offset).limit(limit)
    )
    return list(result.scalars().all()), paginate(page, limit, total)


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_task(session: AsyncSession, body: TaskCreate, user: User) -> Task:
    title = (body.title or "").strip()
    if not title or body.project_id is None:
        raise ValidationError("Title and projectId required")

    access = await load_access(session, body.project_id)
    can_contribute(access, user).enforce()

    task = Task(
        title=title,
        description=(body.description or "").strip(),
        project_id=access.project.id,
        creator_id=user.id,
        status=TaskStatus.TODO.value,
        priority=body.priority.value,
        tags=body.tags,
        due_date=as_utc(body.due_date),
    )
    session.add(task)
    await session.flush()

    log.info("task.created", task_id=str(task.id), project_id=str(task.project_id))
    return task


async def list_tasks(
    session: AsyncSession,
    user: User,
    project_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[TaskRead], Pagination]:
    stmt = select(Task)
    if project_id is not None:
        access = await load_access(session, project_id)
        can_view_project(access, user).enforce()
        stmt = stmt.where(Task.project_id == project_id)
    else:
        mine = select(ProjectMember.project_id).where(ProjectMember.user_id == user.id)
        owned = select(Project.id).where(Project.owner_id == user.id)
        stmt = stmt.where(or_(Task.project_id.in_(mine), Task.project_id.in_(owned)))

    if status:
        stmt = stmt.where(Task.status == parse_status(status).value)
    if priority:
        stmt = stmt.where(Task.priority == parse_priority(priority).value)
    if search and search.strip():
        stmt = stmt.where(
            func.lower(Task.title).contains(search.strip().lower(), autoescape=True)
        )

    tasks, pagination = await _page(session, stmt, page, limit)
    return await enrich_tasks(session, tasks), pagination


async def list_assigned_tasks(
    session: AsyncSession, user: User, page: int = 1, limit: int = 10
) -> tuple[list[TaskRead], Pagination]:
    assigned = select(TaskAssignee.task_id).where(TaskAssignee.user_id == user.id)
    tasks, pagination = await _page(
        session, select(Task).where(Task.id.in_(assigned)), page, limit
    )
    return await enrich_tasks(session, tasks), pagination


async def get_task(session: AsyncSession, task_id: uuid.UUID, user: User) -> TaskRead:
    task, access = await _load(session, task_id)
    can_view_project(access, user).enforce()
    return await enrich_task(session, task)


async def update_task(
    session: AsyncSession, task_id: uuid.UUID, body: TaskUpdate, user: User
) -> Task:
    task, access = await _load(session, task_id)
    can_edit_task(access, task, user).enforce()

    if body.title and body.title.strip():
        task.title = body.title.strip()
    if body.description is not None:
        task.description = body.description.strip()
    if body.priority is not None:
        task.priority = body.priority.value
    if body.due_date is not None:
        task.due_date = as_utc(body.due_date)
    if body.tags is not None:
        task.tags = body.tags
    session.add(task)
    await session.flush()

    log.info("task.updated", task_id=str(task.id), user_id=str(user.id))
    return task


async def update_status(
    session: AsyncSession, task_id: uuid.UUID, body: TaskStatusUpdate, user: User
) -> Task:
    status = parse_status(body.status)

    task, access = await _load(session, task_id)
    assignee_ids = await _get_assignee_ids(session, task.id)
    can_update_status(access, task, assignee_ids, user).enforce()

    old_status = task.status
    task.status = status.value
    session.add(task)
    await session.flush()

    log.info(
        "task.status_changed",
        task_id=str(task.id),
        from_status=old_status,
        to_status=status.value,
        user_id=str(user.id),
    )
    return task


async def delete_task(session: AsyncSession, task_id: uuid.UUID, user: User) -> Task:
    task, access = await _load(session, task_id)
    can_delete_task(access, task, user).enforce()

    for model in (TaskAssignee, TaskComment, TaskAttachment):
        await session.execute(delete(model).where(model.task_id == task.id))
    await session.delete(task)
    await session.flush()

    log.info("task.deleted", task_id=str(task.id), user_id=str(user.id))
    return task


# ---------------------------------------------------------------------------
# Assignment
# ---------------------------------------------------------------------------


def _require_user_id(body: TaskAssign) -> uuid.UUID:
    if body.user_id is None:
        raise ValidationError("userId is required")
    return body.user_id


async def assign_task(
    session: AsyncSession, task_id: uuid.UUID, body: TaskAssign, user: User
) -> Task:
    target_id = _require_user_id(body)
    task, access = await _load(session, task_id)
    can_assign(access, task, user).enforce()

    if not is_member(access, target_id):
        raise ValidationError("User is not a project member")

    inserted = await insert_if_absent(
        session,
        TaskAssignee,
        {"task_id": task.id, "user_id": target_id, "assigned_at": utcnow()},
    )
    if not inserted:
        raise ConflictError("User already assigned")

    log.info("task.assigned", task_id=str(task.id), assignee_id=str(target_id))
    return task


async def unassign_task(
    session: AsyncSession, task_id: uuid.UUID, body: TaskAssign, user: User
) -> Task:
    target_id = _require_user_id(body)
    task, access = await _load(session, task_id)
    can_unassign(access, task, user, target_id).enforce()

    result = await session.execute(
        delete(TaskAssignee).where(
            TaskAssignee.task_id == task.id, TaskAssignee.user_id == target_id
        )
    )
    log.info(
        "task.unassigned",
        task_id=str(task.id),
        assignee_id=str(target_id),
        removed=result.rowcount,
    )
    return task


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


async def add_comment(
    session: AsyncSession, task_id: uuid.UUID, body: CommentCreate, user: User
) -> Task:
    text = (body.text or "").strip()
    if not text:
        raise ValidationError("Comment text is required")

    task, access = await _load(session, task_id)
    can_contribute(access, user).enforce()

    session.add(TaskComment(task_id=task.id, user_id=user.id, text=text))
    await session.flush()
    return task


async def delete_comment(
    session: AsyncSession, task_id: uuid.UUID, comment_id: uuid.UUID, user: User
) -> Task:
    task = await get_task_or_404(session, task_id)
    comment = await session.get(TaskComment, comment_id)
    if not comment or comment.task_id != task.id:
        raise NotFoundError("Comment not found")
    can_delete_comment(comment, user).enforce()

    await session.delete(comment)
    await session.flush()
    return task


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------


async def add_attachment(
    session: AsyncSession,
    task_id: uuid.UUID,
    file: UploadFile,
    user: User,
    storage: FileStorage,
) -> Task:
    task, access = await _load(session, task_id)
    can_contribute(access, user).enforce()

    # A failed upload raises here, before the task is touched
    stored = await storage.save(file)

    session.add(
        TaskAttachment(
            task_id=task.id,
            url=stored.url,
            name=stored.name,
            uploaded_by=user.id,
        )
    )
    await session.flush()

    log.info("task.attachment_added", task_id=str(task.id), url=stored.url, size=stored.size)
    return task


async def remove_attachment(
    session: AsyncSession, task_id: uuid.UUID, body: AttachmentRemove, user: User
) -> Task:
    url = (body.url or "").strip()
    if not url:
        raise ValidationError("Attachment url is required")

    task, access = await _load(session, task_id)
    can_contribute(access, user).enforce()

    await session.execute(
        delete(TaskAttachment).where(TaskAttachment.task_id == task.id, TaskAttachment.url == url)
    )
    return task
