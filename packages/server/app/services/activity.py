"""Activity log reads. Writes go through app.core.activity.ActivityRecorder."""

from __future__ import annotations

import uuid

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.permissions import can_view_project
from app.models.activity import Activity
from app.models.task import Task
from app.models.user import User
from app.services.projects import load_access
from app.services.users import get_users_by_ids, to_summary
from taskhub_shared.schemas.activity import ActivityRead, ActivityTaskRef


async def list_activity(
    session: AsyncSession, project_id: uuid.UUID, user: User
) -> list[ActivityRead]:
    """All entries for a project, newest first, with user and task resolved.

    A task that has since been deleted resolves to null.
    """
    access = await load_access(session, project_id)
    can_view_project(access, user).enforce()

    result = await session.execute(
        select(Activity)
        .where(Activity.project_id == project_id)
        .order_by(Activity.created_at.desc())
    )
    entries = result.scalars().all()

    users = await get_users_by_ids(session, {e.user_id for e in entries})
    task_ids = {e.task_id for e in entries if e.task_id}
    tasks: dict[uuid.UUID, str] = {}
    if task_ids:
        rows = await session.execute(select(Task.id, Task.title).where(Task.id.in_(task_ids)))
        tasks = dict(rows.all())

    return [
        ActivityRead(
            id=e.id,
            project_id=e.project_id,
            action=e.action,
            user=to_summary(users[e.user_id]) if e.user_id in users else None,
            task=ActivityTaskRef(id=e.task_id, title=tasks[e.task_id])
            if e.task_id in tasks
            else None,
            created_at=e.created_at,
        )
        for e in entries
    ]
