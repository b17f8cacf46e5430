"""
Fire-and-forget activity recording.

``ActivityRecorder.record`` schedules the insert on the running event loop
and returns immediately. A failed write is logged and dropped; it never
reaches the request that triggered it. In-flight writes are tracked so
shutdown (and tests) can ``drain()`` them.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime
from typing import Optional

import structlog
from fastapi import Request

from app.core.database import Database
from app.models.activity import Activity
from app.models.base import utcnow

log = structlog.get_logger()


class ActivityRecorder:
    def __init__(self, db: Database):
        self._db = db
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def record(
        self,
        project_id: uuid.UUID,
        user_id: uuid.UUID,
        action: str,
        task_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Submit an activity entry without waiting for it to be written."""
        try:
            task = asyncio.get_running_loop().create_task(
                self._write(project_id, user_id, action, task_id, utcnow())
            )
        except RuntimeError:
            log.warning("activity.no_event_loop", project_id=str(project_id), action=action)
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(
        self,
        project_id: uuid.UUID,
        user_id: uuid.UUID,
        action: str,
        task_id: Optional[uuid.UUID],
        created_at: datetime,
    ) -> None:
        try:
            async with self._db.session() as session:
                session.add(
                    Activity(
                        project_id=project_id,
                        task_id=task_id,
                        user_id=user_id,
                        action=action,
                        created_at=created_at,
                    )
                )
        except Exception as exc:
            log.warning(
                "activity.record_failed",
                project_id=str(project_id),
                task_id=str(task_id) if task_id else None,
                action=action,
                error=str(exc),
            )

    async def drain(self) -> None:
        """Wait for every in-flight write to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def get_activity_recorder(request: Request) -> ActivityRecorder:
    return request.app.state.activity
