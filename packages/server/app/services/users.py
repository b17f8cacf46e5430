"""
User service: registration, login, lookups and dashboard statistics.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import structlog
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import create_access_token, hash_password, verify_password
from app.core.config import Settings
from app.core.errors import AuthError, ConflictError, NotFoundError, ValidationError
from app.models.activity import Activity
from app.models.project import Project, ProjectMember
from app.models.task import Task, TaskAssignee
from app.models.user import User
from taskhub_shared.schemas.common import TaskStatus
from taskhub_shared.schemas.users import (
    AuthPayload,
    DashboardStats,
    LoginRequest,
    RegisterRequest,
    UserRead,
    UserSummary,
)

log = structlog.get_logger()

MIN_PASSWORD_LENGTH = 6
# bcrypt only accepts the first 72 bytes
MAX_PASSWORD_BYTES = 72


def normalize_email(email: str) -> str:
    return email.strip().lower()


def to_summary(user: User) -> UserSummary:
    return UserSummary(id=user.id, username=user.username, email=user.email)


def to_read(user: User) -> UserRead:
    return UserRead(id=user.id, username=user.username, email=user.email, role=user.role)


async def get_users_by_ids(
    session: AsyncSession, user_ids: Iterable[uuid.UUID]
) -> dict[uuid.UUID, User]:
    ids = set(user_ids)
    if not ids:
        return {}
    result = await session.execute(select(User).where(User.id.in_(ids)))
    return {u.id: u for u in result.scalars().all()}


async def get_user_or_404(session: AsyncSession, user_id: uuid.UUID) -> User:
    user = await session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


async def get_user_by_email(session: AsyncSession, email: Optional[str]) -> User:
    if not email or not email.strip():
        raise ValidationError("Email required")
    result = await session.execute(select(User).where(User.email == normalize_email(email)))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found")
    return user


# ---------------------------------------------------------------------------
# Registration & login
# ---------------------------------------------------------------------------


async def _email_taken(session: AsyncSession, email: str) -> bool:
    result = await session.execute(select(User.id).where(User.email == email))
    return result.first() is not None


async def register(
    session: AsyncSession, body: RegisterRequest, settings: Settings
) -> AuthPayload:
    username = (body.username or "").strip()
    email = normalize_email(body.email or "")
    password = body.password or ""

    if not username or not email or not password:
        raise ValidationError("All fields are required")
    if "@" not in email:
        raise ValidationError("Invalid email address")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    if len(password.encode()) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

    if await _email_taken(session, email):
        raise ConflictError("User already exists")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password, settings.bcrypt_rounds),
    )
    session.add(user)
    try:
        await session.flush()
    except IntegrityError:
        # Concurrent registration won the unique email index
        raise ConflictError("User already exists") from None

    log.info("user.registered", user_id=str(user.id), email=email)
    return AuthPayload(user=to_read(user), token=create_access_token(user.id, settings))


async def login(session: AsyncSession, body: LoginRequest, settings: Settings) -> AuthPayload:
    email = normalize_email(body.email or "")
    if not email or not body.password:
        raise ValidationError("Email and password are required")

    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    # Same error for unknown email and wrong password
    if not user or not verify_password(body.password, user.password_hash):
        log.warning("auth.login_failure", email=email, known_user=user is not None)
        raise AuthError("Invalid email or password")

    log.info("auth.login_success", user_id=str(user.id))
    return AuthPayload(user=to_read(user), token=create_access_token(user.id, settings))


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


def utc_day_start(now: datetime) -> datetime:
    return now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


async def _count(session: AsyncSession, stmt) -> int:
    result = await session.execute(stmt)
    return int(result.scalar_one() or 0)


async def dashboard_stats(
    session: AsyncSession, user_id: uuid.UUID, now: Optional[datetime] = None
) -> DashboardStats:
    """Independent counts per metric; day/week windows are UTC."""
    now = now or datetime.now(timezone.utc)
    today = utc_day_start(now)
    week_ago = now - timedelta(days=7)

    member_project_ids = select(ProjectMember.project_id).where(
        ProjectMember.user_id == user_id
    )
    total_projects = await _count(
        session,
        select(func.count())
        .select_from(Project)
        .where(or_(Project.owner_id == user_id, Project.id.in_(member_project_ids))),
    )

    assigned = (
        select(func.count())
        .select_from(Task)
        .join(TaskAssignee, TaskAssignee.task_id == Task.id)
        .where(TaskAssignee.user_id == user_id)
    )
    assigned_tasks = await _count(session, assigned)
    completed_tasks = await _count(
        session, assigned.where(Task.status == TaskStatus.DONE.value)
    )
    pending_tasks = await _count(
        session, assigned.where(Task.status != TaskStatus.DONE.value)
    )

    created = select(func.count()).select_from(Task).where(Task.creator_id == user_id)
    created_tasks = await _count(session, created)
    tasks_today = await _count(session, created.where(Task.created_at >= today))
    tasks_this_week = await _count(session, created.where(Task.created_at >= week_ago))

    recent_activity = await _count(
        session,
        select(func.count())
        .select_from(Activity)
        .where(Activity.user_id == user_id, Activity.created_at >= week_ago),
    )

    return DashboardStats(
        total_projects=total_projects,
        assigned_tasks=assigned_tasks,
        created_tasks=created_tasks,
        completed_tasks=completed_tasks,
        pending_tasks=pending_tasks,
        tasks_today=tasks_today,
        tasks_this_week=tasks_this_week,
        recent_activity=recent_activity,
    )
