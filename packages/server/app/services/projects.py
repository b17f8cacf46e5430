"""
Project service layer: ownership, listing and the member set.

Every project has its owner in ``project_members``; the owner row is written
in the same transaction that creates the project.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from typing import Optional, Sequence

import structlog
from sqlalchemy import delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import insert_if_absent
from app.core.errors import NotFoundError, ValidationError
from app.core.permissions import ProjectAccess, can_manage_project, can_view_project
from app.models.base import utcnow
from app.models.project import Project, ProjectMember
from app.models.user import User
from app.services.users import get_users_by_ids, to_summary
from taskhub_shared.schemas.common import Pagination, clamp_limit, paginate
from taskhub_shared.schemas.projects import (
    ProjectCreate,
    ProjectPublicRead,
    ProjectRead,
    ProjectUpdate,
)
from taskhub_shared.schemas.users import UserPublic

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_project_or_404(session: AsyncSession, project_id: uuid.UUID) -> Project:
    project = await session.get(Project, project_id)
    if not project:
        raise NotFoundError("Project not found")
    return project


async def member_ids(session: AsyncSession, project_id: uuid.UUID) -> set[uuid.UUID]:
    result = await session.execute(
        select(ProjectMember.user_id).where(ProjectMember.project_id == project_id)
    )
    return {row[0] for row in result.all()}


async def load_access(session: AsyncSession, project_id: uuid.UUID) -> ProjectAccess:
    project = await get_project_or_404(session, project_id)
    return ProjectAccess(project=project, member_ids=await member_ids(session, project.id))


async def add_member_row(
    session: AsyncSession, project_id: uuid.UUID, user_id: uuid.UUID
) -> bool:
    """Add-if-absent on the member set. False when already a member."""
    return await insert_if_absent(
        session,
        ProjectMember,
        {"project_id": project_id, "user_id": user_id, "added_at": utcnow()},
    )


def _my_projects_clause(user_id: uuid.UUID):
    mine = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
    return or_(Project.owner_id == user_id, Project.id.in_(mine))


def _search_clause(search: Optional[str]):
    if search and search.strip():
        return func.lower(Project.name).contains(search.strip().lower(), autoescape=True)
    return None


async def _page(
    session: AsyncSession, where: list, page: int, limit: int
) -> tuple[list[Project], Pagination]:
    limit = clamp_limit(limit)
    total = (
        await session.execute(select(func.count()).select_from(Project).where(*where))
    ).scalar_one()
    offset = (page - 1) * limit
    if offset >= total:
        # Past the last page; also keeps huge offsets out of SQL
        return [], paginate(page, limit, total)
    result = await session.execute(
        select(Project)
        .where(*where)
        .order_by(Project.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), paginate(page, limit, total)


async def enrich_projects(
    session: AsyncSession, projects: Sequence[Project]
) -> list[ProjectRead]:
    """Resolve owner and member summaries with one query per relation."""
    if not projects:
        return []
    rows = await session.execute(
        select(ProjectMember.project_id, ProjectMember.user_id)
        .where(ProjectMember.project_id.in_([p.id for p in projects]))
        .order_by(ProjectMember.added_at)
    )
    members: dict[uuid.UUID, list[uuid.UUID]] = defaultdict(list)
    for project_id, user_id in rows.all():
        members[project_id].append(user_id)

    wanted = {p.owner_id for p in projects}
    for ids in members.values():
        wanted.update(ids)
    users = await get_users_by_ids(session, wanted)

    return [
        ProjectRead(
            id=p.id,
            name=p.name,
            description=p.description,
            owner=to_summary(users[p.owner_id]),
            members=[to_summary(users[uid]) for uid in members[p.id] if uid in users],
            created_at=p.created_at,
            updated_at=p.updated_at,
        )
        for p in projects
    ]


async def enrich_project(session: AsyncSession, project: Project) -> ProjectRead:
    return (await enrich_projects(session, [project]))[0]


async def to_public(session: AsyncSession, projects: Sequence[Project]) -> list[ProjectPublicRead]:
    if not projects:
        return []
    ids = [p.id for p in projects]
    counts = dict(
        (
            await session.execute(
                select(ProjectMember.project_id, func.count())
                .where(ProjectMember.project_id.in_(ids))
                .group_by(ProjectMember.project_id)
            )
        ).all()
    )
    owners = await get_users_by_ids(session, {p.owner_id for p in projects})
    return [
        ProjectPublicRead(
            id=p.id,
            name=p.name,
            description=p.description,
            owner=(
                UserPublic(id=p.owner_id, username=owners[p.owner_id].username)
                if p.owner_id in owners
                else None
            ),
            members_count=counts.get(p.id, 0),
            created_at=p.created_at,
        )
        for p in projects
    ]


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_project(session: AsyncSession, body: ProjectCreate, owner: User) -> Project:
    name = (body.name or "").strip()
    if not name:
        raise ValidationError("Project name is required")

    project = Project(
        name=name,
        description=(body.description or "").strip(),
        owner_id=owner.id,
    )
    session.add(project)
    await session.flush()
    await add_member_row(session, project.id, owner.id)

    log.info("project.created", project_id=str(project.id), owner_id=str(owner.id))
    return project


async def list_projects(
    session: AsyncSession,
    user: User,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[ProjectRead], Pagination]:
    where = [_my_projects_clause(user.id)]
    clause = _search_clause(search)
    if clause is not None:
        where.append(clause)
    projects, pagination = await _page(session, where, page, limit)
    return await enrich_projects(session, projects), pagination


async def list_public_projects(
    session: AsyncSession,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[ProjectPublicRead], Pagination]:
    clause = _search_clause(search)
    projects, pagination = await _page(
        session, [clause] if clause is not None else [], page, limit
    )
    return await to_public(session, projects), pagination


async def get_public_project(session: AsyncSession, project_id: uuid.UUID) -> ProjectPublicRead:
    project = await get_project_or_404(session, project_id)
    return (await to_public(session, [project]))[0]


async def get_project(session: AsyncSession, project_id: uuid.UUID, user: User) -> ProjectRead:
    access = await load_access(session, project_id)
    can_view_project(access, user).enforce()
    return await enrich_project(session, access.project)


async def update_project(
    session: AsyncSession, project_id: uuid.UUID, body: ProjectUpdate, user: User
) -> Project:
    access = await load_access(session, project_id)
    can_manage_project(access, user).enforce()

    project = access.project
    # Blank values leave the field as it is
    if body.name and body.name.strip():
        project.name = body.name.strip()
    if body.description and body.description.strip():
        project.description = body.description.strip()
    session.add(project)
    await session.flush()

    log.info("project.updated", project_id=str(project.id), user_id=str(user.id))
    return project


async def delete_project(session: AsyncSession, project_id: uuid.UUID, user: User) -> Project:
    """Remove the project and its member set.

    Tasks, activity and join requests keep their project_id and are left
    in place.
    """
    access = await load_access(session, project_id)
    can_manage_project(access, user).enforce()

    project = access.project
    await session.execute(delete(ProjectMember).where(ProjectMember.project_id == project.id))
    await session.delete(project)
    await session.flush()

    log.info("project.deleted", project_id=str(project.id), user_id=str(user.id))
    return project
