"""
Authentication endpoints.

- Email/password registration & login (stateless bearer JWT)
- Per-user dashboard statistics
- User lookup by email (used when adding members)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_app_settings, get_current_user
from app.core.config import Settings
from app.core.database import get_session
from app.models.user import User
from app.services import users as user_service
from taskhub_shared.schemas.common import APIResponse
from taskhub_shared.schemas.users import (
    AuthPayload,
    DashboardStats,
    LoginRequest,
    RegisterRequest,
    UserSummary,
)

router = APIRouter()


@router.post("/register", response_model=APIResponse[AuthPayload], status_code=201)
async def register(
    body: RegisterRequest,
    settings: Settings = Depends(get_app_settings),
    session: AsyncSession = Depends(get_session),
):
    payload = await user_service.register(session, body, settings)
    await session.commit()
    return APIResponse[AuthPayload](data=payload)


@router.post("/login", response_model=APIResponse[AuthPayload])
async def login(
    body: LoginRequest,
    settings: Settings = Depends(get_app_settings),
    session: AsyncSession = Depends(get_session),
):
    payload = await user_service.login(session, body, settings)
    return APIResponse[AuthPayload](data=payload)


@router.get("/dashboard/stats", response_model=APIResponse[DashboardStats])
async def dashboard_stats(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    stats = await user_service.dashboard_stats(session, user.id)
    return APIResponse[DashboardStats](data=stats)


@router.get("/by-email", response_model=APIResponse[UserSummary])
async def get_user_by_email(
    email: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    found = await user_service.get_user_by_email(session, email)
    return APIResponse[UserSummary](data=user_service.to_summary(found))
