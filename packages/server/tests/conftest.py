"""
Shared fixtures: an app on a throwaway SQLite file, an HTTP client, and
helpers for creating users and projects through the API.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import Settings
from app.main import create_app
from app.scripts.create_admin import create_admin

PASSWORD = "secret123"


@dataclass
class ApiUser:
    id: str
    username: str
    email: str
    token: str

    @property
    def headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        secret_key="test-secret-key-that-is-long-enough-for-hs256",
        bcrypt_rounds=10,
        upload_dir=str(tmp_path / "uploads"),
        log_level="warning",
        log_format="text",
        rate_limit_requests=0,
    )


@pytest.fixture
async def app(settings):
    application = create_app(settings)
    await application.state.db.init_db()
    yield application
    await application.state.activity.drain()
    await application.state.db.dispose()


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(client):
    """Register a user through the API and return its id and token."""
    counter = {"n": 0}

    async def _make(username: Optional[str] = None, email: Optional[str] = None) -> ApiUser:
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        email = email or f"{username}@example.com"
        resp = await client.post(
            "/api/v1/auth/register",
            json={"username": username, "email": email, "password": PASSWORD},
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        return ApiUser(
            id=data["user"]["id"],
            username=username,
            email=data["user"]["email"],
            token=data["token"],
        )

    return _make


@pytest.fixture
def make_admin(app, client):
    """Create an admin with the management script, then log in."""

    async def _make(email: str = "admin@example.com") -> ApiUser:
        await create_admin(app.state.db, app.state.settings, email, PASSWORD, "admin")
        resp = await client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
        assert resp.status_code == 200, resp.text
        data = resp.json()["data"]
        return ApiUser(
            id=data["user"]["id"], username="admin", email=email, token=data["token"]
        )

    return _make


@pytest.fixture
def make_project(client):
    async def _make(owner: ApiUser, name: str = "Apollo", description: str = "") -> dict:
        resp = await client.post(
            "/api/v1/projects",
            json={"name": name, "description": description},
            headers=owner.headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _make


@pytest.fixture
def add_member(client):
    async def _add(owner: ApiUser, project_id: str, user: ApiUser) -> None:
        resp = await client.patch(
            f"/api/v1/membership/projects/{project_id}/add-member",
            json={"userId": user.id},
            headers=owner.headers,
        )
        assert resp.status_code == 200, resp.text

    return _add


@pytest.fixture
def make_task(client):
    async def _make(user: ApiUser, project_id: str, title: str = "Write docs", **extra) -> dict:
        resp = await client.post(
            "/api/v1/tasks",
            json={"title": title, "projectId": project_id, **extra},
            headers=user.headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _make
