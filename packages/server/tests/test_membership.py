"""
Integration tests for the membership workflow: join requests and direct
add/remove of project members.
"""

from __future__ import annotations

import uuid

import pytest
from sqlmodel import select

from app.models.join_request import JoinRequest
from app.models.project import ProjectMember


def _base(project_id: str) -> str:
    return f"/api/v1/membership/projects/{project_id}"


async def _member_ids(client, owner, project_id) -> list[str]:
    resp = await client.get(f"/api/v1/projects/{project_id}", headers=owner.headers)
    return [m["id"] for m in resp.json()["data"]["members"]]


class TestJoinRequests:
    async def test_join_approve_and_request_again(self, client, make_user, make_project):
        """A joins, owner approves, A is a member and cannot request again."""
        owner = await make_user("owner")
        alice = await make_user("alice")
        project = await make_project(owner)

        resp = await client.post(f"{_base(project['id'])}/join-request", headers=alice.headers)
        assert resp.status_code == 201
        request = resp.json()["data"]
        assert request["status"] == "pending"
        assert request["userId"] == alice.id

        resp = await client.patch(
            f"{_base(project['id'])}/join-requests/{request['id']}",
            json={"action": "approve"},
            headers=owner.headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "approved"
        assert alice.id in await _member_ids(client, owner, project["id"])

        resp = await client.post(f"{_base(project['id'])}/join-request", headers=alice.headers)
        assert resp.status_code == 400
        assert resp.json()["message"] == "You are already a member of this project"

    async def test_duplicate_pending_request(self, app, client, make_user, make_project):
        owner = await make_user()
        alice = await make_user()
        project = await make_project(owner)

        first = await client.post(f"{_base(project['id'])}/join-request", headers=alice.headers)
        second = await client.post(f"{_base(project['id'])}/join-request", headers=alice.headers)
        assert first.status_code == 201
        assert second.status_code == 400
        assert second.json()["message"] == "Join request already pending"

        async with app.state.db.session() as session:
            rows = await session.execute(
                select(JoinRequest).where(JoinRequest.project_id == uuid.UUID(project["id"]))
            )
            assert len(rows.scalars().all()) == 1

    async def test_can_request_again_after_rejection(self, client, make_user, make_project):
        owner = await make_user()
        alice = await make_user()
        project = await make_project(owner)

        req = (await client.post(f"{_base(project['id'])}/join-request", headers=alice.headers)).json()["data"]
        resp = await client.patch(
            f"{_base(project['id'])}/join-requests/{req['id']}",
            json={"action": "reject"},
            headers=owner.headers,
        )
        assert resp.json()["data"]["status"] == "rejected"
        assert alice.id not in await _member_ids(client, owner, project["id"])

        again = await client.post(f"{_base(project['id'])}/join-request", headers=alice.headers)
        assert again.status_code == 201

    async def test_owner_cannot_request(self, client, make_user, make_project):
        owner = await make_user()
        project = await make_project(owner)
        resp = await client.post(f"{_base(project['id'])}/join-request", headers=owner.headers)
        assert resp.status_code == 400

    async def test_request_missing_project(self, client, make_user):
        alice = await make_user()
        resp = await client.post(f"{_base(str(uuid.uuid4()))}/join-request", headers=alice.headers)
        assert resp.status_code == 404

    async def test_list_pending_for_owner(self, client, make_user, make_project):
        owner = await make_user()
        alice = await make_user("alice")
        bob = await make_user("bob")
        project = await make_project(owner)
        await client.post(f"{_base(project['id'])}/join-request", headers=alice.headers)
        await client.post(f"{_base(project['id'])}/join-request", headers=bob.headers)

        resp = await client.get(f"{_base(project['id'])}/join-requests", headers=owner.headers)
        assert resp.status_code == 200
        assert [r["user"]["username"] for r in resp.json()["data"]] == ["alice", "bob"]

        resp = await client.get(f"{_base(project['id'])}/join-requests", headers=alice.headers)
        assert resp.status_code == 403


class TestHandleJoinRequest:
    @pytest.fixture
    async def pending(self, client, make_user, make_project):
        owner = await make_user("owner")
        alice = await make_user("alice")
        project = await make_project(owner)
        resp = await client.post(f"{_base(project['id'])}/join-request", headers=alice.headers)
        return owner, alice, project, resp.json()["data"]

    async def test_invalid_action(self, client, pending):
        owner, _, project, req = pending
        resp = await client.patch(
            f"{_base(project['id'])}/join-requests/{req['id']}",
            json={"action": "maybe"},
            headers=owner.headers,
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid action"

    async def test_already_processed(self, client, pending):
        owner, _, project, req = pending
        url = f"{_base(project['id'])}/join-requests/{req['id']}"
        await client.patch(url, json={"action": "approve"}, headers=owner.headers)
        resp = await client.patch(url, json={"action": "reject"}, headers=owner.headers)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Request already processed"

    async def test_request_from_another_project(self, client, make_project, pending):
        owner, _, _, req = pending
        other = await make_project(owner, "Other")
        resp = await client.patch(
            f"{_base(other['id'])}/join-requests/{req['id']}",
            json={"action": "approve"},
            headers=owner.headers,
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "Request does not belong to this project"

    async def test_non_owner_cannot_handle(self, client, pending):
        _, alice, project, req = pending
        resp = await client.patch(
            f"{_base(project['id'])}/join-requests/{req['id']}",
            json={"action": "approve"},
            headers=alice.headers,
        )
        assert resp.status_code == 403

    async def test_unknown_request(self, client, pending):
        owner, _, project, _ = pending
        resp = await client.patch(
            f"{_base(project['id'])}/join-requests/{uuid.uuid4()}",
            json={"action": "approve"},
            headers=owner.headers,
        )
        assert resp.status_code == 404

    async def test_approve_when_already_member_keeps_one_row(self, app, client, add_member, pending):
        owner, alice, project, req = pending
        await add_member(owner, project["id"], alice)
        resp = await client.patch(
            f"{_base(project['id'])}/join-requests/{req['id']}",
            json={"action": "approve"},
            headers=owner.headers,
        )
        assert resp.status_code == 200
        async with app.state.db.session() as session:
            rows = await session.execute(
                select(ProjectMember).where(
                    ProjectMember.project_id == uuid.UUID(project["id"]),
                    ProjectMember.user_id == uuid.UUID(alice.id),
                )
            )
            assert len(rows.scalars().all()) == 1

    async def test_admin_can_approve(self, client, make_admin, pending):
        _, alice, project, req = pending
        admin = await make_admin()
        resp = await client.patch(
            f"{_base(project['id'])}/join-requests/{req['id']}",
            json={"action": "approve"},
            headers=admin.headers,
        )
        assert resp.status_code == 200


class TestDirectMembership:
    async def test_add_member(self, client, make_user, make_project):
        owner = await make_user()
        bob = await make_user("bob")
        project = await make_project(owner)
        resp = await client.patch(
            f"{_base(project['id'])}/add-member", json={"userId": bob.id}, headers=owner.headers
        )
        assert resp.status_code == 200
        assert bob.id in [m["id"] for m in resp.json()["data"]["members"]]

    async def test_add_existing_member(self, client, make_user, make_project, add_member):
        owner = await make_user()
        bob = await make_user()
        project = await make_project(owner)
        await add_member(owner, project["id"], bob)
        resp = await client.patch(
            f"{_base(project['id'])}/add-member", json={"userId": bob.id}, headers=owner.headers
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "User is already a member of this project"

    async def test_add_owner_again(self, client, make_user, make_project):
        owner = await make_user()
        project = await make_project(owner)
        resp = await client.patch(
            f"{_base(project['id'])}/add-member", json={"userId": owner.id}, headers=owner.headers
        )
        assert resp.status_code == 400

    async def test_add_unknown_user(self, client, make_user, make_project):
        owner = await make_user()
        project = await make_project(owner)
        resp = await client.patch(
            f"{_base(project['id'])}/add-member",
            json={"userId": str(uuid.uuid4())},
            headers=owner.headers,
        )
        assert resp.status_code == 404

    async def test_add_requires_user_id(self, client, make_user, make_project):
        owner = await make_user()
        project = await make_project(owner)
        resp = await client.patch(f"{_base(project['id'])}/add-member", json={}, headers=owner.headers)
        assert resp.status_code == 400

    async def test_member_cannot_add(self, client, make_user, make_project, add_member):
        owner = await make_user()
        bob = await make_user()
        carol = await make_user()
        project = await make_project(owner)
        await add_member(owner, project["id"], bob)
        resp = await client.patch(
            f"{_base(project['id'])}/add-member", json={"userId": carol.id}, headers=bob.headers
        )
        assert resp.status_code == 403

    async def test_remove_member(self, client, make_user, make_project, add_member):
        owner = await make_user()
        bob = await make_user()
        project = await make_project(owner)
        await add_member(owner, project["id"], bob)
        resp = await client.patch(
            f"{_base(project['id'])}/remove-member", json={"userId": bob.id}, headers=owner.headers
        )
        assert resp.status_code == 200
        assert [m["id"] for m in resp.json()["data"]["members"]] == [owner.id]

    async def test_remove_non_member(self, client, make_user, make_project):
        owner = await make_user()
        bob = await make_user()
        project = await make_project(owner)
        resp = await client.patch(
            f"{_base(project['id'])}/remove-member", json={"userId": bob.id}, headers=owner.headers
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "User is not a member of this project"

    async def test_owner_can_never_be_removed(self, client, make_user, make_admin, make_project):
        owner = await make_user()
        admin = await make_admin()
        project = await make_project(owner)
        for caller in (owner, admin):
            resp = await client.patch(
                f"{_base(project['id'])}/remove-member",
                json={"userId": owner.id},
                headers=caller.headers,
            )
            assert resp.status_code == 400
            assert resp.json()["message"] == "Owner cannot be removed from the project"
        assert owner.id in await _member_ids(client, owner, project["id"])

    async def test_membership_changes_record_activity(self, app, client, make_user, make_project):
        owner = await make_user()
        bob = await make_user("bob")
        project = await make_project(owner)
        await client.patch(
            f"{_base(project['id'])}/add-member", json={"userId": bob.id}, headers=owner.headers
        )
        await app.state.activity.drain()
        resp = await client.get(f"/api/v1/projects/{project['id']}/activity", headers=owner.headers)
        assert resp.json()["data"][0]["action"] == "added member: bob"
