"""
Tests for the moderation endpoints and the local admin script.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from app.core.auth import verify_password
from app.scripts.create_local_admin import ensure_admin


class TestAdminGuard:
    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, client, make_user, make_project, auth_headers):
        student = await make_user("student")
        project = await make_project(student)

        resp = await client.patch(
            f"/api/admin/projects/{project.id}/feature", headers=auth_headers(student)
        )

        assert resp.status_code == 403
        assert resp.json()["error"]["message"] == "Insufficient permissions"


class TestModeration:
    @pytest.mark.asyncio
    async def test_feature_toggle(self, client, make_user, make_project, auth_headers):
        admin = await make_user("admin", role="ADMIN")
        author = await make_user("author")
        project = await make_project(author)
        url = f"/api/admin/projects/{project.id}/feature"

        first = await client.patch(url, headers=auth_headers(admin))
        second = await client.patch(url, headers=auth_headers(admin))

        assert first.json()["is_featured"] is True
        assert second.json()["is_featured"] is False

    @pytest.mark.asyncio
    async def test_pin_toggle(self, client, make_user, make_post, auth_headers):
        admin = await make_user("admin", role="ADMIN")
        post = await make_post(admin)

        resp = await client.patch(f"/api/admin/posts/{post.id}/pin", headers=auth_headers(admin))

        assert resp.json()["is_pinned"] is True

    @pytest.mark.asyncio
    async def test_change_role(self, client, make_user, auth_headers):
        admin = await make_user("admin", role="ADMIN")
        alice = await make_user("alice")

        resp = await client.patch(
            f"/api/admin/users/{alice.id}/role",
            json={"role": "INSTRUCTOR"},
            headers=auth_headers(admin),
        )

        assert resp.status_code == 200
        assert resp.json()["role"] == "INSTRUCTOR"

    @pytest.mark.asyncio
    async def test_invalid_role(self, client, make_user, auth_headers):
        admin = await make_user("admin", role="ADMIN")
        alice = await make_user("alice")
        resp = await client.patch(
            f"/api/admin/users/{alice.id}/role", json={"role": "OWNER"}, headers=auth_headers(admin)
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_deactivation_drops_sockets_and_locks_out(
        self, client, make_user, auth_headers
    ):
        admin = await make_user("admin", role="ADMIN")
        alice = await make_user("alice")
        alice_headers = auth_headers(alice)

        with patch(
            "app.api.routes.admin.disconnect_user", new=AsyncMock(return_value=2)
        ) as dropped:
            resp = await client.patch(
                f"/api/admin/users/{alice.id}/status",
                json={"is_active": False},
                headers=auth_headers(admin),
            )

        assert resp.status_code == 200
        dropped.assert_awaited_once_with(alice.id)
        assert (await client.get("/api/auth/me", headers=alice_headers)).status_code == 401

    @pytest.mark.asyncio
    async def test_cannot_deactivate_self(self, client, make_user, auth_headers):
        admin = await make_user("admin", role="ADMIN")
        resp = await client.patch(
            f"/api/admin/users/{admin.id}/status",
            json={"is_active": False},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 400


class TestListings:
    @pytest.mark.asyncio
    async def test_users_with_search_role_and_counts(
        self, client, make_user, make_project, auth_headers
    ):
        admin = await make_user("admin", role="ADMIN")
        instructor = await make_user("instructor", role="INSTRUCTOR")
        await make_user("ghost", is_active=False)
        await make_project(instructor)
        await make_project(instructor, is_published=False)
        headers = auth_headers(admin)

        everyone = (await client.get("/api/admin/users", headers=headers)).json()
        instructors = (
            await client.get("/api/admin/users", params={"role": "INSTRUCTOR"}, headers=headers)
        ).json()
        ghosts = (
            await client.get("/api/admin/users", params={"search": "GHO"}, headers=headers)
        ).json()

        assert everyone["pagination"]["total"] == 3
        assert [u["username"] for u in instructors["users"]] == ["instructor"]
        assert instructors["users"][0]["project_count"] == 2
        assert instructors["users"][0]["email"] == "instructor@example.com"
        assert ghosts["users"][0]["is_active"] is False

    @pytest.mark.asyncio
    async def test_users_requires_admin(self, client, make_user, auth_headers):
        instructor = await make_user("instructor", role="INSTRUCTOR")
        resp = await client.get("/api/admin/users", headers=auth_headers(instructor))
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_projects_include_drafts(self, client, make_user, make_project, auth_headers):
        admin = await make_user("admin", role="ADMIN")
        author = await make_user("author")
        await make_project(author, title="Draft chess engine", is_published=False)
        await make_project(author, title="Live todo app", difficulty="ADVANCED")
        headers = auth_headers(admin)

        everything = (await client.get("/api/admin/projects", headers=headers)).json()
        advanced = (
            await client.get(
                "/api/admin/projects", params={"difficulty": "ADVANCED"}, headers=headers
            )
        ).json()
        searched = (
            await client.get("/api/admin/projects", params={"search": "chess"}, headers=headers)
        ).json()

        assert everything["pagination"]["total"] == 2
        assert [p["title"] for p in advanced["projects"]] == ["Live todo app"]
        assert [p["title"] for p in searched["projects"]] == ["Draft chess engine"]

    @pytest.mark.asyncio
    async def test_posts_search_and_filters(self, client, make_user, make_post, auth_headers):
        admin = await make_user("admin", role="ADMIN")
        await make_post(admin, title="Spam about crypto", content="Buy now, limited offer.")
        await make_post(admin, title="Solved closure question", is_solved=True)
        headers = auth_headers(admin)

        spam = (
            await client.get("/api/admin/posts", params={"search": "offer"}, headers=headers)
        ).json()
        solved = (
            await client.get("/api/admin/posts", params={"solved": "true"}, headers=headers)
        ).json()

        assert [p["title"] for p in spam["posts"]] == ["Spam about crypto"]
        assert [p["title"] for p in solved["posts"]] == ["Solved closure question"]


class TestCreateLocalAdmin:
    @pytest.mark.asyncio
    async def test_creates_admin(self, session):
        user, created = await ensure_admin(session, "Root@Example.com", "root", "Adm1n!pass")

        assert created is True
        assert user.role == "ADMIN"
        assert user.email == "root@example.com"
        assert verify_password("Adm1n!pass", user.password_hash)

    @pytest.mark.asyncio
    async def test_promotes_existing_user(self, session, make_user):
        alice = await make_user("alice", is_active=False)

        user, created = await ensure_admin(session, "alice@example.com", "alice", "ignored")

        assert created is False
        assert user.id == alice.id
        assert user.role == "ADMIN"
        assert user.is_active is True
