"""
Tests for the community forum endpoints.
"""

from __future__ import annotations

import uuid
from datetime import timedelta

import pytest
from sqlmodel import select

from app.models.base import utcnow
from app.models.forum import ForumPost, ForumReply
from app.realtime.rooms import forum_room, user_room

NEW_POST = {
    "title": "Why is my useEffect looping?",
    "content": "The effect re-runs on every render and I cannot see why.",
    "category": "react",
    "tags": ["hooks", "react"],
}


async def _reply(client, headers, post_id, content, parent_id=None):
    body = {"content": content}
    if parent_id:
        body["parent_id"] = parent_id
    resp = await client.post(f"/api/community/posts/{post_id}/replies", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestPosts:
    @pytest.mark.asyncio
    async def test_pinned_first(self, client, make_user, make_post):
        author = await make_user("author")
        await make_post(author, title="Older pinned post", is_pinned=True)
        await make_post(author, title="Newest regular post")

        resp = await client.get("/api/community/posts")

        titles = [p["title"] for p in resp.json()["posts"]]
        assert titles == ["Older pinned post", "Newest regular post"]

    @pytest.mark.asyncio
    async def test_filters(self, client, make_user, make_post):
        author = await make_user("author")
        await make_post(author, title="Solved python thing", category="python", is_solved=True)
        await make_post(author, title="Open python thing", category="python")
        await make_post(author, title="Open react thing", category="react")

        solved = (await client.get("/api/community/posts", params={"solved": "true"})).json()
        python = (await client.get("/api/community/posts", params={"category": "python"})).json()

        assert [p["title"] for p in solved["posts"]] == ["Solved python thing"]
        assert python["pagination"]["total"] == 2

    @pytest.mark.asyncio
    async def test_create_update_delete(self, client, make_user, auth_headers):
        author = await make_user("author")
        intruder = await make_user("intruder")
        headers = auth_headers(author)

        created = await client.post("/api/community/posts", json=NEW_POST, headers=headers)
        assert created.status_code == 201
        post_id = created.json()["id"]
        assert created.json()["author"]["username"] == "author"

        denied = await client.put(
            f"/api/community/posts/{post_id}", json=NEW_POST, headers=auth_headers(intruder)
        )
        assert denied.status_code == 404

        updated = await client.put(
            f"/api/community/posts/{post_id}",
            json={**NEW_POST, "category": "javascript"},
            headers=headers,
        )
        assert updated.json()["category"] == "javascript"

        deleted = await client.delete(f"/api/community/posts/{post_id}", headers=headers)
        assert deleted.status_code == 200
        assert (await client.get(f"/api/community/posts/{post_id}")).status_code == 404

    @pytest.mark.asyncio
    async def test_create_validation(self, client, make_user, auth_headers):
        author = await make_user("author")
        resp = await client.post(
            "/api/community/posts", json={**NEW_POST, "content": "short"}, headers=auth_headers(author)
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_solve_author_only(self, client, make_user, make_post, auth_headers):
        author = await make_user("author")
        helper = await make_user("helper")
        post = await make_post(author)

        denied = await client.patch(
            f"/api/community/posts/{post.id}/solve", headers=auth_headers(helper)
        )
        assert denied.status_code == 404

        resp = await client.patch(f"/api/community/posts/{post.id}/solve", headers=auth_headers(author))
        assert resp.status_code == 200
        assert resp.json()["is_solved"] is True


class TestThread:
    @pytest.mark.asyncio
    async def test_thread_nests_replies_and_counts_views(
        self, client, make_user, make_post, auth_headers
    ):
        author = await make_user("author")
        helper = await make_user("helper")
        post = await make_post(author)
        headers = auth_headers(helper)

        top = await _reply(client, headers, post.id, "Check the dependency array")
        await _reply(client, headers, post.id, "It holds an object literal", parent_id=top["id"])
        await _reply(client, auth_headers(author), post.id, "Thanks, fixed!")

        thread = (await client.get(f"/api/community/posts/{post.id}")).json()

        assert thread["post"]["views"] == 1
        assert thread["post"]["replies"] == 3
        assert [r["content"] for r in thread["replies"]] == [
            "Check the dependency array",
            "Thanks, fixed!",
        ]
        assert [c["content"] for c in thread["replies"][0]["children"]] == [
            "It holds an object literal"
        ]
        assert thread["replies"][0]["user"]["username"] == "helper"

    @pytest.mark.asyncio
    async def test_reply_to_reply_keeps_its_parent_and_shows_under_top_level(
        self, client, sent, make_user, make_post, auth_headers
    ):
        author = await make_user("author")
        post = await make_post(author)
        headers = auth_headers(author)
        top = await _reply(client, headers, post.id, "top level")
        child = await _reply(client, headers, post.id, "child", parent_id=top["id"])
        sent.reset_mock()

        grandchild = await _reply(client, headers, post.id, "grandchild", parent_id=child["id"])

        assert grandchild["parent_id"] == child["id"]
        broadcast = [c for c in sent.await_args_list if c.args[0] == "forum:reply:new"]
        assert broadcast[0].args[1]["parent_id"] == child["id"]
        thread = (await client.get(f"/api/community/posts/{post.id}")).json()
        assert [r["content"] for r in thread["replies"]] == ["top level"]
        assert [c["content"] for c in thread["replies"][0]["children"]] == ["child", "grandchild"]

    @pytest.mark.asyncio
    async def test_missing_post(self, client):
        resp = await client.get(f"/api/community/posts/{uuid.uuid4()}")
        assert resp.status_code == 404


class TestReplies:
    @pytest.mark.asyncio
    async def test_reply_fans_out(self, client, sent, make_user, make_post, auth_headers):
        author = await make_user("author")
        helper = await make_user("helper")
        post = await make_post(author)

        await _reply(client, auth_headers(helper), post.id, "Use a ref")

        rooms = [(c.args[0], c.kwargs["room"]) for c in sent.await_args_list]
        assert rooms == [
            ("forum:replied", user_room(author.id)),
            ("forum:reply:new", forum_room(post.id)),
        ]

    @pytest.mark.asyncio
    async def test_blank_reply(self, client, sent, make_user, make_post, auth_headers):
        author = await make_user("author")
        post = await make_post(author)

        resp = await client.post(
            f"/api/community/posts/{post.id}/replies",
            json={"content": "  "},
            headers=auth_headers(author),
        )

        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Reply content is required"
        sent.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_edit_reply(self, client, make_user, make_post, auth_headers):
        author = await make_user("author")
        other = await make_user("other")
        post = await make_post(author)
        reply = await _reply(client, auth_headers(author), post.id, "first draft")

        denied = await client.put(
            f"/api/community/replies/{reply['id']}",
            json={"content": "hijacked"},
            headers=auth_headers(other),
        )
        assert denied.status_code == 404

        resp = await client.put(
            f"/api/community/replies/{reply['id']}",
            json={"content": "second draft"},
            headers=auth_headers(author),
        )
        assert resp.json()["content"] == "second draft"

    @pytest.mark.asyncio
    async def test_delete_reply_decrements_counter(
        self, client, session, make_user, make_post, auth_headers
    ):
        author = await make_user("author")
        post = await make_post(author)
        headers = auth_headers(author)
        top = await _reply(client, headers, post.id, "top level")
        await _reply(client, headers, post.id, "child", parent_id=top["id"])
        await _reply(client, headers, post.id, "another top level")

        resp = await client.delete(f"/api/community/replies/{top['id']}", headers=headers)
        assert resp.status_code == 200

        stored = await session.get(ForumPost, post.id)
        assert stored.replies == 1
        thread = (await client.get(f"/api/community/posts/{post.id}")).json()
        assert [r["content"] for r in thread["replies"]] == ["another top level"]

    @pytest.mark.asyncio
    async def test_delete_reply_removes_whole_subtree(
        self, client, session, make_user, make_post, auth_headers
    ):
        author = await make_user("author")
        post = await make_post(author)
        headers = auth_headers(author)
        top = await _reply(client, headers, post.id, "top level")
        child = await _reply(client, headers, post.id, "child", parent_id=top["id"])
        await _reply(client, headers, post.id, "grandchild", parent_id=child["id"])

        resp = await client.delete(f"/api/community/replies/{top['id']}", headers=headers)
        assert resp.status_code == 200

        stored = await session.get(ForumPost, post.id)
        await session.refresh(stored)
        assert stored.replies == 0
        remaining = (
            await session.execute(select(ForumReply).where(ForumReply.post_id == post.id))
        ).all()
        assert remaining == []


class TestDiscovery:
    @pytest.mark.asyncio
    async def test_categories(self, client, make_user, make_post):
        author = await make_user("author")
        for category in ("python", "react", "python"):
            await make_post(author, category=category)

        resp = await client.get("/api/community/categories")

        assert resp.json() == [{"name": "python", "count": 2}, {"name": "react", "count": 1}]

    @pytest.mark.asyncio
    async def test_search(self, client, make_user, make_post):
        author = await make_user("author")
        await make_post(author, title="Async generators explained", tags=["python"])
        await make_post(author, title="CSS grid basics", content="Laying out a page with GRID areas.")

        by_text = (await client.get("/api/community/search", params={"q": "grid"})).json()
        by_tag = (await client.get("/api/community/search", params={"q": "python"})).json()

        assert [p["title"] for p in by_text["posts"]] == ["CSS grid basics"]
        assert [p["title"] for p in by_tag["posts"]] == ["Async generators explained"]

    @pytest.mark.asyncio
    async def test_trending_window_and_order(self, client, make_user, make_post):
        author = await make_user("author")
        await make_post(author, title="Old but popular", likes=100, created_at=utcnow() - timedelta(days=10))
        await make_post(author, title="Fresh and liked", likes=5, views=1)
        await make_post(author, title="Fresh and viewed", likes=5, views=50)
        await make_post(author, title="Fresh and quiet")

        resp = await client.get("/api/community/trending")

        assert [p["title"] for p in resp.json()["posts"]] == [
            "Fresh and viewed",
            "Fresh and liked",
            "Fresh and quiet",
        ]
