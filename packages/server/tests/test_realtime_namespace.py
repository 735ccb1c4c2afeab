"""
Tests for the SkillForge Socket.IO namespace.

Covers:
- Handshake: accepted connections join personal + shared rooms, refused ones join nothing
- join:room / leave:room through the room policy
- project:like owner notification vs self-like, topic-room update
- project:comment and forum:reply fan-out
- Handler failures reach only the caller as an ``error`` event
- Typing relay, status broadcast, disconnect broadcast
- Dropping all connections of a user
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import socketio
from redis.exceptions import ConnectionError as RedisConnectionError
from socketio import exceptions as sio_exceptions
from sqlalchemy.exc import OperationalError

from app.core.auth import create_access_token
from app.core.errors import StoreError
from app.realtime.namespace import SkillForgeNamespace
from app.realtime.notifier import Notifier
from app.realtime.rooms import forum_room, project_room, typing_room, user_room


@pytest.fixture
def fanout():
    server = MagicMock()
    server.emit = AsyncMock()
    return server


@pytest.fixture
def namespace(session_factory, fanout):
    server = socketio.AsyncServer(async_mode="asgi")
    ns = SkillForgeNamespace("/", notifier=Notifier(fanout))
    server.register_namespace(ns)
    ns.emit = AsyncMock()
    ns.enter_room = AsyncMock()
    ns.leave_room = AsyncMock()
    ns.disconnect = AsyncMock()
    return ns


@pytest.fixture
def connect(namespace, token_for):
    async def _connect(sid: str, user) -> None:
        await namespace.trigger_event("connect", sid, {}, {"token": token_for(user)})

    return _connect


def _fanout_events(fanout) -> list[tuple[str, str]]:
    return [(c.args[0], c.kwargs.get("room")) for c in fanout.emit.await_args_list]


def _errors(namespace, sid: str) -> list[str]:
    return [
        c.args[1]["message"]
        for c in namespace.emit.await_args_list
        if c.args[0] == "error" and c.kwargs.get("to") == sid
    ]


# ---------------------------------------------------------------------------
# Handshake
# ---------------------------------------------------------------------------


class TestConnect:
    @pytest.mark.asyncio
    async def test_accepted_connection_joins_default_rooms(self, namespace, connect, make_user):
        alice = await make_user("alice")

        await connect("sid-a", alice)

        joined = {c.args[1] for c in namespace.enter_room.await_args_list}
        assert joined == {user_room(alice.id), "general", "notifications"}
        assert namespace.registry.get("sid-a").user.id == str(alice.id)

    @pytest.mark.asyncio
    async def test_header_token_is_accepted(self, namespace, make_user, token_for):
        alice = await make_user("alice")
        environ = {"HTTP_AUTHORIZATION": f"Bearer {token_for(alice)}"}

        await namespace.trigger_event("connect", "sid-a", environ, None)

        assert "sid-a" in namespace.registry

    @pytest.mark.asyncio
    async def test_expired_token_refused_before_any_room(self, namespace, make_user):
        alice = await make_user("alice")
        token, _ = create_access_token(
            alice.id, alice.email, alice.role, expires_delta=timedelta(minutes=-1)
        )

        with pytest.raises(sio_exceptions.ConnectionRefusedError):
            await namespace.trigger_event("connect", "sid-a", {}, {"token": token})

        namespace.enter_room.assert_not_awaited()
        assert len(namespace.registry) == 0

    @pytest.mark.asyncio
    async def test_missing_token_refused(self, namespace):
        with pytest.raises(sio_exceptions.ConnectionRefusedError) as exc_info:
            await namespace.trigger_event("connect", "sid-a", {}, None)

        assert "Authentication error" in str(exc_info.value.error_args)
        namespace.enter_room.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "failure",
        [OperationalError("SELECT 1", {}, Exception("db down")), RedisConnectionError("redis down")],
    )
    async def test_store_failure_refuses_connection(self, namespace, make_user, token_for, failure):
        alice = await make_user("alice")

        with patch(
            "app.realtime.namespace.authenticate_handshake", new=AsyncMock(side_effect=failure)
        ):
            with pytest.raises(sio_exceptions.ConnectionRefusedError) as exc_info:
                await namespace.trigger_event("connect", "sid-a", {}, {"token": token_for(alice)})

        assert "Authentication error" in str(exc_info.value.error_args)
        namespace.enter_room.assert_not_awaited()
        assert len(namespace.registry) == 0


# ---------------------------------------------------------------------------
# Rooms
# ---------------------------------------------------------------------------


class TestJoinRoom:
    @pytest.mark.asyncio
    async def test_join_published_project_room(
        self, namespace, connect, make_user, make_project
    ):
        owner = await make_user("owner")
        viewer = await make_user("viewer")
        project = await make_project(owner)
        await connect("sid-v", viewer)
        namespace.enter_room.reset_mock()

        await namespace.trigger_event("join:room", "sid-v", project_room(project.id))

        namespace.enter_room.assert_awaited_once_with("sid-v", project_room(project.id))
        assert project_room(project.id) in namespace.registry.rooms_of("sid-v")

    @pytest.mark.asyncio
    async def test_join_someone_elses_personal_room_denied(self, namespace, connect, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        await connect("sid-a", alice)
        namespace.enter_room.reset_mock()

        await namespace.trigger_event("join:room", "sid-a", user_room(bob.id))

        namespace.enter_room.assert_not_awaited()
        assert _errors(namespace, "sid-a") == ["Not allowed to join room"]

    @pytest.mark.asyncio
    async def test_leave_room(self, namespace, connect, make_user):
        alice = await make_user("alice")
        await connect("sid-a", alice)

        await namespace.trigger_event("leave:room", "sid-a", "general")

        namespace.leave_room.assert_awaited_once_with("sid-a", "general")
        assert "general" not in namespace.registry.rooms_of("sid-a")


# ---------------------------------------------------------------------------
# Interactions
# ---------------------------------------------------------------------------


class TestProjectLike:
    @pytest.mark.asyncio
    async def test_like_notifies_owner_and_room(
        self, namespace, connect, fanout, make_user, make_project
    ):
        owner = await make_user("owner")
        fan = await make_user("fan")
        project = await make_project(owner)
        await connect("sid-owner", owner)
        await connect("sid-fan", fan)

        await namespace.trigger_event("project:like", "sid-fan", {"projectId": str(project.id)})

        events = _fanout_events(fanout)
        assert events.count(("project:liked", user_room(owner.id))) == 1
        assert ("project:like:update", project_room(project.id)) in events

        liked = next(c for c in fanout.emit.await_args_list if c.args[0] == "project:liked")
        assert liked.args[1]["projectTitle"] == project.title
        assert liked.args[1]["user"]["username"] == "fan"
        update = next(c for c in fanout.emit.await_args_list if c.args[0] == "project:like:update")
        assert update.args[1] == {"projectId": str(project.id), "liked": True, "likes": 1}
        assert _errors(namespace, "sid-fan") == []

    @pytest.mark.asyncio
    async def test_unlike_sends_unliked(self, namespace, connect, fanout, make_user, make_project):
        owner = await make_user("owner")
        fan = await make_user("fan")
        project = await make_project(owner)
        await connect("sid-fan", fan)

        await namespace.trigger_event("project:like", "sid-fan", {"projectId": str(project.id)})
        await namespace.trigger_event("project:like", "sid-fan", {"projectId": str(project.id)})

        names = [e for e, _ in _fanout_events(fanout)]
        assert names.count("project:liked") == 1
        assert names.count("project:unliked") == 1
        last = fanout.emit.await_args_list[-1]
        assert last.args[1]["liked"] is False
        assert last.args[1]["likes"] == 0

    @pytest.mark.asyncio
    async def test_self_like_skips_owner_notification(
        self, namespace, connect, fanout, make_user, make_project
    ):
        owner = await make_user("owner")
        project = await make_project(owner)
        await connect("sid-owner", owner)

        await namespace.trigger_event("project:like", "sid-owner", {"projectId": str(project.id)})

        assert _fanout_events(fanout) == [("project:like:update", project_room(project.id))]

    @pytest.mark.asyncio
    async def test_missing_project_reports_to_caller_only(
        self, namespace, connect, fanout, make_user
    ):
        fan = await make_user("fan")
        await connect("sid-fan", fan)

        await namespace.trigger_event("project:like", "sid-fan", {"projectId": str(uuid.uuid4())})

        assert _errors(namespace, "sid-fan") == ["Project not found"]
        fanout.emit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_malformed_payload(self, namespace, connect, fanout, make_user):
        fan = await make_user("fan")
        await connect("sid-fan", fan)

        await namespace.trigger_event("project:like", "sid-fan", {"projectId": "nope"})
        await namespace.trigger_event("project:like", "sid-fan", "not-an-object")

        assert _errors(namespace, "sid-fan") == ["Invalid payload", "Invalid payload"]
        fanout.emit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_failure_is_generic(self, namespace, connect, make_user):
        fan = await make_user("fan")
        await connect("sid-fan", fan)

        with patch(
            "app.services.interactions.toggle_project_like",
            new=AsyncMock(side_effect=StoreError("Failed to like project")),
        ):
            await namespace.trigger_event("project:like", "sid-fan", {"projectId": str(uuid.uuid4())})

        assert _errors(namespace, "sid-fan") == ["Failed to like project"]

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_generic(self, namespace, connect, make_user):
        fan = await make_user("fan")
        await connect("sid-fan", fan)

        with patch(
            "app.services.interactions.toggle_project_like",
            new=AsyncMock(side_effect=RuntimeError("connection reset")),
        ):
            await namespace.trigger_event("project:like", "sid-fan", {"projectId": str(uuid.uuid4())})

        assert _errors(namespace, "sid-fan") == ["Failed to like project"]


class TestProjectComment:
    @pytest.mark.asyncio
    async def test_comment_fans_out(self, namespace, connect, fanout, make_user, make_project):
        owner = await make_user("owner")
        critic = await make_user("critic")
        project = await make_project(owner)
        await connect("sid-critic", critic)

        await namespace.trigger_event(
            "project:comment", "sid-critic", {"projectId": str(project.id), "content": " Great! "}
        )

        events = _fanout_events(fanout)
        assert ("project:commented", user_room(owner.id)) in events
        new = next(c for c in fanout.emit.await_args_list if c.args[0] == "project:comment:new")
        assert new.kwargs["room"] == project_room(project.id)
        assert new.args[1]["content"] == "Great!"
        assert new.args[1]["user"]["username"] == "critic"

    @pytest.mark.asyncio
    async def test_blank_comment_rejected(self, namespace, connect, fanout, make_user, make_project):
        owner = await make_user("owner")
        project = await make_project(owner)
        await connect("sid-owner", owner)

        await namespace.trigger_event(
            "project:comment", "sid-owner", {"projectId": str(project.id), "content": "   "}
        )

        assert _errors(namespace, "sid-owner") == ["Comment content is required"]
        fanout.emit.assert_not_awaited()


class TestForumReply:
    @pytest.mark.asyncio
    async def test_reply_fans_out(self, namespace, connect, fanout, make_user, make_post):
        asker = await make_user("asker")
        helper = await make_user("helper")
        post = await make_post(asker)
        await connect("sid-helper", helper)

        await namespace.trigger_event(
            "forum:reply", "sid-helper", {"postId": str(post.id), "content": "Try useDeferredValue"}
        )

        events = _fanout_events(fanout)
        assert ("forum:replied", user_room(asker.id)) in events
        assert ("forum:reply:new", forum_room(post.id)) in events
        replied = next(c for c in fanout.emit.await_args_list if c.args[0] == "forum:replied")
        assert replied.args[1]["postTitle"] == post.title
        assert replied.args[1]["reply"]["content"] == "Try useDeferredValue"

    @pytest.mark.asyncio
    async def test_missing_post(self, namespace, connect, make_user):
        helper = await make_user("helper")
        await connect("sid-helper", helper)

        await namespace.trigger_event(
            "forum:reply", "sid-helper", {"postId": str(uuid.uuid4()), "content": "hi"}
        )

        assert _errors(namespace, "sid-helper") == ["Forum post not found"]


# ---------------------------------------------------------------------------
# Presence
# ---------------------------------------------------------------------------


class TestPresence:
    @pytest.mark.asyncio
    async def test_typing_relayed_to_typing_room_without_sender(
        self, namespace, connect, make_user
    ):
        alice = await make_user("alice")
        await connect("sid-a", alice)
        namespace.emit.reset_mock()

        await namespace.trigger_event("typing:start", "sid-a", {"type": "project", "id": "p1"})
        await namespace.trigger_event("typing:stop", "sid-a", {"type": "project", "id": "p1"})

        start, stop = namespace.emit.await_args_list
        assert start.args[0] == "typing:start"
        assert start.args[1]["user"]["username"] == "alice"
        assert start.kwargs == {"room": typing_room("project", "p1"), "skip_sid": "sid-a"}
        assert stop.args[0] == "typing:stop"

    @pytest.mark.asyncio
    async def test_status_broadcast_skips_sender(self, namespace, connect, make_user):
        alice = await make_user("alice")
        await connect("sid-a", alice)
        namespace.emit.reset_mock()

        await namespace.trigger_event("status:update", "sid-a", {"status": "away"})

        namespace.emit.assert_awaited_once()
        call = namespace.emit.await_args
        assert call.args[0] == "user:status"
        assert call.args[1]["userId"] == str(alice.id)
        assert call.args[1]["status"] == "away"
        assert call.kwargs == {"skip_sid": "sid-a"}

    @pytest.mark.asyncio
    async def test_disconnect_broadcasts_offline(self, namespace, connect, make_user):
        alice = await make_user("alice")
        await connect("sid-a", alice)
        namespace.emit.reset_mock()

        await namespace.trigger_event("disconnect", "sid-a", "transport close")

        call = namespace.emit.await_args
        assert call.args[0] == "user:offline"
        assert call.args[1]["userId"] == str(alice.id)
        assert call.args[1]["reason"] == "transport close"
        assert call.kwargs == {"skip_sid": "sid-a"}
        assert len(namespace.registry) == 0

    @pytest.mark.asyncio
    async def test_unknown_sid_disconnect_is_quiet(self, namespace):
        await namespace.trigger_event("disconnect", "sid-x", "transport close")
        namespace.emit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_events_from_unregistered_sid_rejected(self, namespace, fanout):
        await namespace.trigger_event("project:like", "sid-x", {"projectId": str(uuid.uuid4())})

        assert _errors(namespace, "sid-x") == ["Not authenticated"]
        fanout.emit.assert_not_awaited()


class TestDisconnectUser:
    @pytest.mark.asyncio
    async def test_drops_every_tab(self, namespace, connect, make_user):
        alice = await make_user("alice")
        bob = await make_user("bob")
        await connect("sid-a1", alice)
        await connect("sid-a2", alice)
        await connect("sid-b", bob)

        dropped = await namespace.disconnect_user(str(alice.id))

        assert dropped == 2
        assert {c.args[0] for c in namespace.disconnect.await_args_list} == {"sid-a1", "sid-a2"}
