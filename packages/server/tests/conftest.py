"""
Shared fixtures: an in-memory SQLite database per test, an in-memory Redis
stand-in for the revocation list, and factories for users, projects, posts and learning tracks.
"""

from __future__ import annotations

import os

os.environ.setdefault("SF_ENVIRONMENT", "test")
os.environ.setdefault("SF_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SF_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")

import time  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

import app.models  # noqa: E402,F401
from app.core import database  # noqa: E402
from app.core.auth import create_access_token, hash_password  # noqa: E402
from app.models.forum import ForumPost  # noqa: E402
from app.models.learning import LearningTrack, Module  # noqa: E402
from app.models.project import Project  # noqa: E402
from app.models.user import User  # noqa: E402
from app.realtime.notifier import notifier  # noqa: E402

TEST_PASSWORD = "Passw0rd!"
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the revocation list and readiness checks."""

    def __init__(self) -> None:
        self.store: dict[str, tuple[str, float]] = {}

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        self.store[key] = (value, time.time() + ttl)
        return True

    async def exists(self, key: str) -> int:
        entry = self.store.get(key)
        return int(entry is not None and entry[1] > time.time())

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        pass


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    fake = FakeRedis()

    async def _get_redis():
        return fake

    monkeypatch.setattr("app.core.auth.get_redis", _get_redis)
    monkeypatch.setattr("app.core.redis.get_redis", _get_redis)
    return fake


@pytest.fixture
async def engine():
    eng = database.build_engine("sqlite+aiosqlite://")
    await database.init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine, monkeypatch):
    """Point every session the app opens at the test database."""
    factory = database.build_session_factory(engine)
    monkeypatch.setattr(database, "async_session_factory", factory)
    return factory


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def sent(monkeypatch):
    """Capture everything the shared notifier emits."""
    server = MagicMock()
    server.emit = AsyncMock()
    monkeypatch.setattr(notifier, "server", server)
    return server.emit


@pytest.fixture
async def client(session_factory, sent):
    from app.main import app

    async def _override_session():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[database.get_session] = _override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


async def _persist(session_factory, obj):
    async with session_factory() as s:
        s.add(obj)
        await s.commit()
        await s.refresh(obj)
    return obj


@pytest.fixture
def make_user(session_factory):
    async def _make(username: str = "alice", role: str = "STUDENT", **fields) -> User:
        user = User(
            email=f"{username}@example.com",
            username=username,
            first_name=username.title(),
            last_name="Tester",
            password_hash=TEST_PASSWORD_HASH,
            role=role,
            **fields,
        )
        return await _persist(session_factory, user)

    return _make


@pytest.fixture
def make_project(session_factory):
    async def _make(author: User, **fields) -> Project:
        values = {
            "title": "Weather dashboard",
            "description": "A dashboard that charts local weather data.",
            "difficulty": "BEGINNER",
            "technology": ["React", "Node.js"],
            "tags": ["charts"],
        }
        values.update(fields)
        return await _persist(session_factory, Project(author_id=author.id, **values))

    return _make


@pytest.fixture
def make_post(session_factory):
    async def _make(author: User, **fields) -> ForumPost:
        values = {
            "title": "How do I debounce input?",
            "content": "My search box fires a request on every keystroke.",
            "category": "javascript",
            "tags": ["react"],
        }
        values.update(fields)
        return await _persist(session_factory, ForumPost(author_id=author.id, **values))

    return _make


@pytest.fixture
def make_track(session_factory):
    async def _make(author: User | None = None, **fields) -> LearningTrack:
        values = {
            "title": "Modern JavaScript",
            "description": "From variables to async iterators.",
            "level": "BEGINNER",
            "duration": "6 weeks",
            "is_published": True,
        }
        values.update(fields)
        track = LearningTrack(author_id=author.id if author else None, **values)
        return await _persist(session_factory, track)

    return _make


@pytest.fixture
def make_module(session_factory):
    async def _make(track: LearningTrack, order: int = 1, **fields) -> Module:
        values = {
            "title": f"Module {order}",
            "description": "A focused lesson with exercises.",
            "duration": 45,
            "content": "## Lesson notes",
        }
        values.update(fields)
        return await _persist(session_factory, Module(track_id=track.id, order=order, **values))

    return _make


@pytest.fixture
def token_for():
    def _token(user: User) -> str:
        token, _ = create_access_token(user.id, user.email, user.role)
        return token

    return _token


@pytest.fixture
def auth_headers(token_for):
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {token_for(user)}"}

    return _headers


@pytest.fixture
def password() -> str:
    """Plain-text password of every user built by ``make_user``."""
    return TEST_PASSWORD
