"""
Database engine, session factory and session scopes.

Production runs on Postgres through asyncpg. Local runs and the test suite
use SQLite through aiosqlite, which needs its own connection arguments: the
driver hands connections across threads, and an in-memory database only
exists for as long as its single connection does.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from app.core.config import get_settings

log = structlog.get_logger()
settings = get_settings()


def engine_options(url: str, *, echo: bool = False) -> dict[str, Any]:
    """Keyword arguments for ``create_async_engine`` suited to the backend in ``url``."""
    parsed = make_url(url)
    options: dict[str, Any] = {"echo": echo}
    if parsed.get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
        if parsed.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
    else:
        options.update(
            pool_pre_ping=True,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
        )
    return options


def build_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    return create_async_engine(url, **engine_options(url, echo=echo))


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Objects stay readable after commit; services return them to routes and notifiers.
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.database_url, echo=settings.debug)
async_session_factory = build_session_factory(engine)


async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    """Create all tables. Used in development and by the test suite."""
    import app.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def ping_database() -> bool:
    """Readiness check: can a session run a trivial query?"""
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        log.warning("db.unavailable")
        return False
    return True


@asynccontextmanager
async def get_session_context():
    """A session that commits on success and rolls back on any error.

    Socket handlers and scripts use this directly; ``get_session`` wraps it
    for FastAPI.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    async with get_session_context() as session:
        yield session
