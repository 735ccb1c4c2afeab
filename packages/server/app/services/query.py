"""Small query-building helpers shared by the list/search services."""

from __future__ import annotations

import json
from typing import Any, Sequence

from sqlalchemy import String, cast, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import ValidationError


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contains_ci(column, needle: str):
    """Case-insensitive substring match."""
    return column.ilike(f"%{_escape_like(needle)}%", escape="\\")


def json_array_contains(column, value: str):
    """Exact element match on a JSON list column, portable across Postgres and SQLite."""
    return cast(column, String).like(f"%{_escape_like(json.dumps(value))}%", escape="\\")


def order_column(model, sort_by: str, allowed: Sequence[str], descending: bool):
    if sort_by not in allowed:
        raise ValidationError(f"Cannot sort by '{sort_by}'. Allowed: {list(allowed)}")
    column = getattr(model, sort_by)
    return column.desc() if descending else column.asc()


async def paginate(
    session: AsyncSession, stmt, page: int, limit: int
) -> tuple[list[Any], int]:
    """Run ``stmt`` for one page and count the unpaged result."""
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await session.execute(count_stmt)).scalar_one()
    result = await session.execute(stmt.offset((page - 1) * limit).limit(limit))
    return list(result.scalars().all()), total
