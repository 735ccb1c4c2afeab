"""
Health, readiness and API index tests.
"""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Health endpoint should return status ok."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "environment": "test"}


@pytest.mark.asyncio
async def test_ready_check(client: AsyncClient):
    """Ready when both the database and Redis answer."""
    response = await client.get("/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready", "checks": {"database": True, "redis": True}}


@pytest.mark.asyncio
async def test_not_ready_without_redis(client: AsyncClient):
    with patch("app.main.ping_redis", new=AsyncMock(return_value=False)):
        response = await client.get("/ready")
    assert response.status_code == 503
    assert response.json()["checks"] == {"database": True, "redis": False}


@pytest.mark.asyncio
async def test_api_root(client: AsyncClient):
    """API root should return version and endpoint list."""
    response = await client.get("/api/")
    assert response.status_code == 200
    data = response.json()
    assert data["api"] == "skillforge"
    assert "/projects" in data["endpoints"]


def test_socketio_wraps_fastapi():
    import socketio

    from app.main import app, asgi_app

    assert isinstance(asgi_app, socketio.ASGIApp)
    assert asgi_app.other_asgi_app is app
