"""
SkillForge API Server

Entry point for the FastAPI application and the Socket.IO server wrapped
around it. Run with ``uvicorn app.main:asgi_app``.
"""

import socketio
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from app.core import database
from app.core.config import get_settings
from app.core.errors import register_error_handlers
from app.core.logging_config import configure_logging
from app.core.middleware import RequestContextMiddleware, SecurityHeadersMiddleware
from app.core.redis import close_redis, ping_redis
from app.api.routes import router as api_router
from app.realtime.server import create_socket_server

settings = get_settings()
log = structlog.get_logger()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="SkillForge",
        description="Project showcase and community forum API with real-time interactions.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Middleware (order matters: the last added is outermost)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )

    register_error_handlers(app)
    app.include_router(api_router, prefix="/api")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Liveness check."""
        return {"status": "ok", "environment": settings.environment}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check: database and Redis must both answer."""
        checks = {"database": await database.ping_database(), "redis": await ping_redis()}

        ready = all(checks.values())
        return JSONResponse(
            status_code=200 if ready else 503,
            content={"status": "ready" if ready else "unavailable", "checks": checks},
        )

    @app.on_event("startup")
    async def on_startup():
        configure_logging(settings.log_level, settings.log_format)
        if settings.environment == "development":
            await database.init_db()
        log.info("skillforge.starting", environment=settings.environment, port=settings.port)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("skillforge.shutting_down")
        await close_redis()

    return app


app = create_app()
sio = create_socket_server(settings)
asgi_app = socketio.ASGIApp(sio, other_asgi_app=app)
