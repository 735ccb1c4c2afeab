"""
Domain error taxonomy and the HTTP rendering of it.

REST handlers raise these and the registered exception handler turns them
into ``{"error": {"code", "message", "status"}}`` bodies. Socket handlers
catch them and emit an ``error`` event to the caller only.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

log = structlog.get_logger()


class SkillForgeError(Exception):
    code = "ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationError(SkillForgeError):
    code = "AUTHENTICATION_FAILED"
    status_code = 401


class PermissionDeniedError(SkillForgeError):
    code = "PERMISSION_DENIED"
    status_code = 403


class ValidationError(SkillForgeError):
    code = "VALIDATION_FAILED"
    status_code = 400


class NotFoundError(SkillForgeError):
    code = "NOT_FOUND"
    status_code = 404


class ConflictError(SkillForgeError):
    code = "CONFLICT"
    status_code = 409


class StoreError(SkillForgeError):
    """A persistence failure. The message is safe to show to callers."""

    code = "STORE_ERROR"
    status_code = 500


def error_body(code: str, message: str, status: int) -> dict:
    return {"error": {"code": code, "message": message, "status": status}}


async def _skillforge_error_handler(request: Request, exc: SkillForgeError) -> JSONResponse:
    if isinstance(exc, StoreError):
        log.error("request.store_error", path=request.url.path, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.code, exc.message, exc.status_code),
    )


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        messages.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", ""))
    return JSONResponse(
        status_code=400,
        content=error_body("VALIDATION_FAILED", ", ".join(messages), 400),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SkillForgeError, _skillforge_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
