"""Domain exceptions and their HTTP mapping.

Handlers and services raise these; the exception handlers registered by
register_exception_handlers() turn them into ``{"error": ...}`` JSON bodies
with the status code each class declares. HTTPException and request
validation errors are rendered in the same shape so clients see one error
format across the API.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger(__name__)


class PodflowError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, reason: str | None = None, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason
        self.extra = extra

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.reason:
            body["reason"] = self.reason
        body.update(self.extra)
        return body


class ValidationFailed(PodflowError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotAuthenticated(PodflowError):
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDenied(PodflowError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(PodflowError):
    """Missing resource. Also used for rows owned by another organization."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(PodflowError):
    status_code = status.HTTP_409_CONFLICT


class QuotaExceededError(PodflowError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class IntegrationError(PodflowError):
    """A third-party API (YouTube, Megaphone) failed or returned garbage."""

    status_code = status.HTTP_502_BAD_GATEWAY


class TenantQueryError(PodflowError):
    """A tenant-schema query failed on a write path."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, category: str = "other", organization_slug: str | None = None) -> None:
        super().__init__(message)
        self.category = category
        self.organization_slug = organization_slug

    def to_body(self) -> dict[str, Any]:
        # Driver messages can name tables and columns; keep them in the logs
        return {"error": "Internal server error"}


# ── Exception Handlers ──────────────────────────────────────────────────────


async def _podflow_error_handler(request: Request, exc: PodflowError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "request_failed",
            path=request.url.path,
            error=exc.message,
            error_type=type(exc).__name__,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        fields.append({"field": ".".join(loc), "message": err.get("msg", "invalid value")})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validation failed", "fields": fields},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the JSON error handlers on ``app``."""
    app.add_exception_handler(PodflowError, _podflow_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
