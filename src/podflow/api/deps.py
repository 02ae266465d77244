"""FastAPI dependency injection for authentication, roles and app-state services.

Repositories and clients are built once in the application lifespan and
stored on ``app.state``; handlers fetch them through the getters below so
tests can put in-memory doubles in their place.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from fastapi import Depends, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError

from src.podflow.config import Settings, get_settings
from src.podflow.core.permissions import Capability, has_capability
from src.podflow.core.tenant import TenantContext, set_tenant_context

ModelT = TypeVar("ModelT", bound=BaseModel)


def get_state(request: Request, name: str, label: str) -> Any:
    """Retrieve a service from app.state, 503 if not available."""
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} not initialized",
        )
    return service


def get_settings_dep(request: Request) -> Settings:
    """Settings placed on app.state at startup, falling back to the cached instance."""
    return getattr(request.app.state, "settings", None) or get_settings()


def _extract_token(request: Request, settings: Settings) -> str | None:
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if token:
        return token
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]
    return None


async def get_current_user(
    request: Request,
    settings: Settings = Depends(get_settings_dep),
) -> TenantContext:
    """Resolve the session token into the request's TenantContext.

    Reads the ``auth-token`` cookie, then an ``Authorization: Bearer``
    header. The resolved context is also stored on ``request.state`` for
    the logging middleware.

    Raises:
        HTTPException(401): no token, or the session is no longer valid.
    """
    token = _extract_token(request, settings)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    auth_service = get_state(request, "auth_service", "Authentication")
    tenant = await auth_service.resolve(token)
    request.state.tenant = tenant
    set_tenant_context(tenant)
    return tenant


async def get_tenant(tenant: TenantContext = Depends(get_current_user)) -> TenantContext:
    """The authenticated organization context."""
    return tenant


def require(capability: Capability) -> Callable[..., Any]:
    """Dependency factory: 403 unless the caller's role holds ``capability``."""

    async def _check(tenant: TenantContext = Depends(get_current_user)) -> TenantContext:
        if not has_capability(tenant.role, capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return tenant

    return _check


async def parse_body(request: Request, model: type[ModelT]) -> ModelT:
    """Decode and validate the JSON body inside the handler.

    FastAPI decodes a declared body parameter before any dependency runs.
    Routes whose role check must answer first, whatever the payload, read
    the body through this helper instead. Failures render like any other
    request validation error.
    """
    try:
        payload = await request.json()
    except ValueError as exc:
        raise RequestValidationError(
            [{"type": "json_invalid", "loc": ("body",), "msg": "JSON decode error", "input": {}}]
        ) from exc
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False)) from exc
