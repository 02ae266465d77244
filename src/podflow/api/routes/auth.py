"""Authentication API endpoints.

Login opens a server-side session and sets the ``auth-token`` cookie;
logout revokes the session so the token stops working immediately even
though it has not expired.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from src.podflow.api.deps import get_current_user, get_settings_dep, get_state
from src.podflow.config import Settings
from src.podflow.core.permissions import capabilities_for
from src.podflow.core.tenant import TenantContext
from src.podflow.schemas.common import MessageResponse
from src.podflow.schemas.users import LoginRequest, LoginResponse, MeResponse, OrganizationSummary

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    settings: Settings = Depends(get_settings_dep),
) -> LoginResponse:
    """Authenticate against one organization and set the session cookie."""
    auth_service = get_state(request, "auth_service", "Authentication")
    result = await auth_service.login(body.organization.strip().lower(), body.email, body.password)

    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=result.token,
        max_age=settings.SESSION_EXPIRE_HOURS * 3600,
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )
    return LoginResponse(
        user=result.user.public(),
        organization=OrganizationSummary(
            id=result.organization.id,
            slug=result.organization.slug,
            name=result.organization.name,
        ),
        expires_at=result.expires_at,
        token=result.token,
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    tenant: TenantContext = Depends(get_current_user),
    settings: Settings = Depends(get_settings_dep),
) -> MessageResponse:
    auth_service = get_state(request, "auth_service", "Authentication")
    await auth_service.logout(tenant.session_id)
    response.delete_cookie(settings.AUTH_COOKIE_NAME, path="/")
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=MeResponse)
async def me(
    request: Request,
    tenant: TenantContext = Depends(get_current_user),
) -> MeResponse:
    """The caller's identity, organization and effective capabilities."""
    users = get_state(request, "user_repository", "User management")
    user = await users.get(tenant.organization_id, tenant.user_id)
    return MeResponse(
        user_id=tenant.user_id,
        email=user.email if user else None,
        name=user.name if user else None,
        role=tenant.role,
        organization_id=tenant.organization_id,
        organization_slug=tenant.organization_slug,
        capabilities=sorted(cap.value for cap in capabilities_for(tenant.role)),
    )
