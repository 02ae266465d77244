"""REST API endpoints for the users of the caller's organization.

Emails are unique per organization, so the same address may exist in two
organizations. Users are soft-deleted; a deleted user is not found again.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.podflow.api.deps import get_state, require
from src.podflow.core.errors import PermissionDenied, ValidationFailed
from src.podflow.core.permissions import Capability, Role
from src.podflow.core.tenant import TenantContext
from src.podflow.repositories.users import UserRepository
from src.podflow.schemas.common import Listing, MessageResponse
from src.podflow.schemas.users import UserCreate, UserRead, UserUpdate

router = APIRouter(prefix="/users", tags=["users"])


def _get_user_repository(request: Request) -> UserRepository:
    return get_state(request, "user_repository", "User management")


def _not_found(user_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User not found: {user_id}")


def _check_role_grant(tenant: TenantContext, role: Role | None) -> None:
    if role == Role.master and not tenant.is_master:
        raise PermissionDenied("Only master users can grant the master role")


@router.get("", response_model=Listing[UserRead])
async def list_users(
    request: Request,
    tenant: TenantContext = Depends(require(Capability.USERS_READ)),
) -> Listing[UserRead]:
    users = await _get_user_repository(request).list(tenant.organization_id)
    return Listing.of(users)


@router.post("", response_model=UserRead, status_code=201)
async def create_user(
    body: UserCreate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.USERS_WRITE)),
) -> UserRead:
    """Create a user; 400 when the email is already used in this organization."""
    _check_role_grant(tenant, body.role)
    return await _get_user_repository(request).create(tenant.organization_id, body)


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.USERS_READ)),
) -> UserRead:
    user = await _get_user_repository(request).get(tenant.organization_id, user_id)
    if user is None:
        raise _not_found(user_id)
    return user


@router.put("/{user_id}", response_model=UserRead)
async def update_user(
    user_id: str,
    body: UserUpdate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.USERS_WRITE)),
) -> UserRead:
    _check_role_grant(tenant, body.role)
    if user_id == tenant.user_id and body.is_active is False:
        raise ValidationFailed("You cannot deactivate yourself", reason="self_deactivation")
    updated = await _get_user_repository(request).update(tenant.organization_id, user_id, body)
    if updated is None:
        raise _not_found(user_id)
    return updated


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.USERS_WRITE)),
) -> MessageResponse:
    if user_id == tenant.user_id:
        raise ValidationFailed("You cannot delete yourself", reason="self_deletion")
    if not await _get_user_repository(request).soft_delete(tenant.organization_id, user_id):
        raise _not_found(user_id)
    return MessageResponse(message="User deleted")
