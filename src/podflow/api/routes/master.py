"""Platform administration endpoints, master role only.

Creating an organization provisions its schema, tables and initial admin
in one transaction. An organization's plan must be one of the billing
plans. Organizations are never deleted; archive them with a status update
instead.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.podflow.api.deps import get_state, require
from src.podflow.core.errors import ValidationFailed
from src.podflow.core.permissions import Capability
from src.podflow.core.tenant import TenantContext
from src.podflow.schemas.common import Listing
from src.podflow.schemas.organizations import (
    BillingPlanRead,
    OrganizationCreate,
    OrganizationRead,
    OrganizationUpdate,
    PlatformSettingRead,
    PlatformSettingUpdate,
)

router = APIRouter(prefix="/master", tags=["master"])


def _not_found(organization_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND, detail=f"Organization not found: {organization_id}"
    )


async def _check_plan(request: Request, plan: str | None) -> None:
    if plan is None:
        return
    plans = get_state(request, "billing_plan_repository", "Billing plans")
    if await plans.get(plan) is None:
        raise ValidationFailed(f"Unknown billing plan: {plan}", reason="unknown_plan", field="plan")


@router.get("/organizations", response_model=Listing[OrganizationRead])
async def list_organizations(
    request: Request,
    include_archived: bool = Query(default=False),
    tenant: TenantContext = Depends(require(Capability.MASTER_SETTINGS)),
) -> Listing[OrganizationRead]:
    repo = get_state(request, "organization_repository", "Organization management")
    return Listing.of(await repo.list(include_archived))


@router.post("/organizations", response_model=OrganizationRead, status_code=status.HTTP_201_CREATED)
async def create_organization(
    body: OrganizationCreate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.MASTER_SETTINGS)),
) -> OrganizationRead:
    """Provision a new organization; 409 when the slug is taken."""
    await _check_plan(request, body.plan)
    provision = get_state(request, "organization_provisioner", "Organization provisioning")
    return await provision(body)


@router.get("/organizations/{organization_id}", response_model=OrganizationRead)
async def get_organization(
    organization_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.MASTER_SETTINGS)),
) -> OrganizationRead:
    repo = get_state(request, "organization_repository", "Organization management")
    organization = await repo.get(organization_id)
    if organization is None:
        raise _not_found(organization_id)
    return organization


@router.put("/organizations/{organization_id}", response_model=OrganizationRead)
async def update_organization(
    organization_id: str,
    body: OrganizationUpdate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.MASTER_SETTINGS)),
) -> OrganizationRead:
    await _check_plan(request, body.plan)
    repo = get_state(request, "organization_repository", "Organization management")
    organization = await repo.update(organization_id, body)
    if organization is None:
        raise _not_found(organization_id)
    return organization


@router.get("/plans", response_model=list[BillingPlanRead])
async def list_plans(
    request: Request,
    tenant: TenantContext = Depends(require(Capability.MASTER_SETTINGS)),
) -> list[BillingPlanRead]:
    repo = get_state(request, "billing_plan_repository", "Billing plans")
    return await repo.list()


@router.get("/settings", response_model=list[PlatformSettingRead])
async def list_settings(
    request: Request,
    tenant: TenantContext = Depends(require(Capability.MASTER_SETTINGS)),
) -> list[PlatformSettingRead]:
    repo = get_state(request, "platform_settings_repository", "Platform settings")
    return await repo.list()


@router.put("/settings", response_model=PlatformSettingRead)
async def update_setting(
    body: PlatformSettingUpdate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.MASTER_SETTINGS)),
) -> PlatformSettingRead:
    repo = get_state(request, "platform_settings_repository", "Platform settings")
    return await repo.upsert(body.key, body.value, tenant.user_id)
