"""REST API endpoints for advertisers and agencies.

Every role that can see campaigns can see who they are for; adding an
advertiser or agency takes ``campaigns:write``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.podflow.api.deps import get_state, require
from src.podflow.core.permissions import Capability
from src.podflow.core.tenant import TenantContext
from src.podflow.repositories.advertisers import AdvertiserRepository, AgencyRepository
from src.podflow.schemas.advertisers import AdvertiserCreate, AdvertiserRead, AgencyCreate, AgencyRead
from src.podflow.schemas.common import Listing

advertisers_router = APIRouter(prefix="/advertisers", tags=["advertisers"])
agencies_router = APIRouter(prefix="/agencies", tags=["agencies"])


def _get_advertiser_repository(request: Request) -> AdvertiserRepository:
    return get_state(request, "advertiser_repository", "Advertiser management")


def _get_agency_repository(request: Request) -> AgencyRepository:
    return get_state(request, "agency_repository", "Agency management")


# ── Advertisers ──────────────────────────────────────────────────────────────


@advertisers_router.get("", response_model=Listing[AdvertiserRead])
async def list_advertisers(
    request: Request,
    search: str | None = Query(default=None, max_length=100),
    tenant: TenantContext = Depends(require(Capability.CAMPAIGNS_READ)),
) -> Listing[AdvertiserRead]:
    return await _get_advertiser_repository(request).list(tenant.organization_slug, search)


@advertisers_router.post("", response_model=AdvertiserRead, status_code=201)
async def create_advertiser(
    body: AdvertiserCreate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.CAMPAIGNS_WRITE)),
) -> AdvertiserRead:
    return await _get_advertiser_repository(request).create(tenant.organization_slug, body)


@advertisers_router.get("/{advertiser_id}", response_model=AdvertiserRead)
async def get_advertiser(
    advertiser_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.CAMPAIGNS_READ)),
) -> AdvertiserRead:
    advertiser = await _get_advertiser_repository(request).get(tenant.organization_slug, advertiser_id)
    if advertiser is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Advertiser not found: {advertiser_id}")
    return advertiser


# ── Agencies ─────────────────────────────────────────────────────────────────


@agencies_router.get("", response_model=Listing[AgencyRead])
async def list_agencies(
    request: Request,
    search: str | None = Query(default=None, max_length=100),
    tenant: TenantContext = Depends(require(Capability.CAMPAIGNS_READ)),
) -> Listing[AgencyRead]:
    return await _get_agency_repository(request).list(tenant.organization_slug, search)


@agencies_router.post("", response_model=AgencyRead, status_code=201)
async def create_agency(
    body: AgencyCreate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.CAMPAIGNS_WRITE)),
) -> AgencyRead:
    return await _get_agency_repository(request).create(tenant.organization_slug, body)


@agencies_router.get("/{agency_id}", response_model=AgencyRead)
async def get_agency(
    agency_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.CAMPAIGNS_READ)),
) -> AgencyRead:
    agency = await _get_agency_repository(request).get(tenant.organization_slug, agency_id)
    if agency is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Agency not found: {agency_id}")
    return agency
