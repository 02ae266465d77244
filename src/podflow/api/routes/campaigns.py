"""REST API endpoints for campaigns.

Every handler reads and writes only the caller's organization schema. A
campaign id belonging to another organization is simply not found there,
so it returns 404 like any unknown id.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.podflow.api.deps import get_state, require
from src.podflow.core.errors import ValidationFailed
from src.podflow.core.permissions import Capability
from src.podflow.core.tenant import TenantContext
from src.podflow.repositories.advertisers import AdvertiserRepository, AgencyRepository
from src.podflow.repositories.campaigns import CampaignRepository
from src.podflow.schemas.campaigns import (
    CampaignCreate,
    CampaignRead,
    CampaignStatus,
    CampaignStatusUpdate,
    CampaignUpdate,
)
from src.podflow.schemas.common import Listing, MessageResponse
from src.podflow.services.lifecycle import CAMPAIGN_TRANSITIONS, ensure_transition

router = APIRouter(prefix="/campaigns", tags=["campaigns"])


def _get_campaign_repository(request: Request) -> CampaignRepository:
    return get_state(request, "campaign_repository", "Campaign management")


def _not_found(campaign_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Campaign not found: {campaign_id}")


async def _check_links(request: Request, slug: str, advertiser_id: str | None, agency_id: str | None) -> None:
    """Linked advertiser and agency ids must exist in this organization."""
    if advertiser_id is not None:
        advertisers: AdvertiserRepository = get_state(request, "advertiser_repository", "Advertiser management")
        if await advertisers.get(slug, advertiser_id) is None:
            raise ValidationFailed("Advertiser not found", reason="unknown_advertiser", field="advertiser_id")
    if agency_id is not None:
        agencies: AgencyRepository = get_state(request, "agency_repository", "Agency management")
        if await agencies.get(slug, agency_id) is None:
            raise ValidationFailed("Agency not found", reason="unknown_agency", field="agency_id")


@router.get("", response_model=Listing[CampaignRead])
async def list_campaigns(
    request: Request,
    status_filter: CampaignStatus | None = Query(default=None, alias="status"),
    tenant: TenantContext = Depends(require(Capability.CAMPAIGNS_READ)),
) -> Listing[CampaignRead]:
    repo = _get_campaign_repository(request)
    return await repo.list(tenant.organization_slug, status_filter)


@router.post("", response_model=CampaignRead, status_code=201)
async def create_campaign(
    body: CampaignCreate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.CAMPAIGNS_WRITE)),
) -> CampaignRead:
    repo = _get_campaign_repository(request)
    await _check_links(request, tenant.organization_slug, body.advertiser_id, body.agency_id)
    return await repo.create(tenant.organization_slug, body, tenant.user_id)


@router.get("/{campaign_id}", response_model=CampaignRead)
async def get_campaign(
    campaign_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.CAMPAIGNS_READ)),
) -> CampaignRead:
    repo = _get_campaign_repository(request)
    campaign = await repo.get(tenant.organization_slug, campaign_id)
    if campaign is None:
        raise _not_found(campaign_id)
    return campaign


@router.put("/{campaign_id}", response_model=CampaignRead)
async def update_campaign(
    campaign_id: str,
    body: CampaignUpdate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.CAMPAIGNS_WRITE)),
) -> CampaignRead:
    repo = _get_campaign_repository(request)
    current = await repo.get(tenant.organization_slug, campaign_id)
    if current is None:
        raise _not_found(campaign_id)

    fields = body.model_dump(exclude_unset=True)
    start = fields.get("start_date", current.start_date)
    end = fields.get("end_date", current.end_date)
    if start and end and end < start:
        raise ValidationFailed("end_date must not be before start_date", reason="invalid_range")
    await _check_links(request, tenant.organization_slug, fields.get("advertiser_id"), fields.get("agency_id"))
    if not fields:
        return current

    updated = await repo.update(tenant.organization_slug, campaign_id, fields)
    if updated is None:
        raise _not_found(campaign_id)
    return updated


@router.put("/{campaign_id}/status", response_model=CampaignRead)
async def update_campaign_status(
    campaign_id: str,
    body: CampaignStatusUpdate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.CAMPAIGNS_WRITE)),
) -> CampaignRead:
    """Move a campaign through draft -> active <-> paused -> completed."""
    repo = _get_campaign_repository(request)
    current = await repo.get(tenant.organization_slug, campaign_id)
    if current is None:
        raise _not_found(campaign_id)
    if current.status == body.status:
        return current
    ensure_transition("campaign", current.status, body.status, CAMPAIGN_TRANSITIONS)

    updated = await repo.set_status(tenant.organization_slug, campaign_id, body.status)
    if updated is None:
        raise _not_found(campaign_id)
    return updated


@router.delete("/{campaign_id}", response_model=MessageResponse)
async def delete_campaign(
    campaign_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.CAMPAIGNS_WRITE)),
) -> MessageResponse:
    repo = _get_campaign_repository(request)
    if not await repo.delete(tenant.organization_slug, campaign_id):
        raise _not_found(campaign_id)
    return MessageResponse(message="Campaign deleted")
