"""YouTube integration endpoints.

Every outbound call is charged against the organization's daily quota.
An organization's ``youtube_daily_quota`` overrides the platform default.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.podflow.api.deps import get_state, require
from src.podflow.core.permissions import Capability
from src.podflow.core.tenant import TenantContext
from src.podflow.integrations.models import QuotaStatus, SyncResult, YouTubeChannel
from src.podflow.integrations.youtube import YouTubeClient
from src.podflow.integrations.youtube_quota import YouTubeQuotaManager
from src.podflow.services.episode_sync import sync_youtube_show

router = APIRouter(prefix="/youtube", tags=["integrations"])


def _get_youtube_client(request: Request) -> YouTubeClient:
    return get_state(request, "youtube_client", "YouTube integration")


async def _daily_limit(request: Request, tenant: TenantContext) -> int | None:
    organizations = get_state(request, "organization_repository", "Organization management")
    organization = await organizations.get(tenant.organization_id)
    return organization.youtube_daily_quota if organization else None


@router.get("/quota", response_model=QuotaStatus)
async def quota_status(
    request: Request,
    tenant: TenantContext = Depends(require(Capability.INTEGRATIONS_READ)),
) -> QuotaStatus:
    quota: YouTubeQuotaManager = get_state(request, "youtube_quota", "YouTube quota tracking")
    return await quota.usage(tenant.organization_slug, await _daily_limit(request, tenant))


@router.get("/channels/{channel_id}", response_model=YouTubeChannel)
async def get_channel(
    channel_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.INTEGRATIONS_READ)),
) -> YouTubeChannel:
    client = _get_youtube_client(request)
    channel = await client.get_channel(
        tenant.organization_slug, channel_id, daily_limit=await _daily_limit(request, tenant)
    )
    if channel is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Channel not found: {channel_id}")
    return channel


@router.post("/sync/{show_id}", response_model=SyncResult)
async def sync_show(
    show_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.INTEGRATIONS_WRITE)),
) -> SyncResult:
    """Import the show's recent YouTube uploads as episodes with view counts."""
    shows = get_state(request, "show_repository", "Show management")
    show = await shows.get(tenant.organization_slug, show_id)
    if show is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Show not found: {show_id}")

    daily_limit = await _daily_limit(request, tenant)
    result = await sync_youtube_show(
        tenant.organization_slug,
        show,
        _get_youtube_client(request),
        get_state(request, "episode_repository", "Episode management"),
        daily_limit=daily_limit,
    )
    quota: YouTubeQuotaManager = get_state(request, "youtube_quota", "YouTube quota tracking")
    result.quota_used = (await quota.usage(tenant.organization_slug, daily_limit)).used
    return result
