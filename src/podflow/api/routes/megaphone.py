"""Megaphone integration endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.podflow.api.deps import get_state, require
from src.podflow.core.permissions import Capability
from src.podflow.core.tenant import TenantContext
from src.podflow.integrations.megaphone import MegaphoneClient
from src.podflow.integrations.models import MegaphonePodcast, SyncResult
from src.podflow.services.episode_sync import sync_megaphone_show

router = APIRouter(prefix="/megaphone", tags=["integrations"])


def _get_megaphone_client(request: Request) -> MegaphoneClient:
    return get_state(request, "megaphone_client", "Megaphone integration")


@router.get("/podcasts", response_model=list[MegaphonePodcast])
async def list_podcasts(
    request: Request,
    tenant: TenantContext = Depends(require(Capability.INTEGRATIONS_READ)),
) -> list[MegaphonePodcast]:
    return await _get_megaphone_client(request).list_podcasts()


@router.post("/sync/{show_id}", response_model=SyncResult)
async def sync_show(
    show_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.INTEGRATIONS_WRITE)),
) -> SyncResult:
    """Import the linked Megaphone podcast's episodes into the show."""
    shows = get_state(request, "show_repository", "Show management")
    show = await shows.get(tenant.organization_slug, show_id)
    if show is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Show not found: {show_id}")
    return await sync_megaphone_show(
        tenant.organization_slug,
        show,
        _get_megaphone_client(request),
        get_state(request, "episode_repository", "Episode management"),
    )
