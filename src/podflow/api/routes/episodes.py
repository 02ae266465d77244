"""REST API endpoints for episodes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.podflow.api.deps import get_state, require
from src.podflow.core.permissions import Capability
from src.podflow.core.tenant import TenantContext
from src.podflow.repositories.shows import EpisodeRepository, ShowRepository
from src.podflow.schemas.common import Listing, MessageResponse
from src.podflow.schemas.shows import EpisodeCreate, EpisodeRead, EpisodeUpdate

router = APIRouter(prefix="/episodes", tags=["episodes"])


def _get_episode_repository(request: Request) -> EpisodeRepository:
    return get_state(request, "episode_repository", "Episode management")


def _get_show_repository(request: Request) -> ShowRepository:
    return get_state(request, "show_repository", "Show management")


def _not_found(episode_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Episode not found: {episode_id}")


@router.get("", response_model=Listing[EpisodeRead])
async def list_episodes(
    request: Request,
    show_id: str | None = Query(default=None),
    tenant: TenantContext = Depends(require(Capability.EPISODES_READ)),
) -> Listing[EpisodeRead]:
    repo = _get_episode_repository(request)
    return await repo.list(tenant.organization_slug, show_id)


@router.post("", response_model=EpisodeRead, status_code=201)
async def create_episode(
    body: EpisodeCreate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.EPISODES_WRITE)),
) -> EpisodeRead:
    show = await _get_show_repository(request).get(tenant.organization_slug, body.show_id)
    if show is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Show not found: {body.show_id}")
    return await _get_episode_repository(request).create(tenant.organization_slug, body)


@router.get("/{episode_id}", response_model=EpisodeRead)
async def get_episode(
    episode_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.EPISODES_READ)),
) -> EpisodeRead:
    episode = await _get_episode_repository(request).get(tenant.organization_slug, episode_id)
    if episode is None:
        raise _not_found(episode_id)
    return episode


@router.put("/{episode_id}", response_model=EpisodeRead)
async def update_episode(
    episode_id: str,
    body: EpisodeUpdate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.EPISODES_WRITE)),
) -> EpisodeRead:
    repo = _get_episode_repository(request)
    current = await repo.get(tenant.organization_slug, episode_id)
    if current is None:
        raise _not_found(episode_id)
    fields = body.model_dump(exclude_unset=True)
    if not fields:
        return current
    updated = await repo.update(tenant.organization_slug, episode_id, fields)
    if updated is None:
        raise _not_found(episode_id)
    return updated


@router.delete("/{episode_id}", response_model=MessageResponse)
async def delete_episode(
    episode_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.EPISODES_WRITE)),
) -> MessageResponse:
    if not await _get_episode_repository(request).delete(tenant.organization_slug, episode_id):
        raise _not_found(episode_id)
    return MessageResponse(message="Episode deleted")
