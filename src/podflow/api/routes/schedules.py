"""REST API endpoints for campaign schedules.

Adding items prices each placement from the show's rate history (unless
the caller supplies a rate card price) and checks it falls in the show's
active window. The batch is stored in one transaction: either every item
is added or none is.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.podflow.api.deps import get_state, require
from src.podflow.core.errors import ValidationFailed
from src.podflow.core.permissions import Capability
from src.podflow.core.tenant import TenantContext
from src.podflow.repositories.campaigns import CampaignRepository
from src.podflow.repositories.rates import RateHistoryRepository
from src.podflow.repositories.schedules import ScheduleRepository
from src.podflow.repositories.shows import EpisodeRepository, ShowRepository
from src.podflow.schemas.common import Listing, MessageResponse
from src.podflow.schemas.rates import RateHistoryRead
from src.podflow.schemas.schedules import ScheduleCreate, ScheduleItemsCreate, ScheduleRead
from src.podflow.schemas.shows import ShowRead
from src.podflow.services.scheduling import PricedItem, price_schedule_item

router = APIRouter(prefix="/schedules", tags=["schedules"])


def _get_schedule_repository(request: Request) -> ScheduleRepository:
    return get_state(request, "schedule_repository", "Scheduling")


def _not_found(schedule_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Schedule not found: {schedule_id}")


@router.get("", response_model=Listing[ScheduleRead])
async def list_schedules(
    request: Request,
    campaign_id: str | None = Query(default=None),
    tenant: TenantContext = Depends(require(Capability.SCHEDULES_READ)),
) -> Listing[ScheduleRead]:
    return await _get_schedule_repository(request).list(tenant.organization_slug, campaign_id)


@router.post("", response_model=ScheduleRead, status_code=201)
async def create_schedule(
    body: ScheduleCreate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.SCHEDULES_WRITE)),
) -> ScheduleRead:
    campaigns: CampaignRepository = get_state(request, "campaign_repository", "Campaign management")
    if await campaigns.get(tenant.organization_slug, body.campaign_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Campaign not found: {body.campaign_id}")
    return await _get_schedule_repository(request).create(
        tenant.organization_slug, body.campaign_id, body.name, tenant.user_id
    )


@router.get("/{schedule_id}", response_model=ScheduleRead)
async def get_schedule(
    schedule_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.SCHEDULES_READ)),
) -> ScheduleRead:
    schedule = await _get_schedule_repository(request).get(tenant.organization_slug, schedule_id)
    if schedule is None:
        raise _not_found(schedule_id)
    return schedule


@router.post("/{schedule_id}/items", response_model=ScheduleRead, status_code=201)
async def add_schedule_items(
    schedule_id: str,
    body: ScheduleItemsCreate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.SCHEDULES_WRITE)),
) -> ScheduleRead:
    repo = _get_schedule_repository(request)
    slug = tenant.organization_slug
    if await repo.get(slug, schedule_id) is None:
        raise _not_found(schedule_id)

    shows_repo: ShowRepository = get_state(request, "show_repository", "Show management")
    episodes_repo: EpisodeRepository = get_state(request, "episode_repository", "Episode management")
    rates_repo: RateHistoryRepository = get_state(request, "rate_history_repository", "Rate history")

    shows: dict[str, ShowRead] = {}
    rates: dict[str, list[RateHistoryRead]] = {}
    priced: list[PricedItem] = []
    for index, item in enumerate(body.items):
        if item.show_id not in shows:
            show = await shows_repo.get(slug, item.show_id)
            if show is None:
                raise ValidationFailed(f"Item {index}: show not found", reason="unknown_show", item=index)
            shows[item.show_id] = show
            rates[item.show_id] = await rates_repo.active_for_show(slug, item.show_id)
        episode = await episodes_repo.get(slug, item.episode_id) if item.episode_id else None
        priced.append(price_schedule_item(item, shows[item.show_id], episode, rates[item.show_id]))

    await repo.add_items(slug, schedule_id, priced)
    schedule = await repo.get(slug, schedule_id)
    if schedule is None:
        raise _not_found(schedule_id)
    return schedule


@router.delete("/{schedule_id}", response_model=MessageResponse)
async def delete_schedule(
    schedule_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.SCHEDULES_WRITE)),
) -> MessageResponse:
    if not await _get_schedule_repository(request).delete(tenant.organization_slug, schedule_id):
        raise _not_found(schedule_id)
    return MessageResponse(message="Schedule deleted")
