"""REST API endpoints for insertion orders."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.podflow.api.deps import get_state, require
from src.podflow.core.errors import ValidationFailed
from src.podflow.core.permissions import Capability
from src.podflow.core.tenant import TenantContext
from src.podflow.repositories.orders import OrderRepository
from src.podflow.repositories.shows import EpisodeRepository, ShowRepository
from src.podflow.schemas.common import Listing
from src.podflow.schemas.orders import OrderCreate, OrderItemCreate, OrderRead, OrderStatus, OrderStatusUpdate
from src.podflow.services.billing import document_number, sum_money
from src.podflow.services.lifecycle import ORDER_TRANSITIONS, ensure_transition

router = APIRouter(prefix="/orders", tags=["orders"])


def _get_order_repository(request: Request) -> OrderRepository:
    return get_state(request, "order_repository", "Order management")


def _not_found(order_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Order not found: {order_id}")


async def _check_items(request: Request, slug: str, items: list[OrderItemCreate]) -> None:
    """Every item must name an existing show, and its episode must belong to that show."""
    shows_repo: ShowRepository = get_state(request, "show_repository", "Show management")
    episodes_repo: EpisodeRepository = get_state(request, "episode_repository", "Episode management")

    show_ids: dict[str, str] = {}
    for index, item in enumerate(items):
        if item.show_id not in show_ids:
            show = await shows_repo.get(slug, item.show_id)
            if show is None:
                raise ValidationFailed(f"Item {index}: show not found", reason="unknown_show", item=index)
            show_ids[item.show_id] = show.id
        if item.episode_id is None:
            continue
        episode = await episodes_repo.get(slug, item.episode_id)
        if episode is None or episode.show_id != show_ids[item.show_id]:
            raise ValidationFailed(
                f"Item {index}: episode does not belong to the selected show",
                reason="episode_mismatch",
                item=index,
            )


@router.get("", response_model=Listing[OrderRead])
async def list_orders(
    request: Request,
    campaign_id: str | None = Query(default=None),
    status_filter: OrderStatus | None = Query(default=None, alias="status"),
    tenant: TenantContext = Depends(require(Capability.ORDERS_READ)),
) -> Listing[OrderRead]:
    return await _get_order_repository(request).list(tenant.organization_slug, campaign_id, status_filter)


@router.post("", response_model=OrderRead, status_code=201)
async def create_order(
    body: OrderCreate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.ORDERS_WRITE)),
) -> OrderRead:
    """Create a draft order; its total is the sum of the item rates."""
    campaigns = get_state(request, "campaign_repository", "Campaign management")
    if await campaigns.get(tenant.organization_slug, body.campaign_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Campaign not found: {body.campaign_id}")
    await _check_items(request, tenant.organization_slug, body.items)

    return await _get_order_repository(request).create(
        tenant.organization_slug,
        body,
        order_number=document_number("ORD"),
        total=sum_money(item.rate for item in body.items),
        user_id=tenant.user_id,
    )


@router.get("/{order_id}", response_model=OrderRead)
async def get_order(
    order_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.ORDERS_READ)),
) -> OrderRead:
    order = await _get_order_repository(request).get(tenant.organization_slug, order_id)
    if order is None:
        raise _not_found(order_id)
    return order


@router.put("/{order_id}/status", response_model=OrderRead)
async def update_order_status(
    order_id: str,
    body: OrderStatusUpdate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.ORDERS_WRITE)),
) -> OrderRead:
    """draft -> approved -> booked; draft or approved orders can be cancelled."""
    repo = _get_order_repository(request)
    current = await repo.get(tenant.organization_slug, order_id)
    if current is None:
        raise _not_found(order_id)
    if current.status == body.status:
        return current
    ensure_transition("order", current.status, body.status, ORDER_TRANSITIONS)

    updated = await repo.set_status(tenant.organization_slug, order_id, body.status)
    if updated is None:
        raise _not_found(order_id)
    return updated
