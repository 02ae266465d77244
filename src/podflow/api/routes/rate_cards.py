"""REST API endpoints for organization-wide rate cards.

Anyone holding ``rates:read`` may list rate cards; creating, editing and
retiring them needs ``rates:write``. The role check runs before the body
is decoded, so a sales user gets 403 whatever they send, malformed JSON
included.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.podflow.api.deps import get_state, parse_body, require
from src.podflow.core.permissions import Capability
from src.podflow.core.tenant import TenantContext
from src.podflow.repositories.rates import RateCardRepository
from src.podflow.schemas.common import Listing, MessageResponse
from src.podflow.schemas.rates import RateCardCreate, RateCardRead, RateCardUpdate

router = APIRouter(prefix="/rate-cards", tags=["rates"])


def _get_rate_card_repository(request: Request) -> RateCardRepository:
    return get_state(request, "rate_card_repository", "Rate cards")


def _not_found(rate_card_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Rate card not found: {rate_card_id}")


@router.get("", response_model=Listing[RateCardRead])
async def list_rate_cards(
    request: Request,
    active_only: bool = Query(default=False),
    tenant: TenantContext = Depends(require(Capability.RATES_READ)),
) -> Listing[RateCardRead]:
    return await _get_rate_card_repository(request).list(tenant.organization_slug, active_only)


@router.post("", response_model=RateCardRead, status_code=201)
async def create_rate_card(
    request: Request,
    tenant: TenantContext = Depends(require(Capability.RATES_WRITE)),
) -> RateCardRead:
    body = await parse_body(request, RateCardCreate)
    return await _get_rate_card_repository(request).create(tenant.organization_slug, body, tenant.user_id)


@router.get("/{rate_card_id}", response_model=RateCardRead)
async def get_rate_card(
    rate_card_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.RATES_READ)),
) -> RateCardRead:
    card = await _get_rate_card_repository(request).get(tenant.organization_slug, rate_card_id)
    if card is None:
        raise _not_found(rate_card_id)
    return card


@router.put("/{rate_card_id}", response_model=RateCardRead)
async def update_rate_card(
    rate_card_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.RATES_WRITE)),
) -> RateCardRead:
    body = await parse_body(request, RateCardUpdate)
    repo = _get_rate_card_repository(request)
    current = await repo.get(tenant.organization_slug, rate_card_id)
    if current is None:
        raise _not_found(rate_card_id)
    fields = body.model_dump(exclude_unset=True)
    if not fields:
        return current
    updated = await repo.update(tenant.organization_slug, rate_card_id, fields)
    if updated is None:
        raise _not_found(rate_card_id)
    return updated


@router.delete("/{rate_card_id}", response_model=MessageResponse)
async def delete_rate_card(
    rate_card_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.RATES_WRITE)),
) -> MessageResponse:
    if not await _get_rate_card_repository(request).deactivate(tenant.organization_slug, rate_card_id):
        raise _not_found(rate_card_id)
    return MessageResponse(message="Rate card deactivated")
