"""REST API endpoints for shows, their rate history and category exclusivity.

Rate history writes go through the rate history validator: a show's active
intervals never overlap, amounts are positive and an interval ends after it
starts. Rate and exclusivity writes need ``rates:write`` (admin or master).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.podflow.api.deps import get_state, require
from src.podflow.core.errors import ValidationFailed
from src.podflow.core.permissions import Capability
from src.podflow.core.tenant import TenantContext
from src.podflow.repositories.rates import CategoryExclusivityRepository, RateHistoryRepository
from src.podflow.repositories.shows import ShowRepository
from src.podflow.schemas.common import Listing, MessageResponse
from src.podflow.schemas.rates import (
    CategoryExclusivityCreate,
    CategoryExclusivityRead,
    RateHistoryCreate,
    RateHistoryRead,
    RateHistoryUpdate,
)
from src.podflow.schemas.shows import ShowCreate, ShowRead, ShowUpdate
from src.podflow.services.rate_validation import RateInterval, validate_rate_entry

router = APIRouter(prefix="/shows", tags=["shows"])

_RATE_FIELDS = ("base_rate", "pre_roll_rate", "mid_roll_rate", "post_roll_rate")


def _get_show_repository(request: Request) -> ShowRepository:
    return get_state(request, "show_repository", "Show management")


def _get_rate_history_repository(request: Request) -> RateHistoryRepository:
    return get_state(request, "rate_history_repository", "Rate history")


def _get_exclusivity_repository(request: Request) -> CategoryExclusivityRepository:
    return get_state(request, "category_exclusivity_repository", "Category exclusivity")


def _not_found(kind: str, identifier: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{kind} not found: {identifier}")


async def _require_show(request: Request, tenant: TenantContext, show_id: str) -> ShowRead:
    show = await _get_show_repository(request).get(tenant.organization_slug, show_id)
    if show is None:
        raise _not_found("Show", show_id)
    return show


# ── Category Exclusivity ─────────────────────────────────────────────────────
# Declared before /{show_id} so the literal path wins.


@router.get("/category-exclusivity", response_model=Listing[CategoryExclusivityRead])
async def list_category_exclusivity(
    request: Request,
    show_id: str | None = Query(default=None),
    tenant: TenantContext = Depends(require(Capability.RATES_READ)),
) -> Listing[CategoryExclusivityRead]:
    repo = _get_exclusivity_repository(request)
    return await repo.list(tenant.organization_slug, show_id)


@router.post("/category-exclusivity", response_model=CategoryExclusivityRead, status_code=201)
async def create_category_exclusivity(
    body: CategoryExclusivityCreate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.RATES_WRITE)),
) -> CategoryExclusivityRead:
    show = await _require_show(request, tenant, body.show_id)
    repo = _get_exclusivity_repository(request)
    created = await repo.create(tenant.organization_slug, body, tenant.user_id)
    if created.show_name is None:
        created.show_name = show.name
    return created


# ── Shows ────────────────────────────────────────────────────────────────────


@router.get("", response_model=Listing[ShowRead])
async def list_shows(
    request: Request,
    include_inactive: bool = Query(default=False),
    tenant: TenantContext = Depends(require(Capability.SHOWS_READ)),
) -> Listing[ShowRead]:
    repo = _get_show_repository(request)
    return await repo.list(tenant.organization_slug, include_inactive)


@router.post("", response_model=ShowRead, status_code=201)
async def create_show(
    body: ShowCreate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.SHOWS_WRITE)),
) -> ShowRead:
    repo = _get_show_repository(request)
    return await repo.create(tenant.organization_slug, body)


@router.get("/{show_id}", response_model=ShowRead)
async def get_show(
    show_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.SHOWS_READ)),
) -> ShowRead:
    return await _require_show(request, tenant, show_id)


@router.put("/{show_id}", response_model=ShowRead)
async def update_show(
    show_id: str,
    body: ShowUpdate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.SHOWS_WRITE)),
) -> ShowRead:
    current = await _require_show(request, tenant, show_id)
    fields = body.model_dump(exclude_unset=True)
    active_from = fields.get("active_from", current.active_from)
    active_until = fields.get("active_until", current.active_until)
    if active_from and active_until and active_until < active_from:
        raise ValidationFailed("active_until must not be before active_from", reason="invalid_range")
    if not fields:
        return current

    updated = await _get_show_repository(request).update(tenant.organization_slug, show_id, fields)
    if updated is None:
        raise _not_found("Show", show_id)
    return updated


@router.delete("/{show_id}", response_model=MessageResponse)
async def deactivate_show(
    show_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.SHOWS_WRITE)),
) -> MessageResponse:
    """Shows are deactivated, never removed, so bookings keep their references."""
    await _require_show(request, tenant, show_id)
    if not await _get_show_repository(request).deactivate(tenant.organization_slug, show_id):
        raise _not_found("Show", show_id)
    return MessageResponse(message="Show deactivated")


# ── Rate History ─────────────────────────────────────────────────────────────


def _interval(rate: RateHistoryRead) -> RateInterval:
    return RateInterval(effective_date=rate.effective_date, end_date=rate.end_date, id=rate.id)


@router.get("/{show_id}/rate-history", response_model=Listing[RateHistoryRead])
async def list_rate_history(
    show_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.RATES_READ)),
) -> Listing[RateHistoryRead]:
    repo = _get_rate_history_repository(request)
    return await repo.list_for_show(tenant.organization_slug, show_id)


@router.post("/{show_id}/rate-history", response_model=RateHistoryRead, status_code=201)
async def create_rate_history(
    show_id: str,
    body: RateHistoryCreate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.RATES_WRITE)),
) -> RateHistoryRead:
    """Add a rate interval; 400 with ``reason`` when it breaks a rate rule."""
    await _require_show(request, tenant, show_id)
    repo = _get_rate_history_repository(request)

    existing = await repo.active_for_show(tenant.organization_slug, show_id)
    validate_rate_entry(
        RateInterval(effective_date=body.effective_date, end_date=body.end_date),
        {name: getattr(body, name) for name in _RATE_FIELDS},
        [_interval(rate) for rate in existing],
    )
    return await repo.create(tenant.organization_slug, show_id, body, tenant.user_id)


@router.get("/{show_id}/rate-history/{rate_id}", response_model=RateHistoryRead)
async def get_rate_history(
    show_id: str,
    rate_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.RATES_READ)),
) -> RateHistoryRead:
    rate = await _get_rate_history_repository(request).get(tenant.organization_slug, show_id, rate_id)
    if rate is None:
        raise _not_found("Rate", rate_id)
    return rate


@router.put("/{show_id}/rate-history/{rate_id}", response_model=RateHistoryRead)
async def update_rate_history(
    show_id: str,
    rate_id: str,
    body: RateHistoryUpdate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.RATES_WRITE)),
) -> RateHistoryRead:
    """Edit a rate interval. The merged row is validated as a whole."""
    repo = _get_rate_history_repository(request)
    current = await repo.get(tenant.organization_slug, show_id, rate_id)
    if current is None:
        raise _not_found("Rate", rate_id)

    fields = body.model_dump(exclude_unset=True)
    merged = current.model_copy(update=fields)
    candidate = RateInterval(effective_date=merged.effective_date, end_date=merged.end_date, id=current.id)
    existing = await repo.active_for_show(tenant.organization_slug, show_id) if merged.is_active else []
    validate_rate_entry(
        candidate,
        {name: fields[name] for name in _RATE_FIELDS if name in fields},
        [_interval(rate) for rate in existing],
    )
    if not fields:
        return current

    updated = await repo.update(tenant.organization_slug, rate_id, fields, tenant.user_id)
    if updated is None:
        raise _not_found("Rate", rate_id)
    return updated


@router.delete("/{show_id}/rate-history/{rate_id}", response_model=MessageResponse)
async def delete_rate_history(
    show_id: str,
    rate_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.RATES_WRITE)),
) -> MessageResponse:
    """Deactivate a rate interval; it no longer takes part in overlap checks or pricing."""
    repo = _get_rate_history_repository(request)
    if await repo.get(tenant.organization_slug, show_id, rate_id) is None:
        raise _not_found("Rate", rate_id)
    await repo.deactivate(tenant.organization_slug, rate_id, tenant.user_id)
    return MessageResponse(message="Rate deactivated")
