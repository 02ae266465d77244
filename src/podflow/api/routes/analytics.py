"""Analytics endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from src.podflow.api.deps import get_state, require
from src.podflow.core.permissions import Capability
from src.podflow.core.tenant import TenantContext
from src.podflow.repositories.rates import RateHistoryRepository
from src.podflow.schemas.rates import RateTrends

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/rate-trends", response_model=RateTrends)
async def rate_trends(
    request: Request,
    show_id: str | None = Query(default=None),
    tenant: TenantContext = Depends(require(Capability.RATES_READ)),
) -> RateTrends:
    """Base rate over time per show, with the change from the previous interval."""
    repo: RateHistoryRepository = get_state(request, "rate_history_repository", "Rate history")
    return await repo.trends(tenant.organization_slug, show_id)
