"""Reporting endpoints.

Reports are read-only. When the underlying query fails they still answer
200 with zero-valued figures and ``degraded: true``.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Request

from src.podflow.api.deps import get_state, require
from src.podflow.core.errors import ValidationFailed
from src.podflow.core.permissions import Capability
from src.podflow.core.tenant import TenantContext
from src.podflow.repositories.reports import ReportRepository
from src.podflow.schemas.common import Listing
from src.podflow.schemas.reports import CampaignReportRow, CustomReport, CustomReportRequest, RevenueReport

router = APIRouter(prefix="/reports", tags=["reports"])


def _get_report_repository(request: Request) -> ReportRepository:
    return get_state(request, "report_repository", "Reporting")


@router.get("/revenue", response_model=RevenueReport)
async def revenue_report(
    request: Request,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    tenant: TenantContext = Depends(require(Capability.REPORTS_READ)),
) -> RevenueReport:
    """Booked, invoiced and paid revenue per month. Defaults to year to date."""
    end = end_date or date.today()
    start = start_date or end.replace(month=1, day=1)
    if end < start:
        raise ValidationFailed("end_date must not be before start_date", reason="invalid_range")
    return await _get_report_repository(request).revenue(tenant.organization_slug, start, end)


@router.get("/campaigns", response_model=Listing[CampaignReportRow])
async def campaign_report(
    request: Request,
    tenant: TenantContext = Depends(require(Capability.REPORTS_READ)),
) -> Listing[CampaignReportRow]:
    return await _get_report_repository(request).campaigns(tenant.organization_slug)


@router.post("/custom", response_model=CustomReport)
async def custom_report(
    body: CustomReportRequest,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.REPORTS_READ)),
) -> CustomReport:
    """Group schedule placements by whitelisted dimensions and aggregate metrics."""
    return await _get_report_repository(request).custom(tenant.organization_slug, body)
