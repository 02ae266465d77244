"""REST API endpoints for invoices.

An invoice's total always equals the sum of its line items; a supplied
total that disagrees is rejected. Status moves forward only
(draft -> sent -> paid, or void); moving back is a correction reserved for
administrators and must carry a reason.
"""

from __future__ import annotations

from datetime import date

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.podflow.api.deps import get_state, require
from src.podflow.core.permissions import Capability, has_capability
from src.podflow.core.tenant import TenantContext
from src.podflow.repositories.orders import InvoiceRepository
from src.podflow.schemas.common import Listing
from src.podflow.schemas.invoices import InvoiceCreate, InvoiceRead, InvoiceStatus, InvoiceStatusUpdate
from src.podflow.services.billing import document_number, reconcile_invoice_total, to_money
from src.podflow.services.lifecycle import plan_invoice_transition

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/invoices", tags=["invoices"])


def _get_invoice_repository(request: Request) -> InvoiceRepository:
    return get_state(request, "invoice_repository", "Invoicing")


def _not_found(invoice_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Invoice not found: {invoice_id}")


@router.get("", response_model=Listing[InvoiceRead])
async def list_invoices(
    request: Request,
    campaign_id: str | None = Query(default=None),
    status_filter: InvoiceStatus | None = Query(default=None, alias="status"),
    tenant: TenantContext = Depends(require(Capability.INVOICES_READ)),
) -> Listing[InvoiceRead]:
    return await _get_invoice_repository(request).list(tenant.organization_slug, campaign_id, status_filter)


@router.post("", response_model=InvoiceRead, status_code=201)
async def create_invoice(
    body: InvoiceCreate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.INVOICES_WRITE)),
) -> InvoiceRead:
    campaigns = get_state(request, "campaign_repository", "Campaign management")
    if await campaigns.get(tenant.organization_slug, body.campaign_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Campaign not found: {body.campaign_id}")

    total, amounts = reconcile_invoice_total(body.items, body.total_amount)
    issue_date = body.issue_date or date.today()
    lines = [
        (item.description, item.quantity, to_money(item.unit_price), amount)
        for item, amount in zip(body.items, amounts)
    ]
    return await _get_invoice_repository(request).create(
        tenant.organization_slug,
        campaign_id=body.campaign_id,
        invoice_number=document_number("INV", issue_date),
        issue_date=issue_date,
        due_date=body.due_date,
        total=total,
        lines=lines,
        user_id=tenant.user_id,
    )


@router.get("/{invoice_id}", response_model=InvoiceRead)
async def get_invoice(
    invoice_id: str,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.INVOICES_READ)),
) -> InvoiceRead:
    invoice = await _get_invoice_repository(request).get(tenant.organization_slug, invoice_id)
    if invoice is None:
        raise _not_found(invoice_id)
    return invoice


@router.put("/{invoice_id}/status", response_model=InvoiceRead)
async def update_invoice_status(
    invoice_id: str,
    body: InvoiceStatusUpdate,
    request: Request,
    tenant: TenantContext = Depends(require(Capability.INVOICES_WRITE)),
) -> InvoiceRead:
    repo = _get_invoice_repository(request)
    current = await repo.get(tenant.organization_slug, invoice_id)
    if current is None:
        raise _not_found(invoice_id)
    if current.status == body.status:
        return current

    is_correction = plan_invoice_transition(
        current.status,
        body.status,
        can_correct=has_capability(tenant.role, Capability.INVOICES_CORRECT),
        reason=body.reason,
    )
    if is_correction:
        logger.info(
            "invoice_status_corrected",
            organization=tenant.organization_slug,
            invoice_id=invoice_id,
            from_status=current.status.value,
            to_status=body.status.value,
            user_id=tenant.user_id,
        )

    updated = await repo.set_status(
        tenant.organization_slug,
        invoice_id,
        body.status,
        correction_reason=body.reason.strip() if is_correction and body.reason else None,
    )
    if updated is None:
        raise _not_found(invoice_id)
    return updated
