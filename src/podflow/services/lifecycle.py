"""Status lifecycles for campaigns, orders and invoices.

Each lifecycle is a plain transition table. Moving an invoice backwards
(e.g. ``paid -> sent``) is not a normal transition: it is an administrative
correction that needs the ``invoices:correct`` capability and a reason.
"""

from __future__ import annotations

from collections.abc import Mapping

from src.podflow.core.errors import PermissionDenied, ValidationFailed
from src.podflow.schemas.campaigns import CampaignStatus
from src.podflow.schemas.invoices import InvoiceStatus
from src.podflow.schemas.orders import OrderStatus

CAMPAIGN_TRANSITIONS: dict[CampaignStatus, frozenset[CampaignStatus]] = {
    CampaignStatus.DRAFT: frozenset({CampaignStatus.ACTIVE}),
    CampaignStatus.ACTIVE: frozenset({CampaignStatus.PAUSED, CampaignStatus.COMPLETED}),
    CampaignStatus.PAUSED: frozenset({CampaignStatus.ACTIVE, CampaignStatus.COMPLETED}),
    CampaignStatus.COMPLETED: frozenset(),
}

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.DRAFT: frozenset({OrderStatus.APPROVED, OrderStatus.CANCELLED}),
    OrderStatus.APPROVED: frozenset({OrderStatus.BOOKED, OrderStatus.CANCELLED}),
    OrderStatus.BOOKED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

INVOICE_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: frozenset({InvoiceStatus.SENT, InvoiceStatus.VOID}),
    InvoiceStatus.SENT: frozenset({InvoiceStatus.PAID, InvoiceStatus.VOID}),
    InvoiceStatus.PAID: frozenset(),
    InvoiceStatus.VOID: frozenset(),
}

INVOICE_CORRECTIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.SENT: frozenset({InvoiceStatus.DRAFT}),
    InvoiceStatus.PAID: frozenset({InvoiceStatus.SENT}),
    InvoiceStatus.VOID: frozenset({InvoiceStatus.DRAFT}),
}


def ensure_transition(kind: str, current, target, transitions: Mapping) -> None:
    """Raise ValidationFailed unless ``current -> target`` is in ``transitions``."""
    allowed = transitions.get(current, frozenset())
    if target not in allowed:
        raise ValidationFailed(
            f"Cannot move {kind} from {current.value} to {target.value}",
            reason="invalid_transition",
            allowed=sorted(s.value for s in allowed),
        )


def plan_invoice_transition(
    current: InvoiceStatus,
    target: InvoiceStatus,
    *,
    can_correct: bool,
    reason: str | None,
) -> bool:
    """Check an invoice status change. Returns True when it is a correction.

    Raises:
        PermissionDenied: backwards move without the correction capability.
        ValidationFailed: illegal move, or a correction without a reason.
    """
    if target in INVOICE_TRANSITIONS.get(current, frozenset()):
        return False
    if target not in INVOICE_CORRECTIONS.get(current, frozenset()):
        ensure_transition("invoice", current, target, INVOICE_TRANSITIONS)
    if not can_correct:
        raise PermissionDenied("Only administrators can correct an invoice status")
    if not reason or not reason.strip():
        raise ValidationFailed(
            "A reason is required to correct an invoice status",
            reason="correction_reason_required",
        )
    return True
