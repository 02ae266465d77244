"""Money arithmetic for orders and invoices.

All sums are done in Decimal and rounded to cents; floats only appear at
the API boundary.
"""

from __future__ import annotations

import secrets
from collections.abc import Iterable
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from src.podflow.core.errors import ValidationFailed
from src.podflow.schemas.invoices import InvoiceItemCreate

CENT = Decimal("0.01")


def to_money(value: float | int | str | Decimal) -> Decimal:
    """Convert to Decimal cents. Floats go through str() to avoid binary noise."""
    if isinstance(value, Decimal):
        amount = value
    else:
        amount = Decimal(str(value))
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def line_amount(quantity: int, unit_price: float | Decimal) -> Decimal:
    return to_money(Decimal(quantity) * to_money(unit_price))


def sum_money(values: Iterable[float | Decimal]) -> Decimal:
    return to_money(sum((to_money(v) for v in values), Decimal("0")))


def reconcile_invoice_total(
    items: Iterable[InvoiceItemCreate], supplied_total: float | None = None
) -> tuple[Decimal, list[Decimal]]:
    """Compute line amounts and the invoice total.

    Returns:
        ``(total, line_amounts)``.

    Raises:
        ValidationFailed: ``supplied_total`` differs from the summed line
        items by more than one cent.
    """
    amounts = [line_amount(item.quantity, item.unit_price) for item in items]
    total = sum_money(amounts)
    if supplied_total is not None and abs(to_money(supplied_total) - total) > CENT:
        raise ValidationFailed(
            "Invoice total does not match its line items",
            reason="total_mismatch",
            expected_total=float(total),
        )
    return total, amounts


def document_number(prefix: str, issued: date | None = None) -> str:
    """Human-facing order/invoice number, e.g. ``INV-20250801-3FA2C1``."""
    issued = issued or date.today()
    return f"{prefix}-{issued:%Y%m%d}-{secrets.token_hex(3).upper()}"
