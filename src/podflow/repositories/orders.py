"""Order and invoice repositories.

Both documents are a header row plus line items; each create runs inside a
single tenant transaction so a failed line item leaves no orphaned header.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from typing import Any

from src.podflow.repositories.base import Row, TenantRepository, as_decimal, as_float, as_str, parse_uuid
from src.podflow.schemas.common import Listing
from src.podflow.schemas.invoices import InvoiceItemRead, InvoiceRead, InvoiceStatus
from src.podflow.schemas.orders import OrderCreate, OrderItemRead, OrderRead, OrderStatus


def _row_to_order_item(row: Row) -> OrderItemRead:
    return OrderItemRead(
        id=str(row["id"]),
        order_id=str(row["order_id"]),
        show_id=str(row["show_id"]),
        episode_id=as_str(row.get("episode_id")),
        placement_type=row["placement_type"],
        air_date=row["air_date"],
        rate=as_float(row["rate"]),
    )


def _row_to_order(row: Row) -> OrderRead:
    return OrderRead(
        id=str(row["id"]),
        order_number=row["order_number"],
        campaign_id=str(row["campaign_id"]),
        status=row.get("status") or OrderStatus.DRAFT,
        total_amount=as_float(row.get("total_amount")) or 0.0,
        notes=row.get("notes"),
        created_by=as_str(row.get("created_by")),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def _row_to_invoice_item(row: Row) -> InvoiceItemRead:
    return InvoiceItemRead(
        id=str(row["id"]),
        invoice_id=str(row["invoice_id"]),
        description=row["description"],
        quantity=row["quantity"],
        unit_price=as_float(row["unit_price"]),
        amount=as_float(row["amount"]),
    )


def _row_to_invoice(row: Row) -> InvoiceRead:
    return InvoiceRead(
        id=str(row["id"]),
        invoice_number=row["invoice_number"],
        campaign_id=str(row["campaign_id"]),
        status=row.get("status") or InvoiceStatus.DRAFT,
        issue_date=row["issue_date"],
        due_date=row.get("due_date"),
        total_amount=as_float(row["total_amount"]),
        correction_reason=row.get("correction_reason"),
        created_by=as_str(row.get("created_by")),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class OrderRepository(TenantRepository):
    resource = "orders"

    async def list(
        self,
        organization_slug: str,
        campaign_id: str | None = None,
        status: OrderStatus | None = None,
    ) -> Listing[OrderRead]:
        clauses: list[str] = []
        params: list[Any] = []
        if campaign_id is not None:
            key = parse_uuid(campaign_id)
            if key is None:
                return Listing.of([])
            params.append(key)
            clauses.append(f"campaign_id = ${len(params)}")
        if status is not None:
            params.append(status.value)
            clauses.append(f"status = ${len(params)}")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return await self._list(
            organization_slug,
            f"SELECT * FROM orders {where} ORDER BY created_at DESC",
            params,
            _row_to_order,
        )

    async def get(self, organization_slug: str, order_id: str) -> OrderRead | None:
        key = parse_uuid(order_id)
        if key is None:
            return None
        order = await self._get(organization_slug, "SELECT * FROM orders WHERE id = $1", [key], _row_to_order)
        if order is None:
            return None
        items = await self._list(
            organization_slug,
            "SELECT * FROM order_items WHERE order_id = $1 ORDER BY air_date",
            [key],
            _row_to_order_item,
        )
        if items.degraded:
            return None
        order.items = items.items
        return order

    async def create(
        self,
        organization_slug: str,
        data: OrderCreate,
        *,
        order_number: str,
        total: Decimal,
        user_id: str,
    ) -> OrderRead:
        async with self._executor.transaction(organization_slug) as tx:
            header = await tx.fetch_one(
                """
                INSERT INTO orders (order_number, campaign_id, status, total_amount, notes, created_by)
                VALUES ($1, $2, 'draft', $3, $4, $5)
                RETURNING *
                """,
                [order_number, parse_uuid(data.campaign_id), total, data.notes, parse_uuid(user_id)],
            )
            order = _row_to_order(header)
            for item in data.items:
                row = await tx.fetch_one(
                    """
                    INSERT INTO order_items (order_id, show_id, episode_id, placement_type, air_date, rate)
                    VALUES ($1, $2, $3, $4, $5, $6)
                    RETURNING *
                    """,
                    [
                        header["id"],
                        parse_uuid(item.show_id),
                        parse_uuid(item.episode_id),
                        item.placement_type.value,
                        item.air_date,
                        as_decimal(item.rate),
                    ],
                )
                order.items.append(_row_to_order_item(row))
        return order

    async def set_status(self, organization_slug: str, order_id: str, status: OrderStatus) -> OrderRead | None:
        key = parse_uuid(order_id)
        if key is None:
            return None
        await self._write_one(
            organization_slug,
            "UPDATE orders SET status = $1, updated_at = now() WHERE id = $2 RETURNING *",
            [status.value, key],
            _row_to_order,
        )
        return await self.get(organization_slug, order_id)


class InvoiceRepository(TenantRepository):
    resource = "invoices"

    async def list(
        self,
        organization_slug: str,
        campaign_id: str | None = None,
        status: InvoiceStatus | None = None,
    ) -> Listing[InvoiceRead]:
        clauses: list[str] = []
        params: list[Any] = []
        if campaign_id is not None:
            key = parse_uuid(campaign_id)
            if key is None:
                return Listing.of([])
            params.append(key)
            clauses.append(f"campaign_id = ${len(params)}")
        if status is not None:
            params.append(status.value)
            clauses.append(f"status = ${len(params)}")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return await self._list(
            organization_slug,
            f"SELECT * FROM invoices {where} ORDER BY issue_date DESC, created_at DESC",
            params,
            _row_to_invoice,
        )

    async def get(self, organization_slug: str, invoice_id: str) -> InvoiceRead | None:
        key = parse_uuid(invoice_id)
        if key is None:
            return None
        invoice = await self._get(
            organization_slug, "SELECT * FROM invoices WHERE id = $1", [key], _row_to_invoice
        )
        if invoice is None:
            return None
        items = await self._list(
            organization_slug,
            "SELECT * FROM invoice_items WHERE invoice_id = $1 ORDER BY description",
            [key],
            _row_to_invoice_item,
        )
        if items.degraded:
            return None
        invoice.items = items.items
        return invoice

    async def create(
        self,
        organization_slug: str,
        *,
        campaign_id: str,
        invoice_number: str,
        issue_date: date,
        due_date: date | None,
        total: Decimal,
        lines: Sequence[tuple[str, int, Decimal, Decimal]],
        user_id: str,
    ) -> InvoiceRead:
        """Insert the invoice and its lines.

        ``lines`` are ``(description, quantity, unit_price, amount)`` tuples
        already reconciled against ``total``.
        """
        async with self._executor.transaction(organization_slug) as tx:
            header = await tx.fetch_one(
                """
                INSERT INTO invoices (invoice_number, campaign_id, status, issue_date, due_date, total_amount,
                                      created_by)
                VALUES ($1, $2, 'draft', $3, $4, $5, $6)
                RETURNING *
                """,
                [invoice_number, parse_uuid(campaign_id), issue_date, due_date, total, parse_uuid(user_id)],
            )
            invoice = _row_to_invoice(header)
            for description, quantity, unit_price, amount in lines:
                row = await tx.fetch_one(
                    """
                    INSERT INTO invoice_items (invoice_id, description, quantity, unit_price, amount)
                    VALUES ($1, $2, $3, $4, $5)
                    RETURNING *
                    """,
                    [header["id"], description, quantity, unit_price, amount],
                )
                invoice.items.append(_row_to_invoice_item(row))
        return invoice

    async def set_status(
        self,
        organization_slug: str,
        invoice_id: str,
        status: InvoiceStatus,
        correction_reason: str | None = None,
    ) -> InvoiceRead | None:
        key = parse_uuid(invoice_id)
        if key is None:
            return None
        await self._write_one(
            organization_slug,
            """
            UPDATE invoices
            SET status = $1, correction_reason = COALESCE($2, correction_reason), updated_at = now()
            WHERE id = $3
            RETURNING *
            """,
            [status.value, correction_reason, key],
            _row_to_invoice,
        )
        return await self.get(organization_slug, invoice_id)
