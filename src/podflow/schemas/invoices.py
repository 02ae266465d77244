"""Pydantic schemas for invoices."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    VOID = "void"


class InvoiceItemCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=300)
    quantity: int = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)


class InvoiceCreate(BaseModel):
    """Request body for creating an invoice with its line items.

    ``total_amount`` is optional; when supplied it must agree with the
    line items to within one cent.
    """

    campaign_id: str
    issue_date: date | None = None
    due_date: date | None = None
    items: list[InvoiceItemCreate] = Field(..., min_length=1)
    total_amount: float | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_due_date(self):
        if self.issue_date and self.due_date and self.due_date < self.issue_date:
            raise ValueError("due_date must not be before issue_date")
        return self


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus
    reason: str | None = Field(default=None, max_length=500)


class InvoiceItemRead(BaseModel):
    id: str
    invoice_id: str
    description: str
    quantity: int
    unit_price: float
    amount: float


class InvoiceRead(BaseModel):
    id: str
    invoice_number: str
    campaign_id: str
    status: InvoiceStatus = InvoiceStatus.DRAFT
    issue_date: date
    due_date: date | None = None
    total_amount: float
    correction_reason: str | None = None
    items: list[InvoiceItemRead] = Field(default_factory=list)
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
