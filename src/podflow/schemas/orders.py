"""Pydantic schemas for insertion orders."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field

from src.podflow.schemas.rates import PlacementType


class OrderStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    BOOKED = "booked"
    CANCELLED = "cancelled"


class OrderItemCreate(BaseModel):
    show_id: str
    episode_id: str | None = None
    placement_type: PlacementType
    air_date: date
    rate: float = Field(..., ge=0)


class OrderCreate(BaseModel):
    campaign_id: str
    notes: str | None = None
    items: list[OrderItemCreate] = Field(..., min_length=1)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderItemRead(BaseModel):
    id: str
    order_id: str
    show_id: str
    episode_id: str | None = None
    placement_type: PlacementType
    air_date: date
    rate: float


class OrderRead(BaseModel):
    id: str
    order_number: str
    campaign_id: str
    status: OrderStatus = OrderStatus.DRAFT
    total_amount: float = 0.0
    notes: str | None = None
    items: list[OrderItemRead] = Field(default_factory=list)
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
