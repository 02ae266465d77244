"""Pydantic schemas for schedules and schedule items."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

from src.podflow.schemas.rates import PlacementType


class ScheduleCreate(BaseModel):
    campaign_id: str
    name: str = Field(..., min_length=1, max_length=200)


class ScheduleItemCreate(BaseModel):
    """One placement slot.

    ``rate_card_price`` is looked up from the show's rate history when
    omitted; ``negotiated_price`` defaults to the rate card price.
    """

    show_id: str
    episode_id: str | None = None
    air_date: date
    placement_type: PlacementType
    rate_card_price: float | None = Field(default=None, ge=0)
    negotiated_price: float | None = Field(default=None, ge=0)


class ScheduleItemsCreate(BaseModel):
    items: list[ScheduleItemCreate] = Field(..., min_length=1)


class ScheduleItemRead(BaseModel):
    id: str
    schedule_id: str
    show_id: str
    episode_id: str | None = None
    air_date: date
    placement_type: PlacementType
    rate_card_price: float
    negotiated_price: float
    created_at: datetime | None = None


class ScheduleRead(BaseModel):
    id: str
    campaign_id: str
    name: str
    status: str = "draft"
    items: list[ScheduleItemRead] = Field(default_factory=list)
    total_price: float = 0.0
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
