"""Pydantic schemas for campaigns."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from src.podflow.schemas.common import non_nullable


class CampaignStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class _DateRangeMixin(BaseModel):
    @model_validator(mode="after")
    def _check_dates(self):
        start = getattr(self, "start_date", None)
        end = getattr(self, "end_date", None)
        if start and end and end < start:
            raise ValueError("end_date must not be before start_date")
        return self


class CampaignCreate(_DateRangeMixin):
    """Request body for creating a campaign. New campaigns start as drafts."""

    name: str = Field(..., min_length=1, max_length=200)
    advertiser_id: str | None = None
    agency_id: str | None = None
    budget: float = Field(default=0.0, ge=0)
    start_date: date | None = None
    end_date: date | None = None


class CampaignUpdate(_DateRangeMixin):
    """Request body for updating a campaign (all fields optional).

    Status is not editable here; use the status endpoint so the lifecycle
    rules apply.
    """

    name: str | None = Field(default=None, min_length=1, max_length=200)
    advertiser_id: str | None = None
    agency_id: str | None = None
    budget: float | None = Field(default=None, ge=0)
    start_date: date | None = None
    end_date: date | None = None

    _not_null = non_nullable("name", "budget")


class CampaignStatusUpdate(BaseModel):
    status: CampaignStatus


class CampaignRead(BaseModel):
    id: str
    name: str
    advertiser_id: str | None = None
    agency_id: str | None = None
    budget: float = 0.0
    status: CampaignStatus = CampaignStatus.DRAFT
    start_date: date | None = None
    end_date: date | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
