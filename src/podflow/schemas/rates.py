"""Pydantic schemas for rate history, rate cards and category exclusivity.

Rate history amounts are deliberately unconstrained here: the rate history
validator rejects non-positive amounts itself so the 400 response carries
``reason: invalid_amount``.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from src.podflow.schemas.common import non_nullable


class PlacementType(str, Enum):
    PRE_ROLL = "pre_roll"
    MID_ROLL = "mid_roll"
    POST_ROLL = "post_roll"


# ── Rate History ────────────────────────────────────────────────────────────


class RateHistoryCreate(BaseModel):
    """A rate interval ``[effective_date, end_date)``; no end date means open-ended."""

    effective_date: date
    end_date: date | None = None
    base_rate: float
    pre_roll_rate: float | None = None
    mid_roll_rate: float | None = None
    post_roll_rate: float | None = None
    notes: str | None = None


class RateHistoryUpdate(BaseModel):
    effective_date: date | None = None
    end_date: date | None = None
    base_rate: float | None = None
    pre_roll_rate: float | None = None
    mid_roll_rate: float | None = None
    post_roll_rate: float | None = None
    notes: str | None = None
    is_active: bool | None = None

    _not_null = non_nullable("effective_date", "base_rate", "is_active")


class RateHistoryRead(BaseModel):
    id: str
    show_id: str
    effective_date: date
    end_date: date | None = None
    base_rate: float
    pre_roll_rate: float | None = None
    mid_roll_rate: float | None = None
    post_roll_rate: float | None = None
    notes: str | None = None
    is_active: bool = True
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def rate_for(self, placement: PlacementType) -> float:
        """Price for a placement, falling back to the base rate."""
        specific = {
            PlacementType.PRE_ROLL: self.pre_roll_rate,
            PlacementType.MID_ROLL: self.mid_roll_rate,
            PlacementType.POST_ROLL: self.post_roll_rate,
        }[placement]
        return specific if specific is not None else self.base_rate


# ── Rate Cards ──────────────────────────────────────────────────────────────


class RateCardCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    base_rate: float = Field(..., gt=0)
    pre_roll_rate: float | None = Field(default=None, gt=0)
    mid_roll_rate: float | None = Field(default=None, gt=0)
    post_roll_rate: float | None = Field(default=None, gt=0)
    effective_date: date
    is_active: bool = True


class RateCardUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    base_rate: float | None = Field(default=None, gt=0)
    pre_roll_rate: float | None = Field(default=None, gt=0)
    mid_roll_rate: float | None = Field(default=None, gt=0)
    post_roll_rate: float | None = Field(default=None, gt=0)
    effective_date: date | None = None
    is_active: bool | None = None

    _not_null = non_nullable("name", "base_rate", "effective_date", "is_active")


class RateCardRead(BaseModel):
    id: str
    name: str
    description: str | None = None
    base_rate: float
    pre_roll_rate: float | None = None
    mid_roll_rate: float | None = None
    post_roll_rate: float | None = None
    effective_date: date
    is_active: bool = True
    created_by: str | None = None
    created_at: datetime | None = None


# ── Category Exclusivity ────────────────────────────────────────────────────


class CategoryExclusivityCreate(BaseModel):
    show_id: str
    category: str = Field(..., min_length=1, max_length=100)
    exclusivity_premium: float = Field(..., gt=0, le=1)
    effective_date: date
    end_date: date | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_date and self.end_date <= self.effective_date:
            raise ValueError("end_date must be after effective_date")
        return self


class CategoryExclusivityRead(BaseModel):
    id: str
    show_id: str
    show_name: str | None = None
    category: str
    exclusivity_premium: float
    effective_date: date
    end_date: date | None = None
    notes: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None


# ── Analytics ───────────────────────────────────────────────────────────────


class RateTrendPoint(BaseModel):
    show_id: str
    show_name: str | None = None
    effective_date: date
    end_date: date | None = None
    base_rate: float
    change_pct: float | None = None


class RateTrends(BaseModel):
    points: list[RateTrendPoint] = Field(default_factory=list)
    degraded: bool = False
