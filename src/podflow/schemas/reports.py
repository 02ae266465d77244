"""Pydantic schemas for revenue, campaign and custom reports.

Every report carries ``degraded``: when the underlying query failed the
aggregates are zero and the flag is set, so a dashboard can tell "no
revenue" apart from "revenue unavailable".
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class RevenueMonth(BaseModel):
    month: str  # YYYY-MM
    booked: float = 0.0
    invoiced: float = 0.0
    paid: float = 0.0


class RevenueReport(BaseModel):
    start_date: date
    end_date: date
    booked_total: float = 0.0
    invoiced_total: float = 0.0
    paid_total: float = 0.0
    outstanding_total: float = 0.0
    months: list[RevenueMonth] = Field(default_factory=list)
    degraded: bool = False


class CampaignReportRow(BaseModel):
    campaign_id: str
    name: str
    status: str
    budget: float = 0.0
    spots: int = 0
    booked_amount: float = 0.0
    invoiced_amount: float = 0.0
    paid_amount: float = 0.0


# ── Custom Reports ──────────────────────────────────────────────────────────


class ReportDimension(str, Enum):
    CAMPAIGN_NAME = "campaign_name"
    CAMPAIGN_STATUS = "campaign_status"
    SHOW_NAME = "show_name"
    SHOW_CATEGORY = "show_category"
    PLACEMENT_TYPE = "placement_type"
    MONTH = "month"


class ReportMetric(str, Enum):
    SPOTS = "spots"
    REVENUE = "revenue"
    RATE_CARD_VALUE = "rate_card_value"
    DISCOUNT = "discount"
    AVERAGE_PRICE = "average_price"


class FilterOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    BETWEEN = "between"


class DateRangePreset(str, Enum):
    TODAY = "today"
    YESTERDAY = "yesterday"
    LAST_7_DAYS = "last7days"
    LAST_30_DAYS = "last30days"
    LAST_90_DAYS = "last90days"
    THIS_MONTH = "thisMonth"
    LAST_MONTH = "lastMonth"
    THIS_QUARTER = "thisQuarter"
    YEAR_TO_DATE = "ytd"
    CUSTOM = "custom"


class ReportFilter(BaseModel):
    field: ReportDimension
    operator: FilterOperator
    value: str | float
    value2: str | float | None = None

    @model_validator(mode="after")
    def _check_between(self):
        if self.operator == FilterOperator.BETWEEN and self.value2 is None:
            raise ValueError("between filters need value2")
        return self


class CustomReportRequest(BaseModel):
    name: str = Field(default="Custom Report", max_length=200)
    dimensions: list[ReportDimension] = Field(default_factory=list)
    metrics: list[ReportMetric] = Field(..., min_length=1)
    filters: list[ReportFilter] = Field(default_factory=list)
    date_range: DateRangePreset = DateRangePreset.LAST_30_DAYS
    start_date: date | None = None
    end_date: date | None = None

    @model_validator(mode="after")
    def _check_custom_range(self):
        if self.date_range == DateRangePreset.CUSTOM:
            if not self.start_date or not self.end_date:
                raise ValueError("custom date ranges need start_date and end_date")
            if self.end_date < self.start_date:
                raise ValueError("end_date must not be before start_date")
        return self


class CustomReport(BaseModel):
    name: str
    dimensions: list[ReportDimension]
    metrics: list[ReportMetric]
    rows: list[dict[str, Any]] = Field(default_factory=list)
    total_rows: int = 0
    start_date: date
    end_date: date
    generated_at: datetime
    degraded: bool = False
