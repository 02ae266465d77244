"""Pydantic schemas for master-only organization and platform management."""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, EmailStr, Field, field_validator

from src.podflow.schemas.common import non_nullable

# Lowercase alphanumeric plus hyphens/underscores, 3-50 chars
SLUG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]{1,48}[a-z0-9]$")


class OrganizationStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    ARCHIVED = "archived"


class OrganizationCreate(BaseModel):
    """Request body for provisioning an organization and its schema.

    When ``admin_email`` is given an initial admin user is created in the
    same transaction.
    """

    name: str = Field(..., min_length=1, max_length=200)
    slug: str = Field(..., min_length=3, max_length=50)
    plan: str = Field(default="starter", max_length=50)
    timezone: str = Field(default="UTC", max_length=64)
    admin_email: EmailStr | None = None
    admin_name: str | None = None
    admin_password: str | None = Field(default=None, min_length=8)

    @field_validator("slug")
    @classmethod
    def _check_slug(cls, value: str) -> str:
        if not SLUG_PATTERN.match(value):
            raise ValueError(
                "Slug must be 3-50 chars, lowercase alphanumeric, hyphens or underscores, "
                "and must start and end with an alphanumeric character"
            )
        return value


class OrganizationUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    plan: str | None = Field(default=None, max_length=50)
    status: OrganizationStatus | None = None
    timezone: str | None = Field(default=None, max_length=64)
    youtube_daily_quota: int | None = Field(default=None, ge=0)

    _not_null = non_nullable("name", "plan", "status", "timezone")


class OrganizationRead(BaseModel):
    id: str
    name: str
    slug: str
    schema_name: str
    plan: str = "starter"
    status: OrganizationStatus = OrganizationStatus.ACTIVE
    timezone: str = "UTC"
    youtube_daily_quota: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PlatformSettingRead(BaseModel):
    key: str
    value: dict[str, Any]
    updated_by: str | None = None
    updated_at: datetime | None = None


class PlatformSettingUpdate(BaseModel):
    key: str = Field(..., min_length=1, max_length=100)
    value: dict[str, Any]


class BillingPlanRead(BaseModel):
    code: str
    name: str
    monthly_price: float
    max_users: int | None = None
    max_shows: int | None = None
