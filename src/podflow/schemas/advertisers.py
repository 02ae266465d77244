"""Pydantic schemas for advertisers and the agencies that buy on their behalf."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class AdvertiserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    industry: str | None = Field(default=None, max_length=100)
    contact_email: EmailStr | None = None


class AdvertiserRead(BaseModel):
    id: str
    name: str
    industry: str | None = None
    contact_email: str | None = None
    is_active: bool = True
    campaign_count: int = 0
    created_at: datetime | None = None


class AgencyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    contact_email: EmailStr | None = None


class AgencyRead(BaseModel):
    id: str
    name: str
    contact_email: str | None = None
    is_active: bool = True
    campaign_count: int = 0
    created_at: datetime | None = None
