"""Pydantic schemas for organization users and authentication."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from src.podflow.core.permissions import Role
from src.podflow.schemas.common import non_nullable


class UserCreate(BaseModel):
    email: EmailStr
    name: str | None = Field(default=None, max_length=200)
    role: Role
    password: str | None = Field(default=None, min_length=8, description="Omit to create a user who cannot log in yet")
    phone: str | None = Field(default=None, max_length=50)
    title: str | None = Field(default=None, max_length=100)


class UserUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    role: Role | None = None
    is_active: bool | None = None
    phone: str | None = Field(default=None, max_length=50)
    title: str | None = Field(default=None, max_length=100)
    password: str | None = Field(default=None, min_length=8)

    _not_null = non_nullable("role", "is_active", "password")


class UserRead(BaseModel):
    id: str
    organization_id: str
    email: str
    name: str | None = None
    role: str
    is_active: bool = True
    phone: str | None = None
    title: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserRecord(UserRead):
    """UserRead plus the password hash. Never returned from the API."""

    hashed_password: str | None = None

    def public(self) -> UserRead:
        return UserRead.model_validate(self.model_dump(exclude={"hashed_password"}))


# ── Auth ────────────────────────────────────────────────────────────────────


class LoginRequest(BaseModel):
    """Emails are only unique inside an organization, so login names one."""

    organization: str = Field(..., min_length=1, description="Organization slug")
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")


class OrganizationSummary(BaseModel):
    id: str
    slug: str
    name: str


class LoginResponse(BaseModel):
    user: UserRead
    organization: OrganizationSummary
    expires_at: datetime
    token: str


class MeResponse(BaseModel):
    user_id: str
    email: str | None = None
    name: str | None = None
    role: str
    organization_id: str
    organization_slug: str
    capabilities: list[str] = Field(default_factory=list)
