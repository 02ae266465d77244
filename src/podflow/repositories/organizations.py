"""Organization, billing plan and platform-setting repositories over the public schema."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.podflow.models.public import BillingPlan, Organization, PlatformSetting
from src.podflow.repositories.base import parse_uuid
from src.podflow.schemas.organizations import (
    BillingPlanRead,
    OrganizationRead,
    OrganizationUpdate,
    PlatformSettingRead,
)

SessionFactory = Callable[..., AsyncGenerator[AsyncSession, None]]


def _model_to_organization(model: Organization) -> OrganizationRead:
    return OrganizationRead(
        id=str(model.id),
        name=model.name,
        slug=model.slug,
        schema_name=model.schema_name,
        plan=model.plan,
        status=model.status,
        timezone=model.timezone,
        youtube_daily_quota=model.youtube_daily_quota,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


class OrganizationRepository:
    """Reads and updates organization records.

    Creation lives in the provisioning service because it also creates the
    organization's schema.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def list(self, include_archived: bool = False) -> list[OrganizationRead]:
        stmt = select(Organization).order_by(Organization.name)
        if not include_archived:
            stmt = stmt.where(Organization.status != "archived")
        async for session in self._session_factory():
            result = await session.execute(stmt)
            return [_model_to_organization(m) for m in result.scalars().all()]
        return []

    async def get(self, organization_id: str) -> OrganizationRead | None:
        key = parse_uuid(organization_id)
        if key is None:
            return None
        async for session in self._session_factory():
            model = await session.get(Organization, key)
            return _model_to_organization(model) if model else None
        return None

    async def get_by_slug(self, slug: str) -> OrganizationRead | None:
        async for session in self._session_factory():
            result = await session.execute(select(Organization).where(Organization.slug == slug.lower()))
            model = result.scalar_one_or_none()
            return _model_to_organization(model) if model else None
        return None

    async def update(self, organization_id: str, data: OrganizationUpdate) -> OrganizationRead | None:
        key = parse_uuid(organization_id)
        if key is None:
            return None
        async for session in self._session_factory():
            model = await session.get(Organization, key)
            if model is None:
                return None
            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(model, field, value.value if hasattr(value, "value") else value)
            await session.commit()
            await session.refresh(model)
            return _model_to_organization(model)
        return None


class PlatformSettingsRepository:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def list(self) -> list[PlatformSettingRead]:
        async for session in self._session_factory():
            result = await session.execute(select(PlatformSetting).order_by(PlatformSetting.key))
            return [
                PlatformSettingRead(
                    key=m.key,
                    value=m.value,
                    updated_by=str(m.updated_by) if m.updated_by else None,
                    updated_at=m.updated_at,
                )
                for m in result.scalars().all()
            ]
        return []

    async def upsert(self, key: str, value: dict[str, Any], updated_by: str) -> PlatformSettingRead:
        async for session in self._session_factory():
            model = await session.get(PlatformSetting, key)
            if model is None:
                model = PlatformSetting(key=key, value=value)
                session.add(model)
            else:
                model.value = value
            model.updated_by = uuid.UUID(updated_by)
            await session.commit()
            await session.refresh(model)
            return PlatformSettingRead(
                key=model.key,
                value=model.value,
                updated_by=str(model.updated_by) if model.updated_by else None,
                updated_at=model.updated_at,
            )
        raise RuntimeError("session factory yielded no session")


def _model_to_plan(model: BillingPlan) -> BillingPlanRead:
    return BillingPlanRead(
        code=model.code,
        name=model.name,
        monthly_price=float(model.monthly_price),
        max_users=model.max_users,
        max_shows=model.max_shows,
    )


class BillingPlanRepository:
    """The plans an organization's ``plan`` code may name."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def list(self) -> list[BillingPlanRead]:
        async for session in self._session_factory():
            result = await session.execute(select(BillingPlan).order_by(BillingPlan.monthly_price))
            return [_model_to_plan(m) for m in result.scalars().all()]
        return []

    async def get(self, code: str) -> BillingPlanRead | None:
        async for session in self._session_factory():
            model = await session.get(BillingPlan, code)
            return _model_to_plan(model) if model else None
        return None
