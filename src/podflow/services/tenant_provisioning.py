"""Organization provisioning service.

Creates a new organization with its own PostgreSQL schema (``org_<slug>``),
the full set of per-organization tables, an optional initial admin, and a
Redis namespace. Everything database-side happens in one transaction: a
failure part-way through leaves neither a schema nor an organization row.
"""

from __future__ import annotations

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from src.podflow.core.database import create_tenant_tables, get_engine
from src.podflow.core.errors import ConflictError, ValidationFailed
from src.podflow.core.redis import get_tenant_redis
from src.podflow.core.security import hash_password
from src.podflow.core.tenant import DEFAULT_SCHEMA_PREFIX, InvalidTenantSlug, derive_schema_name
from src.podflow.schemas.organizations import OrganizationCreate, OrganizationRead

logger = structlog.get_logger(__name__)


async def provision_organization(
    data: OrganizationCreate,
    *,
    engine: AsyncEngine | None = None,
    schema_prefix: str = DEFAULT_SCHEMA_PREFIX,
) -> OrganizationRead:
    """Provision a new organization.

    Steps:
    1. Derive the schema name from the slug
    2. Reject a duplicate slug (or a slug mapping onto an existing schema)
    3. Create the schema and every per-organization table
    4. Insert the organization record (and the initial admin, if given)
    5. Initialize the Redis namespace

    Raises:
        ValidationFailed(400): slug cannot be turned into a schema name
        ConflictError(409): an organization with this slug already exists
    """
    try:
        schema_name = derive_schema_name(data.slug, prefix=schema_prefix)
    except InvalidTenantSlug as exc:
        raise ValidationFailed(str(exc), reason="invalid_slug") from exc

    engine = engine or get_engine()
    async with engine.begin() as conn:
        existing = await conn.execute(
            text("SELECT id FROM public.organizations WHERE slug = :slug OR schema_name = :schema_name"),
            {"slug": data.slug, "schema_name": schema_name},
        )
        if existing.first():
            raise ConflictError(f"Organization with slug '{data.slug}' already exists")

        # schema_name is validated by derive_schema_name, safe to interpolate
        await conn.execute(text(f'CREATE SCHEMA "{schema_name}"'))
        await create_tenant_tables(conn, schema_name)

        result = await conn.execute(
            text(
                """
                INSERT INTO public.organizations (name, slug, schema_name, plan, status, timezone)
                VALUES (:name, :slug, :schema_name, :plan, 'active', :timezone)
                RETURNING id, name, slug, schema_name, plan, status, timezone, youtube_daily_quota,
                          created_at, updated_at
                """
            ),
            {
                "name": data.name,
                "slug": data.slug,
                "schema_name": schema_name,
                "plan": data.plan,
                "timezone": data.timezone,
            },
        )
        row = result.mappings().one()

        if data.admin_email:
            await conn.execute(
                text(
                    """
                    INSERT INTO public.users (organization_id, email, name, role, hashed_password, is_active)
                    VALUES (:organization_id, :email, :name, 'admin', :hashed_password, true)
                    """
                ),
                {
                    "organization_id": row["id"],
                    "email": data.admin_email.lower(),
                    "name": data.admin_name,
                    "hashed_password": hash_password(data.admin_password) if data.admin_password else None,
                },
            )

    organization = OrganizationRead(**{**dict(row), "id": str(row["id"])})
    logger.info(
        "organization_provisioned",
        organization=organization.slug,
        schema=schema_name,
        with_admin=bool(data.admin_email),
    )

    try:
        await get_tenant_redis(organization.slug).set("initialized", "true")
    except Exception:
        logger.warning("redis_namespace_init_failed", organization=organization.slug, exc_info=True)

    return organization
