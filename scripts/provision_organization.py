#!/usr/bin/env python3
"""CLI script to provision a new organization.

Usage:
    python scripts/provision_organization.py --slug acme-audio --name "Acme Audio"
    python scripts/provision_organization.py --slug acme-audio --name "Acme Audio" \
        --admin-email admin@acme.example --admin-password changeme123
    python scripts/provision_organization.py --slug platform --name "Platform" \
        --admin-email ops@platform.example --admin-password changeme123 --master

Connects directly to the database using DATABASE_URL from environment or .env file.
Creates the public tables if needed, then provisions the organization schema,
its tables, the organization record and optionally an initial admin user.
``--master`` promotes that admin to the platform-wide master role.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

# Ensure project root is on sys.path so we can import src.podflow
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


async def provision(
    slug: str,
    name: str,
    admin_email: str | None,
    admin_password: str | None,
    master: bool,
) -> None:
    """Provision an organization by calling the provisioning service directly."""
    from sqlalchemy import text

    from src.podflow.config import get_settings
    from src.podflow.core.database import close_db, get_engine, init_db
    from src.podflow.schemas.organizations import OrganizationCreate
    from src.podflow.services.tenant_provisioning import provision_organization

    await init_db()

    data = OrganizationCreate(
        name=name,
        slug=slug,
        admin_email=admin_email,
        admin_name=f"Admin ({name})" if admin_email else None,
        admin_password=admin_password,
    )

    print(f"Provisioning organization: slug={slug}, name={name}")
    try:
        organization = await provision_organization(
            data, schema_prefix=get_settings().TENANT_SCHEMA_PREFIX
        )
        print("Organization provisioned successfully:")
        print(f"  ID:     {organization.id}")
        print(f"  Slug:   {organization.slug}")
        print(f"  Name:   {organization.name}")
        print(f"  Schema: {organization.schema_name}")

        if admin_email:
            print(f"  Admin user created: {admin_email}")

        if admin_email and master:
            async with get_engine().begin() as conn:
                await conn.execute(
                    text(
                        "UPDATE public.users SET role = 'master' "
                        "WHERE organization_id = :organization_id AND lower(email) = lower(:email)"
                    ),
                    {"organization_id": organization.id, "email": admin_email},
                )
            print("  Admin promoted to master")
    finally:
        await close_db()


def main() -> None:
    parser = argparse.ArgumentParser(description="Provision a new organization")
    parser.add_argument("--slug", required=True, help="Organization slug (e.g., acme-audio)")
    parser.add_argument("--name", required=True, help="Organization display name (e.g., 'Acme Audio')")
    parser.add_argument("--admin-email", default=None, help="Initial admin user email")
    parser.add_argument("--admin-password", default=None, help="Initial admin user password")
    parser.add_argument("--master", action="store_true", help="Give the initial admin the master role")
    args = parser.parse_args()

    if (args.admin_email and not args.admin_password) or (args.admin_password and not args.admin_email):
        parser.error("--admin-email and --admin-password must be provided together")
    if args.master and not args.admin_email:
        parser.error("--master requires --admin-email")

    asyncio.run(provision(args.slug, args.name, args.admin_email, args.admin_password, args.master))


if __name__ == "__main__":
    main()
