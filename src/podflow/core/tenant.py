"""Tenant context propagation via Python contextvars.

This module is the foundation of multi-tenant isolation. The TenantContext
is produced by the session resolver at the start of each request and is
accessible anywhere in the call stack via get_current_tenant(). Every tenant
query and Redis operation uses this context to scope itself to the
organization's schema (``org_<slug>``).
"""

from __future__ import annotations

import contextvars
import re
from dataclasses import dataclass

# Postgres truncates identifiers at 63 bytes
_MAX_IDENTIFIER_LENGTH = 63
_SCHEMA_PATTERN = re.compile(r"^[a-z0-9_]+$")

DEFAULT_SCHEMA_PREFIX = "org_"


class InvalidTenantSlug(ValueError):
    """Raised when an organization slug cannot be mapped to a safe schema name."""


def derive_schema_name(slug: str, prefix: str = DEFAULT_SCHEMA_PREFIX) -> str:
    """Map an organization slug to its physical schema name.

    ``Acme-Audio`` becomes ``org_acme_audio``. The result is interpolated
    into SQL as an identifier, so anything outside ``[a-z0-9_]`` is rejected
    rather than escaped.
    """
    if not slug or not slug.strip():
        raise InvalidTenantSlug("Organization slug is empty")

    sanitized = slug.strip().lower().replace("-", "_")
    schema_name = f"{prefix}{sanitized}"

    if not _SCHEMA_PATTERN.match(sanitized):
        raise InvalidTenantSlug(f"Organization slug contains invalid characters: {slug!r}")
    if len(schema_name) > _MAX_IDENTIFIER_LENGTH:
        raise InvalidTenantSlug(f"Organization slug is too long: {slug!r}")
    return schema_name


# ── Tenant Context ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TenantContext:
    """Immutable tenant context for the current request."""

    user_id: str
    organization_id: str
    organization_slug: str
    schema_name: str  # e.g., "org_acme_audio"
    role: str
    session_id: str | None = None

    @property
    def is_master(self) -> bool:
        return self.role == "master"


_tenant_context: contextvars.ContextVar[TenantContext] = contextvars.ContextVar("tenant_context")


def get_current_tenant() -> TenantContext:
    """Get the tenant context for the current request.

    Raises RuntimeError if no tenant context has been set (i.e., the call
    is not within an authenticated request).
    """
    try:
        return _tenant_context.get()
    except LookupError:
        raise RuntimeError("No tenant context set -- request is not tenant-scoped")


def set_tenant_context(ctx: TenantContext) -> contextvars.Token[TenantContext]:
    """Set the tenant context for the current request. Returns a token for reset."""
    return _tenant_context.set(ctx)


def reset_tenant_context(token: contextvars.Token[TenantContext]) -> None:
    """Restore the context that was active before set_tenant_context()."""
    _tenant_context.reset(token)
