"""Login, logout and the session resolver.

The session resolver turns an ``auth-token`` into the TenantContext every
handler works with. The token alone is not trusted for authorization:
the session row must be live, the user must still exist and be active,
and the organization must not be suspended. The role is always re-read
from the user row so a demotion takes effect on the next request.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import structlog

from src.podflow.config import Settings
from src.podflow.core.errors import NotAuthenticated
from src.podflow.core.security import (
    create_session_token,
    new_session_id,
    verify_password,
    verify_session_token,
)
from src.podflow.core.tenant import TenantContext, derive_schema_name
from src.podflow.repositories.organizations import OrganizationRepository
from src.podflow.repositories.users import SessionRepository, UserRepository
from src.podflow.schemas.organizations import OrganizationRead, OrganizationStatus
from src.podflow.schemas.users import UserRecord

logger = structlog.get_logger(__name__)

INVALID_CREDENTIALS = "Invalid organization, email or password"


@dataclass(frozen=True)
class LoginResult:
    token: str
    expires_at: datetime
    user: UserRecord
    organization: OrganizationRead


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        organizations: OrganizationRepository,
        sessions: SessionRepository,
        settings: Settings,
    ) -> None:
        self._users = users
        self._organizations = organizations
        self._sessions = sessions
        self._settings = settings

    async def login(self, organization_slug: str, email: str, password: str) -> LoginResult:
        """Check credentials and open a session.

        Every failure returns the same message so the response does not
        reveal which organizations or emails exist.
        """
        organization = await self._organizations.get_by_slug(organization_slug)
        if organization is None or organization.status != OrganizationStatus.ACTIVE:
            logger.info("login_failed", organization=organization_slug, reason="organization")
            raise NotAuthenticated(INVALID_CREDENTIALS)

        user = await self._users.get_record_by_email(organization.id, email)
        if user is None or not user.is_active or not user.hashed_password:
            logger.info("login_failed", organization=organization_slug, reason="user")
            raise NotAuthenticated(INVALID_CREDENTIALS)
        if not verify_password(password, user.hashed_password):
            logger.info("login_failed", organization=organization_slug, reason="password")
            raise NotAuthenticated(INVALID_CREDENTIALS)

        session_id = new_session_id()
        token, expires_at = create_session_token(
            user_id=user.id,
            organization_id=organization.id,
            organization_slug=organization.slug,
            role=user.role,
            session_id=session_id,
            settings=self._settings,
        )
        await self._sessions.create(session_id, user.id, expires_at)
        logger.info("login_succeeded", organization=organization.slug, user_id=user.id)
        return LoginResult(token=token, expires_at=expires_at, user=user, organization=organization)

    async def logout(self, session_id: str | None) -> None:
        if session_id:
            await self._sessions.revoke(session_id)

    async def resolve(self, token: str) -> TenantContext:
        """Validate a session token and build the request's TenantContext.

        Raises:
            HTTPException(401) / NotAuthenticated: anything about the token,
            session, user or organization is no longer valid.
        """
        claims = verify_session_token(token, self._settings)

        if not await self._sessions.is_active(claims["sid"]):
            raise NotAuthenticated("Unauthorized")

        user = await self._users.get_record(claims["sub"])
        if user is None or not user.is_active or user.organization_id != claims["org_id"]:
            raise NotAuthenticated("Unauthorized")

        organization = await self._organizations.get(user.organization_id)
        if organization is None or organization.status != OrganizationStatus.ACTIVE:
            raise NotAuthenticated("Unauthorized")

        return TenantContext(
            user_id=user.id,
            organization_id=organization.id,
            organization_slug=organization.slug,
            schema_name=derive_schema_name(organization.slug, prefix=self._settings.TENANT_SCHEMA_PREFIX),
            role=user.role,
            session_id=claims["sid"],
        )
