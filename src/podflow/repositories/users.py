"""User and session repositories over the public schema.

Uses the session_factory callable pattern: the factory is an async
generator yielding AsyncSession instances. All user lookups are scoped by
``organization_id`` and ignore soft-deleted rows.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.podflow.core.errors import ValidationFailed
from src.podflow.core.security import hash_password
from src.podflow.models.public import Session as SessionModel
from src.podflow.models.public import User
from src.podflow.repositories.base import parse_uuid
from src.podflow.schemas.users import UserCreate, UserRead, UserRecord, UserUpdate

logger = structlog.get_logger(__name__)

SessionFactory = Callable[..., AsyncGenerator[AsyncSession, None]]

DUPLICATE_EMAIL_MESSAGE = "A user with this email already exists in this organization"


def _model_to_record(model: User) -> UserRecord:
    return UserRecord(
        id=str(model.id),
        organization_id=str(model.organization_id),
        email=model.email,
        name=model.name,
        role=model.role,
        is_active=model.is_active,
        phone=model.phone,
        title=model.title,
        hashed_password=model.hashed_password,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


class UserRepository:
    """Async CRUD for organization users.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    @staticmethod
    def _scoped(organization_id: str):
        return select(User).where(
            User.organization_id == uuid.UUID(organization_id),
            User.deleted_at.is_(None),
        )

    async def list(self, organization_id: str) -> list[UserRead]:
        async for session in self._session_factory():
            result = await session.execute(self._scoped(organization_id).order_by(User.email))
            return [_model_to_record(m).public() for m in result.scalars().all()]
        return []

    async def get(self, organization_id: str, user_id: str) -> UserRead | None:
        key = parse_uuid(user_id)
        if key is None:
            return None
        async for session in self._session_factory():
            result = await session.execute(self._scoped(organization_id).where(User.id == key))
            model = result.scalar_one_or_none()
            return _model_to_record(model).public() if model else None
        return None

    async def get_record(self, user_id: str) -> UserRecord | None:
        """Active, non-deleted user by id regardless of organization (session resolution)."""
        key = parse_uuid(user_id)
        if key is None:
            return None
        async for session in self._session_factory():
            result = await session.execute(
                select(User).where(User.id == key, User.deleted_at.is_(None))
            )
            model = result.scalar_one_or_none()
            return _model_to_record(model) if model else None
        return None

    async def get_record_by_email(self, organization_id: str, email: str) -> UserRecord | None:
        async for session in self._session_factory():
            result = await session.execute(
                self._scoped(organization_id).where(func.lower(User.email) == email.lower())
            )
            model = result.scalar_one_or_none()
            return _model_to_record(model) if model else None
        return None

    async def create(self, organization_id: str, data: UserCreate) -> UserRead:
        """Create a user. Raises ValidationFailed if the email is taken in this organization."""
        if await self.get_record_by_email(organization_id, data.email) is not None:
            raise ValidationFailed(DUPLICATE_EMAIL_MESSAGE, reason="duplicate_email")

        async for session in self._session_factory():
            model = User(
                organization_id=uuid.UUID(organization_id),
                email=data.email.lower(),
                name=data.name,
                role=data.role.value,
                phone=data.phone,
                title=data.title,
                hashed_password=hash_password(data.password) if data.password else None,
                is_active=True,
            )
            session.add(model)
            try:
                await session.commit()
            except IntegrityError as exc:
                # Concurrent insert won the unique index race
                await session.rollback()
                raise ValidationFailed(DUPLICATE_EMAIL_MESSAGE, reason="duplicate_email") from exc
            await session.refresh(model)
            logger.info("user_created", organization_id=organization_id, user_id=str(model.id), role=model.role)
            return _model_to_record(model).public()
        raise RuntimeError("session factory yielded no session")

    async def update(self, organization_id: str, user_id: str, data: UserUpdate) -> UserRead | None:
        key = parse_uuid(user_id)
        if key is None:
            return None
        async for session in self._session_factory():
            result = await session.execute(self._scoped(organization_id).where(User.id == key))
            model = result.scalar_one_or_none()
            if model is None:
                return None
            changes = data.model_dump(exclude_unset=True)
            password = changes.pop("password", None)
            for field, value in changes.items():
                setattr(model, field, value.value if hasattr(value, "value") else value)
            if password:
                model.hashed_password = hash_password(password)
            await session.commit()
            await session.refresh(model)
            return _model_to_record(model).public()
        return None

    async def soft_delete(self, organization_id: str, user_id: str) -> bool:
        """Mark the user deleted. Returns False if there was nothing to delete."""
        key = parse_uuid(user_id)
        if key is None:
            return False
        async for session in self._session_factory():
            result = await session.execute(self._scoped(organization_id).where(User.id == key))
            model = result.scalar_one_or_none()
            if model is None:
                return False
            model.deleted_at = datetime.now(timezone.utc)
            model.is_active = False
            await session.commit()
            logger.info("user_deleted", organization_id=organization_id, user_id=user_id)
            return True
        return False


class SessionRepository:
    """Server-side session rows backing the ``sid`` token claim."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def create(self, session_id: str, user_id: str, expires_at: datetime) -> None:
        async for session in self._session_factory():
            session.add(
                SessionModel(id=uuid.UUID(session_id), user_id=uuid.UUID(user_id), expires_at=expires_at)
            )
            await session.commit()

    async def is_active(self, session_id: str) -> bool:
        key = parse_uuid(session_id)
        if key is None:
            return False
        async for session in self._session_factory():
            result = await session.execute(
                select(SessionModel.id).where(
                    SessionModel.id == key,
                    SessionModel.revoked_at.is_(None),
                    SessionModel.expires_at > datetime.now(timezone.utc),
                )
            )
            return result.first() is not None
        return False

    async def revoke(self, session_id: str) -> None:
        key = parse_uuid(session_id)
        if key is None:
            return
        async for session in self._session_factory():
            model = await session.get(SessionModel, key)
            if model is not None and model.revoked_at is None:
                model.revoked_at = datetime.now(timezone.utc)
                await session.commit()
