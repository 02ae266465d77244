"""Session tokens and password hashing.

Provides the security primitives used by the auth endpoints and the session
resolver. A session token is an HS256 JWT carried in the ``auth-token``
cookie; its ``sid`` claim points at a row in ``public.sessions`` so a logout
can revoke it before it expires.

Uses bcrypt directly (not passlib) for Python 3.13 compatibility.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
from fastapi import HTTPException, status
from jose import JWTError, jwt

from src.podflow.config import Settings, get_settings

SESSION_TOKEN_TYPE = "session"

# ── Password Hashing ──────────────────────────────────────────────────────────


def hash_password(password: str) -> str:
    """Hash a plaintext password using bcrypt."""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Verify a plaintext password against its bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# ── Session Tokens ────────────────────────────────────────────────────────────


def new_session_id() -> str:
    return str(uuid.uuid4())


def create_session_token(
    *,
    user_id: str,
    organization_id: str,
    organization_slug: str,
    role: str,
    session_id: str,
    expires_delta: timedelta | None = None,
    settings: Settings | None = None,
) -> tuple[str, datetime]:
    """Create a signed session token. Returns ``(token, expires_at)``."""
    settings = settings or get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(hours=settings.SESSION_EXPIRE_HOURS))
    claims = {
        "sub": user_id,
        "org_id": organization_id,
        "org_slug": organization_slug,
        "role": role,
        "sid": session_id,
        "iat": now,
        "exp": expire,
        "type": SESSION_TOKEN_TYPE,
    }
    token = jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return token, expire


def verify_session_token(token: str, settings: Settings | None = None) -> dict:
    """Decode and validate a session token.

    Returns:
        The decoded claims dict.

    Raises:
        HTTPException(401): If the token is invalid, expired, of the wrong
        type, or missing the identity claims.
    """
    settings = settings or get_settings()
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
    )
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        raise credentials_exception

    if payload.get("type") != SESSION_TOKEN_TYPE:
        raise credentials_exception
    for claim in ("sub", "org_id", "org_slug", "sid"):
        if not payload.get(claim):
            raise credentials_exception
    return payload
