"""
parley.api.deps — FastAPI dependency injection
===============================================
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, Request, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from parley.database.engine import get_session
from parley.database.models import User
from parley.services.user_service import find_user_by_id

_WEAK_SECRETS = frozenset({
    "parley-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"
TOKEN_TTL = timedelta(hours=12)


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


def create_access_token(user_id: str, username: str, ttl: timedelta = TOKEN_TTL) -> str:
    """Issue a bearer token whose ``sub`` claim is *user_id*."""
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "username": username,
        "iat": now,
        "exp": now + ttl,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def get_engine(request: Request) -> Engine:
    """The engine created by the application lifespan."""
    return request.app.state.engine


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    engine: Engine = Depends(get_engine),
) -> User:
    """Resolve the bearer token to a stored user.  Raises 401 otherwise."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")

    with get_session(engine, "get_current_user") as session:
        user = find_user_by_id(session, payload.get("sub"))
    if user is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Unknown user")
    return user


EngineDep = Annotated[Engine, Depends(get_engine)]
CurrentUser = Annotated[User, Depends(get_current_user)]
