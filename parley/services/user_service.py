"""
parley.services.user_service — Identity Lookups
================================================

The identity collaborator the core resolves participants, mentions and the
acting user through.  Registration and credential checks live outside Parley;
:func:`create_user` exists for seeding and tests.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, func, select
from sqlalchemy.orm import Session

from parley.constants import USERNAME_MAX_LENGTH
from parley.database.engine import get_session
from parley.database.models import User
from parley.errors import ValidationError

logger = logging.getLogger(__name__)


def find_user_by_id(session: Session, user_id: str) -> User | None:
    if not user_id:
        return None
    return session.get(User, user_id)


def find_user_by_username(session: Session, username: str) -> User | None:
    """Case-insensitive username lookup (``@Bob`` resolves to ``bob``)."""
    if not username:
        return None
    return session.scalar(
        select(User).where(func.lower(User.username) == username.lower())
    )


def create_user(
    engine: Engine,
    *,
    username: str,
    user_id: str | None = None,
    email: str | None = None,
    is_admin: bool = False,
) -> User:
    """Insert a user row and return it (detached, fully loaded)."""
    username = (username or "").strip()
    if not username:
        raise ValidationError("Username cannot be empty.", field="username")
    if len(username) > USERNAME_MAX_LENGTH:
        raise ValidationError("Username is too long.", field="username")

    with get_session(engine, "create_user") as session:
        if find_user_by_username(session, username) is not None:
            raise ValidationError(f'Username "{username}" is taken.', field="username")
        user = User(username=username, email=email, is_admin=is_admin)
        if user_id:
            user.id = user_id
        session.add(user)
        session.flush()
        logger.info("Created user %s (%s)", user.id, username)
        return user
