"""
parley.services.points_service — Points Ledger
===============================================

``users.points`` is a cache.  :func:`recompute_points` is its only writer and
always derives the total from the current ``reactions`` rows, never from the
previous cached value, so calling it redundantly is harmless.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from parley.database.engine import get_session
from parley.database.models import Post, Reaction, User
from parley.engine.points import points_for_reactions

logger = logging.getLogger(__name__)


def compute_points(session: Session, user_id: str) -> int:
    """Points earned by *user_id*'s posts from other users' reactions."""
    reaction_types = session.scalars(
        select(Reaction.reaction_type)
        .join(Post, Post.id == Reaction.post_id)
        .where(Post.author_id == user_id, Reaction.user_id != user_id)
    ).all()
    return points_for_reactions(reaction_types)


def recompute_points(session: Session, user_id: str) -> int:
    """Recompute and persist *user_id*'s points inside the caller's transaction."""
    total = compute_points(session, user_id)
    user = session.get(User, user_id)
    if user is None:
        logger.warning("Cannot store points for missing user %s", user_id)
        return total
    if user.points != total:
        logger.debug("Points for %s: %d → %d", user_id, user.points, total)
    user.points = total
    session.flush()
    return total


def reconcile_points(engine: Engine, user_ids: Iterable[str] | None = None) -> dict[str, int]:
    """Repair the points cache for *user_ids* (default: every user).

    Returns ``{user_id: points}`` for each user processed.
    """
    with get_session(engine, "reconcile_points") as session:
        if user_ids is None:
            user_ids = session.scalars(select(User.id)).all()
        totals = {uid: recompute_points(session, uid) for uid in user_ids}
    logger.info("Reconciled points for %d user(s)", len(totals))
    return totals
