"""
parley.services.reaction_service — Reaction State Machine
==========================================================

Per (post, user) there is either no reaction or exactly one of a given type::

    absent        + toggle(T)  → reacted(T)   insert
    reacted(T)    + toggle(T)  → absent       delete (toggle-off)
    reacted(T)    + toggle(T') → reacted(T')  update in place

Read-decide-write, the author's points recompute and the commit happen in a
single transaction.  Two concurrent first toggles by the same user race on
the (post_id, user_id) primary key; the loser's INSERT fails inside a
SAVEPOINT and the transition is re-decided against the winner's row.

A reaction notification is sent only for insert/update, never
for removal, and never when users react to their own post.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from sqlalchemy import Engine, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from parley.database.engine import get_session
from parley.database.models import Post, Reaction, ReactionType
from parley.errors import NotFoundError, ValidationError
from parley.services.notification_service import notify_reaction
from parley.services.points_service import recompute_points

logger = logging.getLogger(__name__)


class ReactionChange(StrEnum):
    ADDED = "added"
    CHANGED = "changed"
    REMOVED = "removed"


@dataclass(frozen=True, slots=True)
class PostReactions:
    """The post's reaction state after a toggle."""

    post_id: str
    topic_id: str
    author_id: str
    change: ReactionChange
    user_reaction: str | None
    author_points: int
    counts: dict[str, int] = field(default_factory=dict)


def parse_reaction_type(reaction_type: str) -> ReactionType:
    try:
        return ReactionType(str(reaction_type).lower())
    except ValueError:
        allowed = ", ".join(t.value for t in ReactionType)
        raise ValidationError(
            f"Unknown reaction type {reaction_type!r}; expected one of: {allowed}.",
            field="reaction_type",
        ) from None


def _current_reaction(session: Session, post_id: str, user_id: str) -> Reaction | None:
    return session.scalar(
        select(Reaction)
        .where(Reaction.post_id == post_id, Reaction.user_id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def apply_transition(
    session: Session, post_id: str, user_id: str, reaction_type: ReactionType
) -> ReactionChange:
    """Move (post_id, user_id) to its next state for *reaction_type*."""
    now = datetime.now(UTC)
    existing = _current_reaction(session, post_id, user_id)

    if existing is None:
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(Reaction(
                    post_id=post_id,
                    user_id=user_id,
                    reaction_type=reaction_type.value,
                    updated_at=now,
                ))
                session.flush()
            return ReactionChange.ADDED
        except IntegrityError:
            existing = _current_reaction(session, post_id, user_id)
            if existing is None:
                raise
            logger.info(
                "Concurrent reaction by %s on post %s; re-deciding against stored row",
                user_id, post_id,
            )

    if existing.reaction_type == reaction_type.value:
        session.delete(existing)
        session.flush()
        return ReactionChange.REMOVED

    existing.reaction_type = reaction_type.value
    existing.updated_at = now
    session.flush()
    return ReactionChange.CHANGED


def reaction_counts(session: Session, post_id: str) -> dict[str, int]:
    """``{reaction_type: count}`` for every type, zeros included."""
    counts = {t.value: 0 for t in ReactionType}
    rows = session.execute(
        select(Reaction.reaction_type, func.count())
        .where(Reaction.post_id == post_id)
        .group_by(Reaction.reaction_type)
    ).all()
    for reaction_type, count in rows:
        counts[reaction_type] = count
    return counts


def toggle_reaction(
    engine: Engine, post_id: str, user_id: str, reaction_type: str
) -> PostReactions:
    """Apply *user_id*'s reaction toggle on *post_id*.

    Raises
    ------
    ValidationError
        *reaction_type* is not one of :class:`ReactionType`.
    NotFoundError
        The post does not exist.
    """
    rtype = parse_reaction_type(reaction_type)

    with get_session(engine, "toggle_reaction") as session:
        post = session.get(Post, post_id) if post_id else None
        if post is None:
            raise NotFoundError("Post", post_id, field="post_id")

        change = apply_transition(session, post.id, user_id, rtype)
        author_points = recompute_points(session, post.author_id)
        result = PostReactions(
            post_id=post.id,
            topic_id=post.topic_id,
            author_id=post.author_id,
            change=change,
            user_reaction=None if change is ReactionChange.REMOVED else rtype.value,
            author_points=author_points,
            counts=reaction_counts(session, post.id),
        )

    logger.info(
        "Reaction %s on post %s by %s: %s", rtype.value, post_id, user_id, change.value
    )
    if change is not ReactionChange.REMOVED and user_id != result.author_id:
        notify_reaction(
            engine,
            post_id=result.post_id,
            topic_id=result.topic_id,
            author_id=result.author_id,
            reactor_id=user_id,
            reaction_type=rtype.value,
        )
    return result
