"""
parley.services.conversation_service — Conversation Records
============================================================

Get-or-create semantics keyed on the canonical id from
:mod:`parley.engine.identity`.  Concurrent first messages between the same
two users race on the primary key; the loser's INSERT fails inside a
SAVEPOINT and it re-reads the winner's row instead of erroring.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import Engine, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from parley.constants import SUBJECT_MAX_LENGTH
from parley.database.engine import get_session
from parley.database.models import Conversation, User
from parley.engine.identity import derive_conversation_id
from parley.errors import NotFoundError, ValidationError
from parley.services.unread_service import unread_counts_by_conversation
from parley.services.user_service import find_user_by_username

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ConversationSummary:
    """One row of a user's conversation list."""

    id: str
    other_participant_id: str
    other_participant_username: str
    subject: str | None
    last_message_snippet: str | None
    last_message_at: datetime
    is_last_message_from_current_user: bool
    unread_count: int


def _clean_subject(subject: str | None) -> str | None:
    if subject is None or not subject.strip():
        return None
    subject = subject.strip()
    if len(subject) > SUBJECT_MAX_LENGTH:
        raise ValidationError("Subject is too long.", field="subject")
    return subject


# ---------------------------------------------------------------------------
# Session-level primitives
# ---------------------------------------------------------------------------
def get_conversation(session: Session, conversation_id: str) -> Conversation | None:
    if not conversation_id:
        return None
    return session.get(Conversation, conversation_id)


def get_or_create_conversation(
    session: Session, user_a: str, user_b: str, subject: str | None = None
) -> Conversation:
    """Return the conversation for (user_a, user_b, subject), creating it if needed.

    An existing row is returned unchanged.
    """
    subject = _clean_subject(subject)
    conversation_id = derive_conversation_id(user_a, user_b, subject)

    existing = session.get(Conversation, conversation_id)
    if existing is not None:
        return existing

    low, high = sorted((user_a, user_b))
    now = datetime.now(UTC)
    conversation = Conversation(
        id=conversation_id,
        participant_a_id=low,
        participant_b_id=high,
        subject=subject,
        created_at=now,
        last_message_at=now,
    )
    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(conversation)
            session.flush()
    except IntegrityError:
        # Another request created it first.  The SAVEPOINT was rolled back;
        # the outer transaction is still alive.
        logger.info("Conversation %s created concurrently; reusing it", conversation_id)
        winner = session.get(Conversation, conversation_id, populate_existing=True)
        if winner is None:
            raise
        return winner

    logger.info("Created conversation %s", conversation_id)
    return conversation


def list_conversations_for_user(session: Session, user_id: str) -> list[Conversation]:
    """All conversations *user_id* takes part in, most recent activity first."""
    return list(
        session.scalars(
            select(Conversation)
            .where(
                or_(
                    Conversation.participant_a_id == user_id,
                    Conversation.participant_b_id == user_id,
                )
            )
            .order_by(Conversation.last_message_at.desc(), Conversation.id)
        ).all()
    )


def touch_last_message(
    session: Session,
    conversation: Conversation,
    snippet: str,
    sender_id: str,
    timestamp: datetime,
) -> None:
    """Refresh the denormalized last-message fields.  Once per appended message."""
    conversation.last_message_at = timestamp
    conversation.last_message_snippet = snippet
    conversation.last_message_sender_id = sender_id


# ---------------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------------
def start_conversation(
    engine: Engine, user_id: str, username: str, subject: str | None = None
) -> Conversation:
    """Explicitly open a conversation with *username* before any message."""
    username = (username or "").strip()
    if not username:
        raise ValidationError("Username cannot be empty.", field="username")

    with get_session(engine, "start_conversation") as session:
        receiver = find_user_by_username(session, username)
        if receiver is None:
            raise NotFoundError("User", username, field="username")
        if receiver.id == user_id:
            raise ValidationError(
                "You cannot start a conversation with yourself.", field="username"
            )
        return get_or_create_conversation(session, user_id, receiver.id, subject)


def list_conversations(engine: Engine, user_id: str) -> list[ConversationSummary]:
    """Conversation list for *user_id* with per-conversation unread counts."""
    with get_session(engine, "list_conversations") as session:
        conversations = list_conversations_for_user(session, user_id)
        if not conversations:
            return []

        other_ids = {c.other_participant(user_id) for c in conversations}
        usernames = dict(
            session.execute(
                select(User.id, User.username).where(User.id.in_(other_ids))
            ).all()
        )
        unread = unread_counts_by_conversation(session, user_id)

        summaries = []
        for conv in conversations:
            other_id = conv.other_participant(user_id)
            if other_id not in usernames:
                # Participant account is gone
                continue
            summaries.append(ConversationSummary(
                id=conv.id,
                other_participant_id=other_id,
                other_participant_username=usernames[other_id],
                subject=conv.subject,
                last_message_snippet=conv.last_message_snippet,
                last_message_at=conv.last_message_at,
                is_last_message_from_current_user=conv.last_message_sender_id == user_id,
                unread_count=unread.get(conv.id, 0),
            ))
        return summaries
