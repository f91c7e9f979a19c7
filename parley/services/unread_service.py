"""
parley.services.unread_service — Unread Message Accounting
===========================================================

Read-side projections over ``private_messages`` and ``message_reads``.  No
counters are stored: a message is unread for a user when the user did not
send it and has no ``message_reads`` row for it.
"""

from __future__ import annotations

from sqlalchemy import Engine, and_, exists, func, or_, select
from sqlalchemy.orm import Session

from parley.database.engine import get_session
from parley.database.models import Conversation, MessageRead, PrivateMessage


def unread_by(user_id: str):
    """WHERE clause: messages not sent by and not yet read by *user_id*."""
    already_read = exists().where(
        and_(
            MessageRead.message_id == PrivateMessage.id,
            MessageRead.user_id == user_id,
        )
    )
    return and_(PrivateMessage.sender_id != user_id, ~already_read)


def unread_count_for_conversation(session: Session, conversation_id: str, user_id: str) -> int:
    return session.scalar(
        select(func.count(PrivateMessage.id)).where(
            PrivateMessage.conversation_id == conversation_id,
            unread_by(user_id),
        )
    ) or 0


def unread_counts_by_conversation(session: Session, user_id: str) -> dict[str, int]:
    """Per-conversation unread counts for every conversation with unread mail.

    Conversations with nothing unread are absent from the mapping.
    """
    rows = session.execute(
        select(PrivateMessage.conversation_id, func.count(PrivateMessage.id))
        .join(Conversation, Conversation.id == PrivateMessage.conversation_id)
        .where(
            or_(
                Conversation.participant_a_id == user_id,
                Conversation.participant_b_id == user_id,
            ),
            unread_by(user_id),
        )
        .group_by(PrivateMessage.conversation_id)
    ).all()
    return {conversation_id: count for conversation_id, count in rows}


def total_unread_for_user(session: Session, user_id: str) -> int:
    return session.scalar(
        select(func.count(PrivateMessage.id))
        .join(Conversation, Conversation.id == PrivateMessage.conversation_id)
        .where(
            or_(
                Conversation.participant_a_id == user_id,
                Conversation.participant_b_id == user_id,
            ),
            unread_by(user_id),
        )
    ) or 0


def unread_message_count(engine: Engine, user_id: str) -> int:
    """Total unread private messages for *user_id* across all conversations."""
    with get_session(engine, "unread_message_count") as session:
        return total_unread_for_user(session, user_id)


def conversation_unread_count(engine: Engine, conversation_id: str, user_id: str) -> int:
    """Unread private messages for *user_id* in one conversation."""
    with get_session(engine, "conversation_unread_count") as session:
        return unread_count_for_conversation(session, conversation_id, user_id)
