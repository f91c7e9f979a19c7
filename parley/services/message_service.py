"""
parley.services.message_service — Private Messages & Read Receipts
===================================================================

Sending a message is one transaction:

    1. Resolve (or get-or-create) the conversation
    2. Insert the message and the sender's own read marker
    3. Refresh the conversation's last-message cache
    4. Commit
    5. Notify the other participant (best-effort, separate transaction)

Reading a conversation with ``mark_read=True`` *is* the read receipt: one
``INSERT … SELECT`` adds the reader to every message they have not read yet.
Read markers are never removed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import DateTime, Engine, String, insert, literal, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from parley.constants import MESSAGE_MAX_LENGTH, make_preview
from parley.database.engine import get_session
from parley.database.models import Conversation, MessageRead, PrivateMessage, User
from parley.errors import AuthorizationError, NotFoundError, ValidationError
from parley.services.conversation_service import (
    get_conversation,
    get_or_create_conversation,
    touch_last_message,
)
from parley.services.notification_service import notify_private_message
from parley.services.unread_service import unread_by
from parley.services.user_service import find_user_by_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MessageDisplay:
    """A message as rendered for one viewer."""

    id: str
    conversation_id: str
    sender_id: str
    sender_username: str
    content: str
    created_at: datetime
    read_by: frozenset[str]
    is_own_message: bool


def validate_content(content: str | None) -> str:
    if content is None or not content.strip():
        raise ValidationError("Message content cannot be empty.", field="content")
    if len(content) > MESSAGE_MAX_LENGTH:
        raise ValidationError(
            f"Message content cannot exceed {MESSAGE_MAX_LENGTH} characters.",
            field="content",
        )
    return content


# ---------------------------------------------------------------------------
# Session-level primitives
# ---------------------------------------------------------------------------
def _next_timestamp(conversation: Conversation) -> datetime:
    """Now, or one microsecond past the conversation's last message if the
    clock has not moved on.  Keeps send order strictly increasing."""
    now = datetime.now(UTC)
    last = conversation.last_message_at
    if last is not None:
        if last.tzinfo is None:
            last = last.replace(tzinfo=UTC)
        if now <= last:
            now = last + timedelta(microseconds=1)
    return now


def append_message(
    session: Session, conversation: Conversation, sender_id: str, content: str
) -> PrivateMessage:
    """Insert a message into *conversation* and refresh its last-message cache."""
    validate_content(content)
    if not conversation.has_participant(sender_id):
        raise AuthorizationError("You are not a participant in this conversation.")

    now = _next_timestamp(conversation)
    message = PrivateMessage(
        conversation_id=conversation.id,
        sender_id=sender_id,
        content=content,
        created_at=now,
    )
    # A sender has always read their own message.
    message.reads.append(MessageRead(user_id=sender_id, read_at=now))
    session.add(message)
    touch_last_message(session, conversation, make_preview(content), sender_id, now)
    session.flush()
    return message


def mark_conversation_read(session: Session, conversation_id: str, user_id: str) -> int:
    """Add *user_id* to the read-by set of every unread message in one batch.

    Returns the number of messages newly marked.  A concurrent reader of the
    same conversation can win the race on a row; the batch is then re-run
    once, and the second pass only sees what is still unread.
    """
    now = datetime.now(UTC)
    stmt = insert(MessageRead.__table__).from_select(
        ["message_id", "user_id", "read_at"],
        select(
            PrivateMessage.id,
            literal(user_id, String),
            literal(now, DateTime(timezone=True)),
        ).where(
            PrivateMessage.conversation_id == conversation_id,
            unread_by(user_id),
        ),
    )
    for attempt in range(2):
        try:
            with session.begin_nested():   # SAVEPOINT
                result = session.execute(stmt)
            return result.rowcount or 0
        except IntegrityError:
            if attempt:
                raise
            logger.info(
                "Concurrent read of %s by %s; retrying mark-read", conversation_id, user_id
            )
    return 0


# ---------------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------------
def send_message(
    engine: Engine,
    *,
    sender_id: str,
    content: str,
    receiver_id: str | None = None,
    conversation_id: str | None = None,
    subject: str | None = None,
) -> PrivateMessage:
    """Send *content* from *sender_id*.

    Either *conversation_id* names an existing conversation the sender takes
    part in, or *receiver_id* names the other user and the conversation
    (optionally scoped by *subject*) is created on first use.

    Raises
    ------
    ValidationError
        Empty/oversized content, missing receiver, messaging yourself, or a
        receiver that is not the conversation's other participant.
    NotFoundError
        The conversation or receiver does not exist.
    AuthorizationError
        The sender is not a participant of *conversation_id*.
    """
    validate_content(content)

    with get_session(engine, "send_message") as session:
        if conversation_id:
            conversation = get_conversation(session, conversation_id)
            if conversation is None:
                raise NotFoundError("Conversation", conversation_id, field="conversation_id")
            if not conversation.has_participant(sender_id):
                raise AuthorizationError("You are not a participant in this conversation.")
            recipient_id = conversation.other_participant(sender_id)
            if receiver_id and receiver_id != recipient_id:
                raise ValidationError(
                    "Receiver is not a participant in this conversation.",
                    field="receiver_id",
                )
        else:
            if not receiver_id:
                raise ValidationError("Receiver not specified.", field="receiver_id")
            if receiver_id == sender_id:
                raise ValidationError(
                    "You cannot send a message to yourself.", field="receiver_id"
                )
            if find_user_by_id(session, receiver_id) is None:
                raise NotFoundError("User", receiver_id, field="receiver_id")
            recipient_id = receiver_id
            conversation = get_or_create_conversation(session, sender_id, receiver_id, subject)

        message = append_message(session, conversation, sender_id, content)

    logger.info(
        "Message %s sent by %s in %s", message.id, sender_id, message.conversation_id
    )
    notify_private_message(
        engine,
        conversation_id=message.conversation_id,
        sender_id=sender_id,
        recipient_id=recipient_id,
        content=content,
    )
    return message


def list_messages(
    engine: Engine, conversation_id: str, user_id: str, mark_read: bool = True
) -> list[MessageDisplay]:
    """Messages of *conversation_id* in send order, as seen by *user_id*.

    With *mark_read* the viewer is added to every message's read-by set
    first, so the returned sets already include them.
    """
    with get_session(engine, "list_messages") as session:
        conversation = get_conversation(session, conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation", conversation_id)
        if not conversation.has_participant(user_id):
            logger.warning(
                "User %s attempted to read conversation %s they are not part of",
                user_id, conversation_id,
            )
            raise AuthorizationError("You are not a participant in this conversation.")

        if mark_read:
            marked = mark_conversation_read(session, conversation_id, user_id)
            if marked:
                logger.debug("Marked %d message(s) read for %s", marked, user_id)

        messages = session.scalars(
            select(PrivateMessage)
            .where(PrivateMessage.conversation_id == conversation_id)
            .order_by(PrivateMessage.created_at, PrivateMessage.id)
            .options(selectinload(PrivateMessage.reads))
        ).all()
        usernames = dict(
            session.execute(
                select(User.id, User.username).where(
                    User.id.in_(conversation.participant_ids)
                )
            ).all()
        )
        return [
            MessageDisplay(
                id=m.id,
                conversation_id=m.conversation_id,
                sender_id=m.sender_id,
                sender_username=usernames.get(m.sender_id, "Unknown User"),
                content=m.content,
                created_at=m.created_at,
                read_by=frozenset(m.read_by),
                is_own_message=m.sender_id == user_id,
            )
            for m in messages
        ]
