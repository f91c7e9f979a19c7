"""
parley.services.notification_service — Notification Fan-out & Inbox
=====================================================================

Three trigger paths create recipient-addressed notifications:

* **mention** — ``@username`` tokens in a freshly created or edited post.
  At most one per (post, recipient), backed by a partial unique index.
* **private_message** — one per appended message, for the other participant,
  carrying a 50-character preview.
* **reaction** — one per reaction insert or type change, for the post's
  author.  Never on removal, never for self-reactions.

Dispatch is best-effort: each ``notify_*`` call runs in its own transaction
*after* the triggering write has committed, and any failure is logged and
swallowed.  A lost notification never rolls back a message, reaction or post.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Engine, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from parley.constants import make_preview
from parley.database.engine import get_session
from parley.database.models import Notification, NotificationType, User
from parley.engine.mentions import parse_mentions
from parley.services.user_service import find_user_by_username

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NotificationView:
    """A notification as shown in the inbox, with the sender's username."""

    id: str
    type: str
    recipient_id: str
    sender_id: str
    sender_username: str | None
    post_id: str | None
    topic_id: str | None
    topic_title: str | None
    conversation_id: str | None
    reaction_type: str | None
    message: str | None
    is_read: bool
    created_at: datetime


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _already_mentioned(session: Session, post_id: str, recipient_id: str) -> bool:
    return session.scalar(
        select(Notification.id).where(
            Notification.type == NotificationType.MENTION.value,
            Notification.post_id == post_id,
            Notification.recipient_id == recipient_id,
        )
    ) is not None


# ---------------------------------------------------------------------------
# Trigger paths (best-effort)
# ---------------------------------------------------------------------------
def notify_mentions(
    engine: Engine,
    *,
    content: str,
    author_id: str,
    post_id: str,
    topic_id: str | None = None,
    topic_title: str | None = None,
) -> list[Notification]:
    """Create mention notifications for every user named in *content*.

    Unknown usernames, the author, and users already notified for *post_id*
    are skipped.  Returns the notifications created by this call.
    """
    usernames = parse_mentions(content)
    if not usernames:
        return []

    try:
        with get_session(engine, "notify_mentions") as session:
            created: list[Notification] = []
            for username in usernames:
                user = find_user_by_username(session, username)
                if user is None or user.id == author_id:
                    continue
                if _already_mentioned(session, post_id, user.id):
                    continue
                notification = Notification(
                    type=NotificationType.MENTION.value,
                    recipient_id=user.id,
                    sender_id=author_id,
                    post_id=post_id,
                    topic_id=topic_id,
                    topic_title=topic_title,
                )
                try:
                    with session.begin_nested():   # SAVEPOINT
                        session.add(notification)
                        session.flush()
                except IntegrityError:
                    # A concurrent edit of the same post notified them first.
                    continue
                created.append(notification)
            return created
    except Exception:
        logger.exception(
            "Failed to create mention notifications for post %s by %s",
            post_id, author_id,
        )
        return []


def notify_private_message(
    engine: Engine,
    *,
    conversation_id: str,
    sender_id: str,
    recipient_id: str,
    content: str,
) -> Notification | None:
    """Tell *recipient_id* about a new message, with a short preview."""
    try:
        with get_session(engine, "notify_private_message") as session:
            notification = Notification(
                type=NotificationType.PRIVATE_MESSAGE.value,
                recipient_id=recipient_id,
                sender_id=sender_id,
                conversation_id=conversation_id,
                message=make_preview(content),
            )
            session.add(notification)
            session.flush()
            return notification
    except Exception:
        logger.exception(
            "Failed to create private-message notification for %s in %s",
            recipient_id, conversation_id,
        )
        return None


def notify_reaction(
    engine: Engine,
    *,
    post_id: str,
    topic_id: str | None,
    author_id: str,
    reactor_id: str,
    reaction_type: str,
) -> Notification | None:
    """Tell a post's author that *reactor_id* reacted with *reaction_type*."""
    if reactor_id == author_id:
        return None
    try:
        with get_session(engine, "notify_reaction") as session:
            notification = Notification(
                type=NotificationType.REACTION.value,
                recipient_id=author_id,
                sender_id=reactor_id,
                post_id=post_id,
                topic_id=topic_id,
                reaction_type=reaction_type,
            )
            session.add(notification)
            session.flush()
            return notification
    except Exception:
        logger.exception(
            "Failed to create reaction notification for post %s from %s",
            post_id, reactor_id,
        )
        return None


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------
def list_notifications(engine: Engine, user_id: str) -> list[NotificationView]:
    """All notifications for *user_id*, newest first."""
    with get_session(engine, "list_notifications") as session:
        rows = session.execute(
            select(Notification, User.username)
            .outerjoin(User, User.id == Notification.sender_id)
            .where(Notification.recipient_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id)
        ).all()
        return [
            NotificationView(
                id=n.id,
                type=n.type,
                recipient_id=n.recipient_id,
                sender_id=n.sender_id,
                sender_username=username,
                post_id=n.post_id,
                topic_id=n.topic_id,
                topic_title=n.topic_title,
                conversation_id=n.conversation_id,
                reaction_type=n.reaction_type,
                message=n.message,
                is_read=n.is_read,
                created_at=n.created_at,
            )
            for n, username in rows
        ]


def mark_notification_read(engine: Engine, notification_id: str, user_id: str) -> bool:
    """Mark one of *user_id*'s notifications read.  False if it isn't theirs."""
    with get_session(engine, "mark_notification_read") as session:
        result = session.execute(
            update(Notification)
            .where(
                Notification.id == notification_id,
                Notification.recipient_id == user_id,
            )
            .values(is_read=True)
        )
        return result.rowcount > 0


def mark_all_read(engine: Engine, user_id: str) -> bool:
    """Mark every unread notification read.  True if anything changed."""
    with get_session(engine, "mark_all_read") as session:
        result = session.execute(
            update(Notification)
            .where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True)
        )
        return result.rowcount > 0


def unread_notification_count(engine: Engine, user_id: str) -> int:
    with get_session(engine, "unread_notification_count") as session:
        return session.scalar(
            select(func.count(Notification.id)).where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(False),
            )
        ) or 0
