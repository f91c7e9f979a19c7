"""
parley.services.forum_service — Topic & Post Writes
====================================================

The slice of topic/post handling the messaging core depends on: content that
can mention users, and post deletion, which removes reactions and therefore
changes the author's points.

Every write is one transaction; mention notifications follow the commit and
are best-effort.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import Engine, delete

from parley.constants import (
    POST_CONTENT_MIN_LENGTH,
    TOPIC_TITLE_MAX_LENGTH,
    TOPIC_TITLE_MIN_LENGTH,
)
from parley.database.engine import get_session
from parley.database.models import Notification, Post, Reaction, Topic
from parley.errors import AuthorizationError, NotFoundError, ValidationError
from parley.services.notification_service import notify_mentions
from parley.services.points_service import recompute_points
from parley.services.user_service import find_user_by_id

logger = logging.getLogger(__name__)


def _validate_post_content(content: str | None, field: str = "content") -> str:
    content = (content or "").strip()
    if len(content) < POST_CONTENT_MIN_LENGTH:
        raise ValidationError(
            f"Post content must be at least {POST_CONTENT_MIN_LENGTH} characters.",
            field=field,
        )
    return content


def _validate_title(title: str | None) -> str:
    title = (title or "").strip()
    if len(title) < TOPIC_TITLE_MIN_LENGTH:
        raise ValidationError(
            f"Topic title must be at least {TOPIC_TITLE_MIN_LENGTH} characters.",
            field="title",
        )
    if len(title) > TOPIC_TITLE_MAX_LENGTH:
        raise ValidationError(
            f"Topic title cannot exceed {TOPIC_TITLE_MAX_LENGTH} characters.",
            field="title",
        )
    return title


def _require_post_owner(session, post: Post, user_id: str, action: str) -> None:
    if post.author_id == user_id:
        return
    user = find_user_by_id(session, user_id)
    if user is None or not user.is_admin:
        raise AuthorizationError(f"You are not allowed to {action} this post.")


def create_topic(
    engine: Engine, *, author_id: str, title: str, first_post_content: str
) -> tuple[Topic, Post]:
    """Create a topic together with its first post."""
    title = _validate_title(title)
    content = _validate_post_content(first_post_content, field="first_post_content")

    with get_session(engine, "create_topic") as session:
        now = datetime.now(UTC)
        topic = Topic(title=title, author_id=author_id, created_at=now, last_activity=now)
        session.add(topic)
        session.flush()
        post = Post(topic_id=topic.id, author_id=author_id, content=content, created_at=now)
        session.add(post)
        session.flush()

    logger.info("Topic %s created by %s", topic.id, author_id)
    notify_mentions(
        engine,
        content=post.content,
        author_id=author_id,
        post_id=post.id,
        topic_id=topic.id,
        topic_title=topic.title,
    )
    return topic, post


def create_post(engine: Engine, *, author_id: str, topic_id: str, content: str) -> Post:
    """Reply to *topic_id*."""
    content = _validate_post_content(content)

    with get_session(engine, "create_post") as session:
        topic = session.get(Topic, topic_id) if topic_id else None
        if topic is None:
            raise NotFoundError("Topic", topic_id, field="topic_id")
        now = datetime.now(UTC)
        post = Post(topic_id=topic.id, author_id=author_id, content=content, created_at=now)
        session.add(post)
        topic.last_activity = now
        session.flush()
        topic_title = topic.title

    logger.info("Post %s created in topic %s by %s", post.id, topic_id, author_id)
    notify_mentions(
        engine,
        content=post.content,
        author_id=author_id,
        post_id=post.id,
        topic_id=topic_id,
        topic_title=topic_title,
    )
    return post


def update_post(engine: Engine, *, post_id: str, user_id: str, content: str) -> Post:
    """Edit a post.  Only its author or an admin may do so.

    Users mentioned for the first time by the edit are notified; users
    already notified for this post are not notified again.
    """
    content = _validate_post_content(content)

    with get_session(engine, "update_post") as session:
        post = session.get(Post, post_id) if post_id else None
        if post is None:
            raise NotFoundError("Post", post_id, field="post_id")
        _require_post_owner(session, post, user_id, "edit")
        post.content = content
        post.updated_at = datetime.now(UTC)
        session.flush()
        topic_title = post.topic.title

    logger.info("Post %s edited by %s", post_id, user_id)
    notify_mentions(
        engine,
        content=post.content,
        author_id=post.author_id,
        post_id=post.id,
        topic_id=post.topic_id,
        topic_title=topic_title,
    )
    return post


def delete_post(engine: Engine, *, post_id: str, user_id: str) -> bool:
    """Delete a post with its reactions and notifications.

    The author's points are recomputed in the same transaction, since the
    post's reactions no longer count.
    """
    with get_session(engine, "delete_post") as session:
        post = session.get(Post, post_id) if post_id else None
        if post is None:
            raise NotFoundError("Post", post_id, field="post_id")
        _require_post_owner(session, post, user_id, "delete")

        author_id = post.author_id
        session.execute(delete(Reaction).where(Reaction.post_id == post_id))
        session.execute(delete(Notification).where(Notification.post_id == post_id))
        session.delete(post)
        session.flush()
        recompute_points(session, author_id)

    logger.info("Post %s deleted by %s", post_id, user_id)
    return True
