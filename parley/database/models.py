"""
parley.database.models — SQLAlchemy 2.0 Data Models
====================================================

Tables:
- users             — Forum members (points column is a derived cache)
- topics            — Discussion threads
- posts             — Posts inside a topic (reaction targets, mention sources)
- conversations     — Two-party private conversations, deterministic id
- private_messages  — Messages inside a conversation
- message_reads     — Read-by set, one row per (message, reader)
- reactions         — One typed reaction per (post, user)
- notifications     — Recipient-addressed mention / message / reaction alerts
"""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Parley ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ReactionType(enum.StrEnum):
    """The closed set of reactions a user may place on a post."""
    LIKE = "like"
    LOVE = "love"
    HAHA = "haha"
    WOW = "wow"
    SAD = "sad"
    ANGRY = "angry"


class NotificationType(enum.StrEnum):
    """What triggered a notification."""
    MENTION = "mention"
    PRIVATE_MESSAGE = "private_message"
    REACTION = "reaction"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(String(255), default=None)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    # Cache written only by points_service.recompute_points
    points: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    posts: Mapped[list[Post]] = relationship(back_populates="author")

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} points={self.points}>"


# ---------------------------------------------------------------------------
# Topics & Posts
# ---------------------------------------------------------------------------
class Topic(Base):
    __tablename__ = "topics"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(150), nullable=False)
    author_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    last_activity: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    posts: Mapped[list[Post]] = relationship(
        back_populates="topic", cascade="all, delete-orphan", order_by="Post.created_at"
    )

    def __repr__(self) -> str:
        return f"<Topic id={self.id} title={self.title!r}>"


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    topic_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("topics.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    topic: Mapped[Topic] = relationship(back_populates="posts")
    author: Mapped[User] = relationship(back_populates="posts")
    reactions: Mapped[list[Reaction]] = relationship(
        back_populates="post", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_posts_author_id", "author_id"),
        Index("ix_posts_topic_created", "topic_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Post id={self.id} topic={self.topic_id} author={self.author_id}>"


# ---------------------------------------------------------------------------
# Conversations (id derived by parley.engine.identity)
# ---------------------------------------------------------------------------
class Conversation(Base):
    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String(200), primary_key=True)
    # Stored sorted: participant_a_id < participant_b_id
    participant_a_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    participant_b_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    subject: Mapped[str | None] = mapped_column(String(200), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_message_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_message_snippet: Mapped[str | None] = mapped_column(String(60), default=None)
    last_message_sender_id: Mapped[str | None] = mapped_column(String(64), default=None)

    messages: Mapped[list[PrivateMessage]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="PrivateMessage.created_at",
    )

    __table_args__ = (
        Index("ix_conversations_a_last", "participant_a_id", "last_message_at"),
        Index("ix_conversations_b_last", "participant_b_id", "last_message_at"),
    )

    @property
    def participant_ids(self) -> tuple[str, str]:
        return (self.participant_a_id, self.participant_b_id)

    def has_participant(self, user_id: str) -> bool:
        return user_id in self.participant_ids

    def other_participant(self, user_id: str) -> str:
        """Return the participant that is not *user_id*."""
        if user_id == self.participant_a_id:
            return self.participant_b_id
        return self.participant_a_id

    def __repr__(self) -> str:
        return f"<Conversation id={self.id!r}>"


class PrivateMessage(Base):
    __tablename__ = "private_messages"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    conversation_id: Mapped[str] = mapped_column(
        String(200), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    conversation: Mapped[Conversation] = relationship(back_populates="messages")
    reads: Mapped[list[MessageRead]] = relationship(
        back_populates="message", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_private_messages_conv_created", "conversation_id", "created_at"),
    )

    @property
    def read_by(self) -> set[str]:
        return {r.user_id for r in self.reads}

    def __repr__(self) -> str:
        return f"<PrivateMessage id={self.id} conv={self.conversation_id!r}>"


class MessageRead(Base):
    """One row per (message, reader).  Rows are only ever inserted."""
    __tablename__ = "message_reads"

    message_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("private_messages.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    read_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    message: Mapped[PrivateMessage] = relationship(back_populates="reads")

    __table_args__ = (
        Index("ix_message_reads_user_message", "user_id", "message_id"),
    )

    def __repr__(self) -> str:
        return f"<MessageRead message={self.message_id} user={self.user_id}>"


# ---------------------------------------------------------------------------
# Reactions: at most one per (post, user)
# ---------------------------------------------------------------------------
class Reaction(Base):
    __tablename__ = "reactions"

    post_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    reaction_type: Mapped[str] = mapped_column(String(10), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    post: Mapped[Post] = relationship(back_populates="reactions")

    def __repr__(self) -> str:
        return f"<Reaction post={self.post_id} user={self.user_id} type={self.reaction_type}>"


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    recipient_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    post_id: Mapped[str | None] = mapped_column(String(64), default=None)
    topic_id: Mapped[str | None] = mapped_column(String(64), default=None)
    topic_title: Mapped[str | None] = mapped_column(String(150), default=None)
    conversation_id: Mapped[str | None] = mapped_column(String(200), default=None)
    reaction_type: Mapped[str | None] = mapped_column(String(10), default=None)
    message: Mapped[str | None] = mapped_column(Text, default=None)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    __table_args__ = (
        Index("ix_notifications_recipient_created", "recipient_id", "created_at"),
        Index("ix_notifications_recipient_unread", "recipient_id", "is_read"),
        # One mention notification per (post, recipient)
        Index(
            "ix_notifications_mention_once",
            "post_id",
            "recipient_id",
            unique=True,
            postgresql_where=text("type = 'mention'"),
            sqlite_where=text("type = 'mention'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Notification id={self.id} type={self.type} to={self.recipient_id}>"
