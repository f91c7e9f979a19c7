"""Create users, forum, messaging, reaction and notification tables

Revision ID: 5e2c8a1f0b37
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5e2c8a1f0b37"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=None if nullable else sa.func.now(),
    )


def upgrade() -> None:
    """Create the eight Parley tables and their indexes."""
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("username", sa.String(50), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("created_at"),
    )

    op.create_table(
        "topics",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("title", sa.String(150), nullable=False),
        sa.Column(
            "author_id", sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        _timestamp("created_at"),
        _timestamp("last_activity"),
    )

    op.create_table(
        "posts",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "topic_id", sa.String(64),
            sa.ForeignKey("topics.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "author_id", sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at", nullable=True),
    )
    op.create_index("ix_posts_author_id", "posts", ["author_id"])
    op.create_index("ix_posts_topic_created", "posts", ["topic_id", "created_at"])

    op.create_table(
        "conversations",
        sa.Column("id", sa.String(200), primary_key=True),
        sa.Column(
            "participant_a_id", sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "participant_b_id", sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("subject", sa.String(200), nullable=True),
        _timestamp("created_at"),
        _timestamp("last_message_at"),
        sa.Column("last_message_snippet", sa.String(60), nullable=True),
        sa.Column("last_message_sender_id", sa.String(64), nullable=True),
    )
    op.create_index(
        "ix_conversations_a_last", "conversations", ["participant_a_id", "last_message_at"]
    )
    op.create_index(
        "ix_conversations_b_last", "conversations", ["participant_b_id", "last_message_at"]
    )

    op.create_table(
        "private_messages",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "conversation_id", sa.String(200),
            sa.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "sender_id", sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("content", sa.Text(), nullable=False),
        _timestamp("created_at"),
    )
    op.create_index(
        "ix_private_messages_conv_created",
        "private_messages",
        ["conversation_id", "created_at"],
    )

    op.create_table(
        "message_reads",
        sa.Column(
            "message_id", sa.String(64),
            sa.ForeignKey("private_messages.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "user_id", sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        _timestamp("read_at"),
    )
    op.create_index(
        "ix_message_reads_user_message", "message_reads", ["user_id", "message_id"]
    )

    op.create_table(
        "reactions",
        sa.Column(
            "post_id", sa.String(64),
            sa.ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "user_id", sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("reaction_type", sa.String(10), nullable=False),
        _timestamp("updated_at"),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column(
            "recipient_id", sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "sender_id", sa.String(64),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("post_id", sa.String(64), nullable=True),
        sa.Column("topic_id", sa.String(64), nullable=True),
        sa.Column("topic_title", sa.String(150), nullable=True),
        sa.Column("conversation_id", sa.String(200), nullable=True),
        sa.Column("reaction_type", sa.String(10), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
    )
    op.create_index(
        "ix_notifications_recipient_created", "notifications", ["recipient_id", "created_at"]
    )
    op.create_index(
        "ix_notifications_recipient_unread", "notifications", ["recipient_id", "is_read"]
    )
    op.create_index(
        "ix_notifications_mention_once",
        "notifications",
        ["post_id", "recipient_id"],
        unique=True,
        postgresql_where=sa.text("type = 'mention'"),
    )


def downgrade() -> None:
    """Drop every Parley table."""
    op.drop_index("ix_notifications_mention_once", table_name="notifications")
    op.drop_index("ix_notifications_recipient_unread", table_name="notifications")
    op.drop_index("ix_notifications_recipient_created", table_name="notifications")
    op.drop_table("notifications")
    op.drop_table("reactions")
    op.drop_index("ix_message_reads_user_message", table_name="message_reads")
    op.drop_table("message_reads")
    op.drop_index("ix_private_messages_conv_created", table_name="private_messages")
    op.drop_table("private_messages")
    op.drop_index("ix_conversations_b_last", table_name="conversations")
    op.drop_index("ix_conversations_a_last", table_name="conversations")
    op.drop_table("conversations")
    op.drop_index("ix_posts_topic_created", table_name="posts")
    op.drop_index("ix_posts_author_id", table_name="posts")
    op.drop_table("posts")
    op.drop_table("topics")
    op.drop_table("users")
