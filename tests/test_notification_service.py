"""
tests/test_notification_service.py — Notification Fan-out & Inbox
==================================================================
Covers mention fan-out rules, inbox listing, mark-read semantics and the
best-effort contract: a failing notification store never fails the
triggering write.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from conftest import make_post
from parley.database.models import Notification, PrivateMessage
from parley.services import message_service, notification_service, reaction_service


@pytest.fixture
def engine(db_engine):
    return db_engine


def _notifications_for(engine, user_id: str) -> list[Notification]:
    with Session(engine) as session:
        return list(session.scalars(
            select(Notification).where(Notification.recipient_id == user_id)
        ).all())


class TestNotifyMentions:
    def test_mentions_known_users(self, engine, users):
        created = notification_service.notify_mentions(
            engine,
            content="ping @bob and @carol",
            author_id="u-alice",
            post_id="p1",
            topic_id="t1",
            topic_title="Hello",
        )
        assert sorted(n.recipient_id for n in created) == ["u-bob", "u-carol"]
        note = _notifications_for(engine, "u-bob")[0]
        assert note.type == "mention"
        assert note.sender_id == "u-alice"
        assert note.topic_title == "Hello"

    def test_skips_unknown_users_and_author(self, engine, users):
        created = notification_service.notify_mentions(
            engine, content="@alice @ghost @bob", author_id="u-alice", post_id="p1"
        )
        assert [n.recipient_id for n in created] == ["u-bob"]

    def test_mention_resolves_username_ignoring_case(self, engine, users):
        created = notification_service.notify_mentions(
            engine, content="hey @Bob look", author_id="u-alice", post_id="p1"
        )
        assert [n.recipient_id for n in created] == ["u-bob"]

    def test_case_variants_of_one_user_notify_once(self, engine, users):
        created = notification_service.notify_mentions(
            engine, content="@bob @Bob @BOB and @Alice", author_id="u-alice", post_id="p1"
        )
        assert [n.recipient_id for n in created] == ["u-bob"]
        assert len(_notifications_for(engine, "u-bob")) == 1

    def test_repeated_mention_in_one_post_notifies_once(self, engine, users):
        created = notification_service.notify_mentions(
            engine, content="@bob @bob @bob", author_id="u-alice", post_id="p1"
        )
        assert len(created) == 1

    def test_same_post_never_notifies_twice(self, engine, users):
        notification_service.notify_mentions(
            engine, content="@bob", author_id="u-alice", post_id="p1"
        )
        again = notification_service.notify_mentions(
            engine, content="@bob again, and @carol", author_id="u-alice", post_id="p1"
        )
        assert [n.recipient_id for n in again] == ["u-carol"]
        assert len(_notifications_for(engine, "u-bob")) == 1

    def test_different_posts_notify_separately(self, engine, users):
        notification_service.notify_mentions(
            engine, content="@bob", author_id="u-alice", post_id="p1"
        )
        notification_service.notify_mentions(
            engine, content="@bob", author_id="u-alice", post_id="p2"
        )
        assert len(_notifications_for(engine, "u-bob")) == 2

    def test_no_mentions_is_a_no_op(self, engine, users):
        assert notification_service.notify_mentions(
            engine, content="nothing to see", author_id="u-alice", post_id="p1"
        ) == []


class TestInbox:
    def test_list_newest_first_with_sender_username(self, engine, users):
        message_service.send_message(
            engine, sender_id="u-alice", receiver_id="u-bob", content="first"
        )
        message_service.send_message(
            engine, sender_id="u-carol", receiver_id="u-bob", content="second"
        )
        inbox = notification_service.list_notifications(engine, "u-bob")
        assert [n.message for n in inbox] == ["second", "first"]
        assert [n.sender_username for n in inbox] == ["carol", "alice"]
        assert all(not n.is_read for n in inbox)

    def test_mark_one_read(self, engine, users):
        message_service.send_message(
            engine, sender_id="u-alice", receiver_id="u-bob", content="hi"
        )
        (note,) = notification_service.list_notifications(engine, "u-bob")
        assert notification_service.mark_notification_read(engine, note.id, "u-bob") is True
        assert notification_service.unread_notification_count(engine, "u-bob") == 0

    def test_mark_read_is_scoped_to_recipient(self, engine, users):
        message_service.send_message(
            engine, sender_id="u-alice", receiver_id="u-bob", content="hi"
        )
        (note,) = notification_service.list_notifications(engine, "u-bob")
        assert notification_service.mark_notification_read(engine, note.id, "u-carol") is False
        assert notification_service.unread_notification_count(engine, "u-bob") == 1

    def test_mark_unknown_notification(self, engine, users):
        assert notification_service.mark_notification_read(engine, "nope", "u-bob") is False

    def test_mark_all_read(self, engine, users):
        for content in ("one", "two", "three"):
            message_service.send_message(
                engine, sender_id="u-alice", receiver_id="u-bob", content=content
            )
        message_service.send_message(
            engine, sender_id="u-bob", receiver_id="u-alice", content="reply"
        )
        assert notification_service.unread_notification_count(engine, "u-bob") == 3
        assert notification_service.mark_all_read(engine, "u-bob") is True
        assert notification_service.unread_notification_count(engine, "u-bob") == 0
        assert notification_service.unread_notification_count(engine, "u-alice") == 1

    def test_mark_all_read_with_nothing_unread(self, engine, users):
        assert notification_service.mark_all_read(engine, "u-bob") is False


class TestBestEffortDispatch:
    def test_message_survives_notification_failure(self, engine, users):
        with patch(
            "parley.services.notification_service.make_preview",
            side_effect=OperationalError("INSERT", {}, Exception("disk full")),
        ):
            msg = message_service.send_message(
                engine, sender_id="u-alice", receiver_id="u-bob", content="still delivered"
            )

        with Session(engine) as session:
            assert session.get(PrivateMessage, msg.id) is not None
        assert _notifications_for(engine, "u-bob") == []

    def test_reaction_survives_notification_failure(self, engine, users):
        make_post(engine, "u-bob", post_id="p1")
        with patch(
            "parley.services.notification_service.Notification",
            side_effect=RuntimeError("notification store down"),
        ):
            result = reaction_service.toggle_reaction(engine, "p1", "u-alice", "like")

        assert result.author_points == 2
        assert _notifications_for(engine, "u-bob") == []

    def test_mention_failure_returns_empty(self, engine, users):
        with patch(
            "parley.services.notification_service.find_user_by_username",
            side_effect=RuntimeError("lookup failed"),
        ):
            created = notification_service.notify_mentions(
                engine, content="@bob", author_id="u-alice", post_id="p1"
            )
        assert created == []


class TestConcurrentMentions:
    def test_mention_already_inserted_by_other_writer_is_skipped(self, engine, users):
        notification_service.notify_mentions(
            engine, content="@bob", author_id="u-alice", post_id="p1"
        )
        with patch(
            "parley.services.notification_service._already_mentioned", return_value=False
        ):
            again = notification_service.notify_mentions(
                engine, content="@bob and @carol", author_id="u-alice", post_id="p1"
            )

        assert [n.recipient_id for n in again] == ["u-carol"]
        assert len(_notifications_for(engine, "u-bob")) == 1
