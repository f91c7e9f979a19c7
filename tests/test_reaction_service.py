"""
tests/test_reaction_service.py — Reaction Toggle, Points & Reaction Notifications
==================================================================================
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from conftest import make_post
from parley.database.models import Notification, Reaction, User
from parley.errors import NotFoundError, ValidationError
from parley.services import points_service, reaction_service
from parley.services.reaction_service import ReactionChange


@pytest.fixture
def engine(db_engine):
    return db_engine


@pytest.fixture
def post(engine, users):
    """A post written by bob."""
    return make_post(engine, "u-bob", post_id="p1")


def _points(engine, user_id: str) -> int:
    with Session(engine) as session:
        return session.get(User, user_id).points


def _reaction_notifications(engine) -> list[Notification]:
    with Session(engine) as session:
        return list(session.scalars(
            select(Notification)
            .where(Notification.type == "reaction")
            .order_by(Notification.created_at)
        ).all())


class TestToggleReaction:
    def test_add_reaction(self, engine, post):
        result = reaction_service.toggle_reaction(engine, "p1", "u-alice", "love")
        assert result.change is ReactionChange.ADDED
        assert result.user_reaction == "love"
        assert result.author_points == 2
        assert result.counts["love"] == 1
        assert _points(engine, "u-bob") == 2

    def test_same_type_toggles_off(self, engine, post):
        reaction_service.toggle_reaction(engine, "p1", "u-alice", "love")
        result = reaction_service.toggle_reaction(engine, "p1", "u-alice", "love")
        assert result.change is ReactionChange.REMOVED
        assert result.user_reaction is None
        assert result.counts["love"] == 0
        assert _points(engine, "u-bob") == 0

    def test_different_type_updates_in_place(self, engine, post):
        reaction_service.toggle_reaction(engine, "p1", "u-alice", "like")
        result = reaction_service.toggle_reaction(engine, "p1", "u-alice", "haha")
        assert result.change is ReactionChange.CHANGED
        assert result.author_points == 1

        with Session(engine) as session:
            rows = session.scalars(select(Reaction)).all()
        assert [(r.user_id, r.reaction_type) for r in rows] == [("u-alice", "haha")]

    def test_one_reaction_per_user(self, engine, post):
        for rtype in ("like", "wow", "sad", "angry"):
            reaction_service.toggle_reaction(engine, "p1", "u-alice", rtype)
        with Session(engine) as session:
            assert session.scalar(select(func.count()).select_from(Reaction)) == 1

    def test_multiple_users_accumulate(self, engine, post):
        reaction_service.toggle_reaction(engine, "p1", "u-alice", "like")
        result = reaction_service.toggle_reaction(engine, "p1", "u-carol", "wow")
        assert result.author_points == 3
        assert result.counts == {
            "like": 1, "love": 0, "haha": 0, "wow": 1, "sad": 0, "angry": 0,
        }

    def test_zero_weight_reaction(self, engine, post):
        result = reaction_service.toggle_reaction(engine, "p1", "u-alice", "angry")
        assert result.change is ReactionChange.ADDED
        assert result.author_points == 0

    def test_type_is_case_insensitive(self, engine, post):
        result = reaction_service.toggle_reaction(engine, "p1", "u-alice", "LIKE")
        assert result.user_reaction == "like"

    def test_self_reaction_does_not_score(self, engine, post):
        result = reaction_service.toggle_reaction(engine, "p1", "u-bob", "love")
        assert result.change is ReactionChange.ADDED
        assert result.author_points == 0

    def test_unknown_type_rejected(self, engine, post):
        with pytest.raises(ValidationError) as exc_info:
            reaction_service.toggle_reaction(engine, "p1", "u-alice", "shrug")
        assert exc_info.value.field == "reaction_type"

    def test_unknown_post(self, engine, users):
        with pytest.raises(NotFoundError):
            reaction_service.toggle_reaction(engine, "missing", "u-alice", "like")

    def test_love_then_off_restores_points_without_new_notification(self, engine, post):
        before = _points(engine, "u-bob")
        reaction_service.toggle_reaction(engine, "p1", "u-carol", "love")
        assert _points(engine, "u-bob") == before + 2
        assert len(_reaction_notifications(engine)) == 1

        reaction_service.toggle_reaction(engine, "p1", "u-carol", "love")
        assert _points(engine, "u-bob") == before
        assert len(_reaction_notifications(engine)) == 1


class TestReactionNotifications:
    def test_notification_fields(self, engine, post):
        reaction_service.toggle_reaction(engine, "p1", "u-alice", "wow")
        (note,) = _reaction_notifications(engine)
        assert note.recipient_id == "u-bob"
        assert note.sender_id == "u-alice"
        assert note.post_id == "p1"
        assert note.topic_id == post.topic_id
        assert note.reaction_type == "wow"

    def test_type_change_notifies_again(self, engine, post):
        reaction_service.toggle_reaction(engine, "p1", "u-alice", "like")
        reaction_service.toggle_reaction(engine, "p1", "u-alice", "love")
        assert [n.reaction_type for n in _reaction_notifications(engine)] == ["like", "love"]

    def test_self_reaction_not_notified(self, engine, post):
        reaction_service.toggle_reaction(engine, "p1", "u-bob", "like")
        assert _reaction_notifications(engine) == []


class TestPointsLedger:
    def test_recompute_is_idempotent(self, engine, post):
        reaction_service.toggle_reaction(engine, "p1", "u-alice", "like")
        reaction_service.toggle_reaction(engine, "p1", "u-carol", "haha")
        with Session(engine) as session:
            assert points_service.recompute_points(session, "u-bob") == 3
            assert points_service.recompute_points(session, "u-bob") == 3
            session.commit()
        assert _points(engine, "u-bob") == 3

    def test_reconcile_repairs_drifted_cache(self, engine, post):
        reaction_service.toggle_reaction(engine, "p1", "u-alice", "love")
        with Session(engine) as session:
            session.get(User, "u-bob").points = 999
            session.commit()

        totals = points_service.reconcile_points(engine)
        assert totals["u-bob"] == 2
        assert totals["u-alice"] == 0
        assert _points(engine, "u-bob") == 2

    def test_reconcile_selected_users(self, engine, post):
        totals = points_service.reconcile_points(engine, ["u-bob"])
        assert totals == {"u-bob": 0}

    def test_points_span_all_posts(self, engine, users):
        make_post(engine, "u-bob", post_id="p1")
        make_post(engine, "u-bob", post_id="p2")
        reaction_service.toggle_reaction(engine, "p1", "u-alice", "like")
        result = reaction_service.toggle_reaction(engine, "p2", "u-alice", "wow")
        assert result.author_points == 3


class TestConcurrentToggle:
    """A second writer inserted the row between our lookup and our INSERT."""

    @staticmethod
    def _hide_first_lookup():
        real = reaction_service._current_reaction
        calls = []

        def lookup(session, post_id, user_id):
            calls.append(user_id)
            if len(calls) == 1:
                return None
            return real(session, post_id, user_id)

        return patch(
            "parley.services.reaction_service._current_reaction", side_effect=lookup
        )

    @pytest.mark.parametrize("stored,requested,change,remaining", [
        ("like", "love", ReactionChange.CHANGED, ["love"]),
        ("love", "love", ReactionChange.REMOVED, []),
    ])
    def test_redecides_against_stored_row(
        self, engine, post, stored, requested, change, remaining
    ):
        reaction_service.toggle_reaction(engine, "p1", "u-alice", stored)
        with self._hide_first_lookup():
            result = reaction_service.toggle_reaction(engine, "p1", "u-alice", requested)

        assert result.change is change
        with Session(engine) as session:
            assert session.scalars(
                select(Reaction.reaction_type).where(Reaction.user_id == "u-alice")
            ).all() == remaining
