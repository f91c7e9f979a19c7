"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of parley.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from parley.database.engine import BACKEND_MEMORY, create_db_engine, init_db  # noqa: E402
from parley.database.models import Post, Topic, User  # noqa: E402


@pytest.fixture
def db_engine() -> Engine:
    """An in-memory SQLite engine with all Parley tables.

    Uses StaticPool so every session (and the TestClient's worker threads)
    shares the same in-memory database.
    """
    engine = create_db_engine(backend=BACKEND_MEMORY)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
def make_user(engine: Engine, username: str, user_id: str | None = None,
              is_admin: bool = False) -> User:
    """Insert a user directly and return it."""
    with Session(engine, expire_on_commit=False) as session:
        user = User(id=user_id or f"u-{username}", username=username, is_admin=is_admin)
        session.add(user)
        session.commit()
        return user


def make_post(engine: Engine, author_id: str, content: str = "A perfectly ordinary post",
              post_id: str | None = None) -> Post:
    """Insert a topic with a single post by *author_id* and return the post."""
    with Session(engine, expire_on_commit=False) as session:
        topic = Topic(title="General discussion", author_id=author_id)
        session.add(topic)
        session.flush()
        post = Post(topic_id=topic.id, author_id=author_id, content=content)
        if post_id:
            post.id = post_id
        session.add(post)
        session.commit()
        return post


def make_token(sub: str, username: str = "FixtureUser") -> str:
    """Create a bearer JWT for *sub*.  Usable as a factory in any test."""
    from parley.api.deps import create_access_token

    return create_access_token(sub, username)


@pytest.fixture
def users(db_engine):
    """Three ordinary users: alice, bob and carol."""
    return {
        name: make_user(db_engine, name)
        for name in ("alice", "bob", "carol")
    }


@pytest.fixture
def client(db_engine):
    """A FastAPI TestClient serving the test engine.

    The lifespan is not entered (no ``with``), so the app uses the engine
    placed on ``app.state`` here.
    """
    from fastapi.testclient import TestClient

    from parley.api.main import app

    app.state.engine = db_engine
    return TestClient(app, raise_server_exceptions=False)
