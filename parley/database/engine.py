"""
parley.database.engine — Storage Backend Selection & Scoped Transactions
=========================================================================

The core services only ever see a SQLAlchemy :class:`Engine`.  Which backend
sits behind it is decided **once**, here, when the application starts:

* ``postgres`` (default) — the primary store, read from ``DATABASE_URL``.
* ``memory`` — an in-process SQLite database shared across threads via
  :class:`~sqlalchemy.pool.StaticPool`.  Used for demos, local development
  and as the fallback when no database URL is configured.

Every multi-step mutation goes through :func:`get_session`, which commits on
success, rolls back on *any* exception and always closes the session.

Usage::

    from parley.database.engine import create_db_engine, init_db, get_session

    engine = create_db_engine()          # reads PARLEY_STORAGE_BACKEND / DATABASE_URL
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    with get_session(engine) as session:
        session.add(User(id="u1", username="alice"))
        # commit happens automatically on block exit
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from parley.database.models import Base
from parley.errors import StorageError

logger = logging.getLogger(__name__)

BACKEND_POSTGRES = "postgres"
BACKEND_MEMORY = "memory"
VALID_BACKENDS = (BACKEND_POSTGRES, BACKEND_MEMORY)


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def _enable_sqlite_savepoints(engine: Engine) -> None:
    """Let SQLAlchemy, not pysqlite, emit BEGIN so SAVEPOINTs nest correctly."""

    @event.listens_for(engine, "connect")
    def _autocommit_driver(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _explicit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_db_engine(backend: str | None = None, url: str | None = None) -> Engine:
    """Build the SQLAlchemy :class:`Engine` for the selected backend.

    Parameters
    ----------
    backend:
        ``"postgres"`` or ``"memory"``.  Defaults to the
        ``PARLEY_STORAGE_BACKEND`` env var, then ``"postgres"``.
    url:
        Database URL for the postgres backend.  Defaults to ``DATABASE_URL``.
        When neither is set the in-memory backend is used and a warning is
        logged.

    Raises
    ------
    ValueError
        If *backend* is not one of :data:`VALID_BACKENDS`.
    """
    backend = (backend or os.getenv("PARLEY_STORAGE_BACKEND") or BACKEND_POSTGRES).lower()
    if backend not in VALID_BACKENDS:
        raise ValueError(
            f"Unknown storage backend {backend!r}; expected one of {VALID_BACKENDS}"
        )

    if backend == BACKEND_POSTGRES:
        url = url or os.getenv("DATABASE_URL")
        if not url:
            logger.warning(
                "DATABASE_URL is not set; falling back to the in-memory backend. "
                "Data will not survive a restart."
            )
            backend = BACKEND_MEMORY

    if backend == BACKEND_MEMORY:
        engine = create_engine(
            "sqlite://",
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        _enable_sqlite_savepoints(engine)
        logger.info("Database engine created → in-memory SQLite")
        return engine

    engine = create_engine(
        url,
        echo=False,        # Set True for SQL debugging
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,   # Reconnect stale connections automatically
        pool_timeout=10,
        pool_recycle=3600,
    )
    logger.info("Database engine created → %s", engine.url.host)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`parley.database.models`.

    Safe to call on every startup.  In production the schema is managed by
    Alembic (``alembic upgrade head``); ``create_all`` is the safety net for
    dev/test and for the in-memory backend, which has no migrations.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


def dispose_engine(engine: Engine) -> None:
    """Release every pooled connection.  Call once at shutdown."""
    engine.dispose()
    logger.info("Database engine disposed.")


# ---------------------------------------------------------------------------
# Scoped transaction
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine, operation: str = "transaction"):
    """Yield a :class:`Session` that commits on success and rolls back on
    any exception.

    Domain errors (:class:`~parley.errors.ParleyError`) pass through
    unchanged after the rollback.  Backend failures are logged with the
    *operation* name and re-raised as :class:`~parley.errors.StorageError`
    so callers never see driver internals.

    Objects stay readable after the block exits (``expire_on_commit=False``).
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Storage failure during %s", operation)
        raise StorageError(operation) from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
