"""Alembic environment for Parley's postgres backend.

Migrations apply only when ``DATABASE_URL`` names a real database; the
``memory`` backend builds its schema with ``init_db`` on every start.
The initial revision is ``5e2c8a1f0b37`` (messaging, reactions and
notification tables, including the partial unique index on mentions).
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from dotenv import load_dotenv
from sqlalchemy import engine_from_config, pool

from alembic import context

load_dotenv()

config = context.config

database_url = os.getenv("DATABASE_URL")
if database_url:
    config.set_main_option("sqlalchemy.url", database_url)
if not config.get_main_option("sqlalchemy.url"):
    raise RuntimeError(
        "DATABASE_URL is not set. The memory backend is not migrated; "
        "point DATABASE_URL at the postgres database to upgrade."
    )

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

from parley.database.models import Base  # noqa: E402

target_metadata = Base.metadata

# Autogenerate should notice length and timezone changes on columns.
_COMPARE = {"compare_type": True}


def run_migrations_offline() -> None:
    """Emit SQL for the configured URL without connecting."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_COMPARE,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            # SQLite cannot ALTER most constraints in place.
            render_as_batch=connection.dialect.name == "sqlite",
            **_COMPARE,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
