"""Alembic migration environment.

Reads the database URL from FinboardSettings (FINBOARD_DATABASE_URL) and
runs migrations synchronously through psycopg3.
"""

from __future__ import annotations

from logging.config import fileConfig
from typing import Any

from alembic import context
from sqlalchemy import create_engine, pool

from finboard.runtime.db.engine import normalize_url
from finboard.runtime.db.tables import Base
from finboard.runtime.settings import FinboardSettings

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

settings = FinboardSettings()
if not settings.database_url:
    msg = "FINBOARD_DATABASE_URL is not set. Cannot run migrations."
    raise RuntimeError(msg)

DATABASE_URL = normalize_url(settings.database_url)


def include_object(obj: Any, name: str | None, type_: str, reflected: bool, compare_to: Any) -> bool:
    """Ignore tables that exist in the database but not in our models.

    The workspace table usually shares a database with the rest of the
    finance app (transactions, goals, bills), which autogenerate must never
    try to drop.
    """
    return not (type_ == "table" and reflected and compare_to is None)


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    context.configure(
        url=DATABASE_URL,
        target_metadata=target_metadata,
        include_object=include_object,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Connect and apply migrations."""
    connectable = create_engine(DATABASE_URL, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_object=include_object,
            compare_type=True,
            compare_server_default=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
