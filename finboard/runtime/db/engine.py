"""Async SQLAlchemy engine and session factory for the workspace table.

Uses psycopg3, which serves both the async runtime and the synchronous
Alembic migrations from the same ``postgresql+psycopg://`` URL.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

_DRIVER_PREFIXES = ("postgresql://", "postgres://", "postgresql+asyncpg://")


def normalize_url(database_url: str) -> str:
    """Rewrite plain or asyncpg PostgreSQL URLs to the psycopg3 dialect."""
    for prefix in _DRIVER_PREFIXES:
        if database_url.startswith(prefix):
            return "postgresql+psycopg://" + database_url[len(prefix) :]
    return database_url


def create_engine(database_url: str, **kwargs: object) -> AsyncEngine:
    """Create an async engine sized for many short workspace queries.

    Each remote call opens and closes its own session, so connections are
    held only for a single statement or commit.  Defaults:

    - **pool_size=5**, **max_overflow=10**
    - **pool_pre_ping=True**: survive PostgreSQL restarts and idle timeouts.
    - **pool_recycle=1800**: recycle connections every 30 minutes.

    All defaults can be overridden via *kwargs*.
    """
    options: dict[str, object] = {
        "echo": False,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "pool_recycle": 1800,
    }
    options.update(kwargs)
    return create_async_engine(normalize_url(database_url), **options)  # type: ignore[arg-type]


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to *engine*.

    ``expire_on_commit=False`` keeps refreshed rows readable after commit,
    which ``SqlWorkspaceRemote`` relies on when converting them to models.
    """
    return async_sessionmaker(engine, expire_on_commit=False)
