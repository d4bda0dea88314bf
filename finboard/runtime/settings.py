"""Service configuration loaded from FINBOARD_* environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class FinboardSettings(BaseSettings):
    """Finboard Workspace Runtime settings.

    All fields are read from environment variables with the ``FINBOARD_`` prefix.
    For example, ``FINBOARD_LOG_LEVEL=DEBUG`` maps to ``log_level``.
    """

    model_config = SettingsConfigDict(
        env_prefix="FINBOARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"
    log_json: bool = False
    """Emit JSON lines instead of the coloured console format."""

    # -- Infrastructure --------------------------------------------------------
    database_url: str | None = None
    """PostgreSQL connection string (psycopg3).  Required when ``remote = "sql"``."""

    redis_url: str | None = None
    """Redis connection string.  Required when ``selection_store = "redis"``."""

    # -- Workspace collaborators -----------------------------------------------
    remote: Literal["sql", "memory"] = "sql"
    """Backend that owns workspace rows.  ``memory`` is for local development."""

    selection_store: Literal["memory", "local", "redis"] = "local"
    """Where the last active workspace id is remembered per user."""

    data_root: str = "./data"
    """Root directory for the ``local`` selection store."""

    data_prefix: str | None = None
    """Optional namespace prefix inserted into all data paths.

    When set, paths become ``{data_root}/{data_prefix}/...``.
    """

    # -- Notifications ---------------------------------------------------------
    notice_capacity: int = 50
    """How many recent notices each user keeps before the oldest are dropped."""

    # -- Registry --------------------------------------------------------------
    max_managers: int | None = 10_000
    """Upper bound on in-memory user managers; the least recently used is evicted.

    ``None`` disables the bound.
    """

    # -- Server ----------------------------------------------------------------
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8000


def get_settings() -> FinboardSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``_get_settings_cached.cache_clear()`` in tests to
    force a re-read after overriding env vars.
    """
    return _get_settings_cached()


def _get_settings_cached() -> FinboardSettings:
    """Inner function wrapped by lru_cache (allows type-safe cache_clear)."""
    return FinboardSettings()


# Apply lru_cache at runtime so the function is only called once.
from functools import lru_cache  # noqa: E402

_get_settings_cached = lru_cache(maxsize=1)(_get_settings_cached)
