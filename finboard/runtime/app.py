from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi.routing import APIRouter
from loguru import logger

from finboard.runtime.db.engine import create_engine, create_session_factory
from finboard.runtime.log import setup_logging
from finboard.runtime.managers.workspaces import WorkspaceManager
from finboard.runtime.notices import NoticeBoard
from finboard.runtime.registry import ManagerFactory, ManagerRegistry
from finboard.runtime.remote.base import WorkspaceRemote
from finboard.runtime.remote.memory import InMemoryWorkspaceRemote
from finboard.runtime.remote.sql import SqlWorkspaceRemote
from finboard.runtime.selection.base import SelectionStore
from finboard.runtime.selection.local import LocalSelectionStore
from finboard.runtime.selection.memory import MemorySelectionStore
from finboard.runtime.selection.redis import RedisSelectionStore
from finboard.runtime.settings import FinboardSettings, get_settings


def _create_selection_store(
    settings: FinboardSettings,
    user_id: str,
    redis: aioredis.Redis | None,
) -> SelectionStore:
    """Create the selection store backend for one user."""
    if settings.selection_store == "redis" and redis is not None:
        return RedisSelectionStore(redis, scope=user_id)
    if settings.selection_store == "memory":
        return MemorySelectionStore()
    return LocalSelectionStore(settings.data_root, scope=user_id, prefix=settings.data_prefix)


def build_manager_factory(
    settings: FinboardSettings,
    remote: WorkspaceRemote,
    redis: aioredis.Redis | None = None,
) -> ManagerFactory:
    """Return a factory creating one fully wired manager per user."""

    def _factory(user_id: str) -> WorkspaceManager:
        return WorkspaceManager(
            remote=remote,
            selection=_create_selection_store(settings, user_id, redis),
            notifier=NoticeBoard(settings.notice_capacity, user_id=user_id),
        )

    return _factory


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # -- Startup ---------------------------------------------------------------
    settings = get_settings()
    setup_logging(settings.log_level, serialize=settings.log_json)

    logger.info("Workspace runtime starting (host={}, port={})", settings.host, settings.port)

    _app.state.db_engine = None
    _app.state.redis = None
    _app.state.registry = None

    # -- Remote collaborator ---------------------------------------------------
    remote: WorkspaceRemote
    if settings.remote == "sql" and settings.database_url:
        engine = create_engine(settings.database_url)
        _app.state.db_engine = engine
        remote = SqlWorkspaceRemote(create_session_factory(engine))
        logger.info("Remote: PostgreSQL (pool_size=5, max_overflow=10)")
    else:
        if settings.remote == "sql":
            logger.warning("FINBOARD_DATABASE_URL not set -- falling back to in-memory workspaces")
        remote = InMemoryWorkspaceRemote()
        logger.info("Remote: in-memory (data is lost on restart)")

    # -- Selection store -------------------------------------------------------
    if settings.selection_store == "redis":
        if settings.redis_url:
            _app.state.redis = aioredis.from_url(
                settings.redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            logger.info("Selection store: Redis")
        else:
            logger.warning("FINBOARD_REDIS_URL not set -- selection store falls back to local files")
    else:
        prefix_info = f", prefix={settings.data_prefix}" if settings.data_prefix else ""
        logger.info("Selection store: {} (data_root={}{})", settings.selection_store, settings.data_root, prefix_info)

    _app.state.registry = ManagerRegistry(
        build_manager_factory(settings, remote, _app.state.redis),
        capacity=settings.max_managers,
    )

    yield

    # -- Shutdown --------------------------------------------------------------
    registry: ManagerRegistry = _app.state.registry
    registry.begin_shutdown()
    dropped = registry.clear()
    logger.info("Workspace runtime shutting down (dropped {} managers)", dropped)

    if _app.state.redis is not None:
        await _app.state.redis.aclose()
        logger.info("Redis: closed")

    if _app.state.db_engine is not None:
        await _app.state.db_engine.dispose()
        logger.info("PostgreSQL: disposed")


app = FastAPI(title="Finboard Workspace Runtime", lifespan=lifespan)

# ---------------------------------------------------------------------------
# API router -- all backend endpoints live under /api
# ---------------------------------------------------------------------------
api = APIRouter(prefix="/api")


@api.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


from finboard.runtime.routers.notices import router as notices_router  # noqa: E402
from finboard.runtime.routers.workspaces import router as workspaces_router  # noqa: E402

api.include_router(workspaces_router)
api.include_router(notices_router)

app.include_router(api)
