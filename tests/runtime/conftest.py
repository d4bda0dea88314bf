"""Shared fixtures for workspace-runtime tests.

Unit tests run the real ``WorkspaceManager`` against the in-memory remote
and selection store; no Docker needed.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient

from finboard.runtime.app import app, build_manager_factory
from finboard.runtime.managers.workspaces import WorkspaceManager
from finboard.runtime.notices import NoticeBoard
from finboard.runtime.registry import ManagerRegistry
from finboard.runtime.selection.memory import MemorySelectionStore
from finboard.runtime.settings import FinboardSettings

from .fakes import GatedRemote


@pytest.fixture
def remote() -> GatedRemote:
    return GatedRemote()


@pytest.fixture
def selection() -> MemorySelectionStore:
    return MemorySelectionStore()


@pytest.fixture
def board() -> NoticeBoard:
    return NoticeBoard(user_id="alice")


@pytest.fixture
def manager(remote: GatedRemote, selection: MemorySelectionStore, board: NoticeBoard) -> WorkspaceManager:
    return WorkspaceManager(remote=remote, selection=selection, notifier=board)


@pytest.fixture
def registry(remote: GatedRemote) -> ManagerRegistry:
    settings = FinboardSettings(selection_store="memory", remote="memory")
    return ManagerRegistry(build_manager_factory(settings, remote))


@pytest.fixture
async def client(registry: ManagerRegistry) -> AsyncIterator[AsyncClient]:
    """Async HTTP client wired to the app with an in-memory registry.

    The app lifespan does NOT run under ``ASGITransport``, so state fields
    are pre-set here.
    """
    app.state.db_engine = None
    app.state.redis = None
    app.state.registry = registry

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.state.registry = None
