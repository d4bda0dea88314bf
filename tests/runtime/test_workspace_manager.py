"""Unit tests for WorkspaceManager.

Run against the in-memory remote and selection store -- no database needed.
"""

from __future__ import annotations

import asyncio

import pytest

from finboard.runtime.managers.workspaces import (
    InvalidSelectionError,
    NotAuthenticatedError,
    WorkspaceManager,
    WorkspaceNotFoundError,
    WorkspaceValidationError,
)
from finboard.runtime.models.api import WorkspaceUpdate
from finboard.runtime.models.enums import NoticeLevel, SelectionState
from finboard.runtime.models.workspace import WorkspaceSnapshot
from finboard.runtime.notices import NoticeBoard
from finboard.runtime.remote.base import RemoteError
from finboard.runtime.selection.base import SelectionStoreError
from finboard.runtime.selection.memory import MemorySelectionStore

from .fakes import BrokenSelectionStore, GatedRemote

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _names(manager: WorkspaceManager) -> list[str]:
    return [w.name for w in manager.workspaces]


def _operations(remote: GatedRemote) -> list[str]:
    return [op for op, _ in remote.calls]


def _assert_consistent(snapshot: WorkspaceSnapshot) -> None:
    """The active workspace is always a member of the list, or None when it is empty."""
    if snapshot.workspaces:
        assert snapshot.active_workspace is not None
        assert snapshot.active_workspace in snapshot.workspaces
        assert snapshot.state == SelectionState.RESOLVED
    else:
        assert snapshot.active_workspace is None


def _errors(board: NoticeBoard) -> list[str]:
    return [n.message for n in board.pending() if n.level == NoticeLevel.ERROR]


async def _settle() -> None:
    """Let every runnable task advance to its next real suspension point."""
    for _ in range(10):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# load
# ---------------------------------------------------------------------------


def test_initial_state_is_unresolved(manager: WorkspaceManager) -> None:
    assert manager.state == SelectionState.UNRESOLVED
    assert manager.workspaces == ()
    assert manager.active_workspace is None
    assert manager.user_id is None


@pytest.mark.parametrize("user_id", [None, ""])
async def test_load_requires_user(manager: WorkspaceManager, remote: GatedRemote, user_id: str | None) -> None:
    with pytest.raises(NotAuthenticatedError):
        await manager.load(user_id)
    assert remote.calls == []


async def test_load_orders_default_first_then_by_name(
    manager: WorkspaceManager, remote: GatedRemote, selection: MemorySelectionStore
) -> None:
    remote.seed("alice", "Zeta")
    remote.seed("alice", "Alpha")
    home = remote.seed("alice", "Home", is_default=True)
    remote.seed("bob", "Not mine")

    snapshot = await manager.load("alice")

    assert _names(manager) == ["Home", "Alpha", "Zeta"]
    assert snapshot.active_workspace == home
    assert snapshot.state == SelectionState.RESOLVED
    assert snapshot.is_loading is False
    # Loading never writes the remembered selection.
    assert selection.writes == 0


async def test_load_honours_persisted_selection(
    manager: WorkspaceManager, remote: GatedRemote, selection: MemorySelectionStore
) -> None:
    remote.seed("alice", "Home", is_default=True)
    zeta = remote.seed("alice", "Zeta")
    await selection.set_active_workspace_id(zeta.workspace_id)

    await manager.load("alice")

    assert manager.active_workspace == zeta


async def test_load_ignores_stale_persisted_id(
    manager: WorkspaceManager, remote: GatedRemote, selection: MemorySelectionStore
) -> None:
    home = remote.seed("alice", "Home", is_default=True)
    remote.seed("alice", "Alpha")
    await selection.set_active_workspace_id("deleted-elsewhere")

    await manager.load("alice")

    assert manager.active_workspace == home
    assert await selection.get_active_workspace_id() == "deleted-elsewhere"


async def test_load_without_default_picks_first_by_name(
    manager: WorkspaceManager, remote: GatedRemote, selection: MemorySelectionStore
) -> None:
    remote.seed("alice", "Beta")
    alpha = remote.seed("alice", "Alpha")
    await selection.set_active_workspace_id("gone")

    await manager.load("alice")

    assert manager.active_workspace == alpha


async def test_load_empty_list(manager: WorkspaceManager) -> None:
    snapshot = await manager.load("alice")

    assert snapshot.state == SelectionState.EMPTY
    assert snapshot.active_workspace is None
    assert snapshot.workspaces == ()


async def test_load_failure_keeps_last_good_list(
    manager: WorkspaceManager, remote: GatedRemote, board: NoticeBoard
) -> None:
    remote.seed("alice", "Home", is_default=True)
    remote.seed("alice", "Side")
    before = await manager.load("alice")

    remote.fail_next("list", "connection reset")
    with pytest.raises(RemoteError, match="connection reset"):
        await manager.reload()

    assert manager.workspaces == before.workspaces
    assert manager.active_workspace == before.active_workspace
    assert manager.is_loading is False
    assert _errors(board) == ["Could not load workspaces"]


async def test_stale_load_is_discarded(manager: WorkspaceManager, remote: GatedRemote) -> None:
    """load(alice) then load(bob); alice's slower answer must not win."""
    remote.seed("alice", "Alice Home", is_default=True)
    bob_shop = remote.seed("bob", "Bob Shop", is_default=True)
    remote.gates["alice"] = asyncio.Event()

    slow = asyncio.create_task(manager.load("alice"))
    await asyncio.sleep(0)

    await manager.load("bob")
    remote.gates["alice"].set()
    await slow

    assert manager.user_id == "bob"
    assert _names(manager) == ["Bob Shop"]
    assert manager.active_workspace == bob_shop
    assert manager.is_loading is False


async def test_reset_discards_in_flight_load(manager: WorkspaceManager, remote: GatedRemote) -> None:
    remote.seed("alice", "Home", is_default=True)
    remote.gates["alice"] = asyncio.Event()

    pending = asyncio.create_task(manager.load("alice"))
    await asyncio.sleep(0)
    manager.reset()
    remote.gates["alice"].set()
    await pending

    assert manager.state == SelectionState.UNRESOLVED
    assert manager.user_id is None
    assert manager.workspaces == ()


async def test_switching_user_hides_previous_workspaces(manager: WorkspaceManager, remote: GatedRemote) -> None:
    remote.seed("alice", "Alice Home", is_default=True)
    await manager.load("alice")

    remote.gates["bob"] = asyncio.Event()
    pending = asyncio.create_task(manager.load("bob"))
    await asyncio.sleep(0)

    assert manager.user_id == "bob"
    assert manager.workspaces == ()
    assert manager.is_loading is True

    remote.gates["bob"].set()
    await pending
    assert manager.state == SelectionState.EMPTY


# ---------------------------------------------------------------------------
# switch_to
# ---------------------------------------------------------------------------


async def test_switch_to_persists_selection(
    manager: WorkspaceManager, remote: GatedRemote, selection: MemorySelectionStore
) -> None:
    remote.seed("alice", "Home", is_default=True)
    side = remote.seed("alice", "Side")
    await manager.load("alice")

    result = await manager.switch_to(side)

    assert result == side
    assert manager.active_workspace == side
    assert await selection.get_active_workspace_id() == side.workspace_id


async def test_switch_to_active_is_idempotent(
    manager: WorkspaceManager, remote: GatedRemote, selection: MemorySelectionStore
) -> None:
    remote.seed("alice", "Home", is_default=True)
    side = remote.seed("alice", "Side")
    await manager.load("alice")

    await manager.switch_to(side.workspace_id)
    snapshot = manager.snapshot
    writes = selection.writes

    await manager.switch_to(side.workspace_id)

    assert manager.snapshot is snapshot
    assert selection.writes == writes


async def test_switch_to_unknown_workspace(manager: WorkspaceManager, remote: GatedRemote) -> None:
    remote.seed("alice", "Home", is_default=True)
    foreign = remote.seed("bob", "Bob Shop")
    await manager.load("alice")

    with pytest.raises(InvalidSelectionError):
        await manager.switch_to(foreign)
    with pytest.raises(InvalidSelectionError):
        await manager.switch_to("no-such-id")


async def test_switch_to_before_load(manager: WorkspaceManager) -> None:
    with pytest.raises(InvalidSelectionError):
        await manager.switch_to("anything")


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("name", ["", "   ", None])
async def test_create_rejects_blank_name(manager: WorkspaceManager, remote: GatedRemote, name: str | None) -> None:
    remote.seed("alice", "Home", is_default=True)
    before = await manager.load("alice")

    with pytest.raises(WorkspaceValidationError):
        await manager.create({"name": name})

    assert "insert" not in _operations(remote)
    assert manager.snapshot is before


async def test_create_makes_new_workspace_active(
    manager: WorkspaceManager, remote: GatedRemote, selection: MemorySelectionStore, board: NoticeBoard
) -> None:
    remote.seed("alice", "Alpha", is_default=True)
    beta = remote.seed("alice", "Beta")
    await manager.load("alice")
    await manager.switch_to(beta)

    created = await manager.create({"name": "  New  "})

    assert len(manager.workspaces) == 3
    assert manager.active_workspace is not None
    assert manager.active_workspace.name == "New"
    assert manager.active_workspace.workspace_id == created.workspace_id
    assert created.is_default is False
    assert created.color == "#6366F1"
    assert created.icon == "Briefcase"
    assert await selection.get_active_workspace_id() == created.workspace_id
    assert [n.message for n in board.pending()][-1] == "Workspace created"


async def test_create_keeps_chosen_palette(manager: WorkspaceManager) -> None:
    await manager.load("alice")

    created = await manager.create({"name": "Trip", "description": "Japan 2027", "color": "#10B981", "icon": "Plane"})

    assert created.description == "Japan 2027"
    assert created.color == "#10B981"
    assert created.icon == "Plane"
    assert manager.state == SelectionState.RESOLVED


async def test_create_insert_failure_leaves_state(
    manager: WorkspaceManager, remote: GatedRemote, board: NoticeBoard
) -> None:
    remote.seed("alice", "Home", is_default=True)
    before = await manager.load("alice")

    remote.fail_next("insert", "duplicate name")
    with pytest.raises(RemoteError, match="duplicate name"):
        await manager.create({"name": "Home"})

    assert manager.snapshot is before
    assert _errors(board) == ["Could not create workspace"]


async def test_create_refresh_failure_keeps_previous_state(
    manager: WorkspaceManager, remote: GatedRemote, selection: MemorySelectionStore
) -> None:
    home = remote.seed("alice", "Home", is_default=True)
    await manager.load("alice")

    remote.fail_next("list")
    with pytest.raises(RemoteError):
        await manager.create({"name": "New"})

    assert _names(manager) == ["Home"]
    assert manager.active_workspace == home
    assert await selection.get_active_workspace_id() is None


async def test_create_requires_user(manager: WorkspaceManager, remote: GatedRemote) -> None:
    with pytest.raises(NotAuthenticatedError):
        await manager.create({"name": "New"})
    assert remote.calls == []


# ---------------------------------------------------------------------------
# update
# ---------------------------------------------------------------------------


async def test_update_refreshes_active_workspace(manager: WorkspaceManager, remote: GatedRemote) -> None:
    home = remote.seed("alice", "Home", is_default=True)
    remote.seed("alice", "Side")
    await manager.load("alice")

    updated = await manager.update(home.workspace_id, {"name": "Household", "color": "#EF4444"})

    assert updated.name == "Household"
    assert manager.active_workspace is not None
    assert manager.active_workspace.workspace_id == home.workspace_id
    assert manager.active_workspace.name == "Household"
    assert manager.active_workspace.color == "#EF4444"


async def test_update_inactive_workspace_keeps_selection(manager: WorkspaceManager, remote: GatedRemote) -> None:
    home = remote.seed("alice", "Home", is_default=True)
    side = remote.seed("alice", "Side")
    await manager.load("alice")

    await manager.update(side.workspace_id, {"name": "Freelance"})

    assert manager.active_workspace == home
    assert _names(manager) == ["Home", "Freelance"]


async def test_update_sends_only_set_fields(manager: WorkspaceManager, remote: GatedRemote) -> None:
    home = remote.seed("alice", "Home", is_default=True, description="old")
    await manager.load("alice")

    await manager.update(home.workspace_id, WorkspaceUpdate(description=None))

    payloads = [payload for op, payload in remote.calls if op == "update"]
    assert payloads == [{"workspace_id": home.workspace_id, "description": None}]
    assert manager.active_workspace is not None
    assert manager.active_workspace.description is None
    assert manager.active_workspace.color == home.color


async def test_update_without_changes_is_noop(manager: WorkspaceManager, remote: GatedRemote) -> None:
    home = remote.seed("alice", "Home", is_default=True)
    await manager.load("alice")

    result = await manager.update(home.workspace_id, {})

    assert result == home
    assert "update" not in _operations(remote)


@pytest.mark.parametrize(
    "changes",
    [{"name": "  "}, {"name": None}, {"is_default": True}, {"color": "red"}],
)
async def test_update_rejects_invalid_changes(manager: WorkspaceManager, remote: GatedRemote, changes: dict) -> None:
    home = remote.seed("alice", "Home", is_default=True)
    await manager.load("alice")

    with pytest.raises(WorkspaceValidationError):
        await manager.update(home.workspace_id, changes)
    assert "update" not in _operations(remote)


async def test_update_unknown_workspace(manager: WorkspaceManager, remote: GatedRemote) -> None:
    await manager.load("alice")
    with pytest.raises(WorkspaceNotFoundError):
        await manager.update("missing", {"name": "X"})


async def test_update_remote_failure_retains_state(
    manager: WorkspaceManager, remote: GatedRemote, board: NoticeBoard
) -> None:
    home = remote.seed("alice", "Home", is_default=True)
    before = await manager.load("alice")

    remote.fail_next("update")
    with pytest.raises(RemoteError):
        await manager.update(home.workspace_id, {"name": "Renamed"})

    assert manager.snapshot is before
    assert _errors(board) == ["Could not update workspace"]


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


async def test_delete_inactive_workspace(
    manager: WorkspaceManager, remote: GatedRemote, selection: MemorySelectionStore
) -> None:
    home = remote.seed("alice", "Home", is_default=True)
    side = remote.seed("alice", "Side")
    await manager.load("alice")

    await manager.delete(side.workspace_id)

    assert _names(manager) == ["Home"]
    assert manager.active_workspace == home
    assert selection.writes == 0


async def test_delete_active_workspace_falls_back_to_default(
    manager: WorkspaceManager, remote: GatedRemote, selection: MemorySelectionStore
) -> None:
    home = remote.seed("alice", "Home", is_default=True)
    remote.seed("alice", "Alpha")
    beta = remote.seed("alice", "Beta")
    await manager.load("alice")
    await manager.switch_to(beta)

    await manager.delete(beta.workspace_id)

    assert manager.active_workspace == home
    assert beta.workspace_id not in [w.workspace_id for w in manager.workspaces]
    assert await selection.get_active_workspace_id() == home.workspace_id


async def test_delete_active_default_picks_first_remaining(
    manager: WorkspaceManager, remote: GatedRemote, selection: MemorySelectionStore
) -> None:
    home = remote.seed("alice", "Home", is_default=True)
    remote.seed("alice", "Zeta")
    alpha = remote.seed("alice", "Alpha")
    await manager.load("alice")

    await manager.delete(home.workspace_id)

    assert manager.active_workspace == alpha
    assert await selection.get_active_workspace_id() == alpha.workspace_id


async def test_delete_last_workspace_empties_selection(
    manager: WorkspaceManager, remote: GatedRemote, selection: MemorySelectionStore
) -> None:
    only = remote.seed("alice", "Only")
    await manager.load("alice")
    await manager.switch_to(only)  # already active: no write
    await selection.set_active_workspace_id(only.workspace_id)

    await manager.delete(only.workspace_id)

    assert manager.active_workspace is None
    assert manager.state == SelectionState.EMPTY
    assert manager.workspaces == ()
    assert await selection.get_active_workspace_id() is None


async def test_delete_remote_failure_retains_state(
    manager: WorkspaceManager, remote: GatedRemote, board: NoticeBoard
) -> None:
    home = remote.seed("alice", "Home", is_default=True)
    remote.seed("alice", "Side")
    await manager.load("alice")

    remote.fail_next("delete", "timeout")
    with pytest.raises(RemoteError, match="timeout"):
        await manager.delete(home.workspace_id)

    assert home.workspace_id in [w.workspace_id for w in manager.workspaces]
    assert manager.active_workspace == home
    assert _errors(board) == ["Could not delete workspace"]


async def test_delete_unknown_workspace(manager: WorkspaceManager, remote: GatedRemote) -> None:
    await manager.load("alice")
    with pytest.raises(WorkspaceNotFoundError):
        await manager.delete("missing")
    assert "delete" not in _operations(remote)


async def test_delete_refresh_failure_keeps_local_removal(
    manager: WorkspaceManager, remote: GatedRemote, board: NoticeBoard
) -> None:
    home = remote.seed("alice", "Home", is_default=True)
    side = remote.seed("alice", "Side")
    await manager.load("alice")
    await manager.switch_to(side)

    remote.fail_next("list")
    with pytest.raises(RemoteError):
        await manager.delete(side.workspace_id)

    assert _names(manager) == ["Home"]
    assert manager.active_workspace == home
    assert "Workspace deleted, but the list could not be refreshed" in _errors(board)


# ---------------------------------------------------------------------------
# Publication and invariants
# ---------------------------------------------------------------------------


async def test_subscribers_receive_every_snapshot(manager: WorkspaceManager, remote: GatedRemote) -> None:
    remote.seed("alice", "Home", is_default=True)
    seen: list[WorkspaceSnapshot] = []

    def _broken(_snapshot: WorkspaceSnapshot) -> None:
        raise RuntimeError("view crashed")

    unsubscribe = manager.subscribe(seen.append)
    manager.subscribe(_broken)

    await manager.load("alice")

    assert [s.is_loading for s in seen] == [True, False]
    assert seen[-1] is manager.snapshot

    unsubscribe()
    await manager.reload()
    assert len(seen) == 2


async def test_selection_never_dangles(manager: WorkspaceManager, remote: GatedRemote) -> None:
    remote.seed("alice", "Home", is_default=True)
    snapshots: list[WorkspaceSnapshot] = []
    manager.subscribe(snapshots.append)

    await manager.load("alice")
    first = await manager.create({"name": "Freelance"})
    second = await manager.create({"name": "Family"})
    await manager.switch_to(first)
    await manager.update(second.workspace_id, {"name": "Household"})
    await manager.delete(first.workspace_id)
    for workspace in list(manager.workspaces):
        await manager.delete(workspace.workspace_id)

    assert manager.state == SelectionState.EMPTY
    for snapshot in snapshots:
        if snapshot.state != SelectionState.UNRESOLVED:
            _assert_consistent(snapshot)


async def test_mutations_apply_in_issue_order(manager: WorkspaceManager, remote: GatedRemote) -> None:
    remote.seed("alice", "Home", is_default=True)
    await manager.load("alice")

    first, second = await asyncio.gather(
        manager.create({"name": "First"}),
        manager.create({"name": "Second"}),
    )

    assert manager.active_workspace is not None
    assert manager.active_workspace.workspace_id == second.workspace_id
    assert first.workspace_id in [w.workspace_id for w in manager.workspaces]
    _assert_consistent(manager.snapshot)


async def test_newer_load_supersedes_refresh_after_create(
    manager: WorkspaceManager, remote: GatedRemote, selection: MemorySelectionStore
) -> None:
    """The newer load owns the list; the created id is still remembered."""
    remote.seed("alice", "Home", is_default=True)
    await manager.load("alice")

    remote.gates["alice"] = asyncio.Event()
    creating = asyncio.create_task(manager.create({"name": "New"}))
    await _settle()  # the refresh after the insert is now parked at the gate

    remote.seed("alice", "Later")
    loading = asyncio.create_task(manager.load("alice"))
    await _settle()

    remote.gates["alice"].set()
    created = await creating
    await loading

    assert _names(manager) == ["Home", "Later", "New"]
    assert await selection.get_active_workspace_id() == created.workspace_id
    assert manager.active_workspace.workspace_id == created.workspace_id
    assert manager.is_loading is False
    _assert_consistent(manager.snapshot)


async def test_failed_refresh_clears_loading_flag_of_superseded_load(
    manager: WorkspaceManager, remote: GatedRemote, board: NoticeBoard
) -> None:
    remote.seed("alice", "Home", is_default=True)
    await manager.load("alice")

    remote.gates["alice"] = asyncio.Event()
    pending = asyncio.create_task(manager.load("alice"))
    await _settle()
    assert manager.is_loading is True

    remote.fail_next("list")
    with pytest.raises(RemoteError):
        await manager.create({"name": "New"})

    remote.gates["alice"].set()
    await pending

    assert manager.is_loading is False
    assert "Workspace created, but the list could not be refreshed" in _errors(board)


# ---------------------------------------------------------------------------
# selection store failures
# ---------------------------------------------------------------------------


@pytest.fixture
def broken() -> BrokenSelectionStore:
    return BrokenSelectionStore()


@pytest.fixture
def fragile(remote: GatedRemote, broken: BrokenSelectionStore, board: NoticeBoard) -> WorkspaceManager:
    return WorkspaceManager(remote=remote, selection=broken, notifier=board)


async def test_switch_store_failure_leaves_selection_unchanged(
    fragile: WorkspaceManager, remote: GatedRemote, broken: BrokenSelectionStore, board: NoticeBoard
) -> None:
    home = remote.seed("alice", "Home", is_default=True)
    side = remote.seed("alice", "Side")
    before = await fragile.load("alice")

    broken.fail_writes = True
    with pytest.raises(SelectionStoreError):
        await fragile.switch_to(side)

    assert fragile.snapshot is before
    assert fragile.active_workspace == home
    assert await broken.get_active_workspace_id() is None
    assert _errors(board) == ["Could not switch workspace"]


async def test_load_store_read_failure_is_reported(
    fragile: WorkspaceManager, remote: GatedRemote, broken: BrokenSelectionStore, board: NoticeBoard
) -> None:
    remote.seed("alice", "Home", is_default=True)

    broken.fail_reads = True
    with pytest.raises(SelectionStoreError):
        await fragile.load("alice")

    assert fragile.is_loading is False
    assert _errors(board) == ["Could not load workspaces"]


async def test_create_store_failure_still_shows_new_workspace(
    fragile: WorkspaceManager, remote: GatedRemote, broken: BrokenSelectionStore, board: NoticeBoard
) -> None:
    remote.seed("alice", "Home", is_default=True)
    await fragile.load("alice")

    broken.fail_writes = True
    with pytest.raises(SelectionStoreError):
        await fragile.create({"name": "New"})

    assert _names(fragile) == ["Home", "New"]
    assert fragile.active_workspace.name == "New"
    assert _errors(board) == ["Workspace created, but it could not be remembered as active"]
    _assert_consistent(fragile.snapshot)


@pytest.mark.parametrize("failure", ["fail_reads", "fail_writes"])
async def test_delete_active_store_failure_keeps_list_consistent(
    fragile: WorkspaceManager,
    remote: GatedRemote,
    broken: BrokenSelectionStore,
    board: NoticeBoard,
    failure: str,
) -> None:
    home = remote.seed("alice", "Home", is_default=True)
    side = remote.seed("alice", "Side")
    await fragile.load("alice")
    await fragile.switch_to(side)

    setattr(broken, failure, True)
    with pytest.raises(SelectionStoreError):
        await fragile.delete(side.workspace_id)

    assert remote.get(side.workspace_id) is None
    assert _names(fragile) == ["Home"]
    assert fragile.active_workspace == home
    assert _errors(board) == ["Workspace deleted, but the selection could not be saved"]
    _assert_consistent(fragile.snapshot)
