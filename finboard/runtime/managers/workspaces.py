"""Workspace manager -- owns a user's workspace list and Active Selection.

One ``WorkspaceManager`` exists per signed-in client.  It is the only writer
of three pieces of state: the ordered workspace list, the active workspace
and the loading flag.  Views read them through an immutable
``WorkspaceSnapshot`` that is replaced wholesale on every commit, so a view
never observes a half-applied change or an active workspace that is missing
from the list.

Ordering rules:

- Mutations (switch, create, update, delete) are serialised through an
  ``asyncio.Lock`` and therefore applied in the order they were issued.
- Every list fetch (an explicit ``load`` or the reload that follows a
  mutation) takes a ticket from a monotonically increasing sequence.  A
  fetch result is committed only if its ticket is still the newest one, so
  a slow, older response can never overwrite a newer one.
- A result is also dropped if the manager started serving another user (or
  was reset by sign-out) while the request was in flight.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any, TypeVar

from loguru import logger
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from finboard.runtime.models.api import WorkspaceCreate, WorkspaceUpdate
from finboard.runtime.models.enums import NoticeLevel, SelectionState
from finboard.runtime.models.workspace import (
    Workspace,
    WorkspaceSnapshot,
    find_workspace,
    resolve_active,
    sort_workspaces,
)
from finboard.runtime.notices import NoticeBoard
from finboard.runtime.remote.base import RemoteError
from finboard.runtime.selection.base import SelectionStoreError

if TYPE_CHECKING:
    from finboard.runtime.notices import Notifier
    from finboard.runtime.remote.base import WorkspaceRemote
    from finboard.runtime.selection.base import SelectionStore

SnapshotListener = Callable[[WorkspaceSnapshot], None]

_Body = TypeVar("_Body", bound=BaseModel)


class NotAuthenticatedError(PermissionError):
    """Raised when an operation needs a signed-in user and there is none."""


class WorkspaceValidationError(ValueError):
    """Raised when workspace input is rejected before reaching the remote."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class InvalidSelectionError(LookupError):
    """Raised when switching to a workspace that is not in the current list."""


class WorkspaceNotFoundError(LookupError):
    """Raised when updating or deleting a workspace that is not in the current list."""


def _coerce(model: type[_Body], data: _Body | Mapping[str, Any]) -> _Body:
    """Validate *data* into *model*, translating pydantic errors."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        errors = exc.errors(include_url=False, include_context=False)
        message = "; ".join(f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in errors)
        raise WorkspaceValidationError(message, errors) from None


class WorkspaceManager:
    """Owned state container for one client's workspaces.

    Collaborators are injected: *remote* persists workspaces, *selection*
    remembers the last explicit switch, *notifier* receives user-facing
    notices (a private ``NoticeBoard`` when omitted).
    """

    def __init__(
        self,
        remote: WorkspaceRemote,
        selection: SelectionStore,
        notifier: Notifier | None = None,
    ) -> None:
        self._remote = remote
        self._selection = selection
        self._notifier: Notifier = notifier if notifier is not None else NoticeBoard()
        self._snapshot = WorkspaceSnapshot()
        self._listeners: list[SnapshotListener] = []
        self._lock = asyncio.Lock()
        self._sequence = 0

    # -- Published state -------------------------------------------------------

    @property
    def snapshot(self) -> WorkspaceSnapshot:
        return self._snapshot

    @property
    def workspaces(self) -> tuple[Workspace, ...]:
        return self._snapshot.workspaces

    @property
    def active_workspace(self) -> Workspace | None:
        return self._snapshot.active_workspace

    @property
    def is_loading(self) -> bool:
        return self._snapshot.is_loading

    @property
    def state(self) -> SelectionState:
        return self._snapshot.state

    @property
    def user_id(self) -> str | None:
        return self._snapshot.user_id

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call *listener* with every new snapshot.  Returns an unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # -- Load ------------------------------------------------------------------

    async def load(self, user_id: str | None) -> WorkspaceSnapshot:
        """Fetch *user_id*'s workspaces and resolve the Active Selection.

        Resolution order: the remembered id from the selection store if it
        is still in the list, then the default-flagged workspace, then the
        first workspace.  The selection store is only read here, never
        written.  A failed fetch or store read clears the loading flag,
        posts an error notice and propagates.
        """
        if not user_id:
            msg = "No signed-in user; cannot load workspaces"
            raise NotAuthenticatedError(msg)

        ticket = self._next_ticket()
        log = logger.bind(user=user_id)

        if self._snapshot.user_id != user_id:
            # Never show the previous user's workspaces while loading.
            self._publish(WorkspaceSnapshot(user_id=user_id, is_loading=True))
        else:
            self._publish(self._snapshot.model_copy(update={"is_loading": True}))

        try:
            fetched = await self._remote.list_workspaces(user_id)
            remembered = await self._selection.get_active_workspace_id()
        except Exception:
            if self._is_newest(ticket):
                self._publish(self._snapshot.model_copy(update={"is_loading": False}))
                self._notify(NoticeLevel.ERROR, "Could not load workspaces")
            log.opt(exception=True).warning("Workspace load #{} failed", ticket)
            raise

        if not self._is_newest(ticket) or self._snapshot.user_id != user_id:
            log.debug("Discarding stale workspace load #{} (newest is #{})", ticket, self._sequence)
            return self._snapshot

        workspaces = sort_workspaces(fetched)
        self._apply(workspaces, resolve_active(workspaces, remembered), is_loading=False)
        log.info(
            "Loaded {} workspaces (active={}, state={})",
            len(workspaces),
            self._snapshot.active_workspace_id,
            self._snapshot.state,
        )
        return self._snapshot

    async def reload(self) -> WorkspaceSnapshot:
        """Re-run ``load`` for the user currently being served."""
        return await self.load(self._require_user())

    def reset(self) -> None:
        """Forget everything (sign-out).  In-flight requests are discarded.

        The persisted selection is kept so the user lands on the same
        workspace after signing in again.
        """
        self._next_ticket()
        if self._snapshot.user_id is not None:
            logger.bind(user=self._snapshot.user_id).info("Workspace state reset")
        self._publish(WorkspaceSnapshot())

    # -- Switch ----------------------------------------------------------------

    async def switch_to(self, workspace: Workspace | str) -> Workspace:
        """Make *workspace* active and remember it.

        Switching to the already-active workspace changes nothing and does
        not write to the selection store.  The choice is persisted before it
        is published; if the store fails, nothing changes and
        ``SelectionStoreError`` propagates.
        """
        workspace_id = workspace if isinstance(workspace, str) else workspace.workspace_id

        async with self._lock:
            if self._snapshot.find(workspace_id) is None:
                raise InvalidSelectionError(workspace_id)
            if self._snapshot.active_workspace_id == workspace_id:
                return self._snapshot.active_workspace

            try:
                await self._selection.set_active_workspace_id(workspace_id)
            except SelectionStoreError:
                self._notify(NoticeLevel.ERROR, "Could not switch workspace")
                raise

            # A load may have replaced the list while the store was written.
            target = self._snapshot.find(workspace_id)
            if target is None:
                raise InvalidSelectionError(workspace_id)
            self._apply(self._snapshot.workspaces, target)
            logger.bind(user=self._snapshot.user_id or "-").info("Switched to workspace {}", workspace_id)
            return target

    # -- Create ----------------------------------------------------------------

    async def create(self, data: WorkspaceCreate | Mapping[str, Any]) -> Workspace:
        """Create a workspace for the current user and make it active.

        Raises ``WorkspaceValidationError`` before any remote call if the
        input is invalid.  On a remote failure the published state is left
        untouched and ``RemoteError`` propagates.
        """
        body = _coerce(WorkspaceCreate, data)
        user_id = self._require_user()
        log = logger.bind(user=user_id)

        async with self._lock:
            try:
                created = await self._remote.insert_workspace(
                    user_id,
                    body.name,
                    description=body.description,
                    color=body.color,
                    icon=body.icon,
                )
            except RemoteError:
                self._notify(NoticeLevel.ERROR, "Could not create workspace")
                raise
            log.info("Created workspace {} ('{}')", created.workspace_id, created.name)

            if self._snapshot.user_id != user_id:
                log.debug("User changed while creating workspace {}; not applying", created.workspace_id)
                return created

            ticket, fetched = await self._refetch(
                user_id, failure_notice="Workspace created, but the list could not be refreshed"
            )
            if find_workspace(fetched, created.workspace_id) is None:
                # The listing can lag behind the insert.
                fetched = [*fetched, created]
            await self._reconcile(ticket, user_id, fetched, prefer=created.workspace_id)

            try:
                await self._selection.set_active_workspace_id(created.workspace_id)
            except SelectionStoreError:
                self._notify(NoticeLevel.ERROR, "Workspace created, but it could not be remembered as active")
                raise
            self._notify(NoticeLevel.SUCCESS, "Workspace created")
            return self._snapshot.find(created.workspace_id) or created

    # -- Update ----------------------------------------------------------------

    async def update(self, workspace_id: str, data: WorkspaceUpdate | Mapping[str, Any]) -> Workspace:
        """Apply a partial update to a workspace in the current list.

        Only the fields the caller set are sent.  If the workspace is active,
        the active reference is refreshed to the new values.
        """
        body = _coerce(WorkspaceUpdate, data)
        user_id = self._require_user()
        log = logger.bind(user=user_id)

        async with self._lock:
            current = self._snapshot.find(workspace_id)
            if current is None:
                raise WorkspaceNotFoundError(workspace_id)

            changes = body.changes()
            if not changes:
                return current

            try:
                await self._remote.update_workspace(workspace_id, changes)
            except RemoteError:
                self._notify(NoticeLevel.ERROR, "Could not update workspace")
                raise
            log.info("Updated workspace {} ({})", workspace_id, ", ".join(sorted(changes)))

            updated = current.model_copy(update=changes)
            if self._snapshot.user_id != user_id:
                return updated

            ticket, fetched = await self._refetch(
                user_id, failure_notice="Workspace updated, but the list could not be refreshed"
            )
            await self._reconcile(ticket, user_id, fetched, prefer=self._snapshot.active_workspace_id)
            self._notify(NoticeLevel.SUCCESS, "Workspace updated")
            return self._snapshot.find(workspace_id) or updated

    # -- Delete ----------------------------------------------------------------

    async def delete(self, workspace_id: str) -> None:
        """Delete a workspace from the current list.

        If it was active, the selection moves to the remembered workspace (if
        still present), else the default, else the first remaining one, and
        the selection store is updated -- or cleared when nothing remains.
        The default workspace is not protected here.
        """
        user_id = self._require_user()
        log = logger.bind(user=user_id)

        async with self._lock:
            if self._snapshot.find(workspace_id) is None:
                raise WorkspaceNotFoundError(workspace_id)

            try:
                await self._remote.delete_workspace(workspace_id)
            except RemoteError:
                self._notify(NoticeLevel.ERROR, "Could not delete workspace")
                raise
            log.info("Deleted workspace {}", workspace_id)

            if self._snapshot.user_id != user_id:
                return

            if self._snapshot.active_workspace_id == workspace_id:
                await self._reassign_after_delete(user_id, workspace_id)
            else:
                self._apply(self._remaining(workspace_id), self._snapshot.active_workspace)
            self._notify(NoticeLevel.SUCCESS, "Workspace deleted")

            ticket, fetched = await self._refetch(
                user_id, failure_notice="Workspace deleted, but the list could not be refreshed"
            )
            await self._reconcile(ticket, user_id, fetched, prefer=self._snapshot.active_workspace_id)

    async def _reassign_after_delete(self, user_id: str, deleted_id: str) -> None:
        """Move the Active Selection off a deleted workspace.

        The deletion already succeeded remotely, so the local list drops it
        even when the selection store fails; the error is reported after.
        """
        failure_notice = "Workspace deleted, but the selection could not be saved"
        try:
            remembered = await self._selection.get_active_workspace_id()
        except SelectionStoreError:
            if self._snapshot.user_id == user_id:
                self._apply(self._remaining(deleted_id), None)
            self._notify(NoticeLevel.ERROR, failure_notice)
            raise
        if self._snapshot.user_id != user_id:
            return

        remaining = self._remaining(deleted_id)
        successor = resolve_active(remaining, remembered, exclude=deleted_id)
        self._apply(remaining, successor)

        log = logger.bind(user=user_id)
        try:
            if successor is None:
                await self._selection.clear_active_workspace_id()
            else:
                await self._selection.set_active_workspace_id(successor.workspace_id)
        except SelectionStoreError:
            self._notify(NoticeLevel.ERROR, failure_notice)
            raise
        if successor is None:
            log.info("Deleted the last workspace; no active workspace left")
        else:
            log.info("Active workspace moved to {}", successor.workspace_id)

    # -- Internals -------------------------------------------------------------

    def _require_user(self) -> str:
        user_id = self._snapshot.user_id
        if user_id is None:
            msg = "No signed-in user; load workspaces first"
            raise NotAuthenticatedError(msg)
        return user_id

    def _remaining(self, workspace_id: str) -> list[Workspace]:
        return [w for w in self._snapshot.workspaces if w.workspace_id != workspace_id]

    def _next_ticket(self) -> int:
        self._sequence += 1
        return self._sequence

    def _is_newest(self, ticket: int) -> bool:
        return ticket == self._sequence

    async def _refetch(self, user_id: str, *, failure_notice: str) -> tuple[int, list[Workspace]]:
        """Fetch the list after a successful write, tagged with a fresh ticket."""
        ticket = self._next_ticket()
        try:
            fetched = await self._remote.list_workspaces(user_id)
        except RemoteError:
            # An older load in flight will drop its result as stale, so the
            # flag it raised has to be cleared here.
            if self._is_newest(ticket) and self._snapshot.is_loading:
                self._publish(self._snapshot.model_copy(update={"is_loading": False}))
            self._notify(NoticeLevel.ERROR, failure_notice)
            raise
        return ticket, fetched

    async def _reconcile(
        self,
        ticket: int,
        user_id: str,
        fetched: Iterable[Workspace],
        *,
        prefer: str | None,
    ) -> bool:
        """Commit a refetched list, keeping *prefer* active when it still exists.

        Returns ``False`` if the result was superseded and dropped.
        """
        workspaces = sort_workspaces(fetched)
        active = find_workspace(workspaces, prefer)
        if active is None and workspaces:
            try:
                remembered = await self._selection.get_active_workspace_id()
            except SelectionStoreError:
                # The write itself succeeded; fall back to default-then-first.
                logger.bind(user=user_id).warning("Selection store unreadable during reload #{}", ticket)
                self._notify(NoticeLevel.ERROR, "Could not read the saved workspace selection")
                remembered = None
            active = resolve_active(workspaces, remembered)

        if not self._is_newest(ticket) or self._snapshot.user_id != user_id:
            logger.bind(user=user_id).debug("Discarding superseded workspace reload #{}", ticket)
            return False

        self._apply(workspaces, active, is_loading=False)
        return True

    def _apply(
        self,
        workspaces: Iterable[Workspace],
        active: Workspace | None,
        *,
        is_loading: bool | None = None,
    ) -> None:
        """Publish a new list and Active Selection as one snapshot.

        *active* is re-bound to the list's own instance, so the published
        active workspace is always a member of the published list.
        """
        ordered = sort_workspaces(workspaces)
        resolved = find_workspace(ordered, active.workspace_id) if active is not None else None
        if resolved is None and ordered:
            resolved = resolve_active(ordered)

        self._publish(
            self._snapshot.model_copy(
                update={
                    "workspaces": ordered,
                    "active_workspace": resolved,
                    "is_loading": self._snapshot.is_loading if is_loading is None else is_loading,
                    "state": SelectionState.RESOLVED if resolved is not None else SelectionState.EMPTY,
                }
            )
        )

    def _publish(self, snapshot: WorkspaceSnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Workspace listener {!r} failed", listener)

    def _notify(self, level: NoticeLevel, message: str) -> None:
        self._notifier.notify(level, message)
