"""In-process workspace remote.

Backs ``FINBOARD_REMOTE=memory`` for local development without PostgreSQL,
and doubles as the collaborator in unit tests.  Rows live in a dict and are
lost on restart.  ``fail_next`` makes the next call of an operation raise
``RemoteError``, which is how tests exercise the failure paths.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import UTC, datetime
from typing import Any

from finboard.runtime.models.workspace import DEFAULT_COLOR, DEFAULT_ICON, Workspace, sort_workspaces
from finboard.runtime.remote.base import RemoteError

_OPERATIONS = frozenset({"list", "insert", "update", "delete"})


class InMemoryWorkspaceRemote:
    """``WorkspaceRemote`` implementation over a plain dict."""

    def __init__(self) -> None:
        self._rows: dict[str, Workspace] = {}
        self._failures: dict[str, str] = {}
        self.calls: list[tuple[str, Any]] = []

    # -- Test / dev helpers ----------------------------------------------------

    def seed(
        self,
        user_id: str,
        name: str,
        *,
        workspace_id: str | None = None,
        is_default: bool = False,
        description: str | None = None,
        color: str = DEFAULT_COLOR,
        icon: str = DEFAULT_ICON,
    ) -> Workspace:
        """Insert a row directly, bypassing call tracking and failures."""
        now = datetime.now(UTC)
        workspace = Workspace(
            workspace_id=workspace_id or uuid.uuid4().hex,
            user_id=user_id,
            name=name,
            description=description,
            color=color,
            icon=icon,
            is_default=is_default,
            created_at=now,
            updated_at=now,
        )
        self._rows[workspace.workspace_id] = workspace
        return workspace

    def fail_next(self, operation: str, message: str = "remote unavailable") -> None:
        """Make the next ``list``/``insert``/``update``/``delete`` call fail."""
        if operation not in _OPERATIONS:
            msg = f"Unknown operation '{operation}'"
            raise ValueError(msg)
        self._failures[operation] = message

    def get(self, workspace_id: str) -> Workspace | None:
        return self._rows.get(workspace_id)

    def _record(self, operation: str, payload: Any) -> None:
        self.calls.append((operation, payload))
        message = self._failures.pop(operation, None)
        if message is not None:
            raise RemoteError(message)

    # -- WorkspaceRemote -------------------------------------------------------

    async def list_workspaces(self, user_id: str) -> list[Workspace]:
        self._record("list", user_id)
        await asyncio.sleep(0)
        return list(sort_workspaces(w for w in self._rows.values() if w.user_id == user_id))

    async def insert_workspace(
        self,
        user_id: str,
        name: str,
        description: str | None = None,
        color: str | None = None,
        icon: str | None = None,
    ) -> Workspace:
        self._record("insert", {"user_id": user_id, "name": name})
        await asyncio.sleep(0)
        return self.seed(
            user_id,
            name,
            description=description,
            color=color or DEFAULT_COLOR,
            icon=icon or DEFAULT_ICON,
        )

    async def update_workspace(self, workspace_id: str, changes: dict[str, Any]) -> None:
        self._record("update", {"workspace_id": workspace_id, **changes})
        await asyncio.sleep(0)
        current = self._rows.get(workspace_id)
        if current is None:
            msg = f"Workspace '{workspace_id}' not found"
            raise RemoteError(msg)
        self._rows[workspace_id] = current.model_copy(update={**changes, "updated_at": datetime.now(UTC)})

    async def delete_workspace(self, workspace_id: str) -> None:
        self._record("delete", workspace_id)
        await asyncio.sleep(0)
        if self._rows.pop(workspace_id, None) is None:
            msg = f"Workspace '{workspace_id}' not found"
            raise RemoteError(msg)
