"""Remote Data Collaborator interface.

The workspace rows live in an external persistence service.  The manager
only ever talks to it through this protocol, so the backing store can be
PostgreSQL (``SqlWorkspaceRemote``) or an in-process dict
(``InMemoryWorkspaceRemote``) without the manager noticing.

Every backend reports failures as ``RemoteError``; the manager treats all
of them the same way and never retries.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from finboard.runtime.models.workspace import Workspace


class RemoteError(RuntimeError):
    """Raised when the remote collaborator fails an operation."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@runtime_checkable
class WorkspaceRemote(Protocol):
    """Async protocol for workspace persistence."""

    async def list_workspaces(self, user_id: str) -> list[Workspace]:
        """Return every workspace of *user_id*, default first, then by name."""
        ...

    async def insert_workspace(
        self,
        user_id: str,
        name: str,
        description: str | None = None,
        color: str | None = None,
        icon: str | None = None,
    ) -> Workspace:
        """Create a non-default workspace and return it with server fields filled in."""
        ...

    async def update_workspace(self, workspace_id: str, changes: dict[str, Any]) -> None:
        """Apply a partial update.  Raises ``RemoteError`` if the row is gone."""
        ...

    async def delete_workspace(self, workspace_id: str) -> None:
        """Delete a workspace.  Raises ``RemoteError`` if the row is gone."""
        ...
