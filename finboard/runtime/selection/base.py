"""Persisted Selection Store interface.

Remembers which workspace a user last switched to, so the choice survives
reloads and restarts.  A store instance is scoped to one client (one user),
which is why the methods take no user argument.

The interface is async so that file and Redis backends can share it.  Every
backend reports I/O failures as ``SelectionStoreError``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


class SelectionStoreError(RuntimeError):
    """Raised when the selection store cannot be read or written."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@runtime_checkable
class SelectionStore(Protocol):
    """Async protocol for the remembered active workspace id."""

    async def get_active_workspace_id(self) -> str | None:
        """Return the remembered id, or ``None`` if nothing is stored."""
        ...

    async def set_active_workspace_id(self, workspace_id: str) -> None:
        """Remember *workspace_id*, replacing any previous value."""
        ...

    async def clear_active_workspace_id(self) -> None:
        """Forget the remembered id.  No-op if nothing is stored."""
        ...
