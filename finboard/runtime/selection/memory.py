"""Process-local selection store.  Forgets everything on restart."""

from __future__ import annotations


class MemorySelectionStore:
    def __init__(self, workspace_id: str | None = None) -> None:
        self._workspace_id = workspace_id
        self.writes = 0

    async def get_active_workspace_id(self) -> str | None:
        return self._workspace_id

    async def set_active_workspace_id(self, workspace_id: str) -> None:
        self._workspace_id = workspace_id
        self.writes += 1

    async def clear_active_workspace_id(self) -> None:
        self._workspace_id = None
        self.writes += 1
