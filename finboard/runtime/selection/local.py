"""Local filesystem selection store.

Keeps one small JSON document per scope under a unified data root with an
optional namespace prefix::

    {data_root}/{prefix}/selection/{scope}.json

When prefix is None, the path collapses to::

    {data_root}/selection/{scope}.json

Uses ``anyio.to_thread.run_sync`` for non-blocking file I/O.  Writes are
atomic (temp file in the same directory, then rename), so a crash mid-write
never leaves a half-written document behind.
"""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
from functools import partial
from pathlib import Path
from urllib.parse import quote

from anyio import to_thread
from loguru import logger

from finboard.runtime.selection.base import SelectionStoreError

_KEY = "active_workspace_id"


class LocalSelectionStore:
    """Local filesystem implementation of the SelectionStore protocol."""

    def __init__(self, data_root: str | Path, scope: str, prefix: str | None = None) -> None:
        base = Path(data_root)
        if prefix:
            base = base / prefix
        # Scopes are user ids; quote them so any id maps to one flat file name.
        self._path = base / "selection" / f"{quote(scope, safe='')}.json"

    @property
    def path(self) -> Path:
        return self._path

    async def get_active_workspace_id(self) -> str | None:
        try:
            raw = await to_thread.run_sync(partial(_read_file, self._path))
        except OSError as exc:
            logger.error("Reading selection file {} failed: {}", self._path, exc)
            msg = "Could not read the saved workspace selection"
            raise SelectionStoreError(msg) from exc
        if raw is None:
            return None
        try:
            document = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable selection file {}", self._path)
            return None
        value = document.get(_KEY) if isinstance(document, dict) else None
        return value if isinstance(value, str) and value else None

    async def set_active_workspace_id(self, workspace_id: str) -> None:
        data = json.dumps({_KEY: workspace_id})
        try:
            await to_thread.run_sync(partial(_atomic_write, self._path, data))
        except OSError as exc:
            logger.error("Writing selection file {} failed: {}", self._path, exc)
            msg = "Could not save the workspace selection"
            raise SelectionStoreError(msg) from exc

    async def clear_active_workspace_id(self) -> None:
        try:
            await to_thread.run_sync(partial(_unlink, self._path))
        except OSError as exc:
            logger.error("Removing selection file {} failed: {}", self._path, exc)
            msg = "Could not save the workspace selection"
            raise SelectionStoreError(msg) from exc


# -- Sync helpers (run in thread pool) -----------------------------------------


def _atomic_write(path: Path, data: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise


def _read_file(path: Path) -> str | None:
    """Read file contents, or ``None`` if the file does not exist."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None


def _unlink(path: Path) -> None:
    path.unlink(missing_ok=True)
