"""Persisted Selection Store implementations."""

from finboard.runtime.selection.base import SelectionStore, SelectionStoreError
from finboard.runtime.selection.local import LocalSelectionStore
from finboard.runtime.selection.memory import MemorySelectionStore
from finboard.runtime.selection.redis import RedisSelectionStore

__all__ = [
    "LocalSelectionStore",
    "MemorySelectionStore",
    "RedisSelectionStore",
    "SelectionStore",
    "SelectionStoreError",
]
