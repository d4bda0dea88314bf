"""In-process registry of workspace managers.

Holds one ``WorkspaceManager`` per signed-in user for the lifetime of their
session.  Ephemeral -- empty on process restart; the managers rebuild their
state from the remote and the selection store on the next ``load``.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from finboard.runtime.managers.workspaces import WorkspaceManager

ManagerFactory = Callable[[str], "WorkspaceManager"]


class ShuttingDownError(RuntimeError):
    """Raised when a manager is requested during shutdown."""


class ManagerRegistry:
    """Maps user ids to their workspace managers.

    Managers are created lazily through *factory* on first access and
    dropped on sign-out.  Users who never sign out would otherwise stay
    forever, so when *capacity* is set the least recently used manager is
    evicted to make room for a new one.  An evicted user simply gets a fresh
    manager on the next request, which rebuilds its state on ``load``.

    The API handlers and the managers share one event loop, so plain dict
    access is enough.  Dict order doubles as recency order.
    """

    def __init__(self, factory: ManagerFactory, *, capacity: int | None = None) -> None:
        if capacity is not None and capacity < 1:
            msg = f"capacity must be positive, got {capacity}"
            raise ValueError(msg)
        self._factory = factory
        self._capacity = capacity
        self._managers: dict[str, WorkspaceManager] = {}
        self._shutting_down = False

    # -- Mutation --------------------------------------------------------------

    def get_or_create(self, user_id: str) -> WorkspaceManager:
        """Return the user's manager, creating it if needed.

        Raises ``ShuttingDownError`` if a new manager would be needed while
        the registry is shutting down.
        """
        manager = self._managers.pop(user_id, None)
        if manager is not None:
            self._managers[user_id] = manager
            return manager
        if self._shutting_down:
            raise ShuttingDownError
        if self._capacity is not None:
            while len(self._managers) >= self._capacity:
                self._evict_oldest()
        manager = self._factory(user_id)
        self._managers[user_id] = manager
        logger.bind(user=user_id).debug("Registry: created workspace manager")
        return manager

    def discard(self, user_id: str) -> WorkspaceManager | None:
        """Drop the user's manager (sign-out) after resetting its state."""
        manager = self._managers.pop(user_id, None)
        if manager is not None:
            manager.reset()
            logger.bind(user=user_id).debug("Registry: discarded workspace manager")
        return manager

    def _evict_oldest(self) -> None:
        user_id = next(iter(self._managers))
        self.discard(user_id)
        logger.bind(user=user_id).info("Registry: evicted idle workspace manager")

    # -- Query -----------------------------------------------------------------

    def get(self, user_id: str) -> WorkspaceManager | None:
        return self._managers.get(user_id)

    def user_ids(self) -> list[str]:
        return list(self._managers)

    @property
    def active_count(self) -> int:
        return len(self._managers)

    # -- Lifecycle -------------------------------------------------------------

    def begin_shutdown(self) -> None:
        """Refuse new managers; existing ones keep serving until teardown."""
        self._shutting_down = True
        logger.info("Registry: shutdown initiated ({} managers)", len(self._managers))

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    def clear(self) -> int:
        """Reset and drop every manager.  Returns how many were dropped."""
        count = 0
        for user_id in list(self._managers):
            self.discard(user_id)
            count += 1
        return count
