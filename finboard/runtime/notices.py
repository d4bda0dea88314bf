"""User-visible notifications.

The web client shows short-lived toasts after every workspace action
("Workspace created", "Could not delete workspace", ...).  The runtime
collects them per user on a ``NoticeBoard``; the client drains the board
through ``GET /api/notices`` after each call.
"""

from __future__ import annotations

from collections import deque
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from finboard.runtime.models.enums import NoticeLevel


class Notice(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: NoticeLevel
    message: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


@runtime_checkable
class Notifier(Protocol):
    """Sink for user-facing notifications."""

    def notify(self, level: NoticeLevel, message: str) -> Notice:
        """Record a notification and return it."""
        ...


class NoticeBoard:
    """Bounded, in-memory queue of recent notices for one user.

    Once *capacity* notices are pending the oldest one is dropped.
    """

    def __init__(self, capacity: int = 50, *, user_id: str | None = None) -> None:
        self._notices: deque[Notice] = deque(maxlen=capacity)
        self._log = logger.bind(user=user_id or "-")

    def notify(self, level: NoticeLevel, message: str) -> Notice:
        notice = Notice(level=level, message=message)
        self._notices.append(notice)
        if level == NoticeLevel.ERROR:
            self._log.warning("Notice: {}", message)
        else:
            self._log.debug("Notice ({}): {}", level, message)
        return notice

    def pending(self) -> list[Notice]:
        """Return pending notices without removing them."""
        return list(self._notices)

    def drain(self) -> list[Notice]:
        """Return and remove all pending notices, oldest first."""
        notices = list(self._notices)
        self._notices.clear()
        return notices

    def __len__(self) -> int:
        return len(self._notices)
