"""Shared enumerations used across the workspace runtime."""

from __future__ import annotations

from enum import StrEnum

# -- Active selection ----------------------------------------------------------


class SelectionState(StrEnum):
    """Lifecycle of a user's Active Selection.

    ``UNRESOLVED`` until the first successful load (and again after sign-out),
    then ``RESOLVED`` when a workspace is active or ``EMPTY`` when the user
    owns none.
    """

    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"
    EMPTY = "empty"


# -- Notices -------------------------------------------------------------------


class NoticeLevel(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"
