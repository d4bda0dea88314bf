"""Data models for the workspace runtime."""

from finboard.runtime.models.api import (
    NoticeResponse,
    WorkspaceCreate,
    WorkspaceResponse,
    WorkspaceStateResponse,
    WorkspaceSwitch,
    WorkspaceUpdate,
)
from finboard.runtime.models.enums import NoticeLevel, SelectionState
from finboard.runtime.models.workspace import (
    DEFAULT_COLOR,
    DEFAULT_ICON,
    WORKSPACE_COLORS,
    WORKSPACE_ICONS,
    Workspace,
    WorkspaceSnapshot,
    find_workspace,
    resolve_active,
    sort_workspaces,
)

__all__ = [
    # Palettes
    "DEFAULT_COLOR",
    "DEFAULT_ICON",
    "WORKSPACE_COLORS",
    "WORKSPACE_ICONS",
    # Enums
    "NoticeLevel",
    # API schemas
    "NoticeResponse",
    "SelectionState",
    # Workspace
    "Workspace",
    "WorkspaceCreate",
    "WorkspaceResponse",
    "WorkspaceSnapshot",
    "WorkspaceStateResponse",
    "WorkspaceSwitch",
    "WorkspaceUpdate",
    "find_workspace",
    "resolve_active",
    "sort_workspaces",
]
