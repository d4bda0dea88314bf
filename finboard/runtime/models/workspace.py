"""Workspace data model.

A workspace is a named financial profile.  Every transaction, category,
goal, project and bill of a user is scoped to exactly one of them, and the
dashboards always show the data of the *active* workspace.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from finboard.runtime.models.enums import SelectionState

DEFAULT_COLOR = "#6366F1"
DEFAULT_ICON = "Briefcase"

WORKSPACE_COLORS: tuple[str, ...] = (
    "#6366F1",
    "#10B981",
    "#EF4444",
    "#F59E0B",
    "#8B5CF6",
    "#EC4899",
    "#14B8A6",
    "#F97316",
    "#06B6D4",
)
"""Accent colors offered by the profile picker."""

WORKSPACE_ICONS: tuple[str, ...] = (
    "User",
    "Briefcase",
    "Home",
    "Building2",
    "TrendingUp",
    "Wallet",
    "ShoppingBag",
    "Plane",
    "Heart",
)
"""Icon tags offered by the profile picker."""


class Workspace(BaseModel):
    """Workspace row as returned by the remote collaborator.

    Instances are frozen: the manager hands the same objects to every view,
    so nobody may mutate them in place.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    workspace_id: str
    user_id: str
    name: str
    description: str | None = None
    color: str = DEFAULT_COLOR
    icon: str = DEFAULT_ICON
    is_default: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class WorkspaceSnapshot(BaseModel):
    """Everything a consuming view may read, captured at one commit."""

    model_config = ConfigDict(frozen=True)

    user_id: str | None = None
    workspaces: tuple[Workspace, ...] = ()
    active_workspace: Workspace | None = None
    is_loading: bool = False
    state: SelectionState = SelectionState.UNRESOLVED

    @property
    def active_workspace_id(self) -> str | None:
        return self.active_workspace.workspace_id if self.active_workspace else None

    def find(self, workspace_id: str) -> Workspace | None:
        return find_workspace(self.workspaces, workspace_id)


# -- Ordering and selection rules ----------------------------------------------


def _order_key(workspace: Workspace) -> tuple[bool, str, str]:
    # Case-insensitive like the database collation; raw name breaks ties.
    return (not workspace.is_default, workspace.name.casefold(), workspace.name)


def sort_workspaces(workspaces: Iterable[Workspace]) -> tuple[Workspace, ...]:
    """Return *workspaces* default-first, then by name ascending."""
    return tuple(sorted(workspaces, key=_order_key))


def find_workspace(workspaces: Iterable[Workspace], workspace_id: str | None) -> Workspace | None:
    if workspace_id is None:
        return None
    return next((w for w in workspaces if w.workspace_id == workspace_id), None)


def resolve_active(
    workspaces: Iterable[Workspace],
    remembered_id: str | None = None,
    *,
    exclude: str | None = None,
) -> Workspace | None:
    """Pick the workspace that should be active.

    Preference: the remembered id if it is still present, then the
    default-flagged workspace, then the first one in stable order.  A
    workspace whose id equals *exclude* is never picked.  Returns ``None``
    when no candidate remains.
    """
    candidates = [w for w in sort_workspaces(workspaces) if w.workspace_id != exclude]
    if not candidates:
        return None

    remembered = find_workspace(candidates, remembered_id)
    if remembered is not None:
        return remembered

    default = next((w for w in candidates if w.is_default), None)
    if default is not None:
        return default

    return candidates[0]
