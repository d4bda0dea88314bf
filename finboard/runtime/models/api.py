"""API request / response schemas for the workspace endpoints.

- **Create** schemas validate user input and provide defaults.
- **Update** schemas allow partial updates via ``exclude_unset``: a field the
  caller never sent is left alone, while an explicit ``None`` clears it
  (only where clearing makes sense).
- **Response** schemas serialize domain models for clients.

The same schemas are accepted by ``WorkspaceManager`` directly, so
validation happens once, before any remote call.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from finboard.runtime.models.enums import NoticeLevel
from finboard.runtime.models.workspace import DEFAULT_COLOR, DEFAULT_ICON

WorkspaceName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
WorkspaceDescription = Annotated[str, StringConstraints(strip_whitespace=True, max_length=1000)]
HexColor = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^#[0-9A-Fa-f]{6}$")]
IconTag = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


class WorkspaceCreate(BaseModel):
    """Input for creating a new workspace.

    New workspaces are never default-flagged, so ``is_default`` is not
    accepted here.
    """

    model_config = ConfigDict(extra="forbid")

    name: WorkspaceName
    description: WorkspaceDescription | None = None
    color: HexColor = DEFAULT_COLOR
    icon: IconTag = DEFAULT_ICON

    @field_validator("description", mode="before")
    @classmethod
    def _description_optional(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("color", mode="before")
    @classmethod
    def _color_default(cls, value: Any) -> Any:
        return _blank_to_none(value) or DEFAULT_COLOR

    @field_validator("icon", mode="before")
    @classmethod
    def _icon_default(cls, value: Any) -> Any:
        return _blank_to_none(value) or DEFAULT_ICON


class WorkspaceUpdate(BaseModel):
    """Partial update -- only fields explicitly set by the caller are applied.

    ``description`` may be cleared with ``None``; ``name``, ``color`` and
    ``icon`` may only be replaced.  The default flag is managed outside the
    workspace runtime and is rejected like any other unknown field.
    """

    model_config = ConfigDict(extra="forbid")

    name: WorkspaceName | None = None
    description: WorkspaceDescription | None = None
    color: HexColor | None = None
    icon: IconTag | None = None

    @field_validator("description", mode="before")
    @classmethod
    def _description_clearable(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("name", "color", "icon")
    @classmethod
    def _not_clearable(cls, value: str | None) -> str:
        if value is None:
            msg = "field cannot be cleared"
            raise ValueError(msg)
        return value

    def changes(self) -> dict[str, Any]:
        """Return only the fields the caller set."""
        return self.model_dump(exclude_unset=True)


class WorkspaceResponse(BaseModel):
    """Serialized workspace returned to clients."""

    model_config = ConfigDict(from_attributes=True)

    workspace_id: str
    name: str
    description: str | None = None
    color: str
    icon: str
    is_default: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class WorkspaceSwitch(BaseModel):
    """Input for changing the Active Selection."""

    workspace_id: str


class WorkspaceStateResponse(BaseModel):
    """Published workspace state for one user."""

    model_config = ConfigDict(from_attributes=True)

    workspaces: list[WorkspaceResponse] = Field(default_factory=list)
    active_workspace: WorkspaceResponse | None = None
    active_workspace_id: str | None = None
    is_loading: bool = False
    state: str


# ---------------------------------------------------------------------------
# Notices
# ---------------------------------------------------------------------------


class NoticeResponse(BaseModel):
    """A transient user-facing notification."""

    model_config = ConfigDict(from_attributes=True)

    level: NoticeLevel
    message: str
    created_at: datetime
