"""Workspace endpoints (RPC-style).

All write operations use POST; reads use GET.  Every endpoint acts on the
calling user's ``WorkspaceManager``; domain errors raised by the manager are
translated to HTTP status codes here.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import APIRouter, HTTPException, status

from finboard.runtime.deps import Manager, Registry, UserId
from finboard.runtime.managers.workspaces import (
    InvalidSelectionError,
    NotAuthenticatedError,
    WorkspaceNotFoundError,
    WorkspaceValidationError,
)
from finboard.runtime.models.api import (
    WorkspaceCreate,
    WorkspaceResponse,
    WorkspaceStateResponse,
    WorkspaceSwitch,
    WorkspaceUpdate,
)
from finboard.runtime.models.workspace import Workspace, WorkspaceSnapshot
from finboard.runtime.remote.base import RemoteError
from finboard.runtime.selection.base import SelectionStoreError

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


@contextmanager
def _domain_errors() -> Iterator[None]:
    """Translate manager exceptions into HTTP errors."""
    try:
        yield
    except NotAuthenticatedError as exc:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from None
    except WorkspaceValidationError as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.errors or str(exc)) from None
    except WorkspaceNotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Workspace '{exc.args[0]}' not found.") from None
    except InvalidSelectionError as exc:
        raise HTTPException(
            status.HTTP_409_CONFLICT, detail=f"Workspace '{exc.args[0]}' is not one of your workspaces."
        ) from None
    except RemoteError as exc:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, detail=exc.message) from None
    except SelectionStoreError as exc:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, detail=exc.message) from None


def _to_response(workspace: Workspace) -> WorkspaceResponse:
    return WorkspaceResponse.model_validate(workspace.model_dump())


def _state_response(snapshot: WorkspaceSnapshot) -> WorkspaceStateResponse:
    active = snapshot.active_workspace
    return WorkspaceStateResponse(
        workspaces=[_to_response(w) for w in snapshot.workspaces],
        active_workspace=_to_response(active) if active is not None else None,
        active_workspace_id=snapshot.active_workspace_id,
        is_loading=snapshot.is_loading,
        state=snapshot.state,
    )


@router.get("/state", response_model=WorkspaceStateResponse)
async def get_state(manager: Manager) -> WorkspaceStateResponse:
    """Return the published workspace state without fetching."""
    return _state_response(manager.snapshot)


@router.post("/load", response_model=WorkspaceStateResponse)
async def load_workspaces(manager: Manager, user_id: UserId) -> WorkspaceStateResponse:
    """Fetch the user's workspaces and resolve the active one."""
    with _domain_errors():
        snapshot = await manager.load(user_id)
    return _state_response(snapshot)


@router.post("/switch", response_model=WorkspaceStateResponse)
async def switch_workspace(body: WorkspaceSwitch, manager: Manager) -> WorkspaceStateResponse:
    """Make another workspace active and remember the choice."""
    with _domain_errors():
        await manager.switch_to(body.workspace_id)
    return _state_response(manager.snapshot)


@router.post("/create", response_model=WorkspaceResponse, status_code=status.HTTP_201_CREATED)
async def create_workspace(body: WorkspaceCreate, manager: Manager) -> WorkspaceResponse:
    """Create a workspace; it becomes the active one."""
    with _domain_errors():
        workspace = await manager.create(body)
    return _to_response(workspace)


@router.post("/{workspace_id}/update", response_model=WorkspaceResponse)
async def update_workspace(workspace_id: str, body: WorkspaceUpdate, manager: Manager) -> WorkspaceResponse:
    """Partially update a workspace."""
    with _domain_errors():
        workspace = await manager.update(workspace_id, body)
    return _to_response(workspace)


@router.post("/{workspace_id}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workspace(workspace_id: str, manager: Manager) -> None:
    """Delete a workspace by ID."""
    with _domain_errors():
        await manager.delete(workspace_id)


@router.post("/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(registry: Registry, user_id: UserId) -> None:
    """Drop the user's in-memory workspace state."""
    registry.discard(user_id)
