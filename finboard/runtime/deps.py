"""FastAPI dependency injection for the calling user and their manager.

Usage in route handlers::

    @router.post("/workspaces/load")
    async def load(manager: Manager, user_id: UserId) -> WorkspaceStateResponse:
        ...

Authentication happens upstream; by the time a request reaches the runtime,
the gateway has put the signed-in user's id into the ``X-User-Id`` header.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from finboard.runtime.managers.workspaces import WorkspaceManager
from finboard.runtime.registry import ManagerRegistry, ShuttingDownError


def get_user_id(x_user_id: Annotated[str | None, Header()] = None) -> str:
    """Return the signed-in user id, or fail with HTTP 401."""
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated (X-User-Id header missing).",
        )
    return x_user_id.strip()


def get_registry(request: Request) -> ManagerRegistry:
    registry: ManagerRegistry | None = request.app.state.registry
    if registry is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Workspace runtime not initialised.",
        )
    return registry


def get_manager(
    registry: Annotated[ManagerRegistry, Depends(get_registry)],
    user_id: Annotated[str, Depends(get_user_id)],
) -> WorkspaceManager:
    """Return the calling user's workspace manager (created on first use)."""
    try:
        return registry.get_or_create(user_id)
    except ShuttingDownError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Runtime is shutting down.",
        ) from None


# -- Annotated type aliases for concise route signatures ---------------------

UserId = Annotated[str, Depends(get_user_id)]
"""Annotated dependency: id of the signed-in user."""

Registry = Annotated[ManagerRegistry, Depends(get_registry)]
"""Annotated dependency: the process-wide manager registry."""

Manager = Annotated[WorkspaceManager, Depends(get_manager)]
"""Annotated dependency: the calling user's workspace manager."""
