"""PostgreSQL-backed workspace remote.

Opens one ``AsyncSession`` per call from the shared session factory, so a
single remote instance can serve every user's manager concurrently.  All
SQLAlchemy failures surface as ``RemoteError``.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from finboard.runtime.db.tables import Workspace as WorkspaceRow
from finboard.runtime.models.workspace import DEFAULT_COLOR, DEFAULT_ICON, Workspace
from finboard.runtime.remote.base import RemoteError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

_UPDATABLE = frozenset({"name", "description", "color", "icon"})


class SqlWorkspaceRemote:
    """``WorkspaceRemote`` implementation on the ``workspaces`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_workspaces(self, user_id: str) -> list[Workspace]:
        stmt = (
            select(WorkspaceRow)
            .where(WorkspaceRow.user_id == user_id)
            .order_by(WorkspaceRow.is_default.desc(), func.lower(WorkspaceRow.name), WorkspaceRow.name)
        )
        try:
            async with self._session_factory() as db:
                result = await db.execute(stmt)
                rows = list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.error("Listing workspaces failed for user {}: {}", user_id, exc)
            msg = "Could not list workspaces"
            raise RemoteError(msg) from exc
        return [Workspace.model_validate(row) for row in rows]

    async def insert_workspace(
        self,
        user_id: str,
        name: str,
        description: str | None = None,
        color: str | None = None,
        icon: str | None = None,
    ) -> Workspace:
        row = WorkspaceRow(
            workspace_id=uuid.uuid4().hex,
            user_id=user_id,
            name=name,
            description=description,
            color=color or DEFAULT_COLOR,
            icon=icon or DEFAULT_ICON,
            is_default=False,
        )
        try:
            async with self._session_factory() as db:
                db.add(row)
                await db.commit()
                await db.refresh(row)
        except SQLAlchemyError as exc:
            logger.error("Inserting workspace '{}' failed for user {}: {}", name, user_id, exc)
            msg = "Could not create workspace"
            raise RemoteError(msg) from exc
        return Workspace.model_validate(row)

    async def update_workspace(self, workspace_id: str, changes: dict[str, Any]) -> None:
        unknown = set(changes) - _UPDATABLE
        if unknown:
            msg = f"Fields not updatable: {sorted(unknown)}"
            raise ValueError(msg)
        try:
            async with self._session_factory() as db:
                row = await db.get(WorkspaceRow, workspace_id)
                if row is None:
                    msg = f"Workspace '{workspace_id}' not found"
                    raise RemoteError(msg)
                for key, value in changes.items():
                    setattr(row, key, value)
                await db.commit()
        except SQLAlchemyError as exc:
            logger.error("Updating workspace {} failed: {}", workspace_id, exc)
            msg = "Could not update workspace"
            raise RemoteError(msg) from exc

    async def delete_workspace(self, workspace_id: str) -> None:
        try:
            async with self._session_factory() as db:
                row = await db.get(WorkspaceRow, workspace_id)
                if row is None:
                    msg = f"Workspace '{workspace_id}' not found"
                    raise RemoteError(msg)
                await db.delete(row)
                await db.commit()
        except SQLAlchemyError as exc:
            logger.error("Deleting workspace {} failed: {}", workspace_id, exc)
            msg = "Could not delete workspace"
            raise RemoteError(msg) from exc
