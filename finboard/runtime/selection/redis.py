"""Redis-backed selection store.

One string key per scope: ``finboard:selection:{scope}``.  Lets several
runtime replicas share the remembered selection of a user.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger
from redis.exceptions import RedisError

from finboard.runtime.selection.base import SelectionStoreError

if TYPE_CHECKING:
    import redis.asyncio as aioredis

KEY_PREFIX = "finboard:selection:"


class RedisSelectionStore:
    def __init__(self, client: aioredis.Redis, scope: str) -> None:
        self._client = client
        self._key = f"{KEY_PREFIX}{scope}"

    async def get_active_workspace_id(self) -> str | None:
        try:
            value = await self._client.get(self._key)
        except RedisError as exc:
            logger.error("Reading {} from Redis failed: {}", self._key, exc)
            msg = "Could not read the saved workspace selection"
            raise SelectionStoreError(msg) from exc
        if value is None:
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value or None

    async def set_active_workspace_id(self, workspace_id: str) -> None:
        try:
            await self._client.set(self._key, workspace_id)
        except RedisError as exc:
            logger.error("Writing {} to Redis failed: {}", self._key, exc)
            msg = "Could not save the workspace selection"
            raise SelectionStoreError(msg) from exc

    async def clear_active_workspace_id(self) -> None:
        try:
            await self._client.delete(self._key)
        except RedisError as exc:
            logger.error("Deleting {} from Redis failed: {}", self._key, exc)
            msg = "Could not save the workspace selection"
            raise SelectionStoreError(msg) from exc
