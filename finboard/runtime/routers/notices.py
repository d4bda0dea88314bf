"""Notice endpoints: the client polls these to show toasts."""

from __future__ import annotations

from fastapi import APIRouter

from finboard.runtime.deps import Manager
from finboard.runtime.models.api import NoticeResponse
from finboard.runtime.notices import NoticeBoard

router = APIRouter(prefix="/notices", tags=["notices"])


@router.get("", response_model=list[NoticeResponse])
async def drain_notices(manager: Manager) -> list[NoticeResponse]:
    """Return and clear the caller's pending notices, oldest first."""
    board = manager.notifier
    if not isinstance(board, NoticeBoard):
        return []
    return [NoticeResponse.model_validate(n.model_dump()) for n in board.drain()]
