from __future__ import annotations

from fastapi import APIRouter

from nt_manager.application import get_runtime

router = APIRouter(prefix="/timeline", tags=["timeline"])


@router.get("")
async def get_timeline() -> dict:
    return get_runtime().timeline.snapshot()


@router.get("/stats")
async def get_timeline_stats() -> dict:
    timeline = get_runtime().timeline
    return {"stats": timeline.stats.model_dump(), "connected": timeline.connected}


@router.post("/retry")
async def retry_timeline() -> dict:
    """Resubscribe after a dropped connection; the last entries stay visible meanwhile."""
    timeline = get_runtime().timeline
    timeline.retry()
    return {"connected": timeline.connected}
