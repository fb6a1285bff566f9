from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, HTTPException

from nt_manager.application import get_runtime
from nt_manager.core.schema import BatchStart, SettingsPayload

router = APIRouter(tags=["notifications"])


@router.post("/batches")
async def start_batch(payload: BatchStart) -> dict:
    batcher = get_runtime().batcher
    operation_id = batcher.start(payload.kind, payload.target_id, payload.expected_count, label=payload.label)
    return {"operation_id": operation_id}


@router.post("/batches/{operation_id}/end")
async def end_batch(operation_id: str) -> dict:
    notification = get_runtime().batcher.end(operation_id)
    return {
        "operation_id": operation_id,
        "notification": asdict(notification) if notification is not None else None,
    }


@router.get("/notifications")
async def list_notifications() -> dict:
    center = get_runtime().notifications
    return {
        "items": [asdict(item) for item in center.list_notifications()],
        "unread": center.unread_count,
        "enabled": center.enabled,
    }


@router.post("/notifications/read-all")
async def mark_all_notifications_read() -> dict:
    center = get_runtime().notifications
    center.mark_all_read()
    return {"unread": center.unread_count}


@router.post("/notifications/{notification_id}/read")
async def mark_notification_read(notification_id: str) -> dict:
    center = get_runtime().notifications
    if not center.mark_read(notification_id):
        raise HTTPException(status_code=404, detail="notification not found")
    return {"unread": center.unread_count}


@router.delete("/notifications")
async def clear_notifications() -> dict:
    get_runtime().notifications.clear()
    return {"items": []}


@router.get("/settings")
async def get_settings() -> dict:
    return get_runtime().settings.snapshot()


@router.put("/settings")
async def update_settings(payload: SettingsPayload) -> dict:
    settings = get_runtime().settings
    if payload.notifications_enabled is not None:
        settings.set_notifications_enabled(payload.notifications_enabled)
    if payload.audio is not None:
        settings.set_audio(payload.audio)
    return settings.snapshot()
