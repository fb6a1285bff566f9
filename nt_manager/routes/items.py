from __future__ import annotations

from fastapi import APIRouter, HTTPException, Response

from nt_manager.application import ItemNotFoundError, WorkOrderNotFoundError, get_runtime
from nt_manager.core.schema import ItemsAppend, ItemStatusUpdate, WorkOrderCreate
from nt_manager.core.time_status import time_status_for_item

router = APIRouter(tags=["items"])


@router.get("/items/status")
async def list_item_statuses() -> dict:
    board = get_runtime().board
    return {
        "items": {item_id: status.model_dump(mode="json") for item_id, status in board.statuses.items()},
        "refreshed_at": board.refreshed_at,
    }


@router.get("/items/{item_id}/status")
async def get_item_status(item_id: str) -> dict:
    runtime = get_runtime()
    status = runtime.board.status_for(item_id)
    if status is None:
        try:
            doc = runtime.work_orders.get_item(item_id)
        except ItemNotFoundError:
            raise HTTPException(status_code=404, detail="item not found") from None
        status = time_status_for_item(doc.data)
    return {"id": item_id, **status.model_dump(mode="json")}


@router.get("/dashboard/stats")
async def get_dashboard_stats() -> dict:
    return get_runtime().board.stats.model_dump()


@router.post("/work-orders")
async def create_work_order(payload: WorkOrderCreate) -> dict:
    service = get_runtime().work_orders
    nt_id = service.create_work_order(payload.nt_number, payload.items)
    return {"id": nt_id, "nt_number": payload.nt_number, "items": len(payload.items)}


@router.get("/work-orders/{nt_id}/items")
async def list_work_order_items(nt_id: str) -> dict:
    service = get_runtime().work_orders
    try:
        service.get_work_order(nt_id)
    except WorkOrderNotFoundError:
        raise HTTPException(status_code=404, detail="work order not found") from None
    return {"items": [{"id": doc.id, **doc.data} for doc in service.list_items(nt_id)]}


@router.post("/work-orders/{nt_id}/items")
async def add_work_order_items(nt_id: str, payload: ItemsAppend) -> dict:
    try:
        ids = get_runtime().work_orders.add_items(nt_id, payload.items)
    except WorkOrderNotFoundError:
        raise HTTPException(status_code=404, detail="work order not found") from None
    return {"ids": ids}


@router.delete("/work-orders/{nt_id}")
async def delete_work_order(nt_id: str) -> dict:
    try:
        removed = get_runtime().work_orders.delete_work_order(nt_id)
    except WorkOrderNotFoundError:
        raise HTTPException(status_code=404, detail="work order not found") from None
    return {"id": nt_id, "items_removed": removed}


@router.patch("/items/{item_id}/status")
async def update_item_status(item_id: str, payload: ItemStatusUpdate) -> dict:
    try:
        doc = get_runtime().work_orders.set_item_status(item_id, payload.status)
    except ItemNotFoundError:
        raise HTTPException(status_code=404, detail="item not found") from None
    return {"id": doc.id, **doc.data}


@router.delete("/items/{item_id}", status_code=204)
async def delete_item(item_id: str) -> Response:
    try:
        get_runtime().work_orders.delete_item(item_id)
    except ItemNotFoundError:
        raise HTTPException(status_code=404, detail="item not found") from None
    return Response(status_code=204)
