"""Write-side use cases for work orders and their items."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable, Iterable

from nt_manager.application.errors import ItemNotFoundError, WorkOrderNotFoundError
from nt_manager.application.notifications import NotificationBatcher
from nt_manager.core.schema import (
    ITEMS,
    WORK_ORDERS,
    ItemInput,
    ItemStatus,
    WorkOrderStatus,
    is_completed,
)
from nt_manager.core.timeutils import format_civil_date, format_civil_time
from nt_manager.domain import BatchKind
from nt_manager.infrastructure import Document, DocumentStore, Filter

logger = logging.getLogger(__name__)


class WorkOrderService:
    """Coordinates work-order writes and wraps bulk ones in notification batches."""

    def __init__(
        self,
        store: DocumentStore,
        batcher: NotificationBatcher,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._batcher = batcher
        self._clock = clock

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------
    def get_work_order(self, nt_id: str) -> Document:
        doc = self._store.get(WORK_ORDERS, nt_id)
        if doc is None:
            raise WorkOrderNotFoundError(nt_id)
        return doc

    def get_item(self, item_id: str) -> Document:
        doc = self._store.get(ITEMS, item_id)
        if doc is None:
            raise ItemNotFoundError(item_id)
        return doc

    def list_items(self, nt_id: str) -> list[Document]:
        items = self._store.query(ITEMS, [Filter("nt_id", "==", nt_id)])
        return sorted(items, key=lambda doc: doc.get("item_number") or 0)

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------
    def _item_payload(self, nt_id: str, number: int, item: ItemInput, now: datetime) -> dict[str, object]:
        return {
            "nt_id": nt_id,
            "item_number": number,
            "code": item.code.strip(),
            "description": item.description,
            "quantity": item.quantity,
            "batch": item.batch,
            "status": ItemStatus.AWAITING_PAYMENT.value,
            "created_date": format_civil_date(now),
            "created_time": format_civil_time(now),
            "payment_time": None,
            "priority": item.priority,
            "updated_at": now,
        }

    def create_work_order(self, nt_number: str, items: Iterable[ItemInput] = ()) -> str:
        items = list(items)
        now = self._clock()
        nt_id = uuid.uuid4().hex
        operation_id = self._batcher.start(BatchKind.BULK_CREATION, nt_id, len(items), label=nt_number)
        try:
            self._store.add(
                WORK_ORDERS,
                {
                    "nt_number": nt_number,
                    "created_date": format_civil_date(now),
                    "created_time": format_civil_time(now),
                    "created_at": now,
                    "status": WorkOrderStatus.ACTIVE.value,
                    "updated_at": now,
                },
                doc_id=nt_id,
            )
            for index, item in enumerate(items, start=1):
                self._store.add(ITEMS, self._item_payload(nt_id, index, item, now))
        finally:
            self._batcher.end(operation_id)
        logger.info("work order %s (%s) created with %s items", nt_number, nt_id, len(items))
        return nt_id

    def add_items(self, nt_id: str, items: Iterable[ItemInput]) -> list[str]:
        work_order = self.get_work_order(nt_id)
        items = list(items)
        now = self._clock()
        start = max((doc.get("item_number") or 0 for doc in self.list_items(nt_id)), default=0)
        operation_id = self._batcher.start(
            BatchKind.ITEM_ADDITION, nt_id, len(items), label=work_order.get("nt_number")
        )
        created: list[str] = []
        try:
            for offset, item in enumerate(items, start=1):
                created.append(self._store.add(ITEMS, self._item_payload(nt_id, start + offset, item, now)))
        finally:
            self._batcher.end(operation_id)
        return created

    def set_item_status(self, item_id: str, status: ItemStatus | str) -> Document:
        """Change an item's status keeping ``payment_time`` consistent with it.

        Entering a completed status stamps the payment instant, moving between
        Paid and Partially Paid keeps the first stamp, and going back to
        awaiting payment clears it.
        """

        doc = self.get_item(item_id)
        status = ItemStatus(status)
        now = self._clock()
        changes: dict[str, object] = {"status": status.value, "updated_at": now}
        if is_completed(status):
            if not doc.get("payment_time"):
                changes["payment_time"] = now.isoformat(timespec="seconds")
        else:
            changes["payment_time"] = None
        self._store.update(ITEMS, item_id, changes)
        logger.info("item %s status %s -> %s", item_id, doc.get("status"), status.value)
        return self.get_item(item_id)

    def delete_item(self, item_id: str) -> None:
        self.get_item(item_id)
        self._store.delete(ITEMS, item_id)

    def delete_work_order(self, nt_id: str) -> int:
        """Delete a work order together with its items; returns the item count."""

        work_order = self.get_work_order(nt_id)
        items = self.list_items(nt_id)
        operation_id = self._batcher.start(
            BatchKind.BULK_DELETION, nt_id, len(items), label=work_order.get("nt_number")
        )
        try:
            for doc in items:
                self._store.delete(ITEMS, doc.id)
            self._store.delete(WORK_ORDERS, nt_id)
        finally:
            self._batcher.end(operation_id)
        logger.info("work order %s deleted with %s items", nt_id, len(items))
        return len(items)
