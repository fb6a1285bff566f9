from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from nt_manager.core.schema import ITEMS, WORK_ORDERS, DashboardStats, ItemStatus, TimeStatus, is_completed
from nt_manager.core.time_status import item_completed_at, item_created_at, time_status_for_item
from nt_manager.infrastructure import ChangeBatch, Document, DocumentStore, Subscription

logger = logging.getLogger(__name__)


class ItemStatusBoard:
    """Per-item badge state for every item, refreshed on snapshots and ticks."""

    def __init__(self, store: DocumentStore, *, clock: Callable[[], datetime] = datetime.now) -> None:
        self._store = store
        self._clock = clock
        self._subscriptions: list[Subscription] = []
        self._items: list[Document] = []
        self._work_order_count = 0
        self._statuses: dict[str, TimeStatus] = {}
        self._stats = DashboardStats()
        self._refreshed_at: datetime | None = None

    def start(self) -> None:
        self.stop()
        self._subscriptions = [
            self._store.subscribe(WORK_ORDERS, self._on_work_orders, self._on_error),
            self._store.subscribe(ITEMS, self._on_items, self._on_error),
        ]

    def stop(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []

    def _on_error(self, exc: Exception) -> None:
        logger.error("status board subscription failed: %s", exc)

    def _on_work_orders(self, batch: ChangeBatch) -> None:
        self._work_order_count = len(batch.documents)
        self.refresh()

    def _on_items(self, batch: ChangeBatch) -> None:
        self._items = list(batch.documents)
        self.refresh()

    def refresh(self) -> None:
        """Recompute every status against the current clock reading."""

        now = self._clock()
        statuses: dict[str, TimeStatus] = {}
        pending = overdue = paid_today = 0
        for doc in self._items:
            status = time_status_for_item(doc.data, now=now)
            statuses[doc.id] = status
            item_status = doc.get("status")
            if item_status != ItemStatus.PAID.value:
                pending += 1
            if is_completed(item_status):
                completed = item_completed_at(doc.data, item_created_at(doc.data))
                if completed is not None and completed.date() == now.date():
                    paid_today += 1
            elif status.is_delayed:
                overdue += 1

        self._statuses = statuses
        self._stats = DashboardStats(
            total_work_orders=self._work_order_count,
            pending_items=pending,
            paid_today=paid_today,
            overdue_items=overdue,
        )
        self._refreshed_at = now

    @property
    def statuses(self) -> dict[str, TimeStatus]:
        return dict(self._statuses)

    def status_for(self, item_id: str) -> TimeStatus | None:
        return self._statuses.get(item_id)

    @property
    def stats(self) -> DashboardStats:
        return self._stats

    @property
    def refreshed_at(self) -> datetime | None:
        return self._refreshed_at
