"""In-app notifications and coalescing of bulk mutations.

A bulk action (pasting forty SAP lines into a new work order, for example)
would otherwise produce one notification per written row.  The batcher
groups those rows under a :class:`BatchOperation` and emits a single
aggregate notification when the operation ends, either explicitly or after
a timeout.
"""
from __future__ import annotations

import json
import logging
import uuid
from dataclasses import asdict
from datetime import datetime
from typing import Callable

from nt_manager.application.settings import SettingsService
from nt_manager.core.schema import ITEMS, WORK_ORDERS
from nt_manager.domain import BatchKind, BatchOperation, Notification
from nt_manager.infrastructure import ChangeBatch, DocumentStore, KeyValueStore, Scheduler, Subscription, TimerHandle

logger = logging.getLogger(__name__)


def _items_label(count: int) -> str:
    return "1 item" if count == 1 else f"{count} items"


class NotificationCenter:
    """Newest-first inbox shared by the dashboard session.

    With a key-value store the inbox is saved under ``notifications_<user>``
    after every change and reloaded on construction.
    """

    MAX_NOTIFICATIONS = 100

    def __init__(
        self,
        settings: SettingsService,
        *,
        store: KeyValueStore | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._settings = settings
        self._store = store
        self._clock = clock
        self._notifications: list[Notification] = self._load()

    @property
    def _key(self) -> str:
        return f"notifications_{self._settings.user_id}"

    def _load(self) -> list[Notification]:
        if self._store is None:
            return []
        saved = self._store.get(self._key)
        if not saved:
            return []
        try:
            notifications = []
            for raw in json.loads(saved):
                raw["created_at"] = datetime.fromisoformat(raw["created_at"])
                notifications.append(Notification(**raw))
        except (json.JSONDecodeError, TypeError, KeyError, ValueError):
            logger.warning("stored notifications for %s are invalid, starting empty", self._settings.user_id)
            return []
        return notifications[: self.MAX_NOTIFICATIONS]

    def _save(self) -> None:
        if self._store is None:
            return
        payload = []
        for item in self._notifications:
            data = asdict(item)
            data["created_at"] = item.created_at.isoformat()
            payload.append(data)
        self._store.set(self._key, json.dumps(payload, ensure_ascii=False))

    @property
    def enabled(self) -> bool:
        return self._settings.notifications_enabled

    def add(
        self,
        title: str,
        message: str,
        *,
        type: str = "system",
        entity_id: str | None = None,
    ) -> Notification | None:
        if not self.enabled:
            logger.debug("notifications disabled, dropping %r", title)
            return None
        notification = Notification(
            id=uuid.uuid4().hex,
            title=title,
            message=message,
            created_at=self._clock(),
            type=type,
            entity_id=entity_id,
        )
        self._notifications.insert(0, notification)
        del self._notifications[self.MAX_NOTIFICATIONS :]
        self._save()
        logger.info("notification: %s - %s", title, message)
        return notification

    def list_notifications(self) -> list[Notification]:
        return list(self._notifications)

    @property
    def unread_count(self) -> int:
        return sum(1 for item in self._notifications if not item.read)

    def mark_read(self, notification_id: str) -> bool:
        for item in self._notifications:
            if item.id == notification_id:
                item.read = True
                self._save()
                return True
        return False

    def mark_all_read(self) -> None:
        for item in self._notifications:
            item.read = True
        self._save()

    def clear(self) -> None:
        self._notifications.clear()
        self._save()


class NotificationBatcher:
    """Tracks active bulk operations and emits one notification per operation."""

    DEFAULT_TIMEOUT = 5.0

    MESSAGES: dict[BatchKind, tuple[str, str, str]] = {
        BatchKind.BULK_CREATION: ("Work order created", "Work order {label} created with {items}", "nt_created"),
        BatchKind.ITEM_ADDITION: ("Items added", "{items} added to work order {label}", "nt_updated"),
        BatchKind.BULK_DELETION: ("Work order deleted", "Work order {label} deleted with {items}", "nt_updated"),
    }

    def __init__(
        self,
        center: NotificationCenter,
        scheduler: Scheduler,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._center = center
        self._scheduler = scheduler
        self._timeout = timeout
        self._clock = clock
        self._operations: dict[str, BatchOperation] = {}
        self._timers: dict[str, TimerHandle] = {}

    def start(
        self,
        kind: BatchKind | str,
        target_id: str,
        expected_count: int | None = None,
        *,
        label: str | None = None,
    ) -> str:
        operation = BatchOperation(
            operation_id=uuid.uuid4().hex,
            kind=BatchKind(kind),
            target_id=target_id,
            started_at=self._clock(),
            expected_count=expected_count,
            label=label,
        )
        op_id = operation.operation_id
        self._operations[op_id] = operation
        self._timers[op_id] = self._scheduler.call_later(self._timeout, lambda: self._expire(op_id))
        logger.debug("batch %s started: %s on %s", op_id, operation.kind.value, target_id)
        return op_id

    def _expire(self, operation_id: str) -> None:
        self._timers.pop(operation_id, None)
        if operation_id in self._operations:
            logger.info("batch %s timed out after %ss", operation_id, self._timeout)
        self.end(operation_id)

    def end(self, operation_id: str) -> Notification | None:
        """Close the operation; repeated calls are no-ops returning ``None``."""

        operation = self._operations.pop(operation_id, None)
        timer = self._timers.pop(operation_id, None)
        if timer is not None:
            timer.cancel()
        if operation is None or operation.closed:
            return None
        operation.closed = True

        title, template, notification_type = self.MESSAGES[operation.kind]
        message = template.format(
            label=operation.label or operation.target_id,
            items=_items_label(operation.count),
        )
        return self._center.add(title, message, type=notification_type, entity_id=operation.target_id)

    def absorb(self, target_id: str | None, *, rows: int = 1) -> bool:
        """Count a row written under an active operation on ``target_id``.

        Returns ``True`` when the caller should not notify on its own.
        """

        if not target_id:
            return False
        for operation in reversed(list(self._operations.values())):
            if operation.target_id == target_id and not operation.closed:
                operation.absorbed += rows
                return True
        return False

    def is_active(self, target_id: str) -> bool:
        return any(op.target_id == target_id for op in self._operations.values())

    def active_operations(self) -> list[BatchOperation]:
        return list(self._operations.values())

    def reset(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._operations.clear()


class ActivityNotifier:
    """Turns new work orders and items into notifications unless a batch owns them."""

    def __init__(self, store: DocumentStore, center: NotificationCenter, batcher: NotificationBatcher) -> None:
        self._store = store
        self._center = center
        self._batcher = batcher
        self._numbers: dict[str, str] = {}
        self._subscriptions: list[Subscription] = []

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
        logger.error("activity listener failed: %s", exc)

    def _on_work_orders(self, batch: ChangeBatch) -> None:
        self._numbers = {doc.id: str(doc.get("nt_number") or "N/A") for doc in batch.documents}
        if batch.initial:
            return
        for change in batch.changes:
            if change.type != "added":
                continue
            doc = change.document
            if self._batcher.absorb(doc.id, rows=0):
                continue
            self._center.add(
                "New work order",
                f"Work order {self._numbers.get(doc.id, 'N/A')} created at {doc.get('created_time') or '-'}",
                type="nt_created",
                entity_id=doc.id,
            )

    def _on_items(self, batch: ChangeBatch) -> None:
        if batch.initial:
            return
        for change in batch.changes:
            if change.type != "added":
                continue
            doc = change.document
            nt_id = doc.get("nt_id")
            if self._batcher.absorb(nt_id):
                continue
            self._center.add(
                "Item added",
                f"Item {doc.get('code') or '-'} added to work order {self._numbers.get(nt_id, 'N/A')}",
                type="nt_updated",
                entity_id=nt_id,
            )
