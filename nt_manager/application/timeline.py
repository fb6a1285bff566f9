"""Live feed of paid items.

The reconciler listens to two independent streams: completed items and the
work-order index used to show human-readable NT numbers.  Neither stream is
ordered relative to the other, so every change batch rebuilds the visible
set from the latest snapshot of both instead of patching entries in place.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Literal, Mapping

from nt_manager.core.schema import COMPLETED_STATUSES, ITEMS, WORK_ORDERS, TimelineEntry, TimelineStats, is_completed
from nt_manager.core.stats import summarize
from nt_manager.core.time_status import item_completed_at, item_created_at
from nt_manager.core.timeutils import format_short, normalize_completion, to_local_naive
from nt_manager.infrastructure import ChangeBatch, Document, DocumentStore, Filter, Scheduler, Subscription, TimerHandle

logger = logging.getLogger(__name__)

TimeWindow = Literal["today", "last24h", "all"]
Listener = Callable[["TimelineReconciler"], None]

MISSING_NUMBER = "N/A"


def _as_instant(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return to_local_naive(value)
    if isinstance(value, str) and value:
        return normalize_completion(value, None)
    return None


def build_entry(doc: Document, numbers: Mapping[str, str], *, now: datetime) -> TimelineEntry:
    """Project a completed item document into a timeline entry."""

    data = doc.data
    created = item_created_at(data)
    completed = item_completed_at(data, created)

    resolution: int | None = None
    elapsed_text = "-"
    if created is not None and completed is not None:
        duration = completed - created
        if duration >= timedelta(0):
            resolution = int(duration.total_seconds() // 60)
            elapsed_text = format_short(duration)
        else:
            logger.warning("item %s was paid before it was created (%s < %s)", doc.id, completed, created)

    paid_at = completed or _as_instant(data.get("updated_at")) or now
    nt_id = data.get("nt_id")
    return TimelineEntry(
        id=doc.id,
        nt_id=nt_id,
        nt_number=numbers.get(nt_id, MISSING_NUMBER) if nt_id else MISSING_NUMBER,
        code=str(data.get("code") or ""),
        description=str(data.get("description") or ""),
        quantity=str(data.get("quantity") or ""),
        batch=data.get("batch"),
        status=str(data.get("status")),
        created_date=data.get("created_date"),
        created_time=data.get("created_time"),
        payment_time=str(data["payment_time"]) if data.get("payment_time") else None,
        paid_at=paid_at,
        elapsed_time=elapsed_text,
        resolution_minutes=resolution,
        is_priority=bool(data.get("priority")),
    )


class TimelineReconciler:
    """Maintains the capped, newest-first list of paid items."""

    DEFAULT_LIMIT = 30
    HIGHLIGHT_SECONDS = 45.0

    def __init__(
        self,
        store: DocumentStore,
        scheduler: Scheduler,
        *,
        limit: int = DEFAULT_LIMIT,
        window: TimeWindow = "all",
        highlight_seconds: float = HIGHLIGHT_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._scheduler = scheduler
        self._limit = limit
        self._window = window
        self._highlight_seconds = highlight_seconds
        self._clock = clock

        self._generation = 0
        self._subscriptions: list[Subscription] = []
        self._item_docs: list[Document] | None = None
        self._numbers: dict[str, str] = {}
        self._previous_ids: set[str] | None = None
        self._highlight_timers: dict[str, TimerHandle] = {}
        self._listeners: list[Listener] = []

        self._entries: list[TimelineEntry] = []
        self._stats = TimelineStats()
        self._newly_appeared: frozenset[str] = frozenset()
        self._streams_up: dict[str, bool] = {WORK_ORDERS: False, ITEMS: False}
        self._loading = True

    # ------------------------------------------------------------------
    # read side
    # ------------------------------------------------------------------
    @property
    def entries(self) -> list[TimelineEntry]:
        return list(self._entries)

    @property
    def stats(self) -> TimelineStats:
        return self._stats

    @property
    def newly_appeared(self) -> frozenset[str]:
        return self._newly_appeared

    @property
    def highlighted(self) -> frozenset[str]:
        return frozenset(self._highlight_timers)

    @property
    def connected(self) -> bool:
        """True only while both the item stream and the work-order index are live."""
        return all(self._streams_up.values())

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def running(self) -> bool:
        return bool(self._subscriptions)

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Open a fresh subscription generation, discarding the previous one."""

        self.stop()
        self._generation += 1
        generation = self._generation
        self._item_docs = None
        self._previous_ids = None
        self._loading = True
        self._streams_up = {WORK_ORDERS: False, ITEMS: False}
        logger.info("timeline subscribing (generation %s, limit %s)", generation, self._limit)

        self._subscriptions = [
            self._store.subscribe(
                WORK_ORDERS,
                lambda batch: self._on_work_orders(generation, batch),
                lambda exc: self._on_error(generation, WORK_ORDERS, exc),
            ),
            self._store.subscribe(
                ITEMS,
                lambda batch: self._on_items(generation, batch),
                lambda exc: self._on_error(generation, ITEMS, exc),
                where=[Filter("status", "in", sorted(COMPLETED_STATUSES))],
                order_by="updated_at",
                descending=True,
                limit=self._limit,
            ),
        ]

    def stop(self) -> None:
        """Unsubscribe and cancel pending timers; rendered entries stay."""

        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []
        for timer in self._highlight_timers.values():
            timer.cancel()
        self._highlight_timers.clear()

    def retry(self) -> None:
        logger.info("timeline manual retry requested")
        self.start()

    # ------------------------------------------------------------------
    # stream callbacks
    # ------------------------------------------------------------------
    def _on_work_orders(self, generation: int, batch: ChangeBatch) -> None:
        if generation != self._generation:
            return
        self._numbers = {doc.id: str(doc.get("nt_number") or MISSING_NUMBER) for doc in batch.documents}
        self._streams_up[WORK_ORDERS] = True
        logger.debug("timeline work-order index now has %s entries", len(self._numbers))
        if self._item_docs is not None:
            self._recompute()

    def _on_items(self, generation: int, batch: ChangeBatch) -> None:
        if generation != self._generation:
            return
        self._item_docs = list(batch.documents)
        self._streams_up[ITEMS] = True
        logger.debug("timeline received %s completed items (%s changes)", len(batch.documents), len(batch.changes))
        self._recompute()

    def _on_error(self, generation: int, collection: str, exc: Exception) -> None:
        if generation != self._generation:
            return
        logger.error("timeline subscription on %s failed: %s", collection, exc)
        self._streams_up[collection] = False
        self._loading = False
        self._emit()

    # ------------------------------------------------------------------
    # reconciliation
    # ------------------------------------------------------------------
    def _in_window(self, entry: TimelineEntry, now: datetime) -> bool:
        if self._window == "today":
            return entry.paid_at.date() == now.date()
        if self._window == "last24h":
            return entry.paid_at >= now - timedelta(hours=24)
        return True

    def refresh(self) -> None:
        """Re-evaluate window, ordering and stats against the current clock.

        Entries already known are not reported as newly appeared, so a day
        rollover never triggers highlights.
        """

        if self._item_docs is None:
            return
        self._recompute(detect_new=False)

    def _recompute(self, *, detect_new: bool = True) -> None:
        now = self._clock()
        entries = [
            build_entry(doc, self._numbers, now=now)
            for doc in self._item_docs or []
            if is_completed(doc.get("status"))
        ]
        entries = [entry for entry in entries if self._in_window(entry, now)]
        entries.sort(key=lambda entry: entry.paid_at, reverse=True)
        entries = entries[: self._limit]

        ids = {entry.id for entry in entries}
        if detect_new and self._previous_ids is not None:
            newly = ids - self._previous_ids
        else:
            newly = set()
        self._previous_ids = ids

        for evicted in set(self._highlight_timers) - ids:
            self._highlight_timers.pop(evicted).cancel()
        for item_id in newly:
            self._highlight(item_id)

        self._entries = entries
        self._stats = summarize(entries, now=now)
        self._newly_appeared = frozenset(newly)
        self._loading = False
        if newly:
            logger.info("timeline: %s new paid item(s)", len(newly))
        self._emit()

    def _highlight(self, item_id: str) -> None:
        previous = self._highlight_timers.pop(item_id, None)
        if previous is not None:
            previous.cancel()
        generation = self._generation
        self._highlight_timers[item_id] = self._scheduler.call_later(
            self._highlight_seconds, lambda: self._expire_highlight(generation, item_id)
        )

    def _expire_highlight(self, generation: int, item_id: str) -> None:
        if generation != self._generation or item_id not in self._highlight_timers:
            return
        del self._highlight_timers[item_id]
        self._emit()

    def _emit(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("timeline listener failed")

    def snapshot(self) -> dict[str, object]:
        return {
            "items": [entry.model_dump(mode="json") for entry in self._entries],
            "highlighted": sorted(self._highlight_timers),
            "connected": self.connected,
            "loading": self._loading,
        }
