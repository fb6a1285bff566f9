from __future__ import annotations

from datetime import datetime

import pytest

from nt_manager.application.timeline import TimelineReconciler
from nt_manager.core.schema import ITEMS, WORK_ORDERS


def _paid_item(nt_id: str = "wo-1", payment_time: str | None = "10:30", **overrides) -> dict:
    data = {
        "nt_id": nt_id,
        "item_number": 1,
        "code": "99999999",
        "description": "Parafuso sextavado",
        "quantity": "10 UN",
        "batch": None,
        "status": "Pago",
        "created_date": "01/01/2025",
        "created_time": "09:00:00",
        "payment_time": payment_time,
        "priority": False,
        "updated_at": datetime(2025, 1, 1, 10, 30),
    }
    data.update(overrides)
    return data


@pytest.fixture()
def timeline(store, scheduler, clock):
    store.add(WORK_ORDERS, {"nt_number": "NT-2025-00001", "status": "Active"}, doc_id="wo-1")
    reconciler = TimelineReconciler(store, scheduler, limit=5, clock=clock)
    reconciler.start()
    yield reconciler
    reconciler.stop()


def test_add_add_remove_leaves_only_survivor(store, timeline):
    store.add(ITEMS, _paid_item(), doc_id="A")
    assert timeline.newly_appeared == {"A"}

    store.add(ITEMS, _paid_item(payment_time="11:00"), doc_id="B")
    assert timeline.newly_appeared == {"B"}

    store.delete(ITEMS, "A")

    assert [entry.id for entry in timeline.entries] == ["B"]
    assert timeline.newly_appeared == frozenset()
    assert timeline.highlighted == {"B"}


def test_initial_snapshot_is_baseline_without_highlight(store, scheduler, clock):
    store.add(ITEMS, _paid_item(), doc_id="A")
    reconciler = TimelineReconciler(store, scheduler, clock=clock)

    reconciler.start()

    assert [entry.id for entry in reconciler.entries] == ["A"]
    assert reconciler.newly_appeared == frozenset()
    assert reconciler.highlighted == frozenset()
    assert reconciler.connected is True
    assert reconciler.loading is False


def test_entry_projection_joins_work_order_number(store, timeline):
    store.add(ITEMS, _paid_item(priority=True), doc_id="A")

    entry = timeline.entries[0]

    assert entry.nt_number == "NT-2025-00001"
    assert entry.elapsed_time == "1h 30min"
    assert entry.resolution_minutes == 90
    assert entry.paid_at == datetime(2025, 1, 1, 10, 30)
    assert entry.is_priority is True


def test_missing_parent_number_renders_placeholder_until_index_catches_up(store, timeline):
    store.add(ITEMS, _paid_item(nt_id="wo-2"), doc_id="A")
    assert timeline.entries[0].nt_number == "N/A"

    store.add(WORK_ORDERS, {"nt_number": "NT-2025-00002", "status": "Active"}, doc_id="wo-2")

    assert timeline.entries[0].nt_number == "NT-2025-00002"


def test_status_reverted_evicts_entry_and_highlight(store, timeline):
    store.add(ITEMS, _paid_item(), doc_id="A")
    assert timeline.highlighted == {"A"}

    store.update(ITEMS, "A", {"status": "Ag. Pagamento", "payment_time": None})

    assert timeline.entries == []
    assert timeline.highlighted == frozenset()


def test_partially_paid_items_are_listed(store, timeline):
    store.add(ITEMS, _paid_item(status="Pago Parcial"), doc_id="A")
    store.add(ITEMS, _paid_item(status="Ag. Pagamento", payment_time=None), doc_id="B")

    assert [entry.id for entry in timeline.entries] == ["A"]


def test_entries_are_capped_and_ordered_newest_first(store, timeline):
    for minute in range(7):
        store.add(
            ITEMS,
            _paid_item(payment_time=f"10:0{minute}", updated_at=datetime(2025, 1, 1, 10, minute)),
            doc_id=f"item-{minute}",
        )

    ids = [entry.id for entry in timeline.entries]

    assert ids == ["item-6", "item-5", "item-4", "item-3", "item-2"]


def test_highlight_expires_after_window(store, scheduler, timeline):
    store.add(ITEMS, _paid_item(), doc_id="A")
    scheduler.advance(30)
    store.add(ITEMS, _paid_item(payment_time="11:00"), doc_id="B")

    scheduler.advance(15)
    assert timeline.highlighted == {"B"}

    scheduler.advance(30)
    assert timeline.highlighted == frozenset()
    assert [entry.id for entry in timeline.entries] == ["B", "A"]


def test_stats_follow_every_update(store, clock, timeline):
    clock.current = datetime(2025, 1, 1, 18, 0)
    store.add(ITEMS, _paid_item(), doc_id="A")
    store.add(ITEMS, _paid_item(payment_time="09:30"), doc_id="B")

    assert timeline.stats.paid_today == 2
    assert timeline.stats.fastest == "0h 30min"
    assert timeline.stats.slowest == "1h 30min"
    assert timeline.stats.avg_resolution == "1h 0min"

    store.delete(ITEMS, "A")
    assert timeline.stats.paid_today == 1
    assert timeline.stats.slowest == "0h 30min"


def test_payment_before_creation_is_not_derivable(store, timeline):
    store.add(ITEMS, _paid_item(payment_time="08:00"), doc_id="A")

    entry = timeline.entries[0]
    assert entry.resolution_minutes is None
    assert entry.elapsed_time == "-"


def test_subscription_error_keeps_last_entries(store, timeline):
    store.add(ITEMS, _paid_item(), doc_id="A")
    seen: list[bool] = []
    timeline.add_listener(lambda reconciler: seen.append(reconciler.connected))

    store.emit_error(ITEMS, RuntimeError("channel closed"))

    assert timeline.connected is False
    assert [entry.id for entry in timeline.entries] == ["A"]
    assert seen == [False]

    timeline.retry()
    assert timeline.connected is True
    assert [entry.id for entry in timeline.entries] == ["A"]


def test_stop_cancels_timers_and_restart_does_not_leak(store, scheduler, timeline):
    store.add(ITEMS, _paid_item(), doc_id="A")
    assert scheduler.pending == 1

    timeline.stop()
    assert scheduler.pending == 0
    assert store.subscriber_count(ITEMS) == 0

    store.add(ITEMS, _paid_item(), doc_id="B")
    assert [entry.id for entry in timeline.entries] == ["A"]

    timeline.start()
    timeline.start()
    assert store.subscriber_count(ITEMS) == 1
    assert store.subscriber_count(WORK_ORDERS) == 1
    assert timeline.highlighted == frozenset()
    assert {entry.id for entry in timeline.entries} == {"A", "B"}


def test_today_window_filters_older_payments(store, scheduler, clock):
    clock.current = datetime(2025, 1, 2, 8, 0)
    store.add(ITEMS, _paid_item(), doc_id="yesterday")
    store.add(
        ITEMS,
        _paid_item(created_date="02/01/2025", created_time="07:00", payment_time="07:30"),
        doc_id="today",
    )
    reconciler = TimelineReconciler(store, scheduler, window="today", clock=clock)

    reconciler.start()

    assert [entry.id for entry in reconciler.entries] == ["today"]
    assert reconciler.stats.paid_today == 1


def test_refresh_rolls_stats_and_window_over_midnight(store, scheduler, clock):
    clock.current = datetime(2025, 1, 1, 23, 0)
    store.add(
        ITEMS,
        _paid_item(created_time="22:00:00", payment_time="22:30", updated_at=datetime(2025, 1, 1, 22, 30)),
        doc_id="A",
    )
    reconciler = TimelineReconciler(store, scheduler, window="today", clock=clock)
    reconciler.start()
    assert reconciler.stats.paid_today == 1

    clock.current = datetime(2025, 1, 2, 9, 0)
    reconciler.refresh()

    assert reconciler.entries == []
    assert reconciler.stats.paid_today == 0
    assert reconciler.stats.avg_resolution == "—"


def test_refresh_does_not_highlight_known_entries(store, scheduler, clock, timeline):
    store.add(ITEMS, _paid_item(), doc_id="A")
    scheduler.advance(60)
    assert timeline.highlighted == frozenset()
    assert timeline.stats.paid_today == 1

    clock.current = datetime(2025, 1, 2, 0, 5)
    timeline.refresh()

    assert [entry.id for entry in timeline.entries] == ["A"]
    assert timeline.newly_appeared == frozenset()
    assert timeline.highlighted == frozenset()
    assert timeline.stats.paid_today == 0


def test_dead_work_order_index_reports_disconnected(store, timeline):
    store.emit_error(WORK_ORDERS, RuntimeError("index closed"))

    store.add(ITEMS, _paid_item(), doc_id="A")

    assert [entry.id for entry in timeline.entries] == ["A"]
    assert timeline.connected is False
    assert timeline.snapshot()["connected"] is False

    timeline.retry()
    assert timeline.connected is True
