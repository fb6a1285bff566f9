from __future__ import annotations

import pytest

from nt_manager.application.notifications import ActivityNotifier, NotificationBatcher, NotificationCenter
from nt_manager.application.settings import SettingsService
from nt_manager.core.schema import ITEMS, WORK_ORDERS
from nt_manager.infrastructure import InMemoryKeyValueStore, JsonFileKeyValueStore


@pytest.fixture()
def settings():
    return SettingsService(InMemoryKeyValueStore(), "operator-1")


@pytest.fixture()
def center(settings, clock):
    return NotificationCenter(settings, clock=clock)


@pytest.fixture()
def batcher(center, scheduler, clock):
    return NotificationBatcher(center, scheduler, clock=clock)


def test_explicit_end_emits_one_aggregate_notification(center, batcher):
    op_id = batcher.start("bulk_creation", "wo-1", 40)

    notification = batcher.end(op_id)

    assert notification is not None
    assert "40" in notification.message
    assert notification.message == "Work order wo-1 created with 40 items"
    assert notification.entity_id == "wo-1"
    assert len(center.list_notifications()) == 1


def test_end_twice_is_a_noop(center, batcher, scheduler):
    op_id = batcher.start("bulk_creation", "wo-1", 40)

    assert batcher.end(op_id) is not None
    assert batcher.end(op_id) is None

    scheduler.advance(6)
    assert len(center.list_notifications()) == 1
    assert scheduler.pending == 0


def test_timeout_emits_exactly_once(center, batcher, scheduler):
    op_id = batcher.start("bulk_creation", "wo-1", 40)

    scheduler.advance(6)
    batcher.end(op_id)
    scheduler.advance(6)

    messages = [item.message for item in center.list_notifications()]
    assert messages == ["Work order wo-1 created with 40 items"]


def test_concurrent_batches_do_not_interfere(center, batcher, scheduler):
    first = batcher.start("item_addition", "wo-1", 3, label="NT-1")
    scheduler.advance(3)
    second = batcher.start("bulk_deletion", "wo-2", 1, label="NT-2")

    batcher.end(first)
    assert batcher.is_active("wo-2")

    scheduler.advance(6)
    assert not batcher.is_active("wo-2")
    assert batcher.end(second) is None

    messages = [item.message for item in center.list_notifications()]
    assert messages == ["Work order NT-2 deleted with 1 item", "3 items added to work order NT-1"]


def test_absorbed_rows_set_the_count_when_none_expected(batcher):
    op_id = batcher.start("item_addition", "wo-1")
    assert batcher.absorb("wo-1") is True
    assert batcher.absorb("wo-1") is True
    assert batcher.absorb("wo-9") is False
    assert batcher.absorb(None) is False

    assert batcher.end(op_id).message == "2 items added to work order wo-1"
    assert batcher.absorb("wo-1") is False


def test_unknown_kind_is_rejected(batcher):
    with pytest.raises(ValueError):
        batcher.start("mass_update", "wo-1")


def test_disabled_notifications_are_dropped_but_batch_still_closes(settings, center, batcher, scheduler):
    settings.set_notifications_enabled(False)
    op_id = batcher.start("bulk_creation", "wo-1", 2)

    assert batcher.end(op_id) is None
    assert center.list_notifications() == []
    assert batcher.active_operations() == []
    assert scheduler.pending == 0


def test_center_read_state(center):
    first = center.add("A", "first")
    center.add("B", "second")

    assert center.unread_count == 2
    assert center.mark_read(first.id) is True
    assert center.mark_read("missing") is False
    assert center.unread_count == 1

    center.mark_all_read()
    assert center.unread_count == 0
    assert [item.title for item in center.list_notifications()] == ["B", "A"]

    center.clear()
    assert center.list_notifications() == []


def test_center_keeps_most_recent_notifications(center):
    for index in range(NotificationCenter.MAX_NOTIFICATIONS + 5):
        center.add("N", str(index))

    items = center.list_notifications()
    assert len(items) == NotificationCenter.MAX_NOTIFICATIONS
    assert items[0].message == str(NotificationCenter.MAX_NOTIFICATIONS + 4)


def test_activity_notifier_suppresses_rows_inside_a_batch(store, center, batcher):
    store.add(WORK_ORDERS, {"nt_number": "NT-OLD", "created_time": "08:00:00"}, doc_id="wo-0")
    notifier = ActivityNotifier(store, center, batcher)
    notifier.start()
    assert center.list_notifications() == []

    op_id = batcher.start("bulk_creation", "wo-1", label="NT-1")
    store.add(WORK_ORDERS, {"nt_number": "NT-1", "created_time": "09:00:00"}, doc_id="wo-1")
    for code in ("A", "B", "C"):
        store.add(ITEMS, {"nt_id": "wo-1", "code": code, "status": "Ag. Pagamento"})
    batcher.end(op_id)

    store.add(ITEMS, {"nt_id": "wo-0", "code": "Z", "status": "Ag. Pagamento"})
    notifier.stop()
    store.add(ITEMS, {"nt_id": "wo-0", "code": "Y", "status": "Ag. Pagamento"})

    messages = [item.message for item in center.list_notifications()]
    assert messages == [
        "Item Z added to work order NT-OLD",
        "Work order NT-1 created with 3 items",
    ]


def test_inbox_survives_restart_through_settings_file(tmp_path, clock):
    kv_store = JsonFileKeyValueStore(tmp_path / "settings.json")
    center = NotificationCenter(SettingsService(kv_store, "operator-1"), store=kv_store, clock=clock)
    first = center.add("Work order created", "Work order NT-1 created with 2 items", type="nt_created", entity_id="wo-1")
    center.add("Item added", "Item 10004511 added to work order NT-1")
    center.mark_read(first.id)

    reloaded = NotificationCenter(SettingsService(kv_store, "operator-1"), store=kv_store, clock=clock)
    other_user = NotificationCenter(SettingsService(kv_store, "operator-2"), store=kv_store, clock=clock)

    items = reloaded.list_notifications()
    assert [item.message for item in items] == [
        "Item 10004511 added to work order NT-1",
        "Work order NT-1 created with 2 items",
    ]
    assert items[1].created_at == clock.current
    assert items[1].read is True
    assert items[1].entity_id == "wo-1"
    assert reloaded.unread_count == 1
    assert other_user.list_notifications() == []

    reloaded.clear()
    assert NotificationCenter(SettingsService(kv_store, "operator-1"), store=kv_store).list_notifications() == []


def test_invalid_stored_inbox_starts_empty():
    kv_store = InMemoryKeyValueStore()
    kv_store.set("notifications_operator-1", "{not json")
    center = NotificationCenter(SettingsService(kv_store, "operator-1"), store=kv_store)

    assert center.list_notifications() == []
    assert center.add("title", "message") is not None
