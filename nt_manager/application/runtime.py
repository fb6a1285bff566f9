"""Assembly of the engine components for one dashboard process."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from nt_manager.application.board import ItemStatusBoard
from nt_manager.application.notifications import ActivityNotifier, NotificationBatcher, NotificationCenter
from nt_manager.application.settings import SettingsService
from nt_manager.application.timeline import TimelineReconciler
from nt_manager.application.work_orders import WorkOrderService
from nt_manager.core.config import EngineConfig
from nt_manager.infrastructure import (
    AsyncioScheduler,
    DocumentStore,
    InMemoryDocumentStore,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    Scheduler,
)

logger = logging.getLogger(__name__)


@dataclass
class EngineRuntime:
    config: EngineConfig
    store: DocumentStore
    settings: SettingsService
    notifications: NotificationCenter
    batcher: NotificationBatcher
    notifier: ActivityNotifier
    timeline: TimelineReconciler
    board: ItemStatusBoard
    work_orders: WorkOrderService

    def start(self) -> None:
        self.notifier.start()
        self.timeline.start()
        self.board.start()
        logger.info("engine started for user %s", self.settings.user_id)

    def stop(self) -> None:
        self.board.stop()
        self.timeline.stop()
        self.notifier.stop()
        self.batcher.reset()


def build_runtime(
    config: EngineConfig | None = None,
    *,
    store: DocumentStore | None = None,
    kv_store: KeyValueStore | None = None,
    scheduler: Scheduler | None = None,
    clock: Callable[[], datetime] = datetime.now,
) -> EngineRuntime:
    config = config or EngineConfig.from_env()
    store = store if store is not None else InMemoryDocumentStore()
    if kv_store is None:
        kv_store = JsonFileKeyValueStore(config.settings_path) if config.settings_path else InMemoryKeyValueStore()
    scheduler = scheduler or AsyncioScheduler()

    settings = SettingsService(kv_store, config.user_id)
    center = NotificationCenter(settings, store=kv_store, clock=clock)
    batcher = NotificationBatcher(center, scheduler, timeout=config.batch_timeout_seconds, clock=clock)
    return EngineRuntime(
        config=config,
        store=store,
        settings=settings,
        notifications=center,
        batcher=batcher,
        notifier=ActivityNotifier(store, center, batcher),
        timeline=TimelineReconciler(
            store,
            scheduler,
            limit=config.timeline_limit,
            window=config.timeline_window,
            highlight_seconds=config.highlight_seconds,
            clock=clock,
        ),
        board=ItemStatusBoard(store, clock=clock),
        work_orders=WorkOrderService(store, batcher, clock=clock),
    )


_runtime: EngineRuntime | None = None


def configure_runtime(runtime: EngineRuntime) -> None:
    """Install the runtime served by the API (tests inject fakes here)."""

    global _runtime
    _runtime = runtime


def get_runtime() -> EngineRuntime:
    """Return the process-wide runtime, building it from the environment on first use."""

    global _runtime
    if _runtime is None:
        _runtime = build_runtime()
    return _runtime


def reset_runtime() -> None:
    """Stop and drop the current runtime (used in tests)."""

    global _runtime
    if _runtime is not None:
        _runtime.stop()
    _runtime = None
