from __future__ import annotations

import asyncio
import contextlib
import logging

from nt_manager.application.board import ItemStatusBoard
from nt_manager.application.timeline import TimelineReconciler

logger = logging.getLogger(__name__)


class StatusTicker:
    """Recomputes item time statuses and timeline stats on a fixed interval."""

    def __init__(
        self,
        board: ItemStatusBoard,
        interval: float = 60.0,
        *,
        timeline: TimelineReconciler | None = None,
    ) -> None:
        self._board = board
        self._timeline = timeline
        self._interval = interval
        self._task: asyncio.Task[None] | None = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self._board.refresh()
            if self._timeline is not None:
                self._timeline.refresh()
            self.ticks += 1

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug("status ticker started (every %ss)", self._interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
