from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence

from nt_manager.core.schema import TimelineEntry, TimelineStats

SENTINEL = "—"


def _minutes_label(minutes: float) -> str:
    hours, rest = divmod(int(minutes), 60)
    return f"{hours}h {rest}min"


def count_paid_on(entries: Iterable[TimelineEntry], day: datetime) -> int:
    target = day.date()
    return sum(1 for entry in entries if entry.paid_at.date() == target)


def summarize(entries: Sequence[TimelineEntry], *, now: datetime | None = None) -> TimelineStats:
    """Recompute the timeline summary from scratch.

    Resolution figures only consider entries whose creation-to-payment time
    could be derived; with none available they stay at the sentinel.
    """

    now = now or datetime.now()
    paid_today = count_paid_on(entries, now)

    times = [entry.resolution_minutes for entry in entries if entry.resolution_minutes is not None]
    if not times:
        return TimelineStats(paid_today=paid_today)

    return TimelineStats(
        paid_today=paid_today,
        avg_resolution=_minutes_label(sum(times) / len(times)),
        fastest=_minutes_label(min(times)),
        slowest=_minutes_label(max(times)),
    )
