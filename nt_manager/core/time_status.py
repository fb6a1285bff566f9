from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Mapping

from nt_manager.core.materials import classify
from nt_manager.core.schema import TimeStatus, is_completed
from nt_manager.core.timeutils import (
    elapsed,
    format_short,
    is_over_sla,
    normalize_completion,
    overage,
    parse_civil_datetime,
)

logger = logging.getLogger(__name__)

TIME_UNAVAILABLE = "time unavailable"
PAID_WITHOUT_TIME = "Paid (time not recorded)"


def _not_negative(duration: timedelta) -> timedelta:
    if duration < timedelta(0):
        logger.warning("negative elapsed time %s clamped to zero", duration)
        return timedelta(0)
    return duration


def format_time_status(
    created_at: datetime | None,
    code: str | None,
    status: object,
    completed_at: datetime | None = None,
    *,
    now: datetime | None = None,
) -> TimeStatus:
    """Badge text and delay flag for a single item.

    A completed item that finished late is reported as delayed for display,
    but its text always describes the finished duration, never a running one.
    """

    category = classify(code)
    if created_at is None:
        return TimeStatus(text=TIME_UNAVAILABLE, is_delayed=False, category=category)

    if is_completed(status):
        if completed_at is None:
            return TimeStatus(text=PAID_WITHOUT_TIME, is_delayed=False, category=category)
        duration = _not_negative(elapsed(created_at, completed_at))
        if not is_over_sla(duration, category):
            return TimeStatus(text=f"Paid {format_short(duration)}", is_delayed=False, category=category)
        return TimeStatus(
            text=f"{format_short(overage(duration, category))} over SLA",
            is_delayed=True,
            category=category,
        )

    duration = _not_negative(elapsed(created_at, now=now))
    if not is_over_sla(duration, category):
        return TimeStatus(text=format_short(duration), is_delayed=False, category=category)
    return TimeStatus(
        text=f"{format_short(overage(duration, category))} overdue",
        is_delayed=True,
        category=category,
    )


def item_created_at(doc: Mapping[str, Any]) -> datetime | None:
    return parse_civil_datetime(doc.get("created_date"), doc.get("created_time"))


def item_completed_at(doc: Mapping[str, Any], created: datetime | None = None) -> datetime | None:
    if created is None:
        created = item_created_at(doc)
    return normalize_completion(doc.get("payment_time"), created)


def time_status_for_item(doc: Mapping[str, Any], *, now: datetime | None = None) -> TimeStatus:
    """Evaluate :func:`format_time_status` straight from a stored item document."""

    created = item_created_at(doc)
    completed = item_completed_at(doc, created) if is_completed(doc.get("status")) else None
    return format_time_status(created, doc.get("code"), doc.get("status"), completed, now=now)
