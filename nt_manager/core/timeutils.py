"""Civil date/time parsing and SLA arithmetic.

Work orders store their creation moment as two local civil strings
(``DD/MM/YYYY`` and ``HH:MM[:SS]``) while the payment moment has been
written in three different encodings over time.  Everything is normalised
here into naive local :class:`~datetime.datetime` values so the rest of the
engine only ever subtracts datetimes.
"""
from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta
from typing import Callable

from nt_manager.core.materials import Category, sla_minutes

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_DATE_RE = re.compile(r"^\s*(\d{1,2})/(\d{1,2})/(\d{4})\s*$")
_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")
_ZERO = timedelta(0)


def parse_civil_date(value: str | None) -> date | None:
    match = _DATE_RE.match(value or "")
    if not match:
        return None
    day, month, year = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_civil_time(value: str | None) -> time | None:
    match = _TIME_RE.match(value or "")
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    try:
        return time(int(hours), int(minutes), int(seconds or 0))
    except ValueError:
        return None


def parse_civil_datetime(date_value: str | None, time_value: str | None) -> datetime | None:
    """Combine the legacy ``created_date``/``created_time`` pair."""

    parsed_date = parse_civil_date(date_value)
    parsed_time = parse_civil_time(time_value)
    if parsed_date is None or parsed_time is None:
        logger.warning("unparseable civil date/time: %r %r", date_value, time_value)
        return None
    return datetime.combine(parsed_date, parsed_time)


def to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def normalize_completion(value: object, created: datetime | None) -> datetime | None:
    """Turn a stored ``payment_time`` into a local instant.

    Accepted encodings: a datetime, an ISO-8601 instant, ``DD/MM/YYYY
    HH:MM[:SS]``, or a bare ``HH:MM[:SS]`` which is read on the creation day.
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_local_naive(value)
    raw = str(value).strip()

    if "T" in raw:
        try:
            return to_local_naive(datetime.fromisoformat(raw.replace("Z", "+00:00")))
        except ValueError:
            logger.warning("unparseable ISO completion time: %r", raw)
            return None

    if "/" in raw:
        date_part, _, time_part = raw.partition(" ")
        parsed_date = parse_civil_date(date_part)
        parsed_time = parse_civil_time(time_part) if time_part.strip() else time(0, 0)
        if parsed_date is None or parsed_time is None:
            logger.warning("unparseable civil completion time: %r", raw)
            return None
        return datetime.combine(parsed_date, parsed_time)

    parsed_time = parse_civil_time(raw)
    if parsed_time is None or created is None:
        logger.warning("unparseable completion time: %r (created=%r)", raw, created)
        return None
    return datetime.combine(created.date(), parsed_time)


def elapsed(start: datetime | None, end: datetime | None = None, *, now: datetime | None = None) -> timedelta:
    """Duration from ``start`` to ``end`` (or ``now`` for open items).

    Invalid instants degrade to zero so rendering never fails.
    """

    if start is None:
        logger.warning("elapsed() called without a start instant")
        return _ZERO
    stop = end if end is not None else (now if now is not None else datetime.now())
    try:
        return to_local_naive(stop) - to_local_naive(start)
    except (TypeError, OverflowError):
        logger.warning("cannot subtract %r from %r", start, stop)
        return _ZERO


def sla_delta(category: Category) -> timedelta:
    return timedelta(minutes=sla_minutes(category))


def is_over_sla(duration: timedelta, category: Category) -> bool:
    return duration > sla_delta(category)


def overage(duration: timedelta, category: Category) -> timedelta:
    excess = duration - sla_delta(category)
    return excess if excess > _ZERO else _ZERO


def _split(duration: timedelta) -> tuple[int, int, int]:
    total_minutes = int(abs(duration).total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    days, hours = divmod(hours, 24)
    return days, hours, minutes


def format_duration(duration: timedelta) -> str:
    """Long form used in tooltips: ``1 minute``, ``1h 30min``, ``2 days and 3h``."""

    if abs(duration) < timedelta(minutes=1):
        return "now"
    days, hours, minutes = _split(duration)
    if days:
        label = "1 day" if days == 1 else f"{days} days"
        return f"{label} and {hours}h" if hours else label
    if not hours:
        return "1 minute" if minutes == 1 else f"{minutes} minutes"
    return f"{hours}h {minutes}min" if minutes else f"{hours}h"


def format_short(duration: timedelta) -> str:
    """Compact form used on badges: ``45min``, ``3h 30min``, ``1d 2h``."""

    if abs(duration) < timedelta(minutes=1):
        return "now"
    days, hours, minutes = _split(duration)
    if days:
        return f"{days}d {hours}h" if hours else f"{days}d"
    if not hours:
        return f"{minutes}min"
    return f"{hours}h {minutes}min" if minutes else f"{hours}h"


def format_civil_date(value: datetime) -> str:
    return value.strftime("%d/%m/%Y")


def format_civil_time(value: datetime) -> str:
    return value.strftime("%H:%M:%S")
