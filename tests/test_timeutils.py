from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from nt_manager.core.materials import Category
from nt_manager.core.timeutils import (
    elapsed,
    format_duration,
    format_short,
    is_over_sla,
    normalize_completion,
    overage,
    parse_civil_datetime,
)

CREATED = datetime(2025, 1, 1, 9, 0)


def test_parse_civil_datetime_with_and_without_seconds():
    assert parse_civil_datetime("01/01/2025", "09:00") == CREATED
    assert parse_civil_datetime("1/1/2025", "09:00:30") == datetime(2025, 1, 1, 9, 0, 30)


@pytest.mark.parametrize(
    ("date_value", "time_value"),
    [("2025-01-01", "09:00"), ("31/02/2025", "09:00"), ("01/01/2025", "25:00"), (None, "09:00"), ("01/01/2025", "")],
)
def test_parse_civil_datetime_rejects_garbage(date_value, time_value):
    assert parse_civil_datetime(date_value, time_value) is None


def test_normalize_completion_accepts_three_encodings():
    assert normalize_completion("2025-01-01T12:30:00", CREATED) == datetime(2025, 1, 1, 12, 30)
    assert normalize_completion("02/01/2025 08:15", CREATED) == datetime(2025, 1, 2, 8, 15)
    assert normalize_completion("12:30", CREATED) == datetime(2025, 1, 1, 12, 30)
    assert normalize_completion("12:30:15", CREATED) == datetime(2025, 1, 1, 12, 30, 15)


def test_normalize_completion_converts_aware_instants_to_local():
    aware = datetime(2025, 1, 1, 12, 30, tzinfo=timezone.utc)
    expected = aware.astimezone().replace(tzinfo=None)

    assert normalize_completion("2025-01-01T12:30:00Z", CREATED) == expected
    assert normalize_completion(aware, CREATED) == expected


def test_normalize_completion_invalid_values():
    assert normalize_completion(None, CREATED) is None
    assert normalize_completion("", CREATED) is None
    assert normalize_completion("yesterday", CREATED) is None
    assert normalize_completion("12:30", None) is None
    assert normalize_completion("2025-13-01T00:00:00", CREATED) is None


def test_elapsed_defaults_to_now_and_degrades_to_zero():
    assert elapsed(CREATED, now=datetime(2025, 1, 1, 9, 45)) == timedelta(minutes=45)
    assert elapsed(CREATED, datetime(2025, 1, 1, 12, 30)) == timedelta(hours=3, minutes=30)
    assert elapsed(None, now=datetime(2025, 1, 1, 9, 45)) == timedelta(0)


@pytest.mark.parametrize("category", list(Category))
def test_sla_boundary_is_not_delayed(category):
    sla = timedelta(minutes=120 if category is Category.STANDARD else 240)

    assert is_over_sla(sla, category) is False
    assert is_over_sla(sla + timedelta(seconds=1), category) is True
    assert overage(sla, category) == timedelta(0)
    assert overage(sla - timedelta(minutes=5), category) == timedelta(0)
    assert overage(sla + timedelta(minutes=7), category) == timedelta(minutes=7)


@pytest.mark.parametrize(
    ("milliseconds", "expected"),
    [
        (0, "now"),
        (59_000, "now"),
        (90_000, "1 minute"),
        (45 * 60_000, "45 minutes"),
        (3_600_000, "1h"),
        (5_400_000, "1h 30min"),
        (86_400_000, "1 day"),
        (90_000_000, "1 day and 1h"),
        (3 * 86_400_000 + 2 * 3_600_000, "3 days and 2h"),
    ],
)
def test_format_duration(milliseconds, expected):
    assert format_duration(timedelta(milliseconds=milliseconds)) == expected


@pytest.mark.parametrize(
    ("minutes", "expected"),
    [(0, "now"), (45, "45min"), (120, "2h"), (210, "3h 30min"), (24 * 60, "1d"), (26 * 60 + 5, "1d 2h")],
)
def test_format_short(minutes, expected):
    assert format_short(timedelta(minutes=minutes)) == expected
