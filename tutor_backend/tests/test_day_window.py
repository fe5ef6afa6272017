"""Tests for the UTC day window."""
from datetime import datetime, timedelta, timezone

from tutor_backend.features.quota.window import window_for


def test_window_spans_midnight_to_235959_utc():
    w = window_for(datetime(2025, 3, 10, 12, 30, 15, tzinfo=timezone.utc))
    assert w.start == datetime(2025, 3, 10, 0, 0, 0, tzinfo=timezone.utc)
    assert w.end == datetime(2025, 3, 10, 23, 59, 59, tzinfo=timezone.utc)


def test_window_at_exact_midnight_is_new_day():
    w = window_for(datetime(2025, 3, 11, 0, 0, 0, tzinfo=timezone.utc))
    assert w.start == datetime(2025, 3, 11, 0, 0, 0, tzinfo=timezone.utc)


def test_window_end_is_inclusive():
    end = datetime(2025, 3, 10, 23, 59, 59, tzinfo=timezone.utc)
    w = window_for(end)
    assert w.end == end
    assert w.contains(end)
    assert w.contains(end + timedelta(microseconds=500000))
    assert not w.contains(end + timedelta(seconds=1))


def test_naive_datetime_treated_as_utc():
    w = window_for(datetime(2025, 3, 10, 23, 0, 0))
    assert w.start.tzinfo == timezone.utc
    assert w.start.date().isoformat() == "2025-03-10"


def test_other_timezones_converted_to_utc_day():
    # 2025-03-11 01:00 at UTC+5 is 2025-03-10 20:00 UTC
    plus_five = timezone(timedelta(hours=5))
    w = window_for(datetime(2025, 3, 11, 1, 0, 0, tzinfo=plus_five))
    assert w.start == datetime(2025, 3, 10, 0, 0, 0, tzinfo=timezone.utc)


def test_window_handles_year_and_leap_day_boundaries():
    assert window_for(datetime(2024, 12, 31, 23, 59, 59, tzinfo=timezone.utc)).start.year == 2024
    leap = window_for(datetime(2024, 2, 29, 8, 0, tzinfo=timezone.utc))
    assert leap.end == datetime(2024, 2, 29, 23, 59, 59, tzinfo=timezone.utc)


def test_window_is_deterministic():
    now = datetime(2025, 3, 10, 5, 0, tzinfo=timezone.utc)
    assert window_for(now) == window_for(now)
