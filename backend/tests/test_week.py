"""Unit tests for week windows and streak calculation."""

from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from freezegun import freeze_time

from tenk.services.week import (
    WeekRange,
    calculate_streak,
    current_week_range,
    format_week_label,
    today_utc,
    week_range,
)

MONDAY = 1
SUNDAY = 0


def test_monday_start_week():
    week = week_range(date(2026, 10, 21), MONDAY)  # Wednesday
    assert week == WeekRange(date(2026, 10, 19), date(2026, 10, 25))


def test_sunday_belongs_to_previous_monday_week():
    week = week_range(date(2026, 10, 25), MONDAY)
    assert week.start == date(2026, 10, 19)
    assert week.end == date(2026, 10, 25)


def test_sunday_starts_its_own_week_when_week_starts_sunday():
    week = week_range(date(2026, 10, 25), SUNDAY)
    assert week.start == date(2026, 10, 25)
    assert week.end == date(2026, 10, 31)


def test_saturday_is_last_day_of_sunday_week():
    week = week_range(date(2026, 10, 24), SUNDAY)
    assert week.start == date(2026, 10, 18)
    assert week.end == date(2026, 10, 24)


def test_week_range_holds_for_every_start_day():
    """Window is 7 days, contains the day and starts on the configured weekday."""
    first = date(2026, 1, 1)
    for offset in range(60):
        day = first + timedelta(days=offset)
        for start_day in range(7):
            week = week_range(day, start_day)
            assert week.contains(day)
            assert week.end - week.start == timedelta(days=6)
            assert week.start.isoweekday() % 7 == start_day
            assert week_range(week.start, start_day) == week
            assert week_range(week.end, start_day) == week


@pytest.mark.parametrize("bad", [-1, 7, 10])
def test_week_start_day_out_of_range(bad):
    with pytest.raises(ValueError):
        week_range(date(2026, 10, 19), bad)


def test_aware_datetime_uses_utc_calendar_date():
    # 01:00 at +05:00 is still Sunday 20:00 UTC
    moment = datetime(2026, 10, 19, 1, 0, tzinfo=timezone(timedelta(hours=5)))
    assert week_range(moment, MONDAY).start == date(2026, 10, 12)


def test_format_week_label():
    week = WeekRange(date(2026, 10, 19), date(2026, 10, 25))
    assert format_week_label(week) == "2026-10-19 → 2026-10-25"


@freeze_time("2026-10-21 23:30:00")
def test_current_week_uses_utc_today():
    assert today_utc() == date(2026, 10, 21)
    assert current_week_range(MONDAY).start == date(2026, 10, 19)
    assert current_week_range(SUNDAY).start == date(2026, 10, 18)


def _week(start: date, met: bool):
    return SimpleNamespace(week_start_date=start, met_target=met)


CHALLENGE_START = date(2026, 9, 28)
TODAY = date(2026, 10, 21)


def test_streak_counts_back_from_current_week():
    rows = [
        _week(date(2026, 10, 19), True),
        _week(date(2026, 10, 12), True),
        _week(date(2026, 10, 5), False),
        _week(date(2026, 9, 28), True),
    ]
    assert calculate_streak(rows, CHALLENGE_START, MONDAY, TODAY) == 2


def test_streak_is_zero_until_current_week_is_met():
    rows = [
        _week(date(2026, 10, 12), True),
        _week(date(2026, 10, 5), True),
    ]
    assert calculate_streak(rows, CHALLENGE_START, MONDAY, TODAY) == 0
    rows.append(_week(date(2026, 10, 19), False))
    assert calculate_streak(rows, CHALLENGE_START, MONDAY, TODAY) == 0


def test_streak_missing_week_breaks_chain():
    rows = [
        _week(date(2026, 10, 19), True),
        _week(date(2026, 10, 5), True),
    ]
    assert calculate_streak(rows, CHALLENGE_START, MONDAY, TODAY) == 1


def test_streak_stops_at_challenge_start():
    rows = [
        _week(date(2026, 10, 19), True),
        _week(date(2026, 10, 12), True),
        _week(date(2026, 10, 5), True),
    ]
    assert calculate_streak(rows, date(2026, 10, 12), MONDAY, TODAY) == 2
    assert calculate_streak(rows, CHALLENGE_START, MONDAY, TODAY) == 3


def test_streak_accepts_mappings_with_string_dates():
    rows = [
        {"week_start_date": "2026-10-18", "met_target": True},
        {"week_start_date": "2026-10-11", "met_target": True},
    ]
    assert calculate_streak(rows, date(2026, 10, 4), SUNDAY, TODAY) == 2


def test_streak_empty():
    assert calculate_streak([], CHALLENGE_START, MONDAY, TODAY) == 0


def test_in_progress_current_week_counts_toward_streak():
    # Wednesday of the current week; the week is not over but already met
    rows = [
        _week(date(2026, 10, 19), True),
        _week(date(2026, 10, 12), True),
        _week(date(2026, 10, 5), True),
    ]
    assert calculate_streak(rows, CHALLENGE_START, MONDAY, TODAY) == 3
    # the same history seen a week earlier stops at the then-current week
    assert calculate_streak(rows[1:], CHALLENGE_START, MONDAY, date(2026, 10, 14)) == 2
