"""
Week-window math and streak calculation.

Week start days use 0 = Sunday ... 6 = Saturday. All arithmetic is on UTC
calendar dates so the same input gives the same window on every host.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Mapping


@dataclass(frozen=True)
class WeekRange:
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def _as_utc_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def week_range(day: date | datetime, week_start_day: int) -> WeekRange:
    """Closed 7-day window [start, start + 6] containing ``day``."""
    if not 0 <= week_start_day <= 6:
        raise ValueError(f"week_start_day must be in 0..6, got {week_start_day}")
    d = _as_utc_date(day)
    # isoweekday: Monday=1 ... Sunday=7 -> % 7 gives Sunday=0
    distance = (d.isoweekday() % 7 - week_start_day + 7) % 7
    start = d - timedelta(days=distance)
    return WeekRange(start=start, end=start + timedelta(days=6))


def current_week_range(week_start_day: int, today: date | None = None) -> WeekRange:
    return week_range(today or today_utc(), week_start_day)


def format_week_label(week: WeekRange) -> str:
    return f"{week.start.isoformat()} → {week.end.isoformat()}"


def _met_by_week_start(weekly_results: Iterable) -> dict[date, bool]:
    weeks: dict[date, bool] = {}
    for row in weekly_results:
        if isinstance(row, Mapping):
            start, met = row["week_start_date"], row["met_target"]
        else:
            start, met = row.week_start_date, row.met_target
        if isinstance(start, str):
            start = date.fromisoformat(start[:10])
        weeks[start] = bool(met)
    return weeks


def calculate_streak(
    weekly_results: Iterable,
    challenge_start_date: date,
    week_start_day: int,
    today: date | None = None,
) -> int:
    """
    Consecutive met weeks ending at the current week, walking backwards.

    The current week counts as soon as its target is met, even while the week
    is still in progress. Rows may be ORM objects or mappings with
    ``week_start_date`` and ``met_target``.
    """
    weeks = _met_by_week_start(weekly_results)
    cursor = current_week_range(week_start_day, today).start
    streak = 0
    while cursor >= challenge_start_date:
        if not weeks.get(cursor):
            break
        streak += 1
        cursor -= timedelta(days=7)
    return streak
