"""Badge catalog, predicates and awarding."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from tenk.models.activity_feed import EVENT_BADGE, ActivityFeedItem
from tenk.models.badge import Badge, UserBadge
from tenk.models.challenge import Challenge
from tenk.services.activities import create_activity
from tenk.services.badges import (
    BADGES,
    BADGES_BY_SLUG,
    UserStats,
    build_user_stats,
    check_and_award_badges,
    evaluate_badges,
    get_earned_slugs,
    sync_badge_catalog,
)


def _slugs(defs) -> set[str]:
    return {d.slug for d in defs}


def test_badge_slugs_are_unique():
    assert len(BADGES_BY_SLUG) == len(BADGES)


def test_empty_stats_earn_nothing():
    assert evaluate_badges(UserStats(), set()) == []


def test_first_activity_and_already_earned():
    stats = UserStats(total_activities=1, total_distance_km=Decimal("3"))
    assert _slugs(evaluate_badges(stats, set())) == {"first_activity"}
    assert evaluate_badges(stats, {"first_activity"}) == []


def test_distance_badges_are_cumulative():
    stats = UserStats(total_activities=12, total_distance_km=Decimal("100"))
    earned = _slugs(evaluate_badges(stats, set()))
    assert {"10k_club", "25k_warrior", "distance_50", "distance_100"} <= earned
    assert "distance_250" not in earned


def test_streak_badges():
    earned = _slugs(evaluate_badges(UserStats(current_streak=5), set()))
    assert {"streak_2", "streak_3", "streak_5"} <= earned
    assert "streak_8" not in earned


def test_overachiever_needs_one_and_a_half_times_target():
    target = Decimal("10")
    assert "overachiever" in _slugs(
        evaluate_badges(UserStats(weekly_distance_km=Decimal("15"), weekly_target_km=target), set())
    )
    assert "overachiever" not in _slugs(
        evaluate_badges(UserStats(weekly_distance_km=Decimal("14.99"), weekly_target_km=target), set())
    )


def test_weekly_pattern_badges():
    stats = UserStats(
        activity_types_this_week={"run", "walk", "jog"},
        active_days_this_week=5,
        weekly_target_km=Decimal("10"),
        early_distance_km=Decimal("10"),
    )
    earned = _slugs(evaluate_badges(stats, set()))
    assert {"triple_threat", "consistent", "early_bird"} <= earned
    assert "perfect_week" not in earned


def test_photo_finish_and_comeback_need_met_week():
    assert "photo_finish" not in _slugs(evaluate_badges(UserStats(is_last_day_of_week=True), set()))
    assert "photo_finish" in _slugs(
        evaluate_badges(UserStats(is_last_day_of_week=True, met_target_this_week=True), set())
    )
    assert "comeback_kid" not in _slugs(evaluate_badges(UserStats(missed_last_week=True), set()))
    assert "comeback_kid" in _slugs(
        evaluate_badges(UserStats(missed_last_week=True, met_target_this_week=True), set())
    )


@pytest.mark.asyncio
async def test_catalog_is_synced_once(session):
    count = (await session.execute(select(func.count(Badge.id)))).scalar_one()
    assert count == len(BADGES)
    assert await sync_badge_catalog(session) == 0


@pytest.fixture
def fresh_challenge():
    return Challenge(
        name="Fresh",
        start_date=date(2026, 10, 19),
        week_start_day=1,
        weekly_distance_target_km=Decimal("10"),
    )


@pytest.mark.asyncio
async def test_award_once_and_feed_event(session, runner, fresh_challenge):
    session.add(fresh_challenge)
    await session.flush()
    today = date(2026, 10, 19)
    await create_activity(
        session,
        runner.id,
        fresh_challenge,
        activity_date=today,
        distance_km=Decimal("10.5"),
        activity_type="run",
        today=today,
    )
    earned = await get_earned_slugs(session, runner.id)
    assert {"first_activity", "first_week", "10k_club", "early_bird"} <= earned
    assert "comeback_kid" not in earned

    assert await check_and_award_badges(session, runner.id, fresh_challenge, today) == []
    rows = (
        await session.execute(select(func.count(UserBadge.id)).where(UserBadge.user_id == runner.id))
    ).scalar_one()
    assert rows == len(earned)

    r = await session.execute(
        select(ActivityFeedItem).where(ActivityFeedItem.event_type == EVENT_BADGE)
    )
    events = r.scalars().all()
    assert len(events) == len(earned)
    assert {e.event_data["badge_slug"] for e in events} == earned
    first = next(e for e in events if e.event_data["badge_slug"] == "first_activity")
    assert first.event_data["badge_name"] == "First Steps"


@pytest.mark.asyncio
async def test_stats_snapshot(session, runner, fresh_challenge):
    session.add(fresh_challenge)
    await session.flush()
    for day, km, kind in (
        (date(2026, 10, 19), "3", "run"),
        (date(2026, 10, 21), "4", "walk"),
        (date(2026, 10, 25), "4", "jog"),
    ):
        await create_activity(
            session,
            runner.id,
            fresh_challenge,
            activity_date=day,
            distance_km=Decimal(km),
            activity_type=kind,
            today=date(2026, 10, 25),
        )
    stats = await build_user_stats(session, runner.id, fresh_challenge, date(2026, 10, 25))
    assert stats.total_activities == 3
    assert stats.total_distance_km == Decimal("11")
    assert stats.weekly_distance_km == Decimal("11")
    assert stats.early_distance_km == Decimal("7")
    assert stats.activity_types_this_week == {"run", "walk", "jog"}
    assert stats.active_days_this_week == 3
    assert stats.is_last_day_of_week is True
    assert stats.met_target_this_week is True
    assert stats.missed_last_week is False
    assert stats.current_streak == 1

    earned = await get_earned_slugs(session, runner.id)
    assert {"triple_threat", "photo_finish"} <= earned
    assert "early_bird" not in earned
