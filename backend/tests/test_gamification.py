"""Personal bests, feed events and cheers."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from tenk.models.activity_feed import EVENT_ACTIVITY, EVENT_PB, EVENT_STREAK, ActivityFeedItem
from tenk.models.challenge import Challenge
from tenk.models.personal_best import (
    RECORD_FASTEST_PACE,
    RECORD_LONGEST_ACTIVITY,
    RECORD_LONGEST_STREAK,
    RECORD_MOST_WEEKLY_KM,
)
from tenk.models.user import User
from tenk.services.activities import create_activity
from tenk.services.gamification import (
    add_cheer,
    average_speed_kmh,
    get_activity_cheers,
    get_activity_feed,
    get_cheer_counts,
    get_personal_bests,
    remove_cheer,
    update_personal_best,
)


@pytest.fixture
def fresh_challenge():
    return Challenge(
        name="Fresh",
        start_date=date(2026, 10, 19),
        week_start_day=1,
        weekly_distance_target_km=Decimal("10"),
    )


async def _events(session, event_type: str) -> list[ActivityFeedItem]:
    r = await session.execute(
        select(ActivityFeedItem).where(ActivityFeedItem.event_type == event_type).order_by(ActivityFeedItem.id)
    )
    return list(r.scalars().all())


async def _bests(session, user_id, challenge_id) -> dict[str, float]:
    return {pb.record_type: float(pb.value) for pb in await get_personal_bests(session, user_id, challenge_id)}


def test_average_speed():
    assert average_speed_kmh(Decimal("5"), 30) == Decimal("10")
    assert average_speed_kmh(Decimal("5"), None) is None
    assert average_speed_kmh(Decimal("5"), 0) is None


@pytest.mark.asyncio
async def test_first_record_is_silent_then_beaten_records_post_event(session, challenge, runner):
    assert await update_personal_best(session, runner.id, challenge.id, RECORD_LONGEST_ACTIVITY, Decimal("5"))
    assert await _events(session, EVENT_PB) == []

    assert not await update_personal_best(session, runner.id, challenge.id, RECORD_LONGEST_ACTIVITY, Decimal("5"))
    assert not await update_personal_best(session, runner.id, challenge.id, RECORD_LONGEST_ACTIVITY, Decimal("4"))

    assert await update_personal_best(session, runner.id, challenge.id, RECORD_LONGEST_ACTIVITY, Decimal("8.5"))
    events = await _events(session, EVENT_PB)
    assert len(events) == 1
    assert events[0].event_data == {"record_type": RECORD_LONGEST_ACTIVITY, "old_value": 5.0, "new_value": 8.5}


@pytest.mark.asyncio
async def test_activity_updates_all_records(session, runner, fresh_challenge):
    session.add(fresh_challenge)
    await session.flush()
    await create_activity(
        session,
        runner.id,
        fresh_challenge,
        activity_date=date(2026, 10, 19),
        distance_km=Decimal("5"),
        duration_minutes=30,
        activity_type="run",
        today=date(2026, 10, 19),
    )
    await create_activity(
        session,
        runner.id,
        fresh_challenge,
        activity_date=date(2026, 10, 20),
        distance_km=Decimal("6"),
        duration_minutes=60,
        activity_type="walk",
        today=date(2026, 10, 20),
    )
    bests = await _bests(session, runner.id, fresh_challenge.id)
    assert bests[RECORD_LONGEST_ACTIVITY] == 6.0
    assert bests[RECORD_FASTEST_PACE] == 10.0
    assert bests[RECORD_MOST_WEEKLY_KM] == 11.0
    assert bests[RECORD_LONGEST_STREAK] == 1.0

    activity_events = await _events(session, EVENT_ACTIVITY)
    assert [e.event_data["distance_km"] for e in activity_events] == [5.0, 6.0]


@pytest.mark.asyncio
async def test_second_met_week_posts_streak_event(session, runner, fresh_challenge):
    session.add(fresh_challenge)
    await session.flush()
    for day in (date(2026, 10, 19), date(2026, 10, 26)):
        await create_activity(
            session,
            runner.id,
            fresh_challenge,
            activity_date=day,
            distance_km=Decimal("10"),
            activity_type="run",
            today=day,
        )
    streak_events = await _events(session, EVENT_STREAK)
    assert [e.event_data for e in streak_events] == [{"weeks": 2}]
    bests = await _bests(session, runner.id, fresh_challenge.id)
    assert bests[RECORD_LONGEST_STREAK] == 2.0


@pytest.mark.asyncio
async def test_cheers_one_per_user_and_counts(session, challenge, runner):
    fan = User(email="fan@test.com", name="Fan")
    other_fan = User(email="fan2@test.com")
    session.add_all([fan, other_fan])
    await session.flush()
    activity = await create_activity(
        session,
        runner.id,
        challenge,
        activity_date=date(2026, 10, 20),
        distance_km=Decimal("4"),
        activity_type="jog",
        today=date(2026, 10, 20),
    )

    await add_cheer(session, activity.id, fan.id, "🔥")
    await add_cheer(session, activity.id, fan.id, "👏")
    await add_cheer(session, activity.id, other_fan.id, "👏")

    cheers = await get_activity_cheers(session, activity.id)
    assert [(c["user_name"], c["emoji"]) for c in cheers] == [("Fan", "👏"), ("fan2@test.com", "👏")]

    counts = await get_cheer_counts(session, [activity.id, 999])
    assert counts[activity.id] == {"count": 2, "emojis": ["👏"]}
    assert counts[999] == {"count": 0, "emojis": []}

    assert await remove_cheer(session, activity.id, fan.id) is True
    assert await remove_cheer(session, activity.id, fan.id) is False
    assert (await get_cheer_counts(session, [activity.id]))[activity.id]["count"] == 1


@pytest.mark.asyncio
async def test_feed_newest_first_with_user_name(session, challenge, runner):
    for km in ("2", "3"):
        await create_activity(
            session,
            runner.id,
            challenge,
            activity_date=date(2026, 10, 20),
            distance_km=Decimal(km),
            activity_type="run",
            today=date(2026, 10, 20),
        )
    feed = await get_activity_feed(session, challenge.id, limit=100)
    assert feed
    assert all(item["user_name"] == "Runner" for item in feed)
    activity_items = [i for i in feed if i["event_type"] == EVENT_ACTIVITY]
    assert [i["event_data"]["distance_km"] for i in activity_items] == [3.0, 2.0]
    page = await get_activity_feed(session, challenge.id, limit=1, offset=0)
    assert len(page) == 1
