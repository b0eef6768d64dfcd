"""Team feed, cheers and personal bests; the post-activity hook that drives them."""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenk.models.activity import Activity
from tenk.models.activity_cheer import ActivityCheer
from tenk.models.activity_feed import (
    EVENT_ACTIVITY,
    EVENT_PB,
    EVENT_STREAK,
    ActivityFeedItem,
)
from tenk.models.badge import Badge
from tenk.models.challenge import Challenge
from tenk.models.personal_best import (
    RECORD_FASTEST_PACE,
    RECORD_LONGEST_ACTIVITY,
    RECORD_LONGEST_STREAK,
    RECORD_MOST_WEEKLY_KM,
    PersonalBest,
)
from tenk.models.user import User
from tenk.services.badges import check_and_award_badges
from tenk.services.challenge import get_user_weekly_results
from tenk.services.week import calculate_streak, week_range
from tenk.services.weekly import ZERO, sum_week_distance, to_decimal

logger = logging.getLogger(__name__)

MIN_STREAK_FOR_FEED = 2


def add_feed_event(
    session: AsyncSession,
    challenge_id: int,
    user_id: int,
    event_type: str,
    event_data: dict,
) -> ActivityFeedItem:
    item = ActivityFeedItem(
        challenge_id=challenge_id,
        user_id=user_id,
        event_type=event_type,
        event_data=event_data,
    )
    session.add(item)
    return item


async def get_activity_feed(
    session: AsyncSession,
    challenge_id: int,
    limit: int = 50,
    offset: int = 0,
) -> list[dict]:
    r = await session.execute(
        select(ActivityFeedItem, User.name, User.email)
        .join(User, User.id == ActivityFeedItem.user_id)
        .where(ActivityFeedItem.challenge_id == challenge_id)
        .order_by(ActivityFeedItem.created_at.desc(), ActivityFeedItem.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return [
        {
            "id": item.id,
            "user_id": item.user_id,
            "user_name": name or email or "Anon",
            "event_type": item.event_type,
            "event_data": item.event_data or {},
            "created_at": item.created_at.isoformat() if item.created_at else None,
        }
        for item, name, email in r.all()
    ]


# ---------- Cheers ----------

async def add_cheer(session: AsyncSession, activity_id: int, user_id: int, emoji: str | None) -> ActivityCheer:
    """One cheer per (activity, user); cheering again replaces the emoji."""
    r = await session.execute(
        select(ActivityCheer).where(ActivityCheer.activity_id == activity_id, ActivityCheer.user_id == user_id)
    )
    cheer = r.scalar_one_or_none()
    if cheer is None:
        cheer = ActivityCheer(activity_id=activity_id, user_id=user_id, emoji=emoji)
        session.add(cheer)
    else:
        cheer.emoji = emoji
    await session.flush()
    return cheer


async def remove_cheer(session: AsyncSession, activity_id: int, user_id: int) -> bool:
    result = await session.execute(
        delete(ActivityCheer).where(ActivityCheer.activity_id == activity_id, ActivityCheer.user_id == user_id)
    )
    return (result.rowcount or 0) > 0


async def get_activity_cheers(session: AsyncSession, activity_id: int) -> list[dict]:
    r = await session.execute(
        select(ActivityCheer, User.name, User.email)
        .join(User, User.id == ActivityCheer.user_id)
        .where(ActivityCheer.activity_id == activity_id)
        .order_by(ActivityCheer.created_at.asc(), ActivityCheer.id.asc())
    )
    return [
        {"user_id": c.user_id, "user_name": name or email or "Anon", "emoji": c.emoji}
        for c, name, email in r.all()
    ]


async def get_cheer_counts(session: AsyncSession, activity_ids: list[int]) -> dict[int, dict]:
    """Count and distinct emojis per activity; every requested id is present."""
    counts: dict[int, dict] = {aid: {"count": 0, "emojis": []} for aid in activity_ids}
    if not activity_ids:
        return counts
    r = await session.execute(
        select(ActivityCheer.activity_id, ActivityCheer.emoji)
        .where(ActivityCheer.activity_id.in_(activity_ids))
        .order_by(ActivityCheer.id.asc())
    )
    for activity_id, emoji in r.all():
        entry = counts[activity_id]
        entry["count"] += 1
        if emoji and emoji not in entry["emojis"]:
            entry["emojis"].append(emoji)
    return counts


# ---------- Personal bests ----------

async def update_personal_best(
    session: AsyncSession,
    user_id: int,
    challenge_id: int,
    record_type: str,
    value: Decimal,
    activity_id: int | None = None,
) -> bool:
    """Store ``value`` if strictly greater than the current best. Returns True when stored."""
    value = to_decimal(value).quantize(Decimal("0.01"))
    r = await session.execute(
        select(PersonalBest).where(
            PersonalBest.user_id == user_id,
            PersonalBest.challenge_id == challenge_id,
            PersonalBest.record_type == record_type,
        )
    )
    existing = r.scalar_one_or_none()
    if existing is not None and to_decimal(existing.value) >= value:
        return False

    if existing is None:
        session.add(
            PersonalBest(
                user_id=user_id,
                challenge_id=challenge_id,
                record_type=record_type,
                value=value,
                activity_id=activity_id,
            )
        )
    else:
        old_value = to_decimal(existing.value)
        existing.value = value
        existing.activity_id = activity_id
        existing.achieved_at = datetime.now(timezone.utc)
        add_feed_event(
            session,
            challenge_id,
            user_id,
            EVENT_PB,
            {"record_type": record_type, "old_value": float(old_value), "new_value": float(value)},
        )
        if record_type == RECORD_LONGEST_STREAK and value >= MIN_STREAK_FOR_FEED:
            add_feed_event(session, challenge_id, user_id, EVENT_STREAK, {"weeks": int(value)})
    await session.flush()
    logger.debug("PB: user_id=%s %s=%s", user_id, record_type, value)
    return True


async def get_personal_bests(session: AsyncSession, user_id: int, challenge_id: int) -> list[PersonalBest]:
    r = await session.execute(
        select(PersonalBest)
        .where(PersonalBest.user_id == user_id, PersonalBest.challenge_id == challenge_id)
        .order_by(PersonalBest.record_type.asc())
    )
    return list(r.scalars().all())


def average_speed_kmh(distance_km, duration_minutes: int | None) -> Decimal | None:
    if not duration_minutes or duration_minutes <= 0:
        return None
    return to_decimal(distance_km) * 60 / Decimal(duration_minutes)


async def update_personal_bests_for_activity(
    session: AsyncSession,
    activity: Activity,
    challenge: Challenge,
    today: date | None = None,
) -> list[str]:
    """Check all record types touched by ``activity``; returns the record types improved."""
    improved: list[str] = []
    if await update_personal_best(
        session, activity.user_id, challenge.id, RECORD_LONGEST_ACTIVITY, activity.distance_km, activity.id
    ):
        improved.append(RECORD_LONGEST_ACTIVITY)

    speed = average_speed_kmh(activity.distance_km, activity.duration_minutes)
    if speed is not None and await update_personal_best(
        session, activity.user_id, challenge.id, RECORD_FASTEST_PACE, speed, activity.id
    ):
        improved.append(RECORD_FASTEST_PACE)

    week = week_range(activity.activity_date, challenge.week_start_day)
    week_km = await sum_week_distance(session, activity.user_id, challenge.id, week.start, week.end)
    if week_km > ZERO and await update_personal_best(
        session, activity.user_id, challenge.id, RECORD_MOST_WEEKLY_KM, week_km
    ):
        improved.append(RECORD_MOST_WEEKLY_KM)

    weeks = await get_user_weekly_results(session, activity.user_id, challenge.id, limit=None)
    streak = calculate_streak(weeks, challenge.start_date, challenge.week_start_day, today)
    if streak > 0 and await update_personal_best(
        session, activity.user_id, challenge.id, RECORD_LONGEST_STREAK, Decimal(streak)
    ):
        improved.append(RECORD_LONGEST_STREAK)
    return improved


async def on_activity_logged(
    session: AsyncSession,
    activity: Activity,
    challenge: Challenge,
    today: date | None = None,
) -> list[Badge]:
    """Feed event, personal bests, then badges. Call after the weekly result is recomputed."""
    add_feed_event(
        session,
        challenge.id,
        activity.user_id,
        EVENT_ACTIVITY,
        {
            "activity_id": activity.id,
            "distance_km": float(activity.distance_km),
            "activity_type": activity.activity_type,
            "duration_minutes": activity.duration_minutes,
            "source": activity.source,
        },
    )
    await session.flush()
    await update_personal_bests_for_activity(session, activity, challenge, today)
    return await check_and_award_badges(session, activity.user_id, challenge, today)

