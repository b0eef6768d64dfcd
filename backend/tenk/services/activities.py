"""Activity writes. Every mutation recomputes the weekly result of each week it touches."""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenk.models.activity import Activity
from tenk.models.challenge import Challenge
from tenk.services.gamification import on_activity_logged
from tenk.services.weekly import recompute_for_dates

logger = logging.getLogger(__name__)


async def get_activity(session: AsyncSession, activity_id: int) -> Activity | None:
    r = await session.execute(select(Activity).where(Activity.id == activity_id))
    return r.scalar_one_or_none()


async def create_activity(
    session: AsyncSession,
    user_id: int,
    challenge: Challenge,
    *,
    activity_date: date,
    distance_km: Decimal,
    activity_type: str,
    duration_minutes: int | None = None,
    proof_url: str | None = None,
    screenshot_url: str | None = None,
    source: str = "manual",
    strava_activity_id: int | None = None,
    today: date | None = None,
) -> Activity:
    """Insert, recompute the week, then run feed / personal-best / badge side effects."""
    activity = Activity(
        user_id=user_id,
        challenge_id=challenge.id,
        activity_date=activity_date,
        distance_km=distance_km,
        duration_minutes=duration_minutes,
        activity_type=activity_type,
        proof_url=proof_url,
        screenshot_url=screenshot_url,
        source=source,
        strava_activity_id=strava_activity_id,
    )
    session.add(activity)
    await session.flush()
    await recompute_for_dates(session, user_id, challenge, activity_date)
    await on_activity_logged(session, activity, challenge, today)
    logger.info(
        "Activity: user_id=%s logged %s km %s on %s (source=%s)",
        user_id, distance_km, activity_type, activity_date, source,
    )
    return activity


async def update_activity(
    session: AsyncSession,
    activity: Activity,
    challenge: Challenge,
    changes: dict,
) -> Activity:
    """Apply ``changes``; recomputes both the vacated and the new week when the date moves."""
    old_date = activity.activity_date
    for key, value in changes.items():
        setattr(activity, key, value)
    await session.flush()
    await recompute_for_dates(session, activity.user_id, challenge, old_date, activity.activity_date)
    return activity


async def delete_activity(session: AsyncSession, activity: Activity, challenge: Challenge) -> None:
    """Delete and recompute the week the activity belonged to."""
    activity_id, user_id, old_date = activity.id, activity.user_id, activity.activity_date
    await session.delete(activity)
    await session.flush()
    await recompute_for_dates(session, user_id, challenge, old_date)
    logger.info("Activity: deleted id=%s user_id=%s date=%s", activity_id, user_id, old_date)
