"""
Weekly rollup: sum a user's activity distance for one week window and upsert
the weekly_results row keyed by (user, challenge, week_start_date).

Admin overrides freeze met_target; excused weeks carry rollover km that is
added to the target of later weeks until a later week covers it.
"""
import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tenk.models.activity import Activity
from tenk.models.challenge import Challenge
from tenk.models.weekly_result import WeeklyResult
from tenk.services.week import week_range

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


async def sum_week_distance(
    session: AsyncSession,
    user_id: int,
    challenge_id: int,
    start: date,
    end: date,
) -> Decimal:
    r = await session.execute(
        select(Activity.distance_km).where(
            Activity.user_id == user_id,
            Activity.challenge_id == challenge_id,
            Activity.activity_date >= start,
            Activity.activity_date <= end,
        )
    )
    return sum((to_decimal(v) for v in r.scalars().all()), ZERO)


async def recompute_weekly_result(
    session: AsyncSession,
    user_id: int,
    challenge: Challenge,
    activity_date: date,
) -> WeeklyResult:
    """Recompute and upsert the weekly result for the week containing ``activity_date``."""
    week = week_range(activity_date, challenge.week_start_day)
    total = await sum_week_distance(session, user_id, challenge.id, week.start, week.end)

    r = await session.execute(
        select(WeeklyResult)
        .where(
            WeeklyResult.user_id == user_id,
            WeeklyResult.challenge_id == challenge.id,
            WeeklyResult.week_start_date == week.start,
        )
        .with_for_update()
    )
    existing = r.scalar_one_or_none()

    r = await session.execute(
        select(WeeklyResult).where(
            WeeklyResult.user_id == user_id,
            WeeklyResult.challenge_id == challenge.id,
            WeeklyResult.excused.is_(True),
            WeeklyResult.week_start_date < week.start,
            WeeklyResult.rollover_km > 0,
        )
    )
    excused_weeks = r.scalars().all()
    rollover = sum((to_decimal(w.rollover_km) for w in excused_weeks), ZERO)
    target = to_decimal(challenge.weekly_distance_target_km) + rollover

    if existing is not None and existing.overridden_by_admin:
        met_target = existing.met_target
    else:
        met_target = total >= target

    if existing is None:
        existing = WeeklyResult(
            user_id=user_id,
            challenge_id=challenge.id,
            week_start_date=week.start,
            week_end_date=week.end,
            total_distance_km=total,
            met_target=met_target,
            overridden_by_admin=False,
            excused=False,
            rollover_km=ZERO,
        )
        session.add(existing)
    else:
        existing.week_end_date = week.end
        existing.total_distance_km = total
        existing.met_target = met_target
    await session.flush()

    if excused_weeks and total >= target:
        await session.execute(
            update(WeeklyResult)
            .where(WeeklyResult.id.in_([w.id for w in excused_weeks]))
            .values(rollover_km=ZERO)
        )
        logger.info(
            "Weekly: user_id=%s covered %s km rollover in week %s; cleared %s excused week(s)",
            user_id, rollover, week.start, len(excused_weeks),
        )

    logger.debug(
        "Weekly: user_id=%s week=%s total=%s target=%s met=%s",
        user_id, week.start, total, target, met_target,
    )
    return existing


async def recompute_for_dates(
    session: AsyncSession,
    user_id: int,
    challenge: Challenge,
    *dates: date | None,
) -> list[WeeklyResult]:
    """Recompute every distinct week touched by ``dates`` (e.g. before and after an edit)."""
    seen: set[date] = set()
    results: list[WeeklyResult] = []
    for d in dates:
        if d is None:
            continue
        start = week_range(d, challenge.week_start_day).start
        if start in seen:
            continue
        seen.add(start)
        results.append(await recompute_weekly_result(session, user_id, challenge, d))
    return results
