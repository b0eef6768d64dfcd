"""Active challenge lookup and read models: dashboard, leaderboards, team progress."""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenk.config import settings
from tenk.models.activity import Activity
from tenk.models.challenge import Challenge
from tenk.models.user import User
from tenk.models.weekly_result import WeeklyResult
from tenk.services.week import (
    calculate_streak,
    current_week_range,
    format_week_label,
    today_utc,
)
from tenk.services.weekly import ZERO, to_decimal

logger = logging.getLogger(__name__)


async def get_active_challenge(session: AsyncSession, created_by: int | None = None) -> Challenge:
    """Earliest challenge by start date; created with configured defaults when none exists."""
    r = await session.execute(
        select(Challenge).order_by(Challenge.start_date.asc(), Challenge.id.asc()).limit(1)
    )
    challenge = r.scalar_one_or_none()
    if challenge is not None:
        return challenge
    challenge = Challenge(
        name=settings.default_challenge_name,
        description=settings.default_challenge_description,
        start_date=today_utc(),
        week_start_day=settings.default_week_start_day,
        weekly_distance_target_km=Decimal(str(settings.default_weekly_target_km)),
        created_by=created_by,
    )
    session.add(challenge)
    await session.flush()
    logger.info("Challenge: created default challenge id=%s", challenge.id)
    return challenge


def challenge_to_dict(challenge: Challenge) -> dict:
    return {
        "id": challenge.id,
        "name": challenge.name,
        "description": challenge.description,
        "start_date": challenge.start_date.isoformat(),
        "week_start_day": challenge.week_start_day,
        "weekly_distance_target_km": float(challenge.weekly_distance_target_km),
    }


def activity_to_dict(activity: Activity) -> dict:
    return {
        "id": activity.id,
        "user_id": activity.user_id,
        "challenge_id": activity.challenge_id,
        "activity_date": activity.activity_date.isoformat(),
        "distance_km": float(activity.distance_km),
        "duration_minutes": activity.duration_minutes,
        "activity_type": activity.activity_type,
        "proof_url": activity.proof_url,
        "screenshot_url": activity.screenshot_url,
        "source": activity.source,
        "strava_activity_id": activity.strava_activity_id,
    }


def weekly_result_to_dict(row: WeeklyResult) -> dict:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "week_start_date": row.week_start_date.isoformat(),
        "week_end_date": row.week_end_date.isoformat(),
        "total_distance_km": float(row.total_distance_km),
        "met_target": row.met_target,
        "overridden_by_admin": row.overridden_by_admin,
        "excused": row.excused,
        "rollover_km": float(row.rollover_km),
    }


async def get_user_weekly_results(
    session: AsyncSession,
    user_id: int,
    challenge_id: int,
    limit: int | None = 12,
) -> list[WeeklyResult]:
    q = (
        select(WeeklyResult)
        .where(WeeklyResult.user_id == user_id, WeeklyResult.challenge_id == challenge_id)
        .order_by(WeeklyResult.week_start_date.desc())
    )
    if limit is not None:
        q = q.limit(limit)
    r = await session.execute(q)
    return list(r.scalars().all())


async def get_user_activities(
    session: AsyncSession,
    user_id: int,
    challenge_id: int,
    limit: int = 10,
    offset: int = 0,
) -> list[Activity]:
    r = await session.execute(
        select(Activity)
        .where(Activity.user_id == user_id, Activity.challenge_id == challenge_id)
        .order_by(Activity.activity_date.desc(), Activity.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(r.scalars().all())


async def get_current_week_leaderboard(
    session: AsyncSession,
    challenge: Challenge,
    today: date | None = None,
) -> list[dict]:
    """Per-user distance totals for the current week window, highest first."""
    week = current_week_range(challenge.week_start_day, today)
    r = await session.execute(
        select(Activity.user_id, Activity.distance_km, User.name, User.email)
        .join(User, User.id == Activity.user_id)
        .where(
            Activity.challenge_id == challenge.id,
            Activity.activity_date >= week.start,
            Activity.activity_date <= week.end,
        )
    )
    totals: dict[int, dict] = {}
    for user_id, distance_km, name, email in r.all():
        entry = totals.setdefault(
            user_id,
            {"user_id": user_id, "total": ZERO, "name": name or email or "Anon", "email": email or ""},
        )
        entry["total"] += to_decimal(distance_km)
    target = to_decimal(challenge.weekly_distance_target_km)
    board = sorted(totals.values(), key=lambda e: e["total"], reverse=True)
    return [
        {
            "user_id": e["user_id"],
            "name": e["name"],
            "email": e["email"],
            "total_km": float(e["total"]),
            "met_target": e["total"] >= target,
        }
        for e in board
    ]


async def get_overall_stats(
    session: AsyncSession,
    challenge: Challenge,
    today: date | None = None,
) -> list[dict]:
    """Cumulative km, weeks met and current streak per user, from weekly results."""
    r = await session.execute(
        select(WeeklyResult, User.name, User.email)
        .join(User, User.id == WeeklyResult.user_id)
        .where(WeeklyResult.challenge_id == challenge.id)
    )
    per_user: dict[int, dict] = {}
    for row, name, email in r.all():
        entry = per_user.setdefault(
            row.user_id,
            {"user_id": row.user_id, "name": name or email or "Anon", "email": email or "", "total": ZERO, "weeks": []},
        )
        entry["total"] += to_decimal(row.total_distance_km)
        entry["weeks"].append(row)
    out = []
    for entry in per_user.values():
        weeks = entry["weeks"]
        out.append({
            "user_id": entry["user_id"],
            "name": entry["name"],
            "email": entry["email"],
            "total_km": float(entry["total"]),
            "weeks_met": sum(1 for w in weeks if w.met_target),
            "streak": calculate_streak(weeks, challenge.start_date, challenge.week_start_day, today),
        })
    out.sort(key=lambda e: (e["streak"], e["total_km"]), reverse=True)
    return out


async def get_team_weekly_progress(
    session: AsyncSession,
    challenge: Challenge,
    today: date | None = None,
) -> dict:
    week = current_week_range(challenge.week_start_day, today)
    r = await session.execute(
        select(Activity.user_id, Activity.distance_km).where(
            Activity.challenge_id == challenge.id,
            Activity.activity_date >= week.start,
            Activity.activity_date <= week.end,
        )
    )
    rows = r.all()
    total = sum((to_decimal(d) for _, d in rows), ZERO)
    return {
        "week_start": week.start.isoformat(),
        "week_end": week.end.isoformat(),
        "total_km": float(total),
        "participant_count": len({uid for uid, _ in rows}),
    }


async def get_user_dashboard(
    session: AsyncSession,
    user: User,
    challenge: Challenge,
    today: date | None = None,
) -> dict:
    week = current_week_range(challenge.week_start_day, today)
    r = await session.execute(
        select(Activity.distance_km).where(
            Activity.user_id == user.id,
            Activity.challenge_id == challenge.id,
            Activity.activity_date >= week.start,
            Activity.activity_date <= week.end,
        )
    )
    week_total = sum((to_decimal(d) for d in r.scalars().all()), ZERO)
    target = to_decimal(challenge.weekly_distance_target_km)
    all_weeks = await get_user_weekly_results(session, user.id, challenge.id, limit=None)
    recent = await get_user_activities(session, user.id, challenge.id, limit=10)
    return {
        "challenge": challenge_to_dict(challenge),
        "week": {
            "start": week.start.isoformat(),
            "end": week.end.isoformat(),
            "label": format_week_label(week),
        },
        "total_km": float(week_total),
        "target_km": float(target),
        "to_go_km": float(max(ZERO, target - week_total)),
        "met_target": week_total >= target,
        "streak": calculate_streak(all_weeks, challenge.start_date, challenge.week_start_day, today),
        "recent_activities": [activity_to_dict(a) for a in recent],
        "weekly_results": [weekly_result_to_dict(w) for w in all_weeks[:12]],
    }
