"""
Badge catalog and eligibility engine.

BADGES is the only place a badge is defined: slug, display metadata and the
predicate evaluated against a UserStats snapshot. The badges table is synced
from it at startup, so every catalog row has a predicate and vice versa.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tenk.models.activity import Activity
from tenk.models.activity_cheer import ActivityCheer
from tenk.models.activity_feed import EVENT_BADGE, ActivityFeedItem
from tenk.models.badge import Badge, UserBadge
from tenk.models.challenge import Challenge
from tenk.models.weekly_result import WeeklyResult
from tenk.services.week import calculate_streak, current_week_range, today_utc
from tenk.services.weekly import ZERO, to_decimal

logger = logging.getLogger(__name__)

# Days from week start (inclusive) that count as "early" for early_bird.
EARLY_BIRD_DAYS = 3


@dataclass
class UserStats:
    total_activities: int = 0
    total_distance_km: Decimal = ZERO
    current_streak: int = 0
    weeks_completed: int = 0
    cheers_given: int = 0
    cheers_received: int = 0
    weekly_distance_km: Decimal = ZERO
    weekly_target_km: Decimal = ZERO
    activity_types_this_week: set[str] = field(default_factory=set)
    active_days_this_week: int = 0
    early_distance_km: Decimal = ZERO
    is_last_day_of_week: bool = False
    missed_last_week: bool = False
    met_target_this_week: bool = False


@dataclass(frozen=True)
class BadgeDefinition:
    slug: str
    name: str
    icon: str
    description: str
    category: str
    predicate: Callable[[UserStats], bool]


BADGES: tuple[BadgeDefinition, ...] = (
    # Milestones
    BadgeDefinition("first_activity", "First Steps", "👟", "Log your first activity.", "milestone",
                    lambda s: s.total_activities >= 1),
    BadgeDefinition("first_week", "Week One Done", "✅", "Hit the weekly target for the first time.", "milestone",
                    lambda s: s.weeks_completed >= 1),
    # Distance
    BadgeDefinition("10k_club", "10K Club", "🔟", "Reach 10 km in total.", "distance",
                    lambda s: s.total_distance_km >= 10),
    BadgeDefinition("25k_warrior", "25K Warrior", "⚔️", "Reach 25 km in total.", "distance",
                    lambda s: s.total_distance_km >= 25),
    BadgeDefinition("distance_50", "Half Century", "🥉", "Reach 50 km in total.", "distance",
                    lambda s: s.total_distance_km >= 50),
    BadgeDefinition("distance_100", "Century", "🥈", "Reach 100 km in total.", "distance",
                    lambda s: s.total_distance_km >= 100),
    BadgeDefinition("distance_250", "Road Warrior", "🥇", "Reach 250 km in total.", "distance",
                    lambda s: s.total_distance_km >= 250),
    BadgeDefinition("500k_ultra", "Ultra", "🏔️", "Reach 500 km in total.", "distance",
                    lambda s: s.total_distance_km >= 500),
    # Streaks
    BadgeDefinition("streak_2", "Double Up", "🔥", "Meet the target 2 weeks in a row.", "streak",
                    lambda s: s.current_streak >= 2),
    BadgeDefinition("streak_3", "Hat Trick", "🔥", "Meet the target 3 weeks in a row.", "streak",
                    lambda s: s.current_streak >= 3),
    BadgeDefinition("streak_5", "High Five", "🖐️", "Meet the target 5 weeks in a row.", "streak",
                    lambda s: s.current_streak >= 5),
    BadgeDefinition("streak_8", "Unstoppable", "🚂", "Meet the target 8 weeks in a row.", "streak",
                    lambda s: s.current_streak >= 8),
    BadgeDefinition("streak_10", "Perfect Ten", "💎", "Meet the target 10 weeks in a row.", "streak",
                    lambda s: s.current_streak >= 10),
    BadgeDefinition("streak_12", "Quarter Master", "👑", "Meet the target 12 weeks in a row.", "streak",
                    lambda s: s.current_streak >= 12),
    # Social
    BadgeDefinition("team_player", "Team Player", "🤝", "Cheer 10 teammates' activities.", "social",
                    lambda s: s.cheers_given >= 10),
    BadgeDefinition("motivator", "Motivator", "📣", "Cheer 50 teammates' activities.", "social",
                    lambda s: s.cheers_given >= 50),
    BadgeDefinition("crowd_favorite", "Crowd Favorite", "🌟", "Receive 20 cheers.", "social",
                    lambda s: s.cheers_received >= 20),
    # Special
    BadgeDefinition("overachiever", "Overachiever", "🚀", "Log 150% of the weekly target in one week.", "special",
                    lambda s: s.weekly_target_km > 0 and s.weekly_distance_km >= s.weekly_target_km * Decimal("1.5")),
    BadgeDefinition("triple_threat", "Triple Threat", "🎯", "Log 3 different activity types in one week.", "special",
                    lambda s: len(s.activity_types_this_week) >= 3),
    BadgeDefinition("perfect_week", "Perfect Week", "📅", "Be active on all 7 days of a week.", "special",
                    lambda s: s.active_days_this_week >= 7),
    BadgeDefinition("consistent", "Consistent", "📈", "Be active on 5 different days of a week.", "special",
                    lambda s: s.active_days_this_week >= 5),
    BadgeDefinition("early_bird", "Early Bird", "🐦", "Reach the weekly target within the first 3 days.", "special",
                    lambda s: s.weekly_target_km > 0 and s.early_distance_km >= s.weekly_target_km),
    BadgeDefinition("photo_finish", "Photo Finish", "📸", "Hit the target on the last day of the week.", "special",
                    lambda s: s.is_last_day_of_week and s.met_target_this_week),
    BadgeDefinition("comeback_kid", "Comeback Kid", "💪", "Meet the target right after a missed week.", "special",
                    lambda s: s.missed_last_week and s.met_target_this_week),
)

BADGES_BY_SLUG: dict[str, BadgeDefinition] = {b.slug: b for b in BADGES}


def evaluate_badges(stats: UserStats, earned_slugs: set[str] | frozenset[str]) -> list[BadgeDefinition]:
    """Badges whose predicate holds and that are not earned yet. Pure; order follows BADGES."""
    return [b for b in BADGES if b.slug not in earned_slugs and b.predicate(stats)]


async def sync_badge_catalog(session: AsyncSession) -> int:
    """Insert missing catalog rows and refresh metadata of existing ones. Returns rows inserted."""
    r = await session.execute(select(Badge))
    existing = {b.slug: b for b in r.scalars().all()}
    inserted = 0
    for d in BADGES:
        row = existing.get(d.slug)
        if row is None:
            session.add(Badge(slug=d.slug, name=d.name, icon=d.icon, description=d.description, category=d.category))
            inserted += 1
            continue
        row.name = d.name
        row.icon = d.icon
        row.description = d.description
        row.category = d.category
    orphans = set(existing) - set(BADGES_BY_SLUG)
    if orphans:
        logger.warning("Badges: catalog rows without a definition are never awarded: %s", sorted(orphans))
    await session.flush()
    if inserted:
        logger.info("Badges: inserted %s catalog row(s)", inserted)
    return inserted


async def build_user_stats(
    session: AsyncSession,
    user_id: int,
    challenge: Challenge,
    today: date | None = None,
) -> UserStats:
    """Fresh snapshot of everything the badge predicates read."""
    today = today or today_utc()
    week = current_week_range(challenge.week_start_day, today)
    target = to_decimal(challenge.weekly_distance_target_km)

    r = await session.execute(
        select(Activity.activity_date, Activity.distance_km, Activity.activity_type).where(
            Activity.user_id == user_id,
            Activity.challenge_id == challenge.id,
        )
    )
    activities = r.all()

    r = await session.execute(
        select(WeeklyResult.week_start_date, WeeklyResult.week_end_date, WeeklyResult.met_target).where(
            WeeklyResult.user_id == user_id,
            WeeklyResult.challenge_id == challenge.id,
        )
    )
    weeks = [
        {"week_start_date": start, "week_end_date": end, "met_target": met}
        for start, end, met in r.all()
    ]

    cheers_given = (
        await session.execute(select(func.count(ActivityCheer.id)).where(ActivityCheer.user_id == user_id))
    ).scalar_one()
    cheers_received = (
        await session.execute(
            select(func.count(ActivityCheer.id))
            .join(Activity, Activity.id == ActivityCheer.activity_id)
            .where(Activity.user_id == user_id)
        )
    ).scalar_one()

    early_end = week.start + timedelta(days=EARLY_BIRD_DAYS - 1)
    this_week = [a for a in activities if week.contains(a.activity_date)]
    weekly_km = sum((to_decimal(a.distance_km) for a in this_week), ZERO)
    early_km = sum((to_decimal(a.distance_km) for a in this_week if a.activity_date <= early_end), ZERO)

    previous_start = week.start - timedelta(days=7)
    previous = next((w for w in weeks if w["week_start_date"] == previous_start), None)
    missed_last_week = (
        previous_start + timedelta(days=6) >= challenge.start_date
        and not (previous and previous["met_target"])
    )

    return UserStats(
        total_activities=len(activities),
        total_distance_km=sum((to_decimal(a.distance_km) for a in activities), ZERO),
        current_streak=calculate_streak(weeks, challenge.start_date, challenge.week_start_day, today),
        weeks_completed=sum(1 for w in weeks if w["met_target"]),
        cheers_given=cheers_given or 0,
        cheers_received=cheers_received or 0,
        weekly_distance_km=weekly_km,
        weekly_target_km=target,
        activity_types_this_week={a.activity_type for a in this_week},
        active_days_this_week=len({a.activity_date for a in this_week}),
        early_distance_km=early_km,
        is_last_day_of_week=today == week.end,
        missed_last_week=missed_last_week,
        met_target_this_week=weekly_km >= target,
    )


async def get_earned_slugs(session: AsyncSession, user_id: int) -> set[str]:
    r = await session.execute(
        select(Badge.slug).join(UserBadge, UserBadge.badge_id == Badge.id).where(UserBadge.user_id == user_id)
    )
    return set(r.scalars().all())


async def check_and_award_badges(
    session: AsyncSession,
    user_id: int,
    challenge: Challenge,
    today: date | None = None,
) -> list[Badge]:
    """
    Evaluate every badge for the user and record the new ones.

    Each new badge gets a UserBadge row and one "badge" feed event. Running it
    again without a stats change awards nothing; earned badges are never removed.
    """
    stats = await build_user_stats(session, user_id, challenge, today)
    earned = await get_earned_slugs(session, user_id)
    new_defs = evaluate_badges(stats, earned)
    if not new_defs:
        return []

    r = await session.execute(select(Badge).where(Badge.slug.in_([d.slug for d in new_defs])))
    catalog = {b.slug: b for b in r.scalars().all()}
    awarded: list[Badge] = []
    for d in new_defs:
        badge = catalog.get(d.slug)
        if badge is None:
            logger.warning("Badges: %s is defined but missing from the catalog table", d.slug)
            continue
        session.add(UserBadge(user_id=user_id, badge_id=badge.id))
        session.add(
            ActivityFeedItem(
                challenge_id=challenge.id,
                user_id=user_id,
                event_type=EVENT_BADGE,
                event_data={
                    "badge_id": badge.id,
                    "badge_slug": badge.slug,
                    "badge_name": badge.name,
                    "badge_icon": badge.icon,
                    "badge_description": badge.description,
                },
            )
        )
        awarded.append(badge)
    await session.flush()
    if awarded:
        logger.info("Badges: user_id=%s earned %s", user_id, [b.slug for b in awarded])
    return awarded


async def list_badges(session: AsyncSession) -> list[Badge]:
    r = await session.execute(select(Badge).order_by(Badge.category.asc(), Badge.id.asc()))
    return list(r.scalars().all())


async def list_user_badges(session: AsyncSession, user_id: int) -> list[UserBadge]:
    r = await session.execute(
        select(UserBadge)
        .options(selectinload(UserBadge.badge))
        .where(UserBadge.user_id == user_id)
        .order_by(UserBadge.earned_at.desc(), UserBadge.id.desc())
    )
    return list(r.scalars().all())


def badge_to_dict(badge: Badge) -> dict:
    return {
        "id": badge.id,
        "slug": badge.slug,
        "name": badge.name,
        "icon": badge.icon,
        "description": badge.description,
        "category": badge.category,
    }
