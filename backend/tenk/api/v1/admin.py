"""Admin: user activation and weekly-result management (override, excuse, rollover)."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenk.api.deps import get_challenge, require_admin
from tenk.db.session import get_db
from tenk.models.challenge import Challenge
from tenk.models.user import User
from tenk.models.weekly_result import WeeklyResult
from tenk.schemas.admin import (
    UserActiveUpdate,
    WeeklyResultCreate,
    WeeklyResultExcuse,
    WeeklyResultOverride,
)
from tenk.services.challenge import weekly_result_to_dict
from tenk.services.week import week_range
from tenk.services.weekly import ZERO, sum_week_distance, to_decimal

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


def _user_row(u: User) -> dict:
    return {"id": u.id, "email": u.email, "name": u.name, "role": u.role, "active": u.active}


async def _get_weekly_result(session: AsyncSession, result_id: int, challenge: Challenge) -> WeeklyResult:
    r = await session.execute(
        select(WeeklyResult).where(WeeklyResult.id == result_id, WeeklyResult.challenge_id == challenge.id)
    )
    row = r.scalar_one_or_none()
    if row is None:
        raise HTTPException(status_code=404, detail="Weekly result not found")
    return row


@router.get("/users", summary="List users")
async def list_users(
    session: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(require_admin)],
) -> list[dict]:
    r = await session.execute(select(User).order_by(User.created_at.asc(), User.id.asc()))
    return [_user_row(u) for u in r.scalars().all()]


@router.patch("/users/{user_id}/active", summary="Activate or deactivate a user")
async def set_user_active(
    session: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(require_admin)],
    user_id: int,
    body: UserActiveUpdate,
) -> dict:
    r = await session.execute(select(User).where(User.id == user_id))
    user = r.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    if user.id == admin.id and not body.active:
        raise HTTPException(status_code=400, detail="You cannot deactivate yourself")
    user.active = body.active
    await session.flush()
    logger.info("Admin: user_id=%s set active=%s for user_id=%s", admin.id, body.active, user.id)
    return _user_row(user)


@router.get("/weekly-results", summary="Weekly results for the active challenge")
async def list_weekly_results(
    session: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(require_admin)],
    challenge: Annotated[Challenge, Depends(get_challenge)],
    user_id: int | None = Query(None),
) -> list[dict]:
    q = select(WeeklyResult).where(WeeklyResult.challenge_id == challenge.id)
    if user_id is not None:
        q = q.where(WeeklyResult.user_id == user_id)
    r = await session.execute(q.order_by(WeeklyResult.week_start_date.desc(), WeeklyResult.user_id.asc()))
    return [weekly_result_to_dict(w) for w in r.scalars().all()]


@router.post("/weekly-results", status_code=201, summary="Create an empty weekly result for a user and week")
async def create_weekly_result(
    session: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(require_admin)],
    challenge: Annotated[Challenge, Depends(get_challenge)],
    body: WeeklyResultCreate,
) -> dict:
    if (await session.execute(select(User.id).where(User.id == body.user_id))).scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="User not found")
    week = week_range(body.week_date, challenge.week_start_day)
    r = await session.execute(
        select(WeeklyResult.id).where(
            WeeklyResult.user_id == body.user_id,
            WeeklyResult.challenge_id == challenge.id,
            WeeklyResult.week_start_date == week.start,
        )
    )
    if r.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail="Weekly result already exists for that week")
    row = WeeklyResult(
        user_id=body.user_id,
        challenge_id=challenge.id,
        week_start_date=week.start,
        week_end_date=week.end,
        total_distance_km=ZERO,
        met_target=False,
        overridden_by_admin=False,
        excused=False,
        rollover_km=ZERO,
    )
    session.add(row)
    await session.flush()
    return weekly_result_to_dict(row)


@router.patch("/weekly-results/{result_id}/override", summary="Set met_target by hand")
async def override_weekly_result(
    session: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(require_admin)],
    challenge: Annotated[Challenge, Depends(get_challenge)],
    result_id: int,
    body: WeeklyResultOverride,
) -> dict:
    """The override flag makes met_target authoritative for later recomputes."""
    row = await _get_weekly_result(session, result_id, challenge)
    row.met_target = body.met_target
    row.overridden_by_admin = True
    await session.flush()
    logger.info("Admin: user_id=%s overrode weekly result %s met_target=%s", admin.id, row.id, body.met_target)
    return weekly_result_to_dict(row)


@router.patch("/weekly-results/{result_id}/excuse", summary="Excuse or un-excuse a week")
async def excuse_weekly_result(
    session: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(require_admin)],
    challenge: Annotated[Challenge, Depends(get_challenge)],
    result_id: int,
    body: WeeklyResultExcuse,
) -> dict:
    """
    Excusing counts the week as met and carries the shortfall
    (target minus actual, never negative) into later weeks as rollover.
    Un-excusing drops the rollover and recomputes met_target from the total.
    """
    row = await _get_weekly_result(session, result_id, challenge)
    target = to_decimal(challenge.weekly_distance_target_km)
    if body.excused:
        actual = await sum_week_distance(session, row.user_id, challenge.id, row.week_start_date, row.week_end_date)
        row.excused = True
        row.rollover_km = max(ZERO, target - actual)
        row.met_target = True
        row.overridden_by_admin = True
    else:
        row.excused = False
        row.rollover_km = ZERO
        row.overridden_by_admin = False
        row.met_target = to_decimal(row.total_distance_km) >= target
    await session.flush()
    logger.info(
        "Admin: user_id=%s set excused=%s on weekly result %s (rollover=%s)",
        admin.id, body.excused, row.id, row.rollover_km,
    )
    return weekly_result_to_dict(row)


@router.post("/weekly-results/{result_id}/clear-rollover", summary="Drop the rollover carried by an excused week")
async def clear_rollover(
    session: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(require_admin)],
    challenge: Annotated[Challenge, Depends(get_challenge)],
    result_id: int,
) -> dict:
    row = await _get_weekly_result(session, result_id, challenge)
    row.rollover_km = ZERO
    await session.flush()
    return weekly_result_to_dict(row)
