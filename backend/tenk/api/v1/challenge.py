"""Challenge read endpoints: challenge info, dashboard, leaderboards, weekly results, team progress."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tenk.api.deps import get_challenge, get_current_user
from tenk.db.session import get_db
from tenk.models.challenge import Challenge
from tenk.models.user import User
from tenk.services.challenge import (
    challenge_to_dict,
    get_current_week_leaderboard,
    get_overall_stats,
    get_team_weekly_progress,
    get_user_dashboard,
    get_user_weekly_results,
    weekly_result_to_dict,
)

router = APIRouter(prefix="/challenge", tags=["challenge"])


@router.get("", summary="Active challenge")
async def get_challenge_info(
    user: Annotated[User, Depends(get_current_user)],
    challenge: Annotated[Challenge, Depends(get_challenge)],
) -> dict:
    return challenge_to_dict(challenge)


@router.get("/dashboard", summary="Current week progress, streak and recent activity for the caller")
async def dashboard(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    challenge: Annotated[Challenge, Depends(get_challenge)],
) -> dict:
    return await get_user_dashboard(session, user, challenge)


@router.get("/leaderboard", summary="This week's totals and overall standings")
async def leaderboard(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    challenge: Annotated[Challenge, Depends(get_challenge)],
) -> dict:
    return {
        "week": await get_current_week_leaderboard(session, challenge),
        "overall": await get_overall_stats(session, challenge),
    }


@router.get("/weekly-results", summary="Caller's weekly results, newest first")
async def weekly_results(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    challenge: Annotated[Challenge, Depends(get_challenge)],
    limit: int = Query(12, ge=1, le=104),
) -> list[dict]:
    rows = await get_user_weekly_results(session, user.id, challenge.id, limit=limit)
    return [weekly_result_to_dict(r) for r in rows]


@router.get("/team-progress", summary="Team total for the current week")
async def team_progress(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    challenge: Annotated[Challenge, Depends(get_challenge)],
) -> dict:
    return await get_team_weekly_progress(session, challenge)
