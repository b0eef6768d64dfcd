"""Badges, team feed, cheers and personal bests."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tenk.api.deps import get_challenge, get_current_user
from tenk.db.session import get_db
from tenk.models.challenge import Challenge
from tenk.models.user import User
from tenk.schemas.activity import CheerCreate
from tenk.schemas.pagination import PaginationParams
from tenk.services.activities import get_activity
from tenk.services.badges import (
    badge_to_dict,
    check_and_award_badges,
    list_badges,
    list_user_badges,
)
from tenk.services.gamification import (
    add_cheer,
    get_activity_cheers,
    get_activity_feed,
    get_personal_bests,
    remove_cheer,
)

router = APIRouter(tags=["gamification"])


async def _require_activity(session: AsyncSession, activity_id: int) -> None:
    if await get_activity(session, activity_id) is None:
        raise HTTPException(status_code=404, detail="Activity not found")


@router.get("/badges", summary="Badge catalog")
async def all_badges(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> list[dict]:
    return [badge_to_dict(b) for b in await list_badges(session)]


@router.get("/badges/me", summary="Badges earned by the caller, newest first")
async def my_badges(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> list[dict]:
    rows = await list_user_badges(session, user.id)
    return [{**badge_to_dict(ub.badge), "earned_at": ub.earned_at.isoformat()} for ub in rows]


@router.post("/badges/check", summary="Evaluate badges now; returns the newly earned ones")
async def check_badges(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    challenge: Annotated[Challenge, Depends(get_challenge)],
) -> dict:
    awarded = await check_and_award_badges(session, user.id, challenge)
    return {"new_badges": [badge_to_dict(b) for b in awarded]}


@router.get("/feed", summary="Team activity feed, newest first")
async def feed(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    challenge: Annotated[Challenge, Depends(get_challenge)],
    pagination: Annotated[PaginationParams, Depends()],
) -> dict:
    items = await get_activity_feed(session, challenge.id, limit=pagination.limit + 1, offset=pagination.offset)
    return {
        "items": items[: pagination.limit],
        "limit": pagination.limit,
        "offset": pagination.offset,
        "has_more": len(items) > pagination.limit,
    }


@router.get("/activities/{activity_id}/cheers", summary="Cheers on an activity")
async def list_cheers(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    activity_id: int,
) -> dict:
    await _require_activity(session, activity_id)
    cheers = await get_activity_cheers(session, activity_id)
    mine = next((c["emoji"] for c in cheers if c["user_id"] == user.id), None)
    return {"count": len(cheers), "cheers": cheers, "my_cheer": mine}


@router.post("/activities/{activity_id}/cheers", summary="Cheer an activity (replaces the caller's emoji)")
async def cheer(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    activity_id: int,
    body: CheerCreate,
) -> dict:
    await _require_activity(session, activity_id)
    row = await add_cheer(session, activity_id, user.id, body.emoji)
    return {"activity_id": activity_id, "emoji": row.emoji}


@router.delete("/activities/{activity_id}/cheers", status_code=204, summary="Remove the caller's cheer")
async def uncheer(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    activity_id: int,
) -> None:
    await remove_cheer(session, activity_id, user.id)


@router.get("/personal-bests", summary="Caller's personal bests")
async def personal_bests(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    challenge: Annotated[Challenge, Depends(get_challenge)],
) -> list[dict]:
    rows = await get_personal_bests(session, user.id, challenge.id)
    return [
        {
            "record_type": pb.record_type,
            "value": float(pb.value),
            "activity_id": pb.activity_id,
            "achieved_at": pb.achieved_at.isoformat() if pb.achieved_at else None,
        }
        for pb in rows
    ]
