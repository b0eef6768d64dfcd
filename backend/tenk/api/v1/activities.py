"""Activities: list, get, log, edit and delete. Every write recomputes the affected weekly results."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tenk.api.deps import get_challenge, get_current_user
from tenk.db.session import get_db
from tenk.models.activity import Activity
from tenk.models.challenge import Challenge
from tenk.models.user import User
from tenk.schemas.activity import ActivityCreate, ActivityResponse, ActivityUpdate
from tenk.services.activities import (
    create_activity,
    delete_activity,
    get_activity,
    update_activity,
)
from tenk.services.challenge import activity_to_dict, get_user_activities
from tenk.services.gamification import get_cheer_counts

router = APIRouter(prefix="/activities", tags=["activities"])


async def _get_editable_activity(session: AsyncSession, activity_id: int, user: User) -> Activity:
    """Activity owned by the caller (any activity for admins); 404 otherwise."""
    activity = await get_activity(session, activity_id)
    if activity is None or (activity.user_id != user.id and not user.is_admin):
        raise HTTPException(status_code=404, detail="Activity not found")
    return activity


@router.get("", summary="List the caller's activities, newest first")
async def list_activities(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    challenge: Annotated[Challenge, Depends(get_challenge)],
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> list[dict]:
    rows = await get_user_activities(session, user.id, challenge.id, limit=limit, offset=offset)
    counts = await get_cheer_counts(session, [a.id for a in rows])
    return [{**activity_to_dict(a), "cheers": counts[a.id]} for a in rows]


@router.get("/{activity_id}", response_model=ActivityResponse)
async def get_one(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    activity_id: int,
) -> dict:
    activity = await get_activity(session, activity_id)
    if activity is None:
        raise HTTPException(status_code=404, detail="Activity not found")
    return activity_to_dict(activity)


@router.post("", response_model=ActivityResponse, status_code=201, summary="Log an activity")
async def log_activity(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    challenge: Annotated[Challenge, Depends(get_challenge)],
    body: ActivityCreate,
) -> dict:
    activity = await create_activity(
        session,
        user.id,
        challenge,
        activity_date=body.activity_date,
        distance_km=body.distance_km,
        duration_minutes=body.duration_minutes,
        activity_type=body.activity_type,
        proof_url=body.proof_url,
        screenshot_url=body.screenshot_url,
    )
    return activity_to_dict(activity)


@router.patch("/{activity_id}", response_model=ActivityResponse, summary="Edit an activity")
async def edit_activity(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    challenge: Annotated[Challenge, Depends(get_challenge)],
    activity_id: int,
    body: ActivityUpdate,
) -> dict:
    activity = await _get_editable_activity(session, activity_id, user)
    changes = body.model_dump(exclude_unset=True)
    for key in ("activity_date", "distance_km", "activity_type"):
        if key in changes and changes[key] is None:
            raise HTTPException(status_code=400, detail=f"{key} cannot be null")
    activity = await update_activity(session, activity, challenge, changes)
    return activity_to_dict(activity)


@router.delete("/{activity_id}", status_code=204, summary="Delete an activity")
async def remove_activity(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    challenge: Annotated[Challenge, Depends(get_challenge)],
    activity_id: int,
) -> None:
    activity = await _get_editable_activity(session, activity_id, user)
    await delete_activity(session, activity, challenge)
