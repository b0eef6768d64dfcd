"""AI coach chat: one short reply per request, capped per user per hour and per day."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from tenk.api.deps import get_current_user
from tenk.core.rate_limit import check_and_consume_coach_limit
from tenk.models.user import User
from tenk.schemas.coach import CoachRequest, CoachResponse
from tenk.services.coach import (
    CoachNotConfigured,
    CoachQuotaExceeded,
    CoachUnavailable,
    generate_coach_reply,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/coach", tags=["coach"])

PROVIDER_QUOTA_MESSAGE = "The coach has hit its AI provider quota. Try again later."
PROVIDER_BUSY_MESSAGE = "Coach is busy, please try again soon."


@router.post(
    "",
    response_model=CoachResponse,
    summary="Ask the coach",
    responses={
        400: {"description": "Missing stats or unreadable image"},
        401: {"description": "Not authenticated"},
        429: {"description": "Caller over quota, or AI provider over quota"},
        502: {"description": "AI provider failed or returned nothing"},
        503: {"description": "AI provider not configured"},
    },
)
async def ask_coach(
    user: Annotated[User, Depends(get_current_user)],
    body: CoachRequest,
) -> CoachResponse:
    if body.stats is None:
        raise HTTPException(status_code=400, detail="Missing stats")
    await check_and_consume_coach_limit(user.id)
    try:
        message = await generate_coach_reply(body.stats, body.history, body.user_message, body.image_data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CoachNotConfigured:
        raise HTTPException(status_code=503, detail="AI coach is not configured")
    except CoachQuotaExceeded:
        raise HTTPException(status_code=429, detail=PROVIDER_QUOTA_MESSAGE)
    except CoachUnavailable:
        raise HTTPException(status_code=502, detail=PROVIDER_BUSY_MESSAGE)
    return CoachResponse(message=message)
