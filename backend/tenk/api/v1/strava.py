"""Strava: OAuth link/unlink, connection status and the push-subscription webhook."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenk.api.deps import get_current_user
from tenk.config import settings
from tenk.core.auth import create_state_token, read_state_token
from tenk.db.session import get_db
from tenk.models.user import User
from tenk.services.strava_client import build_authorize_url, deauthorize, exchange_code
from tenk.services.strava_import import (
    get_connection,
    get_valid_access_token,
    handle_webhook_event,
    import_recent_activities,
    save_connection,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/strava", tags=["strava"])


@router.get("/status")
async def get_strava_status(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> dict:
    """Whether Strava is linked for the current user."""
    connection = await get_connection(session, user.id)
    if connection is None:
        return {"linked": False}
    return {"linked": True, "athlete_id": str(connection.strava_athlete_id)}


@router.get("/authorize-url")
async def get_authorize_url(user: Annotated[User, Depends(get_current_user)]) -> dict:
    """URL of the Strava consent page. ``state`` is a signed token identifying the caller."""
    if not settings.strava_client_id or not settings.strava_redirect_uri:
        raise HTTPException(status_code=503, detail="Strava app not configured.")
    return {"url": build_authorize_url(create_state_token(user.id))}


@router.get("/callback")
async def strava_callback(
    session: Annotated[AsyncSession, Depends(get_db)],
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
):
    """Exchange the code, store the connection and back-fill recent activities."""
    if error:
        raise HTTPException(status_code=400, detail=f"Strava authorization failed: {error}")
    if not code:
        raise HTTPException(status_code=400, detail="Missing code parameter.")
    uid = read_state_token(state or "")
    if uid is None:
        raise HTTPException(status_code=400, detail="Invalid or expired state.")
    user = (await session.execute(select(User).where(User.id == uid))).scalar_one_or_none()
    if user is None or not user.active:
        raise HTTPException(status_code=400, detail="User not found.")
    try:
        data = await exchange_code(code)
    except Exception as e:
        logger.exception("Strava token exchange failed: %s", e)
        raise HTTPException(status_code=400, detail="Failed to exchange code for tokens.")
    if not data.get("refresh_token") or not (data.get("athlete") or {}).get("id"):
        raise HTTPException(status_code=400, detail="Incomplete token response from Strava.")
    connection = await save_connection(session, uid, data)

    imported = 0
    try:
        async with session.begin_nested():
            imported = await import_recent_activities(session, uid, connection.access_token)
    except Exception as e:
        imported = 0
        logger.warning("Strava back-fill failed for user_id=%s: %s", uid, e)
    await session.commit()
    html = (
        "<!DOCTYPE html><html><head><meta charset='utf-8'><title>Strava connected</title></head><body>"
        "<p>Strava connected. You can close this window and return to the app.</p>"
        f"<p>Imported {imported} recent activit{'y' if imported == 1 else 'ies'}.</p>"
        "</body></html>"
    )
    return HTMLResponse(content=html)


@router.post("/unlink")
async def unlink_strava(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> dict:
    """Remove the connection. Imported activities stay; they count toward past weeks."""
    connection = await get_connection(session, user.id)
    if connection is None:
        return {"status": "not_linked"}
    access_token = await get_valid_access_token(session, connection)
    if access_token:
        await deauthorize(access_token)
    await session.delete(connection)
    await session.flush()
    logger.info("Strava: unlinked user_id=%s", user.id)
    return {"status": "unlinked"}


@router.get("/webhook")
async def verify_webhook(
    hub_mode: Annotated[str | None, Query(alias="hub.mode")] = None,
    hub_verify_token: Annotated[str | None, Query(alias="hub.verify_token")] = None,
    hub_challenge: Annotated[str | None, Query(alias="hub.challenge")] = None,
):
    """Subscription handshake: echo hub.challenge when the verify token matches."""
    expected = settings.strava_webhook_verify_token
    if hub_mode == "subscribe" and expected and hub_verify_token == expected:
        logger.info("Strava webhook verified")
        return {"hub.challenge": hub_challenge}
    return JSONResponse(status_code=403, content={"error": "Forbidden"})


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_db)],
):
    """Activity-create events are imported once; everything else is acknowledged and ignored."""
    try:
        event = await request.json()
        if not isinstance(event, dict):
            return {"status": "ignored"}
        status = await handle_webhook_event(session, event)
        await session.commit()
    except Exception:
        logger.exception("Strava webhook error")
        await session.rollback()
        return JSONResponse(status_code=500, content={"status": "error"})
    return {"status": status}
