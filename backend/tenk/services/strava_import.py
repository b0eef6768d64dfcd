"""
Strava import: connection token lifecycle, webhook-driven single activity
import and the back-fill run right after a user connects.

Imports are deduplicated on activities.strava_activity_id, so re-delivered
webhook events and repeated back-fills never create a second copy.
"""
import logging
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tenk.config import settings
from tenk.models.activity import Activity
from tenk.models.strava_connection import StravaConnection
from tenk.services.activities import create_activity
from tenk.services.challenge import get_active_challenge
from tenk.services.crypto import decrypt_value, encrypt_value
from tenk.services.strava_client import get_activities, get_activity, refresh_access_token

logger = logging.getLogger(__name__)

STRAVA_TYPE_MAP = {
    "Run": "run",
    "VirtualRun": "run",
    "TrailRun": "run",
    "Walk": "walk",
    "Hike": "hike",
    "Ride": "cycle",
    "VirtualRide": "cycle",
    "Swim": "swim",
}

# Webhook POST outcomes
STATUS_IGNORED = "ignored"
STATUS_NO_USER = "no_user"
STATUS_ALREADY_EXISTS = "already_exists"
STATUS_TOKEN_ERROR = "token_error"
STATUS_INSERT_ERROR = "insert_error"
STATUS_CREATED = "created"


def map_strava_type(strava_type: str | None) -> str:
    return STRAVA_TYPE_MAP.get(strava_type or "", "other")


def _aware(dt: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def strava_activity_to_fields(item: dict[str, Any]) -> dict[str, Any]:
    """Activity column values for a Strava activity summary or detail payload."""
    raw_date = item.get("start_date_local") or item.get("start_date") or ""
    meters = Decimal(str(item.get("distance") or 0))
    moving_time = item.get("moving_time")
    return {
        "activity_date": date.fromisoformat(str(raw_date)[:10]),
        "distance_km": (meters / 1000).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
        "duration_minutes": round(moving_time / 60) if moving_time else None,
        "activity_type": map_strava_type(item.get("sport_type") or item.get("type")),
        "source": "strava",
        "strava_activity_id": int(item["id"]),
    }


def apply_token_response(connection: StravaConnection, data: dict[str, Any]) -> None:
    connection.access_token = data["access_token"]
    if data.get("refresh_token"):
        connection.encrypted_refresh_token = encrypt_value(data["refresh_token"])
    if data.get("expires_at"):
        connection.expires_at = datetime.fromtimestamp(int(data["expires_at"]), tz=timezone.utc)


async def get_connection(session: AsyncSession, user_id: int) -> StravaConnection | None:
    r = await session.execute(select(StravaConnection).where(StravaConnection.user_id == user_id))
    return r.scalar_one_or_none()


async def get_valid_access_token(
    session: AsyncSession,
    connection: StravaConnection,
    now: datetime | None = None,
) -> str | None:
    """
    Access token usable right now, refreshing it first when it expires within
    the configured lead time. Returns None when the refresh fails.
    """
    now = now or datetime.now(timezone.utc)
    lead = timedelta(seconds=settings.strava_token_refresh_lead_seconds)
    if connection.access_token and _aware(connection.expires_at) - now > lead:
        return connection.access_token

    refresh_token = decrypt_value(connection.encrypted_refresh_token)
    if not refresh_token:
        logger.error("Strava: refresh token unreadable for user_id=%s", connection.user_id)
        return None
    try:
        data = await refresh_access_token(refresh_token)
        apply_token_response(connection, data)
    except Exception as e:
        logger.error("Strava: token refresh failed for user_id=%s: %s", connection.user_id, e)
        return None
    await session.flush()
    logger.info("Strava: refreshed token for user_id=%s", connection.user_id)
    return connection.access_token


async def activity_exists(session: AsyncSession, strava_activity_id: int) -> bool:
    r = await session.execute(select(Activity.id).where(Activity.strava_activity_id == strava_activity_id))
    return r.scalar_one_or_none() is not None


async def save_connection(
    session: AsyncSession,
    user_id: int,
    token_data: dict[str, Any],
) -> StravaConnection:
    """Upsert the user's connection from a code-exchange response."""
    athlete_id = int((token_data.get("athlete") or {})["id"])
    connection = await get_connection(session, user_id)
    if connection is None:
        connection = StravaConnection(
            user_id=user_id,
            strava_athlete_id=athlete_id,
            access_token=token_data["access_token"],
            encrypted_refresh_token=encrypt_value(token_data["refresh_token"]),
            expires_at=datetime.fromtimestamp(int(token_data["expires_at"]), tz=timezone.utc),
        )
        session.add(connection)
    else:
        connection.strava_athlete_id = athlete_id
        apply_token_response(connection, token_data)
    await session.flush()
    return connection


async def import_recent_activities(
    session: AsyncSession,
    user_id: int,
    access_token: str,
    now: datetime | None = None,
) -> int:
    """Back-fill the last STRAVA_IMPORT_DAYS days. Returns the number of activities created."""
    now = now or datetime.now(timezone.utc)
    after = int((now - timedelta(days=settings.strava_import_days)).timestamp())
    items = await get_activities(access_token, after, per_page=settings.strava_import_per_page)
    if not items:
        return 0
    challenge = await get_active_challenge(session)
    created = 0
    for item in items:
        if item.get("id") is None or await activity_exists(session, int(item["id"])):
            continue
        await create_activity(session, user_id, challenge, **strava_activity_to_fields(item))
        created += 1
    logger.info("Strava: back-filled %s of %s activities for user_id=%s", created, len(items), user_id)
    return created


async def handle_webhook_event(session: AsyncSession, event: dict[str, Any]) -> str:
    """Import one activity-create event. Returns a status string; never raises for expected outcomes."""
    if event.get("object_type") != "activity" or event.get("aspect_type") != "create":
        return STATUS_IGNORED
    athlete_id = event.get("owner_id")
    activity_id = event.get("object_id")
    if athlete_id is None or activity_id is None:
        return STATUS_IGNORED

    r = await session.execute(
        select(StravaConnection).where(StravaConnection.strava_athlete_id == int(athlete_id))
    )
    connection = r.scalar_one_or_none()
    if connection is None:
        logger.info("Strava webhook: no connection for athlete %s", athlete_id)
        return STATUS_NO_USER

    if await activity_exists(session, int(activity_id)):
        return STATUS_ALREADY_EXISTS

    access_token = await get_valid_access_token(session, connection)
    if not access_token:
        return STATUS_TOKEN_ERROR

    item = await get_activity(access_token, int(activity_id))
    challenge = await get_active_challenge(session)
    user_id = connection.user_id
    # Savepoint: a failed insert must not discard a token refreshed above
    try:
        async with session.begin_nested():
            await create_activity(session, user_id, challenge, **strava_activity_to_fields(item))
    except SQLAlchemyError as e:
        logger.error("Strava webhook: insert failed for activity %s: %s", activity_id, e)
        return STATUS_INSERT_ERROR
    logger.info("Strava webhook: imported activity %s for user_id=%s", activity_id, user_id)
    return STATUS_CREATED
