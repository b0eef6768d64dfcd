"""
Strava API client: OAuth authorize URL, code exchange, token refresh and
activity reads. Uses the shared httpx client from services.http_client.
"""
import logging
from typing import Any
from urllib.parse import urlencode

from tenk.config import settings
from tenk.services.http_client import get_http_client

logger = logging.getLogger(__name__)

STRAVA_AUTHORIZE_URL = "https://www.strava.com/oauth/authorize"
STRAVA_OAUTH_URL = "https://www.strava.com/oauth/token"
STRAVA_API_BASE = "https://www.strava.com/api/v3"
STRAVA_SCOPE = "read,activity:read_all"


def build_authorize_url(state: str, redirect_uri: str | None = None) -> str:
    params = {
        "client_id": settings.strava_client_id,
        "response_type": "code",
        "redirect_uri": redirect_uri or settings.strava_redirect_uri,
        "approval_prompt": "auto",
        "scope": STRAVA_SCOPE,
        "state": state,
    }
    return f"{STRAVA_AUTHORIZE_URL}?{urlencode(params)}"


async def exchange_code(code: str, redirect_uri: str | None = None) -> dict[str, Any]:
    """Exchange authorization code for tokens. Response includes ``athlete``."""
    uri = redirect_uri or settings.strava_redirect_uri
    data: dict[str, str] = {
        "client_id": settings.strava_client_id,
        "client_secret": settings.strava_client_secret,
        "code": code,
        "grant_type": "authorization_code",
    }
    if uri:
        data["redirect_uri"] = uri
    r = await get_http_client().post(STRAVA_OAUTH_URL, data=data)
    r.raise_for_status()
    return r.json()


async def refresh_access_token(refresh_token: str) -> dict[str, Any]:
    r = await get_http_client().post(
        STRAVA_OAUTH_URL,
        data={
            "client_id": settings.strava_client_id,
            "client_secret": settings.strava_client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        },
    )
    r.raise_for_status()
    return r.json()


async def get_activities(
    access_token: str,
    after_epoch: int,
    per_page: int | None = None,
    page: int = 1,
) -> list[dict]:
    """One page of the athlete's activities started after ``after_epoch``."""
    r = await get_http_client().get(
        f"{STRAVA_API_BASE}/athlete/activities",
        params={"after": after_epoch, "page": page, "per_page": per_page or settings.strava_import_per_page},
        headers={"Authorization": f"Bearer {access_token}"},
    )
    r.raise_for_status()
    data = r.json()
    return data if isinstance(data, list) else []


async def get_activity(access_token: str, activity_id: int) -> dict[str, Any]:
    r = await get_http_client().get(
        f"{STRAVA_API_BASE}/activities/{activity_id}",
        headers={"Authorization": f"Bearer {access_token}"},
    )
    r.raise_for_status()
    return r.json()


async def deauthorize(access_token: str) -> None:
    """Revoke the app's access on Strava. Failures are logged; unlinking proceeds locally."""
    try:
        r = await get_http_client().post(
            "https://www.strava.com/oauth/deauthorize",
            data={"access_token": access_token},
        )
        r.raise_for_status()
    except Exception as e:
        logger.warning("Strava deauthorize failed: %s", e)
