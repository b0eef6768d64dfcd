"""Pydantic schemas for activity API."""

from datetime import date
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

ManualActivityType = Literal["run", "walk", "jog"]


class ActivityCreate(BaseModel):
    """Body for logging an activity (manual entry)."""

    activity_date: date
    distance_km: Decimal = Field(..., gt=0, max_digits=8, decimal_places=2)
    duration_minutes: int | None = Field(None, ge=0)
    activity_type: ManualActivityType = "run"
    proof_url: str | None = Field(None, max_length=2048)
    screenshot_url: str | None = Field(None, max_length=2048)


class ActivityUpdate(BaseModel):
    """Body for editing an activity (partial)."""

    activity_date: date | None = None
    distance_km: Decimal | None = Field(None, gt=0, max_digits=8, decimal_places=2)
    duration_minutes: int | None = Field(None, ge=0)
    activity_type: ManualActivityType | None = None
    proof_url: str | None = Field(None, max_length=2048)
    screenshot_url: str | None = Field(None, max_length=2048)


class ActivityResponse(BaseModel):
    id: int
    user_id: int
    challenge_id: int
    activity_date: str
    distance_km: float
    duration_minutes: int | None
    activity_type: str
    proof_url: str | None
    screenshot_url: str | None
    source: str
    strava_activity_id: int | None


class CheerCreate(BaseModel):
    emoji: str | None = Field("🔥", max_length=16)
