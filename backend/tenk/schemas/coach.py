"""Pydantic schemas for the AI coach endpoint."""

from typing import Literal

from pydantic import BaseModel, Field


class CoachActivity(BaseModel):
    activity_date: str
    distance_km: float
    duration_minutes: int | None = None
    activity_type: str = "run"


class CoachStats(BaseModel):
    """Dashboard snapshot the client sends along with each message."""

    total_km: float
    target_km: float
    to_go: float = 0
    streak: int = 0
    week_start: str = ""
    week_end: str = ""
    activities: list[CoachActivity] = Field(default_factory=list)


class ChatTurn(BaseModel):
    role: Literal["assistant", "user"]
    content: str = Field(..., max_length=2000)


class CoachRequest(BaseModel):
    """Body for POST /coach. ``stats`` is required; the handler answers 400 without it."""

    stats: CoachStats | None = None
    history: list[ChatTurn] = Field(default_factory=list)
    user_message: str | None = Field(None, max_length=2000)
    image_data: str | None = Field(None, description="data:image/...;base64,... screenshot")


class CoachResponse(BaseModel):
    message: str
