"""
AI coach: builds a short prompt from the dashboard snapshot and chat history,
asks Gemini for a one- or two-sentence reply and classifies failures so the
endpoint can tell "provider over quota" apart from "provider unavailable".
"""
import logging

from tenk.config import settings
from tenk.schemas.coach import ChatTurn, CoachStats
from tenk.services.gemini_common import get_model, is_quota_error, run_generate_content
from tenk.services.image_resize import decode_data_url, resize_image_for_ai

logger = logging.getLogger(__name__)

HISTORY_TURNS = 6
RECENT_ACTIVITIES = 8
MAX_OUTPUT_TOKENS = 120
TEMPERATURE = 0.8

COACH_SYSTEM = """You are Coach Kuro, a playful running coach for a 10 km weekly challenge.
Tone: upbeat, brief (1-2 sentences), personable, encouraging, lightly cheeky, never mean.
Strict safety: no health, appearance, weight or body comments; no profanity; no shaming.
When asked for a plan, be specific: distance per session, an easy/interval/long mix and a target pace based on recent runs.
If asked about your model, answer: "I'm running on {model} today."
Respond with a single short message only."""


class CoachError(Exception):
    """Base for coach failures surfaced to the client."""


class CoachNotConfigured(CoachError):
    pass


class CoachQuotaExceeded(CoachError):
    pass


class CoachUnavailable(CoachError):
    pass


def build_prompt(
    stats: CoachStats,
    history: list[ChatTurn],
    user_message: str | None,
    has_image: bool,
) -> str:
    recent_chat = "\n".join(
        f"{'Coach' if t.role == 'assistant' else 'User'}: {t.content}" for t in history[-HISTORY_TURNS:]
    )
    recent = "; ".join(
        f"{a.activity_date}: {a.activity_type.upper()} {a.distance_km:.1f} km"
        + (f" in {a.duration_minutes} min" if a.duration_minutes else "")
        for a in stats.activities[:RECENT_ACTIVITIES]
    )
    parts = [
        f"Stats: {stats.total_km:.1f} km / {stats.target_km:.1f} km.",
        f"Remaining: {max(0.0, stats.to_go):.1f} km.",
        f"Streak: {stats.streak} week(s).",
        f"Week window: {stats.week_start} → {stats.week_end}.",
        f"Recent activities: {recent}." if recent else "No recent activities recorded.",
        f'User says: "{user_message}".' if user_message else "User did not ask anything specific.",
        f"Recent chat:\n{recent_chat}" if recent_chat else "No recent chat yet.",
    ]
    if has_image:
        parts.append(
            "A screenshot of a run is attached: read the distance (km) and time (minutes), "
            "say what you see and ask whether to add it as an activity."
        )
    else:
        parts.append("Give a fun, concise reply (1-2 sentences), encouraging and slightly cheeky but kind.")
    return " ".join(parts)


async def generate_coach_reply(
    stats: CoachStats,
    history: list[ChatTurn],
    user_message: str | None = None,
    image_data: str | None = None,
) -> str:
    """Coach reply text. Raises ValueError for an unreadable image, a CoachError subclass otherwise."""
    if not settings.google_gemini_api_key:
        raise CoachNotConfigured("GOOGLE_GEMINI_API_KEY is not set")

    has_image = bool(image_data)
    model_name = (settings.gemini_vision_model or settings.gemini_model) if has_image else settings.gemini_model
    prompt = build_prompt(stats, history, user_message, has_image)
    contents: list = [prompt]
    if has_image:
        jpeg = await resize_image_for_ai(decode_data_url(image_data))
        contents.append({"mime_type": "image/jpeg", "data": jpeg})

    try:
        model = get_model(COACH_SYSTEM.format(model=model_name), vision=has_image)
        response = await run_generate_content(
            model,
            contents,
            generation_config={"temperature": TEMPERATURE, "max_output_tokens": MAX_OUTPUT_TOKENS},
        )
    except Exception as e:
        if is_quota_error(e):
            logger.warning("Coach: Gemini quota exceeded: %s", e)
            raise CoachQuotaExceeded(str(e)) from e
        logger.exception("Coach: Gemini request failed")
        raise CoachUnavailable(str(e)) from e

    try:
        text = (response.text or "").strip() if response is not None else ""
    except ValueError:
        # .text raises when the candidate was blocked or has no parts
        text = ""
    if not text:
        raise CoachUnavailable("empty reply")
    return text
