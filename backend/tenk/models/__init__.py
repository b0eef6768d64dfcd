from tenk.models.user import User
from tenk.models.refresh_token import RefreshToken
from tenk.models.challenge import Challenge
from tenk.models.activity import Activity
from tenk.models.weekly_result import WeeklyResult
from tenk.models.badge import Badge, UserBadge
from tenk.models.activity_feed import ActivityFeedItem
from tenk.models.activity_cheer import ActivityCheer
from tenk.models.personal_best import PersonalBest
from tenk.models.strava_connection import StravaConnection

__all__ = [
    "User",
    "RefreshToken",
    "Challenge",
    "Activity",
    "WeeklyResult",
    "Badge",
    "UserBadge",
    "ActivityFeedItem",
    "ActivityCheer",
    "PersonalBest",
    "StravaConnection",
]
