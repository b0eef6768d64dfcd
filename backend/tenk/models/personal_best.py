from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import DateTime, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from tenk.db.base import Base

RECORD_LONGEST_ACTIVITY = "longest_activity"  # km
RECORD_FASTEST_PACE = "fastest_pace"  # average speed, km/h
RECORD_MOST_WEEKLY_KM = "most_weekly_km"  # km
RECORD_LONGEST_STREAK = "longest_streak"  # weeks


class PersonalBest(Base):
    __tablename__ = "personal_bests"
    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", "record_type", name="uq_personal_bests_user_challenge_type"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    challenge_id: Mapped[int] = mapped_column(
        ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False, index=True
    )
    record_type: Mapped[str] = mapped_column(String(32), nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    activity_id: Mapped[int | None] = mapped_column(
        ForeignKey("activities.id", ondelete="SET NULL"), nullable=True
    )
    achieved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
