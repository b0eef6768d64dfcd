"""Per-user, per-week rollup of activity distance against the challenge target."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from tenk.db.base import Base


class WeeklyResult(Base):
    __tablename__ = "weekly_results"
    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", "week_start_date", name="uq_weekly_results_user_challenge_week"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    challenge_id: Mapped[int] = mapped_column(
        ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False, index=True
    )
    week_start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    week_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_distance_km: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=Decimal("0"))
    met_target: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # When set, met_target is authoritative and never recomputed from activity totals
    overridden_by_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    excused: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rollover_km: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=Decimal("0"))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
