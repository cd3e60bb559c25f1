"""
Daily surfaces: which entry a user got on which calendar day.

The (user_id, surfaced_date) unique constraint is the selection cache and
the concurrency guard: a day's pick never changes once written.
"""

from datetime import date, datetime

from sqlalchemy import String, Boolean, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import OwnedBase


class DailySurface(OwnedBase):
    __tablename__ = "daily_surfaces"
    __table_args__ = (
        UniqueConstraint("user_id", "surfaced_date", name="uq_daily_surface_user_date"),
    )

    entry_id: Mapped[str] = mapped_column(
        String, ForeignKey("gratitude_entries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    surfaced_date: Mapped[date] = mapped_column(Date, nullable=False)
    surfacing_reason: Mapped[str] = mapped_column(String, nullable=False, default="random")
    # holiday:<Name>, season:<season>, variety, random
    viewed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    viewed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    reflection_id: Mapped[str] = mapped_column(String, nullable=True)
