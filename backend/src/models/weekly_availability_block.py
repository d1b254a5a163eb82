"""
Weekly availability model for a clinician's recurring schedule.

Each record is one working period on one day of the week. Several records
per day are allowed (e.g., 9am-12pm and 2pm-6pm). Blocks are never
hard-deleted: cancelling a whole series flips ``is_active`` so per-date
exceptions that reference the block keep a valid parent.
"""

from datetime import time, datetime
from typing import Optional
from sqlalchemy import Time, TIMESTAMP, ForeignKey, Index, Boolean, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from core.constants import WEEKDAY_NAMES


class WeeklyAvailabilityBlock(Base):
    """
    Recurring weekly availability period for a clinician.

    Times are zone-naive wall-clock values; they are only meaningful together
    with the clinician's configured time zone.
    """

    __tablename__ = "weekly_availability_blocks"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier; also the recurring-series id used by exceptions."""

    clinician_id: Mapped[int] = mapped_column(ForeignKey("clinicians.id", ondelete="CASCADE"))
    """Reference to the owning clinician."""

    day_of_week: Mapped[int] = mapped_column()
    """Day of the week (0=Monday, 1=Tuesday, ..., 6=Sunday)."""

    start_time: Mapped[time] = mapped_column(Time)
    """Start time of the working period (local wall clock)."""

    end_time: Mapped[time] = mapped_column(Time)
    """End time of the working period (local wall clock)."""

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    """False once the whole series has been cancelled."""

    # Metadata
    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # Relationships
    clinician = relationship("Clinician", back_populates="weekly_blocks")
    exceptions = relationship("AvailabilityException", back_populates="original_block")

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="check_weekly_block_day_of_week"),
        CheckConstraint("start_time < end_time", name="check_weekly_block_time_range"),
        Index('idx_weekly_blocks_clinician_day', 'clinician_id', 'day_of_week', 'is_active'),
    )

    @property
    def day_name(self) -> str:
        """Get the day name for display."""
        return WEEKDAY_NAMES[self.day_of_week].capitalize()

    @property
    def duration_minutes(self) -> int:
        """Get the duration of this availability period in minutes."""
        start_minutes = self.start_time.hour * 60 + self.start_time.minute
        end_minutes = self.end_time.hour * 60 + self.end_time.minute
        return end_minutes - start_minutes

    def __repr__(self) -> str:
        return f"<WeeklyAvailabilityBlock(id={self.id}, clinician_id={self.clinician_id}, day={self.day_name}, {self.start_time}-{self.end_time}, active={self.is_active})>"
