"""
Time block model representing clinician blackout periods (time off).

Time blocks are always subtracted from resolved availability and are never
merged with availability sources.
"""

from datetime import date as date_type, time, datetime
from typing import Optional
from sqlalchemy import ForeignKey, Index, Date, Time, String, TIMESTAMP, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from core.constants import MAX_REASON_LENGTH


class TimeBlock(Base):
    """Blackout period on a single local date."""

    __tablename__ = "time_blocks"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    clinician_id: Mapped[int] = mapped_column(ForeignKey("clinicians.id", ondelete="CASCADE"))

    date: Mapped[date_type] = mapped_column(Date)
    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)

    reason: Mapped[Optional[str]] = mapped_column(String(MAX_REASON_LENGTH), nullable=True)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    clinician = relationship("Clinician", back_populates="time_blocks")

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="check_time_block_time_range"),
        Index('idx_time_blocks_clinician_date', 'clinician_id', 'date'),
    )

    def __repr__(self) -> str:
        return f"<TimeBlock(id={self.id}, clinician_id={self.clinician_id}, date={self.date}, {self.start_time}-{self.end_time})>"
