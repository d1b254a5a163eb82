"""
Availability exception model for per-date changes to availability.

An exception either overrides one occurrence of a weekly block
(``original_block_id`` set) or adds standalone one-time availability
(``original_block_id`` null). ``is_deleted`` with null times cancels the
occurrence. Exceptions always win over their parent block on their date.
"""

from datetime import date as date_type, time, datetime
from typing import Optional
from sqlalchemy import ForeignKey, Index, Date, Time, Boolean, TIMESTAMP, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class AvailabilityException(Base):
    """Per-date override, cancellation or one-time addition of availability."""

    __tablename__ = "availability_exceptions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    clinician_id: Mapped[int] = mapped_column(ForeignKey("clinicians.id", ondelete="CASCADE"))

    specific_date: Mapped[date_type] = mapped_column(Date)
    """Local calendar date the exception applies to."""

    original_block_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("weekly_availability_blocks.id"), nullable=True
    )
    """Parent weekly block, or None for standalone one-time availability."""

    start_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    end_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # Relationships
    clinician = relationship("Clinician", back_populates="availability_exceptions")
    original_block = relationship("WeeklyAvailabilityBlock", back_populates="exceptions")

    __table_args__ = (
        Index('idx_availability_exceptions_clinician_date', 'clinician_id', 'specific_date'),
        # One row per (clinician, date, parent block); standalone rows are unrestricted
        Index(
            'uq_availability_exceptions_occurrence',
            'clinician_id', 'specific_date', 'original_block_id',
            unique=True,
            sqlite_where=text("original_block_id IS NOT NULL"),
            postgresql_where=text("original_block_id IS NOT NULL"),
        ),
    )

    @property
    def is_standalone(self) -> bool:
        """True for one-time availability not tied to a weekly block."""
        return self.original_block_id is None

    @property
    def is_cancellation(self) -> bool:
        return self.is_deleted and self.start_time is None and self.end_time is None

    def __repr__(self) -> str:
        return f"<AvailabilityException(id={self.id}, date={self.specific_date}, block={self.original_block_id}, time={self.start_time}-{self.end_time}, deleted={self.is_deleted})>"
