"""
Availability settings model: one row per clinician, upserted.

A clinician without a row gets the documented defaults from
``AvailabilityConfig.defaults()``; see SettingsService.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import ForeignKey, String, TIMESTAMP, Integer, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class AvailabilitySettings(Base):
    """Per-clinician slot granularity, booking window and time zone."""

    __tablename__ = "availability_settings"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    clinician_id: Mapped[int] = mapped_column(ForeignKey("clinicians.id", ondelete="CASCADE"), unique=True)

    time_granularity: Mapped[int] = mapped_column(Integer, default=60)
    """Slot width in minutes (15, 30 or 60)."""

    min_notice_days: Mapped[int] = mapped_column(Integer, default=1)
    min_notice_hours: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_advance_days: Mapped[int] = mapped_column(Integer, default=30)

    buffer_minutes: Mapped[int] = mapped_column(Integer, default=0)
    """Padding applied around each appointment when excluding slots."""

    time_zone: Mapped[str] = mapped_column(String(64), default="America/Chicago")

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    clinician = relationship("Clinician", back_populates="availability_settings")

    __table_args__ = (
        CheckConstraint("time_granularity IN (15, 30, 60)", name="check_settings_granularity"),
        CheckConstraint("min_notice_days >= 0", name="check_settings_min_notice"),
        CheckConstraint("max_advance_days >= 1", name="check_settings_max_advance"),
        CheckConstraint("buffer_minutes >= 0", name="check_settings_buffer"),
    )

    def __repr__(self) -> str:
        return f"<AvailabilitySettings(clinician_id={self.clinician_id}, granularity={self.time_granularity}, zone='{self.time_zone}')>"
