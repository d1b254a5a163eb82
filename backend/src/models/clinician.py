"""
Clinician model representing a provider whose calendar is scheduled.

A clinician owns every availability source (weekly blocks, per-date
exceptions, time blocks), their availability settings and the
appointments booked against them.
"""

from typing import Optional
from datetime import datetime
from sqlalchemy import String, TIMESTAMP, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from core.constants import MAX_STRING_LENGTH


class Clinician(Base):
    """Clinician entity. All wall-clock availability is interpreted in ``time_zone``."""

    __tablename__ = "clinicians"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    email: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)

    time_zone: Mapped[str] = mapped_column(String(64), default="America/Chicago")
    """IANA zone of the clinician's practice, used when no settings row exists."""

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    weekly_blocks = relationship("WeeklyAvailabilityBlock", back_populates="clinician", cascade="all, delete-orphan")
    availability_exceptions = relationship("AvailabilityException", back_populates="clinician", cascade="all, delete-orphan")
    time_blocks = relationship("TimeBlock", back_populates="clinician", cascade="all, delete-orphan")
    appointments = relationship("Appointment", back_populates="clinician", cascade="all, delete-orphan")
    availability_settings = relationship("AvailabilitySettings", back_populates="clinician", uselist=False, cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Clinician(id={self.id}, name='{self.name}', time_zone='{self.time_zone}')>"
