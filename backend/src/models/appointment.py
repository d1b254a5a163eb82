"""
Appointment model representing booked sessions with a clinician.

Appointments are a purely subtractive input to slot generation: an active
(``scheduled`` or ``confirmed``) appointment consumes the slots it covers.
Local wall-clock fields are kept for per-date queries; the UTC instants are
what booking persists for display in any zone.
"""

from datetime import date as date_type, time, datetime
from typing import Optional
from sqlalchemy import String, ForeignKey, Index, TIMESTAMP, Date, Time, CheckConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import APPOINTMENT_STATUSES
from core.database import Base


class Appointment(Base):
    """Appointment between a client and a clinician."""

    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    clinician_id: Mapped[int] = mapped_column(ForeignKey("clinicians.id", ondelete="CASCADE"))

    client_id: Mapped[Optional[int]] = mapped_column(nullable=True)
    """Reference to the client; clients live outside the scheduling core."""

    date: Mapped[date_type] = mapped_column(Date)
    """Local date in the clinician's zone."""

    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)

    start_utc: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    end_utc: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    status: Mapped[str] = mapped_column(String(50), default="scheduled")
    """Valid values: 'scheduled', 'confirmed', 'cancelled', 'completed', 'no_show'."""

    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    cancelled_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    clinician = relationship("Clinician", back_populates="appointments")

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="check_appointment_time_range"),
        CheckConstraint(
            "status IN (" + ", ".join(f"'{status}'" for status in APPOINTMENT_STATUSES) + ")",
            name="check_appointment_status",
        ),
        Index('idx_appointments_clinician_date_status', 'clinician_id', 'date', 'status'),
        # Storage-level guard against two active bookings at the same start
        Index(
            'uq_appointments_active_slot',
            'clinician_id', 'date', 'start_time',
            unique=True,
            sqlite_where=text("status IN ('scheduled', 'confirmed')"),
            postgresql_where=text("status IN ('scheduled', 'confirmed')"),
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ('scheduled', 'confirmed')

    @property
    def duration_minutes(self) -> int:
        start_minutes = self.start_time.hour * 60 + self.start_time.minute
        end_minutes = self.end_time.hour * 60 + self.end_time.minute
        return end_minutes - start_minutes

    def __repr__(self) -> str:
        return f"<Appointment(id={self.id}, clinician_id={self.clinician_id}, date={self.date}, time={self.start_time}-{self.end_time}, status={self.status})>"
