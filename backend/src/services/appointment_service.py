"""
Appointment service for booking and cancelling slots.

Booking always re-validates against the current availability sources and
active appointments at write time, so a stale slot list can never produce a
double booking. The storage-level unique index on active appointments
backs this up against concurrent writers.
"""

import logging
from datetime import date as date_type, datetime, time, timedelta
from typing import List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.constants import (
    ACTIVE_APPOINTMENT_STATUSES, APPOINTMENT_STATUS_CANCELLED, APPOINTMENT_STATUS_SCHEDULED
)
from core.exceptions import DSTGapError, NotFoundError, SlotConflict
from models import Appointment
from services.availability_service import AvailabilityService
from services.interval_merger import IntervalMerger
from services.settings_service import SettingsService
from services.slot_service import SlotService
from utils.datetime_utils import (
    coerce_date, coerce_time, convert_time_zone, get_zone, local_to_utc, now_in_zone, utc_now
)

logger = logging.getLogger(__name__)


class AppointmentService:
    """
    Service class for appointment operations.

    Appointments are never merged into availability; they only consume
    slots during generation and are checked again here at booking time.
    """

    @staticmethod
    def get_appointment(db: Session, clinician_id: int, appointment_id: int) -> Appointment:
        """
        Get one of a clinician's appointments.

        Raises:
            NotFoundError: If the appointment does not belong to the clinician
        """
        appointment = db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.clinician_id == clinician_id
        ).first()
        if not appointment:
            raise NotFoundError(f"Appointment {appointment_id} not found", field="appointment_id")
        return appointment

    @staticmethod
    def list_appointments(
        db: Session,
        clinician_id: int,
        date: Union[str, date_type],
        include_inactive: bool = False
    ) -> List[Appointment]:
        """List a clinician's appointments on a date, ordered by start."""
        appointment_date = coerce_date(date)
        query = db.query(Appointment).filter(
            Appointment.clinician_id == clinician_id,
            Appointment.date == appointment_date
        )
        if not include_inactive:
            query = query.filter(Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES))
        return query.order_by(Appointment.start_time).all()

    @staticmethod
    def book_appointment(
        db: Session,
        clinician_id: int,
        date: Union[str, date_type],
        start_time: Union[str, time],
        end_time: Union[str, time, None] = None,
        client_id: Optional[int] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
        commit: bool = True
    ) -> Appointment:
        """
        Book ``[start_time, end_time)`` on a date in the clinician's zone.

        The request is checked against state read inside this call:
        the booking window, the resolved availability (time blocks already
        subtracted) and active appointments widened by the buffer. The
        insert itself is guarded by the unique index on active appointments.

        Args:
            db: Database session
            clinician_id: Clinician ID
            date: Local date in the clinician's zone
            start_time: Local start time
            end_time: Local end time; defaults to start + time_granularity
            client_id: Optional client reference
            notes: Optional notes
            now: Reference instant (defaults to the current time)
            commit: Commit the session when done (default True)

        Returns:
            The created Appointment, with start_utc/end_utc set

        Raises:
            NotFoundError: If the clinician does not exist
            InvalidDateTimeFormat: If the date or times are malformed
            InvalidInterval: If end <= start
            DSTGapError: If start, or an explicit end, does not exist on that date
            SlotConflict: If the time is not (or no longer) bookable
        """
        appointment_date = coerce_date(date)
        AvailabilityService.get_clinician(db, clinician_id)
        config = SettingsService.get_availability_settings(db, clinician_id)

        start = coerce_time(start_time, field="start_time")
        if end_time is None:
            end_local = datetime.combine(appointment_date, start) + timedelta(minutes=config.time_granularity)
            if end_local.date() != appointment_date:
                raise SlotConflict("Appointment would run past midnight", field="start_time")
            end = end_local.time()
        else:
            end = coerce_time(end_time, field="end_time")
        IntervalMerger.validate(start, end, label="appointment")

        start_utc = local_to_utc(appointment_date, start, config.time_zone)
        try:
            end_utc = local_to_utc(appointment_date, end, config.time_zone)
        except DSTGapError:
            if end_time is not None:
                raise
            # Default length is real time, matching the slot list
            end_utc = start_utc + timedelta(minutes=config.time_granularity)
            end = convert_time_zone(end_utc, config.time_zone).time()

        current = now if now is not None else now_in_zone(config.time_zone)
        today = current.astimezone(get_zone(config.time_zone)).date()
        if not SlotService.is_within_booking_window(appointment_date, today, config):
            logger.info(f"Booking rejected for clinician {clinician_id}: {appointment_date} outside booking window")
            raise SlotConflict(field="date")
        if config.min_notice_hours and start_utc < current + timedelta(hours=config.min_notice_hours):
            logger.info(f"Booking rejected for clinician {clinician_id}: {appointment_date} {start} inside minimum notice")
            raise SlotConflict(field="start_time")

        schedule_data = AvailabilityService.fetch_clinician_schedule_data(db, clinician_id, appointment_date)
        resolved = AvailabilityService.compute_resolved_intervals(
            schedule_data['weekly_blocks'],
            schedule_data['exceptions'],
            schedule_data['time_blocks'],
        )
        if not any(interval.start <= start and end <= interval.end for interval in resolved):
            logger.info(f"Booking rejected for clinician {clinician_id}: {appointment_date} {start}-{end} not available")
            raise SlotConflict(field="start_time")

        start_minutes, end_minutes = SlotService.minute_range(start, end)
        for busy_start, busy_end in SlotService.busy_ranges(schedule_data['appointments'], config.buffer_minutes):
            if start_minutes < busy_end and busy_start < end_minutes:
                logger.info(f"Booking rejected for clinician {clinician_id}: {appointment_date} {start}-{end} overlaps an appointment")
                raise SlotConflict(field="start_time")

        appointment = Appointment(
            clinician_id=clinician_id,
            client_id=client_id,
            date=appointment_date,
            start_time=start,
            end_time=end,
            start_utc=start_utc,
            end_utc=end_utc,
            status=APPOINTMENT_STATUS_SCHEDULED,
            notes=notes,
        )
        try:
            with db.begin_nested():
                db.add(appointment)
        except IntegrityError as e:
            logger.warning(f"Appointment booking conflict: {e}")
            raise SlotConflict(field="start_time") from e

        if commit:
            db.commit()

        logger.info(f"Booked appointment {appointment.id} for clinician {clinician_id} on {appointment_date} {start}-{end}")
        return appointment

    @staticmethod
    def cancel_appointment(
        db: Session,
        clinician_id: int,
        appointment_id: int,
        commit: bool = True
    ) -> Appointment:
        """
        Cancel an appointment, releasing its slot.

        Idempotent: cancelling an already cancelled appointment is a no-op.

        Raises:
            NotFoundError: If the appointment does not belong to the clinician
        """
        appointment = AppointmentService.get_appointment(db, clinician_id, appointment_id)
        if appointment.status == APPOINTMENT_STATUS_CANCELLED:
            return appointment

        appointment.status = APPOINTMENT_STATUS_CANCELLED
        appointment.cancelled_at = utc_now()
        if commit:
            db.commit()
        else:
            db.flush()

        logger.info(f"Cancelled appointment {appointment_id} for clinician {clinician_id}")
        return appointment
