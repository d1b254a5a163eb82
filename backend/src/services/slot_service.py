"""
Slot service for turning resolved availability into bookable slots.

Resolved intervals are sliced at the clinician's configured granularity,
checked against active appointments and the booking window, then converted
to UTC and to the client's zone for display.
"""

import logging
from datetime import date as date_type, datetime, time, timedelta
from typing import Dict, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from core.exceptions import DSTGapError
from models import Appointment
from services.availability_service import AvailabilityService
from services.settings_service import SettingsService
from shared_types.availability import AvailabilityConfig, BookableSlot, ResolvedInterval
from utils.datetime_utils import (
    coerce_date, convert_time_zone, format_local_display, get_zone,
    local_to_utc, now_in_zone
)

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


def _to_minutes(t: time, round_up: bool = False) -> int:
    """Minutes since midnight. A partial minute is dropped, or counted as a whole one when ``round_up``."""
    minutes = t.hour * 60 + t.minute
    if round_up and (t.second or t.microsecond):
        minutes += 1
    return minutes


def _from_minutes(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


class SlotService:
    """
    Service class for slot generation.

    Like AvailabilityService.resolve, generation is a pure read computed
    fresh per request.
    """

    @staticmethod
    def is_within_booking_window(
        requested_date: date_type,
        today: date_type,
        config: AvailabilityConfig
    ) -> bool:
        """
        Check the date-level booking window.

        A date is outside the window if it is before today, fewer than
        ``min_notice_days`` after today, or more than ``max_advance_days``
        after today.
        """
        days_ahead = (requested_date - today).days
        if days_ahead < 0:
            return False
        if days_ahead < config.min_notice_days:
            return False
        if days_ahead > config.max_advance_days:
            return False
        return True

    @staticmethod
    def slice_intervals(
        intervals: List[ResolvedInterval],
        granularity_minutes: int
    ) -> List[Tuple[int, int]]:
        """
        Cut intervals into fixed-width slots starting at each interval's start.

        Pure function. A trailing remainder shorter than the granularity is
        dropped, so a 45 minute interval at 30 minute granularity yields one slot.
        Boundaries carrying seconds are rounded inward to whole minutes, so a
        slot never starts before or ends after the time it was cut from.

        Returns:
            (start_minute, end_minute) pairs measured from local midnight,
            ascending by start
        """
        slots: List[Tuple[int, int]] = []
        for interval in intervals:
            end = _to_minutes(interval.end)
            current = _to_minutes(interval.start, round_up=True)
            while current + granularity_minutes <= end:
                slots.append((current, current + granularity_minutes))
                current += granularity_minutes
        slots.sort()
        return slots

    @staticmethod
    def minute_range(start: time, end: time) -> Tuple[int, int]:
        """Whole-minute range covering ``[start, end)``, rounded outward."""
        return _to_minutes(start), _to_minutes(end, round_up=True)

    @staticmethod
    def busy_ranges(appointments: List[Appointment], buffer_minutes: int = 0) -> List[Tuple[int, int]]:
        """Active appointment ranges in minutes, widened by ``buffer_minutes`` on both sides."""
        ranges: List[Tuple[int, int]] = []
        for appointment in appointments:
            start, end = SlotService.minute_range(appointment.start_time, appointment.end_time)
            start = max(0, start - buffer_minutes)
            end = min(MINUTES_PER_DAY, end + buffer_minutes)
            ranges.append((start, end))
        return ranges

    @staticmethod
    def _slot_overlaps_busy(slot: Tuple[int, int], busy: List[Tuple[int, int]]) -> bool:
        return any(slot[0] < busy_end and busy_start < slot[1] for busy_start, busy_end in busy)

    @staticmethod
    def generate_slots(
        db: Session,
        clinician_id: int,
        date: Union[str, date_type],
        client_zone: str,
        now: Optional[datetime] = None
    ) -> List[BookableSlot]:
        """
        Generate bookable slots for one clinician and date.

        Steps:
        1. Resolve raw availability for the date.
        2. Return [] when the date is outside the booking window, judged
           against "today" in the clinician's settings zone.
        3. Slice at ``time_granularity``, dropping trailing partial slots.
        4. Mark slots overlapping an active appointment (widened by
           ``buffer_minutes``) unavailable, and, when ``min_notice_hours`` is
           set, slots starting sooner than that from now.
        5. Convert to UTC and to ``client_zone`` for display.

        A slot whose start falls in a DST gap does not exist on that date and
        is left out. When only its end falls in the gap, the slot keeps its
        full length in real time and ends at the first wall-clock time after
        the transition.

        Args:
            db: Database session
            clinician_id: Clinician ID
            date: Local date in the clinician's zone
            client_zone: IANA zone of the person browsing
            now: Reference instant (defaults to the current time)

        Returns:
            BookableSlots ascending by start; empty for dates outside the
            window or without availability

        Raises:
            InvalidTimeZone: If client_zone is not a valid IANA zone
            InvalidDateTimeFormat: If the date is malformed
            NotFoundError: If the clinician does not exist
        """
        requested_date = coerce_date(date)
        get_zone(client_zone)
        AvailabilityService.get_clinician(db, clinician_id)

        config = SettingsService.get_availability_settings(db, clinician_id)
        zone = config.time_zone
        current = now if now is not None else now_in_zone(zone)
        today = current.astimezone(get_zone(zone)).date()

        if not SlotService.is_within_booking_window(requested_date, today, config):
            logger.debug(
                f"Date {requested_date} outside booking window for clinician {clinician_id} "
                f"(today={today}, min_notice_days={config.min_notice_days}, max_advance_days={config.max_advance_days})"
            )
            return []

        schedule_data = AvailabilityService.fetch_clinician_schedule_data(db, clinician_id, requested_date)
        resolved = AvailabilityService.compute_resolved_intervals(
            schedule_data['weekly_blocks'],
            schedule_data['exceptions'],
            schedule_data['time_blocks'],
        )
        if not resolved:
            return []

        busy = SlotService.busy_ranges(schedule_data['appointments'], config.buffer_minutes)
        earliest_start: Optional[datetime] = None
        if config.min_notice_hours:
            earliest_start = current + timedelta(hours=config.min_notice_hours)

        slots: List[BookableSlot] = []
        for slot in SlotService.slice_intervals(resolved, config.time_granularity):
            local_start = _from_minutes(slot[0])
            local_end = _from_minutes(slot[1])
            try:
                start_utc = local_to_utc(requested_date, local_start, zone)
            except DSTGapError:
                logger.debug(f"Skipping slot {slot} on {requested_date}: starts in a DST gap in {zone}")
                continue
            try:
                end_utc = local_to_utc(requested_date, local_end, zone)
            except DSTGapError:
                end_utc = start_utc + timedelta(minutes=config.time_granularity)
                local_end = convert_time_zone(end_utc, zone).time()

            available = not SlotService._slot_overlaps_busy(slot, busy)
            if available and earliest_start is not None and start_utc < earliest_start:
                available = False

            slots.append(BookableSlot(
                start_utc=start_utc,
                end_utc=end_utc,
                start_local_display=format_local_display(convert_time_zone(start_utc, client_zone)),
                end_local_display=format_local_display(convert_time_zone(end_utc, client_zone)),
                available=available,
                local_start=local_start,
                local_end=local_end,
            ))

        return slots

    @staticmethod
    def generate_slots_for_range(
        db: Session,
        clinician_id: int,
        start_date: Union[str, date_type],
        end_date: Union[str, date_type],
        client_zone: str,
        now: Optional[datetime] = None
    ) -> Dict[date_type, List[BookableSlot]]:
        """
        Generate slots for every date in ``[start_date, end_date]`` (inclusive).

        Raises:
            InvalidDateTimeFormat: If the range is inverted or too long
        """
        start = coerce_date(start_date)
        end = coerce_date(end_date)
        AvailabilityService.validate_date_range(start, end)

        result: Dict[date_type, List[BookableSlot]] = {}
        current = start
        while current <= end:
            result[current] = SlotService.generate_slots(db, clinician_id, current, client_zone, now=now)
            current += timedelta(days=1)
        return result
