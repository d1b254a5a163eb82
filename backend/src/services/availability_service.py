"""
Availability service for resolving a clinician's open time.

This module merges the three independently edited availability sources -
the weekly recurring pattern, per-date exceptions and time blocks - into
the clinician's raw bookable intervals for a date. It also owns the weekly
block management used by the settings screens.
"""

import logging
from datetime import date as date_type, time, timedelta
from typing import Any, Dict, List, Union

from sqlalchemy.orm import Session

from core.constants import ACTIVE_APPOINTMENT_STATUSES, MAX_RANGE_DAYS, WEEKDAY_NAMES
from core.exceptions import InvalidDateTimeFormat, NotFoundError
from models import (
    Appointment, AvailabilityException, Clinician, TimeBlock, WeeklyAvailabilityBlock
)
from services.interval_merger import IntervalMerger
from shared_types.availability import ResolvedInterval, SourceInterval
from utils.datetime_utils import coerce_date, coerce_time

logger = logging.getLogger(__name__)


def block_source_id(block_id: int) -> str:
    return f"block:{block_id}"


def exception_source_id(exception_id: int) -> str:
    return f"exception:{exception_id}"


def time_block_source_id(time_block_id: int) -> str:
    return f"time_block:{time_block_id}"


class AvailabilityService:
    """
    Service class for availability operations.

    ``resolve`` is a pure read: each call fetches the sources for one
    clinician and date and computes the result fresh.
    """

    @staticmethod
    def get_clinician(db: Session, clinician_id: int) -> Clinician:
        """
        Get a clinician by ID.

        Raises:
            NotFoundError: If the clinician does not exist
        """
        clinician = db.query(Clinician).filter(Clinician.id == clinician_id).first()
        if not clinician:
            raise NotFoundError(f"Clinician {clinician_id} not found", field="clinician_id")
        return clinician

    @staticmethod
    def fetch_clinician_schedule_data(
        db: Session,
        clinician_id: int,
        date: date_type
    ) -> Dict[str, Any]:
        """
        Fetch every availability source for one clinician and date.

        Args:
            db: Database session
            clinician_id: Clinician ID
            date: Local date to fetch

        Returns:
            Dict with keys:
            - 'weekly_blocks': active WeeklyAvailabilityBlocks for the weekday
            - 'exceptions': all AvailabilityExceptions for the date
            - 'time_blocks': TimeBlocks for the date
            - 'appointments': active Appointments for the date
        """
        day_of_week = date.weekday()

        weekly_blocks = db.query(WeeklyAvailabilityBlock).filter(
            WeeklyAvailabilityBlock.clinician_id == clinician_id,
            WeeklyAvailabilityBlock.day_of_week == day_of_week,
            WeeklyAvailabilityBlock.is_active == True  # noqa: E712
        ).order_by(WeeklyAvailabilityBlock.start_time, WeeklyAvailabilityBlock.id).all()

        exceptions = db.query(AvailabilityException).filter(
            AvailabilityException.clinician_id == clinician_id,
            AvailabilityException.specific_date == date
        ).order_by(AvailabilityException.id).all()

        time_blocks = db.query(TimeBlock).filter(
            TimeBlock.clinician_id == clinician_id,
            TimeBlock.date == date
        ).order_by(TimeBlock.start_time).all()

        appointments = db.query(Appointment).filter(
            Appointment.clinician_id == clinician_id,
            Appointment.date == date,
            Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES)
        ).order_by(Appointment.start_time).all()

        return {
            'weekly_blocks': weekly_blocks,
            'exceptions': exceptions,
            'time_blocks': time_blocks,
            'appointments': appointments,
        }

    @staticmethod
    def collect_source_intervals(
        weekly_blocks: List[WeeklyAvailabilityBlock],
        exceptions: List[AvailabilityException]
    ) -> List[SourceInterval]:
        """
        Apply per-date exceptions to weekly blocks and add one-time availability.

        Pure function - no database queries. Uses pre-fetched data.

        - A block whose occurrence is cancelled contributes nothing.
        - A block with an overriding exception contributes the exception's times.
        - Otherwise the block contributes its own times.
        - Standalone, non-deleted exceptions are added as extra availability.

        Exceptions always win over their parent block, however recently the
        block itself was edited.
        """
        block_exceptions: Dict[int, AvailabilityException] = {}
        standalone: List[AvailabilityException] = []
        for exception in exceptions:
            if exception.original_block_id is None:
                standalone.append(exception)
            else:
                block_exceptions[exception.original_block_id] = exception

        intervals: List[SourceInterval] = []
        for block in weekly_blocks:
            exception = block_exceptions.get(block.id)
            if exception is None:
                intervals.append(SourceInterval(block.start_time, block.end_time, block_source_id(block.id)))
                continue

            if exception.is_deleted:
                continue

            if exception.start_time is not None and exception.end_time is not None:
                intervals.append(SourceInterval(exception.start_time, exception.end_time, exception_source_id(exception.id)))
            else:
                logger.warning(
                    f"Exception {exception.id} for block {block.id} has no times and is not deleted; "
                    f"using block times"
                )
                intervals.append(SourceInterval(block.start_time, block.end_time, block_source_id(block.id)))

        for exception in standalone:
            if exception.is_deleted or exception.start_time is None or exception.end_time is None:
                continue
            intervals.append(SourceInterval(exception.start_time, exception.end_time, exception_source_id(exception.id)))

        return intervals

    @staticmethod
    def compute_resolved_intervals(
        weekly_blocks: List[WeeklyAvailabilityBlock],
        exceptions: List[AvailabilityException],
        time_blocks: List[TimeBlock]
    ) -> List[ResolvedInterval]:
        """
        Reduce pre-fetched sources to open intervals for one date.

        Pure function - no database queries. Later steps only remove time:
        exceptions are applied, the result is merged, then time blocks are
        subtracted.
        """
        intervals = AvailabilityService.collect_source_intervals(weekly_blocks, exceptions)
        merged = IntervalMerger.merge(intervals)
        blackouts = [
            SourceInterval(tb.start_time, tb.end_time, time_block_source_id(tb.id))
            for tb in time_blocks
        ]
        return IntervalMerger.subtract(merged, blackouts)

    @staticmethod
    def resolve(
        db: Session,
        clinician_id: int,
        date: Union[str, date_type]
    ) -> List[ResolvedInterval]:
        """
        Resolve a clinician's open time on a date, net of time blocks.

        Args:
            db: Database session
            clinician_id: Clinician ID
            date: Local date in the clinician's zone ("YYYY-MM-DD" or date)

        Returns:
            ResolvedIntervals ordered by start; empty if nothing is open

        Raises:
            InvalidDateTimeFormat: If the date string is malformed
            NotFoundError: If the clinician does not exist
            InvalidInterval: If stored source data is inverted
        """
        requested_date = coerce_date(date)
        AvailabilityService.get_clinician(db, clinician_id)

        schedule_data = AvailabilityService.fetch_clinician_schedule_data(db, clinician_id, requested_date)
        return AvailabilityService.compute_resolved_intervals(
            schedule_data['weekly_blocks'],
            schedule_data['exceptions'],
            schedule_data['time_blocks'],
        )

    @staticmethod
    def resolve_range(
        db: Session,
        clinician_id: int,
        start_date: Union[str, date_type],
        end_date: Union[str, date_type]
    ) -> Dict[date_type, List[ResolvedInterval]]:
        """
        Resolve every date in ``[start_date, end_date]`` (inclusive).

        Raises:
            InvalidDateTimeFormat: If the range is inverted or longer than MAX_RANGE_DAYS
        """
        start = coerce_date(start_date)
        end = coerce_date(end_date)
        AvailabilityService.validate_date_range(start, end)

        result: Dict[date_type, List[ResolvedInterval]] = {}
        current = start
        while current <= end:
            result[current] = AvailabilityService.resolve(db, clinician_id, current)
            current += timedelta(days=1)
        return result

    @staticmethod
    def validate_date_range(start: date_type, end: date_type) -> None:
        if end < start:
            raise InvalidDateTimeFormat("end_date must not be before start_date", field="end_date")
        if (end - start).days + 1 > MAX_RANGE_DAYS:
            raise InvalidDateTimeFormat(f"Date range cannot exceed {MAX_RANGE_DAYS} days", field="end_date")

    # ===== Weekly block management =====

    @staticmethod
    def create_weekly_block(
        db: Session,
        clinician_id: int,
        day_of_week: int,
        start_time: Union[str, time],
        end_time: Union[str, time],
        commit: bool = True
    ) -> WeeklyAvailabilityBlock:
        """
        Add a recurring weekly availability period.

        Raises:
            NotFoundError: If the clinician does not exist
            InvalidDateTimeFormat: If the weekday or times are malformed
            InvalidInterval: If end <= start
        """
        AvailabilityService.get_clinician(db, clinician_id)
        if not 0 <= day_of_week <= 6:
            raise InvalidDateTimeFormat("day_of_week must be between 0 (Monday) and 6 (Sunday)", field="day_of_week")

        start = coerce_time(start_time, field="start_time")
        end = coerce_time(end_time, field="end_time")
        IntervalMerger.validate(start, end, label="weekly block")

        block = WeeklyAvailabilityBlock(
            clinician_id=clinician_id,
            day_of_week=day_of_week,
            start_time=start,
            end_time=end,
            is_active=True,
        )
        db.add(block)
        if commit:
            db.commit()
        else:
            db.flush()

        logger.info(f"Created weekly block {block.id} for clinician {clinician_id} on {block.day_name} {start}-{end}")
        return block

    @staticmethod
    def get_weekly_block(db: Session, clinician_id: int, block_id: int) -> WeeklyAvailabilityBlock:
        """
        Get one of a clinician's weekly blocks, active or not.

        Raises:
            NotFoundError: If the block does not exist or belongs to someone else
        """
        block = db.query(WeeklyAvailabilityBlock).filter(
            WeeklyAvailabilityBlock.id == block_id,
            WeeklyAvailabilityBlock.clinician_id == clinician_id
        ).first()
        if not block:
            raise NotFoundError(f"Weekly availability block {block_id} not found", field="block_id")
        return block

    @staticmethod
    def list_weekly_blocks(
        db: Session,
        clinician_id: int,
        include_inactive: bool = False
    ) -> List[WeeklyAvailabilityBlock]:
        """List a clinician's weekly blocks ordered by weekday then start time."""
        query = db.query(WeeklyAvailabilityBlock).filter(
            WeeklyAvailabilityBlock.clinician_id == clinician_id
        )
        if not include_inactive:
            query = query.filter(WeeklyAvailabilityBlock.is_active == True)  # noqa: E712
        return query.order_by(
            WeeklyAvailabilityBlock.day_of_week,
            WeeklyAvailabilityBlock.start_time,
            WeeklyAvailabilityBlock.id
        ).all()

    @staticmethod
    def get_weekly_schedule(db: Session, clinician_id: int) -> Dict[str, List[WeeklyAvailabilityBlock]]:
        """
        Group a clinician's active weekly blocks by weekday name.

        Returns:
            Dict keyed 'monday' ... 'sunday' (in that order); days without
            blocks map to an empty list
        """
        schedule: Dict[str, List[WeeklyAvailabilityBlock]] = {name: [] for name in WEEKDAY_NAMES}
        for block in AvailabilityService.list_weekly_blocks(db, clinician_id):
            schedule[WEEKDAY_NAMES[block.day_of_week]].append(block)
        return schedule
