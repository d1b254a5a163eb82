"""
Time off service for clinician blackout periods.

Time blocks only ever remove availability; AvailabilityService subtracts
them after merging the other sources.
"""

import logging
from datetime import date as date_type, time
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from models import TimeBlock
from services.availability_service import AvailabilityService
from services.interval_merger import IntervalMerger
from utils.datetime_utils import coerce_date, coerce_time

logger = logging.getLogger(__name__)


class TimeOffService:
    """Service class for time block operations."""

    @staticmethod
    def create_time_block(
        db: Session,
        clinician_id: int,
        date: Union[str, date_type],
        start_time: Union[str, time],
        end_time: Union[str, time],
        reason: Optional[str] = None,
        commit: bool = True
    ) -> TimeBlock:
        """
        Block out part of a date.

        Raises:
            NotFoundError: If the clinician does not exist
            InvalidDateTimeFormat: If the date or times are malformed
            InvalidInterval: If end <= start
        """
        AvailabilityService.get_clinician(db, clinician_id)
        block_date = coerce_date(date)
        start = coerce_time(start_time, field="start_time")
        end = coerce_time(end_time, field="end_time")
        IntervalMerger.validate(start, end, label="time block")

        time_block = TimeBlock(
            clinician_id=clinician_id,
            date=block_date,
            start_time=start,
            end_time=end,
            reason=reason,
        )
        db.add(time_block)
        if commit:
            db.commit()
        else:
            db.flush()

        logger.info(f"Created time block {time_block.id} for clinician {clinician_id} on {block_date} {start}-{end}")
        return time_block

    @staticmethod
    def list_time_blocks(
        db: Session,
        clinician_id: int,
        start_date: Union[str, date_type],
        end_date: Union[str, date_type]
    ) -> List[TimeBlock]:
        """List time blocks with dates in ``[start_date, end_date]``, ordered by date and start."""
        start = coerce_date(start_date)
        end = coerce_date(end_date)
        AvailabilityService.validate_date_range(start, end)

        return db.query(TimeBlock).filter(
            TimeBlock.clinician_id == clinician_id,
            TimeBlock.date >= start,
            TimeBlock.date <= end
        ).order_by(TimeBlock.date, TimeBlock.start_time).all()

    @staticmethod
    def delete_time_block(
        db: Session,
        clinician_id: int,
        time_block_id: int,
        commit: bool = True
    ) -> None:
        """
        Remove a time block, restoring the time it covered.

        Raises:
            NotFoundError: If the time block does not belong to the clinician
        """
        time_block = db.query(TimeBlock).filter(
            TimeBlock.id == time_block_id,
            TimeBlock.clinician_id == clinician_id
        ).first()
        if not time_block:
            raise NotFoundError(f"Time block {time_block_id} not found", field="time_block_id")

        db.delete(time_block)
        if commit:
            db.commit()
        else:
            db.flush()
        logger.info(f"Deleted time block {time_block_id} for clinician {clinician_id}")
