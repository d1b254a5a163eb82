"""
Recurring exception service for edits to weekly availability series.

Each (weekly block, date) pair is in one of three states - unmodified,
overridden or cancelled - held as at most one AvailabilityException row per
(clinician, date, block). Edits choose a scope: this occurrence only, which
writes that row, or the whole series, which changes the block itself and
never touches per-date rows.
"""

import logging
from dataclasses import dataclass
from datetime import date as date_type, time
from enum import Enum
from typing import List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.constants import WEEKDAY_NAMES
from core.exceptions import InvalidDateTimeFormat, MissingContext, NotFoundError
from models import AvailabilityException, WeeklyAvailabilityBlock
from services.availability_service import AvailabilityService
from services.interval_merger import IntervalMerger
from utils.datetime_utils import coerce_date, coerce_time

logger = logging.getLogger(__name__)


class OccurrenceState(str, Enum):
    UNMODIFIED = "unmodified"
    OVERRIDDEN = "overridden"
    CANCELLED = "cancelled"


class EditAction(str, Enum):
    EDIT = "edit"
    DELETE = "delete"


class EditScope(str, Enum):
    THIS_OCCURRENCE = "this_occurrence"
    ALL_FUTURE = "all_future"


@dataclass
class TransitionResult:
    """Outcome of a transition: the occurrence's new state and the rows written."""
    state: OccurrenceState
    block: WeeklyAvailabilityBlock
    exception: Optional[AvailabilityException] = None


class RecurringExceptionService:
    """Service class for per-occurrence and series-wide availability edits."""

    @staticmethod
    def _require_context(clinician_id: Optional[int], specific_date: Union[str, date_type, None]) -> date_type:
        if clinician_id is None:
            raise MissingContext("clinician_id is required", field="clinician_id")
        if specific_date is None or (isinstance(specific_date, str) and not specific_date.strip()):
            raise MissingContext("specific_date is required", field="specific_date")
        return coerce_date(specific_date)

    @staticmethod
    def _find_occurrence_exception(
        db: Session,
        clinician_id: int,
        specific_date: date_type,
        block_id: int
    ) -> Optional[AvailabilityException]:
        return db.query(AvailabilityException).filter(
            AvailabilityException.clinician_id == clinician_id,
            AvailabilityException.specific_date == specific_date,
            AvailabilityException.original_block_id == block_id
        ).first()

    @staticmethod
    def state_of(exception: Optional[AvailabilityException]) -> OccurrenceState:
        if exception is None:
            return OccurrenceState.UNMODIFIED
        if exception.is_deleted:
            return OccurrenceState.CANCELLED
        return OccurrenceState.OVERRIDDEN

    @staticmethod
    def get_occurrence_state(
        db: Session,
        clinician_id: Optional[int],
        block_id: int,
        specific_date: Union[str, date_type, None]
    ) -> OccurrenceState:
        """Report whether one occurrence of a weekly block is unmodified, overridden or cancelled."""
        occurrence_date = RecurringExceptionService._require_context(clinician_id, specific_date)
        assert clinician_id is not None
        AvailabilityService.get_weekly_block(db, clinician_id, block_id)
        exception = RecurringExceptionService._find_occurrence_exception(db, clinician_id, occurrence_date, block_id)
        return RecurringExceptionService.state_of(exception)

    @staticmethod
    def _upsert_occurrence_exception(
        db: Session,
        clinician_id: int,
        specific_date: date_type,
        block_id: int,
        start_time: Optional[time],
        end_time: Optional[time],
        is_deleted: bool
    ) -> AvailabilityException:
        """Update the occurrence row in place if it exists, otherwise insert it."""
        exception = RecurringExceptionService._find_occurrence_exception(db, clinician_id, specific_date, block_id)
        if exception is None:
            exception = AvailabilityException(
                clinician_id=clinician_id,
                specific_date=specific_date,
                original_block_id=block_id,
                start_time=start_time,
                end_time=end_time,
                is_deleted=is_deleted,
            )
            try:
                with db.begin_nested():
                    db.add(exception)
                return exception
            except IntegrityError:
                # A concurrent writer inserted the same occurrence first
                logger.info(f"Occurrence exception for block {block_id} on {specific_date} already exists; updating")
                exception = RecurringExceptionService._find_occurrence_exception(db, clinician_id, specific_date, block_id)
                if exception is None:
                    raise

        exception.start_time = start_time
        exception.end_time = end_time
        exception.is_deleted = is_deleted
        return exception

    @staticmethod
    def apply_transition(
        db: Session,
        clinician_id: Optional[int],
        block_id: int,
        specific_date: Union[str, date_type, None],
        action: EditAction,
        scope: EditScope,
        start_time: Union[str, time, None] = None,
        end_time: Union[str, time, None] = None,
        commit: bool = True
    ) -> TransitionResult:
        """
        Apply an edit or delete to a weekly block, for one occurrence or the series.

        - EDIT + THIS_OCCURRENCE: upsert an overriding exception (state OVERRIDDEN).
        - DELETE + THIS_OCCURRENCE: upsert a cancelling exception (state CANCELLED).
        - EDIT + ALL_FUTURE: change the block's own times; existing per-date
          exceptions are left as they are and keep winning on their dates.
        - DELETE + ALL_FUTURE: deactivate the block; no exception rows are written.

        Re-applying the same transition leaves exactly one row per occurrence.

        Args:
            db: Database session
            clinician_id: Clinician who owns the block
            block_id: Weekly block (recurring series) ID
            specific_date: Occurrence date the user acted on
            action: EDIT or DELETE
            scope: THIS_OCCURRENCE or ALL_FUTURE
            start_time: New start (EDIT only)
            end_time: New end (EDIT only)
            commit: Commit the session when done (default True)

        Returns:
            TransitionResult with the occurrence state on ``specific_date``

        Raises:
            MissingContext: If clinician_id or specific_date is missing
            NotFoundError: If the block does not exist, or is inactive for
                anything but a series delete
            InvalidDateTimeFormat: If the date does not fall on the block's weekday
                or a time is malformed
            InvalidInterval: If an edit's end <= start
        """
        occurrence_date = RecurringExceptionService._require_context(clinician_id, specific_date)
        assert clinician_id is not None
        action = EditAction(action)
        scope = EditScope(scope)

        block = AvailabilityService.get_weekly_block(db, clinician_id, block_id)

        if not block.is_active and not (action == EditAction.DELETE and scope == EditScope.ALL_FUTURE):
            raise NotFoundError(f"Weekly availability block {block_id} is no longer active", field="block_id")

        if occurrence_date.weekday() != block.day_of_week:
            raise InvalidDateTimeFormat(
                f"{occurrence_date.isoformat()} is a {WEEKDAY_NAMES[occurrence_date.weekday()]} "
                f"but block {block_id} recurs on {WEEKDAY_NAMES[block.day_of_week]}",
                field="specific_date",
            )

        new_start: Optional[time] = None
        new_end: Optional[time] = None
        if action == EditAction.EDIT:
            if start_time is None or end_time is None:
                raise InvalidDateTimeFormat("start_time and end_time are required for an edit", field="start_time" if start_time is None else "end_time")
            new_start = coerce_time(start_time, field="start_time")
            new_end = coerce_time(end_time, field="end_time")
            IntervalMerger.validate(new_start, new_end, label="availability")

        exception: Optional[AvailabilityException] = None
        if scope == EditScope.THIS_OCCURRENCE:
            exception = RecurringExceptionService._upsert_occurrence_exception(
                db, clinician_id, occurrence_date, block.id,
                start_time=new_start,
                end_time=new_end,
                is_deleted=(action == EditAction.DELETE),
            )
            state = RecurringExceptionService.state_of(exception)
        elif action == EditAction.EDIT:
            assert new_start is not None and new_end is not None
            block.start_time = new_start
            block.end_time = new_end
            exception = RecurringExceptionService._find_occurrence_exception(db, clinician_id, occurrence_date, block.id)
            state = RecurringExceptionService.state_of(exception)
        else:
            block.is_active = False
            state = OccurrenceState.CANCELLED

        if commit:
            db.commit()
        else:
            db.flush()

        logger.info(
            f"Applied {action.value}/{scope.value} to block {block.id} on {occurrence_date} "
            f"for clinician {clinician_id}: {state.value}"
        )
        return TransitionResult(state=state, block=block, exception=exception)

    # ===== One-time availability =====

    @staticmethod
    def add_one_time_availability(
        db: Session,
        clinician_id: Optional[int],
        specific_date: Union[str, date_type, None],
        start_time: Union[str, time],
        end_time: Union[str, time],
        commit: bool = True
    ) -> AvailabilityException:
        """
        Add standalone availability on a single date.

        Several one-time additions may exist for the same date.

        Raises:
            MissingContext: If clinician_id or specific_date is missing
            NotFoundError: If the clinician does not exist
            InvalidInterval: If end <= start
        """
        occurrence_date = RecurringExceptionService._require_context(clinician_id, specific_date)
        assert clinician_id is not None
        AvailabilityService.get_clinician(db, clinician_id)

        start = coerce_time(start_time, field="start_time")
        end = coerce_time(end_time, field="end_time")
        IntervalMerger.validate(start, end, label="one-time availability")

        exception = AvailabilityException(
            clinician_id=clinician_id,
            specific_date=occurrence_date,
            original_block_id=None,
            start_time=start,
            end_time=end,
            is_deleted=False,
        )
        db.add(exception)
        if commit:
            db.commit()
        else:
            db.flush()

        logger.info(f"Added one-time availability {exception.id} for clinician {clinician_id} on {occurrence_date} {start}-{end}")
        return exception

    @staticmethod
    def remove_one_time_availability(
        db: Session,
        clinician_id: Optional[int],
        exception_id: int,
        commit: bool = True
    ) -> AvailabilityException:
        """
        Cancel a standalone one-time availability entry (idempotent).

        Raises:
            MissingContext: If clinician_id is missing
            NotFoundError: If no standalone entry with this ID belongs to the clinician
        """
        if clinician_id is None:
            raise MissingContext("clinician_id is required", field="clinician_id")

        exception = db.query(AvailabilityException).filter(
            AvailabilityException.id == exception_id,
            AvailabilityException.clinician_id == clinician_id,
            AvailabilityException.original_block_id.is_(None)
        ).first()
        if not exception:
            raise NotFoundError(f"One-time availability {exception_id} not found", field="exception_id")

        exception.is_deleted = True
        exception.start_time = None
        exception.end_time = None
        if commit:
            db.commit()
        else:
            db.flush()
        return exception

    @staticmethod
    def list_exceptions(
        db: Session,
        clinician_id: int,
        specific_date: Union[str, date_type]
    ) -> List[AvailabilityException]:
        """All exception rows for a clinician on a date, including cancellations."""
        occurrence_date = coerce_date(specific_date)
        return db.query(AvailabilityException).filter(
            AvailabilityException.clinician_id == clinician_id,
            AvailabilityException.specific_date == occurrence_date
        ).order_by(AvailabilityException.id).all()
