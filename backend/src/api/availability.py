# pyright: reportMissingTypeStubs=false
"""
Availability & Booking API endpoints.

Thin adapter over the scheduling services: request bodies are parsed into
pydantic models, services do the work, and SchedulingErrors are mapped to
HTTP responses by the handlers registered in main.py.
"""

import logging
from datetime import date as date_type, datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from core.database import get_db
from models import Appointment, AvailabilityException, TimeBlock, WeeklyAvailabilityBlock
from services import (
    AppointmentService, AvailabilityService, RecurringExceptionService,
    SettingsService, SlotService, TimeOffService
)
from services.recurring_exception_service import EditAction, EditScope, OccurrenceState
from shared_types.availability import AvailabilityConfig, ResolvedInterval
from utils.datetime_utils import format_time, format_time_zone_display, parse_date_string

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Request/Response Models =====

class TimeInterval(BaseModel):
    """Time interval model for availability periods."""
    start_time: str  # Format: "HH:MM"
    end_time: str    # Format: "HH:MM"


class ResolvedIntervalResponse(BaseModel):
    """One merged block of open time, with the sources it came from."""
    start_time: str
    end_time: str
    source_ids: List[str]

    @classmethod
    def from_interval(cls, interval: ResolvedInterval) -> "ResolvedIntervalResponse":
        return cls(**interval.to_dict())


class AvailabilityResponse(BaseModel):
    """Response model for resolved availability on one date."""
    clinician_id: int
    date: date_type
    intervals: List[ResolvedIntervalResponse]


class AvailabilityRangeResponse(BaseModel):
    """Response model for resolved availability over a date range."""
    clinician_id: int
    days: List[AvailabilityResponse]


class SlotResponse(BaseModel):
    """Response model for a single bookable slot."""
    start_utc: datetime
    end_utc: datetime
    start_local_display: str
    end_local_display: str
    available: bool
    local_start: Optional[str] = None
    local_end: Optional[str] = None


class SlotsResponse(BaseModel):
    """Response model for the slots of one date."""
    clinician_id: int
    date: date_type
    client_zone: str
    client_zone_display: str
    slots: List[SlotResponse]


class WeeklyBlockCreateRequest(TimeInterval):
    """Request model for adding a recurring weekly period."""
    day_of_week: int = Field(..., ge=0, le=6, description="0=Monday ... 6=Sunday")


class WeeklyBlockResponse(BaseModel):
    """Response model for a weekly availability block."""
    id: int
    day_of_week: int
    day_name: str
    start_time: str
    end_time: str
    is_active: bool

    @classmethod
    def from_block(cls, block: WeeklyAvailabilityBlock) -> "WeeklyBlockResponse":
        return cls(
            id=block.id,
            day_of_week=block.day_of_week,
            day_name=block.day_name,
            start_time=format_time(block.start_time),
            end_time=format_time(block.end_time),
            is_active=block.is_active,
        )


class WeeklyScheduleResponse(BaseModel):
    """Response model for the weekly schedule, keyed by weekday name."""
    monday: List[WeeklyBlockResponse] = []
    tuesday: List[WeeklyBlockResponse] = []
    wednesday: List[WeeklyBlockResponse] = []
    thursday: List[WeeklyBlockResponse] = []
    friday: List[WeeklyBlockResponse] = []
    saturday: List[WeeklyBlockResponse] = []
    sunday: List[WeeklyBlockResponse] = []


class ExceptionResponse(BaseModel):
    """Response model for an availability exception row."""
    id: int
    date: date_type
    original_block_id: Optional[int] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_deleted: bool

    @classmethod
    def from_exception(cls, exception: AvailabilityException) -> "ExceptionResponse":
        return cls(
            id=exception.id,
            date=exception.specific_date,
            original_block_id=exception.original_block_id,
            start_time=format_time(exception.start_time) if exception.start_time else None,
            end_time=format_time(exception.end_time) if exception.end_time else None,
            is_deleted=exception.is_deleted,
        )


class OccurrenceTransitionRequest(BaseModel):
    """Request model for editing or deleting a weekly block occurrence or series."""
    action: EditAction
    scope: EditScope
    start_time: Optional[str] = None  # Required for action=edit
    end_time: Optional[str] = None


class OccurrenceTransitionResponse(BaseModel):
    """Response model for an applied transition."""
    block: WeeklyBlockResponse
    date: date_type
    state: OccurrenceState
    exception: Optional[ExceptionResponse] = None


class OneTimeAvailabilityRequest(TimeInterval):
    """Request model for adding availability on a single date."""
    date: str


class TimeBlockCreateRequest(TimeInterval):
    """Request model for blocking out time."""
    date: str
    reason: Optional[str] = Field(None, max_length=500)


class TimeBlockResponse(BaseModel):
    """Response model for a time block."""
    id: int
    date: date_type
    start_time: str
    end_time: str
    reason: Optional[str] = None

    @classmethod
    def from_time_block(cls, time_block: TimeBlock) -> "TimeBlockResponse":
        return cls(
            id=time_block.id,
            date=time_block.date,
            start_time=format_time(time_block.start_time),
            end_time=format_time(time_block.end_time),
            reason=time_block.reason,
        )


class SettingsUpdateRequest(BaseModel):
    """Request model for updating availability settings; omitted fields are unchanged."""
    time_granularity: Optional[int] = None
    min_notice_days: Optional[int] = None
    min_notice_hours: Optional[int] = None
    max_advance_days: Optional[int] = None
    buffer_minutes: Optional[int] = None
    time_zone: Optional[str] = None


class AppointmentCreateRequest(BaseModel):
    """Request model for booking a slot."""
    date: str
    start_time: str
    end_time: Optional[str] = None  # Defaults to start + time granularity
    client_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=500)


class AppointmentResponse(BaseModel):
    """Response model for an appointment."""
    id: int
    clinician_id: int
    client_id: Optional[int] = None
    date: date_type
    start_time: str
    end_time: str
    start_utc: Optional[datetime] = None
    end_utc: Optional[datetime] = None
    status: str
    notes: Optional[str] = None

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> "AppointmentResponse":
        return cls(
            id=appointment.id,
            clinician_id=appointment.clinician_id,
            client_id=appointment.client_id,
            date=appointment.date,
            start_time=format_time(appointment.start_time),
            end_time=format_time(appointment.end_time),
            start_utc=appointment.start_utc,
            end_utc=appointment.end_utc,
            status=appointment.status,
            notes=appointment.notes,
        )


# ===== Availability =====

@router.get("/{clinician_id}/availability",
            summary="Get resolved availability for a date range")
async def get_availability_range(
    clinician_id: int,
    start_date: str = Query(..., description="Start date in YYYY-MM-DD format"),
    end_date: str = Query(..., description="End date in YYYY-MM-DD format (inclusive)"),
    db: Session = Depends(get_db)
) -> AvailabilityRangeResponse:
    """Return merged open intervals for every date in the range."""
    AvailabilityService.get_clinician(db, clinician_id)
    resolved = AvailabilityService.resolve_range(db, clinician_id, start_date, end_date)
    return AvailabilityRangeResponse(
        clinician_id=clinician_id,
        days=[
            AvailabilityResponse(
                clinician_id=clinician_id,
                date=day,
                intervals=[ResolvedIntervalResponse.from_interval(i) for i in intervals],
            )
            for day, intervals in resolved.items()
        ],
    )


@router.get("/{clinician_id}/availability/{date}",
            summary="Get resolved availability for a date")
async def get_availability(
    clinician_id: int,
    date: str,
    db: Session = Depends(get_db)
) -> AvailabilityResponse:
    """
    Return the clinician's merged open intervals for a date.

    Weekly blocks, per-date exceptions and one-time availability are merged;
    time off is subtracted. Appointments are not applied here.
    """
    intervals = AvailabilityService.resolve(db, clinician_id, date)
    return AvailabilityResponse(
        clinician_id=clinician_id,
        date=parse_date_string(date),
        intervals=[ResolvedIntervalResponse.from_interval(i) for i in intervals],
    )


@router.get("/{clinician_id}/slots/{date}",
            summary="Get bookable slots for a date")
async def get_slots(
    clinician_id: int,
    date: str,
    client_zone: str = Query(..., description="IANA zone of the person booking, e.g. America/New_York"),
    db: Session = Depends(get_db)
) -> SlotsResponse:
    """
    Return bookable slots with UTC instants and client-local display strings.

    Dates outside the booking window return an empty list.
    """
    slots = SlotService.generate_slots(db, clinician_id, date, client_zone)
    return SlotsResponse(
        clinician_id=clinician_id,
        date=parse_date_string(date),
        client_zone=client_zone,
        client_zone_display=format_time_zone_display(client_zone),
        slots=[SlotResponse(**slot.to_dict()) for slot in slots],
    )


# ===== Weekly schedule =====

@router.get("/{clinician_id}/weekly-blocks",
            summary="Get the clinician's weekly schedule")
async def get_weekly_blocks(
    clinician_id: int,
    db: Session = Depends(get_db)
) -> WeeklyScheduleResponse:
    """Return active weekly blocks grouped by weekday."""
    AvailabilityService.get_clinician(db, clinician_id)
    schedule = AvailabilityService.get_weekly_schedule(db, clinician_id)
    return WeeklyScheduleResponse(**{
        day_name: [WeeklyBlockResponse.from_block(block) for block in blocks]
        for day_name, blocks in schedule.items()
    })


@router.post("/{clinician_id}/weekly-blocks",
             summary="Add a weekly availability block",
             status_code=status.HTTP_201_CREATED)
async def create_weekly_block(
    clinician_id: int,
    request: WeeklyBlockCreateRequest,
    db: Session = Depends(get_db)
) -> WeeklyBlockResponse:
    block = AvailabilityService.create_weekly_block(
        db, clinician_id, request.day_of_week, request.start_time, request.end_time
    )
    return WeeklyBlockResponse.from_block(block)


@router.post("/{clinician_id}/weekly-blocks/{block_id}/occurrences/{date}",
             summary="Edit or delete one occurrence or the whole series")
async def apply_occurrence_transition(
    clinician_id: int,
    block_id: int,
    date: str,
    request: OccurrenceTransitionRequest,
    db: Session = Depends(get_db)
) -> OccurrenceTransitionResponse:
    """
    Apply an edit/delete to a weekly block.

    ``scope=this_occurrence`` writes a per-date exception; ``scope=all_future``
    changes or deactivates the block itself.
    """
    result = RecurringExceptionService.apply_transition(
        db, clinician_id, block_id, date,
        action=request.action,
        scope=request.scope,
        start_time=request.start_time,
        end_time=request.end_time,
    )
    return OccurrenceTransitionResponse(
        block=WeeklyBlockResponse.from_block(result.block),
        date=parse_date_string(date),
        state=result.state,
        exception=ExceptionResponse.from_exception(result.exception) if result.exception else None,
    )


@router.get("/{clinician_id}/weekly-blocks/{block_id}/occurrences/{date}",
            summary="Get the state of one occurrence")
async def get_occurrence_state(
    clinician_id: int,
    block_id: int,
    date: str,
    db: Session = Depends(get_db)
) -> Dict[str, str]:
    state = RecurringExceptionService.get_occurrence_state(db, clinician_id, block_id, date)
    return {"state": state.value}


# ===== One-time availability =====

@router.post("/{clinician_id}/one-time-availability",
             summary="Add availability on a single date",
             status_code=status.HTTP_201_CREATED)
async def add_one_time_availability(
    clinician_id: int,
    request: OneTimeAvailabilityRequest,
    db: Session = Depends(get_db)
) -> ExceptionResponse:
    exception = RecurringExceptionService.add_one_time_availability(
        db, clinician_id, request.date, request.start_time, request.end_time
    )
    return ExceptionResponse.from_exception(exception)


@router.delete("/{clinician_id}/one-time-availability/{exception_id}",
               summary="Remove single-date availability")
async def remove_one_time_availability(
    clinician_id: int,
    exception_id: int,
    db: Session = Depends(get_db)
) -> ExceptionResponse:
    exception = RecurringExceptionService.remove_one_time_availability(db, clinician_id, exception_id)
    return ExceptionResponse.from_exception(exception)


# ===== Time off =====

@router.get("/{clinician_id}/time-blocks",
            summary="List time off in a date range")
async def list_time_blocks(
    clinician_id: int,
    start_date: str = Query(..., description="Start date in YYYY-MM-DD format"),
    end_date: str = Query(..., description="End date in YYYY-MM-DD format (inclusive)"),
    db: Session = Depends(get_db)
) -> List[TimeBlockResponse]:
    time_blocks = TimeOffService.list_time_blocks(db, clinician_id, start_date, end_date)
    return [TimeBlockResponse.from_time_block(tb) for tb in time_blocks]


@router.post("/{clinician_id}/time-blocks",
             summary="Block out time",
             status_code=status.HTTP_201_CREATED)
async def create_time_block(
    clinician_id: int,
    request: TimeBlockCreateRequest,
    db: Session = Depends(get_db)
) -> TimeBlockResponse:
    time_block = TimeOffService.create_time_block(
        db, clinician_id, request.date, request.start_time, request.end_time, reason=request.reason
    )
    return TimeBlockResponse.from_time_block(time_block)


@router.delete("/{clinician_id}/time-blocks/{time_block_id}",
               summary="Remove time off",
               status_code=status.HTTP_204_NO_CONTENT)
async def delete_time_block(
    clinician_id: int,
    time_block_id: int,
    db: Session = Depends(get_db)
) -> None:
    TimeOffService.delete_time_block(db, clinician_id, time_block_id)


# ===== Settings =====

@router.get("/{clinician_id}/settings",
            summary="Get availability settings")
async def get_settings(
    clinician_id: int,
    db: Session = Depends(get_db)
) -> AvailabilityConfig:
    """Return stored settings, or the defaults when none were saved."""
    AvailabilityService.get_clinician(db, clinician_id)
    return SettingsService.get_availability_settings(db, clinician_id)


@router.put("/{clinician_id}/settings",
            summary="Update availability settings")
async def update_settings(
    clinician_id: int,
    request: SettingsUpdateRequest,
    db: Session = Depends(get_db)
) -> AvailabilityConfig:
    updates = request.model_dump(exclude_unset=True)
    return SettingsService.upsert_availability_settings(db, clinician_id, **updates)


# ===== Appointments =====

@router.post("/{clinician_id}/appointments",
             summary="Book a slot",
             status_code=status.HTTP_201_CREATED)
async def book_appointment(
    clinician_id: int,
    request: AppointmentCreateRequest,
    db: Session = Depends(get_db)
) -> AppointmentResponse:
    """
    Book a slot after re-validating it against current availability.

    Returns 409 with code SlotConflict when the time is no longer free;
    the caller should refresh the slot list.
    """
    appointment = AppointmentService.book_appointment(
        db, clinician_id, request.date, request.start_time,
        end_time=request.end_time,
        client_id=request.client_id,
        notes=request.notes,
    )
    return AppointmentResponse.from_appointment(appointment)


@router.post("/{clinician_id}/appointments/{appointment_id}/cancel",
             summary="Cancel an appointment")
async def cancel_appointment(
    clinician_id: int,
    appointment_id: int,
    db: Session = Depends(get_db)
) -> AppointmentResponse:
    appointment = AppointmentService.cancel_appointment(db, clinician_id, appointment_id)
    return AppointmentResponse.from_appointment(appointment)
