"""
Shared types for availability-related functionality.

This module contains the value types passed between the availability
services (resolved intervals, bookable slots) and the explicit settings
struct with its documented defaults.
"""

from dataclasses import dataclass, field
from datetime import datetime, time
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from core.config import (
    CLINIC_TIME_ZONE,
    DEFAULT_MAX_ADVANCE_DAYS,
    DEFAULT_MIN_NOTICE_DAYS,
    DEFAULT_TIME_GRANULARITY_MINUTES,
)
from core.constants import ALLOWED_TIME_GRANULARITIES
from utils.datetime_utils import format_time, validate_time_zone


@dataclass(frozen=True)
class SourceInterval:
    """
    One labeled input interval on a single local date.

    ``source_id`` identifies where the time came from, e.g. "block:12" or
    "exception:40", so merged output can explain itself.
    """
    start: time
    end: time
    source_id: str


@dataclass
class ResolvedInterval:
    """
    A merged block of open time on one date, in the clinician's zone.

    Request-scoped: computed fresh per query and never cached.
    """
    start: time
    end: time
    source_ids: List[str] = field(default_factory=list)

    @property
    def duration_minutes(self) -> int:
        start_minutes = self.start.hour * 60 + self.start.minute
        end_minutes = self.end.hour * 60 + self.end.minute
        return end_minutes - start_minutes

    def to_dict(self) -> dict[str, str | List[str]]:
        """Convert to dictionary format."""
        return {
            "start_time": format_time(self.start),
            "end_time": format_time(self.end),
            "source_ids": list(self.source_ids),
        }


@dataclass
class BookableSlot:
    """
    A fixed-granularity unit of time a client can reserve.

    Carries the UTC instants (persisted on booking) and the client-local
    display strings (shown in the UI).
    """
    start_utc: datetime
    end_utc: datetime
    start_local_display: str
    end_local_display: str
    available: bool
    local_start: Optional[time] = None  # Clinician wall clock
    local_end: Optional[time] = None

    def to_dict(self) -> dict[str, str | bool | None]:
        """Convert to dictionary format."""
        return {
            "start_utc": self.start_utc.isoformat(),
            "end_utc": self.end_utc.isoformat(),
            "start_local_display": self.start_local_display,
            "end_local_display": self.end_local_display,
            "available": self.available,
            "local_start": format_time(self.local_start) if self.local_start else None,
            "local_end": format_time(self.local_end) if self.local_end else None,
        }


class AvailabilityConfig(BaseModel):
    """
    Effective availability settings for one clinician.

    Built from the clinician's AvailabilitySettings row, or from these
    defaults when the clinician has never saved settings.
    """
    time_granularity: int = Field(default=DEFAULT_TIME_GRANULARITY_MINUTES, description="Slot width in minutes. One of 15, 30, 60.")
    min_notice_days: int = Field(default=DEFAULT_MIN_NOTICE_DAYS, ge=0, description="Dates closer than this many days to today are not bookable.")
    min_notice_hours: Optional[int] = Field(default=None, ge=0, le=24 * 365, description="Optional additional notice in hours, applied per slot against the current instant.")
    max_advance_days: int = Field(default=DEFAULT_MAX_ADVANCE_DAYS, ge=1, le=365, description="Dates further than this many days from today are not bookable.")
    buffer_minutes: int = Field(default=0, ge=0, le=240, description="Padding applied on both sides of each appointment when excluding slots.")
    time_zone: str = Field(default=CLINIC_TIME_ZONE, description="IANA zone for the clinician's wall-clock times and reference 'today'.")
    is_default: bool = Field(default=False, description="True when no stored settings row exists.")

    @field_validator('time_granularity')
    @classmethod
    def validate_granularity(cls, v: int) -> int:
        if v not in ALLOWED_TIME_GRANULARITIES:
            raise ValueError(f"time_granularity must be one of {ALLOWED_TIME_GRANULARITIES}")
        return v

    @field_validator('time_zone')
    @classmethod
    def validate_zone(cls, v: str) -> str:
        return validate_time_zone(v)

    @classmethod
    def defaults(cls, time_zone: Optional[str] = None) -> "AvailabilityConfig":
        """Documented fallback settings, optionally in the clinician's own zone."""
        return cls(time_zone=time_zone or CLINIC_TIME_ZONE, is_default=True)
