"""
Services package for scheduling business logic.

This package contains service classes that encapsulate the availability
rules shared by the API endpoints.
"""

from .interval_merger import IntervalMerger
from .availability_service import AvailabilityService
from .settings_service import SettingsService
from .recurring_exception_service import RecurringExceptionService
from .slot_service import SlotService
from .time_off_service import TimeOffService
from .appointment_service import AppointmentService

__all__ = [
    "IntervalMerger",
    "AvailabilityService",
    "SettingsService",
    "RecurringExceptionService",
    "SlotService",
    "TimeOffService",
    "AppointmentService",
]
