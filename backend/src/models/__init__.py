# Package initialization
# Import all models to ensure relationships are properly established
from .clinician import Clinician
from .weekly_availability_block import WeeklyAvailabilityBlock
from .availability_exception import AvailabilityException
from .time_block import TimeBlock
from .appointment import Appointment
from .availability_settings import AvailabilitySettings

__all__ = [
    "Clinician",
    "WeeklyAvailabilityBlock",
    "AvailabilityException",
    "TimeBlock",
    "Appointment",
    "AvailabilitySettings",
]
