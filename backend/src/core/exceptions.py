"""
Scheduling error types.

Every error surfaced by the availability engine derives from SchedulingError
and carries a stable ``code`` for callers plus the offending ``field`` when
one can be identified. The API layer maps these onto HTTP status codes.
"""

from typing import Optional


class SchedulingError(Exception):
    """Base class for availability and booking errors."""

    code = "SchedulingError"

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Optional[str]]:
        return {"code": self.code, "detail": self.message, "field": self.field}


class InvalidTimeZone(SchedulingError, ValueError):
    """Raised when a zone name is not in the timezone database."""

    code = "InvalidTimeZone"


class DSTGapError(SchedulingError):
    """Raised when a local time falls inside a spring-forward gap."""

    code = "DSTGapError"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        super().__init__(
            message or "this time does not exist due to a daylight-saving transition; choose another time",
            field,
        )


class InvalidDateTimeFormat(SchedulingError, ValueError):
    """Raised for malformed or impossible date/time strings."""

    code = "InvalidDateTimeFormat"


class InvalidInterval(SchedulingError, ValueError):
    """Raised when an interval has end <= start."""

    code = "InvalidInterval"


class MissingContext(SchedulingError):
    """Raised when a transition is attempted without clinician or date."""

    code = "MissingContext"


class SlotConflict(SchedulingError):
    """Raised when a booking collides with current availability or another booking."""

    code = "SlotConflict"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        super().__init__(
            message or "this time is no longer available; refresh available slots and try again",
            field,
        )


class NotFoundError(SchedulingError):
    """Raised when a referenced clinician, block, exception or appointment does not exist."""

    code = "NotFound"
