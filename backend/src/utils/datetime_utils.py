"""
Datetime utilities for timezone-correct scheduling.

Wall-clock availability (dates, HH:MM times, weekdays) is zone-naive and only
meaningful together with a clinician's IANA zone. Persisted instants are UTC.
This module is the single place where one becomes the other.

DST policy:
- A local time inside a spring-forward gap does not exist and raises
  DSTGapError; it is never shifted forward or backward.
- A local time inside a fall-back fold occurs twice and resolves to the
  earlier instant (``fold=0``, the offset in effect before the transition).
"""

import logging
import re
from datetime import datetime, timezone, date, time
from typing import Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.constants import LOCAL_DISPLAY_FORMAT
from core.exceptions import InvalidTimeZone, DSTGapError, InvalidDateTimeFormat

logger = logging.getLogger(__name__)

_TIME_PATTERN = re.compile(r'^(\d{1,2}):(\d{2})(?::(\d{2}))?$')


def utc_now() -> datetime:
    """
    Get the current UTC datetime.

    Returns:
        Current timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def get_zone(time_zone: Optional[str]) -> ZoneInfo:
    """
    Resolve an IANA zone name.

    Args:
        time_zone: Zone name such as "America/Chicago"

    Returns:
        ZoneInfo for the name

    Raises:
        InvalidTimeZone: If the name is empty or not in the timezone database
    """
    if not time_zone or not time_zone.strip():
        raise InvalidTimeZone("Time zone is required", field="time_zone")
    try:
        return ZoneInfo(time_zone.strip())
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimeZone(f"Unknown time zone: {time_zone}", field="time_zone") from e


def validate_time_zone(time_zone: Optional[str]) -> str:
    """Return the normalized zone name, raising InvalidTimeZone if unresolvable."""
    return get_zone(time_zone).key


def now_in_zone(time_zone: str) -> datetime:
    """Current instant expressed in ``time_zone``."""
    return utc_now().astimezone(get_zone(time_zone))


def today_in_zone(time_zone: str) -> date:
    """Current local calendar date in ``time_zone``."""
    return now_in_zone(time_zone).date()


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware and in UTC.

    Naive datetimes are taken to already be UTC, which is how persisted
    instants come back from databases without zone support.
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_date_string(date_str: str) -> date:
    """
    Parse a date string in YYYY-MM-DD or YYYY/MM/DD format.

    Accepts both formats:
    - YYYY-MM-DD (e.g., "2025-01-01", "2025-1-1")
    - YYYY/MM/DD (e.g., "2025/01/01", "2025/1/1")

    Automatically normalizes single-digit months/days.

    Args:
        date_str: Date string in YYYY-MM-DD or YYYY/MM/DD format

    Returns:
        Date object

    Raises:
        InvalidDateTimeFormat: If the string is malformed or names a day that
            does not exist (e.g., Feb 30)
    """
    if not date_str or not date_str.strip():
        raise InvalidDateTimeFormat("Date string cannot be empty", field="date")

    date_str = date_str.strip()

    if '/' in date_str:
        parts = date_str.split('/')
    elif '-' in date_str:
        parts = date_str.split('-')
    else:
        raise InvalidDateTimeFormat(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}", field="date")

    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        raise InvalidDateTimeFormat(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}", field="date")

    year = parts[0].zfill(4)
    month = parts[1].zfill(2)
    day = parts[2].zfill(2)

    normalized = f"{year}-{month}-{day}"

    try:
        return datetime.strptime(normalized, '%Y-%m-%d').date()
    except ValueError as e:
        raise InvalidDateTimeFormat(f"Invalid calendar date: {date_str}", field="date") from e


def parse_time_string(time_str: str, field: str = "time") -> time:
    """
    Parse a wall-clock time in HH:MM or HH:MM:SS format.

    Raises:
        InvalidDateTimeFormat: If the string is malformed or out of range
    """
    if not time_str or not time_str.strip():
        raise InvalidDateTimeFormat("Time string cannot be empty", field=field)

    match = _TIME_PATTERN.match(time_str.strip())
    if not match:
        raise InvalidDateTimeFormat(f"Invalid time format (expected HH:MM or HH:MM:SS): {time_str}", field=field)

    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3)) if match.group(3) else 0
    try:
        return time(hour, minute, second)
    except ValueError as e:
        raise InvalidDateTimeFormat(f"Time out of range: {time_str}", field=field) from e


def coerce_date(value: Union[str, date]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_date_string(value)


def coerce_time(value: Union[str, time], field: str = "time") -> time:
    if isinstance(value, time):
        return value
    return parse_time_string(value, field=field)


def format_time(t: time) -> str:
    """Format a wall-clock time as HH:MM, or HH:MM:SS when seconds are set."""
    if t.second:
        return t.strftime('%H:%M:%S')
    return t.strftime('%H:%M')


def local_to_utc(
    date_value: Union[str, date],
    time_value: Union[str, time],
    time_zone: str
) -> datetime:
    """
    Convert a wall-clock date and time in ``time_zone`` to a UTC instant.

    Args:
        date_value: Local date ("YYYY-MM-DD" or date)
        time_value: Local time ("HH:MM[:SS]" or time)
        time_zone: IANA zone name

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        InvalidTimeZone: If the zone cannot be resolved
        InvalidDateTimeFormat: If the date or time is malformed
        DSTGapError: If the local time is skipped by a spring-forward transition
    """
    zone = get_zone(time_zone)
    local_date = coerce_date(date_value)
    local_time = coerce_time(time_value)

    naive = datetime.combine(local_date, local_time)
    earlier = naive.replace(tzinfo=zone, fold=0)
    later = naive.replace(tzinfo=zone, fold=1)

    utc_value = earlier.astimezone(timezone.utc)

    # A gap time does not survive the round trip back to wall clock
    if utc_value.astimezone(zone).replace(tzinfo=None) != naive:
        logger.info(f"Rejected non-existent local time {naive.isoformat()} in {zone.key}")
        raise DSTGapError(field="time")

    if earlier.utcoffset() != later.utcoffset():
        logger.debug(f"Ambiguous local time {naive.isoformat()} in {zone.key}; using earlier instant")

    return utc_value


def utc_to_local(instant: datetime, time_zone: str) -> Tuple[str, str]:
    """
    Convert a UTC instant to a wall-clock (date, time) pair in ``time_zone``.

    Naive instants are treated as UTC.

    Returns:
        Tuple of ("YYYY-MM-DD", "HH:MM") - seconds are included only when non-zero
    """
    zone = get_zone(time_zone)
    utc_value = ensure_utc(instant)
    assert utc_value is not None
    local = utc_value.astimezone(zone)
    return local.date().isoformat(), format_time(local.time())


def convert_time_zone(instant: datetime, to_zone: str) -> datetime:
    """Express an instant in another zone (naive input is treated as UTC)."""
    utc_value = ensure_utc(instant)
    assert utc_value is not None
    return utc_value.astimezone(get_zone(to_zone))


def format_local_display(dt: datetime) -> str:
    """Format a zone-aware datetime for display as "YYYY-MM-DD HH:MM"."""
    return dt.strftime(LOCAL_DISPLAY_FORMAT)


def format_time_zone_display(time_zone: str, at: Optional[datetime] = None) -> str:
    """
    Format a zone name with its UTC offset at ``at`` (default: now).

    Example: "America/Chicago (UTC-05:00)"
    """
    zone = get_zone(time_zone)
    moment = ensure_utc(at) if at is not None else utc_now()
    assert moment is not None
    offset = moment.astimezone(zone).utcoffset()
    assert offset is not None

    total_minutes = int(offset.total_seconds() // 60)
    sign = '+' if total_minutes >= 0 else '-'
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{zone.key} (UTC{sign}{hours:02d}:{minutes:02d})"
