"""
Local datetime utilities.

The planner works on naive local datetimes. Clock ranges inside a day are
expressed in minutes from midnight so that the end of a day can be written
as 1440.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional

from autoplanner.core.exceptions import ValidationError

MINUTES_PER_DAY = 24 * 60


def parse_time_to_minutes(value: str) -> Optional[int]:
    """
    Parse an "HH:MM" clock string.

    Args:
        value: Clock time such as "09:30"

    Returns:
        Optional[int]: Minutes from midnight, or None when the string is malformed
    """
    parts = value.split(":")
    if len(parts) != 2:
        return None
    try:
        hours = int(parts[0])
        minutes = int(parts[1])
    except ValueError:
        return None
    if hours < 0 or hours > 23 or minutes < 0 or minutes > 59:
        return None
    return hours * 60 + minutes


def parse_clock(value: str) -> time:
    """Parse an "HH:MM" string into a time."""
    minutes = parse_time_to_minutes(value)
    if minutes is None:
        raise ValidationError(f"Invalid clock time '{value}', expected HH:MM", details={"value": value})
    return time(minutes // 60, minutes % 60)


def time_to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def end_of_day(day: date) -> datetime:
    """Exclusive end of a day: midnight of the following day."""
    return start_of_day(day + timedelta(days=1))


def at_minutes(day: date, minutes: int) -> datetime:
    """Datetime ``minutes`` after midnight of ``day`` (1440 is the next midnight)."""
    return start_of_day(day) + timedelta(minutes=minutes)


def date_range(start: date, end: date) -> list[date]:
    """All dates from start to end inclusive."""
    if end < start:
        return []
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def minutes_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


def truncate_to_minute(value: datetime) -> datetime:
    return value.replace(second=0, microsecond=0)
