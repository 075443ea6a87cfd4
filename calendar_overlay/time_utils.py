"""Time-of-day parsing and day iteration helpers."""
import re
from datetime import date, datetime, time, timedelta
from typing import Iterator, Tuple, Union

from calendar_overlay import config

TIME_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")


class InvalidTimeError(ValueError):
    """Raised when a time string is not a valid "HH:MM" value."""
    pass


def parse_time(value: str) -> Tuple[int, int]:
    """
    Parse "HH:MM" into (hours, minutes).

    Args:
        value: Time string, hours 0-23 and minutes 0-59

    Returns:
        Tuple of (hours, minutes)

    Raises:
        InvalidTimeError: If the string is not a valid time
    """
    match = TIME_RE.match(value or "")
    if not match:
        raise InvalidTimeError(f"Invalid time '{value}', expected HH:MM")
    return int(match.group(1)), int(match.group(2))


def time_to_minutes(value: str) -> int:
    """Minutes since midnight for an "HH:MM" string."""
    hours, minutes = parse_time(value)
    return hours * 60 + minutes


def minutes_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def day_key(day: Union[date, datetime]) -> str:
    """Schedule key ("monday", ...) for a calendar day."""
    # isoweekday: Monday=1 .. Sunday=7, so % 7 gives a Sunday-first index
    return config.DAY_KEYS[day.isoweekday() % 7]


def at_time(day: date, value: str) -> datetime:
    """Combine a calendar day with an "HH:MM" local time."""
    hours, minutes = parse_time(value)
    return datetime.combine(day, time(hours, minutes))


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day from start to end inclusive."""
    if isinstance(start, datetime):
        start = start.date()
    if isinstance(end, datetime):
        end = end.date()

    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Start of the day and start of the following day."""
    day_start = datetime.combine(day, time.min)
    return day_start, day_start + timedelta(days=1)
