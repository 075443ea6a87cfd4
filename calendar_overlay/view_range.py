"""Visible date range, navigation and visible hour rows per view mode.

Weeks start on Monday.
"""
import calendar
from datetime import date, timedelta
from typing import Iterable, List, Optional, Tuple, Union

from calendar_overlay.models import LocationWeeklySchedule, ViewMode
from calendar_overlay.time_utils import day_key, iter_days, parse_time

ALL_HOURS = list(range(24))


def start_of_week(day: date) -> date:
    return day - timedelta(days=day.weekday())


def end_of_week(day: date) -> date:
    return start_of_week(day) + timedelta(days=6)


def add_months(day: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def visible_range(view_mode: Union[ViewMode, str], anchor: date) -> Tuple[date, date]:
    """
    First and last visible day (inclusive) for a view.

    Args:
        view_mode: day, 3day, week or month
        anchor: The calendar's current date

    Returns:
        Tuple of (start, end)
    """
    view_mode = ViewMode(view_mode)

    if view_mode == ViewMode.THREE_DAY:
        return anchor - timedelta(days=1), anchor + timedelta(days=1)
    if view_mode == ViewMode.WEEK:
        return start_of_week(anchor), end_of_week(anchor)
    if view_mode == ViewMode.MONTH:
        first = anchor.replace(day=1)
        last = anchor.replace(day=calendar.monthrange(anchor.year, anchor.month)[1])
        return start_of_week(first), end_of_week(last)
    return anchor, anchor


def navigate(
    view_mode: Union[ViewMode, str],
    anchor: date,
    direction: str,
    today: Optional[date] = None
) -> date:
    """
    Move the anchor date for prev/next/today navigation.

    Raises:
        ValueError: If direction is not prev, next or today
    """
    view_mode = ViewMode(view_mode)

    if direction == "today":
        today = today or date.today()
        return start_of_week(today) if view_mode == ViewMode.WEEK else today

    if direction not in ("prev", "next"):
        raise ValueError(f"Unknown navigation direction: {direction}")

    sign = -1 if direction == "prev" else 1
    if view_mode == ViewMode.MONTH:
        return add_months(anchor, sign)
    if view_mode == ViewMode.WEEK:
        return anchor + timedelta(weeks=sign)
    if view_mode == ViewMode.THREE_DAY:
        return anchor + timedelta(days=3 * sign)
    return anchor + timedelta(days=sign)


def visible_days(start: date, end: date, hide_weekends: bool = False) -> List[date]:
    days = list(iter_days(start, end))
    if hide_weekends:
        days = [d for d in days if d.weekday() < 5]
    return days


def visible_hours(
    day: date,
    location_schedules: Iterable[LocationWeeklySchedule],
    selected_location: Optional[str] = None,
    show_only_opening_hours: bool = False
) -> List[int]:
    """
    Hour rows to show for one day.

    Falls back to all 24 hours unless opening-hours-only mode is on, a single
    location is selected and that location is open on this weekday.
    """
    if not show_only_opening_hours or not selected_location or selected_location == "all":
        return list(ALL_HOURS)

    schedule = next(
        (s for s in location_schedules if s.location_id == selected_location),
        None
    )
    if schedule is None:
        return list(ALL_HOURS)

    key = day_key(day)
    entry = next((e for e in schedule.schedules if e.day == key), None)
    if entry is None or not entry.is_open:
        return list(ALL_HOURS)

    start_hour, _ = parse_time(entry.start_time)
    end_hour, _ = parse_time(entry.end_time)
    hours = list(range(start_hour, end_hour))
    return hours or list(ALL_HOURS)


def visible_hours_for_days(
    days: Iterable[date],
    location_schedules: Iterable[LocationWeeklySchedule],
    selected_location: Optional[str] = None,
    show_only_opening_hours: bool = False
) -> List[int]:
    """Sorted union of visible hours over several days (week / 3-day views)."""
    location_schedules = list(location_schedules)
    hours = set()
    for day in days:
        hours.update(visible_hours(day, location_schedules, selected_location, show_only_opening_hours))
    return sorted(hours) or list(ALL_HOURS)
