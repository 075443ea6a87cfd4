"""Schedule expansion: weekly templates into dated background bands.

Provides functions to turn recurring weekly schedules into concrete
BackgroundEvents for every visible day, considering:
- Open/working flags per weekday
- Validity windows and inactive schedules
- Break windows (optional)
"""
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from calendar_overlay import config
from calendar_overlay.logging_config import get_logger
from calendar_overlay.models import (
    BackgroundEvent,
    DayEntry,
    EventType,
    Location,
    LocationWeeklySchedule,
    StaffProfile,
    StaffWeeklySchedule,
)
from calendar_overlay.time_utils import at_time, day_key, iter_days

logger = get_logger(__name__)


def _epoch_ms(day: date) -> int:
    return int(datetime.combine(day, datetime.min.time()).timestamp() * 1000)


def _entry_window(entry: DayEntry, day: date, schedule_id: str):
    """Start/end datetimes for an entry, or None when the entry is unusable."""
    start = at_time(day, entry.start_time)
    end = at_time(day, entry.end_time)
    if end <= start:
        # Cross-midnight or empty windows are not supported
        logger.warning(
            "schedule_entry_skipped",
            schedule_id=schedule_id,
            day=entry.day,
            start_time=entry.start_time,
            end_time=entry.end_time,
            reason="end not after start"
        )
        return None
    return start, end


def _matching_days(schedule, start: date, end: date):
    """Yield (day, entry) pairs for enabled entries whose weekday matches."""
    entries_by_day: Dict[str, List[DayEntry]] = {}
    for entry in schedule.schedules:
        if entry.enabled:
            entries_by_day.setdefault(entry.day, []).append(entry)

    if not entries_by_day:
        return

    for day in iter_days(start, end):
        if not schedule.is_valid_on(day):
            continue
        for entry in entries_by_day.get(day_key(day), []):
            yield day, entry


def expand_location_schedule(
    schedule: LocationWeeklySchedule,
    location: Location,
    start: date,
    end: date
) -> List[BackgroundEvent]:
    """
    Expand location opening hours over [start, end].

    Args:
        schedule: Location weekly schedule
        location: Resolved location (name and colour)
        start: First visible day
        end: Last visible day (inclusive)

    Returns:
        One location_hours band per open matching day
    """
    style = config.BAND_STYLES["location"]
    events = []

    for day, entry in _matching_days(schedule, start, end):
        window = _entry_window(entry, day, schedule.id)
        if window is None:
            continue

        events.append(BackgroundEvent(
            id=f"location-{schedule.id}-{entry.day}-{_epoch_ms(day)}",
            title=f"{location.name} - Opening hours",
            start=window[0],
            end=window[1],
            type=EventType.LOCATION_HOURS,
            color=location.color_hex or style["color"],
            opacity=style["opacity"],
            location_id=location.id,
            location_name=location.name,
        ))

    return events


def expand_staff_schedule(
    schedule: StaffWeeklySchedule,
    staff: StaffProfile,
    start: date,
    end: date,
    show_breaks: bool = True
) -> List[BackgroundEvent]:
    """
    Expand staff working hours (and breaks) over [start, end].

    Args:
        schedule: Staff weekly schedule
        staff: Staff member the schedule belongs to
        start: First visible day
        end: Last visible day (inclusive)
        show_breaks: Emit a break band when both break times are set

    Returns:
        staff_hours bands, each working band optionally followed by its break
    """
    staff_style = config.BAND_STYLES["staff"]
    break_style = config.BAND_STYLES["break"]
    staff_name = staff.full_name or staff.display_name or config.UNKNOWN_STAFF_NAME
    events = []

    for day, entry in _matching_days(schedule, start, end):
        window = _entry_window(entry, day, schedule.id)
        if window is None:
            continue

        stamp = _epoch_ms(day)
        events.append(BackgroundEvent(
            id=f"staff-{schedule.id}-{entry.day}-{stamp}",
            title=f"{staff_name} - Working hours",
            start=window[0],
            end=window[1],
            type=EventType.STAFF_HOURS,
            color=staff.color_hex or staff_style["color"],
            opacity=staff_style["opacity"],
            staff_id=staff.id,
            staff_name=staff_name,
        ))

        if show_breaks and entry.has_break:
            break_start = at_time(day, entry.break_start)
            break_end = at_time(day, entry.break_end)
            if break_end <= break_start:
                logger.warning(
                    "break_skipped",
                    schedule_id=schedule.id,
                    day=entry.day,
                    break_start=entry.break_start,
                    break_end=entry.break_end
                )
                continue

            events.append(BackgroundEvent(
                id=f"staff-break-{schedule.id}-{entry.day}-{stamp}",
                title=f"{staff_name} - Break",
                start=break_start,
                end=break_end,
                type=EventType.STAFF_HOURS,
                color=break_style["color"],
                opacity=break_style["opacity"],
                is_break=True,
                staff_id=staff.id,
                staff_name=staff_name,
            ))

    return events


def build_background_events(
    start: date,
    end: date,
    location_schedules: Iterable[LocationWeeklySchedule],
    staff_schedules: Iterable[StaffWeeklySchedule],
    filtered_staff: Iterable[StaffProfile],
    locations: Optional[Dict[str, Location]] = None,
    selected_location: Optional[str] = None,
    show_location_hours: bool = True,
    show_staff_hours: bool = True,
    show_breaks: bool = True,
    expand_location=expand_location_schedule,
    expand_staff=expand_staff_schedule
) -> List[BackgroundEvent]:
    """
    Build every background band for the visible range.

    Schedules pointing at a missing location or at staff outside the
    filtered list are skipped and logged.

    The expand_* hooks let a caller interpose caching without changing
    the traversal.
    """
    locations = locations or {}
    staff_by_id = {s.id: s for s in filtered_staff}
    events: List[BackgroundEvent] = []

    if show_location_hours:
        for schedule in location_schedules:
            if selected_location and selected_location != "all" and schedule.location_id != selected_location:
                continue

            location = schedule.location or locations.get(schedule.location_id)
            if location is None:
                logger.warning(
                    "location_schedule_skipped",
                    schedule_id=schedule.id,
                    location_id=schedule.location_id,
                    reason="missing location reference"
                )
                continue

            events.extend(expand_location(schedule, location, start, end))

    if show_staff_hours:
        for schedule in staff_schedules:
            if not schedule.staff_id:
                logger.warning(
                    "staff_schedule_skipped",
                    schedule_id=schedule.id,
                    reason="missing staff reference"
                )
                continue

            staff = staff_by_id.get(schedule.staff_id)
            if staff is None or not staff.first_name or not staff.last_name:
                # Filtered out or an incomplete profile
                logger.info(
                    "staff_schedule_skipped",
                    schedule_id=schedule.id,
                    staff_id=schedule.staff_id,
                    reason="staff not in filtered list or unnamed"
                )
                continue

            events.extend(expand_staff(schedule, staff, start, end, show_breaks))

    logger.debug("background_events_built", count=len(events), start=str(start), end=str(end))
    return events
