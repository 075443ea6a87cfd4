"""Event compositor: lays out bands and appointment bars per day column.

Layering:
- Location hours: full width, beneath everything, never take a lane
- Staff hours (breaks included): lanes 0..n-1
- Appointments: lanes n..n+m-1

Every staff band and appointment reserves its own lane for the whole day,
whether or not it overlaps anything else.
"""
from datetime import date
from typing import Iterable, List, Sequence, Union

from calendar_overlay import config
from calendar_overlay.models import (
    BackgroundEvent,
    BarKind,
    CalendarEvent,
    DayLayout,
    EventType,
    LayoutBar,
)
from calendar_overlay.time_utils import day_bounds, minutes_of_day

Event = Union[BackgroundEvent, CalendarEvent]


def events_on_day(events: Iterable[Event], day: date) -> List[Event]:
    """Events intersecting [day start, next day start)."""
    day_start, day_end = day_bounds(day)
    return [e for e in events if e.start < day_end and e.end > day_start]


def _vertical(event: Event, day: date, first_hour: int):
    """(top, height) in minutes, clipped to the day column."""
    day_start, day_end = day_bounds(day)
    start = max(event.start, day_start)
    end = min(event.end, day_end)

    start_minutes = minutes_of_day(start)
    end_minutes = 24 * 60 if end == day_end else minutes_of_day(end)
    return start_minutes - first_hour * 60, end_minutes - start_minutes


def _bar(event: Event, kind: BarKind, day: date, first_hour: int, lane: int,
         lane_count: int, left: float, width: float, color: str,
         opacity: float, z_index: int) -> LayoutBar:
    top, height = _vertical(event, day, first_hour)
    return LayoutBar(
        event_id=event.id,
        kind=kind,
        title=event.title,
        start=event.start,
        end=event.end,
        top=top,
        height=height,
        lane=lane,
        lane_count=lane_count,
        left_percent=left,
        width_percent=width,
        color=color,
        opacity=opacity,
        z_index=z_index,
    )


def lane_count_for(staff_bands: Sequence[BackgroundEvent], appointments: Sequence[CalendarEvent]) -> int:
    return max(1, len(staff_bands) + len(appointments))


def layout_day(
    day: date,
    background_events: Iterable[BackgroundEvent],
    calendar_events: Iterable[CalendarEvent],
    first_hour: int = 0
) -> DayLayout:
    """
    Compose one day column.

    Args:
        day: Calendar day of the column
        background_events: Expanded bands (any range; filtered to the day here)
        calendar_events: Projected appointments (filtered to the day here)
        first_hour: First visible hour row; tops are offsets from it

    Returns:
        DayLayout with location bars first, then staff bars, then appointments
    """
    day_bands = events_on_day(background_events, day)
    day_appointments = events_on_day(calendar_events, day)

    location_bands = [e for e in day_bands if e.type == EventType.LOCATION_HOURS]
    staff_bands = [e for e in day_bands if e.type == EventType.STAFF_HOURS]

    lane_count = lane_count_for(staff_bands, day_appointments)
    width = 100 / lane_count
    bars: List[LayoutBar] = []

    location_style = config.BAR_STYLES["location"]
    for event in location_bands:
        bars.append(_bar(
            event, BarKind.LOCATION_HOURS, day, first_hour,
            lane=0, lane_count=lane_count, left=0.0, width=100.0,
            color=event.color,
            opacity=location_style["opacity"],
            z_index=location_style["z_index"],
        ))

    for index, event in enumerate(staff_bands):
        if event.is_break:
            style = config.BAR_STYLES["break"]
            kind, color = BarKind.BREAK, style["color"]
        else:
            style = config.BAR_STYLES["staff"]
            kind, color = BarKind.STAFF_HOURS, event.color
        bars.append(_bar(
            event, kind, day, first_hour,
            lane=index, lane_count=lane_count,
            left=index * 100 / lane_count, width=width,
            color=color, opacity=style["opacity"], z_index=style["z_index"],
        ))

    appointment_style = config.BAR_STYLES["appointment"]
    for index, event in enumerate(day_appointments):
        lane = len(staff_bands) + index
        bars.append(_bar(
            event, BarKind.APPOINTMENT, day, first_hour,
            lane=lane, lane_count=lane_count,
            left=lane * 100 / lane_count, width=width,
            color=event.staff_color,
            opacity=appointment_style["opacity"],
            z_index=appointment_style["z_index"],
        ))

    return DayLayout(day=day, first_hour=first_hour, lane_count=lane_count, bars=bars)


def layout_days(
    days: Iterable[date],
    background_events: Sequence[BackgroundEvent],
    calendar_events: Sequence[CalendarEvent],
    first_hour: int = 0
) -> List[DayLayout]:
    return [layout_day(day, background_events, calendar_events, first_hour) for day in days]
