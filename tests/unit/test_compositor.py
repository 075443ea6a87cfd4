"""Tests for the event compositor (lanes and vertical placement)."""
from datetime import datetime

import pytest

from calendar_overlay.compositor import layout_day, layout_days
from calendar_overlay.models import BackgroundEvent, BarKind, CalendarEvent, EventType


def band(id, start, end, type=EventType.STAFF_HOURS, is_break=False, color="#4CAF50"):
    return BackgroundEvent(
        id=id, title=id, start=start, end=end, type=type,
        color=color, opacity=0.2, is_break=is_break,
    )


def appointment(id, start, end):
    return CalendarEvent(
        id=id, title=id, start=start, end=end,
        staff_name="Anna Berg", staff_color="#10B981",
        status="confirmed", booking_type="internal",
    )


D = datetime(2024, 1, 15)


class TestLanes:
    """Lane assignment: one lane per staff band and per appointment."""

    def test_two_staff_bands_and_one_appointment(self, monday):
        layout = layout_day(
            monday,
            [band("s1", D.replace(hour=8), D.replace(hour=16)),
             band("s2", D.replace(hour=9), D.replace(hour=17))],
            [appointment("a1", D.replace(hour=10), D.replace(hour=11))],
        )

        assert layout.lane_count == 3
        assert [bar.lane for bar in layout.bars] == [0, 1, 2]
        for bar in layout.bars:
            assert bar.width_percent == pytest.approx(100 / 3)
        assert [bar.left_percent for bar in layout.bars] == pytest.approx([0, 100 / 3, 200 / 3])

    def test_location_bands_take_no_lane(self, monday):
        layout = layout_day(
            monday,
            [band("loc", D.replace(hour=9), D.replace(hour=17), type=EventType.LOCATION_HOURS, color="#2563EB"),
             band("s1", D.replace(hour=8), D.replace(hour=16))],
            [],
        )

        assert layout.lane_count == 1
        location_bar = layout.bars[0]
        assert location_bar.kind == BarKind.LOCATION_HOURS
        assert location_bar.width_percent == 100.0
        assert location_bar.z_index == 0

    def test_empty_day_has_one_lane(self, monday):
        layout = layout_day(monday, [], [])
        assert layout.lane_count == 1
        assert layout.bars == []

    def test_lanes_are_reserved_without_overlap(self, monday):
        """Non-overlapping bars still get separate lanes."""
        layout = layout_day(
            monday, [],
            [appointment("a1", D.replace(hour=8), D.replace(hour=9)),
             appointment("a2", D.replace(hour=14), D.replace(hour=15))],
        )
        assert layout.lane_count == 2
        assert [bar.lane for bar in layout.bars] == [0, 1]

    def test_break_bars_are_styled(self, monday):
        layout = layout_day(
            monday,
            [band("s1", D.replace(hour=8), D.replace(hour=16)),
             band("b1", D.replace(hour=12), D.replace(hour=13), is_break=True, color="#FF9800")],
            [],
        )
        work, pause = layout.bars
        assert work.kind == BarKind.STAFF_HOURS
        assert work.opacity == 0.9
        assert pause.kind == BarKind.BREAK
        assert pause.color == "#FF9800"
        assert pause.opacity == 0.8

    def test_appointments_on_top(self, monday):
        layout = layout_day(monday, [], [appointment("a1", D.replace(hour=10), D.replace(hour=11))])
        assert layout.bars[0].z_index == 10
        assert layout.bars[0].color == "#10B981"


class TestVerticalPlacement:

    def test_top_and_height_in_minutes(self, monday):
        bar = layout_day(monday, [], [appointment("a1", D.replace(hour=10, minute=15), D.replace(hour=11))]).bars[0]
        assert bar.top == 615
        assert bar.height == 45

    def test_top_is_offset_by_first_hour(self, monday):
        bar = layout_day(
            monday, [], [appointment("a1", D.replace(hour=10), D.replace(hour=11))], first_hour=8
        ).bars[0]
        assert bar.top == 120

    def test_events_are_clipped_to_the_day(self, monday):
        overnight = appointment("a1", datetime(2024, 1, 15, 22), datetime(2024, 1, 16, 2))
        first, second = layout_days([monday, datetime(2024, 1, 16).date()], [], [overnight])

        assert first.bars[0].top == 22 * 60
        assert first.bars[0].height == 120
        assert second.bars[0].top == 0
        assert second.bars[0].height == 120

    def test_other_days_are_ignored(self, monday):
        tuesday_event = appointment("a1", datetime(2024, 1, 16, 9), datetime(2024, 1, 16, 10))
        assert layout_day(monday, [], [tuesday_event]).bars == []
