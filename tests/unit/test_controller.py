"""Tests for the calendar controller."""
from datetime import date
from unittest.mock import Mock

import pytest

from calendar_overlay.backend_client import BackendError
from calendar_overlay.cache import ExpansionCache
from calendar_overlay.circuit_breaker import CircuitBreakerOpen
from calendar_overlay.controller import CalendarController, compute_layouts
from calendar_overlay.event_channel import EventChannel, StaffDeleted
from calendar_overlay.models import BarKind, CalendarData, EventType, Severity, ViewMode
from calendar_overlay.settings_store import CalendarSettings, SettingsError

WEDNESDAY = date(2024, 1, 17)


class MemorySettings:
    """In-memory SettingsService."""

    def __init__(self, saved=None):
        self.saved = saved
        self.save_calls = 0

    def load(self):
        return self.saved

    def save(self, settings):
        self.save_calls += 1
        self.saved = settings


@pytest.fixture
def channel():
    return EventChannel()


@pytest.fixture
def backend(calendar_data):
    client = Mock()
    client.fetch_all.return_value = calendar_data
    return client


@pytest.fixture
def controller(backend, channel):
    return CalendarController(
        client=backend,
        settings_service=MemorySettings(),
        channel=channel,
        today=WEDNESDAY,
    )


class TestInitialSettings:

    def test_defaults_to_current_week(self, controller):
        assert controller.settings.view_mode == ViewMode.WEEK
        assert controller.settings.current_date == date(2024, 1, 15)

    def test_saved_week_view_reanchored_and_saved(self, channel):
        service = MemorySettings(CalendarSettings(view_mode="week", current_date=date(2023, 3, 1)))
        controller = CalendarController(settings_service=service, channel=channel, today=WEDNESDAY)

        assert controller.settings.current_date == date(2024, 1, 15)
        assert service.save_calls == 1

    def test_saved_day_view_keeps_date(self, channel):
        service = MemorySettings(CalendarSettings(view_mode="day", current_date=date(2023, 3, 1)))
        controller = CalendarController(settings_service=service, channel=channel, today=WEDNESDAY)

        assert controller.settings.current_date == date(2023, 3, 1)
        assert service.save_calls == 0


class TestRefresh:

    def test_successful_refresh(self, controller, calendar_data):
        assert controller.refresh() is True
        assert controller.data == calendar_data
        assert controller.notifications[-1].severity == Severity.SUCCESS

    @pytest.mark.parametrize("error", [BackendError("GET /rooms failed"), CircuitBreakerOpen(30)])
    def test_failure_becomes_error_notification(self, controller, backend, error):
        backend.fetch_all.side_effect = error

        assert controller.refresh() is False
        assert controller.notifications[-1].severity == Severity.ERROR
        assert controller.data == CalendarData()
        assert backend.fetch_all.call_count == 1

    def test_stale_response_is_discarded(self, controller, calendar_data):
        """A slow first fetch must not overwrite the newer second one."""
        slow = controller.sequencer.next_id()
        fast = controller.sequencer.next_id()

        assert controller.apply_fetch(fast, calendar_data) is True
        assert controller.apply_fetch(slow, CalendarData()) is False
        assert controller.data == calendar_data

    def test_refresh_requires_client(self, channel):
        controller = CalendarController(channel=channel)
        with pytest.raises(RuntimeError):
            controller.refresh()


class TestStaffDeleted:

    def test_purges_schedules_and_cache(self, controller, channel):
        controller.refresh()
        controller.render()
        assert any(entry["staff_id"] == "st-1" for entry in controller.cache.cache.values())

        channel.publish(StaffDeleted(staff_id="st-1"))

        assert all(s.staff_id != "st-1" for s in controller.data.staff_schedules)
        assert all(s.id != "st-1" for s in controller.data.staff)
        assert not any(entry["staff_id"] == "st-1" for entry in controller.cache.cache.values())
        assert all(e.staff_id != "st-1" for e in controller.background_events())

    def test_user_id_resolves_staff(self, controller, channel):
        controller.refresh()
        channel.publish(StaffDeleted(staff_id="unknown", user_id="u-2"))

        assert [s.id for s in controller.data.staff] == ["st-1"]

    def test_close_unsubscribes(self, controller, channel):
        controller.refresh()
        controller.close()

        assert channel.publish(StaffDeleted(staff_id="st-1")) == 0
        assert any(s.staff_id == "st-1" for s in controller.data.staff_schedules)


class TestSettingsChanges:

    def test_update_settings_persists(self, controller):
        controller.update_settings(medical_filter="medical", show_breaks=False)

        assert controller.settings_service.saved.medical_filter.value == "medical"
        assert controller.settings_service.saved.show_breaks is False

    def test_invalid_update_rejected(self, controller):
        with pytest.raises(ValueError):
            controller.update_settings(view_mode="year")

    def test_save_failure_becomes_warning(self, controller):
        controller.settings_service.save = Mock(side_effect=SettingsError("disk full"))
        controller.update_settings(hide_weekends=True)

        assert controller.settings.hide_weekends is True
        assert controller.notifications[-1].severity == Severity.WARNING

    def test_navigate(self, controller):
        assert controller.navigate("next") == date(2024, 1, 22)
        assert controller.settings_service.saved.current_date == date(2024, 1, 22)


class TestRender:

    def test_week_render(self, controller):
        controller.refresh()
        layouts = controller.render()

        assert len(layouts) == 7
        monday = layouts[0]
        kinds = [bar.kind for bar in monday.bars]
        assert kinds.count(BarKind.LOCATION_HOURS) == 1
        assert kinds.count(BarKind.BREAK) == 1
        assert kinds.count(BarKind.APPOINTMENT) == 1
        # Anna work + break, Ben work, one appointment
        assert monday.lane_count == 4
        assert all(layout.bars == [] for layout in layouts[1:])

    def test_medical_filter_narrows_render(self, controller):
        controller.refresh()
        controller.update_settings(medical_filter="medical")

        staff_ids = {e.staff_id for e in controller.background_events() if e.type == EventType.STAFF_HOURS}
        assert staff_ids == {"st-1"}

    def test_hide_weekends(self, controller):
        controller.refresh()
        controller.update_settings(hide_weekends=True)
        assert len(controller.render()) == 5

    def test_opening_hours_only(self, controller):
        controller.refresh()
        controller.update_settings(
            view_mode="day",
            current_date=date(2024, 1, 15),
            selected_location="loc-1",
            show_only_opening_hours=True,
        )

        assert controller.visible_hours() == list(range(9, 17))
        assert controller.render()[0].first_hour == 9

    def test_closed_day_in_week_shows_all_hours(self, controller):
        """Tuesday is closed, so the week's union falls back to every hour."""
        controller.refresh()
        controller.update_settings(selected_location="loc-1", show_only_opening_hours=True)

        assert controller.visible_hours() == list(range(24))

    def test_repeated_render_uses_cache(self, controller):
        controller.refresh()
        controller.render()
        misses = controller.cache.misses
        controller.render()

        assert controller.cache.misses == misses
        assert controller.cache.hits > 0


def test_compute_layouts_without_cache(calendar_data):
    settings = CalendarSettings(view_mode="day", current_date=date(2024, 1, 15))
    hours, layouts = compute_layouts(calendar_data, settings)

    assert hours == list(range(24))
    assert len(layouts) == 1
    assert layouts[0].lane_count == 4


def test_controller_uses_given_cache(channel):
    cache = ExpansionCache(ttl=5)
    assert CalendarController(channel=channel, cache=cache).cache is cache
