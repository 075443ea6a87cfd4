"""Calendar controller: owns the data snapshot and runs the overlay pipeline.

Pipeline (per render):
1. filter_staff            medical selector + location
2. build_background_events only schedules of surviving staff (cached)
3. filter_appointments     location + service medical flag
4. project_appointments    names, colours, rooms
5. visible days / hours    view mode, hidden weekends, opening-hours-only
6. layout_days             lanes and positions per day column
"""
from datetime import date
from typing import Any, List, Optional, Tuple

from calendar_overlay import config
from calendar_overlay.backend_client import BackendClient, BackendError, RequestSequencer
from calendar_overlay.cache import ExpansionCache
from calendar_overlay.circuit_breaker import CircuitBreakerOpen
from calendar_overlay.compositor import layout_days
from calendar_overlay.event_channel import EventChannel, StaffDeleted
from calendar_overlay.expander import (
    build_background_events,
    expand_location_schedule,
    expand_staff_schedule,
)
from calendar_overlay.filters import filter_appointments, filter_staff
from calendar_overlay.logging_config import get_logger
from calendar_overlay.models import (
    BackgroundEvent,
    CalendarData,
    CalendarEvent,
    DayLayout,
    Notification,
    Severity,
)
from calendar_overlay.projection import project_appointments
from calendar_overlay.settings_store import (
    CalendarSettings,
    SettingsError,
    SettingsService,
    resolve_initial_settings,
)
from calendar_overlay.view_range import (
    navigate,
    visible_days,
    visible_hours_for_days,
    visible_range,
)

logger = get_logger(__name__)

MAX_NOTIFICATIONS = 50


def compute_background_events(
    data: CalendarData,
    settings: CalendarSettings,
    start: date,
    end: date,
    cache: Optional[ExpansionCache] = None
) -> List[BackgroundEvent]:
    """Bands for [start, end] under the current filters and toggles."""
    staff = filter_staff(data.staff, settings.medical_filter, settings.selected_location)

    expand_location = expand_location_schedule
    expand_staff = expand_staff_schedule
    if cache is not None:
        expand_location = cache.cached_location_expander(expand_location_schedule)
        expand_staff = cache.cached_staff_expander(expand_staff_schedule)

    return build_background_events(
        start,
        end,
        data.location_schedules,
        data.staff_schedules,
        staff,
        locations=data.location_map(),
        selected_location=settings.selected_location,
        show_location_hours=settings.show_location_hours,
        show_staff_hours=settings.show_staff_hours,
        show_breaks=settings.show_breaks,
        expand_location=expand_location,
        expand_staff=expand_staff,
    )


def compute_calendar_events(data: CalendarData, settings: CalendarSettings) -> List[CalendarEvent]:
    staff = filter_staff(data.staff, settings.medical_filter, settings.selected_location)
    rooms = data.room_map()
    appointments = filter_appointments(
        data.appointments, rooms, settings.medical_filter, settings.selected_location
    )
    return project_appointments(appointments, staff, rooms, data.location_map())


def compute_layouts(
    data: CalendarData,
    settings: CalendarSettings,
    cache: Optional[ExpansionCache] = None
) -> Tuple[List[int], List[DayLayout]]:
    """
    Run the whole pipeline for the settings' view.

    Returns:
        Tuple of (visible hour rows, one DayLayout per visible day)
    """
    start, end = visible_range(settings.view_mode, settings.current_date)
    days = visible_days(start, end, settings.hide_weekends)
    hours = visible_hours_for_days(
        days,
        data.location_schedules,
        settings.selected_location,
        settings.show_only_opening_hours,
    )

    background = compute_background_events(data, settings, start, end, cache)
    appointments = compute_calendar_events(data, settings)
    return hours, layout_days(days, background, appointments, first_hour=hours[0])


class CalendarController:
    """
    Stateful calendar view.

    Pattern: collaborators are injected; the controller owns its StaffDeleted
    subscription and releases it in close().
    """

    def __init__(
        self,
        client: Optional[BackendClient] = None,
        settings_service: Optional[SettingsService] = None,
        channel: Optional[EventChannel] = None,
        cache: Optional[ExpansionCache] = None,
        today: Optional[date] = None
    ):
        """
        Initialize controller and restore saved settings.

        Args:
            client: Backend client used by refresh()
            settings_service: Settings persistence (None keeps settings in memory)
            channel: Event channel to subscribe to (default: private channel)
            cache: Expansion cache (default: new cache with configured TTL)
            today: Override for "today" when restoring settings
        """
        self.client = client
        self.settings_service = settings_service
        self.channel = channel or EventChannel()
        self.cache = cache or ExpansionCache(ttl=config.EXPANSION_CACHE_TTL)
        self.sequencer = RequestSequencer()
        self.data = CalendarData()
        self.notifications: List[Notification] = []

        saved = settings_service.load() if settings_service else None
        self.settings, needs_save = resolve_initial_settings(saved, today)
        if needs_save:
            self._persist_settings()

        self._unsubscribe = self.channel.subscribe(StaffDeleted, self.on_staff_deleted)

    def close(self):
        """Drop the event subscription."""
        self._unsubscribe()

    # Notifications

    def notify(self, severity: Severity, message: str) -> Notification:
        notification = Notification(severity=severity, message=message)
        self.notifications.append(notification)
        del self.notifications[:-MAX_NOTIFICATIONS]
        return notification

    # Settings

    def _persist_settings(self):
        if self.settings_service is None:
            return
        try:
            self.settings_service.save(self.settings)
        except SettingsError as e:
            logger.error("settings_save_failed", error=str(e))
            self.notify(Severity.WARNING, "Calendar settings could not be saved")

    def update_settings(self, **changes: Any) -> CalendarSettings:
        """
        Apply and persist settings changes.

        Raises:
            pydantic.ValidationError: If a changed value is invalid
        """
        merged = {**self.settings.model_dump(), **changes}
        self.settings = CalendarSettings.model_validate(merged)
        self._persist_settings()
        return self.settings

    def navigate(self, direction: str, today: Optional[date] = None) -> date:
        """Move the view prev/next/today and persist the new anchor date."""
        new_date = navigate(self.settings.view_mode, self.settings.current_date, direction, today)
        self.update_settings(current_date=new_date)
        return new_date

    # Data

    def apply_fetch(self, request_id: int, data: CalendarData) -> bool:
        """
        Replace the snapshot unless a newer response was already applied.

        Returns:
            True if applied, False if the response was stale
        """
        if not self.sequencer.try_apply(request_id):
            logger.info(
                "stale_response_discarded",
                request_id=request_id,
                latest_applied=self.sequencer.latest_applied
            )
            return False

        self.data = data
        self.cache.cleanup_expired()
        return True

    def refresh(self) -> bool:
        """
        Fetch everything from the backend.

        Failures are reported as an error notification, never retried here.

        Returns:
            True if new data was applied
        """
        if self.client is None:
            raise RuntimeError("CalendarController has no backend client")

        request_id = self.sequencer.next_id()
        try:
            data = self.client.fetch_all()
        except (BackendError, CircuitBreakerOpen) as e:
            logger.error("calendar_refresh_failed", request_id=request_id, error=str(e))
            self.notify(Severity.ERROR, f"Calendar data could not be loaded: {e}")
            return False

        applied = self.apply_fetch(request_id, data)
        if applied:
            self.notify(Severity.SUCCESS, "Calendar data loaded")
        return applied

    def on_staff_deleted(self, event: StaffDeleted):
        """Forget a deleted staff member's profile, schedules and cached bands."""
        staff_ids = {event.staff_id}
        if event.user_id:
            staff_ids.update(s.id for s in self.data.staff if s.user_id == event.user_id)

        removed = 0
        for staff_id in staff_ids:
            before = len(self.data.staff_schedules)
            self.data = self.data.without_staff(staff_id)
            removed += before - len(self.data.staff_schedules)
            self.cache.invalidate_staff(staff_id)

        logger.info("staff_deleted_purged", staff_ids=sorted(staff_ids), schedules_removed=removed)
        self.notify(Severity.INFO, "Staff schedules removed from calendar")

    # Rendering

    def visible_range(self) -> Tuple[date, date]:
        return visible_range(self.settings.view_mode, self.settings.current_date)

    def background_events(self) -> List[BackgroundEvent]:
        start, end = self.visible_range()
        return compute_background_events(self.data, self.settings, start, end, self.cache)

    def calendar_events(self) -> List[CalendarEvent]:
        return compute_calendar_events(self.data, self.settings)

    def visible_hours(self) -> List[int]:
        start, end = self.visible_range()
        days = visible_days(start, end, self.settings.hide_weekends)
        return visible_hours_for_days(
            days,
            self.data.location_schedules,
            self.settings.selected_location,
            self.settings.show_only_opening_hours,
        )

    def render(self) -> List[DayLayout]:
        _, layouts = compute_layouts(self.data, self.settings, self.cache)
        return layouts
