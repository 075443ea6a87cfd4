"""FastAPI server exposing the calendar overlay engine.

Features:
- Stateless overlay/background-band computation from posted data
- Persisted calendar settings
- Staff-deleted notifications for the running calendar controller
- Global exception handling with a uniform ErrorResponse body
- X-Request-ID on every response, structured logging
"""
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from calendar_overlay import config
from calendar_overlay.api.dependencies import (
    get_event_channel,
    get_expansion_cache,
    get_settings_service,
)
from calendar_overlay.api.models import (
    BackgroundEventsRequest,
    BackgroundEventsResponse,
    ErrorResponse,
    OverlayRequest,
    OverlayResponse,
    StaffDeletedResponse,
)
from calendar_overlay.backend_client import BackendClient
from calendar_overlay.cache import ExpansionCache
from calendar_overlay.controller import (
    CalendarController,
    compute_background_events,
    compute_layouts,
)
from calendar_overlay.event_channel import EventChannel, StaffDeleted
from calendar_overlay.logging_config import RequestIDMiddleware, get_logger, setup_structured_logging
from calendar_overlay.models import Notification, Severity
from calendar_overlay.settings_store import (
    CalendarSettings,
    SettingsError,
    SettingsService,
    resolve_initial_settings,
)
from calendar_overlay.time_utils import InvalidTimeError
from calendar_overlay.view_range import visible_range

setup_structured_logging(config.LOG_LEVEL)
logger = get_logger(__name__)


def _resolve(app: FastAPI, dependency):
    """Call a dependency, honouring app.dependency_overrides."""
    return app.dependency_overrides.get(dependency, dependency)()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the long-lived calendar controller and release it on shutdown."""
    logger.info("server_starting", backend=config.BACKEND_BASE_URL)

    controller = CalendarController(
        client=BackendClient(),
        settings_service=_resolve(app, get_settings_service),
        channel=_resolve(app, get_event_channel),
        cache=_resolve(app, get_expansion_cache),
    )
    app.state.controller = controller

    yield

    controller.close()
    logger.info("server_stopped")


app = FastAPI(
    title="Calendar Overlay API",
    description="Opening hours, working hours and appointment overlays for the clinic calendar",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestIDMiddleware)


def get_controller(request: Request) -> CalendarController:
    return request.app.state.controller


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors consistently."""
    logger.warning("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="Validation Error",
            detail=str(exc.errors()),
            code="VALIDATION_ERROR"
        ).model_dump()
    )


@app.exception_handler(InvalidTimeError)
async def invalid_time_handler(request: Request, exc: InvalidTimeError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(
            error="Invalid Time",
            detail=str(exc),
            code="INVALID_TIME"
        ).model_dump()
    )


@app.exception_handler(SettingsError)
async def settings_error_handler(request: Request, exc: SettingsError):
    logger.error("settings_error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Settings Error",
            detail=str(exc),
            code="SETTINGS_ERROR"
        ).model_dump()
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected exceptions."""
    logger.error("unexpected_error", path=request.url.path, error=str(exc), exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal Server Error",
            detail="An unexpected error occurred. Please try again later.",
            code="INTERNAL_ERROR"
        ).model_dump()
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "service": "calendar-overlay-api",
        "version": "1.0.0"
    }


@app.post("/api/v1/overlay", tags=["Overlay"], response_model=OverlayResponse)
def overlay(
    request: OverlayRequest,
    cache: ExpansionCache = Depends(get_expansion_cache)
):
    """
    Lay out bands and appointment bars for every visible day.

    Returns:
        OverlayResponse with the visible range, hour rows and day layouts

    Raises:
        422: Validation error
        400: Invalid time value
    """
    start, end = visible_range(request.settings.view_mode, request.settings.current_date)
    hours, days = compute_layouts(request.data, request.settings, cache)
    return OverlayResponse(range_start=start, range_end=end, hours=hours, days=days)


@app.post("/api/v1/background-events", tags=["Overlay"], response_model=BackgroundEventsResponse)
def background_events(
    request: BackgroundEventsRequest,
    cache: ExpansionCache = Depends(get_expansion_cache)
):
    """Expanded opening-hours, working-hours and break bands for a range."""
    if request.start and request.end:
        start, end = request.start, request.end
    else:
        start, end = visible_range(request.settings.view_mode, request.settings.current_date)

    events = compute_background_events(request.data, request.settings, start, end, cache)
    return BackgroundEventsResponse(start=start, end=end, count=len(events), events=events)


@app.get("/api/v1/settings", tags=["Settings"], response_model=CalendarSettings)
def read_settings(service: SettingsService = Depends(get_settings_service)):
    """Saved settings as the calendar would open with them."""
    settings, _ = resolve_initial_settings(service.load())
    return settings


@app.put("/api/v1/settings", tags=["Settings"], response_model=CalendarSettings)
def write_settings(
    settings: CalendarSettings,
    service: SettingsService = Depends(get_settings_service)
):
    """
    Replace the saved settings.

    Raises:
        500: Settings could not be persisted
    """
    service.save(settings)
    logger.info("settings_saved", view_mode=settings.view_mode.value)
    return settings


@app.post("/api/v1/staff/{staff_id}/deleted", tags=["Staff"], response_model=StaffDeletedResponse)
def staff_deleted(
    staff_id: str,
    user_id: Optional[str] = None,
    channel: EventChannel = Depends(get_event_channel)
):
    """Tell running calendars to drop a deleted staff member's schedules."""
    delivered = channel.publish(StaffDeleted(staff_id=staff_id, user_id=user_id))
    return StaffDeletedResponse(staff_id=staff_id, delivered_to=delivered)


@app.get("/api/v1/calendar", tags=["Calendar"], response_model=OverlayResponse)
def calendar_view(controller: CalendarController = Depends(get_controller)):
    """Current view of the server-side calendar."""
    start, end = controller.visible_range()
    return OverlayResponse(
        range_start=start,
        range_end=end,
        hours=controller.visible_hours(),
        days=controller.render(),
    )


@app.post("/api/v1/calendar/refresh", tags=["Calendar"], response_model=List[Notification])
def calendar_refresh(controller: CalendarController = Depends(get_controller)):
    """Reload backend data; failures come back as error notifications."""
    previous = controller.notifications[-1] if controller.notifications else None
    controller.refresh()
    latest = controller.notifications[-1] if controller.notifications else None
    if latest is None or latest is previous:
        # Discarded as stale, no notification of its own
        return [Notification(severity=Severity.INFO, message="A newer calendar load was already applied")]
    return [latest]


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
