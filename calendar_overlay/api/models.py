"""Pydantic models for API request/response validation."""
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from calendar_overlay.models import BackgroundEvent, CalendarData, DayLayout
from calendar_overlay.settings_store import CalendarSettings


class OverlayRequest(BaseModel):
    """Request schema for /api/v1/overlay."""
    data: CalendarData = Field(
        default_factory=CalendarData,
        description="Schedules, staff, appointments, rooms and locations to render"
    )
    settings: CalendarSettings = Field(
        default_factory=CalendarSettings,
        description="View mode, anchor date, filters and toggles"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "data": {
                    "locations": [{"_id": "loc-1", "name": "Downtown", "colorHex": "#2563EB"}],
                    "location_schedules": [{
                        "_id": "ls-1",
                        "locationId": "loc-1",
                        "schedules": [{"day": "monday", "isOpen": True,
                                       "startTime": "09:00", "endTime": "17:00"}]
                    }]
                },
                "settings": {"view_mode": "week", "current_date": "2024-01-15"}
            }
        }
    )


class OverlayResponse(BaseModel):
    """Response schema for /api/v1/overlay."""
    range_start: date
    range_end: date
    hours: List[int] = Field(..., description="Visible hour rows")
    days: List[DayLayout] = Field(default_factory=list, description="One layout per visible day")


class BackgroundEventsRequest(BaseModel):
    """Request schema for /api/v1/background-events."""
    data: CalendarData = Field(default_factory=CalendarData)
    settings: CalendarSettings = Field(default_factory=CalendarSettings)
    start: Optional[date] = Field(None, description="First day (default: start of the view)")
    end: Optional[date] = Field(None, description="Last day, inclusive (default: end of the view)")

    @model_validator(mode="after")
    def _check_range(self):
        if (self.start is None) != (self.end is None):
            raise ValueError("start and end must be given together")
        if self.start and self.end and self.end < self.start:
            raise ValueError("end must not be before start")
        return self


class BackgroundEventsResponse(BaseModel):
    start: date
    end: date
    count: int
    events: List[BackgroundEvent] = Field(default_factory=list)


class StaffDeletedResponse(BaseModel):
    staff_id: str
    delivered_to: int = Field(..., description="Number of subscribers notified")


class ErrorResponse(BaseModel):
    """Error response schema."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Detailed error information")
    code: Optional[str] = Field(None, description="Error code")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Invalid Time",
                "detail": "Invalid time '25:00', expected HH:MM",
                "code": "INVALID_TIME"
            }
        }
    )
