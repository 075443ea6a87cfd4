"""Shared test fixtures."""
from datetime import date

import pytest

from calendar_overlay.models import (
    Appointment,
    CalendarData,
    Location,
    LocationWeeklySchedule,
    Room,
    StaffProfile,
    StaffWeeklySchedule,
)

MONDAY = date(2024, 1, 15)


@pytest.fixture
def monday() -> date:
    """A Monday with no special meaning (2024-01-15)."""
    return MONDAY


@pytest.fixture
def location() -> Location:
    return Location.model_validate({"_id": "loc-1", "name": "Downtown", "colorHex": "#1D4ED8"})


@pytest.fixture
def other_location() -> Location:
    return Location.model_validate({"_id": "loc-2", "name": "Uptown"})


@pytest.fixture
def location_schedule() -> LocationWeeklySchedule:
    """Downtown: open Monday 09:00-17:00, closed Tuesday."""
    return LocationWeeklySchedule.model_validate({
        "_id": "ls-1",
        "locationId": "loc-1",
        "updatedAt": "2024-01-01T08:00:00",
        "schedules": [
            {"day": "monday", "isOpen": True, "startTime": "09:00", "endTime": "17:00"},
            {"day": "tuesday", "isOpen": False, "startTime": "09:00", "endTime": "17:00"},
        ],
    })


@pytest.fixture
def doctor() -> StaffProfile:
    return StaffProfile.model_validate({
        "_id": "st-1",
        "userId": {"_id": "u-1", "email": "anna@example.com"},
        "firstName": "Anna",
        "lastName": "Berg",
        "roleHint": "doctor",
        "colorHex": "#10B981",
        "locations": [{"_id": "loc-1", "name": "Downtown"}],
    })


@pytest.fixture
def nurse() -> StaffProfile:
    return StaffProfile.model_validate({
        "_id": "st-2",
        "userId": "u-2",
        "firstName": "Ben",
        "lastName": "Cole",
        "roleHint": "nurse",
        "locationIds": ["loc-2"],
    })


@pytest.fixture
def doctor_schedule() -> StaffWeeklySchedule:
    """Anna: Monday 08:00-16:00 with a 12:00-12:30 break."""
    return StaffWeeklySchedule.model_validate({
        "_id": "ws-1",
        "staffId": {"_id": "st-1", "firstName": "Anna"},
        "updatedAt": "2024-01-01T08:00:00",
        "schedules": [
            {"day": "monday", "isWorking": True, "startTime": "08:00", "endTime": "16:00",
             "breakStart": "12:00", "breakEnd": "12:30"},
            {"day": "wednesday", "isWorking": False},
        ],
    })


@pytest.fixture
def nurse_schedule() -> StaffWeeklySchedule:
    """Ben: Monday 10:00-14:00, no break."""
    return StaffWeeklySchedule.model_validate({
        "_id": "ws-2",
        "staffId": "st-2",
        "schedules": [
            {"day": "monday", "isWorking": True, "startTime": "10:00", "endTime": "14:00"},
        ],
    })


@pytest.fixture
def room() -> Room:
    return Room.model_validate({"_id": "room-1", "name": "Room 1", "location": {"_id": "loc-1"}})


@pytest.fixture
def appointment() -> Appointment:
    return Appointment.model_validate({
        "_id": "ap-1",
        "title": "Check-up",
        "startTime": "2024-01-15T10:00:00",
        "endTime": "2024-01-15T10:30:00",
        "doctor": "u-1",
        "room": "room-1",
        "service": {"_id": "svc-1", "name": "Check-up", "isMedical": True},
    })


@pytest.fixture
def calendar_data(location, other_location, location_schedule, doctor, nurse,
                  doctor_schedule, nurse_schedule, room, appointment) -> CalendarData:
    return CalendarData(
        appointments=[appointment],
        staff=[doctor, nurse],
        rooms=[room],
        locations=[location, other_location],
        location_schedules=[location_schedule],
        staff_schedules=[doctor_schedule, nurse_schedule],
    )
