"""Domain models for schedules, appointments and derived calendar events.

Backend payloads arrive camelCased with Mongo-style `_id` keys and
sometimes with populated references (`{"_id": ..., "name": ...}` instead of
a bare id). The models accept both shapes and expose snake_case fields.
"""
import hashlib
from abc import abstractmethod
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from calendar_overlay import config
from calendar_overlay.time_utils import time_to_minutes

TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"


def _ref_id(value: Any) -> Any:
    """Collapse a populated reference to its id."""
    if isinstance(value, dict):
        return value.get("_id") or value.get("id")
    return value


def _coerce_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    return value


class EventType(str, Enum):
    """Background band types."""
    LOCATION_HOURS = "location_hours"
    STAFF_HOURS = "staff_hours"


class BarKind(str, Enum):
    """Layered bar kinds produced by the compositor."""
    LOCATION_HOURS = "location_hours"
    STAFF_HOURS = "staff_hours"
    BREAK = "break"
    APPOINTMENT = "appointment"


class MedicalFilter(str, Enum):
    ALL = "all"
    MEDICAL = "medical"
    NON_MEDICAL = "non-medical"


class ViewMode(str, Enum):
    DAY = "day"
    THREE_DAY = "3day"
    WEEK = "week"
    MONTH = "month"


class Severity(str, Enum):
    """Notification severity tags shown to the user."""
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class CalendarModel(BaseModel):
    """Base model accepting both camelCase and snake_case keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------

class Location(CalendarModel):
    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    name: str = ""
    color_hex: Optional[str] = Field(
        None, validation_alias=AliasChoices("color_hex", "colorHex")
    )


class Room(CalendarModel):
    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    name: str = ""
    location_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("location_id", "locationId", "location")
    )

    @field_validator("location_id", mode="before")
    @classmethod
    def _collapse_location(cls, v):
        return _ref_id(v)


class Service(CalendarModel):
    id: Optional[str] = Field(None, validation_alias=AliasChoices("id", "_id"))
    name: str = ""
    is_medical: Optional[bool] = Field(
        None, validation_alias=AliasChoices("is_medical", "isMedical")
    )
    color_hex: Optional[str] = Field(
        None, validation_alias=AliasChoices("color_hex", "colorHex")
    )


class StaffProfile(CalendarModel):
    """Staff member as the calendar sees it."""
    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    user_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("user_id", "userId")
    )
    first_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("first_name", "firstName")
    )
    last_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("last_name", "lastName")
    )
    display_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("display_name", "displayName")
    )
    role: Optional[str] = Field(
        None, validation_alias=AliasChoices("role", "roleHint")
    )
    color_hex: Optional[str] = Field(
        None, validation_alias=AliasChoices("color_hex", "colorHex")
    )
    location_ids: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("location_ids", "locationIds", "locations"),
    )

    @field_validator("user_id", mode="before")
    @classmethod
    def _collapse_user(cls, v):
        return _ref_id(v)

    @field_validator("location_ids", mode="before")
    @classmethod
    def _collapse_locations(cls, v):
        if v is None:
            return []
        return [_ref_id(item) for item in v]

    @property
    def full_name(self) -> Optional[str]:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return None


# ---------------------------------------------------------------------------
# Weekly schedules
# ---------------------------------------------------------------------------

class DayEntry(CalendarModel):
    """One weekday of a recurring schedule."""
    day: str = Field(..., pattern=r"^(monday|tuesday|wednesday|thursday|friday|saturday|sunday)$")
    start_time: str = Field("08:00", pattern=TIME_PATTERN)
    end_time: str = Field("17:00", pattern=TIME_PATTERN)
    break_start: Optional[str] = Field(None, pattern=TIME_PATTERN)
    break_end: Optional[str] = Field(None, pattern=TIME_PATTERN)
    label: Optional[str] = Field(None, max_length=100)

    @field_validator("break_start", "break_end", mode="before")
    @classmethod
    def _blank_is_none(cls, v):
        return v or None

    @property
    @abstractmethod
    def enabled(self) -> bool:
        """Whether the location is open or the staff member works on this day."""

    @property
    def has_break(self) -> bool:
        return bool(self.break_start and self.break_end)


class LocationDayEntry(DayEntry):
    is_open: bool = False

    @property
    def enabled(self) -> bool:
        return self.is_open


class StaffDayEntry(DayEntry):
    is_working: bool = False

    @property
    def enabled(self) -> bool:
        return self.is_working


class WeeklySchedule(CalendarModel):
    """Recurring weekly template with a validity window."""
    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    is_active: bool = True
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None
    updated_at: Optional[datetime] = None

    @field_validator("valid_from", "valid_to", mode="before")
    @classmethod
    def _to_date(cls, v):
        return _coerce_date(v)

    def is_valid_on(self, day: date) -> bool:
        """Active and inside [valid_from, valid_to]; open-ended bounds allowed."""
        if not self.is_active:
            return False
        if self.valid_from and day < self.valid_from:
            return False
        if self.valid_to and day > self.valid_to:
            return False
        return True

    @property
    def version(self) -> str:
        """updated_at when the backend sends it, otherwise a digest of the content."""
        if self.updated_at:
            return self.updated_at.isoformat()
        return hashlib.sha1(self.model_dump_json().encode()).hexdigest()


class LocationWeeklySchedule(WeeklySchedule):
    location_id: Optional[str] = None
    location: Optional[Location] = None
    schedules: List[LocationDayEntry] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _unpack_location(cls, data):
        if isinstance(data, dict):
            ref = data.get("location_id", data.get("locationId"))
            if isinstance(ref, dict):
                data = dict(data)
                data["location"] = ref
                data["location_id"] = _ref_id(ref)
                data.pop("locationId", None)
        return data


class StaffWeeklySchedule(WeeklySchedule):
    staff_id: Optional[str] = None
    schedules: List[StaffDayEntry] = Field(default_factory=list)

    @field_validator("staff_id", mode="before")
    @classmethod
    def _collapse_staff(cls, v):
        return _ref_id(v)

    def validation_errors(self) -> List[str]:
        """Consistency problems on working days (times must be ordered, breaks inside hours)."""
        errors = []
        for entry in self.schedules:
            if not entry.is_working:
                continue
            start = time_to_minutes(entry.start_time)
            end = time_to_minutes(entry.end_time)
            if start >= end:
                errors.append(f"{entry.day}: end time must be after start time")
                continue
            if entry.has_break:
                break_start = time_to_minutes(entry.break_start)
                break_end = time_to_minutes(entry.break_end)
                if break_start >= break_end:
                    errors.append(f"{entry.day}: break end must be after break start")
                elif break_start < start or break_end > end:
                    errors.append(f"{entry.day}: break must lie within working hours")
        return errors

    def total_working_hours(self) -> float:
        """Weekly working hours minus breaks, rounded to 2 decimals."""
        total_minutes = 0
        for entry in self.schedules:
            if not entry.is_working:
                continue
            minutes = time_to_minutes(entry.end_time) - time_to_minutes(entry.start_time)
            if entry.has_break:
                minutes -= time_to_minutes(entry.break_end) - time_to_minutes(entry.break_start)
            total_minutes += minutes
        return round(total_minutes / 60, 2)


# ---------------------------------------------------------------------------
# Appointments
# ---------------------------------------------------------------------------

class AssignedUser(CalendarModel):
    first_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("first_name", "firstName")
    )
    last_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("last_name", "lastName")
    )
    display_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("display_name", "displayName")
    )

    @property
    def name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.display_name or config.UNKNOWN_STAFF_NAME


class Appointment(CalendarModel):
    """A booked interval as delivered by the backend."""
    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    title: Optional[str] = None
    start_time: datetime
    end_time: datetime
    doctor: Optional[str] = None
    doctor_name: Optional[str] = None
    assigned_users: List[AssignedUser] = Field(default_factory=list)
    room: Optional[str] = None
    location_id: Optional[str] = None
    patient_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("patient_id", "patientId", "patient")
    )
    status: str = "confirmed"
    booking_type: str = "internal"
    type: Optional[str] = None
    service: Optional[Service] = None

    @model_validator(mode="before")
    @classmethod
    def _unpack_refs(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        doctor = data.get("doctor")
        if isinstance(doctor, dict):
            names = [doctor.get("firstName") or doctor.get("first_name"),
                     doctor.get("lastName") or doctor.get("last_name")]
            data["doctor_name"] = " ".join(n for n in names if n) or None
            data["doctor"] = _ref_id(doctor)
        for key in ("room", "patient", "patientId", "locationId", "location_id"):
            if isinstance(data.get(key), dict):
                data[key] = _ref_id(data[key])
        return data

    @field_validator("start_time", "end_time")
    @classmethod
    def _to_local_naive(cls, v: datetime) -> datetime:
        # The calendar grid works in naive local time
        if v.tzinfo is not None:
            return v.astimezone().replace(tzinfo=None)
        return v

    @model_validator(mode="after")
    def _check_order(self):
        if self.end_time <= self.start_time:
            raise ValueError("appointment end must be after start")
        return self


# ---------------------------------------------------------------------------
# Derived events (never persisted)
# ---------------------------------------------------------------------------

class BackgroundEvent(BaseModel):
    """Opening-hours or working-hours band for one day."""
    id: str
    title: str
    start: datetime
    end: datetime
    type: EventType
    color: str
    opacity: float
    is_break: bool = False
    location_id: Optional[str] = None
    location_name: Optional[str] = None
    staff_id: Optional[str] = None
    staff_name: Optional[str] = None


class CalendarEvent(BaseModel):
    """Appointment projected with display names and colours."""
    id: str
    title: str
    start: datetime
    end: datetime
    staff_id: Optional[str] = None
    staff_name: str
    staff_color: str
    room_id: Optional[str] = None
    room_name: Optional[str] = None
    type: Optional[str] = None
    status: str
    booking_type: str
    location_id: Optional[str] = None
    location_name: Optional[str] = None
    location_color: Optional[str] = None
    patient_id: Optional[str] = None


class LayoutBar(BaseModel):
    """One positioned rectangle on a day column."""
    event_id: str
    kind: BarKind
    title: str
    start: datetime
    end: datetime
    top: int = Field(..., description="Minutes since the first visible hour")
    height: int = Field(..., description="Duration in minutes")
    lane: int
    lane_count: int
    left_percent: float
    width_percent: float
    color: str
    opacity: float
    z_index: int


class DayLayout(BaseModel):
    day: date
    first_hour: int
    lane_count: int
    bars: List[LayoutBar] = Field(default_factory=list)


class Notification(BaseModel):
    severity: Severity
    message: str
    created_at: datetime = Field(default_factory=datetime.now)


class CalendarData(BaseModel):
    """Snapshot of everything fetched from the backend."""
    appointments: List[Appointment] = Field(default_factory=list)
    staff: List[StaffProfile] = Field(default_factory=list)
    rooms: List[Room] = Field(default_factory=list)
    locations: List[Location] = Field(default_factory=list)
    location_schedules: List[LocationWeeklySchedule] = Field(default_factory=list)
    staff_schedules: List[StaffWeeklySchedule] = Field(default_factory=list)

    def without_staff(self, staff_id: str) -> "CalendarData":
        """Copy with every schedule of the given staff member removed."""
        return self.model_copy(update={
            "staff": [s for s in self.staff if s.id != staff_id],
            "staff_schedules": [s for s in self.staff_schedules if s.staff_id != staff_id],
        })

    def location_map(self) -> Dict[str, Location]:
        return {loc.id: loc for loc in self.locations}

    def room_map(self) -> Dict[str, Room]:
        return {room.id: room for room in self.rooms}
