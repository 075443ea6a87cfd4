"""Appointment projection into display-ready calendar events."""
from typing import Dict, Iterable, List, Optional

from calendar_overlay import config
from calendar_overlay.filters import appointment_location_id
from calendar_overlay.models import Appointment, CalendarEvent, Location, Room, StaffProfile


def find_staff_for_doctor(
    doctor_id: Optional[str],
    staff: Iterable[StaffProfile]
) -> Optional[StaffProfile]:
    """Match an appointment's doctor id against user id or profile id."""
    if not doctor_id:
        return None
    for member in staff:
        if doctor_id in (member.user_id, member.id):
            return member
    return None


def resolve_staff_name(appointment: Appointment, staff: Optional[StaffProfile]) -> str:
    """
    Display name for the people on an appointment.

    Priority: assigned users, embedded doctor name, staff profile, "Unknown".
    """
    if appointment.assigned_users:
        return ", ".join(user.name for user in appointment.assigned_users)
    if appointment.doctor_name:
        return appointment.doctor_name
    if staff:
        return staff.display_name or staff.full_name or config.UNKNOWN_STAFF_NAME
    return config.UNKNOWN_STAFF_NAME


def project_appointment(
    appointment: Appointment,
    staff: Iterable[StaffProfile],
    rooms: Dict[str, Room],
    locations: Dict[str, Location]
) -> CalendarEvent:
    staff = list(staff)
    member = find_staff_for_doctor(appointment.doctor, staff)
    room = rooms.get(appointment.room) if appointment.room else None
    location_id = appointment_location_id(appointment, rooms)
    location = locations.get(location_id) if location_id else None

    service_color = appointment.service.color_hex if appointment.service else None
    color = service_color or (member.color_hex if member else None) or config.DEFAULT_APPOINTMENT_COLOR

    return CalendarEvent(
        id=appointment.id,
        title=appointment.title or config.DEFAULT_APPOINTMENT_TITLE,
        start=appointment.start_time,
        end=appointment.end_time,
        staff_id=appointment.doctor,
        staff_name=resolve_staff_name(appointment, member),
        staff_color=color,
        room_id=appointment.room,
        room_name=room.name if room else None,
        type=appointment.type,
        status=appointment.status,
        booking_type=appointment.booking_type,
        location_id=location_id,
        location_name=location.name if location else None,
        location_color=location.color_hex if location else None,
        patient_id=appointment.patient_id,
    )


def project_appointments(
    appointments: Iterable[Appointment],
    staff: Iterable[StaffProfile],
    rooms: Dict[str, Room],
    locations: Dict[str, Location]
) -> List[CalendarEvent]:
    staff = list(staff)
    return [project_appointment(a, staff, rooms, locations) for a in appointments]
