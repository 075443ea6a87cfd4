"""Staff and appointment filtering (medical role and location).

Pattern: plain list filtering, no lookups beyond the data passed in.
"""
from typing import Dict, List, Optional, Union

from calendar_overlay import config
from calendar_overlay.logging_config import get_logger
from calendar_overlay.models import Appointment, MedicalFilter, Room, StaffProfile

logger = get_logger(__name__)

ALL_LOCATIONS = "all"


def is_medical_role(role: Optional[str]) -> bool:
    """Exact, case-sensitive match against the medical role allow-list."""
    return role in config.MEDICAL_ROLES


def filter_staff(
    staff: List[StaffProfile],
    medical_filter: Union[MedicalFilter, str] = MedicalFilter.ALL,
    location_id: Optional[str] = ALL_LOCATIONS
) -> List[StaffProfile]:
    """
    Filter staff by medical/non-medical role and location assignment.

    Args:
        staff: Full staff list
        medical_filter: all, medical or non-medical
        location_id: Location id, or "all" / None for every location

    Returns:
        Staff matching both selectors, in input order
    """
    medical_filter = MedicalFilter(medical_filter)
    filtered = staff

    if medical_filter != MedicalFilter.ALL:
        want_medical = medical_filter == MedicalFilter.MEDICAL
        filtered = [s for s in filtered if is_medical_role(s.role) == want_medical]

    if location_id and location_id != ALL_LOCATIONS:
        filtered = [s for s in filtered if location_id in s.location_ids]

    logger.debug(
        "staff_filtered",
        medical_filter=medical_filter.value,
        location_id=location_id,
        total=len(staff),
        kept=len(filtered)
    )
    return filtered


def appointment_location_id(
    appointment: Appointment,
    rooms: Dict[str, Room]
) -> Optional[str]:
    """Location of the appointment's room, falling back to its own location."""
    room = rooms.get(appointment.room) if appointment.room else None
    if room and room.location_id:
        return room.location_id
    return appointment.location_id


def filter_appointments(
    appointments: List[Appointment],
    rooms: Dict[str, Room],
    medical_filter: Union[MedicalFilter, str] = MedicalFilter.ALL,
    location_id: Optional[str] = ALL_LOCATIONS
) -> List[Appointment]:
    """
    Filter appointments by location and service medical flag.

    A known room decides the location; otherwise the appointment's own
    location id is used, and appointments with neither are kept. The medical
    selector only applies to services that declare is_medical.
    """
    medical_filter = MedicalFilter(medical_filter)
    kept = []

    for appointment in appointments:
        if location_id and location_id != ALL_LOCATIONS:
            room = rooms.get(appointment.room) if appointment.room else None
            if room:
                if room.location_id != location_id:
                    continue
            elif appointment.location_id and appointment.location_id != location_id:
                continue

        service = appointment.service
        if medical_filter != MedicalFilter.ALL and service and service.is_medical is not None:
            if medical_filter == MedicalFilter.MEDICAL and not service.is_medical:
                continue
            if medical_filter == MedicalFilter.NON_MEDICAL and service.is_medical:
                continue

        kept.append(appointment)

    return kept
