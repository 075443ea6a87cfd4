"""Configuration for the calendar overlay service.

All tunables centralized here - override via environment or a .env file.
"""
import os
from dotenv import load_dotenv

load_dotenv()

# Backend API Configuration
BACKEND_BASE_URL = os.getenv("CALENDAR_BACKEND_URL", "http://localhost:5000/api")
BACKEND_TIMEOUT = int(os.getenv("CALENDAR_BACKEND_TIMEOUT", "15"))
# Failed fetches surface as notifications and wait for a manual refresh
BACKEND_MAX_RETRIES = int(os.getenv("CALENDAR_BACKEND_MAX_RETRIES", "0"))
BACKEND_FAILURE_THRESHOLD = 5
BACKEND_CIRCUIT_TIMEOUT = 60

# Persistence
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///calendar.db")
SETTINGS_STORAGE_KEY = "calendar-settings"
SETTINGS_FILE = os.getenv("CALENDAR_SETTINGS_FILE", "data/calendar-settings.json")

# Caching
EXPANSION_CACHE_TTL = int(os.getenv("CALENDAR_CACHE_TTL", "1800"))  # 30 minutes

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Weekday keys indexed like a Sunday-first day-of-week integer
DAY_KEYS = [
    "sunday", "monday", "tuesday", "wednesday",
    "thursday", "friday", "saturday",
]

MEDICAL_ROLES = [
    "doctor", "arzt", "mediziner", "Arzt", "Mediziner",
    "dr", "Dr", "doktor", "physician", "Physician",
]

BAND_STYLES = {
    "location": {"color": "#2563EB", "opacity": 0.1},
    "staff": {"color": "#4CAF50", "opacity": 0.2},
    "break": {"color": "#FF9800", "opacity": 0.3},
}

BAR_STYLES = {
    "location": {"opacity": 0.1, "z_index": 0},
    "staff": {"opacity": 0.9, "z_index": 1},
    "break": {"color": "#FF9800", "opacity": 0.8, "z_index": 1},
    "appointment": {"opacity": 1.0, "z_index": 10},
}

DEFAULT_APPOINTMENT_COLOR = "#9CA3AF"
DEFAULT_APPOINTMENT_TITLE = "Appointment"
UNKNOWN_STAFF_NAME = "Unknown"
