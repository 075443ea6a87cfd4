"""Calendar view settings and the services that persist them.

Handles:
- Validated settings schema (view mode, filters, toggles, last viewed date)
- JSON file and database backed stores behind one interface
- Restoring the initial view from saved settings
"""
import json
from datetime import date
from pathlib import Path
from typing import Optional, Protocol, Tuple

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from calendar_overlay import config
from calendar_overlay.db_models import Base, UIPreference
from calendar_overlay.logging_config import get_logger
from calendar_overlay.models import MedicalFilter, ViewMode
from calendar_overlay.view_range import start_of_week

logger = get_logger(__name__)


class SettingsError(Exception):
    """Raised when settings cannot be persisted."""
    pass


class CalendarSettings(BaseModel):
    """Last viewed calendar settings."""
    view_mode: ViewMode = Field(default=ViewMode.WEEK, description="day, 3day, week or month")
    selected_location: str = Field(default="all", min_length=1, description="Location id or 'all'")
    medical_filter: MedicalFilter = Field(default=MedicalFilter.ALL)
    show_location_hours: bool = True
    show_staff_hours: bool = True
    show_breaks: bool = True
    show_only_opening_hours: bool = False
    hide_weekends: bool = False
    current_date: date = Field(default_factory=date.today, description="Anchor date of the view")


class SettingsService(Protocol):
    """Load/save interface injected into the calendar controller."""

    def load(self) -> Optional[CalendarSettings]:
        ...

    def save(self, settings: CalendarSettings) -> None:
        ...


class JsonFileSettingsStore:
    """Stores settings as a JSON document keyed by the storage key."""

    def __init__(self, path: Optional[str] = None, storage_key: str = config.SETTINGS_STORAGE_KEY):
        """
        Initialize file store.

        Args:
            path: JSON file path. Defaults to config.SETTINGS_FILE.
            storage_key: Key under which settings live in the document
        """
        self.path = Path(path or config.SETTINGS_FILE)
        self.storage_key = storage_key

    def _read_document(self) -> dict:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def load(self) -> Optional[CalendarSettings]:
        """
        Load settings; unreadable or invalid blobs count as absent.

        Returns:
            CalendarSettings or None
        """
        try:
            document = self._read_document()
            blob = document.get(self.storage_key)
            if blob is None:
                return None
            return CalendarSettings.model_validate(blob)
        except (OSError, json.JSONDecodeError, ValidationError, AttributeError) as e:
            logger.warning("settings_load_failed", path=str(self.path), error=str(e))
            return None

    def save(self, settings: CalendarSettings) -> None:
        """
        Save settings, keeping other keys in the document intact.

        Raises:
            SettingsError: If the file cannot be written
        """
        try:
            try:
                document = self._read_document()
            except json.JSONDecodeError:
                document = {}
            document[self.storage_key] = settings.model_dump(mode="json")

            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise SettingsError(f"Could not save calendar settings: {e}") from e


class SqlSettingsStore:
    """
    Stores settings in the ui_preferences table.

    Pattern: Thin wrapper around SQLAlchemy, one row per storage key.
    """

    def __init__(self, database_url: str = config.DATABASE_URL, storage_key: str = config.SETTINGS_STORAGE_KEY):
        self.engine = create_engine(database_url, pool_pre_ping=True)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine)
        self.storage_key = storage_key

    def load(self) -> Optional[CalendarSettings]:
        try:
            with self.SessionLocal() as db:
                row = db.query(UIPreference).filter(
                    UIPreference.storage_key == self.storage_key
                ).first()
                if not row:
                    return None
                return CalendarSettings.model_validate(row.payload)
        except (SQLAlchemyError, ValidationError) as e:
            logger.warning("settings_load_failed", storage_key=self.storage_key, error=str(e))
            return None

    def save(self, settings: CalendarSettings) -> None:
        """
        Upsert the settings row.

        Raises:
            SettingsError: If the database write fails
        """
        payload = settings.model_dump(mode="json")
        try:
            with self.SessionLocal() as db:
                row = db.query(UIPreference).filter(
                    UIPreference.storage_key == self.storage_key
                ).first()
                if row:
                    row.payload = payload
                else:
                    db.add(UIPreference(storage_key=self.storage_key, payload=payload))
                db.commit()
        except SQLAlchemyError as e:
            raise SettingsError(f"Could not save calendar settings: {e}") from e


def resolve_initial_settings(
    saved: Optional[CalendarSettings],
    today: Optional[date] = None
) -> Tuple[CalendarSettings, bool]:
    """
    Settings to open the calendar with.

    Week view (and first start) always opens on the current week; other
    views restore the saved date.

    Returns:
        Tuple of (settings, needs_save)
    """
    today = today or date.today()

    if saved is None:
        return CalendarSettings(current_date=start_of_week(today)), False

    if saved.view_mode == ViewMode.WEEK:
        return saved.model_copy(update={"current_date": start_of_week(today)}), True

    return saved, False
