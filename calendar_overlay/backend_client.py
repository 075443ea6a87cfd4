"""Client for the clinic REST backend.

Handles:
- Fetching appointments, staff, rooms, locations and weekly schedules
- Accepting both bare JSON lists and {"data": [...]} envelopes
- Skipping (and logging) items that fail validation
- Sequencing refreshes so a slow, older response never overwrites a newer one
"""
import threading
from typing import Any, Dict, List, Optional, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from calendar_overlay import config
from calendar_overlay.circuit_breaker import CircuitBreaker
from calendar_overlay.http_client import backend_circuit_breaker, create_http_session
from calendar_overlay.logging_config import get_logger
from calendar_overlay.models import (
    Appointment,
    CalendarData,
    Location,
    LocationWeeklySchedule,
    Room,
    StaffProfile,
    StaffWeeklySchedule,
)

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

RESOURCES = {
    "appointments": ("/appointments", Appointment),
    "staff": ("/staff-profiles", StaffProfile),
    "rooms": ("/rooms", Room),
    "locations": ("/locations", Location),
    "location_schedules": ("/location-weekly-schedules", LocationWeeklySchedule),
    "staff_schedules": ("/weekly-schedules", StaffWeeklySchedule),
}


class BackendError(Exception):
    """Raised when a backend resource cannot be fetched or understood."""

    def __init__(self, message: str, path: Optional[str] = None, status_code: Optional[int] = None):
        self.path = path
        self.status_code = status_code
        super().__init__(message)


class BackendClient:
    """Read-only access to the resources the calendar needs."""

    def __init__(
        self,
        base_url: str = config.BACKEND_BASE_URL,
        session: Optional[requests.Session] = None,
        circuit_breaker: Optional[CircuitBreaker] = None
    ):
        """
        Initialize backend client.

        Args:
            base_url: API root, e.g. http://localhost:5000/api
            session: HTTP session (default: create_http_session())
            circuit_breaker: Breaker guarding every call (default: shared one)
        """
        self.base_url = base_url.rstrip("/")
        self.session = session or create_http_session()
        self.circuit_breaker = circuit_breaker or backend_circuit_breaker

    def _get_items(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Any]:
        """
        GET a collection and unwrap it to a list.

        Raises:
            BackendError: On transport errors, HTTP errors or an unexpected body
            CircuitBreakerOpen: If the backend circuit is open
        """
        url = f"{self.base_url}{path}"
        try:
            response = self.circuit_breaker.call(self.session.get, url, params=params)
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise BackendError(f"GET {path} failed with status {status}", path, status) from e
        except requests.exceptions.RequestException as e:
            raise BackendError(f"GET {path} failed: {e}", path) from e

        try:
            body = response.json()
        except ValueError as e:
            raise BackendError(f"GET {path} returned invalid JSON", path, response.status_code) from e

        if isinstance(body, dict):
            body = body.get("data")
        if not isinstance(body, list):
            raise BackendError(f"GET {path} returned an unexpected payload", path, response.status_code)
        return body

    @staticmethod
    def _parse(items: List[Any], model: Type[ModelT], resource: str) -> List[ModelT]:
        """Validate items one by one; invalid ones are logged and dropped."""
        parsed = []
        for index, item in enumerate(items):
            try:
                parsed.append(model.model_validate(item))
            except ValidationError as e:
                item_id = (item.get("_id") or item.get("id")) if isinstance(item, dict) else None
                logger.warning(
                    "backend_item_skipped",
                    resource=resource,
                    index=index,
                    item_id=item_id,
                    errors=e.error_count()
                )
        return parsed

    def fetch(self, resource: str, params: Optional[Dict[str, Any]] = None) -> list:
        """Fetch and validate one resource by its RESOURCES name."""
        path, model = RESOURCES[resource]
        items = self._get_items(path, params)
        parsed = self._parse(items, model, resource)
        logger.info("backend_fetched", resource=resource, received=len(items), kept=len(parsed))
        return parsed

    def fetch_appointments(self) -> List[Appointment]:
        return self.fetch("appointments")

    def fetch_staff(self) -> List[StaffProfile]:
        return self.fetch("staff")

    def fetch_rooms(self) -> List[Room]:
        return self.fetch("rooms")

    def fetch_locations(self) -> List[Location]:
        return self.fetch("locations")

    def fetch_location_schedules(self) -> List[LocationWeeklySchedule]:
        return self.fetch("location_schedules")

    def fetch_staff_schedules(self) -> List[StaffWeeklySchedule]:
        return self.fetch("staff_schedules")

    def fetch_all(self) -> CalendarData:
        """
        Fetch every resource the calendar renders.

        Raises:
            BackendError: If any resource fails; partial results are discarded
            CircuitBreakerOpen: If the backend circuit is open
        """
        return CalendarData(**{name: self.fetch(name) for name in RESOURCES})


class RequestSequencer:
    """
    Monotonic request ids for overlapping refreshes.

    Pattern: issue an id before fetching, apply the response only if no newer
    one has been applied already.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._issued = 0
        self._applied = 0

    def next_id(self) -> int:
        with self._lock:
            self._issued += 1
            return self._issued

    def try_apply(self, request_id: int) -> bool:
        """Mark request_id as applied. False if it is stale."""
        with self._lock:
            if request_id <= self._applied:
                return False
            self._applied = request_id
            return True

    @property
    def latest_applied(self) -> int:
        return self._applied
