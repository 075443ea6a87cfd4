"""Caching of schedule expansions.

Best Practices:
- Explicit keys: schedule id + schedule version + visible range + flags
- TTL for automatic expiration
- Targeted invalidation when a schedule or staff member changes
"""
import threading
import time
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from calendar_overlay.logging_config import get_logger
from calendar_overlay.models import (
    BackgroundEvent,
    Location,
    LocationWeeklySchedule,
    StaffProfile,
    StaffWeeklySchedule,
)

logger = get_logger(__name__)

CacheKey = Tuple[str, str, str, str, str, bool]


class ExpansionCache:
    """
    Cache for expanded background bands.

    Pattern: Schedule-keyed cache with TTL. A changed schedule gets a new
    version (updated_at or a content digest), so stale expansions are never
    served; they age out or are dropped by invalidate_*().
    """

    def __init__(self, ttl: int = 1800, max_size: int = 2000):
        """
        Initialize expansion cache.

        Args:
            ttl: Time-to-live in seconds (default: 30 minutes)
            max_size: Maximum entries before expired/oldest entries are pruned
        """
        self.cache: Dict[CacheKey, Dict[str, Any]] = {}
        self.ttl = ttl  # seconds
        self.max_size = max_size
        self.hits = 0
        self.misses = 0
        self._lock = threading.Lock()

    @staticmethod
    def make_key(
        kind: str,
        schedule_id: str,
        version: str,
        start: date,
        end: date,
        show_breaks: bool = False
    ) -> CacheKey:
        return (kind, schedule_id, version, start.isoformat(), end.isoformat(), show_breaks)

    def _is_expired(self, timestamp: float) -> bool:
        """Check if cache entry has expired."""
        return time.time() - timestamp > self.ttl

    def get(self, key: CacheKey) -> Optional[List[BackgroundEvent]]:
        """
        Get cached bands for a key.

        Returns:
            Cached events or None if not found/expired
        """
        with self._lock:
            entry = self.cache.get(key)
            if entry is None:
                self.misses += 1
                return None

            if self._is_expired(entry["timestamp"]):
                self.cache.pop(key, None)
                self.misses += 1
                return None

            self.hits += 1
            return entry["events"]

    def set(self, key: CacheKey, events: List[BackgroundEvent], staff_id: Optional[str] = None):
        with self._lock:
            self.cache[key] = {
                "events": events,
                "staff_id": staff_id,
                "timestamp": time.time()
            }
            if len(self.cache) > self.max_size:
                self._prune()

    def _prune(self):
        """Drop expired entries, then the oldest ones if still over size. Caller holds the lock."""
        self._drop_expired()
        if len(self.cache) > self.max_size:
            oldest = sorted(self.cache.items(), key=lambda item: item[1]["timestamp"])
            for key, _ in oldest[:len(self.cache) - self.max_size]:
                self.cache.pop(key, None)

    def _drop_expired(self):
        current_time = time.time()
        expired_keys = [
            key for key, entry in self.cache.items()
            if current_time - entry["timestamp"] > self.ttl
        ]
        for key in expired_keys:
            self.cache.pop(key, None)

    def invalidate_schedule(self, schedule_id: str) -> int:
        """Remove every expansion of one schedule. Returns number removed."""
        with self._lock:
            keys = [key for key in self.cache if key[1] == schedule_id]
            for key in keys:
                self.cache.pop(key, None)
        return len(keys)

    def invalidate_staff(self, staff_id: str) -> int:
        """Remove every expansion belonging to one staff member."""
        with self._lock:
            keys = [key for key, entry in self.cache.items() if entry["staff_id"] == staff_id]
            for key in keys:
                self.cache.pop(key, None)
        if keys:
            logger.info("cache_invalidated", staff_id=staff_id, removed=len(keys))
        return len(keys)

    def clear(self):
        with self._lock:
            self.cache.clear()

    def cleanup_expired(self):
        """Remove all expired entries."""
        with self._lock:
            self._drop_expired()

    # Expansion wrappers matching build_background_events' expand_* hooks.
    # Names and colours are baked into the bands, so they are part of the key.

    def cached_location_expander(self, expand):
        def _expand(schedule: LocationWeeklySchedule, location: Location, start: date, end: date):
            version = f"{schedule.version}|{location.name}|{location.color_hex}"
            key = self.make_key("location", schedule.id, version, start, end)
            events = self.get(key)
            if events is None:
                events = expand(schedule, location, start, end)
                self.set(key, events)
            return list(events)
        return _expand

    def cached_staff_expander(self, expand):
        def _expand(schedule: StaffWeeklySchedule, staff: StaffProfile, start: date, end: date,
                    show_breaks: bool = True):
            version = f"{schedule.version}|{staff.full_name}|{staff.color_hex}"
            key = self.make_key("staff", schedule.id, version, start, end, show_breaks)
            events = self.get(key)
            if events is None:
                events = expand(schedule, staff, start, end, show_breaks)
                self.set(key, events, staff_id=staff.id)
            return list(events)
        return _expand
