"""FastAPI dependency injection functions."""
from functools import lru_cache

from calendar_overlay import config
from calendar_overlay.cache import ExpansionCache
from calendar_overlay.event_channel import EventChannel
from calendar_overlay.settings_store import SettingsService, SqlSettingsStore


@lru_cache(maxsize=1)
def get_settings_service() -> SettingsService:
    """
    Get settings store (cached singleton).

    Pattern: one engine per process, created on first use.
    """
    return SqlSettingsStore(database_url=config.DATABASE_URL)


@lru_cache(maxsize=1)
def get_event_channel() -> EventChannel:
    return EventChannel()


@lru_cache(maxsize=1)
def get_expansion_cache() -> ExpansionCache:
    """Shared across requests; keys carry schedule versions so reuse is safe."""
    return ExpansionCache(ttl=config.EXPANSION_CACHE_TTL)
