"""Tests for the expansion cache."""
import threading
import time
from unittest.mock import Mock

from calendar_overlay.cache import ExpansionCache
from calendar_overlay.expander import expand_location_schedule, expand_staff_schedule


class TestExpansionCache:
    """Test key-based caching and invalidation."""

    def test_get_and_set(self, monday):
        cache = ExpansionCache(ttl=60)
        key = cache.make_key("staff", "ws-1", "v1", monday, monday, True)

        assert cache.get(key) is None
        cache.set(key, [])
        assert cache.get(key) == []
        assert cache.hits == 1
        assert cache.misses == 1

    def test_expiration(self, monday):
        """Entries expire after TTL."""
        cache = ExpansionCache(ttl=1)
        key = cache.make_key("staff", "ws-1", "v1", monday, monday)
        cache.set(key, [])

        time.sleep(1.1)
        assert cache.get(key) is None

    def test_cleanup_expired(self, monday):
        cache = ExpansionCache(ttl=0)
        cache.set(cache.make_key("staff", "ws-1", "v1", monday, monday), [])
        time.sleep(0.01)
        cache.cleanup_expired()
        assert cache.cache == {}

    def test_max_size_prunes_oldest(self, monday):
        cache = ExpansionCache(ttl=60, max_size=2)
        for i in range(3):
            cache.set(cache.make_key("staff", f"ws-{i}", "v", monday, monday), [])
        assert len(cache.cache) == 2

    def test_invalidate_staff(self, monday):
        cache = ExpansionCache()
        cache.set(cache.make_key("staff", "ws-1", "v", monday, monday), [], staff_id="st-1")
        cache.set(cache.make_key("staff", "ws-2", "v", monday, monday), [], staff_id="st-2")

        assert cache.invalidate_staff("st-1") == 1
        assert len(cache.cache) == 1

    def test_invalidate_schedule(self, monday):
        cache = ExpansionCache()
        cache.set(cache.make_key("staff", "ws-1", "v1", monday, monday), [])
        cache.set(cache.make_key("staff", "ws-1", "v2", monday, monday), [])

        assert cache.invalidate_schedule("ws-1") == 2
        assert cache.cache == {}

    def test_concurrent_writes_and_invalidation(self, monday):
        """Writers, pruning and invalidation from several threads never raise."""
        cache = ExpansionCache(ttl=0, max_size=50)
        errors = []
        stop = threading.Event()

        def writer(prefix):
            try:
                for i in range(2000):
                    key = cache.make_key("staff", f"{prefix}-{i}", "v", monday, monday)
                    cache.set(key, [], staff_id=f"{prefix}-{i % 5}")
                    cache.get(key)
            except Exception as e:
                errors.append(repr(e))

        def invalidator():
            try:
                while not stop.is_set():
                    cache.invalidate_staff("w0-1")
                    cache.invalidate_schedule("w1-3")
                    cache.cleanup_expired()
            except Exception as e:
                errors.append(repr(e))

        writers = [threading.Thread(target=writer, args=(f"w{n}",)) for n in range(4)]
        sweeper = threading.Thread(target=invalidator)
        sweeper.start()
        for thread in writers:
            thread.start()
        for thread in writers:
            thread.join()
        stop.set()
        sweeper.join()

        assert errors == []
        assert len(cache.cache) <= 50


class TestCachedExpanders:
    """Cached wrappers only re-expand when schedule, range or names change."""

    def test_staff_expansion_is_reused(self, doctor, doctor_schedule, monday):
        cache = ExpansionCache()
        expand = Mock(side_effect=expand_staff_schedule)
        cached = cache.cached_staff_expander(expand)

        first = cached(doctor_schedule, doctor, monday, monday, True)
        second = cached(doctor_schedule, doctor, monday, monday, True)

        assert first == second
        assert expand.call_count == 1

    def test_show_breaks_is_part_of_key(self, doctor, doctor_schedule, monday):
        cache = ExpansionCache()
        cached = cache.cached_staff_expander(expand_staff_schedule)

        assert len(cached(doctor_schedule, doctor, monday, monday, True)) == 2
        assert len(cached(doctor_schedule, doctor, monday, monday, False)) == 1

    def test_new_schedule_version_misses(self, doctor, doctor_schedule, monday):
        cache = ExpansionCache()
        expand = Mock(side_effect=expand_staff_schedule)
        cached = cache.cached_staff_expander(expand)

        cached(doctor_schedule, doctor, monday, monday, True)
        changed = doctor_schedule.model_copy(update={"updated_at": doctor_schedule.updated_at.replace(hour=9)})
        cached(changed, doctor, monday, monday, True)

        assert expand.call_count == 2

    def test_renamed_location_misses(self, location, location_schedule, monday):
        cache = ExpansionCache()
        cached = cache.cached_location_expander(expand_location_schedule)

        cached(location_schedule, location, monday, monday)
        renamed = location.model_copy(update={"name": "Old Town"})
        events = cached(location_schedule, renamed, monday, monday)

        assert events[0].title == "Old Town - Opening hours"

    def test_invalidated_staff_is_re_expanded(self, doctor, doctor_schedule, monday):
        cache = ExpansionCache()
        expand = Mock(side_effect=expand_staff_schedule)
        cached = cache.cached_staff_expander(expand)

        cached(doctor_schedule, doctor, monday, monday, True)
        cache.invalidate_staff("st-1")
        cached(doctor_schedule, doctor, monday, monday, True)

        assert expand.call_count == 2
