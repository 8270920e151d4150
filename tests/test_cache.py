"""Tests for the response cache."""

from parcelai.models import TrackingStatus
from parcelai.tracking.cache import (
    CACHE_DURATIONS,
    DEFAULT_CACHE_DURATION,
    HOUR,
    cache_key,
    get_cache_duration,
)


class TestCacheDurations:
    """Tests for status-based TTLs."""

    def test_known_statuses(self):
        """Test terminal states live longer than volatile ones."""
        assert get_cache_duration("in_transit") == 6 * HOUR
        assert get_cache_duration(TrackingStatus.DELIVERED) > get_cache_duration("out_for_delivery")
        assert set(CACHE_DURATIONS) == set(TrackingStatus)

    def test_unrecognized_status(self):
        """Test unknown status strings fall back to the default."""
        assert get_cache_duration("teleported") == DEFAULT_CACHE_DURATION
        assert get_cache_duration(None) == DEFAULT_CACHE_DURATION


class TestResponseCache:
    """Tests for ResponseCache."""

    def test_round_trip(self, cache):
        """Test get returns what was set."""
        data = {"trackingNumber": "1Z999AA10123456784", "events": [1, 2]}
        cache.set("track:ups:1Z999AA10123456784", data, "in_transit")

        assert cache.get("track:ups:1Z999AA10123456784") is data

    def test_miss(self, cache):
        """Test unknown keys return None."""
        assert cache.get("track:ups:NOPE") is None

    def test_expiry_evicts(self, cache, clock):
        """Test entries expire after their status TTL."""
        cache.set("k", "value", "in_transit")

        clock.advance(6 * HOUR - 1)
        assert cache.get("k") == "value"

        clock.advance(2)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_overwrite_resets_ttl(self, cache, clock):
        """Test a new write replaces the entry and its expiry."""
        cache.set("k", "old", "out_for_delivery")
        clock.advance(20 * 60)
        cache.set("k", "new", "delivered")
        clock.advance(60 * 60)

        assert cache.get("k") == "new"

    def test_invalidate_for(self, cache):
        """Test invalidation normalizes the tracking number."""
        cache.set(cache_key("ups", "1Z999AA10123456784"), "value", "delivered")
        cache.invalidate_for("ups", " 1z999aa10123456784 ")

        assert len(cache) == 0

    def test_clean_expired(self, cache, clock):
        """Test sweeping removes only expired entries."""
        cache.set("short", 1, "out_for_delivery")
        cache.set("long", 2, "delivered")

        clock.advance(HOUR)
        removed = cache.clean_expired()

        assert removed == 1
        assert cache.stats() == {"size": 1, "keys": ["long"]}

    def test_clear(self, cache):
        """Test clearing drops everything."""
        cache.set("a", 1, "pending")
        cache.set("b", 2, "pending")
        cache.clear()

        assert len(cache) == 0


class TestCacheKey:
    """Tests for cache key format."""

    def test_format(self):
        assert cache_key("dhl", "jjd 0012345") == "track:dhl:JJD0012345"
