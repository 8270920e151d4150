"""
Response cache.
In-memory tracking results with a time-to-live picked from the status.
"""

import time
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar, Union
from loguru import logger

from parcelai.models import TrackingStatus
from parcelai.tracking.carriers import normalize_tracking_number


T = TypeVar("T")

MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR

# Seconds. Volatile states expire fast, terminal states slowly.
CACHE_DURATIONS: dict[TrackingStatus, int] = {
    TrackingStatus.DELIVERED: 7 * DAY,
    TrackingStatus.FAILED: DAY,
    TrackingStatus.EXPIRED: DAY,
    TrackingStatus.EXCEPTION: 2 * HOUR,
    TrackingStatus.OUT_FOR_DELIVERY: 30 * MINUTE,
    TrackingStatus.IN_TRANSIT: 6 * HOUR,
    TrackingStatus.INFO_RECEIVED: 12 * HOUR,
    TrackingStatus.PENDING: 12 * HOUR,
    TrackingStatus.UNKNOWN: HOUR,
}
DEFAULT_CACHE_DURATION = 6 * HOUR


def get_cache_duration(status: Union[TrackingStatus, str, None]) -> int:
    """TTL in seconds for a status."""
    try:
        return CACHE_DURATIONS[TrackingStatus(status)]
    except (KeyError, ValueError):
        return DEFAULT_CACHE_DURATION


def cache_key(carrier_id: str, tracking_number: str) -> str:
    """Cache key: track:{carrierId}:{TRACKINGNUMBER}."""
    return f"track:{carrier_id}:{normalize_tracking_number(tracking_number)}"


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with its write time and expiry (epoch seconds)."""

    data: T
    timestamp: float
    expires_at: float


class ResponseCache(Generic[T]):
    """
    Status-aware response cache.

    Features:
    - TTL chosen by tracking status at write time
    - Lazy eviction of expired entries on read
    - Explicit sweep of expired entries
    - Injectable clock for tests

    Entries are overwritten wholesale, never updated in place. The cache
    is meant for a single event loop; all mutations run between awaits.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.time
        self._entries: dict[str, CacheEntry[T]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[T]:
        """Return cached data, or None on a miss or an expired entry."""
        entry = self._entries.get(key)

        if entry is None:
            return None

        if self._clock() > entry.expires_at:
            del self._entries[key]
            logger.debug(f"Cache entry expired: {key}")
            return None

        return entry.data

    def set(self, key: str, data: T, status: Union[TrackingStatus, str, None]) -> None:
        """Store data with a TTL derived from its status."""
        now = self._clock()
        duration = get_cache_duration(status)

        self._entries[key] = CacheEntry(
            data=data,
            timestamp=now,
            expires_at=now + duration,
        )
        logger.debug(f"Cached {key} for {duration}s (status={status})")

    def invalidate(self, key: str) -> None:
        """Drop a single entry."""
        self._entries.pop(key, None)

    def invalidate_for(self, carrier_id: str, tracking_number: str) -> None:
        """Drop the entry for a carrier + tracking number."""
        self.invalidate(cache_key(carrier_id, tracking_number))

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()
        logger.info("Tracking cache cleared")

    def clean_expired(self) -> int:
        """Remove expired entries and return how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now > entry.expires_at]

        for key in expired:
            del self._entries[key]

        if expired:
            logger.info(f"Removed {len(expired)} expired cache entries")

        return len(expired)

    def stats(self) -> dict:
        """Cache size and keys."""
        return {
            "size": len(self._entries),
            "keys": list(self._entries.keys()),
        }
