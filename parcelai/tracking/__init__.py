"""
Tracking module.
Scrapes carrier tracking pages, with probing and aggregator fallbacks.
"""

from parcelai.tracking.cache import ResponseCache
from parcelai.tracking.carriers import CARRIERS, detect_carrier, normalize_tracking_number
from parcelai.tracking.fetcher import PageFetcher
from parcelai.tracking.prober import CarrierProber
from parcelai.tracking.scraper import CarrierScraper
from parcelai.tracking.tracking_manager import TrackingManager
from parcelai.tracking.trackingmore import TrackingMoreClient

__all__ = [
    "CARRIERS",
    "CarrierProber",
    "CarrierScraper",
    "PageFetcher",
    "ResponseCache",
    "TrackingManager",
    "TrackingMoreClient",
    "detect_carrier",
    "normalize_tracking_number",
]
