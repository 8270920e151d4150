"""
Tracking Manager.
Coordinates tracking lookups across scraping, probing and the aggregator.
"""

from typing import Optional
from loguru import logger

from parcelai.config import TrackerConfig
from parcelai.logging_config import TrackingLogger
from parcelai.models import FailureKind, ScraperResult, TrackingResponse, TrackingSource
from parcelai.tracking.cache import ResponseCache
from parcelai.tracking.extractor import resolve_tracking_input
from parcelai.tracking.fetcher import PageFetcher
from parcelai.tracking.prober import CarrierProber
from parcelai.tracking.scraper import CarrierScraper
from parcelai.tracking.trackingmore import TrackingMoreClient


NOT_FOUND_MESSAGE = (
    "Could not retrieve tracking information from any source. "
    "The tracking number may be invalid or not yet in the system."
)
NO_CARRIER_MESSAGE = "Could not retrieve tracking information from any carrier."
BLOCKED_MESSAGE = (
    "The carrier's website blocked automated tracking. "
    "Open the carrier tracking page directly to check this shipment."
)


class TrackingManager:
    """
    Retrieves tracking information through a tiered fallback chain.

    Tiers, stopping at the first one with events:
    1. Direct scrape of the specified or detected carrier
    2. Probe of every other carrier
    3. TrackingMore aggregator (when configured)

    Numbers no carrier matches are reported immediately without any
    network call. A carrier hint we cannot scrape goes to the aggregator.
    Expected failures come back as a TrackingResponse with success=False.
    """

    def __init__(
        self,
        config: TrackerConfig,
        cache: Optional[ResponseCache[ScraperResult]] = None,
        fetcher: Optional[PageFetcher] = None,
        scraper: Optional[CarrierScraper] = None,
        prober: Optional[CarrierProber] = None,
        aggregator: Optional[TrackingMoreClient] = None,
    ):
        self.config = config
        self.cache = cache if cache is not None else ResponseCache()
        self.fetcher = fetcher or PageFetcher()
        self.scraper = scraper or CarrierScraper(self.fetcher, self.cache, timeout=config.scrape_timeout)
        self.prober = prober or CarrierProber(self.fetcher, self.scraper, timeout=config.probe_timeout)
        self.aggregator = aggregator or TrackingMoreClient.from_config(config)

        if self.aggregator_available:
            logger.info("TrackingMore fallback configured")

    @property
    def aggregator_available(self) -> bool:
        return self.aggregator.is_configured

    def start(self):
        """Validate configuration before serving requests."""
        problems = self.config.validate()
        errors = [p for p in problems if not p.startswith("Warning")]

        for warning in problems:
            if warning not in errors:
                logger.warning(warning)

        if errors:
            for error in errors:
                logger.error(f"Config error: {error}")
            raise RuntimeError("Invalid configuration")

    async def close(self):
        """Release network resources."""
        await self.fetcher.close()

    async def track(
        self,
        tracking_input: str,
        carrier: Optional[str] = None,
        force_refresh: bool = False,
        use_fallback: bool = False,
    ) -> TrackingResponse:
        """
        Get tracking information for a shipment.

        Args:
            tracking_input: Tracking number, or text containing one
            carrier: Optional carrier id (auto-detected if not provided)
            force_refresh: Drop any cached result first
            use_fallback: Go straight to the aggregator, skipping scraping

        Returns:
            TrackingResponse tagged with the tier that produced it
        """
        tracking_number = resolve_tracking_input(tracking_input)
        log = TrackingLogger(tracking_number)

        if force_refresh:
            resolved = self.scraper.resolve_carrier(tracking_number, carrier)
            if resolved is not None:
                self.cache.invalidate_for(resolved.id, tracking_number)
                log.debug(f"Cache invalidated for {resolved.id}")

        # Explicit opt-out of scraping
        if use_fallback and self.aggregator_available:
            log.info("Fallback-only mode, querying TrackingMore")
            result = await self.aggregator.track(tracking_number, carrier)
            return TrackingResponse.from_result(
                result,
                TrackingSource.TRACKINGMORE,
                fallback_attempted=True,
                fallback_available=True,
                fallback_error=result.error,
                message=None if result.success else result.error,
            )

        # Tier 1: direct scrape
        primary = await self.scraper.scrape(tracking_number, carrier)
        if primary.success and primary.events:
            return TrackingResponse.from_result(
                primary,
                TrackingSource.SCRAPER,
                fallback_available=self.aggregator_available,
            )

        unknown_carrier = primary.failure == FailureKind.UNKNOWN_CARRIER
        if unknown_carrier and (carrier is None or not self.aggregator_available):
            return TrackingResponse.from_result(
                primary,
                TrackingSource.SCRAPER,
                fallback_available=self.aggregator_available,
                message=primary.error,
            )

        if unknown_carrier:
            # Hint names a carrier we cannot scrape; only the aggregator knows it
            log.info(f"No scraper for carrier {carrier}, skipping to TrackingMore")
            probe = primary
        else:
            # Tier 2: every carrier
            log.info("Initial scrape failed, probing all carriers")
            probe = await self.prober.probe(tracking_number)
            if probe.success and probe.events:
                return TrackingResponse.from_result(
                    probe,
                    TrackingSource.SCRAPER_PROBE,
                    fallback_available=self.aggregator_available,
                )

        carrier_url = probe.carrier_tracking_url or primary.carrier_tracking_url or None
        blocked = primary.blocked or probe.blocked

        # Tier 3: aggregator
        if not self.aggregator_available:
            log.info("All scrapers failed, no aggregator configured")
            return TrackingResponse.from_result(
                probe,
                TrackingSource.SCRAPER_PROBE,
                carrier_tracking_url=carrier_url,
                blocked=blocked,
                fallback_available=False,
                message=BLOCKED_MESSAGE if blocked else (probe.error or NO_CARRIER_MESSAGE),
            )

        log.info("All scrapers failed, trying TrackingMore")
        hint = probe.carrier if probe.carrier != "unknown" else carrier
        fallback = await self.aggregator.track(tracking_number, hint)

        if fallback.success and fallback.events:
            return TrackingResponse.from_result(
                fallback,
                TrackingSource.TRACKINGMORE,
                fallback_attempted=True,
                fallback_available=True,
            )

        log.warning(f"No source had data: {fallback.error}")
        return TrackingResponse.from_result(
            probe,
            TrackingSource.SCRAPER_PROBE,
            carrier_tracking_url=carrier_url or fallback.carrier_tracking_url or None,
            blocked=blocked,
            fallback_attempted=True,
            fallback_available=True,
            fallback_error=fallback.error,
            message=BLOCKED_MESSAGE if blocked else NOT_FOUND_MESSAGE,
        )
