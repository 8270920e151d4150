"""
Scrape orchestrator.
Drives one carrier scrape: cache, fetch, bot check, parse, cache write.
"""

import asyncio
from typing import Optional
from loguru import logger

from parcelai.models import (
    CarrierConfig,
    FailureKind,
    ScraperResult,
    TimelineEvent,
    TrackingStatus,
)
from parcelai.tracking.cache import ResponseCache, cache_key
from parcelai.tracking.carriers import (
    build_tracking_url,
    detect_carrier,
    get_carrier_by_id,
    normalize_tracking_number,
)
from parcelai.tracking.fetcher import DEFAULT_TIMEOUT, PageFetcher, is_blocked
from parcelai.tracking.parser import extract_status_from_events, parse_page


UNKNOWN_CARRIER_ERROR = "Unknown carrier - please specify carrier manually"
BOT_DETECTED_ERROR = "Bot detection triggered - please open carrier tracking page directly"


def build_success_result(
    carrier: CarrierConfig,
    tracking_number: str,
    events: list[TimelineEvent],
    eta: Optional[str] = None,
) -> ScraperResult:
    """Result for a scrape that produced events (newest first)."""
    summary = extract_status_from_events(events)

    return ScraperResult(
        success=bool(events),
        carrier=carrier.id,
        carrier_name=carrier.name,
        carrier_tracking_url=build_tracking_url(carrier, tracking_number),
        tracking_number=tracking_number,
        status=summary.status,
        status_message=summary.status_message,
        eta=eta,
        delivered_at=summary.delivered_at,
        current_location=events[0].location if events else None,
        events=events,
        failure=None if events else FailureKind.EMPTY_RESULT,
    )


def build_failure_result(
    carrier: Optional[CarrierConfig],
    tracking_number: str,
    status_message: str,
    error: Optional[str],
    failure: FailureKind,
    blocked: bool = False,
) -> ScraperResult:
    """Result for a scrape that failed before producing events."""
    if carrier is None:
        return ScraperResult(
            tracking_number=tracking_number,
            status_message=status_message,
            error=error,
            failure=failure,
        )

    return ScraperResult(
        blocked=blocked,
        carrier=carrier.id,
        carrier_name=carrier.name,
        carrier_tracking_url=build_tracking_url(carrier, tracking_number),
        tracking_number=tracking_number,
        status=TrackingStatus.UNKNOWN,
        status_message=status_message,
        error=error,
        failure=failure,
    )


class CarrierScraper:
    """
    Scrapes a carrier's public tracking page.

    Every outcome is returned as a ScraperResult: unknown carrier,
    network errors, HTTP errors, bot challenges and empty pages are all
    data, never exceptions, so callers can fall through to the next tier.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        cache: ResponseCache[ScraperResult],
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.fetcher = fetcher
        self.cache = cache
        self.timeout = timeout

    def resolve_carrier(self, tracking_number: str, carrier_hint: Optional[str] = None) -> Optional[CarrierConfig]:
        """Carrier from the hint if known, else from the number's shape."""
        carrier = get_carrier_by_id(carrier_hint)
        if carrier is None:
            carrier = detect_carrier(tracking_number)
        return carrier

    async def scrape(self, tracking_number: str, carrier_hint: Optional[str] = None) -> ScraperResult:
        """
        Scrape tracking information for one tracking number.

        Args:
            tracking_number: Raw tracking number
            carrier_hint: Optional carrier id overriding detection

        Returns:
            ScraperResult (success=False with error/failure on any problem)
        """
        normalized = normalize_tracking_number(tracking_number)
        carrier = self.resolve_carrier(normalized, carrier_hint)

        if carrier is None:
            logger.info(f"No carrier matches {normalized}")
            return build_failure_result(
                None,
                normalized,
                "Could not detect carrier from tracking number",
                UNKNOWN_CARRIER_ERROR,
                FailureKind.UNKNOWN_CARRIER,
            )

        key = cache_key(carrier.id, normalized)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for {key}")
            return cached.model_copy(update={"cached": True})

        url = build_tracking_url(carrier, normalized)
        logger.info(f"Scraping {carrier.name} for {normalized}")

        response = await self.fetcher.fetch(url, timeout=self.timeout)

        if not response.ok and response.status_code is None:
            logger.warning(f"{carrier.name} fetch failed for {normalized}: {response.error}")
            return build_failure_result(
                carrier,
                normalized,
                "Failed to fetch tracking information",
                response.error or "Unknown error",
                FailureKind.FETCH_FAILURE,
            )

        if not response.ok:
            logger.warning(f"{carrier.name} returned HTTP {response.status_code} for {normalized}")
            return build_failure_result(
                carrier,
                normalized,
                f"HTTP error: {response.status_code}",
                f"Failed to fetch tracking page (HTTP {response.status_code})",
                FailureKind.FETCH_FAILURE,
            )

        if is_blocked(response.body):
            logger.warning(f"{carrier.name} served a bot challenge for {normalized}")
            return build_failure_result(
                carrier,
                normalized,
                "Carrier requires human verification",
                BOT_DETECTED_ERROR,
                FailureKind.BOT_DETECTED,
                blocked=True,
            )

        page = parse_page(response.body, carrier)
        result = build_success_result(carrier, normalized, page.events, page.eta)

        if result.success:
            self.cache.set(key, result, result.status)
            logger.info(f"{carrier.name} {normalized}: {result.status} ({len(result.events)} events)")
        else:
            logger.info(f"{carrier.name} page for {normalized} had no events")

        return result

    async def scrape_many(
        self,
        requests: list[tuple[str, Optional[str]]],  # (number, carrier hint)
    ) -> list[ScraperResult]:
        """
        Scrape several tracking numbers concurrently.

        Results are returned in request order.
        """
        outcomes = await asyncio.gather(
            *(self.scrape(number, hint) for number, hint in requests),
            return_exceptions=True,
        )

        results = []
        for (number, _), outcome in zip(requests, outcomes):
            if isinstance(outcome, ScraperResult):
                results.append(outcome)
                continue

            if isinstance(outcome, asyncio.CancelledError):
                raise outcome

            logger.error(f"Batch scrape error for {number}: {outcome}")
            results.append(ScraperResult(
                carrier_name="Unknown",
                tracking_number=normalize_tracking_number(number),
                status_message="Failed to scrape",
                error=str(outcome) or "Unknown error",
                failure=FailureKind.FETCH_FAILURE,
            ))

        return results
