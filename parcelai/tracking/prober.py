"""
All-carriers prober.
Tries every registered carrier's tracking page when the primary scrape finds nothing.
"""

import asyncio
from typing import Optional, Sequence
from loguru import logger

from parcelai.models import CarrierConfig, FailureKind, ScraperResult
from parcelai.tracking.carriers import (
    CARRIERS,
    build_tracking_url,
    detect_carrier,
    normalize_tracking_number,
)
from parcelai.tracking.fetcher import (
    PROBE_BOT_PATTERNS,
    PROBE_TIMEOUT,
    PROBE_USER_AGENT,
    PageFetcher,
    is_blocked,
)
from parcelai.tracking.parser import ParsedPage, parse_page
from parcelai.tracking.scraper import CarrierScraper, build_failure_result, build_success_result


NO_CARRIER_DATA_ERROR = "No carrier returned tracking data for this number"


class CarrierProber:
    """
    Best-effort fan-out over every carrier.

    Most probes are expected to fail (wrong carrier, wrong URL shape), so
    a failed probe is just None. The winner is the first successful probe
    in registry order; once it is known, the remaining probes are
    cancelled.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        scraper: CarrierScraper,
        carriers: Sequence[CarrierConfig] = CARRIERS,
        timeout: float = PROBE_TIMEOUT,
    ):
        self.fetcher = fetcher
        self.scraper = scraper
        self.carriers = tuple(carriers)
        self.timeout = timeout

    async def _probe_one(self, carrier: CarrierConfig, tracking_number: str) -> Optional[ParsedPage]:
        """Lightweight fetch + parse against one carrier. No cache."""
        url = build_tracking_url(carrier, tracking_number)

        try:
            response = await self.fetcher.fetch(url, timeout=self.timeout, user_agent=PROBE_USER_AGENT)
            if not response.ok:
                return None

            if is_blocked(response.body, PROBE_BOT_PATTERNS):
                return None

            page = parse_page(response.body, carrier, html_first=True)
            if not page.events:
                return None

            return page

        except Exception as e:
            logger.debug(f"Probe {carrier.id} failed: {e}")
            return None

    async def _race(
        self,
        carriers: Sequence[CarrierConfig],
        tracking_number: str,
    ) -> Optional[tuple[CarrierConfig, ParsedPage]]:
        tasks = [
            asyncio.create_task(self._probe_one(carrier, tracking_number))
            for carrier in carriers
        ]

        try:
            pending = set(tasks)
            while pending:
                _, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)

                # Decide only once every earlier carrier has settled
                for carrier, task in zip(carriers, tasks):
                    if not task.done():
                        break
                    page = task.result()
                    if page is not None:
                        return carrier, page

            return None

        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

    async def probe(self, tracking_number: str) -> ScraperResult:
        """
        Find any carrier with tracking data for a number.

        Args:
            tracking_number: Raw tracking number

        Returns:
            ScraperResult from the first carrier with events, or a failure
        """
        normalized = normalize_tracking_number(tracking_number)

        # Detected carrier first, through the full scrape path
        detected = detect_carrier(normalized)
        if detected is not None:
            result = await self.scraper.scrape(normalized, detected.id)
            if result.success and result.events:
                return result

        others = [carrier for carrier in self.carriers if detected is None or carrier.id != detected.id]
        logger.info(f"Probing {len(others)} carriers for {normalized}")

        winner = await self._race(others, normalized)

        if winner is not None:
            carrier, page = winner
            logger.info(f"Probe found {normalized} at {carrier.name}")
            return build_success_result(carrier, normalized, page.events, page.eta)

        logger.info(f"No carrier had data for {normalized}")
        return build_failure_result(
            detected,
            normalized,
            "Could not find tracking information from any carrier",
            NO_CARRIER_DATA_ERROR,
            FailureKind.EMPTY_RESULT,
        )
