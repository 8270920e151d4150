"""
TrackingMore API integration.
Last-resort tracking source when scraping fails.
"""

import asyncio
import re
from typing import Any, Optional
import aiohttp
import orjson
from loguru import logger

from parcelai.config import PLACEHOLDER_API_KEY, TrackerConfig
from parcelai.models import FailureKind, ScraperResult, TimelineEvent, TrackingStatus
from parcelai.tracking.carriers import (
    build_tracking_url,
    get_aggregator_code,
    get_carrier_by_aggregator_code,
    normalize_tracking_number,
)
from parcelai.tracking.parser import parse_timestamp


DEFAULT_API_URL = "https://api.trackingmore.com/v4"

# TrackingMore delivery status (and substatus prefix) -> canonical status
STATUS_MAP = {
    "pending": TrackingStatus.PENDING,
    "notfound": TrackingStatus.PENDING,
    "inforeceived": TrackingStatus.INFO_RECEIVED,
    "transit": TrackingStatus.IN_TRANSIT,
    "pickup": TrackingStatus.OUT_FOR_DELIVERY,
    "delivered": TrackingStatus.DELIVERED,
    "undelivered": TrackingStatus.EXCEPTION,
    "exception": TrackingStatus.EXCEPTION,
    "expired": TrackingStatus.EXPIRED,
}

_SUBSTATUS_PREFIX = re.compile(r"^[a-z]+")


def map_status(delivery_status: Optional[str]) -> TrackingStatus:
    """Map a TrackingMore delivery status to the canonical status."""
    if not delivery_status:
        return TrackingStatus.UNKNOWN
    return STATUS_MAP.get(delivery_status.strip().lower(), TrackingStatus.UNKNOWN)


def map_substatus(substatus: Optional[str], delivery_status: Optional[str] = None) -> TrackingStatus:
    """
    Map a checkpoint substatus code such as "transit001" or "exception004".

    Falls back to the checkpoint's delivery status when the code is
    missing or unrecognized.
    """
    if substatus:
        match = _SUBSTATUS_PREFIX.match(substatus.strip().lower())
        if match and match.group(0) in STATUS_MAP:
            return STATUS_MAP[match.group(0)]
    return map_status(delivery_status)


def _join(*parts: Any) -> Optional[str]:
    joined = ", ".join(str(part).strip() for part in parts if part and str(part).strip())
    return joined or None


def _carrier_fields(courier_code: str, tracking_number: str) -> dict:
    """Carrier id/name/url, using our registry when it knows the courier."""
    carrier = get_carrier_by_aggregator_code(courier_code)
    if carrier is not None:
        return {
            "carrier": carrier.id,
            "carrier_name": carrier.name,
            "carrier_tracking_url": build_tracking_url(carrier, tracking_number),
        }
    return {
        "carrier": courier_code or "unknown",
        "carrier_name": courier_code.upper() if courier_code else "Unknown",
        "carrier_tracking_url": "",
    }


def _event_sort_key(raw: dict) -> str:
    return parse_timestamp(raw.get("checkpoint_date")) or ""


def normalize_tracking_record(record: dict) -> ScraperResult:
    """
    Normalize a TrackingMore tracking record into a ScraperResult.

    Origin and destination checkpoints are merged and sorted newest
    first by checkpoint date.
    """
    origin_info = record.get("origin_info") or {}
    destination_info = record.get("destination_info") or {}

    checkpoints = list(origin_info.get("trackinfo") or []) + list(destination_info.get("trackinfo") or [])
    checkpoints.sort(key=_event_sort_key, reverse=True)

    events = []
    for raw in checkpoints:
        description = (raw.get("tracking_detail") or "").strip()
        if not description:
            continue

        events.append(TimelineEvent(
            timestamp=parse_timestamp(raw.get("checkpoint_date")),
            location=_join(raw.get("city"), raw.get("state"), raw.get("zip")) or (raw.get("location") or None),
            description=description,
            status=map_substatus(
                raw.get("checkpoint_delivery_substatus"),
                raw.get("checkpoint_delivery_status"),
            ),
        ))

    status = map_status(record.get("delivery_status"))
    latest = events[0] if events else None

    delivered_at = None
    if status == TrackingStatus.DELIVERED:
        milestones = origin_info.get("milestone_date") or {}
        delivered_at = parse_timestamp(milestones.get("delivery_date")) or (latest.timestamp if latest else None)

    tracking_number = normalize_tracking_number(record.get("tracking_number") or "")
    carrier = _carrier_fields(record.get("courier_code") or "", tracking_number)
    if origin_info.get("weblink"):
        carrier["carrier_tracking_url"] = origin_info["weblink"]

    return ScraperResult(
        success=bool(events),
        tracking_number=tracking_number,
        status=status,
        status_message=record.get("latest_event") or (latest.description if latest else "No status available"),
        eta=parse_timestamp(record.get("scheduled_delivery_date")),
        delivered_at=delivered_at,
        origin=_join(record.get("origin_city"), record.get("origin_country")),
        destination=_join(record.get("destination_city"), record.get("destination_country")),
        current_location=latest.location if latest else None,
        events=events,
        error=None if events else "TrackingMore has no events for this shipment yet",
        failure=None if events else FailureKind.AGGREGATOR_FAILURE,
        **carrier,
    )


class TrackingMoreClient:
    """
    TrackingMore v4 API integration.

    Requires a TrackingMore API key. Protocol:
    1. Detect the courier (falls back to the caller's carrier hint)
    2. Create the tracking (4101 "already exists" counts as success)
    3. Get the tracking record and normalize it
    """

    DETECT_PATH = "/couriers/detect"
    CREATE_PATH = "/trackings/create"
    GET_PATH = "/trackings/get"

    CODE_OK = 200
    CODE_ALREADY_EXISTS = 4101

    def __init__(self, api_key: str, base_url: str = DEFAULT_API_URL, timeout: float = 20.0):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: TrackerConfig) -> "TrackingMoreClient":
        return cls(
            api_key=config.trackingmore_api_key,
            base_url=config.trackingmore_api_url,
            timeout=config.aggregator_timeout,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key != PLACEHOLDER_API_KEY)

    def _get_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Tracking-Api-Key": self.api_key,
        }

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        payload: Optional[dict] = None,
    ) -> tuple[int, Optional[dict]]:
        """Send one API request and return (HTTP status, decoded body)."""
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
            async with session.request(
                method,
                f"{self.base_url}{path}",
                headers=self._get_headers(),
                params=params,
                json=payload,
            ) as resp:
                raw = await resp.read()
                try:
                    data = orjson.loads(raw) if raw else None
                except orjson.JSONDecodeError:
                    data = None
                return resp.status, data if isinstance(data, dict) else None

    @staticmethod
    def _meta_code(data: Optional[dict]) -> Optional[int]:
        if not data:
            return None
        return (data.get("meta") or {}).get("code")

    async def detect_courier_code(self, tracking_number: str) -> Optional[str]:
        """Ask TrackingMore which courier a number belongs to."""
        try:
            status, data = await self._request("POST", self.DETECT_PATH, payload={"tracking_number": tracking_number})
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"TrackingMore detect error: {e}")
            return None

        if status != 200:
            logger.warning(f"TrackingMore detect API error: {status}")
            return None

        couriers = (data or {}).get("data") or []
        if self._meta_code(data) == self.CODE_OK and couriers:
            return couriers[0].get("courier_code")

        return None

    async def create_tracking(self, tracking_number: str, courier_code: str) -> Optional[int]:
        """Register a tracking. Returns the API meta code."""
        _, data = await self._request(
            "POST",
            self.CREATE_PATH,
            payload={"tracking_number": tracking_number, "courier_code": courier_code},
        )
        code = self._meta_code(data)

        if code not in (self.CODE_OK, self.CODE_ALREADY_EXISTS):
            logger.warning(f"TrackingMore create returned {code} for {tracking_number}")

        return code

    def _failure(
        self,
        tracking_number: str,
        courier_code: Optional[str],
        status_message: str,
        error: str,
        failure: FailureKind = FailureKind.AGGREGATOR_FAILURE,
        status: TrackingStatus = TrackingStatus.UNKNOWN,
    ) -> ScraperResult:
        carrier = _carrier_fields(courier_code or "", tracking_number)
        return ScraperResult(
            tracking_number=tracking_number,
            status=status,
            status_message=status_message,
            error=error,
            failure=failure,
            **carrier,
        )

    async def track(self, tracking_number: str, carrier_hint: Optional[str] = None) -> ScraperResult:
        """
        Get tracking information from TrackingMore.

        Args:
            tracking_number: Raw tracking number
            carrier_hint: Carrier id (ours or a TrackingMore courier code)
                used when detection fails

        Returns:
            Normalized ScraperResult
        """
        normalized = normalize_tracking_number(tracking_number)

        if not self.is_configured:
            return self._failure(
                normalized,
                None,
                "TrackingMore API not configured",
                "TrackingMore API key not configured",
                FailureKind.AGGREGATOR_UNCONFIGURED,
            )

        courier = await self.detect_courier_code(normalized)
        if not courier:
            courier = get_aggregator_code(carrier_hint)
            if not courier:
                return self._failure(
                    normalized,
                    None,
                    "Could not detect carrier",
                    "Could not detect carrier for this tracking number",
                )

        logger.info(f"TrackingMore lookup for {normalized} ({courier})")

        try:
            await self.create_tracking(normalized, courier)

            status, data = await self._request(
                "GET",
                self.GET_PATH,
                params={"tracking_numbers": normalized, "courier_code": courier},
            )

            if status != 200:
                return self._failure(
                    normalized,
                    courier,
                    f"API error: {status}",
                    f"TrackingMore API error: {status}",
                )

            records = (data or {}).get("data") or []
            if self._meta_code(data) != self.CODE_OK or not records:
                return self._failure(
                    normalized,
                    courier,
                    "Tracking created, awaiting updates",
                    "No tracking data available yet - check back later",
                    status=TrackingStatus.PENDING,
                )

            return normalize_tracking_record(records[0])

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"TrackingMore API error: {e}")
            return self._failure(
                normalized,
                courier,
                "Failed to fetch tracking",
                str(e) or e.__class__.__name__,
            )
