"""
Data models for the ParcelAI tracker.
Defines carrier catalog entries, scraped events, and normalized tracking results.

Tracking flow:
1. Detect carrier from tracking number shape
2. Scrape the carrier's public tracking page
3. Probe every other carrier if that yields nothing
4. Fall back to the TrackingMore aggregator API
5. Normalize whatever worked into a TrackingResponse
"""

import re
import uuid
from enum import Enum
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Optional
from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel


class TrackingStatus(str, Enum):
    """Canonical shipment status."""
    PENDING = "pending"
    INFO_RECEIVED = "info_received"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    EXCEPTION = "exception"
    FAILED = "failed"
    EXPIRED = "expired"
    UNKNOWN = "unknown"


class ParseStrategy(str, Enum):
    """How a carrier's tracking page is parsed."""
    JSON_EMBEDDED = "json_embedded"
    HTML_TIMELINE = "html_timeline"
    API_JSON = "api_json"


class FailureKind(str, Enum):
    """Why a retrieval attempt produced no events."""
    UNKNOWN_CARRIER = "unknown_carrier"
    FETCH_FAILURE = "fetch_failure"
    BOT_DETECTED = "bot_detected"
    EMPTY_RESULT = "empty_result"
    AGGREGATOR_UNCONFIGURED = "aggregator_unconfigured"
    AGGREGATOR_FAILURE = "aggregator_failure"


class TrackingSource(str, Enum):
    """Which tier produced a response."""
    SCRAPER = "scraper"
    SCRAPER_PROBE = "scraper-probe"
    TRACKINGMORE = "trackingmore"


# ===== Carrier catalog =====

@dataclass(frozen=True)
class EventSelectors:
    """CSS selectors for fields inside one HTML timeline row."""

    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class CarrierConfig:
    """Immutable carrier catalog entry."""

    id: str
    name: str
    tracking_url_template: str  # contains {TRACKING_NUMBER}
    tracking_patterns: tuple[re.Pattern, ...]
    parse_strategy: ParseStrategy

    # HTML timeline strategy only
    timeline_selector: Optional[str] = None
    event_selectors: Optional[EventSelectors] = None

    # TrackingMore courier code, when it differs from our id
    aggregator_code: Optional[str] = None

    def matches(self, normalized: str) -> bool:
        """Whether any tracking pattern matches a normalized number."""
        return any(pattern.match(normalized) for pattern in self.tracking_patterns)


# ===== Fetching =====

@dataclass
class FetchResult:
    """Outcome of a single page fetch. Failures are data, not exceptions."""

    ok: bool
    status_code: Optional[int] = None
    body: str = ""
    error: Optional[str] = None


# ===== Tracking results =====

class TimelineEvent(BaseModel):
    """A single scraped or aggregated tracking event."""

    timestamp: Optional[str] = None  # ISO-8601 UTC, None if unparseable
    location: Optional[str] = None
    description: str
    status: TrackingStatus = TrackingStatus.UNKNOWN

    class Config:
        use_enum_values = True


class ScraperResult(BaseModel):
    """
    Canonical output of a retrieval attempt.

    Both the scraper path and the aggregator path produce this shape.
    Every field is always present; unknown values are explicit None.
    """

    success: bool = False
    blocked: bool = False

    # Carrier
    carrier: str = "unknown"
    carrier_name: str = "Unknown Carrier"
    carrier_tracking_url: str = ""
    tracking_number: str

    # Status
    status: TrackingStatus = TrackingStatus.UNKNOWN
    status_message: str = ""

    # Dates
    eta: Optional[str] = None
    delivered_at: Optional[str] = None

    # Locations (best-effort, usually None when scraped)
    origin: Optional[str] = None
    destination: Optional[str] = None
    current_location: Optional[str] = None

    # Events, newest first
    events: list[TimelineEvent] = Field(default_factory=list)

    # Failure info
    error: Optional[str] = None
    failure: Optional[FailureKind] = None
    cached: bool = False

    class Config:
        use_enum_values = True
        alias_generator = to_camel
        populate_by_name = True

    @model_validator(mode="after")
    def _success_requires_events(self) -> "ScraperResult":
        if self.success and not self.events:
            raise ValueError("a successful result must carry at least one event")
        return self


class TimelineEntry(BaseModel):
    """Timeline event as exposed to clients."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str
    status: TrackingStatus
    message: str
    location: Optional[str] = None

    class Config:
        use_enum_values = True


class TrackingResponse(BaseModel):
    """Final response of the tracking retrieval service."""

    success: bool
    source: TrackingSource

    tracking_number: str
    carrier: str
    carrier_name: str
    carrier_tracking_url: Optional[str] = None

    status: TrackingStatus
    status_message: str
    eta: Optional[str] = None
    delivered_at: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    current_location: Optional[str] = None

    cached: bool = False
    blocked: bool = False
    timeline: list[TimelineEntry] = Field(default_factory=list)

    # Failure reporting
    error: Optional[str] = None
    failure: Optional[FailureKind] = None
    message: Optional[str] = None
    fallback_attempted: bool = False
    fallback_available: bool = False
    fallback_error: Optional[str] = None

    class Config:
        use_enum_values = True
        alias_generator = to_camel
        populate_by_name = True

    @classmethod
    def from_result(cls, result: ScraperResult, source: TrackingSource, **extra) -> "TrackingResponse":
        """
        Shape a ScraperResult for clients.

        Null event timestamps are shown as the current time; this only
        affects display, never ordering.
        """
        now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

        timeline = [
            TimelineEntry(
                timestamp=event.timestamp or now,
                status=event.status,
                message=event.description,
                location=event.location,
            )
            for event in result.events
        ]

        fields = dict(
            success=result.success,
            source=source,
            tracking_number=result.tracking_number,
            carrier=result.carrier,
            carrier_name=result.carrier_name,
            carrier_tracking_url=result.carrier_tracking_url or None,
            status=result.status,
            status_message=result.status_message,
            eta=result.eta,
            delivered_at=result.delivered_at,
            origin=result.origin,
            destination=result.destination,
            current_location=result.current_location,
            cached=result.cached,
            blocked=result.blocked,
            timeline=timeline,
            error=result.error,
            failure=result.failure,
        )
        fields.update(extra)
        return cls(**fields)


# ===== Text parsing =====

class TrackingCandidate(BaseModel):
    """A tracking number found in free text."""

    number: str
    carrier: str


class ParsedShipmentText(BaseModel):
    """Shipment details pulled out of an email or pasted text."""

    tracking_numbers: list[TrackingCandidate] = Field(default_factory=list)
    merchant_name: Optional[str] = None
    order_number: Optional[str] = None
    item_description: Optional[str] = None
    raw_content: str = ""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
