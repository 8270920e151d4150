"""
Tracking page parser.

Extracts timeline events from fetched carrier pages using one of:
- embedded JSON (client-side hydration state inside a script tag)
- HTML timeline rows (CSS selectors, carrier-specific first)
- plain JSON bodies (API-style endpoints)
"""

import re
from datetime import datetime, timezone
from typing import Any, NamedTuple, Optional, Union
import orjson
from bs4 import BeautifulSoup, Tag
from dateutil import parser as date_parser
from loguru import logger

from parcelai.models import CarrierConfig, ParseStrategy, TimelineEvent, TrackingStatus
from parcelai.tracking.status import infer_status_from_text


JSONValue = Union[dict, list, str, int, float, bool, None]

MAX_EVENT_SEARCH_DEPTH = 10
MAX_ETA_SEARCH_DEPTH = 5

NO_INFORMATION_MESSAGE = "No tracking information available"


# ===== Embedded JSON =====

# Tried in order; the first match that decodes wins.
EMBEDDED_STATE_PATTERNS = tuple(
    re.compile(expr, re.IGNORECASE | re.DOTALL)
    for expr in (
        r"<script[^>]*>.*?window\.__INITIAL_STATE__\s*=\s*({.*?});?\s*</script>",
        r"<script[^>]*>.*?window\.__STATE__\s*=\s*({.*?});?\s*</script>",
        r"<script[^>]*>.*?window\.__PRELOADED_STATE__\s*=\s*({.*?});?\s*</script>",
        r"<script[^>]*>.*?window\.trackingData\s*=\s*({.*?});?\s*</script>",
        r"<script[^>]*>.*?var\s+trackDetails\s*=\s*({.*?});?\s*</script>",
        r"<script[^>]*type=\"application/json\"[^>]*>({.*?})</script>",
        r"<script[^>]*id=\"__NEXT_DATA__\"[^>]*>({.*?})</script>",
    )
)

# Keys whose array value is taken as the event list
EVENT_LIST_KEYS = ("events", "trackEvents", "shipmentEvents", "history", "timeline", "activities", "scans")

# An array is event-like if any element carries one of these
EVENT_MARKER_KEYS = ("description", "status", "message", "event")

DESCRIPTION_KEYS = ("description", "status", "message", "event", "eventDescription")
TIMESTAMP_KEYS = ("timestamp", "date", "dateTime", "time", "eventTime")
LOCATION_KEYS = ("location", "city", "address")
ADDRESS_PART_KEYS = ("city", "stateProvince", "state", "postalCode", "countryCode", "country")

ETA_KEYS = ("estimatedDelivery", "eta", "expectedDelivery", "deliveryDate", "scheduledDelivery")


# ===== HTML timeline =====

GENERIC_TIMELINE_SELECTORS = (
    ".tracking-history tr",
    ".tracking-events .event",
    ".timeline-event",
    ".track-history-row",
    ".shipment-progress-step",
    "table.tracking tbody tr",
    ".tracking-result .event",
    "[data-tracking-event]",
    ".parcel-tracking-event",
)

DESCRIPTION_SELECTORS = (".description", ".status", ".event-description", ".message", "td:last-child", ".details")
LOCATION_SELECTORS = (".location", "td:nth-child(2)", ".place")
DATE_SELECTORS = (".date", "td:first-child", ".time", ".timestamp")


# ===== Timestamps =====

# Shapes we expect from carrier pages; a match allows fuzzy parsing
DATE_FORMATS = (
    re.compile(r"(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})\s*(\d{1,2}):(\d{2})(?::(\d{2}))?"),
    re.compile(r"(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})\s*(\d{1,2}):(\d{2})(?::(\d{2}))?"),
    re.compile(r"(\w+)\s+(\d{1,2}),?\s+(\d{4})\s*(\d{1,2}):(\d{2})", re.IGNORECASE),
    re.compile(r"(\d{1,2})\s+(\w+)\s+(\d{4})\s*(\d{1,2}):(\d{2})", re.IGNORECASE),
)


class ParsedPage(NamedTuple):
    """Events (newest first) and ETA extracted from one page."""
    events: list[TimelineEvent]
    eta: Optional[str]


class StatusSummary(NamedTuple):
    """Status fields derived from the newest event."""
    status: TrackingStatus
    status_message: str
    delivered_at: Optional[str]


def _to_iso(value: datetime) -> str:
    # Naive datetimes are taken as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def _epoch_to_iso(value: float) -> Optional[str]:
    if value > 1e11:  # milliseconds
        value = value / 1000
    try:
        return _to_iso(datetime.fromtimestamp(value, tz=timezone.utc))
    except (OverflowError, OSError, ValueError):
        return None


def parse_timestamp(date: Optional[str], time: Optional[str] = None) -> Optional[str]:
    """
    Parse a carrier date (and optional separate time) to ISO-8601 UTC.

    Args:
        date: Date text, e.g. "01/05/2024", "January 5, 2024 10:00"
        time: Optional time text to append to the date

    Returns:
        "YYYY-MM-DDTHH:MM:SSZ", or None if nothing parses. Never defaults
        to the current time.
    """
    if not date or not date.strip():
        return None

    combined = f"{date.strip()} {time.strip()}" if time and time.strip() else date.strip()

    for date_format in DATE_FORMATS:
        if date_format.search(combined):
            try:
                return _to_iso(date_parser.parse(combined, fuzzy=True))
            except (ValueError, OverflowError):
                continue

    try:
        return _to_iso(date_parser.parse(combined))
    except (ValueError, OverflowError):
        return None


def _coerce_timestamp(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return _epoch_to_iso(float(value))
    if isinstance(value, str):
        return parse_timestamp(value)
    return None


# ===== JSON extraction =====

def _loads(text: str) -> Optional[JSONValue]:
    try:
        return orjson.loads(text)
    except orjson.JSONDecodeError:
        return None


def extract_embedded_json(html: str) -> Optional[dict]:
    """Find and decode the first embedded state payload in a page."""
    for pattern in EMBEDDED_STATE_PATTERNS:
        match = pattern.search(html)
        if not match:
            continue

        data = _loads(match.group(1))
        if isinstance(data, dict):
            return data

    return None


def _is_event_like(item: JSONValue) -> bool:
    return isinstance(item, dict) and any(key in item for key in EVENT_MARKER_KEYS)


def find_event_array(node: JSONValue, depth: int = 0) -> Optional[list]:
    """
    Depth-first search for the event list inside a JSON document.

    An array qualifies if any element looks like an event; an object
    qualifies through one of EVENT_LIST_KEYS holding a non-empty array.
    """
    if depth > MAX_EVENT_SEARCH_DEPTH:
        return None

    if isinstance(node, list):
        if any(_is_event_like(item) for item in node):
            return node
        for item in node:
            found = find_event_array(item, depth + 1)
            if found:
                return found
        return None

    if isinstance(node, dict):
        for key in EVENT_LIST_KEYS:
            value = node.get(key)
            if isinstance(value, list) and value:
                return value
        for value in node.values():
            found = find_event_array(value, depth + 1)
            if found:
                return found

    return None


def find_eta(node: JSONValue, depth: int = 0) -> Optional[str]:
    """Depth-first search for an estimated delivery date."""
    if depth > MAX_ETA_SEARCH_DEPTH:
        return None

    if isinstance(node, dict):
        for key in ETA_KEYS:
            value = node.get(key)
            if isinstance(value, str) and value:
                parsed = parse_timestamp(value)
                if parsed:
                    return parsed
        children = node.values()
    elif isinstance(node, list):
        children = node
    else:
        return None

    for child in children:
        found = find_eta(child, depth + 1)
        if found:
            return found

    return None


def _text_value(value: Any) -> Optional[str]:
    """A usable string out of a scalar or a {description: ...} object."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, dict):
        for key in ("description", "message", "text", "name"):
            nested = value.get(key)
            if isinstance(nested, str) and nested.strip():
                return nested.strip()
    return None


def _location_value(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        if "address" in value:
            return _location_value(value["address"])
        parts = [
            str(value[key]).strip()
            for key in ADDRESS_PART_KEYS
            if isinstance(value.get(key), str) and value[key].strip()
        ]
        return ", ".join(parts) or None
    return _text_value(value)


def _first(raw: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, "", [], {}):
            return value
    return None


def _event_from_json(raw: JSONValue) -> Optional[TimelineEvent]:
    if not isinstance(raw, dict):
        return None

    description = None
    for key in DESCRIPTION_KEYS:
        description = _text_value(raw.get(key))
        if description:
            break

    if not description:
        return None

    return TimelineEvent(
        timestamp=_coerce_timestamp(_first(raw, TIMESTAMP_KEYS)),
        location=_location_value(_first(raw, LOCATION_KEYS)),
        description=description,
        status=infer_status_from_text(description),
    )


def extract_from_json(data: JSONValue) -> ParsedPage:
    """
    Extract events and ETA from a decoded JSON document.

    Events are returned in source order; callers sort them.
    """
    events = []
    for raw in find_event_array(data) or []:
        event = _event_from_json(raw)
        if event is not None:
            events.append(event)

    return ParsedPage(events=events, eta=find_eta(data))


# ===== HTML extraction =====

def _select_text(element: Tag, selector: str) -> str:
    texts = [match.get_text(" ", strip=True) for match in element.select(selector)]
    return " ".join(text for text in texts if text).strip()


def _first_selected_text(element: Tag, selectors: tuple[str, ...], exclude: str = "") -> str:
    for selector in selectors:
        text = _select_text(element, selector)
        if text and text != exclude:
            return text
    return ""


def _event_from_row(element: Tag, carrier: CarrierConfig) -> Optional[TimelineEvent]:
    date = time = location = description = ""

    fields = carrier.event_selectors
    if fields is not None:
        if fields.date:
            date = _select_text(element, fields.date)
        if fields.time:
            time = _select_text(element, fields.time)
        if fields.location:
            location = _select_text(element, fields.location)
        if fields.description:
            description = _select_text(element, fields.description)

    if not description:
        description = _first_selected_text(element, DESCRIPTION_SELECTORS)

    if not description:
        description = " ".join(element.get_text(" ").split())

    if not location:
        location = _first_selected_text(element, LOCATION_SELECTORS, exclude=description)

    if not date:
        date = _first_selected_text(element, DATE_SELECTORS)

    if not description:
        return None

    return TimelineEvent(
        timestamp=parse_timestamp(date, time),
        location=location or None,
        description=description,
        status=infer_status_from_text(description),
    )


def parse_html_timeline(html: Union[str, BeautifulSoup], carrier: CarrierConfig) -> list[TimelineEvent]:
    """
    Scrape timeline rows from an HTML page.

    Selector candidates are tried in order (carrier-specific first); the
    first candidate that yields any event ends the search.
    """
    soup = html if isinstance(html, BeautifulSoup) else BeautifulSoup(html, "html.parser")

    candidates = [carrier.timeline_selector] if carrier.timeline_selector else []
    candidates.extend(GENERIC_TIMELINE_SELECTORS)

    for selector in candidates:
        elements = soup.select(selector)
        if not elements:
            continue

        events = []
        for element in elements:
            event = _event_from_row(element, carrier)
            if event is not None:
                events.append(event)

        if events:
            logger.debug(f"{carrier.id}: {len(events)} events via '{selector}'")
            return events

    return []


# ===== Page dispatch =====

def order_newest_first(events: list[TimelineEvent]) -> list[TimelineEvent]:
    """
    Sort events newest first.

    Stable: undated events go last and keep their relative order, so a
    page with no dates at all keeps its source order.
    """
    return sorted(events, key=lambda event: event.timestamp or "", reverse=True)


def parse_page(body: str, carrier: CarrierConfig, html_first: bool = False) -> ParsedPage:
    """
    Parse a fetched page with the carrier's strategy.

    Args:
        body: Page HTML, or JSON for API_JSON carriers
        carrier: Carrier whose strategy and selectors apply
        html_first: Try the HTML timeline before embedded JSON (probing)

    Returns:
        ParsedPage with events newest first
    """
    if carrier.parse_strategy == ParseStrategy.API_JSON:
        data = _loads(body)
        if data is None:
            return ParsedPage(events=[], eta=None)
        parsed = extract_from_json(data)
        return ParsedPage(events=order_newest_first(parsed.events), eta=parsed.eta)

    events: list[TimelineEvent] = []
    eta = None

    if html_first:
        events = parse_html_timeline(body, carrier)

    if not events and (html_first or carrier.parse_strategy == ParseStrategy.JSON_EMBEDDED):
        data = extract_embedded_json(body)
        if data is not None:
            events, eta = extract_from_json(data)

    if not events and not html_first:
        events = parse_html_timeline(body, carrier)

    return ParsedPage(events=order_newest_first(events), eta=eta)


def extract_status_from_events(events: list[TimelineEvent]) -> StatusSummary:
    """Derive status, message and delivery time from newest-first events."""
    if not events:
        return StatusSummary(
            status=TrackingStatus.UNKNOWN,
            status_message=NO_INFORMATION_MESSAGE,
            delivered_at=None,
        )

    latest = events[0]
    status = TrackingStatus(latest.status)

    return StatusSummary(
        status=status,
        status_message=latest.description,
        delivered_at=latest.timestamp if status == TrackingStatus.DELIVERED else None,
    )
