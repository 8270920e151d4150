"""
Tracking number extraction.
Finds tracking numbers and order details in pasted emails or free text.
"""

import re
from typing import Optional

from parcelai.models import ParsedShipmentText, TrackingCandidate
from parcelai.tracking.carriers import detect_carrier, normalize_tracking_number


# (carrier id, pattern) in priority order
TRACKING_PATTERNS = (
    ("ups", re.compile(r"1Z[A-Z0-9]{16}", re.IGNORECASE)),
    ("fedex", re.compile(r"\b(?:\d{12}|\d{15}|\d{20}|\d{22})\b")),
    ("usps", re.compile(r"\b(?:94|93|92|95)\d{20,22}\b")),
    ("usps", re.compile(r"\b[A-Z]{2}\d{9}US\b", re.IGNORECASE)),
    ("amazon", re.compile(r"TBA\d{12,}", re.IGNORECASE)),
    ("dhl", re.compile(r"\b\d{10,11}\b")),
    ("anpost", re.compile(r"\b[A-Z]{2}\d{9}(?:IE|CN|GB|DE|FR|NL)\b", re.IGNORECASE)),
    ("royalmail", re.compile(r"\b[A-Z]{2}\d{9}GB\b", re.IGNORECASE)),
    ("postnl", re.compile(r"\b(?:3S[A-Z0-9]{15,18}|[A-Z]{2}\d{9}NL)\b", re.IGNORECASE)),
    ("canadapost", re.compile(r"\b(?:\d{16}|[A-Z]{2}\d{9}CA)\b", re.IGNORECASE)),
    ("auspost", re.compile(r"\b[A-Z]{2}\d{9}AU\b", re.IGNORECASE)),
    ("dpd", re.compile(r"\b\d{14}\b")),
)

MERCHANT_PATTERNS = (
    re.compile(r"(?:from|by|order from)\s+([A-Za-z0-9 \t]+?)(?:\.|,|!|\n)", re.IGNORECASE),
    re.compile(r"([A-Za-z]+)\s+(?:order|shipment|delivery)", re.IGNORECASE),
    re.compile(r"shipped\s+(?:by|from|via)\s+([A-Za-z0-9 \t]+)", re.IGNORECASE),
)

# Order references contain at least one digit ("order from Acme" is not one)
ORDER_NUMBER_PATTERN = re.compile(
    r"(?:order|confirmation|reference)\s*(?:#|number|:)?\s*([A-Z0-9-]*\d[A-Z0-9-]*)",
    re.IGNORECASE,
)

ITEM_PATTERNS = (
    re.compile(r"(?:item|product|ordered):\s*(.+?)(?:\n|$)", re.IGNORECASE),
    re.compile(r"shipping\s+(.+?)(?:\n|$)", re.IGNORECASE),
)

RAW_CONTENT_LIMIT = 500
ITEM_DESCRIPTION_LIMIT = 100


def extract_tracking_numbers(text: str) -> list[TrackingCandidate]:
    """
    Find tracking numbers in free text.

    Numbers are uppercased and de-duplicated; the first pattern to find a
    number decides its carrier.
    """
    found: list[TrackingCandidate] = []
    seen = set()

    for carrier_id, pattern in TRACKING_PATTERNS:
        for match in pattern.finditer(text):
            number = match.group(0).upper()
            if number in seen:
                continue
            seen.add(number)
            found.append(TrackingCandidate(number=number, carrier=carrier_id))

    return found


def resolve_tracking_input(raw: str) -> str:
    """
    Turn user input into a single normalized tracking number.

    Whitespace is removed first, so a spaced-out number that matches a
    carrier format is used whole. Otherwise multi-word input is searched
    for the first recognizable tracking number, falling back to the
    normalized input.
    """
    stripped = raw.strip()
    normalized = normalize_tracking_number(stripped)
    if not re.search(r"\s", stripped) or detect_carrier(normalized):
        return normalized

    candidates = extract_tracking_numbers(stripped)
    if candidates:
        return candidates[0].number

    return normalized


def _first_group(patterns, content: str) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(content)
        if match and match.group(1).strip():
            return match.group(1).strip()
    return None


def parse_shipment_text(content: str) -> ParsedShipmentText:
    """Extract tracking numbers, merchant, order number and item from text."""
    order_match = ORDER_NUMBER_PATTERN.search(content)
    item = _first_group(ITEM_PATTERNS, content)

    return ParsedShipmentText(
        tracking_numbers=extract_tracking_numbers(content),
        merchant_name=_first_group(MERCHANT_PATTERNS, content),
        order_number=order_match.group(1) if order_match else None,
        item_description=item[:ITEM_DESCRIPTION_LIMIT] if item else None,
        raw_content=content[:RAW_CONTENT_LIMIT],
    )
