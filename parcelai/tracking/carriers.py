"""
Carrier registry.
Static catalog of supported carriers and tracking-number detection.
"""

import re
from typing import Optional
from urllib.parse import quote

from parcelai.models import CarrierConfig, EventSelectors, ParseStrategy


TRACKING_NUMBER_PLACEHOLDER = "{TRACKING_NUMBER}"

_WHITESPACE = re.compile(r"\s+")


def _patterns(*expressions: str) -> tuple[re.Pattern, ...]:
    return tuple(re.compile(expr, re.IGNORECASE) for expr in expressions)


# Order matters: detection returns the first carrier whose pattern matches.
CARRIERS: tuple[CarrierConfig, ...] = (
    CarrierConfig(
        id="ups",
        name="UPS",
        tracking_url_template="https://www.ups.com/track?loc=en_US&tracknum={TRACKING_NUMBER}",
        tracking_patterns=_patterns(r"^1Z[A-Z0-9]{16}$"),
        parse_strategy=ParseStrategy.JSON_EMBEDDED,
    ),
    CarrierConfig(
        id="fedex",
        name="FedEx",
        tracking_url_template="https://www.fedex.com/fedextrack/?tracknumbers={TRACKING_NUMBER}",
        tracking_patterns=_patterns(r"^\d{12}$", r"^\d{15}$", r"^\d{20}$", r"^\d{22}$"),
        parse_strategy=ParseStrategy.JSON_EMBEDDED,
    ),
    CarrierConfig(
        id="usps",
        name="USPS",
        tracking_url_template="https://tools.usps.com/go/TrackConfirmAction?qtc_tLabels1={TRACKING_NUMBER}",
        tracking_patterns=_patterns(r"^(94|93|92|95)\d{20,22}$", r"^[A-Z]{2}\d{9}US$"),
        parse_strategy=ParseStrategy.HTML_TIMELINE,
        timeline_selector=".track-bar-container",
    ),
    CarrierConfig(
        id="dhl",
        name="DHL Express",
        tracking_url_template="https://www.dhl.com/global-en/home/tracking/tracking-express.html?AWB={TRACKING_NUMBER}",
        tracking_patterns=_patterns(r"^\d{10,11}$", r"^[A-Z]{3}\d{7}$"),
        parse_strategy=ParseStrategy.JSON_EMBEDDED,
    ),
    CarrierConfig(
        id="anpost",
        name="An Post",
        tracking_url_template="https://www.anpost.com/Post-Parcels/Track/History?item={TRACKING_NUMBER}",
        tracking_patterns=_patterns(
            r"^[A-Z]{2}\d{9}[A-Z]{2}$",  # international, e.g. LZ346316415CN
            r"^[A-Z]{2}\d{9}IE$",
        ),
        parse_strategy=ParseStrategy.HTML_TIMELINE,
        timeline_selector=".tracking-history, .track-history, table.tracking",
        event_selectors=EventSelectors(
            date=".date, td:first-child",
            location=".location, td:nth-child(2)",
            description=".status, .description, td:nth-child(3)",
        ),
        aggregator_code="an-post",
    ),
    CarrierConfig(
        id="royalmail",
        name="Royal Mail",
        tracking_url_template="https://www.royalmail.com/track-your-item?trackingNumber={TRACKING_NUMBER}",
        tracking_patterns=_patterns(r"^[A-Z]{2}\d{9}GB$", r"^[A-Z]{2}\d{9}[A-Z]{2}$"),
        parse_strategy=ParseStrategy.HTML_TIMELINE,
        aggregator_code="royal-mail",
    ),
    CarrierConfig(
        id="dpd",
        name="DPD",
        tracking_url_template="https://shipping.dpd.ie/tracking/?parcel={TRACKING_NUMBER}",
        tracking_patterns=_patterns(r"^\d{14}$", r"^[A-Z0-9]{14,27}$"),
        parse_strategy=ParseStrategy.HTML_TIMELINE,
        aggregator_code="dpd-ireland",
    ),
    CarrierConfig(
        id="postnl",
        name="PostNL",
        tracking_url_template="https://www.postnl.nl/en/receiving/parcels/track-and-trace/?tracktrace={TRACKING_NUMBER}",
        tracking_patterns=_patterns(r"^[A-Z]{2}\d{9}NL$", r"^3S[A-Z0-9]{15,18}$"),
        parse_strategy=ParseStrategy.JSON_EMBEDDED,
        aggregator_code="postnl-parcels",
    ),
    CarrierConfig(
        id="canadapost",
        name="Canada Post",
        tracking_url_template="https://www.canadapost-postescanada.ca/track-reperage/en?search={TRACKING_NUMBER}",
        tracking_patterns=_patterns(r"^\d{16}$", r"^[A-Z]{2}\d{9}CA$"),
        parse_strategy=ParseStrategy.HTML_TIMELINE,
        aggregator_code="canada-post",
    ),
    CarrierConfig(
        id="gls",
        name="GLS",
        tracking_url_template="https://gls-group.com/IE/en/parcel-tracking?match={TRACKING_NUMBER}",
        tracking_patterns=_patterns(r"^[A-Z0-9]{11,14}$"),
        parse_strategy=ParseStrategy.HTML_TIMELINE,
    ),
    CarrierConfig(
        id="auspost",
        name="Australia Post",
        tracking_url_template="https://auspost.com.au/mypost/track/#/details/{TRACKING_NUMBER}",
        tracking_patterns=_patterns(r"^[A-Z]{2}\d{9}AU$", r"^\d{13,22}$"),
        parse_strategy=ParseStrategy.JSON_EMBEDDED,
        aggregator_code="australia-post",
    ),
    CarrierConfig(
        id="amazon",
        name="Amazon Logistics",
        tracking_url_template="https://track.amazon.com/tracking/{TRACKING_NUMBER}",
        tracking_patterns=_patterns(r"^TBA\d{12,}$"),
        parse_strategy=ParseStrategy.JSON_EMBEDDED,
    ),
)


def normalize_tracking_number(tracking_number: str) -> str:
    """Uppercase and strip all whitespace."""
    return _WHITESPACE.sub("", tracking_number.strip().upper())


def detect_carrier(tracking_number: str) -> Optional[CarrierConfig]:
    """
    Detect carrier from tracking number format.

    Carriers are tested in catalog order and the first match wins, so
    formats shared by several carriers (plain digit runs) resolve to
    whichever carrier is listed first.

    Args:
        tracking_number: Raw or normalized tracking number

    Returns:
        CarrierConfig or None if no pattern matches
    """
    normalized = normalize_tracking_number(tracking_number)
    if not normalized:
        return None

    for carrier in CARRIERS:
        if carrier.matches(normalized):
            return carrier

    return None


def get_carrier_by_id(carrier_id: Optional[str]) -> Optional[CarrierConfig]:
    """Look up a carrier by id."""
    if not carrier_id:
        return None

    carrier_id = carrier_id.strip().lower()
    for carrier in CARRIERS:
        if carrier.id == carrier_id:
            return carrier
    return None


def get_carrier_by_aggregator_code(courier_code: Optional[str]) -> Optional[CarrierConfig]:
    """Look up a carrier by its TrackingMore courier code."""
    if not courier_code:
        return None

    courier_code = courier_code.strip().lower()
    for carrier in CARRIERS:
        if (carrier.aggregator_code or carrier.id) == courier_code:
            return carrier
    return None


def get_aggregator_code(carrier_id: Optional[str]) -> Optional[str]:
    """Translate a carrier id hint into a TrackingMore courier code."""
    if not carrier_id:
        return None

    carrier = get_carrier_by_id(carrier_id)
    if carrier is None:
        # Unknown to us, may still be a valid TrackingMore code
        return carrier_id.strip().lower()
    return carrier.aggregator_code or carrier.id


def build_tracking_url(carrier: CarrierConfig, tracking_number: str) -> str:
    """Build the public tracking page URL for a tracking number."""
    return carrier.tracking_url_template.replace(
        TRACKING_NUMBER_PLACEHOLDER, quote(tracking_number, safe="")
    )


def get_all_carrier_ids() -> list[str]:
    """Ids of every registered carrier, in catalog order."""
    return [carrier.id for carrier in CARRIERS]
