"""
Status classifier.
Maps free-text carrier status phrases to the canonical TrackingStatus.
"""

from parcelai.models import TrackingStatus


# Ordered: the first keyword contained in the text wins. Specific
# exception phrases must stay ahead of generic transit words such as
# "customs" or "facility".
STATUS_KEYWORDS: tuple[tuple[str, TrackingStatus], ...] = (
    # Delivered
    ("delivered", TrackingStatus.DELIVERED),
    ("zugestellt", TrackingStatus.DELIVERED),
    ("livré", TrackingStatus.DELIVERED),
    ("entregado", TrackingStatus.DELIVERED),
    ("consegnato", TrackingStatus.DELIVERED),
    ("bezorgd", TrackingStatus.DELIVERED),
    ("доставлено", TrackingStatus.DELIVERED),
    ("signed", TrackingStatus.DELIVERED),
    ("collected", TrackingStatus.DELIVERED),

    # Out for delivery
    ("out for delivery", TrackingStatus.OUT_FOR_DELIVERY),
    ("on vehicle", TrackingStatus.OUT_FOR_DELIVERY),
    ("with driver", TrackingStatus.OUT_FOR_DELIVERY),
    ("in zustellung", TrackingStatus.OUT_FOR_DELIVERY),
    ("en cours de livraison", TrackingStatus.OUT_FOR_DELIVERY),
    ("en reparto", TrackingStatus.OUT_FOR_DELIVERY),
    ("in consegna", TrackingStatus.OUT_FOR_DELIVERY),
    ("wordt bezorgd", TrackingStatus.OUT_FOR_DELIVERY),

    # Exception
    ("customs hold", TrackingStatus.EXCEPTION),
    ("exception", TrackingStatus.EXCEPTION),
    ("held", TrackingStatus.EXCEPTION),
    ("delayed", TrackingStatus.EXCEPTION),
    ("delivery attempted", TrackingStatus.EXCEPTION),
    ("attempted", TrackingStatus.EXCEPTION),
    ("returned", TrackingStatus.EXCEPTION),
    ("undeliverable", TrackingStatus.EXCEPTION),
    ("addressee unknown", TrackingStatus.EXCEPTION),
    ("refused", TrackingStatus.EXCEPTION),
    ("incorrect address", TrackingStatus.EXCEPTION),
    ("not home", TrackingStatus.EXCEPTION),
    ("verzögert", TrackingStatus.EXCEPTION),
    ("retardé", TrackingStatus.EXCEPTION),

    # Failed
    ("failed", TrackingStatus.FAILED),
    ("cancelled", TrackingStatus.FAILED),
    ("lost", TrackingStatus.FAILED),

    # Info received
    ("label created", TrackingStatus.INFO_RECEIVED),
    ("shipment information", TrackingStatus.INFO_RECEIVED),
    ("electronic notification", TrackingStatus.INFO_RECEIVED),
    ("pre-shipment", TrackingStatus.INFO_RECEIVED),
    ("order received", TrackingStatus.INFO_RECEIVED),
    ("picked up", TrackingStatus.INFO_RECEIVED),

    # In transit
    ("in transit", TrackingStatus.IN_TRANSIT),
    ("departed", TrackingStatus.IN_TRANSIT),
    ("arrived", TrackingStatus.IN_TRANSIT),
    ("processed", TrackingStatus.IN_TRANSIT),
    ("in bewegung", TrackingStatus.IN_TRANSIT),
    ("en route", TrackingStatus.IN_TRANSIT),
    ("en tránsito", TrackingStatus.IN_TRANSIT),
    ("in transito", TrackingStatus.IN_TRANSIT),
    ("onderweg", TrackingStatus.IN_TRANSIT),
    ("в пути", TrackingStatus.IN_TRANSIT),
    ("shipping", TrackingStatus.IN_TRANSIT),
    ("left", TrackingStatus.IN_TRANSIT),
    ("received at", TrackingStatus.IN_TRANSIT),
    ("accepted", TrackingStatus.IN_TRANSIT),
    ("dispatched", TrackingStatus.IN_TRANSIT),
    ("forwarded", TrackingStatus.IN_TRANSIT),
    ("sorted", TrackingStatus.IN_TRANSIT),
    ("hub", TrackingStatus.IN_TRANSIT),
    ("facility", TrackingStatus.IN_TRANSIT),
    ("customs", TrackingStatus.IN_TRANSIT),
    ("export", TrackingStatus.IN_TRANSIT),
    ("import", TrackingStatus.IN_TRANSIT),
)


def infer_status_from_text(text: str) -> TrackingStatus:
    """
    Classify a carrier status phrase.

    Plain substring matching, so "not delivered" classifies as
    delivered. Returns UNKNOWN when no keyword is found.
    """
    if not text:
        return TrackingStatus.UNKNOWN

    lower = text.lower()
    for keyword, status in STATUS_KEYWORDS:
        if keyword in lower:
            return status

    return TrackingStatus.UNKNOWN
