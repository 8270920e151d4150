"""Tests for the status classifier."""

import pytest

from parcelai.models import TrackingStatus
from parcelai.tracking.status import infer_status_from_text


class TestInferStatus:
    """Tests for infer_status_from_text."""

    @pytest.mark.parametrize("text,expected", [
        ("Delivered to front door", TrackingStatus.DELIVERED),
        ("Shipment held by customs", TrackingStatus.EXCEPTION),
        ("Out for delivery", TrackingStatus.OUT_FOR_DELIVERY),
        ("On vehicle for delivery", TrackingStatus.OUT_FOR_DELIVERY),
        ("Customs clearance completed", TrackingStatus.IN_TRANSIT),
        ("Departed from facility", TrackingStatus.IN_TRANSIT),
        ("Shipping label created, USPS awaiting item", TrackingStatus.INFO_RECEIVED),
        ("Delivery attempted - no one home", TrackingStatus.EXCEPTION),
        ("Shipment cancelled by sender", TrackingStatus.FAILED),
        ("Zugestellt", TrackingStatus.DELIVERED),
        ("Onderweg naar sorteercentrum", TrackingStatus.IN_TRANSIT),
    ])
    def test_examples(self, text, expected):
        """Test representative carrier phrases."""
        assert infer_status_from_text(text) == expected

    def test_case_insensitive(self):
        """Test matching ignores case."""
        assert infer_status_from_text("DELIVERED") == TrackingStatus.DELIVERED

    def test_first_match_wins(self):
        """Test earlier keywords take priority over later ones."""
        # "delivered" is listed ahead of "exception"
        assert infer_status_from_text("Exception resolved, delivered") == TrackingStatus.DELIVERED

    @pytest.mark.parametrize("text", ["", "Thank you for your patience"])
    def test_unknown(self, text):
        """Test text without any keyword."""
        assert infer_status_from_text(text) == TrackingStatus.UNKNOWN
