"""Tests for the carrier registry."""

import pytest

from parcelai.tracking.cache import cache_key
from parcelai.tracking.carriers import (
    CARRIERS,
    build_tracking_url,
    detect_carrier,
    get_aggregator_code,
    get_all_carrier_ids,
    get_carrier_by_aggregator_code,
    get_carrier_by_id,
    normalize_tracking_number,
)


# Numbers whose format is claimed first by the expected carrier
DETECTION_TABLE = [
    ("1Z999AA10123456784", "ups"),
    ("1z999aa10123456784", "ups"),
    ("123456789012", "fedex"),
    ("123456789012345", "fedex"),
    ("12345678901234567890", "fedex"),
    ("94001118992234567890123", "usps"),
    ("EE123456789US", "usps"),
    ("1234567890", "dhl"),
    ("12345678901", "dhl"),
    ("JJD0012345", "dhl"),
    ("LZ346316415CN", "anpost"),
    ("CE123456789IE", "anpost"),
    ("12345678901234", "dpd"),
]


class TestDetectCarrier:
    """Tests for detect_carrier."""

    @pytest.mark.parametrize("number,carrier_id", DETECTION_TABLE)
    def test_pattern_table(self, number, carrier_id):
        """Test each sample is detected as its carrier."""
        carrier = detect_carrier(number)

        assert carrier is not None
        assert carrier.id == carrier_id

    @pytest.mark.parametrize("number", ["ABC123", "", "   ", "12345", "hello world!"])
    def test_unmatched_returns_none(self, number):
        """Test numbers matching no pattern."""
        assert detect_carrier(number) is None

    def test_first_registered_carrier_wins(self):
        """Test shared formats resolve in registry order."""
        # 22 digits starting with 94 fits both FedEx and USPS
        assert detect_carrier("9400111899223456789012").id == "fedex"

        # Generic UPU format is claimed by An Post before Royal Mail
        assert detect_carrier("RR123456789GB").id == "anpost"

    def test_whitespace_inside_number(self):
        """Test spaced-out numbers are detected."""
        assert detect_carrier("1Z 999 AA1 0123 456 784").id == "ups"


class TestNormalization:
    """Tests for tracking number normalization."""

    def test_normalize(self):
        """Test uppercasing and whitespace removal."""
        assert normalize_tracking_number(" 1z999aa1\t0123456784\n") == "1Z999AA10123456784"

    def test_normalize_idempotent(self):
        """Test normalizing twice changes nothing."""
        once = normalize_tracking_number(" ab 12 cd ")
        assert normalize_tracking_number(once) == once

    def test_variants_share_key_and_carrier(self):
        """Test casing/whitespace variants map to one cache key and carrier."""
        variants = ["1z999aa10123456784", " 1Z999AA10123456784 ", "1Z999AA10123456784"]

        keys = {cache_key("ups", v) for v in variants}
        carriers = {detect_carrier(v).id for v in variants}

        assert keys == {"track:ups:1Z999AA10123456784"}
        assert carriers == {"ups"}


class TestLookups:
    """Tests for registry lookups and URLs."""

    def test_get_carrier_by_id(self):
        """Test id lookup is case-insensitive."""
        assert get_carrier_by_id("FedEx").name == "FedEx"
        assert get_carrier_by_id("nope") is None
        assert get_carrier_by_id(None) is None

    def test_build_tracking_url(self):
        """Test the tracking number is substituted and escaped."""
        ups = get_carrier_by_id("ups")
        assert build_tracking_url(ups, "1Z999AA10123456784") == (
            "https://www.ups.com/track?loc=en_US&tracknum=1Z999AA10123456784"
        )
        assert "A%2FB" in build_tracking_url(ups, "A/B")

    def test_aggregator_codes(self):
        """Test courier code mapping in both directions."""
        assert get_aggregator_code("anpost") == "an-post"
        assert get_aggregator_code("ups") == "ups"
        assert get_aggregator_code("some-other-courier") == "some-other-courier"
        assert get_aggregator_code(None) is None

        assert get_carrier_by_aggregator_code("royal-mail").id == "royalmail"
        assert get_carrier_by_aggregator_code("fedex").id == "fedex"
        assert get_carrier_by_aggregator_code("unknown-courier") is None

    def test_registry_ids_unique(self):
        """Test every carrier id is registered once."""
        ids = get_all_carrier_ids()

        assert len(ids) == len(set(ids)) == len(CARRIERS)
        assert ids[0] == "ups"
        assert all("{TRACKING_NUMBER}" in c.tracking_url_template for c in CARRIERS)
