"""Tests for the tracking page parser."""

import pytest

from conftest import HTML_TIMELINE_PAGE, UPS_DELIVERED_PAGE
from parcelai.models import TimelineEvent, TrackingStatus
from parcelai.tracking.carriers import get_carrier_by_id
from parcelai.tracking.parser import (
    MAX_EVENT_SEARCH_DEPTH,
    NO_INFORMATION_MESSAGE,
    extract_embedded_json,
    extract_from_json,
    extract_status_from_events,
    find_eta,
    find_event_array,
    order_newest_first,
    parse_html_timeline,
    parse_page,
    parse_timestamp,
)


class TestParseTimestamp:
    """Tests for parse_timestamp."""

    @pytest.mark.parametrize("date,time,expected", [
        ("2024-01-05T10:00:00Z", None, "2024-01-05T10:00:00Z"),
        ("2024-01-05T12:00:00+02:00", None, "2024-01-05T10:00:00Z"),
        ("2024-01-03 09:15", None, "2024-01-03T09:15:00Z"),
        ("January 5, 2024 10:00", None, "2024-01-05T10:00:00Z"),
        ("January 5, 2024", "3:30 pm", "2024-01-05T15:30:00Z"),
    ])
    def test_formats(self, date, time, expected):
        """Test common carrier date shapes normalize to UTC."""
        assert parse_timestamp(date, time) == expected

    @pytest.mark.parametrize("date", [None, "", "   ", "not a date"])
    def test_unparseable_is_none(self, date):
        """Test nothing defaults to the current time."""
        assert parse_timestamp(date) is None


class TestEmbeddedJson:
    """Tests for embedded JSON extraction."""

    def test_initial_state(self):
        """Test window.__INITIAL_STATE__ payloads are found."""
        data = extract_embedded_json(UPS_DELIVERED_PAGE)

        assert data is not None
        assert "trackDetails" in data

    def test_next_data(self):
        """Test __NEXT_DATA__ script payloads are found."""
        html = '<script id="__NEXT_DATA__" type="text/plain">{"props": {"events": []}}</script>'

        assert extract_embedded_json(html) == {"props": {"events": []}}

    def test_invalid_json_skipped(self):
        """Test undecodable payloads are ignored."""
        html = "<script>window.__INITIAL_STATE__ = {not json};</script>"

        assert extract_embedded_json(html) is None

    def test_no_payload(self):
        assert extract_embedded_json("<html><body>Nothing here</body></html>") is None


class TestJsonWalk:
    """Tests for the bounded JSON tree walk."""

    def test_event_list_key(self):
        """Test named event keys are taken directly."""
        data = {"shipment": {"history": [{"foo": 1}]}}

        assert find_event_array(data) == [{"foo": 1}]

    def test_event_like_array(self):
        """Test arrays of event-like objects are found anywhere."""
        data = {"a": {"b": [{"x": 1}, {"message": "Arrived"}]}}

        assert find_event_array(data) == [{"x": 1}, {"message": "Arrived"}]

    def test_depth_bound(self):
        """Test events nested beyond the depth limit are not found."""
        shallow = {"events": [{"description": "Arrived"}]}
        deep = shallow
        for _ in range(MAX_EVENT_SEARCH_DEPTH + 2):
            deep = {"level": deep}

        assert find_event_array(deep) is None
        assert find_event_array({"level": shallow}) is not None

    def test_find_eta(self):
        """Test ETA keys are parsed to ISO."""
        data = {"shipment": {"estimatedDelivery": "2024-02-10 18:00"}}

        assert find_eta(data) == "2024-02-10T18:00:00Z"
        assert find_eta({"eta": "soon"}) is None

    def test_extract_from_json(self):
        """Test event fields are mapped and classified."""
        data = {
            "trackEvents": [
                {
                    "eventDescription": "Out for delivery",
                    "eventTime": 1704448800000,
                    "location": {"address": {"city": "Memphis", "stateProvince": "TN", "countryCode": "US"}},
                },
                {"status": {"description": "Picked up"}, "date": "2024-01-03T08:00:00Z"},
                {"location": "No description here"},
            ],
            "eta": "2024-01-06T17:00:00Z",
        }

        parsed = extract_from_json(data)

        assert len(parsed.events) == 2
        first, second = parsed.events
        assert first.description == "Out for delivery"
        assert first.timestamp == "2024-01-05T10:00:00Z"
        assert first.location == "Memphis, TN, US"
        assert first.status == "out_for_delivery"
        assert second.description == "Picked up"
        assert second.status == "info_received"
        assert parsed.eta == "2024-01-06T17:00:00Z"


class TestHtmlTimeline:
    """Tests for HTML timeline scraping."""

    def test_generic_table(self):
        """Test generic table rows are read cell by cell."""
        carrier = get_carrier_by_id("canadapost")

        events = parse_html_timeline(HTML_TIMELINE_PAGE, carrier)

        assert [e.description for e in events] == ["Arrived at facility", "Accepted at depot"]
        assert events[0].location == "Dublin"
        assert events[0].timestamp == "2024-01-03T09:15:00Z"
        assert events[0].status == "in_transit"

    def test_carrier_selectors_first(self):
        """Test the carrier's own timeline selector and field selectors."""
        html = """
        <div class="tracking-history">
          <div class="row">
            <span class="date">05/01/2024 10:00</span>
            <span class="location">Athlone</span>
            <span class="status">Delivered</span>
          </div>
        </div>
        """
        carrier = get_carrier_by_id("anpost")

        events = parse_html_timeline(html, carrier)

        assert len(events) == 1
        assert events[0].description == "Delivered"
        assert events[0].location == "Athlone"
        assert events[0].status == "delivered"

    def test_no_rows(self):
        carrier = get_carrier_by_id("gls")

        assert parse_html_timeline("<html><p>No results</p></html>", carrier) == []


class TestParsePage:
    """Tests for parse_page dispatch and ordering."""

    def test_json_embedded(self):
        """Test the UPS page parses through embedded JSON."""
        page = parse_page(UPS_DELIVERED_PAGE, get_carrier_by_id("ups"))

        assert len(page.events) == 1
        assert page.events[0].status == "delivered"

    def test_json_carrier_falls_back_to_html(self):
        """Test JSON carriers still read HTML timelines."""
        page = parse_page(HTML_TIMELINE_PAGE, get_carrier_by_id("fedex"))

        assert len(page.events) == 2

    def test_html_carrier_skips_embedded_json(self):
        """Test HTML-only carriers ignore embedded JSON."""
        page = parse_page(UPS_DELIVERED_PAGE, get_carrier_by_id("gls"))

        assert page.events == []

    def test_newest_first(self):
        """Test events are sorted by timestamp, newest first."""
        html = """
        <table class="tracking"><tbody>
        <tr><td>2024-01-01 08:00</td><td>Cork</td><td>Accepted</td></tr>
        <tr><td>2024-01-03 09:15</td><td>Dublin</td><td>Delivered</td></tr>
        </tbody></table>
        """
        page = parse_page(html, get_carrier_by_id("canadapost"))

        assert [e.description for e in page.events] == ["Delivered", "Accepted"]


class TestOrdering:
    """Tests for order_newest_first."""

    def test_undated_last_and_stable(self):
        """Test undated events go last in source order."""
        events = [
            TimelineEvent(description="a"),
            TimelineEvent(description="b", timestamp="2024-01-01T00:00:00Z"),
            TimelineEvent(description="c"),
            TimelineEvent(description="d", timestamp="2024-01-02T00:00:00Z"),
        ]

        ordered = order_newest_first(events)

        assert [e.description for e in ordered] == ["d", "b", "a", "c"]


class TestStatusSummary:
    """Tests for extract_status_from_events."""

    def test_delivered(self):
        """Test delivered_at comes from the newest event."""
        events = [
            TimelineEvent(description="Delivered", timestamp="2024-01-05T10:00:00Z", status=TrackingStatus.DELIVERED),
            TimelineEvent(description="Out for delivery", status=TrackingStatus.OUT_FOR_DELIVERY),
        ]

        summary = extract_status_from_events(events)

        assert summary.status == TrackingStatus.DELIVERED
        assert summary.status_message == "Delivered"
        assert summary.delivered_at == "2024-01-05T10:00:00Z"

    def test_not_delivered(self):
        events = [TimelineEvent(description="In transit", status=TrackingStatus.IN_TRANSIT)]

        assert extract_status_from_events(events).delivered_at is None

    def test_empty(self):
        summary = extract_status_from_events([])

        assert summary.status == TrackingStatus.UNKNOWN
        assert summary.status_message == NO_INFORMATION_MESSAGE
