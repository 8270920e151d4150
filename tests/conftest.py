"""Shared fixtures: configs, a fake clock and a scripted page fetcher."""

import pytest

from parcelai.config import TrackerConfig
from parcelai.models import FetchResult
from parcelai.tracking.cache import ResponseCache


UPS_NUMBER = "1Z999AA10123456784"

UPS_DELIVERED_PAGE = """
<html><head><title>UPS Tracking</title></head>
<body>
<div id="app"></div>
<script>
window.__INITIAL_STATE__ = {"trackDetails": {"shipmentProgressActivities": [{"description": "Delivered", "date": "2024-01-05T10:00:00Z"}]}};
</script>
</body></html>
"""

HTML_TIMELINE_PAGE = """
<html><body>
<table class="tracking"><tbody>
<tr><td>2024-01-03 09:15</td><td>Dublin</td><td>Arrived at facility</td></tr>
<tr><td>2024-01-02 17:40</td><td>Cork</td><td>Accepted at depot</td></tr>
</tbody></table>
</body></html>
"""

BOT_CHALLENGE_PAGE = "<html><body><h1>Please verify you are human</h1></body></html>"


class FakeClock:
    """Manually advanced clock (epoch seconds)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class StubFetcher:
    """
    Scripted PageFetcher stand-in.

    `responses` maps a URL fragment to a FetchResult, or to an async
    callable taking the URL. Unmatched URLs get `default`.
    """

    def __init__(self, responses=None, default=None):
        self.responses = responses or {}
        self.default = default or FetchResult(ok=False, status_code=404, error="HTTP 404")
        self.calls = []
        self.closed = False

    async def fetch(self, url, timeout=15.0, user_agent=None):
        self.calls.append(url)
        for fragment, response in self.responses.items():
            if fragment in url:
                if callable(response):
                    return await response(url)
                return response
        return self.default

    async def close(self):
        self.closed = True


def page(body: str) -> FetchResult:
    return FetchResult(ok=True, status_code=200, body=body)


@pytest.fixture
def config():
    """Configuration with the aggregator disabled."""
    return TrackerConfig(trackingmore_api_key="")


@pytest.fixture
def aggregator_config():
    """Configuration with a TrackingMore key."""
    return TrackerConfig(trackingmore_api_key="test-key")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResponseCache(clock=clock)


@pytest.fixture
def stub_fetcher():
    return StubFetcher()
