"""
Page fetcher and bot detection.
Fetches carrier tracking pages with browser-like requests.
"""

import asyncio
import random
from typing import Optional, Sequence
import aiohttp
from loguru import logger

from parcelai.models import FetchResult


DEFAULT_TIMEOUT = 15.0
PROBE_TIMEOUT = 10.0

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
)

# Probes always use the same agent
PROBE_USER_AGENT = USER_AGENTS[1]

BOT_DETECTION_PATTERNS = (
    "verify you are human",
    "captcha",
    "challenge-running",
    "cf-browser-verification",
    "attention required",
    "access denied",
    "please enable javascript",
    "just a moment",
    "checking your browser",
    "ddos protection",
    "security check",
    "bot detection",
    "are you a robot",
    "prove you're human",
    "human verification",
    "cloudflare",
    "incapsula",
    "distil networks",
    "perimeterx",
    "datadome",
)

# Shorter list used when probing; probes skip anything challenge-like
PROBE_BOT_PATTERNS = (
    "captcha",
    "verify you are human",
    "challenge-running",
    "cloudflare",
)


def get_random_user_agent() -> str:
    """Pick a user agent uniformly from the pool."""
    return random.choice(USER_AGENTS)


def is_blocked(html: str, patterns: Sequence[str] = BOT_DETECTION_PATTERNS) -> bool:
    """Whether a page looks like an anti-bot challenge instead of content."""
    lower = html.lower()
    return any(pattern in lower for pattern in patterns)


class PageFetcher:
    """
    HTTP client for carrier tracking pages.

    Features:
    - Randomized user agent and browser-like headers
    - Per-request timeout (15s scrape, 10s probe)
    - Redirects followed
    - Network errors returned as FetchResult, never raised
    """

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self._session = session
        self._owns_session = session is None

    async def _ensure_session(self):
        """Ensure HTTP session is created."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

    async def close(self):
        """Close HTTP session."""
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    def _get_headers(self, user_agent: str) -> dict[str, str]:
        """Browser-like request headers."""
        return {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
            "Cache-Control": "max-age=0",
        }

    async def fetch(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: Optional[str] = None,
    ) -> FetchResult:
        """
        GET a page.

        Args:
            url: Page URL
            timeout: Total request timeout in seconds
            user_agent: Fixed user agent (random from the pool if None)

        Returns:
            FetchResult with body on 2xx, status code or error otherwise
        """
        await self._ensure_session()

        headers = self._get_headers(user_agent or get_random_user_agent())

        try:
            async with self._session.get(
                url,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=timeout),
                allow_redirects=True,
            ) as resp:
                if not 200 <= resp.status < 300:
                    logger.debug(f"GET {url} -> HTTP {resp.status}")
                    return FetchResult(
                        ok=False,
                        status_code=resp.status,
                        error=f"HTTP {resp.status}",
                    )

                body = await resp.text(errors="replace")
                return FetchResult(ok=True, status_code=resp.status, body=body)

        except asyncio.TimeoutError:
            logger.debug(f"GET {url} timed out after {timeout}s")
            return FetchResult(ok=False, error=f"Request timed out after {timeout:g}s")
        except aiohttp.ClientError as e:
            logger.debug(f"GET {url} failed: {e}")
            return FetchResult(ok=False, error=str(e) or e.__class__.__name__)
