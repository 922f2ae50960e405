"""HTTP page fetcher shared by every calendar extractor."""
import asyncio
import logging
from typing import Dict, Optional

import requests

from scraper.errors import FetchError, FetchErrorKind

logger = logging.getLogger(__name__)


BROWSER_HEADERS: Dict[str, str] = {
    'User-Agent': (
        'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36'
    ),
    'Accept': (
        'text/html,application/xhtml+xml,application/xml;q=0.9,'
        'image/avif,image/webp,*/*;q=0.8'
    ),
    'Accept-Language': 'en-US,en;q=0.9',
    'Cache-Control': 'no-cache',
    'Pragma': 'no-cache',
    'Sec-Fetch-Dest': 'document',
    'Sec-Fetch-Mode': 'navigate',
    'Sec-Fetch-Site': 'none',
    'Sec-Fetch-User': '?1',
    'Upgrade-Insecure-Requests': '1',
}


class PageFetcher:
    """Fetch calendar pages with a politeness delay and browser-like headers."""

    def __init__(self, timeout: float = 20, delay: float = 1.0,
                 session: Optional[requests.Session] = None):
        """
        Initialize the page fetcher.

        Args:
            timeout: HTTP request timeout in seconds (default: 20)
            delay: Seconds to wait before every request (default: 1.0)
            session: Optional requests session to reuse
        """
        self.timeout = timeout
        self.delay = delay
        self.session = session or requests.Session()

    async def fetch(self, url: str) -> str:
        """
        Fetch a page and return its markup.

        No retries are attempted; callers decide what a failure means.

        Args:
            url: Absolute URL of the page

        Returns:
            Response body as text

        Raises:
            FetchError: On a non-successful status or a transport failure
        """
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        return await asyncio.to_thread(self._get, url)

    def _get(self, url: str) -> str:
        logger.info(f"Fetching {url}")
        try:
            response = self.session.get(url, headers=BROWSER_HEADERS, timeout=self.timeout)
        except requests.Timeout as e:
            raise FetchError(
                f"Timed out after {self.timeout}s fetching {url}: {e}",
                kind=FetchErrorKind.NETWORK,
            ) from e
        except requests.RequestException as e:
            raise FetchError(
                f"Network error fetching {url}: {e}",
                kind=FetchErrorKind.NETWORK,
            ) from e

        if not response.ok:
            raise FetchError(
                f"HTTP {response.status_code}: {response.reason}",
                kind=FetchErrorKind.HTTP_STATUS,
                status_code=response.status_code,
            )

        logger.debug(f"Retrieved {len(response.text)} characters from {url}")
        return response.text
