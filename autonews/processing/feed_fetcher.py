"""
RSS Feed Fetcher
================

Retrieves raw feed documents over HTTP. Parsing is left to
:class:`autonews.ingestion.rss_parser.RSSParser`.
"""

import asyncio
import ssl
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import aiohttp
import certifi

from ..config.settings import AutoNewsSettings, get_settings
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import FeedFetchError, ErrorCode


class FeedFetcher:
    """HTTP GET for feed documents with a fixed User-Agent and timeout."""

    def __init__(self, settings: Optional[AutoNewsSettings] = None):
        """Initialize feed fetcher.

        Args:
            settings: Application settings (default: global settings)
        """
        self.settings = settings or get_settings()
        self.user_agent = self.settings.fetch.user_agent
        self.timeout = self.settings.fetch.request_timeout
        self.logger = get_logger_for_component("feed_fetcher")

        self.ssl_context = ssl.create_default_context(cafile=certifi.where())

    @asynccontextmanager
    async def session(self) -> AsyncIterator[aiohttp.ClientSession]:
        """Get configured aiohttp session."""
        connector = aiohttp.TCPConnector(ssl=self.ssl_context, limit_per_host=2)
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/rss+xml, application/atom+xml, application/xml, text/xml, */*",
        }

        async with aiohttp.ClientSession(
            connector=connector, timeout=timeout, headers=headers
        ) as session:
            yield session

    async def fetch(self, url: str, session: aiohttp.ClientSession) -> bytes:
        """Fetch a feed document.

        The body is returned undecoded; the parser picks the encoding from
        the XML declaration and falls back when the declared charset lies.

        Args:
            url: Feed URL
            session: aiohttp session from :meth:`session`

        Returns:
            Raw response body

        Raises:
            FeedFetchError: On non-2xx status, network failure or timeout
        """
        self.logger.debug(f"Fetching feed: {url}")

        try:
            async with session.get(url) as response:
                if not 200 <= response.status < 300:
                    raise FeedFetchError(
                        f"HTTP {response.status}: {response.reason}",
                        feed_url=url,
                        status=response.status,
                        error_code=ErrorCode.FEED_HTTP_STATUS,
                    )
                return await response.read()

        except asyncio.TimeoutError as e:
            raise FeedFetchError(
                f"Timeout fetching feed after {self.timeout}s",
                feed_url=url,
                error_code=ErrorCode.FEED_FETCH_TIMEOUT,
            ) from e
        except aiohttp.ClientError as e:
            raise FeedFetchError(
                f"Network error fetching feed: {e}",
                feed_url=url,
                error_code=ErrorCode.FEED_NETWORK_ERROR,
            ) from e
