"""
Web page fetcher built on aiohttp.
"""

import asyncio
import aiohttp
import logging
import time
from typing import Optional, Dict
from dataclasses import dataclass
from aiohttp import ClientSession, ClientTimeout, ClientError


HTML_CONTENT_TYPES = ('text/html', 'application/xhtml+xml')


@dataclass
class FetchResult:
    """Result of a fetch operation."""
    url: str
    status_code: int
    body: bytes = b''
    content_type: str = ''
    start_time: float = 0.0
    end_time: float = 0.0
    error: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.body)

    @property
    def fetch_time(self) -> float:
        return self.end_time - self.start_time

    @property
    def is_html(self) -> bool:
        return any(html_type in self.content_type for html_type in HTML_CONTENT_TYPES)

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status_code < 300


class WebFetcher:
    """
    Fetches URLs over a shared aiohttp session.

    Transport failures never raise; they come back as a FetchResult
    with ``error`` set and ``status_code`` 0.
    """

    def __init__(self, user_agent: str, request_timeout: float = 30,
                 max_concurrent_requests: int = 10):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_concurrent_requests = max_concurrent_requests

        self.logger = logging.getLogger(__name__)
        self.session: Optional[ClientSession] = None

        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Initialize the fetcher session."""
        if self.session is None:
            timeout = ClientTimeout(total=self.request_timeout)
            headers = {'User-Agent': self.user_agent}

            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers=headers,
                connector=aiohttp.TCPConnector(
                    limit=self.max_concurrent_requests * 2,
                    ttl_dns_cache=300,
                    use_dns_cache=True
                )
            )
            self.logger.info("WebFetcher session started")

    async def close(self):
        """Close the fetcher session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.info("WebFetcher session closed")

    async def fetch(self, url: str) -> FetchResult:
        """
        Fetch a single URL.

        Args:
            url: The URL to fetch

        Returns:
            FetchResult with the response body or the error description
        """
        if self.session is None:
            raise RuntimeError("WebFetcher must be started before fetching")

        start_time = time.time()
        self.stats['total_requests'] += 1

        try:
            async with self.session.get(url) as response:
                body = await response.read()
                end_time = time.time()

                self.stats['successful_requests'] += 1
                self.stats['total_bytes_downloaded'] += len(body)

                self.logger.debug(f"Fetched {url}: {response.status} ({len(body)} bytes)")
                return FetchResult(
                    url=url,
                    status_code=response.status,
                    body=body,
                    content_type=response.headers.get('content-type', '').lower(),
                    start_time=start_time,
                    end_time=end_time
                )

        except asyncio.TimeoutError:
            self.stats['failed_requests'] += 1
            error_msg = "Request timeout"
            self.logger.warning(f"Timeout fetching {url}")

        except ClientError as e:
            self.stats['failed_requests'] += 1
            error_msg = f"Client error: {str(e)}"
            self.logger.warning(f"Client error fetching {url}: {e}")

        except ValueError as e:
            self.stats['failed_requests'] += 1
            error_msg = f"Invalid URL: {str(e)}"
            self.logger.warning(f"Invalid URL {url}: {e}")

        return FetchResult(
            url=url,
            status_code=0,
            error=error_msg,
            start_time=start_time,
            end_time=time.time()
        )

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()
