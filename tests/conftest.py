"""
Shared fixtures: an in-memory fetcher and a recording statistics sink.
"""

import asyncio
import time
from typing import Dict, List, Optional, Tuple, Union

import pytest

from sitecrawler.crawler.fetcher import FetchResult
from sitecrawler.utils.monitoring import StatsSink, WorkResult


class FakeFetcher:
    """Serves canned responses; unknown URLs fail like a transport error."""

    def __init__(self, pages: Optional[Dict[str, Union[Tuple[int, str, str], str]]] = None,
                 delay: float = 0.0):
        self.pages = dict(pages or {})
        self.delay = delay
        self.requests: List[str] = []

    def add_html(self, url: str, html: str, status: int = 200):
        self.pages[url] = (status, html, 'text/html; charset=utf-8')

    def add_xml(self, url: str, xml: str, status: int = 200):
        self.pages[url] = (status, xml, 'application/xml')

    async def fetch(self, url: str) -> FetchResult:
        self.requests.append(url)
        start = time.time()
        if self.delay:
            await asyncio.sleep(self.delay)

        page = self.pages.get(url)
        if page is None or isinstance(page, str):
            return FetchResult(url=url, status_code=0, error=page or "Connection refused",
                               start_time=start, end_time=time.time())

        status, body, content_type = page
        return FetchResult(url=url, status_code=status, body=body.encode('utf-8'),
                           content_type=content_type, start_time=start, end_time=time.time())


class RecordingSink(StatsSink):
    def __init__(self):
        self.results: List[WorkResult] = []

    def record(self, result: WorkResult):
        self.results.append(result)

    @property
    def urls(self) -> List[str]:
        return [result.url for result in self.results]


def urlset(*locs: str) -> str:
    entries = ''.join(f"<url><loc>{loc}</loc></url>" for loc in locs)
    return ('<?xml version="1.0" encoding="UTF-8"?>'
            f'<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</urlset>')


def sitemapindex(*locs: str) -> str:
    entries = ''.join(f"<sitemap><loc>{loc}</loc></sitemap>" for loc in locs)
    return ('<?xml version="1.0" encoding="UTF-8"?>'
            f'<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</sitemapindex>')


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def sink():
    return RecordingSink()
