"""
HTML link extraction.
"""

import logging
from typing import List, Optional, Union
from urllib.parse import urlparse
from bs4 import BeautifulSoup

from .urls import host_of, site_root, directory_of, strip_fragment


class LinkExtractor:
    """
    Extracts absolute, same-host links from an HTML document.

    Links are resolved the way the crawler expects them, not the way a
    browser would: root-relative links hang off ``scheme://host``,
    anything that is not http(s) is joined onto the effective base with
    a single slash, and every link is cut off at its first '#'.
    """

    def __init__(self, features: str = 'lxml'):
        self.features = features
        self.logger = logging.getLogger(__name__)

    def extract(self, base_url: str, html_content: Union[bytes, str]) -> List[str]:
        """
        Extract in-scope links from an HTML body.

        Args:
            base_url: URL the document was fetched from
            html_content: Raw HTML body

        Returns:
            Absolute URLs on the same host as ``base_url``, in document
            order. Duplicates are kept.
        """
        soup = BeautifulSoup(html_content, self.features)

        page = urlparse(base_url)
        page_host = host_of(page)
        root = site_root(base_url)
        base = self._effective_base(soup, base_url)

        links = []
        for anchor in soup.find_all('a', href=True):
            href = self._resolve(anchor['href'].strip(), root, base)
            href = strip_fragment(href)

            try:
                parsed = urlparse(href)
                host = host_of(parsed)
            except ValueError as e:
                self.logger.debug(f"Dropping malformed link {href!r} on {base_url}: {e}")
                continue

            # ignore external links
            if host != page_host:
                continue

            links.append(href)

        self.logger.debug(f"Extracted {len(links)} links from {base_url}")
        return links

    def _effective_base(self, soup: BeautifulSoup, base_url: str) -> str:
        """Base for relative links: the document's <base href> or the page directory."""
        declared: Optional[str] = None
        base_tag = soup.find('base', href=True)
        if base_tag:
            declared = base_tag['href'].strip()

        if not declared:
            return directory_of(base_url)
        if declared.startswith('/'):
            return site_root(base_url) + declared
        if self._is_absolute(declared):
            return declared
        return directory_of(base_url) + declared

    def _resolve(self, href: str, root: str, base: str) -> str:
        if href.startswith('/'):
            return root + href
        if self._is_absolute(href):
            return href
        if base.endswith('/'):
            base = base[:-1]
        return base + '/' + href

    @staticmethod
    def _is_absolute(href: str) -> bool:
        return href.startswith('http://') or href.startswith('https://')
