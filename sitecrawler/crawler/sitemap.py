"""
Sitemap resolution: turns a sitemap root URL into the page URLs it lists.

A root document is probed both as a sitemap index and as a flat
sitemap, and the URLs from every probe that recognises it are merged.
Child sitemaps referenced from an index are always read as flat
sitemaps; there is no deeper recursion.
"""

import asyncio
import logging
from typing import List, Optional
from urllib.parse import urlparse
from dataclasses import dataclass
from lxml import etree

from .fetcher import FetchResult


class SitemapError(Exception):
    """Base class for sitemap resolution errors."""
    pass


class InvalidSitemapContent(SitemapError):
    """The document is not the kind of sitemap a probe was looking for."""
    pass


class SitemapFetchError(SitemapError):
    """A sitemap document could not be downloaded."""
    pass


class SitemapEntryError(SitemapError):
    """A sitemap entry carries an unusable location."""
    pass


@dataclass(frozen=True)
class SitemapEntry:
    """A <sitemap> or <url> record from a sitemap document."""
    loc: str
    lastmod: Optional[str] = None


def _local_name(element) -> str:
    if not isinstance(element.tag, str):
        return ''
    return etree.QName(element).localname


def _child_text(element, name: str) -> Optional[str]:
    for child in element:
        if _local_name(child) == name:
            return (child.text or '').strip()
    return None


def parse_xml(content: bytes, source: str):
    """Parse a sitemap document, raising InvalidSitemapContent on malformed XML."""
    parser = etree.XMLParser(resolve_entities=False, no_network=True, recover=False)
    try:
        root = etree.fromstring(content, parser=parser)
    except etree.XMLSyntaxError as e:
        raise InvalidSitemapContent(f"{source} is not well-formed XML: {e}")
    if root is None:
        raise InvalidSitemapContent(f"{source} is empty")
    return root


def _entries(root, document_tag: str, entry_tag: str, source: str) -> List[SitemapEntry]:
    entry_elements = [child for child in root if _local_name(child) == entry_tag]
    if _local_name(root) != document_tag and not entry_elements:
        raise InvalidSitemapContent(
            f"{source} has neither a <{document_tag}> root nor <{entry_tag}> entries"
        )

    entries = []
    for element in entry_elements:
        loc = _child_text(element, 'loc')
        if not loc:
            raise SitemapEntryError(f"<{entry_tag}> entry without <loc> in {source}")
        entries.append(SitemapEntry(loc=loc, lastmod=_child_text(element, 'lastmod')))
    return entries


def parse_sitemap_index(content: bytes, source: str) -> List[SitemapEntry]:
    """Read the <sitemap> entries of a sitemap index."""
    return _entries(parse_xml(content, source), 'sitemapindex', 'sitemap', source)


def parse_urlset(content: bytes, source: str) -> List[SitemapEntry]:
    """Read the <url> entries of a flat sitemap."""
    return _entries(parse_xml(content, source), 'urlset', 'url', source)


def _entry_url(entry: SitemapEntry, source: str) -> str:
    try:
        parsed = urlparse(entry.loc)
    except ValueError as e:
        raise SitemapEntryError(f"Invalid location {entry.loc!r} in {source}: {e}")
    if not parsed.scheme or not parsed.netloc:
        raise SitemapEntryError(f"Location {entry.loc!r} in {source} is not an absolute URL")
    return entry.loc


class SitemapResolver:
    """
    Resolves a sitemap root URL into the full list of page URLs.

    Any object with an ``async fetch(url) -> FetchResult`` method can be
    used as the fetcher.
    """

    def __init__(self, fetcher, max_concurrent_requests: int = 10):
        self.fetcher = fetcher
        self.max_concurrent_requests = max_concurrent_requests
        self.logger = logging.getLogger(__name__)

    async def resolve(self, root_url: str) -> List[str]:
        """
        Resolve a sitemap root into page URLs.

        The root is read both as an index and as a flat sitemap. URLs from
        whichever reading succeeds are returned, index URLs first, without
        duplicates.

        Raises:
            InvalidSitemapContent: the root is neither an index nor a sitemap
            SitemapError: neither reading succeeded for another reason
        """
        content = await self._download(root_url)

        urls: List[str] = []
        index_error: Optional[SitemapError] = None
        sitemap_error: Optional[SitemapError] = None
        index_ok = sitemap_ok = False

        try:
            urls.extend(await self._urls_from_index(content, root_url))
            index_ok = True
        except SitemapError as e:
            index_error = e
            self.logger.debug(f"Sitemap index probe failed for {root_url}: {e}")

        try:
            urls.extend(self._urls_from_urlset(content, root_url))
            sitemap_ok = True
        except SitemapError as e:
            sitemap_error = e
            self.logger.debug(f"Sitemap probe failed for {root_url}: {e}")

        if not index_ok and not sitemap_ok:
            if isinstance(index_error, InvalidSitemapContent) and \
                    isinstance(sitemap_error, InvalidSitemapContent):
                raise InvalidSitemapContent(
                    f"{root_url!r} is neither a sitemap index nor a XML sitemap"
                )
            if not isinstance(index_error, InvalidSitemapContent):
                raise index_error
            raise sitemap_error

        unique_urls = list(dict.fromkeys(urls))
        self.logger.info(f"Resolved {len(unique_urls)} URLs from {root_url}")
        return unique_urls

    async def _download(self, url: str) -> bytes:
        result: FetchResult = await self.fetcher.fetch(url)
        if not result.ok:
            reason = result.error or f"HTTP {result.status_code}"
            raise SitemapFetchError(f"Failed to fetch {url}: {reason}")
        return result.body

    async def _urls_from_index(self, content: bytes, source: str) -> List[str]:
        child_urls = [_entry_url(entry, source) for entry in parse_sitemap_index(content, source)]
        self.logger.debug(f"{source} lists {len(child_urls)} child sitemaps")

        semaphore = asyncio.Semaphore(self.max_concurrent_requests)

        async def resolve_child(child_url: str) -> List[str]:
            async with semaphore:
                child_content = await self._download(child_url)
            try:
                return self._urls_from_urlset(child_content, child_url)
            except InvalidSitemapContent as e:
                # the index itself was valid; a broken child is not a format mismatch of the root
                raise SitemapError(f"Child sitemap of {source} is unusable: {e}") from e

        children = [asyncio.ensure_future(resolve_child(url)) for url in child_urls]
        try:
            results = await asyncio.gather(*children)
        except BaseException:
            # one child failed or resolve was cancelled; stop the remaining downloads
            for child in children:
                child.cancel()
            await asyncio.gather(*children, return_exceptions=True)
            raise

        urls = []
        for child_urls_found in results:
            urls.extend(child_urls_found)
        return urls

    def _urls_from_urlset(self, content: bytes, source: str) -> List[str]:
        return [_entry_url(entry, source) for entry in parse_urlset(content, source)]
