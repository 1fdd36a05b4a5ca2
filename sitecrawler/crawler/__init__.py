"""
Web crawler core components.
"""

from .frontier import URLFrontier, CrawlTask, FrontierClosed
from .fetcher import WebFetcher, FetchResult
from .parser import LinkExtractor
from .sitemap import SitemapResolver, SitemapError, InvalidSitemapContent
from .dispatcher import WorkerPool, WorkRequest, WorkerState, PoolState
from .scheduler import CrawlerScheduler, PageCrawlJob

__all__ = [
    'URLFrontier', 'CrawlTask', 'FrontierClosed',
    'WebFetcher', 'FetchResult',
    'LinkExtractor',
    'SitemapResolver', 'SitemapError', 'InvalidSitemapContent',
    'WorkerPool', 'WorkRequest', 'WorkerState', 'PoolState',
    'CrawlerScheduler', 'PageCrawlJob'
]
