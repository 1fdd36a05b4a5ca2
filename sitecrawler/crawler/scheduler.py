"""
Crawler scheduler: wires the sitemap resolver, frontier, worker pool,
link extractor and statistics sink into one crawl run.
"""

import asyncio
import logging
from typing import Optional

from .frontier import URLFrontier, CrawlTask
from .fetcher import WebFetcher
from .parser import LinkExtractor
from .sitemap import SitemapResolver
from .dispatcher import WorkerPool, WorkRequest
from ..utils.config import CrawlOptions
from ..utils.monitoring import StatsSink, WorkResult, CrawlStatistics


class PageCrawlJob(WorkRequest):
    """Fetches one page, feeds its in-scope links back to the frontier and records the result."""

    def __init__(self, task: CrawlTask, fetcher, extractor: LinkExtractor,
                 frontier: URLFrontier, sink: StatsSink):
        self.task = task
        self.fetcher = fetcher
        self.extractor = extractor
        self.frontier = frontier
        self.sink = sink
        self.logger = logging.getLogger(__name__)

    async def execute(self, worker_id: int, pool_size: int):
        try:
            await self._crawl(worker_id, pool_size)
        finally:
            self.frontier.task_done()

    def discard(self):
        self.frontier.task_done()

    async def _crawl(self, worker_id: int, pool_size: int):
        url = self.task.target_url
        response = await self.fetcher.fetch(url)
        if response.error:
            self.logger.warning(f"Failed to fetch {url}: {response.error}")
            return
        self.logger.debug(f"Fetched {url} in {response.fetch_time:.2f}s")

        if response.is_html:
            links = self.extractor.extract(url, response.body)
            for link in links:
                await self.frontier.enqueue(CrawlTask(parent_url=url, target_url=link))
            self.logger.debug(f"Queued {len(links)} links from {url}")

        self.sink.record(WorkResult(
            parent_url=self.task.parent_url,
            url=url,
            worker_id=worker_id,
            pool_size=pool_size,
            response_size=response.size,
            status_code=response.status_code,
            start_time=response.start_time,
            end_time=response.end_time,
            content_type=response.content_type
        ))


class CrawlerScheduler:
    """
    Runs one crawl: resolve the sitemap, seed the frontier, dispatch every
    unseen URL to the worker pool until the work set is exhausted or the
    stop event is set.
    """

    def __init__(self, options: CrawlOptions, fetcher=None,
                 sink: Optional[StatsSink] = None,
                 extractor: Optional[LinkExtractor] = None):
        self.options = options
        self.logger = logging.getLogger(__name__)

        self.fetcher = fetcher
        self.sink = sink if sink is not None else CrawlStatistics()
        self.extractor = extractor or LinkExtractor()

        self.frontier: Optional[URLFrontier] = None
        self.pool: Optional[WorkerPool] = None
        self.is_running = False
        self.dispatched = 0
        self.duplicates_skipped = 0

    async def crawl(self, sitemap_url: str,
                    stop_event: Optional[asyncio.Event] = None) -> StatsSink:
        """
        Crawl every in-scope page reachable from a sitemap.

        Args:
            sitemap_url: Sitemap or sitemap index URL
            stop_event: Setting this event stops the crawl gracefully

        Returns:
            The statistics sink the results were recorded to

        Raises:
            SitemapError: the sitemap could not be resolved
        """
        if self.is_running:
            raise RuntimeError("Crawler is already running")

        if self.fetcher is None:
            async with WebFetcher(
                user_agent=self.options.user_agent,
                request_timeout=self.options.timeout,
                max_concurrent_requests=self.options.concurrency
            ) as fetcher:
                self.fetcher = fetcher
                try:
                    return await self._run(sitemap_url, stop_event or asyncio.Event())
                finally:
                    self.fetcher = None

        return await self._run(sitemap_url, stop_event or asyncio.Event())

    async def _run(self, sitemap_url: str, stop_event: asyncio.Event) -> StatsSink:
        resolver = SitemapResolver(self.fetcher, self.options.concurrency)
        seed_urls = await resolver.resolve(sitemap_url)

        self.is_running = True
        self.dispatched = 0
        self.duplicates_skipped = 0
        self.frontier = URLFrontier(max(self.options.frontier_capacity, len(seed_urls)))
        await self.frontier.seed(seed_urls, sitemap_url)

        if isinstance(self.sink, CrawlStatistics):
            self.sink.mark_started()
        self.pool = WorkerPool(self.options.concurrency, self.options.work_queue_size)
        all_workers_stopped = self.pool.start(stop_event)

        helpers = [
            asyncio.create_task(self._close_frontier_when(all_workers_stopped)),
            asyncio.create_task(self._stop_when_drained(stop_event)),
        ]
        if self.options.report_interval > 0:
            helpers.append(asyncio.create_task(self._stats_reporter()))

        self.logger.info(
            f"Crawling {len(seed_urls)} sitemap URLs with {self.options.concurrency} workers"
        )

        try:
            await self._dispatch_loop()
        finally:
            stop_event.set()
            await self.pool.wait()
            for helper in helpers:
                helper.cancel()
            await asyncio.gather(*helpers, return_exceptions=True)
            self.is_running = False

        self._log_final_stats()
        return self.sink

    async def _dispatch_loop(self):
        """Drain the frontier, handing every unseen URL to the pool."""
        while True:
            task = await self.frontier.next()
            if task is None:
                break

            if not await self.frontier.mark_seen(task.target_url):
                self.duplicates_skipped += 1
                self.frontier.task_done()
                continue

            job = PageCrawlJob(task, self.fetcher, self.extractor, self.frontier, self.sink)
            if await self.pool.submit(job):
                self.dispatched += 1
            else:
                # pool is stopping, the rest of the frontier is only drained
                self.frontier.task_done()

    async def _close_frontier_when(self, all_workers_stopped: asyncio.Event):
        await all_workers_stopped.wait()
        self.frontier.close()

    async def _stop_when_drained(self, stop_event: asyncio.Event):
        await self.frontier.join()
        if not stop_event.is_set():
            self.logger.info("No URLs left to crawl, stopping workers")
            stop_event.set()

    async def _stats_reporter(self):
        """Periodically log crawl statistics."""
        while True:
            await asyncio.sleep(self.options.report_interval)
            if isinstance(self.sink, CrawlStatistics):
                self.sink.log_progress(self.frontier.get_stats())
            else:
                self.logger.info(f"Crawl Progress: {self.frontier.get_stats()}")

    def _log_final_stats(self):
        frontier_stats = self.frontier.get_stats()
        self.logger.info(f"URLs dispatched: {self.dispatched}")
        self.logger.info(f"Duplicates skipped: {self.duplicates_skipped}")
        self.logger.info(f"URLs remaining in queue: {frontier_stats['total_queued']}")
        if hasattr(self.fetcher, 'get_stats'):
            self.logger.info(f"Fetcher stats: {self.fetcher.get_stats()}")
        if isinstance(self.sink, CrawlStatistics):
            self.sink.log_summary()
