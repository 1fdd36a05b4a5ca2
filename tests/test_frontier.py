"""Tests for the URL frontier."""

import asyncio

import pytest

from sitecrawler.crawler.frontier import URLFrontier, CrawlTask, FrontierClosed
from sitecrawler.crawler.urls import canonicalize


def task(target: str, parent: str = 'http://example.com/sitemap.xml') -> CrawlTask:
    return CrawlTask(parent_url=parent, target_url=target)


class TestCrawlTask:

    def test_is_immutable(self):
        crawl_task = task('http://example.com/a')
        with pytest.raises(AttributeError):
            crawl_task.target_url = 'http://example.com/b'


class TestCanonicalize:

    def test_strips_fragment_and_lowercases_host(self):
        assert canonicalize('HTTP://Example.COM/Path?q=1#frag') == 'http://example.com/Path?q=1'

    def test_keeps_query(self):
        assert canonicalize('http://example.com/a?x=1') != canonicalize('http://example.com/a?x=2')


class TestURLFrontier:

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            URLFrontier(0)

    async def test_seed_uses_origin_as_parent(self):
        frontier = URLFrontier(10)
        count = await frontier.seed(['http://example.com/a', 'http://example.com/b'],
                                    'http://example.com/sitemap.xml')
        assert count == 2
        first = await frontier.next()
        second = await frontier.next()
        assert first == task('http://example.com/a')
        assert second == task('http://example.com/b')

    async def test_fifo_order(self):
        frontier = URLFrontier(10)
        for name in 'abc':
            await frontier.enqueue(task(f'http://example.com/{name}'))
        received = [(await frontier.next()).target_url for _ in range(3)]
        assert received == ['http://example.com/a', 'http://example.com/b', 'http://example.com/c']

    async def test_mark_seen_is_test_and_set(self):
        frontier = URLFrontier(1)
        assert await frontier.mark_seen('http://example.com/a') is True
        assert await frontier.mark_seen('http://example.com/a') is False
        assert await frontier.mark_seen('http://EXAMPLE.com/a#top') is False
        assert await frontier.mark_seen('http://example.com/b') is True

    async def test_concurrent_mark_seen_marks_once(self):
        frontier = URLFrontier(1)
        results = await asyncio.gather(*(frontier.mark_seen('http://example.com/a') for _ in range(20)))
        assert results.count(True) == 1

    async def test_enqueue_blocks_at_capacity_until_drained(self):
        frontier = URLFrontier(1)
        await frontier.enqueue(task('http://example.com/a'))

        blocked = asyncio.create_task(frontier.enqueue(task('http://example.com/b')))
        await asyncio.sleep(0.01)
        assert not blocked.done()
        assert frontier.qsize() == 1

        assert (await frontier.next()).target_url == 'http://example.com/a'
        await asyncio.wait_for(blocked, timeout=1)
        assert (await frontier.next()).target_url == 'http://example.com/b'

    async def test_next_waits_for_enqueue(self):
        frontier = URLFrontier(5)
        waiter = asyncio.create_task(frontier.next())
        await asyncio.sleep(0.01)
        assert not waiter.done()

        await frontier.enqueue(task('http://example.com/a'))
        result = await asyncio.wait_for(waiter, timeout=1)
        assert result.target_url == 'http://example.com/a'

    async def test_close_wakes_blocked_next(self):
        frontier = URLFrontier(5)
        waiter = asyncio.create_task(frontier.next())
        await asyncio.sleep(0.01)

        frontier.close()
        assert await asyncio.wait_for(waiter, timeout=1) is None

    async def test_close_drains_remaining_tasks_first(self):
        frontier = URLFrontier(5)
        await frontier.enqueue(task('http://example.com/a'))
        frontier.close()
        frontier.close()

        assert frontier.closed
        assert (await frontier.next()).target_url == 'http://example.com/a'
        assert await frontier.next() is None

    async def test_enqueue_after_close_raises(self):
        frontier = URLFrontier(5)
        frontier.close()
        with pytest.raises(FrontierClosed):
            await frontier.enqueue(task('http://example.com/a'))

    async def test_join_waits_for_task_done(self):
        frontier = URLFrontier(5)
        await frontier.enqueue(task('http://example.com/a'))
        assert frontier.pending == 1

        joiner = asyncio.create_task(frontier.join())
        await frontier.next()
        await asyncio.sleep(0.01)
        assert not joiner.done()

        frontier.task_done()
        await asyncio.wait_for(joiner, timeout=1)
        assert frontier.pending == 0

    async def test_stats(self):
        frontier = URLFrontier(3)
        await frontier.enqueue(task('http://example.com/a'))
        await frontier.mark_seen('http://example.com/a')
        assert frontier.get_stats() == {
            'total_queued': 1,
            'total_seen': 1,
            'pending': 1,
            'capacity': 3
        }
