"""
URL Frontier: the seen-set and the bounded queue of pending crawl tasks.
"""

import asyncio
import logging
from typing import Dict, Iterable, Optional, Set
from dataclasses import dataclass

from .urls import canonicalize


class FrontierClosed(Exception):
    """Raised when enqueueing into a closed frontier."""
    pass


@dataclass(frozen=True)
class CrawlTask:
    """Represents one pending fetch."""
    parent_url: str
    target_url: str


class URLFrontier:
    """
    Single source of truth for what is left to crawl.

    Owns a set of canonical URLs already seen and a bounded FIFO of
    CrawlTask. ``enqueue`` waits while the queue is full; nothing is
    ever dropped. ``mark_seen`` is the only way to read or write the
    seen-set.

    Every task put in the frontier counts as unfinished until
    ``task_done`` is called for it, so ``join`` returns once the whole
    work set has been processed.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("Frontier capacity must be at least 1")

        self.capacity = capacity
        self.logger = logging.getLogger(__name__)

        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity)
        self._seen: Set[str] = set()
        self._seen_lock = asyncio.Lock()
        self._closed = asyncio.Event()
        self._pending = 0

    async def seed(self, urls: Iterable[str], origin: str) -> int:
        """Enqueue one task per URL with ``origin`` as parent. Returns count of seeded tasks."""
        count = 0
        for url in urls:
            await self.enqueue(CrawlTask(parent_url=origin, target_url=url))
            count += 1
        self.logger.info(f"Seeded frontier with {count} URLs from {origin}")
        return count

    async def enqueue(self, task: CrawlTask):
        """Add a task, waiting for a free slot if the queue is at capacity."""
        if self._closed.is_set():
            raise FrontierClosed(f"Cannot enqueue {task.target_url}: frontier is closed")
        await self._queue.put(task)
        self._pending += 1
        self.logger.debug(f"Enqueued {task.target_url} (from {task.parent_url})")

    async def next(self) -> Optional[CrawlTask]:
        """
        Wait for the next task.

        Returns None once the frontier has been closed and drained.
        """
        while True:
            if not self._queue.empty():
                return self._queue.get_nowait()
            if self._closed.is_set():
                return None

            getter = asyncio.ensure_future(self._queue.get())
            closer = asyncio.ensure_future(self._closed.wait())
            try:
                await asyncio.wait({getter, closer}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                closer.cancel()
                if not getter.done():
                    getter.cancel()

            if getter.done() and not getter.cancelled():
                return getter.result()

    async def mark_seen(self, url: str) -> bool:
        """
        Atomically test and set membership of ``url`` in the seen-set.

        Returns True if the URL was newly marked, False if it was already seen.
        """
        key = canonicalize(url)
        async with self._seen_lock:
            if key in self._seen:
                return False
            self._seen.add(key)
            return True

    def task_done(self):
        """Mark one previously enqueued task as fully processed."""
        self._queue.task_done()
        self._pending -= 1

    async def join(self):
        """Wait until every enqueued task has been marked done."""
        await self._queue.join()

    def close(self):
        """Disallow further enqueues; ``next`` returns None once drained. Idempotent."""
        if not self._closed.is_set():
            self._closed.set()
            self.logger.info(f"Frontier closed with {self._queue.qsize()} tasks still queued")

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def pending(self) -> int:
        """Tasks enqueued but not yet marked done."""
        return self._pending

    def qsize(self) -> int:
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()

    def get_stats(self) -> Dict[str, int]:
        """Get frontier statistics."""
        return {
            'total_queued': self._queue.qsize(),
            'total_seen': len(self._seen),
            'pending': self.pending,
            'capacity': self.capacity
        }
