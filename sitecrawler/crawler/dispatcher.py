"""
Fixed-size worker pool that drains a shared bounded queue of work requests.
"""

import asyncio
import logging
from typing import Dict, List, Optional
from enum import Enum

from ..utils.logger import get_crawler_logger


class WorkerState(Enum):
    """Lifecycle of a single worker."""
    RUNNING = 'running'
    DRAINING = 'draining'
    STOPPED = 'stopped'


class PoolState(Enum):
    """Lifecycle of the pool."""
    IDLE = 'idle'
    ACTIVE = 'active'
    COMPLETED = 'completed'


class WorkRequest:
    """A unit of work executed by one pool worker."""

    async def execute(self, worker_id: int, pool_size: int):
        """Run the unit of work."""
        raise NotImplementedError

    def discard(self):
        """Called instead of ``execute`` when the pool stopped before the unit was started."""
        pass


class WorkerPool:
    """
    Runs ``size`` workers, each pulling WorkRequests off one bounded queue.

    Shutdown is cooperative: once the stop event is set no new request
    is started, in-flight requests finish, and the completion event
    fires exactly once after the last worker has exited.
    """

    def __init__(self, size: int, queue_size: Optional[int] = None):
        if size < 1:
            raise ValueError("Worker pool size must be at least 1")
        if queue_size is not None and queue_size < 1:
            raise ValueError("Worker pool queue size must be at least 1")

        self.size = size
        self.logger = logging.getLogger(__name__)

        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size if queue_size is not None else size)
        self._stop: Optional[asyncio.Event] = None
        self._completed = asyncio.Event()
        self._workers: List[asyncio.Task] = []
        self._running = 0
        self._watcher: Optional[asyncio.Task] = None

        self.state = PoolState.IDLE
        self.worker_states: Dict[int, WorkerState] = {}
        self.stats = {
            'executed': 0,
            'failed': 0,
            'discarded': 0
        }

    def start(self, stop_event: asyncio.Event) -> asyncio.Event:
        """
        Spawn the workers.

        Args:
            stop_event: Setting this event shuts the pool down

        Returns:
            Event that is set once every worker has exited
        """
        if self.state is not PoolState.IDLE:
            raise RuntimeError("Worker pool has already been started")

        self._stop = stop_event
        self.state = PoolState.ACTIVE
        self._running = self.size

        for worker_id in range(1, self.size + 1):
            self.worker_states[worker_id] = WorkerState.RUNNING
            worker = asyncio.create_task(self._worker(worker_id), name=f"worker-{worker_id}")
            self._workers.append(worker)

        self._watcher = asyncio.create_task(self._watch_stop())

        self.logger.info(f"Started worker pool with {self.size} workers")
        return self._completed

    async def submit(self, request: WorkRequest) -> bool:
        """
        Hand one request to the pool, waiting while its queue is full.

        Returns False, without queueing, once the pool is stopping.
        """
        if self._stop is None:
            raise RuntimeError("Worker pool has not been started")
        if self._stop.is_set():
            return False

        putter = asyncio.ensure_future(self._queue.put(request))
        stopper = asyncio.ensure_future(self._stop.wait())
        try:
            await asyncio.wait({putter, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopper.cancel()
            if not putter.done():
                putter.cancel()

        if not putter.done() or putter.cancelled():
            return False
        if self.completed:
            # landed after the last worker exited; the caller still owns the request
            self._queue.get_nowait()
            self._queue.task_done()
            return False
        return True

    @property
    def completed(self) -> bool:
        return self.state is PoolState.COMPLETED

    async def wait(self):
        """Wait for the pool to complete."""
        await self._completed.wait()

    async def _next_request(self) -> Optional[WorkRequest]:
        """Wait for a request or the stop event, whichever comes first."""
        if self._stop.is_set():
            return None
        if not self._queue.empty():
            return self._queue.get_nowait()

        getter = asyncio.ensure_future(self._queue.get())
        stopper = asyncio.ensure_future(self._stop.wait())
        try:
            await asyncio.wait({getter, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopper.cancel()
            if not getter.done():
                getter.cancel()

        if getter.done() and not getter.cancelled():
            return getter.result()
        return None

    async def _worker(self, worker_id: int):
        log = get_crawler_logger(__name__, worker_id=worker_id, pool_size=self.size)
        log.debug(f"Worker {worker_id} started")

        try:
            while not self._stop.is_set():
                request = await self._next_request()
                if request is None:
                    break

                # a request picked up in the same turn the pool was stopped is never started
                if self._stop.is_set():
                    request.discard()
                    self.stats['discarded'] += 1
                    self._queue.task_done()
                    break

                try:
                    await request.execute(worker_id, self.size)
                    self.stats['executed'] += 1
                except Exception as e:
                    self.stats['failed'] += 1
                    log.error(f"Worker {worker_id} error: {e}", exc_info=True)
                finally:
                    self._queue.task_done()
        finally:
            self.worker_states[worker_id] = WorkerState.STOPPED
            log.debug(f"Worker {worker_id} finished")
            self._worker_exited()

    async def _watch_stop(self):
        await self._stop.wait()
        draining = 0
        for worker_id, state in self.worker_states.items():
            if state is WorkerState.RUNNING:
                self.worker_states[worker_id] = WorkerState.DRAINING
                draining += 1
        self.logger.info(f"Stop requested, draining {draining} workers")

    def _worker_exited(self):
        self._running -= 1
        if self._running == 0:
            self._discard_queued()
            self.state = PoolState.COMPLETED
            self._completed.set()
            self.logger.info(
                f"All {self.size} workers stopped "
                f"(executed={self.stats['executed']}, failed={self.stats['failed']}, "
                f"discarded={self.stats['discarded']})"
            )

    def _discard_queued(self):
        while not self._queue.empty():
            request = self._queue.get_nowait()
            request.discard()
            self.stats['discarded'] += 1
            self._queue.task_done()
