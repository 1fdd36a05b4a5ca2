"""Tests for the worker pool."""

import asyncio

import pytest

from sitecrawler.crawler.dispatcher import WorkerPool, WorkRequest, WorkerState, PoolState


class RecordingRequest(WorkRequest):

    def __init__(self, name, log, delay=0.0, gate=None, fail=False):
        self.name = name
        self.log = log
        self.delay = delay
        self.gate = gate
        self.fail = fail
        self.discarded = False

    async def execute(self, worker_id, pool_size):
        self.log.append(('start', self.name, worker_id, pool_size))
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError(f"{self.name} failed")
        self.log.append(('end', self.name, worker_id, pool_size))

    def discard(self):
        self.discarded = True


class TestWorkerPool:

    def test_rejects_empty_pool(self):
        with pytest.raises(ValueError):
            WorkerPool(0)

    @pytest.mark.parametrize('queue_size', [0, -1])
    def test_rejects_unbounded_queue(self, queue_size):
        with pytest.raises(ValueError):
            WorkerPool(2, queue_size)

    async def test_submit_before_start_raises(self):
        pool = WorkerPool(1)
        with pytest.raises(RuntimeError):
            await pool.submit(RecordingRequest('a', []))

    async def test_executes_submitted_requests(self):
        log = []
        stop = asyncio.Event()
        pool = WorkerPool(3)
        completed = pool.start(stop)

        for name in 'abcde':
            assert await pool.submit(RecordingRequest(name, log))

        while len([entry for entry in log if entry[0] == 'end']) < 5:
            await asyncio.sleep(0.01)

        stop.set()
        await asyncio.wait_for(completed.wait(), timeout=1)

        ended = {entry[1] for entry in log if entry[0] == 'end'}
        assert ended == set('abcde')
        assert all(entry[3] == 3 for entry in log)
        assert {entry[2] for entry in log} <= {1, 2, 3}
        assert pool.stats['executed'] == 5

    async def test_immediate_stop_completes_once(self):
        stop = asyncio.Event()
        pool = WorkerPool(4)
        completed = pool.start(stop)
        stop.set()

        await asyncio.wait_for(completed.wait(), timeout=1)
        assert pool.state is PoolState.COMPLETED
        assert pool.completed
        assert set(pool.worker_states.values()) == {WorkerState.STOPPED}
        assert await pool.submit(RecordingRequest('late', [])) is False

    async def test_no_request_started_after_stop(self):
        log = []
        stop = asyncio.Event()
        gate = asyncio.Event()
        pool = WorkerPool(2, queue_size=4)
        completed = pool.start(stop)

        in_flight = [RecordingRequest(f'busy-{i}', log, gate=gate) for i in range(2)]
        queued = [RecordingRequest(f'queued-{i}', log) for i in range(3)]
        for request in in_flight + queued:
            assert await pool.submit(request)

        while len(log) < 2:
            await asyncio.sleep(0.01)

        stop.set()
        await asyncio.sleep(0.01)
        assert set(pool.worker_states.values()) == {WorkerState.DRAINING}
        assert not completed.is_set()

        gate.set()
        await asyncio.wait_for(completed.wait(), timeout=1)

        started = [entry[1] for entry in log if entry[0] == 'start']
        assert sorted(started) == ['busy-0', 'busy-1']
        assert [entry[1] for entry in log if entry[0] == 'end'] != []
        assert all(request.discarded for request in queued)
        assert pool.stats['discarded'] == 3

    async def test_submit_gives_up_when_stopped_while_full(self):
        stop = asyncio.Event()
        gate = asyncio.Event()
        pool = WorkerPool(1, queue_size=1)
        completed = pool.start(stop)

        assert await pool.submit(RecordingRequest('busy', [], gate=gate))
        await asyncio.sleep(0.01)
        assert await pool.submit(RecordingRequest('queued', []))

        blocked = asyncio.create_task(pool.submit(RecordingRequest('blocked', [])))
        await asyncio.sleep(0.01)
        assert not blocked.done()

        stop.set()
        assert await asyncio.wait_for(blocked, timeout=1) is False

        gate.set()
        await asyncio.wait_for(completed.wait(), timeout=1)

    async def test_failing_request_does_not_kill_worker(self):
        log = []
        stop = asyncio.Event()
        pool = WorkerPool(1)
        completed = pool.start(stop)

        assert await pool.submit(RecordingRequest('bad', log, fail=True))
        assert await pool.submit(RecordingRequest('good', log))

        while ('end', 'good', 1, 1) not in log:
            await asyncio.sleep(0.01)

        stop.set()
        await asyncio.wait_for(completed.wait(), timeout=1)
        assert pool.stats['failed'] == 1
        assert pool.stats['executed'] == 1

    async def test_start_twice_raises(self):
        stop = asyncio.Event()
        pool = WorkerPool(1)
        completed = pool.start(stop)
        with pytest.raises(RuntimeError):
            pool.start(stop)
        stop.set()
        await asyncio.wait_for(completed.wait(), timeout=1)
