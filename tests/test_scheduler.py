"""Tests for throttled job scheduling and the in-process job queue."""

import pytest

from wordcounter.db.db import init_db
from wordcounter.engine import build_engine
from wordcounter.errors import StoreUnavailableError
from wordcounter.models.page import Page
from wordcounter.services.cache import MemoryObjectCache
from wordcounter.services.scheduler import AsyncJobQueue, Job, JobScheduler, ScheduledJob


class RecordingJob(Job):
    name = "RecordingJob"
    job_type = "Recording"

    def __init__(self, runs, again=0):
        self.runs = runs
        self.again = again

    async def run(self) -> bool:
        self.runs.append(1)
        return len(self.runs) <= self.again


class FailingJob(Job):
    name = "FailingJob"

    async def run(self) -> bool:
        raise RuntimeError("boom")


class BrokenQueue(AsyncJobQueue):
    def push(self, job):
        raise RuntimeError("queue unavailable")


class UnavailableCache(MemoryObjectCache):
    async def add(self, key, value, ttl):
        raise StoreUnavailableError("cache.add failed")


def _scheduler(clock, runs, limit=10, interval=60, queue=None):
    queue = queue or AsyncJobQueue(clock=clock)
    scheduler = JobScheduler(MemoryObjectCache(clock=clock), queue, clock=clock)
    scheduler.register(
        ScheduledJob(name=RecordingJob.name, factory=lambda: RecordingJob(runs), limit=limit, interval=interval)
    )
    return scheduler


class TestThrottle:
    @pytest.mark.asyncio
    async def test_many_triggers_enqueue_once(self, clock):
        runs = []
        scheduler = _scheduler(clock, runs)

        scheduled = [await scheduler.maybe_schedule() for _ in range(5)]
        await scheduler.queue.drain()

        assert scheduled[0] == [RecordingJob.name]
        assert scheduled[1:] == [[]] * 4
        assert len(runs) == 1

    @pytest.mark.asyncio
    async def test_rearms_after_interval(self, clock):
        runs = []
        scheduler = _scheduler(clock, runs, interval=60)

        await scheduler.maybe_schedule()
        await scheduler.queue.drain()
        clock.advance(59)
        assert await scheduler.maybe_schedule() == []
        clock.advance(1)
        assert await scheduler.maybe_schedule() == [RecordingJob.name]
        await scheduler.queue.drain()

        assert len(runs) == 2

    @pytest.mark.asyncio
    async def test_disabled_job_never_runs(self, clock):
        runs = []
        scheduler = _scheduler(clock, runs, limit=0)

        assert await scheduler.maybe_schedule() == []
        await scheduler.queue.drain()
        assert runs == []

    @pytest.mark.asyncio
    async def test_failed_enqueue_does_not_block_future_triggers(self, clock):
        runs = []
        scheduler = _scheduler(clock, runs, interval=60, queue=BrokenQueue(clock=clock))

        assert await scheduler.maybe_schedule() == []
        # Ticket was taken anyway; it expires on schedule
        assert await scheduler.maybe_schedule() == []

        scheduler._queue = AsyncJobQueue(clock=clock)
        clock.advance(60)
        assert await scheduler.maybe_schedule() == [RecordingJob.name]
        await scheduler.queue.drain()
        assert len(runs) == 1

    @pytest.mark.asyncio
    async def test_cache_outage_skips_without_raising(self, clock):
        runs = []
        scheduler = JobScheduler(UnavailableCache(clock=clock), AsyncJobQueue(clock=clock), clock=clock)
        scheduler.register(
            ScheduledJob(name=RecordingJob.name, factory=lambda: RecordingJob(runs), limit=10, interval=60)
        )

        assert await scheduler.maybe_schedule() == []
        await scheduler.queue.drain()
        assert runs == []

    @pytest.mark.asyncio
    async def test_unknown_job_name(self, clock):
        scheduler = _scheduler(clock, [])
        assert scheduler.schedule_next("NoSuchJob") is False


class TestAsyncJobQueue:
    @pytest.mark.asyncio
    async def test_duplicate_pending_job_dropped(self, clock):
        queue = AsyncJobQueue(clock=clock)
        runs = []

        assert queue.push(RecordingJob(runs)) is True
        assert queue.push(RecordingJob(runs)) is False
        assert queue.pending() == [RecordingJob.name]

        await queue.drain()
        assert len(runs) == 1
        assert queue.pending() == []

    @pytest.mark.asyncio
    async def test_full_batch_requeues(self, clock):
        queue = AsyncJobQueue(clock=clock)
        runs = []

        queue.push(RecordingJob(runs, again=2))
        await queue.drain()

        assert len(runs) == 3
        assert queue.job_status()[RecordingJob.name]["runs"] == 3

    @pytest.mark.asyncio
    async def test_failure_is_recorded(self, clock):
        queue = AsyncJobQueue(clock=clock)
        queue.push(FailingJob())
        await queue.drain()

        status = queue.job_status()[FailingJob.name]
        assert status["failures"] == 1
        assert status["last_error"] == "boom"
        assert status["size"] == 0

    def test_push_without_event_loop_raises(self, clock):
        with pytest.raises(RuntimeError):
            AsyncJobQueue(clock=clock).push(RecordingJob([]))


class TestEngineJobs:
    @pytest.mark.asyncio
    async def test_count_words_job_counts_pending_pages(self, make_settings, clock):
        engine = build_engine(make_settings(WORDCOUNTER_COUNT_WORDS_JOB_LIMIT=2), clock=clock)
        await init_db(engine.db_engine)
        try:
            async with engine.session_maker() as session:
                for page_id in range(1, 6):
                    session.add(Page(id=page_id, title=f"Page {page_id}", content="some words"))
                await session.commit()

            assert await engine.scheduler.maybe_schedule() == ["CountWordsJob"]
            await engine.queue.drain()

            # Each full batch re-queues the job until the backlog is gone
            assert await engine.store.count_needing(engine.predicate) == 0
            status = engine.scheduler.job_status()
            assert status["CountWordsJob"]["runs"] == 3
            assert status["PurgeOrphanedJob"]["enabled"] is False
        finally:
            await engine.close()
