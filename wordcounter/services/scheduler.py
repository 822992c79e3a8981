"""Background jobs and the save-triggered scheduler that throttles them.

``JobScheduler.maybe_schedule`` is cheap enough to call on every page save:
each registered job is enqueued at most once per interval, gated by a
throttle ticket in the object cache. Ticket expiry re-arms the trigger.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional

from wordcounter.config.logger import app_logger, log_performance
from wordcounter.errors import StoreUnavailableError
from wordcounter.models.aggregates import ThrottleTicket
from wordcounter.models.reconciliation import CountMode, CountTaskOptions
from wordcounter.services.cache import ObjectCache, make_key
from wordcounter.services.tasks import CountWordsTask, PurgeOrphanedTask

HISTORY_SIZE = 20


class Job(ABC):
    """A unit of background work, deduplicated in the queue by ``name``."""

    name: str = "Job"
    job_type: str = "job"

    @abstractmethod
    async def run(self) -> bool:
        """Run once; return True when the job should run again right away."""


class CountWordsJob(Job):
    name = "CountWordsJob"
    job_type = "WordCounterCountWords"

    def __init__(self, task_factory: Callable[[], CountWordsTask], limit: int):
        self._task_factory = task_factory
        self.limit = limit

    async def run(self) -> bool:
        if self.limit <= 0:
            return False
        task = self._task_factory()
        result = await task.run(CountTaskOptions(mode=CountMode.INCREMENTAL, limit=self.limit))
        if result.errors:
            app_logger.warning(f"{self.name} finished with {result.errors} errors")
        # A full batch means more pages are probably waiting
        return result.processed >= self.limit


class PurgeOrphanedJob(Job):
    name = "PurgeOrphanedJob"
    job_type = "WordCounterPurgeOrphaned"

    def __init__(self, task_factory: Callable[[], PurgeOrphanedTask], limit: int):
        self._task_factory = task_factory
        self.limit = limit

    async def run(self) -> bool:
        if self.limit <= 0:
            return False
        result = await self._task_factory().run(limit=self.limit)
        return result.deleted >= self.limit


@dataclass
class JobRecord:
    name: str
    started_at: float
    finished_at: Optional[float] = None
    ok: Optional[bool] = None
    error: Optional[str] = None


@dataclass
class _JobStats:
    runs: int = 0
    failures: int = 0
    history: Deque[JobRecord] = field(default_factory=lambda: deque(maxlen=HISTORY_SIZE))


class AsyncJobQueue:
    """In-process job queue running jobs as asyncio tasks.

    A job whose name is already pending or running is dropped on push.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._pending: Dict[str, asyncio.Task] = {}
        self._job_types: Dict[str, str] = {}
        self._stats: Dict[str, _JobStats] = {}

    def push(self, job: Job) -> bool:
        """Schedule ``job`` on the running event loop; False if it is a duplicate."""
        current = self._pending.get(job.name)
        if current is not None and not current.done():
            app_logger.debug(f"Job {job.name} already queued, skipping")
            return False

        loop = asyncio.get_running_loop()
        self._job_types[job.name] = job.job_type
        self._pending[job.name] = loop.create_task(self._run(job), name=f"wordcounter-{job.name}")
        app_logger.info(f"Queued job {job.name}")
        return True

    async def _run(self, job: Job) -> None:
        stats = self._stats.setdefault(job.name, _JobStats())
        record = JobRecord(name=job.name, started_at=self._clock())
        stats.history.append(record)
        started = time.perf_counter()
        again = False
        try:
            again = await job.run()
            record.ok = True
        except Exception as e:
            # Background jobs have no caller to propagate to
            record.ok = False
            record.error = str(e)
            stats.failures += 1
            app_logger.exception(f"Job {job.name} failed: {e}")
        finally:
            stats.runs += 1
            record.finished_at = self._clock()
            self._pending.pop(job.name, None)
            log_performance(f"job.{job.name}", time.perf_counter() - started)

        if again:
            app_logger.info(f"Job {job.name} used its full limit, scheduling next run")
            self.push(job)

    def pending(self) -> List[str]:
        return [name for name, task in self._pending.items() if not task.done()]

    async def drain(self) -> None:
        """Wait until no job is pending, including jobs re-queued meanwhile."""
        while self._pending:
            await asyncio.gather(*list(self._pending.values()), return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._pending.values()):
            task.cancel()
        await asyncio.gather(*list(self._pending.values()), return_exceptions=True)
        self._pending.clear()

    def job_status(self) -> Dict[str, Dict[str, Any]]:
        status: Dict[str, Dict[str, Any]] = {}
        for name in sorted(set(self._job_types) | set(self._stats)):
            stats = self._stats.get(name, _JobStats())
            last = stats.history[-1] if stats.history else None
            status[name] = {
                "type": self._job_types.get(name, ""),
                "size": 1 if name in self.pending() else 0,
                "runs": stats.runs,
                "failures": stats.failures,
                "last_started_at": last.started_at if last else None,
                "last_finished_at": last.finished_at if last else None,
                "last_error": last.error if last else None,
            }
        return status


@dataclass(frozen=True)
class ScheduledJob:
    """Registration of a throttled job: how to build it and how often it may run."""

    name: str
    factory: Callable[[], Job]
    limit: int
    interval: int


class JobScheduler:
    def __init__(self, cache: ObjectCache, queue: AsyncJobQueue, clock: Callable[[], float] = time.time):
        self._cache = cache
        self._queue = queue
        self._clock = clock
        self._jobs: Dict[str, ScheduledJob] = {}

    @property
    def queue(self) -> AsyncJobQueue:
        return self._queue

    def register(self, job: ScheduledJob) -> None:
        self._jobs[job.name] = job

    def registered(self) -> List[ScheduledJob]:
        return list(self._jobs.values())

    async def maybe_schedule(self) -> List[str]:
        """Enqueue every enabled job whose throttle ticket has expired.

        Returns the names of the jobs this call enqueued. A cache outage skips
        the job for this call and never raises.
        """
        scheduled = []
        for job in self._jobs.values():
            if job.limit <= 0:
                continue

            ticket = ThrottleTicket(
                task_name=job.name,
                last_triggered_at=self._clock(),
                cooldown_seconds=job.interval,
            )
            try:
                armed = await self._cache.add(make_key("job", job.name), ticket.model_dump(), job.interval)
            except StoreUnavailableError as e:
                app_logger.warning(f"Could not check throttle for job <{job.name}>: {e}")
                continue
            if not armed:
                continue

            # The ticket stays even if the push fails; it expires on schedule
            if self.schedule_next(job.name):
                scheduled.append(job.name)
        return scheduled

    def schedule_next(self, name: str) -> bool:
        job = self._jobs.get(name)
        if job is None:
            app_logger.warning(f"Could not schedule job <{name}>")
            return False
        try:
            return self._queue.push(job.factory())
        except RuntimeError as e:
            app_logger.error(f"Could not enqueue job <{name}>: {e}")
            return False

    def job_status(self) -> Dict[str, Dict[str, Any]]:
        status = self._queue.job_status()
        for job in self._jobs.values():
            entry = status.setdefault(
                job.name,
                {"type": "", "size": 0, "runs": 0, "failures": 0,
                 "last_started_at": None, "last_finished_at": None, "last_error": None},
            )
            entry.update(enabled=job.limit > 0, limit=job.limit, interval=job.interval)
        return status
