"""Job queue substrate: fire-and-forget jobs, retries and recurring schedules.

``JobQueue`` is the seam the scheduler talks to. ``AsyncioJobQueue`` runs jobs
on a bounded pool of asyncio workers inside the current process; a
database- or broker-backed queue can implement the same interface.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Awaitable, Callable

from pydantic import BaseModel, Field

from .logging_config import job_id_var
from .models import new_id, utcnow

logger = logging.getLogger(__name__)

Handler = Callable[..., Awaitable[object]]


class JobState(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SCHEDULED = "scheduled"


class JobRecord(BaseModel):
    """Bookkeeping for one enqueued unit of work."""
    id: str = Field(default_factory=new_id)
    kind: str
    payload: dict = Field(default_factory=dict)
    state: JobState = JobState.QUEUED
    attempts: int = 0
    error: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    started_at: datetime | None = None
    finished_at: datetime | None = None


@dataclass(frozen=True)
class Every:
    """Run at a fixed interval."""
    interval: timedelta

    def next_run(self, after: datetime) -> datetime:
        return after + self.interval


@dataclass(frozen=True)
class DailyAt:
    """Run once a day at a fixed time of day (in the clock's timezone)."""
    at: time

    def next_run(self, after: datetime) -> datetime:
        candidate = after.replace(
            hour=self.at.hour, minute=self.at.minute, second=0, microsecond=0
        )
        if candidate <= after:
            candidate += timedelta(days=1)
        return candidate


Schedule = Every | DailyAt


@dataclass
class RecurringJob:
    recurring_id: str
    kind: str
    payload: dict
    schedule: Schedule
    next_run: datetime | None = None


class JobQueue(ABC):

    @abstractmethod
    async def enqueue(self, kind: str, payload: dict | None = None) -> str:
        """Queue one job and return its id."""

    @abstractmethod
    async def schedule_recurring(
        self,
        kind: str,
        payload: dict | None,
        schedule: Schedule,
        recurring_id: str | None = None,
    ) -> None:
        """Register (or replace) a job that is enqueued each time ``schedule`` comes due."""

    def start(self) -> None:
        """Begin executing jobs. Queues drained by an external worker process keep the default."""

    async def stop(self, drain: bool = False) -> None:
        """Stop executing jobs, optionally after finishing the queued ones."""


class AsyncioJobQueue(JobQueue):
    """In-process queue drained by ``worker_count`` asyncio workers.

    Each worker runs one job to completion before taking the next. A job that
    raises is retried up to ``max_attempts`` times, ``retry_delay`` seconds
    apart, and then marked failed. Only the most recent ``max_finished``
    finished records are kept for inspection.
    """

    def __init__(
        self,
        worker_count: int = 2,
        max_attempts: int = 3,
        retry_delay: float = 60.0,
        clock=utcnow,
        sleep=asyncio.sleep,
        max_finished: int = 1000,
    ):
        self.worker_count = worker_count
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._clock = clock
        self._sleep = sleep
        self.max_finished = max_finished

        self._handlers: dict[str, Handler] = {}
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self.jobs: dict[str, JobRecord] = {}
        self.recurring: dict[str, RecurringJob] = {}

        self._workers: list[asyncio.Task] = []
        self._recurring_tasks: dict[str, asyncio.Task] = {}
        self._delayed: set[asyncio.Task] = set()
        self._running: dict[str, asyncio.Task] = {}
        self._cancel_requested: set[str] = set()
        self._finished: deque[str] = deque()

    @property
    def started(self) -> bool:
        return bool(self._workers)

    def register(self, kind: str, handler: Handler) -> None:
        self._handlers[kind] = handler

    async def enqueue(self, kind: str, payload: dict | None = None) -> str:
        if kind not in self._handlers:
            raise ValueError(f"No handler registered for job kind '{kind}'")
        record = JobRecord(kind=kind, payload=dict(payload or {}))
        self.jobs[record.id] = record
        self._queue.put_nowait(record.id)
        logger.debug("Enqueued %s job %s", kind, record.id)
        return record.id

    async def schedule_recurring(self, kind, payload, schedule, recurring_id=None):
        if kind not in self._handlers:
            raise ValueError(f"No handler registered for job kind '{kind}'")
        recurring_id = recurring_id or kind
        self._stop_recurring(recurring_id)
        entry = RecurringJob(recurring_id, kind, dict(payload or {}), schedule)
        entry.next_run = schedule.next_run(self._clock())
        self.recurring[recurring_id] = entry
        if self.started:
            self._start_recurring(entry)
        logger.info("Scheduled recurring job '%s' (%s), next run %s", recurring_id, kind, entry.next_run)

    def start(self) -> None:
        if self.started:
            return
        self._workers = [
            asyncio.create_task(self._worker(n), name=f"job-worker-{n}")
            for n in range(self.worker_count)
        ]
        for entry in self.recurring.values():
            self._start_recurring(entry)
        logger.info("Job queue started with %d workers", self.worker_count)

    async def join(self) -> None:
        """Wait until every queued job (including pending retries) has finished."""
        while True:
            await self._queue.join()
            if not self._delayed:
                return
            await asyncio.wait(set(self._delayed))

    async def stop(self, drain: bool = False) -> None:
        recurring = list(self._recurring_tasks.values())
        for recurring_id in list(self._recurring_tasks):
            self._stop_recurring(recurring_id)
        if drain:
            await self.join()
        tasks = [*recurring, *self._workers, *self._delayed]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._workers = []
        self._delayed.clear()
        logger.info("Job queue stopped")

    def cancel(self, job_id: str) -> bool:
        """Cancel a queued or running job. Returns False if it already finished."""
        record = self.jobs.get(job_id)
        if record is None or record.state in (JobState.SUCCEEDED, JobState.FAILED):
            return False
        task = self._running.get(job_id)
        if task is not None:
            self._cancel_requested.add(job_id)
            task.cancel()
        else:
            self._finish(record, JobState.FAILED, "cancelled")
        return True

    def get(self, job_id: str) -> JobRecord | None:
        return self.jobs.get(job_id)

    def counts(self) -> dict[str, int]:
        counts = {state.value: 0 for state in JobState}
        for record in self.jobs.values():
            counts[record.state.value] += 1
        counts[JobState.SCHEDULED.value] += len(self.recurring)
        return counts

    async def _worker(self, number: int) -> None:
        while True:
            job_id = await self._queue.get()
            try:
                await self._run(job_id)
            except Exception:
                logger.exception("Worker %d crashed while running job %s", number, job_id)
            finally:
                self._queue.task_done()

    async def _run(self, job_id: str) -> None:
        record = self.jobs.get(job_id)
        if record is None or record.state not in (JobState.QUEUED, JobState.SCHEDULED):
            return

        handler = self._handlers[record.kind]
        record.state = JobState.RUNNING
        record.attempts += 1
        record.started_at = self._clock()

        token = job_id_var.set(job_id)
        try:
            task = asyncio.create_task(handler(**record.payload))
            self._running[job_id] = task
            try:
                await task
            except asyncio.CancelledError:
                if job_id not in self._cancel_requested:
                    self._finish(record, JobState.FAILED, "cancelled by shutdown")
                    raise
                self._cancel_requested.discard(job_id)
                logger.warning("Job %s (%s) cancelled", job_id, record.kind)
                self._finish(record, JobState.FAILED, "cancelled")
                return
            except Exception as e:
                self._handle_failure(record, e)
                return
            finally:
                self._running.pop(job_id, None)

            self._finish(record, JobState.SUCCEEDED)
        finally:
            job_id_var.reset(token)

    def _handle_failure(self, record: JobRecord, error: Exception) -> None:
        record.error = f"{type(error).__name__}: {error}"
        if record.attempts < self.max_attempts:
            logger.warning(
                "Job %s (%s) failed on attempt %d/%d, retrying in %.0fs: %s",
                record.id, record.kind, record.attempts, self.max_attempts,
                self.retry_delay, record.error,
            )
            record.state = JobState.SCHEDULED
            task = asyncio.create_task(self._requeue_later(record.id))
            self._delayed.add(task)
            task.add_done_callback(self._delayed.discard)
            return

        logger.error(
            "Job %s (%s) failed after %d attempts: %s",
            record.id, record.kind, record.attempts, record.error,
            exc_info=error,
        )
        self._finish(record, JobState.FAILED, record.error)

    async def _requeue_later(self, job_id: str) -> None:
        await self._sleep(self.retry_delay)
        self._queue.put_nowait(job_id)

    def _finish(self, record: JobRecord, state: JobState, error: str | None = None) -> None:
        record.state = state
        record.error = error
        record.finished_at = self._clock()
        self._finished.append(record.id)
        while len(self._finished) > self.max_finished:
            self.jobs.pop(self._finished.popleft(), None)

    def _start_recurring(self, entry: RecurringJob) -> None:
        self._recurring_tasks[entry.recurring_id] = asyncio.create_task(
            self._recurring_loop(entry), name=f"recurring-{entry.recurring_id}"
        )

    def _stop_recurring(self, recurring_id: str) -> None:
        task = self._recurring_tasks.pop(recurring_id, None)
        if task is not None:
            task.cancel()

    async def _recurring_loop(self, entry: RecurringJob) -> None:
        while True:
            now = self._clock()
            entry.next_run = entry.schedule.next_run(now)
            await self._sleep(max((entry.next_run - now).total_seconds(), 0.0))
            try:
                await self.enqueue(entry.kind, entry.payload)
            except Exception:
                logger.exception("Failed to enqueue recurring job '%s'", entry.recurring_id)
