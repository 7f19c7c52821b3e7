"""Tests for the job scheduler and job registration."""
from datetime import time, timedelta
from unittest.mock import AsyncMock

import pytest

from insight_pipeline.job_queue import AsyncioJobQueue, DailyAt, Every
from insight_pipeline.jobs import AnalysisJobs
from insight_pipeline.models import CollectionKind
from insight_pipeline.scheduler import JobKind, JobScheduler, register_jobs


@pytest.fixture
def jobs():
    return AsyncMock(spec=AnalysisJobs)


@pytest.fixture
def queue(jobs):
    queue = AsyncioJobQueue(worker_count=1)
    register_jobs(queue, jobs)
    return queue


@pytest.fixture
def scheduler(queue):
    return JobScheduler(queue)


class TestEnqueue:

    @pytest.mark.asyncio
    async def test_enqueue_process_runs_job_body(self, scheduler, queue, jobs):
        job_id = await scheduler.enqueue_process("item-1")

        assert queue.get(job_id).kind == JobKind.PROCESS_INPUT.value
        scheduler.start()
        await queue.join()
        await scheduler.stop()
        jobs.process_input.assert_awaited_once_with(item_id="item-1")

    @pytest.mark.asyncio
    async def test_enqueue_summarize_inquiry(self, scheduler, queue):
        job_id = await scheduler.enqueue_summarize("q1", CollectionKind.INQUIRY)

        record = queue.get(job_id)
        assert record.kind == JobKind.SUMMARIZE_INQUIRY.value
        assert record.payload == {"inquiry_id": "q1"}

    @pytest.mark.asyncio
    async def test_enqueue_summarize_topic(self, scheduler, queue, jobs):
        job_id = await scheduler.enqueue_summarize("t1", CollectionKind.TOPIC, bypass_cache=True)

        assert queue.get(job_id).payload == {"topic_id": "t1", "bypass_cache": True}
        scheduler.start()
        await queue.join()
        await scheduler.stop()
        jobs.summarize_topic.assert_awaited_once_with(topic_id="t1", bypass_cache=True)


class TestRecurring:

    @pytest.mark.asyncio
    async def test_sweep_schedule(self, scheduler, queue):
        await scheduler.schedule_recurring_sweep(timedelta(minutes=5))

        entry = queue.recurring["process-pending-inputs"]
        assert entry.kind == JobKind.PROCESS_PENDING.value
        assert entry.schedule == Every(timedelta(minutes=5))

    @pytest.mark.asyncio
    async def test_daily_summaries(self, scheduler, queue):
        await scheduler.schedule_recurring_summarize_all(at=time(2, 0), topics_at=time(3, 0))

        assert queue.recurring["generate-inquiry-summaries"].schedule == DailyAt(time(2, 0))
        assert queue.recurring["generate-topic-summaries"].schedule == DailyAt(time(3, 0))

    @pytest.mark.asyncio
    async def test_topic_summaries_can_be_disabled(self, scheduler, queue):
        await scheduler.schedule_recurring_summarize_all(topics_at=None)
        assert list(queue.recurring) == ["generate-inquiry-summaries"]


class TestOnItemCreated:

    @pytest.mark.asyncio
    async def test_returns_job_id(self, scheduler, queue):
        job_id = await scheduler.on_item_created("item-1")
        assert queue.get(job_id).payload == {"item_id": "item-1"}

    @pytest.mark.asyncio
    async def test_enqueue_failure_is_swallowed(self, scheduler, queue, caplog):
        queue.enqueue = AsyncMock(side_effect=ConnectionError("queue unavailable"))

        assert await scheduler.on_item_created("item-1") is None
        assert "the sweep will pick it up" in caplog.text
