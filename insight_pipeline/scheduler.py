"""Job scheduler: decides when work runs and hands it to the job queue."""
import logging
from datetime import time, timedelta
from enum import Enum

from .job_queue import AsyncioJobQueue, DailyAt, Every, JobQueue
from .jobs import AnalysisJobs
from .models import CollectionKind

logger = logging.getLogger(__name__)


class JobKind(str, Enum):
    PROCESS_INPUT = "process_input"
    PROCESS_PENDING = "process_pending"
    SUMMARIZE_INQUIRY = "summarize_inquiry"
    SUMMARIZE_TOPIC = "summarize_topic"
    SUMMARIZE_ALL_INQUIRIES = "summarize_all_inquiries"
    SUMMARIZE_ALL_TOPICS = "summarize_all_topics"


def register_jobs(queue: AsyncioJobQueue, jobs: AnalysisJobs) -> None:
    """Bind each job kind to the job body that executes it."""
    queue.register(JobKind.PROCESS_INPUT.value, jobs.process_input)
    queue.register(JobKind.PROCESS_PENDING.value, jobs.process_pending)
    queue.register(JobKind.SUMMARIZE_INQUIRY.value, jobs.summarize_inquiry)
    queue.register(JobKind.SUMMARIZE_TOPIC.value, jobs.summarize_topic)
    queue.register(JobKind.SUMMARIZE_ALL_INQUIRIES.value, jobs.summarize_all_inquiries)
    queue.register(JobKind.SUMMARIZE_ALL_TOPICS.value, jobs.summarize_all_topics)


class JobScheduler:
    """Coordinates timing only; every unit of work is delegated to the queue."""

    def __init__(self, queue: JobQueue):
        self.queue = queue

    def start(self) -> None:
        self.queue.start()

    async def stop(self, drain: bool = False) -> None:
        await self.queue.stop(drain=drain)

    async def enqueue_process(self, item_id: str) -> str:
        logger.info("Enqueuing processing for input %s", item_id)
        return await self.queue.enqueue(JobKind.PROCESS_INPUT.value, {"item_id": item_id})

    async def enqueue_summarize(
        self,
        collection_id: str,
        kind: CollectionKind,
        bypass_cache: bool = False,
    ) -> str:
        logger.info("Enqueuing %s summary generation for %s", kind.value, collection_id)
        if kind == CollectionKind.INQUIRY:
            return await self.queue.enqueue(
                JobKind.SUMMARIZE_INQUIRY.value, {"inquiry_id": collection_id}
            )
        return await self.queue.enqueue(
            JobKind.SUMMARIZE_TOPIC.value,
            {"topic_id": collection_id, "bypass_cache": bypass_cache},
        )

    async def schedule_recurring_sweep(self, interval: timedelta = timedelta(minutes=5)) -> None:
        logger.info("Scheduling recurring input processing every %s", interval)
        await self.queue.schedule_recurring(
            JobKind.PROCESS_PENDING.value, None, Every(interval),
            recurring_id="process-pending-inputs",
        )

    async def schedule_recurring_summarize_all(
        self,
        at: time = time(2, 0),
        topics_at: time | None = time(3, 0),
    ) -> None:
        """Daily inquiry summaries at ``at``; topic summaries at ``topics_at`` unless None."""
        logger.info("Scheduling daily inquiry summaries at %s", at.strftime("%H:%M"))
        await self.queue.schedule_recurring(
            JobKind.SUMMARIZE_ALL_INQUIRIES.value, None, DailyAt(at),
            recurring_id="generate-inquiry-summaries",
        )
        if topics_at is not None:
            logger.info("Scheduling daily topic summaries at %s", topics_at.strftime("%H:%M"))
            await self.queue.schedule_recurring(
                JobKind.SUMMARIZE_ALL_TOPICS.value, None, DailyAt(topics_at),
                recurring_id="generate-topic-summaries",
            )

    async def on_item_created(self, item_id: str) -> str | None:
        """Trigger for newly created feedback. Never raises: the sweep is the safety net."""
        try:
            return await self.enqueue_process(item_id)
        except Exception:
            logger.exception("Failed to enqueue processing for input %s; the sweep will pick it up", item_id)
            return None
