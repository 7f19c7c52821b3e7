"""Units of background work executed by the job queue."""
import asyncio
import logging

from .lifecycle import InputProcessor
from .models import CollectionKind, InquiryStatus, utcnow
from .store import RecordStore
from .summarizer import SummaryAggregator

logger = logging.getLogger(__name__)


class AnalysisJobs:
    """Job bodies: process one item, sweep pending items, generate summaries.

    Single-target jobs let failures propagate so the queue can mark the job
    failed and retry it. Batch jobs catch and log per-target failures and carry
    on with the rest of the batch.
    """

    def __init__(
        self,
        store: RecordStore,
        processor: InputProcessor,
        aggregator: SummaryAggregator,
        sweep_batch_size: int = 50,
        sweep_item_delay: float = 1.0,
        summary_item_delay: float = 2.0,
        sleep=asyncio.sleep,
    ):
        self.store = store
        self.processor = processor
        self.aggregator = aggregator
        self.sweep_batch_size = sweep_batch_size
        self.sweep_item_delay = sweep_item_delay
        self.summary_item_delay = summary_item_delay
        self._sleep = sleep

    async def process_input(self, item_id: str) -> None:
        await self.processor.process(item_id)

    async def process_pending(self) -> int:
        """Process up to one batch of items still awaiting analysis, oldest first."""
        logger.info("Starting batch processing of pending inputs")
        pending = await self.store.list_pending_items(self.sweep_batch_size)
        if not pending:
            logger.info("No pending inputs to process")
            return 0

        logger.info("Found %d pending inputs to process", len(pending))
        processed = 0
        for index, item in enumerate(pending):
            if index:
                # Keep under the provider's rate limit
                await self._sleep(self.sweep_item_delay)
            try:
                if await self.processor.process(item.id) is not None:
                    processed += 1
            except Exception:
                logger.exception("Failed to process input %s in batch", item.id)

        logger.info("Batch processing completed: %d/%d processed", processed, len(pending))
        return processed

    async def summarize_collection(
        self,
        collection_id: str,
        kind: CollectionKind,
        bypass_cache: bool = False,
    ) -> None:
        if kind == CollectionKind.INQUIRY:
            await self.summarize_inquiry(collection_id)
        else:
            await self.summarize_topic(collection_id, bypass_cache=bypass_cache)

    async def summarize_inquiry(self, inquiry_id: str) -> None:
        logger.info("Generating summary for inquiry %s", inquiry_id)
        inquiry = await self.store.get_inquiry(inquiry_id)
        if inquiry is None:
            logger.warning("Inquiry %s not found", inquiry_id)
            return

        items = await self.store.list_processed_items(inquiry_id=inquiry_id)
        if not items:
            logger.info("No processed inputs found for inquiry %s", inquiry_id)
            return

        summary = await self.aggregator.summarize(
            inquiry_id, CollectionKind.INQUIRY, items, label=f'the inquiry "{inquiry.title}"'
        )
        now = utcnow()
        await self.store.save_inquiry(inquiry.model_copy(update={
            "summary": summary,
            "summary_generated_at": now,
            "updated_at": now,
        }))
        logger.info("Generated summary for inquiry %s with %d responses", inquiry_id, len(items))

    async def summarize_topic(self, topic_id: str, bypass_cache: bool = False) -> None:
        logger.info("Generating summary for topic %s", topic_id)
        topic = await self.store.get_topic(topic_id)
        if topic is None:
            logger.warning("Topic %s not found", topic_id)
            return

        items = await self.store.list_processed_items(topic_id=topic_id)
        if not items:
            logger.info("No processed inputs found for topic %s", topic_id)
            return

        summary = await self.aggregator.summarize(
            topic_id,
            CollectionKind.TOPIC,
            items,
            label=f'the topic "{topic.name}"',
            bypass_cache=bypass_cache,
        )
        now = utcnow()
        await self.store.save_topic(topic.model_copy(update={
            "summary": summary,
            "summary_generated_at": now,
            "updated_at": now,
        }))
        logger.info(
            "Generated summary for topic %s (%s) with %d inputs",
            topic_id, topic.name, len(items),
        )

    async def summarize_all_inquiries(self) -> int:
        """Summarize every inquiry that is accepting responses."""
        logger.info("Starting batch generation of inquiry summaries")
        inquiries = await self.store.list_inquiries(status=InquiryStatus.ACTIVE)
        if not inquiries:
            logger.info("No active inquiries found")
            return 0
        ids = [i.id for i in inquiries]
        return await self._summarize_each(ids, self.summarize_inquiry, "inquiry")

    async def summarize_all_topics(self) -> int:
        """Summarize every non-archived topic."""
        logger.info("Starting batch generation of topic summaries")
        topics = await self.store.list_topics(include_archived=False)
        if not topics:
            logger.info("No active topics found")
            return 0
        ids = [t.id for t in topics]
        return await self._summarize_each(ids, self.summarize_topic, "topic")

    async def _summarize_each(self, ids: list[str], summarize, label: str) -> int:
        logger.info("Found %d active %s collections", len(ids), label)
        succeeded = 0
        for index, collection_id in enumerate(ids):
            if index:
                await self._sleep(self.summary_item_delay)
            try:
                await summarize(collection_id)
                succeeded += 1
            except Exception:
                logger.exception("Failed to generate summary for %s %s", label, collection_id)

        logger.info("Batch %s summary generation completed: %d/%d", label, succeeded, len(ids))
        return succeeded
