"""Composition root: builds every pipeline component once, at process start."""
import asyncio
from dataclasses import dataclass
from datetime import timedelta

from .cache import Cache, FileCache, MemoryCache
from .client import APIClient
from .config import Settings
from .job_queue import AsyncioJobQueue
from .jobs import AnalysisJobs
from .ledger import CostLedger, Pricing
from .lifecycle import InputProcessor
from .monitoring import MonitoringView
from .provider import InsightProvider
from .scheduler import JobScheduler, register_jobs
from .store import InMemoryStore, RecordStore
from .summarizer import SummaryAggregator
from .topics import TopicResolver


@dataclass
class Pipeline:
    settings: Settings
    store: RecordStore
    cache: Cache
    ledger: CostLedger
    provider: InsightProvider
    resolver: TopicResolver
    aggregator: SummaryAggregator
    processor: InputProcessor
    jobs: AnalysisJobs
    queue: AsyncioJobQueue
    scheduler: JobScheduler
    monitoring: MonitoringView

    async def schedule_recurring(self) -> None:
        """Register the sweep and the daily summary jobs from settings."""
        await self.scheduler.schedule_recurring_sweep(
            timedelta(minutes=self.settings.sweep_interval_minutes)
        )
        await self.scheduler.schedule_recurring_summarize_all(
            at=self.settings.daily_summary_time,
            topics_at=self.settings.topic_summary_time if self.settings.summarize_topics_daily else None,
        )


def build_pipeline(
    settings: Settings,
    store: RecordStore | None = None,
    api: APIClient | None = None,
    cache: Cache | None = None,
    sleep=asyncio.sleep,
) -> Pipeline:
    store = store or InMemoryStore()
    if cache is None:
        cache = FileCache(settings.cache_dir) if settings.cache_dir else MemoryCache()
    api = api or APIClient.from_settings(settings, sleep=sleep)

    ledger = CostLedger(
        store,
        Pricing(
            input_per_1k=settings.price_per_1k_input,
            output_per_1k=settings.price_per_1k_output,
        ),
    )
    provider = InsightProvider(
        api,
        cache,
        ledger,
        cache_ttl=timedelta(hours=settings.cache_ttl_hours),
        summary_max_tokens=settings.summary_max_tokens,
        summary_sample_size=settings.summary_sample_size,
    )
    resolver = TopicResolver(provider, store, threshold=settings.similarity_threshold)
    aggregator = SummaryAggregator(provider)
    processor = InputProcessor(store, provider, resolver)
    jobs = AnalysisJobs(
        store,
        processor,
        aggregator,
        sweep_batch_size=settings.sweep_batch_size,
        sweep_item_delay=settings.sweep_item_delay,
        summary_item_delay=settings.summary_item_delay,
        sleep=sleep,
    )
    queue = AsyncioJobQueue(
        worker_count=settings.worker_count,
        max_attempts=settings.job_max_attempts,
        retry_delay=settings.job_retry_delay,
    )
    register_jobs(queue, jobs)
    scheduler = JobScheduler(queue)
    monitoring = MonitoringView(ledger, queue, store)

    return Pipeline(
        settings=settings,
        store=store,
        cache=cache,
        ledger=ledger,
        provider=provider,
        resolver=resolver,
        aggregator=aggregator,
        processor=processor,
        jobs=jobs,
        queue=queue,
        scheduler=scheduler,
        monitoring=monitoring,
    )
