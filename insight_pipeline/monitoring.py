"""Read-only operational views over the cost ledger, job queue and record store."""
from datetime import datetime, timedelta, timezone

from .job_queue import AsyncioJobQueue, JobState
from .ledger import CostLedger, day_bounds
from .models import InputStatus, utcnow
from .store import RecordStore


class MonitoringView:
    """Data behind the admin dashboard. Never mutates anything."""

    def __init__(self, ledger: CostLedger, queue: AsyncioJobQueue, store: RecordStore, clock=utcnow):
        self.ledger = ledger
        self.queue = queue
        self.store = store
        self._clock = clock

    def job_states(self) -> dict[str, int]:
        return self.queue.counts()

    def recent_failures(self, limit: int = 20) -> list[dict]:
        failed = [j for j in self.queue.jobs.values() if j.state == JobState.FAILED]
        failed.sort(key=lambda j: j.finished_at or j.created_at, reverse=True)
        return [
            {"id": j.id, "kind": j.kind, "attempts": j.attempts, "error": j.error}
            for j in failed[:limit]
        ]

    async def today_cost(self) -> dict:
        start, end = day_bounds(self._clock())
        return {
            "date": start.strftime("%Y-%m-%d"),
            "total_cost": await self.ledger.total_cost(start, end),
            "currency": "USD",
        }

    def _range(self, start: datetime | None, end: datetime | None) -> tuple[datetime, datetime]:
        end = end or self._clock()
        start = start or end - timedelta(days=7)
        return start, end

    async def cost_range(self, start: datetime | None = None, end: datetime | None = None) -> dict:
        start, end = self._range(start, end)
        return {
            "start_date": start.strftime("%Y-%m-%d"),
            "end_date": end.strftime("%Y-%m-%d"),
            "total_cost": await self.ledger.total_cost(start, end),
            "currency": "USD",
            "days_span": (end - start).days,
        }

    async def usage_stats(self, start: datetime | None = None, end: datetime | None = None) -> dict:
        start, end = self._range(start, end)
        stats = await self.ledger.usage_stats(start, end)
        by_operation = sorted(
            stats.requests_per_operation.items(), key=lambda kv: kv[1], reverse=True
        )
        return {
            "period": {
                "start_date": start.strftime("%Y-%m-%d"),
                "end_date": end.strftime("%Y-%m-%d"),
                "days_span": (end - start).days,
            },
            "summary": stats.model_dump(exclude={"cost_per_operation", "requests_per_operation"}),
            "by_operation": [
                {
                    "operation": op,
                    "request_count": count,
                    "cost": stats.cost_per_operation.get(op, 0.0),
                }
                for op, count in by_operation
            ],
        }

    async def monthly_usage(self) -> dict:
        now = self._clock()
        start = datetime(now.year, now.month, 1, tzinfo=timezone.utc)
        stats = await self.ledger.usage_stats(start, now)
        projection = await self.ledger.monthly_projection(now)
        return {
            "month": projection.month,
            "total_requests": stats.request_count,
            "total_cost": stats.cost_total,
            "average_daily_cost": projection.average_daily_cost,
            "projected_month_cost": projection.projected_month_cost,
            "breakdown": dict(stats.requests_per_operation),
        }

    async def cost_projection(self) -> dict:
        return (await self.ledger.monthly_projection(self._clock())).model_dump()

    async def processing_stats(self) -> dict:
        today, _ = day_bounds(self._clock())
        total = await self.store.count_items()
        processed = await self.store.count_items(processed=True)
        return {
            "total_inputs": total,
            "processed_inputs": processed,
            "pending_inputs": await self.store.count_items(status=InputStatus.AWAITING_ANALYSIS),
            "today_inputs": await self.store.count_items(created_since=today),
            "processing_rate": processed / total if total else 0.0,
        }
