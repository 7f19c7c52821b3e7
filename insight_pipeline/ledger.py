"""Cost ledger: append-only provider usage log and aggregation queries."""
import calendar
import logging
from datetime import datetime, timedelta, timezone

import pandas as pd
from pydantic import BaseModel

from .models import UsageRecord, UsageStats, utcnow
from .store import RecordStore

logger = logging.getLogger(__name__)


class Pricing(BaseModel):
    """Price per 1K tokens for one model."""
    input_per_1k: float = 0.03
    output_per_1k: float = 0.06

    def cost(self, prompt_tokens: int, completion_tokens: int) -> float:
        return (
            prompt_tokens / 1000 * self.input_per_1k
            + completion_tokens / 1000 * self.output_per_1k
        )


class CostProjection(BaseModel):
    month: str
    days_elapsed: int
    days_remaining: int
    cost_to_date: float
    average_daily_cost: float
    projected_month_cost: float
    currency: str = "USD"


class CostLedger:
    """Records one UsageRecord per completed provider call and answers cost queries."""

    def __init__(
        self,
        store: RecordStore,
        pricing: Pricing | None = None,
        operation_pricing: dict[str, Pricing] | None = None,
    ):
        self.store = store
        self.pricing = pricing or Pricing()
        self.operation_pricing = operation_pricing or {}

    def price(self, operation: str, prompt_tokens: int, completion_tokens: int) -> float:
        pricing = self.operation_pricing.get(operation, self.pricing)
        return pricing.cost(prompt_tokens, completion_tokens)

    async def record(
        self,
        operation: str,
        prompt_tokens: int,
        completion_tokens: int,
        cost: float | None = None,
        metadata: dict | None = None,
    ) -> UsageRecord | None:
        """Append a usage record. A failed write is logged, never raised."""
        if cost is None:
            cost = self.price(operation, prompt_tokens, completion_tokens)
        record = UsageRecord(
            operation=operation,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            cost=cost,
            metadata=metadata,
        )
        try:
            await self.store.append_usage(record)
        except Exception:
            logger.exception("Failed to log provider cost for operation: %s", operation)
            return None

        logger.info(
            "Provider cost tracked: %s - $%.4f (%d tokens)",
            operation, cost, record.total_tokens,
        )
        return record

    async def total_cost(self, start: datetime, end: datetime) -> float:
        records = await self.store.usage_between(start, end)
        return float(sum(r.cost for r in records))

    async def usage_stats(self, start: datetime, end: datetime) -> UsageStats:
        records = await self.store.usage_between(start, end)
        if not records:
            return UsageStats()

        df = pd.DataFrame(
            [r.model_dump(include={"operation", "prompt_tokens", "completion_tokens", "cost"}) for r in records]
        )
        by_operation = df.groupby("operation")["cost"].agg(["sum", "count"])

        prompt_tokens = int(df["prompt_tokens"].sum())
        completion_tokens = int(df["completion_tokens"].sum())
        return UsageStats(
            request_count=len(df),
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            cost_total=float(df["cost"].sum()),
            average_cost_per_request=float(df["cost"].mean()),
            cost_per_operation={op: float(v) for op, v in by_operation["sum"].items()},
            requests_per_operation={op: int(v) for op, v in by_operation["count"].items()},
        )

    async def monthly_projection(self, now: datetime | None = None) -> CostProjection:
        """Extrapolate month-to-date spend linearly to the end of the month."""
        now = now or utcnow()
        start_of_month = datetime(now.year, now.month, 1, tzinfo=now.tzinfo or timezone.utc)
        cost_to_date = await self.total_cost(start_of_month, now)

        days_in_month = calendar.monthrange(now.year, now.month)[1]
        days_elapsed = now.day
        average_daily = cost_to_date / days_elapsed if days_elapsed else 0.0
        return CostProjection(
            month=start_of_month.strftime("%Y-%m"),
            days_elapsed=days_elapsed,
            days_remaining=days_in_month - days_elapsed,
            cost_to_date=cost_to_date,
            average_daily_cost=average_daily,
            projected_month_cost=average_daily * days_in_month,
        )


def day_bounds(day: datetime) -> tuple[datetime, datetime]:
    """Inclusive [00:00, 23:59:59.999999] range of the UTC day containing ``day``."""
    start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return start, start + timedelta(days=1) - timedelta(microseconds=1)
