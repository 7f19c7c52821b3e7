"""Provider adapter: cached, cost-tracked calls for analysis, topic naming and summaries."""
import logging
from collections import Counter
from datetime import timedelta

from .cache import Cache, make_cache_key
from .client import APIClient, Completion
from .exceptions import ProviderResponseError
from .ledger import CostLedger
from .models import (
    AnalysisResult,
    ExecutiveSummary,
    FeedbackItem,
    InputKind,
    Sentiment,
)
from .parsing import MAX_ACTIONS, ParseError, clean_topic_name, parse_analysis, parse_summary
from .prompts import (
    ANALYZE_GENERAL_PROMPT,
    ANALYZE_INQUIRY_PROMPT,
    SUMMARY_PROMPT,
    SYSTEM_PROMPT,
    TOPIC_PROMPT,
)

logger = logging.getLogger(__name__)

OP_ANALYSIS = "input_analysis"
OP_TOPIC = "topic_generation"
OP_SUMMARY = "summary_generation"

FALLBACK_TOPIC_NAME = "General Feedback"


class InsightProvider:
    """Wraps every call to the language model.

    Each operation checks the cache first; a hit costs nothing and writes no
    usage record. A miss goes through ``APIClient`` (retry/backoff/timeout),
    records the token spend, caches the parsed result and returns it.
    """

    def __init__(
        self,
        api: APIClient,
        cache: Cache,
        ledger: CostLedger,
        cache_ttl: timedelta = timedelta(hours=24),
        summary_max_tokens: int = 3000,
        summary_sample_size: int = 50,
    ):
        self.api = api
        self.cache = cache
        self.ledger = ledger
        self.cache_ttl = cache_ttl
        self.summary_max_tokens = summary_max_tokens
        self.summary_sample_size = summary_sample_size

    async def analyze(self, body: str, kind: InputKind) -> AnalysisResult:
        """Classify one feedback body."""
        cache_key = make_cache_key(OP_ANALYSIS, body, kind.value)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info("Using cached analysis for input")
            return AnalysisResult.model_validate_json(cached)

        template = ANALYZE_GENERAL_PROMPT if kind == InputKind.GENERAL else ANALYZE_INQUIRY_PROMPT
        completion = await self.api.complete(
            template.format(body=body), system=SYSTEM_PROMPT, operation=OP_ANALYSIS
        )
        await self._track(OP_ANALYSIS, completion, {"kind": kind.value})

        parsed = parse_analysis(completion.text)
        if isinstance(parsed, ParseError):
            logger.error("Unparseable analysis reply (%s): %.200s", parsed.reason, parsed.raw_text)
            raise ProviderResponseError(f"Failed to parse analysis: {parsed.reason}", parsed.raw_text)

        analysis = parsed.value
        logger.info(
            "Parsed analysis: sentiment=%s, score=%.2f, severity=%s",
            analysis.sentiment.value, analysis.score, analysis.severity.name,
        )
        self.cache.set(cache_key, analysis.model_dump_json(), self.cache_ttl)
        return analysis

    async def propose_topic(self, body: str, existing_topic_names: list[str]) -> str:
        """Ask the model for a short topic name, offering existing names for reuse."""
        cache_key = make_cache_key(OP_TOPIC, body)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info("Using cached topic name '%s'", cached)
            return cached

        existing = "\n".join(f"- {name}" for name in existing_topic_names) or "(none yet)"
        completion = await self.api.complete(
            TOPIC_PROMPT.format(body=body, existing_topics=existing),
            system=SYSTEM_PROMPT,
            max_tokens=50,
            operation=OP_TOPIC,
        )
        await self._track(OP_TOPIC, completion)

        name = clean_topic_name(completion.text)
        if not name:
            logger.warning("Empty topic name from provider, using '%s'", FALLBACK_TOPIC_NAME)
            name = FALLBACK_TOPIC_NAME
        self.cache.set(cache_key, name, self.cache_ttl)
        return name

    async def summarize(
        self,
        items: list[FeedbackItem],
        collection_label: str = "a feedback collection",
        cache_key: str | None = None,
        bypass_cache: bool = False,
    ) -> ExecutiveSummary:
        """Produce an executive summary over (a capped sample of) the items."""
        bodies = [item.body for item in items]
        if cache_key is None:
            cache_key = make_cache_key(OP_SUMMARY, "\n".join(bodies))

        if not bypass_cache:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.info("Using cached summary for %s", collection_label)
                return ExecutiveSummary.model_validate_json(cached)

        completion = await self.api.complete(
            self._summary_prompt(items, collection_label),
            system=SYSTEM_PROMPT,
            max_tokens=self.summary_max_tokens,
            operation=OP_SUMMARY,
        )
        await self._track(OP_SUMMARY, completion, {"items": len(items)})

        parsed = parse_summary(completion.text)
        if isinstance(parsed, ParseError):
            logger.error("Unparseable summary reply (%s): %.200s", parsed.reason, parsed.raw_text)
            raise ProviderResponseError(f"Failed to parse summary: {parsed.reason}", parsed.raw_text)

        summary = parsed.value
        logger.info(
            "Parsed executive summary with %d topics and %d actions",
            len(summary.topics), len(summary.prioritized_actions),
        )
        self.cache.set(cache_key, summary.model_dump_json(), self.cache_ttl)
        return summary

    def _summary_prompt(self, items: list[FeedbackItem], collection_label: str) -> str:
        total = len(items)
        sample = items[:self.summary_sample_size]
        sentiments = Counter(item.sentiment for item in items)

        def pct(count: int) -> float:
            return count * 100.0 / total if total else 0.0

        return SUMMARY_PROMPT.format(
            item_count=total,
            collection_label=collection_label,
            positive_count=sentiments[Sentiment.POSITIVE],
            positive_pct=pct(sentiments[Sentiment.POSITIVE]),
            neutral_count=sentiments[Sentiment.NEUTRAL],
            neutral_pct=pct(sentiments[Sentiment.NEUTRAL]),
            negative_count=sentiments[Sentiment.NEGATIVE],
            negative_pct=pct(sentiments[Sentiment.NEGATIVE]),
            sample_count=len(sample),
            samples="\n".join(f"- {item.body}" for item in sample),
            max_actions=MAX_ACTIONS,
        )

    async def _track(self, operation: str, completion: Completion, metadata: dict | None = None) -> None:
        if completion.estimated_usage:
            metadata = {**(metadata or {}), "estimated_usage": True}
        await self.ledger.record(
            operation,
            completion.prompt_tokens,
            completion.completion_tokens,
            metadata=metadata,
        )
