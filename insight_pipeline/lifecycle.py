"""Lifecycle of a feedback item through the analysis pipeline.

    awaiting_analysis -> under_analysis -> analyzed_clean

``under_analysis`` only exists while a job holds the item in memory; the store
sees a single write that moves the item straight to ``analyzed_clean`` with
all classification fields. On failure nothing is written, so the item stays
``awaiting_analysis`` and the next sweep picks it up again.
"""
import logging

from .exceptions import InvalidTransitionError
from .models import FeedbackItem, InputKind, InputStatus, utcnow
from .provider import InsightProvider
from .store import RecordStore
from .topics import TopicResolver

logger = logging.getLogger(__name__)

TRANSITIONS = {
    InputStatus.AWAITING_ANALYSIS: {InputStatus.UNDER_ANALYSIS},
    InputStatus.UNDER_ANALYSIS: {InputStatus.ANALYZED_CLEAN, InputStatus.AWAITING_ANALYSIS},
    InputStatus.ANALYZED_CLEAN: set(),
}


def can_transition(current: InputStatus, target: InputStatus) -> bool:
    return target in TRANSITIONS[current]


def transition(item: FeedbackItem, target: InputStatus) -> FeedbackItem:
    """Return a copy of ``item`` in ``target`` status."""
    if not can_transition(item.status, target):
        raise InvalidTransitionError(
            f"Item {item.id} cannot move from {item.status.value} to {target.value}"
        )
    return item.model_copy(update={"status": target})


class InputProcessor:
    """Runs one feedback item through analysis, theme and topic assignment."""

    def __init__(self, store: RecordStore, provider: InsightProvider, resolver: TopicResolver):
        self.store = store
        self.provider = provider
        self.resolver = resolver

    async def process(self, item_id: str) -> FeedbackItem | None:
        """Analyze an item awaiting analysis. Returns the stored result, or None if skipped."""
        item = await self.store.get_item(item_id)
        if item is None:
            logger.warning("Input %s not found", item_id)
            return None

        if item.status != InputStatus.AWAITING_ANALYSIS:
            logger.info("Input %s already processed (status: %s)", item_id, item.status.value)
            return None

        working = transition(item, InputStatus.UNDER_ANALYSIS)

        logger.info("Analyzing input %s", item_id)
        analysis = await self.provider.analyze(working.body, working.kind)
        theme = await self.store.get_or_create_theme(analysis.theme)

        topic_id = working.topic_id
        if working.kind == InputKind.GENERAL:
            logger.info("Resolving topic for input %s", item_id)
            topic = await self.resolver.resolve(working.body, working.department_id)
            topic_id = topic.id

        now = utcnow()
        done = transition(working, InputStatus.ANALYZED_CLEAN).model_copy(update={
            "sentiment": analysis.sentiment,
            "tone": analysis.tone,
            "urgency": analysis.urgency,
            "importance": analysis.importance,
            "clarity": analysis.clarity,
            "quality": analysis.quality,
            "helpfulness": analysis.helpfulness,
            "score": analysis.score,
            "severity": analysis.severity,
            "theme_id": theme.id,
            "topic_id": topic_id,
            "processed_at": now,
            "updated_at": now,
        })
        await self.store.save_item(done)

        logger.info(
            "Processing completed for input %s: sentiment=%s, score=%.2f, topic=%s",
            item_id, analysis.sentiment.value, analysis.score, topic_id,
        )
        return done
