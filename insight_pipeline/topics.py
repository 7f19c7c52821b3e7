"""Topic resolution: reuse a near-duplicate topic or mint a new one."""
import logging

from .models import Topic
from .provider import InsightProvider
from .similarity import similarity
from .store import RecordStore

logger = logging.getLogger(__name__)


def find_best_match(
    topics: list[Topic],
    name: str,
    threshold: float,
) -> tuple[Topic | None, float]:
    """Best candidate scoring at least ``threshold``; exact (case-insensitive) names win outright."""
    wanted = name.strip().lower()
    best, best_score = None, 0.0
    for topic in topics:
        if topic.name.strip().lower() == wanted:
            return topic, 1.0
        score = similarity(topic.name, name)
        if score >= threshold and score > best_score:
            best, best_score = topic, score
    return best, best_score


class TopicResolver:

    def __init__(self, provider: InsightProvider, store: RecordStore, threshold: float = 0.70):
        self.provider = provider
        self.store = store
        self.threshold = threshold

    async def resolve(self, body: str, department_id: str | None = None) -> Topic:
        """Return the existing topic the body belongs to, creating one if none is close enough."""
        candidates = await self.store.topics_in_scope(department_id)
        proposed = await self.provider.propose_topic(body, [t.name for t in candidates])

        match, score = find_best_match(candidates, proposed, self.threshold)
        if match is not None:
            logger.info(
                "Found existing topic '%s' for '%s' (similarity %.2f)",
                match.name, proposed, score,
            )
            return match

        topic = await self.store.add_topic(Topic(name=proposed, department_id=department_id))
        logger.info("Created new topic: %s", topic.name)
        return topic
