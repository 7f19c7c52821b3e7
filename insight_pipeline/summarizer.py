"""Summary aggregation over analyzed feedback collections."""
import logging

from .models import CollectionKind, ExecutiveSummary, FeedbackItem
from .parsing import NARRATIVE_SECTIONS
from .provider import InsightProvider

logger = logging.getLogger(__name__)

PLACEHOLDER_SECTIONS = {
    "headline_insight": "Insufficient data for analysis",
    "response_mix": "No responses available",
    "key_takeaways": "Not enough feedback to generate insights",
    "risks": "N/A",
    "opportunities": "N/A",
}


def empty_summary() -> ExecutiveSummary:
    """Fixed "no data yet" summary returned for empty collections."""
    return ExecutiveSummary(narrative_sections=dict(PLACEHOLDER_SECTIONS))


def collection_cache_key(
    kind: CollectionKind,
    collection_id: str,
    items: list[FeedbackItem],
) -> str:
    """Key that changes whenever an item is added to or updated in the collection."""
    latest = max(item.updated_at for item in items)
    return f"{kind.value}_summary_{collection_id}_{len(items)}_{latest:%Y%m%d%H%M%S%f}"


class SummaryAggregator:

    def __init__(self, provider: InsightProvider):
        self.provider = provider

    async def summarize(
        self,
        collection_id: str,
        kind: CollectionKind,
        items: list[FeedbackItem],
        label: str | None = None,
        bypass_cache: bool = False,
    ) -> ExecutiveSummary:
        if not items:
            logger.info("No items in %s %s, returning placeholder summary", kind.value, collection_id)
            return empty_summary()

        return await self.provider.summarize(
            items,
            collection_label=label or f"{kind.value} {collection_id}",
            cache_key=collection_cache_key(kind, collection_id, items),
            bypass_cache=bypass_cache,
        )


def summary_to_markdown(title: str, summary: ExecutiveSummary) -> str:
    """Render an executive summary as a markdown report."""
    sections = summary.narrative_sections
    lines = [
        f"# {title}",
        f"**Generated:** {summary.generated_at:%Y-%m-%d %H:%M} UTC\n",
    ]

    if sections.get("headline_insight"):
        lines.extend(["## Headline", sections["headline_insight"], ""])

    if summary.topics:
        lines.append("## Topics")
        lines.extend(f"- {t}" for t in summary.topics)
        lines.append("")

    for name in NARRATIVE_SECTIONS:
        if name == "headline_insight" or not sections.get(name):
            continue
        lines.extend([f"## {name.replace('_', ' ').title()}", sections[name], ""])

    extra = [k for k in sections if k not in NARRATIVE_SECTIONS and sections[k]]
    for name in extra:
        lines.extend([f"## {name.replace('_', ' ').title()}", sections[name], ""])

    if summary.prioritized_actions:
        lines.append("## Prioritized Actions")
        for i, action in enumerate(summary.prioritized_actions, 1):
            lines.extend([
                f"### Action {i}: {action.action}",
                f"- **Impact:** {action.impact}",
                f"- **Challenges:** {action.challenges or 'N/A'}",
                f"- **Supporting Feedback:** {action.affected_count}",
                f"- **Reasoning:** {action.reasoning or 'N/A'}",
                "",
            ])

    return "\n".join(lines)
