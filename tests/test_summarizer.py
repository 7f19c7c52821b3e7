"""Tests for collection summaries and markdown rendering."""
from datetime import datetime, timedelta, timezone

import pytest

from insight_pipeline.models import (
    CollectionKind,
    ExecutiveSummary,
    FeedbackItem,
    Sentiment,
    SuggestedAction,
)
from insight_pipeline.summarizer import (
    PLACEHOLDER_SECTIONS,
    SummaryAggregator,
    collection_cache_key,
    empty_summary,
    summary_to_markdown,
)


def analyzed(body: str, updated_at: datetime) -> FeedbackItem:
    return FeedbackItem(body=body, sentiment=Sentiment.NEGATIVE, updated_at=updated_at)


@pytest.fixture
def aggregator(provider):
    return SummaryAggregator(provider)


@pytest.fixture
def base_time():
    return datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


class TestCollectionCacheKey:

    def test_format(self, base_time):
        items = [analyzed("a", base_time), analyzed("b", base_time + timedelta(minutes=5))]
        assert collection_cache_key(CollectionKind.TOPIC, "t1", items) == \
            "topic_summary_t1_2_20260310090500000000"

    def test_changes_when_item_added_or_updated(self, base_time):
        items = [analyzed("a", base_time)]
        key = collection_cache_key(CollectionKind.INQUIRY, "q1", items)

        added = items + [analyzed("b", base_time)]
        updated = [analyzed("a", base_time + timedelta(seconds=1))]

        assert collection_cache_key(CollectionKind.INQUIRY, "q1", added) != key
        assert collection_cache_key(CollectionKind.INQUIRY, "q1", updated) != key


class TestSummaryAggregator:

    @pytest.mark.asyncio
    async def test_empty_collection_returns_placeholder(self, aggregator, fake_anthropic, store):
        summary = await aggregator.summarize("t1", CollectionKind.TOPIC, [])

        assert summary.narrative_sections == PLACEHOLDER_SECTIONS
        assert summary.topics == []
        assert summary.prioritized_actions == []
        assert fake_anthropic.calls == []
        assert store.usage == []

    @pytest.mark.asyncio
    async def test_summarizes_collection(self, aggregator, fake_anthropic, base_time):
        items = [analyzed("The WiFi keeps dropping", base_time)]

        summary = await aggregator.summarize("t1", CollectionKind.TOPIC, items, label='the topic "WiFi"')

        assert summary.narrative_sections["headline_insight"] == "Library WiFi outages block coursework"
        assert 'for the topic "WiFi"' in fake_anthropic.prompts()[0]

    @pytest.mark.asyncio
    async def test_unchanged_collection_hits_cache(self, aggregator, fake_anthropic, base_time):
        items = [analyzed("The WiFi keeps dropping", base_time)]

        await aggregator.summarize("t1", CollectionKind.TOPIC, items)
        await aggregator.summarize("t1", CollectionKind.TOPIC, items)
        assert len(fake_anthropic.calls) == 1

        await aggregator.summarize("t1", CollectionKind.TOPIC, items, bypass_cache=True)
        assert len(fake_anthropic.calls) == 2

    @pytest.mark.asyncio
    async def test_new_item_invalidates_cache(self, aggregator, fake_anthropic, base_time):
        items = [analyzed("The WiFi keeps dropping", base_time)]
        await aggregator.summarize("t1", CollectionKind.TOPIC, items)

        items.append(analyzed("Internet is down again", base_time + timedelta(hours=1)))
        await aggregator.summarize("t1", CollectionKind.TOPIC, items)

        assert len(fake_anthropic.calls) == 2


class TestMarkdown:

    def test_renders_sections_and_actions(self):
        summary = ExecutiveSummary(
            topics=["WiFi"],
            narrative_sections={
                "headline_insight": "Outages everywhere",
                "response_mix": "",
                "key_takeaways": "Students cannot submit work.",
                "risks": "",
                "opportunities": "",
                "budget_notes": "Within this year's allocation",
            },
            prioritized_actions=[SuggestedAction(action="Replace routers", impact="HIGH", affected_count=7)],
            generated_at=datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc),
        )

        text = summary_to_markdown("Topic: WiFi", summary)

        assert text.startswith("# Topic: WiFi\n**Generated:** 2026-03-10 09:30 UTC")
        assert "## Headline\nOutages everywhere" in text
        assert "## Key Takeaways\nStudents cannot submit work." in text
        assert "## Response Mix" not in text
        assert "## Budget Notes" in text
        assert "### Action 1: Replace routers" in text
        assert "- **Supporting Feedback:** 7" in text
        assert "- **Challenges:** N/A" in text

    def test_placeholder_renders(self):
        text = summary_to_markdown("Inquiry: Housing", empty_summary())
        assert "Insufficient data for analysis" in text
        assert "## Prioritized Actions" not in text
