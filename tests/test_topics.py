"""Tests for topic resolution against existing topics."""
import pytest

from insight_pipeline.models import Topic
from insight_pipeline.topics import TopicResolver


@pytest.fixture
def resolver(provider, store):
    return TopicResolver(provider, store, threshold=0.70)


class TestTopicResolver:

    @pytest.mark.asyncio
    async def test_creates_topic_when_none_exist(self, resolver, store):
        topic = await resolver.resolve("WiFi in the library is slow")

        assert topic.name == "Library WiFi Connectivity"
        assert list(store.topics) == [topic.id]

    @pytest.mark.asyncio
    async def test_reuses_near_duplicate(self, resolver, store):
        existing = await store.add_topic(Topic(name="Library WiFi Connectivity"))

        topic = await resolver.resolve("The library wifi keeps dropping during exams")

        assert topic.id == existing.id
        assert len(store.topics) == 1

    @pytest.mark.asyncio
    async def test_creates_topic_for_unrelated_name(self, resolver, store):
        await store.add_topic(Topic(name="Library WiFi Connectivity"))

        topic = await resolver.resolve("There is never any parking near the science building")

        assert topic.name == "Student Parking Shortage"
        assert len(store.topics) == 2

    @pytest.mark.asyncio
    async def test_same_body_resolves_to_same_topic(self, resolver, store, fake_anthropic):
        first = await resolver.resolve("WiFi in the library is slow")
        second = await resolver.resolve("WiFi in the library is slow")

        assert first.id == second.id
        assert len(store.topics) == 1
        assert len(fake_anthropic.calls) == 1

    @pytest.mark.asyncio
    async def test_other_departments_topics_are_ignored(self, resolver, store):
        await store.add_topic(Topic(name="Library WiFi Connectivity", department_id="engineering"))

        topic = await resolver.resolve("WiFi in the library is slow", department_id="arts")

        assert topic.department_id == "arts"
        assert len(store.topics) == 2

    @pytest.mark.asyncio
    async def test_shared_topics_are_in_scope(self, resolver, store):
        shared = await store.add_topic(Topic(name="Library WiFi Connectivity"))

        topic = await resolver.resolve("WiFi in the library is slow", department_id="arts")

        assert topic.id == shared.id

    @pytest.mark.asyncio
    async def test_archived_topics_are_not_reused(self, resolver, store):
        await store.add_topic(Topic(name="Library WiFi Connectivity", is_archived=True))

        await resolver.resolve("WiFi in the library is slow")

        assert len(store.topics) == 2

    @pytest.mark.asyncio
    async def test_existing_names_are_offered_to_the_model(self, resolver, store, fake_anthropic):
        await store.add_topic(Topic(name="Dining Hall Hours"))

        await resolver.resolve("WiFi in the library is slow")

        assert "- Dining Hall Hours" in fake_anthropic.prompts()[0]
