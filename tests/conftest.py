"""Shared fixtures: a scripted stand-in for the Anthropic client and helpers."""
import json
from datetime import timedelta
from types import SimpleNamespace

import pytest

from insight_pipeline.cache import MemoryCache
from insight_pipeline.client import APIClient
from insight_pipeline.ledger import CostLedger, Pricing
from insight_pipeline.provider import InsightProvider
from insight_pipeline.store import InMemoryStore


ANALYSIS_REPLY = json.dumps({
    "sentiment": "negative",
    "tone": "negative",
    "urgency": 0.8,
    "importance": 0.85,
    "clarity": 0.9,
    "quality": 0.8,
    "helpfulness": 0.85,
    "theme": "technology",
})

SUMMARY_REPLY = json.dumps({
    "topics": ["WiFi reliability", "Study spaces"],
    "narrative_sections": {
        "headline_insight": "Library WiFi outages block coursework",
        "response_mix": "Mostly negative",
        "key_takeaways": "Students report repeated disconnects.",
        "risks": "Missed deadlines",
        "opportunities": "Upgrade access points",
    },
    "prioritized_actions": [
        {
            "action": "Replace library access points",
            "impact": "HIGH",
            "challenges": "Budget approval",
            "affected_count": 12,
            "reasoning": "Most complaints mention the library",
        }
    ],
})


def make_response(text: str, input_tokens: int | None = 100, output_tokens: int | None = 50):
    usage = None
    if input_tokens is not None:
        usage = SimpleNamespace(input_tokens=input_tokens, output_tokens=output_tokens)
    return SimpleNamespace(content=[SimpleNamespace(text=text)], usage=usage)


class FakeAnthropic:
    """Mimics ``AsyncAnthropic().messages.create``.

    ``responder`` receives the request kwargs and returns reply text, a full
    response object, or an exception instance to raise.
    """

    def __init__(self, responder):
        self.responder = responder
        self.calls: list[dict] = []
        self.messages = self

    async def create(self, **request):
        self.calls.append(request)
        reply = self.responder(request)
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, str):
            return make_response(reply)
        return reply

    def prompts(self) -> list[str]:
        return [call["messages"][0]["content"] for call in self.calls]


def replies(*texts):
    """Responder returning the given replies in order (the last one repeats)."""
    queue = list(texts)

    def responder(request):
        return queue.pop(0) if len(queue) > 1 else queue[0]

    return responder


def quoted_body(prompt: str) -> str:
    """The feedback text a prompt quotes (first double-quoted block)."""
    start = prompt.index('\n"') + 2
    return prompt[start:prompt.index('"\n', start)]


def scripted_responder(request) -> str:
    """Answer by operation, recognised from the prompt text."""
    prompt = request["messages"][0]["content"]
    if "pieces of student feedback" in prompt:
        return SUMMARY_REPLY

    body = quoted_body(prompt).lower()
    about_wifi = "wifi" in body or "internet" in body
    if "concise topic name" in prompt:
        if about_wifi:
            if "keeps dropping" in body:
                return "Library Wifi Connectivity Issues"
            return "Library WiFi Connectivity"
        if "parking" in body:
            return "Student Parking Shortage"
        return "General Campus Feedback"
    if about_wifi:
        return ANALYSIS_REPLY
    return json.dumps({
        "sentiment": "neutral", "tone": "neutral",
        "urgency": 0.3, "importance": 0.4, "clarity": 0.7,
        "quality": 0.6, "helpfulness": 0.5, "theme": "facilities",
    })


class RecordingSleep:
    """Async sleep replacement that records delays and returns immediately."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def fake_anthropic():
    return FakeAnthropic(scripted_responder)


@pytest.fixture
def api(fake_anthropic, sleep):
    return APIClient(client=fake_anthropic, sleep=sleep)


@pytest.fixture
def ledger(store):
    return CostLedger(store, Pricing(input_per_1k=0.03, output_per_1k=0.06))


@pytest.fixture
def cache():
    return MemoryCache()


@pytest.fixture
def provider(api, cache, ledger):
    return InsightProvider(api, cache, ledger, cache_ttl=timedelta(hours=24))
