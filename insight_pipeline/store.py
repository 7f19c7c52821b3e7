"""Record store interface and an in-memory implementation.

The durable store (feedback items, topics, themes, inquiries, usage records)
lives outside this package. Pipeline code only talks to ``RecordStore``.
``InMemoryStore`` backs the tests and the command-line runner; it hands out
copies so that nothing a caller mutates is persisted without an explicit save.
"""
from abc import ABC, abstractmethod
from datetime import datetime

from .models import (
    FeedbackItem,
    Inquiry,
    InquiryStatus,
    InputStatus,
    Theme,
    ThemeType,
    Topic,
    UsageRecord,
)


class RecordStore(ABC):

    # Feedback items

    @abstractmethod
    async def get_item(self, item_id: str) -> FeedbackItem | None: ...

    @abstractmethod
    async def add_item(self, item: FeedbackItem) -> FeedbackItem: ...

    @abstractmethod
    async def save_item(self, item: FeedbackItem) -> None:
        """Replace the stored item in a single write."""

    @abstractmethod
    async def list_pending_items(self, limit: int) -> list[FeedbackItem]:
        """Unprocessed items awaiting analysis, oldest first."""

    @abstractmethod
    async def list_processed_items(
        self,
        topic_id: str | None = None,
        inquiry_id: str | None = None,
    ) -> list[FeedbackItem]: ...

    @abstractmethod
    async def count_items(
        self,
        status: InputStatus | None = None,
        processed: bool | None = None,
        created_since: datetime | None = None,
    ) -> int: ...

    # Topics and themes

    @abstractmethod
    async def get_topic(self, topic_id: str) -> Topic | None: ...

    @abstractmethod
    async def topics_in_scope(self, department_id: str | None) -> list[Topic]:
        """Non-archived topics owned by ``department_id`` or by no department."""

    @abstractmethod
    async def list_topics(self, include_archived: bool = False) -> list[Topic]: ...

    @abstractmethod
    async def add_topic(self, topic: Topic) -> Topic: ...

    @abstractmethod
    async def save_topic(self, topic: Topic) -> None: ...

    @abstractmethod
    async def get_or_create_theme(self, theme_type: ThemeType) -> Theme: ...

    # Inquiries

    @abstractmethod
    async def get_inquiry(self, inquiry_id: str) -> Inquiry | None: ...

    @abstractmethod
    async def list_inquiries(self, status: InquiryStatus | None = None) -> list[Inquiry]: ...

    @abstractmethod
    async def add_inquiry(self, inquiry: Inquiry) -> Inquiry: ...

    @abstractmethod
    async def save_inquiry(self, inquiry: Inquiry) -> None: ...

    # Usage records (append-only)

    @abstractmethod
    async def append_usage(self, record: UsageRecord) -> None: ...

    @abstractmethod
    async def usage_between(self, start: datetime, end: datetime) -> list[UsageRecord]:
        """Usage records with ``start <= created_at <= end``."""


class InMemoryStore(RecordStore):

    def __init__(self):
        self.items: dict[str, FeedbackItem] = {}
        self.topics: dict[str, Topic] = {}
        self.themes: dict[ThemeType, Theme] = {}
        self.inquiries: dict[str, Inquiry] = {}
        self.usage: list[UsageRecord] = []

    @staticmethod
    def _copy(model):
        return model.model_copy(deep=True) if model is not None else None

    async def get_item(self, item_id):
        return self._copy(self.items.get(item_id))

    async def add_item(self, item):
        self.items[item.id] = self._copy(item)
        return self._copy(item)

    async def save_item(self, item):
        self.items[item.id] = self._copy(item)

    async def list_pending_items(self, limit):
        pending = [
            i for i in self.items.values()
            if i.status == InputStatus.AWAITING_ANALYSIS and i.processed_at is None
        ]
        pending.sort(key=lambda i: i.created_at)
        return [self._copy(i) for i in pending[:limit]]

    async def list_processed_items(self, topic_id=None, inquiry_id=None):
        items = [i for i in self.items.values() if i.processed_at is not None]
        if topic_id is not None:
            items = [i for i in items if i.topic_id == topic_id]
        if inquiry_id is not None:
            items = [i for i in items if i.inquiry_id == inquiry_id]
        items.sort(key=lambda i: i.created_at)
        return [self._copy(i) for i in items]

    async def count_items(self, status=None, processed=None, created_since=None):
        count = 0
        for item in self.items.values():
            if status is not None and item.status != status:
                continue
            if processed is not None and (item.processed_at is not None) != processed:
                continue
            if created_since is not None and item.created_at < created_since:
                continue
            count += 1
        return count

    async def get_topic(self, topic_id):
        return self._copy(self.topics.get(topic_id))

    async def topics_in_scope(self, department_id):
        return [
            self._copy(t) for t in self.topics.values()
            if not t.is_archived and t.department_id in (department_id, None)
        ]

    async def list_topics(self, include_archived=False):
        return [
            self._copy(t) for t in self.topics.values()
            if include_archived or not t.is_archived
        ]

    async def add_topic(self, topic):
        self.topics[topic.id] = self._copy(topic)
        return self._copy(topic)

    async def save_topic(self, topic):
        self.topics[topic.id] = self._copy(topic)

    async def get_or_create_theme(self, theme_type):
        theme = self.themes.get(theme_type)
        if theme is None:
            theme = Theme(type=theme_type, name=theme_type.value.title())
            self.themes[theme_type] = theme
        return self._copy(theme)

    async def get_inquiry(self, inquiry_id):
        return self._copy(self.inquiries.get(inquiry_id))

    async def list_inquiries(self, status=None):
        return [
            self._copy(i) for i in self.inquiries.values()
            if status is None or i.status == status
        ]

    async def add_inquiry(self, inquiry):
        self.inquiries[inquiry.id] = self._copy(inquiry)
        return self._copy(inquiry)

    async def save_inquiry(self, inquiry):
        self.inquiries[inquiry.id] = self._copy(inquiry)

    async def append_usage(self, record):
        self.usage.append(record)

    async def usage_between(self, start, end):
        return [r for r in self.usage if start <= r.created_at <= end]
