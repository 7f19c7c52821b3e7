"""Data models for feedback items, topics, usage records and summaries."""
from datetime import datetime, timezone
from enum import Enum, IntEnum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


SEVERITY_HIGH_THRESHOLD = 0.75
SEVERITY_MEDIUM_THRESHOLD = 0.50


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class InputKind(str, Enum):
    GENERAL = "general"
    INQUIRY = "inquiry"


class InputStatus(str, Enum):
    AWAITING_ANALYSIS = "awaiting_analysis"
    UNDER_ANALYSIS = "under_analysis"
    ANALYZED_CLEAN = "analyzed_clean"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class Tone(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class ThemeType(str, Enum):
    INFRASTRUCTURE = "infrastructure"
    ACADEMIC = "academic"
    TECHNOLOGY = "technology"
    FACILITIES = "facilities"
    ADMINISTRATIVE = "administrative"
    SOCIAL = "social"
    OTHER = "other"


class Severity(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @classmethod
    def from_score(cls, score: float) -> "Severity":
        """Bucket an aggregate score: HIGH >= 0.75, MEDIUM >= 0.50, else LOW."""
        if score >= SEVERITY_HIGH_THRESHOLD:
            return cls.HIGH
        if score >= SEVERITY_MEDIUM_THRESHOLD:
            return cls.MEDIUM
        return cls.LOW


class InquiryStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    CLOSED = "closed"


class CollectionKind(str, Enum):
    INQUIRY = "inquiry"
    TOPIC = "topic"


class AnalysisResult(BaseModel):
    """Classification of a single feedback body."""
    sentiment: Sentiment = Sentiment.NEUTRAL
    tone: Tone = Tone.NEUTRAL
    urgency: float = Field(default=0.5, ge=0.0, le=1.0)
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    clarity: float = Field(default=0.5, ge=0.0, le=1.0)
    quality: float = Field(default=0.5, ge=0.0, le=1.0)
    helpfulness: float = Field(default=0.5, ge=0.0, le=1.0)
    score: float = Field(default=0.5, ge=0.0, le=1.0)
    severity: Severity = Severity.MEDIUM
    theme: ThemeType = ThemeType.OTHER

    @classmethod
    def from_scores(
        cls,
        urgency: float,
        importance: float,
        clarity: float,
        quality: float,
        helpfulness: float,
        **fields,
    ) -> "AnalysisResult":
        """Build a result, deriving score and severity from the five sub-scores."""
        score = (urgency + importance + clarity + quality + helpfulness) / 5.0
        return cls(
            urgency=urgency,
            importance=importance,
            clarity=clarity,
            quality=quality,
            helpfulness=helpfulness,
            score=score,
            severity=Severity.from_score(score),
            **fields,
        )


class SuggestedAction(BaseModel):
    """Actionable recommendation within an executive summary."""
    action: str
    impact: str = "MEDIUM"
    challenges: str = ""
    affected_count: int = 0
    reasoning: str = ""


class ExecutiveSummary(BaseModel):
    """Structured synthesis of a feedback collection."""
    topics: list[str] = Field(default_factory=list)
    narrative_sections: dict[str, str] = Field(default_factory=dict)
    prioritized_actions: list[SuggestedAction] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utcnow)


class FeedbackItem(BaseModel):
    """One submitted piece of feedback text."""
    id: str = Field(default_factory=new_id)
    body: str
    kind: InputKind = InputKind.GENERAL
    status: InputStatus = InputStatus.AWAITING_ANALYSIS
    inquiry_id: str | None = None
    department_id: str | None = None

    sentiment: Sentiment | None = None
    tone: Tone | None = None
    urgency: float | None = None
    importance: float | None = None
    clarity: float | None = None
    quality: float | None = None
    helpfulness: float | None = None
    score: float | None = None
    severity: Severity | None = None

    topic_id: str | None = None
    theme_id: str | None = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    processed_at: datetime | None = None


class Topic(BaseModel):
    """Named cluster of related general feedback."""
    id: str = Field(default_factory=new_id)
    name: str
    department_id: str | None = None
    is_archived: bool = False
    summary: ExecutiveSummary | None = None
    summary_generated_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Theme(BaseModel):
    """Coarse closed-set category attached during analysis."""
    id: str = Field(default_factory=new_id)
    type: ThemeType
    name: str
    created_at: datetime = Field(default_factory=utcnow)


class Inquiry(BaseModel):
    """Admin-created prompt soliciting targeted responses."""
    id: str = Field(default_factory=new_id)
    title: str
    body: str = ""
    status: InquiryStatus = InquiryStatus.DRAFT
    summary: ExecutiveSummary | None = None
    summary_generated_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class UsageRecord(BaseModel):
    """One provider call and its monetary cost."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    operation: str
    prompt_tokens: int = Field(ge=0)
    completion_tokens: int = Field(ge=0)
    total_tokens: int = Field(ge=0)
    cost: float = Field(ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    metadata: dict | None = None


class UsageStats(BaseModel):
    """Aggregated usage over a time range."""
    request_count: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost_total: float = 0.0
    average_cost_per_request: float = 0.0
    cost_per_operation: dict[str, float] = Field(default_factory=dict)
    requests_per_operation: dict[str, int] = Field(default_factory=dict)
