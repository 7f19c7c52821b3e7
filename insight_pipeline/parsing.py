"""Conversion of raw provider replies into typed results.

Every reply goes through one conversion function per schema. Presentation
glitches (fences, prose, out-of-range numbers, unknown enum values, odd field
shapes) are repaired here; only a reply with no recoverable JSON object is
reported as a ``ParseError``.
"""
import json
import logging
from dataclasses import dataclass
from typing import Generic, TypeVar

from .client import parse_json
from .models import (
    AnalysisResult,
    ExecutiveSummary,
    Sentiment,
    SuggestedAction,
    ThemeType,
    Tone,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ACTIONS = 5
DEFAULT_SCORE = 0.5
SCORE_FIELDS = ("urgency", "importance", "clarity", "quality", "helpfulness")
IMPACT_LEVELS = ("HIGH", "MEDIUM", "LOW")

NARRATIVE_SECTIONS = (
    "headline_insight",
    "response_mix",
    "key_takeaways",
    "risks",
    "opportunities",
)

# Alternate spellings the model has been seen to return
_NARRATIVE_ALIASES = {
    "headlineInsight": "headline_insight",
    "responseMix": "response_mix",
    "keyTakeaways": "key_takeaways",
}


@dataclass(frozen=True)
class ParseOk(Generic[T]):
    value: T


@dataclass(frozen=True)
class ParseError:
    raw_text: str
    reason: str


ParseResult = ParseOk[T] | ParseError


def clamp_score(value, field: str = "score") -> float:
    """Coerce to float and clamp into [0.0, 1.0]; unusable values become 0.5."""
    if isinstance(value, bool):
        return DEFAULT_SCORE
    if isinstance(value, str):
        text = value.strip()
        percent = text.endswith("%")
        try:
            value = float(text.rstrip("%"))
        except ValueError:
            return DEFAULT_SCORE
        if percent:
            value = value / 100.0
    # NaN fails the self-comparison
    if not isinstance(value, (int, float)) or value != value:
        return DEFAULT_SCORE
    if value < 0.0 or value > 1.0:
        logger.warning("%s score %s out of range, clamping to [0,1]", field, value)
        return min(max(float(value), 0.0), 1.0)
    return float(value)


def parse_enum(enum_cls, value, default):
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            pass
    return default


def _load_object(raw_text: str) -> dict | ParseError:
    try:
        data = parse_json(raw_text)
    except json.JSONDecodeError as e:
        return ParseError(raw_text=raw_text, reason=str(e).split(".")[0])
    if isinstance(data, list) and data and isinstance(data[0], dict):
        data = data[0]
    if not isinstance(data, dict):
        return ParseError(raw_text=raw_text, reason="reply is not a JSON object")
    return data


def to_analysis(data: dict) -> AnalysisResult:
    """Build an AnalysisResult from a decoded reply, substituting safe defaults."""
    scores = {field: clamp_score(data.get(field, DEFAULT_SCORE), field) for field in SCORE_FIELDS}
    return AnalysisResult.from_scores(
        **scores,
        sentiment=parse_enum(Sentiment, data.get("sentiment"), Sentiment.NEUTRAL),
        tone=parse_enum(Tone, data.get("tone"), Tone.NEUTRAL),
        theme=parse_enum(ThemeType, data.get("theme"), ThemeType.OTHER),
    )


def parse_analysis(raw_text: str) -> ParseResult[AnalysisResult]:
    data = _load_object(raw_text)
    if isinstance(data, ParseError):
        return data
    return ParseOk(to_analysis(data))


def _as_text(value, *keys: str) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, dict):
        for key in keys:
            if value.get(key):
                return _as_text(value[key])
        return json.dumps(value)
    if isinstance(value, list):
        return "; ".join(_as_text(v, *keys) for v in value)
    return str(value)


def _as_count(value) -> int:
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return 0


def to_action(raw) -> SuggestedAction | None:
    if isinstance(raw, str):
        return SuggestedAction(action=raw.strip()) if raw.strip() else None
    if not isinstance(raw, dict):
        return None
    action = _as_text(raw.get("action") or raw.get("title"))
    if not action:
        return None
    impact = _as_text(raw.get("impact")).upper()
    return SuggestedAction(
        action=action,
        impact=impact if impact in IMPACT_LEVELS else "MEDIUM",
        challenges=_as_text(raw.get("challenges")),
        affected_count=_as_count(
            raw.get("affected_count", raw.get("responseCount", raw.get("response_count")))
        ),
        reasoning=_as_text(
            raw.get("reasoning") or raw.get("supportingReasoning") or raw.get("supporting_reasoning")
        ),
    )


def to_summary(data: dict) -> ExecutiveSummary:
    """Build an ExecutiveSummary from a decoded reply, normalizing field shapes."""
    topics = data.get("topics") or []
    if isinstance(topics, str):
        topics = [topics]
    topics = [_as_text(t, "topic", "name") for t in topics if t]

    raw_sections = data.get("narrative_sections") or data.get("executiveSummaryData") or {}
    sections = {}
    if isinstance(raw_sections, dict):
        for key, value in raw_sections.items():
            sections[_NARRATIVE_ALIASES.get(key, key)] = _as_text(value, "text", "summary")
    elif isinstance(raw_sections, str):
        sections["key_takeaways"] = raw_sections.strip()
    for name in NARRATIVE_SECTIONS:
        sections.setdefault(name, "")

    raw_actions = data.get("prioritized_actions") or data.get("suggestedPrioritizedActions") or []
    if not isinstance(raw_actions, list):
        raw_actions = [raw_actions]
    actions = [a for a in (to_action(r) for r in raw_actions) if a is not None]

    return ExecutiveSummary(
        topics=topics,
        narrative_sections=sections,
        prioritized_actions=actions[:MAX_ACTIONS],
    )


def parse_summary(raw_text: str) -> ParseResult[ExecutiveSummary]:
    data = _load_object(raw_text)
    if isinstance(data, ParseError):
        return data
    return ParseOk(to_summary(data))


def clean_topic_name(raw_text: str, max_length: int = 100) -> str:
    """Reduce a topic-name reply to a single bare name."""
    text = raw_text.strip()
    if "{" in text:
        try:
            data = parse_json(text)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, list) and data and isinstance(data[0], dict):
            data = data[0]
        if isinstance(data, dict):
            text = _as_text(data.get("topic") or data.get("name"))

    lines = [line.strip() for line in text.splitlines() if line.strip() and not line.strip().startswith("```")]
    text = lines[0] if lines else ""
    if text.lower().startswith("topic:"):
        text = text[len("topic:"):]
    text = text.strip().strip("\"'`").strip()

    if len(text) > max_length:
        text = text[:max_length - 3] + "..."
    return text
