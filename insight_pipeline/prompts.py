"""Prompt templates."""

SYSTEM_PROMPT = """You are an analyst of university student feedback.

Your responsibilities:
- Rate sentiment, tone and quality metrics of individual feedback
- Name the topic a piece of feedback belongs to
- Write executive summaries with specific, actionable recommendations

Always answer with the exact format requested, without markdown code blocks or extra text."""


ANALYZE_GENERAL_PROMPT = """Analyze this student feedback:

FEEDBACK:
"{body}"

Extract JSON with: sentiment, tone, urgency, importance, clarity, quality, helpfulness, theme

Sentiments and tones: positive, neutral, negative
Scores: numbers from 0.0 to 1.0
Themes: infrastructure, academic, technology, facilities, administrative, social, other

Rating guidelines:
- urgency 0.9-1.0: safety concerns or outages; 0.5-0.6: important, not time-critical; below 0.4: minor
- importance 0.9-1.0: whole university affected; 0.5-0.6: one department; below 0.4: individual concern
- clarity: how specific and understandable the feedback is
- quality: how constructive and substantiated it is
- helpfulness: how actionable it is for administrators

Example:
Feedback: "The WiFi in the library constantly disconnects. I can't complete my assignments."
Response: {{"sentiment":"negative","tone":"negative","urgency":0.75,"importance":0.8,"clarity":0.9,"quality":0.8,"helpfulness":0.85,"theme":"technology"}}

Return ONLY valid JSON."""


ANALYZE_INQUIRY_PROMPT = """Analyze this response to an inquiry from university administration:

RESPONSE:
"{body}"

Extract JSON with: sentiment, tone, urgency, importance, clarity, quality, helpfulness

Sentiments and tones: positive, neutral, negative
Scores: numbers from 0.0 to 1.0, rated as for general feedback.
Inquiry responses answer a specific question, so judge clarity and helpfulness against that question.

Return ONLY valid JSON."""


TOPIC_PROMPT = """Generate a concise topic name (3-6 words) that categorizes this student feedback:

FEEDBACK:
"{body}"

Existing topics (reuse one verbatim if it fits):
{existing_topics}

Guidelines:
- Title case, specific but concise
- Name the main subject, avoid generic words like "Issue" or "Problem"

Examples:
Feedback: "The WiFi in the library keeps disconnecting every few minutes."
Topic: Library WiFi Connectivity

Feedback: "Final exam schedule has too many exams on the same day."
Topic: Exam Scheduling Conflicts

Return ONLY the topic name, no quotes, no additional text."""


SUMMARY_PROMPT = """You are analyzing {item_count} pieces of student feedback for {collection_label}.

Sentiment distribution:
- Positive: {positive_count} ({positive_pct:.1f}%)
- Neutral: {neutral_count} ({neutral_pct:.1f}%)
- Negative: {negative_count} ({negative_pct:.1f}%)

Feedback (showing {sample_count} of {item_count}):
{samples}

Generate JSON with:
- topics: 2-4 main themes as short strings
- narrative_sections: object with string fields
    headline_insight: one data-driven sentence with the key finding
    response_mix: overview of sentiment and response quality
    key_takeaways: 150-250 words on patterns, with concrete examples
    risks: what goes wrong if nothing is done
    opportunities: improvements that are within reach
- prioritized_actions: at most {max_actions} actions, most important first, each with
    action: a specific, actionable step (not generic advice)
    impact: "HIGH" | "MEDIUM" | "LOW"
    challenges: implementation obstacles
    affected_count: number of feedback items supporting this action
    reasoning: evidence from the feedback

Return ONLY valid JSON."""
