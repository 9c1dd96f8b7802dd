"""
Per-question summaries of free-text answers.

Fewer than ``AI_SUMMARY_THRESHOLD`` answers never reach the AI: zero
answers give a "no data" result and one or two give a short placeholder.
From the threshold up the AI is asked for a structured summary, and a
keyword-based summary is produced when that fails.
"""

import logging
import re
from collections import Counter
from typing import List, Optional, Sequence

from survey_analytics.core.metrics import track_ai_request
from survey_analytics.data.sentiment_lexicons import (
    CONCERN_KEYWORDS,
    PATTERN_CONCERN,
    PATTERN_PRAISE,
    PRAISE_KEYWORDS,
    SUMMARY_NEGATIVE_PATTERN,
    SUMMARY_POSITIVE_PATTERN,
    SUMMARY_STOPWORDS,
)
from survey_analytics.exceptions import AIServiceError
from survey_analytics.schemas.ai_payloads import QuestionSummaryPayload, validate_ai_payload
from survey_analytics.services.survey_snapshot import QuestionSnapshot
from survey_analytics.utils.clock import utc_now

logger = logging.getLogger(__name__)

AI_SUMMARY_THRESHOLD = 3

_WORD = re.compile(r"\w+")


def summary_system_prompt(question_text: str) -> str:
    return f"""You are an expert survey analyst. Analyze the following responses to provide actionable insights for survey creators and decision makers.

Question: "{question_text}"

Your response should be a JSON object with this exact structure:
{{
  "key_themes": [
    "Theme 1: Clear, specific theme with context and frequency",
    "Theme 2: Clear, specific theme with context and frequency",
    "Theme 3: Clear, specific theme with context and frequency"
  ],
  "overall_sentiment": "positive|negative|mixed|neutral",
  "top_concern": "Most significant issue or challenge mentioned by respondents",
  "top_positive": "Most frequently mentioned strength or positive aspect",
  "summary": "Detailed 4-5 sentence analysis highlighting key patterns, insights, and implications",
  "action_recommendations": [
    "Specific, actionable recommendation based on the data",
    "Another concrete next step or improvement opportunity"
  ],
  "priority_level": "low|medium|high",
  "response_patterns": "Description of how different respondents approached the question or any notable patterns"
}}

Focus on specific, actionable themes, concrete concerns, strengths that can be leveraged,
and practical recommendations. Be specific with numbers and percentages when possible.

Do not include any text before or after the JSON."""


def _percentage(count: int, total: int) -> int:
    return round(count / total * 100) if total else 0


def common_words(texts: Sequence[str], limit: int = 5) -> List[str]:
    """Most frequent content words (4+ letters, stopwords removed)."""
    words = [
        word
        for word in _WORD.findall(" ".join(texts).lower())
        if len(word) >= 4 and word not in SUMMARY_STOPWORDS
    ]
    return [word for word, _ in Counter(words).most_common(limit)]


def basic_sentiment(texts: Sequence[str]) -> str:
    positive = sum(1 for t in texts if SUMMARY_POSITIVE_PATTERN.search(t))
    negative = sum(1 for t in texts if SUMMARY_NEGATIVE_PATTERN.search(t))
    if positive > negative * 1.5:
        return "positive"
    if negative > positive * 1.5:
        return "negative"
    return "mixed"


def count_matching(texts: Sequence[str], keywords: Sequence[str]) -> int:
    return sum(1 for t in texts if any(k in t.lower() for k in keywords))


def assess_risk_level(sentiment: str, concern_percentage: int) -> dict:
    if sentiment == "negative":
        if concern_percentage > 60:
            return {"level": "high", "description": "significant concerns requiring immediate attention"}
        return {"level": "medium", "description": "notable concerns that should be addressed promptly"}
    if sentiment == "mixed":
        if concern_percentage > 40:
            return {"level": "medium", "description": "mixed feedback with substantial concerns requiring follow-up"}
        return {"level": "medium", "description": "balanced feedback with both opportunities and challenges identified"}
    if sentiment == "positive":
        if concern_percentage > 30:
            return {"level": "medium", "description": "generally positive sentiment with some areas for improvement"}
        return {"level": "low", "description": "strong positive sentiment with minimal concerns"}
    return {"level": "medium", "description": "neutral sentiment suggesting stable but potentially improvable conditions"}


def fallback_recommendations(concern_count: int, positive_count: int, total: int) -> List[str]:
    recommendations = []
    if concern_count:
        recommendations.append(
            f"Conduct follow-up with respondents who raised concerns ({concern_count} individuals) to gather more details"
        )
        recommendations.append("Review and address the most frequently mentioned challenges and issues")
    if positive_count:
        recommendations.append("Identify and scale successful practices mentioned in positive feedback")
        recommendations.append("Document and share best practices that are working well")

    concern_percentage = _percentage(concern_count, total)
    if concern_percentage > 50:
        recommendations.append("Implement action planning sessions to address systemic issues identified")
    elif concern_percentage < 20:
        recommendations.append("Maintain current positive practices and monitor for consistency")
    else:
        recommendations.append("Balance improvement initiatives with reinforcing existing strengths")
    return recommendations


def detect_response_patterns(texts: Sequence[str]) -> str:
    total = len(texts)
    concern = sum(1 for t in texts if PATTERN_CONCERN.search(t))
    praise = sum(1 for t in texts if PATTERN_PRAISE.search(t))
    balanced = total - concern - praise

    segments = []
    if concern > total * 0.3:
        segments.append(f"{concern} respondents focused on challenges and concerns")
    if praise > total * 0.3:
        segments.append(f"{praise} respondents highlighting positive aspects")
    if balanced > total * 0.3:
        segments.append(f"{balanced} respondents providing balanced or neutral feedback")
    return ", ".join(segments) if segments else "Diverse response patterns without clear dominant themes"


class ResponseSummarizer:
    def __init__(self, ai_client):
        self.ai_client = ai_client

    def _base(self, question: QuestionSnapshot, texts: Sequence[str]) -> dict:
        return {
            "question_id": question.id,
            "question_text": question.text,
            "response_count": len(texts),
            "generated_at": utc_now().isoformat(),
        }

    async def summarize(self, question: QuestionSnapshot, answers: Sequence[Optional[str]]) -> dict:
        texts = [a.strip() for a in answers if isinstance(a, str) and a.strip()]

        if not texts:
            return {
                **self._base(question, texts),
                "key_themes": [],
                "overall_sentiment": "neutral",
                "top_concern": None,
                "top_positive": None,
                "summary": "No responses yet.",
                "analysis_source": "none",
            }
        if len(texts) < AI_SUMMARY_THRESHOLD:
            return self.simple_summary(question, texts)

        try:
            numbered = "\n".join(f"{i}. {text}" for i, text in enumerate(texts, start=1))
            raw = await self.ai_client.complete(
                f"Analyze these {len(texts)} responses:\n\n{numbered}",
                system_prompt=summary_system_prompt(question.text),
            )
            payload = validate_ai_payload(QuestionSummaryPayload, raw)
        except AIServiceError as e:
            logger.warning(f"AI summary failed for question {question.id} ({e.kind}), using fallback: {e}")
            track_ai_request("summary", success=False)
            return self.fallback_summary(question, texts)

        track_ai_request("summary", success=True)
        return {**self._base(question, texts), **payload.model_dump(), "analysis_source": "ai"}

    def simple_summary(self, question: QuestionSnapshot, texts: Sequence[str]) -> dict:
        return {
            **self._base(question, texts),
            "key_themes": ["Limited responses received"],
            "overall_sentiment": "neutral",
            "top_concern": None,
            "top_positive": None,
            "summary": f"{len(texts)} response(s) received. More responses needed for detailed analysis.",
            "analysis_source": "simple",
        }

    def fallback_summary(self, question: QuestionSnapshot, texts: Sequence[str]) -> dict:
        total = len(texts)
        words = common_words(texts)
        sentiment = basic_sentiment(texts)
        concern_count = count_matching(texts, CONCERN_KEYWORDS)
        positive_count = count_matching(texts, PRAISE_KEYWORDS)
        risk = assess_risk_level(sentiment, _percentage(concern_count, total))

        if words:
            themes = [
                f"Frequent mentions: {', '.join(words[:3])}",
                "Communication and workflow topics are prominent themes across responses",
                "Employee feedback spans operational concerns and cultural observations",
            ]
        else:
            themes = [
                "Diverse perspectives: No single dominant theme, indicating varied employee experiences",
                "Balanced feedback: Mix of operational and cultural observations",
                "Employee engagement: Thoughtful responses suggest active participation in feedback process",
            ]

        top_concern = None
        if concern_count:
            top_concern = (
                f"{concern_count} respondents ({_percentage(concern_count, total)}%) raised concerns "
                "requiring attention - themes include operational challenges and process improvements"
            )
        top_positive = None
        if positive_count:
            top_positive = (
                f"{positive_count} respondents ({_percentage(positive_count, total)}%) expressed positive "
                "sentiments - strengths to leverage include identified best practices and successful approaches"
            )

        return {
            **self._base(question, texts),
            "key_themes": themes,
            "common_words": words,
            "overall_sentiment": sentiment,
            "top_concern": top_concern,
            "top_positive": top_positive,
            "summary": (
                f"Analysis of {total} responses reveals {sentiment} overall sentiment. "
                f"{sentiment.capitalize()} feedback patterns suggest {risk['description']}."
            ),
            "action_recommendations": fallback_recommendations(concern_count, positive_count, total),
            "priority_level": risk["level"],
            "response_patterns": detect_response_patterns(texts),
            "analysis_source": "fallback",
        }
