"""
Text sentiment scoring.

Two strategies return the same ``SentimentScore``:

- ``KeywordSentimentScorer``: counts curated keywords; cheap and
  deterministic, used for whole-survey aggregation.
- ``AISentimentScorer``: asks the completion endpoint for a JSON verdict and
  falls back to the keyword scorer on any AI failure.

Aggregation helpers map scores onto a signed [-1, 1] scale and label the
result.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence, Tuple

from survey_analytics.core.metrics import track_ai_request
from survey_analytics.data.sentiment_lexicons import NEGATIVE_KEYWORDS, POSITIVE_KEYWORDS
from survey_analytics.exceptions import AIServiceError
from survey_analytics.schemas.ai_payloads import SentimentPayload, validate_ai_payload

logger = logging.getLogger(__name__)

POSITIVE = "positive"
NEGATIVE = "negative"
NEUTRAL = "neutral"

SENTIMENT_SYSTEM_PROMPT = """You are an expert sentiment analysis AI. Analyze the emotional tone of the given text and provide a sentiment score.

Return ONLY a JSON object with this exact structure:
{
  "sentiment": "positive|negative|neutral",
  "score": 0.0-1.0,
  "confidence": 0.0-1.0,
  "emotions": ["emotion1", "emotion2"],
  "reasoning": "Brief explanation of why this sentiment was detected"
}

Guidelines:
- positive: Optimistic, satisfied, enthusiastic, happy, confident
- negative: Frustrated, disappointed, concerned, angry, worried
- neutral: Factual, balanced, neither positive nor negative
- score: 0.0 = very negative, 0.5 = neutral, 1.0 = very positive
- confidence: How certain you are about this analysis (0.0-1.0)
- emotions: List 1-3 specific emotions detected
- reasoning: 1-2 sentence explanation

Be precise and consistent in your analysis."""


@dataclass(frozen=True)
class SentimentScore:
    """Raw verdict for one text. ``raw_score`` is 0 (negative) to 1 (positive)."""

    label: str
    raw_score: float
    confidence: float
    emotions: Tuple[str, ...] = field(default_factory=tuple)
    reasoning: str = ""
    source: str = "keywords"

    def to_dict(self) -> dict:
        return {
            "sentiment": self.label,
            "score": round(self.raw_score, 3),
            "confidence": round(self.confidence, 3),
            "emotions": list(self.emotions),
            "reasoning": self.reasoning,
            "source": self.source,
        }


NEUTRAL_EMPTY = SentimentScore(NEUTRAL, 0.5, 0.8, ("neutral",), "No clear sentiment detected")


class KeywordSentimentScorer:
    """Rule-based scorer using case-insensitive substring matches."""

    def __init__(
        self,
        positive_keywords: Sequence[str] = POSITIVE_KEYWORDS,
        negative_keywords: Sequence[str] = NEGATIVE_KEYWORDS,
    ):
        self.positive_keywords = tuple(positive_keywords)
        self.negative_keywords = tuple(negative_keywords)

    def score(self, text) -> SentimentScore:
        if not isinstance(text, str) or not text.strip():
            return NEUTRAL_EMPTY

        lowered = text.lower().strip()
        positive = sum(1 for word in self.positive_keywords if word in lowered)
        negative = sum(1 for word in self.negative_keywords if word in lowered)

        if positive > negative:
            value = min(0.6 + positive * 0.1, 0.9)
            return SentimentScore(POSITIVE, value, value, reasoning=f"{positive} positive keyword(s)")
        if negative > positive:
            return SentimentScore(
                NEGATIVE,
                max(0.4 - negative * 0.1, 0.1),
                min(0.6 + negative * 0.1, 0.9),
                reasoning=f"{negative} negative keyword(s)",
            )
        return SentimentScore(NEUTRAL, 0.5, 0.7, reasoning="Balanced or no keywords")


class AISentimentScorer:
    """AI scorer for single texts, with keyword fallback."""

    def __init__(self, ai_client, fallback: Optional[KeywordSentimentScorer] = None):
        self.ai_client = ai_client
        self.fallback = fallback or KeywordSentimentScorer()

    async def score(self, text) -> SentimentScore:
        if not isinstance(text, str) or not text.strip():
            return NEUTRAL_EMPTY

        try:
            raw = await self.ai_client.complete(
                f'Analyze the sentiment of this text: "{text.strip()}"',
                system_prompt=SENTIMENT_SYSTEM_PROMPT,
            )
            payload = validate_ai_payload(SentimentPayload, raw)
        except AIServiceError as e:
            logger.warning(f"AI sentiment failed ({e.kind}), using keyword scorer: {e}")
            track_ai_request("sentiment", success=False)
            return self.fallback.score(text)

        track_ai_request("sentiment", success=True)
        return SentimentScore(
            label=payload.sentiment,
            raw_score=payload.score,
            confidence=payload.confidence,
            emotions=tuple(payload.emotions),
            reasoning=payload.reasoning,
            source="ai",
        )


def normalize(score: SentimentScore) -> float:
    """Map a verdict onto [-1, 1]. Neutral is always 0."""
    if score.label == NEUTRAL:
        return 0.0
    return (score.raw_score - 0.5) * 2


def sentiment_label(value: float) -> str:
    """Label a normalized score or an average of normalized scores."""
    if value >= 0.3:
        return "positive"
    if value >= 0.1:
        return "slightly positive"
    if value >= -0.1:
        return "neutral"
    if value >= -0.3:
        return "slightly negative"
    return "negative"


def mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def population_stddev(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    avg = mean(values)
    return math.sqrt(sum((v - avg) ** 2 for v in values) / len(values))


def confidence_from_dispersion(values: Iterable[float]) -> int:
    """Tightly clustered scores give high confidence (0-100)."""
    values = list(values)
    if not values:
        return 0
    return round(max(0.0, 100 - population_stddev(values) * 50))
