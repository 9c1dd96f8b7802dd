"""
Survey-wide sentiment analysis.

Always rule-based: every free-text answer in the survey is scored with the
keyword scorer and the normalized scores are aggregated overall, per
question, per department, per role and per day.

``analyze_with_progress`` runs the same steps one at a time in a worker
thread and reports a fixed checkpoint before each, so a job can relay
progress and enforce a timeout between steps.
"""

import asyncio
import logging
import random
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from survey_analytics.services.question_types import QUESTION_TYPES, QuestionType, QuestionTypeHandler, is_free_text
from survey_analytics.services.sentiment import (
    NEGATIVE,
    POSITIVE,
    KeywordSentimentScorer,
    confidence_from_dispersion,
    mean,
    normalize,
    population_stddev,
    sentiment_label,
)
from survey_analytics.services.survey_snapshot import ResponseSnapshot, SurveySnapshot

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], Awaitable[None]]

NEGATIVE_GROUP_THRESHOLD = -0.2
BREAKDOWN_THRESHOLD = 0.2
DEPARTMENT_GAP_THRESHOLD = 0.5
TREND_DAYS = 7

# (percentage, message, step) in execution order
CHECKPOINTS = (
    (25, "Calculating overall sentiment...", "overall_sentiment"),
    (35, "Analyzing by question...", "sentiment_by_question"),
    (50, "Analyzing by department...", "sentiment_by_department"),
    (60, "Analyzing by role...", "sentiment_by_role"),
    (70, "Calculating trends...", "sentiment_trends"),
    (80, "Generating insights...", None),
)


def _truncate(text: str, limit: int = 100) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


class SurveySentimentAnalyzer:
    def __init__(
        self,
        snapshot: SurveySnapshot,
        scorer: Optional[KeywordSentimentScorer] = None,
        registry: Mapping[QuestionType, QuestionTypeHandler] = QUESTION_TYPES,
        rng: Optional[random.Random] = None,
    ):
        self.snapshot = snapshot
        self.scorer = scorer or KeywordSentimentScorer()
        self.rng = rng or random.Random()
        self.text_question_ids = frozenset(
            q.id for q in snapshot.questions if is_free_text(q.type, registry)
        )
        self._scores: Dict[str, float] = {}

    # -- scoring helpers ----------------------------------------------------

    def normalized(self, text: str) -> float:
        if text not in self._scores:
            self._scores[text] = normalize(self.scorer.score(text))
        return self._scores[text]

    def _texts(self, responses: Sequence[ResponseSnapshot]) -> List[str]:
        return [
            answer.value
            for response in responses
            for answer in response.answers
            if answer.question_id in self.text_question_ids
            and isinstance(answer.value, str)
            and answer.value.strip()
        ]

    def _group_stats(self, texts: Sequence[str]) -> dict:
        scores = [self.normalized(t) for t in texts]
        average = mean(scores)
        return {
            "sentiment_score": round(average, 2),
            "sentiment_label": sentiment_label(average),
            "response_count": len(scores),
            "confidence": confidence_from_dispersion(scores),
        }

    def _grouped_by(self, attribute: str) -> Dict[str, List[ResponseSnapshot]]:
        groups: Dict[str, List[ResponseSnapshot]] = defaultdict(list)
        for response in self.snapshot.responses:
            key = getattr(response, attribute)
            if key:
                groups[key].append(response)
        return groups

    # -- steps --------------------------------------------------------------

    def overall_sentiment(self) -> dict:
        texts = self._texts(self.snapshot.responses)
        if not texts:
            return {"score": 0, "label": "neutral", "confidence": 0, "total_responses": 0}
        scores = [self.normalized(t) for t in texts]
        average = mean(scores)
        return {
            "score": round(average, 2),
            "label": sentiment_label(average),
            "confidence": confidence_from_dispersion(scores),
            "total_responses": len(scores),
        }

    def sentiment_by_question(self) -> List[dict]:
        results = []
        for question in self.snapshot.questions:
            if question.id not in self.text_question_ids:
                continue
            texts = self.snapshot.answer_values(question.id, completed_only=False)
            if not texts:
                continue
            results.append(
                {
                    "question_id": question.id,
                    "question_text": _truncate(question.text),
                    "question_type": question.type,
                    **self._group_stats(texts),
                    "sample_responses": self.rng.sample(texts, min(3, len(texts))),
                }
            )
        return results

    def _positive_samples(self, texts: Sequence[str]) -> List[str]:
        return [t for t in texts if self.scorer.score(t).label == POSITIVE][:3]

    def _negative_samples(self, texts: Sequence[str]) -> List[str]:
        return [t for t in texts if self.scorer.score(t).label == NEGATIVE][:3]

    def sentiment_by_department(self) -> List[dict]:
        """Departments sorted from most negative to most positive."""
        results = []
        for department, responses in self._grouped_by("department").items():
            texts = self._texts(responses)
            if not texts:
                continue
            results.append(
                {
                    "department": department,
                    **self._group_stats(texts),
                    "employee_count": len(responses),
                    "top_concerns": self._negative_samples(texts),
                    "top_positives": self._positive_samples(texts),
                }
            )
        return sorted(results, key=lambda d: d["sentiment_score"])

    def sentiment_by_role(self) -> List[dict]:
        results = []
        for role, responses in self._grouped_by("role").items():
            texts = self._texts(responses)
            if not texts:
                continue
            results.append({"role": role, **self._group_stats(texts), "employee_count": len(responses)})
        return sorted(results, key=lambda r: r["sentiment_score"])

    def sentiment_trends(self) -> dict:
        by_day: Dict = defaultdict(list)
        for response in self.snapshot.responses:
            if response.submitted_on:
                by_day[response.submitted_on].append(response)

        daily = []
        for day in sorted(by_day):
            texts = self._texts(by_day[day])
            if not texts:
                continue
            scores = [self.normalized(t) for t in texts]
            daily.append(
                {"date": day.isoformat(), "sentiment_score": round(mean(scores), 2), "response_count": len(scores)}
            )
        daily = daily[-TREND_DAYS:]

        return {
            "daily_trends": daily,
            "trend_direction": trend_direction([d["sentiment_score"] for d in daily]),
            "volatility": volatility([d["sentiment_score"] for d in daily]),
        }

    def key_insights(self, overall: dict, by_department: List[dict], by_question: List[dict]) -> List[str]:
        score = overall["score"]
        percent = round(score * 100)
        if score > 0.3:
            insights = [f"Overall sentiment is positive ({percent}%) with {overall['total_responses']} responses analyzed"]
        elif score < -0.3:
            insights = [f"Overall sentiment shows concerns ({percent}%) requiring attention"]
        else:
            insights = [f"Overall sentiment is neutral ({percent}%) with mixed feedback"]

        if by_department:
            worst, best = by_department[0], by_department[-1]
            if best["sentiment_score"] - worst["sentiment_score"] > DEPARTMENT_GAP_THRESHOLD:
                insights.append(
                    f"Significant sentiment gap: {best['department']} ({round(best['sentiment_score'] * 100)}%) "
                    f"vs {worst['department']} ({round(worst['sentiment_score'] * 100)}%)"
                )

        concerning = [q for q in by_question if q["sentiment_score"] < NEGATIVE_GROUP_THRESHOLD]
        if concerning:
            insights.append(f"{len(concerning)} questions show negative sentiment, requiring follow-up")
        return insights

    def recommendation_priority(self, overall: dict, by_department: List[dict]) -> str:
        negative = sum(1 for d in by_department if d["sentiment_score"] < NEGATIVE_GROUP_THRESHOLD)
        if overall["score"] < -0.4 or negative * 2 > len(by_department):
            return "high"
        if overall["score"] < -0.1 or negative:
            return "medium"
        return "low"

    def detailed_breakdown(self) -> dict:
        scored = [{"text": t, "score": self.normalized(t)} for t in self._texts(self.snapshot.responses)]
        positive = [r for r in scored if r["score"] > BREAKDOWN_THRESHOLD]
        negative = [r for r in scored if r["score"] < -BREAKDOWN_THRESHOLD]
        return {
            "positive_responses": len(positive),
            "neutral_responses": len(scored) - len(positive) - len(negative),
            "negative_responses": len(negative),
            "most_positive_responses": sorted(positive, key=lambda r: r["score"], reverse=True)[:5],
            "most_negative_responses": sorted(negative, key=lambda r: r["score"])[:5],
        }

    def _finish(self, results: dict) -> dict:
        results["key_insights"] = self.key_insights(
            results["overall_sentiment"], results["sentiment_by_department"], results["sentiment_by_question"]
        )
        results["recommendation_priority"] = self.recommendation_priority(
            results["overall_sentiment"], results["sentiment_by_department"]
        )
        results["detailed_breakdown"] = self.detailed_breakdown()
        return results

    # -- entry points -------------------------------------------------------

    def analyze(self) -> dict:
        results = {step: getattr(self, step)() for _, _, step in CHECKPOINTS if step}
        return self._finish(results)

    async def analyze_with_progress(self, progress: Optional[ProgressCallback] = None, job_id: str = "-") -> dict:
        results: dict = {}
        for percentage, message, step in CHECKPOINTS:
            if progress is not None:
                await progress(percentage, message)
            if step:
                results[step] = await asyncio.to_thread(getattr(self, step))
                logger.debug(f"[SENTIMENT JOB {job_id}] {step} done")
        return await asyncio.to_thread(self._finish, results)


def trend_direction(scores: Sequence[float]) -> str:
    """Compare the mean of the later half of daily scores with the earlier half."""
    if len(scores) < 2:
        return "stable"
    half = len(scores) // 2
    first, second = mean(scores[:half]), mean(scores[half:])
    if second > first + 0.1:
        return "improving"
    if second < first - 0.1:
        return "declining"
    return "stable"


def volatility(scores: Sequence[float]) -> float:
    if len(scores) < 2:
        return 0
    return round(population_stddev(scores), 3)

