"""
Survey insights analysis.

Builds an aggregate payload from a survey snapshot, asks the AI for an
insights document and falls back to rule-based generators when the AI is
unavailable or returns something invalid. Both paths go through the same
enrichment (response rate band, completion time band, urgency) and every
result is stored as a new ``SurveyInsight`` row.

A stored row younger than the freshness window is reused instead of
running a new analysis.
"""

import json
import logging
from datetime import timedelta
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from survey_analytics.config import settings
from survey_analytics.core.metrics import track_ai_request
from survey_analytics.exceptions import AIServiceError
from survey_analytics.models import SurveyInsight
from survey_analytics.schemas.ai_payloads import InsightsPayload, validate_ai_payload
from survey_analytics.services.survey_snapshot import SurveySnapshot
from survey_analytics.utils.clock import utc_now

logger = logging.getLogger(__name__)

ANALYSIS_VERSION = "1.0"
SUMMARY_MAX_LENGTH = 250

INSIGHTS_SYSTEM_PROMPT = """You are a survey analysis expert. Analyze the provided survey data and generate actionable insights.

Return ONLY a valid JSON object with this exact structure:
{
  "executive_summary": "2-3 sentence overview of key findings",
  "key_findings": ["Most important insight 1", "Most important insight 2", "Most important insight 3"],
  "satisfaction_drivers": ["What's working well 1", "What's working well 2"],
  "areas_for_improvement": ["Issue that needs attention 1", "Issue that needs attention 2"],
  "risk_indicators": ["Potential problem 1", "Potential problem 2"],
  "recommended_actions": ["Specific actionable step 1", "Specific actionable step 2", "Specific actionable step 3"],
  "department_insights": {"department_name": "Specific insight for this department"}
}

Rules:
- Focus on actionable insights, not just data summaries
- Identify patterns and trends in the responses
- Consider both quantitative (scale) and qualitative (text) data
- Provide specific, concrete recommendations
- Highlight urgent issues that need immediate attention
- Be constructive and solution-oriented

Do not include any text before or after the JSON."""


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------


def response_rate_assessment(response_rate: float) -> str:
    if response_rate <= 30:
        return "Low response rate - consider follow-up reminders"
    if response_rate <= 60:
        return "Moderate response rate - room for improvement"
    if response_rate <= 80:
        return "Good response rate - performing well"
    return "Excellent response rate - highly engaged audience"


def completion_time_assessment(minutes: float) -> Optional[str]:
    if minutes <= 0:
        return None
    if minutes <= 3:
        return "Very quick survey - good user experience"
    if minutes <= 7:
        return "Reasonable completion time"
    if minutes <= 15:
        return "Longer survey - monitor for dropoff"
    return "Very long survey - consider shortening"


def urgency_level(response_rate: float, average_scale_score: Optional[float], average_completion_time: float) -> str:
    """Weighted concern count: low scores weigh double."""
    concerns = 0
    if response_rate < 50:
        concerns += 1
    if average_scale_score is not None and average_scale_score < 6:
        concerns += 2
    if average_completion_time > 10:
        concerns += 1

    if concerns <= 1:
        return "low"
    if concerns <= 3:
        return "medium"
    return "high"


def enrich_insights(insights: dict, snapshot: SurveySnapshot) -> dict:
    enriched = dict(insights)
    enriched["response_rate_assessment"] = response_rate_assessment(snapshot.response_rate)
    time_assessment = completion_time_assessment(snapshot.average_completion_time)
    if time_assessment:
        enriched["completion_time_assessment"] = time_assessment
    enriched["urgency_level"] = urgency_level(
        snapshot.response_rate, snapshot.average_scale_score, snapshot.average_completion_time
    )
    return enriched


# ---------------------------------------------------------------------------
# AI payload
# ---------------------------------------------------------------------------


def build_analysis_data(snapshot: SurveySnapshot) -> dict:
    """Aggregate statistics sent to the AI as a single JSON document."""
    data = {
        "survey_title": snapshot.title,
        "survey_description": snapshot.description,
        "total_assignments": len(snapshot.assignments),
        "total_responses": len(snapshot.completed_responses),
        "response_rate": snapshot.response_rate,
        "average_completion_time": snapshot.average_completion_time,
        "overall_satisfaction": snapshot.average_scale_score,
    }

    questions = []
    for question in snapshot.questions:
        entry = {"question": question.text, "type": question.type, "required": question.required}
        if question.type == "scale":
            scores = snapshot.scale_values(question.id)
            if scores:
                distribution = {}
                for score in scores:
                    distribution[int(score)] = distribution.get(int(score), 0) + 1
                entry["average_score"] = round(sum(scores) / len(scores), 1)
                entry["score_distribution"] = distribution
                entry["response_count"] = len(scores)
        else:
            texts = snapshot.answer_values(question.id)
            entry["response_count"] = len(texts)
            if texts:
                entry["sample_responses"] = texts[:3]
        questions.append(entry)
    data["questions_analysis"] = questions

    breakdown = snapshot.department_breakdown
    if breakdown:
        data["department_breakdown"] = breakdown

    times = [r.minutes_to_complete for r in snapshot.completed_responses if r.minutes_to_complete is not None]
    if times:
        data["completion_time_analysis"] = {
            "average": round(sum(times) / len(times), 1),
            "fastest": min(times),
            "slowest": max(times),
        }
    if snapshot.completed_responses:
        data["response_timeline"] = snapshot.response_timeline(days=7)

    return data


# ---------------------------------------------------------------------------
# Rule-based fallback
# ---------------------------------------------------------------------------


def _question_averages(snapshot: SurveySnapshot):
    for question in snapshot.questions:
        if question.type != "scale":
            continue
        scores = snapshot.scale_values(question.id)
        if scores:
            yield question, sum(scores) / len(scores)


def fallback_executive_summary(snapshot: SurveySnapshot) -> str:
    rate = snapshot.response_rate
    avg = snapshot.average_scale_score
    summary = (
        f"Survey received {len(snapshot.completed_responses)} responses from "
        f"{len(snapshot.assignments)} assignments ({rate}% response rate). "
    )
    if avg is not None:
        if avg >= 7:
            summary += f"Overall satisfaction is positive with an average score of {avg}/10. "
        elif avg >= 5:
            summary += f"Overall satisfaction is moderate with an average score of {avg}/10. "
        else:
            summary += f"Overall satisfaction is concerning with a low average score of {avg}/10. "

    if rate >= 70:
        summary += "Strong engagement suggests results are representative."
    elif rate >= 50:
        summary += "Moderate engagement provides useful insights but consider follow-up for higher participation."
    else:
        summary += "Low engagement suggests results may not be fully representative - recommend additional outreach."
    return summary


def fallback_key_findings(snapshot: SurveySnapshot) -> list:
    findings = [f"{snapshot.response_rate}% response rate with {len(snapshot.completed_responses)} completed responses"]
    if snapshot.average_scale_score is not None:
        findings.append(f"Average satisfaction score of {snapshot.average_scale_score}/10 across scale questions")
    if snapshot.average_completion_time > 0:
        findings.append(f"Average completion time of {snapshot.average_completion_time} minutes")

    breakdown = snapshot.department_breakdown
    if breakdown:
        best = max(breakdown.items(), key=lambda item: item[1]["response_rate"])
        findings.append(f"{best[0]} department shows highest engagement")
    return findings


def fallback_satisfaction_drivers(snapshot: SurveySnapshot) -> list:
    avg = snapshot.average_scale_score
    drivers = []
    if avg is not None and avg >= 7:
        drivers.append("Strong overall satisfaction indicates effective current practices")
        drivers.append("High engagement in survey completion suggests active and invested audience")
    elif avg is not None and avg >= 5:
        drivers.append("Moderate satisfaction provides good foundation for improvement")

    if any(average >= 7 for _, average in _question_averages(snapshot)):
        drivers.append("Several areas show strong performance based on high individual question scores")

    return drivers or ["Response participation indicates willingness to provide feedback"]


def fallback_improvement_areas(snapshot: SurveySnapshot) -> list:
    areas = []
    if snapshot.response_rate < 50:
        areas.append("Low response rate suggests need for improved communication or survey accessibility")
    avg = snapshot.average_scale_score
    if avg is not None and avg < 6:
        areas.append("Below-average satisfaction scores indicate significant opportunities for improvement")
    if snapshot.average_completion_time > 10:
        areas.append("Long completion times may indicate survey is too lengthy or complex")

    low_scoring = sum(1 for _, average in _question_averages(snapshot) if average < 5)
    if low_scoring:
        areas.append(f"{low_scoring} question(s) show concerning low scores requiring attention")
    return areas


def fallback_risk_indicators(snapshot: SurveySnapshot) -> list:
    risks = []
    if snapshot.response_rate < 30:
        risks.append("Very low response rate may indicate disengagement or survey fatigue")
    avg = snapshot.average_scale_score
    if avg is not None and avg < 4:
        risks.append("Critically low satisfaction scores suggest urgent intervention needed")

    total = len(snapshot.completed_responses)
    if total >= 5 and snapshot.recent_response_count(days=3) < total * 0.2:
        risks.append("Response rate appears to be declining over time")
    return risks


def fallback_recommended_actions(snapshot: SurveySnapshot) -> list:
    actions = []
    if snapshot.response_rate < 50:
        actions.append("Send reminder communications to non-respondents to increase participation")
        actions.append("Review survey distribution method and accessibility")
    avg = snapshot.average_scale_score
    if avg is not None and avg < 6:
        actions.append("Conduct focus groups or follow-up interviews to understand specific concerns")
        actions.append("Develop action plan to address low-scoring areas")
    if snapshot.average_completion_time > 10:
        actions.append("Consider shortening survey or breaking into multiple parts")

    actions.append("Share results with participants to demonstrate value of their feedback")
    return actions


def fallback_department_insights(snapshot: SurveySnapshot) -> dict:
    insights = {}
    for department, stats in snapshot.department_breakdown.items():
        rate = stats["response_rate"]
        if rate >= 70:
            insights[department] = f"Strong participation ({rate}%) suggests high engagement"
        elif rate >= 50:
            insights[department] = f"Moderate participation ({rate}%) - consider targeted follow-up"
        else:
            insights[department] = f"Low participation ({rate}%) requires attention and outreach"
    return insights


def fallback_insights(snapshot: SurveySnapshot) -> dict:
    """Deterministic insights document. Same snapshot, same output."""
    return {
        "executive_summary": fallback_executive_summary(snapshot),
        "key_findings": fallback_key_findings(snapshot),
        "satisfaction_drivers": fallback_satisfaction_drivers(snapshot),
        "areas_for_improvement": fallback_improvement_areas(snapshot),
        "risk_indicators": fallback_risk_indicators(snapshot),
        "recommended_actions": fallback_recommended_actions(snapshot),
        "department_insights": fallback_department_insights(snapshot),
    }


def truncate_summary(text: Optional[str], limit: int = SUMMARY_MAX_LENGTH) -> str:
    text = (text or "").strip() or "AI analysis completed"
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------


class SurveyInsightsAnalyzer:
    def __init__(self, db: AsyncSession, ai_client, freshness: Optional[timedelta] = None):
        self.db = db
        self.ai_client = ai_client
        self.freshness = freshness or timedelta(minutes=settings.INSIGHTS_FRESHNESS_MINUTES)

    async def latest(self, survey_id: int) -> Optional[SurveyInsight]:
        result = await self.db.execute(
            select(SurveyInsight)
            .where(SurveyInsight.survey_id == survey_id)
            .order_by(SurveyInsight.generated_at.desc(), SurveyInsight.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def analyze(
        self,
        snapshot: SurveySnapshot,
        generated_by_id: Optional[int] = None,
    ) -> Tuple[SurveyInsight, bool]:
        """Return ``(insight, reused)``: a fresh stored row or a newly generated one."""
        latest = await self.latest(snapshot.id)
        if latest is not None and latest.generated_at > utc_now() - self.freshness:
            logger.info(f"Reusing insights {latest.id} for survey {snapshot.id} (generated {latest.generated_at})")
            return latest, True

        insights = await self.generate(snapshot)
        insight = SurveyInsight(
            survey_id=snapshot.id,
            generated_by_id=generated_by_id or snapshot.created_by_id,
            insights_data=insights,
            summary=truncate_summary(insights.get("executive_summary")),
            analysis_version=ANALYSIS_VERSION,
            generated_at=utc_now(),
        )
        self.db.add(insight)
        await self.db.flush()
        logger.info(f"Saved insights {insight.id} for survey {snapshot.id} ({insights['analysis_source']})")
        return insight, False

    async def generate(self, snapshot: SurveySnapshot) -> dict:
        """Produce an enriched insights document. Never raises for AI failures."""
        logger.info(
            f"Insights analysis started for survey {snapshot.id}: "
            f"{len(snapshot.completed_responses)} completed responses"
        )
        try:
            raw = await self.ai_client.complete(
                json.dumps(build_analysis_data(snapshot), default=str),
                system_prompt=INSIGHTS_SYSTEM_PROMPT,
            )
            payload = validate_ai_payload(InsightsPayload, raw)
        except AIServiceError as e:
            logger.warning(f"AI insights failed for survey {snapshot.id} ({e.kind}), using fallback: {e}")
            track_ai_request("insights", success=False)
            insights, source = fallback_insights(snapshot), "fallback"
        else:
            track_ai_request("insights", success=True)
            insights, source = payload.model_dump(), "ai"

        enriched = enrich_insights(insights, snapshot)
        enriched["analysis_source"] = source
        return enriched
