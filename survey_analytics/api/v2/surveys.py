"""
Survey analytics endpoints.

Dashboard metrics, AI review and insights run inline. Data generation and
sentiment analysis are queued on the job runner and answer 202 with the
"queued" progress event; progress follows on the WebSocket channel. A
second job for the same survey and operation is refused with 409 while the
first is queued or running.
"""

from functools import partial
from typing import List, Optional

from fastapi import APIRouter, Query, status
from sqlalchemy import select

from survey_analytics.api.deps import (
    AIClient,
    Cache,
    CurrentSnapshot,
    CurrentSurvey,
    DbSession,
    Runner,
    SessionFactory,
)
from survey_analytics.config import settings
from survey_analytics.exceptions import NotFoundError, ValidationError
from survey_analytics.models import SurveyInsight
from survey_analytics.schemas.survey import (
    GenerateDataRequest,
    InsightRead,
    InsightsResult,
    JobAccepted,
    ResetResult,
)
from survey_analytics.services.insights_analyzer import SurveyInsightsAnalyzer
from survey_analytics.services.progress_broadcaster import DATA_GENERATION, SENTIMENT_ANALYSIS, channel_name
from survey_analytics.services.response_lifecycle import reset_assignments
from survey_analytics.services.survey_reviewer import SurveyAIReviewer
from survey_analytics.tasks.data_generation import run_data_generation
from survey_analytics.tasks.sentiment_analysis import TIMEOUT_MESSAGE, run_sentiment_analysis, sentiment_cache_key

router = APIRouter()

MIN_RESPONSES_FOR_SENTIMENT = 3


@router.get("/{survey_id}/dashboard")
async def get_dashboard(snapshot: CurrentSnapshot):
    """Derived survey metrics."""
    return {
        "survey_id": snapshot.id,
        "title": snapshot.title,
        "status": snapshot.status,
        **snapshot.metrics(),
        "response_timeline": snapshot.response_timeline(days=7),
    }


@router.post("/{survey_id}/ai-review")
async def review_survey(snapshot: CurrentSnapshot, ai_client: AIClient):
    """Design review of the survey. Falls back to a fixed template when the AI is unavailable."""
    return await SurveyAIReviewer(ai_client).review(snapshot)


@router.post("/{survey_id}/ai-insights", response_model=InsightsResult)
async def generate_insights(snapshot: CurrentSnapshot, db: DbSession, ai_client: AIClient):
    """Return insights generated within the freshness window, or generate and store new ones."""
    insight, reused = await SurveyInsightsAnalyzer(db, ai_client).analyze(snapshot)
    if not reused:
        await db.commit()
    return InsightsResult(insight=InsightRead.model_validate(insight), reused=reused)


@router.get("/{survey_id}/insights", response_model=List[InsightRead])
async def list_insights(
    survey: CurrentSurvey,
    db: DbSession,
    limit: int = Query(20, ge=1, le=100),
):
    """Stored insight snapshots, latest first."""
    result = await db.execute(
        select(SurveyInsight)
        .where(SurveyInsight.survey_id == survey.id)
        .order_by(SurveyInsight.generated_at.desc(), SurveyInsight.id.desc())
        .limit(limit)
    )
    return result.scalars().all()


@router.post("/{survey_id}/generate-data", response_model=JobAccepted, status_code=status.HTTP_202_ACCEPTED)
async def generate_data(
    survey: CurrentSurvey,
    body: GenerateDataRequest,
    runner: Runner,
    session_factory: SessionFactory,
    ai_client: AIClient,
    job_id: Optional[str] = Query(None, max_length=64),
):
    """Queue synthetic assignments and responses for the survey."""
    func = partial(
        run_data_generation,
        survey_id=survey.id,
        assignments_count=body.assignments_count,
        responses_count=body.responses_count,
        session_factory=session_factory,
        ai_client=ai_client,
    )
    job_id, event = await runner.submit(survey.id, DATA_GENERATION, func, job_id=job_id)
    return JobAccepted(job_id=job_id, channel=channel_name(survey.id, DATA_GENERATION), event=event)


@router.post("/{survey_id}/reset-assignments", response_model=ResetResult)
async def reset_survey_assignments(survey: CurrentSurvey, db: DbSession, cache: Cache):
    """Delete every assignment, response and answer of the survey."""
    # reset expires every loaded object, survey included
    survey_id = survey.id
    counts = await reset_assignments(db, survey_id)
    await db.commit()
    await cache.delete(sentiment_cache_key(survey_id))
    return ResetResult(survey_id=survey_id, **counts)


@router.post(
    "/{survey_id}/sentiment-analysis", response_model=JobAccepted, status_code=status.HTTP_202_ACCEPTED
)
async def start_sentiment_analysis(
    snapshot: CurrentSnapshot,
    runner: Runner,
    session_factory: SessionFactory,
    cache: Cache,
    job_id: Optional[str] = Query(None, max_length=64),
):
    """Queue survey-wide sentiment analysis. Needs at least three responses."""
    if len(snapshot.responses) < MIN_RESPONSES_FOR_SENTIMENT:
        raise ValidationError(
            f"Need at least {MIN_RESPONSES_FOR_SENTIMENT} responses for sentiment analysis "
            f"(survey has {len(snapshot.responses)})"
        )

    func = partial(run_sentiment_analysis, survey_id=snapshot.id, session_factory=session_factory, cache=cache)
    job_id, event = await runner.submit(
        snapshot.id,
        SENTIMENT_ANALYSIS,
        func,
        job_id=job_id,
        timeout=settings.SENTIMENT_JOB_TIMEOUT_SECONDS,
        timeout_message=TIMEOUT_MESSAGE,
    )
    return JobAccepted(job_id=job_id, channel=channel_name(snapshot.id, SENTIMENT_ANALYSIS), event=event)


@router.get("/{survey_id}/sentiment-analysis")
async def get_sentiment_analysis(survey: CurrentSurvey, cache: Cache):
    """Most recent cached sentiment analysis result."""
    results = await cache.get(sentiment_cache_key(survey.id))
    if results is None:
        raise NotFoundError("Sentiment analysis for survey", survey.id)
    return results
