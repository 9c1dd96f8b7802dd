"""Survey-wide sentiment analysis job.

Runs ``SurveySentimentAnalyzer`` over a fresh snapshot, relays its
checkpoints and caches the result for an hour. The runner wraps this job in
a hard timeout (``SENTIMENT_JOB_TIMEOUT_SECONDS``).
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from survey_analytics.config import settings
from survey_analytics.services.cache_service import CacheService, get_cache_service
from survey_analytics.services.sentiment_analyzer import SurveySentimentAnalyzer
from survey_analytics.services.survey_snapshot import load_survey_snapshot
from survey_analytics.tasks.job_runner import JobProgress

logger = logging.getLogger(__name__)

REFRESH_AFTER_MS = 3000
TIMEOUT_MESSAGE = "Analysis timed out - too many responses. Please try with fewer responses."


def sentiment_cache_key(survey_id: int) -> str:
    return f"sentiment_analysis:{survey_id}"


async def run_sentiment_analysis(
    progress: JobProgress,
    survey_id: int,
    session_factory: async_sessionmaker,
    cache: Optional[CacheService] = None,
    analyzer_factory=SurveySentimentAnalyzer,
) -> dict:
    prefix = f"[SENTIMENT JOB {progress.job_id}]"
    cache = cache or get_cache_service()

    logger.info(f"{prefix} Starting sentiment analysis for survey {survey_id}")
    await progress.running("Starting AI sentiment analysis...", 0)

    async with session_factory() as db:
        snapshot = await load_survey_snapshot(db, survey_id)
    if snapshot is None:
        raise LookupError(f"Survey {survey_id} not found")

    await progress.running("Analyzing response sentiment...", 20)
    analyzer = analyzer_factory(snapshot)

    async def relay(percentage: int, message: str):
        await progress.running(message, percentage)

    results = await analyzer.analyze_with_progress(relay, job_id=progress.job_id)

    await progress.running("Generating insights...", 90)
    await cache.set(sentiment_cache_key(survey_id), results, ttl=settings.SENTIMENT_CACHE_TTL_SECONDS)

    await progress.running("Finalizing analysis...", 95)
    overall = results["overall_sentiment"]
    logger.info(f"{prefix} Completed sentiment analysis: {overall['label']} ({overall['score']})")

    await progress.completed(
        f"Sentiment analysis complete: {overall['label'].title()} ({round(overall['score'] * 100)}%) "
        f"| Priority: {results['recommendation_priority'].title()}",
        result=results,
    )
    await progress.refresh(REFRESH_AFTER_MS, f"/surveys/{survey_id}/sentiment_analysis")
    return results
