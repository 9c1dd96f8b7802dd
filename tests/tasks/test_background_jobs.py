"""
Tests for the data generation and sentiment analysis jobs.
"""

import asyncio
import random
from functools import partial

import pytest
from sqlalchemy import func, select

from survey_analytics.models import Assignment, Response
from survey_analytics.services.progress_broadcaster import DATA_GENERATION, SENTIMENT_ANALYSIS, channel_name
from survey_analytics.services.sentiment_analyzer import SurveySentimentAnalyzer
from survey_analytics.tasks.data_generation import progress_percentage, run_data_generation
from survey_analytics.tasks.job_runner import JobProgress
from survey_analytics.tasks.sentiment_analysis import TIMEOUT_MESSAGE, run_sentiment_analysis, sentiment_cache_key


def drain(queue: asyncio.Queue) -> list:
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


async def count(db, model, survey_id):
    return (await db.execute(select(func.count(model.id)).where(model.survey_id == survey_id))).scalar_one()


class TestProgressPercentage:
    def test_integer_division(self):
        assert [progress_percentage(done, 15) for done in (10, 11, 14, 15)] == [66, 73, 93, 100]

    def test_empty_job_is_complete(self):
        assert progress_percentage(0, 0) == 100


class TestDataGenerationJob:
    @pytest.mark.asyncio
    async def test_progress_for_ten_assignments_and_five_responses(
        self, test_db, seed, session_factory, broadcaster, ai_client
    ):
        survey, _ = await seed.survey()
        queue = broadcaster.subscribe_queue(channel_name(survey.id, DATA_GENERATION))
        progress = JobProgress(broadcaster, "job1", survey.id, DATA_GENERATION)

        result = await run_data_generation(
            progress, survey.id, 10, 5, session_factory, ai_client, pacing=0, rng=random.Random(3)
        )

        events = drain(queue)
        statuses = [e["status"] for e in events]
        assert statuses == ["running", "running"] + ["item"] * 5 + ["completed", "refresh"]

        percentages = [e["percentage"] for e in events]
        assert percentages == sorted(percentages)
        assert [e["percentage"] for e in events if e["status"] == "item"] == [
            done * 100 // 15 for done in range(11, 16)
        ]
        assert all(p < 100 for p in percentages[:6])

        assert events[1]["message"] == "Created 10 assignments"
        assert events[2]["message"] == "Generated 1/5 responses"
        assert events[2]["mode"] == "append"
        assert events[-2]["result"] == result
        assert events[-1]["refresh_after_ms"] == 2000
        assert events[-1]["refresh_url"] == f"/surveys/{survey.id}"

        assert result["assignments_created"] == 10
        assert result["responses_created"] == 5
        assert result["text_sources"] == {"ai": 0, "fallback": 5}
        assert await count(test_db, Assignment, survey.id) == 10
        completed = (
            await test_db.execute(
                select(func.count(Response.id)).where(
                    Response.survey_id == survey.id, Response.completed_at.is_not(None)
                )
            )
        ).scalar_one()
        assert completed == 5

    @pytest.mark.asyncio
    async def test_more_responses_than_assignments(self, seed, session_factory, broadcaster, ai_client):
        survey, _ = await seed.survey()
        progress = JobProgress(broadcaster, "job2", survey.id, DATA_GENERATION)

        result = await run_data_generation(progress, survey.id, 2, 5, session_factory, ai_client, pacing=0)

        assert result["responses_created"] == 2

    @pytest.mark.asyncio
    async def test_missing_survey_fails_through_the_runner(self, job_runner, broadcaster, session_factory, ai_client):
        queue = broadcaster.subscribe_queue(channel_name(999, DATA_GENERATION))
        func_ = partial(
            run_data_generation,
            survey_id=999,
            assignments_count=3,
            responses_count=1,
            session_factory=session_factory,
            ai_client=ai_client,
        )

        await job_runner.submit(999, DATA_GENERATION, func_)
        await job_runner.join()

        failed = drain(queue)[-1]
        assert failed["status"] == "failed"
        assert failed["error_kind"] == "data_error"
        assert "Survey 999 not found" in failed["message"]


class TestSentimentAnalysisJob:
    @pytest.mark.asyncio
    async def test_checkpoints_cache_and_refresh(self, seed, session_factory, broadcaster, cache):
        survey, (text_q, scale_q) = await seed.survey()
        for text in ("Great team", "Terrible tools", "Great lunches"):
            await seed.response(survey, {text_q.id: text, scale_q.id: "7"}, department="Engineering")
        queue = broadcaster.subscribe_queue(channel_name(survey.id, SENTIMENT_ANALYSIS))
        progress = JobProgress(broadcaster, "job3", survey.id, SENTIMENT_ANALYSIS)

        results = await run_sentiment_analysis(progress, survey.id, session_factory, cache=cache)

        events = drain(queue)
        assert [e["percentage"] for e in events] == [0, 20, 25, 35, 50, 60, 70, 80, 90, 95, 100, 100]
        assert events[-2]["status"] == "completed"
        assert events[-2]["message"].startswith("Sentiment analysis complete: ")
        assert "| Priority: Low" in events[-2]["message"]
        assert events[-1]["refresh_after_ms"] == 3000
        assert events[-1]["refresh_url"] == f"/surveys/{survey.id}/sentiment_analysis"

        assert results["overall_sentiment"]["total_responses"] == 3
        cached = await cache.get(sentiment_cache_key(survey.id))
        assert cached["overall_sentiment"] == results["overall_sentiment"]

    @pytest.mark.asyncio
    async def test_missing_survey(self, session_factory, broadcaster, cache):
        progress = JobProgress(broadcaster, "job4", 404, SENTIMENT_ANALYSIS)
        with pytest.raises(LookupError):
            await run_sentiment_analysis(progress, 404, session_factory, cache=cache)

    @pytest.mark.asyncio
    async def test_timeout_reports_the_timeout_message(self, seed, job_runner, broadcaster, session_factory, cache):
        survey, (text_q, _) = await seed.survey()
        await seed.response(survey, {text_q.id: "Great team"})

        class SlowAnalyzer(SurveySentimentAnalyzer):
            async def analyze_with_progress(self, progress=None, job_id="-"):
                await progress(25, "Calculating overall sentiment...")
                await asyncio.sleep(5)

        queue = broadcaster.subscribe_queue(channel_name(survey.id, SENTIMENT_ANALYSIS))
        func_ = partial(
            run_sentiment_analysis,
            survey_id=survey.id,
            session_factory=session_factory,
            cache=cache,
            analyzer_factory=SlowAnalyzer,
        )

        await job_runner.submit(
            survey.id, SENTIMENT_ANALYSIS, func_, timeout=0.2, timeout_message=TIMEOUT_MESSAGE
        )
        await job_runner.join()

        events = drain(queue)
        assert events[-1]["status"] == "failed"
        assert events[-1]["error_kind"] == "timeout"
        assert events[-1]["message"] == TIMEOUT_MESSAGE
        assert events[-1]["percentage"] == 25
        assert await cache.get(sentiment_cache_key(survey.id)) is None
