"""
Tests for the survey analytics endpoints.
"""

import asyncio

import pytest
from sqlalchemy import func, select

from survey_analytics.models import Answer, Assignment, Response
from survey_analytics.services.progress_broadcaster import DATA_GENERATION, channel_name
from survey_analytics.tasks.sentiment_analysis import sentiment_cache_key


async def count(db, model, survey_id):
    return (await db.execute(select(func.count(model.id)).where(model.survey_id == survey_id))).scalar_one()


class TestDashboard:
    @pytest.mark.asyncio
    async def test_dashboard_metrics(self, client, seed):
        survey, (text_q, scale_q) = await seed.survey(title="Engagement Pulse")
        await seed.response(survey, {text_q.id: "Great team", scale_q.id: "8"}, department="Engineering")
        await seed.assignment(survey, department="Sales")

        response = await client.get(f"/api/v2/surveys/{survey.id}/dashboard")

        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Engagement Pulse"
        assert data["total_assignments"] == 2
        assert data["total_responses"] == 1
        assert data["response_rate"] == 50.0
        assert data["average_scale_score"] == 8.0
        assert [count for _, count in data["response_timeline"]] == [1]

    @pytest.mark.asyncio
    async def test_missing_survey_is_problem_detail(self, client):
        response = await client.get("/api/v2/surveys/9999/dashboard")

        assert response.status_code == 404
        assert response.headers["content-type"].startswith("application/problem+json")
        body = response.json()
        assert body["code"] == "RES_001"
        assert body["detail"] == "Survey with ID 9999 was not found"
        assert body["instance"] == "/api/v2/surveys/9999/dashboard"


class TestAIReview:
    @pytest.mark.asyncio
    async def test_unreachable_ai_falls_back(self, client, seed):
        survey, _ = await seed.survey()

        response = await client.post(f"/api/v2/surveys/{survey.id}/ai-review")

        assert response.status_code == 200
        assert response.json()["source"] == "fallback"
        assert response.json()["overall_score"] == 7


class TestInsights:
    @pytest.mark.asyncio
    async def test_generated_once_then_reused(self, client, seed):
        survey, (text_q, scale_q) = await seed.survey()
        await seed.response(survey, {text_q.id: "Great team", scale_q.id: "9"})

        first = await client.post(f"/api/v2/surveys/{survey.id}/ai-insights")
        second = await client.post(f"/api/v2/surveys/{survey.id}/ai-insights")

        assert first.status_code == 200
        assert first.json()["reused"] is False
        assert first.json()["insight"]["insights_data"]["analysis_source"] == "fallback"
        assert second.json()["reused"] is True
        assert second.json()["insight"]["id"] == first.json()["insight"]["id"]

        listed = await client.get(f"/api/v2/surveys/{survey.id}/insights")
        assert [i["id"] for i in listed.json()] == [first.json()["insight"]["id"]]

    @pytest.mark.asyncio
    async def test_list_is_empty_before_generation(self, client, seed):
        survey, _ = await seed.survey()
        response = await client.get(f"/api/v2/surveys/{survey.id}/insights")
        assert response.status_code == 200
        assert response.json() == []


class TestGenerateData:
    @pytest.mark.asyncio
    async def test_queues_job_and_creates_rows(self, client, seed, test_db, job_runner):
        survey, _ = await seed.survey()

        response = await client.post(
            f"/api/v2/surveys/{survey.id}/generate-data",
            params={"job_id": "gen-1"},
            json={"assignments_count": 4, "responses_count": 2},
        )

        assert response.status_code == 202
        body = response.json()
        assert body["job_id"] == "gen-1"
        assert body["channel"] == channel_name(survey.id, DATA_GENERATION)
        assert body["event"]["status"] == "queued"
        assert body["event"]["target"] == "data-generation-status"

        await job_runner.join()
        assert await count(test_db, Assignment, survey.id) == 4
        assert await count(test_db, Response, survey.id) == 2

    @pytest.mark.asyncio
    async def test_second_job_for_same_survey_conflicts(self, client, seed, job_runner):
        survey, _ = await seed.survey()
        release = asyncio.Event()

        async def blocking(progress):
            await release.wait()

        await job_runner.submit(survey.id, DATA_GENERATION, blocking, job_id="busy")
        response = await client.post(
            f"/api/v2/surveys/{survey.id}/generate-data", json={"assignments_count": 1}
        )
        release.set()
        await job_runner.join()

        assert response.status_code == 409
        assert "busy" in response.json()["detail"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"assignments_count": 0},
            {"assignments_count": 101},
            {"assignments_count": 2, "responses_count": 3},
            {"responses_count": 1},
        ],
    )
    async def test_invalid_counts(self, client, seed, body):
        survey, _ = await seed.survey()
        response = await client.post(f"/api/v2/surveys/{survey.id}/generate-data", json=body)
        assert response.status_code == 422
        assert response.json()["code"] == "VAL_001"

    @pytest.mark.asyncio
    async def test_missing_survey(self, client):
        response = await client.post("/api/v2/surveys/9999/generate-data", json={"assignments_count": 1})
        assert response.status_code == 404


class TestResetAssignments:
    @pytest.mark.asyncio
    async def test_deletes_everything_and_clears_cached_sentiment(self, client, seed, test_db, cache):
        survey, (text_q, scale_q) = await seed.survey()
        survey_id = survey.id
        await seed.response(survey, {text_q.id: "Fine", scale_q.id: "5"})
        await seed.response(survey, {text_q.id: "Good", scale_q.id: "6"})
        await seed.assignment(survey)
        await cache.set(sentiment_cache_key(survey_id), {"overall_sentiment": {}})

        response = await client.post(f"/api/v2/surveys/{survey_id}/reset-assignments")

        assert response.status_code == 200
        assert response.json() == {
            "survey_id": survey_id,
            "assignments_deleted": 3,
            "responses_deleted": 2,
            "answers_deleted": 4,
        }
        assert await count(test_db, Assignment, survey_id) == 0
        answers = (await test_db.execute(select(func.count(Answer.id)))).scalar_one()
        assert answers == 0
        assert await cache.get(sentiment_cache_key(survey_id)) is None


class TestSentimentAnalysis:
    @pytest.mark.asyncio
    async def test_needs_three_responses(self, client, seed):
        survey, (text_q, _) = await seed.survey()
        await seed.response(survey, {text_q.id: "Great"})
        await seed.response(survey, {text_q.id: "Bad"})

        response = await client.post(f"/api/v2/surveys/{survey.id}/sentiment-analysis")

        assert response.status_code == 422
        assert "at least 3 responses" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_queue_then_read_cached_result(self, client, seed, job_runner):
        survey, (text_q, scale_q) = await seed.survey()
        for text in ("Great team", "Terrible tools", "Helpful manager"):
            await seed.response(survey, {text_q.id: text, scale_q.id: "6"})

        missing = await client.get(f"/api/v2/surveys/{survey.id}/sentiment-analysis")
        assert missing.status_code == 404

        queued = await client.post(f"/api/v2/surveys/{survey.id}/sentiment-analysis")
        assert queued.status_code == 202
        assert queued.json()["event"]["target"] == "sentiment-analysis-status"

        await job_runner.join()
        response = await client.get(f"/api/v2/surveys/{survey.id}/sentiment-analysis")

        assert response.status_code == 200
        data = response.json()
        assert data["overall_sentiment"]["total_responses"] == 3
        assert data["recommendation_priority"] in ("low", "medium", "high")
        assert data["detailed_breakdown"]["positive_responses"] == 2
