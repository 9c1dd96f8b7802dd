"""
Tests for the per-question endpoints.
"""

import pytest

from factories import PickOneQuestionFactory, ScaleQuestionFactory, TextQuestionFactory


class TestQuestionSummary:
    @pytest.mark.asyncio
    async def test_no_answers(self, client, seed):
        _, (text_q, _) = await seed.survey()

        response = await client.get(f"/api/v2/questions/{text_q.id}/summary")

        assert response.status_code == 200
        data = response.json()
        assert data["analysis_source"] == "none"
        assert data["summary"] == "No responses yet."
        assert data["response_count"] == 0

    @pytest.mark.asyncio
    async def test_few_answers_get_simple_summary(self, client, seed, ai_client):
        survey, (text_q, _) = await seed.survey()
        await seed.response(survey, {text_q.id: "Good snacks"})
        await seed.response(survey, {text_q.id: "Nice people"})

        response = await client.get(f"/api/v2/questions/{text_q.id}/summary")

        data = response.json()
        assert data["analysis_source"] == "simple"
        assert data["response_count"] == 2
        assert ai_client.calls == []

    @pytest.mark.asyncio
    async def test_unreachable_ai_falls_back(self, client, seed):
        survey, (text_q, _) = await seed.survey()
        for text in ("Great lunches", "Too many meetings is a problem", "Love the team"):
            await seed.response(survey, {text_q.id: text})

        response = await client.get(f"/api/v2/questions/{text_q.id}/summary")

        data = response.json()
        assert data["analysis_source"] == "fallback"
        assert data["response_count"] == 3
        assert data["question_text"] == text_q.question_text

    @pytest.mark.asyncio
    async def test_missing_question(self, client):
        response = await client.get("/api/v2/questions/9999/summary")
        assert response.status_code == 404
        assert response.json()["detail"] == "Question with ID 9999 was not found"


class TestValidateAnswer:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("value,valid", [("7", True), ("11", False), ("seven", False)])
    async def test_scale(self, client, seed, value, valid):
        _, (scale_q,) = await seed.survey(questions=[ScaleQuestionFactory()])

        response = await client.post(f"/api/v2/questions/{scale_q.id}/validate-answer", json={"value": value})

        assert response.status_code == 200
        assert response.json()["valid"] is valid

    @pytest.mark.asyncio
    async def test_required_question_needs_a_value(self, client, seed):
        _, (scale_q,) = await seed.survey(questions=[ScaleQuestionFactory()])

        response = await client.post(f"/api/v2/questions/{scale_q.id}/validate-answer", json={})

        assert response.json() == {"question_id": scale_q.id, "valid": False, "errors": ["is required"]}

    @pytest.mark.asyncio
    async def test_pick_one(self, client, seed):
        _, (pick_q, text_q) = await seed.survey(questions=[PickOneQuestionFactory(), TextQuestionFactory()])

        good = await client.post(f"/api/v2/questions/{pick_q.id}/validate-answer", json={"value": "Remote"})
        bad = await client.post(f"/api/v2/questions/{pick_q.id}/validate-answer", json={"value": "Moon base"})
        free = await client.post(f"/api/v2/questions/{text_q.id}/validate-answer", json={"value": "Anything"})

        assert good.json()["valid"] is True
        assert bad.json()["errors"] == ["must be one of the question's options"]
        assert free.json()["valid"] is True
