"""
Tests for the health and metrics endpoints.
"""

import pytest


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "cache" in data


class TestMetricsEndpoint:
    @pytest.mark.asyncio
    async def test_requests_are_recorded_with_normalized_paths(self, client, seed):
        survey, _ = await seed.survey()
        await client.get(f"/api/v2/surveys/{survey.id}/dashboard")

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert 'path="/api/v2/surveys/:id/dashboard"' in response.text
        assert 'path="/health"' not in response.text

    @pytest.mark.asyncio
    async def test_correlation_id_is_echoed(self, client):
        response = await client.get("/health", headers={"X-Correlation-ID": "abc-123"})
        assert response.headers["X-Correlation-ID"] == "abc-123"
