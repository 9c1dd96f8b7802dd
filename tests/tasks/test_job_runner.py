"""
Tests for the background job runner and progress reporting.
"""

import asyncio

import pytest

from survey_analytics.core.metrics import get_registry
from survey_analytics.exceptions import DataGenerationError, JobConflictError, ProviderTimeoutError
from survey_analytics.services.progress_broadcaster import DATA_GENERATION, SENTIMENT_ANALYSIS, channel_name
from survey_analytics.tasks.job_runner import QUEUED_MESSAGE, JobProgress, JobRunner


def drain(queue: asyncio.Queue) -> list:
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


class TestJobProgress:
    @pytest.mark.asyncio
    async def test_percentages_never_go_backwards(self, broadcaster):
        progress = JobProgress(broadcaster, "job1", 1, DATA_GENERATION)
        await progress.running("a", 40)
        event = await progress.running("b", 20)
        assert event.percentage == 40

    @pytest.mark.asyncio
    async def test_percentages_are_clamped(self, broadcaster):
        progress = JobProgress(broadcaster, "job1", 1, DATA_GENERATION)
        assert (await progress.running("over", 250)).percentage == 100

    @pytest.mark.asyncio
    async def test_update_ids_are_sequential(self, broadcaster):
        progress = JobProgress(broadcaster, "job1", 1, DATA_GENERATION)
        first = await progress.queued()
        second = await progress.item("Generated 1/1 responses", 50)
        assert (first.update_id, second.update_id) == ("job1-1", "job1-2")
        assert second.mode == "append"
        assert first.mode == "replace"

    @pytest.mark.asyncio
    async def test_refresh_keeps_percentage(self, broadcaster):
        progress = JobProgress(broadcaster, "job1", 7, SENTIMENT_ANALYSIS)
        await progress.completed("Done", result={"ok": True})
        event = await progress.refresh(3000, "/surveys/7/sentiment_analysis")

        assert event.status == "refresh"
        assert event.percentage == 100
        assert event.refresh_after_ms == 3000
        assert event.target == "sentiment-analysis-status"


class TestJobRunner:
    @pytest.mark.asyncio
    async def test_submit_requires_start(self, broadcaster):
        runner = JobRunner(broadcaster=broadcaster)

        async def job(progress):
            pass

        with pytest.raises(RuntimeError):
            await runner.submit(1, DATA_GENERATION, job)

    @pytest.mark.asyncio
    async def test_queued_event_is_returned(self, job_runner):
        async def job(progress):
            await progress.completed("Done")

        job_id, event = await job_runner.submit(1, DATA_GENERATION, job, job_id="abc123")
        await job_runner.join()

        assert job_id == "abc123"
        assert event.status == "queued"
        assert event.message == QUEUED_MESSAGE
        assert event.percentage == 0
        assert event.target == "data-generation-status"

    @pytest.mark.asyncio
    async def test_rejects_a_second_job_for_the_same_survey_and_operation(self, job_runner):
        release = asyncio.Event()

        async def blocking(progress):
            await release.wait()

        async def quick(progress):
            pass

        job_id, _ = await job_runner.submit(1, DATA_GENERATION, blocking)
        with pytest.raises(JobConflictError) as exc_info:
            await job_runner.submit(1, DATA_GENERATION, quick)
        assert exc_info.value.job_id == job_id

        # other operations and other surveys are independent
        await job_runner.submit(1, SENTIMENT_ANALYSIS, quick)
        await job_runner.submit(2, DATA_GENERATION, quick)

        release.set()
        await job_runner.join()
        assert job_runner.in_flight(1, DATA_GENERATION) is None
        await job_runner.submit(1, DATA_GENERATION, quick)
        await job_runner.join()

    @pytest.mark.asyncio
    async def test_failure_becomes_a_failed_event(self, job_runner, broadcaster):
        queue = broadcaster.subscribe_queue(channel_name(1, DATA_GENERATION))

        async def broken(progress):
            await progress.running("Working...", 30)
            raise ValueError("boom")

        await job_runner.submit(1, DATA_GENERATION, broken)
        await job_runner.join()

        events = drain(queue)
        assert [e["status"] for e in events] == ["queued", "running", "failed"]
        assert events[-1]["message"] == "boom"
        assert events[-1]["error_kind"] == "error"
        assert events[-1]["percentage"] == 30
        assert job_runner.running

    @pytest.mark.asyncio
    async def test_failure_kind_comes_from_the_exception(self, job_runner, broadcaster):
        queue = broadcaster.subscribe_queue(channel_name(1, DATA_GENERATION))

        async def broken(progress):
            raise DataGenerationError("Only 2 unassigned users available, but 5 assignments requested")

        await job_runner.submit(1, DATA_GENERATION, broken)
        await job_runner.join()

        failed = drain(queue)[-1]
        assert failed["error_kind"] == "data_error"
        assert failed["message"].startswith("Only 2 unassigned users")

    @pytest.mark.asyncio
    async def test_ai_timeout_inside_a_job_is_not_a_job_timeout(self, job_runner, broadcaster):
        queue = broadcaster.subscribe_queue(channel_name(1, SENTIMENT_ANALYSIS))

        async def stalled_ai(progress):
            raise ProviderTimeoutError("AI request timed out after 5 seconds")

        await job_runner.submit(1, SENTIMENT_ANALYSIS, stalled_ai, timeout=5)
        await job_runner.join()

        failed = drain(queue)[-1]
        assert failed["status"] == "failed"
        assert failed["error_kind"] == "provider_timeout"

        output = get_registry().format_prometheus()
        assert 'survey_jobs_total{operation="sentiment_analysis",outcome="failed"} 1.0' in output

    @pytest.mark.asyncio
    async def test_timeout(self, job_runner, broadcaster):
        queue = broadcaster.subscribe_queue(channel_name(1, SENTIMENT_ANALYSIS))

        async def slow(progress):
            await progress.running("Analyzing...", 20)
            await asyncio.sleep(5)

        await job_runner.submit(1, SENTIMENT_ANALYSIS, slow, timeout=0.05, timeout_message="Took too long")
        await job_runner.join()

        events = drain(queue)
        assert events[-1]["status"] == "failed"
        assert events[-1]["error_kind"] == "timeout"
        assert events[-1]["message"] == "Took too long"
        assert job_runner.in_flight(1, SENTIMENT_ANALYSIS) is None

        output = get_registry().format_prometheus()
        assert 'survey_jobs_total{operation="sentiment_analysis",outcome="timeout"} 1.0' in output

    @pytest.mark.asyncio
    async def test_completed_jobs_are_counted(self, job_runner):
        async def job(progress):
            await progress.completed("Done")

        await job_runner.submit(3, DATA_GENERATION, job)
        await job_runner.join()

        output = get_registry().format_prometheus()
        assert 'survey_jobs_total{operation="data_generation",outcome="completed"} 1.0' in output
        assert "survey_jobs_in_flight 0.0" in output
