"""
Background job runner.

Jobs are coroutines that take a ``JobProgress`` reporter. ``JobRunner``
queues them on an ``asyncio.Queue`` consumed by a fixed pool of worker
tasks, so the request that submits a job only waits for the "queued" event.

Failures never escape a worker: every exception is logged and turned into a
terminal "failed" event on the job's progress channel. A job submitted with
a ``timeout`` is cancelled once it runs past it and reported with
``error_kind="timeout"``.

At most one job per (survey, operation) may be queued or running; a second
submission raises ``JobConflictError``.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from survey_analytics.config import settings
from survey_analytics.core.metrics import track_job, track_job_queued
from survey_analytics.exceptions import JobConflictError, JobTimeoutError
from survey_analytics.schemas.progress import ProgressEvent
from survey_analytics.services.progress_broadcaster import (
    ProgressBroadcaster,
    channel_name,
    get_broadcaster,
    target_for,
)

logger = logging.getLogger(__name__)

QUEUED_MESSAGE = "Queued for processing..."


def new_job_id() -> str:
    return uuid.uuid4().hex[:12]


class JobProgress:
    """Publishes progress events for one job.

    Percentages are clamped to 0..100 and never go backwards, so events
    published in order always report a non-decreasing percentage.
    """

    def __init__(self, broadcaster: ProgressBroadcaster, job_id: str, survey_id: int, operation: str):
        self.broadcaster = broadcaster
        self.job_id = job_id
        self.survey_id = survey_id
        self.operation = operation
        self.target = target_for(operation)
        self.percentage = 0
        self._sequence = 0

    @property
    def channel(self) -> str:
        return channel_name(self.survey_id, self.operation)

    async def emit(self, status: str, message: str, percentage: Optional[int] = None, **fields) -> ProgressEvent:
        if percentage is not None:
            self.percentage = max(self.percentage, min(100, max(0, int(percentage))))
        self._sequence += 1

        event = ProgressEvent(
            job_id=self.job_id,
            survey_id=self.survey_id,
            operation=self.operation,
            status=status,
            message=message,
            percentage=self.percentage,
            target=self.target,
            update_id=f"{self.job_id}-{self._sequence}",
            **fields,
        )
        await self.broadcaster.publish(event)
        return event

    async def queued(self) -> ProgressEvent:
        return await self.emit("queued", QUEUED_MESSAGE, 0)

    async def running(self, message: str, percentage: int, **fields) -> ProgressEvent:
        return await self.emit("running", message, percentage, **fields)

    async def item(self, message: str, percentage: int, **fields) -> ProgressEvent:
        """Discrete item arrival; appended by subscribers instead of replacing."""
        return await self.emit("item", message, percentage, mode="append", **fields)

    async def completed(self, message: str, result: Any = None) -> ProgressEvent:
        return await self.emit("completed", message, 100, result=result)

    async def failed(self, message: str, error_kind: str = "error") -> ProgressEvent:
        return await self.emit("failed", message, error_kind=error_kind)

    async def refresh(self, after_ms: int, url: str) -> ProgressEvent:
        """Ask subscribers to reload the full view after ``after_ms``."""
        return await self.emit(
            "refresh", "Refreshing results...", refresh_after_ms=after_ms, refresh_url=url, mode="append"
        )


JobFunc = Callable[[JobProgress], Awaitable[Any]]


@dataclass
class Job:
    job_id: str
    survey_id: int
    operation: str
    func: JobFunc
    progress: JobProgress
    timeout: Optional[float] = None
    timeout_message: Optional[str] = None

    @property
    def key(self) -> Tuple[int, str]:
        return (self.survey_id, self.operation)


class JobRunner:
    def __init__(self, broadcaster: Optional[ProgressBroadcaster] = None, workers: Optional[int] = None):
        self.broadcaster = broadcaster or get_broadcaster()
        self.worker_count = max(1, workers or settings.JOB_WORKERS)
        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []
        self._in_flight: Dict[Tuple[int, str], str] = {}

    @property
    def running(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        if self._workers:
            return
        self._queue = asyncio.Queue()
        self._workers = [
            asyncio.create_task(self._worker(n), name=f"job-worker-{n}") for n in range(self.worker_count)
        ]
        logger.info(f"Job runner started with {self.worker_count} workers")

    async def stop(self) -> None:
        """Cancel the workers. Jobs still queued are dropped."""
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None
        self._in_flight.clear()
        logger.info("Job runner stopped")

    async def join(self) -> None:
        """Wait until every submitted job has finished."""
        if self._queue is not None:
            await self._queue.join()

    def in_flight(self, survey_id: int, operation: str) -> Optional[str]:
        return self._in_flight.get((survey_id, operation))

    async def submit(
        self,
        survey_id: int,
        operation: str,
        func: JobFunc,
        job_id: Optional[str] = None,
        timeout: Optional[float] = None,
        timeout_message: Optional[str] = None,
    ) -> Tuple[str, ProgressEvent]:
        """Queue ``func`` and publish the "queued" event.

        Raises:
            JobConflictError: if the same survey and operation already has a job in flight
            RuntimeError: if the runner has not been started
        """
        if self._queue is None:
            raise RuntimeError("Job runner is not started")

        key = (survey_id, operation)
        if key in self._in_flight:
            raise JobConflictError(survey_id, operation, self._in_flight[key])

        job_id = job_id or new_job_id()
        progress = JobProgress(self.broadcaster, job_id, survey_id, operation)
        job = Job(job_id, survey_id, operation, func, progress, timeout, timeout_message)

        self._in_flight[key] = job_id
        track_job_queued()
        event = await progress.queued()
        await self._queue.put(job)
        logger.info(f"Queued {operation} job {job_id} for survey {survey_id}")
        return job_id, event

    async def _worker(self, number: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._execute(job)
            finally:
                self._queue.task_done()

    async def _execute(self, job: Job) -> None:
        started = time.monotonic()
        outcome = "failed"
        try:
            if job.timeout:
                try:
                    await asyncio.wait_for(job.func(job.progress), timeout=job.timeout)
                except asyncio.TimeoutError:
                    raise JobTimeoutError(
                        job.timeout_message or f"Job timed out after {job.timeout:g} seconds", job.timeout
                    ) from None
            else:
                await job.func(job.progress)
            outcome = "completed"
        except JobTimeoutError as e:
            outcome = "timeout"
            logger.error(f"{job.operation} job {job.job_id} timed out after {e.timeout_seconds:g}s")
            await job.progress.failed(str(e), error_kind=e.kind)
        except Exception as e:
            logger.exception(f"{job.operation} job {job.job_id} failed: {e}")
            await job.progress.failed(str(e) or type(e).__name__, error_kind=getattr(e, "kind", "error"))
        finally:
            self._in_flight.pop(job.key, None)
            track_job(job.operation, outcome, time.monotonic() - started)


# Global runner instance, started by the application lifespan
runner = JobRunner()


def get_job_runner() -> JobRunner:
    return runner
