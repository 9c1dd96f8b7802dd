"""Synthetic data generation job.

Creates assignments, then one completed response per picked assignment,
committing after every step so a failure keeps what was already made.
Progress is ``items done / (assignments + responses)``.
"""

import asyncio
import logging
import random
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from survey_analytics.config import settings
from survey_analytics.data.generation_profiles import GenerationProfile
from survey_analytics.services.data_generator import SurveyDataGenerator
from survey_analytics.tasks.job_runner import JobProgress

logger = logging.getLogger(__name__)

REFRESH_AFTER_MS = 2000


def progress_percentage(done: int, total: int) -> int:
    if total <= 0:
        return 100
    return done * 100 // total


async def run_data_generation(
    progress: JobProgress,
    survey_id: int,
    assignments_count: int,
    responses_count: int,
    session_factory: async_sessionmaker,
    ai_client,
    pacing: Optional[float] = None,
    profile: Optional[GenerationProfile] = None,
    rng: Optional[random.Random] = None,
) -> dict:
    prefix = f"[DATA JOB {progress.job_id}]"
    pacing = settings.GENERATION_PACING_SECONDS if pacing is None else pacing
    total = assignments_count + responses_count
    done = 0

    async def pace():
        if pacing > 0:
            await asyncio.sleep(pacing)

    logger.info(f"{prefix} Starting data generation for survey {survey_id}: {assignments_count} assignments, {responses_count} responses")
    await progress.running("Starting data generation...", 0, current=0, total=total)

    async with session_factory() as db:
        generator = SurveyDataGenerator(db, survey_id, ai_client, profile=profile, rng=rng)

        assignments = await generator.create_assignments(assignments_count)
        await db.commit()
        done += len(assignments)
        logger.info(f"{prefix} Created {len(assignments)} assignments")
        await progress.running(
            f"Created {len(assignments)} assignments",
            progress_percentage(done, total),
            current=done,
            total=total,
        )
        await pace()

        picked = generator.pick_assignments_for_responses(assignments, responses_count)
        for index, assignment in enumerate(picked, start=1):
            await generator.create_response_for_assignment(assignment)
            await db.commit()
            done += 1
            message = f"Generated {index}/{len(picked)} responses"
            logger.info(f"{prefix} Progress: {progress_percentage(done, total)}% - {message}")
            await progress.item(message, progress_percentage(done, total), current=done, total=total)
            await pace()

        text_sources = dict(generator.text_sources)

    result = {
        "assignments_created": len(assignments),
        "responses_created": len(picked),
        "text_sources": text_sources,
    }
    logger.info(f"{prefix} Completed - Created {len(assignments)} assignments and {len(picked)} responses")
    await progress.completed(
        f"Successfully generated {len(assignments)} assignments and {len(picked)} responses",
        result=result,
    )
    await progress.refresh(REFRESH_AFTER_MS, f"/surveys/{survey_id}")
    return result
