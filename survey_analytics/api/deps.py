"""
FastAPI Dependencies

Database sessions, the AI client, the cache, the job runner and survey
lookups. Every dependency here can be swapped with
``app.dependency_overrides`` in tests.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from survey_analytics.database import get_db, get_session_factory
from survey_analytics.exceptions import NotFoundError
from survey_analytics.models import Question, Survey
from survey_analytics.services.ai_client import AICompletionClient, get_ai_client
from survey_analytics.services.cache_service import CacheService, get_cache_service
from survey_analytics.services.progress_broadcaster import ProgressBroadcaster, get_broadcaster
from survey_analytics.services.survey_snapshot import SurveySnapshot, load_survey_snapshot
from survey_analytics.tasks.job_runner import JobRunner, get_job_runner

DbSession = Annotated[AsyncSession, Depends(get_db)]
SessionFactory = Annotated[async_sessionmaker, Depends(get_session_factory)]
AIClient = Annotated[AICompletionClient, Depends(get_ai_client)]
Cache = Annotated[CacheService, Depends(get_cache_service)]
Runner = Annotated[JobRunner, Depends(get_job_runner)]
Broadcaster = Annotated[ProgressBroadcaster, Depends(get_broadcaster)]


async def get_survey(survey_id: int, db: DbSession) -> Survey:
    survey = await db.get(Survey, survey_id)
    if survey is None:
        raise NotFoundError("Survey", survey_id)
    return survey


async def get_survey_snapshot(survey_id: int, db: DbSession) -> SurveySnapshot:
    snapshot = await load_survey_snapshot(db, survey_id)
    if snapshot is None:
        raise NotFoundError("Survey", survey_id)
    return snapshot


async def get_question(question_id: int, db: DbSession) -> Question:
    question = await db.get(Question, question_id)
    if question is None:
        raise NotFoundError("Question", question_id)
    return question


CurrentSurvey = Annotated[Survey, Depends(get_survey)]
CurrentSnapshot = Annotated[SurveySnapshot, Depends(get_survey_snapshot)]
CurrentQuestion = Annotated[Question, Depends(get_question)]
