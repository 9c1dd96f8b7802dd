from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from factories import OrganizationFactory, UserFactory, SurveyFactory, TextQuestionFactory, ScaleQuestionFactory
from survey_analytics.config import settings
from survey_analytics.core.metrics import get_registry
from survey_analytics.database import Base, get_db, get_session_factory
from survey_analytics.exceptions import ProviderConnectionError, ProviderError
from survey_analytics.main import app
from survey_analytics.models import Answer, Assignment, Organization, Question, Response, Survey, User
from survey_analytics.services.ai_client import get_ai_client
from survey_analytics.services.cache_service import CacheService, get_cache_service
from survey_analytics.services.progress_broadcaster import ProgressBroadcaster
from survey_analytics.services.response_lifecycle import complete_response, start_response
from survey_analytics.tasks.job_runner import JobRunner, get_job_runner
from survey_analytics.utils.clock import utc_now


class FakeAIClient:
    """Stands in for AICompletionClient.

    Replays scripted replies in order (the last one repeats) or raises
    ``error`` on every call. Every call is recorded.
    """

    def __init__(self, *replies: str, error: Optional[Exception] = None):
        self.replies = list(replies)
        self.error = error
        self.calls: List[dict] = []

    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        self.calls.append({"prompt": prompt, "system_prompt": system_prompt})
        if self.error is not None:
            raise self.error
        if not self.replies:
            raise ProviderError("No scripted reply")
        return self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]

    async def close(self):
        pass


class SurveySeeder:
    """Builds organizations, users, surveys and responses in the test database."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def organization(self, **overrides) -> Organization:
        organization = Organization(**OrganizationFactory(**overrides))
        self.db.add(organization)
        await self.db.commit()
        return organization

    async def user(self, organization_id: int, **overrides) -> User:
        user = User(organization_id=organization_id, **UserFactory(**overrides))
        self.db.add(user)
        await self.db.commit()
        return user

    async def survey(self, organization: Optional[Organization] = None, questions: Optional[List[dict]] = None, **overrides):
        """Create a survey and its questions. Returns ``(survey, questions)``."""
        organization = organization or await self.organization()
        survey = Survey(organization_id=organization.id, **SurveyFactory(**overrides))
        self.db.add(survey)
        await self.db.flush()

        if questions is None:
            questions = [TextQuestionFactory(), ScaleQuestionFactory()]
        rows = []
        for position, data in enumerate(questions, start=1):
            question = Question(survey_id=survey.id, position=position, **data)
            self.db.add(question)
            rows.append(question)
        await self.db.commit()
        return survey, rows

    async def response(
        self,
        survey: Survey,
        answers: Dict[int, str],
        user: Optional[User] = None,
        completed_at: Optional[datetime] = None,
        minutes: int = 5,
        completed: bool = True,
        **user_fields,
    ) -> Response:
        """Assign a respondent and record their answers, completed by default."""
        user = user or await self.user(survey.organization_id, **user_fields)
        assignment = Assignment(survey_id=survey.id, user_id=user.id)
        self.db.add(assignment)

        completed_at = completed_at or utc_now()
        response = Response(
            survey_id=survey.id,
            user_id=user.id,
            started_at=completed_at - timedelta(minutes=minutes),
        )
        self.db.add(response)
        await self.db.flush()
        await start_response(self.db, response, assignment)

        for question_id, value in answers.items():
            self.db.add(Answer(response_id=response.id, question_id=question_id, value=value))
        if completed:
            await complete_response(self.db, response, completed_at)
        await self.db.commit()
        return response

    async def assignment(self, survey: Survey, **user_fields) -> Assignment:
        user = await self.user(survey.organization_id, **user_fields)
        assignment = Assignment(survey_id=survey.id, user_id=user.id)
        self.db.add(assignment)
        await self.db.commit()
        return assignment


@pytest.fixture(autouse=True)
def fast_generation(monkeypatch):
    """No pacing between generated items."""
    monkeypatch.setattr(settings, "GENERATION_PACING_SECONDS", 0.0)


@pytest.fixture(autouse=True)
def reset_metrics():
    get_registry().reset()
    yield
    get_registry().reset()


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create test database and tables."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def seed(test_db: AsyncSession) -> SurveySeeder:
    return SurveySeeder(test_db)


@pytest.fixture
def fake_ai():
    """The FakeAIClient class, for tests that script their own replies."""
    return FakeAIClient


@pytest.fixture
def ai_client():
    """An AI client whose endpoint is unreachable."""
    return FakeAIClient(error=ProviderConnectionError("Cannot connect to Ollama at http://ollama.test"))


@pytest.fixture
def cache():
    return CacheService(redis_url=None)


@pytest.fixture
def broadcaster():
    return ProgressBroadcaster()


@pytest_asyncio.fixture
async def job_runner(broadcaster):
    runner = JobRunner(broadcaster=broadcaster, workers=2)
    await runner.start()
    yield runner
    await runner.stop()


@pytest_asyncio.fixture
async def client(test_db: AsyncSession, session_factory, ai_client, cache, job_runner):
    """Create test client with overridden database, AI client, cache and job runner."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_ai_client] = lambda: ai_client
    app.dependency_overrides[get_cache_service] = lambda: cache
    app.dependency_overrides[get_job_runner] = lambda: job_runner

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
