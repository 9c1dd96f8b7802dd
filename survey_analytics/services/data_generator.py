"""
Synthetic survey data.

Creates assignments for a survey (synthesizing employees when the
organization runs short) and completed responses with department-skewed
scale answers and persona-written text answers.

The generator never reports progress itself. Callers drive it one step at
a time and report between steps.
"""

import json
import logging
import random
from datetime import timedelta
from typing import Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from survey_analytics.data.generation_profiles import GenerationProfile, get_generation_profile
from survey_analytics.exceptions import DataGenerationError
from survey_analytics.models import Answer, Assignment, Question, Response, Survey, User, UserStatus
from survey_analytics.services.question_types import (
    QUESTION_TYPES,
    QuestionType,
    QuestionTypeHandler,
    handler_for,
)
from survey_analytics.services.response_generator import Persona, RealisticResponseGenerator
from survey_analytics.services.response_lifecycle import complete_response, start_response
from survey_analytics.utils.clock import utc_now

logger = logging.getLogger(__name__)

# Tries per missing user before giving up on unique emails
EMAIL_ATTEMPTS_PER_USER = 5

# Responses land within the last day and take at most a quarter hour to fill in.
# Assignments are dated before the earliest possible start.
RESPONSE_WINDOW = timedelta(hours=24)
MAX_FILL_MINUTES = 15
ASSIGNMENT_LEAD = RESPONSE_WINDOW + timedelta(minutes=MAX_FILL_MINUTES + 1)


class SurveyDataGenerator:
    """Populates one survey with plausible assignments and responses."""

    def __init__(
        self,
        db: AsyncSession,
        survey_id: int,
        ai_client,
        profile: Optional[GenerationProfile] = None,
        rng: Optional[random.Random] = None,
        registry: Mapping[QuestionType, QuestionTypeHandler] = QUESTION_TYPES,
        response_generator: Optional[RealisticResponseGenerator] = None,
    ):
        self.db = db
        self.survey_id = survey_id
        self.profile = profile or get_generation_profile()
        self.rng = rng or random.Random()
        self.registry = registry
        self.response_generator = response_generator or RealisticResponseGenerator(
            ai_client, profile=self.profile, rng=self.rng
        )
        self.text_sources: Dict[str, int] = {"ai": 0, "fallback": 0}
        self._survey: Optional[Survey] = None
        self._questions: Optional[List[Question]] = None

    async def _get_survey(self) -> Survey:
        if self._survey is None:
            self._survey = await self.db.get(Survey, self.survey_id)
            if self._survey is None:
                raise DataGenerationError(f"Survey {self.survey_id} not found")
        return self._survey

    async def _get_questions(self) -> List[Question]:
        if self._questions is None:
            result = await self.db.execute(
                select(Question).where(Question.survey_id == self.survey_id).order_by(Question.position)
            )
            self._questions = list(result.scalars().all())
        return self._questions

    # -- assignments -------------------------------------------------------

    async def create_assignments(self, count: int) -> List[Assignment]:
        """Assign ``count`` active, unassigned users, synthesizing users if needed.

        Raises:
            DataGenerationError: if enough unique users cannot be produced
        """
        if count < 1:
            return []
        survey = await self._get_survey()

        assigned_ids = select(Assignment.user_id).where(Assignment.survey_id == self.survey_id)
        result = await self.db.execute(
            select(User)
            .where(
                User.organization_id == survey.organization_id,
                User.status == UserStatus.active,
                User.id.not_in(assigned_ids),
            )
            .order_by(User.id)
            .limit(count)
        )
        users = list(result.scalars().all())

        shortfall = count - len(users)
        if shortfall > 0:
            logger.info(
                f"Survey {self.survey_id}: {len(users)} unassigned users available, synthesizing {shortfall}"
            )
            users.extend(await self._synthesize_users(survey.organization_id, shortfall))

        if len(users) < count:
            raise DataGenerationError(
                f"Only {len(users)} unassigned users available, but {count} assignments requested"
            )

        now = utc_now()
        spread = max(self.profile.assignment_window_days - 1, 0) * 24 * 3600
        assignments = []
        for user in users:
            assignment = Assignment(
                survey_id=self.survey_id,
                user_id=user.id,
                assigned_at=now - ASSIGNMENT_LEAD - timedelta(seconds=self.rng.randint(0, spread)),
                completed=False,
            )
            self.db.add(assignment)
            assignments.append(assignment)
        await self.db.flush()
        return assignments

    async def _synthesize_users(self, organization_id: int, count: int) -> List[User]:
        profile = self.profile
        today = utc_now().date()
        taken: set = set()
        users: List[User] = []

        attempts = 0
        while len(users) < count and attempts < count * EMAIL_ATTEMPTS_PER_USER:
            attempts += 1
            first = self.rng.choice(profile.first_names)
            last = self.rng.choice(profile.last_names)
            email = f"{first}.{last}.{self.rng.randrange(16 ** 6):06x}@{profile.email_domain}".lower()
            if email in taken or await self._email_exists(email):
                continue
            taken.add(email)

            user = User(
                organization_id=organization_id,
                email=email,
                first_name=first,
                last_name=last,
                department=self.rng.choice(profile.departments),
                role=self.rng.choice(profile.roles),
                status=UserStatus.active,
                hire_date=today - timedelta(days=self.rng.randint(0, profile.hire_window_days)),
            )
            self.db.add(user)
            users.append(user)

        await self.db.flush()
        return users

    async def _email_exists(self, email: str) -> bool:
        result = await self.db.execute(select(User.id).where(User.email == email))
        return result.first() is not None

    def pick_assignments_for_responses(self, assignments: List[Assignment], count: int) -> List[Assignment]:
        return self.rng.sample(assignments, min(count, len(assignments)))

    # -- responses ---------------------------------------------------------

    async def create_response_for_assignment(self, assignment: Assignment) -> Response:
        """Create one completed response with an answer per question."""
        user = await self.db.get(User, assignment.user_id)
        completed_at = utc_now() - timedelta(seconds=self.rng.randint(60, int(RESPONSE_WINDOW.total_seconds())))
        started_at = completed_at - timedelta(minutes=self.rng.randint(3, MAX_FILL_MINUTES))

        response = Response(
            survey_id=self.survey_id,
            user_id=assignment.user_id,
            session_id=f"{self.rng.getrandbits(128):032x}",
            started_at=started_at,
        )
        self.db.add(response)
        await self.db.flush()
        await start_response(self.db, response, assignment)

        for question in await self._get_questions():
            value = await self._answer_value(question, user)
            if value is not None:
                self.db.add(Answer(response_id=response.id, question_id=question.id, value=value))

        await complete_response(self.db, response, completed_at)
        if user is not None:
            user.last_survey_response_at = completed_at
        await self.db.flush()
        return response

    async def _answer_value(self, question: Question, user: Optional[User]) -> Optional[str]:
        try:
            handler = handler_for(question.question_type, self.registry)
        except ValueError:
            logger.warning(f"Skipping question {question.id} with unknown type {question.question_type!r}")
            return None

        department = user.department if user else None
        options = question.options

        if handler.type == QuestionType.scale:
            return str(self.rng.choice(self.profile.scale_scores_for(department)))
        if handler.free_text:
            persona = Persona(
                name=user.full_name if user else "Anonymous",
                department=department,
                role=user.role if user else None,
            )
            text, source = await self.response_generator.generate(question.question_text, persona)
            self.text_sources[source] += 1
            return text
        if handler.type == QuestionType.pick_one:
            return self.rng.choice(options) if options else None
        if handler.type == QuestionType.pick_any:
            if not options:
                return None
            return json.dumps(self.rng.sample(options, self.rng.randint(1, len(options))))
        if handler.type == QuestionType.number:
            return str(self.rng.randint(1, 100))
        if handler.type == QuestionType.date:
            return (utc_now().date() - timedelta(days=self.rng.randint(0, 365))).isoformat()
        if handler.type == QuestionType.email:
            return user.email if user else None
        return None
