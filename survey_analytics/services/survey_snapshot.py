"""
Read-only survey snapshot.

Analyzers never touch the ORM directly. ``load_survey_snapshot`` reads a
survey with its questions, assignments, responses and answers in a handful
of queries and returns frozen dataclasses. Every derived metric is computed
from the snapshot when asked for, never stored.
"""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from survey_analytics.models import Answer, Assignment, Question, Response, Survey, User
from survey_analytics.utils.clock import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuestionSnapshot:
    id: int
    text: str
    type: str
    position: int
    required: bool = False
    options: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AnswerSnapshot:
    question_id: int
    value: Optional[str]


@dataclass(frozen=True)
class ResponseSnapshot:
    id: int
    user_id: Optional[int]
    department: Optional[str]
    role: Optional[str]
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    answers: Tuple[AnswerSnapshot, ...] = ()

    @property
    def completed(self) -> bool:
        return self.completed_at is not None

    @property
    def submitted_on(self) -> Optional[date]:
        stamp = self.completed_at or self.started_at
        return stamp.date() if stamp else None

    @property
    def minutes_to_complete(self) -> Optional[float]:
        if self.completed_at is None or self.started_at is None:
            return None
        return round((self.completed_at - self.started_at).total_seconds() / 60, 1)


@dataclass(frozen=True)
class AssignmentSnapshot:
    id: int
    user_id: int
    department: Optional[str]
    completed: bool
    completed_at: Optional[datetime]
    response_id: Optional[int]

    @property
    def status(self) -> str:
        if self.completed:
            return "completed"
        if self.response_id is not None:
            return "in_progress"
        return "not_started"


@dataclass(frozen=True)
class SurveySnapshot:
    id: int
    organization_id: int
    title: str
    description: Optional[str]
    status: str
    created_by_id: Optional[int]
    ai_prompt: Optional[str] = None
    questions: Tuple[QuestionSnapshot, ...] = ()
    assignments: Tuple[AssignmentSnapshot, ...] = ()
    responses: Tuple[ResponseSnapshot, ...] = ()
    taken_at: datetime = field(default_factory=utc_now)

    # -- selections ---------------------------------------------------------

    @property
    def completed_responses(self) -> Tuple[ResponseSnapshot, ...]:
        return tuple(r for r in self.responses if r.completed)

    def question(self, question_id: int) -> Optional[QuestionSnapshot]:
        return next((q for q in self.questions if q.id == question_id), None)

    def answer_values(self, question_id: int, completed_only: bool = True) -> List[str]:
        """Non-blank answer values for one question, in response order."""
        responses = self.completed_responses if completed_only else self.responses
        return [
            answer.value
            for response in responses
            for answer in response.answers
            if answer.question_id == question_id and answer.value is not None and str(answer.value).strip()
        ]

    def scale_values(self, question_id: int) -> List[float]:
        values = []
        for raw in self.answer_values(question_id):
            try:
                number = float(raw)
            except (TypeError, ValueError):
                continue
            if number > 0:
                values.append(number)
        return values

    # -- derived metrics ----------------------------------------------------

    @property
    def response_rate(self) -> float:
        """Percentage of assignments completed."""
        if not self.assignments:
            return 0.0
        completed = sum(1 for a in self.assignments if a.completed)
        return round(completed / len(self.assignments) * 100, 1)

    @property
    def completion_rate(self) -> float:
        """Percentage of started responses that were completed."""
        if not self.responses:
            return 0.0
        return round(len(self.completed_responses) / len(self.responses) * 100, 1)

    @property
    def average_completion_time(self) -> float:
        """Mean minutes from start to completion; 0 when nothing is timed."""
        times = [r.minutes_to_complete for r in self.completed_responses if r.minutes_to_complete is not None]
        if not times:
            return 0.0
        return round(sum(times) / len(times), 1)

    @property
    def average_scale_score(self) -> Optional[float]:
        scores = [v for q in self.questions if q.type == "scale" for v in self.scale_values(q.id)]
        if not scores:
            return None
        return round(sum(scores) / len(scores), 1)

    @property
    def assignments_by_status(self) -> Dict[str, int]:
        counts = Counter(a.status for a in self.assignments)
        return {status: counts.get(status, 0) for status in ("completed", "in_progress", "not_started")}

    @property
    def department_breakdown(self) -> Dict[str, dict]:
        """Assigned and completed counts per department, with response rate."""
        stats: Dict[str, dict] = defaultdict(lambda: {"assigned": 0, "completed": 0})
        for assignment in self.assignments:
            if not assignment.department:
                continue
            stats[assignment.department]["assigned"] += 1
            if assignment.completed:
                stats[assignment.department]["completed"] += 1
        for dept_stats in stats.values():
            dept_stats["response_rate"] = round(dept_stats["completed"] / dept_stats["assigned"] * 100, 1)
        return dict(stats)

    def response_timeline(self, days: int = 7) -> List[Tuple[str, int]]:
        """Completed responses per day, for the last ``days`` days that have any."""
        counts = Counter(r.submitted_on for r in self.completed_responses if r.submitted_on)
        return [(day.isoformat(), counts[day]) for day in sorted(counts)][-days:]

    def recent_response_count(self, days: int) -> int:
        cutoff = self.taken_at - timedelta(days=days)
        return sum(1 for r in self.completed_responses if r.completed_at and r.completed_at >= cutoff)

    def metrics(self) -> dict:
        return {
            "response_rate": self.response_rate,
            "completion_rate": self.completion_rate,
            "average_completion_time": self.average_completion_time,
            "average_scale_score": self.average_scale_score,
            "assignments_by_status": self.assignments_by_status,
            "department_breakdown": self.department_breakdown,
            "total_assignments": len(self.assignments),
            "total_responses": len(self.responses),
            "completed_responses": len(self.completed_responses),
        }


async def load_survey_snapshot(db: AsyncSession, survey_id: int) -> Optional[SurveySnapshot]:
    """Load everything the analyzers need for one survey, or None if it does not exist."""
    survey = await db.get(Survey, survey_id)
    if survey is None:
        return None

    question_rows = (
        await db.execute(select(Question).where(Question.survey_id == survey_id).order_by(Question.position))
    ).scalars().all()
    questions = tuple(
        QuestionSnapshot(
            id=q.id,
            text=q.question_text,
            type=q.question_type,
            position=q.position,
            required=bool(q.required),
            options=tuple(q.options),
        )
        for q in question_rows
    )

    assignment_rows = (
        await db.execute(
            select(Assignment, User.department)
            .outerjoin(User, User.id == Assignment.user_id)
            .where(Assignment.survey_id == survey_id)
            .order_by(Assignment.id)
        )
    ).all()
    assignments = tuple(
        AssignmentSnapshot(
            id=a.id,
            user_id=a.user_id,
            department=department,
            completed=bool(a.completed),
            completed_at=a.completed_at,
            response_id=a.response_id,
        )
        for a, department in assignment_rows
    )

    response_rows = (
        await db.execute(
            select(Response, User.department, User.role)
            .outerjoin(User, User.id == Response.user_id)
            .where(Response.survey_id == survey_id)
            .order_by(Response.id)
        )
    ).all()

    answers_by_response: Dict[int, List[AnswerSnapshot]] = defaultdict(list)
    if response_rows:
        answer_rows = (
            await db.execute(
                select(Answer.response_id, Answer.question_id, Answer.value)
                .join(Response, Response.id == Answer.response_id)
                .where(Response.survey_id == survey_id)
                .order_by(Answer.id)
            )
        ).all()
        for response_id, question_id, value in answer_rows:
            answers_by_response[response_id].append(AnswerSnapshot(question_id, value))

    responses = tuple(
        ResponseSnapshot(
            id=r.id,
            user_id=r.user_id,
            department=department,
            role=role,
            started_at=r.started_at,
            completed_at=r.completed_at,
            answers=tuple(answers_by_response.get(r.id, ())),
        )
        for r, department, role in response_rows
    )

    snapshot = SurveySnapshot(
        id=survey.id,
        organization_id=survey.organization_id,
        title=survey.title,
        description=survey.description,
        status=survey.status.value if hasattr(survey.status, "value") else str(survey.status),
        created_by_id=survey.created_by_id,
        ai_prompt=survey.ai_prompt,
        questions=questions,
        assignments=assignments,
        responses=responses,
    )
    logger.debug(
        f"Loaded snapshot for survey {survey_id}: {len(questions)} questions, "
        f"{len(assignments)} assignments, {len(responses)} responses"
    )
    return snapshot
