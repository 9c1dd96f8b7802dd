"""
Response and assignment state changes.

Completing or reopening a response updates its assignment in the same
step, so an assignment is completed exactly when it points at a completed
response. Callers own the transaction and commit.
"""

import logging
from datetime import datetime
from typing import List, Mapping, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from survey_analytics.models import Answer, Assignment, Question, Response
from survey_analytics.services.question_types import QUESTION_TYPES, QuestionType, QuestionTypeHandler, handler_for
from survey_analytics.utils.clock import utc_now

logger = logging.getLogger(__name__)


async def _assignment_for(db: AsyncSession, response: Response) -> Optional[Assignment]:
    if response.assignment_id is None:
        return None
    return await db.get(Assignment, response.assignment_id)


async def start_response(db: AsyncSession, response: Response, assignment: Assignment) -> None:
    """Link a new response to its assignment, moving it to in_progress."""
    if response.id is None:
        await db.flush()
    response.assignment_id = assignment.id
    assignment.response_id = response.id
    assignment.completed = False
    assignment.completed_at = None


async def complete_response(
    db: AsyncSession,
    response: Response,
    completed_at: Optional[datetime] = None,
) -> None:
    """Mark a response completed and complete its assignment with the same instant."""
    completed_at = completed_at or utc_now()
    if response.id is None:
        await db.flush()
    response.completed_at = completed_at

    assignment = await _assignment_for(db, response)
    if assignment is not None:
        assignment.completed = True
        assignment.completed_at = completed_at
        assignment.response_id = response.id


async def reopen_response(db: AsyncSession, response: Response) -> None:
    """Clear a response's completion and detach it from its assignment."""
    response.completed_at = None

    assignment = await _assignment_for(db, response)
    if assignment is not None:
        assignment.completed = False
        assignment.completed_at = None
        assignment.response_id = None


async def reset_assignments(db: AsyncSession, survey_id: int) -> dict:
    """Delete every assignment, response and answer of a survey.

    Assignment back-references are cleared first so no row ever points at a
    deleted response.
    """
    response_ids = select(Response.id).where(Response.survey_id == survey_id)

    counts = {
        "assignments_deleted": await _count(db, select(func.count(Assignment.id)).where(Assignment.survey_id == survey_id)),
        "responses_deleted": await _count(db, select(func.count(Response.id)).where(Response.survey_id == survey_id)),
        "answers_deleted": await _count(
            db, select(func.count(Answer.id)).where(Answer.response_id.in_(response_ids))
        ),
    }

    bulk = {"synchronize_session": False}
    await db.execute(
        update(Assignment).where(Assignment.survey_id == survey_id).values(response_id=None),
        execution_options=bulk,
    )
    await db.execute(delete(Answer).where(Answer.response_id.in_(response_ids)), execution_options=bulk)
    await db.execute(delete(Response).where(Response.survey_id == survey_id), execution_options=bulk)
    await db.execute(delete(Assignment).where(Assignment.survey_id == survey_id), execution_options=bulk)
    # Bulk statements bypass the identity map
    db.expire_all()

    logger.info(f"Reset survey {survey_id}: {counts}")
    return counts


async def _count(db: AsyncSession, stmt) -> int:
    return (await db.execute(stmt)).scalar_one()


def validate_answer(
    question: Question,
    value: Optional[str],
    registry: Mapping[QuestionType, QuestionTypeHandler] = QUESTION_TYPES,
) -> List[str]:
    """Return every problem with ``value`` for ``question``; empty when valid."""
    if value is None or not str(value).strip():
        return ["is required"] if question.required else []

    try:
        handler = handler_for(question.question_type, registry)
    except ValueError as e:
        return [str(e)]

    error = handler.validate(str(value).strip(), question.options)
    return [error] if error else []
