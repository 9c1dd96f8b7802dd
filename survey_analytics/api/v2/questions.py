"""Per-question endpoints."""

from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from survey_analytics.api.deps import AIClient, CurrentQuestion, DbSession
from survey_analytics.exceptions import NotFoundError
from survey_analytics.services.response_lifecycle import validate_answer
from survey_analytics.services.response_summarizer import ResponseSummarizer
from survey_analytics.services.survey_snapshot import load_survey_snapshot

router = APIRouter()


class AnswerCheck(BaseModel):
    value: Optional[str] = None


@router.get("/{question_id}/summary")
async def summarize_question(question: CurrentQuestion, db: DbSession, ai_client: AIClient):
    """Summary of the free-text answers to one question."""
    snapshot = await load_survey_snapshot(db, question.survey_id)
    if snapshot is None:
        raise NotFoundError("Survey", question.survey_id)
    question_snapshot = snapshot.question(question.id)
    answers = snapshot.answer_values(question.id, completed_only=False)
    return await ResponseSummarizer(ai_client).summarize(question_snapshot, answers)


@router.post("/{question_id}/validate-answer")
async def check_answer(question: CurrentQuestion, body: AnswerCheck):
    """Validate a candidate answer against the question's type and options."""
    errors = validate_answer(question, body.value)
    return {"question_id": question.id, "valid": not errors, "errors": errors}
