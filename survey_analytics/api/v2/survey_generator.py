"""AI survey generation endpoint."""

from fastapi import APIRouter, status

from survey_analytics.api.deps import AIClient, DbSession
from survey_analytics.exceptions import NotFoundError
from survey_analytics.models import Organization, SurveyStatus
from survey_analytics.schemas.survey import GeneratedSurveyRead, QuestionRead, SurveyGenerateRequest
from survey_analytics.services.survey_generator import SurveyGenerator

router = APIRouter()


@router.post("", response_model=GeneratedSurveyRead, status_code=status.HTTP_201_CREATED)
async def generate_survey(body: SurveyGenerateRequest, db: DbSession, ai_client: AIClient):
    """Create a draft survey from a free-text prompt."""
    organization = await db.get(Organization, body.organization_id)
    if organization is None:
        raise NotFoundError("Organization", body.organization_id)

    survey, questions, source = await SurveyGenerator(ai_client).create_survey(
        db, body.prompt, organization_id=organization.id, created_by_id=body.created_by_id
    )
    await db.commit()

    return GeneratedSurveyRead(
        id=survey.id,
        organization_id=survey.organization_id,
        title=survey.title,
        description=survey.description,
        status=SurveyStatus(survey.status).value,
        questions=[QuestionRead.model_validate(q) for q in questions],
        source=source,
    )
