"""Draft surveys from a free-text prompt, with category templates as fallback."""

import copy
import logging
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from survey_analytics.core.metrics import track_ai_request
from survey_analytics.data.survey_templates import CATEGORY_PATTERNS, SURVEY_TEMPLATES
from survey_analytics.exceptions import AIServiceError
from survey_analytics.models import Question, Survey, SurveyStatus
from survey_analytics.schemas.ai_payloads import GeneratedSurveyPayload, validate_ai_payload

logger = logging.getLogger(__name__)

GENERATOR_SYSTEM_PROMPT = """You are a survey generation AI. Generate a survey based on the user's prompt.

Return ONLY a valid JSON object with this exact structure:
{
  "title": "Survey Title",
  "description": "Brief description of the survey purpose",
  "questions": [
    {
      "question_text": "Question text here",
      "question_type": "text",
      "required": true
    },
    {
      "question_text": "Rate this from 1-10",
      "question_type": "scale",
      "required": false
    }
  ]
}

Rules:
- question_type must be either "text" or "scale"
- Scale questions should include "(1 = poor, 10 = excellent)" or similar in the question text
- Generate 4-6 relevant questions
- Mix of required and optional questions
- Make questions specific to the survey topic
- Required field must be boolean (true/false)

Do not include any text before or after the JSON."""

MAX_TITLE_LENGTH = 50


def detect_category(prompt: str) -> str:
    lowered = prompt.lower()
    for category, pattern in CATEGORY_PATTERNS:
        if pattern.search(lowered):
            return category
    return "generic"


def title_from_prompt(prompt: str) -> str:
    title = " ".join(word.capitalize() for word in prompt.split()[:4])
    if len(title) > MAX_TITLE_LENGTH:
        return title[:47] + "..."
    return title


def template_survey(prompt: str) -> dict:
    category = detect_category(prompt)
    survey = copy.deepcopy(SURVEY_TEMPLATES[category])
    if survey["title"] is None:
        survey["title"] = title_from_prompt(prompt)
    logger.info(f"Using {category} template for survey prompt")
    return survey


class SurveyGenerator:
    def __init__(self, ai_client):
        self.ai_client = ai_client

    async def generate_data(self, prompt: str) -> Tuple[dict, str]:
        """Return ``(survey_data, source)`` where source is ``ai`` or ``fallback``."""
        try:
            raw = await self.ai_client.complete(prompt, system_prompt=GENERATOR_SYSTEM_PROMPT)
            payload = validate_ai_payload(GeneratedSurveyPayload, raw)
        except AIServiceError as e:
            logger.warning(f"AI survey generation failed ({e.kind}), using template: {e}")
            track_ai_request("survey_generation", success=False)
            return template_survey(prompt), "fallback"

        track_ai_request("survey_generation", success=True)
        return payload.model_dump(), "ai"

    async def create_survey(
        self,
        db: AsyncSession,
        prompt: str,
        organization_id: int,
        created_by_id: Optional[int] = None,
    ) -> Tuple[Survey, List[Question], str]:
        """Persist a draft survey with questions at positions 1..n. The caller commits."""
        data, source = await self.generate_data(prompt)

        survey = Survey(
            organization_id=organization_id,
            created_by_id=created_by_id,
            title=data["title"],
            description=data["description"],
            status=SurveyStatus.draft,
            ai_prompt=prompt,
        )
        db.add(survey)
        await db.flush()

        questions = []
        for position, item in enumerate(data["questions"], start=1):
            question = Question(
                survey_id=survey.id,
                question_text=item["question_text"],
                question_type=item["question_type"],
                required=item["required"],
                position=position,
            )
            db.add(question)
            questions.append(question)
        await db.flush()

        logger.info(f"Created draft survey {survey.id} with {len(questions)} questions ({source})")
        return survey, questions, source
