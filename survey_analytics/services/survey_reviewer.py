"""AI design review of a survey, with a fixed constructive fallback."""

import logging

from survey_analytics.core.metrics import track_ai_request
from survey_analytics.exceptions import AIServiceError
from survey_analytics.schemas.ai_payloads import SurveyReview, validate_ai_payload
from survey_analytics.services.survey_snapshot import SurveySnapshot

logger = logging.getLogger(__name__)

REVIEW_SYSTEM_PROMPT = """You are a survey design expert. Analyze the provided survey and give constructive feedback.

Return ONLY a valid JSON object with this exact structure:
{
  "overall_score": 8,
  "purpose_clarity": "The survey purpose is clear and well-defined...",
  "question_quality": "Most questions are well-structured, but...",
  "survey_flow": "The question order is logical and...",
  "suggestions": [
    "Consider rewording question 3 to be more neutral",
    "Add a demographic question about experience level",
    "Consider making question 5 optional to reduce abandonment"
  ],
  "missing_elements": [
    "Demographic questions for better segmentation",
    "A final open-ended feedback question"
  ],
  "strengths": [
    "Good balance of scale and text questions",
    "Clear and concise question wording"
  ]
}

Rules:
- overall_score should be 1-10 (integer)
- All text fields should be 1-3 sentences
- suggestions, missing_elements, and strengths should be arrays of strings
- Be constructive and specific in feedback
- Focus on survey design best practices

Do not include any text before or after the JSON."""


def build_review_prompt(snapshot: SurveySnapshot) -> str:
    lines = [
        "Please review this survey:",
        "",
        f"**Survey Title:** {snapshot.title}",
        f"**Description:** {snapshot.description or ''}",
    ]
    if snapshot.ai_prompt:
        lines.append(f"**Original Prompt:** {snapshot.ai_prompt}")

    lines.extend(["", "**Questions:**"])
    for index, question in enumerate(snapshot.questions, start=1):
        line = f"{index}. {question.text} ({question.type})"
        if question.required:
            line += " [Required]"
        lines.append(line)

    lines.extend(["", "Please analyze the survey quality, flow, and provide specific suggestions for improvement."])
    return "\n".join(lines)


def fallback_review() -> dict:
    return {
        "overall_score": 7,
        "purpose_clarity": "Survey purpose appears clear based on the title and description.",
        "question_quality": "Questions seem well-structured with a good mix of question types.",
        "survey_flow": "Question order appears logical and follows standard survey flow practices.",
        "suggestions": [
            "Consider adding more demographic questions for better analysis",
            "Review question wording for potential bias",
            "Test the survey with a small group before full deployment",
        ],
        "missing_elements": [
            "Demographic questions for segmentation",
            "Final feedback question for additional insights",
        ],
        "strengths": [
            "Good balance of required and optional questions",
            "Clear and concise question wording",
        ],
    }


class SurveyAIReviewer:
    def __init__(self, ai_client):
        self.ai_client = ai_client

    async def review(self, snapshot: SurveySnapshot) -> dict:
        """Review the survey design. Never raises for AI failures."""
        try:
            raw = await self.ai_client.complete(build_review_prompt(snapshot), system_prompt=REVIEW_SYSTEM_PROMPT)
            review = validate_ai_payload(SurveyReview, raw)
        except AIServiceError as e:
            logger.warning(f"AI review failed for survey {snapshot.id} ({e.kind}): {e}")
            track_ai_request("review", success=False)
            return {**fallback_review(), "source": "fallback"}

        track_ai_request("review", success=True)
        return {**review.model_dump(), "source": "ai"}
