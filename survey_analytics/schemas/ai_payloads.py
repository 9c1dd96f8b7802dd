"""Result types for structured AI output.

Each AI feature asks the model for a JSON document. ``validate_ai_payload``
parses the raw text and checks it against one of the models below,
reporting every violation at once.
"""

import json
import re
from typing import Dict, List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, field_validator
from pydantic import ValidationError as PydanticValidationError

from survey_analytics.exceptions import AIResponseValidationError

PayloadT = TypeVar("PayloadT", bound=BaseModel)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class SurveyReview(BaseModel):
    """Design critique of a survey."""
    overall_score: StrictInt = Field(..., ge=1, le=10)
    purpose_clarity: str
    question_quality: str
    survey_flow: str
    suggestions: List[str]
    missing_elements: List[str]
    strengths: List[str]


class InsightsPayload(BaseModel):
    """Response-data analysis for a whole survey."""
    executive_summary: str = Field(..., min_length=1)
    key_findings: List[str]
    satisfaction_drivers: List[str]
    areas_for_improvement: List[str]
    risk_indicators: List[str]
    recommended_actions: List[str]
    department_insights: Dict[str, str]


class QuestionSummaryPayload(BaseModel):
    """Summary of the free-text answers to one question."""
    key_themes: List[str]
    overall_sentiment: Literal["positive", "negative", "mixed", "neutral"]
    top_concern: Optional[str] = None
    top_positive: Optional[str] = None
    summary: str = Field(..., min_length=1)
    action_recommendations: List[str]
    priority_level: Literal["low", "medium", "high"]
    response_patterns: Optional[str] = None


class SentimentPayload(BaseModel):
    """Sentiment of a single text. Out-of-range numbers are clamped, not rejected."""
    sentiment: str
    score: float
    confidence: float
    emotions: List[str] = Field(default_factory=list)
    reasoning: str = "AI analysis completed"

    @field_validator("sentiment", mode="before")
    @classmethod
    def coerce_label(cls, v):
        label = str(v or "").strip().lower()
        return label if label in ("positive", "negative", "neutral") else "neutral"

    @field_validator("score", "confidence", mode="after")
    @classmethod
    def clamp_unit(cls, v: float) -> float:
        return min(max(v, 0.0), 1.0)


class GeneratedQuestion(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    question_text: str = Field(..., min_length=1)
    question_type: Literal["text", "scale"]
    required: StrictBool


class GeneratedSurveyPayload(BaseModel):
    """Draft survey produced from a free-text prompt."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    questions: List[GeneratedQuestion] = Field(..., min_length=1)


def extract_json_object(raw_text: str) -> str:
    """Strip markdown fences and any chatter around the outermost JSON object."""
    text = _CODE_FENCE.sub("", (raw_text or "").strip())
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return text
    return text[start:end + 1]


def validate_ai_payload(model_cls: Type[PayloadT], raw_text: str) -> PayloadT:
    """Parse ``raw_text`` and validate it against ``model_cls``.

    Raises:
        AIResponseValidationError: listing every violation found
    """
    try:
        data = json.loads(extract_json_object(raw_text))
    except json.JSONDecodeError as e:
        raise AIResponseValidationError(
            f"{model_cls.__name__}: response is not valid JSON",
            errors=[{"field": "$", "message": str(e), "type": "json_invalid"}],
        ) from e

    if not isinstance(data, dict):
        raise AIResponseValidationError(
            f"{model_cls.__name__}: expected a JSON object",
            errors=[{"field": "$", "message": "Input should be an object", "type": "dict_type"}],
        )

    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            {
                "field": ".".join(str(loc) for loc in error["loc"]) or "$",
                "message": error["msg"],
                "type": error["type"],
            }
            for error in e.errors()
        ]
        raise AIResponseValidationError(
            f"{model_cls.__name__}: {len(errors)} validation error(s)", errors=errors
        ) from e
