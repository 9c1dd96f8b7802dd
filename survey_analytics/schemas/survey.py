from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Any, Dict, List, Optional

from survey_analytics.schemas.progress import ProgressEvent


class GenerateDataRequest(BaseModel):
    """Synthetic data request. Responses cannot outnumber assignments."""
    assignments_count: int = Field(..., ge=1, le=100)
    responses_count: int = Field(0, ge=0)

    @model_validator(mode="after")
    def responses_within_assignments(self) -> "GenerateDataRequest":
        if self.responses_count > self.assignments_count:
            raise ValueError("Responses count cannot exceed assignments count")
        return self


class JobAccepted(BaseModel):
    """Returned when a background job is queued."""
    job_id: str
    channel: str
    event: ProgressEvent


class SurveyGenerateRequest(BaseModel):
    prompt: str = Field(..., min_length=3, max_length=2000)
    organization_id: int
    created_by_id: Optional[int] = None


class QuestionRead(BaseModel):
    id: int
    question_text: str
    question_type: str
    required: bool
    position: int

    class Config:
        from_attributes = True


class SurveyRead(BaseModel):
    id: int
    organization_id: int
    title: str
    description: Optional[str] = None
    status: str
    questions: List[QuestionRead] = []


class GeneratedSurveyRead(SurveyRead):
    source: str


class InsightRead(BaseModel):
    id: int
    survey_id: int
    generated_at: datetime
    analysis_version: str
    summary: Optional[str] = None
    insights_data: Dict[str, Any]

    class Config:
        from_attributes = True


class InsightsResult(BaseModel):
    """Insights returned by the API, flagged with whether a fresh row was reused."""
    insight: InsightRead
    reused: bool


class ResetResult(BaseModel):
    survey_id: int
    assignments_deleted: int
    responses_deleted: int
    answers_deleted: int
