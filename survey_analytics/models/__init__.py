from survey_analytics.models.organization import Organization
from survey_analytics.models.user import User, UserStatus
from survey_analytics.models.survey import Survey, SurveyStatus, Question
from survey_analytics.models.assignment import Assignment
from survey_analytics.models.response import Response, Answer
from survey_analytics.models.survey_insight import SurveyInsight

__all__ = [
    "Organization",
    "User",
    "UserStatus",
    "Survey",
    "SurveyStatus",
    "Question",
    "Assignment",
    "Response",
    "Answer",
    "SurveyInsight",
]
