"""
Test factories for generating realistic test data.

Uses factory_boy for declarative test data generation. Factories build
plain dicts that are passed as keyword arguments to the ORM models.
"""

from .organization import OrganizationFactory
from .user import UserFactory, InactiveUserFactory
from .survey import (
    SurveyFactory,
    DraftSurveyFactory,
    QuestionFactory,
    TextQuestionFactory,
    ScaleQuestionFactory,
    PickOneQuestionFactory,
)

__all__ = [
    "OrganizationFactory",
    "UserFactory",
    "InactiveUserFactory",
    # Surveys
    "SurveyFactory",
    "DraftSurveyFactory",
    "QuestionFactory",
    "TextQuestionFactory",
    "ScaleQuestionFactory",
    "PickOneQuestionFactory",
]
