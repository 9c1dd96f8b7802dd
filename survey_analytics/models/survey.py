from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    Text,
    Enum,
    ForeignKey,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.sql import func
import enum
from survey_analytics.database import Base


class SurveyStatus(str, enum.Enum):
    draft = "draft"
    published = "published"
    closed = "closed"
    archived = "archived"


class Survey(Base):
    """Survey model.

    Response rate, completion rate and average scale score are not stored;
    they are derived from assignments and responses at read time.
    """

    __tablename__ = "surveys"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    ai_prompt = Column(Text)
    status = Column(Enum(SurveyStatus), default=SurveyStatus.draft, nullable=False)
    response_limit = Column(Integer)
    starts_at = Column(DateTime)
    ends_at = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    def __repr__(self):
        return f"<Survey {self.id} {self.title!r}>"


class Question(Base):
    """A single survey question. ``settings`` carries options for choice types."""

    __tablename__ = "questions"
    __table_args__ = (UniqueConstraint("survey_id", "position", name="uq_questions_survey_position"),)

    id = Column(Integer, primary_key=True, index=True)
    survey_id = Column(Integer, ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False, index=True)
    question_text = Column(Text, nullable=False)
    question_type = Column(String(20), nullable=False, default="text")
    required = Column(Boolean, default=False, nullable=False)
    position = Column(Integer, nullable=False)
    settings = Column(JSON, default=dict)

    created_at = Column(DateTime, server_default=func.now())

    @property
    def options(self) -> list:
        return list((self.settings or {}).get("options", []))

    def __repr__(self):
        return f"<Question {self.id} {self.question_type}>"
