from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from survey_analytics.database import Base
from survey_analytics.utils.clock import utc_now


class Response(Base):
    """One respondent's submission. Completed when ``completed_at`` is set."""

    __tablename__ = "responses"
    __table_args__ = (
        CheckConstraint(
            "user_id IS NOT NULL OR session_id IS NOT NULL",
            name="ck_responses_identity",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    survey_id = Column(Integer, ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    assignment_id = Column(Integer, ForeignKey("assignments.id"), nullable=True, index=True)
    session_id = Column(String(64))
    started_at = Column(DateTime, default=utc_now)
    completed_at = Column(DateTime, index=True)
    created_at = Column(DateTime, server_default=func.now())

    @property
    def completed(self) -> bool:
        return self.completed_at is not None


class Answer(Base):
    """A respondent's value for one question."""

    __tablename__ = "answers"

    id = Column(Integer, primary_key=True, index=True)
    response_id = Column(Integer, ForeignKey("responses.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    value = Column(Text)
    created_at = Column(DateTime, server_default=func.now())
