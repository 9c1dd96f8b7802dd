from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint
from survey_analytics.database import Base
from survey_analytics.utils.clock import utc_now


class Assignment(Base):
    """A user owes a response to a survey.

    State: not_started (no response) -> in_progress (response linked) ->
    completed (completed flag and completed_at both set).
    """

    __tablename__ = "assignments"
    __table_args__ = (UniqueConstraint("survey_id", "user_id", name="uq_assignments_survey_user"),)

    id = Column(Integer, primary_key=True, index=True)
    survey_id = Column(Integer, ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assigned_at = Column(DateTime, default=utc_now, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime)
    # Circular with responses.assignment_id
    response_id = Column(
        Integer,
        ForeignKey("responses.id", use_alter=True, name="fk_assignments_response_id"),
        nullable=True,
    )

    @property
    def status(self) -> str:
        if self.completed:
            return "completed"
        if self.response_id is not None:
            return "in_progress"
        return "not_started"

    def __repr__(self):
        return f"<Assignment survey={self.survey_id} user={self.user_id} {self.status}>"
