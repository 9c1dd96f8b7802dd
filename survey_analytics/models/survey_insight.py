from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from survey_analytics.database import Base
from survey_analytics.utils.clock import utc_now


class SurveyInsight(Base):
    """Immutable analytics snapshot. The latest row per survey wins."""

    __tablename__ = "survey_insights"

    id = Column(Integer, primary_key=True, index=True)
    survey_id = Column(Integer, ForeignKey("surveys.id", ondelete="CASCADE"), nullable=False, index=True)
    generated_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    insights_data = Column(JSON, nullable=False)
    summary = Column(String(250))
    analysis_version = Column(String(20), nullable=False, default="1.0")
    generated_at = Column(DateTime, default=utc_now, nullable=False, index=True)

    def __repr__(self):
        return f"<SurveyInsight survey={self.survey_id} at={self.generated_at}>"
