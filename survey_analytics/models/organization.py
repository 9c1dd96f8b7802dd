from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from survey_analytics.database import Base


class Organization(Base):
    """Organization owning users and surveys."""

    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    def __repr__(self):
        return f"<Organization {self.name}>"
