from sqlalchemy import Column, Integer, String, Date, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
import enum
from survey_analytics.database import Base


class UserStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"
    invited = "invited"


class User(Base):
    """Employee who can be assigned surveys."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100))
    last_name = Column(String(100))
    role = Column(String(100))
    department = Column(String(100), index=True)
    status = Column(Enum(UserStatus), default=UserStatus.active, nullable=False)
    hire_date = Column(Date)
    last_survey_response_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())

    def __repr__(self):
        return f"<User {self.email}>"

    @property
    def full_name(self) -> str:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or self.email
