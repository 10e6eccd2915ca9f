from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON
from datetime import datetime
from app.core.database import Base

class Profile(Base):
    """Application profile, keyed 1:1 by the auth identity id."""

    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=False)
    name = Column(String, nullable=True)
    onboarding_completed = Column(Boolean, nullable=False, default=False)
    focus_area = Column(String, nullable=True)
    income_goal = Column(Integer, nullable=True)
    target_deadline = Column(DateTime, nullable=True)
    obstacles = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
