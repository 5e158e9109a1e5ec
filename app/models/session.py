"""Server-side HTTP session model."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String

from app.database import Base


class UserSession(Base):
    """Session state keyed by the id held in the browser cookie."""

    __tablename__ = "sessions"

    session_id = Column(String(64), primary_key=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=True, index=True)
    data = Column(JSON, nullable=False, default=dict)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
