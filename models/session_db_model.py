from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, JSON
from database import Base

def _utcnow():
    return datetime.now(timezone.utc)

class SessionDB(Base):
    __tablename__ = "document_sessions"

    session_id = Column(String, primary_key=True, index=True)
    documents = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
