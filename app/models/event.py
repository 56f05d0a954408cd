"""
Event document model
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, JSON

from app.core.db import Base

def utcnow():
    return datetime.now(timezone.utc)

class EventRecord(Base):
    __tablename__ = "events"
    
    id = Column(String(64), primary_key=True)
    creator_id = Column(String(128), nullable=False, index=True)
    data = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
