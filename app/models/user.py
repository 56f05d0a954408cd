"""
User document model
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON

from app.core.db import Base
from app.models.event import utcnow

class UserRecord(Base):
    __tablename__ = "users"
    
    id = Column(String(128), primary_key=True)
    data = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
