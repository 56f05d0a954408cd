"""
Event-related Pydantic schemas
"""

from datetime import datetime
from typing import Optional, List, Union
from pydantic import BaseModel, Field, field_validator

from app.core.config import settings


def normalize_tags(value: Union[str, List[str], None]) -> List[str]:
    """Turn a comma separated string or list into a sorted set of labels"""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return sorted({tag.strip() for tag in value if tag and tag.strip()})


class EventCreate(BaseModel):
    """Schema for creating an event"""
    name: str
    location: str
    start_time: datetime
    description: str = ""
    welcome_message: str = ""
    capacity: int = Field(default=settings.DEFAULT_EVENT_CAPACITY, ge=1)
    tags: List[str] = []

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value):
        return normalize_tags(value)


class EventUpdate(BaseModel):
    """Schema for updating an event; access code and QR code are immutable"""
    name: Optional[str] = None
    location: Optional[str] = None
    start_time: Optional[datetime] = None
    description: Optional[str] = None
    welcome_message: Optional[str] = None
    capacity: Optional[int] = Field(default=None, ge=1)
    tags: Optional[List[str]] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value):
        if value is None:
            return None
        return normalize_tags(value)


class EventResponse(BaseModel):
    """Public view of an event"""
    id: str
    name: str
    location: str
    start_time: str
    description: str = ""
    welcome_message: str = ""
    capacity: int
    tags: List[str] = []
    creator_id: str
    cover_image_url: Optional[str] = None
    attendee_count: int = 0
    created_at: str
    updated_at: str


class EventDetail(EventResponse):
    """Creator view including credentials and attendees"""
    access_code: str
    qr_code_url: Optional[str] = None
    attendees: List[dict] = []
    photos: List[dict] = []


class MyEvents(BaseModel):
    """A user's events split by role and date"""
    created: List[dict] = []
    attending: List[dict] = []
    past: List[dict] = []
