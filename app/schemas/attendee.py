"""
Attendee and access-related Pydantic schemas
"""

from typing import Optional
from pydantic import BaseModel, EmailStr

RELATIONSHIPS = ("friend", "family", "colleague", "other")

class AttendeeJoin(BaseModel):
    """Join request; name/email are taken from the signed-in user when present"""
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    relationship: str = "friend"

class AttendeeResponse(BaseModel):
    """Attendee record embedded in an event"""
    name: str
    email: str
    relationship: str
    user_id: Optional[str] = None
    joined_at: str
    last_joined_at: str

class AccessLookupRequest(BaseModel):
    """Step one of the access flow: typed or scanned event id"""
    event_id: str

class AccessVerifyRequest(BaseModel):
    """Step two of the access flow"""
    event_id: str
    access_code: str
