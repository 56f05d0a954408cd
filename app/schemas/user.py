"""
User-related Pydantic schemas
"""

from typing import List
from pydantic import BaseModel

class MembershipRef(BaseModel):
    """Reference from a user to an event they created or joined"""
    event_id: str
    role: str
    joined_at: str

class UserResponse(BaseModel):
    """User document"""
    id: str
    display_name: str
    email: str
    created_at: str
    my_events: List[MembershipRef] = []
