"""
Pydantic schemas package
"""

from .common import *
from .event import *
from .attendee import *
from .user import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "EventCreate",
    "EventUpdate",
    "EventResponse",
    "EventDetail",
    "MyEvents",
    "AttendeeJoin",
    "AttendeeResponse",
    "AccessLookupRequest",
    "AccessVerifyRequest",
    "MembershipRef",
    "UserResponse",
]
