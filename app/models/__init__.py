"""
Database models package
"""

from .event import EventRecord
from .user import UserRecord

__all__ = ["EventRecord", "UserRecord"]
