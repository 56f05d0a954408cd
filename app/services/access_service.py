"""
Event access: access code verification, client-held access grants and the
two-step join flow (event id first, then access code).
"""

import base64
import enum
import json
import logging
import time
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationFailedError
from app.services.repositories import EventRepo

logger = logging.getLogger(__name__)


class AccessVerifier:
    """Authoritative access checks against the stored event"""

    @staticmethod
    def lookup(db: Session, event_id: str) -> Dict:
        return EventRepo.require(db, event_id.strip())

    @staticmethod
    def verify(db: Session, event_id: str, submitted_code: str) -> bool:
        """True iff the submitted code equals the event's access code.

        Raises NotFoundError for an unknown event rather than returning False.
        """
        event = AccessVerifier.lookup(db, event_id)
        return (submitted_code or "").strip() == event["access_code"]


class GrantCache:
    """Client-held record of events whose access code was already passed.

    Grants are a convenience cache only. They carry no signature and are never
    trusted in place of AccessVerifier.verify.
    """

    def __init__(self, grants: Optional[Dict[str, float]] = None, clock: Callable[[], float] = time.time,
                 ttl_seconds: int = None):
        self.grants = dict(grants or {})
        self.clock = clock
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.ACCESS_GRANT_TTL_SECONDS

    def record(self, event_id: str) -> None:
        self.grants[event_id] = self.clock()

    def check(self, event_id: str) -> bool:
        verified_at = self.grants.get(event_id)
        if verified_at is None:
            return False
        return self.clock() - verified_at < self.ttl_seconds

    def prune(self) -> None:
        """Drop expired grants"""
        self.grants = {eid: ts for eid, ts in self.grants.items() if self.check(eid)}

    def to_cookie(self) -> str:
        """Unpadded base64url JSON, so the value needs no cookie quoting"""
        self.prune()
        raw = json.dumps(self.grants, separators=(",", ":")).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    @classmethod
    def from_cookie(cls, value: Optional[str], clock: Callable[[], float] = time.time) -> "GrantCache":
        grants: Dict[str, float] = {}
        if value:
            try:
                padded = value + "=" * (-len(value) % 4)
                parsed = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
            except (ValueError, UnicodeError):
                logger.warning("Discarding unreadable access grant cookie")
                parsed = {}
            if isinstance(parsed, dict):
                grants = {
                    str(eid): float(ts)
                    for eid, ts in parsed.items()
                    if isinstance(ts, (int, float))
                }
        return cls(grants, clock=clock)


class AccessState(str, enum.Enum):
    AWAITING_EVENT_ID = "awaiting_event_id"
    AWAITING_CODE = "awaiting_code"
    VERIFIED = "verified"


class AccessFlow:
    """State machine shared by manual entry and QR scanning.

    AWAITING_EVENT_ID -> AWAITING_CODE needs a resolvable event;
    AWAITING_CODE -> VERIFIED needs the matching access code.
    Failures leave the state unchanged, set ``error`` and re-raise.
    """

    def __init__(self, db: Session, grants: GrantCache):
        self.db = db
        self.grants = grants
        self.state = AccessState.AWAITING_EVENT_ID
        self.event: Optional[Dict] = None
        self.error: Optional[str] = None

    @property
    def event_id(self) -> Optional[str]:
        return self.event["id"] if self.event else None

    def submit_event_id(self, event_id: str) -> Dict:
        if self.state != AccessState.AWAITING_EVENT_ID:
            raise ValidationFailedError("An event is already selected")
        self.error = None
        try:
            event = AccessVerifier.lookup(self.db, event_id)
        except NotFoundError:
            self.error = "Event not found. Please check the Event ID."
            raise
        self.event = event
        self.state = AccessState.AWAITING_CODE
        return event

    def scan(self, decoded: str) -> Dict:
        """A QR scan yields the event id directly"""
        return self.submit_event_id(decoded)

    def scan_error(self, message: str) -> None:
        """Reader decode errors are expected while the camera settles"""
        logger.debug(f"QR decode error ignored: {message}")

    def submit_code(self, access_code: str) -> bool:
        if self.state != AccessState.AWAITING_CODE:
            raise ValidationFailedError("Enter an event ID first")
        self.error = None
        if not AccessVerifier.verify(self.db, self.event_id, access_code):
            self.error = "Invalid access code. Please try again."
            raise ValidationFailedError(self.error)
        self.grants.record(self.event_id)
        self.state = AccessState.VERIFIED
        logger.info(f"Access verified for event {self.event_id}")
        return True

    def back(self) -> None:
        if self.state == AccessState.AWAITING_CODE:
            self.state = AccessState.AWAITING_EVENT_ID
            self.event = None
            self.error = None
