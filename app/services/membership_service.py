"""
Membership ledger: attendees embedded in each event and the reverse
``my_events`` index on each user document.

Every write is a keyed add/update/remove applied through
``DocumentRepo.mutate`` so concurrent writers never clobber each other.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import ValidationFailedError
from app.schemas.attendee import RELATIONSHIPS
from app.services.repositories import EventRepo, UserRepo, now_iso

logger = logging.getLogger(__name__)

ROLE_CREATOR = "creator"
ROLE_ATTENDEE = "attendee"


def touch(doc: Dict[str, Any], timestamp: str) -> None:
    """Advance updated_at without ever moving it backwards"""
    doc["updated_at"] = max(doc.get("updated_at") or "", timestamp)


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class JoinResult:
    attendee: Dict[str, Any]
    is_new: bool

    @property
    def status(self) -> str:
        return "new" if self.is_new else "updated"


class MembershipLedger:
    """Join, membership checks and the per-user event index"""

    @staticmethod
    def join(
        db: Session,
        event_id: str,
        name: str,
        email: str,
        relationship: str = "friend",
        user_id: Optional[str] = None,
    ) -> JoinResult:
        """Upsert the attendee keyed by exact email match"""
        name = (name or "").strip()
        email = (email or "").strip()
        relationship = (relationship or "friend").strip().lower()
        if relationship not in RELATIONSHIPS:
            relationship = "other"
        if not name or not email:
            raise ValidationFailedError("Name and email are required to join", details={"missing": [
                field for field, value in (("name", name), ("email", email)) if not value
            ]})

        def upsert(event: Dict[str, Any]) -> JoinResult:
            now = now_iso()
            attendees = event.setdefault("attendees", [])
            touch(event, now)
            for attendee in attendees:
                if attendee["email"] == email:
                    attendee["name"] = name
                    attendee["relationship"] = relationship
                    attendee["last_joined_at"] = now
                    if user_id and not attendee.get("user_id"):
                        attendee["user_id"] = user_id
                    return JoinResult(attendee=dict(attendee), is_new=False)

            attendee = {
                "name": name,
                "email": email,
                "relationship": relationship,
                "user_id": user_id,
                "joined_at": now,
                "last_joined_at": now,
            }
            attendees.append(attendee)
            return JoinResult(attendee=dict(attendee), is_new=True)

        result = EventRepo.mutate(db, event_id, upsert)
        logger.info(f"Attendee {result.status} on event {event_id}")

        if user_id:
            MembershipLedger.add_membership(db, user_id, event_id, ROLE_ATTENDEE)
        return result

    @staticmethod
    def is_member(db: Session, event_id: str, identifier: str) -> bool:
        """Match by user id or by email; unknown events are simply not joined"""
        event = EventRepo.get(db, event_id)
        if event is None:
            return False
        return any(
            attendee.get("user_id") == identifier or attendee.get("email") == identifier
            for attendee in event.get("attendees", [])
        )

    @staticmethod
    def add_membership(db: Session, user_id: str, event_id: str, role: str) -> bool:
        """Add ``{event_id, role, joined_at}`` unless the user already references the event"""

        def add(user: Dict[str, Any]) -> bool:
            refs = user.setdefault("my_events", [])
            if any(ref["event_id"] == event_id for ref in refs):
                return False
            refs.append({"event_id": event_id, "role": role, "joined_at": now_iso()})
            return True

        added = UserRepo.mutate(db, user_id, add)
        if added:
            logger.info(f"Indexed event {event_id} for user {user_id} as {role}")
        return added

    @staticmethod
    def remove_membership(db: Session, user_id: str, event_id: str) -> bool:
        def remove(user: Dict[str, Any]) -> bool:
            refs = user.get("my_events", [])
            kept = [ref for ref in refs if ref["event_id"] != event_id]
            user["my_events"] = kept
            return len(kept) != len(refs)

        return UserRepo.mutate(db, user_id, remove)

    @staticmethod
    def list_my_events(db: Session, user_id: str, now: Optional[datetime] = None) -> Dict[str, List[Dict[str, Any]]]:
        """Resolve the user's references into created, attending and past events"""
        user = UserRepo.require(db, user_id)
        now = now or datetime.now(timezone.utc)

        created, attending, past = [], [], []
        for ref in user.get("my_events", []):
            event = EventRepo.get(db, ref["event_id"])
            if event is None:
                logger.warning(f"User {user_id} references missing event {ref['event_id']}")
                continue

            item = {
                "id": event["id"],
                "name": event.get("name"),
                "location": event.get("location"),
                "start_time": event.get("start_time"),
                "cover_image_url": event.get("cover_image_url"),
                "attendee_count": len(event.get("attendees", [])),
                "role": ref["role"],
                "joined_at": ref["joined_at"],
            }
            if parse_timestamp(event["start_time"]) < now:
                past.append(item)
            elif ref["role"] == ROLE_CREATOR:
                created.append(item)
            else:
                attending.append(item)

        by_start = lambda item: parse_timestamp(item["start_time"])
        return {
            "created": sorted(created, key=by_start),
            "attending": sorted(attending, key=by_start),
            "past": sorted(past, key=by_start, reverse=True),
        }
