"""
Event lifecycle: creation with credentials and creator indexing, editing,
best-effort deletion, and the sweep for blobs left behind by failed creations.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import FrameItError, PermissionDeniedError, ValidationFailedError
from app.schemas.event import EventCreate, EventDetail, EventResponse, EventUpdate
from app.services.credential_service import CredentialIssuer
from app.services.membership_service import ROLE_CREATOR, MembershipLedger, touch
from app.services.repositories import EventRepo, now_iso
from app.services.storage import BlobStore, UploadedFile, cover_image_path, event_prefix

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "location", "start_time")


def iso_utc(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def serialize_event(event: Dict[str, Any], include_private: bool = False) -> Dict[str, Any]:
    """Public fields of an event, plus credentials and attendees for its creator"""
    data = {
        "id": event["id"],
        "name": event["name"],
        "location": event["location"],
        "start_time": event["start_time"],
        "description": event.get("description", ""),
        "welcome_message": event.get("welcome_message", ""),
        "capacity": event.get("capacity"),
        "tags": event.get("tags", []),
        "creator_id": event["creator_id"],
        "cover_image_url": event.get("cover_image_url"),
        "attendee_count": len(event.get("attendees", [])),
        "created_at": event["created_at"],
        "updated_at": event["updated_at"],
    }
    if not include_private:
        return EventResponse(**data).model_dump()
    return EventDetail(
        **data,
        access_code=event["access_code"],
        qr_code_url=event.get("qr_code_url"),
        attendees=event.get("attendees", []),
        photos=event.get("photos", []),
    ).model_dump()


@dataclass
class StepFailure:
    step: str
    error: str


@dataclass
class DeletionReport:
    """Outcome of each cleanup step of a deletion"""
    event_id: str
    failures: List[StepFailure] = field(default_factory=list)
    unindexed_users: List[str] = field(default_factory=list)
    removed_blobs: int = 0

    @property
    def clean(self) -> bool:
        return not self.failures

    def as_dict(self) -> Dict[str, Any]:
        return {
            "deleted_event_id": self.event_id,
            "clean": self.clean,
            "removed_blobs": self.removed_blobs,
            "unindexed_users": self.unindexed_users,
            "failures": [{"step": f.step, "error": f.error} for f in self.failures],
        }


class EventLifecycleService:
    """Coordinates the multi-step event operations"""

    def __init__(self, blob_store: BlobStore, issuer: Optional[CredentialIssuer] = None):
        self.blob_store = blob_store
        self.issuer = issuer or CredentialIssuer(blob_store)

    # -------- create --------

    def create_event(
        self,
        db: Session,
        event_data: EventCreate,
        creator_id: str,
        cover_image: Optional[UploadedFile] = None,
    ) -> Dict[str, Any]:
        """Create the event record, its credentials and the creator's reference.

        Steps run strictly in order; the first failure aborts the rest and
        already completed steps are left as they are.
        """
        missing = [name for name in REQUIRED_FIELDS if not str(getattr(event_data, name) or "").strip()]
        if missing:
            raise ValidationFailedError("Please fill in all required fields.", details={"missing": missing})
        if cover_image is not None:
            cover_image.validate_image()

        step = "allocate_id"
        try:
            event_id = EventRepo.new_id()

            step = "issue_credentials"
            credentials = self.issuer.issue(event_id)

            cover_path = cover_url = None
            if cover_image is not None:
                step = "upload_cover_image"
                cover_path = cover_image_path(event_id, uuid.uuid4().hex[:8], cover_image.filename)
                cover_url = self.blob_store.put(cover_path, cover_image.content, cover_image.content_type)

            step = "persist_event"
            now = now_iso()
            event = EventRepo.create(db, event_id, {
                "name": event_data.name.strip(),
                "location": event_data.location.strip(),
                "start_time": iso_utc(event_data.start_time),
                "description": event_data.description,
                "welcome_message": event_data.welcome_message,
                "capacity": event_data.capacity,
                "tags": event_data.tags,
                "creator_id": creator_id,
                "access_code": credentials.access_code,
                "qr_code_path": credentials.qr_code_path,
                "qr_code_url": credentials.qr_code_url,
                "cover_image_path": cover_path,
                "cover_image_url": cover_url,
                "attendees": [],
                "photos": [],
                "created_at": now,
                "updated_at": now,
            })

            step = "index_creator"
            MembershipLedger.add_membership(db, creator_id, event_id, ROLE_CREATOR)
        except FrameItError:
            logger.error(f"Event creation failed at step {step}")
            raise

        logger.info(f"Created event {event_id} for user {creator_id}")
        return event

    # -------- update --------

    def update_event(
        self,
        db: Session,
        event_id: str,
        changes: EventUpdate,
        editor_id: str,
        cover_image: Optional[UploadedFile] = None,
    ) -> Dict[str, Any]:
        """Apply editable fields; access code, QR code and creator never change"""
        current = EventRepo.require(db, event_id)
        if current["creator_id"] != editor_id:
            raise PermissionDeniedError("Only the event creator can edit this event")

        updates = changes.model_dump(exclude_unset=True, exclude_none=True)
        for name in ("name", "location"):
            if name in updates:
                updates[name] = updates[name].strip()
                if not updates[name]:
                    raise ValidationFailedError("Please fill in all required fields.", details={"missing": [name]})
        if "start_time" in updates:
            updates["start_time"] = iso_utc(updates["start_time"])

        if cover_image is not None:
            cover_image.validate_image()
            path = cover_image_path(event_id, uuid.uuid4().hex[:8], cover_image.filename)
            updates["cover_image_path"] = path
            updates["cover_image_url"] = self.blob_store.put(path, cover_image.content, cover_image.content_type)

        def apply(event: Dict[str, Any]) -> Dict[str, Any]:
            previous_cover = event.get("cover_image_path")
            event.update(updates)
            touch(event, now_iso())
            return {"event": dict(event), "previous_cover": previous_cover}

        result = EventRepo.mutate(db, event_id, apply)

        previous_cover = result["previous_cover"]
        if cover_image is not None and previous_cover and previous_cover != updates["cover_image_path"]:
            try:
                self.blob_store.delete(previous_cover)
            except FrameItError as exc:
                logger.warning(f"Could not delete replaced cover image {previous_cover}: {exc}")

        logger.info(f"Updated event {event_id}")
        return result["event"]

    # -------- delete --------

    def _attempt(self, report: DeletionReport, step: str, fn: Callable, *args) -> Any:
        try:
            return fn(*args)
        except Exception as exc:
            logger.warning(f"Cleanup step {step} failed for event {report.event_id}: {exc}")
            report.failures.append(StepFailure(step=step, error=str(exc)))
            return None

    def _delete_blob(self, path: str) -> int:
        self.blob_store.delete(path)
        return 1

    @staticmethod
    def affected_user_ids(event: Dict[str, Any]) -> List[str]:
        """The creator plus every attendee with a user id; guests are not indexed"""
        user_ids = [event["creator_id"]]
        for attendee in event.get("attendees", []):
            user_id = attendee.get("user_id")
            if user_id and user_id not in user_ids:
                user_ids.append(user_id)
        return user_ids

    def delete_event(self, db: Session, event_id: str, requester_id: Optional[str] = None) -> DeletionReport:
        """Remove blobs and user references, then the event record itself.

        Cleanup failures are recorded in the report and never stop the
        deletion. The record goes last so an interrupted deletion leaves the
        event discoverable for a retry.
        """
        event = EventRepo.require(db, event_id)
        if requester_id is not None and event["creator_id"] != requester_id:
            raise PermissionDeniedError("Only the event creator can delete this event")

        report = DeletionReport(event_id=event_id)

        if event.get("cover_image_path"):
            report.removed_blobs += self._attempt(report, "delete_cover_image", self._delete_blob, event["cover_image_path"]) or 0
        if event.get("qr_code_path"):
            report.removed_blobs += self._attempt(report, "delete_qr_code", self._delete_blob, event["qr_code_path"]) or 0
        removed = self._attempt(report, "delete_event_blobs", self.blob_store.delete_prefix, event_prefix(event_id))
        report.removed_blobs += removed or 0

        for user_id in self.affected_user_ids(event):
            step = f"unindex_user:{user_id}"
            if self._attempt(report, step, MembershipLedger.remove_membership, db, user_id, event_id) is not None:
                report.unindexed_users.append(user_id)

        EventRepo.delete(db, event_id)
        logger.info(f"Deleted event {event_id} with {len(report.failures)} cleanup failures")
        return report

    # -------- reconciliation --------

    def reconcile_orphans(self, db: Session) -> List[str]:
        """Delete blob namespaces whose event record does not exist"""
        event_ids = []
        for path in self.blob_store.list("events/"):
            parts = path.split("/")
            if len(parts) > 2 and parts[1] not in event_ids:
                event_ids.append(parts[1])

        swept = []
        for event_id in event_ids:
            if EventRepo.get(db, event_id) is None:
                self.blob_store.delete_prefix(event_prefix(event_id))
                swept.append(event_id)
                logger.info(f"Swept orphaned blobs for event {event_id}")
        return swept
