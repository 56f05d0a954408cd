"""
Photo uploads by attendees, recorded on the event document
"""

import logging
import uuid
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import FrameItError, PermissionDeniedError, ValidationFailedError
from app.services.membership_service import MembershipLedger, touch
from app.services.repositories import EventRepo, now_iso
from app.services.storage import BlobStore, UploadedFile, photo_path

logger = logging.getLogger(__name__)


class PhotoService:
    """Stores attendee photos under the event's blob namespace"""

    def __init__(self, blob_store: BlobStore):
        self.blob_store = blob_store

    def upload(self, db: Session, event_id: str, uploader_email: str, files: List[UploadedFile]) -> List[Dict[str, Any]]:
        if not files:
            raise ValidationFailedError("Select at least one photo to upload")
        if not MembershipLedger.is_member(db, event_id, uploader_email):
            EventRepo.require(db, event_id)
            raise PermissionDeniedError("Join the event before uploading photos")
        for upload in files:
            upload.validate_image()

        limit = settings.MAX_PHOTOS_PER_ATTENDEE
        stored = []
        for upload in files:
            photo_id = uuid.uuid4().hex[:12]
            path = photo_path(event_id, photo_id, upload.filename)
            url = self.blob_store.put(path, upload.content, upload.content_type)
            stored.append({
                "id": photo_id,
                "path": path,
                "url": url,
                "uploaded_by": uploader_email,
                "uploaded_at": now_iso(),
            })

        def record(event: Dict[str, Any]) -> List[Dict[str, Any]]:
            photos = event.setdefault("photos", [])
            already = sum(1 for photo in photos if photo["uploaded_by"] == uploader_email)
            if already + len(stored) > limit:
                raise ValidationFailedError(
                    f"Each attendee can share up to {limit} photos",
                    details={"already_uploaded": already},
                )
            photos.extend(stored)
            touch(event, now_iso())
            return list(stored)

        try:
            recorded = EventRepo.mutate(db, event_id, record)
        except FrameItError:
            for photo in stored:
                try:
                    self.blob_store.delete(photo["path"])
                except FrameItError as exc:
                    logger.warning(f"Could not remove unrecorded photo {photo['path']}: {exc}")
            raise

        logger.info(f"Stored {len(recorded)} photos on event {event_id}")
        return recorded
