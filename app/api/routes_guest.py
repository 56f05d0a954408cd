"""
Attendee-facing API routes
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.core.exceptions import ValidationFailedError
from app.api.deps import get_photo_service, read_upload, require_grant
from app.api.ws import websocket_manager
from app.schemas.attendee import AttendeeJoin, AttendeeResponse
from app.services.access_service import GrantCache
from app.services.membership_service import MembershipLedger
from app.services.notification_service import NotificationService
from app.services.photo_service import PhotoService
from app.services.user_service import Identity
from app.utils.responses import success_response
from app.utils.security import get_optional_user

router = APIRouter()

notification_service = NotificationService(websocket_manager)

@router.post("/{event_id}/join")
async def join_event(
    event_id: str,
    join_data: AttendeeJoin,
    grants: GrantCache = Depends(require_grant),
    user: Optional[Identity] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """Join an event; repeat joins with the same email update the record"""
    if user is not None:
        name, email, user_id = user.display_name, user.email, user.id
    else:
        name, email, user_id = join_data.name, join_data.email, None
        if not name or not email:
            raise ValidationFailedError("Full name and email address are required")

    result = MembershipLedger.join(
        db,
        event_id,
        name=name,
        email=str(email),
        relationship=join_data.relationship,
        user_id=user_id,
    )

    await notification_service.broadcast_attendee_joined(event_id, result.attendee, result.is_new)

    return success_response(
        message="Welcome to the event!" if result.is_new else "Welcome back!",
        data={"attendee": AttendeeResponse(**result.attendee).model_dump(), "status": result.status},
        status_code=201 if result.is_new else 200
    )

@router.get("/{event_id}/members/{identifier}")
async def check_membership(
    event_id: str,
    identifier: str,
    db: Session = Depends(get_db)
):
    """Membership by user id or email"""
    return success_response(
        message="Membership status",
        data={"event_id": event_id, "is_member": MembershipLedger.is_member(db, event_id, identifier)}
    )

@router.post("/{event_id}/photos")
async def upload_photos(
    event_id: str,
    email: str = Form(...),
    files: List[UploadFile] = File(...),
    grants: GrantCache = Depends(require_grant),
    service: PhotoService = Depends(get_photo_service),
    db: Session = Depends(get_db)
):
    """Share up to the per-attendee limit of photos"""
    uploads = [upload for upload in [await read_upload(f) for f in files] if upload is not None]
    photos = service.upload(db, event_id, email.strip(), uploads)

    await notification_service.broadcast_photos_uploaded(event_id, photos)

    return success_response(
        message=f"{len(photos)} photos uploaded",
        data={"photos": photos},
        status_code=201
    )
