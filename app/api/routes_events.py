"""
Event management routes for signed-in users
"""

from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import Response
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.core.exceptions import PermissionDeniedError, ValidationFailedError
from app.api.deps import get_event_service, read_upload
from app.schemas.event import EventCreate, EventUpdate
from app.services.event_service import EventLifecycleService, serialize_event
from app.services.excel_service import ExcelService
from app.services.repositories import EventRepo
from app.services.user_service import Identity
from app.utils.responses import success_response
from app.utils.security import get_current_user, get_optional_user

router = APIRouter()

def _form_values(**fields) -> dict:
    """Drop blank optional form fields"""
    return {name: value for name, value in fields.items() if value not in (None, "")}

def _validation_failed(exc: ValidationError) -> ValidationFailedError:
    errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
    return ValidationFailedError("Please fill in all required fields.", details=errors)

@router.post("")
async def create_event(
    name: str = Form(""),
    location: str = Form(""),
    start_time: str = Form(""),
    description: str = Form(""),
    welcome_message: str = Form(""),
    capacity: Optional[int] = Form(None),
    tags: str = Form(""),
    cover_image: Optional[UploadFile] = File(None),
    user: Identity = Depends(get_current_user),
    service: EventLifecycleService = Depends(get_event_service),
    db: Session = Depends(get_db)
):
    """Create an event with its access code and QR code"""
    if not name.strip() or not location.strip() or not start_time.strip():
        raise ValidationFailedError("Please fill in all required fields.")
    try:
        event_data = EventCreate(**_form_values(
            name=name,
            location=location,
            start_time=start_time,
            description=description,
            welcome_message=welcome_message,
            capacity=capacity,
            tags=tags,
        ))
    except ValidationError as exc:
        raise _validation_failed(exc) from exc

    event = service.create_event(db, event_data, user.id, await read_upload(cover_image))

    return success_response(
        message="Event created successfully!",
        data=serialize_event(event, include_private=True),
        status_code=201
    )

@router.get("")
async def list_created_events(
    user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Events created by the caller"""
    events = EventRepo.list_by_creator(db, user.id)
    return success_response(
        message="Events retrieved successfully",
        data=[serialize_event(event) for event in events]
    )

@router.get("/{event_id}")
async def get_event(
    event_id: str,
    user: Optional[Identity] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """Event details; credentials and attendees only for the creator"""
    event = EventRepo.require(db, event_id)
    is_creator = user is not None and user.id == event["creator_id"]
    return success_response(
        message="Event details retrieved",
        data=serialize_event(event, include_private=is_creator)
    )

@router.patch("/{event_id}")
async def update_event(
    event_id: str,
    name: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    start_time: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    welcome_message: Optional[str] = Form(None),
    capacity: Optional[int] = Form(None),
    tags: Optional[str] = Form(None),
    cover_image: Optional[UploadFile] = File(None),
    user: Identity = Depends(get_current_user),
    service: EventLifecycleService = Depends(get_event_service),
    db: Session = Depends(get_db)
):
    """Edit an event"""
    fields = {
        "name": name,
        "location": location,
        "start_time": start_time or None,
        "description": description,
        "welcome_message": welcome_message,
        "capacity": capacity,
        "tags": tags,
    }
    try:
        changes = EventUpdate(**{key: value for key, value in fields.items() if value is not None})
    except ValidationError as exc:
        raise _validation_failed(exc) from exc

    event = service.update_event(db, event_id, changes, user.id, await read_upload(cover_image))

    return success_response(
        message="Event updated successfully",
        data=serialize_event(event, include_private=True)
    )

@router.delete("/{event_id}")
async def delete_event(
    event_id: str,
    user: Identity = Depends(get_current_user),
    service: EventLifecycleService = Depends(get_event_service),
    db: Session = Depends(get_db)
):
    """Delete an event; cleanup failures do not block the deletion"""
    report = service.delete_event(db, event_id, requester_id=user.id)
    return success_response(
        message="Event deleted successfully",
        data=report.as_dict()
    )

@router.get("/{event_id}/attendees/export.xlsx")
async def export_attendees(
    event_id: str,
    user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Download the attendee list"""
    event = EventRepo.require(db, event_id)
    if event["creator_id"] != user.id:
        raise PermissionDeniedError("Only the event creator can export attendees")

    excel_content = ExcelService.export_attendees(event)

    return Response(
        content=excel_content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename=attendees_{event_id}.xlsx"}
    )
