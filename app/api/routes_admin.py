"""
Admin API routes - requires the admin token
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.api.deps import get_event_service
from app.services.event_service import EventLifecycleService
from app.utils.security import verify_admin_token
from app.utils.responses import success_response

router = APIRouter()

@router.post("/reconcile")
async def reconcile_orphans(
    service: EventLifecycleService = Depends(get_event_service),
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Remove stored files whose event record no longer exists"""
    swept = service.reconcile_orphans(db)
    return success_response(
        message=f"Removed orphaned files for {len(swept)} events",
        data={"swept_event_ids": swept}
    )

@router.delete("/events/{event_id}")
async def force_delete_event(
    event_id: str,
    service: EventLifecycleService = Depends(get_event_service),
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Delete any event regardless of its creator"""
    report = service.delete_event(db, event_id)
    return success_response(
        message="Event deleted successfully",
        data=report.as_dict()
    )
