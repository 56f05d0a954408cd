"""
Public API routes - no authentication required
"""

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.services.qr_service import QRService
from app.services.repositories import EventRepo

router = APIRouter()

@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok"}

@router.get("/events/{event_id}/qr.png")
async def get_qr_code(
    event_id: str,
    db: Session = Depends(get_db)
):
    """Re-render the QR code for an event; it only carries the event id"""
    EventRepo.require(db, event_id)
    
    qr_bytes = QRService.generate_event_qr(event_id)
    
    return Response(
        content=qr_bytes,
        media_type="image/png",
        headers={"Content-Disposition": f"inline; filename=qr_{event_id}.png"}
    )
