"""
Routes for the signed-in user's own document and event index
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.schemas.event import MyEvents
from app.schemas.user import UserResponse
from app.services.membership_service import MembershipLedger
from app.services.repositories import UserRepo
from app.services.user_service import Identity
from app.utils.responses import success_response
from app.utils.security import get_current_user

router = APIRouter()

@router.post("/me")
async def register_user(
    user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create the user document on first sign-in (idempotent)"""
    return success_response(
        message="User ready",
        data=UserResponse(**UserRepo.require(db, user.id)).model_dump()
    )

@router.get("/me/events")
async def my_events(
    user: Identity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Events the user created or joined"""
    return success_response(
        message="Events retrieved successfully",
        data=MyEvents(**MembershipLedger.list_my_events(db, user.id)).model_dump()
    )
