"""
Access flow routes: event id lookup (typed or scanned), code verification
and grant checks
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.api.deps import get_grant_cache, store_grants
from app.schemas.attendee import AccessLookupRequest, AccessVerifyRequest
from app.services.access_service import AccessFlow, GrantCache
from app.services.event_service import serialize_event
from app.utils.responses import success_response
from app.utils.security import enforce_rate_limit

router = APIRouter()

@router.post("/lookup")
async def lookup_event(
    request: Request,
    lookup: AccessLookupRequest,
    grants: GrantCache = Depends(get_grant_cache),
    db: Session = Depends(get_db)
):
    """Resolve an event id; the client moves on to code entry"""
    enforce_rate_limit(request)

    flow = AccessFlow(db, grants)
    event = flow.submit_event_id(lookup.event_id)

    return success_response(
        message="Event found",
        data={
            "state": flow.state.value,
            "event": serialize_event(event),
            "already_verified": grants.check(event["id"])
        }
    )

@router.post("/verify")
async def verify_access(
    request: Request,
    verify: AccessVerifyRequest,
    grants: GrantCache = Depends(get_grant_cache),
    db: Session = Depends(get_db)
):
    """Check the access code and hand the client a 24h grant"""
    enforce_rate_limit(request)

    flow = AccessFlow(db, grants)
    flow.submit_event_id(verify.event_id)
    flow.submit_code(verify.access_code)

    response = success_response(
        message="Access granted",
        data={"state": flow.state.value, "event_id": flow.event_id}
    )
    return store_grants(response, grants)

@router.get("/{event_id}/grant")
async def check_grant(
    event_id: str,
    grants: GrantCache = Depends(get_grant_cache)
):
    """Whether the client still holds a fresh grant for the event"""
    return success_response(
        message="Grant status",
        data={"event_id": event_id, "granted": grants.check(event_id)}
    )
