"""
Shared FastAPI dependencies for the event routers
"""

from typing import Optional

from fastapi import Depends, Request, UploadFile
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import PermissionDeniedError
from app.services.access_service import GrantCache
from app.services.event_service import EventLifecycleService
from app.services.photo_service import PhotoService
from app.services.storage import BlobStore, UploadedFile, get_blob_store


def get_event_service(blob_store: BlobStore = Depends(get_blob_store)) -> EventLifecycleService:
    return EventLifecycleService(blob_store)


def get_photo_service(blob_store: BlobStore = Depends(get_blob_store)) -> PhotoService:
    return PhotoService(blob_store)


def get_grant_cache(request: Request) -> GrantCache:
    return GrantCache.from_cookie(request.cookies.get(settings.ACCESS_COOKIE_NAME))


def require_grant(event_id: str, grants: GrantCache = Depends(get_grant_cache)) -> GrantCache:
    """Attendee-only routes need a fresh access grant for the event"""
    if not grants.check(event_id):
        raise PermissionDeniedError("Enter the event access code first", details={"event_id": event_id})
    return grants


def store_grants(response: JSONResponse, grants: GrantCache) -> JSONResponse:
    response.set_cookie(
        key=settings.ACCESS_COOKIE_NAME,
        value=grants.to_cookie(),
        max_age=settings.ACCESS_GRANT_TTL_SECONDS,
        samesite="lax",
    )
    return response


async def read_upload(file: Optional[UploadFile]) -> Optional[UploadedFile]:
    if file is None or not file.filename:
        return None
    content = await file.read()
    return UploadedFile(filename=file.filename, content=content, content_type=file.content_type or "")
