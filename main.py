"""
FrameIt - FastAPI Backend
Event creation, access codes, attendee membership and photo sharing
"""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
import uvicorn

from app.core.config import settings
from app.core.db import engine, Base
from app.core.exceptions import DependencyFailureError, FrameItError
from app.api import routes_access, routes_admin, routes_events, routes_guest, routes_public, routes_users, ws
from app.utils.responses import error_response

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    if not settings.USE_FIREBASE:
        Base.metadata.create_all(bind=engine)
        logger.info("Local document tables created")
    yield
    logger.info("Application shutdown")

app = FastAPI(
    title="FrameIt",
    description="Events, access codes and shared photos",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(FrameItError)
async def frameit_error_handler(request: Request, exc: FrameItError):
    if isinstance(exc, DependencyFailureError):
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return error_response(exc)

# Local blob store files
if not settings.USE_FIREBASE:
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")

app.include_router(routes_public.router, tags=["public"])
app.include_router(routes_users.router, prefix="/users", tags=["users"])
app.include_router(routes_events.router, prefix="/events", tags=["events"])
app.include_router(routes_guest.router, prefix="/events", tags=["attendees"])
app.include_router(routes_access.router, prefix="/access", tags=["access"])
app.include_router(routes_admin.router, prefix="/admin", tags=["admin"])
app.include_router(ws.router, prefix="/ws", tags=["websocket"])

# Note: Run this ASGI app directly with Uvicorn or Hypercorn. For Gunicorn,
# use `uvicorn.workers.UvicornWorker` instead of wrapping the app.

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="127.0.0.1",
        port=8000,
        reload=True
    )
