"""
Security utilities and authentication
"""

import logging
from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
import time
from collections import defaultdict

from firebase_admin import auth
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.services.firebase_client import init_firebase_app
from app.services.user_service import Identity, UserService

logger = logging.getLogger(__name__)

# Simple in-memory rate limiter
rate_limiter = defaultdict(list)

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)

def verify_admin_token(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Verify admin authentication token"""
    if credentials.credentials != settings.ADMIN_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token"
        )
    return credentials.credentials

def identity_from_token(token: str) -> Identity:
    """Resolve a bearer token to the caller's identity.

    With Firebase enabled the token is a Firebase ID token. Without it, the
    development format ``uid:email[:display name]`` is accepted.
    """
    if settings.USE_FIREBASE:
        init_firebase_app()
        try:
            claims = auth.verify_id_token(token)
        except (ValueError, auth.InvalidIdTokenError, auth.ExpiredIdTokenError) as exc:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid ID token") from exc
        return Identity(
            id=claims["uid"],
            display_name=claims.get("name") or "user",
            email=claims.get("email", ""),
        )

    parts = token.split(":", 2)
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid development token")
    display_name = parts[2] if len(parts) == 3 and parts[2] else "user"
    return Identity(id=parts[0], display_name=display_name, email=parts[1])

def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Identity:
    """Authenticated caller, provisioned into the users collection"""
    identity = identity_from_token(credentials.credentials)
    UserService.ensure_user(db, identity)
    return identity

def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    db: Session = Depends(get_db)
) -> Optional[Identity]:
    """Authenticated caller if a token was sent, otherwise a guest"""
    if credentials is None:
        return None
    identity = identity_from_token(credentials.credentials)
    UserService.ensure_user(db, identity)
    return identity

def rate_limit_check(client_ip: str, limit: int = None) -> bool:
    """Simple rate limiting by IP address"""
    if limit is None:
        limit = settings.RATE_LIMIT_PER_MINUTE

    current_time = time.time()
    minute_ago = current_time - 60

    # Clean old requests
    rate_limiter[client_ip] = [
        req_time for req_time in rate_limiter[client_ip]
        if req_time > minute_ago
    ]

    # Check limit
    if len(rate_limiter[client_ip]) >= limit:
        return False

    # Add current request
    rate_limiter[client_ip].append(current_time)
    return True

def get_client_ip(request) -> str:
    """Extract client IP from request"""
    # Check for forwarded IP first (for reverse proxy setups)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    # Check for real IP header
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    # Fall back to direct client IP
    return request.client.host if request.client else "unknown"

def enforce_rate_limit(request) -> None:
    if not rate_limit_check(get_client_ip(request)):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Please try again later."
        )
