"""
User documents keyed by the identity provider's user id
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict

from sqlalchemy.orm import Session

from app.services.repositories import UserRepo, now_iso

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Opaque identity triple supplied by the auth provider"""
    id: str
    display_name: str
    email: str


class UserService:

    @staticmethod
    def ensure_user(db: Session, identity: Identity) -> Dict[str, Any]:
        """Return the user document, creating it with an empty index on first sight"""
        existing = UserRepo.get(db, identity.id)
        if existing is not None:
            return existing

        logger.info(f"Creating user document for {identity.id}")
        return UserRepo.create(db, identity.id, {
            "display_name": identity.display_name or "user",
            "email": identity.email,
            "created_at": now_iso(),
            "my_events": [],
        })
