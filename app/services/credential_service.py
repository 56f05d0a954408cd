"""
Access credential issuing: a 4-digit access code and a stored QR code per event
"""

import logging
import secrets
from dataclasses import dataclass

from app.core.config import settings
from app.services.qr_service import QRService
from app.services.storage import BlobStore, qr_code_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    access_code: str
    qr_code_path: str
    qr_code_url: str


def generate_access_code() -> str:
    """Uniform draw from ACCESS_CODE_MIN..ACCESS_CODE_MAX inclusive.

    Codes are not unique across events; they are only meaningful together
    with the event id.
    """
    span = settings.ACCESS_CODE_MAX - settings.ACCESS_CODE_MIN + 1
    return str(settings.ACCESS_CODE_MIN + secrets.randbelow(span))


class CredentialIssuer:
    """Generates and persists the credentials handed out at event creation"""

    def __init__(self, blob_store: BlobStore):
        self.blob_store = blob_store

    def issue(self, event_id: str) -> Credentials:
        access_code = generate_access_code()
        path = qr_code_path(event_id)
        png = QRService.generate_event_qr(event_id)
        url = self.blob_store.put(path, png, "image/png")
        logger.info(f"Issued credentials for event {event_id}")
        return Credentials(access_code=access_code, qr_code_path=path, qr_code_url=url)
