"""
Tests for access code and QR code issuing
"""

import io
import os
import qrcode
from PIL import Image

from app.core.config import settings
from app.schemas.event import EventCreate
from app.services.credential_service import CredentialIssuer, generate_access_code
from app.services.qr_service import QRService
from conftest import future_start

def test_access_code_is_four_digits_in_range():
    """Access codes stay within 1000-9999"""
    for _ in range(500):
        code = generate_access_code()
        assert len(code) == 4
        assert code.isdigit()
        assert settings.ACCESS_CODE_MIN <= int(code) <= settings.ACCESS_CODE_MAX

def test_qr_payload_is_the_event_id_only():
    """The scannable code carries the event id, never the access code"""
    qr = QRService.build_qr("evt-123")
    assert b"".join(chunk.data for chunk in qr.data_list) == b"evt-123"
    assert qr.error_correction == qrcode.constants.ERROR_CORRECT_H

def test_qr_image_has_fixed_size():
    png = QRService.generate_event_qr("a-much-longer-event-identifier-0123456789")
    image = Image.open(io.BytesIO(png))
    assert image.format == "PNG"
    assert image.size == (settings.QR_CODE_SIZE, settings.QR_CODE_SIZE)

def test_issue_persists_qr_under_event_namespace(blob_store):
    issuer = CredentialIssuer(blob_store)
    credentials = issuer.issue("evt-42")

    assert credentials.qr_code_path == "events/evt-42/qr-code.png"
    assert credentials.qr_code_url == "http://test/uploads/events/evt-42/qr-code.png"
    assert blob_store.list("events/evt-42/") == ["events/evt-42/qr-code.png"]

def test_created_events_store_a_qr_code_of_their_own_id(db_session, event_service, blob_store, make_user):
    """The stored QR image is the one rendered from that event's id"""
    make_user("host")
    events = [
        event_service.create_event(
            db_session,
            EventCreate(name=name, location="Hall", start_time=future_start()),
            creator_id="host",
        )
        for name in ("First", "Second")
    ]
    first, second = events
    assert first["id"] != second["id"]

    for event, other in ((first, second), (second, first)):
        assert event["qr_code_path"] == f"events/{event['id']}/qr-code.png"
        with open(os.path.join(blob_store.root, event["qr_code_path"]), "rb") as f:
            stored = f.read()

        assert stored == QRService.generate_event_qr(event["id"])
        assert stored != QRService.generate_event_qr(other["id"])
        assert stored != QRService.generate_event_qr(event["access_code"])
