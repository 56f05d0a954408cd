"""
API tests for the creator, access and attendee flows
"""

import pytest
from fastapi.testclient import TestClient

from app.core.config import settings
from app.core.db import Base, get_db
from app.core.exceptions import DependencyFailureError
from app.services.storage import LocalBlobStore, get_blob_store
from app.utils import security
from conftest import LockedOnWriteSession, engine, future_start
from main import app

PNG = b"\x89PNG\r\n\x1a\nfake-image-bytes"

HOST = {"Authorization": "Bearer host-1:host@example.com:Hannah Host"}
GUEST = {"Authorization": "Bearer guest-1:guest@example.com:Gary Guest"}

@pytest.fixture
def client(session_factory, tmp_path):
    Base.metadata.create_all(bind=engine)
    store = LocalBlobStore(root=str(tmp_path / "blobs"), base_url="http://testserver")

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture(autouse=True)
def reset_rate_limiter():
    security.rate_limiter.clear()
    yield
    security.rate_limiter.clear()

def create_event(client, **overrides):
    form = {
        "name": "Garden Party",
        "location": "Back Yard",
        "start_time": future_start().isoformat(),
        "tags": "garden, party",
    }
    form.update(overrides)
    response = client.post("/events", data=form, headers=HOST)
    assert response.status_code == 201, response.text
    return response.json()["data"]

def grant_access(client, event):
    response = client.post("/access/verify", json={"event_id": event["id"], "access_code": event["access_code"]})
    assert response.status_code == 200, response.text

def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

def test_create_event_returns_credentials(client):
    event = create_event(client)

    assert event["name"] == "Garden Party"
    assert event["tags"] == ["garden", "party"]
    assert event["creator_id"] == "host-1"
    assert len(event["access_code"]) == 4
    assert event["qr_code_url"] == f"http://testserver/uploads/events/{event['id']}/qr-code.png"
    assert event["attendees"] == []

def test_create_event_with_cover_image(client):
    form = {"name": "Gala", "location": "Hall", "start_time": future_start().isoformat()}
    response = client.post(
        "/events",
        data=form,
        files={"cover_image": ("cover.png", PNG, "image/png")},
        headers=HOST,
    )
    assert response.status_code == 201
    assert "/cover/" in response.json()["data"]["cover_image_url"]

def test_create_event_missing_fields(client):
    response = client.post("/events", data={"name": "No Place"}, headers=HOST)
    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "validation_failed"
    assert body["message"] == "Please fill in all required fields."

def test_create_event_requires_sign_in(client):
    response = client.post("/events", data={"name": "x", "location": "y", "start_time": "2030-01-01T10:00:00"})
    assert response.status_code in (401, 403)

def test_public_event_view_hides_credentials(client):
    event = create_event(client)

    public = client.get(f"/events/{event['id']}").json()["data"]
    assert "access_code" not in public
    assert "attendees" not in public

    private = client.get(f"/events/{event['id']}", headers=HOST).json()["data"]
    assert private["access_code"] == event["access_code"]

def test_unknown_event_is_404(client):
    response = client.get("/events/does-not-exist")
    assert response.status_code == 404
    assert response.json()["error_code"] == "not_found"
    assert response.json()["retryable"] is False

def test_qr_code_download(client):
    event = create_event(client)
    response = client.get(f"/events/{event['id']}/qr.png")
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content.startswith(b"\x89PNG")

def test_access_lookup_and_verify(client):
    event = create_event(client)

    lookup = client.post("/access/lookup", json={"event_id": f"  {event['id']} "})
    assert lookup.status_code == 200
    assert lookup.json()["data"]["state"] == "awaiting_code"
    assert lookup.json()["data"]["already_verified"] is False

    wrong = client.post("/access/verify", json={"event_id": event["id"], "access_code": "0000"})
    assert wrong.status_code == 422
    assert wrong.json()["message"] == "Invalid access code. Please try again."
    assert client.get(f"/access/{event['id']}/grant").json()["data"]["granted"] is False

    grant_access(client, event)
    assert settings.ACCESS_COOKIE_NAME in client.cookies
    assert client.get(f"/access/{event['id']}/grant").json()["data"]["granted"] is True

def test_access_lookup_unknown_event(client):
    response = client.post("/access/lookup", json={"event_id": "nope"})
    assert response.status_code == 404

def test_access_verify_is_rate_limited(client, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_PER_MINUTE", 2)
    event = create_event(client)
    payload = {"event_id": event["id"], "access_code": "0000"}

    assert client.post("/access/verify", json=payload).status_code == 422
    assert client.post("/access/verify", json=payload).status_code == 422
    assert client.post("/access/verify", json=payload).status_code == 429

def test_join_requires_grant(client):
    event = create_event(client)
    response = client.post(
        f"/events/{event['id']}/join",
        json={"name": "Alice", "email": "alice@example.com"},
    )
    assert response.status_code == 403

def test_guest_join_and_rejoin(client):
    event = create_event(client)
    grant_access(client, event)

    first = client.post(f"/events/{event['id']}/join", json={"name": "Alice", "email": "alice@example.com"})
    assert first.status_code == 201
    assert first.json()["data"]["status"] == "new"

    again = client.post(
        f"/events/{event['id']}/join",
        json={"name": "Alice B", "email": "alice@example.com", "relationship": "family"},
    )
    assert again.status_code == 200
    assert again.json()["data"]["status"] == "updated"
    assert again.json()["data"]["attendee"]["name"] == "Alice B"

    member = client.get(f"/events/{event['id']}/members/alice@example.com").json()["data"]
    assert member["is_member"] is True

    attendees = client.get(f"/events/{event['id']}", headers=HOST).json()["data"]["attendees"]
    assert len(attendees) == 1

def test_guest_join_needs_name_and_email(client):
    event = create_event(client)
    grant_access(client, event)
    response = client.post(f"/events/{event['id']}/join", json={"name": "Alice"})
    assert response.status_code == 422

def test_signed_in_join_appears_in_my_events(client):
    event = create_event(client)
    grant_access(client, event)

    joined = client.post(f"/events/{event['id']}/join", json={}, headers=GUEST)
    assert joined.status_code == 201
    assert joined.json()["data"]["attendee"]["user_id"] == "guest-1"

    mine = client.get("/users/me/events", headers=GUEST).json()["data"]
    assert [e["id"] for e in mine["attending"]] == [event["id"]]
    assert mine["created"] == []

    hosted = client.get("/users/me/events", headers=HOST).json()["data"]
    assert [e["id"] for e in hosted["created"]] == [event["id"]]

    assert client.get(f"/events/{event['id']}/members/guest-1").json()["data"]["is_member"] is True

def test_register_user_is_idempotent(client):
    first = client.post("/users/me", headers=GUEST)
    second = client.post("/users/me", headers=GUEST)
    assert first.status_code == second.status_code == 200
    assert first.json()["data"] == second.json()["data"]
    assert first.json()["data"]["my_events"] == []

def test_list_created_events(client):
    event = create_event(client)
    response = client.get("/events", headers=HOST)
    assert [e["id"] for e in response.json()["data"]] == [event["id"]]
    assert client.get("/events", headers=GUEST).json()["data"] == []

def test_update_event(client):
    event = create_event(client)

    response = client.patch(f"/events/{event['id']}", data={"location": "Front Porch"}, headers=HOST)
    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["location"] == "Front Porch"
    assert updated["name"] == event["name"]
    assert updated["access_code"] == event["access_code"]

    denied = client.patch(f"/events/{event['id']}", data={"name": "Mine now"}, headers=GUEST)
    assert denied.status_code == 403

def test_photo_upload(client):
    event = create_event(client)
    grant_access(client, event)
    client.post(f"/events/{event['id']}/join", json={"name": "Alice", "email": "alice@example.com"})

    response = client.post(
        f"/events/{event['id']}/photos",
        data={"email": "alice@example.com"},
        files=[("files", ("one.png", PNG, "image/png")), ("files", ("two.png", PNG, "image/png"))],
    )
    assert response.status_code == 201
    assert len(response.json()["data"]["photos"]) == 2

    stranger = client.post(
        f"/events/{event['id']}/photos",
        data={"email": "stranger@example.com"},
        files=[("files", ("one.png", PNG, "image/png"))],
    )
    assert stranger.status_code == 403

def test_export_attendees(client):
    event = create_event(client)
    grant_access(client, event)
    client.post(f"/events/{event['id']}/join", json={"name": "Alice", "email": "alice@example.com"})

    response = client.get(f"/events/{event['id']}/attendees/export.xlsx", headers=HOST)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )

    assert client.get(f"/events/{event['id']}/attendees/export.xlsx", headers=GUEST).status_code == 403

def test_delete_event_cleans_user_indexes(client):
    event = create_event(client)
    grant_access(client, event)
    client.post(f"/events/{event['id']}/join", json={}, headers=GUEST)

    assert client.delete(f"/events/{event['id']}", headers=GUEST).status_code == 403

    response = client.delete(f"/events/{event['id']}", headers=HOST)
    assert response.status_code == 200
    report = response.json()["data"]
    assert report["clean"] is True
    assert report["unindexed_users"] == ["host-1", "guest-1"]

    assert client.get(f"/events/{event['id']}").status_code == 404
    assert client.get("/users/me/events", headers=GUEST).json()["data"]["attending"] == []
    assert client.post("/users/me", headers=HOST).json()["data"]["my_events"] == []

def test_admin_routes_require_token(client):
    assert client.post("/admin/reconcile", headers={"Authorization": "Bearer wrong"}).status_code == 401

def test_admin_reconcile(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_TOKEN", "admin-secret")
    event = create_event(client)

    response = client.post("/admin/reconcile", headers={"Authorization": "Bearer admin-secret"})
    assert response.status_code == 200
    assert response.json()["data"]["swept_event_ids"] == []
    assert client.get(f"/events/{event['id']}").status_code == 200

def test_websocket_room(client):
    event = create_event(client)

    with client.websocket_connect(f"/ws/events/{event['id']}") as websocket:
        hello = websocket.receive_json()
        assert hello["type"] == "connection"
        assert hello["connection_count"] == 1

        websocket.send_json({"type": "ping", "timestamp": 42})
        assert websocket.receive_json() == {"type": "pong", "timestamp": 42}

def test_store_outage_gets_generic_message(client, tmp_path):
    class OfflineStore(LocalBlobStore):
        def put(self, path, data, content_type):
            raise DependencyFailureError(f"bucket unreachable while writing {path}")

    app.dependency_overrides[get_blob_store] = lambda: OfflineStore(root=str(tmp_path / "offline"))
    response = client.post(
        "/events",
        data={"name": "Gala", "location": "Hall", "start_time": future_start().isoformat()},
        headers=HOST,
    )

    assert response.status_code == 503
    body = response.json()
    assert body["message"] == "Something went wrong. Please try again."
    assert body["details"] is None
    assert body["retryable"] is True
    assert client.get("/events", headers=HOST).json()["data"] == []

def test_exhausted_write_retries_are_409(client, session_factory, monkeypatch):
    monkeypatch.setattr(settings, "MAX_WRITE_RETRIES", 2)
    event = create_event(client)
    grant_access(client, event)

    def locked_get_db():
        db = session_factory()
        try:
            yield LockedOnWriteSession(db)
        finally:
            db.close()

    app.dependency_overrides[get_db] = locked_get_db
    response = client.post(f"/events/{event['id']}/join", json={"name": "Alice", "email": "alice@example.com"})

    assert response.status_code == 409
    body = response.json()
    assert body["error_code"] == "concurrency_conflict"
    assert body["retryable"] is True
