import time
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from notifications.scheduler import ReminderScheduler, reminder_payload
from recorder.audio_capture import PermissionDenied
from server.app import create_app
from server.routes import period_window

from fakes import FakeCategorizer, FakeRecorder

ACTIVITIES = [
    {"summary": "Coffee", "category": "meals", "tags": ["coffee"], "duration": 5},
    {"summary": "Report", "category": "work", "tags": [], "duration": 25},
]


@pytest.fixture
def recorder():
    return FakeRecorder()


@pytest.fixture
def categorizer():
    return FakeCategorizer(activities=ACTIVITIES)


@pytest.fixture
def orchestrator(make_orchestrator, recorder, categorizer):
    return make_orchestrator(recorder=recorder, categorizer=categorizer)


@pytest.fixture
def reminders(settings):
    scheduler = ReminderScheduler(settings, notify=lambda payload: None)
    scheduler.start(paused=True)
    yield scheduler
    scheduler.shutdown()


@pytest.fixture
def client(entries, categories, settings, orchestrator, categorizer, reminders):
    """Cliente HTTP contra la app con fakes de audio y LLM."""
    app = create_app(entries, categories, settings, orchestrator, categorizer, reminders=reminders)
    with TestClient(app) as test_client:
        yield test_client


def wait_for_idle(orchestrator, timeout=5):
    deadline = time.time() + timeout
    while orchestrator.state.value != "idle" and time.time() < deadline:
        time.sleep(0.01)


def test_status(client):
    response = client.get("/api/status")
    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "idle"
    assert data["categorizer_configured"] is True
    assert data["whisper_model_loaded"] is False


def test_recording_lifecycle(client, orchestrator, entries):
    response = client.post("/api/recording/start")
    assert response.status_code == 200
    assert response.json()["state"] == "recording"

    assert client.post("/api/recording/start").status_code == 409

    response = client.post("/api/recording/stop")
    assert response.json() == {"state": "transcribing", "stopped": True}
    wait_for_idle(orchestrator)

    assert len(entries.list_all()) == 2
    assert client.post("/api/recording/stop").json()["stopped"] is False


def test_cancel_recording(client, recorder, entries):
    client.post("/api/recording/start")
    response = client.post("/api/recording/cancel")
    assert response.json()["cancelled"] is True
    assert response.json()["state"] == "idle"
    assert recorder.cancelled == 1
    assert entries.list_all() == []


def test_permission_denied_returns_403(client, recorder):
    recorder.start_error = PermissionDenied("Microphone permission not granted")
    response = client.post("/api/recording/start")
    assert response.status_code == 403
    assert response.json()["detail"] == "Microphone permission not granted"
    assert client.get("/api/status").json()["state"] == "error"


def test_start_failure_returns_500(client, recorder):
    recorder.start_error = RuntimeError("device busy")
    response = client.post("/api/recording/start")
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to start recording: device busy"

    # Tras un fallo de permiso vuelve a 403, no se arrastra el estado anterior
    recorder.start_error = PermissionDenied("Microphone permission not granted")
    assert client.post("/api/recording/start").status_code == 403
    recorder.start_error = RuntimeError("device busy")
    assert client.post("/api/recording/start").status_code == 500


def test_entry_crud(client):
    response = client.post("/api/entries", json={
        "recorded_at": 1000, "duration": 20, "summary": "Gym", "category_id": "health", "tags": ["Legs"],
    })
    assert response.status_code == 201
    entry = response.json()
    assert entry["tags"] == ["legs"]
    assert entry["processed"] is True

    response = client.patch(f"/api/entries/{entry['id']}", json={"duration": 40})
    assert response.json()["duration"] == 40
    assert response.json()["summary"] == "Gym"

    assert client.get(f"/api/entries/{entry['id']}").status_code == 200
    assert client.delete(f"/api/entries/{entry['id']}").json() == {"deleted": True}
    assert client.get(f"/api/entries/{entry['id']}").status_code == 404
    assert client.delete(f"/api/entries/{entry['id']}").status_code == 404


def test_entry_validation(client):
    assert client.post("/api/entries", json={"category_id": "nope"}).status_code == 400
    assert client.post("/api/entries", json={"duration": -5}).status_code == 422
    entry = client.post("/api/entries", json={"recorded_at": 1000}).json()
    assert client.patch(f"/api/entries/{entry['id']}", json={"category_id": "nope"}).status_code == 400


def test_entry_listing(client, entries):
    for ts in (1000, 2000, 3000):
        entries.create(recorded_at=ts, duration=10)

    data = client.get("/api/entries", params={"limit": 2}).json()
    assert [e["recorded_at"] for e in data["entries"]] == [3000, 2000]
    assert data["has_more"] is True

    in_range = client.get("/api/entries/range", params={"start": 1500, "end": 2500}).json()
    assert [e["recorded_at"] for e in in_range] == [2000]
    assert client.get("/api/entries/range", params={"start": 5, "end": 1}).status_code == 400
    assert len(client.get("/api/entries/unprocessed").json()) == 3


def test_stats(client, entries):
    entries.create(recorded_at=1000, duration=30, summary="a", category_id="work")
    entries.create(recorded_at=1100, duration=15)

    data = client.get("/api/stats/categories", params={"start": 0, "end": 2000}).json()
    assert [c["total_duration"] for c in data["categories"]] == [30, 15]

    daily = client.get("/api/stats/daily", params={"start": 0, "end": 2000}).json()
    assert sum(d["total_duration"] for d in daily["days"]) == 45
    assert client.get("/api/stats/categories", params={"period": "decade"}).status_code == 400


def test_category_delete_keeps_entries(client, entries):
    category = client.post("/api/categories", json={"name": "Gardening"}).json()
    entry = entries.create(recorded_at=1000, duration=10, summary="Weeds", category_id=category["id"])

    counts = {c["id"]: c["entry_count"] for c in client.get("/api/categories", params={"with_counts": True}).json()}
    assert counts[category["id"]] == 1
    listed = client.get(f"/api/categories/{category['id']}/entries").json()
    assert [e["id"] for e in listed] == [entry["id"]]

    assert client.delete(f"/api/categories/{category['id']}").status_code == 200
    assert entries.get(entry["id"])["category_id"] is None
    assert client.get(f"/api/categories/{category['id']}").status_code == 404


def test_settings_hide_api_key(client):
    client.put("/api/settings", json={"api_key": "secret"})
    data = client.get("/api/settings").json()
    assert "api_key" not in data
    assert data["api_key_configured"] is True


def test_settings_validation(client):
    assert client.put("/api/settings", json={"notification_interval": 0}).status_code == 422
    response = client.put("/api/settings", json={"notification_start_hour": 22})
    assert response.status_code == 400


def test_settings_change_reschedules_reminders(client):
    client.post("/api/notifications/schedule")
    before = client.get("/api/notifications").json()
    assert len(before) == 24

    client.put("/api/settings", json={"notification_interval": 60})
    after = client.get("/api/notifications").json()
    assert len(after) == 12
    assert after[0]["payload"]["data"]["interval_minutes"] == 60

    client.put("/api/settings", json={"notification_enabled": False})
    assert client.get("/api/notifications").json() == []


def test_cancel_notifications(client):
    client.post("/api/notifications/schedule")
    assert client.delete("/api/notifications").json() == {"cancelled": True}
    assert client.get("/api/notifications").json() == []


def test_notification_response_starts_recording(client):
    response = client.post("/api/notifications/respond", json={"data": {"action": "test"}})
    assert response.json()["started"] is False

    response = client.post("/api/notifications/respond", json=reminder_payload(30))
    assert response.json()["started"] is True
    assert response.json()["state"] == "recording"
    client.post("/api/recording/cancel")


def test_test_connection(client):
    assert client.post("/api/settings/test-connection").json() == {"success": True}


def test_period_window():
    now = datetime(2024, 5, 15, 14, 30)  # miercoles
    start, end = period_window("today", now)
    assert datetime.fromtimestamp(start) == datetime(2024, 5, 15)
    assert end - start == 24 * 3600 - 1

    start, _ = period_window("week", now)
    assert datetime.fromtimestamp(start) == datetime(2024, 5, 13)

    start, end = period_window("month", now)
    assert datetime.fromtimestamp(start) == datetime(2024, 5, 1)
    assert datetime.fromtimestamp(end + 1) == datetime(2024, 6, 1)

    with pytest.raises(ValueError):
        period_window("year", now)
