import pytest
from fastapi.testclient import TestClient

from processing.categorizer import CategorizationFailed, ConfigurationMissing
from server.app import create_proxy_app

from fakes import FakeCategorizer

CATEGORIES = [{"id": "work", "name": "Work"}, {"id": "other", "name": "Other"}]


def make_client(categorizer):
    return TestClient(create_proxy_app(categorizer))


def test_health_endpoints():
    client = make_client(FakeCategorizer(activities=[]))
    assert client.get("/").json() == {"status": "ok", "service": "time-tracking-api"}
    assert client.get("/health").json() == {"status": "healthy"}


def test_categorize_forwards_request():
    activities = [{"summary": "Standup", "category": "work", "tags": ["meeting"], "duration": 15}]
    categorizer = FakeCategorizer(activities=activities)

    response = make_client(categorizer).post("/categorize", json={
        "transcript": "daily standup",
        "defaultDurationMinutes": 15,
        "categories": CATEGORIES,
    })

    assert response.status_code == 200
    assert response.json() == {"activities": activities}
    transcript, budget, categories = categorizer.calls[0]
    assert (transcript, budget) == ("daily standup", 15)
    assert categories == CATEGORIES


@pytest.mark.parametrize("error, code", [
    (ConfigurationMissing("API key not configured"), "CONFIGURATION_MISSING"),
    (CategorizationFailed("bad reply"), "CATEGORIZE_ERROR"),
])
def test_categorize_errors(error, code):
    response = make_client(FakeCategorizer(error=error)).post("/categorize", json={"transcript": "x"})
    assert response.status_code == 500
    assert response.json() == {"error": str(error), "code": code}


def test_test_connection():
    assert make_client(FakeCategorizer(activities=[])).post("/test-connection").json() == {"success": True}
    failing = FakeCategorizer(error=CategorizationFailed("down"))
    assert make_client(failing).post("/test-connection").json() == {"success": False}


def test_cors_headers():
    response = make_client(FakeCategorizer(activities=[])).get("/health", headers={"Origin": "http://example.com"})
    assert response.headers["access-control-allow-origin"] == "*"
