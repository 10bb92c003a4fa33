import json

import httpx
import pytest

fastapi = pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

from huntclient.client import GameClient
from huntclient.main import create_app


def _backend(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/qr/scan":
        body = json.loads(request.content)
        assert body["latitude"] == 10.0
        return httpx.Response(200, json={"location_valid": False})
    if request.url.path == "/qr/peer/generate":
        return httpx.Response(200, json={"token": "peer-abc"})
    if request.url.path == "/player/my_history":
        skip = int(request.url.params["skip"])
        scans = [{"scan_type": "discovery", "success": True}] if skip == 0 else []
        return httpx.Response(200, json={"scans": scans, "total": 1})
    if request.url.path == "/player/me":
        return httpx.Response(200, json={"username": "explorer_p1", "points": 40})
    return httpx.Response(404)


@pytest.fixture
def game_client(settings, token_for, fake_connector):
    settings = settings.model_copy(update={"access_token": token_for("p1")})
    return GameClient(settings=settings, transport=httpx.MockTransport(_backend), connector=fake_connector)


def test_healthz_reports_connected_channel(game_client, fake_connector):
    with TestClient(create_app(game_client)) as client:
        response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "phase": "idle", "channel": "connected"}
    assert fake_connector.connections[0].uri == "ws://backend.test/ws/player/p1"


def test_scan_uses_pushed_location(game_client):
    with TestClient(create_app(game_client)) as client:
        assert client.post("/location", json={"latitude": 10.0, "longitude": 20.0}).status_code == 200
        response = client.post("/scan", json={"raw": "hello"})

    assert response.status_code == 200
    data = response.json()
    assert data["kind"] == "generic"
    assert data["status"] == "rejected"
    assert "not in the correct location" in data["message"]


def test_pairing_cooldown_maps_to_429(game_client):
    with TestClient(create_app(game_client)) as client:
        client.post("/location", json={"latitude": 10.0, "longitude": 20.0})
        first = client.post("/pairing/code")
        second = client.post("/pairing/code")

    assert first.status_code == 200
    assert first.json()["phase"] == "active"
    assert first.json()["token"] == "peer-abc"
    assert second.status_code == 429
    assert second.json()["error"] == "cooldown"


def test_denied_location_surfaces_as_403(game_client):
    with TestClient(create_app(game_client)) as client:
        client.post("/location/denied")
        response = client.post("/scan", json={"raw": "hello"})

    assert response.status_code == 403
    assert response.json()["error"] == "permission_denied"


def test_hunt_scan_without_hunt_is_rejected(game_client):
    with TestClient(create_app(game_client)) as client:
        response = client.post("/hunts/scan", json={"raw": "qr"})

    assert response.status_code == 409
    assert response.json()["error"] == "validation_rejected"


def test_history_pages_until_total(game_client):
    with TestClient(create_app(game_client)) as client:
        first = client.get("/history", params={"reset": True}).json()
        second = client.get("/history").json()

    assert first["total"] == 1
    assert len(first["scans"]) == 1
    assert second["exhausted"] is True
    assert len(second["scans"]) == 1


def test_player_profile_is_proxied(game_client):
    with TestClient(create_app(game_client)) as client:
        response = client.get("/player")

    assert response.status_code == 200
    assert response.json() == {"username": "explorer_p1", "points": 40}
