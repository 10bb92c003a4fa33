import asyncio
import json
from urllib.parse import parse_qs

import httpx
import pytest

from huntclient.backend.auth import AuthService
from huntclient.backend.http_client import GameHttpClient
from huntclient.errors import NetworkFailure, Unauthenticated
from huntclient.state import Coordinate

HERE = Coordinate(37.7749, -122.4194)


def _clients(settings, handler):
    transport = httpx.MockTransport(handler)
    auth = AuthService(settings, transport=transport)
    return auth, GameHttpClient(settings, auth, transport=transport)


def test_401_triggers_single_reauth_and_retry(settings, token_for):
    fresh = token_for("p1")
    settings = settings.model_copy(update={"access_token": "stale", "username": "ann", "password": "pw"})
    calls: list[tuple[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.url.path, request.headers.get("authorization", "")))
        if request.url.path == "/auth/login":
            form = parse_qs(request.content.decode())
            assert form == {"username": ["ann"], "password": ["pw"]}
            return httpx.Response(200, json={"access_token": fresh, "token_type": "bearer"})
        if request.headers.get("authorization") != f"Bearer {fresh}":
            return httpx.Response(401)
        return httpx.Response(200, json={"location_valid": True})

    async def scenario():
        auth, http = _clients(settings, handler)
        data = await http.scan_qr("hello", HERE)
        await http.aclose()
        await auth.aclose()
        return data, auth

    data, auth = asyncio.run(scenario())
    assert data == {"location_valid": True}
    assert [path for path, _ in calls] == ["/qr/scan", "/auth/login", "/qr/scan"]
    assert auth.player_id == "p1"


def test_second_401_is_a_hard_failure(settings, token_for):
    settings = settings.model_copy(update={"access_token": "stale", "username": "ann", "password": "pw"})
    scans: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/login":
            return httpx.Response(200, json={"access_token": token_for("p1")})
        scans.append(request.url.path)
        return httpx.Response(401)

    async def scenario():
        auth, http = _clients(settings, handler)
        try:
            await http.get_hunt("4")
        finally:
            await http.aclose()
            await auth.aclose()

    with pytest.raises(Unauthenticated):
        asyncio.run(scenario())
    assert scans == ["/hunts/hunt/4", "/hunts/hunt/4"]


def test_server_error_maps_to_network_failure(settings):
    settings = settings.model_copy(update={"access_token": "tok"})

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"detail": "boom"})

    async def scenario():
        auth, http = _clients(settings, handler)
        try:
            await http.submit_hunt_scan("1", "qr", HERE)
        finally:
            await http.aclose()
            await auth.aclose()

    with pytest.raises(NetworkFailure) as excinfo:
        asyncio.run(scenario())
    assert excinfo.value.status_code == 500


def test_transport_error_maps_to_network_failure(settings):
    settings = settings.model_copy(update={"access_token": "tok"})

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    async def scenario():
        auth, http = _clients(settings, handler)
        try:
            await http.get_player()
        finally:
            await http.aclose()
            await auth.aclose()

    with pytest.raises(NetworkFailure):
        asyncio.run(scenario())


def test_missing_token_registers_anonymous_player(settings, token_for):
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        if request.url.path == "/auth/register":
            return httpx.Response(200, json={"id": 9})
        if request.url.path == "/auth/login":
            username = parse_qs(request.content.decode())["username"][0]
            assert username.startswith("explorer_")
            return httpx.Response(200, json={"access_token": token_for("9")})
        assert request.headers["authorization"].startswith("Bearer ")
        return httpx.Response(200, json={"token": "peer-tok"})

    async def scenario():
        auth, http = _clients(settings, handler)
        token = await http.issue_peer_code(HERE)
        await http.aclose()
        await auth.aclose()
        return token, auth.player_id

    token, player_id = asyncio.run(scenario())
    assert token == "peer-tok"
    assert player_id == "9"
    assert seen == ["/auth/register", "/auth/login", "/qr/peer/generate"]


def test_request_payloads_carry_coordinates(settings):
    settings = settings.model_copy(update={"access_token": "tok"})
    bodies: dict[str, bytes] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        bodies[request.url.path] = request.content
        return httpx.Response(200, json={"status": "success"})

    async def scenario():
        auth, http = _clients(settings, handler)
        await http.validate_peer_code("tok-1", HERE)
        await http.submit_hunt_scan("3", "raw-qr", HERE)
        await http.aclose()
        await auth.aclose()

    asyncio.run(scenario())
    validate = json.loads(bodies["/qr/peer/validate"])
    assert validate == {"token": "tok-1", "latitude": 37.7749, "longitude": -122.4194}
    hunt_scan = json.loads(bodies["/hunts/scan"])
    assert hunt_scan == {"hunt_id": "3", "qr_code": "raw-qr", "latitude": 37.7749, "longitude": -122.4194}


def test_reauth_without_token_is_unauthenticated(settings, monkeypatch):
    auth = AuthService(settings, transport=httpx.MockTransport(lambda request: httpx.Response(404)))

    async def no_op():
        return None

    monkeypatch.setattr(auth, "reauthenticate", no_op)

    async def scenario():
        try:
            await auth.ensure_token()
        finally:
            await auth.aclose()

    with pytest.raises(Unauthenticated, match="no token"):
        asyncio.run(scenario())
