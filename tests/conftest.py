import asyncio
import base64
import json
from types import SimpleNamespace

import pytest

from huntclient.config import Settings


def make_token(sub: str) -> str:
    def segment(data: dict) -> str:
        return base64.urlsafe_b64encode(json.dumps(data).encode()).decode().rstrip("=")

    return f"{segment({'alg': 'HS256', 'typ': 'JWT'})}.{segment({'sub': sub})}.signature"


class FakeConnection:
    """Stands in for a websockets client connection."""

    def __init__(self, uri: str) -> None:
        self.uri = uri
        self.sent: list[dict] = []
        self.closed = False
        self._inbox: asyncio.Queue = asyncio.Queue()

    def feed(self, frame: str) -> None:
        self._inbox.put_nowait(frame)

    def drop(self) -> None:
        self._inbox.put_nowait(None)

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self) -> None:
        self.closed = True
        self._inbox.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        frame = await self._inbox.get()
        if frame is None:
            raise StopAsyncIteration
        return frame


class FakeConnector:
    def __init__(self) -> None:
        self.connections: list[FakeConnection] = []
        self.attempts = 0
        self.failures = 0

    async def __call__(self, uri: str, **_kwargs) -> FakeConnection:
        self.attempts += 1
        await asyncio.sleep(0)
        if self.failures:
            self.failures -= 1
            raise OSError("connection refused")
        conn = FakeConnection(uri)
        self.connections.append(conn)
        return conn


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        backend_api_url="http://backend.test",
        backend_ws_url="ws://backend.test",
        access_token=None,
        username=None,
        password=None,
        ws_reconnect_delay_seconds=0.05,
        pairing_sample_seconds=60.0,
        hunt_position_interval_seconds=60.0,
        heading_interval_seconds=60.0,
        hunt_completion_redirect_seconds=0.01,
    )


@pytest.fixture
def token_for():
    return make_token


@pytest.fixture
def fake_connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def player_auth():
    return SimpleNamespace(player_id="p1", token=make_token("p1"))


@pytest.fixture
def settle():
    async def _settle(seconds: float = 0.02) -> None:
        await asyncio.sleep(seconds)

    return _settle
