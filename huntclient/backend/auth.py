"""Auth token provider and re-authentication collaborator."""
from __future__ import annotations

import logging
import secrets
import string
from typing import Optional

import httpx

from ..config import Settings
from ..errors import NetworkFailure, Unauthenticated
from .security import player_id_from_token

logger = logging.getLogger(__name__)

_ALPHABET = string.ascii_lowercase + string.digits


def _random_suffix(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


class AuthService:
    """Holds the bearer token and knows how to obtain a fresh one."""

    def __init__(self, settings: Settings, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.backend_api_url,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )
        self._token: Optional[str] = settings.access_token
        self._username: Optional[str] = settings.username
        self._password: Optional[str] = settings.password

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def player_id(self) -> Optional[str]:
        return player_id_from_token(self._token)

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    async def ensure_token(self) -> str:
        if self._token:
            return self._token
        await self.reauthenticate()
        if not self._token:
            raise Unauthenticated("Authentication produced no token")
        return self._token

    async def reauthenticate(self) -> None:
        """Log in again with stored credentials, signing up anonymously if there are none."""

        if self._username and self._password:
            await self.login(self._username, self._password)
        else:
            await self.create_anonymous_user()

    async def create_anonymous_user(self) -> None:
        username = f"explorer_{_random_suffix(7)}"
        password = _random_suffix(13)
        logger.info("Registering anonymous player %s", username)
        try:
            resp = await self._client.post("/auth/register", json={"username": username, "password": password})
        except httpx.TransportError as exc:
            raise NetworkFailure(f"Registration request failed: {exc}") from exc
        if resp.is_error:
            raise NetworkFailure("Failed to create anonymous user", status_code=resp.status_code)
        await self.login(username, password)

    async def login(self, username: str, password: str) -> None:
        try:
            resp = await self._client.post("/auth/login", data={"username": username, "password": password})
        except httpx.TransportError as exc:
            raise NetworkFailure(f"Login request failed: {exc}") from exc
        if resp.status_code in (400, 401, 403):
            self._token = None
            raise Unauthenticated("Login failed")
        if resp.is_error:
            raise NetworkFailure("Login failed", status_code=resp.status_code)
        token = resp.json().get("access_token")
        if not token:
            logger.error("Login response missing access_token")
            raise Unauthenticated("Login response missing access_token")
        self._username = username
        self._password = password
        self._token = token
        logger.info("Authenticated as player %s", self.player_id)

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["AuthService"]
