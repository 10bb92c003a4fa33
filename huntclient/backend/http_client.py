"""HTTP client for the hunt backend's scan, pairing, hunt and player endpoints."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..config import Settings
from ..errors import NetworkFailure, Unauthenticated
from ..state import Coordinate
from .auth import AuthService
from .security import bearer_headers

logger = logging.getLogger(__name__)


class GameHttpClient:
    """Thin wrapper around the backend REST API.

    Every call goes through `_request`, which retries exactly once after
    re-authenticating when the backend answers 401.
    """

    def __init__(
        self,
        settings: Settings,
        auth: AuthService,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self.auth = auth
        self._client = httpx.AsyncClient(
            base_url=settings.backend_api_url,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        token = self.auth.token
        headers = bearer_headers(token) if token else {}
        try:
            return await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise NetworkFailure(f"Request to {path} failed: {exc}") from exc

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        if not self.auth.token:
            await self.auth.reauthenticate()
        resp = await self._send(method, path, **kwargs)
        if resp.status_code == 401:
            logger.info("%s %s returned 401; re-authenticating once", method, path)
            await self.auth.reauthenticate()
            resp = await self._send(method, path, **kwargs)
            if resp.status_code == 401:
                raise Unauthenticated(f"Not authorized for {path}")
        if resp.is_error:
            logger.warning("%s %s returned %s", method, path, resp.status_code)
            raise NetworkFailure(f"{path} failed with status {resp.status_code}", status_code=resp.status_code)
        try:
            return resp.json()
        except ValueError as exc:
            raise NetworkFailure(f"{path} returned a non-JSON body", status_code=resp.status_code) from exc

    async def scan_qr(self, qr_code: str, position: Coordinate) -> Dict[str, Any]:
        return await self._request("POST", "/qr/scan", json={"qr_code": qr_code, **position.as_payload()})

    async def complete_qr_login(self, session_id: str) -> Dict[str, Any]:
        return await self._request("POST", "/auth/qr-login-complete", json={"session_id": session_id})

    async def issue_peer_code(self, position: Coordinate) -> Optional[str]:
        data = await self._request("POST", "/qr/peer/generate", json=position.as_payload())
        token = data.get("token")
        if not token:
            logger.error("Peer code response missing token: %s", data)
            return None
        return token

    async def validate_peer_code(self, token: str, position: Coordinate) -> Dict[str, Any]:
        return await self._request("POST", "/qr/peer/validate", json={"token": token, **position.as_payload()})

    async def get_hunt(self, hunt_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/hunts/hunt/{hunt_id}")

    async def submit_hunt_scan(self, hunt_id: str, qr_code: str, position: Coordinate) -> Dict[str, Any]:
        payload = {"hunt_id": hunt_id, "qr_code": qr_code, **position.as_payload()}
        return await self._request("POST", "/hunts/scan", json=payload)

    async def abandon_hunt(self, hunt_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/hunts/abandon/{hunt_id}")

    async def list_active_hunts(self, *, skip: int = 0, limit: int = 10) -> Dict[str, Any]:
        return await self._request("GET", "/hunts/active", params={"skip": skip, "limit": limit})

    async def scan_history(self, *, skip: int = 0, limit: int = 10) -> Dict[str, Any]:
        return await self._request("GET", "/player/my_history", params={"skip": skip, "limit": limit})

    async def get_player(self) -> Dict[str, Any]:
        return await self._request("GET", "/player/me")

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["GameHttpClient"]
