"""Routes a scanned QR payload to the flow that handles its interaction kind."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .backend.http_client import GameHttpClient
from .hunt import HuntTracker
from .pairing import PeerPairing, PeerValidation
from .qr import InteractionKind, QRPayload, classify
from .sensors.location import LocationProvider

logger = logging.getLogger(__name__)

MYSTERIOUS = "This QR code is mysterious and unknown to the system."
WRONG_PLACE = "You are not in the correct location to get the rewards for this code."


@dataclass
class ScanResult:
    kind: InteractionKind
    status: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    peer: Optional[PeerValidation] = None

    def as_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "status": self.status, "message": self.message, "data": self.data}


def reward_message(response: Dict[str, Any]) -> str:
    """Player-facing text for a reward scan response."""

    if not response.get("location_valid"):
        return WRONG_PLACE
    reward = response.get("reward_data") or {}
    encounter_type = response.get("encounter_type")
    if encounter_type == "item_drop":
        return f"You have found {reward.get('item_name')}."
    if encounter_type == "transportation":
        return f"You have been transported to {reward.get('destination')}."
    if encounter_type == "encounter":
        return f"You have encountered a level {reward.get('difficulty_level')} of type {reward.get('puzzle_type')}"
    return MYSTERIOUS


class ScanDispatcher:
    def __init__(
        self,
        http: GameHttpClient,
        location: LocationProvider,
        pairing: PeerPairing,
        *,
        hunt: Optional[HuntTracker] = None,
    ) -> None:
        self._http = http
        self._location = location
        self._pairing = pairing
        self.hunt = hunt

    async def handle(self, raw: str) -> ScanResult:
        payload = classify(raw)
        logger.info("Scanned %s payload", payload.kind.value)
        if payload.kind == InteractionKind.LOGIN:
            return await self._login(payload)
        if payload.kind == InteractionKind.PEER:
            return await self._peer(payload)
        if payload.kind == InteractionKind.HUNT_STEP and self._hunt_accepts(payload):
            return await self._hunt_step(payload)
        if payload.kind == InteractionKind.SECURE:
            return ScanResult(payload.kind, "unsupported", "Secure codes are not supported yet.")
        return await self._reward(payload)

    def _hunt_accepts(self, payload: QRPayload) -> bool:
        hunt = self.hunt
        if hunt is None or hunt.state is None:
            return False
        return payload.hunt_id is None or payload.hunt_id == hunt.state.hunt_id

    async def _login(self, payload: QRPayload) -> ScanResult:
        assert payload.session_id is not None
        response = await self._http.complete_qr_login(payload.session_id)
        status = str(response.get("status", "success"))
        return ScanResult(payload.kind, status, response.get("message") or "Website login complete.", data=response)

    async def _peer(self, payload: QRPayload) -> ScanResult:
        assert payload.peer_token is not None
        position = await self._location.current()
        result = await self._pairing.validate(payload.peer_token, position)
        message = result.message or ("Peer connection successful!" if result.ok else "Peer code rejected.")
        return ScanResult(payload.kind, result.status, message, peer=result)

    async def _hunt_step(self, payload: QRPayload) -> ScanResult:
        assert self.hunt is not None
        outcome = await self.hunt.submit_scan(payload.raw)
        return ScanResult(payload.kind, outcome.status, outcome.message, data={"reward": outcome.reward})

    async def _reward(self, payload: QRPayload) -> ScanResult:
        position = await self._location.current()
        response = await self._http.scan_qr(payload.raw, position)
        status = "success" if response.get("location_valid") else "rejected"
        return ScanResult(payload.kind, status, reward_message(response), data=response)


__all__ = ["ScanDispatcher", "ScanResult", "reward_message"]
