"""Shared client state definitions for the hunt client."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Coordinate:
    """A WGS-84 latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float

    def as_payload(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


class ChannelState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"


class PairingPhase(str, enum.Enum):
    IDLE = "idle"
    ISSUING = "issuing"
    ACTIVE = "active"
    EXPIRED = "expired"
    CONSUMED = "consumed"


class GameStatus(str, enum.Enum):
    AWAITING_OPPONENT = "awaiting_opponent"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    ABORTED = "aborted"


@dataclass
class ClientEvent:
    """Event payload distributed to UI clients over the local WebSocket."""

    type: str
    data: Dict[str, Any]
    phase: str
    error: Optional[str] = None


__all__ = ["Coordinate", "ChannelState", "PairingPhase", "GameStatus", "ClientEvent"]
