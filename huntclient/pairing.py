"""Peer pairing: time-boxed, location-bound codes another player scans to join."""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .backend.http_client import GameHttpClient
from .config import Settings
from .errors import CooldownActive, NetworkFailure
from .geo import distance_m
from .messages import ChannelMessage, PlayerInteraction
from .sensors.location import LocationProvider
from .sensors.watch import PollingWatch
from .state import Coordinate, PairingPhase

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
PairingCallback = Callable[["PairingStatus"], Awaitable[None]]


@dataclass(frozen=True)
class PairingCode:
    token: str
    origin: Coordinate
    issued_at: float
    ttl_seconds: float

    @property
    def expires_at(self) -> float:
        return self.issued_at + self.ttl_seconds

    def remaining_seconds(self, now: float) -> float:
        return max(0.0, self.expires_at - now)

    def is_valid(self, now: float, position: Coordinate, max_drift_m: float) -> bool:
        if now >= self.expires_at:
            return False
        return distance_m(self.origin, position) <= max_drift_m


@dataclass(frozen=True)
class PairingStatus:
    phase: PairingPhase
    token: Optional[str] = None
    remaining_seconds: Optional[float] = None
    drift_m: Optional[float] = None
    message: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "token": self.token,
            "remaining_seconds": self.remaining_seconds,
            "drift_m": self.drift_m,
            "message": self.message,
        }


@dataclass(frozen=True)
class PeerValidation:
    status: str
    message: Optional[str] = None
    player1_id: Optional[str] = None
    player2_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @property
    def starts_game(self) -> bool:
        return self.ok and self.player1_id is not None


class PeerPairing:
    """Issues pairing codes and watches them until they expire or get used.

    States run ``idle -> issuing -> active -> {expired, consumed}``. Expiry is
    whichever comes first of the TTL elapsing and the holder drifting beyond
    ``pairing_max_drift_m`` from where the code was issued.
    """

    def __init__(
        self,
        settings: Settings,
        http: GameHttpClient,
        location: LocationProvider,
        *,
        clock: Clock = time.time,
    ) -> None:
        self.settings = settings
        self._http = http
        self._location = location
        self._clock = clock
        self._phase = PairingPhase.IDLE
        self._code: Optional[PairingCode] = None
        self._last_request_at: Optional[float] = None
        self._last_drift_m: Optional[float] = None
        self._callbacks: list[PairingCallback] = []
        self._watch: Optional[PollingWatch[Coordinate]] = None
        self._expiry_task: Optional[asyncio.Task[None]] = None

    @property
    def phase(self) -> PairingPhase:
        return self._phase

    @property
    def code(self) -> Optional[PairingCode]:
        return self._code

    def register_callback(self, callback: PairingCallback) -> None:
        self._callbacks.append(callback)

    def status(self, message: Optional[str] = None) -> PairingStatus:
        code = self._code
        return PairingStatus(
            phase=self._phase,
            token=code.token if code else None,
            remaining_seconds=code.remaining_seconds(self._clock()) if code else None,
            drift_m=self._last_drift_m,
            message=message,
        )

    def cooldown_remaining(self) -> float:
        if self._last_request_at is None:
            return 0.0
        elapsed = self._clock() - self._last_request_at
        return max(0.0, self.settings.pairing_cooldown_seconds - elapsed)

    async def request_code(self) -> PairingCode:
        remaining = self.cooldown_remaining()
        if remaining > 0 or self._phase == PairingPhase.ISSUING:
            raise CooldownActive(remaining)

        self._last_request_at = self._clock()
        previous_phase = self._phase
        self._phase = PairingPhase.ISSUING
        try:
            origin = await self._location.current()
            token = await self._http.issue_peer_code(origin)
            if not token:
                raise NetworkFailure("Pairing code response missing token")
        except BaseException:
            self._phase = previous_phase
            raise

        await self._stop_tracking()
        self._code = PairingCode(
            token=token,
            origin=origin,
            issued_at=self._clock(),
            ttl_seconds=self.settings.pairing_ttl_seconds,
        )
        self._last_drift_m = 0.0
        self._phase = PairingPhase.ACTIVE
        logger.info("Pairing code issued; valid for %ss", self.settings.pairing_ttl_seconds)
        await self._emit(self.status())

        self._watch = PollingWatch(
            name="pairing-position",
            sampler=self._location.current,
            interval_seconds=self.settings.pairing_sample_seconds,
        )
        self._watch.register_callback(self.check)
        self._watch.register_error_callback(self._on_location_error)
        await self._watch.start()
        self._expiry_task = asyncio.create_task(self._expire_at_deadline(self._code), name="pairing-expiry")
        return self._code

    async def check(self, position: Coordinate) -> PairingPhase:
        """Apply the TTL and drift rules against a fresh position sample."""

        code = self._code
        if self._phase != PairingPhase.ACTIVE or code is None:
            return self._phase
        now = self._clock()
        self._last_drift_m = distance_m(code.origin, position)
        if code.is_valid(now, position, self.settings.pairing_max_drift_m):
            await self._emit(self.status())
            return self._phase

        reason = "Code expired" if now >= code.expires_at else "You moved too far from where the code was made"
        await self._expire(reason)
        return self._phase

    async def _expire(self, reason: str) -> None:
        logger.info("Pairing code invalidated: %s (drift=%s)", reason, self._last_drift_m)
        self._phase = PairingPhase.EXPIRED
        await self._stop_tracking()
        await self._emit(self.status(reason))

    async def _expire_at_deadline(self, code: PairingCode) -> None:
        # the countdown runs independently of position samples
        while self._phase == PairingPhase.ACTIVE and self._code is code:
            remaining = code.remaining_seconds(self._clock())
            if remaining <= 0:
                await self._expire("Code expired")
                return
            await asyncio.sleep(remaining)

    async def _on_location_error(self, exc: Exception) -> None:
        if self._phase == PairingPhase.ACTIVE:
            await self._emit(self.status(f"Location unavailable: {exc}"))

    async def handle_message(self, message: ChannelMessage) -> None:
        if not isinstance(message, PlayerInteraction) or self._phase != PairingPhase.ACTIVE:
            return
        self._phase = PairingPhase.CONSUMED
        await self._stop_tracking()
        await self._emit(self.status(message.message or "Peer connection successful!"))

    async def validate(self, token: str, position: Coordinate) -> PeerValidation:
        """Scanning side: the backend alone decides whether the code is acceptable."""

        data = await self._http.validate_peer_code(token, position)
        result = PeerValidation(
            status=str(data.get("status", "error")),
            message=data.get("message"),
            player1_id=None if data.get("player1_id") is None else str(data["player1_id"]),
            player2_id=None if data.get("player2_id") is None else str(data["player2_id"]),
        )
        if not result.ok:
            logger.info("Peer code rejected: %s", result.message)
        return result

    async def reset(self) -> None:
        await self._stop_tracking()
        self._code = None
        self._last_drift_m = None
        self._phase = PairingPhase.IDLE

    async def _stop_tracking(self) -> None:
        watch, self._watch = self._watch, None
        if watch is not None:
            await watch.stop()
        task, self._expiry_task = self._expiry_task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _emit(self, status: PairingStatus) -> None:
        for callback in list(self._callbacks):
            try:
                await callback(status)
            except Exception:  # pragma: no cover
                logger.exception("Pairing callback failed")


__all__ = ["PairingCode", "PairingStatus", "PeerValidation", "PeerPairing"]
