"""Client-side tracking of a multi-step hunt."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .backend.http_client import GameHttpClient
from .config import Settings
from .errors import MalformedPayload, ValidationRejected
from .geo import bearing_deg, distance_m
from .sensors.location import HeadingProvider, LocationProvider
from .sensors.watch import PollingWatch
from .state import Coordinate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepDescriptor:
    target: Coordinate
    step_id: Optional[str] = None
    hint: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Optional[Dict[str, Any]]) -> Optional["StepDescriptor"]:
        if not data:
            return None
        try:
            target = Coordinate(float(data["latitude"]), float(data["longitude"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedPayload(f"step without a usable coordinate: {data!r}") from exc
        step_id = data.get("id", data.get("step_id"))
        return cls(target=target, step_id=None if step_id is None else str(step_id), hint=data.get("hint"))


@dataclass
class HuntState:
    hunt_id: str
    name: Optional[str] = None
    current_step: Optional[StepDescriptor] = None
    distance_to_step: Optional[float] = None
    bearing_to_step: Optional[float] = None

    @property
    def completed(self) -> bool:
        return self.current_step is None


@dataclass(frozen=True)
class HuntScanOutcome:
    status: str
    message: str
    reward: Optional[Any] = None


HuntCallback = Callable[[str, "HuntTracker"], Awaitable[None]]


class HuntTracker:
    """Follows the player toward the current step of one hunt.

    Position updates recompute distance and bearing; the step scan is only
    offered within ``hunt_proximity_m``. Only the initial load and backend
    answers to a scan move `current_step`.
    """

    def __init__(
        self,
        settings: Settings,
        http: GameHttpClient,
        location: LocationProvider,
        heading: Optional[HeadingProvider] = None,
    ) -> None:
        self.settings = settings
        self._http = http
        self._location = location
        self._heading_provider = heading
        self.state: Optional[HuntState] = None
        self.position: Optional[Coordinate] = None
        self.heading: Optional[float] = None
        self._callbacks: list[HuntCallback] = []
        self._position_watch: Optional[PollingWatch[Coordinate]] = None
        self._heading_watch: Optional[PollingWatch[float]] = None
        self._redirect_task: Optional[asyncio.Task[None]] = None
        self.error: Optional[Exception] = None

    @property
    def scan_enabled(self) -> bool:
        state = self.state
        if state is None or state.current_step is None or state.distance_to_step is None:
            return False
        return state.distance_to_step < self.settings.hunt_proximity_m

    @property
    def arrow_degrees(self) -> Optional[float]:
        """Direction to the step relative to where the device points."""
        if self.state is None or self.state.bearing_to_step is None:
            return None
        return (self.state.bearing_to_step - (self.heading or 0.0)) % 360.0

    def register_callback(self, callback: HuntCallback) -> None:
        self._callbacks.append(callback)

    async def start(self, hunt_id: str) -> HuntState:
        data = await self._http.get_hunt(hunt_id)
        self.state = HuntState(
            hunt_id=str(data.get("id", hunt_id)),
            name=data.get("name"),
            current_step=StepDescriptor.from_payload(data.get("current_step")),
        )
        logger.info("Loaded hunt %s (completed=%s)", self.state.hunt_id, self.state.completed)

        self._position_watch = PollingWatch(
            name="hunt-position",
            sampler=self._location.current,
            interval_seconds=self.settings.hunt_position_interval_seconds,
        )
        self._position_watch.register_callback(self.update_position)
        self._position_watch.register_error_callback(self._on_location_error)
        await self._position_watch.start()

        if self._heading_provider is not None:
            self._heading_watch = PollingWatch(
                name="hunt-heading",
                sampler=self._heading_provider.current,
                interval_seconds=self.settings.heading_interval_seconds,
            )
            self._heading_watch.register_callback(self.update_heading)
            await self._heading_watch.start()

        await self._emit("loaded")
        return self.state

    async def stop(self) -> None:
        for watch in (self._position_watch, self._heading_watch):
            if watch is not None:
                await watch.stop()
        self._position_watch = None
        self._heading_watch = None
        if self._redirect_task and not self._redirect_task.done() and self._redirect_task is not asyncio.current_task():
            self._redirect_task.cancel()
        self._redirect_task = None

    async def __aenter__(self) -> "HuntTracker":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def update_position(self, position: Coordinate) -> None:
        self.position = position
        self._recompute()
        await self._emit("position")

    async def update_heading(self, heading: float) -> None:
        self.heading = heading

    async def _on_location_error(self, exc: Exception) -> None:
        # a stale distance must not keep the step scan enabled
        self.error = exc
        self.position = None
        if self.state is not None:
            self.state.distance_to_step = None
            self.state.bearing_to_step = None
        logger.warning("Hunt tracking lost its location: %s", exc)
        await self._emit("error")

    def _recompute(self) -> None:
        state = self.state
        if state is None or self.position is None:
            return
        if state.current_step is None:
            state.distance_to_step = None
            state.bearing_to_step = None
            return
        state.distance_to_step = distance_m(self.position, state.current_step.target)
        state.bearing_to_step = bearing_deg(self.position, state.current_step.target)

    async def submit_scan(self, raw: str) -> HuntScanOutcome:
        state = self.state
        if state is None or state.current_step is None:
            raise ValidationRejected("No active hunt step to scan")
        if not self.scan_enabled or self.position is None:
            raise ValidationRejected("Get closer to the step before scanning")

        data = await self._http.submit_hunt_scan(state.hunt_id, raw, self.position)
        status = str(data.get("status", ""))
        if status == "success":
            next_step = StepDescriptor.from_payload(data.get("next_step"))
            state.current_step = next_step
            self._recompute()
            await self._emit("step_completed")
            return HuntScanOutcome(status, "Step completed! On to the next one.")
        if status == "completed":
            state.current_step = None
            self._recompute()
            reward = data.get("reward")
            await self._emit("completed")
            self._redirect_task = asyncio.create_task(self._redirect_later(), name="hunt-completion-redirect")
            return HuntScanOutcome(status, f"Hunt completed! Reward: {reward} points", reward=reward)

        message = data.get("message") or "Failed to validate QR. Try again."
        logger.info("Hunt scan rejected for %s: %s", state.hunt_id, message)
        return HuntScanOutcome(status or "failed", message)

    async def abandon(self) -> None:
        if self.state is not None:
            await self._http.abandon_hunt(self.state.hunt_id)
            logger.info("Abandoned hunt %s", self.state.hunt_id)
        await self.stop()

    def as_dict(self) -> Dict[str, Any]:
        state = self.state
        if state is None:
            return {"hunt_id": None}
        step = state.current_step
        return {
            "hunt_id": state.hunt_id,
            "name": state.name,
            "completed": state.completed,
            "current_step": None
            if step is None
            else {"id": step.step_id, "hint": step.hint, **step.target.as_payload()},
            "distance_m": state.distance_to_step,
            "bearing_deg": state.bearing_to_step,
            "arrow_deg": self.arrow_degrees,
            "scan_enabled": self.scan_enabled,
            "error": None if self.error is None else str(self.error),
        }

    async def _redirect_later(self) -> None:
        await asyncio.sleep(self.settings.hunt_completion_redirect_seconds)
        await self._emit("route_away")
        await self.stop()

    async def _emit(self, event: str) -> None:
        for callback in list(self._callbacks):
            try:
                await callback(event, self)
            except Exception:  # pragma: no cover
                logger.exception("Hunt callback failed on %s", event)


__all__ = ["StepDescriptor", "HuntState", "HuntScanOutcome", "HuntTracker"]
