"""Location and heading providers.

The device's sensors live in the presentation layer, which pushes readings
here; flows consume them through the `LocationProvider` / `HeadingProvider`
interfaces so tests can substitute fixed readings.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from ..errors import PermissionDenied
from ..geo import heading_from_magnetometer
from ..state import Coordinate

logger = logging.getLogger(__name__)


class LocationProvider(Protocol):
    async def current(self) -> Coordinate:
        """Latest coordinate; raises PermissionDenied when access is refused."""


class HeadingProvider(Protocol):
    async def current(self) -> Optional[float]:
        ...


class PushedLocationProvider:
    """Latest-value store fed by the UI; `current()` waits for the first fix."""

    def __init__(self, initial: Optional[Coordinate] = None) -> None:
        self._latest = initial
        self._denied = False
        self._fix = asyncio.Event()
        if initial is not None:
            self._fix.set()

    @property
    def latest(self) -> Optional[Coordinate]:
        return self._latest

    def update(self, coordinate: Coordinate) -> None:
        self._latest = coordinate
        self._denied = False
        self._fix.set()

    def deny(self) -> None:
        logger.warning("Location permission denied by the device")
        self._denied = True
        self._fix.set()

    async def current(self) -> Coordinate:
        await self._fix.wait()
        if self._denied or self._latest is None:
            raise PermissionDenied("Location permission required")
        return self._latest


class PushedHeadingProvider:
    def __init__(self) -> None:
        self._heading: Optional[float] = None

    def update_degrees(self, degrees: float) -> None:
        self._heading = degrees % 360.0

    def update_magnetometer(self, x: float, y: float) -> None:
        self._heading = heading_from_magnetometer(x, y)

    async def current(self) -> Optional[float]:
        return self._heading


class FixedLocationProvider:
    """Constant coordinate; handy for development and tests."""

    def __init__(self, coordinate: Coordinate) -> None:
        self.coordinate = coordinate

    async def current(self) -> Coordinate:
        return self.coordinate


__all__ = [
    "LocationProvider",
    "HeadingProvider",
    "PushedLocationProvider",
    "PushedHeadingProvider",
    "FixedLocationProvider",
]
