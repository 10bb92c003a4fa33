"""Polling subscription over a sensor provider with scoped teardown."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sampler = Callable[[], Awaitable[Optional[T]]]
SampleCallback = Callable[[T], Awaitable[None]]
ErrorCallback = Callable[[Exception], Awaitable[None]]


class PollingWatch(Generic[T]):
    """Async helper that samples a provider at a fixed interval and emits readings.

    Use as ``async with watch:`` so the polling task is stopped on every exit path.
    """

    def __init__(self, *, name: str, sampler: Sampler[T], interval_seconds: float) -> None:
        self.name = name
        self.sampler = sampler
        self.interval_seconds = interval_seconds

        self._task: Optional[asyncio.Task[None]] = None
        self._stop_event = asyncio.Event()
        self._callbacks: list[SampleCallback[T]] = []
        self._error_callbacks: list[ErrorCallback] = []
        self.error: Optional[Exception] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def register_callback(self, callback: SampleCallback[T]) -> None:
        self._callbacks.append(callback)

    def register_error_callback(self, callback: ErrorCallback) -> None:
        """Called once with the sampler's exception when the watch dies."""
        self._error_callbacks.append(callback)

    async def start(self) -> None:
        if self._task:
            return
        self._stop_event.clear()
        self.error = None
        self._task = asyncio.create_task(self._run_loop(), name=f"{self.name}-watch")

    async def stop(self) -> None:
        if not self._task:
            return
        task, self._task = self._task, None
        self._stop_event.set()
        if task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self) -> "PollingWatch[T]":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def _run_loop(self) -> None:
        logger.info("Starting %s watch interval=%.2fs", self.name, self.interval_seconds)
        try:
            while not self._stop_event.is_set():
                reading = await self.sampler()
                if reading is not None:
                    await self._emit(reading)
                await asyncio.sleep(self.interval_seconds)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("%s watch failed: %s", self.name, exc)
            self.error = exc
            await self._emit_error(exc)
        finally:
            logger.info("%s watch stopped", self.name)

    async def _emit(self, reading: T) -> None:
        for callback in list(self._callbacks):
            try:
                await callback(reading)
            except Exception:  # pragma: no cover
                logger.exception("%s watch callback failed", self.name)

    async def _emit_error(self, exc: Exception) -> None:
        for callback in list(self._error_callbacks):
            try:
                await callback(exc)
            except Exception:  # pragma: no cover
                logger.exception("%s watch error callback failed", self.name)


__all__ = ["PollingWatch", "Sampler", "SampleCallback", "ErrorCallback"]
