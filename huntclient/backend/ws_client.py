"""Player-addressed realtime channel shared by every screen-level flow."""
from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional

import websockets

from ..config import Settings
from ..errors import MalformedPayload
from ..messages import ChannelMessage, parse_message
from ..state import ChannelState
from .auth import AuthService

logger = logging.getLogger(__name__)

Listener = Callable[[ChannelMessage], Awaitable[None]]
Connector = Callable[..., Awaitable[Any]]


class RealtimeChannel:
    """Maintains at most one connection to `/ws/player/{player_id}`.

    Inbound frames are parsed into `ChannelMessage` variants and fanned out
    to every registered listener in arrival order. An unexpected close
    schedules a single reconnect after `ws_reconnect_delay_seconds`.
    """

    def __init__(self, settings: Settings, auth: AuthService, *, connector: Optional[Connector] = None) -> None:
        self.settings = settings
        self.auth = auth
        self._connector: Connector = connector or websockets.connect
        self._conn: Optional[Any] = None
        self._uri: Optional[str] = None
        self._target: Optional[str] = None
        self._state = ChannelState.DISCONNECTED
        self._listeners: list[Listener] = []
        self._listener_task: Optional[asyncio.Task[None]] = None
        self._reconnect_task: Optional[asyncio.Task[None]] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def address(self) -> Optional[str]:
        return self._uri

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def address_for(self, target_identity: Optional[str] = None) -> Optional[str]:
        own_id = self.auth.player_id
        if not own_id:
            return None
        base = self.settings.backend_ws_url.rstrip("/")
        if target_identity and target_identity != own_id:
            return f"{base}/ws/player/{target_identity}?player2_id={own_id}"
        return f"{base}/ws/player/{own_id}"

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def connect(self, target_identity: Optional[str] = None) -> None:
        self._cancel_reconnect()
        uri = self.address_for(target_identity)
        if uri is None:
            logger.error("Cannot connect realtime channel: no authenticated player")
            return

        async with self._lock:
            if self._uri == uri and self._state in (ChannelState.CONNECTING, ChannelState.CONNECTED):
                return
            if self._state != ChannelState.DISCONNECTED or self._conn is not None:
                logger.info("Switching realtime channel from %s to %s", self._uri, uri)
                await self._close_current()

            self._uri = uri
            self._target = target_identity
            self._state = ChannelState.CONNECTING
            logger.info("Connecting to realtime channel %s", uri)
            try:
                conn = await self._connector(
                    uri,
                    ping_interval=self.settings.ws_ping_interval,
                    ping_timeout=self.settings.ws_ping_timeout,
                )
            except (OSError, asyncio.TimeoutError, websockets.WebSocketException) as exc:
                logger.warning("Realtime channel connect to %s failed: %s", uri, exc)
                self._uri = None
                self._state = ChannelState.DISCONNECTED
                self._schedule_reconnect()
                return

            self._conn = conn
            self._state = ChannelState.CONNECTED
            self._listener_task = asyncio.create_task(self._listen(conn), name="realtime-channel-listener")

    async def disconnect(self) -> None:
        self._cancel_reconnect()
        async with self._lock:
            self._target = None
            if self._conn is None and self._state == ChannelState.DISCONNECTED:
                return
            await self._close_current()
            logger.info("Realtime channel disconnected")

    async def send(self, message: dict[str, Any]) -> bool:
        conn = self._conn
        if conn is None or self._state != ChannelState.CONNECTED:
            logger.warning("Dropping outbound %s; channel is %s", message.get("event"), self._state.value)
            return False
        try:
            await conn.send(json.dumps(message))
        except websockets.ConnectionClosed as exc:
            logger.warning("Dropping outbound %s; connection closed: %s", message.get("event"), exc)
            return False
        logger.debug("Sent %s", message.get("event"))
        return True

    async def _close_current(self) -> None:
        conn, task = self._conn, self._listener_task
        self._state = ChannelState.CLOSING
        self._conn = None
        self._listener_task = None
        if task and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if conn is not None:
            await conn.close()
        self._uri = None
        self._state = ChannelState.DISCONNECTED

    async def _listen(self, conn: Any) -> None:
        try:
            async for frame in conn:
                try:
                    message = parse_message(frame)
                except MalformedPayload as exc:
                    logger.warning("Dropping malformed frame (%s): %r", exc, frame)
                    continue
                logger.debug("Received %s", message.event)
                await self._dispatch(message)
        except asyncio.CancelledError:  # pragma: no cover - cooperative cancel
            raise
        except websockets.ConnectionClosedOK:
            logger.info("Realtime channel closed cleanly")
        except websockets.ConnectionClosedError as exc:
            logger.warning("Realtime channel closed: %s", exc)
        except Exception:  # pragma: no cover
            logger.exception("Realtime channel listener crashed")
        finally:
            if self._conn is conn:
                # closed without disconnect(); this connection is no longer ours
                self._conn = None
                self._listener_task = None
                self._uri = None
                self._state = ChannelState.DISCONNECTED
                self._schedule_reconnect()

    async def _dispatch(self, message: ChannelMessage) -> None:
        for listener in list(self._listeners):
            try:
                await listener(message)
            except Exception:
                logger.exception("Realtime channel listener failed on %s", message.event)

    def _schedule_reconnect(self) -> None:
        if self.reconnect_pending:
            return
        delay = self.settings.ws_reconnect_delay_seconds
        logger.info("Scheduling realtime channel reconnect in %.1fs", delay)
        self._reconnect_task = asyncio.create_task(
            self._reconnect_later(self._target, delay), name="realtime-channel-reconnect"
        )

    async def _reconnect_later(self, target_identity: Optional[str], delay: float) -> None:
        await asyncio.sleep(delay)
        self._reconnect_task = None
        await self.connect(target_identity)

    def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        self._reconnect_task = None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()


__all__ = ["RealtimeChannel", "Listener", "Connector"]
