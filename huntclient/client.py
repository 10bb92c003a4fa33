"""Client orchestration: owns collaborators and fans events out to the UI."""
from __future__ import annotations

import asyncio
from asyncio import QueueEmpty
import logging
from typing import Any, Dict, List, Optional

import httpx

from .backend.auth import AuthService
from .backend.http_client import GameHttpClient
from .backend.ws_client import Connector, RealtimeChannel
from .config import Settings, get_settings
from .dispatch import ScanDispatcher, ScanResult
from .errors import HuntClientError, ValidationRejected
from .history import Pager
from .hunt import HuntScanOutcome, HuntTracker
from .messages import ChannelMessage, PlayerInteraction, StartGame, UnknownEvent
from .minigame import Choice, MiniGame
from .pairing import PairingCode, PairingStatus, PeerPairing
from .sensors.location import PushedHeadingProvider, PushedLocationProvider
from .state import ClientEvent, GameStatus

logger = logging.getLogger(__name__)


class GameClient:
    """Coordinates auth, the realtime channel, and the interaction flows."""

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        connector: Optional[Connector] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._ui_subscribers: List[asyncio.Queue[ClientEvent]] = []

        self.location = PushedLocationProvider()
        self.heading = PushedHeadingProvider()

        self.auth = AuthService(self.settings, transport=transport)
        self.http = GameHttpClient(self.settings, self.auth, transport=transport)
        self.channel = RealtimeChannel(self.settings, self.auth, connector=connector)

        self.pairing = PeerPairing(self.settings, self.http, self.location)
        self.pairing.register_callback(self._on_pairing_status)
        self.dispatcher = ScanDispatcher(self.http, self.location, self.pairing)
        self.history = Pager(self.http.scan_history, items_key="scans")
        self.active_hunts = Pager(self.http.list_active_hunts, items_key="hunts")

        self.hunt: Optional[HuntTracker] = None
        self.minigame: Optional[MiniGame] = None

    @property
    def phase(self) -> str:
        if self.minigame is not None:
            return "minigame"
        if self.hunt is not None:
            return "hunt"
        return "idle"

    async def start(self) -> None:
        logger.info("Starting hunt client")
        self.channel.add_listener(self._handle_channel_message)
        try:
            await self.auth.ensure_token()
        except HuntClientError as exc:
            logger.error("Initial authentication failed: %s", exc)
            return
        await self.channel.connect()

    async def stop(self) -> None:
        logger.info("Stopping hunt client")
        await self.leave_minigame(reconnect=False)
        await self.leave_hunt()
        await self.pairing.reset()
        self.channel.remove_listener(self._handle_channel_message)
        await self.channel.disconnect()
        await self.http.aclose()
        await self.auth.aclose()

    def register_ui(self) -> asyncio.Queue[ClientEvent]:
        queue: asyncio.Queue[ClientEvent] = asyncio.Queue(maxsize=16)
        self._ui_subscribers.append(queue)
        return queue

    def unregister_ui(self, queue: asyncio.Queue[ClientEvent]) -> None:
        if queue in self._ui_subscribers:
            self._ui_subscribers.remove(queue)

    async def _broadcast(self, event: ClientEvent) -> None:
        logger.debug("Broadcasting event: %s", event)
        for queue in list(self._ui_subscribers):
            if queue.full():
                try:
                    queue.get_nowait()
                except QueueEmpty:
                    pass
            queue.put_nowait(event)

    async def _notify(self, type_: str, data: Dict[str, Any], *, error: Optional[str] = None) -> None:
        await self._broadcast(ClientEvent(type=type_, data=data, phase=self.phase, error=error))

    async def scan(self, raw: str) -> ScanResult:
        result = await self.dispatcher.handle(raw)
        await self._notify("scan", result.as_dict())
        peer = result.peer
        if peer is not None and peer.starts_game and peer.player1_id is not None:
            own_id = self.auth.player_id
            await self.start_minigame(
                player1_id=peer.player1_id,
                player2_id=peer.player2_id or own_id or "",
                is_player1=False,
            )
        return result

    async def request_pairing_code(self) -> PairingCode:
        return await self.pairing.request_code()

    async def start_hunt(self, hunt_id: str) -> HuntTracker:
        await self.leave_hunt()
        tracker = HuntTracker(self.settings, self.http, self.location, self.heading)
        tracker.register_callback(self._on_hunt_event)
        try:
            await tracker.start(hunt_id)
        except BaseException:
            await tracker.stop()
            raise
        self.hunt = tracker
        self.dispatcher.hunt = tracker
        return tracker

    async def hunt_scan(self, raw: str) -> HuntScanOutcome:
        if self.hunt is None:
            raise ValidationRejected("No hunt in progress")
        return await self.hunt.submit_scan(raw)

    async def abandon_hunt(self) -> None:
        tracker = self.hunt
        if tracker is None:
            return
        await tracker.abandon()
        self.hunt = None
        self.dispatcher.hunt = None

    async def leave_hunt(self) -> None:
        tracker, self.hunt = self.hunt, None
        self.dispatcher.hunt = None
        if tracker is not None:
            await tracker.stop()

    async def start_minigame(self, *, player1_id: str, player2_id: str, is_player1: bool) -> MiniGame:
        await self.leave_minigame(reconnect=False)
        game = MiniGame(self.channel, player1_id=player1_id, player2_id=player2_id, is_player1=is_player1)
        game.register_callback(self._on_minigame_update)
        self.minigame = game
        await game.join()
        await self._notify("minigame", game.as_dict())
        return game

    async def minigame_move(self, choice: Choice) -> bool:
        if self.minigame is None:
            raise ValidationRejected("No mini-game in progress")
        return await self.minigame.submit_move(choice)

    async def leave_minigame(self, *, reconnect: bool = True) -> None:
        game, self.minigame = self.minigame, None
        if game is None:
            return
        await game.leave()
        if reconnect and not game.is_player1:
            await self.channel.connect()

    async def _handle_channel_message(self, message: ChannelMessage) -> None:
        await self.pairing.handle_message(message)
        if isinstance(message, StartGame) and self.minigame is None and len(message.players) >= 2:
            own_id = self.auth.player_id
            game = await self.start_minigame(
                player1_id=message.players[0],
                player2_id=message.players[1],
                is_player1=message.players[0] == own_id,
            )
            await game.handle_message(message)
        elif isinstance(message, PlayerInteraction):
            await self._notify("peer", {"message": message.message, "peer_id": message.peer_id})
        elif isinstance(message, UnknownEvent):
            logger.debug("Unhandled channel event: %s", message.event)

    async def _on_pairing_status(self, status: PairingStatus) -> None:
        await self._notify("pairing", status.as_dict())

    async def _on_hunt_event(self, event: str, tracker: HuntTracker) -> None:
        data = tracker.as_dict()
        data["event"] = event
        error = None
        if event == "error":
            exc = tracker.error
            error = exc.kind if isinstance(exc, HuntClientError) else "error"
        await self._notify("hunt", data, error=error)
        if event == "route_away" and self.hunt is tracker:
            self.hunt = None
            self.dispatcher.hunt = None

    async def _on_minigame_update(self, game: MiniGame) -> None:
        await self._notify("minigame", game.as_dict())
        if game.status == GameStatus.ABORTED and self.minigame is game:
            await self.leave_minigame()


__all__ = ["GameClient"]
