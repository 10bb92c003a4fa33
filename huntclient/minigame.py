"""Synchronous two-player mini-game driven by realtime channel events."""
from __future__ import annotations

import enum
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .backend.ws_client import RealtimeChannel
from .messages import ChannelMessage, Move, Rejected, Result, StartGame, encode_move
from .state import GameStatus

logger = logging.getLogger(__name__)


class Choice(str, enum.Enum):
    ROCK = "rock"
    PAPER = "paper"
    SCISSORS = "scissors"


@dataclass
class MiniGameSession:
    player1_id: str
    player2_id: str
    status: GameStatus = GameStatus.AWAITING_OPPONENT
    game_type: Optional[str] = None
    own_move: Optional[Choice] = None
    moved: set[str] = field(default_factory=set)
    winner: Optional[str] = None
    reason: Optional[str] = None

    @property
    def players(self) -> Tuple[str, str]:
        return (self.player1_id, self.player2_id)


SessionCallback = Callable[["MiniGame"], Awaitable[None]]


class MiniGame:
    """One side of a mini-game: ``awaiting_opponent -> in_progress -> resolved``.

    A ``rejected`` event aborts from any state before resolution. There is no
    local timeout; leaving the screen calls `leave()`, which deregisters the
    channel listener.
    """

    def __init__(
        self,
        channel: RealtimeChannel,
        *,
        player1_id: str,
        player2_id: str,
        is_player1: bool,
    ) -> None:
        self._channel = channel
        self.session = MiniGameSession(player1_id=player1_id, player2_id=player2_id)
        self.is_player1 = is_player1
        self._callbacks: list[SessionCallback] = []
        self._joined = False

    @property
    def own_id(self) -> str:
        return self.session.player1_id if self.is_player1 else self.session.player2_id

    @property
    def status(self) -> GameStatus:
        return self.session.status

    @property
    def outcome(self) -> Optional[str]:
        if self.session.status != GameStatus.RESOLVED:
            return None
        return "won" if self.session.winner == self.own_id else "lost"

    def register_callback(self, callback: SessionCallback) -> None:
        self._callbacks.append(callback)

    async def join(self) -> None:
        """Listen on player one's channel; player two joins it as a guest."""

        if self._joined:
            return
        self._channel.add_listener(self.handle_message)
        self._joined = True
        target = None if self.is_player1 else self.session.player1_id
        await self._channel.connect(target)

    async def leave(self) -> None:
        if not self._joined:
            return
        self._channel.remove_listener(self.handle_message)
        self._joined = False

    async def __aenter__(self) -> "MiniGame":
        await self.join()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.leave()

    async def submit_move(self, choice: Choice) -> bool:
        session = self.session
        if session.status != GameStatus.IN_PROGRESS:
            logger.info("Ignoring move while game is %s", session.status.value)
            return False
        if session.own_move is not None:
            logger.info("Ignoring second move; already chose %s", session.own_move.value)
            return False
        session.own_move = choice
        await self._channel.send(encode_move(self.own_id, choice.value))
        return True

    async def handle_message(self, message: ChannelMessage) -> None:
        session = self.session
        if session.status in (GameStatus.RESOLVED, GameStatus.ABORTED):
            return

        if isinstance(message, Rejected):
            session.status = GameStatus.ABORTED
            session.reason = message.reason or "Game full - try another QR"
            logger.info("Mini-game rejected: %s", session.reason)
            await self.leave()
        elif isinstance(message, StartGame):
            if session.status != GameStatus.AWAITING_OPPONENT:
                return
            if message.players:
                session.player1_id = message.players[0]
                if len(message.players) > 1:
                    session.player2_id = message.players[1]
            session.game_type = message.game_type
            session.status = GameStatus.IN_PROGRESS
            logger.info("Mini-game %s started between %s", session.game_type, session.players)
        elif isinstance(message, Move):
            if session.status == GameStatus.IN_PROGRESS:
                session.moved.add(message.player_id)
        elif isinstance(message, Result):
            if session.status != GameStatus.IN_PROGRESS:
                return
            session.winner = message.winner
            session.status = GameStatus.RESOLVED
            logger.info("Mini-game resolved; winner=%s outcome=%s", message.winner, self.outcome)
        else:
            return
        await self._emit()

    def as_dict(self) -> Dict[str, Any]:
        session = self.session
        return {
            "status": session.status.value,
            "players": list(session.players),
            "game_type": session.game_type,
            "own_move": session.own_move.value if session.own_move else None,
            "winner": session.winner,
            "outcome": self.outcome,
            "reason": session.reason,
        }

    async def _emit(self) -> None:
        for callback in list(self._callbacks):
            try:
                await callback(self)
            except Exception:  # pragma: no cover
                logger.exception("Mini-game callback failed")


__all__ = ["Choice", "MiniGameSession", "MiniGame"]
