"""Realtime channel message envelope, parsed into one variant per event."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from .errors import MalformedPayload


@dataclass(frozen=True)
class StartGame:
    players: Tuple[str, ...]
    game_type: Optional[str] = None
    event: str = "start_game"


@dataclass(frozen=True)
class Move:
    player_id: str
    choice: Optional[str] = None
    event: str = "move"


@dataclass(frozen=True)
class Result:
    winner: Optional[str]
    event: str = "result"


@dataclass(frozen=True)
class Rejected:
    reason: Optional[str] = None
    event: str = "rejected"


@dataclass(frozen=True)
class PlayerInteraction:
    message: Optional[str] = None
    peer_id: Optional[str] = None
    event: str = "player_interaction"


@dataclass(frozen=True)
class UnknownEvent:
    event: str
    fields: Dict[str, Any] = field(default_factory=dict)


ChannelMessage = Union[StartGame, Move, Result, Rejected, PlayerInteraction, UnknownEvent]


def _opt_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def parse_message(raw: Union[str, bytes]) -> ChannelMessage:
    """Decode a UTF-8 JSON frame into its event variant.

    Raises:
        MalformedPayload: if the frame is not a JSON object with a string ``event``.
    """
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError) as exc:
        raise MalformedPayload("frame is not valid JSON") from exc
    if not isinstance(data, dict):
        raise MalformedPayload("frame is not a JSON object")
    event = data.get("event")
    if not isinstance(event, str):
        raise MalformedPayload("frame has no event field")

    if event == "start_game":
        players = data.get("players") or []
        if not isinstance(players, list):
            raise MalformedPayload("start_game players must be a list")
        return StartGame(players=tuple(str(p) for p in players), game_type=_opt_str(data.get("game_type")))
    if event == "move":
        player_id = data.get("player_id")
        if player_id is None:
            raise MalformedPayload("move without player_id")
        move_data = data.get("data") if isinstance(data.get("data"), dict) else {}
        return Move(player_id=str(player_id), choice=_opt_str(move_data.get("choice")))
    if event == "result":
        return Result(winner=_opt_str(data.get("winner")))
    if event == "rejected":
        return Rejected(reason=_opt_str(data.get("reason") or data.get("message")))
    if event == "player_interaction":
        return PlayerInteraction(message=_opt_str(data.get("message")), peer_id=_opt_str(data.get("peer_id")))
    fields = {key: value for key, value in data.items() if key != "event"}
    return UnknownEvent(event=event, fields=fields)


def encode_move(player_id: str, choice: str) -> Dict[str, Any]:
    return {"event": "move", "player_id": player_id, "data": {"choice": choice}}


__all__ = [
    "StartGame",
    "Move",
    "Result",
    "Rejected",
    "PlayerInteraction",
    "UnknownEvent",
    "ChannelMessage",
    "parse_message",
    "encode_move",
]
