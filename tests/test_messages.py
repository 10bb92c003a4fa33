import json

import pytest

from huntclient.errors import MalformedPayload
from huntclient.messages import (
    Move,
    PlayerInteraction,
    Rejected,
    StartGame,
    UnknownEvent,
    encode_move,
    parse_message,
)


def test_known_events_are_tagged():
    assert parse_message('{"event":"start_game","players":[1,2],"game_type":"rps"}') == StartGame(
        players=("1", "2"), game_type="rps"
    )
    assert parse_message('{"event":"move","player_id":"p2","data":{"choice":"rock"}}') == Move(
        player_id="p2", choice="rock"
    )
    assert parse_message('{"event":"rejected","message":"full"}') == Rejected(reason="full")
    assert parse_message(b'{"event":"player_interaction","message":"hi"}') == PlayerInteraction(message="hi")


def test_unknown_event_keeps_fields():
    message = parse_message('{"event":"weather","sky":"clear"}')
    assert message == UnknownEvent(event="weather", fields={"sky": "clear"})


@pytest.mark.parametrize(
    "frame",
    ["", "nope", "[]", '{"event": 5}', '{"event":"move"}', '{"event":"start_game","players":"p1"}'],
)
def test_malformed_frames_raise(frame):
    with pytest.raises(MalformedPayload):
        parse_message(frame)


def test_encode_move_round_trips():
    assert parse_message(json.dumps(encode_move("p1", "paper"))) == Move(player_id="p1", choice="paper")
