import asyncio
from types import SimpleNamespace

from huntclient.backend.ws_client import RealtimeChannel
from huntclient.messages import Result, StartGame
from huntclient.state import ChannelState


def test_concurrent_connect_opens_single_socket(settings, player_auth, fake_connector):
    async def scenario():
        channel = RealtimeChannel(settings, player_auth, connector=fake_connector)
        await asyncio.gather(channel.connect(), channel.connect())
        assert fake_connector.attempts == 1
        assert channel.state == ChannelState.CONNECTED
        assert channel.address == "ws://backend.test/ws/player/p1"

        await channel.connect()
        assert fake_connector.attempts == 1
        await channel.disconnect()

    asyncio.run(scenario())


def test_connect_without_identity_is_a_silent_noop(settings, fake_connector):
    async def scenario():
        channel = RealtimeChannel(settings, SimpleNamespace(player_id=None), connector=fake_connector)
        await channel.connect()
        assert fake_connector.attempts == 0
        assert channel.state == ChannelState.DISCONNECTED
        assert not channel.reconnect_pending

    asyncio.run(scenario())


def test_connect_to_peer_replaces_own_connection(settings, player_auth, fake_connector):
    async def scenario():
        channel = RealtimeChannel(settings, player_auth, connector=fake_connector)
        await channel.connect()
        await channel.connect("p2")
        own, guest = fake_connector.connections
        assert own.closed
        assert guest.uri == "ws://backend.test/ws/player/p2?player2_id=p1"
        assert channel.state == ChannelState.CONNECTED
        await channel.disconnect()
        assert guest.closed

    asyncio.run(scenario())


def test_listeners_get_parsed_messages_in_order(settings, player_auth, fake_connector, settle):
    async def scenario():
        channel = RealtimeChannel(settings, player_auth, connector=fake_connector)
        first: list = []
        second: list = []

        async def broken(_message):
            raise RuntimeError("listener bug")

        async def record_first(message):
            first.append(message)

        async def record_second(message):
            second.append(message)

        channel.add_listener(broken)
        channel.add_listener(record_first)
        channel.add_listener(record_second)
        await channel.connect()
        conn = fake_connector.connections[0]
        conn.feed('{"event":"start_game","players":["p1","p2"],"game_type":"rps"}')
        conn.feed("not json")
        conn.feed('{"no_event": true}')
        conn.feed('{"event":"result","winner":"p2"}')
        await settle()

        assert first == second
        assert first == [StartGame(players=("p1", "p2"), game_type="rps"), Result(winner="p2")]

        channel.remove_listener(record_second)
        conn.feed('{"event":"rejected"}')
        await settle()
        assert len(first) == 3
        assert len(second) == 2
        await channel.disconnect()

    asyncio.run(scenario())


def test_send_drops_when_not_connected(settings, player_auth, fake_connector):
    async def scenario():
        channel = RealtimeChannel(settings, player_auth, connector=fake_connector)
        assert await channel.send({"event": "move"}) is False

        await channel.connect()
        assert await channel.send({"event": "move", "player_id": "p1"}) is True
        assert fake_connector.connections[0].sent == [{"event": "move", "player_id": "p1"}]
        await channel.disconnect()

    asyncio.run(scenario())


def test_unexpected_close_reconnects_once_after_delay(settings, player_auth, fake_connector, settle):
    async def scenario():
        channel = RealtimeChannel(settings, player_auth, connector=fake_connector)
        await channel.connect("p2")
        fake_connector.connections[0].drop()
        await settle(0.01)

        assert channel.state == ChannelState.DISCONNECTED
        assert channel.reconnect_pending
        assert fake_connector.attempts == 1

        await settle(0.15)
        assert fake_connector.attempts == 2
        assert channel.state == ChannelState.CONNECTED
        assert fake_connector.connections[1].uri == "ws://backend.test/ws/player/p2?player2_id=p1"
        await channel.disconnect()

    asyncio.run(scenario())


def test_disconnect_cancels_pending_reconnect(settings, player_auth, fake_connector, settle):
    async def scenario():
        channel = RealtimeChannel(settings, player_auth, connector=fake_connector)
        await channel.connect()
        fake_connector.connections[0].drop()
        await settle(0.01)
        assert channel.reconnect_pending

        await channel.disconnect()
        assert not channel.reconnect_pending
        await settle(0.15)
        assert fake_connector.attempts == 1
        assert channel.state == ChannelState.DISCONNECTED

    asyncio.run(scenario())


def test_explicit_disconnect_does_not_reconnect(settings, player_auth, fake_connector, settle):
    async def scenario():
        channel = RealtimeChannel(settings, player_auth, connector=fake_connector)
        await channel.connect()
        await channel.disconnect()
        await channel.disconnect()
        await settle(0.15)
        assert fake_connector.attempts == 1
        assert fake_connector.connections[0].closed
        assert not channel.reconnect_pending

    asyncio.run(scenario())


def test_failed_connect_schedules_retry(settings, player_auth, fake_connector, settle):
    async def scenario():
        fake_connector.failures = 1
        channel = RealtimeChannel(settings, player_auth, connector=fake_connector)
        await channel.connect()
        assert channel.state == ChannelState.DISCONNECTED
        assert channel.reconnect_pending

        await settle(0.15)
        assert fake_connector.attempts == 2
        assert channel.state == ChannelState.CONNECTED
        await channel.disconnect()

    asyncio.run(scenario())
