"""
Tests for table replication: wire codec, transports, host authority and remote views
"""

import asyncio
import random
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from xiangqi_mahjong.tiles import Tile
from xiangqi_mahjong.rules import FAST_RULES, STANDARD_RULES
from xiangqi_mahjong.scheduling import ManualScheduler
from xiangqi_mahjong.history import HistoryStore
from xiangqi_mahjong.game import Game, GameMode, GamePhase, WaitingReason, Action, ActionType
from netplay.protocol import (
    Message, MessageType, ProtocolError,
    sync_message, decode_sync, intent_message, action_from_message,
)
from netplay.transport import (
    LocalHub, RoomCodeInUse, ConnectionFailed, MalformedRoomCode,
    validate_room_code, generate_room_code,
)
from netplay.authority import Authority
from netplay.view import RemoteView
from netplay.websocket_transport import RelayServer, WebSocketTransport


def hosted_table(num_players: int = 4, room: str = "ROOM1"):
    scheduler = ManualScheduler()
    game = Game(
        num_players=num_players,
        mode=GameMode.MULTIPLAYER,
        scheduler=scheduler,
        seed=6,
        host_name="Mei",
        first_dealer=0,
    )
    hub = LocalHub()
    host = hub.host(room)
    authority = Authority(game, transport=host, room_label=f"Room {room}")
    return game, scheduler, hub, authority


def joined_view(hub: LocalHub, name: str, room: str = "ROOM1") -> RemoteView:
    view = RemoteView(hub.join(room), name)
    view.join()
    return view


class TestProtocol:
    """Test the wire codec"""

    def test_message_roundtrip(self):
        message = Message(MessageType.ACTION_DISCARD, {"tileId": 3}, sender_seat=2)
        decoded = Message.from_json(message.to_json())
        assert decoded == message
        assert '"senderSeatIndex": 2' in message.to_json()

    def test_malformed_messages(self):
        with pytest.raises(ProtocolError):
            Message.from_json("not json")
        with pytest.raises(ProtocolError):
            Message.from_json('{"type": "BOGUS"}')
        with pytest.raises(ProtocolError):
            Message.from_json("[1, 2]")
        with pytest.raises(ProtocolError):
            Message.from_json('{"type": "SYNC_STATE", "payload": 5}')

    def test_snapshot_roundtrip_mid_round(self):
        """A replayed snapshot reproduces every field"""
        scheduler = ManualScheduler()
        game = Game(scheduler=scheduler, seed=4, human_seats=())
        game.step(Action(ActionType.START, 0))
        scheduler.advance(3.0)
        assert game.phase in (GamePhase.PLAYING, GamePhase.GAME_OVER)

        wire = sync_message(game.state, game.aux).to_json()
        state, aux = decode_sync(Message.from_json(wire))
        assert state == game.state
        assert aux == game.aux

    def test_snapshot_roundtrip_game_over(self):
        scheduler = ManualScheduler()
        game = Game(num_players=3, rules=FAST_RULES, scheduler=scheduler, seed=12, human_seats=())
        game.step(Action(ActionType.START, 0))
        scheduler.run_until_idle()
        assert game.phase == GamePhase.GAME_OVER

        state, aux = decode_sync(Message.from_json(sync_message(game.state, game.aux).to_json()))
        assert state == game.state
        assert state.winning_hand == game.state.winning_hand
        assert aux == game.aux

    def test_bad_snapshot(self):
        with pytest.raises(ProtocolError):
            decode_sync(Message(MessageType.SYNC_STATE, {"state": {}}))

    def test_intents(self):
        game = Game(seed=1)
        tile = Tile.from_label("兵", 5)
        game.players[2].set_hand([tile])

        message = intent_message(Action(ActionType.DISCARD, 2, tile=tile))
        assert message.type == MessageType.ACTION_DISCARD
        assert message.payload == {"tileId": 5}

        action = action_from_message(message, 2, game.state)
        assert action.action_type == ActionType.DISCARD
        assert action.tile is game.players[2].hand[0]

        # Looked up in the sending seat's hand only
        assert action_from_message(message, 1, game.state) is None

        cut = action_from_message(intent_message(Action(ActionType.CUT, 1, index=4)), 1, game.state)
        assert cut.index == 4
        assert action_from_message(Message(MessageType.SYNC_STATE), 1, game.state) is None
        assert action_from_message(Message(MessageType.ACTION_CUT, {"index": "4"}), 1, game.state) is None


class TestRoomCodes:
    """Test the user-facing transport errors"""

    def test_validate(self):
        assert validate_room_code(" ab12c ") == "AB12C"
        for bad in ("AB1", "AB12CD", "AB-2C", ""):
            with pytest.raises(MalformedRoomCode):
                validate_room_code(bad)

    def test_generate(self):
        code = generate_room_code(random.Random(1))
        assert validate_room_code(code) == code

    def test_hub_errors(self):
        hub = LocalHub()
        hub.host("ROOM1")
        with pytest.raises(RoomCodeInUse):
            hub.host("room1")
        with pytest.raises(ConnectionFailed):
            hub.join("NOPE1")
        with pytest.raises(MalformedRoomCode):
            hub.join("x")


class TestLocalReplication:
    """Test host authority and remote views over the in-memory hub"""

    def test_join_handshake(self):
        """The joiner learns its seat before any snapshot"""
        game, scheduler, hub, authority = hosted_table()
        view = RemoteView(hub.join("ROOM1"), "Bo")
        seen = []
        handle = view.handle_message

        def recording(message, peer):
            seen.append(message.type)
            handle(message, peer)

        view.transport.set_on_message(recording)
        view.join()

        assert seen[0] == MessageType.ASSIGN_ID
        assert MessageType.SYNC_STATE in seen[1:]
        assert view.seat == 1
        assert view.state.players[1].name == "Bo"
        assert view.state.players[1].is_human
        assert not view.state.players[1].is_ready
        assert game.players[1].is_human
        assert authority.peer_seats == {"peer-1": 1}

    def test_second_join_takes_next_seat(self):
        game, scheduler, hub, authority = hosted_table()
        first = joined_view(hub, "Bo")
        second = joined_view(hub, "Lin")
        assert (first.seat, second.seat) == (1, 2)
        assert first.state.players[2].name == "Lin"

    def test_room_full(self):
        game, scheduler, hub, authority = hosted_table(num_players=2)
        first = joined_view(hub, "Bo")
        second = joined_view(hub, "Lin")
        assert first.seat == 1
        assert second.seat is None
        assert second.last_error == "room full"

    def test_remote_intents(self):
        game, scheduler, hub, authority = hosted_table()
        view = joined_view(hub, "Bo")
        assert view.toggle_ready()
        assert game.players[1].is_ready
        assert view.state.players[1].is_ready

    def test_unseated_intents_ignored(self):
        game, scheduler, hub, authority = hosted_table()
        stranger = hub.join("ROOM1")
        stranger.send(Message(MessageType.ACTION_TOGGLE_READY))
        assert not game.players[1].is_human
        assert game.players[1].is_ready

    def test_view_cannot_send_before_seated(self):
        game, scheduler, hub, authority = hosted_table()
        view = RemoteView(hub.join("ROOM1"), "Bo")
        assert not view.draw()

    def test_restart_only_from_host(self):
        game, scheduler, hub, authority = hosted_table()
        view = joined_view(hub, "Bo")
        view.toggle_ready()
        assert authority.apply_intent(0, Action(ActionType.START, 0))
        assert view.send_intent(Action(ActionType.RESTART, 1))
        assert game.phase == GamePhase.CUTTING
        assert authority.apply_intent(0, Action(ActionType.RESTART, 0))
        assert game.phase == GamePhase.LOBBY
        assert view.state.phase == GamePhase.LOBBY

    def test_apply_intent_uses_given_seat(self):
        game, scheduler, hub, authority = hosted_table()
        view = joined_view(hub, "Bo")
        view.toggle_ready()
        # Claims to be the host, but arrives as seat 1
        assert not authority.apply_intent(1, Action(ActionType.START, 0))
        assert game.phase == GamePhase.LOBBY

    def test_malformed_frame_dropped(self):
        game, scheduler, hub, authority = hosted_table()
        view = joined_view(hub, "Bo")
        authority.transport.receive("{broken", "peer-1")
        authority.transport.receive('{"type": "NOPE"}', "peer-1")
        assert view.seat == 1

    def test_remote_play(self):
        game, scheduler, hub, authority = hosted_table(num_players=2)
        view = joined_view(hub, "Bo")
        view.toggle_ready()
        authority.apply_intent(0, Action(ActionType.START, 0))
        assert view.legal_actions() == []
        assert authority.apply_intent(0, Action(ActionType.CUT, 0, index=0))
        scheduler.advance(STANDARD_RULES.deal_delay)

        assert view.state.phase == GamePhase.PLAYING
        assert view.state.players[1].hand == game.players[1].hand
        assert view.state.wall == game.state.wall

        host_hand = game.players[0].hand
        assert authority.apply_intent(0, Action(ActionType.DISCARD, 0, tile=host_hand[0]))
        if view.aux.waiting_reason == WaitingReason.HU:
            assert view.pass_()
        assert view.aux.waiting_reason == WaitingReason.TURN_DECISION
        assert ActionType.DRAW in view.legal_actions()

        assert view.draw()
        assert len(game.players[1].hand) == 5
        assert view.state.players[1].hand == game.players[1].hand
        if game.phase == GamePhase.PLAYING and view.aux.waiting_reason == WaitingReason.NONE:
            assert view.discard(view.state.players[1].hand[0])
            assert len(game.players[1].hand) == 4

    def test_subscribers_get_copies(self):
        game = Game(seed=1)
        authority = Authority(game)
        snapshots = []
        authority.subscribe(snapshots.append)
        authority.apply_intent(0, Action(ActionType.START, 0))
        assert snapshots
        assert snapshots[-1].state == game.state
        assert snapshots[-1].state is not game.state

    def test_history_recorded(self, tmp_path):
        scheduler = ManualScheduler()
        game = Game(rules=FAST_RULES, scheduler=scheduler, seed=21, human_seats=())
        store = HistoryStore(tmp_path / "history.json")
        Authority(game, history=store, room_label="Singleplayer")

        wins = 0
        for _ in range(8):
            if game.session_over:
                game.step(Action(ActionType.RESTART, 0))
            game.step(Action(ActionType.START, 0))
            scheduler.run_until_idle()
            if game.state.winner_id is not None:
                wins += 1

        records = store.load()
        assert len(records) == wins
        if records:
            assert records[0].room_label == "Singleplayer"
            assert len(records[0].scores) == 4


async def wait_until(predicate, timeout: float = 3.0) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.02)
    return predicate()


class TestWebSocket:
    """Loopback test over a real relay"""

    def test_loopback(self):
        async def scenario():
            relay = RelayServer("127.0.0.1", 0)
            await relay.start()
            try:
                host = await WebSocketTransport.host(relay.url, "WS123")
                with pytest.raises(RoomCodeInUse):
                    await WebSocketTransport.host(relay.url, "WS123")
                with pytest.raises(ConnectionFailed):
                    await WebSocketTransport.join(relay.url, "NOPE1")

                game = Game(num_players=2, mode=GameMode.MULTIPLAYER, scheduler=ManualScheduler(), seed=3)
                Authority(game, transport=host, room_label="Room WS123")

                guest = await WebSocketTransport.join(relay.url, "WS123")
                view = RemoteView(guest, "Bo")
                view.join()

                assert await wait_until(
                    lambda: view.seat == 1 and view.state is not None
                    and view.state.players[1].name == "Bo"
                )
                assert game.players[1].is_human

                view.toggle_ready()
                assert await wait_until(lambda: game.players[1].is_ready)
                assert await wait_until(lambda: view.state.players[1].is_ready)

                await guest.aclose()
                await host.aclose()
            finally:
                await relay.stop()

        asyncio.run(scenario())

    def test_unreachable_relay(self):
        async def scenario():
            with pytest.raises(ConnectionFailed):
                await WebSocketTransport.join("ws://127.0.0.1:9", "AB12C")

        asyncio.run(scenario())
