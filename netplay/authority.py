"""
Host authority.

Wraps the one writable Game of a table. Local and remote intents come in
through ``apply_intent``; every state change goes out as a full snapshot to
local subscribers and, when a transport is attached, to every remote seat.
"""

import logging
from typing import Callable, Dict, List, Optional

from xiangqi_mahjong.game import Game, Action, ActionResult
from xiangqi_mahjong.scoring import Settlement
from xiangqi_mahjong.tiles import format_tiles
from xiangqi_mahjong.history import HistoryStore, MatchRecord

from .protocol import Message, MessageType, action_from_message, sync_message
from .transport import Transport
from .view import Snapshot

logger = logging.getLogger(__name__)


class Authority:
    """
    The only participant allowed to mutate a table.

    Args:
        game: Engine to drive
        transport: Host-side transport, None for a single-machine table
        history: Where to record scored rounds, None to skip
        room_label: Label stored with history records
    """

    def __init__(
        self,
        game: Game,
        transport: Optional[Transport] = None,
        history: Optional[HistoryStore] = None,
        room_label: str = "Singleplayer",
    ):
        self.game = game
        self.transport = transport
        self.history = history
        self.room_label = room_label
        self.peer_seats: Dict[str, int] = {}
        self._subscribers: List[Callable[[Snapshot], None]] = []

        game.add_listener(self._on_change)
        game.add_round_listener(self._on_round)
        if transport is not None:
            transport.set_on_message(self.handle_message)

    def subscribe(self, callback: Callable[[Snapshot], None]) -> None:
        self._subscribers.append(callback)

    def snapshot(self) -> Snapshot:
        return Snapshot(self.game.state.copy(), self.game.aux.copy())

    def apply_intent(self, seat: int, action: Action) -> ActionResult:
        """Run an intent as ``seat``, whatever seat the action names."""
        if action.player_idx != seat:
            action = Action(action.action_type, seat, tile=action.tile, index=action.index)
        return self.game.step(action)

    def broadcast(self) -> None:
        if self.transport is not None:
            self.transport.send(sync_message(self.game.state, self.game.aux))

    def handle_message(self, message: Message, peer: str) -> None:
        if message.type == MessageType.REQUEST_JOIN:
            self.handle_join(peer, str(message.payload.get("name", "")).strip())
            return

        seat = self.peer_seats.get(peer)
        if seat is None:
            logger.debug(f"Ignoring {message.type.value} from unseated peer {peer}")
            return

        action = action_from_message(message, seat, self.game.state)
        if action is None:
            logger.debug(f"Ignoring {message.type.value} from seat {seat}")
            return
        result = self.apply_intent(seat, action)
        if not result:
            logger.debug(f"Seat {seat} intent rejected: {result.reason}")

    def handle_join(self, peer: str, name: str) -> None:
        if peer in self.peer_seats:
            self._assign(peer, self.peer_seats[peer])
            self.broadcast()
            return

        seat = self.game.find_open_seat()
        if seat is None:
            logger.info(f"Join from {peer} refused: no open seat")
            self.transport.send(Message(MessageType.ERROR, {"reason": "room full"}), target=peer)
            return

        self.peer_seats[peer] = seat
        # ID first so the joiner knows its seat before the next snapshot
        self._assign(peer, seat)
        self.game.seat_human(seat, name)

    def _assign(self, peer: str, seat: int) -> None:
        self.transport.send(Message(MessageType.ASSIGN_ID, {"seat": seat}), target=peer)

    def _on_change(self, game: Game) -> None:
        if self._subscribers:
            snapshot = self.snapshot()
            for callback in self._subscribers:
                callback(snapshot)
        self.broadcast()

    def _on_round(self, settlement: Settlement, game: Game) -> None:
        if self.history is None or settlement.winner is None:
            return
        players = game.state.players
        record = MatchRecord.now(
            room_label=self.room_label,
            winner_name=players[settlement.winner].name,
            winning_hand_labels=format_tiles(game.state.winning_hand or []),
            loser_name=players[settlement.loser].name if settlement.loser is not None else None,
            scores=[{"name": p.name, "chips": p.chips} for p in players],
        )
        self.history.record(record)
