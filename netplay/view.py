"""
Read-only mirror of a hosted table.

A remote seat never changes its copy of the game: it sends intents and
replaces its whole snapshot each time the host broadcasts one.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from xiangqi_mahjong.tiles import Tile
from xiangqi_mahjong.game import (
    GameState,
    AuxState,
    Action,
    ActionType,
    available_actions,
)

from .protocol import Message, MessageType, ProtocolError, decode_sync, intent_message
from .transport import Transport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """A replicated (state, aux) pair. Replaced wholesale, never patched."""
    state: GameState
    aux: AuxState


class RemoteView:
    """
    A non-host participant.

    Usage:
        view = RemoteView(transport, name="Mei")
        view.join()
        ...
        view.draw()
    """

    def __init__(self, transport: Transport, name: str = "Player"):
        self.transport = transport
        self.name = name
        self.seat: Optional[int] = None
        self.snapshot: Optional[Snapshot] = None
        self.last_error: Optional[str] = None
        self._listeners: List[Callable[[Snapshot], None]] = []
        transport.set_on_message(self.handle_message)

    def subscribe(self, callback: Callable[[Snapshot], None]) -> None:
        self._listeners.append(callback)

    def join(self) -> None:
        self.transport.send(Message(MessageType.REQUEST_JOIN, {"name": self.name}))

    def handle_message(self, message: Message, peer: str) -> None:
        if message.type == MessageType.ASSIGN_ID:
            seat = message.payload.get("seat")
            if isinstance(seat, int):
                self.seat = seat
                logger.info(f"{self.name} seated at {seat}")
        elif message.type == MessageType.SYNC_STATE:
            try:
                state, aux = decode_sync(message)
            except ProtocolError as e:
                logger.warning(f"Ignoring snapshot: {e}")
                return
            self.snapshot = Snapshot(state, aux)
            for callback in self._listeners:
                callback(self.snapshot)
        elif message.type == MessageType.ERROR:
            self.last_error = message.payload.get("reason", "unknown error")
            logger.warning(f"Host error: {self.last_error}")
        else:
            logger.debug(f"Ignoring {message.type.value} from {peer}")

    @property
    def state(self) -> Optional[GameState]:
        return self.snapshot.state if self.snapshot else None

    @property
    def aux(self) -> Optional[AuxState]:
        return self.snapshot.aux if self.snapshot else None

    def legal_actions(self) -> List[ActionType]:
        if self.snapshot is None or self.seat is None:
            return []
        return available_actions(self.snapshot.state, self.snapshot.aux, self.seat)

    def send_intent(self, action: Action) -> bool:
        """Send an intent for this seat. False if not seated yet."""
        if self.seat is None:
            logger.debug("Not seated; intent dropped")
            return False
        if action.player_idx != self.seat:
            action = Action(action.action_type, self.seat, tile=action.tile, index=action.index)
        self.transport.send(intent_message(action))
        return True

    def toggle_ready(self) -> bool:
        return self.send_intent(Action(ActionType.TOGGLE_READY, self.seat))

    def cut(self, index: int) -> bool:
        return self.send_intent(Action(ActionType.CUT, self.seat, index=index))

    def draw(self) -> bool:
        return self.send_intent(Action(ActionType.DRAW, self.seat))

    def eat(self) -> bool:
        return self.send_intent(Action(ActionType.EAT, self.seat))

    def discard(self, tile: Tile) -> bool:
        return self.send_intent(Action(ActionType.DISCARD, self.seat, tile=tile))

    def win(self) -> bool:
        return self.send_intent(Action(ActionType.WIN, self.seat))

    def pass_(self) -> bool:
        return self.send_intent(Action(ActionType.PASS, self.seat))
