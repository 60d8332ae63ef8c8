"""
Wire protocol for table replication.

Every message is a JSON object:

    {"type": "<kind>", "payload": {...}, "senderSeatIndex": 2}

Intents travel from remote seats to the host; the host answers with
ASSIGN_ID (once, to a joining peer) and SYNC_STATE (full snapshot, to
everyone, after every change).

Tile encoding: {"id": 7, "piece": "CHARIOT", "color": "RED"}
"""

import json
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from xiangqi_mahjong.tiles import Tile, PieceType, Color
from xiangqi_mahjong.wall import Wall
from xiangqi_mahjong.player import Player
from xiangqi_mahjong.game import (
    GameState,
    AuxState,
    GameMode,
    GamePhase,
    WaitingReason,
    Action,
    ActionType,
)

logger = logging.getLogger(__name__)


class ProtocolError(ValueError):
    """Raised for frames that cannot be decoded."""


class MessageType(str, Enum):
    REQUEST_JOIN = "REQUEST_JOIN"
    ASSIGN_ID = "ASSIGN_ID"
    SYNC_STATE = "SYNC_STATE"
    ACTION_TOGGLE_READY = "ACTION_TOGGLE_READY"
    ACTION_CUT = "ACTION_CUT"
    ACTION_DRAW = "ACTION_DRAW"
    ACTION_EAT = "ACTION_EAT"
    ACTION_DISCARD = "ACTION_DISCARD"
    ACTION_WIN = "ACTION_WIN"
    ACTION_PASS = "ACTION_PASS"
    ACTION_START = "ACTION_START"
    RESTART = "RESTART"
    ERROR = "ERROR"


INTENT_TYPES = {
    MessageType.ACTION_TOGGLE_READY: ActionType.TOGGLE_READY,
    MessageType.ACTION_CUT: ActionType.CUT,
    MessageType.ACTION_DRAW: ActionType.DRAW,
    MessageType.ACTION_EAT: ActionType.EAT,
    MessageType.ACTION_DISCARD: ActionType.DISCARD,
    MessageType.ACTION_WIN: ActionType.WIN,
    MessageType.ACTION_PASS: ActionType.PASS,
    MessageType.ACTION_START: ActionType.START,
    MessageType.RESTART: ActionType.RESTART,
}
_MESSAGE_FOR_ACTION = {action: kind for kind, action in INTENT_TYPES.items()}


@dataclass
class Message:
    type: MessageType
    payload: Dict[str, Any] = field(default_factory=dict)
    sender_seat: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"type": self.type.value, "payload": self.payload}
        if self.sender_seat is not None:
            data["senderSeatIndex"] = self.sender_seat
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Any) -> 'Message':
        if not isinstance(data, dict):
            raise ProtocolError(f"Message must be an object, got {type(data).__name__}")
        try:
            kind = MessageType(data["type"])
        except (KeyError, ValueError) as e:
            raise ProtocolError(f"Unknown message type: {data.get('type')!r}") from e
        payload = data.get("payload") or {}
        if not isinstance(payload, dict):
            raise ProtocolError("Payload must be an object")
        seat = data.get("senderSeatIndex")
        return cls(type=kind, payload=payload, sender_seat=seat if isinstance(seat, int) else None)

    @classmethod
    def from_json(cls, raw: str) -> 'Message':
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ProtocolError(f"Invalid JSON: {e}") from e
        return cls.from_dict(data)


# ----------------------------------------------------------------------
# State codec
# ----------------------------------------------------------------------

def tile_to_dict(tile: Optional[Tile]) -> Optional[Dict[str, Any]]:
    if tile is None:
        return None
    return {"id": tile.id, "piece": tile.piece.name, "color": tile.color.name}


def tile_from_dict(data: Optional[Dict[str, Any]]) -> Optional[Tile]:
    if data is None:
        return None
    return Tile(int(data["id"]), PieceType[data["piece"]], Color[data["color"]])


def _tiles_to_list(tiles: Optional[List[Tile]]) -> Optional[List[Dict[str, Any]]]:
    if tiles is None:
        return None
    return [tile_to_dict(t) for t in tiles]


def _tiles_from_list(data: Optional[List[Dict[str, Any]]]) -> Optional[List[Tile]]:
    if data is None:
        return None
    return [tile_from_dict(t) for t in data]


def player_to_dict(player: Player) -> Dict[str, Any]:
    return {
        "index": player.index,
        "name": player.name,
        "isHuman": player.is_human,
        "isReady": player.is_ready,
        "hand": _tiles_to_list(player.hand),
        "discards": _tiles_to_list(player.discards),
        "chips": player.chips,
    }


def player_from_dict(data: Dict[str, Any]) -> Player:
    return Player(
        index=int(data["index"]),
        name=data["name"],
        is_human=bool(data["isHuman"]),
        is_ready=bool(data["isReady"]),
        hand=_tiles_from_list(data["hand"]),
        discards=_tiles_from_list(data["discards"]),
        chips=int(data["chips"]),
    )


def state_to_dict(state: GameState) -> Dict[str, Any]:
    return {
        "mode": state.mode.name,
        "phase": state.phase.name,
        "turnIndex": state.turn_index,
        "dealerIndex": state.dealer_index,
        "wall": {
            "tiles": _tiles_to_list(state.wall.tiles),
            "breakIndex": state.wall.break_index,
        },
        "players": [player_to_dict(p) for p in state.players],
        "lastDiscard": tile_to_dict(state.last_discard),
        "winnerId": state.winner_id,
        "loserId": state.loser_id,
        "winningHand": _tiles_to_list(state.winning_hand),
        "logs": list(state.logs),
    }


def state_from_dict(data: Dict[str, Any]) -> GameState:
    wall = data["wall"]
    return GameState(
        mode=GameMode[data["mode"]],
        phase=GamePhase[data["phase"]],
        turn_index=int(data["turnIndex"]),
        dealer_index=int(data["dealerIndex"]),
        wall=Wall(tiles=_tiles_from_list(wall["tiles"]), break_index=int(wall["breakIndex"])),
        players=[player_from_dict(p) for p in data["players"]],
        last_discard=tile_from_dict(data["lastDiscard"]),
        winner_id=data["winnerId"],
        loser_id=data["loserId"],
        winning_hand=_tiles_from_list(data["winningHand"]),
        logs=list(data["logs"]),
    )


def aux_to_dict(aux: AuxState) -> Dict[str, Any]:
    return {
        "isProcessing": aux.is_processing,
        "waitingReason": aux.waiting_reason.name,
        "winningTile": tile_to_dict(aux.winning_tile),
        "decisionTimer": aux.decision_timer,
        "huSeat": aux.hu_seat,
    }


def aux_from_dict(data: Dict[str, Any]) -> AuxState:
    return AuxState(
        is_processing=bool(data["isProcessing"]),
        waiting_reason=WaitingReason[data["waitingReason"]],
        winning_tile=tile_from_dict(data["winningTile"]),
        decision_timer=int(data["decisionTimer"]),
        hu_seat=data.get("huSeat"),
    )


def sync_message(state: GameState, aux: AuxState) -> Message:
    return Message(
        MessageType.SYNC_STATE,
        {"state": state_to_dict(state), "aux": aux_to_dict(aux)},
    )


def decode_sync(message: Message) -> tuple:
    """(GameState, AuxState) carried by a SYNC_STATE message."""
    try:
        return state_from_dict(message.payload["state"]), aux_from_dict(message.payload["aux"])
    except (KeyError, TypeError, ValueError) as e:
        raise ProtocolError(f"Bad snapshot: {e}") from e


# ----------------------------------------------------------------------
# Intents
# ----------------------------------------------------------------------

def intent_message(action: Action) -> Message:
    """Encode a local seat's action for the host."""
    payload: Dict[str, Any] = {}
    if action.action_type == ActionType.DISCARD and action.tile is not None:
        payload["tileId"] = action.tile.id
    elif action.action_type == ActionType.CUT and action.index is not None:
        payload["index"] = action.index
    return Message(_MESSAGE_FOR_ACTION[action.action_type], payload, sender_seat=action.player_idx)


def action_from_message(message: Message, seat: int, state: GameState) -> Optional[Action]:
    """
    Decode an intent, attributing it to ``seat``.

    A discarded tile is looked up by id in that seat's hand on the host.
    Returns None for messages that are not intents or cannot be decoded.
    """
    action_type = INTENT_TYPES.get(message.type)
    if action_type is None or not 0 <= seat < len(state.players):
        return None

    if action_type == ActionType.DISCARD:
        tile_id = message.payload.get("tileId")
        if not isinstance(tile_id, int):
            logger.warning(f"Discard from seat {seat} without a tile id")
            return None
        tile = state.players[seat].find_tile(tile_id)
        if tile is None:
            logger.debug(f"Seat {seat} discarded tile {tile_id} it does not hold")
            return None
        return Action(action_type, seat, tile=tile)

    if action_type == ActionType.CUT:
        index = message.payload.get("index")
        if not isinstance(index, int):
            logger.warning(f"Cut from seat {seat} without an index")
            return None
        return Action(action_type, seat, index=index)

    return Action(action_type, seat)
