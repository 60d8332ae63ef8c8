"""
Xiangqi Mahjong Game Engine
A five-tile mahjong variant played with the 32 Chinese chess pieces
"""

from .tiles import Tile, Color, PieceType, generate_deck
from .player import Player
from .wall import Wall
from .rules import RuleSet, STANDARD_RULES, FAST_RULES, get_rules
from .scoring import Settlement, SettlementKind
from .game import (
    Game,
    GameMode,
    GamePhase,
    GameState,
    AuxState,
    WaitingReason,
    Action,
    ActionType,
    ActionResult,
    Cue,
)

__version__ = "0.1.0"
__all__ = [
    "Tile",
    "Color",
    "PieceType",
    "generate_deck",
    "Player",
    "Wall",
    "RuleSet",
    "STANDARD_RULES",
    "FAST_RULES",
    "get_rules",
    "Settlement",
    "SettlementKind",
    "Game",
    "GameMode",
    "GamePhase",
    "GameState",
    "AuxState",
    "WaitingReason",
    "Action",
    "ActionType",
    "ActionResult",
    "Cue",
]
