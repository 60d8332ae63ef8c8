"""
Xiangqi Mahjong Tiles System

Defines the 32 tiles of a single Chinese-chess set used as a tile deck:
- per color (Red / Black): 1 General, 2 Advisors, 2 Elephants,
  2 Chariots, 2 Horses, 2 Cannons, 5 Soldiers = 16 tiles
Total: 32 tiles
"""

import random
from enum import IntEnum
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import numpy as np


class Color(IntEnum):
    """Tile colors. Red sorts before Black in a displayed hand."""
    RED = 0
    BLACK = 1


class PieceType(IntEnum):
    """Piece families, valued by rank (General highest)."""
    SOLDIER = 1   # 兵 / 卒
    CANNON = 2    # 炮 / 包
    HORSE = 3     # 傌 / 馬
    CHARIOT = 4   # 俥 / 車
    ELEPHANT = 5  # 相 / 象
    ADVISOR = 6   # 仕 / 士
    GENERAL = 7   # 帥 / 將


# General + Advisor + Elephant; Generals of either color are interchangeable
PALACE_GROUP = (PieceType.GENERAL, PieceType.ADVISOR, PieceType.ELEPHANT)
# Chariot + Horse + Cannon; strict color
OFFICER_GROUP = (PieceType.CHARIOT, PieceType.HORSE, PieceType.CANNON)

LABELS: Dict[Color, Dict[PieceType, str]] = {
    Color.RED: {
        PieceType.GENERAL: "帥",
        PieceType.ADVISOR: "仕",
        PieceType.ELEPHANT: "相",
        PieceType.CHARIOT: "俥",
        PieceType.HORSE: "傌",
        PieceType.CANNON: "炮",
        PieceType.SOLDIER: "兵",
    },
    Color.BLACK: {
        PieceType.GENERAL: "將",
        PieceType.ADVISOR: "士",
        PieceType.ELEPHANT: "象",
        PieceType.CHARIOT: "車",
        PieceType.HORSE: "馬",
        PieceType.CANNON: "包",
        PieceType.SOLDIER: "卒",
    },
}

_LABEL_LOOKUP = {
    label: (piece, color)
    for color, pieces in LABELS.items()
    for piece, label in pieces.items()
}

# Copies of each piece in one color of a single set
SINGLE_SET_COUNTS: Dict[PieceType, int] = {
    PieceType.GENERAL: 1,
    PieceType.ADVISOR: 2,
    PieceType.ELEPHANT: 2,
    PieceType.CHARIOT: 2,
    PieceType.HORSE: 2,
    PieceType.CANNON: 2,
    PieceType.SOLDIER: 5,
}

NUM_TILES = 32


@dataclass(frozen=True)
class Tile:
    """
    A single tile.

    Attributes:
        id: Globally unique instance id (0-31 in a generated deck)
        piece: Piece family
        color: Red or Black

    Ids are unique within a deck, so equal tiles are the same tile; use
    ``same_kind`` to compare by (piece, color).
    """
    id: int
    piece: PieceType
    color: Color

    @property
    def label(self) -> str:
        return LABELS[self.color][self.piece]

    @property
    def value(self) -> int:
        return int(self.piece)

    @property
    def kind(self) -> tuple:
        return (self.piece, self.color)

    @property
    def is_general(self) -> bool:
        return self.piece == PieceType.GENERAL

    @property
    def is_soldier(self) -> bool:
        return self.piece == PieceType.SOLDIER

    @property
    def in_palace_group(self) -> bool:
        return self.piece in PALACE_GROUP

    @property
    def in_officer_group(self) -> bool:
        return self.piece in OFFICER_GROUP

    def same_kind(self, other: 'Tile') -> bool:
        return self.piece == other.piece and self.color == other.color

    def sort_key(self) -> tuple:
        """Red first, then higher-ranked pieces first."""
        return (int(self.color), -self.value, self.id)

    def __repr__(self) -> str:
        return f"Tile({self.id}, {self.color.name}, {self.piece.name})"

    def __str__(self) -> str:
        return self.label

    @classmethod
    def from_label(cls, label: str, tile_id: int = 0) -> 'Tile':
        """
        Create a tile from its character, e.g. "帥" or "卒".

        Args:
            label: Single traditional character
            tile_id: Instance id to assign
        """
        label = label.strip()
        if label not in _LABEL_LOOKUP:
            raise ValueError(f"Cannot parse tile label: {label}")
        piece, color = _LABEL_LOOKUP[label]
        return cls(tile_id, piece, color)


def generate_deck() -> List[Tile]:
    """Create the 32 tiles of one set, ids 0-31, Red then Black."""
    deck = []
    tile_id = 0
    for color in (Color.RED, Color.BLACK):
        for piece, count in SINGLE_SET_COUNTS.items():
            for _ in range(count):
                deck.append(Tile(tile_id, piece, color))
                tile_id += 1
    return deck


def shuffle_deck(deck: List[Tile], rng: Optional[random.Random] = None) -> List[Tile]:
    """Return a shuffled copy; composition never changes."""
    shuffled = list(deck)
    (rng or random).shuffle(shuffled)
    return shuffled


def sort_hand(tiles: Iterable[Tile]) -> List[Tile]:
    return sorted(tiles, key=Tile.sort_key)


def tiles_from_labels(text: str, start_id: int = 100) -> List[Tile]:
    """
    Build tiles from a space-separated label string.

    Ids are assigned sequentially from ``start_id`` so every tile is a
    distinct instance. Handy for tests and benchmark hands.
    """
    return [
        Tile.from_label(label, start_id + i)
        for i, label in enumerate(text.split())
    ]


def to_count_array(tiles: Iterable[Tile]) -> np.ndarray:
    """
    Count tiles by kind.

    Returns a 2x8 array indexed by [color, piece value]; column 0 is unused.
    """
    counts = np.zeros((2, 8), dtype=np.int8)
    for tile in tiles:
        counts[tile.color, tile.piece] += 1
    return counts


def format_tiles(tiles: Iterable[Tile]) -> str:
    return " ".join(t.label for t in tiles)
