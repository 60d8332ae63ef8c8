"""
Xiangqi Mahjong Player Module

Handles seat identity, hand and discard pile, and chip balance.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .tiles import Tile, sort_hand, format_tiles


@dataclass
class Player:
    """
    Represents one seat at the table.

    Attributes:
        index: Stable seat number (0..N-1)
        name: Display name
        is_human: Controlled by a person (local or remote) rather than a bot
        is_ready: Lobby readiness
        hand: Concealed tiles, kept in display order
        discards: Tiles this seat has discarded this round
        chips: Chip balance; the session ends once any seat reaches zero
    """
    index: int
    name: str = ""
    is_human: bool = False
    is_ready: bool = False
    hand: List[Tile] = field(default_factory=list)
    discards: List[Tile] = field(default_factory=list)
    chips: int = 100

    def add_tile(self, tile: Tile) -> None:
        """Add a tile to the hand, keeping it sorted"""
        self.hand = sort_hand(self.hand + [tile])

    def set_hand(self, tiles: List[Tile]) -> None:
        self.hand = sort_hand(tiles)

    def find_tile(self, tile_id: int) -> Optional[Tile]:
        for t in self.hand:
            if t.id == tile_id:
                return t
        return None

    def remove_tile(self, tile: Tile) -> bool:
        """
        Remove a tile instance from the hand.
        Returns True if removed, False if not held.
        """
        for i, t in enumerate(self.hand):
            if t.id == tile.id:
                self.hand.pop(i)
                return True
        return False

    def reset_round(self) -> None:
        self.hand = []
        self.discards = []

    @property
    def num_tiles_in_hand(self) -> int:
        return len(self.hand)

    def copy(self) -> 'Player':
        return Player(
            index=self.index,
            name=self.name,
            is_human=self.is_human,
            is_ready=self.is_ready,
            hand=list(self.hand),
            discards=list(self.discards),
            chips=self.chips,
        )

    def __repr__(self) -> str:
        return f"Player({self.index}, {self.name!r}, hand={len(self.hand)}, chips={self.chips})"

    def __str__(self) -> str:
        kind = "human" if self.is_human else "bot"
        return f"{self.name} ({kind}, ${self.chips}): Hand[{format_tiles(self.hand)}]"
