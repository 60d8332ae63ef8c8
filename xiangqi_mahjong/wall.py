"""
Xiangqi Mahjong Wall Module

Handles the wall (undealt tiles), cutting, dealing, and drawing.
"""

import random
from typing import List, Optional
from dataclasses import dataclass, field

from .tiles import Tile, generate_deck, shuffle_deck


@dataclass
class Wall:
    """
    Represents the wall.

    The 32 tiles stand in 16 stacks of two. The dealer cuts the wall by
    choosing a stack; dealing and drawing then proceed from that stack.

    Attributes:
        tiles: Remaining tiles, next tile to be dealt/drawn first
        break_index: Stack (0-15) the dealer cut at
    """
    tiles: List[Tile] = field(default_factory=list)
    break_index: int = 0

    NUM_STACKS = 16
    TILES_PER_STACK = 2

    @classmethod
    def shuffled(cls, rng: Optional[random.Random] = None) -> 'Wall':
        """Create a freshly shuffled full wall"""
        return cls(tiles=shuffle_deck(generate_deck(), rng))

    def cut(self, break_index: int) -> None:
        """
        Cut the wall at a stack so dealing starts there.

        Rotates the remaining tiles; order is otherwise preserved.
        """
        if not 0 <= break_index < self.NUM_STACKS:
            raise ValueError(f"Break index must be 0-{self.NUM_STACKS - 1}, got {break_index}")
        self.break_index = break_index
        if self.tiles:
            offset = (break_index * self.TILES_PER_STACK) % len(self.tiles)
            self.tiles = self.tiles[offset:] + self.tiles[:offset]

    def draw(self) -> Optional[Tile]:
        """
        Draw one tile from the wall.
        Returns None if wall is empty.
        """
        if not self.tiles:
            return None
        return self.tiles.pop(0)

    def draw_many(self, count: int) -> List[Tile]:
        """
        Draw multiple tiles from the wall.
        Returns fewer tiles if wall doesn't have enough.
        """
        drawn = []
        for _ in range(count):
            tile = self.draw()
            if tile is None:
                break
            drawn.append(tile)
        return drawn

    def deal_hands(self, num_players: int, dealer: int, hand_size: int = 4) -> List[List[Tile]]:
        """
        Deal initial hands.

        Each seat, in order starting from the dealer, receives ``hand_size``
        tiles; then the dealer receives one extra tile if any remain.

        Returns list of hands indexed by seat.
        """
        hands: List[List[Tile]] = [[] for _ in range(num_players)]

        for i in range(num_players):
            seat = (dealer + i) % num_players
            if len(self.tiles) >= hand_size:
                hands[seat].extend(self.draw_many(hand_size))

        extra = self.draw()
        if extra is not None:
            hands[dealer].append(extra)

        return hands

    @property
    def remaining(self) -> int:
        """Number of tiles remaining in the wall"""
        return len(self.tiles)

    @property
    def is_empty(self) -> bool:
        return len(self.tiles) == 0

    def copy(self) -> 'Wall':
        return Wall(tiles=list(self.tiles), break_index=self.break_index)

    def __len__(self) -> int:
        return len(self.tiles)

    def __repr__(self) -> str:
        return f"Wall({self.remaining} tiles remaining, break={self.break_index})"
