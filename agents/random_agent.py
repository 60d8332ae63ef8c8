"""
Random Agent for Xiangqi Mahjong

A simple baseline: wins when it can, eats on a coin flip, and discards a
random tile.
"""

import random
from typing import Optional, Sequence

from xiangqi_mahjong.tiles import Tile
from xiangqi_mahjong.hand import is_winning_hand
from xiangqi_mahjong.chi import can_eat


class RandomAgent:
    """
    Random agent that discards uniformly from its hand.

    This serves as a baseline for comparison with the heuristic agent.
    """

    def __init__(self, eat_probability: float = 0.5, rng: Optional[random.Random] = None):
        self.eat_probability = eat_probability
        self.rng = rng or random.Random()

    def wants_to_eat(self, hand: Sequence[Tile], discard: Optional[Tile]) -> bool:
        if discard is None or not can_eat(hand, discard):
            return False
        return self.rng.random() < self.eat_probability

    def wants_to_win(self, hand: Sequence[Tile]) -> bool:
        return is_winning_hand(hand)

    def choose_discard(self, hand: Sequence[Tile]) -> Tile:
        return self.rng.choice(list(hand))

    def __repr__(self) -> str:
        return "RandomAgent()"
