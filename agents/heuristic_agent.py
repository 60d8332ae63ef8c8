"""
Heuristic Agent for Xiangqi Mahjong

The default policy for automated seats:
- always declares a win when the hand allows it
- on its turn decision, eats the last discard with a fixed probability
  when some hand pair completes a set with it, otherwise draws
- discards the tile the Discard Advisor scores lowest
"""

import random
from typing import Optional, Sequence

from xiangqi_mahjong.tiles import Tile
from xiangqi_mahjong.hand import is_winning_hand
from xiangqi_mahjong.chi import can_eat
from xiangqi_mahjong.advisor import best_discard


class HeuristicAgent:
    """
    Greedy one-ply agent.

    Does not search for a guaranteed winning line; it only keeps the tiles
    with the most set potential.
    """

    def __init__(self, eat_probability: float = 0.5, rng: Optional[random.Random] = None):
        """
        Initialize heuristic agent.

        Args:
            eat_probability: Chance of eating when eating is possible
            rng: Random source (shared with the game for reproducibility)
        """
        self.eat_probability = eat_probability
        self.rng = rng or random.Random()

    def wants_to_eat(self, hand: Sequence[Tile], discard: Optional[Tile]) -> bool:
        if discard is None or not can_eat(hand, discard):
            return False
        return self.rng.random() < self.eat_probability

    def wants_to_win(self, hand: Sequence[Tile]) -> bool:
        return is_winning_hand(hand)

    def choose_discard(self, hand: Sequence[Tile]) -> Tile:
        return best_discard(hand)

    def __repr__(self) -> str:
        return f"HeuristicAgent(eat_probability={self.eat_probability})"
