"""
Discard Advisor

One-ply greedy keep-value scoring for each tile in a hand; the advisor
recommends discarding the lowest-scored tile. Partner rules come from
``hand`` so the advisor and the win check never disagree about which
pieces belong together.
"""

from typing import List, Sequence

import numpy as np

from .tiles import Tile, to_count_array
from .hand import palace_partners, officer_partners

# Keep-value weights
PAIR_BONUS = 20
TRIPLE_BONUS = 50
PALACE_ONE_PARTNER = 10
PALACE_TWO_PARTNERS = 30
OFFICER_ONE_PARTNER = 5
OFFICER_TWO_PARTNERS = 40
SOLDIER_GROUP_BONUS = 30
SOLDIER_BASE = 2


def keep_score(tile: Tile, hand: Sequence[Tile], counts: np.ndarray = None) -> int:
    """
    Keep value of one tile in the context of its hand.

    Args:
        tile: Tile being scored (must be in ``hand``)
        hand: Whole hand
        counts: Optional precomputed ``to_count_array(hand)``
    """
    if counts is None:
        counts = to_count_array(hand)
    score = 0

    identical = int(counts[tile.color, tile.piece])
    if identical >= 3:
        score += TRIPLE_BONUS
    elif identical == 2:
        score += PAIR_BONUS

    others = [t for t in hand if t.id != tile.id]

    if tile.in_palace_group:
        partners = sum(1 for o in others if palace_partners(tile, o))
        if partners >= 2:
            score += PALACE_TWO_PARTNERS
        elif partners == 1:
            score += PALACE_ONE_PARTNER

    # A duplicate of the tile itself cancels the officer bonus; the pair covers it
    if tile.in_officer_group and identical < 2:
        partner_pieces = {o.piece for o in others if officer_partners(tile, o)}
        if len(partner_pieces) >= 2:
            score += OFFICER_TWO_PARTNERS
        elif len(partner_pieces) == 1:
            score += OFFICER_ONE_PARTNER

    if tile.is_soldier:
        same_color = int(counts[tile.color, tile.piece])
        score += SOLDIER_GROUP_BONUS if same_color >= 3 else SOLDIER_BASE

    return score


def keep_scores(hand: Sequence[Tile]) -> np.ndarray:
    """Keep value of every tile, in hand order."""
    counts = to_count_array(hand)
    return np.array([keep_score(t, hand, counts) for t in hand], dtype=np.int32)


def best_discard(hand: Sequence[Tile]) -> Tile:
    """
    Least valuable tile in the hand.

    Ties go to the first tile in hand order.
    """
    if not hand:
        raise ValueError("Cannot choose a discard from an empty hand")
    scores = keep_scores(hand)
    return hand[int(np.argmin(scores))]


def rank_discards(hand: Sequence[Tile]) -> List[Tile]:
    """Hand ordered from most to least discardable (stable on ties)."""
    scores = keep_scores(hand)
    order = np.argsort(scores, kind="stable")
    return [hand[int(i)] for i in order]
