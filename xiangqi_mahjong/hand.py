"""
Xiangqi Mahjong Hand Evaluation

Pure functions over hands:
- pairs (Generals of either color pair with each other)
- 3-tile sets: identical triple, palace triple (帥仕相), officer triple
  (俥傌炮), three same-color soldiers
- winning hands: five same-color soldiers, or one pair + one set

The partner predicates here are shared with the eat resolver and the
discard advisor so all three agree on what can combine with what.
"""

from itertools import combinations
from typing import List, Optional, Sequence, Tuple

from .tiles import Tile, Color, PieceType, PALACE_GROUP, OFFICER_GROUP

WINNING_HAND_SIZE = 5


def is_pair(a: Tile, b: Tile) -> bool:
    """Same piece and color, or any two Generals."""
    if a.is_general and b.is_general:
        return True
    return a.same_kind(b)


def palace_partners(a: Tile, b: Tile) -> bool:
    """
    Can two distinct palace pieces sit in the same palace triple?

    A General fits with any Advisor or Elephant; Advisor and Elephant
    must share a color.
    """
    if not (a.in_palace_group and b.in_palace_group) or a.piece == b.piece:
        return False
    if a.is_general or b.is_general:
        return True
    return a.color == b.color


def officer_partners(a: Tile, b: Tile) -> bool:
    """Two distinct officer pieces of the same color."""
    if not (a.in_officer_group and b.in_officer_group) or a.piece == b.piece:
        return False
    return a.color == b.color


def set_partners(a: Tile, b: Tile) -> bool:
    """Can two tiles belong to one palace or officer triple?"""
    return palace_partners(a, b) or officer_partners(a, b)


def _pieces(tiles: Sequence[Tile]) -> set:
    return {t.piece for t in tiles}


def is_identical_triple(tiles: Sequence[Tile]) -> bool:
    return len(tiles) == 3 and tiles[0].same_kind(tiles[1]) and tiles[1].same_kind(tiles[2])


def is_palace_triple(tiles: Sequence[Tile]) -> bool:
    if len(tiles) != 3 or _pieces(tiles) != set(PALACE_GROUP):
        return False
    return all(palace_partners(a, b) for a, b in combinations(tiles, 2))


def is_officer_triple(tiles: Sequence[Tile]) -> bool:
    if len(tiles) != 3 or _pieces(tiles) != set(OFFICER_GROUP):
        return False
    return all(officer_partners(a, b) for a, b in combinations(tiles, 2))


def is_soldier_triple(tiles: Sequence[Tile]) -> bool:
    if len(tiles) != 3:
        return False
    return all(t.is_soldier for t in tiles) and len({t.color for t in tiles}) == 1


def is_set(tiles: Sequence[Tile]) -> bool:
    """Check whether three tiles form a valid set."""
    if len(tiles) != 3:
        return False
    return (
        is_identical_triple(tiles)
        or is_palace_triple(tiles)
        or is_officer_triple(tiles)
        or is_soldier_triple(tiles)
    )


def is_five_pawns(hand: Sequence[Tile]) -> bool:
    """Five soldiers of one color: an instant win."""
    if len(hand) != WINNING_HAND_SIZE:
        return False
    return any(
        sum(1 for t in hand if t.is_soldier and t.color == color) == WINNING_HAND_SIZE
        for color in Color
    )


def find_winning_partition(hand: Sequence[Tile]) -> Optional[Tuple[List[Tile], List[Tile]]]:
    """
    Find a (pair, set) split of a 5-tile hand.

    Every pair choice is tried; the first that leaves a valid set wins.

    Returns:
        (pair, set) or None if the hand has no such split
    """
    if len(hand) != WINNING_HAND_SIZE:
        return None

    for i, j in combinations(range(len(hand)), 2):
        if not is_pair(hand[i], hand[j]):
            continue
        rest = [t for k, t in enumerate(hand) if k not in (i, j)]
        if is_set(rest):
            return [hand[i], hand[j]], rest
    return None


def is_winning_hand(hand: Sequence[Tile]) -> bool:
    """Check a 5-tile hand for a win (five pawns or pair + set)."""
    if len(hand) != WINNING_HAND_SIZE:
        return False
    if is_five_pawns(hand):
        return True
    return find_winning_partition(hand) is not None


def check_win_with_incoming(hand: Sequence[Tile], incoming: Tile) -> bool:
    """
    Would a 4-tile hand win with an incoming tile?

    Returns False (never raises) for any other hand size.
    """
    if len(hand) != WINNING_HAND_SIZE - 1:
        return False
    return is_winning_hand(list(hand) + [incoming])
