"""
Eat (Chi) resolution.

Given a hand and another seat's discard, list every pair of hand tiles that
completes a palace or officer triple with it. Identical triples and soldier
triples cannot be eaten.
"""

from typing import List, Sequence, Tuple, Optional

from .tiles import Tile, Color, PieceType, PALACE_GROUP, OFFICER_GROUP
from .hand import is_palace_triple, is_officer_triple


def _find_pieces(hand: Sequence[Tile], piece: PieceType, color: Optional[Color]) -> List[Tile]:
    """Tiles of a piece in hand; ``color=None`` matches either color."""
    return [t for t in hand if t.piece == piece and (color is None or t.color == color)]


def _palace_candidates(hand: Sequence[Tile], incoming: Tile) -> List[Tuple[Tile, Tile]]:
    found = []
    for target in Color:
        # Advisor/Elephant only fit a set of their own color
        if not incoming.is_general and incoming.color != target:
            continue
        needed = [p for p in PALACE_GROUP if p != incoming.piece]
        first = _find_pieces(hand, needed[0], None if needed[0] == PieceType.GENERAL else target)
        second = _find_pieces(hand, needed[1], None if needed[1] == PieceType.GENERAL else target)
        for a in first:
            for b in second:
                if a.id != b.id:
                    found.append((a, b))
    return found


def _officer_candidates(hand: Sequence[Tile], incoming: Tile) -> List[Tuple[Tile, Tile]]:
    needed = [p for p in OFFICER_GROUP if p != incoming.piece]
    found = []
    for a in _find_pieces(hand, needed[0], incoming.color):
        for b in _find_pieces(hand, needed[1], incoming.color):
            found.append((a, b))
    return found


def chi_combinations(hand: Sequence[Tile], incoming: Tile) -> List[Tuple[Tile, Tile]]:
    """
    Enumerate hand pairs that can eat ``incoming``.

    Args:
        hand: Tiles currently held (the incoming tile is not among them)
        incoming: The discarded tile

    Returns:
        Unranked list of (tile, tile) pairs, one per distinct pair of
        hand tile ids. Each pair plus ``incoming`` is a palace or officer
        triple.
    """
    if incoming.in_palace_group:
        candidates = _palace_candidates(hand, incoming)
        check = is_palace_triple
    elif incoming.in_officer_group:
        candidates = _officer_candidates(hand, incoming)
        check = is_officer_triple
    else:
        return []

    unique = []
    seen = set()
    for a, b in candidates:
        key = frozenset((a.id, b.id))
        if key in seen or not check([a, b, incoming]):
            continue
        seen.add(key)
        unique.append((a, b))
    return unique


def can_eat(hand: Sequence[Tile], incoming: Tile) -> bool:
    return len(chi_combinations(hand, incoming)) > 0
