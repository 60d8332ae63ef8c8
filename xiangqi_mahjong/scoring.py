"""
Xiangqi Mahjong Scoring

Round settlement is a pure function of who won, how, and who dealt:

- Heavenly win (dealer wins on the dealt hand before any discard) or five
  pawns: every other seat pays the special amount
- Self-drawn win: every other seat pays; next dealer is the winner's left
- Win off a discard: only the discarder pays, and deals next
- Drawn round: nobody pays; the deal passes to the dealer's left
"""

from enum import IntEnum
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .tiles import Tile
from .hand import is_five_pawns
from .rules import RuleSet, STANDARD_RULES


class SettlementKind(IntEnum):
    HEAVENLY = 0
    FIVE_PAWNS = 1
    SELF_DRAWN = 2
    DISCARD_WIN = 3
    DRAWN_GAME = 4


@dataclass(frozen=True)
class Settlement:
    """
    Outcome of one round.

    Attributes:
        kind: How the round ended
        winner: Winning seat, None for a drawn round
        loser: Discarder who pays alone, None otherwise
        pay_amount: Chips paid by each paying seat
        deltas: Chip change per seat (sums to zero)
        next_dealer: Seat that deals the next round
    """
    kind: SettlementKind
    winner: Optional[int]
    loser: Optional[int]
    pay_amount: int
    deltas: tuple
    next_dealer: int

    @property
    def is_draw(self) -> bool:
        return self.kind == SettlementKind.DRAWN_GAME


def post_deal_wall_size(num_players: int, hand_size: int = 4, deck_size: int = 32) -> int:
    """Wall length right after dealing (dealer holds one extra tile)."""
    return max(deck_size - num_players * hand_size - 1, 0)


def settle_win(
    num_players: int,
    dealer: int,
    winner: int,
    winning_hand: Sequence[Tile],
    loser: Optional[int],
    wall_remaining: int,
    rules: RuleSet = STANDARD_RULES,
) -> Settlement:
    """
    Compute payouts for a won round.

    Args:
        num_players: Seats at the table
        dealer: Dealer of this round
        winner: Winning seat
        winning_hand: The five tiles that won
        loser: Discarder of the winning tile, None if self-drawn
        wall_remaining: Wall length at the moment of the win
        rules: Payout amounts
    """
    heavenly = (
        loser is None
        and winner == dealer
        and wall_remaining == post_deal_wall_size(num_players, rules.hand_size)
    )

    if heavenly:
        kind = SettlementKind.HEAVENLY
        amount = rules.special_payout
    elif is_five_pawns(winning_hand):
        kind = SettlementKind.FIVE_PAWNS
        amount = rules.special_payout
    elif loser is None:
        kind = SettlementKind.SELF_DRAWN
        amount = rules.self_drawn_payout
    else:
        kind = SettlementKind.DISCARD_WIN
        amount = rules.discard_payout

    deltas = [0] * num_players
    if kind == SettlementKind.DISCARD_WIN:
        deltas[loser] -= amount
        deltas[winner] += amount
    else:
        for seat in range(num_players):
            if seat != winner:
                deltas[seat] -= amount
                deltas[winner] += amount

    if loser is not None:
        next_dealer = loser
    else:
        next_dealer = (winner + 1) % num_players

    return Settlement(
        kind=kind,
        winner=winner,
        loser=loser,
        pay_amount=amount,
        deltas=tuple(deltas),
        next_dealer=next_dealer,
    )


def settle_drawn_round(num_players: int, dealer: int) -> Settlement:
    """Wall exhausted with no winner."""
    return Settlement(
        kind=SettlementKind.DRAWN_GAME,
        winner=None,
        loser=None,
        pay_amount=0,
        deltas=tuple([0] * num_players),
        next_dealer=(dealer + 1) % num_players,
    )


def apply_settlement(chips: List[int], settlement: Settlement) -> List[int]:
    return [c + d for c, d in zip(chips, settlement.deltas)]
