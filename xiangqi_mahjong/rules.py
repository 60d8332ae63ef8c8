"""
Xiangqi Mahjong Rule Sets

Table settings and timing in one place:
- STANDARD: the normal table, one-second ticks and bot "thinking" delays
- FAST: identical rules with every delay removed, for headless self-play
"""

from dataclasses import dataclass, replace
from typing import Dict


@dataclass(frozen=True)
class RuleSet:
    """
    Rule and timing configuration.

    Delays are in seconds; the turn-decision window is measured in ticks.
    """

    name: str = "Standard"

    # Seats
    min_players: int = 2
    max_players: int = 4

    # Wall and deal
    wall_stacks: int = 16
    hand_size: int = 4  # Dealer gets one extra tile

    # Chips
    starting_chips: int = 100
    special_payout: int = 50     # Heavenly win or five pawns, from every other seat
    self_drawn_payout: int = 20  # From every other seat
    discard_payout: int = 10     # From the discarder only

    # Turn decision window
    decision_ticks: int = 10
    tick_seconds: float = 1.0

    # Automated seats
    bot_cut_delay: float = 1.0
    bot_decision_delay: float = 1.0
    bot_discard_delay: float = 0.5
    bot_eat_probability: float = 0.5
    deal_delay: float = 0.6

    # Bounded records
    max_log_entries: int = 200
    history_limit: int = 50

    def __repr__(self) -> str:
        return f"RuleSet({self.name})"


STANDARD_RULES = RuleSet()

FAST_RULES = replace(
    STANDARD_RULES,
    name="Fast",
    tick_seconds=0.0,
    bot_cut_delay=0.0,
    bot_decision_delay=0.0,
    bot_discard_delay=0.0,
    deal_delay=0.0,
)

RULE_SETS: Dict[str, RuleSet] = {
    "standard": STANDARD_RULES,
    "fast": FAST_RULES,
}


def get_rules(name: str) -> RuleSet:
    try:
        return RULE_SETS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown rule set: {name} (choose from {', '.join(RULE_SETS)})")
