"""
Text rendering and command parsing for terminal play.

Works from a (state, aux) pair, so the same code draws the host's own game
and a remote seat's replicated snapshot.
"""

from typing import List, Optional, Union

from .tiles import format_tiles
from .game import (
    GameState,
    AuxState,
    GamePhase,
    WaitingReason,
    Action,
    ActionType,
    available_actions,
)

QUIT = "quit"
HELP = "help"

HELP_TEXT = """Commands:
  r        toggle ready (lobby)
  s        start / next round (host)
  restart  reset chips and return to lobby (host)
  c N      cut the wall at stack N (1-16)
  d        draw
  e        eat the last discard
  x N      discard tile N of your hand (1-5)
  w        declare a win
  p        pass on a win
  q        quit"""

_ACTION_HINTS = {
    ActionType.TOGGLE_READY: "r=ready",
    ActionType.START: "s=start",
    ActionType.RESTART: "restart",
    ActionType.CUT: "c N=cut",
    ActionType.DRAW: "d=draw",
    ActionType.EAT: "e=eat",
    ActionType.DISCARD: "x N=discard",
    ActionType.WIN: "w=win",
    ActionType.PASS: "p=pass",
}


def render(state: GameState, aux: AuxState, seat: int, log_lines: int = 5) -> str:
    """Render the table from one seat's point of view."""
    lines: List[str] = []
    lines.append("=" * 50)
    status = f"Phase: {state.phase.name}  Wall: {state.wall.remaining}"
    if state.phase == GamePhase.PLAYING:
        status += f"  Turn: {state.players[state.turn_index].name}"
        if aux.waiting_reason == WaitingReason.TURN_DECISION:
            status += f"  ({aux.decision_timer}s)"
    lines.append(status)
    lines.append("-" * 50)

    for p in state.players:
        markers = []
        if p.index == state.dealer_index and state.phase != GamePhase.LOBBY:
            markers.append("D")
        if p.index == seat:
            markers.append("you")
        if state.phase == GamePhase.LOBBY:
            markers.append("ready" if p.is_ready else "not ready")
        tag = f" [{', '.join(markers)}]" if markers else ""
        lines.append(f"{p.index}: {p.name}{tag}  chips={p.chips}")

        if p.index == seat or state.phase == GamePhase.GAME_OVER:
            hand = format_tiles(p.hand)
        else:
            hand = "? " * len(p.hand)
        lines.append(f"   hand: {hand.strip()}")
        if p.discards:
            lines.append(f"   discards: {format_tiles(p.discards)}")

    if state.last_discard is not None:
        lines.append(f"Last discard: {state.last_discard.label}")
    if aux.waiting_reason == WaitingReason.HU and aux.hu_seat is not None:
        lines.append(f"*** {state.players[aux.hu_seat].name} can win on {aux.winning_tile} ***")

    if state.phase == GamePhase.GAME_OVER:
        if state.winner_id is not None:
            lines.append(f"Winner: {state.players[state.winner_id].name} "
                         f"[{format_tiles(state.winning_hand or [])}]")
        else:
            lines.append("Drawn round")

    if seat is not None and 0 <= seat < len(state.players):
        me = state.players[seat]
        if me.hand:
            lines.append("Your hand: " + "  ".join(f"{i + 1}:{t.label}" for i, t in enumerate(me.hand)))
        hints = [_ACTION_HINTS[a] for a in available_actions(state, aux, seat)]
        if hints:
            lines.append("You can: " + ", ".join(hints))

    if state.logs and log_lines > 0:
        lines.append("-" * 50)
        lines.extend(state.logs[-log_lines:])
    return "\n".join(lines)


class ConsoleTable:
    """Redraws the table when something worth seeing happens (not on every tick)."""

    def __init__(self, seat: Optional[int] = None, out=print):
        self.seat = seat
        self.out = out
        self._last_key = None

    def update(self, state: GameState, aux: AuxState) -> None:
        key = (len(state.logs), state.logs[-1] if state.logs else "", state.phase, aux.waiting_reason)
        if key == self._last_key:
            return
        self._last_key = key
        self.out("")
        self.out(render(state, aux, self.seat))


def _int_arg(parts: List[str], command: str) -> int:
    if len(parts) != 2:
        raise ValueError(f"'{command}' needs a number")
    try:
        return int(parts[1])
    except ValueError:
        raise ValueError(f"Not a number: {parts[1]}")


def parse_command(text: str, seat: int, state: GameState) -> Optional[Union[Action, str]]:
    """
    Turn a typed command into an Action for ``seat``.

    Returns None for blank input, ``QUIT`` or ``HELP`` for those commands.
    Raises ValueError for anything it cannot understand.
    """
    parts = text.strip().split()
    if not parts:
        return None
    command = parts[0].lower()

    if command in ("q", "quit", "exit"):
        return QUIT
    if command in ("h", "help", "?"):
        return HELP
    if command == "restart":
        return Action(ActionType.RESTART, seat)

    simple = {
        "r": ActionType.TOGGLE_READY,
        "s": ActionType.START,
        "n": ActionType.START,
        "d": ActionType.DRAW,
        "e": ActionType.EAT,
        "w": ActionType.WIN,
        "p": ActionType.PASS,
    }
    if command in simple:
        return Action(simple[command], seat)

    if command == "c":
        stack = _int_arg(parts, command)
        return Action(ActionType.CUT, seat, index=stack - 1)

    if command == "x":
        position = _int_arg(parts, command)
        hand = state.players[seat].hand
        if not 1 <= position <= len(hand):
            raise ValueError(f"Pick a tile between 1 and {len(hand)}")
        return Action(ActionType.DISCARD, seat, tile=hand[position - 1])

    raise ValueError(f"Unknown command: {text.strip()}")
