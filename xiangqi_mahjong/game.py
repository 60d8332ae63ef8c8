"""
Xiangqi Mahjong Game Engine

The authoritative state machine for one table:

    LOBBY -> CUTTING -> DEALING -> PLAYING -> GAME_OVER -> CUTTING ...

Only the host process runs a Game. Every change goes through ``step``,
one action at a time; automated seats, dealing and the turn-decision
countdown are delayed continuations on a ``Scheduler``. Each accepted
action starts a new decision epoch, and a continuation that was scheduled
under an older epoch does nothing when it fires.
"""

import copy
import logging
import random
from enum import IntEnum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from .tiles import Tile, NUM_TILES, generate_deck, shuffle_deck, sort_hand, format_tiles
from .wall import Wall
from .player import Player
from .hand import is_winning_hand, check_win_with_incoming
from .chi import chi_combinations
from .scoring import (
    Settlement,
    SettlementKind,
    settle_win,
    settle_drawn_round,
    apply_settlement,
)
from .rules import RuleSet, STANDARD_RULES
from .scheduling import Scheduler, ManualScheduler, TimerHandle

logger = logging.getLogger(__name__)

HOST_SEAT = 0
DEFAULT_NAMES = ("You", "Old Zhang", "Auntie Lin", "Uncle Wang")
OPEN_SEAT_NAME = "Waiting to join..."


class GamePhase(IntEnum):
    """Phases of a session"""
    LOBBY = 0
    CUTTING = 1     # Dealer picks where to cut the wall
    DEALING = 2
    PLAYING = 3
    GAME_OVER = 4   # Round scored; next round or session end


class GameMode(IntEnum):
    SINGLEPLAYER = 0
    MULTIPLAYER = 1


class WaitingReason(IntEnum):
    """What the PLAYING phase is currently waiting on"""
    NONE = 0            # Current seat holds 5 tiles and must discard (or win)
    TURN_DECISION = 1   # Current seat may draw or eat; times out to a draw
    HU = 2              # A human may win off the last discard


class ActionType(IntEnum):
    """Types of intents a seat can submit"""
    TOGGLE_READY = 0
    CUT = 1
    DRAW = 2
    EAT = 3
    DISCARD = 4
    WIN = 5
    PASS = 6
    START = 7     # Host only: leave the lobby or begin the next round
    RESTART = 8   # Host only: reset chips and return to the lobby


class Cue(IntEnum):
    """Presentation cues for sound and animation"""
    TILE_DRAWN = 0
    TILE_DISCARDED = 1
    WIN = 2
    WALL_CUT = 3
    CLICK = 4


@dataclass
class Action:
    """
    An intent from one seat.

    Attributes:
        action_type: Type of action
        player_idx: Seat submitting the action
        tile: Tile to discard (DISCARD)
        index: Wall stack to cut at (CUT)
    """
    action_type: ActionType
    player_idx: int
    tile: Optional[Tile] = None
    index: Optional[int] = None

    def __repr__(self) -> str:
        return f"Action({self.action_type.name}, P{self.player_idx}, {self.tile or self.index})"


@dataclass(frozen=True)
class ActionResult:
    accepted: bool
    reason: str = ""

    @classmethod
    def ok(cls) -> 'ActionResult':
        return cls(True)

    @classmethod
    def rejected(cls, reason: str) -> 'ActionResult':
        return cls(False, reason)

    def __bool__(self) -> bool:
        return self.accepted


@dataclass
class GameState:
    """
    The replicated aggregate.

    ``last_discard`` is the tile in flight: it belongs to no hand or pile
    until the next seat draws (it then joins the discarder's pile), eats it,
    or wins on it.
    """
    mode: GameMode = GameMode.SINGLEPLAYER
    phase: GamePhase = GamePhase.LOBBY
    turn_index: int = 0
    dealer_index: int = 0
    wall: Wall = field(default_factory=Wall)
    players: List[Player] = field(default_factory=list)
    last_discard: Optional[Tile] = None
    winner_id: Optional[int] = None
    loser_id: Optional[int] = None
    winning_hand: Optional[List[Tile]] = None
    logs: List[str] = field(default_factory=list)

    def tile_count(self) -> int:
        """Tiles on the table; 32 at every instant of a round."""
        total = self.wall.remaining
        for p in self.players:
            total += len(p.hand) + len(p.discards)
        if self.last_discard is not None:
            total += 1
        return total

    @property
    def session_over(self) -> bool:
        return any(p.chips <= 0 for p in self.players)

    def copy(self) -> 'GameState':
        return copy.deepcopy(self)


@dataclass
class AuxState:
    """Transient flags replicated alongside the state for countdowns and banners."""
    is_processing: bool = False
    waiting_reason: WaitingReason = WaitingReason.NONE
    winning_tile: Optional[Tile] = None
    decision_timer: int = 0
    hu_seat: Optional[int] = None

    def copy(self) -> 'AuxState':
        return copy.deepcopy(self)


def available_actions(state: GameState, aux: AuxState, seat: int) -> List[ActionType]:
    """
    Actions a seat may take right now.

    Pure function of a state and its aux flags, so remote views can use it
    on a snapshot to decide which controls to offer.
    """
    if not 0 <= seat < len(state.players):
        return []
    actions = []
    player = state.players[seat]

    if state.phase == GamePhase.LOBBY:
        actions.append(ActionType.TOGGLE_READY)
        if seat == HOST_SEAT and all(p.is_ready for p in state.players):
            actions.append(ActionType.START)

    elif state.phase == GamePhase.CUTTING:
        if seat == state.dealer_index:
            actions.append(ActionType.CUT)

    elif state.phase == GamePhase.PLAYING:
        if aux.waiting_reason == WaitingReason.HU:
            if aux.hu_seat == seat:
                actions.extend([ActionType.WIN, ActionType.PASS])
        elif state.turn_index == seat:
            if aux.waiting_reason == WaitingReason.TURN_DECISION:
                actions.append(ActionType.DRAW)
                if (len(state.players) > 2 and state.last_discard is not None
                        and chi_combinations(player.hand, state.last_discard)):
                    actions.append(ActionType.EAT)
            elif len(player.hand) == 5:
                actions.append(ActionType.DISCARD)
                if is_winning_hand(player.hand):
                    actions.append(ActionType.WIN)

    elif state.phase == GamePhase.GAME_OVER:
        if seat == HOST_SEAT:
            if not state.session_over:
                actions.append(ActionType.START)
            actions.append(ActionType.RESTART)

    return actions


class Game:
    """
    Xiangqi Mahjong game engine.

    Owns the only writable GameState. Callers submit ``Action``s through
    ``step`` and observe changes through listeners.
    """

    def __init__(
        self,
        num_players: int = 4,
        mode: GameMode = GameMode.SINGLEPLAYER,
        rules: RuleSet = STANDARD_RULES,
        scheduler: Optional[Scheduler] = None,
        seed: Optional[int] = None,
        agent: Any = None,
        host_name: Optional[str] = None,
        human_seats: Sequence[int] = (HOST_SEAT,),
        first_dealer: Optional[int] = None,
    ):
        """
        Initialize a new session in the lobby.

        Args:
            num_players: Seats at the table (2-4)
            mode: Single machine or networked
            rules: Rule set
            scheduler: Runs delayed continuations (ManualScheduler if omitted)
            seed: Random seed for shuffles, cuts and bot choices
            agent: Policy for automated seats (HeuristicAgent if omitted)
            host_name: Display name for the host seat
            human_seats: Seats played by people at session start
            first_dealer: Dealer of the first round (random if omitted)
        """
        if not rules.min_players <= num_players <= rules.max_players:
            raise ValueError(
                f"Player count must be {rules.min_players}-{rules.max_players}, got {num_players}"
            )
        self.rules = rules
        self.num_players = num_players
        self.scheduler = scheduler or ManualScheduler()
        self.rng = random.Random(seed)
        if agent is None:
            # agents imports the engine, so the default policy is resolved here
            from agents.heuristic_agent import HeuristicAgent
            agent = HeuristicAgent(rules.bot_eat_probability, self.rng)
        self.agent = agent
        self.seat_agents: Dict[int, Any] = {}

        self.state = GameState(mode=mode)
        self.aux = AuxState()

        # Host-side bookkeeping, not replicated
        self.next_round_dealer = 0
        self.last_discarder: Optional[int] = None
        self.eaten_from: Optional[int] = None
        self.last_settlement: Optional[Settlement] = None

        self._epoch = 0
        self._countdown: Optional[TimerHandle] = None
        self._listeners: List[Callable[['Game'], None]] = []
        self._cue_listeners: List[Callable[[Cue], None]] = []
        self._round_listeners: List[Callable[[Settlement, 'Game'], None]] = []

        self._handlers = {
            ActionType.TOGGLE_READY: self._handle_toggle_ready,
            ActionType.CUT: self._handle_cut,
            ActionType.DRAW: self._handle_draw,
            ActionType.EAT: self._handle_eat,
            ActionType.DISCARD: self._handle_discard,
            ActionType.WIN: self._handle_win,
            ActionType.PASS: self._handle_pass,
            ActionType.START: self._handle_start,
            ActionType.RESTART: self._handle_restart,
        }

        self._setup_seats(host_name, human_seats)
        self._reset_session(first_dealer)

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def add_listener(self, callback: Callable[['Game'], None]) -> None:
        """Called after every state change."""
        self._listeners.append(callback)

    def add_cue_listener(self, callback: Callable[[Cue], None]) -> None:
        self._cue_listeners.append(callback)

    def add_round_listener(self, callback: Callable[[Settlement, 'Game'], None]) -> None:
        """Called once per round, right after it is scored."""
        self._round_listeners.append(callback)

    @property
    def players(self) -> List[Player]:
        return self.state.players

    @property
    def phase(self) -> GamePhase:
        return self.state.phase

    @property
    def current_player(self) -> Player:
        return self.state.players[self.state.turn_index]

    @property
    def session_over(self) -> bool:
        return self.state.session_over

    @property
    def epoch(self) -> int:
        return self._epoch

    def legal_actions(self, seat: int) -> List[ActionType]:
        return available_actions(self.state, self.aux, seat)

    def agent_for(self, seat: int) -> Any:
        return self.seat_agents.get(seat, self.agent)

    # ------------------------------------------------------------------
    # Seating
    # ------------------------------------------------------------------

    def _setup_seats(self, host_name: Optional[str], human_seats: Sequence[int]) -> None:
        multiplayer = self.state.mode == GameMode.MULTIPLAYER
        players = []
        for i in range(self.num_players):
            if i == HOST_SEAT:
                name = host_name or DEFAULT_NAMES[0]
            elif multiplayer:
                name = OPEN_SEAT_NAME
            else:
                name = DEFAULT_NAMES[i % len(DEFAULT_NAMES)]
            players.append(Player(index=i, name=name, is_human=i in human_seats))
        self.state.players = players

    def find_open_seat(self) -> Optional[int]:
        """First non-host seat still played by a bot, while in the lobby."""
        if self.state.phase != GamePhase.LOBBY:
            return None
        for p in self.state.players:
            if p.index != HOST_SEAT and not p.is_human:
                return p.index
        return None

    def seat_human(self, seat: int, name: str) -> bool:
        """Hand a bot seat to a joining person (not ready until they say so)."""
        if seat == HOST_SEAT or not 0 <= seat < self.num_players:
            return False
        player = self.state.players[seat]
        if player.is_human:
            return False
        player.name = name or f"Player {seat}"
        player.is_human = True
        player.is_ready = False
        self._log(f"{player.name} joined")
        self._notify()
        return True

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def step(self, action: Action) -> ActionResult:
        """
        Apply one intent.

        Illegal or out-of-turn intents leave the state untouched and return
        a rejection; nothing is raised.
        """
        if not 0 <= action.player_idx < self.num_players:
            result = ActionResult.rejected("no such seat")
        else:
            result = self._handlers[action.action_type](action)

        if result.accepted:
            self.aux.is_processing = False
            self._after_change()
        else:
            logger.debug(f"Rejected {action}: {result.reason}")
        return result

    def start_round(self, deck: Optional[List[Tile]] = None) -> ActionResult:
        """
        Begin a round with an optional pre-arranged deck (32 tiles).

        Bypasses the lobby/readiness checks of START.
        """
        result = self._start_round(deck)
        self._after_change()
        return result

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _handle_toggle_ready(self, action: Action) -> ActionResult:
        if self.state.phase != GamePhase.LOBBY:
            return ActionResult.rejected("not in lobby")
        player = self.state.players[action.player_idx]
        player.is_ready = not player.is_ready
        return ActionResult.ok()

    def _handle_start(self, action: Action) -> ActionResult:
        if action.player_idx != HOST_SEAT:
            return ActionResult.rejected("only the host can start")
        if self.state.phase == GamePhase.LOBBY:
            if not all(p.is_ready for p in self.state.players):
                return ActionResult.rejected("not everyone is ready")
        elif self.state.phase == GamePhase.GAME_OVER:
            if self.session_over:
                return ActionResult.rejected("session is over")
        else:
            return ActionResult.rejected("round in progress")
        return self._start_round()

    def _handle_restart(self, action: Action) -> ActionResult:
        if action.player_idx != HOST_SEAT:
            return ActionResult.rejected("only the host can restart")
        self._reset_session()
        return ActionResult.ok()

    def _handle_cut(self, action: Action) -> ActionResult:
        if self.state.phase != GamePhase.CUTTING:
            return ActionResult.rejected("not cutting")
        if action.player_idx != self.state.dealer_index:
            return ActionResult.rejected("only the dealer cuts")
        if action.index is None or not 0 <= action.index < self.rules.wall_stacks:
            return ActionResult.rejected("bad wall position")

        dealer = self.state.players[self.state.dealer_index]
        self._new_epoch()
        self.state.wall.cut(action.index)
        self.state.phase = GamePhase.DEALING
        self._cue(Cue.WALL_CUT)
        self._log(f"{dealer.name} cuts the wall at stack {action.index + 1}")
        self._schedule(self.rules.deal_delay, self._deal)
        return ActionResult.ok()

    def _handle_draw(self, action: Action) -> ActionResult:
        if self.state.phase != GamePhase.PLAYING:
            return ActionResult.rejected("not playing")
        if self.aux.waiting_reason != WaitingReason.TURN_DECISION:
            return ActionResult.rejected("not waiting for a turn decision")
        if action.player_idx != self.state.turn_index:
            return ActionResult.rejected("not your turn")
        player = self.state.players[action.player_idx]
        if len(player.hand) > self.rules.hand_size:
            return ActionResult.rejected("hand is full")

        self._new_epoch()
        self._clear_wait()
        self._settle_last_discard()

        if self.state.wall.is_empty:
            self._end_drawn_round()
            return ActionResult.ok()

        tile = self.state.wall.draw()
        player.add_tile(tile)
        self._cue(Cue.TILE_DRAWN)
        self._log(f"{player.name} draws a tile")
        return ActionResult.ok()

    def _handle_eat(self, action: Action) -> ActionResult:
        if self.state.phase != GamePhase.PLAYING:
            return ActionResult.rejected("not playing")
        if self.aux.waiting_reason != WaitingReason.TURN_DECISION:
            return ActionResult.rejected("not waiting for a turn decision")
        if action.player_idx != self.state.turn_index:
            return ActionResult.rejected("not your turn")
        if self.num_players <= 2:
            return ActionResult.rejected("no eating at a two-seat table")
        tile = self.state.last_discard
        if tile is None:
            return ActionResult.rejected("nothing to eat")
        player = self.state.players[action.player_idx]
        if len(player.hand) != self.rules.hand_size:
            return ActionResult.rejected("hand is full")
        combos = chi_combinations(player.hand, tile)
        if not combos:
            return ActionResult.rejected("no set to complete")

        self._new_epoch()
        self._clear_wait()
        # Partner tiles stay in hand; the eaten tile joins them
        player.add_tile(tile)
        self.eaten_from = self.last_discarder
        self.state.last_discard = None
        self._cue(Cue.CLICK)
        self._log(f"{player.name} eats {tile.label} ({format_tiles(combos[0])})")
        return ActionResult.ok()

    def _handle_discard(self, action: Action) -> ActionResult:
        if self.state.phase != GamePhase.PLAYING:
            return ActionResult.rejected("not playing")
        if self.aux.waiting_reason != WaitingReason.NONE:
            return ActionResult.rejected("waiting on a decision")
        if action.player_idx != self.state.turn_index:
            return ActionResult.rejected("not your turn")
        player = self.state.players[action.player_idx]
        if len(player.hand) != self.rules.hand_size + 1:
            return ActionResult.rejected("draw or eat first")
        tile = player.find_tile(action.tile.id) if action.tile is not None else None
        if tile is None:
            return ActionResult.rejected("tile not in hand")

        seat = action.player_idx
        self._new_epoch()
        player.remove_tile(tile)
        self.state.last_discard = tile
        self.last_discarder = seat
        self.eaten_from = None
        self._cue(Cue.TILE_DISCARDED)
        self._log(f"{player.name} discards {tile.label}")

        winner = self._find_reactive_winner(seat, tile)
        if winner is None:
            self._open_turn_decision((seat + 1) % self.num_players)
            return ActionResult.ok()

        claimant = self.state.players[winner]
        if claimant.is_human:
            self.aux.waiting_reason = WaitingReason.HU
            self.aux.winning_tile = tile
            self.aux.hu_seat = winner
            self._log(f"{claimant.name} can win on {tile.label}")
        else:
            self._commit_win(winner, claimant.hand + [tile], loser=seat, winning_tile=tile)
        return ActionResult.ok()

    def _handle_win(self, action: Action) -> ActionResult:
        if self.state.phase != GamePhase.PLAYING:
            return ActionResult.rejected("not playing")
        seat = action.player_idx
        player = self.state.players[seat]

        if self.aux.waiting_reason == WaitingReason.HU:
            if seat != self.aux.hu_seat:
                return ActionResult.rejected("not your win")
            tile = self.aux.winning_tile
            self._commit_win(seat, player.hand + [tile], loser=self.last_discarder, winning_tile=tile)
            return ActionResult.ok()

        if (self.aux.waiting_reason == WaitingReason.NONE
                and seat == self.state.turn_index
                and is_winning_hand(player.hand)):
            self._commit_win(seat, list(player.hand), loser=self.eaten_from)
            return ActionResult.ok()

        return ActionResult.rejected("hand does not win")

    def _handle_pass(self, action: Action) -> ActionResult:
        if self.aux.waiting_reason != WaitingReason.HU or action.player_idx != self.aux.hu_seat:
            return ActionResult.rejected("nothing to pass on")
        player = self.state.players[action.player_idx]
        self._new_epoch()
        self._log(f"{player.name} passes")
        self._open_turn_decision((self.state.turn_index + 1) % self.num_players)
        return ActionResult.ok()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _reset_session(self, first_dealer: Optional[int] = None) -> None:
        """Fresh chips, everyone back in the lobby; seats keep their occupants."""
        self._new_epoch()
        multiplayer = self.state.mode == GameMode.MULTIPLAYER
        for p in self.state.players:
            p.reset_round()
            p.chips = self.rules.starting_chips
            p.is_ready = not (multiplayer and p.is_human and p.index != HOST_SEAT)

        if first_dealer is None:
            first_dealer = self.rng.randrange(self.num_players)
        self.next_round_dealer = first_dealer % self.num_players

        mode_name = "networked" if multiplayer else "single machine"
        self.state.phase = GamePhase.LOBBY
        self.state.wall = Wall()
        self.state.turn_index = 0
        self.state.dealer_index = 0
        self.state.last_discard = None
        self.state.winner_id = None
        self.state.loser_id = None
        self.state.winning_hand = None
        self.state.logs = []
        self.aux = AuxState()
        self.last_discarder = None
        self.eaten_from = None
        self.last_settlement = None
        self._log(f"Mode: {mode_name} ({self.num_players} seats)")

    def _start_round(self, deck: Optional[List[Tile]] = None) -> ActionResult:
        tiles = list(deck) if deck is not None else shuffle_deck(generate_deck(), self.rng)
        if len(tiles) != NUM_TILES:
            raise ValueError(f"A deck has {NUM_TILES} tiles, got {len(tiles)}")

        self._new_epoch()
        dealer = self.next_round_dealer
        self.state.wall = Wall(tiles=tiles)
        self.state.phase = GamePhase.CUTTING
        self.state.dealer_index = dealer
        self.state.turn_index = dealer
        for p in self.state.players:
            p.reset_round()
        self.state.last_discard = None
        self.state.winner_id = None
        self.state.loser_id = None
        self.state.winning_hand = None
        self.aux = AuxState()
        self.last_discarder = None
        self.eaten_from = None
        self.last_settlement = None

        self._log("--- New round ---")
        self._log(f"{self.state.players[dealer].name} deals and cuts the wall")
        return ActionResult.ok()

    def _deal(self) -> None:
        if self.state.phase != GamePhase.DEALING:
            return
        dealer = self.state.dealer_index
        hands = self.state.wall.deal_hands(self.num_players, dealer, self.rules.hand_size)
        for player, hand in zip(self.state.players, hands):
            player.set_hand(hand)

        self.state.phase = GamePhase.PLAYING
        self.state.turn_index = dealer
        self.aux = AuxState()
        self._log("Tiles dealt, game on!")
        self._after_change()

    def _open_turn_decision(self, seat: int) -> None:
        self._new_epoch()
        self.state.turn_index = seat
        self.aux.waiting_reason = WaitingReason.TURN_DECISION
        self.aux.decision_timer = self.rules.decision_ticks
        self.aux.winning_tile = None
        self.aux.hu_seat = None
        self.aux.is_processing = False
        self._countdown = self._schedule(self.rules.tick_seconds, self._tick)

    def _tick(self) -> None:
        if (self.state.phase != GamePhase.PLAYING
                or self.aux.waiting_reason != WaitingReason.TURN_DECISION):
            return
        self.aux.decision_timer -= 1
        if self.aux.decision_timer > 0:
            self._countdown = self._schedule(self.rules.tick_seconds, self._tick)
            self._notify()
            return

        self.aux.decision_timer = 0
        seat = self.state.turn_index
        logger.info(f"Decision window expired for seat {seat}; drawing")
        self.step(Action(ActionType.DRAW, seat))

    def _clear_wait(self) -> None:
        self.aux.waiting_reason = WaitingReason.NONE
        self.aux.decision_timer = 0
        self.aux.winning_tile = None
        self.aux.hu_seat = None

    def _settle_last_discard(self) -> None:
        """An unclaimed discard becomes ordinary pile history."""
        if self.state.last_discard is not None and self.last_discarder is not None:
            self.state.players[self.last_discarder].discards.append(self.state.last_discard)
        self.state.last_discard = None

    def _find_reactive_winner(self, discarder: int, tile: Tile) -> Optional[int]:
        """First seat after the discarder, in seating order, that wins on the tile."""
        for offset in range(1, self.num_players):
            seat = (discarder + offset) % self.num_players
            if check_win_with_incoming(self.state.players[seat].hand, tile):
                return seat
        return None

    def _commit_win(
        self,
        winner: int,
        hand: List[Tile],
        loser: Optional[int],
        winning_tile: Optional[Tile] = None,
    ) -> None:
        self._new_epoch()
        players = self.state.players
        settlement = settle_win(
            num_players=self.num_players,
            dealer=self.state.dealer_index,
            winner=winner,
            winning_hand=hand,
            loser=loser,
            wall_remaining=self.state.wall.remaining,
            rules=self.rules,
        )

        self.state.phase = GamePhase.GAME_OVER
        self.state.winner_id = winner
        self.state.loser_id = loser
        self.state.winning_hand = sort_hand(hand)
        self._clear_wait()
        self.aux.winning_tile = winning_tile
        self._cue(Cue.WIN)
        self._log(f"{players[winner].name} wins! [{format_tiles(self.state.winning_hand)}]")

        winner_name = players[winner].name
        amount = settlement.pay_amount
        if settlement.kind == SettlementKind.HEAVENLY:
            self._log(f"Heavenly win! Every other seat pays {amount}")
        elif settlement.kind == SettlementKind.FIVE_PAWNS:
            self._log(f"Five pawns! Every other seat pays {amount}")
        elif settlement.kind == SettlementKind.SELF_DRAWN:
            self._log(f"Self-drawn! Every other seat pays {amount}")
        if loser is not None:
            self._log(f"{players[loser].name} dealt in and pays {winner_name}")
            self._log(f"Next dealer: {players[loser].name} (dealt in)")
        else:
            self._log(f"Next dealer: {players[settlement.next_dealer].name} (left of winner)")

        self._finish_round(settlement)

    def _end_drawn_round(self) -> None:
        settlement = settle_drawn_round(self.num_players, self.state.dealer_index)
        self.state.phase = GamePhase.GAME_OVER
        self._log("Drawn round! The wall is empty.")
        self._log(f"Next dealer: {self.state.players[settlement.next_dealer].name}")
        self._finish_round(settlement)

    def _finish_round(self, settlement: Settlement) -> None:
        chips = apply_settlement([p.chips for p in self.state.players], settlement)
        for player, balance in zip(self.state.players, chips):
            player.chips = balance
        self.next_round_dealer = settlement.next_dealer
        self.last_settlement = settlement

        broke = [p.name for p in self.state.players if p.chips <= 0]
        if broke:
            self._log(f"Session over: {', '.join(broke)} out of chips")

        for callback in self._round_listeners:
            callback(settlement, self)

    # ------------------------------------------------------------------
    # Automated seats
    # ------------------------------------------------------------------

    def _advance(self) -> None:
        """Schedule the next automated move, if the state calls for one."""
        if self.aux.is_processing:
            return
        state = self.state

        if state.phase == GamePhase.CUTTING:
            if not state.players[state.dealer_index].is_human:
                self.aux.is_processing = True
                self._schedule(self.rules.bot_cut_delay, self._bot_cut)
            return

        if state.phase != GamePhase.PLAYING or self.aux.waiting_reason == WaitingReason.HU:
            return

        player = self.current_player
        if player.is_human:
            return
        if self.aux.waiting_reason == WaitingReason.TURN_DECISION:
            self.aux.is_processing = True
            self._schedule(self.rules.bot_decision_delay, self._bot_decision)
        elif len(player.hand) == self.rules.hand_size + 1:
            self.aux.is_processing = True
            self._schedule(self.rules.bot_discard_delay, self._bot_discard_phase)

    def _bot_cut(self) -> None:
        self.step(Action(
            ActionType.CUT,
            self.state.dealer_index,
            index=self.rng.randrange(self.rules.wall_stacks),
        ))

    def _bot_decision(self) -> None:
        seat = self.state.turn_index
        player = self.state.players[seat]
        agent = self.agent_for(seat)
        if self.num_players > 2 and agent.wants_to_eat(player.hand, self.state.last_discard):
            if self.step(Action(ActionType.EAT, seat)):
                return
        self.step(Action(ActionType.DRAW, seat))

    def _bot_discard_phase(self) -> None:
        seat = self.state.turn_index
        player = self.state.players[seat]
        agent = self.agent_for(seat)
        if agent.wants_to_win(player.hand):
            self.step(Action(ActionType.WIN, seat))
            return
        self.step(Action(ActionType.DISCARD, seat, tile=agent.choose_discard(player.hand)))

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _new_epoch(self) -> None:
        self._epoch += 1
        if self._countdown is not None:
            self._countdown.cancel()
            self._countdown = None

    def _schedule(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return self.scheduler.call_later(delay, self._run_if_current, self._epoch, callback)

    def _run_if_current(self, epoch: int, callback: Callable[[], None]) -> None:
        if epoch != self._epoch:
            logger.debug(f"Dropping stale continuation {callback.__name__} (epoch {epoch} != {self._epoch})")
            return
        callback()

    def _after_change(self) -> None:
        self._advance()
        self._notify()

    def _notify(self) -> None:
        for callback in self._listeners:
            callback(self)

    def _cue(self, cue: Cue) -> None:
        for callback in self._cue_listeners:
            callback(cue)

    def _log(self, message: str) -> None:
        logs = self.state.logs
        logs.append(message)
        if len(logs) > self.rules.max_log_entries:
            del logs[:len(logs) - self.rules.max_log_entries]
        logger.info(message)

    def __repr__(self) -> str:
        return (
            f"Game(phase={self.state.phase.name}, turn={self.state.turn_index}, "
            f"wall={self.state.wall.remaining})"
        )
