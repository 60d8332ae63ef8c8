"""
Tests for the Discard Advisor, bot policies and supporting modules
"""

import asyncio
import json
import subprocess
import random
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from xiangqi_mahjong.tiles import Tile, tiles_from_labels, generate_deck
from xiangqi_mahjong.advisor import keep_score, keep_scores, best_discard, rank_discards
from xiangqi_mahjong.scheduling import ManualScheduler, AsyncioScheduler
from xiangqi_mahjong.history import HistoryStore, MatchRecord, SELF_DRAW
from xiangqi_mahjong.game import Game, Action, ActionType
from xiangqi_mahjong.console import render, parse_command, ConsoleTable, QUIT, HELP
from agents import HeuristicAgent, RandomAgent


def labels(tiles):
    return [t.label for t in tiles]


class TestAdvisor:
    """Test keep-value scoring"""

    def test_palace_triple_kept(self):
        hand = tiles_from_labels("帥 仕 相 車 卒")
        scores = keep_scores(hand)
        assert list(scores) == [30, 30, 30, 0, 2]
        assert best_discard(hand).label == "車"

    def test_pair_bonus(self):
        hand = tiles_from_labels("兵 兵 傌 象 包")
        assert keep_score(hand[0], hand) == 22
        assert best_discard(hand).label == "傌"

    def test_triple_not_added_to_pair(self):
        hand = tiles_from_labels("車 車 車 兵 卒")
        assert keep_score(hand[0], hand) == 50

    def test_soldier_group(self):
        hand = tiles_from_labels("兵 兵 兵 兵 車")
        assert keep_score(hand[0], hand) == 80
        assert best_discard(hand).label == "車"

    def test_officer_partners(self):
        hand = tiles_from_labels("俥 傌 炮 帥 卒")
        scores = keep_scores(hand)
        assert list(scores[:3]) == [40, 40, 40]
        assert best_discard(hand).label == "帥"

    def test_officer_duplicate_drops_officer_bonus(self):
        """A doubled officer counts as a pair only"""
        hand = tiles_from_labels("俥 俥 傌 炮 卒")
        assert list(keep_scores(hand)) == [20, 20, 40, 40, 2]
        assert best_discard(hand).label == "卒"

    def test_officer_needs_same_color(self):
        hand = tiles_from_labels("俥 傌 包 兵 兵")
        assert list(keep_scores(hand)) == [5, 5, 0, 22, 22]

    def test_ties_go_to_first(self):
        hand = tiles_from_labels("車 傌 象 仕")
        assert best_discard(hand) == hand[0]

    def test_rank_discards(self):
        hand = tiles_from_labels("帥 仕 相 車 卒")
        ranked = rank_discards(hand)
        assert labels(ranked)[:2] == ["車", "卒"]
        assert len(ranked) == len(hand)

    def test_empty_hand(self):
        with pytest.raises(ValueError):
            best_discard([])


class TestAgents:
    """Test automated seat policies"""

    def test_heuristic_uses_advisor(self):
        agent = HeuristicAgent()
        hand = tiles_from_labels("帥 仕 相 車 卒")
        assert agent.choose_discard(hand) == best_discard(hand)

    def test_eat_probability(self):
        hand = tiles_from_labels("俥 傌 兵 卒")
        cannon = Tile.from_label("炮", 1)
        assert HeuristicAgent(eat_probability=1.0).wants_to_eat(hand, cannon)
        assert not HeuristicAgent(eat_probability=0.0).wants_to_eat(hand, cannon)

    def test_no_eat_without_combination(self):
        agent = HeuristicAgent(eat_probability=1.0)
        hand = tiles_from_labels("俥 傌 兵 卒")
        assert not agent.wants_to_eat(hand, Tile.from_label("包", 1))
        assert not agent.wants_to_eat(hand, None)

    def test_wants_to_win(self):
        assert HeuristicAgent().wants_to_win(tiles_from_labels("兵 兵 兵 兵 兵"))
        assert RandomAgent().wants_to_win(tiles_from_labels("車 車 俥 傌 炮"))
        assert not HeuristicAgent().wants_to_win(tiles_from_labels("車 馬 包 兵 卒"))

    def test_random_discard_from_hand(self):
        agent = RandomAgent(rng=random.Random(3))
        hand = generate_deck()[:5]
        for _ in range(20):
            assert agent.choose_discard(hand) in hand

    def test_agents_importable_first(self):
        """A fresh interpreter can import agents before the engine"""
        root = Path(__file__).parent.parent
        result = subprocess.run(
            [sys.executable, "-c", "import agents; from xiangqi_mahjong import Game; Game(seed=1)"],
            cwd=str(root),
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0, result.stderr


class TestScheduling:
    """Test virtual and asyncio schedulers"""

    def test_manual_order(self):
        scheduler = ManualScheduler()
        calls = []
        scheduler.call_later(2.0, calls.append, "b")
        scheduler.call_later(1.0, calls.append, "a")
        scheduler.call_later(2.0, calls.append, "c")
        assert scheduler.advance(1.0) == 1
        assert calls == ["a"]
        scheduler.advance(5.0)
        assert calls == ["a", "b", "c"]
        assert scheduler.now == 6.0

    def test_manual_cancel(self):
        scheduler = ManualScheduler()
        calls = []
        handle = scheduler.call_later(1.0, calls.append, "x")
        scheduler.call_later(3.0, calls.append, "y")
        handle.cancel()
        assert scheduler.pending == 1
        scheduler.advance(1.5)
        assert calls == []
        assert scheduler.run_until_idle() == 1
        assert calls == ["y"]

    def test_asyncio_scheduler(self):
        calls = []

        async def main():
            scheduler = AsyncioScheduler()
            scheduler.call_later(0.01, calls.append, 1)
            cancelled = scheduler.call_later(0.01, calls.append, 2)
            cancelled.cancel()
            await asyncio.sleep(0.05)

        asyncio.run(main())
        assert calls == [1]


class TestHistory:
    """Test the match history store"""

    def record(self, n):
        return MatchRecord.now(
            room_label="Singleplayer",
            winner_name=f"P{n}",
            winning_hand_labels="兵 兵 兵 兵 兵",
            loser_name=None,
            scores=[{"name": f"P{n}", "chips": 100 + n}],
        )

    def test_newest_first_and_capped(self, tmp_path):
        store = HistoryStore(tmp_path / "history.json", limit=2)
        for n in range(3):
            assert store.record(self.record(n))
        loaded = store.load()
        assert [r.winner_name for r in loaded] == ["P2", "P1"]
        assert loaded[0].loser_name == SELF_DRAW
        raw = json.loads((tmp_path / "history.json").read_text(encoding="utf-8"))
        assert raw[0]["winning_hand_labels"] == "兵 兵 兵 兵 兵"

    def test_missing_file(self, tmp_path):
        assert HistoryStore(tmp_path / "none.json").load() == []

    def test_failures_are_swallowed(self, tmp_path):
        store = HistoryStore(tmp_path)
        assert store.record(self.record(1)) is False

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "history.json"
        path.write_text("{not json", encoding="utf-8")
        store = HistoryStore(path)
        assert store.load() == []
        assert store.record(self.record(1))
        assert len(store.load()) == 1


class TestConsole:
    """Test terminal rendering and command parsing"""

    def test_parse_commands(self):
        game = Game(seed=1)
        game.players[0].set_hand(tiles_from_labels("帥 仕 相 車 卒"))
        state = game.state
        assert parse_command("", 0, state) is None
        assert parse_command("q", 0, state) == QUIT
        assert parse_command("help", 0, state) == HELP
        assert parse_command("d", 0, state).action_type == ActionType.DRAW
        assert parse_command("restart", 0, state).action_type == ActionType.RESTART

        cut = parse_command("c 16", 0, state)
        assert cut.action_type == ActionType.CUT and cut.index == 15

        discard = parse_command("x 2", 0, state)
        assert discard.action_type == ActionType.DISCARD
        assert discard.tile == state.players[0].hand[1]

    def test_parse_errors(self):
        state = Game(seed=1).state
        with pytest.raises(ValueError):
            parse_command("zz", 0, state)
        with pytest.raises(ValueError):
            parse_command("x", 0, state)
        with pytest.raises(ValueError):
            parse_command("x 9", 0, state)
        with pytest.raises(ValueError):
            parse_command("c one", 0, state)

    def test_render_hides_other_hands(self):
        game = Game(num_players=2, seed=1, host_name="Mei")
        game.players[0].set_hand(tiles_from_labels("帥 仕"))
        game.players[1].set_hand(tiles_from_labels("將 士"))
        text = render(game.state, game.aux, 0)
        assert "Mei" in text
        assert "帥" in text
        assert "將" not in text
        assert "r=ready" in text

    def test_table_redraws_on_change(self):
        lines = []
        table = ConsoleTable(0, out=lines.append)
        game = Game(seed=1)
        table.update(game.state, game.aux)
        count = len(lines)
        table.update(game.state, game.aux)
        assert len(lines) == count
        game.step(Action(ActionType.START, 0))
        table.update(game.state, game.aux)
        assert len(lines) > count
