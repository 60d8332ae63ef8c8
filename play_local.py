#!/usr/bin/env python3
"""
Play Xiangqi Mahjong against bots in the terminal.

Usage:
    python play_local.py
    python play_local.py --players 3 --name Mei --rules fast
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from xiangqi_mahjong.game import Game, GameMode, GamePhase, HOST_SEAT
from xiangqi_mahjong.rules import get_rules, RULE_SETS
from xiangqi_mahjong.scheduling import AsyncioScheduler
from xiangqi_mahjong.history import HistoryStore
from xiangqi_mahjong.console import ConsoleTable, parse_command, QUIT, HELP, HELP_TEXT
from netplay.authority import Authority

logger = logging.getLogger(__name__)


async def play(num_players: int, name: str, rules_name: str, history_path: str, seed: int = None):
    rules = get_rules(rules_name)
    game = Game(
        num_players=num_players,
        mode=GameMode.SINGLEPLAYER,
        rules=rules,
        scheduler=AsyncioScheduler(),
        seed=seed,
        host_name=name,
    )
    history = HistoryStore(Path(history_path), rules.history_limit) if history_path else None
    authority = Authority(game, history=history)
    table = ConsoleTable(HOST_SEAT)
    authority.subscribe(lambda snapshot: table.update(snapshot.state, snapshot.aux))

    print("=" * 60)
    print("🀄 Xiangqi Mahjong - Play Against Bots")
    print("=" * 60)
    print(HELP_TEXT)
    table.update(game.state, game.aux)

    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line:
            break
        try:
            command = parse_command(line, HOST_SEAT, game.state)
        except ValueError as e:
            print(e)
            continue
        if command is None:
            continue
        if command == QUIT:
            break
        if command == HELP:
            print(HELP_TEXT)
            continue

        result = authority.apply_intent(HOST_SEAT, command)
        if not result:
            print(f"Can't do that: {result.reason}")
        elif game.phase == GamePhase.GAME_OVER and game.session_over:
            print("Session over. Type 'restart' to play again or 'q' to quit.")

    print("Thanks for playing!")


def main():
    parser = argparse.ArgumentParser(description="Play Xiangqi Mahjong against bots")
    parser.add_argument("--players", type=int, default=4, choices=[2, 3, 4])
    parser.add_argument("--name", type=str, default="You")
    parser.add_argument("--rules", type=str, default="standard", choices=list(RULE_SETS))
    parser.add_argument("--history", type=str, default="xiangqi_history.json",
                        help="Match history file ('' to disable)")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--verbose", action="store_true", help="Show engine logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        asyncio.run(play(args.players, args.name, args.rules, args.history, args.seed))
    except KeyboardInterrupt:
        print("\nThanks for playing!")


if __name__ == "__main__":
    main()
