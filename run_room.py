#!/usr/bin/env python3
"""
Play Xiangqi Mahjong over the network.

Usage:
    # Start a relay (once, somewhere everyone can reach)
    python run_room.py relay --port 8765

    # Host a room; open seats are bots until someone joins
    python run_room.py host --relay ws://localhost:8765 --room AB12C --name Mei

    # Join a room
    python run_room.py join --relay ws://localhost:8765 --room AB12C --name Bo
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from xiangqi_mahjong.game import Game, GameMode, HOST_SEAT
from xiangqi_mahjong.rules import get_rules, RULE_SETS
from xiangqi_mahjong.scheduling import AsyncioScheduler
from xiangqi_mahjong.history import HistoryStore
from xiangqi_mahjong.console import ConsoleTable, parse_command, QUIT, HELP, HELP_TEXT
from netplay.authority import Authority
from netplay.view import RemoteView
from netplay.transport import TransportError, generate_room_code
from netplay.websocket_transport import (
    RelayServer,
    WebSocketTransport,
    DEFAULT_RELAY_HOST,
    DEFAULT_RELAY_PORT,
)

logger = logging.getLogger(__name__)

DEFAULT_RELAY_URL = f"ws://{DEFAULT_RELAY_HOST}:{DEFAULT_RELAY_PORT}"


async def read_lines():
    """Yield stdin lines without blocking the event loop."""
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line:
            return
        yield line


async def run_relay(host: str, port: int):
    relay = RelayServer(host, port)
    await relay.serve_forever()


async def run_host(relay_url: str, room: str, name: str, num_players: int, rules_name: str, history_path: str):
    rules = get_rules(rules_name)
    transport = await WebSocketTransport.host(relay_url, room)
    game = Game(
        num_players=num_players,
        mode=GameMode.MULTIPLAYER,
        rules=rules,
        scheduler=AsyncioScheduler(),
        host_name=name,
    )
    history = HistoryStore(Path(history_path), rules.history_limit) if history_path else None
    authority = Authority(game, transport=transport, history=history, room_label=f"Room {transport.room_code}")
    table = ConsoleTable(HOST_SEAT)
    authority.subscribe(lambda snapshot: table.update(snapshot.state, snapshot.aux))

    print(f"Hosting room {transport.room_code}. Share the code; type 's' when everyone is ready.")
    print(HELP_TEXT)
    table.update(game.state, game.aux)

    try:
        async for line in read_lines():
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
    finally:
        await transport.aclose()


async def run_join(relay_url: str, room: str, name: str):
    transport = await WebSocketTransport.join(relay_url, room)
    view = RemoteView(transport, name)
    table = ConsoleTable()

    def on_snapshot(snapshot):
        table.seat = view.seat
        table.update(snapshot.state, snapshot.aux)

    view.subscribe(on_snapshot)
    view.join()
    print(f"Joining room {transport.room_code} as {name}...")

    try:
        async for line in read_lines():
            if view.seat is None or view.state is None:
                print("Still waiting for a seat...")
                continue
            try:
                command = parse_command(line, view.seat, view.state)
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
            if command.action_type not in view.legal_actions():
                print("Can't do that right now")
                continue
            view.send_intent(command)
    finally:
        await transport.aclose()


def main():
    parser = argparse.ArgumentParser(
        description="Networked Xiangqi Mahjong",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python run_room.py relay
    python run_room.py host --room AB12C
    python run_room.py join --room AB12C --name Bo
        """
    )
    parser.add_argument("--verbose", action="store_true", help="Show engine and transport logging")
    sub = parser.add_subparsers(dest="command", required=True)

    relay = sub.add_parser("relay", help="Run a relay server")
    relay.add_argument("--host", type=str, default=DEFAULT_RELAY_HOST)
    relay.add_argument("--port", type=int, default=DEFAULT_RELAY_PORT)

    host = sub.add_parser("host", help="Host a room")
    host.add_argument("--relay", type=str, default=DEFAULT_RELAY_URL)
    host.add_argument("--room", type=str, default=None, help="Room code (random if omitted)")
    host.add_argument("--name", type=str, default="Host")
    host.add_argument("--players", type=int, default=4, choices=[2, 3, 4])
    host.add_argument("--rules", type=str, default="standard", choices=list(RULE_SETS))
    host.add_argument("--history", type=str, default="xiangqi_history.json",
                      help="Match history file ('' to disable)")

    join = sub.add_parser("join", help="Join a room")
    join.add_argument("--relay", type=str, default=DEFAULT_RELAY_URL)
    join.add_argument("--room", type=str, required=True)
    join.add_argument("--name", type=str, default="Guest")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose or args.command == "relay" else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        if args.command == "relay":
            asyncio.run(run_relay(args.host, args.port))
        elif args.command == "host":
            asyncio.run(run_host(
                relay_url=args.relay,
                room=args.room or generate_room_code(),
                name=args.name,
                num_players=args.players,
                rules_name=args.rules,
                history_path=args.history,
            ))
        else:
            asyncio.run(run_join(args.relay, args.room, args.name))
    except TransportError as e:
        logger.error(f"{type(e).__name__}: {e}")
        print(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nBye!")


if __name__ == "__main__":
    main()
