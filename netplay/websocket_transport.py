#!/usr/bin/env python3
"""
WebSocket transport and relay.

A small relay server brokers rooms so that neither host nor guests need to
accept inbound connections.

Handshake (first frame from a client):
    {"op": "host", "room": "AB12C"}   ->  {"op": "ok", "peer": "host"}
    {"op": "join", "room": "AB12C"}   ->  {"op": "ok", "peer": "peer-3"}
    on failure                        ->  {"op": "error", "code": "ROOM_TAKEN" | "NO_SUCH_ROOM" | "MALFORMED_ROOM"}

After the handshake every frame is a routing envelope:
    client -> relay:  {"to": "peer-3" | null, "message": {...}}
    relay -> client:  {"from": "host" | "peer-3", "message": {...}}
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from websockets.asyncio.client import connect
from websockets.asyncio.server import serve
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from .protocol import Message, ProtocolError
from .transport import (
    HOST_PEER,
    Transport,
    ConnectionFailed,
    MalformedRoomCode,
    RoomCodeInUse,
    validate_room_code,
)

logger = logging.getLogger(__name__)

DEFAULT_RELAY_HOST = "localhost"
DEFAULT_RELAY_PORT = 8765
HANDSHAKE_TIMEOUT = 10.0

ERROR_ROOM_TAKEN = "ROOM_TAKEN"
ERROR_NO_SUCH_ROOM = "NO_SUCH_ROOM"
ERROR_MALFORMED_ROOM = "MALFORMED_ROOM"


@dataclass
class _Room:
    host: Any
    guests: Dict[str, Any] = field(default_factory=dict)


class RelayServer:
    """
    Routes envelopes between a room's host and its guests.

    Usage:
        relay = RelayServer(port=0)
        await relay.start()
        ...
        await relay.stop()
    """

    def __init__(self, host: str = DEFAULT_RELAY_HOST, port: int = DEFAULT_RELAY_PORT):
        self.host = host
        self.port = port
        self.rooms: Dict[str, _Room] = {}
        self._server = None
        self._next_peer = 1

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}"

    async def start(self) -> None:
        self._server = await serve(self._handler, self.host, self.port)
        # Port 0 binds an ephemeral port
        self.port = self._server.sockets[0].getsockname()[1]
        logger.info(f"Relay listening on {self.url}")

    async def stop(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
            logger.info("Relay stopped")

    async def serve_forever(self) -> None:
        await self.start()
        try:
            await asyncio.Future()
        finally:
            await self.stop()

    async def _handler(self, connection) -> None:
        try:
            hello = json.loads(await asyncio.wait_for(connection.recv(), HANDSHAKE_TIMEOUT))
            op = hello.get("op")
            code = validate_room_code(hello.get("room", ""))
        except MalformedRoomCode:
            await self._reject(connection, ERROR_MALFORMED_ROOM)
            return
        except (ValueError, AttributeError, asyncio.TimeoutError, ConnectionClosed) as e:
            logger.warning(f"Bad handshake: {e}")
            return

        if op == "host":
            if code in self.rooms:
                await self._reject(connection, ERROR_ROOM_TAKEN)
                return
            room = _Room(host=connection)
            self.rooms[code] = room
            peer_id = HOST_PEER
        elif op == "join":
            room = self.rooms.get(code)
            if room is None:
                await self._reject(connection, ERROR_NO_SUCH_ROOM)
                return
            peer_id = f"peer-{self._next_peer}"
            self._next_peer += 1
            room.guests[peer_id] = connection
        else:
            logger.warning(f"Unknown handshake op: {op!r}")
            return

        await connection.send(json.dumps({"op": "ok", "peer": peer_id}))
        logger.info(f"{peer_id} entered room {code}")

        try:
            async for raw in connection:
                await self._route(room, peer_id, raw)
        except ConnectionClosed:
            pass
        finally:
            await self._leave(code, room, peer_id)

    async def _reject(self, connection, error_code: str) -> None:
        try:
            await connection.send(json.dumps({"op": "error", "code": error_code}))
        except ConnectionClosed:
            pass

    async def _route(self, room: _Room, sender: str, raw: str) -> None:
        try:
            envelope = json.loads(raw)
            message = envelope["message"]
            target = envelope.get("to")
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Dropping bad envelope from {sender}: {e}")
            return

        frame = json.dumps({"from": sender, "message": message}, ensure_ascii=False)
        if sender != HOST_PEER:
            recipients = [room.host]
        elif target is not None:
            recipients = [room.guests[target]] if target in room.guests else []
        else:
            recipients = list(room.guests.values())

        for recipient in recipients:
            try:
                await recipient.send(frame)
            except ConnectionClosed:
                logger.debug(f"Recipient gone while routing from {sender}")

    async def _leave(self, code: str, room: _Room, peer_id: str) -> None:
        logger.info(f"{peer_id} left room {code}")
        if peer_id != HOST_PEER:
            room.guests.pop(peer_id, None)
            return
        if self.rooms.get(code) is room:
            del self.rooms[code]
        for guest in list(room.guests.values()):
            await guest.close()


class WebSocketTransport(Transport):
    """
    Transport over a relay connection.

    Create with ``await WebSocketTransport.host(url, code)`` or
    ``await WebSocketTransport.join(url, code)``.
    """

    def __init__(self, connection, peer_id: str, room_code: str):
        super().__init__(peer_id, room_code)
        self.connection = connection
        self.connected = True
        self._receive_task: Optional[asyncio.Task] = None
        self._pending: set = set()

    @classmethod
    async def host(cls, url: str, room_code: str) -> 'WebSocketTransport':
        return await cls._open(url, "host", room_code)

    @classmethod
    async def join(cls, url: str, room_code: str) -> 'WebSocketTransport':
        return await cls._open(url, "join", room_code)

    @classmethod
    async def _open(cls, url: str, op: str, room_code: str) -> 'WebSocketTransport':
        code = validate_room_code(room_code)
        logger.info(f"Connecting to {url} ({op} {code})...")
        try:
            connection = await connect(url, open_timeout=HANDSHAKE_TIMEOUT)
        except (OSError, InvalidURI, InvalidHandshake, asyncio.TimeoutError) as e:
            logger.error(f"Connection failed: {e}")
            raise ConnectionFailed(f"Could not reach {url}: {e}") from e

        try:
            await connection.send(json.dumps({"op": op, "room": code}))
            reply = json.loads(await asyncio.wait_for(connection.recv(), HANDSHAKE_TIMEOUT))
        except (ValueError, asyncio.TimeoutError, ConnectionClosed) as e:
            await connection.close()
            logger.error(f"Handshake failed: {e}")
            raise ConnectionFailed(f"Handshake with {url} failed") from e

        if reply.get("op") != "ok":
            await connection.close()
            error_code = reply.get("code")
            if error_code == ERROR_ROOM_TAKEN:
                raise RoomCodeInUse(f"Room {code} is already hosted")
            if error_code == ERROR_MALFORMED_ROOM:
                raise MalformedRoomCode(f"Relay rejected room code {code}")
            raise ConnectionFailed(f"Room {code} not found")

        transport = cls(connection, reply["peer"], code)
        transport._receive_task = asyncio.create_task(transport._receive())
        logger.info(f"Connected to room {code} as {transport.peer_id}")
        return transport

    def send(self, message: Message, target: Optional[str] = None) -> None:
        if not self.connected:
            logger.debug(f"Not connected, dropping {message.type.value}")
            return
        frame = json.dumps({"to": target, "message": message.to_dict()}, ensure_ascii=False)
        logger.debug(f"SEND: {message.type.value} -> {target or 'all'}")
        task = asyncio.ensure_future(self._send(frame))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, frame: str) -> None:
        try:
            await self.connection.send(frame)
        except ConnectionClosed as e:
            logger.warning(f"Send failed, connection closed: {e}")
            self.connected = False

    async def flush(self) -> None:
        """Wait until every queued send has been written."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _receive(self) -> None:
        try:
            async for raw in self.connection:
                try:
                    envelope = json.loads(raw)
                    message = Message.from_dict(envelope["message"])
                    sender = envelope.get("from", HOST_PEER)
                except (ProtocolError, ValueError, KeyError, TypeError) as e:
                    logger.warning(f"Dropping malformed frame: {e}")
                    continue
                logger.debug(f"RECV: {message.type.value} <- {sender}")
                self._deliver(message, sender)
        except ConnectionClosed:
            logger.info("Connection closed")
        finally:
            self.connected = False

    def close(self) -> None:
        asyncio.ensure_future(self.aclose())

    async def aclose(self) -> None:
        self.connected = False
        if self._receive_task is not None:
            self._receive_task.cancel()
            self._receive_task = None
        await self.connection.close()
        logger.info("Disconnected from relay")
