"""
Transport boundary.

The replication layer needs only two things from a transport:
``send(message, target=None)`` and an ``on_message(message, peer)`` callback.
How peers find each other is the transport's business; rooms are addressed
by five-character codes.

Routing is a star: the host reaches every guest (or one guest by peer id),
and a guest reaches only the host.
"""

import logging
import random
import re
import string
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

from .protocol import Message, ProtocolError

logger = logging.getLogger(__name__)

HOST_PEER = "host"
ROOM_CODE_LENGTH = 5
ROOM_CODE_PATTERN = re.compile(r"^[A-Z0-9]{5}$")

MessageCallback = Callable[[Message, str], None]


class TransportError(Exception):
    """Base class for the errors shown to a user while hosting or joining."""


class RoomCodeInUse(TransportError):
    pass


class ConnectionFailed(TransportError):
    pass


class MalformedRoomCode(TransportError):
    pass


def validate_room_code(code: str) -> str:
    """Normalize a typed room code, raising MalformedRoomCode if it is not valid."""
    normalized = (code or "").strip().upper()
    if not ROOM_CODE_PATTERN.match(normalized):
        raise MalformedRoomCode(f"Room codes are {ROOM_CODE_LENGTH} letters or digits, got {code!r}")
    return normalized


def generate_room_code(rng: Optional[random.Random] = None) -> str:
    alphabet = string.ascii_uppercase + string.digits
    return "".join((rng or random).choice(alphabet) for _ in range(ROOM_CODE_LENGTH))


class Transport(ABC):
    """
    Abstract point-to-point channel.

    Implementations call ``_deliver`` for every decoded inbound message.
    """

    def __init__(self, peer_id: str, room_code: str):
        self.peer_id = peer_id
        self.room_code = room_code
        self._on_message: Optional[MessageCallback] = None

    @property
    def is_host(self) -> bool:
        return self.peer_id == HOST_PEER

    def set_on_message(self, callback: MessageCallback) -> None:
        self._on_message = callback

    def _deliver(self, message: Message, sender: str) -> None:
        if self._on_message is None:
            logger.debug(f"{self.peer_id}: no handler for {message.type.value}")
            return
        self._on_message(message, sender)

    @abstractmethod
    def send(self, message: Message, target: Optional[str] = None) -> None:
        """Fire-and-forget; a lost message is superseded by the next snapshot."""
        pass

    @abstractmethod
    def close(self) -> None:
        pass


class LocalTransport(Transport):
    """In-process transport attached to a LocalHub."""

    def __init__(self, hub: 'LocalHub', peer_id: str, room_code: str):
        super().__init__(peer_id, room_code)
        self.hub = hub
        self.closed = False

    def send(self, message: Message, target: Optional[str] = None) -> None:
        if self.closed:
            logger.warning(f"{self.peer_id}: send on closed transport dropped")
            return
        self.hub.route(self.room_code, self.peer_id, message.to_json(), target)

    def receive(self, raw: str, sender: str) -> None:
        if self.closed:
            return
        try:
            message = Message.from_json(raw)
        except ProtocolError as e:
            logger.warning(f"{self.peer_id}: dropping malformed message from {sender}: {e}")
            return
        logger.debug(f"{self.peer_id} <- {sender}: {message.type.value}")
        self._deliver(message, sender)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.hub.leave(self.room_code, self.peer_id)


class LocalHub:
    """
    In-memory rooms with synchronous delivery.

    Messages are still encoded to JSON and decoded on receipt, so the wire
    codec is exercised exactly as it is over a socket.
    """

    def __init__(self):
        self.rooms: Dict[str, Dict[str, LocalTransport]] = {}
        self._next_peer = 1

    def host(self, room_code: str) -> LocalTransport:
        code = validate_room_code(room_code)
        if code in self.rooms:
            raise RoomCodeInUse(f"Room {code} is already hosted")
        transport = LocalTransport(self, HOST_PEER, code)
        self.rooms[code] = {HOST_PEER: transport}
        logger.info(f"Hosting room {code}")
        return transport

    def join(self, room_code: str) -> LocalTransport:
        code = validate_room_code(room_code)
        if code not in self.rooms:
            raise ConnectionFailed(f"No room {code}")
        peer_id = f"peer-{self._next_peer}"
        self._next_peer += 1
        transport = LocalTransport(self, peer_id, code)
        self.rooms[code][peer_id] = transport
        logger.info(f"{peer_id} joined room {code}")
        return transport

    def leave(self, room_code: str, peer_id: str) -> None:
        room = self.rooms.get(room_code)
        if room is None:
            return
        room.pop(peer_id, None)
        if peer_id == HOST_PEER:
            for guest in list(room.values()):
                guest.closed = True
            del self.rooms[room_code]
            logger.info(f"Room {room_code} closed")

    def route(self, room_code: str, sender: str, raw: str, target: Optional[str]) -> None:
        room = self.rooms.get(room_code)
        if room is None:
            return
        if sender != HOST_PEER:
            recipients = [room[HOST_PEER]] if HOST_PEER in room else []
        elif target is not None:
            recipients = [room[target]] if target in room else []
        else:
            recipients = [t for peer, t in room.items() if peer != HOST_PEER]
        for transport in recipients:
            transport.receive(raw, sender)
