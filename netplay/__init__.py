"""
Table replication: one host authority, read-only remote views
"""

from .protocol import Message, MessageType, ProtocolError
from .transport import (
    Transport,
    LocalHub,
    LocalTransport,
    TransportError,
    RoomCodeInUse,
    ConnectionFailed,
    MalformedRoomCode,
    validate_room_code,
    generate_room_code,
)
from .authority import Authority
from .view import RemoteView, Snapshot

__all__ = [
    "Message",
    "MessageType",
    "ProtocolError",
    "Transport",
    "LocalHub",
    "LocalTransport",
    "TransportError",
    "RoomCodeInUse",
    "ConnectionFailed",
    "MalformedRoomCode",
    "validate_room_code",
    "generate_room_code",
    "Authority",
    "RemoteView",
    "Snapshot",
]
