"""
Planning Poker Protocol.

Wire events exchanged with the relay server and their JSON codec.
"""

from ppoker.protocol.codec import MalformedMessage, decode, encode
from ppoker.protocol.events import (
    ChatMessage,
    KeepAlive,
    PhaseChanged,
    PlayerJoined,
    PlayerLeft,
    PlayerRenamed,
    ProtocolEvent,
    RoomSnapshot,
    UnknownVariant,
    VoteCast,
    VoteRetracted,
)

__all__ = [
    # Codec
    "MalformedMessage",
    "decode",
    "encode",
    # Events
    "ChatMessage",
    "KeepAlive",
    "PhaseChanged",
    "PlayerJoined",
    "PlayerLeft",
    "PlayerRenamed",
    "ProtocolEvent",
    "RoomSnapshot",
    "UnknownVariant",
    "VoteCast",
    "VoteRetracted",
]
