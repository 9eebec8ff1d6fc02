"""
Planning Poker Room Model.

Immutable room data, local intents and input validation. The store lives
in ppoker.room.store.
"""

from ppoker.room.base import (
    CardValue,
    HistoryEntry,
    LogEntry,
    LogLevel,
    Phase,
    Player,
    PlayerView,
    Role,
    Room,
    RoomView,
)
from ppoker.room.intents import CastVote, Rename, Reset, RetractVote, Reveal, SendChat
from ppoker.room.validators import InvalidCardError

__all__ = [
    # Data Classes
    "CardValue",
    "HistoryEntry",
    "LogEntry",
    "Player",
    "PlayerView",
    "Room",
    "RoomView",
    # Enums
    "LogLevel",
    "Phase",
    "Role",
    # Intents
    "CastVote",
    "Rename",
    "Reset",
    "RetractVote",
    "Reveal",
    "SendChat",
    # Errors
    "InvalidCardError",
]
