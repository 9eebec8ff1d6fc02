"""
Planning Poker - Protocol Event Definitions

Tagged variants exchanged with the relay server. The same event types
travel in both directions: the server broadcasts them, and local intents
are sent as the event they are expected to produce.
"""

from dataclasses import dataclass, field
from typing import Any, Union

from ppoker.room.base import CardValue, LogLevel, Phase, Player


@dataclass(frozen=True)
class RoomSnapshot:
    """Full room state; sent on (re)join and whenever the server resyncs a client."""

    room: str
    players: tuple[Player, ...] = ()
    phase: Phase = Phase.VOTING
    deck: tuple[str, ...] = ()
    you: str | None = None


@dataclass(frozen=True)
class PlayerJoined:
    player: Player


@dataclass(frozen=True)
class PlayerLeft:
    player_id: str


@dataclass(frozen=True)
class VoteCast:
    """A player voted. A hidden value means the server withheld the card."""

    player_id: str
    value: CardValue = field(default_factory=CardValue.hidden)


@dataclass(frozen=True)
class VoteRetracted:
    player_id: str


@dataclass(frozen=True)
class PhaseChanged:
    phase: Phase


@dataclass(frozen=True)
class PlayerRenamed:
    player_id: str
    name: str


@dataclass(frozen=True)
class ChatMessage:
    """A chat line or a server notice for the room's message log."""

    message: str
    player_id: str | None = None
    level: LogLevel = LogLevel.CHAT


@dataclass(frozen=True)
class KeepAlive:
    """Periodic server heartbeat; carries no room state."""


@dataclass(frozen=True)
class UnknownVariant:
    """A message type this client does not know; kept for forward compatibility."""

    tag: str
    payload: dict[str, Any] = field(default_factory=dict)


ProtocolEvent = Union[
    RoomSnapshot,
    PlayerJoined,
    PlayerLeft,
    VoteCast,
    VoteRetracted,
    PhaseChanged,
    PlayerRenamed,
    ChatMessage,
    KeepAlive,
    UnknownVariant,
]
