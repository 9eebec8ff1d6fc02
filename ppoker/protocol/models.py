"""
Planning Poker - Wire Models

Pydantic models that mirror the JSON payloads of the relay protocol.
Unknown fields are ignored so newer servers can extend payloads freely.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field

from ppoker.room.base import CardValue, LogLevel, Phase, Player, Role

logger = logging.getLogger(__name__)


class Envelope(BaseModel):
    """Outer frame of every message: a type discriminator and its payload."""

    type: str = Field(min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)


class WirePlayer(BaseModel):
    """A player as described on the wire.

    ``voted`` with a null ``vote`` is a vote whose value the server hides.
    """

    id: str = Field(min_length=1)
    name: str
    role: str = Role.VOTER.value
    vote: str | None = None
    voted: bool = False
    connected: bool = True

    model_config = {"extra": "ignore"}

    def to_player(self) -> Player:
        try:
            role = Role(self.role)
        except ValueError:
            logger.warning("Unknown role %r for player %s, treating as spectator", self.role, self.id)
            role = Role.SPECTATOR

        if self.vote is not None:
            vote = CardValue(self.vote)
        elif self.voted:
            vote = CardValue.hidden()
        else:
            vote = None

        return Player(
            id=self.id,
            name=self.name,
            role=role,
            vote=vote,
            connected=self.connected,
        )

    @classmethod
    def from_player(cls, player: Player) -> "WirePlayer":
        vote = player.vote
        return cls(
            id=player.id,
            name=player.name,
            role=player.role.value,
            vote=None if vote is None or vote.is_hidden else vote.label,
            voted=vote is not None,
            connected=player.connected,
        )


class RoomSnapshotPayload(BaseModel):
    room: str
    players: list[WirePlayer] = Field(default_factory=list)
    phase: Phase = Phase.VOTING
    deck: list[str] = Field(default_factory=list)
    you: str | None = None

    model_config = {"extra": "ignore"}


class PlayerJoinedPayload(BaseModel):
    player: WirePlayer

    model_config = {"extra": "ignore"}


class PlayerRefPayload(BaseModel):
    """Payload of player_left and vote_retracted."""

    player_id: str = Field(min_length=1)

    model_config = {"extra": "ignore"}


class VoteCastPayload(BaseModel):
    player_id: str = Field(min_length=1)
    value: str | None = None

    model_config = {"extra": "ignore"}


class PhaseChangedPayload(BaseModel):
    phase: Phase

    model_config = {"extra": "ignore"}


class PlayerRenamedPayload(BaseModel):
    player_id: str = Field(min_length=1)
    name: str

    model_config = {"extra": "ignore"}


class ChatMessagePayload(BaseModel):
    message: str
    player_id: str | None = None
    level: str = LogLevel.CHAT.value

    model_config = {"extra": "ignore"}

    def log_level(self) -> LogLevel:
        try:
            return LogLevel(self.level)
        except ValueError:
            logger.debug("Unknown log level %r, showing as info", self.level)
            return LogLevel.INFO
