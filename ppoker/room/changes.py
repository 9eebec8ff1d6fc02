"""
Planning Poker - Room Change Definitions

Change kinds published by the room store after every mutation, and the
classifier that maps a folded protocol event onto one of them.
"""

from dataclasses import dataclass
from enum import Enum, auto

from ppoker.protocol.events import (
    PhaseChanged,
    PlayerJoined,
    PlayerLeft,
    PlayerRenamed,
    ProtocolEvent,
    VoteCast,
    VoteRetracted,
)
from ppoker.room.base import Phase, Room, RoomView


class RoomChange(Enum):
    """Transitions the store can report to its observers."""

    JOINED = auto()
    SNAPSHOT = auto()
    PLAYER_JOINED = auto()
    PLAYER_LEFT = auto()
    PLAYER_RENAMED = auto()
    VOTE_CAST = auto()
    VOTE_RETRACTED = auto()
    REVEALED = auto()
    NEW_ROUND = auto()
    VOTES_CLEARED = auto()
    MESSAGE = auto()
    CONNECTION_LOST = auto()
    RECONNECTED = auto()


@dataclass(frozen=True)
class ChangePayload:
    """A published transition together with the view it produced."""

    change: RoomChange
    view: RoomView
    player_id: str | None = None
    local: bool = False


_EVENT_CHANGE_MAP: dict[type, RoomChange] = {
    PlayerJoined: RoomChange.PLAYER_JOINED,
    PlayerLeft: RoomChange.PLAYER_LEFT,
    PlayerRenamed: RoomChange.PLAYER_RENAMED,
    VoteCast: RoomChange.VOTE_CAST,
    VoteRetracted: RoomChange.VOTE_RETRACTED,
}

# Changes after which reveal readiness has to be re-evaluated
VOTE_AFFECTING: frozenset[RoomChange] = frozenset({
    RoomChange.JOINED,
    RoomChange.SNAPSHOT,
    RoomChange.PLAYER_JOINED,
    RoomChange.PLAYER_LEFT,
    RoomChange.VOTE_CAST,
    RoomChange.VOTE_RETRACTED,
    RoomChange.NEW_ROUND,
    RoomChange.VOTES_CLEARED,
})


def classify_room_change(
    event: ProtocolEvent, before: Room, after: Room
) -> RoomChange | None:
    """Determine the room change produced by folding an event, if any."""
    if before == after:
        return None

    if isinstance(event, PhaseChanged):
        if before.phase is Phase.VOTING and after.phase is Phase.REVEALED:
            return RoomChange.REVEALED
        if after.round_number > before.round_number:
            return RoomChange.NEW_ROUND
        return RoomChange.VOTES_CLEARED

    return _EVENT_CHANGE_MAP.get(type(event))


def event_player_id(event: ProtocolEvent) -> str | None:
    """Id of the player an event is about, if it concerns one player."""
    if isinstance(event, PlayerJoined):
        return event.player.id
    return getattr(event, "player_id", None)
