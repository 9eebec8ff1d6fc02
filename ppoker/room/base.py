"""
Planning Poker - Room Model Base Classes

This module defines the foundational data structures and enums used by the
room synchronization engine. All classes are immutable (frozen dataclasses)
so that snapshots can be handed from the network thread to the render loop
without copying or locking.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum

from ppoker.room.validators import sanitize_name


class Phase(Enum):
    """Voting phase of the current round."""
    VOTING = "voting"
    REVEALED = "revealed"


class Role(Enum):
    """Participation role of a player."""
    VOTER = "voter"
    SPECTATOR = "spectator"


class LogLevel(Enum):
    """Severity of a message shown in the room's message log."""
    CHAT = "chat"
    INFO = "info"
    ERROR = "error"


class LogSource(Enum):
    """Whether a log line came from the server or was produced locally."""
    SERVER = "server"
    CLIENT = "client"


@dataclass(frozen=True)
class CardValue:
    """
    A card a player has put on the table.

    Attributes:
        label: Card label exactly as it appears in the deck
        is_hidden: True when the player has voted but the value is not known
    """
    label: str
    is_hidden: bool = False

    @classmethod
    def hidden(cls) -> "CardValue":
        """Marker for a vote whose value the server has not disclosed."""
        return cls(label="", is_hidden=True)

    @property
    def numeric(self) -> Decimal | None:
        """Decimal value for numeric cards, None for special tokens."""
        if self.is_hidden:
            return None
        try:
            value = Decimal(self.label)
        except InvalidOperation:
            return None
        return value if value.is_finite() else None

    @property
    def is_special(self) -> bool:
        """True for non-numeric tokens such as '?' or a coffee cup."""
        return not self.is_hidden and self.numeric is None

    @property
    def rank(self) -> tuple:
        """Sort key: numeric cards ascending, then special tokens, then hidden."""
        if self.is_hidden:
            return (2, Decimal(0), "")
        numeric = self.numeric
        if numeric is None:
            return (1, Decimal(0), self.label)
        return (0, numeric, "")

    def __str__(self) -> str:
        return "Hidden" if self.is_hidden else self.label


@dataclass(frozen=True)
class Player:
    """
    A participant of the room.

    Attributes:
        id: Stable session id (server-assigned or generated at join time)
        name: Sanitized display name
        role: Voter or spectator
        vote: Current vote, None when the player has not voted
        connected: Connection liveness as reported by the server
    """
    id: str
    name: str
    role: Role = Role.VOTER
    vote: CardValue | None = None
    connected: bool = True

    def __post_init__(self) -> None:
        """Normalize the name and enforce that spectators never vote."""
        object.__setattr__(self, "name", sanitize_name(self.name))
        if self.role is Role.SPECTATOR and self.vote is not None:
            object.__setattr__(self, "vote", None)

    @property
    def is_voter(self) -> bool:
        return self.role is Role.VOTER

    @property
    def has_voted(self) -> bool:
        return self.vote is not None


@dataclass(frozen=True)
class Room:
    """
    Complete live state of the joined room.

    Attributes:
        name: Room identifier, also the routing key on the server
        players: Players in join order, unique by id
        phase: Current voting phase
        round_number: Monotonic round counter starting at 1
        round_started_at: Clock reading when the round began
        deck: Ordered card labels permitted in this room
        auto_reveal: Whether cards are revealed once every voter has voted
        you: Id of the local player
    """
    name: str
    players: tuple[Player, ...] = ()
    phase: Phase = Phase.VOTING
    round_number: int = 1
    round_started_at: float = 0.0
    deck: tuple[str, ...] = ()
    auto_reveal: bool = True
    you: str | None = None

    def player(self, player_id: str | None) -> Player | None:
        """Look up a player by id."""
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    @property
    def voters(self) -> tuple[Player, ...]:
        """Players that count toward reveal readiness."""
        return tuple(p for p in self.players if p.is_voter)

    @property
    def votes_in(self) -> int:
        """Number of voters with a vote on the table."""
        return sum(1 for p in self.voters if p.has_voted)

    @property
    def all_votes_in(self) -> bool:
        """True once every voter has voted (and there is at least one voter)."""
        voters = self.voters
        return bool(voters) and self.votes_in == len(voters)

    @property
    def missing_voters(self) -> tuple[Player, ...]:
        return tuple(p for p in self.voters if not p.has_voted)


@dataclass(frozen=True)
class HistoryEntry:
    """
    Record of one completed round, captured at reveal time.

    Attributes:
        round_number: Round the entry belongs to
        votes: Voters with their final votes (None for voters who abstained)
        duration: Seconds from round start to reveal
        deck: Deck in use during the round
        own_vote: The local player's vote, if any
        changed_while_viewing: Set when the live room changed while this
            entry was being inspected
    """
    round_number: int
    votes: tuple[Player, ...]
    duration: float
    deck: tuple[str, ...] = ()
    own_vote: CardValue | None = None
    changed_while_viewing: bool = False

    @property
    def average(self) -> Decimal | None:
        """Mean of all numeric votes, None when nobody played a number."""
        numbers = [
            p.vote.numeric for p in self.votes
            if p.vote is not None and p.vote.numeric is not None
        ]
        if not numbers:
            return None
        return sum(numbers, Decimal(0)) / len(numbers)

    def vote_of(self, player_id: str) -> CardValue | None:
        for player in self.votes:
            if player.id == player_id:
                return player.vote
        return None


@dataclass(frozen=True)
class LogEntry:
    """A line in the room's message log."""
    level: LogLevel
    message: str
    source: LogSource = LogSource.CLIENT
    author: str | None = None
    timestamp: float = 0.0


@dataclass(frozen=True)
class PlayerView:
    """
    Read-only view of a player for rendering.

    The vote value is only exposed once the round is revealed, except for
    the local player who always sees their own card.
    """
    id: str
    name: str
    role: Role
    has_voted: bool
    vote: CardValue | None
    is_you: bool
    connected: bool

    @property
    def rank(self) -> tuple:
        """Sort key: revealed numbers, special tokens, hidden, missing; then name."""
        if self.vote is not None:
            return (*self.vote.rank, self.name)
        if self.has_voted:
            return (2, Decimal(0), "", self.name)
        return (3, Decimal(0), "", self.name)


@dataclass(frozen=True)
class RoomView:
    """Consistent, read-only snapshot of the room handed to the renderer."""
    name: str
    phase: Phase
    round_number: int
    round_started_at: float
    deck: tuple[str, ...]
    auto_reveal: bool
    players: tuple[PlayerView, ...]
    history: tuple[HistoryEntry, ...] = ()
    log: tuple[LogEntry, ...] = ()
    votes_in: int = 0
    all_votes_in: bool = False
    connected: bool = True
    you: str | None = None
    viewing_history: int | None = None
    captured_at: float = field(default=0.0, compare=False)

    @property
    def round_elapsed(self) -> float:
        """Seconds since the current round started, as of capture time."""
        return max(0.0, self.captured_at - self.round_started_at)

    @property
    def sorted_players(self) -> tuple[PlayerView, ...]:
        return tuple(sorted(self.players, key=lambda p: p.rank))

    @property
    def me(self) -> PlayerView | None:
        for player in self.players:
            if player.is_you:
                return player
        return None

    def player(self, player_id: str) -> PlayerView | None:
        for player in self.players:
            if player.id == player_id:
                return player
        return None
