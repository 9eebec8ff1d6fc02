"""
Planning Poker - Local Intents

Commands issued by the local user. Each intent names a coalesce key:
intents sharing a key supersede each other while they wait to be sent,
since only the latest one for that key matters.
"""

from dataclasses import dataclass
from typing import ClassVar, Union


@dataclass(frozen=True)
class CastVote:
    """Put a card on the table (or replace the current one)."""
    value: str
    coalesce_key: ClassVar[str | None] = "vote"


@dataclass(frozen=True)
class RetractVote:
    """Take the local player's card back."""
    coalesce_key: ClassVar[str | None] = "vote"


@dataclass(frozen=True)
class Reveal:
    """Reveal all cards of the current round."""
    coalesce_key: ClassVar[str | None] = "phase"


@dataclass(frozen=True)
class Reset:
    """Start a new round."""
    coalesce_key: ClassVar[str | None] = "phase"


@dataclass(frozen=True)
class Rename:
    """Change the local player's display name."""
    name: str
    coalesce_key: ClassVar[str | None] = "name"


@dataclass(frozen=True)
class SendChat:
    """Post a chat line to the room. Chat lines are never coalesced."""
    message: str
    coalesce_key: ClassVar[str | None] = None


LocalIntent = Union[CastVote, RetractVote, Reveal, Reset, Rename, SendChat]
