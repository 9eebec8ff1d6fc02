"""
Planning Poker - Test Configuration and Fixtures

Common fixtures and test data for all test modules.
"""

import threading
import time
from typing import Callable

import pytest

from ppoker.protocol.events import RoomSnapshot
from ppoker.room.base import CardValue, Phase, Player, Role
from ppoker.room.store import RoomStore

DECK = ("0", "1", "2", "3", "5", "8", "13", "?", "coffee")


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll a condition set by a background thread."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


# =============================================================================
# ROOM TEST DATA
# =============================================================================

@pytest.fixture
def deck() -> tuple[str, ...]:
    return DECK


@pytest.fixture
def alice() -> Player:
    return Player(id="a", name="Alice")


@pytest.fixture
def bob() -> Player:
    return Player(id="b", name="Bob")


@pytest.fixture
def carol() -> Player:
    return Player(id="c", name="Carol")


@pytest.fixture
def sam() -> Player:
    """A spectator."""
    return Player(id="s", name="Sam", role=Role.SPECTATOR)


@pytest.fixture
def snapshot(alice, bob, carol) -> RoomSnapshot:
    """Three voters, nobody has voted, the local player is Alice."""
    return RoomSnapshot(room="sprint-42", players=(alice, bob, carol), deck=DECK, you="a")


@pytest.fixture
def revealed_snapshot(alice, bob, carol) -> RoomSnapshot:
    players = (
        Player(id="a", name="Alice", vote=CardValue("3")),
        Player(id="b", name="Bob", vote=CardValue("5")),
        carol,
    )
    return RoomSnapshot(room="sprint-42", players=players, phase=Phase.REVEALED, deck=DECK, you="a")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> RoomStore:
    return RoomStore(clock=clock)


@pytest.fixture
def joined_store(store, snapshot) -> RoomStore:
    store.apply_remote(snapshot)
    return store


@pytest.fixture
def recorder() -> "Recorder":
    return Recorder()


class Recorder:
    """Store listener collecting every published change."""

    def __init__(self) -> None:
        self.payloads = []
        self._lock = threading.Lock()

    def __call__(self, payload) -> None:
        with self._lock:
            self.payloads.append(payload)

    @property
    def changes(self) -> list:
        with self._lock:
            return [p.change for p in self.payloads]


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    return wait_for
