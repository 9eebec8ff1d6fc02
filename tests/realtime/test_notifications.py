"""Tests for ppoker/realtime/notifications.py — when the user gets alerted."""

import logging
from unittest.mock import MagicMock

import pytest

from ppoker.protocol.events import PhaseChanged, PlayerJoined, RoomSnapshot, VoteCast
from ppoker.realtime.notifications import (
    Notification,
    NotificationKind,
    NotificationScheduler,
    is_last_missing_voter,
    terminal_bell_notifier,
)
from ppoker.room.base import CardValue, Phase, Player, Role
from ppoker.room.store import RoomStore


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def scheduler(notifier):
    return NotificationScheduler(notifier)


@pytest.fixture
def watched_store(store, scheduler, snapshot):
    store.subscribe(scheduler)
    store.apply_remote(snapshot)
    return store


def _kinds(notifier):
    return [call.args[0].kind for call in notifier.call_args_list]


class TestLastVoter:
    def test_fires_when_only_you_are_missing(self, watched_store, notifier):
        watched_store.apply_remote(VoteCast("b"))
        assert notifier.call_count == 0

        watched_store.apply_remote(VoteCast("c"))

        assert _kinds(notifier) == [NotificationKind.LAST_VOTER]
        notification = notifier.call_args.args[0]
        assert notification.player_name == "Alice"
        assert "last" in notification.body

    def test_fires_once_per_round(self, watched_store, notifier):
        watched_store.apply_remote(VoteCast("b"))
        watched_store.apply_remote(VoteCast("c"))
        watched_store.apply_remote(PlayerJoined(Player(id="s", name="Sam", role=Role.SPECTATOR)))

        assert _kinds(notifier) == [NotificationKind.LAST_VOTER]

    def test_fires_again_next_round(self, watched_store, notifier):
        watched_store.apply_remote(VoteCast("b"))
        watched_store.apply_remote(VoteCast("c"))
        watched_store.apply_remote(PhaseChanged(Phase.REVEALED))
        watched_store.apply_remote(PhaseChanged(Phase.VOTING))
        watched_store.apply_remote(VoteCast("b"))
        watched_store.apply_remote(VoteCast("c"))

        assert _kinds(notifier) == [
            NotificationKind.LAST_VOTER,
            NotificationKind.REVEALED,
            NotificationKind.LAST_VOTER,
        ]

    def test_not_for_a_lone_voter(self, store):
        store.apply_remote(RoomSnapshot(room="r", players=(Player(id="a", name="Alice"),), you="a"))
        assert not is_last_missing_voter(store.snapshot())

    def test_not_for_spectators(self, store):
        store.apply_remote(RoomSnapshot(
            room="r",
            players=(
                Player(id="a", name="Alice", vote=CardValue.hidden()),
                Player(id="b", name="Bob"),
                Player(id="s", name="Sam", role=Role.SPECTATOR),
            ),
            you="s",
        ))
        assert not is_last_missing_voter(store.snapshot())

    def test_not_when_someone_else_is_missing(self, watched_store):
        watched_store.apply_remote(VoteCast("a"))
        watched_store.apply_remote(VoteCast("b"))
        assert not is_last_missing_voter(watched_store.snapshot())


class TestOtherAlerts:
    def test_reveal(self, watched_store, notifier):
        watched_store.apply_remote(PhaseChanged(Phase.REVEALED))
        assert _kinds(notifier) == [NotificationKind.REVEALED]

    def test_connection_lost_and_regained(self, watched_store, notifier):
        watched_store.set_connected(False)
        watched_store.set_connected(True)
        assert _kinds(notifier) == [NotificationKind.DISCONNECTED, NotificationKind.RECONNECTED]


class TestSuppression:
    def test_suppressed_while_focused(self, watched_store, scheduler, notifier, caplog):
        scheduler.has_focus = True

        with caplog.at_level(logging.INFO, logger="ppoker.realtime.notifications"):
            watched_store.apply_remote(PhaseChanged(Phase.REVEALED))

        notifier.assert_not_called()
        assert "has focus" in caplog.text

    def test_suppressed_when_disabled(self, store, notifier, snapshot):
        scheduler = NotificationScheduler(notifier, enabled=False)
        store.subscribe(scheduler)
        store.apply_remote(snapshot)

        store.apply_remote(PhaseChanged(Phase.REVEALED))

        notifier.assert_not_called()

    def test_suppressed_last_voter_alert_still_counts(self, watched_store, scheduler, notifier):
        scheduler.has_focus = True
        watched_store.apply_remote(VoteCast("b"))
        watched_store.apply_remote(VoteCast("c"))
        scheduler.has_focus = False

        watched_store.apply_remote(PlayerJoined(Player(id="s", name="Sam", role=Role.SPECTATOR)))

        notifier.assert_not_called()

    def test_failing_notifier_is_logged(self, watched_store, notifier, caplog):
        notifier.side_effect = OSError("no display")

        with caplog.at_level(logging.ERROR, logger="ppoker.realtime.notifications"):
            watched_store.apply_remote(PhaseChanged(Phase.REVEALED))

        assert "Failed to send notification" in caplog.text
        assert watched_store.snapshot().phase is Phase.REVEALED


class TestTerminalBell:
    def test_rings_bell(self, capsys):
        terminal_bell_notifier(Notification(NotificationKind.REVEALED, "Planning Poker", "Cards revealed"))

        assert "\a" in capsys.readouterr().err


def test_scheduler_is_a_store_listener(notifier, snapshot):
    store = RoomStore()
    store.subscribe(NotificationScheduler(notifier))
    store.apply_remote(snapshot)
    store.apply_remote(PhaseChanged(Phase.REVEALED))
    assert notifier.call_count == 1
