"""
Planning Poker - Notification Scheduler

Watches room changes and decides when the user should be alerted. Delivery
is fire-and-forget: a notifier that fails is logged and otherwise ignored.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable

from ppoker.room.base import Phase, Role, RoomView
from ppoker.room.changes import ChangePayload, RoomChange

logger = logging.getLogger(__name__)

APP_TITLE = "Planning Poker"


class NotificationKind(Enum):
    REVEALED = auto()
    LAST_VOTER = auto()
    DISCONNECTED = auto()
    RECONNECTED = auto()


@dataclass(frozen=True)
class Notification:
    """A request for the platform layer to alert the user."""

    kind: NotificationKind
    title: str
    body: str
    player_name: str | None = None


Notifier = Callable[[Notification], None]


def terminal_bell_notifier(notification: Notification) -> None:
    """Ring the terminal bell; the message itself goes to the log."""
    logger.info("%s: %s", notification.title, notification.body)
    sys.stderr.write("\a")
    sys.stderr.flush()


def is_last_missing_voter(view: RoomView) -> bool:
    """True when the local voter is the single voter without a card."""
    me = view.me
    if me is None or me.role is not Role.VOTER or view.phase is not Phase.VOTING:
        return False
    missing = [p for p in view.players if p.role is Role.VOTER and not p.has_voted]
    return len(view.players) > 1 and len(missing) == 1 and missing[0].is_you


class NotificationScheduler:
    """Room store listener raising at most one alert per qualifying change.

    Alerts are suppressed while the UI has focus or when notifications are
    disabled; a suppressed alert still counts as delivered for its round.
    """

    def __init__(self, notifier: Notifier = terminal_bell_notifier, *, enabled: bool = True) -> None:
        self._notifier = notifier
        self.enabled = enabled
        self.has_focus = False
        self._last_voter_round: int | None = None

    def __call__(self, payload: ChangePayload) -> None:
        notification = self._classify(payload)
        if notification is not None:
            self._deliver(notification)

    def _classify(self, payload: ChangePayload) -> Notification | None:
        view = payload.view
        me = view.me
        name = me.name if me else None

        if payload.change is RoomChange.REVEALED:
            return Notification(NotificationKind.REVEALED, APP_TITLE, "Cards have been revealed.", name)
        if payload.change is RoomChange.CONNECTION_LOST:
            return Notification(NotificationKind.DISCONNECTED, APP_TITLE, "Connection to the server lost.", name)
        if payload.change is RoomChange.RECONNECTED:
            return Notification(NotificationKind.RECONNECTED, APP_TITLE, "Reconnected to the server.", name)

        if is_last_missing_voter(view) and self._last_voter_round != view.round_number:
            self._last_voter_round = view.round_number
            return Notification(
                NotificationKind.LAST_VOTER, APP_TITLE, "Your vote is the last one missing.", name
            )
        return None

    def _deliver(self, notification: Notification) -> None:
        if not self.enabled:
            logger.info("Skipping %s notification because notifications are disabled.", notification.kind.name)
            return
        if self.has_focus:
            logger.info("Skipping %s notification because the application has focus.", notification.kind.name)
            return

        logger.info("Notifying user: %s", notification.body)
        try:
            self._notifier(notification)
        except Exception:
            logger.exception("Failed to send notification")
