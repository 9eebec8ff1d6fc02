"""
Planning Poker - Room Synchronization Engine

High-level manager that ties the connection to the room store: applies
server events in delivery order on a background thread, sends local
intents with optimistic updates, triggers auto-reveal and reconnects with
bounded backoff when the link drops.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from enum import Enum, auto

from ppoker.protocol.events import ProtocolEvent
from ppoker.realtime.connection import (
    ConnectError,
    ConnectionManager,
    ConnectionParams,
    Rejected,
    SendError,
    SessionHandle,
)
from ppoker.realtime.notifications import NotificationScheduler, Notifier, terminal_bell_notifier
from ppoker.realtime.retry import RetryPolicy
from ppoker.room.base import Phase, RoomView
from ppoker.room.changes import VOTE_AFFECTING
from ppoker.room.intents import CastVote, LocalIntent, Rename, Reset, RetractVote, Reveal, SendChat
from ppoker.room.store import RoomStore

logger = logging.getLogger(__name__)


class EngineState(Enum):
    CONNECTING = auto()
    JOINED = auto()
    DISCONNECTED = auto()
    TERMINATED = auto()


class SessionFailed(Exception):
    """Fatal: the room could not be (re)joined and the session is over."""


class SyncEngine:
    """Drives one room session from join to quit.

    States: CONNECTING -> JOINED -> DISCONNECTED -> CONNECTING (retry) or
    TERMINATED. The engine keeps no room state of its own; the store
    reconciles optimistic changes against the server's events.
    """

    def __init__(
        self,
        params: ConnectionParams,
        *,
        connector: ConnectionManager | None = None,
        store: RoomStore | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._params = params
        self._owns_connector = connector is None
        self._connector = connector or ConnectionManager()
        self._store = store or RoomStore(auto_reveal=params.auto_reveal)
        self._retry_policy = retry_policy or RetryPolicy()

        self._state = EngineState.CONNECTING
        self._state_lock = threading.Lock()
        self._intent_lock = threading.RLock()
        self._session: SessionHandle | None = None
        self._stop = threading.Event()
        self._done = threading.Event()
        self._thread: threading.Thread | None = None
        self._failure: SessionFailed | None = None

    # -- Properties ------------------------------------------------------

    @property
    def store(self) -> RoomStore:
        return self._store

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def phase(self) -> Phase | None:
        view = self._store.snapshot()
        return view.phase if view is not None else None

    @property
    def failure(self) -> SessionFailed | None:
        return self._failure

    def snapshot(self) -> RoomView | None:
        return self._store.snapshot()

    def _set_state(self, state: EngineState) -> None:
        with self._state_lock:
            if self._state is EngineState.TERMINATED or self._state is state:
                return
            logger.debug("Engine state %s -> %s", self._state.name, state.name)
            self._state = state

    # -- Lifecycle -------------------------------------------------------

    def start(self) -> RoomView:
        """Join the room and start applying server events in the background.

        Returns:
            The room as of the initial snapshot.

        Raises:
            SessionFailed: If the room cannot be joined.
        """
        session = self._connect()
        if session is None or not self._join(session):
            raise SessionFailed("Join was cancelled.")

        self._thread = threading.Thread(target=self._run, daemon=True, name="room-sync")
        self._thread.start()
        return self._store.snapshot()

    def quit(self, timeout: float = 5.0) -> None:
        """Leave the room: stop the reader, close the link, drop the room."""
        self._stop.set()
        with self._intent_lock:
            session = self._session
        if session is not None:
            session.close(timeout)
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        with self._intent_lock:
            self._store.clear()
        if self._owns_connector:
            self._connector.shutdown()
        self._set_state(EngineState.TERMINATED)
        self._done.set()
        logger.info("Left room %s", self._params.room)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the session ends.

        Returns:
            False if the timeout expired first.

        Raises:
            SessionFailed: If the session ended because reconnecting failed.
        """
        finished = self._done.wait(timeout)
        if self._failure is not None:
            raise self._failure
        return finished

    def _connect(self) -> SessionHandle | None:
        """Connect with bounded retry; None if quit was requested meanwhile."""
        delays = self._retry_policy.delays()
        player = self._params.player
        while not self._stop.is_set():
            self._set_state(EngineState.CONNECTING)
            try:
                return self._connector.connect(self._params.server, self._params.room, player)
            except Rejected as exc:
                raise SessionFailed(f"Server rejected room {self._params.room!r}: {exc}") from exc
            except ConnectError as exc:
                delay = next(delays, None)
                if delay is None:
                    raise SessionFailed(
                        f"Could not connect to {self._params.server} "
                        f"after {self._retry_policy.max_attempts + 1} attempt(s): {exc}"
                    ) from exc
                logger.warning("Connection attempt failed (%s), retrying in %.1fs", exc, delay)
                if self._stop.wait(delay):
                    return None
        return None

    def _join(self, session: SessionHandle) -> bool:
        """Adopt a fresh session; False (and the session closed) after quit."""
        snapshot = session.initial_snapshot
        if snapshot.you is None:
            snapshot = replace(snapshot, you=self._params.player.id)

        # Quit clears the store under the same lock, so a late join cannot revive the room
        with self._intent_lock:
            if self._stop.is_set():
                logger.info("Quit requested while joining, closing the new connection")
                session.close()
                return False
            self._session = session
            self._store.apply_remote(snapshot)
            self._set_state(EngineState.JOINED)
            self._store.set_connected(True)
        self._maybe_auto_reveal()
        return True

    def _run(self) -> None:
        """Drain inbound events in delivery order; reconnect when the link drops."""
        try:
            while not self._stop.is_set():
                session = self._session
                for event in session.events():
                    self._on_remote(event)
                if self._stop.is_set():
                    break

                logger.warning("Connection to room %s lost (%s)", self._params.room, session.close_reason)
                self._set_state(EngineState.DISCONNECTED)
                self._store.set_connected(False)
                try:
                    session = self._connect()
                except SessionFailed as exc:
                    logger.error("Giving up on room %s: %s", self._params.room, exc)
                    self._failure = exc
                    break
                if session is None or not self._join(session):
                    break
                logger.info("Rejoined room %s", self._params.room)
        finally:
            self._set_state(EngineState.TERMINATED)
            self._done.set()

    # -- Remote events ---------------------------------------------------

    def _on_remote(self, event: ProtocolEvent) -> None:
        try:
            with self._intent_lock:
                if self._stop.is_set():
                    return
                payload = self._store.apply_remote(event)
            if payload is not None and payload.change in VOTE_AFFECTING:
                self._maybe_auto_reveal()
        except Exception:
            logger.exception("Error applying %s", type(event).__name__)

    # -- Local intents ---------------------------------------------------

    def submit(self, intent: LocalIntent) -> bool:
        """Apply a local intent optimistically and send it to the server.

        Returns:
            True if the intent was queued for the server; False if it had
            no effect or was dropped because the link is down.

        Raises:
            InvalidCardError: If a vote names a card outside the deck.
        """
        with self._intent_lock:
            session = self._session
            if self._state is not EngineState.JOINED or session is None or session.closed:
                logger.warning("Dropping %s: not connected", type(intent).__name__)
                return False

            event = self._store.apply_local_intent(intent)
            if event is None:
                return False

            try:
                session.send(event, key=intent.coalesce_key)
            except SendError as exc:
                logger.warning("Could not send %s: %s", type(intent).__name__, exc)
                return False

        if isinstance(intent, (CastVote, RetractVote)):
            self._maybe_auto_reveal()
        return True

    def _maybe_auto_reveal(self) -> None:
        view = self._store.snapshot()
        if view is None or not view.auto_reveal:
            return
        if view.phase is Phase.VOTING and view.all_votes_in:
            logger.info("All votes are in, revealing cards")
            self.submit(Reveal())

    def cast_vote(self, value: str) -> bool:
        return self.submit(CastVote(value))

    def retract_vote(self) -> bool:
        return self.submit(RetractVote())

    def reveal(self) -> bool:
        return self.submit(Reveal())

    def reset(self) -> bool:
        return self.submit(Reset())

    def rename(self, name: str) -> bool:
        return self.submit(Rename(name))

    def chat(self, message: str) -> bool:
        return self.submit(SendChat(message))


# -- Module-level convenience functions ----------------------------------

def join_room(
    params: ConnectionParams,
    *,
    notifier: Notifier = terminal_bell_notifier,
    notifications_enabled: bool = True,
    connector: ConnectionManager | None = None,
    retry_policy: RetryPolicy | None = None,
) -> tuple[SyncEngine, NotificationScheduler]:
    """Wire a store, notification scheduler and engine together and join.

    Convenience function for the UI layer.

    Returns:
        The running engine and its scheduler (so the UI can report focus).

    Raises:
        SessionFailed: If the room cannot be joined.
    """
    store = RoomStore(auto_reveal=params.auto_reveal)
    scheduler = NotificationScheduler(notifier, enabled=notifications_enabled)
    store.subscribe(scheduler)
    engine = SyncEngine(params, connector=connector, store=store, retry_policy=retry_policy)
    engine.start()
    return engine, scheduler

