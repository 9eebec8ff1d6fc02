"""
Planning Poker - Room State Store

Holds the single authoritative model of the joined room and the
client-local round history. All mutations are serialized behind one lock;
readers get an immutable RoomView that is swapped in atomically after each
mutation, so rendering never waits on the network thread.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import replace
from typing import Callable

from ppoker.protocol.events import (
    ChatMessage,
    KeepAlive,
    PhaseChanged,
    PlayerJoined,
    PlayerLeft,
    PlayerRenamed,
    ProtocolEvent,
    RoomSnapshot,
    UnknownVariant,
    VoteCast,
    VoteRetracted,
)
from ppoker.room.base import (
    CardValue,
    HistoryEntry,
    LogEntry,
    LogLevel,
    LogSource,
    Phase,
    Player,
    PlayerView,
    Room,
    RoomView,
)
from ppoker.room.changes import (
    ChangePayload,
    RoomChange,
    classify_room_change,
    event_player_id,
)
from ppoker.room.intents import (
    CastVote,
    LocalIntent,
    Rename,
    Reset,
    RetractVote,
    Reveal,
    SendChat,
)
from ppoker.room.validators import InvalidCardError, validate_card, validate_display_name

logger = logging.getLogger(__name__)

Listener = Callable[[ChangePayload], None]


class RoomStore:
    """Authoritative in-memory room model with single-writer mutation.

    Remote events and local intents go through the same fold, so an
    optimistic local update looks exactly like the server's echo of it.
    Whatever the server says last wins.
    """

    def __init__(
        self,
        *,
        auto_reveal: bool = True,
        clock: Callable[[], float] = time.monotonic,
        max_log_entries: int = 200,
    ) -> None:
        self._auto_reveal = auto_reveal
        self._clock = clock
        self._lock = threading.RLock()
        self._room: Room | None = None
        self._history: list[HistoryEntry] = []
        self._log: deque[LogEntry] = deque(maxlen=max_log_entries)
        self._viewing: int | None = None
        self._connected = False
        # Phase set by a local intent that the server has not confirmed yet
        self._pending_phase: Phase | None = None
        self._view: RoomView | None = None
        self._listeners: list[Listener] = []

    # -- Observers -------------------------------------------------------

    def subscribe(self, listener: Listener) -> None:
        """Register a callback invoked after every published change.

        Callbacks run on the mutating thread while the write lock is held,
        which keeps their order identical to the order of mutations.
        """
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    # -- Reads -----------------------------------------------------------

    @property
    def has_room(self) -> bool:
        return self._view is not None

    def snapshot(self) -> RoomView | None:
        """Return a consistent read-only view, or None before joining."""
        view = self._view
        if view is None:
            return None
        return replace(view, captured_at=self._clock())

    @property
    def history(self) -> tuple[HistoryEntry, ...]:
        view = self._view
        return view.history if view is not None else ()

    # -- Remote path -----------------------------------------------------

    def apply_remote(self, event: ProtocolEvent) -> ChangePayload | None:
        """Fold an inbound server event into the room.

        Returns the published change, or None when the event left the room
        untouched.
        """
        with self._lock:
            if isinstance(event, UnknownVariant):
                logger.info("Ignoring unknown message type %r", event.tag)
                return None
            if isinstance(event, KeepAlive):
                return None
            if isinstance(event, RoomSnapshot):
                return self._apply_snapshot(event)
            if self._room is None:
                logger.warning("Dropping %s received before the room snapshot", type(event).__name__)
                return None
            if isinstance(event, ChatMessage):
                return self._append_chat(event, LogSource.SERVER)
            if isinstance(event, PhaseChanged):
                # The server has spoken on the phase, confirmed or not
                self._pending_phase = None
            return self._fold(event, local=False)

    # -- Local path ------------------------------------------------------

    def apply_local_intent(self, intent: LocalIntent) -> ProtocolEvent | None:
        """Apply a local intent optimistically.

        Returns the protocol event to send to the server, or None when the
        intent has no effect (e.g. revealing an already revealed round).

        Raises:
            InvalidCardError: If a vote names a card outside the deck.
            ValueError: If a rename carries no printable characters.
            RuntimeError: If called before a room has been joined.
        """
        with self._lock:
            room = self._room
            if room is None or room.you is None:
                raise RuntimeError("Cannot act on a room before joining it.")

            event = self._event_for(intent, room)
            if event is None:
                return None
            # Chat lines are echoed back by the server into the log
            if isinstance(event, ChatMessage):
                return event

            payload = self._fold(event, local=True)
            if payload is None:
                return None
            if isinstance(event, PhaseChanged):
                self._pending_phase = event.phase
            return event

    def _event_for(self, intent: LocalIntent, room: Room) -> ProtocolEvent | None:
        you = room.you
        if isinstance(intent, CastVote):
            try:
                label = validate_card(intent.value, room.deck)
            except InvalidCardError as exc:
                self.add_log(LogLevel.ERROR, str(exc))
                raise
            return VoteCast(player_id=you, value=CardValue(label))
        if isinstance(intent, RetractVote):
            return VoteRetracted(player_id=you)
        if isinstance(intent, Reveal):
            return PhaseChanged(phase=Phase.REVEALED)
        if isinstance(intent, Reset):
            return PhaseChanged(phase=Phase.VOTING) if room.phase is Phase.REVEALED else None
        if isinstance(intent, Rename):
            return PlayerRenamed(player_id=you, name=validate_display_name(intent.name))
        if isinstance(intent, SendChat):
            message = intent.message.strip()
            return ChatMessage(message=message, player_id=you) if message else None
        raise TypeError(f"Unsupported intent {type(intent).__name__}")

    # -- Message log -----------------------------------------------------

    def add_log(self, level: LogLevel, message: str) -> ChangePayload | None:
        """Record a client-side line in the message log."""
        with self._lock:
            self._append_log(LogEntry(level, message, timestamp=self._clock()))
            return self._publish(RoomChange.MESSAGE)

    def _append_chat(self, event: ChatMessage, source: LogSource) -> ChangePayload | None:
        author = self._room.player(event.player_id) if self._room else None
        self._append_log(LogEntry(
            level=event.level,
            message=event.message,
            source=source,
            author=author.name if author else None,
            timestamp=self._clock(),
        ))
        return self._publish(RoomChange.MESSAGE, player_id=event.player_id)

    def _append_log(self, entry: LogEntry) -> None:
        self._log.append(entry)

    # -- Connection state ------------------------------------------------

    def set_connected(self, connected: bool) -> ChangePayload | None:
        """Record link liveness; publishes CONNECTION_LOST / RECONNECTED."""
        with self._lock:
            if connected == self._connected:
                return None
            self._connected = connected
            if self._room is None:
                return None
            change = RoomChange.RECONNECTED if connected else RoomChange.CONNECTION_LOST
            return self._publish(change)

    # -- History inspection ----------------------------------------------

    def view_history(self, index: int) -> HistoryEntry:
        """Start inspecting a history entry; clears its changed flag.

        Raises:
            IndexError: If no entry exists at index.
        """
        with self._lock:
            entry = self._history[index]
            index %= len(self._history)
            if entry.changed_while_viewing:
                entry = replace(entry, changed_while_viewing=False)
                self._history[index] = entry
            self._viewing = index
            self._publish(None)
            return entry

    def stop_viewing_history(self) -> None:
        with self._lock:
            if self._viewing is not None:
                self._viewing = None
                self._publish(None)

    def _mark_viewed_entry_changed(self) -> None:
        if self._viewing is None:
            return
        entry = self._history[self._viewing]
        if not entry.changed_while_viewing:
            self._history[self._viewing] = replace(entry, changed_while_viewing=True)

    # -- Lifecycle -------------------------------------------------------

    def clear(self) -> None:
        """Forget the room entirely (intentional leave)."""
        with self._lock:
            self._room = None
            self._history.clear()
            self._log.clear()
            self._viewing = None
            self._pending_phase = None
            self._connected = False
            self._view = None

    # -- Folding ---------------------------------------------------------

    def _apply_snapshot(self, event: RoomSnapshot) -> ChangePayload | None:
        now = self._clock()
        room = self._room

        if room is None:
            self._room = Room(
                name=event.room,
                players=event.players,
                phase=event.phase,
                round_number=1,
                round_started_at=now,
                deck=event.deck,
                auto_reveal=self._auto_reveal,
                you=event.you,
            )
            self._connected = True
            self._pending_phase = None
            logger.info("Joined room %s with %d player(s)", event.room, len(event.players))
            return self._publish(RoomChange.JOINED)

        round_number = room.round_number
        started_at = room.round_started_at
        if event.phase is not room.phase:
            if self._pending_phase is room.phase:
                # Our optimistic phase change was never confirmed: undo it
                logger.info("Server did not accept local %s, rolling back", room.phase.value)
                if room.phase is Phase.REVEALED and self._history:
                    self._history.pop()
                    if self._viewing is not None and self._viewing >= len(self._history):
                        self._viewing = None
                elif room.phase is Phase.VOTING:
                    round_number = max(1, round_number - 1)
            elif event.phase is Phase.REVEALED:
                self._history.append(self._history_entry(replace(room, players=event.players), now))
            else:
                round_number += 1
                started_at = now

        self._room = replace(
            room,
            name=event.room,
            players=event.players,
            phase=event.phase,
            deck=event.deck,
            round_number=round_number,
            round_started_at=started_at,
            you=event.you or room.you,
        )
        self._pending_phase = None
        self._mark_viewed_entry_changed()
        return self._publish(RoomChange.SNAPSHOT)

    def _fold(self, event: ProtocolEvent, *, local: bool) -> ChangePayload | None:
        before = self._room
        after, entry = self._next_room(before, event)
        change = classify_room_change(event, before, after)
        if change is None:
            return None

        self._room = after
        if entry is not None:
            self._history.append(entry)
        self._mark_viewed_entry_changed()
        return self._publish(change, player_id=event_player_id(event), local=local)

    def _next_room(self, room: Room, event: ProtocolEvent) -> tuple[Room, HistoryEntry | None]:
        """Compute the room after an event, plus a history entry on reveal."""
        if isinstance(event, PlayerJoined):
            joined = event.player
            if room.player(joined.id) is None:
                return replace(room, players=room.players + (joined,)), None
            players = tuple(joined if p.id == joined.id else p for p in room.players)
            return replace(room, players=players), None

        if isinstance(event, PlayerLeft):
            players = tuple(p for p in room.players if p.id != event.player_id)
            return replace(room, players=players), None

        if isinstance(event, VoteCast):
            player = room.player(event.player_id)
            if player is None or not player.is_voter:
                logger.debug("Ignoring vote from unknown or spectating player %s", event.player_id)
                return room, None
            if event.value.is_hidden and player.vote is not None:
                # A hidden echo tells us nothing new about a vote we already hold
                return room, None
            return self._with_vote(room, player, event.value), None

        if isinstance(event, VoteRetracted):
            player = room.player(event.player_id)
            if player is None:
                return room, None
            return self._with_vote(room, player, None), None

        if isinstance(event, PlayerRenamed):
            players = tuple(
                replace(p, name=event.name) if p.id == event.player_id else p
                for p in room.players
            )
            return replace(room, players=players), None

        if isinstance(event, PhaseChanged):
            return self._change_phase(room, event.phase)

        logger.debug("No room effect for %s", type(event).__name__)
        return room, None

    def _change_phase(self, room: Room, phase: Phase) -> tuple[Room, HistoryEntry | None]:
        now = self._clock()
        if phase is Phase.REVEALED:
            if room.phase is Phase.REVEALED:
                return room, None
            entry = self._history_entry(room, now)
            return replace(room, phase=Phase.REVEALED), entry

        cleared = tuple(replace(p, vote=None) for p in room.players)
        if room.phase is Phase.REVEALED:
            return replace(
                room,
                players=cleared,
                phase=Phase.VOTING,
                round_number=room.round_number + 1,
                round_started_at=now,
            ), None
        return replace(room, players=cleared), None

    @staticmethod
    def _with_vote(room: Room, player: Player, vote: CardValue | None) -> Room:
        players = tuple(
            replace(p, vote=vote) if p.id == player.id else p
            for p in room.players
        )
        return replace(room, players=players)

    @staticmethod
    def _history_entry(room: Room, now: float) -> HistoryEntry:
        you = room.player(room.you)
        return HistoryEntry(
            round_number=room.round_number,
            votes=room.voters,
            duration=max(0.0, now - room.round_started_at),
            deck=room.deck,
            own_vote=you.vote if you else None,
        )

    # -- Publishing ------------------------------------------------------

    def _publish(
        self,
        change: RoomChange | None,
        *,
        player_id: str | None = None,
        local: bool = False,
    ) -> ChangePayload | None:
        """Swap in a fresh view and notify listeners of the change."""
        self._view = self._build_view()
        if change is None:
            return None

        payload = ChangePayload(change=change, view=self._view, player_id=player_id, local=local)
        for listener in list(self._listeners):
            try:
                listener(payload)
            except Exception:
                logger.exception("Room listener failed for %s", change.name)
        return payload

    def _build_view(self) -> RoomView | None:
        room = self._room
        if room is None:
            return None

        revealed = room.phase is Phase.REVEALED
        players = tuple(
            PlayerView(
                id=p.id,
                name=p.name,
                role=p.role,
                has_voted=p.has_voted,
                vote=p.vote if revealed or p.id == room.you else None,
                is_you=p.id == room.you,
                connected=p.connected,
            )
            for p in room.players
        )
        return RoomView(
            name=room.name,
            phase=room.phase,
            round_number=room.round_number,
            round_started_at=room.round_started_at,
            deck=room.deck,
            auto_reveal=room.auto_reveal,
            players=players,
            history=tuple(self._history),
            log=tuple(self._log),
            votes_in=room.votes_in,
            all_votes_in=room.all_votes_in,
            connected=self._connected,
            you=room.you,
            viewing_history=self._viewing,
            captured_at=self._clock(),
        )
