"""
Planning Poker - Connection Management

Owns the WebSocket link to the relay server. Uses a background thread with
an asyncio event loop so the synchronous engine and render loop can use a
plain blocking API while the websockets client stays fully async.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import itertools
import logging
import queue
import ssl
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable, Iterator
from urllib.parse import quote, urlencode

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidStatus, InvalidURI

from ppoker.protocol.codec import MalformedMessage, decode, encode
from ppoker.protocol.events import KeepAlive, ProtocolEvent, RoomSnapshot
from ppoker.room.base import Role

logger = logging.getLogger(__name__)


# -- Errors --------------------------------------------------------------

class ConnectError(Exception):
    """The session could not be established."""


class Unreachable(ConnectError):
    """The server could not be reached or did not answer in time."""


class TlsFailure(ConnectError):
    """The TLS handshake failed."""


class Rejected(ConnectError):
    """The server refused the room or player name."""


class SendError(Exception):
    """An outbound message could not be queued."""


class Disconnected(SendError):
    """The link is known to be down."""


# -- Identity ------------------------------------------------------------

@dataclass(frozen=True)
class PlayerIdentity:
    """Who we join as. The id is generated locally unless the server assigns one."""

    name: str
    role: Role = Role.VOTER
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass(frozen=True)
class ConnectionParams:
    """Already-validated parameters handed to the core by its caller."""

    server: str
    room: str
    player: PlayerIdentity
    auto_reveal: bool = True


def build_url(address: str, room: str, player: PlayerIdentity) -> str:
    """Room and player travel in the connection path and query string."""
    query = urlencode({"user": player.name, "userType": player.role.value, "id": player.id})
    return f"{address.rstrip('/')}/rooms/{quote(room, safe='')}?{query}"


def _as_bytes(raw: str | bytes) -> bytes:
    return raw.encode("utf-8") if isinstance(raw, str) else raw


_END = object()


# -- Session -------------------------------------------------------------

class SessionHandle:
    """One live connection: a send operation plus an inbound event stream.

    The inbound stream is consumed once; it ends exactly when the
    connection is lost, after which a new connect is required.
    """

    def __init__(
        self,
        connection: Any,
        loop: asyncio.AbstractEventLoop,
        initial_snapshot: RoomSnapshot,
        *,
        idle_timeout: float,
        send_timeout: float = 10.0,
        max_outbox: int = 64,
    ) -> None:
        self._connection = connection
        self._loop = loop
        self.initial_snapshot = initial_snapshot
        self._idle_timeout = idle_timeout
        self._send_timeout = send_timeout
        self._max_outbox = max_outbox

        self._inbox: queue.Queue = queue.Queue()
        self._outbox: dict[Hashable, ProtocolEvent] = {}
        self._outbox_lock = threading.Lock()
        self._sequence = itertools.count()
        self._wakeup = asyncio.Event()

        self._closed = threading.Event()
        self._finished = threading.Event()
        self._consumed = False
        self._future: concurrent.futures.Future | None = None
        self.close_reason: str | None = None

    def start(self) -> None:
        self._future = asyncio.run_coroutine_threadsafe(self._pump(), self._loop)

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    # -- Outbound --------------------------------------------------------

    def send(self, event: ProtocolEvent, key: Hashable | None = None) -> None:
        """Queue an event for sending without waiting for the network.

        Events sharing a key replace each other while queued; only the
        latest one is sent.

        Raises:
            Disconnected: If the link is known to be down.
            SendError: If the outbound queue is full.
        """
        if self._closed.is_set():
            raise Disconnected(f"Connection is closed ({self.close_reason or 'unknown reason'}).")

        with self._outbox_lock:
            if key is None:
                key = ("seq", next(self._sequence))
            elif key in self._outbox:
                logger.debug("Superseding queued %s intent", key)
                del self._outbox[key]
            if len(self._outbox) >= self._max_outbox:
                raise SendError("Outbound queue is full.")
            self._outbox[key] = event

        try:
            self._loop.call_soon_threadsafe(self._wakeup.set)
        except RuntimeError as exc:
            raise Disconnected("Connection event loop is not running.") from exc

    def _next_outbound(self) -> ProtocolEvent | None:
        with self._outbox_lock:
            if not self._outbox:
                return None
            key = next(iter(self._outbox))
            return self._outbox.pop(key)

    async def _write_loop(self) -> None:
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            while True:
                event = self._next_outbound()
                if event is None:
                    break
                body = encode(event).decode("utf-8")
                logger.debug("Sending message: %s", body)
                try:
                    await asyncio.wait_for(self._connection.send(body), timeout=self._send_timeout)
                except asyncio.TimeoutError:
                    logger.warning("Sending %s timed out, dropping the connection", type(event).__name__)
                    self.close_reason = "send timeout"
                    await self._connection.close()
                    return
                except ConnectionClosed:
                    logger.info("Connection closed while sending %s", type(event).__name__)
                    return

    # -- Inbound ---------------------------------------------------------

    def events(self) -> Iterator[ProtocolEvent]:
        """Yield decoded inbound events until the connection is lost.

        Raises:
            RuntimeError: If the stream has already been consumed.
        """
        if self._consumed:
            raise RuntimeError("The event stream of a session can only be consumed once.")
        self._consumed = True
        return self._drain()

    def _drain(self) -> Iterator[ProtocolEvent]:
        while True:
            item = self._inbox.get()
            if item is _END:
                return
            yield item

    async def _read_loop(self) -> None:
        while True:
            try:
                raw = await asyncio.wait_for(self._connection.recv(), timeout=self._idle_timeout)
            except asyncio.TimeoutError:
                logger.warning("No traffic for %.0fs, treating connection as lost", self._idle_timeout)
                self.close_reason = self.close_reason or "idle timeout"
                return
            except ConnectionClosed as exc:
                logger.info("Server closed connection: %s", exc)
                self.close_reason = self.close_reason or "closed by server"
                return

            try:
                event = decode(_as_bytes(raw))
            except MalformedMessage as exc:
                logger.warning("Discarding malformed message: %s", exc)
                continue

            if isinstance(event, KeepAlive):
                logger.debug("Keep-alive received")
                continue
            self._inbox.put(event)

    async def _pump(self) -> None:
        writer = asyncio.create_task(self._write_loop())
        try:
            await self._read_loop()
        except asyncio.CancelledError:
            self.close_reason = self.close_reason or "closed by client"
            raise
        except Exception:
            logger.exception("Unexpected transport failure")
            self.close_reason = "transport failure"
        finally:
            self._closed.set()
            self._inbox.put(_END)
            writer.cancel()
            try:
                await writer
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Writer failed")
            try:
                await self._connection.close()
            except Exception:
                logger.exception("Error closing connection")
            self._finished.set()

    # -- Teardown --------------------------------------------------------

    def close(self, timeout: float = 5.0) -> None:
        """Interrupt the read loop and close the transport gracefully."""
        if self._future is not None and not self._future.done():
            self._future.cancel()
        if not self._finished.wait(timeout):
            logger.warning("Connection did not close within %.1fs", timeout)


# -- Manager -------------------------------------------------------------

class ConnectionManager:
    """Establishes sessions with the relay server.

    Bridges the async websockets client with sync code by running an
    asyncio event loop in a daemon thread. Sessions deliver their events
    through thread-safe queues, so callers need no loop of their own.
    """

    def __init__(
        self,
        *,
        connect_timeout: float = 10.0,
        idle_timeout: float = 60.0,
        send_timeout: float = 10.0,
        connect_fn: Callable[..., Any] = ws_connect,
    ) -> None:
        self._connect_timeout = connect_timeout
        self._idle_timeout = idle_timeout
        self._send_timeout = send_timeout
        self._connect_fn = connect_fn
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._sessions: list[SessionHandle] = []

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        """Start the background event loop if not running."""
        with self._lock:
            if self._loop is None or not self._loop.is_running():
                self._loop = asyncio.new_event_loop()
                started = threading.Event()
                self._thread = threading.Thread(
                    target=self._run_loop, args=(self._loop, started), daemon=True, name="ws-loop"
                )
                self._thread.start()
                started.wait()
            return self._loop

    @staticmethod
    def _run_loop(loop: asyncio.AbstractEventLoop, started: threading.Event) -> None:
        """Run the asyncio event loop in the background thread."""
        asyncio.set_event_loop(loop)
        loop.call_soon(started.set)
        loop.run_forever()

    def connect(self, address: str, room: str, player: PlayerIdentity) -> SessionHandle:
        """Open a session and wait for the server's room snapshot.

        The join either fully succeeds, with the initial snapshot available
        on the returned handle, or raises.

        Raises:
            Unreachable: Network failure or no answer within the timeout.
            TlsFailure: The TLS handshake failed.
            Rejected: The server refused the room or name.
        """
        url = build_url(address, room, player)
        logger.info("Connecting to %s", url)
        loop = self._ensure_loop()
        future = asyncio.run_coroutine_threadsafe(self._open(url), loop)
        try:
            connection, snapshot = future.result(timeout=self._connect_timeout * 2 + 1)
        except concurrent.futures.TimeoutError as exc:
            future.cancel()
            raise Unreachable(f"Timed out connecting to {address}.") from exc

        session = SessionHandle(
            connection,
            loop,
            snapshot,
            idle_timeout=self._idle_timeout,
            send_timeout=self._send_timeout,
        )
        session.start()
        with self._lock:
            self._sessions = [s for s in self._sessions if not s.closed]
            self._sessions.append(session)
        logger.info("Connected to room %s as %s", room, player.name)
        return session

    async def _open(self, url: str) -> tuple[Any, RoomSnapshot]:
        try:
            connection = await self._connect_fn(
                url,
                open_timeout=self._connect_timeout,
                ping_interval=self._idle_timeout / 2,
                ping_timeout=self._idle_timeout / 2,
            )
        except InvalidStatus as exc:
            raise Rejected(f"Server refused the join: HTTP {exc.response.status_code}") from exc
        except ssl.SSLError as exc:
            raise TlsFailure(f"TLS handshake failed: {exc}") from exc
        except (OSError, asyncio.TimeoutError, InvalidHandshake, InvalidURI) as exc:
            raise Unreachable(f"Could not reach {url}: {exc}") from exc

        try:
            snapshot = await asyncio.wait_for(self._await_snapshot(connection), self._connect_timeout)
        except asyncio.TimeoutError as exc:
            await connection.close()
            raise Unreachable("Server did not send the room state in time.") from exc
        except ConnectionClosed as exc:
            raise Rejected(f"Server closed the connection while joining: {exc}") from exc
        return connection, snapshot

    @staticmethod
    async def _await_snapshot(connection: Any) -> RoomSnapshot:
        while True:
            raw = await connection.recv()
            try:
                event = decode(_as_bytes(raw))
            except MalformedMessage as exc:
                logger.warning("Discarding malformed message while joining: %s", exc)
                continue
            if isinstance(event, RoomSnapshot):
                return event
            logger.debug("Skipping %s received before the room snapshot", type(event).__name__)

    def shutdown(self) -> None:
        """Close open sessions and stop the background event loop."""
        with self._lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        if self._loop and self._loop.is_running():
            self._loop.call_soon_threadsafe(self._loop.stop)
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        self._loop = None
        self._thread = None
