"""
Planning Poker Real-time Sync.

WebSocket connection, room synchronization and user notifications.
"""

from ppoker.realtime.connection import (
    ConnectError,
    ConnectionManager,
    ConnectionParams,
    Disconnected,
    PlayerIdentity,
    Rejected,
    SendError,
    TlsFailure,
    Unreachable,
)
from ppoker.realtime.notifications import Notification, NotificationKind, NotificationScheduler
from ppoker.realtime.retry import RetryPolicy
from ppoker.realtime.sync_manager import EngineState, SessionFailed, SyncEngine, join_room

__all__ = [
    "ConnectError",
    "ConnectionManager",
    "ConnectionParams",
    "Disconnected",
    "EngineState",
    "Notification",
    "NotificationKind",
    "NotificationScheduler",
    "PlayerIdentity",
    "Rejected",
    "RetryPolicy",
    "SendError",
    "SessionFailed",
    "SyncEngine",
    "TlsFailure",
    "Unreachable",
    "join_room",
]
