"""
Planning Poker - Protocol Codec

Translates between protocol events and the JSON envelope spoken on the
wire. Decoding is tolerant: an unrecognized message type becomes an
UnknownVariant instead of an error, so older clients keep working when the
server learns new messages.
"""

from __future__ import annotations

import json
from typing import Any, Callable

from pydantic import BaseModel, ValidationError

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
from ppoker.protocol.models import (
    ChatMessagePayload,
    Envelope,
    PhaseChangedPayload,
    PlayerJoinedPayload,
    PlayerRefPayload,
    PlayerRenamedPayload,
    RoomSnapshotPayload,
    VoteCastPayload,
    WirePlayer,
)
from ppoker.room.base import CardValue

ROOM_SNAPSHOT = "room_snapshot"
PLAYER_JOINED = "player_joined"
PLAYER_LEFT = "player_left"
VOTE_CAST = "vote_cast"
VOTE_RETRACTED = "vote_retracted"
PHASE_CHANGED = "phase_changed"
PLAYER_RENAMED = "player_renamed"
CHAT_MESSAGE = "chat_message"
KEEPALIVE = "keepalive"


class MalformedMessage(ValueError):
    """Raised when an inbound message cannot be parsed."""


# -- Decoding ------------------------------------------------------------

def _decode_snapshot(payload: dict[str, Any]) -> RoomSnapshot:
    data = RoomSnapshotPayload.model_validate(payload)
    return RoomSnapshot(
        room=data.room,
        players=tuple(p.to_player() for p in data.players),
        phase=data.phase,
        deck=tuple(data.deck),
        you=data.you,
    )


def _decode_player_joined(payload: dict[str, Any]) -> PlayerJoined:
    data = PlayerJoinedPayload.model_validate(payload)
    return PlayerJoined(player=data.player.to_player())


def _decode_player_left(payload: dict[str, Any]) -> PlayerLeft:
    return PlayerLeft(player_id=PlayerRefPayload.model_validate(payload).player_id)


def _decode_vote_cast(payload: dict[str, Any]) -> VoteCast:
    data = VoteCastPayload.model_validate(payload)
    value = CardValue.hidden() if data.value is None else CardValue(data.value)
    return VoteCast(player_id=data.player_id, value=value)


def _decode_vote_retracted(payload: dict[str, Any]) -> VoteRetracted:
    return VoteRetracted(player_id=PlayerRefPayload.model_validate(payload).player_id)


def _decode_phase_changed(payload: dict[str, Any]) -> PhaseChanged:
    return PhaseChanged(phase=PhaseChangedPayload.model_validate(payload).phase)


def _decode_player_renamed(payload: dict[str, Any]) -> PlayerRenamed:
    data = PlayerRenamedPayload.model_validate(payload)
    return PlayerRenamed(player_id=data.player_id, name=data.name)


def _decode_chat_message(payload: dict[str, Any]) -> ChatMessage:
    data = ChatMessagePayload.model_validate(payload)
    return ChatMessage(message=data.message, player_id=data.player_id, level=data.log_level())


def _decode_keepalive(payload: dict[str, Any]) -> KeepAlive:
    return KeepAlive()


_DECODERS: dict[str, Callable[[dict[str, Any]], ProtocolEvent]] = {
    ROOM_SNAPSHOT: _decode_snapshot,
    PLAYER_JOINED: _decode_player_joined,
    PLAYER_LEFT: _decode_player_left,
    VOTE_CAST: _decode_vote_cast,
    VOTE_RETRACTED: _decode_vote_retracted,
    PHASE_CHANGED: _decode_phase_changed,
    PLAYER_RENAMED: _decode_player_renamed,
    CHAT_MESSAGE: _decode_chat_message,
    KEEPALIVE: _decode_keepalive,
}


def decode(data: bytes | str) -> ProtocolEvent:
    """Parse one wire message into a protocol event.

    Args:
        data: UTF-8 encoded JSON envelope (text frames are accepted as str).

    Returns:
        The decoded event; UnknownVariant for message types this client
        does not recognize.

    Raises:
        MalformedMessage: If the message is not a JSON object with a
            string ``type``, or a known message carries an invalid payload.
    """
    try:
        raw = json.loads(data)
    except ValueError as exc:
        raise MalformedMessage(f"Message is not valid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise MalformedMessage(f"Envelope must be a JSON object, got {type(raw).__name__}.")

    try:
        envelope = Envelope.model_validate(raw)
    except ValidationError as exc:
        raise MalformedMessage(f"Invalid envelope: {exc.error_count()} error(s)") from exc

    decoder = _DECODERS.get(envelope.type)
    if decoder is None:
        return UnknownVariant(tag=envelope.type, payload=envelope.payload)

    try:
        return decoder(envelope.payload)
    except ValidationError as exc:
        raise MalformedMessage(
            f"Invalid {envelope.type} payload: {exc.error_count()} error(s)"
        ) from exc


# -- Encoding ------------------------------------------------------------

def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json")


def _encode_payload(event: ProtocolEvent) -> tuple[str, dict[str, Any]]:
    """Return the (tag, payload) pair for an event."""
    if isinstance(event, RoomSnapshot):
        return ROOM_SNAPSHOT, _dump(RoomSnapshotPayload(
            room=event.room,
            players=[WirePlayer.from_player(p) for p in event.players],
            phase=event.phase,
            deck=list(event.deck),
            you=event.you,
        ))
    if isinstance(event, PlayerJoined):
        return PLAYER_JOINED, _dump(PlayerJoinedPayload(player=WirePlayer.from_player(event.player)))
    if isinstance(event, PlayerLeft):
        return PLAYER_LEFT, _dump(PlayerRefPayload(player_id=event.player_id))
    if isinstance(event, VoteCast):
        value = None if event.value.is_hidden else event.value.label
        return VOTE_CAST, _dump(VoteCastPayload(player_id=event.player_id, value=value))
    if isinstance(event, VoteRetracted):
        return VOTE_RETRACTED, _dump(PlayerRefPayload(player_id=event.player_id))
    if isinstance(event, PhaseChanged):
        return PHASE_CHANGED, _dump(PhaseChangedPayload(phase=event.phase))
    if isinstance(event, PlayerRenamed):
        return PLAYER_RENAMED, _dump(PlayerRenamedPayload(player_id=event.player_id, name=event.name))
    if isinstance(event, ChatMessage):
        return CHAT_MESSAGE, _dump(ChatMessagePayload(
            message=event.message,
            player_id=event.player_id,
            level=event.level.value,
        ))
    if isinstance(event, KeepAlive):
        return KEEPALIVE, {}
    if isinstance(event, UnknownVariant):
        return event.tag, dict(event.payload)
    raise TypeError(f"Cannot encode {type(event).__name__}")


def encode(event: ProtocolEvent) -> bytes:
    """Serialize an event into a UTF-8 JSON envelope."""
    tag, payload = _encode_payload(event)
    return json.dumps({"type": tag, "payload": payload}, ensure_ascii=False).encode("utf-8")
