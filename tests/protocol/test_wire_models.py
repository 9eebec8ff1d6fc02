"""Tests for ppoker/protocol/models.py — pydantic payload models."""

import pytest
from pydantic import ValidationError

from ppoker.protocol.models import ChatMessagePayload, Envelope, WirePlayer
from ppoker.room.base import CardValue, LogLevel, Player, Role


class TestEnvelope:
    def test_payload_defaults_to_empty(self):
        assert Envelope.model_validate({"type": "keepalive"}).payload == {}

    def test_type_required(self):
        with pytest.raises(ValidationError):
            Envelope.model_validate({"payload": {}})


class TestWirePlayer:
    def test_minimal(self):
        player = WirePlayer.model_validate({"id": "a", "name": "Alice"}).to_player()
        assert player == Player(id="a", name="Alice")

    def test_voted_without_value_is_hidden(self):
        player = WirePlayer(id="a", name="Alice", voted=True).to_player()
        assert player.vote == CardValue.hidden()

    def test_value_implies_voted(self):
        player = WirePlayer(id="a", name="Alice", vote="5", voted=False).to_player()
        assert player.vote == CardValue("5")

    def test_unknown_role(self, caplog):
        player = WirePlayer(id="a", name="Alice", role="observer").to_player()
        assert player.role is Role.SPECTATOR
        assert "Unknown role" in caplog.text

    def test_from_player_hides_hidden_value(self):
        wire = WirePlayer.from_player(Player(id="a", name="Alice", vote=CardValue.hidden()))
        assert wire.vote is None
        assert wire.voted

    def test_from_player_without_vote(self):
        wire = WirePlayer.from_player(Player(id="s", name="Sam", role=Role.SPECTATOR))
        assert wire.role == "spectator"
        assert not wire.voted


class TestChatMessagePayload:
    @pytest.mark.parametrize("level,expected", [
        ("chat", LogLevel.CHAT),
        ("error", LogLevel.ERROR),
        ("info", LogLevel.INFO),
        ("shout", LogLevel.INFO),
    ])
    def test_log_level(self, level, expected):
        assert ChatMessagePayload(message="m", level=level).log_level() is expected
