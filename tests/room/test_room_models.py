"""
Planning Poker - Room Model Tests

Tests for cards, players, rooms, history entries and views.
"""

from dataclasses import FrozenInstanceError
from decimal import Decimal

import pytest

from ppoker.room.base import (
    CardValue,
    HistoryEntry,
    Phase,
    Player,
    PlayerView,
    Role,
    Room,
    RoomView,
)


class TestCardValue:
    def test_numeric(self):
        assert CardValue("13").numeric == Decimal(13)
        assert CardValue("0.5").numeric == Decimal("0.5")

    @pytest.mark.parametrize("label", ["?", "coffee", "inf", "NaN"])
    def test_special_tokens(self, label):
        card = CardValue(label)
        assert card.numeric is None
        assert card.is_special

    def test_hidden(self):
        card = CardValue.hidden()
        assert card.is_hidden
        assert card.numeric is None
        assert not card.is_special
        assert str(card) == "Hidden"

    def test_rank_orders_numbers_then_specials_then_hidden(self):
        cards = [CardValue.hidden(), CardValue("?"), CardValue("8"), CardValue("0.5")]
        ordered = sorted(cards, key=lambda c: c.rank)
        assert [str(c) for c in ordered] == ["0.5", "8", "?", "Hidden"]

    def test_immutable(self):
        with pytest.raises(FrozenInstanceError):
            CardValue("1").label = "2"


class TestPlayer:
    def test_defaults(self):
        player = Player(id="a", name="Alice")
        assert player.role is Role.VOTER
        assert player.is_voter
        assert not player.has_voted
        assert player.connected

    def test_name_is_sanitized(self):
        assert Player(id="a", name=" Al\nice ").name == "Alice"

    def test_spectator_never_holds_a_vote(self):
        player = Player(id="s", name="Sam", role=Role.SPECTATOR, vote=CardValue("5"))
        assert player.vote is None
        assert not player.has_voted

    def test_hidden_vote_counts_as_voted(self):
        assert Player(id="a", name="Alice", vote=CardValue.hidden()).has_voted


class TestRoom:
    def _room(self, *players):
        return Room(name="r", players=players)

    def test_player_lookup(self):
        room = self._room(Player(id="a", name="Alice"))
        assert room.player("a").name == "Alice"
        assert room.player("zzz") is None
        assert room.player(None) is None

    def test_spectators_do_not_count(self):
        room = self._room(
            Player(id="a", name="Alice", vote=CardValue("1")),
            Player(id="s", name="Sam", role=Role.SPECTATOR),
        )
        assert len(room.voters) == 1
        assert room.votes_in == 1
        assert room.all_votes_in
        assert room.missing_voters == ()

    def test_missing_voters(self):
        room = self._room(
            Player(id="a", name="Alice", vote=CardValue("1")),
            Player(id="b", name="Bob"),
        )
        assert not room.all_votes_in
        assert [p.id for p in room.missing_voters] == ["b"]

    def test_no_voters_is_never_ready(self):
        room = self._room(Player(id="s", name="Sam", role=Role.SPECTATOR))
        assert not room.all_votes_in

    def test_empty_room_is_never_ready(self):
        assert not self._room().all_votes_in


class TestHistoryEntry:
    def test_average_of_numeric_votes(self):
        entry = HistoryEntry(
            round_number=1,
            votes=(
                Player(id="a", name="Alice", vote=CardValue("3")),
                Player(id="b", name="Bob", vote=CardValue("5")),
                Player(id="c", name="Carol", vote=CardValue("?")),
                Player(id="d", name="Dave"),
            ),
            duration=12.0,
        )
        assert entry.average == Decimal(4)

    def test_average_without_numbers(self):
        entry = HistoryEntry(
            round_number=1,
            votes=(Player(id="a", name="Alice", vote=CardValue("coffee")),),
            duration=1.0,
        )
        assert entry.average is None

    def test_vote_of(self):
        entry = HistoryEntry(
            round_number=2,
            votes=(Player(id="a", name="Alice", vote=CardValue("8")),),
            duration=3.0,
        )
        assert entry.vote_of("a") == CardValue("8")
        assert entry.vote_of("b") is None


class TestRoomView:
    def _player(self, id, name, vote=None, has_voted=False, is_you=False):
        return PlayerView(
            id=id,
            name=name,
            role=Role.VOTER,
            has_voted=has_voted or vote is not None,
            vote=vote,
            is_you=is_you,
            connected=True,
        )

    def _view(self, players, **kwargs):
        return RoomView(
            name="r",
            phase=Phase.REVEALED,
            round_number=1,
            round_started_at=100.0,
            deck=(),
            auto_reveal=True,
            players=players,
            **kwargs,
        )

    def test_sorted_players(self):
        view = self._view((
            self._player("d", "Dave"),
            self._player("c", "Carol", has_voted=True),
            self._player("b", "Bob", vote=CardValue("?")),
            self._player("a", "Alice", vote=CardValue("8")),
            self._player("e", "Eve", vote=CardValue("2")),
        ))
        assert [p.name for p in view.sorted_players] == ["Eve", "Alice", "Bob", "Carol", "Dave"]

    def test_equal_votes_sorted_by_name(self):
        view = self._view((
            self._player("b", "Bob", vote=CardValue("5")),
            self._player("a", "Alice", vote=CardValue("5")),
        ))
        assert [p.name for p in view.sorted_players] == ["Alice", "Bob"]

    def test_me(self):
        view = self._view((self._player("a", "Alice"), self._player("b", "Bob", is_you=True)))
        assert view.me.id == "b"
        assert view.player("a").name == "Alice"
        assert view.player("x") is None

    def test_round_elapsed(self):
        assert self._view((), captured_at=130.0).round_elapsed == 30.0
        assert self._view((), captured_at=50.0).round_elapsed == 0.0

    def test_capture_time_ignored_in_equality(self):
        assert self._view((), captured_at=1.0) == self._view((), captured_at=2.0)
