"""
Planning Poker - Input Validation Utilities

Provides validation functions for display names and card choices. All
validators either return normalized data or raise descriptive ValueError
exceptions.
"""

import re
from typing import Sequence

# C0/C1 control characters plus the Unicode line and paragraph separators
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f\u2028\u2029]")

MAX_NAME_LENGTH = 64


class InvalidCardError(ValueError):
    """Raised when a vote names a card that is not part of the room's deck."""


def sanitize_name(name: str) -> str:
    """Strip control characters, embedded newlines and surrounding whitespace."""
    return _CONTROL_CHARS.sub("", name).strip()[:MAX_NAME_LENGTH]


def validate_display_name(name: str) -> str:
    """
    Validate a display name chosen by the local user.

    Args:
        name: Raw name as typed or configured

    Returns:
        Sanitized name

    Raises:
        ValueError: If nothing printable remains after sanitizing
    """
    if not isinstance(name, str):
        raise ValueError(f"Display name must be a string, got {type(name).__name__}.")

    cleaned = sanitize_name(name)
    if not cleaned:
        raise ValueError("Display name must contain at least one printable character.")

    return cleaned


def validate_card(value: str, deck: Sequence[str]) -> str:
    """
    Validate a card choice against the room's deck.

    Matching is case-insensitive; the deck's own spelling is returned so
    that every client sends the same label. An empty deck accepts any
    non-empty label.

    Args:
        value: Card label chosen by the user
        deck: Ordered labels permitted in the room

    Returns:
        The canonical card label

    Raises:
        InvalidCardError: If the card is empty or not in the deck
    """
    label = value.strip()
    if not label:
        raise InvalidCardError("Card value cannot be empty.")

    if not deck:
        return label

    folded = label.casefold()
    for card in deck:
        if card.casefold() == folded:
            return card

    raise InvalidCardError(f"Card is not in the deck: {label}")
