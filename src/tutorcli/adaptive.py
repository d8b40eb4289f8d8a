"""Adaptive difficulty from the learner's latest message."""

from __future__ import annotations

from .models import Difficulty

LONG_MESSAGE_WORDS = 20
SHORT_MESSAGE_WORDS = 6
COMPLEX_PUNCTUATION = (";", ":")


def update_difficulty(current: Difficulty, message: str) -> Difficulty:
    """Return the next difficulty level after the learner says ``message``.

    Long messages (or ones using ``;``/``:``) move the learner up one level,
    very short ones move them down one level. Anything in between, and empty
    input, leaves the level unchanged. The "up" check runs first.
    """
    words = message.split()
    if not words:
        return current

    if len(words) >= LONG_MESSAGE_WORDS or any(p in message for p in COMPLEX_PUNCTUATION):
        return current.step(1)
    if len(words) <= SHORT_MESSAGE_WORDS:
        return current.step(-1)
    return current
