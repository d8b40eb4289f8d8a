"""Learner-friendly definitions for saved vocabulary."""

from __future__ import annotations

import logging
import re

from .providers.base import TutorProvider

logger = logging.getLogger(__name__)

MIN_DEFINITION_CHARS = 6

DEFINITION_PROMPT = """You are an English tutor helping a student understand vocabulary words.

For each word below, provide a clear, concise definition in one sentence suitable for an English learner.
Focus on the most common meaning of each word.

Format your response exactly like this:
word1: definition one sentence here
word2: definition one sentence here
word3: definition one sentence here

Do NOT add any explanations, introductions, or conclusions. Only the definitions in the exact format above."""

_DEFINITION_LINE = re.compile(r"^(?:\d+\.\s*)?([a-zA-Z0-9\s\-']+):\s*(.+)$")


def parse_definitions(text: str, words: list[str]) -> dict[str, str]:
    """Parse ``word: definition`` lines, keeping only requested words."""
    wanted = set(words)
    definitions: dict[str, str] = {}
    for line in text.splitlines():
        match = _DEFINITION_LINE.match(line.strip())
        if not match:
            continue
        word = match.group(1).strip().lower()
        definition = match.group(2).strip()
        if word in wanted and len(definition) >= MIN_DEFINITION_CHARS:
            definitions[word] = definition
    return definitions


async def fetch_definitions(provider: TutorProvider, words: list[str]) -> dict[str, str]:
    """Ask the provider to define ``words``. Returns {} on failure."""
    if not words:
        return {}

    numbered = "\n".join(f"{i}. {word}" for i, word in enumerate(words, start=1))
    request = [
        {"role": "system", "content": DEFINITION_PROMPT},
        {"role": "user", "content": f"Define these words:\n{numbered}"},
    ]
    try:
        response = await provider.send_message(request)
    except Exception:
        logger.warning("Definition lookup failed", exc_info=True, extra={"words": len(words)})
        return {}
    return parse_definitions(response, words)
