"""Tutor system prompt and outbound request assembly."""

from __future__ import annotations

from .models import (
    MODE_GUIDANCE,
    ChatMessage,
    Difficulty,
    PracticeMode,
    Role,
    conversation_messages,
)


def build_tutor_prompt(difficulty: Difficulty, mode: PracticeMode) -> str:
    """Build the tutor instructions for the current difficulty and mode."""
    return " ".join(
        [
            "You are a friendly English tutor.",
            "Hold a natural conversation with the learner.",
            "After each user message, briefly correct mistakes, "
            "then suggest 1-2 vocabulary improvements.",
            "Keep tone supportive and concise.",
            f"Adapt difficulty to {difficulty.value} level.",
            MODE_GUIDANCE[mode],
            "Format your response with short paragraphs and a final 'Corrections:' section.",
        ]
    )


def build_request_history(
    history: list[ChatMessage],
    difficulty: Difficulty,
    mode: PracticeMode,
) -> list[dict[str, str]]:
    """Build the message list sent to the provider.

    The result always starts with exactly one system message. Stored system
    messages (the resume context) are folded into it rather than sent as
    extra system turns. ``history`` is not modified.
    """
    system_parts = [build_tutor_prompt(difficulty, mode)]
    system_parts.extend(
        msg.content for msg in history if msg.role == Role.SYSTEM and not msg.notice
    )
    request = [{"role": Role.SYSTEM.value, "content": "\n\n".join(system_parts)}]
    request.extend(msg.to_dict() for msg in conversation_messages(history))
    return request
