"""Session summaries, titles, and resume context."""

from __future__ import annotations

import logging

from .models import ChatMessage, Role, conversation_messages
from .providers.base import TutorProvider

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_CHARS = 4000
MAX_TITLE_CHARS = 60
FALLBACK_TITLE = "Untitled session"

SUMMARY_PROMPT = """You are a session summarizer for an English tutoring app. Summarize the conversation concisely in 2-3 sentences, focusing on:
- What topics or skills were practiced
- Key corrections or vocabulary learned
- The learner's progress or areas needing work

Keep it brief and informative. Do not include greetings or fluff."""

TITLE_PROMPT = """You name English tutoring sessions. Reply with a short title (at most 6 words) describing the main topic of the conversation. Reply with the title only, no quotes or punctuation at the end."""


def _transcript(messages: list[ChatMessage]) -> str:
    text = "\n\n".join(
        f"{'Learner' if m.role == Role.USER else 'Tutor'}: {m.content}" for m in messages
    )
    if len(text) > MAX_TRANSCRIPT_CHARS:
        text = text[:MAX_TRANSCRIPT_CHARS] + "\n\n[...conversation truncated...]"
    return text


async def generate_session_summary(
    provider: TutorProvider,
    messages: list[ChatMessage],
    model: str | None = None,
) -> str:
    """Condense a conversation into 2-3 sentences. Never raises."""
    turns = conversation_messages(messages)
    if not turns:
        return "Empty session."

    request = [
        {"role": "system", "content": SUMMARY_PROMPT},
        {"role": "user", "content": f"Summarize this English tutoring session:\n\n{_transcript(turns)}"},
    ]
    try:
        summary = await provider.send_message(request, model=model)
    except Exception:
        logger.warning("Summary generation failed", exc_info=True)
        return "Summary generation failed."
    return summary.strip() or "Unable to generate summary."


def clean_title(raw: str) -> str:
    """Normalize a model-produced title."""
    title = raw.strip().splitlines()[0] if raw.strip() else ""
    title = title.strip().strip("\"'`").removeprefix("Title:").strip().strip("\"'")
    if len(title) > MAX_TITLE_CHARS:
        title = title[: MAX_TITLE_CHARS - 3].rstrip() + "..."
    return title or FALLBACK_TITLE


async def generate_session_title(
    provider: TutorProvider,
    messages: list[ChatMessage],
    model: str | None = None,
) -> str:
    """Short title for the session picker; falls back to a fixed title."""
    turns = conversation_messages(messages)
    if not turns:
        return FALLBACK_TITLE

    request = [
        {"role": "system", "content": TITLE_PROMPT},
        {"role": "user", "content": _transcript(turns)},
    ]
    try:
        raw = await provider.send_message(request, model=model)
    except Exception:
        logger.warning("Title generation failed", exc_info=True)
        return FALLBACK_TITLE
    return clean_title(raw)


def build_resume_context(summary: str, difficulty: str, mode: str) -> str:
    return (
        "[Resuming previous session]\n"
        f"Previous session summary: {summary}\n"
        f"Current difficulty: {difficulty}\n"
        f"Practice mode: {mode}\n\n"
        "Continue the tutoring session naturally, acknowledging you're picking up where you left off."
    )
