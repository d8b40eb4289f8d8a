"""Conversation export to markdown, plain text, and JSON."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from .exceptions import ExportError
from .models import ChatMessage, ExportFormat, Role, conversation_messages

logger = logging.getLogger(__name__)

EXPORT_FORMATS = tuple(f.value for f in ExportFormat)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _label(message: ChatMessage) -> str:
    return "You" if message.role == Role.USER else "Tutor"


def format_markdown(messages: list[ChatMessage], session_id: str) -> str:
    header = (
        "# English Tutor Session\n\n"
        f"**Session ID:** {session_id}  \n"
        f"**Exported:** {_timestamp()}  \n"
        f"**Messages:** {len(messages)}\n\n"
        "---\n\n"
    )
    body = "\n\n---\n\n".join(f"**{_label(m)}:**\n\n{m.content}" for m in messages)
    return header + body


def format_text(messages: list[ChatMessage], session_id: str) -> str:
    header = (
        "English Tutor Session\n"
        f"Session ID: {session_id}\n"
        f"Exported: {_timestamp()}\n"
        f"Messages: {len(messages)}\n\n"
        f"{'=' * 50}\n\n"
    )
    separator = f"\n\n{'-' * 30}\n\n"
    body = separator.join(f"{_label(m)}:\n{m.content}" for m in messages)
    return header + body


def format_json(messages: list[ChatMessage], session_id: str) -> str:
    payload = {
        "sessionId": session_id,
        "exportedAt": _timestamp(),
        "messageCount": len(messages),
        "messages": [m.to_dict() for m in messages],
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


_FORMATTERS = {
    ExportFormat.MARKDOWN: format_markdown,
    ExportFormat.TEXT: format_text,
    ExportFormat.JSON: format_json,
}


def is_valid_export_format(fmt: str) -> bool:
    return fmt in EXPORT_FORMATS


def export_filename(session_id: str, fmt: ExportFormat | str) -> str:
    fmt = ExportFormat(fmt)
    day = datetime.now(timezone.utc).date().isoformat()
    return f"english-tutor-{session_id[:8]}-{day}.{fmt.value}"


def export_conversation(
    history: list[ChatMessage],
    session_id: str,
    fmt: ExportFormat | str = ExportFormat.MARKDOWN,
    directory: Path | None = None,
) -> Path:
    """Write the conversation turns of ``history`` to a file and return its path.

    Notices and resume-context system messages are not part of the export.
    """
    if not is_valid_export_format(str(getattr(fmt, "value", fmt))):
        raise ExportError(
            f"Invalid format. Options: {', '.join(EXPORT_FORMATS)}", fmt=str(fmt)
        )
    fmt = ExportFormat(fmt)
    messages = conversation_messages(history)
    content = _FORMATTERS[fmt](messages, session_id)

    path = (directory or Path.cwd()) / export_filename(session_id, fmt)
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise ExportError(f"Export failed: {e}", fmt=fmt.value, context={"path": str(path)}) from e
    logger.info("Exported conversation", extra={"path": str(path), "messages": len(messages)})
    return path
