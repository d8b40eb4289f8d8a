"""Provider contract shared by the chat backends."""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Protocol, runtime_checkable

ChunkCallback = Callable[[str], None]
CompleteCallback = Callable[[str], None]
ErrorCallback = Callable[[Exception], None]

_NOT_FOUND = re.compile(r"404|not found", re.IGNORECASE)
GEMINI_MODEL_HINT = " (Try /models to list available Gemini models.)"


@runtime_checkable
class StreamController(Protocol):
    """Cancellation handle returned by ``stream_message``."""

    def abort(self) -> None: ...


@runtime_checkable
class TutorProvider(Protocol):
    """A chat backend.

    ``stream_message`` returns immediately; the callbacks run later on the
    event loop. Adapters call ``on_complete`` with the full text on normal
    completion and again from ``abort()`` with the partial text, and they
    never raise out of the stream: failures go to ``on_error``.
    """

    name: str
    model: str

    async def send_message(self, history: list[dict[str, str]], model: str | None = None) -> str: ...

    def stream_message(
        self,
        history: list[dict[str, str]],
        on_chunk: ChunkCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
    ) -> StreamController: ...

    async def list_models(self) -> list[str]: ...


def error_hint(provider_name: str, error: BaseException) -> str:
    """Extra guidance appended to provider errors the learner can act on."""
    if provider_name == "gemini" and _NOT_FOUND.search(str(error)):
        return GEMINI_MODEL_HINT
    return ""


def format_provider_error(provider_name: str, error: BaseException) -> str:
    """Assistant-visible error line, with the provider hint when one applies."""
    message = getattr(error, "message", None) or str(error) or error.__class__.__name__
    hint = getattr(error, "hint", None) or error_hint(provider_name, error)
    return f"Error: {message}{hint}"
