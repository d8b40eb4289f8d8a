"""Guarded wrapper around a provider stream.

The router relies on three properties that provider SDKs do not all
guarantee on their own:

- exactly one terminal callback (completion or error) per stream
- no chunks applied after abort() or after the terminal callback
- abort() always ends in a completion carrying the partial text, even if
  the adapter never calls back (a fallback fires after a grace period)
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from tutorcli.providers.base import StreamController, TutorProvider

logger = logging.getLogger(__name__)

ABORT_GRACE_SECONDS = 0.5

ChunkHandler = Callable[[str, str], None]
CompleteHandler = Callable[[str, str, bool], None]
ErrorHandler = Callable[[str, Exception], None]


class GuardedStream:
    """One chat turn's stream, tagged with the assistant message id."""

    def __init__(
        self,
        message_id: str,
        on_chunk: ChunkHandler,
        on_complete: CompleteHandler,
        on_error: ErrorHandler,
        grace_period: float = ABORT_GRACE_SECONDS,
    ) -> None:
        self.message_id = message_id
        self._on_chunk = on_chunk
        self._on_complete = on_complete
        self._on_error = on_error
        self._grace_period = grace_period
        self._controller: StreamController | None = None
        self._fallback: asyncio.TimerHandle | None = None
        self.content = ""
        self.done = False
        self.aborting = False

    def start(self, provider: TutorProvider, history: list[dict[str, str]]) -> "GuardedStream":
        self._controller = provider.stream_message(
            history, self._handle_chunk, self._handle_complete, self.fail
        )
        logger.info("Stream started", extra={"message_id": self.message_id, "provider": provider.name})
        return self

    def abort(self) -> None:
        """Request cancellation; completion with the partial text follows."""
        if self.done or self.aborting:
            return
        self.aborting = True
        logger.info("Stream abort requested", extra={"message_id": self.message_id})
        if self._controller is not None:
            try:
                self._controller.abort()
            except Exception:
                logger.warning("Provider abort failed", exc_info=True)
        if not self.done:
            self._schedule_fallback()

    def _schedule_fallback(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._fire_fallback()
            return
        self._fallback = loop.call_later(self._grace_period, self._fire_fallback)

    def _fire_fallback(self) -> None:
        if self.done:
            return
        logger.info("Abort fallback completion", extra={"message_id": self.message_id})
        self._handle_complete(self.content)

    def _handle_chunk(self, text: str) -> None:
        if self.done or self.aborting:
            logger.debug("Dropped late chunk", extra={"message_id": self.message_id})
            return
        self.content += text
        self._on_chunk(self.message_id, text)

    def _handle_complete(self, full_text: str) -> None:
        if self.done:
            return
        self.done = True
        if self._fallback is not None:
            self._fallback.cancel()
            self._fallback = None
        # The adapter's full text is canonical; fall back to the accumulated
        # chunks only when an abort completes with nothing.
        text = full_text if full_text or not self.aborting else self.content
        logger.info(
            "Stream completed",
            extra={"message_id": self.message_id, "aborted": self.aborting, "chars": len(text)},
        )
        self._on_complete(self.message_id, text, self.aborting)

    def fail(self, error: Exception) -> None:
        """Finish the turn with an error unless it already ended."""
        if self.done:
            return
        if self.aborting:
            self._handle_complete(self.content)
            return
        self.done = True
        self._on_error(self.message_id, error)


def abort_controller(controller: Any) -> None:
    """Abort whatever controller the state store is holding, if any."""
    if controller is not None:
        controller.abort()
