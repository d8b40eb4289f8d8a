"""Offline provider for tests and demos."""

from __future__ import annotations

import asyncio
import re

from tutorcli.providers.base import ChunkCallback, CompleteCallback, ErrorCallback


class _MockController:
    def __init__(self, on_complete: CompleteCallback) -> None:
        self._on_complete = on_complete
        self.handle: asyncio.TimerHandle | None = None
        self.done = False
        self.text = ""

    def abort(self) -> None:
        if self.done:
            return
        self.done = True
        if self.handle is not None:
            self.handle.cancel()
        self._on_complete(self.text)


class MockProvider:
    """Streams a fixed reply one word at a time, ``delay`` seconds apart."""

    name = "mock"

    def __init__(self, reply: str = "Hello!", delay: float = 0.1, models: list[str] | None = None) -> None:
        self.reply = reply
        self.delay = delay
        self.model = "mock"
        self._models = models or ["mock"]

    async def send_message(self, history: list[dict[str, str]], model: str | None = None) -> str:
        return self.reply

    def stream_message(
        self,
        history: list[dict[str, str]],
        on_chunk: ChunkCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
    ) -> _MockController:
        controller = _MockController(on_complete)
        pieces = re.findall(r"\S+\s*", self.reply)
        loop = asyncio.get_running_loop()

        def emit(index: int) -> None:
            if controller.done:
                return
            if index < len(pieces):
                controller.text += pieces[index]
                on_chunk(pieces[index])
                # on_chunk may have aborted the stream
                if not controller.done:
                    controller.handle = loop.call_later(self.delay, emit, index + 1)
                return
            controller.done = True
            on_complete(self.reply)

        controller.handle = loop.call_later(self.delay, emit, 0)
        return controller

    async def list_models(self) -> list[str]:
        return list(self._models)
