"""
Chat-completions provider for OpenAI and Gemini.

Gemini is reached through its OpenAI-compatible endpoint, so both backends
share the ``AsyncOpenAI`` client and differ only in base URL and model
filtering.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from openai import AsyncOpenAI

from tutorcli.exceptions import ProviderError
from tutorcli.models import ProviderName
from tutorcli.providers.base import (
    ChunkCallback,
    CompleteCallback,
    ErrorCallback,
    error_hint,
)

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
_OPENAI_MODEL_MARKERS = ("gpt", "o1", "o3")


class _TaskStreamController:
    """Abort handle for one streaming request."""

    def __init__(self, on_complete: CompleteCallback) -> None:
        self._on_complete = on_complete
        self.task: asyncio.Task[None] | None = None
        self.aborted = False
        self.content = ""

    def abort(self) -> None:
        if self.aborted:
            return
        self.aborted = True
        if self.task is not None and not self.task.done():
            self.task.cancel()
        self._on_complete(self.content)


class OpenAIChatProvider:
    """TutorProvider backed by the chat completions API.

    Usage:
        provider = OpenAIChatProvider(ProviderName.OPENAI, api_key, "gpt-5.2")
        reply = await provider.send_message([{"role": "user", "content": "Hi"}])
    """

    def __init__(
        self,
        provider: ProviderName,
        api_key: str,
        model: str,
        client: Any = None,
    ) -> None:
        self.provider = provider
        self.name = provider.value
        self.model = model
        if client is None:
            base_url = GEMINI_BASE_URL if provider == ProviderName.GEMINI else None
            client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        self._client = client

    def _wrap(self, error: Exception) -> ProviderError:
        hint = error_hint(self.name, error)
        return ProviderError(str(error) or error.__class__.__name__, provider=self.name, hint=hint or None)

    async def send_message(self, history: list[dict[str, str]], model: str | None = None) -> str:
        try:
            completion = await self._client.chat.completions.create(
                model=model or self.model,
                messages=history,
            )
        except Exception as e:
            raise self._wrap(e) from e
        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""

    def stream_message(
        self,
        history: list[dict[str, str]],
        on_chunk: ChunkCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
    ) -> _TaskStreamController:
        controller = _TaskStreamController(on_complete)

        async def run_stream() -> None:
            try:
                stream = await self._client.chat.completions.create(
                    model=self.model,
                    messages=history,
                    stream=True,
                )
                async for chunk in stream:
                    if controller.aborted:
                        break
                    if not chunk.choices:
                        continue
                    text = chunk.choices[0].delta.content
                    if text:
                        controller.content += text
                        on_chunk(text)
                if not controller.aborted:
                    on_complete(controller.content)
            except asyncio.CancelledError:
                logger.debug("Stream cancelled", extra={"provider": self.name})
            except Exception as e:
                if not controller.aborted:
                    logger.warning(
                        "Provider stream failed", extra={"provider": self.name, "error": str(e)}
                    )
                    on_error(self._wrap(e))

        controller.task = asyncio.ensure_future(run_stream())
        return controller

    async def list_models(self) -> list[str]:
        try:
            page = await self._client.models.list()
        except Exception as e:
            raise self._wrap(e) from e
        ids = [m.id for m in page.data]
        if self.provider == ProviderName.GEMINI:
            return sorted(
                model_id.removeprefix("models/") for model_id in ids if "gemini" in model_id
            )
        return sorted(m for m in ids if any(marker in m for marker in _OPENAI_MODEL_MARKERS))
