"""Chat providers for the tutor."""

from __future__ import annotations

from tutorcli.config import ResolvedConfig
from tutorcli.providers.base import (
    GEMINI_MODEL_HINT,
    StreamController,
    TutorProvider,
    error_hint,
    format_provider_error,
)
from tutorcli.providers.mock import MockProvider
from tutorcli.providers.openai import OpenAIChatProvider


def build_provider(resolved: ResolvedConfig) -> TutorProvider | None:
    """Create the provider for ``resolved``, or None when it is not usable."""
    if not resolved.ready:
        return None
    return OpenAIChatProvider(resolved.provider, resolved.api_key or "", resolved.model)


__all__ = [
    "GEMINI_MODEL_HINT",
    "MockProvider",
    "OpenAIChatProvider",
    "StreamController",
    "TutorProvider",
    "build_provider",
    "error_hint",
    "format_provider_error",
]
