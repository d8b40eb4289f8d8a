"""
Tutor Exception Hierarchy.

All custom exceptions inherit from TutorError for unified error handling.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


class TutorError(Exception):
    """Base exception for tutor errors.

    All tutor exceptions inherit from this class to allow catching
    any tutor-related error with a single except clause.

    Attributes:
        message: Human-readable error description
        context: Additional context for debugging
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self._log_error()

    def _log_error(self) -> None:
        """Log the error creation at debug level.

        Most of these errors end up as an inline notice in the UI, so the
        handler decides whether anything louder is warranted.
        """
        logger.debug(
            f"{self.__class__.__name__}: {self.message}",
            extra={"error_context": self.context},
        )

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} [{ctx}]"
        return self.message


class ConfigError(TutorError):
    """Raised for configuration errors.

    Examples:
        - Missing API key for the selected provider
        - Unknown provider name
        - Malformed config file
    """


class CommandError(TutorError):
    """Raised by slash-command handlers for bad arguments or missing data.

    The command registry converts these into error results; they never
    reach the user as tracebacks.
    """


class ProviderError(TutorError):
    """Raised when the chat provider fails.

    Attributes:
        provider: Provider name ("openai" or "gemini")
        hint: Optional user-facing hint appended to the message
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        hint: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        if provider:
            ctx["provider"] = provider
        super().__init__(message, ctx)
        self.provider = provider
        self.hint = hint


class StreamingError(TutorError):
    """Raised for illegal streaming state transitions."""


class StorageError(TutorError):
    """Raised when the local database cannot be read or written."""


class ExportError(TutorError):
    """Raised when a conversation export fails.

    Attributes:
        fmt: The requested export format
    """

    def __init__(
        self,
        message: str,
        fmt: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        if fmt:
            ctx["format"] = fmt
        super().__init__(message, ctx)
        self.fmt = fmt
