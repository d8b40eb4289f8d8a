"""tutorcli - an English tutor in the terminal."""

__version__ = "0.1.0"

from .config import ConfigState, ResolvedConfig, TutorConfig, resolve_config
from .exceptions import (
    CommandError,
    ConfigError,
    ExportError,
    ProviderError,
    StorageError,
    StreamingError,
    TutorError,
)
from .models import (
    ChatMessage,
    Difficulty,
    ExportFormat,
    PracticeKind,
    PracticeMode,
    ProviderName,
    Role,
)
from .storage import TutorStorage

__all__ = [
    "__version__",
    "ChatMessage",
    "CommandError",
    "ConfigError",
    "ConfigState",
    "Difficulty",
    "ExportError",
    "ExportFormat",
    "PracticeKind",
    "PracticeMode",
    "ProviderError",
    "ProviderName",
    "ResolvedConfig",
    "Role",
    "StorageError",
    "StreamingError",
    "TutorConfig",
    "TutorError",
    "TutorStorage",
    "resolve_config",
]
