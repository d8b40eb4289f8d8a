"""Configuration management for the tutor."""

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

from tutorcli.exceptions import ConfigError
from tutorcli.models import ProviderName

logger = logging.getLogger(__name__)

DEFAULT_MODELS: dict[ProviderName, str] = {
    ProviderName.OPENAI: "gpt-5.2",
    ProviderName.GEMINI: "gemini-2.5-flash",
}
API_KEY_ENV: dict[ProviderName, str] = {
    ProviderName.OPENAI: "OPENAI_API_KEY",
    ProviderName.GEMINI: "GEMINI_API_KEY",
}

_LOG_LEVELS = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}
_LOG_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
}


def _parse_log_level(level: str) -> int:
    normalized = level.strip().lower()
    if normalized in _LOG_LEVELS:
        return _LOG_LEVELS[normalized]
    valid = ", ".join(sorted({k for k in _LOG_LEVELS if k != "warn"}))
    raise ValueError(f"Invalid log level: {level}. Valid: {valid}")


def data_dir() -> Path:
    """Directory for the database and default log file."""
    return Path.home() / ".tutorcli"


def default_db_path() -> Path:
    override = os.environ.get("TUTOR_DB_PATH")
    if override:
        return Path(override).expanduser()
    return data_dir() / "tutor.db"


class _StructuredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _LOG_RECORD_KEYS
        }
        for key, value in extras.items():
            if isinstance(value, (str, int, float, bool)) or value is None:
                payload[key] = value
            else:
                payload[key] = str(value)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = record.stack_info
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(config: "TutorConfig | None" = None) -> None:
    """Configure structured logging.

    Logs always go to a file: the TUI owns the terminal, so anything written
    to stderr would tear the screen.
    """
    config = config or TutorConfig()
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    log_path = Path(config.log_file).expanduser() if config.log_file else data_dir() / "tutorcli.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setLevel(logging.NOTSET)
    handler.setFormatter(_StructuredFormatter())
    root_logger.addHandler(handler)
    root_logger.setLevel(_parse_log_level(config.log_level))


class TutorConfig(BaseModel):
    """Persisted tutor configuration (config.toml)."""

    provider: ProviderName = Field(default=ProviderName.OPENAI, description="Chat backend")
    model: str | None = Field(default=None, description="Chat model (provider default if unset)")
    api_key: str | None = Field(default=None, description="API key for the provider")
    summary_model: str | None = Field(
        default=None, description="Model for /summary (main model if unset)"
    )
    log_level: str = Field(default="warning", description="Log level")
    log_file: str | None = Field(default=None, description="Log file path")

    @field_validator("provider", mode="before")
    @classmethod
    def _validate_provider(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        _parse_log_level(value)
        return value.strip().lower()

    @classmethod
    def from_file(cls, path: str | Path) -> "TutorConfig":
        """Load configuration from TOML file."""
        import tomllib

        path = Path(path)
        if not path.exists():
            return cls()

        with open(path, "rb") as f:
            data = tomllib.load(f)

        return cls(**data)

    @classmethod
    def default_path(cls) -> Path:
        """Get default config file path."""
        override = os.environ.get("TUTOR_CONFIG_PATH")
        if override:
            return Path(override).expanduser()
        return Path.home() / ".config" / "tutorcli" / "config.toml"

    def to_toml_dict(self) -> dict[str, str]:
        """Serializable mapping with unset fields dropped (TOML has no null)."""
        data = self.model_dump(mode="json", exclude_none=True)
        if data.get("log_level") == "warning":
            data.pop("log_level")
        return data


@dataclass
class ConfigState:
    """Result of reading the config file.

    ``config`` is None when the file is missing or invalid; ``error`` is set
    only for an invalid file.
    """

    config: TutorConfig | None
    error: str | None
    path: Path


@dataclass
class ResolvedConfig:
    """Effective provider settings after env overrides and defaults."""

    provider: ProviderName
    model: str
    api_key: str | None
    summary_model: str | None
    error: str | None = None

    @property
    def ready(self) -> bool:
        return self.error is None and bool(self.api_key)

    @property
    def masked_key(self) -> str:
        if not self.api_key:
            return "(not set)"
        if len(self.api_key) <= 8:
            return "****"
        return f"{self.api_key[:4]}...{self.api_key[-4:]}"


def read_config(path: Path | None = None) -> ConfigState:
    """Read the config file without raising."""
    path = path or TutorConfig.default_path()
    if not path.exists():
        return ConfigState(config=None, error=None, path=path)
    try:
        config = TutorConfig.from_file(path)
    except (OSError, ValueError, ValidationError) as e:
        # tomllib.TOMLDecodeError subclasses ValueError
        logger.warning("Invalid config file", extra={"path": str(path), "error": str(e)})
        return ConfigState(config=None, error="Invalid config format.", path=path)
    return ConfigState(config=config, error=None, path=path)


def write_config(config: TutorConfig, path: Path | None = None) -> Path:
    """Write ``config`` to TOML, creating parent directories."""
    import tomli_w

    path = path or TutorConfig.default_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            tomli_w.dump(config.to_toml_dict(), f)
    except OSError as e:
        raise ConfigError(f"Could not write config: {e}", {"path": str(path)}) from e
    logger.info("Config written", extra={"path": str(path)})
    return path


def resolve_config(
    config: TutorConfig | None,
    *,
    provider: str | None = None,
    model: str | None = None,
) -> ResolvedConfig:
    """Apply CLI overrides, then environment, then file, then defaults.

    A missing API key is reported through ``error`` rather than raised so the
    UI can show it as a banner and keep running.
    """
    config = config or TutorConfig()
    provider_raw = provider or os.environ.get("TUTOR_PROVIDER") or config.provider.value
    try:
        provider_name = ProviderName(provider_raw.strip().lower())
    except ValueError:
        return ResolvedConfig(
            provider=config.provider,
            model=config.model or DEFAULT_MODELS[config.provider],
            api_key=config.api_key,
            summary_model=config.summary_model,
            error=f"Unknown provider: {provider_raw}. Options: openai, gemini",
        )

    file_model = config.model if provider_name == config.provider else None
    resolved_model = model or os.environ.get("TUTOR_MODEL") or file_model or DEFAULT_MODELS[provider_name]

    env_key = API_KEY_ENV[provider_name]
    file_key = config.api_key if provider_name == config.provider else None
    api_key = os.environ.get(env_key) or file_key

    return ResolvedConfig(
        provider=provider_name,
        model=resolved_model,
        api_key=api_key,
        summary_model=config.summary_model,
        error=None if api_key else f"Missing {env_key}.",
    )


def load_config_or_raise(path: Path | None = None) -> TutorConfig:
    """Read the config file, raising ConfigError if it is malformed."""
    state = read_config(path)
    if state.error:
        raise ConfigError(state.error, {"path": str(state.path)})
    return state.config or TutorConfig()
