from __future__ import annotations

import json
import logging

import pytest

from tutorcli.config import (
    ResolvedConfig,
    TutorConfig,
    configure_logging,
    default_db_path,
    load_config_or_raise,
    read_config,
    resolve_config,
    write_config,
)
from tutorcli.exceptions import ConfigError
from tutorcli.models import ProviderName


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("OPENAI_API_KEY", "GEMINI_API_KEY", "TUTOR_PROVIDER", "TUTOR_MODEL", "TUTOR_DB_PATH"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


class TestReadWrite:
    def test_missing_file(self, tmp_path):
        """A missing file is not an error."""
        state = read_config(tmp_path / "config.toml")
        assert state.config is None
        assert state.error is None

    def test_round_trip(self, tmp_path):
        """Written settings read back unchanged; unset fields are omitted."""
        path = tmp_path / "nested" / "config.toml"
        config = TutorConfig(provider=ProviderName.GEMINI, model="gemini-2.5-pro", api_key="g-key")
        assert write_config(config, path) == path

        text = path.read_text(encoding="utf-8")
        assert 'provider = "gemini"' in text
        assert "summary_model" not in text
        assert read_config(path).config == config

    def test_invalid_toml(self, tmp_path):
        """Broken TOML is reported, not raised."""
        path = tmp_path / "config.toml"
        path.write_text("provider = [unclosed")
        state = read_config(path)
        assert state.config is None
        assert state.error == "Invalid config format."

    def test_invalid_values(self, tmp_path):
        """Values that fail validation are reported the same way."""
        path = tmp_path / "config.toml"
        path.write_text('provider = "claude"\n')
        assert read_config(path).error == "Invalid config format."
        with pytest.raises(ConfigError):
            load_config_or_raise(path)

    def test_provider_is_normalized(self):
        """Provider names are case-insensitive."""
        assert TutorConfig(provider=" OpenAI ").provider == ProviderName.OPENAI

    def test_bad_log_level(self):
        with pytest.raises(ValueError):
            TutorConfig(log_level="loud")

    def test_db_path_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TUTOR_DB_PATH", str(tmp_path / "x.db"))
        assert default_db_path() == tmp_path / "x.db"


class TestResolve:
    def test_defaults_without_key(self):
        """No config and no env gives the default model and a missing-key error."""
        resolved = resolve_config(None)
        assert resolved.provider == ProviderName.OPENAI
        assert resolved.model == "gpt-5.2"
        assert resolved.error == "Missing OPENAI_API_KEY."
        assert not resolved.ready

    def test_env_key_wins_over_file(self, monkeypatch):
        """The provider's environment variable overrides the stored key."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        resolved = resolve_config(TutorConfig(api_key="sk-file"))
        assert resolved.api_key == "sk-env"
        assert resolved.ready

    def test_file_values(self):
        """Stored provider, model and summary model are used."""
        config = TutorConfig(
            provider=ProviderName.GEMINI, model="gemini-x", api_key="g", summary_model="gemini-lite"
        )
        resolved = resolve_config(config)
        assert (resolved.provider, resolved.model, resolved.api_key) == (ProviderName.GEMINI, "gemini-x", "g")
        assert resolved.summary_model == "gemini-lite"

    def test_overrides(self, monkeypatch):
        """Command-line overrides beat the environment, which beats the file."""
        monkeypatch.setenv("TUTOR_MODEL", "env-model")
        monkeypatch.setenv("GEMINI_API_KEY", "g-env")
        config = TutorConfig(model="file-model", api_key="sk-file")
        assert resolve_config(config).model == "env-model"
        resolved = resolve_config(config, provider="gemini", model="cli-model")
        assert resolved.provider == ProviderName.GEMINI
        assert resolved.model == "cli-model"
        assert resolved.api_key == "g-env"

    def test_switching_provider_drops_file_key_and_model(self):
        """A stored key and model belong to the stored provider only."""
        config = TutorConfig(model="gpt-custom", api_key="sk-file")
        resolved = resolve_config(config, provider="gemini")
        assert resolved.model == "gemini-2.5-flash"
        assert resolved.api_key is None
        assert resolved.error == "Missing GEMINI_API_KEY."

    def test_unknown_provider(self, monkeypatch):
        monkeypatch.setenv("TUTOR_PROVIDER", "claude")
        resolved = resolve_config(TutorConfig(api_key="k"))
        assert resolved.error.startswith("Unknown provider: claude.")

    def test_masked_key(self):
        def masked(key):
            return ResolvedConfig(ProviderName.OPENAI, "m", key, None).masked_key

        assert masked(None) == "(not set)"
        assert masked("short") == "****"
        assert masked("sk-1234567890") == "sk-1...7890"


class TestLogging:
    def test_structured_file_log(self, tmp_path, restore_logging):
        """Log records are written as JSON lines with their extras."""
        log_file = tmp_path / "logs" / "tutor.log"
        configure_logging(TutorConfig(log_level="info", log_file=str(log_file)))

        logging.getLogger("tutorcli.test").info("Saved", extra={"words": 3, "path": tmp_path})

        record = json.loads(log_file.read_text(encoding="utf-8").strip().splitlines()[-1])
        assert record["level"] == "info"
        assert record["logger"] == "tutorcli.test"
        assert record["message"] == "Saved"
        assert record["words"] == 3
        assert record["path"] == str(tmp_path)

    def test_level_filters(self, tmp_path, restore_logging):
        """Records below the configured level are dropped."""
        log_file = tmp_path / "tutor.log"
        configure_logging(TutorConfig(log_level="error", log_file=str(log_file)))
        logging.getLogger("tutorcli.test").warning("quiet")
        assert log_file.read_text(encoding="utf-8") == ""
