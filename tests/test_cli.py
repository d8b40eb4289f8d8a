"""Tests for CLI commands."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from tutorcli import __version__
from tutorcli.cli import app
from tutorcli.config import read_config
from tutorcli.storage import TutorStorage

runner = CliRunner()


@pytest.fixture
def env(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("TUTOR_CONFIG_PATH", str(tmp_path / "config.toml"))
    monkeypatch.setenv("TUTOR_DB_PATH", str(tmp_path / "tutor.db"))
    for name in ("OPENAI_API_KEY", "GEMINI_API_KEY", "TUTOR_PROVIDER", "TUTOR_MODEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("tutorcli.cli.configure_logging", lambda config=None: None)
    return tmp_path


def _seed(tmp_path, session_id="abcd1234-0000"):
    with TutorStorage(tmp_path / "tutor.db") as storage:
        storage.save_message("m1", session_id, "user", "I has a dog.")
        storage.save_message("m2", session_id, "assistant", "Say: I have a dog.")


class TestVersion:
    def test_version_flag(self, env):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestSetup:
    def test_setup_writes_config(self, env):
        """setup stores the chosen provider, model and key."""
        result = runner.invoke(app, ["setup"], input="gemini\ngemini-2.5-pro\ng-secret\n")
        assert result.exit_code == 0, result.output
        config = read_config(env / "config.toml").config
        assert config.provider.value == "gemini"
        assert config.model == "gemini-2.5-pro"
        assert config.api_key == "g-secret"

    def test_setup_rejects_unknown_provider(self, env):
        result = runner.invoke(app, ["setup"], input="claude\n")
        assert result.exit_code == 1
        assert "Unknown provider" in result.output


class TestConfig:
    def test_shows_missing_key(self, env):
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "(not set)" in result.output
        assert "Missing OPENAI_API_KEY." in result.output

    def test_shows_masked_key(self, env, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-1234567890")
        result = runner.invoke(app, ["config"])
        assert "sk-1...7890" in result.output
        assert "Configuration is valid" in result.output


class TestExport:
    def test_export_by_prefix(self, env):
        """A unique prefix exports the stored conversation."""
        _seed(env)
        out = env / "out"
        out.mkdir()
        result = runner.invoke(app, ["export", "abcd", "--format", "json", "--output-dir", str(out)])
        assert result.exit_code == 0, result.output
        files = list(out.glob("english-tutor-abcd1234-*.json"))
        assert len(files) == 1
        payload = json.loads(files[0].read_text(encoding="utf-8"))
        assert payload["messageCount"] == 2

    def test_ambiguous_prefix(self, env):
        _seed(env, "abcd1111-0000")
        _seed(env, "abcd2222-0000")
        result = runner.invoke(app, ["export", "abcd"])
        assert result.exit_code == 1
        assert "ambiguous" in result.output

    def test_unknown_session(self, env):
        result = runner.invoke(app, ["export", "zzzz"])
        assert result.exit_code == 1
        assert "No session matches" in result.output

    def test_invalid_format(self, env):
        result = runner.invoke(app, ["export", "abcd", "-f", "pdf"])
        assert result.exit_code == 1
        assert "Invalid format" in result.output


class TestStats:
    def test_stats(self, env):
        _seed(env)
        result = runner.invoke(app, ["stats"])
        assert result.exit_code == 0
        assert "Learning Statistics" in result.output
        assert "abcd1234" in result.output
