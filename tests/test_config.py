"""
Tests for configuration schemas and environment loading.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from confucius.config import AgentSettings, ModelConfig, RunConfig, load_settings


class TestRunConfig:
    """Tests for RunConfig validation."""

    def test_requires_model_and_limits(self):
        with pytest.raises(ValidationError):
            RunConfig(max_iterations=5, compression_threshold=100)

    def test_rejects_non_positive_limits(self, model_config):
        with pytest.raises(ValidationError):
            RunConfig(max_iterations=0, compression_threshold=100, model=model_config)

        with pytest.raises(ValidationError):
            RunConfig(max_iterations=1, compression_threshold=0, model=model_config)

    def test_extension_filter(self, model_config):
        all_enabled = RunConfig(max_iterations=1, compression_threshold=1, model=model_config)
        some_enabled = RunConfig(
            max_iterations=1,
            compression_threshold=1,
            enabled_extensions=["think"],
            model=model_config,
        )

        assert all_enabled.extension_filter is None
        assert some_enabled.extension_filter == frozenset({"think"})

    def test_frozen(self, run_config):
        with pytest.raises(ValidationError):
            run_config.max_iterations = 99

    def test_rejects_unknown_provider(self):
        with pytest.raises(ValidationError):
            ModelConfig(provider="carrier-pigeon", name="x", supports_tool_use=False)


class TestAgentSettings:
    """Tests for process settings."""

    def test_default_paths(self, tmp_path):
        settings = AgentSettings(working_directory=tmp_path)

        assert settings.resolved_knowledge_path() == tmp_path / ".ralph" / "knowledge.md"
        assert settings.resolved_sessions_directory() == tmp_path / ".ralph" / "sessions"

    def test_run_config_from_settings(self):
        settings = AgentSettings(provider="openai", model="gpt-4o", max_iterations=7)

        config = settings.run_config(["think"])

        assert config.max_iterations == 7
        assert config.compression_threshold == 5000
        assert config.enabled_extensions == ["think"]
        assert config.model.provider == "openai"
        assert config.model.name == "gpt-4o"

    def test_api_keys_are_secret(self):
        settings = AgentSettings(openai_api_key="sk-secret")

        assert "sk-secret" not in repr(settings)
        assert settings.openai_api_key.get_secret_value() == "sk-secret"

    def test_load_settings_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CONFUCIUS_PROVIDER", "openai")
        monkeypatch.setenv("CONFUCIUS_MODEL", "gpt-4o-mini")
        monkeypatch.setenv("CONFUCIUS_MAX_ITERATIONS", "12")
        monkeypatch.setenv("CONFUCIUS_WORKING_DIR", str(tmp_path))
        monkeypatch.setenv("CONFUCIUS_OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("CONFUCIUS_DEBUG", "true")

        settings = load_settings()

        assert settings.provider == "openai"
        assert settings.model == "gpt-4o-mini"
        assert settings.max_iterations == 12
        assert settings.working_directory == Path(tmp_path)
        assert settings.openai_api_key.get_secret_value() == "sk-env"
        assert settings.debug is True

    def test_load_settings_rejects_bad_values(self, monkeypatch):
        monkeypatch.setenv("CONFUCIUS_MAX_ITERATIONS", "0")

        with pytest.raises(ValidationError):
            load_settings()
