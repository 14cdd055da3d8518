"""
Configuration Schemas for Confucius.

Pydantic models for run configuration and process settings.

Security:
    API keys use SecretStr to prevent accidental logging of credentials.
    Access the value with `.get_secret_value()`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr

ProviderName = Literal["anthropic", "openai", "openai-compatible", "local"]


class ModelConfig(BaseModel):
    """Which model a run talks to."""

    model_config = ConfigDict(frozen=True)

    provider: ProviderName = Field(..., description="Model provider")
    name: str = Field(..., description="Provider-specific model identifier")
    supports_tool_use: bool = Field(..., description="Whether the model supports native tool use")


class RunConfig(BaseModel):
    """
    Configuration for one orchestrator run.

    Callers supply every field; there are no implicit defaults beyond an
    empty enabled_extensions list, which means "all registered extensions".
    """

    model_config = ConfigDict(frozen=True)

    max_iterations: int = Field(..., ge=1, description="Iteration ceiling")
    compression_threshold: int = Field(
        ..., ge=1, description="Total token count above which runnable scope is compressed"
    )
    enabled_extensions: list[str] = Field(
        default_factory=list,
        description="Extension names taking part in the run (empty = all)",
    )
    model: ModelConfig

    @property
    def extension_filter(self) -> frozenset[str] | None:
        """Names to pass to the registry, or None for all extensions."""
        return frozenset(self.enabled_extensions) if self.enabled_extensions else None


class AgentSettings(BaseModel):
    """
    Process-level settings.

    Used by create_orchestrator() to wire providers and stores.
    Build from the environment with load_settings().
    """

    environment: str = "development"
    debug: bool = False

    working_directory: Path = Field(default_factory=Path.cwd)
    knowledge_path: Path | None = Field(
        None, description="Knowledge file (default: <working_directory>/.ralph/knowledge.md)"
    )
    sessions_directory: Path | None = Field(
        None, description="Session digest directory (default: <working_directory>/.ralph/sessions)"
    )

    # Provider selection
    provider: ProviderName = "anthropic"
    model: str = "claude-3-5-sonnet-latest"
    base_url: str | None = None

    # Provider API keys (SecretStr prevents accidental logging)
    openai_api_key: SecretStr | None = None
    anthropic_api_key: SecretStr | None = None

    # Run defaults
    max_iterations: int = Field(10, ge=1)
    compression_threshold: int = Field(5000, ge=1)
    keep_recent: int = Field(4, ge=0)

    def resolved_knowledge_path(self) -> Path:
        return self.knowledge_path or self.working_directory / ".ralph" / "knowledge.md"

    def resolved_sessions_directory(self) -> Path:
        return self.sessions_directory or self.working_directory / ".ralph" / "sessions"

    def run_config(self, enabled_extensions: list[str] | None = None) -> RunConfig:
        """Build a RunConfig from these settings."""
        return RunConfig(
            max_iterations=self.max_iterations,
            compression_threshold=self.compression_threshold,
            enabled_extensions=enabled_extensions or [],
            model=ModelConfig(
                provider=self.provider,
                name=self.model,
                supports_tool_use=self.provider in ("anthropic", "openai"),
            ),
        )


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def load_settings() -> AgentSettings:
    """Build AgentSettings from CONFUCIUS_* environment variables."""
    values: dict[str, object] = {
        "environment": os.getenv("CONFUCIUS_ENVIRONMENT", "development"),
        "debug": _env_bool("CONFUCIUS_DEBUG"),
        "provider": os.getenv("CONFUCIUS_PROVIDER", "anthropic"),
        "model": os.getenv("CONFUCIUS_MODEL", "claude-3-5-sonnet-latest"),
        "base_url": os.getenv("CONFUCIUS_BASE_URL"),
        "openai_api_key": os.getenv("CONFUCIUS_OPENAI_API_KEY") or os.getenv("OPENAI_API_KEY"),
        "anthropic_api_key": os.getenv("CONFUCIUS_ANTHROPIC_API_KEY")
        or os.getenv("ANTHROPIC_API_KEY"),
        "knowledge_path": os.getenv("CONFUCIUS_KNOWLEDGE_PATH"),
        "sessions_directory": os.getenv("CONFUCIUS_SESSIONS_DIR"),
    }
    if working_directory := os.getenv("CONFUCIUS_WORKING_DIR"):
        values["working_directory"] = working_directory
    for key, env in (
        ("max_iterations", "CONFUCIUS_MAX_ITERATIONS"),
        ("compression_threshold", "CONFUCIUS_COMPRESSION_THRESHOLD"),
        ("keep_recent", "CONFUCIUS_KEEP_RECENT"),
    ):
        if (raw := os.getenv(env)) is not None:
            values[key] = raw
    return AgentSettings.model_validate(values)
