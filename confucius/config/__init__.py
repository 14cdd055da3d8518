"""
Confucius Configuration

Run configuration and environment-driven process settings.
"""

from .schemas import AgentSettings, ModelConfig, RunConfig, load_settings

__all__ = [
    "AgentSettings",
    "ModelConfig",
    "RunConfig",
    "load_settings",
]
