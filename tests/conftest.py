"""
Pytest configuration and fixtures for Confucius tests.
"""

import sys
from pathlib import Path

import pytest

# Add the repository root to path for imports
# This allows `from confucius.agent import ...` to work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from confucius.artifacts import InMemoryArtifactStore  # noqa: E402
from confucius.config import ModelConfig, RunConfig  # noqa: E402


@pytest.fixture
def model_config():
    """Model configuration used by run configs in tests."""
    return ModelConfig(provider="openai", name="gpt-4o-mini", supports_tool_use=True)


@pytest.fixture
def run_config(model_config):
    """Run configuration with a generous compression threshold."""
    return RunConfig(
        max_iterations=5,
        compression_threshold=100_000,
        model=model_config,
    )


@pytest.fixture
def artifact_store():
    return InMemoryArtifactStore()


@pytest.fixture
def sample_task():
    """Sample task text for testing."""
    return "Create a README describing the project layout."
