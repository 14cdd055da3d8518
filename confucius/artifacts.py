"""
Artifact storage.

The orchestrator hands every artifact returned by a successful tool
execution to an ArtifactStore exactly once.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from confucius.extensions.base import Artifact

logger = logging.getLogger(__name__)


@runtime_checkable
class ArtifactStore(Protocol):
    """Sink for artifacts produced during execution."""

    async def save(self, artifact: Artifact) -> str:
        """Store an artifact and return its id."""
        ...

    async def get(self, artifact_id: str) -> Artifact | None:
        ...

    async def list(self) -> list[Artifact]:
        ...


class InMemoryArtifactStore:
    """
    In-memory artifact storage for testing and development.

    Not suitable for production (artifacts are lost when the process exits).
    """

    def __init__(self) -> None:
        self._artifacts: dict[str, Artifact] = {}

    async def save(self, artifact: Artifact) -> str:
        self._artifacts[artifact.id] = artifact
        logger.debug(f"[artifacts:inmemory] Saved {artifact.name} ({artifact.id})")
        return artifact.id

    async def get(self, artifact_id: str) -> Artifact | None:
        return self._artifacts.get(artifact_id)

    async def list(self) -> list[Artifact]:
        return list(self._artifacts.values())

    def __len__(self) -> int:
        return len(self._artifacts)
