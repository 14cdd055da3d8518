"""Session digest persistence: one markdown file per run."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path

logger = logging.getLogger(__name__)


def digest_filename(timestamp: datetime | None = None) -> str:
    ts = (timestamp or datetime.now(UTC)).isoformat()
    return f"session-{ts.replace(':', '-').replace('.', '-')}.md"


class SessionDigestStore:
    """Writes session digests into a directory (default `.ralph/sessions`)."""

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    async def save(self, digest: str, timestamp: datetime | None = None) -> Path:
        """Write the digest to a new timestamped file and return its path."""
        path = self._directory / digest_filename(timestamp)
        await asyncio.to_thread(self._write, path, digest)
        logger.info(f"[session_digests] Saved session digest to {path}")
        return path

    def _write(self, path: Path, digest: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(digest, encoding="utf-8")

    async def list_digests(self) -> list[Path]:
        """Digest files, oldest first."""

        def _list() -> list[Path]:
            if not self._directory.is_dir():
                return []
            return sorted(self._directory.glob("session-*.md"))

        return await asyncio.to_thread(_list)
