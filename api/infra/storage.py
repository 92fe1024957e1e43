"""
Artifact storage for render outputs.

Artifacts are addressed as ``bucket/path`` references; that string is what
lands in ``render_jobs.output_url``.
"""

import asyncio
from pathlib import Path
from typing import Protocol

from fastapi import Depends

from api.config.settings import Settings, get_settings


class ArtifactStorage(Protocol):
    async def upload(
        self, bucket: str, path: str, data: bytes, content_type: str
    ) -> str:
        """Store bytes and return the artifact reference."""
        ...


class LocalArtifactStorage:
    """Filesystem-backed storage: ``<root>/<bucket>/<path>``, overwriting."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _write(self, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    async def upload(
        self, bucket: str, path: str, data: bytes, content_type: str
    ) -> str:
        target = (self.root / bucket / path).resolve()
        if self.root.resolve() not in target.parents:
            raise ValueError(f"Artifact path escapes storage root: {path}")

        await asyncio.to_thread(self._write, target, data)
        return f"{bucket}/{path}"


def get_artifact_storage(
    settings: Settings = Depends(get_settings),
) -> ArtifactStorage:
    """Dependency injection for artifact storage."""
    return LocalArtifactStorage(settings.artifact_root)
