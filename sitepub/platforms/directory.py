"""Publish the site by replacing a local directory."""

from __future__ import annotations

from pathlib import Path

from ..core.errors import PublishError
from ..utils.file_helper import clear_directory, copy_contents, tree_digest
from ..utils.logging import get_logger
from .base import ArtifactSet, PublishResult, SitePublisher

LOGGER = get_logger(__name__)


class DirectoryPublisher(SitePublisher):
    """Mirrors the artifact set into ``destination``; stale files are removed."""

    name = "directory"

    def __init__(self, destination: Path) -> None:
        self._destination = destination

    @property
    def destination(self) -> Path:
        return self._destination

    def prepare(self) -> None:
        if self._destination.exists() and not self._destination.is_dir():
            raise PublishError(f"Publish destination is not a directory: {self._destination}")

    def publish(self, artifacts: ArtifactSet) -> PublishResult:
        if not artifacts.root.is_dir():
            raise PublishError(f"Artifact directory does not exist: {artifacts.root}")

        destination = self._destination
        if destination.is_dir() and tree_digest(destination) == artifacts.digest:
            LOGGER.info(
                "Destination already up to date",
                extra={"event": "publish.directory", "destination": str(destination)},
            )
            return PublishResult(self.name, artifacts.digest, changed=False, location=str(destination))

        try:
            if destination.exists():
                clear_directory(destination)
            else:
                destination.mkdir(parents=True)
            copied = copy_contents(artifacts.root, destination)
        except OSError as exc:
            raise PublishError(f"Copying artifacts to {destination} failed: {exc}") from exc

        LOGGER.info(
            "Artifacts copied",
            extra={"event": "publish.directory", "destination": str(destination), "files": len(copied)},
        )
        return PublishResult(self.name, artifacts.digest, changed=True, location=str(destination))


__all__ = ["DirectoryPublisher"]
