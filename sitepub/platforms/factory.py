"""Factory helpers for site publishers."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Mapping

from ..settings import AppConfig
from .base import PlatformFactory, SitePublisher
from .directory import DirectoryPublisher
from .git import GitBranchPublisher


class DictPlatformFactory(PlatformFactory):
    """Simple registry-backed factory."""

    def __init__(self, builders: Mapping[str, Callable[[], SitePublisher]]) -> None:
        self._builders = {key.lower(): value for key, value in builders.items()}

    @property
    def names(self) -> list[str]:
        return sorted(self._builders)

    def create(self, platform: str) -> SitePublisher:
        key = platform.lower()
        try:
            builder = self._builders[key]
        except KeyError as exc:
            available = ", ".join(self.names) or "<none>"
            raise ValueError(f"Unsupported publish target: {platform} (available: {available})") from exc
        return builder()


def default_factory(config: AppConfig) -> DictPlatformFactory:
    settings = config.publish
    project_root: Path = config.paths.root

    def _directory() -> SitePublisher:
        if settings.directory is None:
            raise ValueError("publish.directory must be set for the 'directory' target")
        return DirectoryPublisher(settings.directory)

    return DictPlatformFactory(
        {
            "git": lambda: GitBranchPublisher(settings, project_root=project_root),
            "directory": _directory,
        }
    )
