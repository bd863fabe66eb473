"""Deployment target package."""

from __future__ import annotations

from .base import ArtifactSet, PlatformFactory, PublishResult, SitePublisher
from .directory import DirectoryPublisher
from .factory import DictPlatformFactory, default_factory
from .git import GitBranchPublisher, GitCommand

__all__ = [
    "ArtifactSet",
    "PlatformFactory",
    "PublishResult",
    "SitePublisher",
    "DirectoryPublisher",
    "DictPlatformFactory",
    "default_factory",
    "GitBranchPublisher",
    "GitCommand",
]
