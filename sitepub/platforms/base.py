"""Base contracts for deployment targets."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


@dataclass(slots=True)
class ArtifactSet:
    """The built site handed to a publisher."""

    root: Path
    digest: str

    @property
    def short_digest(self) -> str:
        return self.digest[:12]


@dataclass(slots=True)
class PublishResult:
    """Outcome of a deploy."""

    target: str
    reference: str | None
    changed: bool
    location: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "target": self.target,
            "reference": self.reference,
            "changed": self.changed,
            "location": self.location,
        }


class SitePublisher(ABC):
    """Replaces the contents of a deployment target with an artifact set."""

    name: str = "publisher"

    @abstractmethod
    def prepare(self) -> None:
        """Execute pre-flight checks, e.g. tool availability or destination resolution."""

    @abstractmethod
    def publish(self, artifacts: ArtifactSet) -> PublishResult:
        """Publish the artifact set, overwriting the previously deployed state."""


class PlatformFactory(Protocol):
    """Factory interface for retrieving target-specific publishers."""

    def create(self, platform: str) -> SitePublisher:
        """Return a configured publisher for the selected target."""
