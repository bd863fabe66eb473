"""Exception hierarchy shared by the builder and publishers."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence


class SitePubError(Exception):
    """Base class for all sitepub failures."""


class ContentError(SitePubError):
    """A Document could not be read or is missing required metadata."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | str | None = None,
        field: str | None = None,
        errors: Sequence["ContentError"] = (),
    ) -> None:
        self.path = Path(path) if path is not None else None
        self.field = field
        self.errors = tuple(errors)
        location = f"{self.path}: " if self.path is not None else ""
        super().__init__(f"{location}{message}")

    @classmethod
    def aggregate(cls, errors: Sequence["ContentError"]) -> "ContentError":
        if len(errors) == 1:
            return errors[0]
        lines = "\n".join(f"  - {error}" for error in errors)
        return cls(f"{len(errors)} documents failed validation:\n{lines}", errors=errors)


class BuildError(SitePubError):
    """Rendering or writing the artifact set failed."""


class PublishError(SitePubError):
    """Copying the artifact set onto the deployment target failed."""


class DeployLockedError(PublishError):
    """Another deploy for the same target holds the lock."""


__all__ = [
    "SitePubError",
    "ContentError",
    "BuildError",
    "PublishError",
    "DeployLockedError",
]
