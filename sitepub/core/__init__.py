"""Core primitives shared across sitepub."""

from .errors import BuildError, ContentError, DeployLockedError, PublishError, SitePubError

__all__ = [
    "SitePubError",
    "ContentError",
    "BuildError",
    "PublishError",
    "DeployLockedError",
]
