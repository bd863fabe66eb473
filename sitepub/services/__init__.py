"""Service layer."""

from .publishing_service import PublishingService, PublishOutcome

__all__ = ["PublishingService", "PublishOutcome"]
