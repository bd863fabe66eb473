"""High-level orchestration for publishing a built site."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ..app.concurrency import DeployGroup
from ..core.errors import PublishError
from ..platforms import ArtifactSet, PublishResult, SitePublisher
from ..utils.file_helper import tree_digest
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass(slots=True)
class PublishOutcome:
    """What happened to a publish request."""

    status: str
    result: PublishResult | None = None

    PUBLISHED = "published"
    UNCHANGED = "unchanged"
    SUPERSEDED = "superseded"
    DRY_RUN = "dry-run"

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"status": self.status}
        if self.result is not None:
            data.update(self.result.to_dict())
        return data


class PublishingService:
    """Coordinates the deploy group and the configured publisher."""

    def __init__(
        self,
        publisher: SitePublisher,
        *,
        group: DeployGroup | None = None,
        lock_timeout: float = 0.0,
    ) -> None:
        self._publisher = publisher
        self._group = group
        self._lock_timeout = lock_timeout

    def artifacts_from(self, output_dir: Path, digest: str | None = None) -> ArtifactSet:
        if not output_dir.is_dir():
            raise PublishError(f"Nothing to publish, build output missing: {output_dir}")
        return ArtifactSet(root=output_dir, digest=digest or tree_digest(output_dir))

    def publish(self, artifacts: ArtifactSet, *, run_id: str, dry_run: bool = False) -> PublishOutcome:
        """Publish ``artifacts`` unless a newer run of the same group has started."""

        self._publisher.prepare()
        if dry_run:
            LOGGER.info(
                "Dry run, skipping publish",
                extra={"event": "publish.skipped", "target": self._publisher.name, "digest": artifacts.digest},
            )
            return self._skipped(PublishOutcome.DRY_RUN)

        if self._group is None:
            return self._publish(artifacts)

        with self._group.lock(run_id, timeout=self._lock_timeout):
            if not self._group.is_current(run_id):
                LOGGER.warning(
                    "Run superseded by a newer deploy, skipping publish",
                    extra={
                        "event": "publish.superseded",
                        "group": self._group.name,
                        "run_id": run_id,
                        "latest": self._group.latest(),
                    },
                )
                return self._skipped(PublishOutcome.SUPERSEDED)
            return self._publish(artifacts)

    def _skipped(self, status: str) -> PublishOutcome:
        return PublishOutcome(status, PublishResult(target=self._publisher.name, reference=None, changed=False))

    def _publish(self, artifacts: ArtifactSet) -> PublishOutcome:
        result = self._publisher.publish(artifacts)
        status = PublishOutcome.PUBLISHED if result.changed else PublishOutcome.UNCHANGED
        LOGGER.info(
            "Publish finished",
            extra={"event": "publish.finished", "status": status, **result.to_dict()},
        )
        return PublishOutcome(status, result)


__all__ = ["PublishOutcome", "PublishingService"]
