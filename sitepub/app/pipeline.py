"""Composable pipeline for build → publish."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Iterable, Sequence

from ..builder import BuildResult, SiteBuilder
from ..core.errors import PublishError
from ..platforms import default_factory
from ..services import PublishingService, PublishOutcome
from ..settings import AppConfig, load_config
from ..utils.logging import get_logger
from .concurrency import DeployGroup

LOGGER = get_logger(__name__)


def new_run_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")


@dataclass(slots=True)
class PipelineContext:
    """Mutable context shared between pipeline steps."""

    config: AppConfig
    run_id: str = field(default_factory=new_run_id)
    target: str | None = None
    dry_run: bool = False
    build_result: BuildResult | None = None
    publish_outcome: PublishOutcome | None = None

    @property
    def branch(self) -> str:
        return self.config.publish.branch

    @property
    def output_dir(self) -> Path:
        return self.config.paths.output_dir

    @property
    def target_name(self) -> str:
        return self.target or self.config.publish.target

    def deploy_group(self) -> DeployGroup:
        return DeployGroup(self.config.paths.locks_dir, self.config.publish.group)

    def register_run(self) -> None:
        self.deploy_group().register(self.run_id)


@dataclass(slots=True)
class PipelineStep:
    name: str
    handler: Callable[[PipelineContext], None]
    depends_on: tuple[str, ...] = ()


@dataclass(slots=True)
class PipelineHooks:
    before_step: Callable[[str, PipelineContext], None] | None = None
    after_step: Callable[[str, PipelineContext], None] | None = None
    on_error: Callable[[str, PipelineContext, BaseException], None] | None = None


class PipelineRunner:
    """Executes registered pipeline steps in order, respecting dependencies.

    The first failing step aborts the run; later steps never execute.
    """

    def __init__(self, steps: Sequence[PipelineStep]) -> None:
        self._step_map: Dict[str, PipelineStep] = {step.name: step for step in steps}
        self._order = [step.name for step in steps]

    @property
    def steps(self) -> list[PipelineStep]:
        return [self._step_map[name] for name in self._order]

    @property
    def step_names(self) -> list[str]:
        return list(self._order)

    def run(
        self,
        context: PipelineContext,
        *,
        only: Iterable[str] | None = None,
        completed: Iterable[str] | None = None,
        hooks: PipelineHooks | None = None,
    ) -> None:
        selected = set(only) if only is not None else None
        executed: set[str] = set(completed or ())
        hooks = hooks or PipelineHooks()
        for name in self._order:
            if name in executed:
                continue
            if selected is not None and name not in selected:
                continue
            step = self._step_map[name]
            missing = [dep for dep in step.depends_on if dep not in executed]
            if missing:
                raise RuntimeError(f"Step '{name}' depends on missing steps: {', '.join(missing)}")

            LOGGER.info("Running pipeline step: %s", name, extra={"event": "pipeline.step", "step": name})
            if hooks.before_step:
                hooks.before_step(name, context)
            try:
                step.handler(context)
            except BaseException as exc:
                if hooks.on_error:
                    hooks.on_error(name, context, exc)
                raise
            if hooks.after_step:
                hooks.after_step(name, context)
            executed.add(name)


def _run_build(context: PipelineContext) -> None:
    context.build_result = SiteBuilder(context.config).build()


def _run_publish(context: PipelineContext) -> None:
    digest = context.build_result.digest if context.build_result else None
    if context.build_result is None and not context.output_dir.is_dir():
        raise PublishError(f"No build output to publish at {context.output_dir}; run the build step first")

    publisher = default_factory(context.config).create(context.target_name)
    service = PublishingService(
        publisher,
        group=context.deploy_group(),
        lock_timeout=context.config.publish.lock_timeout,
    )
    artifacts = service.artifacts_from(context.output_dir, digest)
    context.publish_outcome = service.publish(artifacts, run_id=context.run_id, dry_run=context.dry_run)


DEFAULT_STEPS = [
    PipelineStep("build", _run_build),
    PipelineStep("publish", _run_publish, depends_on=("build",)),
]


def build_default_runner(
    config: AppConfig | None = None,
    *,
    run_id: str | None = None,
    **options: object,
) -> tuple[PipelineRunner, PipelineContext]:
    app_config = config or load_config()
    target = options.get("target")
    ctx = PipelineContext(
        config=app_config,
        run_id=run_id or new_run_id(),
        target=str(target) if target else None,
        dry_run=bool(options.get("dry_run", False)),
    )
    return PipelineRunner(DEFAULT_STEPS), ctx


__all__ = [
    "PipelineContext",
    "PipelineHooks",
    "PipelineRunner",
    "PipelineStep",
    "DEFAULT_STEPS",
    "build_default_runner",
    "new_run_id",
]
