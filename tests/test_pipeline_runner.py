"""Tests for the pipeline runner orchestration helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from sitepub.app.pipeline import PipelineHooks, PipelineRunner, PipelineStep, build_default_runner
from sitepub.core.errors import ContentError
from sitepub.services import PublishOutcome

from .conftest import write_file


def test_runner_skips_completed_steps() -> None:
    order: list[str] = []

    steps = [
        PipelineStep("build", lambda ctx: order.append("build")),
        PipelineStep("publish", lambda ctx: order.append("publish"), depends_on=("build",)),
    ]
    runner = PipelineRunner(steps)

    runner.run(object(), completed={"build"})

    assert order == ["publish"]


def test_runner_invokes_hooks_and_propagates_errors() -> None:
    events: list[str] = []

    def build(_: object) -> None:
        events.append("run:build")
        raise RuntimeError("boom")

    def publish(_: object) -> None:
        events.append("run:publish")

    hooks = PipelineHooks(
        before_step=lambda name, _: events.append(f"before:{name}"),
        after_step=lambda name, _: events.append(f"after:{name}"),
        on_error=lambda name, _, exc: events.append(f"error:{name}:{type(exc).__name__}"),
    )

    runner = PipelineRunner([PipelineStep("build", build), PipelineStep("publish", publish, depends_on=("build",))])

    with pytest.raises(RuntimeError):
        runner.run(object(), hooks=hooks)

    assert events == ["before:build", "run:build", "error:build:RuntimeError"]


def test_runner_refuses_step_without_its_dependency() -> None:
    ran: list[str] = []
    runner = PipelineRunner(
        [
            PipelineStep("build", lambda ctx: ran.append("build")),
            PipelineStep("publish", lambda ctx: ran.append("publish"), depends_on=("build",)),
        ]
    )

    with pytest.raises(RuntimeError, match="depends on missing steps: build"):
        runner.run(object(), only=["publish"])

    assert ran == []


def _directory_config(make_config, tmp_path: Path):
    return make_config(publish={"target": "directory", "directory": str(tmp_path / "public")})


def test_default_pipeline_builds_then_publishes(site_root: Path, make_config) -> None:
    runner, context = build_default_runner(_directory_config(make_config, site_root))
    context.register_run()

    runner.run(context)

    assert runner.step_names == ["build", "publish"]
    assert context.build_result is not None
    assert context.publish_outcome is not None
    assert context.publish_outcome.status == PublishOutcome.PUBLISHED
    assert (site_root / "public" / "posts" / "cpp-iterators" / "index.html").is_file()


def test_second_identical_run_reports_unchanged(site_root: Path, make_config) -> None:
    config = _directory_config(make_config, site_root)
    for expected in (PublishOutcome.PUBLISHED, PublishOutcome.UNCHANGED):
        runner, context = build_default_runner(config)
        context.register_run()
        runner.run(context)
        assert context.publish_outcome is not None
        assert context.publish_outcome.status == expected


def test_failed_build_never_publishes(site_root: Path, make_config) -> None:
    write_file(site_root / "content", "posts/undated.md", "---\ntitle: Undated\n---\nbody\n")
    runner, context = build_default_runner(_directory_config(make_config, site_root))
    context.register_run()

    with pytest.raises(ContentError):
        runner.run(context)

    assert context.publish_outcome is None
    assert not (site_root / "public").exists()


def test_dry_run_leaves_target_untouched(site_root: Path, make_config) -> None:
    runner, context = build_default_runner(_directory_config(make_config, site_root), dry_run=True)
    context.register_run()

    runner.run(context)

    assert context.publish_outcome is not None
    assert context.publish_outcome.status == PublishOutcome.DRY_RUN
    assert not (site_root / "public").exists()
    assert (site_root / "_build" / "index.html").is_file()
