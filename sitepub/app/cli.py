"""Unified command-line interface for building and deploying the site."""

from __future__ import annotations

import argparse
import json
import logging
import shutil
import sys
from pathlib import Path
from typing import Callable, Iterable, Sequence

from ..builder import SiteBuilder
from ..core.errors import SitePubError
from ..platforms import default_factory
from ..services import PublishingService
from ..settings import AppConfig, load_config
from ..utils.logging import configure_logging, get_logger
from .pipeline import PipelineContext, PipelineHooks, PipelineRunner, build_default_runner, new_run_id
from .pipeline_state import PipelineState, PipelineStateStore

LOGGER = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


class UsageError(Exception):
    """Invalid invocation, reported with exit code 2."""


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        structured=not args.log_plain,
    )

    handler: Callable[[argparse.Namespace], int] | None = getattr(args, "handler", None)
    if handler is None:
        parser.print_help(sys.stderr)
        return EXIT_USAGE

    try:
        return handler(args)
    except (UsageError, ValueError) as exc:
        LOGGER.error(str(exc), extra={"event": "cli.error", "command": args.command})
        return EXIT_USAGE
    except SitePubError as exc:
        LOGGER.error(
            "Command failed: %s",
            exc,
            extra={"event": "cli.error", "command": args.command, "error_type": type(exc).__name__},
        )
        return EXIT_FAILURE
    except OSError as exc:
        LOGGER.error(
            "Filesystem error: %s",
            exc,
            extra={"event": "cli.error", "command": args.command, "error_type": type(exc).__name__},
        )
        return EXIT_FAILURE


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sitepub", description="Build and deploy the blog")
    parser.add_argument("--config", help="Path to configuration file", default=None)
    parser.add_argument(
        "--log-plain",
        action="store_true",
        help="Use plain-text logs instead of JSON",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    build_parser = subparsers.add_parser("build", help="Render the site into the output directory")
    build_parser.set_defaults(handler=_handle_build)

    check_parser = subparsers.add_parser("check", help="Validate documents without writing output")
    check_parser.set_defaults(handler=_handle_check)

    deploy_parser = subparsers.add_parser("deploy", help="Publish the existing output directory")
    _add_publish_options(deploy_parser)
    deploy_parser.set_defaults(handler=_handle_deploy)

    _add_pipeline_commands(subparsers)
    return parser


def _add_publish_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--target", help="Publish target name (git, directory)", default=None)
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Build and prepare, but do not touch the deployment target",
    )


def _add_pipeline_commands(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    pipeline_parser = subparsers.add_parser("pipeline", help="Build then publish")
    _add_publish_options(pipeline_parser)

    pipeline_subparsers = pipeline_parser.add_subparsers(dest="pipeline_command", required=True)

    run_parser = pipeline_subparsers.add_parser("run", help="Run the full pipeline from scratch")
    run_parser.add_argument(
        "--only",
        nargs="+",
        metavar="STEP",
        help="Limit execution to specific steps (dependencies are added)",
    )
    run_parser.set_defaults(handler=_handle_pipeline_run)

    resume_parser = pipeline_subparsers.add_parser("resume", help="Resume from the last incomplete step")
    resume_parser.add_argument(
        "--only",
        nargs="+",
        metavar="STEP",
        help="Restrict resume to the provided steps",
    )
    resume_parser.set_defaults(handler=_handle_pipeline_resume)

    inspect_parser = pipeline_subparsers.add_parser("inspect", help="Show stored pipeline state")
    inspect_parser.add_argument(
        "--format",
        choices=("json", "table"),
        default="json",
        help="Output format for state inspection",
    )
    inspect_parser.set_defaults(handler=_handle_pipeline_inspect)

    clean_parser = pipeline_subparsers.add_parser("clean", help="Reset pipeline state")
    clean_parser.add_argument(
        "--outputs",
        action="store_true",
        help="Also remove the build output directory",
    )
    clean_parser.set_defaults(handler=_handle_pipeline_clean)


def _handle_build(args: argparse.Namespace) -> int:
    config = _load_config(args)
    result = SiteBuilder(config).build()
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    return EXIT_OK


def _handle_check(args: argparse.Namespace) -> int:
    config = _load_config(args)
    documents = SiteBuilder(config).check()
    LOGGER.info(
        "All documents valid",
        extra={"event": "cli.command", "command": "check", "documents": len(documents)},
    )
    for document in documents:
        flag = " (draft)" if document.draft else ""
        print(f"{document.kind:<5} {document.url}  {document.source}{flag}")
    return EXIT_OK


def _handle_deploy(args: argparse.Namespace) -> int:
    config = _load_config(args)
    context = PipelineContext(config=config, target=args.target, dry_run=args.dry_run)
    context.register_run()
    publisher = default_factory(config).create(context.target_name)
    service = PublishingService(publisher, group=context.deploy_group(), lock_timeout=config.publish.lock_timeout)
    outcome = service.publish(service.artifacts_from(context.output_dir), run_id=context.run_id, dry_run=args.dry_run)
    print(json.dumps(outcome.to_dict(), ensure_ascii=False, indent=2))
    return EXIT_OK


def _handle_pipeline_run(args: argparse.Namespace) -> int:
    config = _load_config(args)
    runner, context = build_default_runner(
        config=config,
        run_id=new_run_id(),
        target=args.target,
        dry_run=args.dry_run,
    )
    context.register_run()
    state_store = PipelineStateStore(_state_root(config))
    state = PipelineState.initialize(context.branch, runner.step_names, run_id=context.run_id)
    state_store.save(state)

    LOGGER.info(
        "Pipeline run started",
        extra={
            "event": "cli.command",
            "command": "pipeline.run",
            "branch": context.branch,
            "run_id": context.run_id,
            "steps": list(runner.step_names),
        },
    )

    hooks = _build_hooks(state_store, state)
    selection = _select_steps(runner, args.only)

    try:
        runner.run(context, only=selection, hooks=hooks)
    except Exception:
        LOGGER.error(
            "Pipeline run failed",
            extra={"event": "cli.command", "command": "pipeline.run", "branch": context.branch},
        )
        raise

    _report(context)
    return EXIT_OK


def _handle_pipeline_resume(args: argparse.Namespace) -> int:
    config = _load_config(args)
    runner, context = build_default_runner(config=config, target=args.target, dry_run=args.dry_run)
    state_store = PipelineStateStore(_state_root(config))
    state = state_store.load(context.branch)
    if state is None:
        LOGGER.error(
            "No previous pipeline run found",
            extra={"event": "cli.error", "command": "pipeline.resume", "branch": context.branch},
        )
        return EXIT_USAGE

    state.reset_incomplete()
    completed = set(state.completed_steps())
    pending = [step for step in runner.step_names if step not in completed]
    if not pending:
        LOGGER.info(
            "All pipeline steps already completed",
            extra={"event": "cli.command", "command": "pipeline.resume", "branch": context.branch},
        )
        return EXIT_OK

    selection = _select_steps(runner, args.only)
    if selection is None:
        selection = pending
    else:
        selection = [step for step in selection if step in pending]

    if not selection:
        LOGGER.info(
            "No matching steps to resume",
            extra={"event": "cli.command", "command": "pipeline.resume", "branch": context.branch},
        )
        return EXIT_OK

    context.register_run()
    state.run_id = context.run_id
    LOGGER.info(
        "Resuming pipeline",
        extra={
            "event": "cli.command",
            "command": "pipeline.resume",
            "branch": context.branch,
            "remaining": selection,
        },
    )

    hooks = _build_hooks(state_store, state)
    runner.run(context, only=selection, completed=completed, hooks=hooks)
    _report(context)
    return EXIT_OK


def _handle_pipeline_inspect(args: argparse.Namespace) -> int:
    config = _load_config(args)
    branch = config.publish.branch
    state = PipelineStateStore(_state_root(config)).load(branch)
    if state is None:
        LOGGER.warning(
            "No pipeline state recorded",
            extra={"event": "cli.command", "command": "pipeline.inspect", "branch": branch},
        )
        print("<no-state>")
        return EXIT_OK

    if args.format == "table":
        _print_state_table(state)
    else:
        print(json.dumps(state.to_dict(), ensure_ascii=False, indent=2))
    return EXIT_OK


def _handle_pipeline_clean(args: argparse.Namespace) -> int:
    config = _load_config(args)
    branch = config.publish.branch
    PipelineStateStore(_state_root(config)).delete(branch)
    LOGGER.info(
        "Cleared pipeline state",
        extra={"event": "cli.command", "command": "pipeline.clean", "branch": branch},
    )

    if args.outputs:
        output_dir = config.paths.output_dir
        if output_dir.exists():
            shutil.rmtree(output_dir)
        LOGGER.info(
            "Removed build output",
            extra={"event": "cli.command", "command": "pipeline.clean", "path": str(output_dir)},
        )
        print(f"Outputs cleared under {output_dir}")
    return EXIT_OK


def _load_config(args: argparse.Namespace) -> AppConfig:
    try:
        return load_config(args.config)
    except FileNotFoundError as exc:
        raise UsageError(str(exc)) from exc


def _select_steps(runner: PipelineRunner, requested: Iterable[str] | None) -> list[str] | None:
    if requested is None:
        return None

    available = {name.lower(): name for name in runner.step_names}
    desired = [name.lower() for name in requested]
    invalid = [name for name in desired if name not in available]
    if invalid:
        LOGGER.error(
            "Unknown pipeline steps provided",
            extra={"event": "cli.error", "invalid_steps": sorted(set(invalid))},
        )
        raise SystemExit(EXIT_USAGE)

    selected_keys = set(desired)

    # Publishing without a build in the same run is never allowed.
    changed = True
    while changed:
        changed = False
        for step in runner.steps:
            name_key = step.name.lower()
            if name_key in selected_keys:
                for dep in step.depends_on:
                    dep_key = dep.lower()
                    if dep_key not in selected_keys:
                        selected_keys.add(dep_key)
                        changed = True

    return [name for name in runner.step_names if name.lower() in selected_keys]


def _build_hooks(store: PipelineStateStore, state: PipelineState) -> PipelineHooks:
    def before(step: str, _: PipelineContext) -> None:
        state.mark_running(step)
        store.save(state)

    def after(step: str, context: PipelineContext) -> None:
        details: dict[str, object] = {}
        if step == "build" and context.build_result is not None:
            details = {"digest": context.build_result.digest, "files": len(context.build_result.files)}
        elif step == "publish" and context.publish_outcome is not None:
            details = context.publish_outcome.to_dict()
        state.mark_completed(step, **details)
        store.save(state)

    def error(step: str, _: PipelineContext, exc: BaseException) -> None:
        state.mark_failed(step, error=f"{type(exc).__name__}: {exc}")
        store.save(state)
        LOGGER.debug(
            "Exception captured",
            extra={"event": "pipeline.error", "step": step, "error_type": type(exc).__name__},
        )

    return PipelineHooks(before_step=before, after_step=after, on_error=error)


def _report(context: PipelineContext) -> None:
    summary: dict[str, object] = {"run_id": context.run_id, "branch": context.branch}
    if context.build_result is not None:
        summary["build"] = context.build_result.to_dict()
    if context.publish_outcome is not None:
        summary["publish"] = context.publish_outcome.to_dict()
    LOGGER.info("Pipeline run finished", extra={"event": "cli.command", "command": "pipeline", **summary})
    print(json.dumps(summary, ensure_ascii=False, indent=2))


def _state_root(config: AppConfig) -> Path:
    return config.paths.pipeline_state_dir


def _print_state_table(state: PipelineState) -> None:
    width = max((len(name) for name in state.steps), default=8)
    print("Step".ljust(width), "Status", sep="  ")
    for name, status in state.steps.items():
        print(name.ljust(width), status, sep="  ")


__all__ = ["main"]
