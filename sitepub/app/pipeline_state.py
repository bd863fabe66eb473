"""Persistence helpers for pipeline execution state."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from slugify import slugify


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(slots=True)
class PipelineState:
    """Step progress of the latest run against one deploy branch."""

    branch: str
    steps: dict[str, str]
    updated_at: str = field(default_factory=_now)
    run_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    STATUS_PENDING = "pending"
    STATUS_RUNNING = "running"
    STATUS_COMPLETED = "completed"
    STATUS_FAILED = "failed"

    @classmethod
    def initialize(
        cls, branch: str, step_names: Iterable[str], *, run_id: str | None = None
    ) -> "PipelineState":
        steps = {name: cls.STATUS_PENDING for name in step_names}
        return cls(branch=branch, steps=steps, run_id=run_id or _now())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PipelineState":
        branch = str(data.get("branch", "default"))
        raw_steps = data.get("steps", {})
        if not isinstance(raw_steps, dict):
            raise ValueError("Invalid pipeline state: 'steps' must be a mapping")
        raw_details = data.get("details") or {}
        if not isinstance(raw_details, dict):
            raise ValueError("Invalid pipeline state: 'details' must be a mapping")
        run_id = data.get("run_id")
        return cls(
            branch=branch,
            steps={str(name): str(status) for name, status in raw_steps.items()},
            updated_at=str(data.get("updated_at", _now())),
            run_id=str(run_id) if run_id else None,
            details=dict(raw_details),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "branch": self.branch,
            "steps": self.steps,
            "updated_at": self.updated_at,
            "run_id": self.run_id,
            "details": self.details,
        }

    def mark_running(self, step: str) -> None:
        self.steps[step] = self.STATUS_RUNNING
        self.updated_at = _now()

    def mark_completed(self, step: str, **details: Any) -> None:
        self.steps[step] = self.STATUS_COMPLETED
        if details:
            self.details[step] = details
        self.updated_at = _now()

    def mark_failed(self, step: str, *, error: str | None = None) -> None:
        self.steps[step] = self.STATUS_FAILED
        if error:
            self.details[step] = {"error": error}
        self.updated_at = _now()

    def reset_incomplete(self) -> None:
        for name, status in self.steps.items():
            if status != self.STATUS_COMPLETED:
                self.steps[name] = self.STATUS_PENDING
        self.updated_at = _now()

    def completed_steps(self) -> list[str]:
        return [name for name, status in self.steps.items() if status == self.STATUS_COMPLETED]

    def pending_steps(self) -> list[str]:
        return [name for name, status in self.steps.items() if status != self.STATUS_COMPLETED]


class PipelineStateStore:
    """Stores pipeline state on disk, one JSON file per deploy branch."""

    def __init__(self, root: Path) -> None:
        self._root = root
        self._root.mkdir(parents=True, exist_ok=True)

    def path_for(self, branch: str) -> Path:
        return self._root / f"{slugify(branch) or 'default'}.json"

    def load(self, branch: str) -> PipelineState | None:
        path = self.path_for(branch)
        if not path.exists():
            return None
        state = PipelineState.from_dict(json.loads(path.read_text(encoding="utf-8")))
        # Keep the caller's spelling; the file name is slugified.
        state.branch = branch
        return state

    def save(self, state: PipelineState) -> Path:
        path = self.path_for(state.branch)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(state.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
        return path

    def delete(self, branch: str) -> None:
        self.path_for(branch).unlink(missing_ok=True)


__all__ = ["PipelineState", "PipelineStateStore"]
