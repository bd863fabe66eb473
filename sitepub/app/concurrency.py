"""Per-branch deploy serialisation.

A deploy group (``ci-<branch>``) admits one publisher at a time. Every run
registers itself as the newest run of its group when it starts; a run that
has been overtaken by a newer registration is superseded and must not
publish.
"""

from __future__ import annotations

import json
import os
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from slugify import slugify

from ..core.errors import DeployLockedError
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

# an empty lock or breaker guard older than this is treated as abandoned
STALE_GRACE_SECONDS = 10.0


def _pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def _holder_pid(raw: str) -> int | None:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return None
    pid = payload.get("pid") if isinstance(payload, dict) else None
    return pid if isinstance(pid, int) else None


def _age(path: Path) -> float:
    try:
        return time.time() - path.stat().st_mtime
    except FileNotFoundError:
        return 0.0


class DeployGroup:
    def __init__(self, root: Path, name: str) -> None:
        self._root = root
        self._name = name
        self._key = slugify(name) or "default"

    @property
    def name(self) -> str:
        return self._name

    @property
    def lock_path(self) -> Path:
        return self._root / f"{self._key}.lock"

    @property
    def guard_path(self) -> Path:
        return self._root / f"{self._key}.lock.guard"

    @property
    def latest_path(self) -> Path:
        return self._root / f"{self._key}.latest"

    def register(self, run_id: str) -> None:
        """Record ``run_id`` as the newest run of the group."""
        self._root.mkdir(parents=True, exist_ok=True)
        tmp = self.latest_path.with_suffix(f".{os.getpid()}.tmp")
        tmp.write_text(run_id, encoding="utf-8")
        os.replace(tmp, self.latest_path)
        LOGGER.debug("Registered run", extra={"event": "deploy.register", "group": self._name, "run_id": run_id})

    def latest(self) -> str | None:
        try:
            return self.latest_path.read_text(encoding="utf-8").strip() or None
        except FileNotFoundError:
            return None

    def is_current(self, run_id: str) -> bool:
        latest = self.latest()
        return latest is None or latest == run_id

    def holder(self) -> dict[str, object] | None:
        try:
            return json.loads(self.lock_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except json.JSONDecodeError:
            # lock file caught between create and write
            return {}

    @contextmanager
    def lock(self, run_id: str, *, timeout: float = 0.0, poll_interval: float = 0.5) -> Iterator[None]:
        self._root.mkdir(parents=True, exist_ok=True)
        deadline = time.monotonic() + max(timeout, 0.0)
        while True:
            try:
                fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                if self._break_stale_lock():
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    holder = self.holder() or {}
                    raise DeployLockedError(
                        f"Deploy group {self._name!r} is locked by run {holder.get('run_id', '<unknown>')}"
                    ) from None
                time.sleep(min(poll_interval, remaining))
                continue
            break

        payload = {
            "pid": os.getpid(),
            "run_id": run_id,
            "acquired_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        }
        with os.fdopen(fd, "w", encoding="utf-8") as fp:
            json.dump(payload, fp)
        LOGGER.debug("Acquired deploy lock", extra={"event": "deploy.lock", "group": self._name, "run_id": run_id})
        try:
            yield
        finally:
            self.lock_path.unlink(missing_ok=True)
            LOGGER.debug("Released deploy lock", extra={"event": "deploy.unlock", "group": self._name})

    def _break_stale_lock(self) -> bool:
        """Remove the lock file if its owner is gone. True means retry at once.

        Breakers are serialised through ``guard_path`` and read the holder only
        while holding it.
        """

        try:
            os.close(os.open(self.guard_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644))
        except FileExistsError:
            if _age(self.guard_path) > STALE_GRACE_SECONDS:
                # breaker died while holding the guard
                self.guard_path.unlink(missing_ok=True)
            return False

        try:
            try:
                raw = self.lock_path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return True
            age = _age(self.lock_path)
            pid = _holder_pid(raw)
            if pid is None:
                # crashed between create and write
                stale = age > STALE_GRACE_SECONDS
            else:
                stale = not _pid_alive(pid)
            if not stale:
                return False
            LOGGER.warning(
                "Removing stale deploy lock",
                extra={"event": "deploy.stale_lock", "group": self._name, "pid": pid, "age": round(age, 1)},
            )
            self.lock_path.unlink(missing_ok=True)
            return True
        finally:
            self.guard_path.unlink(missing_ok=True)


__all__ = ["DeployGroup", "STALE_GRACE_SECONDS"]
