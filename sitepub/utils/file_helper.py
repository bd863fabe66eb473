"""Filesystem helpers."""

from __future__ import annotations

import hashlib
import shutil
from pathlib import Path
from typing import Iterable, Iterator


def ensure_parent(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def write_text(path: Path, data: str, *, encoding: str = "utf-8") -> None:
    ensure_parent(path)
    # newline="\n" keeps artifacts byte-identical across platforms
    with path.open("w", encoding=encoding, newline="\n") as fp:
        fp.write(data)


def is_within(path: Path, parent: Path) -> bool:
    path, parent = path.resolve(), parent.resolve()
    return path == parent or parent in path.parents


def iter_files(
    root: Path,
    *,
    skip_hidden: bool = True,
    exclude: Iterable[Path] = (),
) -> Iterator[Path]:
    """Yield files under ``root`` in a stable, sorted order.

    Entries of ``exclude`` that lie strictly inside ``root`` are skipped with
    everything below them. Other entries are ignored.
    """

    resolved_root = root.resolve()
    skipped = [path for path in (p.resolve() for p in exclude) if resolved_root in path.parents]
    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        relative = path.relative_to(root)
        if skip_hidden and any(part.startswith(".") for part in relative.parts):
            continue
        if skipped and any(is_within(path, other) for other in skipped):
            continue
        yield path


def clear_directory(root: Path, *, keep: tuple[str, ...] = ()) -> None:
    """Remove everything inside ``root`` except the names in ``keep``."""

    for child in root.iterdir():
        if child.name in keep:
            continue
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


def copy_contents(source: Path, destination: Path) -> list[Path]:
    """Copy every file under ``source`` into ``destination``; return relative paths."""

    copied: list[Path] = []
    for path in iter_files(source, skip_hidden=False):
        relative = path.relative_to(source)
        target = ensure_parent(destination / relative)
        shutil.copy2(path, target)
        copied.append(relative)
    return copied


def replace_directory(staging: Path, target: Path) -> None:
    """Swap ``staging`` into place at ``target``, discarding the previous tree."""

    if target.exists():
        shutil.rmtree(target)
    ensure_parent(target)
    staging.rename(target)


def tree_digest(root: Path) -> str:
    """SHA-256 over sorted relative paths and file bytes."""

    digest = hashlib.sha256()
    for path in iter_files(root, skip_hidden=False):
        digest.update(path.relative_to(root).as_posix().encode("utf-8"))
        digest.update(b"\0")
        digest.update(path.read_bytes())
        digest.update(b"\0")
    return digest.hexdigest()
