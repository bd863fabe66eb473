"""Helpers for loading site configuration."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

DEFAULT_CONFIG_NAME = "sitepub.toml"
CONFIG_ENV_VAR = "SITEPUB_CONFIG"

_DEFAULT_MARKDOWN_EXTENSIONS = ("extra", "toc", "sane_lists")
_DEFAULT_POST_FIELDS = ("title", "date")
_DEFAULT_PAGE_FIELDS = ("title",)


@dataclass(slots=True)
class SiteSettings:
    title: str
    author: str
    url: str
    language: str = "en"
    description: str = ""
    feed_limit: int = 10

    @property
    def base_url(self) -> str:
        return self.url.rstrip("/")


@dataclass(slots=True)
class PathSettings:
    root: Path
    content_dir: Path
    posts_dir: str
    output_dir: Path
    static_dir: Path
    templates_dir: Path
    state_dir: Path

    @property
    def staging_dir(self) -> Path:
        return self.output_dir.with_name(f".{self.output_dir.name}.staging")

    @property
    def pipeline_state_dir(self) -> Path:
        return self.state_dir / "pipeline"

    @property
    def locks_dir(self) -> Path:
        return self.state_dir / "locks"


@dataclass(slots=True)
class BuildSettings:
    markdown_extensions: tuple[str, ...] = _DEFAULT_MARKDOWN_EXTENSIONS
    required_post_fields: tuple[str, ...] = _DEFAULT_POST_FIELDS
    required_page_fields: tuple[str, ...] = _DEFAULT_PAGE_FIELDS

    def required_fields(self, kind: str) -> tuple[str, ...]:
        return self.required_post_fields if kind == "post" else self.required_page_fields


@dataclass(slots=True)
class PublishSettings:
    target: str = "git"
    branch: str = "gh-pages"
    remote: str = "origin"
    repository: str | None = None
    commit_message: str = "Deploy {digest}"
    author_name: str = "sitepub"
    author_email: str = "sitepub@localhost"
    nojekyll: bool = True
    cname: str | None = None
    directory: Path | None = None
    lock_timeout: float = 0.0
    token_env: str | None = "GITHUB_TOKEN"
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def group(self) -> str:
        """Concurrency key, one deploy at a time per target branch."""
        return f"ci-{self.branch}"


@dataclass(slots=True)
class AppConfig:
    site: SiteSettings
    paths: PathSettings
    build: BuildSettings
    publish: PublishSettings
    source: Path | None = None

    def reserved_paths(self) -> tuple[Path, ...]:
        """Generated or tool-owned locations that are never read as site content."""

        candidates = [
            self.paths.output_dir,
            self.paths.staging_dir,
            self.paths.state_dir,
            self.paths.templates_dir,
            self.paths.static_dir,
            self.publish.directory,
            self.source,
        ]
        return tuple(path for path in candidates if path is not None)


def _to_path(value: str | None, *, base: Path, fallback: str) -> Path:
    candidate = Path(value) if value else Path(fallback)
    return candidate if candidate.is_absolute() else base / candidate


def _config_path(explicit: str | os.PathLike[str] | None = None) -> Path:
    if explicit:
        candidate = Path(explicit)
    else:
        env_value = os.environ.get(CONFIG_ENV_VAR)
        candidate = Path(env_value) if env_value else Path.cwd() / DEFAULT_CONFIG_NAME
    return candidate if candidate.is_absolute() else Path.cwd() / candidate


def _load_toml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("rb") as fp:
        return tomllib.load(fp)


def _as_tuple(value: Any, fallback: Iterable[str]) -> tuple[str, ...]:
    if value is None:
        return tuple(fallback)
    if isinstance(value, str):
        return tuple(item.strip() for item in value.split(",") if item.strip())
    return tuple(str(item) for item in value)


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def config_from_dict(data: dict[str, Any], *, base_dir: Path, source: Path | None = None) -> AppConfig:
    """Build an :class:`AppConfig` from parsed TOML data."""

    site_section = data.get("site", {})
    paths_section = data.get("paths", {})
    build_section = data.get("build", {})
    publish_section = data.get("publish", {})

    site = SiteSettings(
        title=str(site_section.get("title", "Untitled")),
        author=str(site_section.get("author", "")),
        url=str(site_section.get("url", "")),
        language=str(site_section.get("language", "en")),
        description=str(site_section.get("description", "")),
        feed_limit=int(site_section.get("feed_limit", 10)),
    )

    paths = PathSettings(
        root=base_dir,
        content_dir=_to_path(paths_section.get("content_dir"), base=base_dir, fallback="content"),
        posts_dir=str(paths_section.get("posts_dir", "posts")).strip("/"),
        output_dir=_to_path(paths_section.get("output_dir"), base=base_dir, fallback="_build"),
        static_dir=_to_path(paths_section.get("static_dir"), base=base_dir, fallback="static"),
        templates_dir=_to_path(paths_section.get("templates_dir"), base=base_dir, fallback="templates"),
        state_dir=_to_path(paths_section.get("state_dir"), base=base_dir, fallback=".sitepub"),
    )

    build = BuildSettings(
        markdown_extensions=_as_tuple(
            build_section.get("markdown_extensions"), _DEFAULT_MARKDOWN_EXTENSIONS
        ),
        required_post_fields=_as_tuple(build_section.get("required_post_fields"), _DEFAULT_POST_FIELDS),
        required_page_fields=_as_tuple(build_section.get("required_page_fields"), _DEFAULT_PAGE_FIELDS),
    )

    directory_value = _optional_str(publish_section.get("directory"))
    recognised = {
        "target",
        "branch",
        "remote",
        "repository",
        "commit_message",
        "author_name",
        "author_email",
        "nojekyll",
        "cname",
        "directory",
        "lock_timeout",
        "token_env",
    }
    publish = PublishSettings(
        target=str(publish_section.get("target", "git")).lower(),
        branch=str(publish_section.get("branch", "gh-pages")),
        remote=str(publish_section.get("remote", "origin")),
        repository=_optional_str(publish_section.get("repository")),
        commit_message=str(publish_section.get("commit_message", "Deploy {digest}")),
        author_name=str(publish_section.get("author_name", "sitepub")),
        author_email=str(publish_section.get("author_email", "sitepub@localhost")),
        nojekyll=bool(publish_section.get("nojekyll", True)),
        cname=_optional_str(publish_section.get("cname")),
        directory=_to_path(directory_value, base=base_dir, fallback="") if directory_value else None,
        lock_timeout=float(publish_section.get("lock_timeout", 0)),
        token_env=_optional_str(publish_section.get("token_env", "GITHUB_TOKEN")),
        extra={k: v for k, v in publish_section.items() if k not in recognised},
    )

    return AppConfig(site=site, paths=paths, build=build, publish=publish, source=source)


def load_config(config_path: str | os.PathLike[str] | None = None) -> AppConfig:
    path = _config_path(config_path)
    data = _load_toml(path)
    return config_from_dict(data, base_dir=path.parent, source=path)
