"""Render Documents into the static artifact set."""

from __future__ import annotations

import shutil
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Iterable, Sequence

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    StrictUndefined,
    TemplateError,
    select_autoescape,
)
from slugify import slugify

from ..content import Document, discover_documents, is_document
from ..core.errors import BuildError
from ..settings import AppConfig
from ..utils.file_helper import copy_contents, ensure_parent, iter_files, replace_directory, tree_digest, write_text
from ..utils.logging import get_logger
from .markup import MarkdownRenderer, extract_summary

LOGGER = get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(slots=True)
class RenderedDocument:
    document: Document
    content: str
    summary: str

    @property
    def url(self) -> str:
        return self.document.url


@dataclass(slots=True)
class Term:
    """A tag or category with the posts filed under it."""

    name: str
    slug: str
    kind: str
    posts: list[RenderedDocument] = field(default_factory=list)

    @property
    def url(self) -> str:
        base = "tags" if self.kind == "tag" else "categories"
        return f"/{base}/{self.slug}/"


@dataclass(slots=True)
class BuildResult:
    output_dir: Path
    files: list[str]
    posts: int
    pages: int
    digest: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "output_dir": str(self.output_dir),
            "files": len(self.files),
            "posts": self.posts,
            "pages": self.pages,
            "digest": self.digest,
        }


def isoformat(value: datetime | None) -> str:
    stamp = (value or _EPOCH).astimezone(timezone.utc)
    return stamp.strftime("%Y-%m-%dT%H:%M:%SZ")


def human_date(value: datetime | None) -> str:
    if value is None:
        return ""
    return value.strftime("%B %d, %Y").replace(" 0", " ")


def create_environment(templates_dir: Path | None = None) -> Environment:
    loaders = []
    if templates_dir is not None and templates_dir.is_dir():
        loaders.append(FileSystemLoader(str(templates_dir)))
    loaders.append(PackageLoader("sitepub", "templates"))
    env = Environment(
        loader=ChoiceLoader(loaders),
        autoescape=select_autoescape(["html", "xml"]),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["isoformat"] = isoformat
    env.filters["human_date"] = human_date
    env.filters["slug"] = slugify
    return env


class SiteBuilder:
    """Builds the whole site into a staging directory, then swaps it into place."""

    def __init__(
        self,
        config: AppConfig,
        *,
        renderer: MarkdownRenderer | None = None,
        environment: Environment | None = None,
    ) -> None:
        self._config = config
        self._renderer = renderer or MarkdownRenderer(config.build.markdown_extensions)
        self._env = environment or create_environment(config.paths.templates_dir)

    @property
    def output_dir(self) -> Path:
        return self._config.paths.output_dir

    @property
    def staging_dir(self) -> Path:
        return self._config.paths.staging_dir

    def check(self) -> list[Document]:
        """Read and validate every Document without writing anything."""
        return discover_documents(self._config)

    def build(self) -> BuildResult:
        documents = [doc for doc in discover_documents(self._config) if not doc.draft]
        staging = self.staging_dir
        try:
            if staging.exists():
                shutil.rmtree(staging)
            staging.mkdir(parents=True)
        except OSError as exc:
            raise BuildError(f"Preparing staging directory {staging} failed: {exc}") from exc

        try:
            files = self._write_site(documents, staging)
            digest = tree_digest(staging)
            replace_directory(staging, self.output_dir)
        except OSError as exc:
            shutil.rmtree(staging, ignore_errors=True)
            raise BuildError(f"Writing the site failed: {exc}") from exc
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        posts = sum(1 for doc in documents if doc.is_post)
        result = BuildResult(
            output_dir=self.output_dir,
            files=files,
            posts=posts,
            pages=len(documents) - posts,
            digest=digest,
        )
        LOGGER.info("Site built", extra={"event": "build.finished", **result.to_dict()})
        return result

    def _write_site(self, documents: Sequence[Document], staging: Path) -> list[str]:
        writer = _ArtifactWriter(staging)

        rendered = [self._render(doc) for doc in documents]
        posts = sorted((item for item in rendered if item.document.is_post), key=lambda r: r.document.sort_key())
        pages = sorted((item for item in rendered if not item.document.is_post), key=lambda r: r.document.slug)
        tags = _collect_terms(posts, "tag")
        categories = _collect_terms(posts, "category")

        for item in posts:
            writer.write(item.document.output_path, self._page("post.html", item=item))
        for item in pages:
            writer.write(item.document.output_path, self._page("page.html", item=item))

        writer.write(PurePosixPath("index.html"), self._page("index.html", posts=posts, pages=pages))

        if tags:
            writer.write(
                PurePosixPath("tags/index.html"),
                self._page("taxonomy.html", term=None, terms=tags, heading="Tags"),
            )
        for term in tags:
            writer.write(
                PurePosixPath(term.url.strip("/")) / "index.html",
                self._page("taxonomy.html", term=term, terms=[], heading=f"Tag: {term.name}"),
            )
        for term in categories:
            writer.write(
                PurePosixPath(term.url.strip("/")) / "index.html",
                self._page("taxonomy.html", term=term, terms=[], heading=f"Category: {term.name}"),
            )

        feed_posts = posts[: max(self._config.site.feed_limit, 0)]
        updated = max((item.document.last_modified or _EPOCH for item in posts), default=_EPOCH)
        writer.write(PurePosixPath("feed.xml"), self._page("feed.xml", posts=feed_posts, updated=updated))
        writer.write(
            PurePosixPath("sitemap.xml"),
            self._page("sitemap.xml", documents=posts + pages, terms=tags + categories),
        )

        self._copy_assets(writer)
        return writer.files

    def _render(self, document: Document) -> RenderedDocument:
        content = self._renderer.render(document.body)
        summary = document.summary or extract_summary(content)
        LOGGER.debug(
            "Rendered document",
            extra={"event": "build.document", "source": str(document.source), "url": document.url},
        )
        return RenderedDocument(document=document, content=content, summary=summary)

    def _page(self, template_name: str, **context: Any) -> str:
        try:
            template = self._env.get_template(template_name)
            return template.render(site=self._config.site, **context)
        except TemplateError as exc:
            raise BuildError(f"Rendering {template_name} failed: {exc}") from exc

    def _copy_assets(self, writer: "_ArtifactWriter") -> None:
        content_root = self._config.paths.content_dir
        for path in iter_files(content_root, exclude=self._config.reserved_paths()):
            if is_document(path):
                continue
            writer.copy(path, PurePosixPath(path.relative_to(content_root).as_posix()))

        static_root = self._config.paths.static_dir
        if static_root.is_dir():
            staged = writer.root / "static"
            for relative in copy_contents(static_root, staged):
                writer.claim(PurePosixPath("static") / PurePosixPath(relative.as_posix()))


class _ArtifactWriter:
    """Writes files under the staging root and refuses to write one path twice."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self._claimed: set[str] = set()

    @property
    def files(self) -> list[str]:
        return sorted(self._claimed)

    def claim(self, relative: PurePosixPath) -> Path:
        key = relative.as_posix()
        if key in self._claimed:
            raise BuildError(f"Two artifacts map to the same output path: {key}")
        self._claimed.add(key)
        return self.root / key

    def write(self, relative: PurePosixPath, text: str) -> None:
        write_text(self.claim(relative), text)

    def copy(self, source: Path, relative: PurePosixPath) -> None:
        target = ensure_parent(self.claim(relative))
        shutil.copy2(source, target)


def _collect_terms(posts: Iterable[RenderedDocument], kind: str) -> list[Term]:
    grouped: dict[str, Term] = {}
    members: dict[str, list[RenderedDocument]] = defaultdict(list)
    for item in posts:
        names = item.document.tags if kind == "tag" else (
            (item.document.category,) if item.document.category else ()
        )
        for name in names:
            slug = slugify(name)
            if not slug:
                continue
            grouped.setdefault(slug, Term(name=name, slug=slug, kind=kind))
            members[slug].append(item)
    terms = []
    for slug in sorted(grouped):
        term = grouped[slug]
        term.posts = members[slug]
        terms.append(term)
    return terms


__all__ = [
    "BuildResult",
    "RenderedDocument",
    "SiteBuilder",
    "Term",
    "create_environment",
    "human_date",
    "isoformat",
]
