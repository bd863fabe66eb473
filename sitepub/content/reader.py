"""Read Markdown Documents with a YAML metadata header."""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Iterable, Mapping

import yaml
from slugify import slugify

from ..core.errors import ContentError
from ..settings import AppConfig
from ..utils.file_helper import iter_files
from ..utils.logging import get_logger
from .models import PAGE, POST, Document

LOGGER = get_logger(__name__)

MARKDOWN_SUFFIXES = {".md", ".markdown"}

_HEADER_DELIMITER = "---"
_HEADING_PATTERN = re.compile(r"^#[ \t]+(?P<title>.+?)[ \t]*#*[ \t]*$")

_RECOGNISED = {
    "title",
    "date",
    "updated",
    "author",
    "tags",
    "category",
    "slug",
    "language",
    "lang",
    "summary",
    "draft",
}


def split_header(text: str, *, source: Path | PurePosixPath | str) -> tuple[dict[str, Any], str]:
    """Split ``text`` into its metadata mapping and Markdown body."""

    text = text.lstrip("\ufeff")
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].strip() != _HEADER_DELIMITER:
        raise ContentError("missing metadata header (expected a leading '---' line)", path=source)

    for index in range(1, len(lines)):
        if lines[index].strip() == _HEADER_DELIMITER:
            header = "".join(lines[1:index])
            body = "".join(lines[index + 1 :])
            break
    else:
        raise ContentError("metadata header is not terminated by '---'", path=source)

    try:
        metadata = yaml.safe_load(header) if header.strip() else {}
    except yaml.YAMLError as exc:
        raise ContentError(f"malformed metadata header: {exc}", path=source) from exc

    if not isinstance(metadata, dict):
        raise ContentError("metadata header must be a mapping", path=source)
    return {str(key): value for key, value in metadata.items()}, body.lstrip("\n")


def _extract_heading(body: str) -> tuple[str | None, str]:
    lines = body.splitlines(keepends=True)
    for index, line in enumerate(lines):
        if not line.strip():
            continue
        match = _HEADING_PATTERN.match(line.rstrip("\n"))
        if match is None:
            return None, body
        remainder = "".join(lines[index + 1 :]).lstrip("\n")
        return match.group("title").strip(), remainder
    return None, body


def parse_datetime(value: Any, *, field: str, source: Path | PurePosixPath | str) -> datetime:
    """Normalise YAML dates and ISO strings to timezone-aware datetimes (UTC when naive)."""

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise ContentError(f"invalid {field!r} value {value!r}", path=source, field=field) from exc
    else:
        raise ContentError(f"invalid {field!r} value {value!r}", path=source, field=field)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_tags(value: Any, *, source: Path | PurePosixPath | str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        raise ContentError("'tags' must be a list or a comma-separated string", path=source, field="tags")

    tags: list[str] = []
    for item in items:
        if not isinstance(item, str):
            raise ContentError(f"tag {item!r} is not a string", path=source, field="tags")
        tag = item.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tuple(tags)


def _parse_draft(value: Any, *, source: Path | PurePosixPath | str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ContentError(f"draft must be true or false, got {value!r}", path=source, field="draft")
    return value


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return not value
    return False


def validate_metadata(
    metadata: Mapping[str, Any],
    required_fields: Iterable[str],
    *,
    source: Path | PurePosixPath | str,
) -> None:
    """Raise :class:`ContentError` for the first required field that is absent or empty."""

    for name in required_fields:
        value = metadata.get(name)
        if name == "language" and _is_blank(value):
            value = metadata.get("lang")
        if _is_blank(value):
            raise ContentError(f"required metadata field {name!r} is missing", path=source, field=name)


def parse_document(
    text: str,
    *,
    source: PurePosixPath,
    kind: str,
    required_fields: Iterable[str] = (),
    defaults: Mapping[str, str] | None = None,
) -> Document:
    metadata, body = split_header(text, source=source)

    if _is_blank(metadata.get("title")):
        heading, remainder = _extract_heading(body)
        if heading:
            metadata["title"] = heading
            body = remainder

    validate_metadata(metadata, required_fields, source=source)

    defaults = defaults or {}
    title = metadata.get("title")
    if _is_blank(title):
        raise ContentError("document has no title", path=source, field="title")

    raw_slug = metadata.get("slug")
    slug = slugify(str(raw_slug)) if not _is_blank(raw_slug) else slugify(PurePosixPath(source).stem)
    if not slug:
        raise ContentError("could not derive a slug", path=source, field="slug")

    date_value = metadata.get("date")
    updated_value = metadata.get("updated")
    language = metadata.get("language") or metadata.get("lang") or defaults.get("language", "en")
    category = metadata.get("category")
    summary = metadata.get("summary")

    return Document(
        source=PurePosixPath(source),
        kind=kind,
        title=str(title).strip(),
        slug=slug,
        body=body,
        author=str(metadata.get("author") or defaults.get("author", "")).strip(),
        language=str(language).strip(),
        date=None if _is_blank(date_value) else parse_datetime(date_value, field="date", source=source),
        updated=None
        if _is_blank(updated_value)
        else parse_datetime(updated_value, field="updated", source=source),
        tags=_parse_tags(metadata.get("tags"), source=source),
        category=None if _is_blank(category) else str(category).strip(),
        summary=None if _is_blank(summary) else str(summary).strip(),
        draft=_parse_draft(metadata.get("draft"), source=source),
        extra={k: v for k, v in metadata.items() if k not in _RECOGNISED},
    )


def document_kind(relative: PurePosixPath, posts_dir: str) -> str:
    if posts_dir and relative.parts and relative.parts[0] == posts_dir:
        return POST
    return PAGE


def read_document(path: Path, *, content_root: Path, config: AppConfig) -> Document:
    relative = PurePosixPath(path.relative_to(content_root).as_posix())
    kind = document_kind(relative, config.paths.posts_dir)
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ContentError(f"not valid UTF-8: {exc}", path=relative) from exc
    except OSError as exc:
        raise ContentError(f"cannot be read: {exc}", path=relative) from exc
    return parse_document(
        text,
        source=relative,
        kind=kind,
        required_fields=config.build.required_fields(kind),
        defaults={"author": config.site.author, "language": config.site.language},
    )


def is_document(path: Path) -> bool:
    return path.suffix.lower() in MARKDOWN_SUFFIXES


def discover_documents(config: AppConfig) -> list[Document]:
    """Read every Document under the content directory.

    All failures are collected first so a single run reports every broken file.
    """

    content_root = config.paths.content_dir
    if not content_root.is_dir():
        raise ContentError("content directory does not exist", path=content_root)

    documents: list[Document] = []
    errors: list[ContentError] = []
    for path in iter_files(content_root, exclude=config.reserved_paths()):
        if not is_document(path):
            continue
        try:
            document = read_document(path, content_root=content_root, config=config)
        except ContentError as exc:
            LOGGER.error(
                "Invalid document",
                extra={"event": "content.invalid", "source": str(exc.path), "field": exc.field},
            )
            errors.append(exc)
            continue
        LOGGER.debug(
            "Read document",
            extra={"event": "content.document", "source": str(document.source), "kind": document.kind},
        )
        documents.append(document)

    if errors:
        raise ContentError.aggregate(errors)

    _check_unique_urls(documents)
    return documents


def _check_unique_urls(documents: Iterable[Document]) -> None:
    seen: dict[str, Document] = {}
    errors: list[ContentError] = []
    for document in documents:
        if document.draft:
            continue
        previous = seen.get(document.url)
        if previous is not None:
            errors.append(
                ContentError(
                    f"URL {document.url} is already used by {previous.source}",
                    path=document.source,
                    field="slug",
                )
            )
            continue
        seen[document.url] = document
    if errors:
        raise ContentError.aggregate(errors)


__all__ = [
    "MARKDOWN_SUFFIXES",
    "discover_documents",
    "document_kind",
    "is_document",
    "parse_datetime",
    "parse_document",
    "read_document",
    "split_header",
    "validate_metadata",
]
