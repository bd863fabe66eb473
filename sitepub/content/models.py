"""Document model shared by the reader and the builder."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import PurePosixPath
from typing import Any

POST = "post"
PAGE = "page"


@dataclass(slots=True)
class Document:
    """A single article or page: metadata plus its Markdown body."""

    source: PurePosixPath
    kind: str
    title: str
    slug: str
    body: str
    author: str = ""
    language: str = "en"
    date: datetime | None = None
    updated: datetime | None = None
    tags: tuple[str, ...] = ()
    category: str | None = None
    summary: str | None = None
    draft: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_post(self) -> bool:
        return self.kind == POST

    @property
    def url(self) -> str:
        """Site-relative URL, always with a trailing slash."""
        if self.is_post:
            return f"/posts/{self.slug}/"
        return f"/{self.slug}/"

    @property
    def output_path(self) -> PurePosixPath:
        return PurePosixPath(self.url.strip("/")) / "index.html"

    @property
    def last_modified(self) -> datetime | None:
        return self.updated or self.date

    def sort_key(self) -> tuple[float, str]:
        """Newest first when used with ``sorted``; undated entries last."""
        stamp = self.date.timestamp() if self.date else float("-inf")
        return (-stamp, self.slug)


__all__ = ["Document", "POST", "PAGE"]
