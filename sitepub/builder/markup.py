"""Markdown rendering for Document bodies."""

from __future__ import annotations

from typing import Sequence

from markdown import Markdown

from ..utils.html import first_paragraph_text

DEFAULT_EXTENSIONS = ("extra", "toc", "sane_lists")


class MarkdownRenderer:
    """Converts Markdown to HTML with a reusable ``Markdown`` instance.

    Fenced code blocks come out as ``<pre><code class="language-cpp">`` with
    their contents escaped but otherwise untouched.
    """

    def __init__(self, extensions: Sequence[str] = DEFAULT_EXTENSIONS) -> None:
        self._extensions = list(extensions)
        self._md = Markdown(extensions=self._extensions, output_format="html")

    def render(self, text: str) -> str:
        # reset() clears footnotes and toc anchors left over from the previous document
        self._md.reset()
        return self._md.convert(text)


def render_markdown(text: str, extensions: Sequence[str] = DEFAULT_EXTENSIONS) -> str:
    return MarkdownRenderer(extensions).render(text)


def extract_summary(html: str, *, limit: int = 280) -> str:
    text = first_paragraph_text(html)
    if len(text) <= limit:
        return text
    cut = text[:limit].rsplit(" ", 1)[0]
    return f"{cut}…"


__all__ = ["DEFAULT_EXTENSIONS", "MarkdownRenderer", "extract_summary", "render_markdown"]
