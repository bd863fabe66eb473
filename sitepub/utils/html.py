"""Helpers for inspecting rendered HTML."""

from __future__ import annotations

from bs4 import BeautifulSoup


def parse_html(markup: str, *, parser: str = "html.parser") -> BeautifulSoup:
    return BeautifulSoup(markup, parser)


def first_paragraph_text(markup: str) -> str:
    """Return the whitespace-normalised text of the first ``<p>`` element."""

    soup = parse_html(markup)
    paragraph = soup.find("p")
    if paragraph is None:
        return ""
    return " ".join(paragraph.get_text(" ", strip=True).split())
