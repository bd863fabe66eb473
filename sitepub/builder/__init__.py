"""Static site builder."""

from .markup import MarkdownRenderer, extract_summary, render_markdown
from .site import BuildResult, SiteBuilder, create_environment

__all__ = [
    "BuildResult",
    "MarkdownRenderer",
    "SiteBuilder",
    "create_environment",
    "extract_summary",
    "render_markdown",
]
