"""Utility exports."""

from .file_helper import (
    clear_directory,
    copy_contents,
    ensure_parent,
    iter_files,
    replace_directory,
    tree_digest,
    write_text,
)
from .html import first_paragraph_text, parse_html
from .logging import configure_logging, get_logger

__all__ = [
    "clear_directory",
    "copy_contents",
    "ensure_parent",
    "iter_files",
    "replace_directory",
    "tree_digest",
    "write_text",
    "first_paragraph_text",
    "parse_html",
    "configure_logging",
    "get_logger",
]
