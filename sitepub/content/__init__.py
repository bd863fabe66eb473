"""Source Documents: model and reader."""

from .models import PAGE, POST, Document
from .reader import (
    discover_documents,
    is_document,
    parse_datetime,
    parse_document,
    read_document,
    split_header,
    validate_metadata,
)

__all__ = [
    "PAGE",
    "POST",
    "Document",
    "discover_documents",
    "is_document",
    "parse_datetime",
    "parse_document",
    "read_document",
    "split_header",
    "validate_metadata",
]
