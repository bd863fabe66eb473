"""Tests for reading and validating Documents."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

import pytest

from sitepub.content import PAGE, POST, discover_documents, parse_document
from sitepub.core.errors import ContentError

from .conftest import POST_ITERATORS, write_file


def _parse(text: str, *, source: str = "posts/sample.md", kind: str = POST, required=("title", "date")):
    return parse_document(
        text,
        source=PurePosixPath(source),
        kind=kind,
        required_fields=required,
        defaults={"author": "Ada", "language": "en"},
    )


def test_parse_document_reads_metadata() -> None:
    document = _parse(POST_ITERATORS)

    assert document.title == "Iterators in C++"
    assert document.slug == "cpp-iterators"
    assert document.date == datetime(2021, 3, 14, tzinfo=timezone.utc)
    assert document.tags == ("cpp", "iterators")
    assert document.category == "Programming"
    assert document.author == "Ada"
    assert document.language == "en"
    assert document.url == "/posts/cpp-iterators/"
    assert document.output_path == PurePosixPath("posts/cpp-iterators/index.html")
    assert document.body.startswith("Iterators generalise pointers.")


def test_title_falls_back_to_first_heading() -> None:
    text = "---\nlang: de\n---\n\n# Über mich\n\nHallo.\n"

    document = _parse(text, source="about.md", kind=PAGE, required=("title",))

    assert document.title == "Über mich"
    assert document.body == "Hallo.\n"
    assert document.slug == "about"
    assert document.language == "de"
    assert document.url == "/about/"


def test_missing_required_date_is_rejected() -> None:
    text = "---\ntitle: No date\n---\n\nBody\n"

    with pytest.raises(ContentError) as excinfo:
        _parse(text)

    assert excinfo.value.field == "date"
    assert "posts/sample.md" in str(excinfo.value)


def test_missing_header_is_rejected() -> None:
    with pytest.raises(ContentError, match="missing metadata header"):
        _parse("# Just markdown\n")


def test_unterminated_header_is_rejected() -> None:
    with pytest.raises(ContentError, match="not terminated"):
        _parse("---\ntitle: x\n")


def test_header_must_be_a_mapping() -> None:
    with pytest.raises(ContentError, match="mapping"):
        _parse("---\n- a\n- b\n---\nbody\n")


def test_invalid_date_is_rejected() -> None:
    with pytest.raises(ContentError) as excinfo:
        _parse("---\ntitle: x\ndate: yesterday\n---\nbody\n")
    assert excinfo.value.field == "date"


def test_naive_datetime_is_utc() -> None:
    document = _parse("---\ntitle: x\ndate: '2020-01-02T03:04:05'\n---\nbody\n")
    assert document.date == datetime(2020, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def test_tags_accept_comma_separated_string_and_drop_duplicates() -> None:
    document = _parse("---\ntitle: x\ndate: 2020-01-01\ntags: cpp, python , cpp\n---\nbody\n")
    assert document.tags == ("cpp", "python")


def test_non_string_tags_are_rejected() -> None:
    with pytest.raises(ContentError) as excinfo:
        _parse("---\ntitle: x\ndate: 2020-01-01\ntags: [1, 2]\n---\nbody\n")
    assert excinfo.value.field == "tags"


def test_draft_flag_must_be_a_boolean() -> None:
    assert _parse("---\ntitle: x\ndate: 2020-01-01\ndraft: true\n---\nbody\n").draft is True
    assert _parse("---\ntitle: x\ndate: 2020-01-01\n---\nbody\n").draft is False

    with pytest.raises(ContentError) as excinfo:
        _parse("---\ntitle: x\ndate: 2020-01-01\ndraft: 'false'\n---\nbody\n")
    assert excinfo.value.field == "draft"


def test_slug_defaults_to_file_stem() -> None:
    document = _parse("---\ntitle: x\ndate: 2020-01-01\n---\nbody\n", source="posts/2020/My First Post.md")
    assert document.slug == "my-first-post"


def test_unknown_keys_are_kept_as_extra() -> None:
    document = _parse("---\ntitle: x\ndate: 2020-01-01\nseries: internals\n---\nbody\n")
    assert document.extra == {"series": "internals"}


def test_discover_documents_classifies_posts_and_pages(site_root: Path, make_config) -> None:
    documents = discover_documents(make_config())

    kinds = {doc.slug: doc.kind for doc in documents}
    assert kinds == {"about": PAGE, "cpp-iterators": POST, "temporaries": POST}


def test_discover_documents_reports_every_broken_file(site_root: Path, make_config) -> None:
    content = site_root / "content"
    write_file(content, "posts/broken-one.md", "---\ntitle: one\n---\nbody\n")
    write_file(content, "posts/broken-two.md", "no header here\n")

    with pytest.raises(ContentError) as excinfo:
        discover_documents(make_config())

    assert len(excinfo.value.errors) == 2
    sources = sorted(str(error.path) for error in excinfo.value.errors)
    assert sources == ["posts/broken-one.md", "posts/broken-two.md"]


def test_discover_documents_rejects_duplicate_urls(site_root: Path, make_config) -> None:
    write_file(
        site_root / "content",
        "posts/copy.md",
        "---\ntitle: copy\ndate: 2020-01-01\nslug: cpp-iterators\n---\nbody\n",
    )

    with pytest.raises(ContentError) as excinfo:
        discover_documents(make_config())

    assert excinfo.value.field == "slug"


def test_missing_content_directory(tmp_path: Path, make_config) -> None:
    with pytest.raises(ContentError, match="content directory"):
        discover_documents(make_config())
