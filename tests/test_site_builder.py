"""Tests for the static site builder."""

from __future__ import annotations

from pathlib import Path

import pytest

from sitepub.builder import SiteBuilder
from sitepub.core.errors import BuildError, ContentError
from sitepub.settings import load_config
from sitepub.utils.file_helper import tree_digest

from .conftest import PAGE_BIO, POST_ITERATORS, write_file


def _read(root: Path, relative: str) -> str:
    return (root / relative).read_text(encoding="utf-8")


def test_build_writes_expected_artifacts(site_root: Path, make_config) -> None:
    result = SiteBuilder(make_config()).build()

    output = site_root / "_build"
    assert result.output_dir == output
    assert result.posts == 2
    assert result.pages == 1
    assert set(result.files) == {
        "index.html",
        "about/index.html",
        "posts/cpp-iterators/index.html",
        "posts/temporaries/index.html",
        "tags/index.html",
        "tags/cpp/index.html",
        "tags/iterators/index.html",
        "categories/programming/index.html",
        "feed.xml",
        "sitemap.xml",
        "images/diagram.png",
        "static/style.css",
    }
    for relative in result.files:
        assert (output / relative).is_file()

    post = _read(output, "posts/cpp-iterators/index.html")
    assert "<h1>Iterators in C++</h1>" in post
    assert '<code class="language-cpp">' in post
    assert "*it &lt; 0" in post
    assert 'href="/tags/cpp/"' in post

    about = _read(output, "about/index.html")
    assert "<h1>About me</h1>" in about
    assert about.count("About me") == 2  # title tag and heading only


def test_index_lists_posts_newest_first(site_root: Path, make_config) -> None:
    SiteBuilder(make_config()).build()

    index = _read(site_root / "_build", "index.html")
    assert index.index("Lifetime of temporaries") < index.index("Iterators in C++")
    assert "Iterators generalise pointers." in index


def test_feed_is_stamped_with_newest_post_date(site_root: Path, make_config) -> None:
    SiteBuilder(make_config()).build()

    feed = _read(site_root / "_build", "feed.xml")
    head = feed.split("<entry>", 1)[0]
    assert "<updated>2021-05-01T09:30:00Z</updated>" in head
    assert "<id>https://blog.example/posts/cpp-iterators/</id>" in feed
    assert "<name>Guest Writer</name>" in feed
    assert "&lt;code" in feed


def test_feed_limit(site_root: Path, make_config) -> None:
    SiteBuilder(make_config(site={"title": "T", "url": "https://b", "feed_limit": 1})).build()

    feed = _read(site_root / "_build", "feed.xml")
    assert feed.count("<entry>") == 1
    assert "Lifetime of temporaries" in feed


def test_repeated_builds_are_identical(site_root: Path, make_config) -> None:
    builder = SiteBuilder(make_config())
    first = builder.build()
    snapshot = {name: (site_root / "_build" / name).read_bytes() for name in first.files}

    second = builder.build()

    assert second.digest == first.digest
    assert second.files == first.files
    for name, data in snapshot.items():
        assert (site_root / "_build" / name).read_bytes() == data


def test_repository_root_as_content_dir(tmp_path: Path) -> None:
    write_file(
        tmp_path,
        "sitepub.toml",
        """\
        [site]
        title = "Blog"
        url = "https://blog.example/"

        [paths]
        content_dir = "."
        """,
    )
    write_file(tmp_path, "posts/iterators.md", POST_ITERATORS)
    write_file(tmp_path, "about.md", PAGE_BIO)
    write_file(tmp_path, "images/diagram.svg", "<svg/>\n")
    write_file(tmp_path, "static/style.css", "body { margin: 0; }\n")
    write_file(tmp_path, "templates/page.html", "<p>{{ item.document.title }}</p>\n")
    builder = SiteBuilder(load_config(tmp_path / "sitepub.toml"))

    first = builder.build()
    second = builder.build()

    assert second.digest == first.digest
    assert second.files == first.files
    assert "images/diagram.svg" in first.files
    assert "static/style.css" in first.files
    for name in first.files:
        assert not name.startswith(("_build/", "templates/", "static/static/"))
    assert "sitepub.toml" not in first.files


def test_stale_output_is_removed(site_root: Path, make_config) -> None:
    (site_root / "_build").mkdir()
    (site_root / "_build" / "leftover.html").write_text("old", encoding="utf-8")

    SiteBuilder(make_config()).build()

    assert not (site_root / "_build" / "leftover.html").exists()


def test_failed_build_leaves_previous_output_untouched(site_root: Path, make_config) -> None:
    builder = SiteBuilder(make_config())
    first = builder.build()
    write_file(site_root / "content", "posts/undated.md", "---\ntitle: Undated\n---\nbody\n")

    with pytest.raises(ContentError) as excinfo:
        builder.build()

    assert excinfo.value.field == "date"
    assert not builder.staging_dir.exists()
    assert not (site_root / "_build" / "posts" / "undated").exists()
    assert set(first.files) <= {
        str(path.relative_to(site_root / "_build").as_posix())
        for path in (site_root / "_build").rglob("*")
        if path.is_file()
    }


def test_filesystem_errors_become_build_errors(
    site_root: Path, make_config, monkeypatch: pytest.MonkeyPatch
) -> None:
    builder = SiteBuilder(make_config())
    first = builder.build()

    def refuse(staging: Path, target: Path) -> None:
        raise PermissionError(13, "Permission denied", str(target))

    monkeypatch.setattr("sitepub.builder.site.replace_directory", refuse)

    with pytest.raises(BuildError, match="Permission denied"):
        builder.build()

    assert not builder.staging_dir.exists()
    assert tree_digest(site_root / "_build") == first.digest


def test_drafts_are_skipped(site_root: Path, make_config) -> None:
    write_file(
        site_root / "content",
        "posts/wip.md",
        "---\ntitle: Work in progress\ndate: 2022-01-01\ndraft: true\n---\nbody\n",
    )

    result = SiteBuilder(make_config()).build()

    assert "posts/wip/index.html" not in result.files
    assert "Work in progress" not in _read(site_root / "_build", "index.html")


def test_templates_dir_overrides_bundled_templates(site_root: Path, make_config) -> None:
    write_file(site_root, "templates/page.html", "<p>custom {{ item.document.title }}</p>\n")

    SiteBuilder(make_config()).build()

    assert _read(site_root / "_build", "about/index.html") == "<p>custom About me</p>\n"


def test_template_errors_become_build_errors(site_root: Path, make_config) -> None:
    write_file(site_root, "templates/post.html", "{{ not_defined }}\n")
    builder = SiteBuilder(make_config())

    with pytest.raises(BuildError):
        builder.build()

    assert not (site_root / "_build").exists()
    assert not builder.staging_dir.exists()


def test_page_slug_clashing_with_generated_path(site_root: Path, make_config) -> None:
    write_file(site_root / "content", "feed.md", "---\ntitle: Feed\nslug: tags\n---\nbody\n")

    with pytest.raises(BuildError, match="tags/index.html"):
        SiteBuilder(make_config()).build()


def test_check_does_not_write(site_root: Path, make_config) -> None:
    documents = SiteBuilder(make_config()).check()

    assert len(documents) == 3
    assert not (site_root / "_build").exists()
