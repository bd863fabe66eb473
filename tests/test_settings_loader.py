"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from sitepub.settings import CONFIG_ENV_VAR, load_config

CONFIG = """\
[site]
title = "Notes"
author = "Ada"
url = "https://notes.example/"

[paths]
content_dir = "src/content"
output_dir = "/srv/site"

[build]
required_post_fields = "title, date, category"

[publish]
target = "Directory"
directory = "public"
branch = "pages"
cname = "notes.example"
retries = 3
"""


def test_load_config_resolves_paths_relative_to_file(tmp_path: Path) -> None:
    path = tmp_path / "conf" / "sitepub.toml"
    path.parent.mkdir()
    path.write_text(CONFIG, encoding="utf-8")

    config = load_config(path)

    assert config.source == path
    assert config.site.base_url == "https://notes.example"
    assert config.paths.content_dir == tmp_path / "conf" / "src" / "content"
    assert config.paths.output_dir == Path("/srv/site")
    assert config.paths.state_dir == tmp_path / "conf" / ".sitepub"
    assert config.paths.posts_dir == "posts"
    assert config.build.required_fields("post") == ("title", "date", "category")
    assert config.build.required_fields("page") == ("title",)
    assert config.build.markdown_extensions == ("extra", "toc", "sane_lists")
    assert config.publish.target == "directory"
    assert config.publish.directory == tmp_path / "conf" / "public"
    assert config.publish.cname == "notes.example"
    assert config.publish.group == "ci-pages"
    assert config.publish.extra == {"retries": 3}


def test_load_config_uses_environment_variable(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "custom.toml"
    path.write_text('[site]\ntitle = "Env"\n', encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

    config = load_config()

    assert config.site.title == "Env"
    assert config.publish.target == "git"
    assert config.publish.branch == "gh-pages"
    assert config.publish.directory is None


def test_load_config_missing_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.chdir(tmp_path)

    with pytest.raises(FileNotFoundError):
        load_config()
