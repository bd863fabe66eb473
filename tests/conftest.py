from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Any, Callable

import pytest

from sitepub.settings import AppConfig, config_from_dict

POST_ITERATORS = """\
---
title: Iterators in C++
date: 2021-03-14
tags: [cpp, iterators]
category: Programming
slug: cpp-iterators
---

Iterators generalise pointers.

```cpp
for (auto it = v.begin(); it != v.end(); ++it) { sum += *it < 0; }
```
"""

POST_TEMPORARIES = """\
---
title: Lifetime of temporaries
date: 2021-05-01 09:30:00
author: Guest Writer
tags: cpp
category: Programming
---

A temporary lives until the end of the full-expression.
"""

PAGE_BIO = """\
---
slug: about
---

# About me

I write about language internals.
"""


def write_file(root: Path, relative: str, text: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., AppConfig]:
    def _make(**sections: Any) -> AppConfig:
        data: dict[str, Any] = {
            "site": {"title": "Test Blog", "author": "Ada", "url": "https://blog.example/"},
        }
        data.update(sections)
        return config_from_dict(data, base_dir=tmp_path)

    return _make


@pytest.fixture
def site_root(tmp_path: Path) -> Path:
    content = tmp_path / "content"
    write_file(content, "posts/iterators.md", POST_ITERATORS)
    write_file(content, "posts/temporaries.md", POST_TEMPORARIES)
    write_file(content, "about.md", PAGE_BIO)
    (content / "images").mkdir()
    (content / "images" / "diagram.png").write_bytes(b"\x89PNG fake")
    write_file(tmp_path, "static/style.css", "body { margin: 0; }\n")
    return tmp_path
