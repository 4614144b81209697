"""Tests for writing the static site from rendered posts."""

from __future__ import annotations

import typing as typ

import msgspec.json as msgspec_json
import pytest
from bs4 import BeautifulSoup

from post_pages.config import SiteConfig, ThemeConfig
from post_pages.generator import SiteGenerator, build_loader
from post_pages.loader import FilesystemPostLoader, HttpPostLoader

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

POST = """
---
title: First "post"
date: '2024-03-04'
spoiler: What it is about.
---
## Setup

```python
print("hi")
```
"""


@pytest.fixture
def generator(
    write_post: cabc.Callable[..., Path],
    loader: FilesystemPostLoader,
    content_dir: Path,
    tmp_path: Path,
) -> SiteGenerator:
    """Return a generator over two posts, one of them broken."""
    write_post("first", POST)
    write_post("second", "---\ntitle: Second\ndate: '2024-05-06'\n---\nText\n")
    write_post("broken", "---\ntitle: Broken\n---\n")
    config = SiteConfig(
        content_dir=content_dir,
        output_dir=tmp_path / "out",
        theme=ThemeConfig(
            site_name="Example",
            discussion_url="https://example.invalid/discuss",
            edit_url_template="https://example.invalid/edit/{slug}",
        ),
    )
    return SiteGenerator(config, loader=loader)


def test_run_writes_pages_index_manifest_and_not_found(
    generator: SiteGenerator, tmp_path: Path
) -> None:
    """Every renderable post gets a page; broken posts are left out."""
    written = generator.run()

    out = tmp_path / "out"
    names = sorted(str(path.relative_to(out)) for path in written)
    assert names == [
        "404.html",
        "first/index.html",
        "index.html",
        "posts.json",
        "second/index.html",
    ], f"unexpected files {names}"


def test_post_page_contains_toc_body_and_links(
    generator: SiteGenerator, tmp_path: Path
) -> None:
    """The page shell wraps the rendered body with metadata and navigation."""
    generator.run()
    soup = BeautifulSoup(
        (tmp_path / "out" / "first" / "index.html").read_text(encoding="utf-8"),
        "html.parser",
    )

    title = soup.title.get_text()
    assert title == 'First "post" — Example', f"unexpected title {title!r}"
    toc_link = soup.select_one("nav.toc a")
    assert toc_link is not None, "expected a table of contents"
    assert soup.find(id=toc_link["href"][1:]) is not None, "expected the TOC target in the body"
    assert soup.select_one(".post-body div.codehilite") is not None, "expected highlighted code"
    assert ".codehilite" in soup.find("style").get_text(), "expected the Pygments stylesheet"
    assert soup.select_one("a.edit")["href"] == "https://example.invalid/edit/first", (
        "expected the edit link"
    )
    assert soup.select_one("time.post-date").get_text() == "2024/03/04", "unexpected date"


def test_index_and_manifest_list_posts_newest_first(
    generator: SiteGenerator, tmp_path: Path
) -> None:
    """The home page and ``posts.json`` share the same ordering."""
    generator.run()
    out = tmp_path / "out"

    manifest = msgspec_json.decode((out / "posts.json").read_bytes())
    assert [post["slug"] for post in manifest["posts"]] == ["second", "first"], (
        f"unexpected manifest order {manifest['posts']}"
    )
    assert manifest["posts"][1]["spoiler"] == "What it is about.", "expected spoilers"
    soup = BeautifulSoup((out / "index.html").read_text(encoding="utf-8"), "html.parser")
    slugs = [article["data-slug"] for article in soup.select("article.post-summary")]
    assert slugs == ["second", "first"], f"unexpected index order {slugs}"


def test_page_for_missing_slug_is_not_found_page(generator: SiteGenerator) -> None:
    """Unknown slugs map to the not-found page instead of raising."""
    html = generator.page_for("nope")

    soup = BeautifulSoup(html, "html.parser")
    assert soup.select_one("section.not-found") is not None, "expected the not-found page"
    assert "nope" in soup.get_text(), "expected the slug to be mentioned"


def test_build_loader_selects_backend(tmp_path: Path) -> None:
    """``content_url`` selects HTTP; otherwise content is read from disk."""
    http = build_loader(SiteConfig(content_url="https://example.invalid"))
    local = build_loader(SiteConfig(content_dir=tmp_path))

    assert isinstance(http, HttpPostLoader), "expected the HTTP loader"
    assert isinstance(local, FilesystemPostLoader), "expected the filesystem loader"
    local.close()
