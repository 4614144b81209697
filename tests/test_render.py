"""End-to-end tests for rendering posts through ``PostRenderer``.

Each test writes a post into a temporary content directory and renders it
through the full pipeline (loader, front matter, headings, stages,
components, assembler). HTML is inspected with BeautifulSoup.
"""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest
from bs4 import BeautifulSoup

from post_pages.config import SiteConfig, StageSettings
from post_pages.errors import (
    InvalidDateError,
    InvalidSlugError,
    MalformedFrontMatterError,
    PostLoadError,
    PostNotFoundError,
)
from post_pages.render import PostRenderer, build_post_index

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from pytest_mock import MockerFixture

    from post_pages.loader import FilesystemPostLoader

SAMPLE_POST = """
---
title: Hello, world
date: 2024-05-01
spoiler: A first post.
cta: meta
---
Intro paragraph with "quotes".

## Intro

Some text.

### Details

```rust
fn main() {}
```

## Intro

Euler: $e^{i\\pi} + 1 = 0$.

#### Deep

Done.
"""


@pytest.fixture
def renderer(loader: FilesystemPostLoader, site_config: SiteConfig) -> PostRenderer:
    """Return a renderer over the temporary content directory."""
    return PostRenderer(loader, site_config)


def test_render_produces_document(
    write_post: cabc.Callable[..., Path], renderer: PostRenderer
) -> None:
    """Metadata, body and TOC are assembled into one document."""
    write_post("hello", SAMPLE_POST)

    document = renderer.render("hello")

    assert document.title == "Hello, world", f"unexpected title {document.title!r}"
    assert document.date == dt.date(2024, 5, 1), f"unexpected date {document.date!r}"
    assert document.formatted_date == "2024/05/01", "expected the YYYY/MM/DD format"
    assert document.spoiler == "A first post.", "expected the spoiler"
    assert document.cta == "meta", "expected the category tag"
    assert document.html_title("Blog") == "Hello, world — Blog", "unexpected page title"
    assert document.diagnostics == (), f"unexpected diagnostics {document.diagnostics}"
    toc = [(entry.level, entry.anchor_id) for entry in document.table_of_contents]
    assert toc == [(2, "intro"), (3, "details"), (2, "intro-2")], f"unexpected TOC {toc}"


def test_toc_anchors_match_body_ids(
    write_post: cabc.Callable[..., Path], renderer: PostRenderer
) -> None:
    """Every TOC entry points at a heading id present in the body."""
    write_post("hello", SAMPLE_POST)

    document = renderer.render("hello")
    soup = BeautifulSoup(document.body_html, "html.parser")

    body_ids = [heading["id"] for heading in soup.select("h2, h3")]
    toc_ids = [entry.anchor_id for entry in document.table_of_contents]
    assert toc_ids == body_ids, f"TOC {toc_ids} does not match body ids {body_ids}"
    all_ids = [element["id"] for element in soup.select("[id]")]
    assert len(all_ids) == len(set(all_ids)), f"duplicate ids in body: {all_ids}"


@pytest.mark.parametrize(
    ("heading", "anchor", "text"),
    [
        ("The `a && b` operator", "the-a-b-operator", "The a && b operator"),
        ("Using `<div>` tags", "using-div-tags", "Using <div> tags"),
        ("Q&amp;A", "q-a", "Q&A"),
        ("Hello <em>x</em>", "hello-x", "Hello x"),
    ],
)
def test_escaped_heading_markup_keeps_its_toc_entry(
    write_post: cabc.Callable[..., Path],
    renderer: PostRenderer,
    heading: str,
    anchor: str,
    text: str,
) -> None:
    """Code spans, entities and inline HTML slug the same in the TOC and the body."""
    write_post("markup", f"---\ntitle: Markup\ndate: 2024-05-01\n---\n## {heading}\n\nBody.\n")

    document = renderer.render("markup")
    soup = BeautifulSoup(document.body_html, "html.parser")

    toc = [(entry.anchor_id, entry.text) for entry in document.table_of_contents]
    assert toc == [(anchor, text)], f"unexpected TOC {toc} for {heading!r}"
    body_ids = [element["id"] for element in soup.select("h2")]
    assert body_ids == [anchor], f"unexpected body ids {body_ids} for {heading!r}"


def test_rendering_twice_is_identical(
    write_post: cabc.Callable[..., Path],
    loader: FilesystemPostLoader,
    site_config: SiteConfig,
) -> None:
    """Repeated renders of the same slug yield the same output."""
    write_post("hello", SAMPLE_POST)

    first = PostRenderer(loader, site_config).render("hello")
    second = PostRenderer(loader, site_config).render("hello")

    assert first.body_html == second.body_html, "expected identical body HTML"
    assert first.table_of_contents == second.table_of_contents, "expected identical TOC"


def test_missing_date_is_malformed(
    write_post: cabc.Callable[..., Path], renderer: PostRenderer
) -> None:
    """A front-matter block without ``date`` aborts the render."""
    write_post("undated", "---\ntitle: No date\n---\nBody\n")

    with pytest.raises(MalformedFrontMatterError):
        renderer.render("undated")


def test_unparsable_date_is_invalid(
    write_post: cabc.Callable[..., Path], renderer: PostRenderer
) -> None:
    """Dates that are not ISO-8601 raise InvalidDateError."""
    write_post("bad-date", "---\ntitle: T\ndate: next tuesday\n---\nBody\n")

    with pytest.raises(InvalidDateError):
        renderer.render("bad-date")


def test_post_without_front_matter_cannot_be_published(
    write_post: cabc.Callable[..., Path], renderer: PostRenderer
) -> None:
    """A raw snippet has no title, so it cannot become a document."""
    write_post("snippet", "Just text.\n")

    with pytest.raises(MalformedFrontMatterError):
        renderer.render("snippet")


def test_unknown_and_invalid_slugs_are_not_found(renderer: PostRenderer) -> None:
    """Missing posts and traversal attempts both surface as not found."""
    with pytest.raises(PostNotFoundError):
        renderer.render("missing")
    with pytest.raises(InvalidSlugError):
        renderer.render("../secrets")


def test_failing_live_block_still_renders(
    write_post: cabc.Callable[..., Path], renderer: PostRenderer
) -> None:
    """An exception in a live block becomes an error marker."""
    write_post(
        "live",
        """
        ---
        title: Live
        date: '2024-02-03'
        ---
        ```python live
        raise RuntimeError("nope")
        ```

        Still here.
        """,
    )

    document = renderer.render("live")
    soup = BeautifulSoup(document.body_html, "html.parser")

    assert soup.select_one("p.eval-error") is not None, "expected an error marker"
    assert "Still here." in soup.get_text(), "expected the rest of the body"
    assert [item.code for item in document.diagnostics] == ["evaluate/failed"], (
        f"unexpected diagnostics {document.diagnostics}"
    )
    assert "RuntimeError: nope" in document.diagnostics[0].message, (
        "expected the interpreter error in the diagnostic"
    )


def test_unknown_placeholder_renders_empty_with_diagnostic(
    write_post: cabc.Callable[..., Path], renderer: PostRenderer
) -> None:
    """Placeholders with no renderer disappear and are reported."""
    write_post("placeholder", "---\ntitle: P\ndate: '2024-02-03'\n---\n<Chart />\n\nAfter\n")

    document = renderer.render("placeholder")
    soup = BeautifulSoup(document.body_html, "html.parser")

    assert soup.find("component") is None, "expected no placeholder in the output"
    assert soup.find("chart") is None, "expected no raw tag in the output"
    assert [item.code for item in document.diagnostics] == ["component/unresolved"], (
        f"unexpected diagnostics {document.diagnostics}"
    )


def test_document_components_are_applied(
    write_post: cabc.Callable[..., Path], renderer: PostRenderer
) -> None:
    """``components.yaml`` templates render placeholders."""
    write_post(
        "components",
        "---\ntitle: C\ndate: '2024-02-03'\n---\n<Callout tone=\"note\" />\n",
        components=(
            "Callout:\n"
            "  template: '<aside class=\"callout callout-{{ tone }}\">Hi</aside>'\n"
        ),
    )

    document = renderer.render("components")
    soup = BeautifulSoup(document.body_html, "html.parser")

    aside = soup.select_one("aside.callout-note")
    assert aside is not None, "expected the override template to render"
    assert document.diagnostics == (), f"unexpected diagnostics {document.diagnostics}"


def test_malformed_components_file_fails_the_render(
    write_post: cabc.Callable[..., Path], renderer: PostRenderer
) -> None:
    """A broken overrides file is a load error, not a silent fallback."""
    write_post(
        "broken",
        "---\ntitle: B\ndate: '2024-02-03'\n---\nBody\n",
        components="- not\n- a mapping\n",
    )

    with pytest.raises(PostLoadError):
        renderer.render("broken")


def test_disabled_stages_are_skipped(
    write_post: cabc.Callable[..., Path], loader: FilesystemPostLoader
) -> None:
    """Stage settings from config switch transforms off."""
    write_post("hello", SAMPLE_POST)
    config = SiteConfig(stages=StageSettings(typography=False, math=False))

    document = PostRenderer(loader, config).render("hello")
    soup = BeautifulSoup(document.body_html, "html.parser")

    assert '"quotes"' in soup.find("p").get_text(), "expected straight quotes"
    assert soup.find("math") is None, "expected TeX to stay unrendered"
    assert soup.select_one("div.codehilite") is not None, "expected highlighting to remain"


def test_render_many_isolates_failures(
    write_post: cabc.Callable[..., Path], renderer: PostRenderer
) -> None:
    """One failing post does not affect the others; order is preserved."""
    write_post("one", "---\ntitle: One\ndate: '2024-01-01'\n---\nA\n")
    write_post("two", "---\ntitle: Two\ndate: '2024-01-02'\n---\nB\n")

    outcomes = renderer.render_many(["one", "missing", "two"], max_workers=3)

    assert [outcome.slug for outcome in outcomes] == ["one", "missing", "two"], (
        "expected outcomes in request order"
    )
    assert [outcome.ok for outcome in outcomes] == [True, False, True], (
        "expected only the missing post to fail"
    )
    assert isinstance(outcomes[1].error, PostNotFoundError), "expected a not-found error"


def test_post_index_is_sorted_newest_first(
    write_post: cabc.Callable[..., Path], loader: FilesystemPostLoader
) -> None:
    """Summaries come from front matter; unreadable posts are skipped."""
    write_post("old", "---\ntitle: Old\ndate: '2023-01-01'\nspoiler: s\n---\n")
    write_post("new", "---\ntitle: New\ndate: '2024-06-01'\n---\n")
    write_post("broken", "---\ntitle: Broken\n---\n")

    summaries = build_post_index(loader)

    assert [summary.slug for summary in summaries] == ["new", "old"], (
        f"unexpected order {[summary.slug for summary in summaries]}"
    )
    assert summaries[1].spoiler == "s", "expected the spoiler in the summary"
    assert summaries[0].formatted_date == "2024/06/01", "expected formatted dates"


def test_impossible_unquoted_date_is_isolated(
    write_post: cabc.Callable[..., Path],
    loader: FilesystemPostLoader,
    renderer: PostRenderer,
) -> None:
    """A date YAML cannot build fails only its own post, with a typed error."""
    write_post("good", "---\ntitle: Good\ndate: '2024-01-01'\n---\nA\n")
    write_post("bad", "---\ntitle: Bad\ndate: 2024-02-30\n---\nB\n")

    with pytest.raises(InvalidDateError):
        renderer.render("bad")

    outcomes = renderer.render_many(["good", "bad"], max_workers=2)
    assert [outcome.ok for outcome in outcomes] == [True, False], (
        "expected only the impossible date to fail"
    )
    assert isinstance(outcomes[1].error, InvalidDateError), (
        f"expected InvalidDateError, got {outcomes[1].error!r}"
    )

    summaries = build_post_index(loader)
    assert [summary.slug for summary in summaries] == ["good"], (
        "expected the index to skip the impossible date"
    )


def test_unpublishable_post_never_runs_live_code(
    write_post: cabc.Callable[..., Path],
    renderer: PostRenderer,
    mocker: MockerFixture,
) -> None:
    """Front matter is checked before the body is transformed."""
    run_live_code = mocker.patch("post_pages.stages.evaluate.run_live_code")
    write_post(
        "doomed",
        "---\ntitle: Doomed\ndate: next tuesday\n---\n```python live\nprint(1)\n```\n",
    )

    with pytest.raises(InvalidDateError):
        renderer.render("doomed")

    run_live_code.assert_not_called()
