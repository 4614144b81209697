"""Shared fixtures for post_pages tests."""

from __future__ import annotations

import typing as typ
from textwrap import dedent

import pytest

from post_pages.config import SiteConfig
from post_pages.loader import FilesystemPostLoader

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path


@pytest.fixture
def content_dir(tmp_path: Path) -> Path:
    """Return an empty content directory laid out as ``<slug>/index.md``."""
    path = tmp_path / "public"
    path.mkdir()
    return path


@pytest.fixture
def write_post(content_dir: Path) -> cabc.Callable[..., Path]:
    """Return a helper that writes ``<slug>/index.md`` and optional overrides."""

    def _write(slug: str, text: str, *, components: str | None = None) -> Path:
        post_dir = content_dir / slug
        post_dir.mkdir(parents=True, exist_ok=True)
        path = post_dir / "index.md"
        path.write_text(dedent(text).lstrip("\n"), encoding="utf-8")
        if components is not None:
            (post_dir / "components.yaml").write_text(
                dedent(components).lstrip("\n"), encoding="utf-8"
            )
        return path

    return _write


@pytest.fixture
def loader(content_dir: Path) -> cabc.Iterator[FilesystemPostLoader]:
    """Yield a filesystem loader rooted at ``content_dir``."""
    with FilesystemPostLoader(content_dir, timeout=5.0) as post_loader:
        yield post_loader


@pytest.fixture
def site_config(content_dir: Path, tmp_path: Path) -> SiteConfig:
    """Return a site config pointing at the temporary content directory."""
    return SiteConfig(content_dir=content_dir, output_dir=tmp_path / "out")
