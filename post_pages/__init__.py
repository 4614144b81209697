"""Render Markdown blog posts into navigable, styled documents.

This package exposes the renderer used by the ``posts`` console command and
by the static site generator.

Exports
-------
- ``PostRenderer``: render a slug into a ``RenderedDocument``.
- ``app``: Cyclopts application entry for subcommands.
- ``main``: Convenience function that invokes the Cyclopts app.

Examples
--------
>>> from post_pages import main
>>> main()  # doctest: +SKIP
>>> from post_pages import app
>>> callable(app)
True
"""

from __future__ import annotations

from .cli import app, main
from .errors import (
    InvalidDateError,
    MalformedFrontMatterError,
    PostLoadError,
    PostNotFoundError,
    PostRenderError,
)
from .loader import FilesystemPostLoader, HttpPostLoader
from .models import RenderedDocument, Stage
from .render import PostRenderer

__all__ = [
    "FilesystemPostLoader",
    "HttpPostLoader",
    "InvalidDateError",
    "MalformedFrontMatterError",
    "PostLoadError",
    "PostNotFoundError",
    "PostRenderError",
    "PostRenderer",
    "RenderedDocument",
    "Stage",
    "app",
    "main",
]
