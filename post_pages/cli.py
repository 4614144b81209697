"""Cyclopts CLI entrypoint for rendering posts and building the static site.

The ``posts`` console script renders a single post to stdout (as HTML or
JSON), builds every post into ``output_dir``, or lists posts newest first.
Options fall back to ``INPUT_``-prefixed environment variables so the same
commands run unchanged in CI.

Examples
--------
Render one post as JSON:

>>> from post_pages.cli import app
>>> app(["render", "hello-world", "--json"])  # doctest: +SKIP

Build the whole site into a custom directory:

>>> app(["build", "--output-dir", "dist"])  # doctest: +SKIP
"""

from __future__ import annotations

import json
import logging
import sys
import typing as typ
from pathlib import Path

import cyclopts
from cyclopts import App, Parameter

from .config import SiteConfig, load_site_config
from .errors import PostRenderError
from .generator import SiteGenerator, build_loader
from .render import PostRenderer, build_post_index

DEFAULT_CONFIG = Path("config/site.yaml")

app = App(name="posts", config=cyclopts.config.Env("INPUT_", command=False))  # type: ignore[unknown-argument]

ConfigOption = typ.Annotated[
    Path, Parameter(help="Path to site config", env_var="INPUT_CONFIG")
]
VerboseOption = typ.Annotated[
    bool, Parameter(help="Log progress and diagnostics", env_var="INPUT_VERBOSE")
]


def _format_path(path: Path) -> str:
    """Return a cwd-relative path when possible, otherwise the absolute path."""
    if path.is_absolute():
        try:
            return str(path.relative_to(Path.cwd()))
        except ValueError:  # pragma: no cover - fallback for different roots
            return str(path)
    return str(path)


def _load_config(path: Path) -> SiteConfig:
    """Load ``path``, using built-in defaults when the default file is absent."""
    if path == DEFAULT_CONFIG and not path.exists():
        return SiteConfig()
    return load_site_config(path)


def _configure_logging(*, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command(help="Render one post to stdout.")
def render(
    slug: typ.Annotated[str, Parameter(help="Slug of the post to render")],
    *,
    config: ConfigOption = DEFAULT_CONFIG,
    as_json: typ.Annotated[
        bool, Parameter(name="--json", help="Print the rendered document as JSON")
    ] = False,
    verbose: VerboseOption = False,
) -> None:
    """Render ``slug`` and print its body HTML or a JSON document.

    Parameters
    ----------
    slug : str
        Post identifier, the name of its content directory.
    config : Path, optional
        Path to the ``site.yaml`` configuration file (overridable via
        ``INPUT_CONFIG``).
    as_json : bool, optional
        Print :meth:`~post_pages.models.RenderedDocument.to_dict` as JSON
        instead of the body HTML.
    verbose : bool, optional
        Log stage diagnostics to stderr.

    Raises
    ------
    SystemExit
        With status 1 when the post cannot be rendered.
    """
    _configure_logging(verbose=verbose)
    site_config = _load_config(config)
    renderer = PostRenderer(build_loader(site_config), site_config)
    try:
        document = renderer.render(slug)
    except PostRenderError as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
    if as_json:
        print(json.dumps(document.to_dict(), ensure_ascii=False, indent=2))
    else:
        print(document.body_html)
    for diagnostic in document.diagnostics:
        print(
            f"warning: [{diagnostic.code}] {diagnostic.message}",
            file=sys.stderr,
        )


@app.command(help="Render every post into static HTML pages.")
def build(
    *,
    config: ConfigOption = DEFAULT_CONFIG,
    output_dir: typ.Annotated[
        Path | None,
        Parameter(help="Override the output folder", env_var="INPUT_OUTPUT_DIR"),
    ] = None,
    slug: typ.Annotated[
        list[str] | None,
        Parameter(help="Only build these posts", env_var="INPUT_SLUG"),
    ] = None,
    verbose: VerboseOption = False,
) -> None:
    """Build post pages, the index, the manifest and the not-found page.

    Parameters
    ----------
    config : Path, optional
        Path to the ``site.yaml`` configuration file.
    output_dir : Path or None, optional
        Override for the configured output directory.
    slug : list[str] or None, optional
        Restrict the build to these slugs; defaults to every listed post.
    verbose : bool, optional
        Log progress and diagnostics to stderr.
    """
    _configure_logging(verbose=verbose)
    site_config = _load_config(config)
    generator = SiteGenerator(site_config, output_dir=output_dir)
    for path in generator.run(slug):
        print(f"wrote {_format_path(path)}")


@app.command(name="list", help="List posts, newest first.")
def list_posts(
    *,
    config: ConfigOption = DEFAULT_CONFIG,
) -> None:
    """Print one ``date  slug  title`` line per post."""
    site_config = _load_config(config)
    loader = build_loader(site_config)
    for summary in build_post_index(loader, date_format=site_config.date_format):
        print(f"{summary.formatted_date}  {summary.slug}  {summary.title}")


def main() -> None:
    """Invoke the Cyclopts application that powers the `posts` console command.

    Examples
    --------
    >>> main()  # doctest: +SKIP
    """
    app()


if __name__ == "__main__":  # pragma: no cover - manual invocation helper
    main()
