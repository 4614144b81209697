"""Write rendered posts to a static site directory.

:class:`SiteGenerator` renders every post the loader can list (concurrently,
through :meth:`~post_pages.render.PostRenderer.render_many`) and writes:

* ``<output_dir>/<slug>/index.html`` for each post,
* ``<output_dir>/index.html`` listing posts newest first,
* ``<output_dir>/posts.json``, a manifest that :class:`~post_pages.loader.HttpPostLoader`
  reads back to enumerate slugs,
* ``<output_dir>/404.html``, the page shown for unknown slugs.

Example
-------
>>> from pathlib import Path
>>> from post_pages.config import load_site_config
>>> from post_pages.generator import SiteGenerator
>>> generator = SiteGenerator(load_site_config(Path("config/site.yaml")))  # doctest: +SKIP
>>> generator.run()  # doctest: +SKIP
[PosixPath('out/hello-world/index.html'), ...]
"""

from __future__ import annotations

import json
import logging
import typing as typ
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from post_pages._constants import MANIFEST_FILENAME, NOT_FOUND_FILENAME, POST_FILENAME
from post_pages.errors import PostNotFoundError
from post_pages.loader import FilesystemPostLoader, HttpPostLoader
from post_pages.render import PostRenderer, build_post_index
from post_pages.stages.highlight import stylesheet

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from post_pages.config import SiteConfig
    from post_pages.loader import PostLoader
    from post_pages.models import PostSummary, RenderedDocument

logger = logging.getLogger(__name__)


def build_loader(config: SiteConfig) -> PostLoader:
    """Return the loader described by ``config``.

    A ``content_url`` selects the HTTP backend; otherwise posts are read from
    ``content_dir``.
    """
    if config.content_url:
        return HttpPostLoader(config.content_url, timeout=config.load_timeout)
    return FilesystemPostLoader(config.content_dir, timeout=config.load_timeout)


class SiteGenerator:
    """Render posts into themed HTML files on disk."""

    def __init__(
        self,
        config: SiteConfig,
        *,
        loader: PostLoader | None = None,
        templates_dir: Path | None = None,
        output_dir: Path | None = None,
    ) -> None:
        """Initialize the generator with configuration and template context.

        Parameters
        ----------
        config : SiteConfig
            Site configuration (content source, theme, stages).
        loader : PostLoader, optional
            Source of posts; defaults to the one described by ``config``.
        templates_dir : Path, optional
            Directory containing Jinja templates; defaults to the package templates.
        output_dir : Path, optional
            Override for the HTML output directory.
        """
        self.config = config
        self.loader = loader or build_loader(config)
        self.renderer = PostRenderer(self.loader, config)
        self.output_dir = output_dir or config.output_dir
        default_templates = Path(__file__).resolve().parents[1] / "templates"
        self.templates_dir = templates_dir or default_templates
        self.env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=select_autoescape(["html", "xml", "jinja"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.pygments_css = stylesheet(config.pygments_style)

    def run(self, slugs: cabc.Iterable[str] | None = None) -> list[Path]:
        """Render posts and the index, returning every file written.

        Posts that fail to render are logged and left out; they never stop
        the build.
        """
        selected = list(slugs) if slugs is not None else self.loader.list_slugs()
        self.output_dir.mkdir(parents=True, exist_ok=True)
        written: list[Path] = []
        outcomes = self.renderer.render_many(selected)
        for outcome in outcomes:
            if outcome.document is None:
                continue
            path = self.output_dir / outcome.slug / "index.html"
            path.parent.mkdir(parents=True, exist_ok=True)
            written.append(self._write(path, self.render_post_page(outcome.document)))

        published = {outcome.slug for outcome in outcomes if outcome.ok}
        summaries = [
            summary
            for summary in build_post_index(
                self.loader, date_format=self.config.date_format
            )
            if summary.slug in published
        ]
        written.append(
            self._write(self.output_dir / "index.html", self.render_index_page(summaries))
        )
        written.append(self._write_manifest(summaries))
        written.append(
            self._write(self.output_dir / NOT_FOUND_FILENAME, self.render_not_found_page())
        )
        return written

    def page_for(self, slug: str) -> str:
        """Return the HTML page for ``slug``, or the not-found page if it is missing.

        Other render failures propagate.
        """
        try:
            document = self.renderer.render(slug)
        except PostNotFoundError:
            logger.info("no post for %s; serving not-found page", slug)
            return self.render_not_found_page(slug)
        return self.render_post_page(document)

    def render_post_page(self, document: RenderedDocument) -> str:
        """Render the page shell around one document."""
        theme = self.config.theme
        template = self.env.get_template("post.jinja")
        return template.render(
            document=document,
            body=Markup(document.body_html),  # noqa: S704
            html_title=document.html_title(theme.site_name),
            description=document.spoiler or theme.description,
            theme=theme,
            pygments_css=self.pygments_css,
            discussion_url=theme.discussion_url,
            edit_url=theme.edit_url(document.slug),
            source_name=f"{document.slug}/{POST_FILENAME}",
        )

    def render_index_page(self, summaries: cabc.Sequence[PostSummary]) -> str:
        """Render the list of posts shown on the home page."""
        template = self.env.get_template("index.jinja")
        return template.render(posts=summaries, theme=self.config.theme)

    def render_not_found_page(self, slug: str | None = None) -> str:
        """Render the page shown when a slug has no post."""
        template = self.env.get_template("not_found.jinja")
        return template.render(slug=slug, theme=self.config.theme)

    def _write_manifest(self, summaries: cabc.Sequence[PostSummary]) -> Path:
        """Persist the ``posts.json`` manifest that lists published slugs."""
        payload = {
            "site_name": self.config.theme.site_name,
            "posts": [
                {
                    "slug": summary.slug,
                    "title": summary.title,
                    "date": summary.date.isoformat(),
                    "formatted_date": summary.formatted_date,
                    "spoiler": summary.spoiler,
                    "cta": summary.cta,
                }
                for summary in summaries
            ],
        }
        return self._write(
            self.output_dir / MANIFEST_FILENAME,
            json.dumps(payload, ensure_ascii=False, indent=2),
        )

    @staticmethod
    def _write(path: Path, text: str) -> Path:
        path.write_text(text, encoding="utf-8")
        return path


__all__ = ["SiteGenerator", "build_loader"]
