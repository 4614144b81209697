"""Render posts end to end.

:class:`PostRenderer` is the entry point used by the CLI and the static site
generator::

    loader -> front matter -> headings -> pipeline -> assembler

Every call builds its own Markdown parser, tree and diagnostics list, so one
renderer may be shared across threads.

Example
-------
>>> from pathlib import Path
>>> from post_pages.config import SiteConfig
>>> from post_pages.loader import FilesystemPostLoader
>>> from post_pages.render import PostRenderer
>>> renderer = PostRenderer(FilesystemPostLoader(Path("public")), SiteConfig())
>>> document = renderer.render("hello-world")  # doctest: +SKIP
>>> [entry.anchor_id for entry in document.table_of_contents]  # doctest: +SKIP
['intro', 'intro-2']
"""

from __future__ import annotations

import concurrent.futures as cf
import dataclasses as dc
import logging
import typing as typ

from post_pages._constants import DEFAULT_DATE_FORMAT
from post_pages.assembler import assemble, check_publishable, format_date
from post_pages.components import ComponentResolver
from post_pages.config import SiteConfig
from post_pages.errors import PostRenderError
from post_pages.frontmatter import split_front_matter
from post_pages.headings import extract_headings
from post_pages.models import PostSummary
from post_pages.pipeline import PipelineContext, TransformPipeline

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from post_pages.loader import PostLoader
    from post_pages.models import RenderedDocument

logger = logging.getLogger(__name__)


@dc.dataclass(frozen=True, slots=True)
class RenderOutcome:
    """Result of rendering one slug as part of a batch.

    Exactly one of ``document`` and ``error`` is set.
    """

    slug: str
    document: RenderedDocument | None = None
    error: PostRenderError | None = None

    @property
    def ok(self) -> bool:
        """Return True when the post rendered."""
        return self.error is None


class PostRenderer:
    """Render posts served by ``loader`` using ``config``."""

    def __init__(self, loader: PostLoader, config: SiteConfig | None = None) -> None:
        self.loader = loader
        self.config = config or SiteConfig()
        self.pipeline = TransformPipeline(self.config.stages)

    def render(self, slug: str) -> RenderedDocument:
        """Render the post stored under ``slug``.

        Raises
        ------
        PostNotFoundError
            If no post exists for ``slug`` (including invalid slugs).
        PostLoadError
            If the post or its component overrides could not be read.
        MalformedFrontMatterError
            If the front matter is unterminated, unparsable or incomplete.
        InvalidDateError
            If the front-matter date is not a date.
        """
        source = self.loader.load(slug)
        front_matter, body = split_front_matter(source.raw_text)
        check_publishable(slug, front_matter)
        headings = extract_headings(body)
        context = PipelineContext(
            slug=slug,
            headings=headings,
            components=ComponentResolver.for_document(slug, self.loader),
            pygments_style=self.config.pygments_style,
            evaluation=self.config.evaluation,
        )
        result = self.pipeline.run(body, context)
        document = assemble(
            source,
            front_matter,
            result.root,
            result.html,
            headings.table_of_contents(result.anchored),
            context.diagnostics,
            date_format=self.config.date_format,
        )
        logger.info(
            "rendered %s (%d headings, %d diagnostics)",
            slug,
            len(headings.records),
            len(document.diagnostics),
        )
        return document

    def render_many(
        self, slugs: cabc.Iterable[str], *, max_workers: int | None = None
    ) -> list[RenderOutcome]:
        """Render ``slugs`` concurrently; a failing post never affects the others.

        Outcomes are returned in the order the slugs were given.
        """
        ordered = list(slugs)
        workers = max_workers or self.config.max_workers
        with cf.ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self._render_outcome, slug) for slug in ordered]
            return [future.result() for future in futures]

    def _render_outcome(self, slug: str) -> RenderOutcome:
        try:
            return RenderOutcome(slug=slug, document=self.render(slug))
        except PostRenderError as exc:
            logger.error("failed to render %s: %s", slug, exc)  # noqa: TRY400
            return RenderOutcome(slug=slug, error=exc)


def build_post_index(
    loader: PostLoader, *, date_format: str | None = None
) -> list[PostSummary]:
    """Return summaries of every post ``loader`` can list, newest first.

    Only the front matter is read. Posts whose metadata cannot be parsed are
    logged and skipped.
    """
    summaries: list[PostSummary] = []
    for slug in loader.list_slugs():
        try:
            front_matter, _ = split_front_matter(loader.load(slug).raw_text)
            title, date = check_publishable(slug, front_matter)
        except PostRenderError as exc:
            logger.warning("skipping %s in index: %s", slug, exc)
            continue
        summaries.append(
            PostSummary(
                slug=slug,
                title=title,
                date=date,
                formatted_date=format_date(date, date_format or DEFAULT_DATE_FORMAT),
                spoiler=front_matter.spoiler,
                cta=front_matter.cta,
            )
        )
    summaries.sort(key=lambda summary: (summary.date, summary.slug), reverse=True)
    return summaries


__all__ = ["PostRenderer", "RenderOutcome", "build_post_index"]
