"""Turn a Markdown body into a transformed element tree.

:class:`TransformPipeline` builds a fresh :class:`markdown.Markdown` for each
render. After Python-Markdown has produced the tree and resolved inline
syntax, a tree processor:

1. attaches the anchor ids computed by :func:`~post_pages.headings.extract_headings`
   to the body headings,
2. runs every enabled :class:`~post_pages.models.Stage` in declared order,
3. substitutes components for placeholders and overridden elements.

Node-level failures are reported to :class:`PipelineContext` and never stop
the render.

Examples
--------
>>> from post_pages.components import ComponentResolver
>>> from post_pages.headings import extract_headings
>>> body = "## Intro\\n\\nHello\\n\\n## Intro\\n"
>>> context = PipelineContext(
...     slug="demo",
...     headings=extract_headings(body),
...     components=ComponentResolver(),
... )
>>> result = TransformPipeline().run(body, context)
>>> sorted(result.anchored)
['intro', 'intro-2']
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import html
import logging
import re
import typing as typ
from types import MappingProxyType
from xml.etree.ElementTree import Element

import markdown
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor
from markdown.util import HTML_PLACEHOLDER_RE

from post_pages.components import substitute_components
from post_pages.config import EvaluationSettings, StageSettings
from post_pages.extensions import PostSyntaxExtension, unescape
from post_pages.headings import HTML_TAG_PATTERN, HeadingIndex, anchor_base
from post_pages.models import Diagnostic, Stage
from post_pages.stages import evaluate, highlight, math, typography

if typ.TYPE_CHECKING:
    from markdown.util import HtmlStash

    from post_pages.components import ComponentResolver
    from post_pages.errors import NodeError

logger = logging.getLogger(__name__)

StageTransform = cabc.Callable[[Element, "PipelineContext"], Element]

_TRANSFORMS: cabc.Mapping[Stage, StageTransform] = MappingProxyType(
    {
        Stage.TYPOGRAPHY: typography.transform,
        Stage.MATH: math.transform,
        Stage.HIGHLIGHT: highlight.transform,
        Stage.EVALUATE: evaluate.transform,
    }
)
HEADING_TAGS = frozenset(f"h{level}" for level in range(1, 7))
MARKDOWN_EXTENSIONS = ("tables", "sane_lists")


@dc.dataclass(slots=True)
class PipelineContext:
    """Per-render state shared by every stage.

    Attributes
    ----------
    slug : str
        Post being rendered; used in log messages.
    headings : HeadingIndex
        Heading records and the anchor registry for this document.
    components : ComponentResolver
        Renderers for placeholders and overridden tags.
    pygments_style : str
        Pygments style used for the code stylesheet.
    evaluation : EvaluationSettings
        Limits for live code blocks.
    diagnostics : list[Diagnostic]
        Findings reported so far, in the order they occurred.
    """

    slug: str
    headings: HeadingIndex
    components: ComponentResolver
    pygments_style: str = "monokai"
    evaluation: EvaluationSettings = dc.field(default_factory=EvaluationSettings)
    diagnostics: list[Diagnostic] = dc.field(default_factory=list)

    def report(self, stage: Stage | str, exc: NodeError, detail: str | None = None) -> None:
        """Record ``exc`` as a diagnostic for the node being transformed."""
        name = stage.value if isinstance(stage, Stage) else stage
        self.diagnostics.append(
            Diagnostic(stage=name, code=exc.code, message=str(exc), detail=detail)
        )
        logger.warning("%s: %s [%s] %s", self.slug, name, exc.code, exc)


@dc.dataclass(frozen=True, slots=True)
class PipelineResult:
    """Transformed tree, its serialization and the anchors found in it."""

    root: Element
    html: str
    anchored: frozenset[str]


class TransformPipeline:
    """Parse Markdown and apply the enabled stages in a fixed order."""

    def __init__(self, stages: StageSettings | None = None) -> None:
        self.stages = stages or StageSettings()

    @property
    def enabled_stages(self) -> tuple[Stage, ...]:
        """Return the stages that run, in execution order."""
        return self.stages.enabled

    def apply_stages(self, root: Element, context: PipelineContext) -> Element:
        """Run each enabled stage over ``root``, feeding each the previous output."""
        for stage in self.enabled_stages:
            root = _TRANSFORMS[stage](root, context)
        return root

    def run(self, body: str, context: PipelineContext) -> PipelineResult:
        """Convert ``body`` and return the transformed tree.

        Parameters
        ----------
        body : str
            Markdown body without front matter.
        context : PipelineContext
            Per-render state; diagnostics are appended to it.

        Returns
        -------
        PipelineResult
            Root ``div`` element, XHTML serialization and the set of anchor
            ids attached to headings.
        """
        capture = _PipelineExtension(self, context)
        md = markdown.Markdown(
            extensions=[*MARKDOWN_EXTENSIONS, PostSyntaxExtension(), capture],
            output_format="xhtml",
        )
        html = md.convert(body)
        if capture.root is None:
            # Markdown returns early for blank input without running tree processors.
            return PipelineResult(root=Element("div"), html=html, anchored=frozenset())
        return PipelineResult(root=capture.root, html=html, anchored=capture.anchored)


def attach_anchors(
    root: Element, index: HeadingIndex, stash: HtmlStash | None = None
) -> frozenset[str]:
    """Set ``id`` on every heading under ``root`` and return the ids used.

    Headings are matched to ``index.records`` in document order by level and
    anchor base. A heading the line scanner did not see (a setext heading, or
    one inside a block quote) gets a fresh id from the same registry.
    """
    records = index.records
    position = 0
    anchored: set[str] = set()
    for heading in [el for el in root.iter() if el.tag in HEADING_TAGS]:
        level = int(heading.tag[1])
        base = anchor_base(rendered_heading_text(heading, stash))
        found = next(
            (
                offset
                for offset in range(position, len(records))
                if records[offset].level == level
                and anchor_base(records[offset].text) == base
            ),
            None,
        )
        if found is None:
            anchor = index.registry.assign(base)
        else:
            anchor = records[found].anchor_id
            position = found + 1
        heading.set("id", anchor)
        anchored.add(anchor)
    return frozenset(anchored)


def rendered_heading_text(heading: Element, stash: HtmlStash | None = None) -> str:
    """Return the visible text of a parsed heading.

    Inline HTML and character references are still stashed placeholders at
    this point and code span text is still entity-escaped; both are resolved
    so the result matches :func:`~post_pages.headings.heading_text`.
    """
    text = unescape("".join(heading.itertext()))
    if stash is not None:
        text = HTML_PLACEHOLDER_RE.sub(lambda match: _stashed_text(stash, match), text)
    return html.unescape(text).strip()


def _stashed_text(stash: HtmlStash, match: re.Match[str]) -> str:
    index = int(match.group(1))
    if index >= len(stash.rawHtmlBlocks):
        return ""
    raw = stash.rawHtmlBlocks[index]
    if not isinstance(raw, str):
        return "".join(raw.itertext())
    return HTML_TAG_PATTERN.sub("", raw)


class _PipelineTreeprocessor(Treeprocessor):
    def __init__(self, md: markdown.Markdown, owner: _PipelineExtension) -> None:
        super().__init__(md)
        self.owner = owner

    def run(self, root: Element) -> Element:
        owner = self.owner
        context = owner.context
        owner.anchored = attach_anchors(root, context.headings, self.md.htmlStash)
        root = owner.pipeline.apply_stages(root, context)
        owner.root = substitute_components(root, context)
        return owner.root


class _PipelineExtension(Extension):
    """Run the pipeline after inline processing and keep hold of the tree."""

    def __init__(self, pipeline: TransformPipeline, context: PipelineContext) -> None:
        super().__init__()
        self.pipeline = pipeline
        self.context = context
        self.root: Element | None = None
        self.anchored: frozenset[str] = frozenset()

    def extendMarkdown(self, md: markdown.Markdown) -> None:  # type: ignore[override]  # noqa: N802
        """Register the tree processor between inline handling and prettifying."""
        md.treeprocessors.register(_PipelineTreeprocessor(md, self), "post_pipeline", 15)


__all__ = [
    "PipelineContext",
    "PipelineResult",
    "StageTransform",
    "TransformPipeline",
    "attach_anchors",
    "rendered_heading_text",
]
