r"""Extract headings from post bodies and assign stable anchor ids.

The same slug algorithm and :class:`AnchorRegistry` are used for the table of
contents and for the ``id`` attributes in the rendered body, so TOC links and
in-body anchors always agree. Both sides slug the heading's *visible* text:
:func:`heading_text` derives it from Markdown source and the pipeline derives
it from the parsed tree.

Example
-------
>>> from post_pages.headings import extract_headings
>>> index = extract_headings("## Intro\n\n## Intro\n")
>>> [entry.anchor_id for entry in index.table_of_contents()]
['intro', 'intro-2']
"""

from __future__ import annotations

import dataclasses as dc
import html
import re
import typing as typ

from post_pages._constants import FALLBACK_SLUG, TOC_LEVELS
from post_pages.models import HeadingRecord

if typ.TYPE_CHECKING:
    import collections.abc as cabc

HEADING_PATTERN = re.compile(r"^[ ]{0,3}(?P<marker>#{1,6})(?:[ \t]+(?P<text>.*?))?[ \t]*$")
CLOSING_HASHES_PATTERN = re.compile(r"(?:^|[ \t]+)#+[ \t]*$")
FENCE_PATTERN = re.compile(r"^[ ]*(?P<fence>`{3,}|~{3,})")
MATH_FENCE_PATTERN = re.compile(r"^[ ]{0,3}\$\$")
CODE_SPAN_PATTERN = re.compile(r"(?<![\\`])(?P<ticks>`+)(?P<code>.+?)(?<!`)(?P=ticks)(?!`)")
IMAGE_PATTERN = re.compile(r"!\[[^\]]*\]\([^)]*\)")
LINK_PATTERN = re.compile(r"\[([^\]]*)\](?:\([^)]*\)|\[[^\]]*\])")
AUTOLINK_PATTERN = re.compile(r"<((?:https?|ftp)://[^>\s]+)>")
HTML_TAG_PATTERN = re.compile(r"</?[A-Za-z][^>]*>")
STAR_EMPHASIS_PATTERN = re.compile(r"(?<!\\)(\*{1,3})(?=\S)(.+?)(?<=[^\s\\])\1")
UNDERSCORE_EMPHASIS_PATTERN = re.compile(r"(?<![\\\w])(_{1,3})(?=\S)(.+?)(?<=[^\s\\])\1(?!\w)")
ESCAPED_CHAR_PATTERN = re.compile(r"\\([^\w\s])")
SEPARATOR_PATTERN = re.compile(r"[\W_]+")


def heading_text(source: str) -> str:
    r"""Return the text a reader sees for Markdown heading ``source``.

    Code spans keep their content verbatim. Everywhere else links are reduced
    to their label, images and HTML tags are dropped, emphasis markers and
    backslash escapes are removed and character references are decoded.

    Examples
    --------
    >>> heading_text("The `a && b` operator")
    'The a && b operator'
    >>> heading_text("Q&amp;A with <em>*you*</em> \\#1")
    'Q&A with you #1'
    """
    parts: list[str] = []
    position = 0
    for match in CODE_SPAN_PATTERN.finditer(source):
        parts.append(_visible_prose(source[position : match.start()]))
        parts.append(match.group("code").strip())
        position = match.end()
    parts.append(_visible_prose(source[position:]))
    return "".join(parts).strip()


def _visible_prose(text: str) -> str:
    text = IMAGE_PATTERN.sub("", text)
    text = LINK_PATTERN.sub(r"\1", text)
    text = AUTOLINK_PATTERN.sub(r"\1", text)
    text = HTML_TAG_PATTERN.sub("", text)
    text = STAR_EMPHASIS_PATTERN.sub(r"\2", text)
    text = UNDERSCORE_EMPHASIS_PATTERN.sub(r"\2", text)
    return ESCAPED_CHAR_PATTERN.sub(r"\1", html.unescape(text))


def anchor_base(text: str) -> str:
    """Return the slug for already-visible heading ``text``.

    >>> anchor_base("Using <div> tags")
    'using-div-tags'
    """
    slug = SEPARATOR_PATTERN.sub("-", text.lower()).strip("-")
    return slug or FALLBACK_SLUG


def slugify(text: str) -> str:
    """Convert Markdown heading text into a lowercase, hyphen-separated slug.

    Inline Markdown (links, images, code ticks, emphasis) is reduced to its
    visible text first; runs of anything that is not a letter or digit
    collapse to a single ``-``. Letters outside ASCII are kept.

    Examples
    --------
    >>> slugify("Getting *Started* with `posts`!")
    'getting-started-with-posts'
    >>> slugify("???")
    'section'
    """
    return anchor_base(heading_text(text))


class AnchorRegistry:
    """Hand out anchor ids that are unique within one document."""

    def __init__(self) -> None:
        self._used: set[str] = set()

    def __contains__(self, anchor: object) -> bool:
        return anchor in self._used

    def assign(self, base: str) -> str:
        """Return ``base`` or the first free ``base-N`` (N >= 2), marking it used."""
        candidate = base
        suffix = 2
        while candidate in self._used:
            candidate = f"{base}-{suffix}"
            suffix += 1
        self._used.add(candidate)
        return candidate


@dc.dataclass(slots=True)
class HeadingIndex:
    """Every heading in a post, in document order, plus the anchor registry.

    Attributes
    ----------
    records : list[HeadingRecord]
        Headings of all levels with their assigned anchor ids.
    registry : AnchorRegistry
        Registry that produced the ids; the pipeline draws ids for headings
        the line scanner could not see from the same registry.
    """

    records: list[HeadingRecord]
    registry: AnchorRegistry

    def table_of_contents(
        self, anchored: cabc.Container[str] | None = None
    ) -> tuple[HeadingRecord, ...]:
        """Return level two and three headings, optionally limited to ``anchored`` ids."""
        return tuple(
            record
            for record in self.records
            if record.level in TOC_LEVELS
            and (anchored is None or record.anchor_id in anchored)
        )


def extract_headings(body: str) -> HeadingIndex:
    """Scan ``body`` line by line for ATX headings outside code and math blocks.

    Parameters
    ----------
    body : str
        Markdown body (front matter already removed).

    Returns
    -------
    HeadingIndex
        Ordered heading records with unique anchor ids. Level one (title)
        and level four and deeper headings receive anchors but are left out
        of :meth:`HeadingIndex.table_of_contents`.
    """
    registry = AnchorRegistry()
    records: list[HeadingRecord] = []
    for level, text in _scan_headings(body):
        anchor = registry.assign(anchor_base(text))
        records.append(HeadingRecord(text=text, level=level, anchor_id=anchor))
    return HeadingIndex(records=records, registry=registry)


def _scan_headings(body: str) -> cabc.Iterator[tuple[int, str]]:
    """Yield ``(level, text)`` for heading lines, skipping fenced regions."""
    fence: str | None = None
    in_math = False
    for line in body.splitlines():
        if fence is not None:
            closing = FENCE_PATTERN.match(line)
            if (
                closing
                and closing.group("fence")[0] == fence[0]
                and len(closing.group("fence")) >= len(fence)
                and not line.strip()[len(closing.group("fence")) :].strip()
            ):
                fence = None
            continue
        if in_math:
            if line.rstrip().endswith("$$"):
                in_math = False
            continue
        opening = FENCE_PATTERN.match(line)
        if opening:
            fence = opening.group("fence")
            continue
        if MATH_FENCE_PATTERN.match(line):
            stripped = line.strip()
            in_math = stripped == "$$" or not stripped[2:].rstrip().endswith("$$")
            continue
        match = HEADING_PATTERN.match(line)
        if match is None:
            continue
        raw = CLOSING_HASHES_PATTERN.sub("", match.group("text") or "")
        text = heading_text(raw)
        if text:
            yield len(match.group("marker")), text


__all__ = [
    "AnchorRegistry",
    "HeadingIndex",
    "anchor_base",
    "extract_headings",
    "heading_text",
    "slugify",
]
