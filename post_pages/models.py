"""Shared dataclasses used by the post rendering pipeline."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import datetime as dt  # noqa: TC003 - used for runtime type metadata
import enum
import typing as typ
from types import MappingProxyType

if typ.TYPE_CHECKING:
    from xml.etree.ElementTree import Element


class Stage(enum.Enum):
    """Transform stages, declared in the order they always run."""

    TYPOGRAPHY = "typography"
    MATH = "math"
    HIGHLIGHT = "highlight"
    EVALUATE = "evaluate"


STAGE_ORDER: tuple[Stage, ...] = tuple(Stage)


@dc.dataclass(frozen=True, slots=True)
class DocumentSource:
    """Raw post content resolved from a slug.

    Attributes
    ----------
    slug : str
        Identifier the post was requested under.
    raw_text : str
        Full UTF-8 text of ``index.md`` including the front-matter block.
    location : str
        Filesystem path or URL the text was read from.
    """

    slug: str
    raw_text: str
    location: str


class FrontMatter(cabc.Mapping[str, typ.Any]):
    """Read-only mapping of the metadata declared ahead of a post body."""

    __slots__ = ("_data", "present")

    def __init__(
        self, data: cabc.Mapping[str, typ.Any] | None = None, *, present: bool = False
    ) -> None:
        self._data = MappingProxyType(dict(data or {}))
        self.present = present

    def __getitem__(self, key: str) -> typ.Any:  # noqa: ANN401
        return self._data[key]

    def __iter__(self) -> cabc.Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"FrontMatter({dict(self._data)!r}, present={self.present})"

    @property
    def title(self) -> str | None:
        """Return the post title, if declared."""
        return _optional_text(self._data.get("title"))

    @property
    def date(self) -> typ.Any:  # noqa: ANN401
        """Return the raw ``date`` value (string or YAML-resolved date)."""
        return self._data.get("date")

    @property
    def spoiler(self) -> str | None:
        """Return the one-line summary shown on the index page."""
        return _optional_text(self._data.get("spoiler"))

    @property
    def cta(self) -> str | None:
        """Return the optional category tag."""
        return _optional_text(self._data.get("cta"))


@dc.dataclass(frozen=True, slots=True)
class HeadingRecord:
    """A heading found in the post body.

    Attributes
    ----------
    text : str
        Heading text with the marker and surrounding whitespace removed.
    level : int
        Heading depth (number of ``#`` characters).
    anchor_id : str
        Slug unique within the document; shared by the TOC and the body.
    """

    text: str
    level: int
    anchor_id: str


@dc.dataclass(frozen=True, slots=True)
class Diagnostic:
    """Non-fatal finding attached to a single node during transformation."""

    stage: str
    code: str
    message: str
    detail: str | None = None


@dc.dataclass(frozen=True, slots=True)
class RenderedDocument:
    """Final output handed to the presentation shell.

    Attributes
    ----------
    slug : str
        Identifier the post was rendered from.
    title : str
        Post title from front matter.
    formatted_date : str
        Locale-formatted publication date.
    date : datetime.date
        Parsed publication date, used for ordering.
    body : Element
        Transformed content tree (``div`` root).
    body_html : str
        Serialized HTML for ``body``.
    table_of_contents : tuple[HeadingRecord, ...]
        Level two and three headings in document order.
    spoiler : str or None
        Optional summary.
    cta : str or None
        Optional category tag.
    diagnostics : tuple[Diagnostic, ...]
        Node-level problems that were degraded rather than raised.
    """

    slug: str
    title: str
    formatted_date: str
    date: dt.date
    body: Element
    body_html: str
    table_of_contents: tuple[HeadingRecord, ...]
    spoiler: str | None = None
    cta: str | None = None
    diagnostics: tuple[Diagnostic, ...] = ()

    def html_title(self, site_name: str) -> str:
        """Return the browser title used by the page shell."""
        return f"{self.title} — {site_name}"

    def to_dict(self) -> dict[str, typ.Any]:
        """Return a JSON-friendly representation of the document."""
        return {
            "slug": self.slug,
            "title": self.title,
            "date": self.date.isoformat(),
            "formatted_date": self.formatted_date,
            "spoiler": self.spoiler,
            "cta": self.cta,
            "body_html": self.body_html,
            "table_of_contents": [dc.asdict(entry) for entry in self.table_of_contents],
            "diagnostics": [dc.asdict(item) for item in self.diagnostics],
        }


@dc.dataclass(frozen=True, slots=True)
class PostSummary:
    """Index-page entry for a single post."""

    slug: str
    title: str
    date: dt.date
    formatted_date: str
    spoiler: str | None = None
    cta: str | None = None


def _optional_text(value: object) -> str | None:
    """Return ``value`` as a stripped string, or None when empty."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


__all__ = [
    "STAGE_ORDER",
    "Diagnostic",
    "DocumentSource",
    "FrontMatter",
    "HeadingRecord",
    "PostSummary",
    "RenderedDocument",
    "Stage",
]
