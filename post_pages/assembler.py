"""Build the immutable :class:`~post_pages.models.RenderedDocument`."""

from __future__ import annotations

import datetime as dt
import typing as typ

from post_pages._constants import DEFAULT_DATE_FORMAT
from post_pages.errors import InvalidDateError, MalformedFrontMatterError
from post_pages.models import RenderedDocument

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from xml.etree.ElementTree import Element

    from post_pages.models import Diagnostic, DocumentSource, FrontMatter, HeadingRecord


def parse_post_date(value: object) -> dt.date:
    """Normalize a front-matter ``date`` into a calendar date.

    YAML resolves unquoted ISO dates to :class:`datetime.date`; quoted values
    arrive as strings. Timestamps keep their calendar day as written.

    Raises
    ------
    InvalidDateError
        If ``value`` is missing or not an ISO-8601 date or timestamp.

    Examples
    --------
    >>> parse_post_date("2024-05-01")
    datetime.date(2024, 5, 1)
    >>> parse_post_date("2024-05-01T09:30:00Z")
    datetime.date(2024, 5, 1)
    """
    match value:
        case dt.datetime():
            return value.date()
        case dt.date():
            return value
        case str() if value.strip():
            sanitized = value.strip().replace("Z", "+00:00")
            try:
                return dt.datetime.fromisoformat(sanitized).date()
            except ValueError as exc:
                msg = f"Front-matter date {value!r} is not an ISO-8601 date."
                raise InvalidDateError(msg) from exc
        case _:
            msg = f"Front-matter date {value!r} is not a date."
            raise InvalidDateError(msg)


def format_date(value: dt.date, date_format: str = DEFAULT_DATE_FORMAT) -> str:
    """Return ``value`` rendered with a strftime pattern.

    >>> format_date(dt.date(2024, 5, 1))
    '2024/05/01'
    """
    return value.strftime(date_format)


def check_publishable(slug: str, front_matter: FrontMatter) -> tuple[str, dt.date]:
    """Return the title and parsed date that a published post must carry.

    Called before the body is transformed so a post that cannot be published
    never runs its live code.

    Raises
    ------
    MalformedFrontMatterError
        If the post has no front matter with a title.
    InvalidDateError
        If the front-matter date cannot be parsed.
    """
    title = front_matter.title
    if not front_matter.present or title is None:
        msg = f"Post '{slug}' has no front matter with a title and date."
        raise MalformedFrontMatterError(msg)
    return title, parse_post_date(front_matter.date)


def assemble(
    source: DocumentSource,
    front_matter: FrontMatter,
    body: Element,
    body_html: str,
    table_of_contents: cabc.Sequence[HeadingRecord],
    diagnostics: cabc.Sequence[Diagnostic] = (),
    *,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> RenderedDocument:
    """Combine the pieces of a render into a :class:`RenderedDocument`.

    Raises
    ------
    MalformedFrontMatterError
        If the post has no front matter (a published post needs a title and
        a date).
    InvalidDateError
        If the front-matter date cannot be parsed.
    """
    title, date = check_publishable(source.slug, front_matter)
    return RenderedDocument(
        slug=source.slug,
        title=title,
        formatted_date=format_date(date, date_format),
        date=date,
        body=body,
        body_html=body_html,
        table_of_contents=tuple(table_of_contents),
        spoiler=front_matter.spoiler,
        cta=front_matter.cta,
        diagnostics=tuple(diagnostics),
    )


__all__ = ["assemble", "check_publishable", "format_date", "parse_post_date"]
