r"""Split a post into its YAML front matter and Markdown body.

A post starts with a fenced metadata block::

    ---
    title: Hello
    date: 2024-05-01
    ---
    Body text...

The block is parsed with ruamel.yaml's safe loader. Text without a leading
delimiter is a valid raw snippet: its front matter is empty and the entire
input is the body.

Example
-------
>>> from post_pages.frontmatter import split_front_matter
>>> meta, body = split_front_matter("---\ntitle: Hi\ndate: '2024-05-01'\n---\nBody\n")
>>> meta.title, body
('Hi', 'Body\n')
"""

from __future__ import annotations

import io
import re
import typing as typ

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from post_pages._constants import FRONT_MATTER_DELIMITER, REQUIRED_FRONT_MATTER_KEYS
from post_pages.errors import InvalidDateError, MalformedFrontMatterError
from post_pages.models import FrontMatter

if typ.TYPE_CHECKING:
    from post_pages.errors import PostRenderError

_BOM = "\ufeff"
DATE_LINE_PATTERN = re.compile(r"^date[ \t]*:(?P<value>[^\n]*)$", re.MULTILINE)


def split_front_matter(text: str) -> tuple[FrontMatter, str]:
    """Separate the leading metadata block from the body text.

    Parameters
    ----------
    text : str
        Raw post content.

    Returns
    -------
    tuple[FrontMatter, str]
        Parsed metadata and the body, verbatim, following the closing
        delimiter line.

    Raises
    ------
    MalformedFrontMatterError
        If the opening delimiter is not closed, the block is not a YAML
        mapping, or ``title``/``date`` are missing.
    InvalidDateError
        If an unquoted ``date`` looks like a timestamp but names no real day
        (``2024-02-30``).
    """
    if text.startswith(_BOM):
        text = text[len(_BOM) :]
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip("\r\n").rstrip() != FRONT_MATTER_DELIMITER:
        return FrontMatter(), text

    closing = _find_closing_delimiter(lines)
    if closing is None:
        msg = "Front matter opened with '---' but was never closed."
        raise MalformedFrontMatterError(msg)

    block = "".join(lines[1:closing])
    body = "".join(lines[closing + 1 :])
    data = _parse_block(block)
    missing = sorted(key for key in REQUIRED_FRONT_MATTER_KEYS if _is_blank(data.get(key)))
    if missing:
        msg = f"Front matter is missing required keys: {', '.join(missing)}."
        raise MalformedFrontMatterError(msg)
    return FrontMatter(data, present=True), body


def _find_closing_delimiter(lines: list[str]) -> int | None:
    for index in range(1, len(lines)):
        if lines[index].rstrip("\r\n").rstrip() == FRONT_MATTER_DELIMITER:
            return index
    return None


def _parse_block(block: str) -> dict[str, typ.Any]:
    """Parse the YAML between the delimiters into a plain dict."""
    if not block.strip():
        return {}
    try:
        loaded = _yaml_loader().load(io.StringIO(block))
    except YAMLError as exc:
        msg = f"Front matter is not valid YAML: {exc}"
        raise MalformedFrontMatterError(msg) from exc
    except ValueError as exc:
        # Unquoted timestamps such as 2024-02-30 resolve but cannot be built.
        raise _unconstructable_value(block, exc) from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        msg = "Front matter must be a mapping of keys to values."
        raise MalformedFrontMatterError(msg)
    return {str(key): value for key, value in loaded.items()}


def _yaml_loader() -> YAML:
    loader = YAML(typ="safe")
    loader.version = (1, 2)
    return loader


def _unconstructable_value(block: str, exc: ValueError) -> PostRenderError:
    """Blame the ``date`` key when its value alone fails, otherwise the block."""
    match = DATE_LINE_PATTERN.search(block)
    if match is not None and _fails_to_construct(match.group(0)):
        value = match.group("value").strip()
        msg = f"Front-matter date {value!r} is not a calendar date: {exc}"
        return InvalidDateError(msg)
    msg = f"Front matter holds a value YAML cannot construct: {exc}"
    return MalformedFrontMatterError(msg)


def _fails_to_construct(line: str) -> bool:
    try:
        _yaml_loader().load(io.StringIO(line))
    except ValueError:
        return True
    except YAMLError:
        return False
    return False


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


__all__ = ["split_front_matter"]
