"""Syntax-highlight fenced code blocks with Pygments.

Each ``pre[data-language]`` produced by the Markdown extension becomes::

    <div class="codehilite" data-language="rust">
      <pre><code><span class="k">fn</span> ...</code></pre>
    </div>

Token classes are the short Pygments names, so the stylesheet from
:func:`stylesheet` applies unchanged. Unknown languages render as plain
monospaced text and record a ``highlight/unsupported`` diagnostic.
"""

from __future__ import annotations

import typing as typ
from xml.etree.ElementTree import Element, SubElement

from markdown.util import AtomicString
from pygments.formatters.html import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.token import STANDARD_TYPES
from pygments.util import ClassNotFound

from post_pages.errors import HighlightUnsupportedError
from post_pages.models import Stage

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from pygments.lexer import Lexer
    from pygments.token import _TokenType

    from post_pages.pipeline import PipelineContext

CSS_CLASS = "codehilite"
PLAIN_LANGUAGES = frozenset({"text", "plain", "plaintext", "txt"})


def transform(root: Element, context: PipelineContext) -> Element:
    """Replace every lifted code block with a token-highlighted tree."""
    parents = {child: parent for parent in root.iter() for child in parent}
    for pre in [el for el in root.iter("pre") if el.get("data-language")]:
        parent = parents.get(pre)
        if parent is None:
            continue
        code = pre.find("code")
        source = "".join(code.itertext()) if code is not None else ""
        language = pre.get("data-language") or "text"
        try:
            lexer = resolve_lexer(language)
        except HighlightUnsupportedError as exc:
            context.report(Stage.HIGHLIGHT, exc)
            lexer = get_lexer_by_name("text")
        block = highlight_block(source, lexer, language)
        if pre.get("data-live"):
            block.set("data-live", pre.get("data-live", ""))
        block.tail = pre.tail
        parent[list(parent).index(pre)] = block
    return root


def resolve_lexer(language: str) -> Lexer:
    """Return a lexer for ``language``.

    Raises
    ------
    HighlightUnsupportedError
        If Pygments has no lexer registered under that alias.
    """
    if language in PLAIN_LANGUAGES:
        return get_lexer_by_name("text")
    try:
        return get_lexer_by_name(language)
    except ClassNotFound as exc:
        msg = f"No syntax highlighter for language '{language}'."
        raise HighlightUnsupportedError(msg) from exc


def highlight_block(source: str, lexer: Lexer, language: str) -> Element:
    """Build the ``div.codehilite`` tree for ``source``."""
    wrapper = Element("div")
    wrapper.set("class", CSS_CLASS)
    wrapper.set("data-language", language)
    pre = SubElement(wrapper, "pre")
    code = SubElement(pre, "code")
    last: Element | None = None
    for css_class, value in _coalesce(lexer.get_tokens(source)):
        if not css_class:
            if last is None:
                code.text = AtomicString((code.text or "") + value)
            else:
                last.tail = AtomicString((last.tail or "") + value)
            continue
        last = SubElement(code, "span")
        last.set("class", css_class)
        last.text = AtomicString(value)
    return wrapper


def stylesheet(style: str) -> str:
    """Return the CSS rules for highlighted blocks in Pygments ``style``."""
    return HtmlFormatter(style=style, cssclass=CSS_CLASS).get_style_defs(f".{CSS_CLASS}")


def _token_class(ttype: _TokenType) -> str:
    while ttype not in STANDARD_TYPES:
        ttype = ttype.parent
    return STANDARD_TYPES[ttype]


def _coalesce(
    tokens: cabc.Iterable[tuple[_TokenType, str]],
) -> cabc.Iterator[tuple[str, str]]:
    """Merge adjacent tokens that share a CSS class."""
    current_class: str | None = None
    buffer: list[str] = []
    for ttype, value in tokens:
        css_class = _token_class(ttype)
        if css_class != current_class and buffer:
            yield current_class or "", "".join(buffer)
            buffer = []
        current_class = css_class
        buffer.append(value)
    if buffer:
        yield current_class or "", "".join(buffer)


__all__ = ["CSS_CLASS", "highlight_block", "resolve_lexer", "stylesheet", "transform"]
