"""Python-Markdown extension that lifts post-specific syntax into tree nodes.

The stock ``fenced_code`` extension renders code blocks to HTML strings and
stashes them away from the element tree. The transform stages need real
nodes, so :class:`PostSyntaxExtension` replaces fenced blocks, ``$$`` display
math and ``<Name prop="..." />`` placeholders with private markers during
preprocessing and turns those markers back into elements:

* fenced code -> ``<pre data-language=".." [data-live=".."]><code>``
* display math -> ``<div class="math math-display">``
* inline ``$...$`` math -> ``<span class="math math-inline">``
* placeholders -> ``<component data-component="Name" prop="...">``

Node text is stored as :class:`markdown.util.AtomicString` so inline
patterns never rewrite code or TeX source.
"""

from __future__ import annotations

import itertools
import re
import typing as typ
from xml.etree.ElementTree import Element, SubElement

from markdown.extensions import Extension
from markdown.inlinepatterns import InlineProcessor
from markdown.preprocessors import Preprocessor
from markdown.treeprocessors import Treeprocessor
from markdown.util import ETX, STX, AtomicString

if typ.TYPE_CHECKING:
    from markdown import Markdown

FENCED_BLOCK_PATTERN = re.compile(
    r"^(?P<indent>[ ]*)(?P<fence>`{3,}|~{3,})[ \t]*(?P<info>[^\n`]*?)[ \t]*\n"
    r"(?P<code>.*?)(?<=\n)[ ]*(?P=fence)[ \t]*$",
    re.MULTILINE | re.DOTALL,
)
DISPLAY_MATH_PATTERN = re.compile(
    r"^(?P<indent>[ ]{0,3})\$\$(?P<tex>.+?)\$\$[ \t]*$",
    re.MULTILINE | re.DOTALL,
)
PLACEHOLDER_PATTERN = re.compile(
    r"(?P<ticks>`+)(?:(?!\n[ \t]*\n).)+?(?P=ticks)"
    r"|<(?P<name>[A-Z][A-Za-z0-9_.]*)"
    r"(?P<props>(?:\s+[A-Za-z_][\w:.-]*(?:\s*=\s*(?:\"[^\"]*\"|'[^']*'))?)*)\s*/>",
    re.DOTALL,
)
PROP_PATTERN = re.compile(
    r"(?P<key>[A-Za-z_][\w:.-]*)(?:\s*=\s*(?:\"(?P<dq>[^\"]*)\"|'(?P<sq>[^']*)'))?"
)
INLINE_MATH_PATTERN = r"(?<![\\$])\$(?![\s$])(?P<tex>[^$\n]+?)(?<![\s\\])\$(?!\d)"
INDENTED_LINE_PATTERN = re.compile(r"^(?:[ ]{4}|[ ]{0,3}\t)")
LIST_ITEM_PATTERN = re.compile(r"^[ ]{0,3}(?:[-*+]|\d+[.)])(?:[ \t]|$)")
LIVE_FLAGS = frozenset({"live", "eval"})

_MARKER_PREFIX = "postpages"
BLOCK_MARKER_PATTERN = re.compile(rf"{STX}{_MARKER_PREFIX}:block:(\d+){ETX}")
COMPONENT_MARKER_PATTERN = rf"{STX}{_MARKER_PREFIX}:component:(\d+){ETX}"
ESCAPE_PATTERN = re.compile(rf"{STX}(\d+){ETX}")


def parse_fence_info(info: str) -> tuple[str | None, str | None]:
    """Split a fence info string into ``(language, live_mode)``.

    ``rust,no_run`` yields ``("rust", None)``; ``python live`` yields
    ``("python", "text")`` and ``python live=html`` yields ``("python", "html")``.

    Examples
    --------
    >>> parse_fence_info("python {live=html}")
    ('python', 'html')
    >>> parse_fence_info("")
    (None, None)
    """
    tokens = [token for token in re.split(r"[\s,{}]+", info.strip()) if token]
    if not tokens:
        return None, None
    language = tokens[0].lstrip(".").lower() or None
    live: str | None = None
    for token in tokens[1:]:
        key, _, value = token.partition("=")
        if key.lower() in LIVE_FLAGS:
            live = value.strip("\"'").lower() or "text"
    return language, live


class _BlockStash:
    """Per-conversion storage for lifted blocks and placeholders."""

    def __init__(self) -> None:
        self.blocks: list[Element] = []
        self.components: list[tuple[str, dict[str, str]]] = []

    def reset(self) -> None:
        self.blocks.clear()
        self.components.clear()

    def block_marker(self, element: Element) -> str:
        self.blocks.append(element)
        return f"{STX}{_MARKER_PREFIX}:block:{len(self.blocks) - 1}{ETX}"

    def component_marker(self, name: str, props: dict[str, str]) -> str:
        self.components.append((name, props))
        return f"{STX}{_MARKER_PREFIX}:component:{len(self.components) - 1}{ETX}"


class PostSyntaxPreprocessor(Preprocessor):
    """Replace fenced code, display math and placeholders with markers."""

    def __init__(self, md: Markdown, stash: _BlockStash) -> None:
        super().__init__(md)
        self.stash = stash

    def run(self, lines: list[str]) -> list[str]:
        text = "\n".join(lines)
        text = FENCED_BLOCK_PATTERN.sub(self._lift_fence, text)
        text = DISPLAY_MATH_PATTERN.sub(self._lift_display_math, text)
        return self._mark_placeholders(text.split("\n"))

    def _lift_fence(self, match: re.Match[str]) -> str:
        indent = match.group("indent")
        language, live = parse_fence_info(match.group("info"))
        code = _dedent(match.group("code"), len(indent))
        pre = Element("pre")
        pre.set("data-language", language or "text")
        if live:
            pre.set("data-live", live)
        code_el = SubElement(pre, "code")
        if language:
            code_el.set("class", f"language-{language}")
        code_el.text = AtomicString(code)
        return f"\n\n{indent}{self.stash.block_marker(pre)}\n\n"

    def _lift_display_math(self, match: re.Match[str]) -> str:
        div = Element("div")
        div.set("class", "math math-display")
        div.text = AtomicString(match.group("tex").strip())
        return f"\n\n{match.group('indent')}{self.stash.block_marker(div)}\n\n"

    def _mark_placeholders(self, lines: list[str]) -> list[str]:
        """Mark placeholders everywhere except inside indented code blocks."""
        code = _indented_code_lines(lines)
        chunks: list[str] = []
        for is_code, group in itertools.groupby(
            enumerate(lines), key=lambda item: item[0] in code
        ):
            chunk = "\n".join(line for _, line in group)
            if not is_code:
                chunk = PLACEHOLDER_PATTERN.sub(self._mark_placeholder, chunk)
            chunks.append(chunk)
        return "\n".join(chunks).split("\n")

    def _mark_placeholder(self, match: re.Match[str]) -> str:
        name = match.group("name")
        if name is None:
            return match.group(0)
        props = {
            prop.group("key"): prop.group("dq") or prop.group("sq") or ""
            for prop in PROP_PATTERN.finditer(match.group("props") or "")
        }
        return self.stash.component_marker(name, props)


class LiftedBlockTreeprocessor(Treeprocessor):
    """Swap block markers for the elements captured during preprocessing."""

    def __init__(self, md: Markdown, stash: _BlockStash) -> None:
        super().__init__(md)
        self.stash = stash

    def run(self, root: Element) -> Element:
        for parent in list(root.iter()):
            for index, child in enumerate(list(parent)):
                match = BLOCK_MARKER_PATTERN.fullmatch((child.text or "").strip())
                if match is None or len(child):
                    continue
                block = self.stash.blocks[int(match.group(1))]
                if child.tag == "p":
                    block.tail = child.tail
                    parent[index] = block
                else:
                    child.text = None
                    child.insert(0, block)
        return root


class ComponentInlineProcessor(InlineProcessor):
    """Turn placeholder markers into ``component`` elements."""

    def __init__(self, pattern: str, md: Markdown, stash: _BlockStash) -> None:
        super().__init__(pattern, md)
        self.stash = stash

    def handleMatch(  # type: ignore[override]  # noqa: N802
        self, m: re.Match[str], data: str
    ) -> tuple[Element, int, int]:
        name, props = self.stash.components[int(m.group(1))]
        element = Element("component")
        element.set("data-component", name)
        for key, value in props.items():
            element.set(key, value)
        return element, m.start(0), m.end(0)


class InlineMathProcessor(InlineProcessor):
    """Wrap ``$...$`` spans in ``span.math-inline`` with untouched TeX."""

    def handleMatch(  # type: ignore[override]  # noqa: N802
        self, m: re.Match[str], data: str
    ) -> tuple[Element, int, int]:
        element = Element("span")
        element.set("class", "math math-inline")
        element.text = AtomicString(m.group("tex"))
        return element, m.start(0), m.end(0)


class PostSyntaxExtension(Extension):
    """Register the preprocessors and processors that lift post syntax."""

    def extendMarkdown(self, md: Markdown) -> None:  # type: ignore[override]  # noqa: N802
        """Register processors on the Markdown instance."""
        stash = _BlockStash()
        md.registerExtension(self)
        self._stash = stash
        if "$" not in md.ESCAPED_CHARS:
            md.ESCAPED_CHARS.append("$")
        md.preprocessors.register(PostSyntaxPreprocessor(md, stash), "post_syntax", 27)
        md.treeprocessors.register(LiftedBlockTreeprocessor(md, stash), "post_blocks", 30)
        md.inlinePatterns.register(
            ComponentInlineProcessor(COMPONENT_MARKER_PATTERN, md, stash),
            "post_component",
            195,
        )
        md.inlinePatterns.register(
            InlineMathProcessor(INLINE_MATH_PATTERN, md), "post_inline_math", 185
        )

    def reset(self) -> None:
        """Drop lifted blocks between conversions."""
        self._stash.reset()


def unescape(text: str) -> str:
    """Restore backslash-escaped characters that Markdown stashed as markers."""
    return ESCAPE_PATTERN.sub(lambda match: chr(int(match.group(1))), text)


def _indented_code_lines(lines: list[str]) -> set[int]:
    """Return the indexes of lines inside four-space indented code blocks.

    An indented run opens a code block only after a blank line and outside
    a list, where the same indentation continues the list item instead.
    """
    code: set[int] = set()
    in_code = False
    in_list = False
    after_blank = True
    for index, line in enumerate(lines):
        if not line.strip():
            after_blank = True
            continue
        if not INDENTED_LINE_PATTERN.match(line):
            in_code = False
            in_list = bool(LIST_ITEM_PATTERN.match(line)) or (in_list and not after_blank)
        elif in_code or (after_blank and not in_list):
            in_code = True
            code.add(index)
        after_blank = False
    return code


def _dedent(code: str, width: int) -> str:
    """Remove up to ``width`` leading spaces from every line of ``code``."""
    if not width:
        return code
    prefix = re.compile(rf"^[ ]{{0,{width}}}", re.MULTILINE)
    return prefix.sub("", code)


__all__ = [
    "LIVE_FLAGS",
    "PostSyntaxExtension",
    "parse_fence_info",
    "unescape",
]
