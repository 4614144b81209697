"""Render TeX math nodes to MathML.

Inline (``span.math-inline``) and display (``div.math-display``) nodes are
converted with ``latex2mathml``. Malformed TeX never aborts the document: the
node keeps its raw source wrapped in its original delimiters, gains the
``math-error`` class, and a diagnostic is recorded.
"""

from __future__ import annotations

import typing as typ
from xml.etree.ElementTree import Element, ParseError, fromstring

from latex2mathml.converter import convert

from post_pages.errors import InvalidMathError
from post_pages.models import Stage

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from post_pages.pipeline import PipelineContext

MATHML_NAMESPACE = "http://www.w3.org/1998/Math/MathML"


def transform(root: Element, context: PipelineContext) -> Element:
    """Replace the TeX text of every math node with rendered MathML."""
    for node in list(_math_nodes(root)):
        display = "math-display" in (node.get("class") or "").split()
        tex = node.text or ""
        try:
            mathml = render_tex(tex, display=display)
        except InvalidMathError as exc:
            context.report(Stage.MATH, exc, detail=tex)
            delimiter = "$$" if display else "$"
            node.text = f"{delimiter}{tex}{delimiter}"
            node.set("class", f"{node.get('class', '')} math-error".strip())
            node.set("title", str(exc))
            continue
        node.text = None
        node.set("data-tex", tex)
        node.append(mathml)
    return root


def render_tex(tex: str, *, display: bool = False) -> Element:
    """Convert ``tex`` into a namespace-free MathML element.

    Raises
    ------
    InvalidMathError
        If the source is empty, its braces are unbalanced, or the converter
        rejects it.
    """
    source = tex.strip()
    if not source:
        msg = "Empty math expression."
        raise InvalidMathError(msg)
    _check_braces(source)
    try:
        markup = convert(source, display="block" if display else "inline")
    except Exception as exc:  # noqa: BLE001 - converter raises bare Exception subclasses
        msg = f"Cannot render math {source!r}: {exc.__class__.__name__}"
        raise InvalidMathError(msg) from exc
    try:
        element = fromstring(markup)
    except ParseError as exc:
        msg = f"Math renderer produced invalid markup for {source!r}."
        raise InvalidMathError(msg) from exc
    _strip_namespace(element)
    element.set("xmlns", MATHML_NAMESPACE)
    return element


def _math_nodes(root: Element) -> cabc.Iterator[Element]:
    for element in root.iter():
        classes = (element.get("class") or "").split()
        if "math" in classes and element.tag in {"span", "div"} and not len(element):
            yield element


def _check_braces(source: str) -> None:
    depth = 0
    escaped = False
    for char in source:
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth < 0:
                break
    if depth != 0:
        msg = f"Unbalanced braces in math {source!r}."
        raise InvalidMathError(msg)


def _strip_namespace(element: Element) -> None:
    prefix = f"{{{MATHML_NAMESPACE}}}"
    for node in element.iter():
        if node.tag.startswith(prefix):
            node.tag = node.tag[len(prefix) :]


__all__ = ["render_tex", "transform"]
