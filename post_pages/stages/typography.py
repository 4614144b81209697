"""Typographic normalization of text runs.

Straight quotes, double hyphens and triple dots become their typographic
equivalents via ``smartypants`` with Unicode output. Code, math and raw
script/style content is left untouched, as are attributes, so heading
``id`` values never change.
"""

from __future__ import annotations

import typing as typ

import smartypants

if typ.TYPE_CHECKING:
    from xml.etree.ElementTree import Element

    from post_pages.pipeline import PipelineContext

SKIPPED_TAGS = frozenset({"code", "pre", "kbd", "samp", "script", "style", "math"})
SMARTYPANTS_ATTRS = smartypants.Attr.set1 | smartypants.Attr.u


def transform(root: Element, context: PipelineContext) -> Element:  # noqa: ARG001
    """Educate quotes and dashes in every prose text run under ``root``."""
    _educate(root, [""])
    return root


def _is_skipped(element: Element) -> bool:
    if element.tag in SKIPPED_TAGS:
        return True
    classes = (element.get("class") or "").split()
    return "math" in classes


def _educate(element: Element, previous: list[str]) -> None:
    """Walk ``element`` in document order, carrying the last character seen."""
    if element.text:
        element.text = _educate_text(element.text, previous)
    for child in element:
        if _is_skipped(child):
            # Skipped runs still count as a word for the quote that follows.
            previous[0] = "x"
        else:
            _educate(child, previous)
        if child.tail:
            child.tail = _educate_text(child.tail, previous)


def _educate_text(text: str, previous: list[str]) -> str:
    """Return ``text`` with smart punctuation, using ``previous`` as left context."""
    lead = previous[0][-1:] if previous[0][-1:].isalnum() else ""
    educated = smartypants.smartypants(lead + text, SMARTYPANTS_ATTRS)
    educated = educated[len(lead) :]
    previous[0] = text
    return educated


__all__ = ["transform"]
