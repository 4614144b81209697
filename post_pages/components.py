"""Resolve named placeholders and element renderers for a post.

A post may contain placeholders such as ``<Counter label="Go" />``. They are
resolved against an explicit registry: per-document overrides declared in
``<slug>/components.yaml`` take precedence over the process-wide
:data:`DEFAULT_COMPONENTS`, which also customise how plain ``a``, ``h2`` and
``h3`` elements render.

Override files map names to Jinja2 templates::

    Counter: '<button class="counter">{{ label | default("Click") }}</button>'
    Callout:
      template: '<aside class="callout">{{ children }}</aside>'

Templates render in a sandbox with autoescaping and receive the
placeholder's attributes (also as ``props``) plus ``children``, the inner
HTML of the replaced element. Output must be well-formed XHTML.

Examples
--------
>>> from post_pages.components import ComponentResolver
>>> resolver = ComponentResolver()
>>> resolver.lookup("a") is not None
True
>>> resolver.lookup("Missing") is None
True
"""

from __future__ import annotations

import collections.abc as cabc
import html
import io
import logging
import typing as typ
from types import MappingProxyType
from xml.etree.ElementTree import Element, ParseError, SubElement, fromstring

from jinja2 import TemplateError
from jinja2.sandbox import SandboxedEnvironment
from markdown.serializers import to_xhtml_string
from markupsafe import Markup
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from post_pages._constants import COMPONENTS_FILENAME
from post_pages.extensions import unescape
from post_pages.errors import (
    ComponentError,
    PostLoadError,
    PostNotFoundError,
    UnresolvedComponentError,
)

if typ.TYPE_CHECKING:
    from jinja2 import Template

    from post_pages.loader import PostLoader
    from post_pages.pipeline import PipelineContext

logger = logging.getLogger(__name__)

ComponentRenderer = cabc.Callable[[Element], Element | None]
PLACEHOLDER_TAG = "component"
NAME_ATTRIBUTE = "data-component"
_TEMPLATE_ENV = SandboxedEnvironment(autoescape=True)
RESERVED_CONTEXT = frozenset({"props", "children"})


def render_link(element: Element) -> Element:
    """Open links that leave the site in a new tab."""
    href = element.get("href") or ""
    if href and not href.startswith(("/", "#")) and not element.get("target"):
        element.set("target", "_blank")
        element.set("rel", "noopener noreferrer")
    return element


def render_heading(element: Element) -> Element:
    """Append a permalink pointing at the heading's anchor id."""
    anchor = element.get("id")
    if not anchor:
        return element
    link = SubElement(element, "a")
    link.set("class", "heading-anchor")
    link.set("href", f"#{anchor}")
    link.set("aria-label", "Permalink")
    link.text = "#"
    return element


DEFAULT_COMPONENTS: cabc.Mapping[str, ComponentRenderer] = MappingProxyType(
    {"a": render_link, "h2": render_heading, "h3": render_heading}
)


class TemplateComponent:
    """Render an element through a sandboxed Jinja2 template."""

    def __init__(self, name: str, source: str) -> None:
        self.name = name
        self.source = source
        try:
            self._template: Template = _TEMPLATE_ENV.from_string(source)
        except TemplateError as exc:
            msg = f"Component '{name}' has an invalid template: {exc}"
            raise PostLoadError(msg) from exc

    def __repr__(self) -> str:
        return f"TemplateComponent({self.name!r})"

    def __call__(self, element: Element) -> Element | None:
        """Return the rendered fragment for ``element``.

        Raises
        ------
        ComponentError
            If the template fails or its output is not well-formed XHTML.
        """
        props = {
            key: value for key, value in element.attrib.items() if key != NAME_ATTRIBUTE
        }
        try:
            rendered = self._template.render(
                **{
                    key: value
                    for key, value in props.items()
                    if key.isidentifier() and key not in RESERVED_CONTEXT
                },
                props=props,
                children=Markup(inner_html(element)),
            )
        except TemplateError as exc:
            msg = f"Component '{self.name}' failed to render: {exc}"
            raise ComponentError(msg) from exc
        if not rendered.strip():
            return None
        try:
            wrapper = fromstring(f"<div>{rendered}</div>")
        except ParseError as exc:
            msg = f"Component '{self.name}' produced malformed markup: {exc}"
            raise ComponentError(msg) from exc
        if len(wrapper) == 1 and not (wrapper.text or "").strip() and not (
            wrapper[0].tail or ""
        ).strip():
            fragment = wrapper[0]
            fragment.tail = None
            return fragment
        wrapper.set("class", "component")
        wrapper.set(NAME_ATTRIBUTE, self.name)
        return wrapper


class ComponentResolver:
    """Look up renderers, preferring document overrides over defaults."""

    def __init__(
        self,
        overrides: cabc.Mapping[str, ComponentRenderer] | None = None,
        *,
        defaults: cabc.Mapping[str, ComponentRenderer] = DEFAULT_COMPONENTS,
    ) -> None:
        merged = dict(defaults)
        merged.update(overrides or {})
        self._renderers = MappingProxyType(merged)
        self.overrides = frozenset(overrides or ())

    @classmethod
    def for_document(cls, slug: str, loader: PostLoader) -> ComponentResolver:
        """Build a resolver with the overrides stored next to ``slug``, if any."""
        try:
            text = loader.load_asset(slug, COMPONENTS_FILENAME)
        except PostNotFoundError:
            return cls()
        overrides = parse_component_overrides(text, source=f"{slug}/{COMPONENTS_FILENAME}")
        logger.debug("loaded %d component overrides for %s", len(overrides), slug)
        return cls(overrides)

    def lookup(self, name: str) -> ComponentRenderer | None:
        """Return the renderer registered under ``name``, or None."""
        return self._renderers.get(name)

    @property
    def names(self) -> frozenset[str]:
        """Return every resolvable name."""
        return frozenset(self._renderers)


def parse_component_overrides(text: str, *, source: str) -> dict[str, ComponentRenderer]:
    """Parse a ``components.yaml`` document into template renderers.

    Raises
    ------
    PostLoadError
        If the YAML is invalid, is not a mapping, or contains a template that
        does not compile.
    """
    loader = YAML(typ="safe")
    loader.version = (1, 2)
    try:
        loaded = loader.load(io.StringIO(text))
    except YAMLError as exc:
        msg = f"Component overrides in '{source}' are not valid YAML: {exc}"
        raise PostLoadError(msg) from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        msg = f"Component overrides in '{source}' must be a mapping."
        raise PostLoadError(msg)

    overrides: dict[str, ComponentRenderer] = {}
    for name, payload in loaded.items():
        match payload:
            case str() as template:
                overrides[str(name)] = TemplateComponent(str(name), template)
            case {"template": str() as template}:
                overrides[str(name)] = TemplateComponent(str(name), template)
            case _:
                logger.warning(
                    "ignoring component %r in %s: expected a template string", name, source
                )
    return overrides


def substitute_components(root: Element, context: PipelineContext) -> Element:
    """Replace placeholders and overridden elements with their rendered fragments.

    The tree is walked top-down. Once an element is replaced, the walk
    continues inside the fragment that took its place, so markup produced by
    a template (for example links passed through ``children``) is rendered
    too, while the detached original subtree is never visited. Unresolved
    placeholders render as nothing and record a diagnostic; the text that
    followed them is kept.
    """
    parents: dict[Element, Element] = {child: root for child in root}
    pending = list(reversed(list(root)))
    while pending:
        element = pending.pop()
        visit = _substitute(element, parents, context)
        if visit is None:
            continue
        for child in visit:
            parents[child] = visit
        pending.extend(reversed(list(visit)))
    return root


def _substitute(
    element: Element, parents: dict[Element, Element], context: PipelineContext
) -> Element | None:
    """Render ``element`` in place and return the node whose children come next."""
    parent = parents[element]
    is_placeholder = element.tag == PLACEHOLDER_TAG
    name = element.get(NAME_ATTRIBUTE, "") if is_placeholder else element.tag
    renderer = context.components.lookup(name)
    if renderer is None:
        if not is_placeholder:
            return element
        context.report("components", UnresolvedComponentError(name))
        _replace(parents, parent, element, None)
        return None
    try:
        fragment = renderer(element)
    except ComponentError as exc:
        context.report("components", exc)
        fragment = None
    if fragment is not element:
        _replace(parents, parent, element, fragment)
    return fragment


def inner_html(element: Element) -> str:
    """Serialize the children of ``element`` (not the element itself)."""
    parts = [html.escape(unescape(element.text or ""), quote=False)]
    parts.extend(unescape(to_xhtml_string(child)) for child in element)
    return "".join(parts)


def _replace(
    parents: dict[Element, Element],
    parent: Element,
    element: Element,
    fragment: Element | None,
) -> None:
    """Swap ``element`` for ``fragment`` (or drop it), preserving tail text."""
    if _is_sole_content(parent, element) and parent in parents:
        element, parent = parent, parents[parent]
    index = list(parent).index(element)
    tail = element.tail
    parent.remove(element)
    if fragment is None:
        if tail:
            if index:
                previous = parent[index - 1]
                previous.tail = (previous.tail or "") + tail
            else:
                parent.text = (parent.text or "") + tail
        return
    fragment.tail = tail
    parent.insert(index, fragment)
    parents[fragment] = parent


def _is_sole_content(parent: Element, element: Element) -> bool:
    return (
        element.tag == PLACEHOLDER_TAG
        and parent.tag == "p"
        and len(parent) == 1
        and not (parent.text or "").strip()
        and not (element.tail or "").strip()
    )


__all__ = [
    "DEFAULT_COMPONENTS",
    "ComponentRenderer",
    "ComponentResolver",
    "TemplateComponent",
    "parse_component_overrides",
    "render_heading",
    "render_link",
    "substitute_components",
]
