"""Exception taxonomy for post rendering.

Document-level errors abort a render and reach the caller as typed failures;
the presentation shell maps :class:`PostNotFoundError` to its "not found"
page. Node-level errors are raised inside transform stages, caught at the
offending node and turned into :class:`~post_pages.models.Diagnostic`
records, so they never escape a render.
"""

from __future__ import annotations


class PostRenderError(Exception):
    """Base class for every failure raised while rendering a post."""


class PostNotFoundError(PostRenderError, LookupError):
    """Raised when no backing content exists for a slug."""

    def __init__(self, slug: str, detail: str | None = None) -> None:
        self.slug = slug
        msg = f"No post found for '{slug}'."
        if detail:
            msg = f"{msg} {detail}"
        super().__init__(msg)


class InvalidSlugError(PostNotFoundError):
    """Raised when a slug is empty or contains path-traversal segments."""

    def __init__(self, slug: str) -> None:
        super().__init__(slug, "Slugs must be a single, non-empty path segment.")


class PostLoadError(PostRenderError):
    """Raised when post content exists but cannot be read in time."""


class MalformedFrontMatterError(PostRenderError, ValueError):
    """Raised when a front-matter block is unterminated, unparsable or incomplete."""


class InvalidDateError(PostRenderError, ValueError):
    """Raised when the front-matter ``date`` is not a calendar date."""


class NodeError(PostRenderError):
    """Base class for non-fatal errors isolated to a single tree node.

    Attributes
    ----------
    code : str
        Stable diagnostic code, e.g. ``"math/invalid"``.
    """

    code = "node/error"


class InvalidMathError(NodeError):
    """Raised when TeX source inside math delimiters cannot be rendered."""

    code = "math/invalid"


class HighlightUnsupportedError(NodeError):
    """Raised when no lexer exists for a code block's language."""

    code = "highlight/unsupported"


class EvaluationError(NodeError):
    """Raised when a live code block fails to evaluate."""

    code = "evaluate/failed"


class ComponentError(NodeError):
    """Raised when a placeholder cannot be resolved or its fragment fails."""

    code = "component/failed"


class UnresolvedComponentError(ComponentError):
    """Raised when a placeholder name has no document or default renderer."""

    code = "component/unresolved"

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"No component registered for placeholder '{name}'.")


__all__ = [
    "ComponentError",
    "EvaluationError",
    "HighlightUnsupportedError",
    "InvalidDateError",
    "InvalidMathError",
    "InvalidSlugError",
    "MalformedFrontMatterError",
    "NodeError",
    "PostLoadError",
    "PostNotFoundError",
    "PostRenderError",
    "UnresolvedComponentError",
]
