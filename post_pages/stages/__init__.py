"""Transform stages applied to the parsed post tree.

Each module exposes ``transform(root, context) -> root``. The pipeline maps
every :class:`~post_pages.models.Stage` member to one of these callables and
always runs them in :data:`~post_pages.models.STAGE_ORDER`.
"""

from __future__ import annotations

from . import evaluate, highlight, math, typography

__all__ = ["evaluate", "highlight", "math", "typography"]
