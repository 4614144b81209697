"""Typed dataclasses describing post_pages site configuration."""

from __future__ import annotations

import dataclasses as dc
from pathlib import Path

from post_pages._constants import DEFAULT_DATE_FORMAT
from post_pages.models import STAGE_ORDER, Stage


class SiteConfigError(ValueError):
    """Raised when the site configuration is invalid or incomplete."""


@dc.dataclass(frozen=True, slots=True)
class StageSettings:
    """Switch individual transform stages on or off.

    The order stages run in is fixed by :data:`~post_pages.models.STAGE_ORDER`;
    these flags only decide whether a stage runs at all.
    """

    typography: bool = True
    math: bool = True
    highlight: bool = True
    evaluate: bool = True

    def is_enabled(self, stage: Stage) -> bool:
        """Return whether ``stage`` should run."""
        return bool(getattr(self, stage.value))

    @property
    def enabled(self) -> tuple[Stage, ...]:
        """Return the enabled stages in execution order."""
        return tuple(stage for stage in STAGE_ORDER if self.is_enabled(stage))


@dc.dataclass(frozen=True, slots=True)
class EvaluationSettings:
    """Limits applied to live code blocks."""

    timeout: float = 5.0
    languages: tuple[str, ...] = ("python",)


@dc.dataclass(slots=True)
class ThemeConfig:
    """Site-wide copy used by the page templates."""

    site_name: str = "wooddashboard"
    description: str = "A personal blog"
    author: str | None = None
    discussion_url: str | None = None
    edit_url_template: str | None = None

    def edit_url(self, slug: str) -> str | None:
        """Return the "edit this post" link for ``slug``, if configured."""
        if not self.edit_url_template:
            return None
        return self.edit_url_template.format(slug=slug)


@dc.dataclass(slots=True)
class SiteConfig:
    """A fully resolved site definition sourced from YAML config."""

    content_dir: Path = Path("public")
    content_url: str | None = None
    output_dir: Path = Path("out")
    pygments_style: str = "monokai"
    date_format: str = DEFAULT_DATE_FORMAT
    load_timeout: float = 10.0
    max_workers: int | None = None
    theme: ThemeConfig = dc.field(default_factory=ThemeConfig)
    stages: StageSettings = dc.field(default_factory=StageSettings)
    evaluation: EvaluationSettings = dc.field(default_factory=EvaluationSettings)


__all__ = [
    "EvaluationSettings",
    "SiteConfig",
    "SiteConfigError",
    "StageSettings",
    "ThemeConfig",
]
