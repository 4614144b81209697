"""Load and validate site configuration YAML for post rendering.

This subpackage parses the project's ``site.yaml`` file, applies defaults,
and produces typed dataclasses (:class:`SiteConfig`, :class:`StageSettings`,
:class:`EvaluationSettings`, :class:`ThemeConfig`) that the renderer and the
static site generator consume.

Examples
--------
>>> from post_pages.config import SiteConfig, StageSettings
>>> SiteConfig().stages == StageSettings()
True
>>> [stage.value for stage in StageSettings(math=False).enabled]
['typography', 'highlight', 'evaluate']
"""

from .loader import build_site_config, load_site_config
from .models import (
    EvaluationSettings,
    SiteConfig,
    SiteConfigError,
    StageSettings,
    ThemeConfig,
)

__all__ = [
    "EvaluationSettings",
    "SiteConfig",
    "SiteConfigError",
    "StageSettings",
    "ThemeConfig",
    "build_site_config",
    "load_site_config",
]
