"""Load site configuration YAML into typed dataclasses."""

from __future__ import annotations

import typing as typ
from pathlib import Path

from ruamel.yaml import YAML

from .helpers import (
    _build_evaluation_settings,
    _build_stage_settings,
    _build_theme_config,
    _optional_str,
    _positive_float,
)
from .models import SiteConfig, SiteConfigError


def load_site_config(path: Path) -> SiteConfig:
    """Load the YAML configuration describing content, output and stages.

    Parameters
    ----------
    path : Path
        Filesystem path to the YAML configuration file (for example,
        ``config/site.yaml``).

    Returns
    -------
    SiteConfig
        Parsed site configuration with defaults applied.

    Raises
    ------
    FileNotFoundError
        If the configuration file does not exist at ``path``.
    SiteConfigError
        If the top-level structure is not a mapping or a field is invalid.
    YAMLError
        If the YAML content cannot be parsed by the underlying loader.

    Examples
    --------
    >>> from pathlib import Path
    >>> from post_pages.config import load_site_config
    >>> config = load_site_config(Path("config/site.yaml"))  # doctest: +SKIP
    >>> config.content_dir  # doctest: +SKIP
    PosixPath('public')
    """
    if not path.exists():
        msg = f"Configuration file '{path}' not found."
        raise FileNotFoundError(msg)

    loader = YAML(typ="safe")
    loader.version = (1, 2)
    with path.open("r", encoding="utf-8") as handle:
        loaded = loader.load(handle) or {}
    if not isinstance(loaded, dict):
        msg = "Top-level YAML structure must be a mapping."
        raise SiteConfigError(msg)
    return build_site_config(loaded, base_dir=path.parent)


def build_site_config(
    raw: typ.Mapping[str, typ.Any], *, base_dir: Path | None = None
) -> SiteConfig:
    """Build a SiteConfig from an already-parsed mapping.

    Relative ``content_dir`` and ``output_dir`` values are resolved against
    ``base_dir`` when one is given.
    """
    defaults = SiteConfig()
    content_url = _optional_str(raw.get("content_url"))
    content_dir = _resolve_dir(raw.get("content_dir"), defaults.content_dir, base_dir)
    output_dir = _resolve_dir(raw.get("output_dir"), defaults.output_dir, base_dir)
    max_workers = raw.get("max_workers")
    if max_workers is not None and (not isinstance(max_workers, int) or max_workers < 1):
        msg = f"'max_workers' must be a positive integer, got {max_workers!r}."
        raise SiteConfigError(msg)

    return SiteConfig(
        content_dir=content_dir,
        content_url=content_url.rstrip("/") if content_url else None,
        output_dir=output_dir,
        pygments_style=str(raw.get("pygments_style", defaults.pygments_style)),
        date_format=str(raw.get("date_format", defaults.date_format)),
        load_timeout=_positive_float(
            raw.get("load_timeout", defaults.load_timeout), field="load_timeout"
        ),
        max_workers=max_workers,
        theme=_build_theme_config(raw.get("theme", {}) or {}),
        stages=_build_stage_settings(raw.get("stages")),
        evaluation=_build_evaluation_settings(raw.get("evaluation")),
    )


def _resolve_dir(value: object, default: Path, base_dir: Path | None) -> Path:
    path = Path(str(value)) if value else default
    if base_dir is not None and not path.is_absolute():
        return base_dir / path
    return path


__all__ = ["build_site_config", "load_site_config"]
