"""Utility helpers shared by the post_pages configuration loader."""

from __future__ import annotations

import typing as typ

from post_pages.models import Stage

from .models import EvaluationSettings, SiteConfigError, StageSettings, ThemeConfig


def _optional_str(value: object | None) -> str | None:
    """Return a stripped string value or None when empty."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _positive_float(value: object, *, field: str) -> float:
    """Return ``value`` as a positive float or raise SiteConfigError."""
    try:
        number = float(typ.cast("typ.Any", value))
    except (TypeError, ValueError) as exc:
        msg = f"'{field}' must be a number, got {value!r}."
        raise SiteConfigError(msg) from exc
    if number <= 0:
        msg = f"'{field}' must be greater than zero, got {number!r}."
        raise SiteConfigError(msg)
    return number


def _build_theme_config(payload: typ.Mapping[str, typ.Any]) -> ThemeConfig:
    """Build a ThemeConfig instance from the provided mapping payload."""
    base = ThemeConfig()
    return ThemeConfig(
        site_name=payload.get("site_name", base.site_name),
        description=payload.get("description", base.description),
        author=_optional_str(payload.get("author")),
        discussion_url=_optional_str(payload.get("discussion_url")),
        edit_url_template=_optional_str(payload.get("edit_url")),
    )


def _build_stage_settings(payload: typ.Mapping[str, typ.Any] | None) -> StageSettings:
    """Build StageSettings, rejecting names that are not transform stages."""
    if not payload:
        return StageSettings()
    known = {stage.value for stage in Stage}
    unknown = sorted(set(payload) - known)
    if unknown:
        msg = f"Unknown transform stages: {', '.join(unknown)}."
        raise SiteConfigError(msg)
    return StageSettings(**{name: bool(flag) for name, flag in payload.items()})


def _build_evaluation_settings(
    payload: typ.Mapping[str, typ.Any] | None,
) -> EvaluationSettings:
    """Build EvaluationSettings from the ``evaluation`` mapping."""
    base = EvaluationSettings()
    if not payload:
        return base
    languages = payload.get("languages", base.languages)
    if isinstance(languages, str):
        languages = [languages]
    return EvaluationSettings(
        timeout=_positive_float(payload.get("timeout", base.timeout), field="timeout"),
        languages=tuple(str(item).strip().lower() for item in languages or ()),
    )


__all__ = [
    "_build_evaluation_settings",
    "_build_stage_settings",
    "_build_theme_config",
    "_optional_str",
    "_positive_float",
]
