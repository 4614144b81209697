"""Evaluate code blocks marked ``live`` and attach their output.

A block fenced as ```` ```python live ```` runs in a separate, isolated
interpreter (``python -I``) with an empty environment, a throwaway working
directory and a wall-clock timeout. Its standard output is appended after
the static block as ``div.live-output``; ``live=html`` treats the output as
an XHTML fragment instead of preformatted text.

Failures never abort the document. The static block stays in place and an
``p.eval-error`` badge follows it.
"""

from __future__ import annotations

import logging
import subprocess
import sys
import tempfile
import typing as typ
from xml.etree.ElementTree import Element, ParseError, SubElement, fromstring

from markdown.util import AtomicString

from post_pages.errors import EvaluationError
from post_pages.models import Stage

if typ.TYPE_CHECKING:
    from post_pages.config import EvaluationSettings
    from post_pages.pipeline import PipelineContext

logger = logging.getLogger(__name__)

INTERPRETERS: dict[str, tuple[str, ...]] = {
    "python": (sys.executable, "-I", "-c"),
}
LANGUAGE_ALIASES = {"py": "python", "python3": "python"}
OUTPUT_MODES = frozenset({"text", "html"})


def transform(root: Element, context: PipelineContext) -> Element:
    """Run every live block under ``root`` and insert its output or an error badge."""
    parents = {child: parent for parent in root.iter() for child in parent}
    for block in [el for el in root.iter() if el.get("data-live")]:
        parent = parents.get(block)
        if parent is None:
            continue
        language = block.get("data-language") or "text"
        mode = block.get("data-live") or "text"
        code = block.find(".//code")
        source = "".join(code.itertext()) if code is not None else ""
        try:
            output = run_live_code(source, language, context.evaluation)
            fragment = _output_fragment(output, mode)
        except EvaluationError as exc:
            context.report(Stage.EVALUATE, exc, detail=source)
            fragment = _error_badge(str(exc))
            block.set("data-evaluated", "error")
        else:
            block.set("data-evaluated", "ok")
        fragment.tail = block.tail
        block.tail = None
        parent.insert(list(parent).index(block) + 1, fragment)
    return root


def run_live_code(source: str, language: str, settings: EvaluationSettings) -> str:
    """Execute ``source`` in a sandboxed interpreter and return its stdout.

    Parameters
    ----------
    source : str
        Code block contents.
    language : str
        Fence language; must be listed in ``settings.languages`` and have a
        known interpreter.
    settings : EvaluationSettings
        Timeout and language allow-list.

    Returns
    -------
    str
        Captured standard output.

    Raises
    ------
    EvaluationError
        If the language is not enabled, the process exits non-zero, or the
        timeout elapses.
    """
    canonical = LANGUAGE_ALIASES.get(language, language)
    command = INTERPRETERS.get(canonical)
    if command is None or canonical not in settings.languages:
        msg = f"Live evaluation is not enabled for '{language}' blocks."
        raise EvaluationError(msg)
    with tempfile.TemporaryDirectory(prefix="post-pages-live-") as workdir:
        try:
            completed = subprocess.run(  # noqa: S603
                [*command, source],
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                cwd=workdir,
                env={"PYTHONIOENCODING": "utf-8"},
                stdin=subprocess.DEVNULL,
                timeout=settings.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            msg = f"Live block timed out after {settings.timeout:g}s."
            raise EvaluationError(msg) from exc
        except OSError as exc:
            msg = f"Could not start the {language} interpreter: {exc}"
            raise EvaluationError(msg) from exc
    if completed.returncode != 0:
        lines = [line for line in completed.stderr.splitlines() if line.strip()]
        reason = lines[-1] if lines else f"exit status {completed.returncode}"
        msg = f"Live block failed: {reason}"
        raise EvaluationError(msg)
    logger.debug("live %s block produced %d characters", language, len(completed.stdout))
    return completed.stdout


def _output_fragment(output: str, mode: str) -> Element:
    """Wrap evaluated output in a ``div.live-output`` element."""
    if mode not in OUTPUT_MODES:
        msg = f"Unknown live output mode '{mode}'; expected one of {sorted(OUTPUT_MODES)}."
        raise EvaluationError(msg)
    if mode == "html":
        try:
            container = fromstring(f"<div>{output}</div>")
        except ParseError as exc:
            msg = f"Live block printed malformed HTML: {exc}"
            raise EvaluationError(msg) from exc
        container.set("class", "live-output")
        return container
    container = Element("div")
    container.set("class", "live-output")
    pre = SubElement(container, "pre")
    pre.text = AtomicString(output)
    return container


def _error_badge(message: str) -> Element:
    paragraph = Element("p")
    paragraph.set("class", "eval-error")
    badge = SubElement(paragraph, "span")
    badge.set("class", "badge")
    badge.set("role", "alert")
    badge.text = "Evaluation failed"
    badge.tail = f" {message}"
    return paragraph


__all__ = ["INTERPRETERS", "run_live_code", "transform"]
