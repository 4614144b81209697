"""Unit tests for the Markdown transform pipeline and its stages."""

from __future__ import annotations

import typing as typ

from bs4 import BeautifulSoup

from post_pages.components import ComponentResolver, TemplateComponent
from post_pages.config import EvaluationSettings, StageSettings
from post_pages.headings import extract_headings
from post_pages.models import STAGE_ORDER, Stage
from post_pages.pipeline import PipelineContext, PipelineResult, TransformPipeline

if typ.TYPE_CHECKING:
    from xml.etree.ElementTree import Element

    from pytest_mock import MockerFixture


def _run(
    body: str,
    *,
    stages: StageSettings | None = None,
    components: ComponentResolver | None = None,
    evaluation: EvaluationSettings | None = None,
) -> tuple[PipelineResult, PipelineContext, BeautifulSoup]:
    context = PipelineContext(
        slug="sample",
        headings=extract_headings(body),
        components=components or ComponentResolver(),
        evaluation=evaluation or EvaluationSettings(),
    )
    result = TransformPipeline(stages).run(body, context)
    return result, context, BeautifulSoup(result.html, "html.parser")


def _codes(context: PipelineContext) -> list[str]:
    return [diagnostic.code for diagnostic in context.diagnostics]


def test_headings_carry_the_extracted_anchor_ids() -> None:
    """Body ``id`` attributes match the heading index, including duplicates."""
    result, _, soup = _run("## Intro\n\nText\n\n## Intro\n\n### Deep dive\n")

    ids = [heading["id"] for heading in soup.select("h2, h3")]
    assert ids == ["intro", "intro-2", "deep-dive"], f"unexpected heading ids {ids}"
    assert result.anchored == frozenset(ids), "expected every attached id to be reported"


def test_headings_unseen_by_the_scanner_get_fresh_unique_ids() -> None:
    """A setext heading draws its id from the shared registry without collisions."""
    _, _, soup = _run("Intro\n=====\n\n## Intro\n")

    h1 = soup.find("h1")
    h2 = soup.find("h2")
    assert h2["id"] == "intro", f"expected the ATX heading to keep 'intro', got {h2['id']}"
    assert h1["id"] == "intro-2", f"expected the setext heading to get 'intro-2', got {h1['id']}"


def test_default_heading_renderer_appends_permalink() -> None:
    """``h2``/``h3`` gain an anchor link pointing at their own id."""
    _, _, soup = _run("### Deep dive\n")

    link = soup.select_one("h3 a.heading-anchor")
    assert link is not None, "expected a permalink inside the heading"
    assert link["href"] == "#deep-dive", f"unexpected permalink {link['href']!r}"


def test_default_link_renderer_opens_external_links_in_new_tab() -> None:
    """Only links leaving the site get ``target`` and ``rel``."""
    _, _, soup = _run("[ext](https://example.com) and [home](/) and [top](#intro)\n")

    links = {link.get_text(): link for link in soup.find_all("a")}
    assert links["ext"].get("target") == "_blank", "expected external link to open a tab"
    assert links["ext"].get("rel") == ["noopener", "noreferrer"], "expected rel on external link"
    assert links["home"].get("target") is None, "expected site link to stay in place"
    assert links["top"].get("target") is None, "expected fragment link to stay in place"


def test_typography_educates_prose_but_not_code() -> None:
    """Quotes, dashes and ellipses change in text runs only."""
    _, _, soup = _run('He said "hi" -- then left...\n\nRun `echo "x" -- y` now.\n')

    prose = soup.find("p").get_text()
    assert "“hi”" in prose, f"expected curly quotes in {prose!r}"
    assert "—" in prose, f"expected an em dash in {prose!r}"
    assert "…" in prose, f"expected an ellipsis in {prose!r}"
    code = soup.find("code").get_text()
    assert code == 'echo "x" -- y', f"inline code was altered: {code!r}"


def test_inline_and_display_math_render_to_mathml() -> None:
    """TeX inside ``$`` and ``$$`` becomes MathML, keeping the source."""
    body = "Euler: $e^{i\\pi} + 1 = 0$.\n\n$$\n\\frac{1}{3}\n$$\n"

    _, context, soup = _run(body)

    inline = soup.select_one("span.math-inline")
    assert inline is not None, "expected an inline math node"
    assert inline.find("math") is not None, "expected MathML inside the inline node"
    assert inline["data-tex"] == "e^{i\\pi} + 1 = 0", "expected the TeX source to be kept"
    display = soup.select_one("div.math-display math")
    assert display is not None, "expected MathML inside the display node"
    assert context.diagnostics == [], f"unexpected diagnostics {context.diagnostics}"


def test_malformed_math_degrades_to_raw_source() -> None:
    """Unbalanced braces keep the raw TeX and record ``math/invalid``."""
    _, context, soup = _run("Broken $\\frac{1}{2$ here.\n")

    node = soup.select_one("span.math-error")
    assert node is not None, "expected the node to be marked as a math error"
    assert node.get_text() == "$\\frac{1}{2$", f"unexpected fallback text {node.get_text()!r}"
    assert _codes(context) == ["math/invalid"], f"unexpected diagnostics {_codes(context)}"


def test_fenced_code_is_highlighted_with_language_metadata() -> None:
    """Fenced blocks become ``div.codehilite`` with token spans."""
    _, _, soup = _run("```rust\nfn main() {}\n```\n")

    block = soup.select_one("div.codehilite")
    assert block is not None, "expected a highlighted block"
    assert block["data-language"] == "rust", f"unexpected language {block['data-language']!r}"
    assert block.select("pre > code > span"), "expected token spans inside the code"
    assert "fn main" in block.get_text(), "expected the source text to survive"


def test_unknown_language_renders_plain_with_diagnostic() -> None:
    """Languages without a lexer fall back to plain text."""
    _, context, soup = _run("```nosuchlang\nplain text\n```\n")

    code = soup.select_one("div.codehilite[data-language=nosuchlang] code")
    assert code is not None, "expected the block to keep its language label"
    assert code.get_text() == "plain text\n", f"unexpected code text {code.get_text()!r}"
    assert _codes(context) == ["highlight/unsupported"], "expected one diagnostic"


def test_disabled_stage_leaves_its_nodes_untouched() -> None:
    """Turning highlighting off keeps the lifted ``pre > code`` block."""
    stages = StageSettings(highlight=False, evaluate=False)

    _, _, soup = _run("```rust\nfn main() {}\n```\n", stages=stages)

    assert soup.select_one("div.codehilite") is None, "expected no highlighting"
    code = soup.select_one("pre[data-language=rust] > code.language-rust")
    assert code is not None, "expected the plain lifted code block"


def test_stages_run_in_declared_order(mocker: MockerFixture) -> None:
    """Enabled stages run in ``STAGE_ORDER`` and skip disabled ones."""
    calls: list[Stage] = []

    def _recorder(stage: Stage) -> typ.Callable[[Element, PipelineContext], Element]:
        def _transform(root: Element, context: PipelineContext) -> Element:
            calls.append(stage)
            return root

        return _transform

    mocker.patch(
        "post_pages.pipeline._TRANSFORMS",
        {stage: _recorder(stage) for stage in reversed(STAGE_ORDER)},
    )

    _run("Hello\n", stages=StageSettings(math=False))

    assert calls == [Stage.TYPOGRAPHY, Stage.HIGHLIGHT, Stage.EVALUATE], (
        f"unexpected stage order {calls}"
    )


def test_live_block_output_follows_static_block() -> None:
    """A ``live`` block keeps its code and gains a ``div.live-output``."""
    _, context, soup = _run("```python live\nprint(6 * 7)\n```\n")

    block = soup.select_one("div.codehilite")
    assert block["data-evaluated"] == "ok", "expected the block to be marked evaluated"
    output = block.find_next_sibling("div")
    assert output is not None, "expected output after the static block"
    assert "live-output" in output["class"], "expected the output container class"
    printed = output.find("pre").get_text()
    assert printed == "42\n", f"unexpected output {printed!r}"
    assert context.diagnostics == [], "expected no diagnostics for a passing block"


def test_live_block_can_emit_html() -> None:
    """``live=html`` parses printed markup instead of showing it verbatim."""
    _, _, soup = _run("```python live=html\nprint('<b>bold</b>')\n```\n")

    bold = soup.select_one("div.live-output > b")
    assert bold is not None, "expected printed markup to become elements"
    assert bold.get_text() == "bold", "expected the element text to survive"


def test_failing_live_block_keeps_rendering() -> None:
    """Errors become an inline badge and a diagnostic; later content remains."""
    body = "```python live\n1 / 0\n```\n\nAfter the failure.\n"

    _, context, soup = _run(body)

    assert soup.select_one("div.codehilite")["data-evaluated"] == "error", (
        "expected the block to be marked as failed"
    )
    badge = soup.select_one("p.eval-error span.badge")
    assert badge is not None, "expected an error badge"
    assert "ZeroDivisionError" in badge.parent.get_text(), "expected the error reason"
    assert _codes(context) == ["evaluate/failed"], f"unexpected diagnostics {_codes(context)}"
    assert "After the failure." in soup.get_text(), "expected later content to render"


def test_live_block_times_out() -> None:
    """A block exceeding the timeout is reported, not awaited."""
    body = "```python live\nimport time\ntime.sleep(10)\n```\n"

    _, context, _ = _run(body, evaluation=EvaluationSettings(timeout=0.5))

    assert _codes(context) == ["evaluate/failed"], "expected a timeout diagnostic"
    assert "timed out" in context.diagnostics[0].message, "expected a timeout message"


def test_live_block_in_disallowed_language_is_reported() -> None:
    """Only configured languages are executed."""
    _, context, _ = _run("```ruby live\nputs 1\n```\n")

    assert _codes(context) == ["evaluate/failed"], "expected the ruby block to be refused"
    assert "not enabled" in context.diagnostics[0].message, "expected a refusal reason"


def test_placeholder_is_replaced_by_its_component() -> None:
    """A placeholder alone in a paragraph replaces that paragraph."""
    resolver = ComponentResolver(
        {"Counter": TemplateComponent("Counter", '<button class="counter">{{ label }}</button>')}
    )

    _, context, soup = _run('Before\n\n<Counter label="Go" />\n\nAfter\n', components=resolver)

    button = soup.select_one("button.counter")
    assert button is not None, "expected the component to render"
    assert button.get_text() == "Go", "expected props to reach the template"
    assert button.parent.name != "p", "expected the wrapping paragraph to be replaced"
    assert soup.find("component") is None, "expected no placeholder to remain"
    assert context.diagnostics == [], "expected no diagnostics"


def test_unknown_placeholder_renders_nothing() -> None:
    """Unresolved names vanish, keep surrounding text and emit a diagnostic."""
    _, context, soup = _run("Text <Missing /> tail.\n")

    assert soup.find("component") is None, "expected the placeholder to be removed"
    text = soup.find("p").get_text()
    assert text.startswith("Text") and text.endswith("tail."), f"unexpected text {text!r}"
    assert _codes(context) == ["component/unresolved"], f"unexpected {_codes(context)}"


def test_placeholders_inside_code_are_left_alone() -> None:
    """Inline code and fenced code may show placeholder syntax literally."""
    _, context, soup = _run("Use `<Counter />` here.\n\n```html\n<Counter />\n```\n")

    assert "<Counter />" in soup.find("p").get_text(), "expected literal inline code"
    assert "<Counter />" in soup.select_one("div.codehilite").get_text(), (
        "expected literal fenced code"
    )
    assert context.diagnostics == [], "expected no unresolved-component diagnostics"


def test_placeholders_inside_indented_code_are_left_alone() -> None:
    """Indented code keeps placeholder syntax; list continuations still render it."""
    body = "Intro\n\n    <Chart />\n\nAfter <Badge />\n\n- item\n\n    continued <Note />\n"

    result, context, soup = _run(body)

    assert "<Chart />" in soup.find("pre").get_text(), "expected literal indented code"
    assert "postpages" not in result.html, "expected no marker to leak into the output"
    names = [diagnostic.message for diagnostic in context.diagnostics]
    assert _codes(context) == ["component/unresolved", "component/unresolved"], (
        f"unexpected diagnostics {names}"
    )
    assert "Badge" in names[0] and "Note" in names[1], f"unexpected placeholders {names}"


def test_renders_are_deterministic() -> None:
    """The same input produces identical HTML on every run."""
    body = "## Intro\n\n$x^2$ and \"quotes\".\n\n```python\nprint(1)\n```\n\n## Intro\n"

    first, _, _ = _run(body)
    second, _, _ = _run(body)

    assert first.html == second.html, "expected identical output for identical input"


def test_blank_body_produces_empty_tree() -> None:
    """Empty input renders to an empty ``div``."""
    result, context, _ = _run("   \n")

    assert result.html == "", f"unexpected html {result.html!r}"
    assert len(result.root) == 0, "expected no children"
    assert context.diagnostics == [], "expected no diagnostics"
