"""Tests for layered validation and tsc output handling."""

import pytest

from scenecompose.parser import UNCLOSED_ELEMENT
from scenecompose.results import Diagnostic
from scenecompose.settings import ValidationSettings
from scenecompose.typecheck import classify_code, parse_tsc_output
from scenecompose.validation import validate_document


HEADER = 'import { interpolate, interpolateColors, useCurrentFrame } from "remotion";\n\n'


def _scene(*statements, jsx="<div />"):
    """A component whose first extra statement sits on line 5."""
    body = "".join(f"  {s}\n" for s in statements)
    return (
        HEADER
        + "export const Scene = () => {\n"
        + "  const frame = useCurrentFrame();\n"
        + body
        + f"  return {jsx};\n"
        + "};\n"
    )


class TestValidDocuments:
    def test_transition_fixture(self, transition_doc):
        report = validate_document(transition_doc)
        assert report.is_valid
        assert report.runtime_safe
        assert report.diagnostics == []

    def test_low_findings_do_not_invalidate(self):
        report = validate_document(_scene(
            "const o = interpolate(frame, [0, 30], [0, 1]);",
            jsx="<div style={{ opacity: o }} />",
        ))
        assert report.is_valid
        assert report.by_severity("critical") == []
        assert [d.message for d in report.by_kind("unused_declaration")] == [
            "'interpolateColors' is declared but never used",
        ]

    def test_diagnostics_ordered_by_layer(self):
        report = validate_document(_scene(
            "const w = 100 / 0;",
            "const v = ghost;",
            jsx="<div>{w + v}</div>",
        ))
        layers = [d.layer for d in report.diagnostics]
        assert layers == sorted(layers)


class TestStructure:
    def test_parse_error(self):
        report = validate_document("<div>")
        assert not report.is_valid
        assert not report.runtime_safe
        (diagnostic,) = report.diagnostics
        assert diagnostic.kind == UNCLOSED_ELEMENT
        assert diagnostic.layer == 1
        assert diagnostic.suggested_fix

    def test_empty_container(self):
        report = validate_document(_scene(jsx="<div title={} />"))
        (diagnostic,) = report.by_kind("empty_expression")
        assert diagnostic.severity == "critical"
        assert "<div>" in diagnostic.message
        assert not report.is_valid

    def test_dangling_operator(self):
        report = validate_document(_scene(jsx="<div>{1 +}</div>"))
        (diagnostic,) = report.by_kind("invalid_expression")
        assert "dangling operator '+'" in diagnostic.message

    def test_comment_container_is_fine(self):
        report = validate_document(_scene(jsx="<div>{/* later */}</div>"))
        assert report.by_kind("empty_expression") == []
        assert report.by_kind("invalid_expression") == []

    def test_duplicate_declaration(self):
        report = validate_document(_scene("const a = 1;", "const a = 2;"))
        (diagnostic,) = report.by_kind("duplicate_declaration")
        assert diagnostic.line == 6
        assert not report.is_valid


class TestReferences:
    def test_undefined_reference(self):
        report = validate_document(_scene("const o = missing + 1;", jsx="<div>{o}</div>"))
        (diagnostic,) = report.by_kind("undefined_reference")
        assert diagnostic.message == "'missing' is not defined"
        assert diagnostic.line == 5
        assert not report.is_valid
        assert not report.runtime_safe

    def test_missing_import(self):
        report = validate_document(_scene(jsx="<Sequence from={frame}><div /></Sequence>"))
        (diagnostic,) = report.by_kind("missing_import")
        assert diagnostic.severity == "high"
        assert diagnostic.layer == 2
        assert diagnostic.message == "'Sequence' is used but not imported from 'remotion'"
        assert diagnostic.suggested_fix == 'import { Sequence } from "remotion";'
        assert report.is_valid
        assert not report.runtime_safe
        assert report.by_kind("undefined_reference") == []


class TestTemplates:
    def test_placeholder(self):
        report = validate_document(_scene(jsx="<h1>__TITLE__</h1>"))
        (diagnostic,) = report.by_kind("unresolved_placeholder")
        assert diagnostic.message == "Unresolved placeholder __TITLE__"
        assert not report.is_valid

    def test_pending_work_is_medium(self):
        report = validate_document(_scene("// TODO: animate the title"))
        (diagnostic,) = report.by_kind("pending_work_marker")
        assert diagnostic.severity == "medium"
        assert diagnostic.line == 5
        assert report.is_valid

    def test_null_child(self):
        report = validate_document(_scene(jsx="<div>{null}</div>"))
        (diagnostic,) = report.by_kind("null_expression")
        assert diagnostic.severity == "critical"

    def test_unbalanced_font_family_quotes(self):
        report = validate_document(_scene(
            jsx="""<h1 style={{ fontFamily: "'SF Pro Display, sans-serif" }}>Hi</h1>""",
        ))
        (diagnostic,) = report.by_kind("unbalanced_quotes")
        assert diagnostic.severity == "critical"
        assert diagnostic.suggested_fix == 'Use "SF Pro Display, sans-serif"'
        assert diagnostic.line == 5
        assert not report.is_valid

    def test_quoted_font_family_is_fine(self):
        report = validate_document(_scene(
            jsx="""<h1 style={{ fontFamily: "'SF Pro Display', sans-serif" }}>Hi</h1>""",
        ))
        assert report.by_kind("unbalanced_quotes") == []
        assert report.by_kind("mixed_quotes") == []

    def test_mixed_quotes(self):
        report = validate_document(_scene(
            jsx="""<p style={{ content: "'a' \\"b\\"" }}>x</p>""",
        ))
        (diagnostic,) = report.by_kind("mixed_quotes")
        assert diagnostic.severity == "medium"
        assert report.is_valid

    def test_duplicated_unit(self):
        report = validate_document(_scene(
            jsx="""<div style={{ padding: "10pxpx 2remrem" }} />""",
        ))
        (diagnostic,) = report.by_kind("duplicated_unit")
        assert diagnostic.severity == "medium"
        assert diagnostic.suggested_fix == 'Use "10px 2rem"'
        assert report.is_valid

    def test_undefined_attribute(self):
        report = validate_document(_scene(jsx="<Img src={undefined} />"))
        (diagnostic,) = report.by_kind("null_expression")
        assert "'src'" in diagnostic.suggested_fix


class TestTiming:
    def test_arity(self):
        report = validate_document(_scene(
            "const o = interpolate(frame, [0, 30]);", jsx="<div>{o}</div>",
        ))
        (diagnostic,) = report.by_kind("transform_arity")
        assert diagnostic.line == 5
        assert "got 2 argument(s)" in diagnostic.message

    def test_range_length_mismatch(self):
        report = validate_document(_scene(
            "const o = interpolate(frame, [0, 30, 60], [0, 1]);", jsx="<div>{o}</div>",
        ))
        (diagnostic,) = report.by_kind("range_length_mismatch")
        assert diagnostic.severity == "critical"

    def test_non_monotonic_range(self):
        report = validate_document(_scene(
            "const o = interpolate(frame, [30, 0], [0, 1]);", jsx="<div>{o}</div>",
        ))
        (diagnostic,) = report.by_kind("non_monotonic_range")
        assert diagnostic.severity == "medium"
        assert diagnostic.suggested_fix == "Use [0, 30]"
        assert report.is_valid

    def test_colors_need_interpolate_colors(self):
        report = validate_document(_scene(
            'const c = interpolate(frame, [0, 30], ["#ff0000", "#0000ff"]);',
            'const d = interpolateColors(frame, [0, 30], ["red", "blue"]);',
            jsx="<div style={{ color: c, backgroundColor: d }} />",
        ))
        (diagnostic,) = report.by_kind("color_in_interpolate")
        assert diagnostic.severity == "high"
        assert diagnostic.line == 5

    def test_missing_clock(self):
        text = (
            'import { interpolate } from "remotion";\n'
            "\n"
            "export const Scene = ({ frame }) => {\n"
            "  const o = interpolate(frame, [0, 30], [0, 1]);\n"
            "  return <div style={{ opacity: o }} />;\n"
            "};\n"
        )
        report = validate_document(text)
        (diagnostic,) = report.by_kind("missing_clock")
        assert diagnostic.severity == "critical"
        assert diagnostic.line == 4
        assert diagnostic.suggested_fix == "const frame = useCurrentFrame();"

    def test_division_by_zero(self):
        report = validate_document(_scene("const w = 100 / 0;", jsx="<div>{w}</div>"))
        (diagnostic,) = report.by_kind("division_by_zero")
        assert diagnostic.message == "Division by literal 0"
        assert diagnostic.line == 5


class TestTypeCheck:
    def test_missing_compiler_is_skipped(self):
        settings = ValidationSettings(type_check=True, tsc_executable="no-such-tsc-binary")
        report = validate_document(_scene(), settings)
        (diagnostic,) = report.by_kind("type_check_skipped")
        assert diagnostic.severity == "low"
        assert diagnostic.layer == 3
        assert report.is_valid

    def test_parse_tsc_output(self):
        output = (
            "composition.tsx(12,5): error TS2304: Cannot find name 'foo'.\n"
            "composition.tsx(1,20): error TS2307: Cannot find module 'remotion'.\n"
            "composition.tsx(3,1): error TS1005: ';' expected.\n"
            "Found 3 errors.\n"
        )
        diagnostics = parse_tsc_output(output)
        assert [(d.kind, d.severity) for d in diagnostics] == [
            ("type_error", "high"),
            ("unresolved_module", "medium"),
            ("syntax_error", "high"),
        ]
        assert (diagnostics[0].line, diagnostics[0].column) == (12, 5)
        assert diagnostics[0].message == "TS2304: Cannot find name 'foo'."

    def test_classify_code(self):
        assert classify_code(7016) == ("unresolved_module", "medium")
        assert classify_code(6133) == ("type_warning", "medium")


class TestDiagnostic:
    def test_unknown_severity(self):
        with pytest.raises(ValueError, match="Unknown severity"):
            Diagnostic(kind="x", severity="fatal", message="m")

    def test_format(self):
        diagnostic = Diagnostic(
            kind="division_by_zero", severity="critical", message="Division by literal 0",
            line=5, column=17, suggested_fix="Guard it",
        )
        assert diagnostic.format() == (
            "5:17 [critical] division_by_zero: Division by literal 0 (fix: Guard it)"
        )
