"""Tests for reference analysis."""

from scenecompose.parser import parse
from scenecompose.scopes import analyze_references


def _analyze(text):
    return analyze_references(parse(text))


class TestUnresolved:
    def test_undeclared_name(self):
        analysis = _analyze("const a = b + 1;\nexport default a;\n")
        assert analysis.unresolved_names() == ["b"]

    def test_builtins_resolve(self):
        analysis = _analyze("export const w = Math.max(1, 2);\n")
        assert analysis.unresolved == []

    def test_component_tags(self):
        analysis = _analyze("export const A = () => <div><Missing /></div>;\n")
        assert analysis.unresolved_names() == ["Missing"]

    def test_hoisted_function(self):
        analysis = _analyze(
            "export default function Scene() { return helper(); }\n"
            "function helper() { return 1; }\n"
        )
        assert analysis.unresolved == []
        assert analysis.unused == []

    def test_reference_position(self):
        analysis = _analyze("const a = 1;\nexport const b = a + zz;\n")
        (ref,) = analysis.unresolved
        assert (ref.name, ref.line, ref.column) == ("zz", 2, 22)


class TestParameters:
    def test_function_params(self):
        analysis = _analyze("function add(x, y) { return x + y; }\nexport default add;\n")
        assert analysis.unresolved == []
        assert analysis.unused == []

    def test_destructured_arrow_params(self):
        analysis = _analyze("const f = ({ a, b: renamed }) => a + renamed;\nexport default f;\n")
        assert analysis.unresolved == []
        assert [(d.name, d.kind) for d in analysis.declarations] == [
            ("f", "const"), ("a", "param"), ("renamed", "param"),
        ]

    def test_params_do_not_leak(self):
        analysis = _analyze("const f = (x) => x;\nexport default f;\nexport const y = x;\n")
        assert analysis.unresolved_names() == ["x"]


class TestDeclarations:
    def test_unused_const(self):
        analysis = _analyze("const unused = 1;\nexport const used = 2;\n")
        assert [d.name for d in analysis.unused] == ["unused"]

    def test_underscore_names_are_not_reported(self):
        analysis = _analyze("const _scratch = 1;\n")
        assert analysis.unused == []

    def test_duplicate_const(self):
        analysis = _analyze("const a = 1;\nconst a = 2;\nexport default a;\n")
        assert [d.name for d in analysis.duplicates] == ["a"]

    def test_imports(self):
        analysis = _analyze(
            'import React, { useMemo as memo } from "react";\n'
            "export const v = memo(() => 1, []);\n"
        )
        assert analysis.unresolved == []
        assert [d.name for d in analysis.unused] == ["React"]


class TestMissingImports:
    def test_library_names_need_an_import(self):
        analysis = _analyze(
            'import { AbsoluteFill } from "remotion";\n'
            "export const A = () => {\n"
            "  const frame = useCurrentFrame();\n"
            "  return <AbsoluteFill><Sequence from={frame} /></AbsoluteFill>;\n"
            "};\n"
        )
        assert analysis.missing_import_names() == ["useCurrentFrame", "Sequence"]
        assert analysis.unresolved == []

    def test_aliased_import_does_not_cover_original_name(self):
        analysis = _analyze(
            'import { Sequence as Seq } from "remotion";\n'
            "export const A = () => <Seq><Sequence /></Seq>;\n"
        )
        assert analysis.missing_import_names() == ["Sequence"]

    def test_local_declaration_shadows_library_name(self):
        analysis = _analyze("const random = () => 4;\nexport const r = random();\n")
        assert analysis.missing_imports == []
