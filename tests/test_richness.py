"""Tests for richness scoring and augmentation."""

from scenecompose.parser import parse
from scenecompose.richness import (
    augment, band_for, component_names, count_large_collections,
    count_meaningful_numbers, detect_domain, score,
)
from scenecompose.settings import RichnessSettings
from scenecompose.tree import Node, generate
from scenecompose.validation import validate_document


class TestScore:
    def test_basic_fixture(self, basic_doc):
        result = score(parse(basic_doc))
        assert result.total == 0
        assert result.band == "basic"
        assert result.meaningful_numbers == 3
        assert result.component_names == ("Basic",)
        assert not result.has_background
        assert not result.has_foreground

    def test_bands(self):
        assert band_for(0) == "basic"
        assert band_for(39) == "basic"
        assert band_for(40) == "moderate"
        assert band_for(60) == "rich"
        assert band_for(80) == "premium"
        assert band_for(100) == "premium"

    def test_layering_markers(self):
        document = parse("<AbsoluteFill><GradientBackground /><FloatingOverlay /></AbsoluteFill>")
        result = score(document)
        assert result.has_background
        assert result.has_foreground
        assert result.layering == 25


class TestMeasurements:
    def test_component_names(self):
        text = (
            "function Alpha() { return null; }\n"
            "class Beta {}\n"
            "const Gamma = () => null;\n"
            "const Delta = function () { return null; };\n"
            "const lower = () => 1;\n"
            "const Eps = 5;\n"
            "const Zeta = (x) => x;\n"
        )
        assert component_names(parse(text)) == ["Alpha", "Beta", "Gamma", "Delta", "Zeta"]

    def test_large_collections(self):
        text = (
            "const xs = [1, 2, 3, 4, 5, 6, 7, 8, 9, 10];\n"
            "const small = [1, 2];\n"
            "const y = xs[0];\n"
        )
        assert count_large_collections(parse(text)) == 1

    def test_long_collection_by_length(self):
        words = ", ".join(f'"word number {i}"' for i in range(6))
        assert count_large_collections(parse(f"const w = [{words}];\n")) == 1

    def test_meaningful_numbers(self):
        text = "const a = 1000 + 12 + 0.5 + 250.75;\n"
        assert count_meaningful_numbers(parse(text)) == 2


class TestDetectDomain:
    def test_hints(self):
        assert detect_domain("GitHub repo")[0] == "contribution"
        assert detect_domain("finance dashboard")[0] == "series"
        assert detect_domain("Quarterly STATS")[0] == "series"
        assert detect_domain(None)[0] == "generic"
        assert detect_domain("cooking show")[0] == "generic"


class TestAugment:
    def test_basic_becomes_premium(self, basic_doc):
        result = augment(parse(basic_doc), "github")
        assert result.before.total == 0
        assert result.after.total == 100
        assert result.after.band == "premium"
        assert not result.needs_rework
        assert result.changes == [
            "Added AnimatedBackground layer",
            "Added ContributionGraph with 60 contribution data points",
            "Added ParticleField and DepthOverlay depth layers",
        ]

    def test_layer_placement(self, basic_doc):
        root = augment(parse(basic_doc), "github").document.root
        tags = [child.tag for child in root.children if isinstance(child, Node)]
        assert tags == [
            "AnimatedBackground", "h1", "p", "ContributionGraph", "ParticleField", "DepthOverlay",
        ]

    def test_declarations_follow_imports(self, basic_doc):
        text = generate(augment(parse(basic_doc), "finance").document)
        assert text.startswith('import { AbsoluteFill, useCurrentFrame } from "remotion";\n\n')
        assert text.index("const AnimatedBackground") < text.index("export const Basic")
        assert "const SeriesChart = () => {" in text

    def test_adds_import_statement(self):
        result = augment(parse("export const Plain = () => <div>Hi</div>;\n"), "github")
        text = generate(result.document)
        assert text.startswith(
            'import { AbsoluteFill, useCurrentFrame } from "remotion";\n\nconst BACKGROUND_CODE_LINES'
        )
        assert result.changes[-1] == "Imported AbsoluteFill, useCurrentFrame from remotion"
        assert validate_document(text).runtime_safe

    def test_extends_existing_import(self):
        text = (
            'import { useCurrentFrame } from "remotion";\n'
            "\n"
            "export const Plain = () => {\n"
            "  const frame = useCurrentFrame();\n"
            "  return <div>{frame}</div>;\n"
            "};\n"
        )
        result = augment(parse(text), "github")
        output = generate(result.document)
        assert output.startswith('import { useCurrentFrame, AbsoluteFill } from "remotion";\n')
        assert validate_document(output).by_kind("missing_import") == []

    def test_deterministic(self, basic_doc):
        first = generate(augment(parse(basic_doc), "github").document)
        second = generate(augment(parse(basic_doc), "github").document)
        assert first == second

    def test_output_reparses_and_validates(self, basic_doc):
        text = generate(augment(parse(basic_doc), "github").document)
        assert generate(parse(text)) == text
        assert validate_document(text).is_valid

    def test_augmenting_twice_is_a_no_op(self, basic_doc):
        text = generate(augment(parse(basic_doc), "github").document)
        again = augment(parse(text), "github")
        assert again.changes == []
        assert generate(again.document) == text

    def test_above_threshold_untouched(self, basic_doc):
        result = augment(parse(basic_doc), "github", RichnessSettings(basic_threshold=0))
        assert result.changes == []
        assert not result.needs_rework
        assert generate(result.document) == basic_doc

    def test_is_pure(self, basic_doc):
        document = parse(basic_doc)
        augment(document, "github")
        assert generate(document) == basic_doc

    def test_without_root_element(self):
        result = augment(parse("const a = 1;\n"), None)
        text = generate(result.document)
        assert "const AnimatedBackground = () => {" in text
        assert "const DataGrid = () => {" in text
        assert text.endswith("const a = 1;\n")
