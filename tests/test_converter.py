"""Tests for array-builder conversion."""

from scenecompose.converter import (
    DEFAULT_LENGTH, convert_array_builders, declares, find_array_builders,
)
from scenecompose.parser import parse
from scenecompose.tree import generate


STATE_DOC = """const Stars = () => {
  const frame = useCurrentFrame();
  const [stars, setStars] = useState([]);
  useEffect(() => {
    const next = [];
    for (let i = 0; i < 12; i++) {
      next.push({ x: Math.random() * 100, opacity: 1 });
    }
    setStars(next);
  }, []);
  return <div>{stars.length}</div>;
};
"""


class TestFindArrayBuilders:
    def test_finds_push_built_arrays(self, push_doc):
        assert find_array_builders(parse(push_doc)) == ["particles"]

    def test_ignores_non_object_pushes(self):
        assert find_array_builders(parse("const a = [];\na.push(5);")) == []

    def test_declares(self, push_doc):
        document = parse(push_doc)
        assert declares(document, "particles")
        assert not declares(document, "frame")


class TestConvertLoop:
    def test_loop_becomes_generator(self, push_doc):
        result = convert_array_builders(parse(push_doc))
        text = generate(result.document)
        assert "particles.push" not in text
        assert "Math.random" not in text
        assert "for (" not in text
        assert "const particles = Array.from({ length: 40 }, (_, i) => ({" in text
        assert "    x: Math.sin(frame * 0.02 + i * 0.3) * 200 + 400," in text
        assert "    y: Math.cos(frame * 0.025 + i * 0.4) * 150 + 300," in text
        assert "    size: 3 + Math.sin(frame + i) * 2," in text
        assert '    label: "p",' in text
        assert result.converted == ["particles"]
        assert result.warnings == []

    def test_declares_clock_once(self, push_doc):
        text = generate(convert_array_builders(parse(push_doc)).document)
        assert text.count("const frame = useCurrentFrame();") == 1
        assert text.index("const frame") < text.index("const particles")

    def test_is_pure(self, push_doc):
        document = parse(push_doc)
        convert_array_builders(document)
        assert generate(document) == push_doc

    def test_result_still_parses(self, push_doc):
        text = generate(convert_array_builders(parse(push_doc)).document)
        assert generate(parse(text)) == text

    def test_changes_list_roles(self, push_doc):
        changes = convert_array_builders(parse(push_doc)).changes
        assert any("Converted particles.push(...)" in c and "(40 elements)" in c for c in changes)
        assert "  x: position_x" in changes
        assert "  label: generic" in changes


class TestConvertState:
    def test_state_pair_and_effect_removed(self):
        result = convert_array_builders(parse(STATE_DOC))
        text = generate(result.document)
        assert "useState" not in text
        assert "useEffect" not in text
        assert "setStars" not in text
        assert "next" not in text
        assert "const stars = Array.from({ length: 12 }, (_, i) => ({" in text
        assert "    opacity: 0.6 + Math.sin(frame * 0.08) * 0.4," in text
        assert "return <div>{stars.length}</div>;" in text
        assert result.converted == ["stars"]

    def test_existing_clock_not_redeclared(self):
        text = generate(convert_array_builders(parse(STATE_DOC)).document)
        assert text.count("useCurrentFrame()") == 1


class TestConvertWarnings:
    def test_missing_loop_bound_uses_default(self):
        result = convert_array_builders(parse("const data = [];\ndata.push({ x: 1 });\n"))
        text = generate(result.document)
        assert f"Array.from({{ length: {DEFAULT_LENGTH} }}" in text
        assert "data.push" not in text
        assert any("No loop bound found for 'data'" in w for w in result.warnings)

    def test_undeclared_array_left_alone(self):
        source = "items.push({ a: 1 });\n"
        result = convert_array_builders(parse(source))
        assert generate(result.document) == source
        assert result.warnings == ["No declaration found for array 'items'; left unchanged"]

    def test_non_literal_argument_skipped(self):
        source = "const a = [];\na.push({ ...rest, get x() { return 1; } });\n"
        result = convert_array_builders(parse(source))
        assert generate(result.document) == source
        assert any("not a plain object literal" in w for w in result.warnings)
