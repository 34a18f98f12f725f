"""Tests for the mutation engine."""

import pytest

from scenecompose.mutation import (
    code, insert_child, merge_style, remove_attribute, remove_child,
    replace_child, set_attribute, set_text, synthesize_node, value_from_python,
)
from scenecompose.parser import parse
from scenecompose.results import ErrorKind
from scenecompose.selector import Criteria
from scenecompose.tree import (
    BooleanLiteral, ExpressionValue, NumberLiteral, ObjectLiteral, StringLiteral, generate,
)


class TestSetAttribute:
    def test_updates_single_match(self, timeline_doc):
        document = parse(timeline_doc)
        result = set_attribute(document, Criteria(id_attr="intro"), "from", 10)
        assert result.success
        text = generate(result.document)
        assert '<Sequence id="intro" from={10} durationInFrames={60}>' in text
        assert '<Sequence name="outro" from={60}>' in text
        assert result.changes == ["Updated from={10} on <Sequence>"]

    def test_is_pure(self, timeline_doc):
        document = parse(timeline_doc)
        result = set_attribute(document, Criteria(id_attr="intro"), "from", 10)
        assert generate(document) == timeline_doc
        assert result.snapshot == timeline_doc

    def test_multiple_matches_warn(self, timeline_doc):
        result = set_attribute(parse(timeline_doc), Criteria(tag="Sequence"), "from", 5)
        assert result.success
        assert len(result.changes) == 2
        assert result.warnings == [
            "2 nodes matched tag='Sequence'; all were updated",
        ]

    def test_no_match_is_not_found(self, timeline_doc):
        document = parse(timeline_doc)
        result = set_attribute(document, Criteria(tag="Video"), "src", "a.mp4")
        assert not result.success
        assert result.error.kind == ErrorKind.NOT_FOUND
        assert result.document is document

    def test_true_renders_as_flag(self, timeline_doc):
        result = set_attribute(parse(timeline_doc), Criteria(class_attr="big"), "hidden", True)
        assert '<h1 className="title big" hidden>' in generate(result.document)

    def test_expression_value(self):
        result = set_attribute(parse("<Box />"), Criteria(tag="Box"), "x", code("frame / 30"))
        assert generate(result.document) == "<Box x={frame / 30} />"


class TestRemoveAttribute:
    def test_removes(self, timeline_doc):
        result = remove_attribute(
            parse(timeline_doc), Criteria(id_attr="intro"), "durationInFrames",
        )
        assert '<Sequence id="intro" from={0}>' in generate(result.document)
        assert result.changes == ["Removed durationInFrames from <Sequence>"]


class TestMergeStyle:
    def test_merges_in_normalized_key_space(self):
        document = parse('<div style={{ backgroundColor: "red", padding: 4 }} />')
        result = merge_style(
            document, Criteria(tag="div"), {"background-color": "blue", "margin": 2},
        )
        assert generate(result.document) == (
            '<div style={{ backgroundColor: "blue", padding: 4, margin: 2 }} />'
        )

    def test_adds_style_when_absent(self):
        result = merge_style(parse("<div />"), Criteria(tag="div"), {"opacity": 0.5})
        assert generate(result.document) == "<div style={{ opacity: 0.5 }} />"

    def test_expression_style_kept_as_spread(self):
        result = merge_style(parse("<div style={base} />"), Criteria(tag="div"), {"top": 0})
        assert generate(result.document) == "<div style={{ ...base, top: 0 }} />"

    def test_css_string_style_keeps_declarations(self):
        document = parse('<div style="color: red; font-size: 12px" />')
        result = merge_style(document, Criteria(tag="div"), {"opacity": 1, "font-size": 14})
        assert generate(result.document) == (
            '<div style={{ color: "red", fontSize: 14, opacity: 1 }} />'
        )

    def test_empty_updates_rejected(self):
        with pytest.raises(ValueError, match="updates must be non-empty"):
            merge_style(parse("<div />"), Criteria(tag="div"), {})


class TestSetText:
    def test_replaces_text(self, timeline_doc):
        result = set_text(parse(timeline_doc), Criteria(tag="h1"), "Hello")
        assert '<h1 className="title big">Hello</h1>' in generate(result.document)

    def test_opens_self_closing_node(self):
        result = set_text(parse("<Label />"), Criteria(tag="Label"), "Hi")
        assert generate(result.document) == "<Label>Hi</Label>"


class TestChildren:
    def test_insert_at_end(self, timeline_doc):
        logo = synthesize_node("Img", {"src": "logo.png"})
        result = insert_child(parse(timeline_doc), Criteria(tag="h1"), logo)
        assert '<h1 className="title big">Welcome<Img src="logo.png" /></h1>' in generate(
            result.document
        )

    def test_insert_at_start_of_self_closing(self):
        result = insert_child(parse("<Box />"), Criteria(tag="Box"), synthesize_node("Child"), "start")
        assert generate(result.document) == "<Box><Child /></Box>"

    def test_insert_rejects_bad_position(self):
        with pytest.raises(ValueError, match="position"):
            insert_child(parse("<Box />"), Criteria(tag="Box"), synthesize_node("A"), "middle")

    def test_remove_child(self, timeline_doc):
        result = remove_child(parse(timeline_doc), Criteria(tag="p"))
        assert "<p" not in generate(result.document)
        assert result.changes == ["Removed <p> (match #0)"]

    def test_remove_child_inside_code_leaves_null(self):
        result = remove_child(parse("const a = <A />;"), Criteria(tag="A"))
        assert generate(result.document) == "const a = null;"

    def test_remove_child_index_out_of_range(self, timeline_doc):
        result = remove_child(parse(timeline_doc), Criteria(tag="Sequence"), index=4)
        assert not result.success
        assert result.error.kind == ErrorKind.NOT_FOUND

    def test_replace_child(self, timeline_doc):
        result = replace_child(
            parse(timeline_doc), Criteria(tag="p"), synthesize_node("Caption", {"text": "Bye"}),
        )
        text = generate(result.document)
        assert '<Caption text="Bye" />' in text
        assert "<p" not in text


class TestSynthesis:
    def test_value_inference(self):
        assert value_from_python(True) == BooleanLiteral(True)
        assert value_from_python(3) == NumberLiteral(3)
        assert value_from_python("a") == StringLiteral("a")
        assert isinstance(value_from_python({"a": 1}), ObjectLiteral)
        assert isinstance(value_from_python(synthesize_node("A")), ExpressionValue)

    def test_unsupported_value(self):
        with pytest.raises(ValueError, match="Cannot use"):
            value_from_python(object())

    def test_empty_tag_rejected(self):
        with pytest.raises(ValueError, match="tag must be non-empty"):
            synthesize_node("")

    def test_none_props_skipped(self):
        node = synthesize_node("Box", {"width": 10, "label": None}, children=["text"])
        assert list(node.attributes) == ["width"]
        assert not node.self_closing
