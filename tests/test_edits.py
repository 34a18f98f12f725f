"""Tests for update planning."""

from scenecompose.edits import REPLACE, TARGETED, apply_update, plan_update
from scenecompose.results import ErrorKind


OLD = '<Sequence from={0}><h1 id="t">Hi</h1></Sequence>'
NEW = '<Sequence from={10}><h1 id="t">Hello</h1></Sequence>'


class TestPlanUpdate:
    def test_targeted(self):
        plan = plan_update(OLD, NEW)
        assert plan.strategy == TARGETED
        assert plan.text == NEW
        assert [edit.op for edit in plan.edits] == ["set_attribute", "set_text"]

    def test_removed_attribute(self):
        plan = plan_update('<Box a={1} b="x" />', "<Box a={1} />")
        assert plan.strategy == TARGETED
        assert [(e.op, e.name) for e in plan.edits] == [("remove_attribute", "b")]
        assert plan.text == "<Box a={1} />"

    def test_timeline_change_replaces(self):
        old = "<AbsoluteFill><Sequence from={0}><h1>Hi</h1></Sequence></AbsoluteFill>"
        new = "<AbsoluteFill><h1>Hi</h1></AbsoluteFill>"
        plan = plan_update(old, new)
        assert plan.strategy == REPLACE
        assert plan.reasons[0].startswith("timeline elements changed")
        assert plan.text == new

    def test_structure_change_replaces(self):
        plan = plan_update("<div><a /></div>", "<div><b /></div>")
        assert plan.strategy == REPLACE
        assert plan.reasons == ["element structure differs"]

    def test_component_delta_replaces(self):
        old = "const A = () => <div />;\n"
        new = (
            "const A = () => <div />;\n"
            "const B = () => 1;\n"
            "const C = () => 2;\n"
            "const D = () => 3;\n"
        )
        plan = plan_update(old, new)
        assert plan.reasons == ["custom component count changed by 3 (cutoff 2)"]

    def test_code_change_is_not_reproducible(self):
        old = "const A = () => <div />;\n"
        new = "const A = () => <div />;\nconst B = () => 1;\n"
        plan = plan_update(old, new)
        assert plan.strategy == REPLACE
        assert plan.reasons == ["targeted edits do not reproduce the new text"]

    def test_repeated_tags_use_ordinals(self):
        old = "<div><p>a</p><p>b</p></div>"
        new = "<div><p>a</p><p>c</p></div>"
        plan = plan_update(old, new)
        assert plan.strategy == TARGETED
        (edit,) = plan.edits
        assert edit.criteria.index == 1
        assert plan.text == new


class TestApplyUpdate:
    def test_targeted(self):
        result = apply_update(OLD, NEW)
        assert result.success
        assert result.text == NEW
        assert result.snapshot == OLD
        assert result.message == "Applied 2 targeted edit(s)"
        assert len(result.changes) == 2

    def test_replace(self):
        result = apply_update("<div><a /></div>", "<div><b /></div>")
        assert result.text == "<div><b /></div>"
        assert result.changes == ["Replaced document (element structure differs)"]

    def test_parse_error(self):
        result = apply_update("<div>", "<div />")
        assert not result.success
        assert result.error.kind == ErrorKind.PARSE_ERROR
        assert result.snapshot == "<div>"
