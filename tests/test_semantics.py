"""Tests for semantic role classification and synthesis."""

from scenecompose.semantics import SemanticRole, classify, synthesize


class TestClassify:
    def test_table_lookup_is_case_insensitive(self):
        assert classify("X") == SemanticRole.POSITION_X
        assert classify("backgroundColor") == SemanticRole.COLOR
        assert classify("DURATION") == SemanticRole.TIMING

    def test_each_role(self):
        expected = {
            "top": SemanticRole.POSITION_Y,
            "radius": SemanticRole.SIZE,
            "vx": SemanticRole.VELOCITY,
            "angle": SemanticRole.ROTATION,
            "alpha": SemanticRole.OPACITY,
        }
        for name, role in expected.items():
            assert classify(name) == role, name

    def test_unknown_is_generic(self):
        assert classify("label") == SemanticRole.GENERIC
        assert classify("") == SemanticRole.GENERIC


class TestSynthesize:
    def test_position(self):
        assert synthesize(SemanticRole.POSITION_X) == "Math.sin(frame * 0.02 + i * 0.3) * 200 + 400"
        assert synthesize(SemanticRole.POSITION_Y, "k") == "Math.cos(frame * 0.025 + k * 0.4) * 150 + 300"

    def test_color_uses_golden_angle(self):
        assert synthesize(SemanticRole.COLOR) == "`hsl(${(i * 137.5 + frame * 2) % 360}, 70%, 60%)`"

    def test_velocity_axis(self):
        assert synthesize(SemanticRole.VELOCITY, name="vx") == "Math.sin(frame + i) * 2"
        assert synthesize(SemanticRole.VELOCITY, name="vy") == "Math.sin(frame + i) * 1.5"

    def test_timing_base(self):
        assert synthesize(SemanticRole.TIMING, name="duration") == "2 + Math.sin(i * 0.5) * 0.5"
        assert synthesize(SemanticRole.TIMING, name="delay") == "1 + Math.sin(i * 0.5) * 0.5"

    def test_opacity_and_rotation(self):
        assert synthesize(SemanticRole.OPACITY) == "0.6 + Math.sin(frame * 0.08) * 0.4"
        assert synthesize(SemanticRole.ROTATION, clock="t") == "t * 0.1"

    def test_generic_returns_original(self):
        assert synthesize(SemanticRole.GENERIC, original='"p"') == '"p"'
        assert synthesize(SemanticRole.GENERIC) is None
