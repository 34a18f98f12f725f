"""Tests for scenecompose.common utilities."""

import pytest

from scenecompose.common import (
    LineIndex,
    format_number,
    is_color_value,
    line_col,
    normalize_style_key,
    parse_css_declarations,
    parse_number,
    resolve_path_vars,
)


class TestLineIndex:
    def test_first_line(self):
        assert LineIndex("abc\ndef").position(0) == (1, 1)

    def test_after_newline(self):
        index = LineIndex("abc\ndef\n")
        assert index.position(4) == (2, 1)
        assert index.position(6) == (2, 3)

    def test_line_col(self):
        assert line_col("a\n\nb", 3) == (3, 1)


class TestNumbers:
    def test_format_integral_float(self):
        assert format_number(1.0) == "1"
        assert format_number(-15) == "-15"
        assert format_number(0.25) == "0.25"

    def test_format_rejects_bool(self):
        with pytest.raises(ValueError, match="Not a number"):
            format_number(True)

    def test_parse(self):
        assert parse_number("42") == 42
        assert parse_number("-2.5") == -2.5
        assert parse_number(".5") == 0.5
        assert parse_number("1e3") == 1000.0
        assert parse_number("0xff") == 255
        assert parse_number("1_000") == 1000

    def test_parse_rejects_non_numbers(self):
        assert parse_number("frame") is None
        assert parse_number("1 + 2") is None
        assert parse_number("") is None


class TestNormalizeStyleKey:
    def test_kebab_and_snake(self):
        assert normalize_style_key("background-color") == "backgroundColor"
        assert normalize_style_key("background_color") == "backgroundColor"

    def test_camel_unchanged(self):
        assert normalize_style_key("backgroundColor") == "backgroundColor"

    def test_quoted(self):
        assert normalize_style_key('"font-size"') == "fontSize"

    def test_vendor_prefix(self):
        assert normalize_style_key("-webkit-transform") == "WebkitTransform"


class TestIsColorValue:
    def test_hex(self):
        assert is_color_value("#fff")
        assert is_color_value("#1A1A1A")

    def test_functions_and_names(self):
        assert is_color_value("rgba(0, 0, 0, 0.5)")
        assert is_color_value("hsl(120, 50%, 50%)")
        assert is_color_value("Red")

    def test_non_colors(self):
        assert not is_color_value("#xyz")
        assert not is_color_value("banana")
        assert not is_color_value(1)


class TestResolvePathVars:
    def test_simple_substitution(self):
        paths = {"work": "/data/compositions"}
        assert resolve_path_vars("${work}/out", paths) == "/data/compositions/out"

    def test_multiple_vars(self):
        paths = {"root": "/a", "name": "b"}
        assert resolve_path_vars("${root}/${name}.yaml", paths) == "/a/b.yaml"

    def test_no_vars(self):
        assert resolve_path_vars("/plain/path", {}) == "/plain/path"

    def test_unknown_var_raises(self):
        with pytest.raises(ValueError, match="Unknown path variable"):
            resolve_path_vars("${missing}/x", {})


class TestParseCssDeclarations:
    def test_declarations(self):
        assert parse_css_declarations("color: red; font-size: 12px;") == {
            "color": "red", "fontSize": "12px",
        }

    def test_skips_fragments(self):
        assert parse_css_declarations("bogus; ; :x; margin:0") == {"margin": "0"}
