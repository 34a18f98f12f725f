"""scenecompose.common — shared utilities for composition documents.

Contains: source position lookup, number formatting, style key
normalization, color literal detection, and ${var} path resolution.
"""

import bisect
import re


# ── Source positions ───────────────────────────────────────────────


class LineIndex:
    """Map absolute character offsets to 1-based (line, column) pairs."""

    def __init__(self, text: str):
        self._starts = [0]
        for i, ch in enumerate(text):
            if ch == "\n":
                self._starts.append(i + 1)

    def position(self, offset: int) -> tuple[int, int]:
        line = bisect.bisect_right(self._starts, offset) - 1
        return line + 1, offset - self._starts[line] + 1


def line_col(text: str, offset: int) -> tuple[int, int]:
    """One-off (line, column) lookup for a single offset."""
    return LineIndex(text).position(offset)


# ── Number formatting ──────────────────────────────────────────────


def format_number(value: int | float) -> str:
    """Render a number the way it would be written in source.

    Integral floats drop their fractional part (1.0 -> "1").
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def parse_number(text: str) -> int | float | None:
    """Parse a numeric literal (optionally negative). None if not a number."""
    text = text.strip().replace("_", "")
    if not _NUMBER_RE.match(text):
        return None
    if re.match(r"^-?0[xX]", text):
        return int(text, 16)
    value = float(text)
    if value.is_integer() and not re.search(r"[.eE]", text):
        return int(value)
    return value


_NUMBER_RE = re.compile(
    r"^-?(?:0[xX][0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)$"
)


# ── Style keys ─────────────────────────────────────────────────────


def normalize_style_key(key: str) -> str:
    """Normalize a style property key to camelCase.

    'background-color', 'background_color' and 'backgroundColor' all map
    to 'backgroundColor'. Vendor prefixes keep their leading capital
    ('-webkit-transform' -> 'WebkitTransform').
    """
    key = key.strip().strip("'\"")
    if "-" not in key and "_" not in key:
        return key
    parts = [p for p in re.split(r"[-_]", key) if p]
    if not parts:
        return key
    head = parts[0] if not key.startswith("-") else parts[0].capitalize()
    return head + "".join(p.capitalize() for p in parts[1:])


def parse_css_declarations(text: str) -> dict[str, str]:
    """'color: red; font-size: 12px' -> {'color': 'red', 'fontSize': '12px'}.

    Declarations without a colon are skipped. Later duplicates win.
    """
    declarations = {}
    for part in text.split(";"):
        name, sep, value = part.partition(":")
        if not sep or not name.strip():
            continue
        declarations[normalize_style_key(name)] = value.strip()
    return declarations


# ── Color utilities ────────────────────────────────────────────────

CSS_COLOR_NAMES = {
    "red", "blue", "green", "yellow", "orange", "purple", "pink", "black",
    "white", "gray", "grey", "brown", "cyan", "magenta", "transparent",
}


def is_color_value(value) -> bool:
    """True for hex ('#fff', '#1A1A1A'), rgb()/rgba()/hsl() and named colors."""
    if not isinstance(value, str):
        return False
    value = value.strip()
    if re.fullmatch(r"#[0-9a-fA-F]{3,8}", value):
        return True
    if re.match(r"^(rgba?|hsla?)\(", value):
        return True
    return value.lower() in CSS_COLOR_NAMES


# ── Path resolution ────────────────────────────────────────────────


def resolve_path_vars(text: str, paths: dict[str, str]) -> str:
    """Replace ${name} variables in a string using the paths dict."""
    def _replace(match):
        key = match.group(1)
        if key not in paths:
            raise ValueError(f"Unknown path variable: ${{{key}}}")
        return str(paths[key])
    return re.sub(r"\$\{(\w+)\}", _replace, text)
