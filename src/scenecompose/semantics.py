"""Semantic roles for element properties, and time-driven synthesis.

classify() maps a property name to a SemanticRole through a fixed,
case-insensitive table. synthesize() turns a role into a closed-form
expression of the timeline clock (`frame`) and the element index (`i`),
so generated data is a pure function of time and position instead of
mutable runtime state.

Synthesis constants (fixed, not tunable):

  POSITION_X  Math.sin(frame * 0.02 + i * 0.3) * 200 + 400
  POSITION_Y  Math.cos(frame * 0.025 + i * 0.4) * 150 + 300
  SIZE        3 + Math.sin(frame + i) * 2
  COLOR       hsl((i * 137.5 + frame * 2) % 360, 70%, 60%)   golden angle
  VELOCITY    Math.sin(frame + i) * 2      (y-axis names: * 1.5)
  TIMING      B + Math.sin(i * 0.5) * 0.5  (B = 2 for durations, else 1)
  ROTATION    frame * 0.1
  OPACITY     0.6 + Math.sin(frame * 0.08) * 0.4   stays within [0.2, 1.0]

GENERIC never synthesizes anything: the original expression comes back
unchanged.
"""

from enum import Enum


class SemanticRole(str, Enum):
    POSITION_X = "position_x"
    POSITION_Y = "position_y"
    SIZE = "size"
    COLOR = "color"
    VELOCITY = "velocity"
    TIMING = "timing"
    ROTATION = "rotation"
    OPACITY = "opacity"
    GENERIC = "generic"


ROLE_NAMES = {
    SemanticRole.POSITION_X: ("x", "left", "translatex", "offsetx", "centerx"),
    SemanticRole.POSITION_Y: ("y", "top", "translatey", "offsety", "centery"),
    SemanticRole.SIZE: ("width", "height", "size", "radius", "scale", "diameter"),
    SemanticRole.COLOR: ("color", "backgroundcolor", "fill", "stroke", "hue", "tint"),
    SemanticRole.VELOCITY: ("vx", "vy", "velocity", "speed", "dx", "dy"),
    SemanticRole.TIMING: ("delay", "duration", "phase", "offset", "animationdelay"),
    SemanticRole.ROTATION: ("rotation", "angle", "rotate", "spin", "orientation"),
    SemanticRole.OPACITY: ("opacity", "alpha", "transparency", "visibility"),
}

_LOOKUP = {name: role for role, names in ROLE_NAMES.items() for name in names}

Y_AXIS_VELOCITY_NAMES = {"vy", "dy"}

CLOCK = "frame"


def classify(name: str) -> SemanticRole:
    """Role of a property name; GENERIC for anything not in the table."""
    return _LOOKUP.get(name.strip().lower(), SemanticRole.GENERIC)


def synthesize(role: SemanticRole, index_var: str = "i", original: str | None = None,
               name: str | None = None, clock: str = CLOCK) -> str | None:
    """Closed-form expression for a role.

    Args:
        role: semantic role of the property.
        index_var: name of the element-index variable in the generator.
        original: the property's original expression text.
        name: the property name (selects the velocity axis and the timing base).
        clock: name of the timeline clock variable.

    Returns:
        Expression source text. For GENERIC, `original` unchanged.
    """
    i, f = index_var, clock
    lowered = (name or "").lower()
    if role == SemanticRole.POSITION_X:
        return f"Math.sin({f} * 0.02 + {i} * 0.3) * 200 + 400"
    if role == SemanticRole.POSITION_Y:
        return f"Math.cos({f} * 0.025 + {i} * 0.4) * 150 + 300"
    if role == SemanticRole.SIZE:
        return f"3 + Math.sin({f} + {i}) * 2"
    if role == SemanticRole.COLOR:
        return f"`hsl(${{({i} * 137.5 + {f} * 2) % 360}}, 70%, 60%)`"
    if role == SemanticRole.VELOCITY:
        scale = "1.5" if lowered in Y_AXIS_VELOCITY_NAMES else "2"
        return f"Math.sin({f} + {i}) * {scale}"
    if role == SemanticRole.TIMING:
        base = 2 if "duration" in lowered else 1
        return f"{base} + Math.sin({i} * 0.5) * 0.5"
    if role == SemanticRole.ROTATION:
        return f"{f} * 0.1"
    if role == SemanticRole.OPACITY:
        return f"0.6 + Math.sin({f} * 0.08) * 0.4"
    return original
