"""Transition consistency analysis for opacity fades.

Every `interpolate(clock, [start, ..., end], [from, ..., to])` call whose
target is opacity-bearing (a style key or variable name containing
"opacity", "fade" or "alpha") yields a TimedInterval. An interval fading
to 0 is a fade-out. One fading to 1 that starts after frame 0 is a
fade-in.

Every fade-out is paired with every later fade-in (one starting at or
after the fade-out's start). For a pair, gap = fade_in.start - fade_out.end:

  gap < minimum_gap   overlap (content bleeds through): critical when
                      gap < critical_gap, else high
  gap > maximum_gap   dead air: medium

A fade-in starting exactly recommended_overlap frames before the fade-out
ends is the recommended crossfade and is never an overlap.

fix_overlaps() moves each overlapping fade-in so it starts
recommended_overlap frames before the end of the first fade-out (in
document order) it overlaps, keeping its duration. Fixes are computed from
one analysis and each fade-in is rewritten once.
"""

import copy
import logging
from dataclasses import dataclass, field

import numpy as np

from .common import format_number, parse_number
from .lexer import NUMBER, PUNCT, STRING, split_top_level, tokenize
from .results import Diagnostic
from .selector import id_of
from .settings import TransitionSettings
from .tree import Document, Expression, walk_expressions

logger = logging.getLogger(__name__)

TIMELINE_TRANSFORMS = ("interpolate", "interpolateColors")
OPACITY_MARKERS = ("opacity", "fade", "alpha")

FADE_OUT = "fade_out"
FADE_IN = "fade_in"

OVERLAP = "transition_overlap"
DEAD_AIR = "dead_air"


@dataclass
class TimedInterval:
    start: float
    end: float
    property: str
    values: list
    input_range: list
    direction: str | None = None
    element: str | None = None
    order: int = 0
    # Location of the input-range argument, for rewrites.
    expression: Expression | None = field(default=None, repr=False)
    part_index: int = 0
    span: tuple = (0, 0)
    offset: int | None = None

    @property
    def label(self) -> str:
        return self.element or self.property


@dataclass
class TransitionDefect:
    kind: str
    severity: str
    gap: float
    fade_out: TimedInterval
    fade_in: TimedInterval

    @property
    def message(self) -> str:
        a, b = self.fade_out, self.fade_in
        if self.kind == OVERLAP:
            return (
                f"{b.label} fades in at frame {format_number(b.start)} while "
                f"{a.label} is still fading out until {format_number(a.end)} "
                f"(gap {format_number(self.gap)})"
            )
        return (
            f"{format_number(self.gap)} frames of dead air between {a.label} "
            f"(ends {format_number(a.end)}) and {b.label} (starts {format_number(b.start)})"
        )

    def to_diagnostic(self, lines=None) -> Diagnostic:
        line = column = None
        if lines is not None and self.fade_in.offset is not None:
            line, column = lines.position(self.fade_in.offset)
        if self.kind == OVERLAP:
            fix = "Shift the fade-in so it starts shortly before the fade-out ends"
        else:
            fix = "Start the fade-in earlier or extend the fade-out"
        return Diagnostic(
            kind=self.kind, severity=self.severity, message=self.message,
            line=line, column=column, suggested_fix=fix, layer=5,
        )


# ── Range literals ─────────────────────────────────────────────────


def parse_range(text: str) -> list | None:
    """Values of an array literal of numbers and/or strings, else None."""
    tokens = tokenize(text)
    if len(tokens) < 2 or not tokens[0].is_punct("[") or not tokens[-1].is_punct("]"):
        return None
    values = []
    for group in split_top_level(tokens[1:-1]):
        if not group:
            continue
        if len(group) == 1 and group[0].kind == STRING:
            values.append(group[0].value[1:-1])
            continue
        literal = "".join(t.value for t in group)
        if not all(t.kind in (NUMBER, PUNCT) for t in group):
            return None
        number = parse_number(literal)
        if number is None:
            return None
        values.append(number)
    return values


def is_strictly_increasing(values: list) -> bool:
    return all(b > a for a, b in zip(values, values[1:]))


def repaired_range(values: list) -> list:
    """Sorted copy with duplicates bumped so it is strictly increasing."""
    corrected = sorted(values)
    for i in range(1, len(corrected)):
        if corrected[i] <= corrected[i - 1]:
            corrected[i] = corrected[i - 1] + 1
    return corrected


def format_range(values: list) -> str:
    return "[" + ", ".join(format_number(v) for v in values) + "]"


# ── Extraction ─────────────────────────────────────────────────────


def _is_opacity(name: str | None) -> bool:
    return bool(name) and any(marker in name.lower() for marker in OPACITY_MARKERS)


def _element_label(context) -> str | None:
    node = context.node
    if node is None:
        return None
    ident = id_of(node)
    return f"<{node.tag}#{ident}>" if ident else f"<{node.tag}>"


def timeline_calls(document: Document):
    """(expression, context, call) for every interpolate-style call."""
    for expression, context in walk_expressions(document):
        for call in expression.calls():
            if call.name.split(".")[-1] in TIMELINE_TRANSFORMS:
                yield expression, context, call


def extract_intervals(document: Document) -> list[TimedInterval]:
    """Timed intervals of every opacity-bearing transform, in document order."""
    intervals = []
    for expression, context, call in timeline_calls(document):
        if len(call.args) < 3:
            continue
        prop = context.key or call.assigned_to or context.attribute
        if not _is_opacity(prop):
            continue
        inputs = parse_range(call.args[1])
        outputs = parse_range(call.args[2])
        if not inputs or not outputs or len(inputs) != len(outputs):
            continue
        if not all(isinstance(v, (int, float)) for v in inputs + outputs):
            continue
        direction = None
        if outputs[-1] == 0:
            direction = FADE_OUT
        elif outputs[-1] == 1 and inputs[0] > 0:
            direction = FADE_IN
        intervals.append(TimedInterval(
            start=inputs[0], end=inputs[-1], property=prop, values=outputs,
            input_range=inputs, direction=direction,
            element=_element_label(context),
            order=len(intervals), expression=expression,
            part_index=call.part_index, span=call.arg_spans[1], offset=call.offset,
        ))
    return intervals


# ── Analysis ───────────────────────────────────────────────────────


def pair_fades(intervals: list[TimedInterval]) -> list[tuple[TimedInterval, TimedInterval]]:
    """Every (fade-out, later fade-in) pair, fade-outs in document order."""
    outs = [iv for iv in intervals if iv.direction == FADE_OUT]
    ins = [iv for iv in intervals if iv.direction == FADE_IN]
    if not outs or not ins:
        return []
    out_start = np.array([iv.start for iv in outs], dtype=float)
    in_start = np.array([iv.start for iv in ins], dtype=float)
    later = in_start[np.newaxis, :] >= out_start[:, np.newaxis]
    return [(outs[int(i)], ins[int(j)]) for i, j in np.argwhere(later)]


def analyze(intervals: list[TimedInterval],
            settings: TransitionSettings | None = None) -> list[TransitionDefect]:
    """Overlap and dead-air defects, ordered by the fade-in's position."""
    settings = settings or TransitionSettings()
    pairs = pair_fades(intervals)
    if not pairs:
        return []
    gaps = np.array([b.start - a.end for a, b in pairs], dtype=float)
    overlap = (gaps < settings.minimum_gap) & (gaps != -settings.recommended_overlap)
    critical = gaps < settings.critical_gap
    dead_air = gaps > settings.maximum_gap
    defects = []
    for index, (fade_out, fade_in) in enumerate(pairs):
        gap = gaps[index].item()
        if float(gap).is_integer():
            gap = int(gap)
        if overlap[index]:
            severity = "critical" if critical[index] else "high"
            defects.append(TransitionDefect(OVERLAP, severity, gap, fade_out, fade_in))
        elif dead_air[index]:
            defects.append(TransitionDefect(DEAD_AIR, "medium", gap, fade_out, fade_in))
    defects.sort(key=lambda d: (d.fade_in.order, d.fade_out.order))
    return defects


def analyze_document(document: Document,
                     settings: TransitionSettings | None = None) -> list[TransitionDefect]:
    return analyze(extract_intervals(document), settings)


# ── Rewrites ───────────────────────────────────────────────────────


@dataclass
class FixResult:
    document: Document
    changes: list = field(default_factory=list)
    defects: list = field(default_factory=list)


def _apply_range_edits(edits: list) -> None:
    """edits: (expression, part_index, (start, end), new_text); later spans first."""
    ordered = sorted(edits, key=lambda e: (id(e[0]), e[1], e[2][0]), reverse=True)
    for expression, part_index, (start, end), text in ordered:
        expression.replace_span(part_index, start, end, text)


def fix_overlaps(document: Document, settings: TransitionSettings | None = None) -> FixResult:
    """Shift each overlapping fade-in to start recommended_overlap frames
    before the first fade-out it overlaps ends, preserving the fade-in's
    duration. Pure."""
    settings = settings or TransitionSettings()
    working = copy.deepcopy(document)
    defects = analyze_document(working, settings)
    result = FixResult(document=working, defects=defects)
    targets: dict[int, tuple] = {}
    for defect in defects:
        if defect.kind != OVERLAP or defect.fade_in.order in targets:
            continue
        fade_in, fade_out = defect.fade_in, defect.fade_out
        delta = (fade_out.end - settings.recommended_overlap) - fade_in.start
        shifted = [v + delta for v in fade_in.input_range]
        targets[fade_in.order] = (fade_in, shifted)
        result.changes.append(
            f"Shifted fade-in of {fade_in.label} from {format_range(fade_in.input_range)} "
            f"to {format_range(shifted)} (overlapped fade-out of {fade_out.label} "
            f"ending at frame {format_number(fade_out.end)})"
        )
    edits = [
        (iv.expression, iv.part_index, iv.span, format_range(shifted))
        for iv, shifted in targets.values()
    ]
    _apply_range_edits(edits)
    if edits:
        logger.info("fixed %d overlapping transition(s)", len(edits))
    return result


def repair_input_ranges(document: Document) -> FixResult:
    """Sort and de-duplicate non-increasing literal input ranges. Pure."""
    working = copy.deepcopy(document)
    result = FixResult(document=working)
    edits = []
    for expression, _, call in timeline_calls(working):
        if len(call.args) < 2:
            continue
        inputs = parse_range(call.args[1])
        if not inputs or not all(isinstance(v, (int, float)) for v in inputs):
            continue
        if is_strictly_increasing(inputs):
            continue
        corrected = repaired_range(inputs)
        edits.append((expression, call.part_index, call.arg_spans[1], format_range(corrected)))
        result.changes.append(
            f"Repaired {call.name}() input range {format_range(inputs)} -> "
            f"{format_range(corrected)}"
        )
    _apply_range_edits(edits)
    return result
