"""Tests for opacity transition analysis and range repair."""

import pytest

from scenecompose.parser import parse
from scenecompose.settings import TransitionSettings
from scenecompose.transitions import (
    DEAD_AIR, FADE_IN, FADE_OUT, OVERLAP, TimedInterval, analyze_document,
    extract_intervals, fix_overlaps, pair_fades, parse_range, repair_input_ranges,
    repaired_range,
)
from scenecompose.tree import generate


MULTI_FADE_DOC = (
    "const frame = useCurrentFrame();\n"
    "const fadeA = interpolate(frame, [90, 120], [1, 0]);\n"
    "const fadeB = interpolate(frame, [100, 130], [0, 1]);\n"
    "const fadeC = interpolate(frame, [102, 140], [0, 1]);\n"
)


def _interval(start, end, direction, order=0):
    values = [1, 0] if direction == FADE_OUT else [0, 1]
    return TimedInterval(
        start=start, end=end, property="opacity", values=values,
        input_range=[start, end], direction=direction, order=order,
    )


class TestExtraction:
    def test_fixture_intervals(self, transition_doc):
        intervals = extract_intervals(parse(transition_doc))
        assert [iv.label for iv in intervals] == ["<AbsoluteFill#background>", "<h1#title>"]
        assert [iv.direction for iv in intervals] == [FADE_OUT, FADE_IN]
        assert [(iv.start, iv.end) for iv in intervals] == [(90, 120), (100, 130)]
        assert {iv.property for iv in intervals} == {"opacity"}

    def test_non_opacity_targets_ignored(self):
        text = (
            "const frame = useCurrentFrame();\n"
            "const x = interpolate(frame, [0, 30], [0, 100]);\n"
            "const fadeOut = interpolate(frame, [30, 60], [1, 0]);\n"
        )
        intervals = extract_intervals(parse(text))
        assert [iv.property for iv in intervals] == ["fadeOut"]

    def test_fade_in_from_frame_zero_has_no_direction(self):
        text = "const alpha = interpolate(frame, [0, 20], [0, 1]);\n"
        (interval,) = extract_intervals(parse(text))
        assert interval.direction is None


class TestPairing:
    def test_every_later_fade_in(self):
        outs = [_interval(10, 30, FADE_OUT, 0), _interval(50, 70, FADE_OUT, 1)]
        ins = [_interval(40, 60, FADE_IN, 2), _interval(60, 80, FADE_IN, 3),
               _interval(20, 40, FADE_IN, 4)]
        pairs = pair_fades(outs + ins)
        assert [(a.start, b.start) for a, b in pairs] == [
            (10, 40), (10, 60), (10, 20), (50, 60),
        ]

    def test_unpaired_fade_out_dropped(self):
        pairs = pair_fades([_interval(100, 120, FADE_OUT), _interval(20, 40, FADE_IN)])
        assert pairs == []


class TestAnalyze:
    def test_overlap_is_critical(self, transition_doc):
        (defect,) = analyze_document(parse(transition_doc))
        assert defect.kind == OVERLAP
        assert defect.severity == "critical"
        assert defect.gap == -20
        assert "gap -20" in defect.message
        assert defect.to_diagnostic().layer == 5

    @pytest.mark.parametrize("fade_in, gap", [
        ("[110, 140]", -10),
        ("[115, 145]", -5),
        ("[120, 150]", 0),
        ("[124, 154]", 4),
    ])
    def test_small_gap_is_high_overlap(self, transition_doc, fade_in, gap):
        (defect,) = analyze_document(parse(transition_doc.replace("[100, 130]", fade_in)))
        assert defect.kind == OVERLAP
        assert defect.severity == "high"
        assert defect.gap == gap

    def test_recommended_crossfade_is_not_overlap(self, transition_doc):
        document = parse(transition_doc.replace("[100, 130]", "[105, 135]"))
        assert analyze_document(document) == []

    def test_recommended_crossfade_follows_setting(self, transition_doc):
        document = parse(transition_doc.replace("[100, 130]", "[105, 135]"))
        (defect,) = analyze_document(document, TransitionSettings(recommended_overlap=5))
        assert defect.severity == "critical"
        assert defect.gap == -15

    def test_every_overlapping_fade_in_reported(self):
        defects = analyze_document(parse(MULTI_FADE_DOC))
        assert [(d.fade_out.label, d.fade_in.label, d.gap, d.severity) for d in defects] == [
            ("fadeA", "fadeB", -20, "critical"),
            ("fadeA", "fadeC", -18, "critical"),
        ]

    def test_dead_air(self, transition_doc):
        (defect,) = analyze_document(parse(transition_doc.replace("[100, 130]", "[160, 190]")))
        assert defect.kind == DEAD_AIR
        assert defect.severity == "medium"
        assert defect.gap == 40

    def test_gap_within_bounds(self, transition_doc):
        document = parse(transition_doc.replace("[100, 130]", "[125, 155]"))
        assert analyze_document(document) == []

    def test_minimum_gap_setting(self, transition_doc):
        document = parse(transition_doc.replace("[100, 130]", "[110, 140]"))
        assert analyze_document(document, TransitionSettings(minimum_gap=-15)) == []


class TestFixOverlaps:
    def test_shifts_fade_in(self, transition_doc):
        document = parse(transition_doc)
        result = fix_overlaps(document)
        text = generate(result.document)
        assert text == transition_doc.replace("[100, 130]", "[105, 135]")
        assert result.changes == [
            "Shifted fade-in of <h1#title> from [100, 130] to [105, 135] "
            "(overlapped fade-out of <AbsoluteFill#background> ending at frame 120)"
        ]
        assert analyze_document(parse(text)) == []

    def test_is_pure(self, transition_doc):
        document = parse(transition_doc)
        fix_overlaps(document)
        assert generate(document) == transition_doc

    def test_recommended_overlap_setting(self, transition_doc):
        settings = TransitionSettings(recommended_overlap=5)
        result = fix_overlaps(parse(transition_doc), settings)
        assert "interpolate(frame, [115, 145], [0, 1])" in generate(result.document)

    def test_fixes_every_overlapping_fade_in(self):
        result = fix_overlaps(parse(MULTI_FADE_DOC))
        text = generate(result.document)
        assert "const fadeB = interpolate(frame, [105, 135], [0, 1]);" in text
        assert "const fadeC = interpolate(frame, [105, 143], [0, 1]);" in text
        assert len(result.changes) == 2
        assert analyze_document(parse(text)) == []

    def test_shared_fade_in_rewritten_once(self):
        text = (
            "const frame = useCurrentFrame();\n"
            "const fadeA = interpolate(frame, [90, 120], [1, 0]);\n"
            "const fadeB = interpolate(frame, [95, 125], [1, 0]);\n"
            "const fadeIn = interpolate(frame, [100, 130], [0, 1]);\n"
        )
        result = fix_overlaps(parse(text))
        assert result.changes == [
            "Shifted fade-in of fadeIn from [100, 130] to [105, 135] "
            "(overlapped fade-out of fadeA ending at frame 120)"
        ]
        assert "const fadeIn = interpolate(frame, [105, 135], [0, 1]);" in generate(result.document)


class TestRanges:
    def test_parse_range(self):
        assert parse_range("[1, -2, 'a']") == [1, -2, "a"]
        assert parse_range("[0.5, 30]") == [0.5, 30]
        assert parse_range("[a, 1]") is None
        assert parse_range("frames") is None

    def test_repaired_range(self):
        assert repaired_range([30, 0, 0]) == [0, 1, 30]
        assert repaired_range([5, 5, 5]) == [5, 6, 7]

    def test_repair_input_ranges(self):
        text = "const o = interpolate(frame, [30, 0, 0], [0, 1, 0]);\n"
        result = repair_input_ranges(parse(text))
        assert generate(result.document) == (
            "const o = interpolate(frame, [0, 1, 30], [0, 1, 0]);\n"
        )
        assert result.changes == [
            "Repaired interpolate() input range [30, 0, 0] -> [0, 1, 30]",
        ]

    def test_increasing_ranges_untouched(self, transition_doc):
        result = repair_input_ranges(parse(transition_doc))
        assert result.changes == []
        assert generate(result.document) == transition_doc
