"""Content richness scoring and automatic augmentation.

score() sums four sub-scores, each 0, 10 or 25:

  data        large literal collections (array literals with at least
              10 elements or 100 characters): >= 3 -> 25, >= 1 -> 10
  numbers     numeric literals with three or more integer digits:
              >= 50 -> 25, >= 10 -> 10
  layering    background and foreground layer components:
              both -> 25, either -> 10
  components  distinct custom components declared in the document:
              >= 4 -> 25, >= 2 -> 10

Bands: < 40 basic, 40-59 moderate, 60-79 rich, >= 80 premium.

augment() lifts a basic document by splicing in parsed component
declarations and their elements: an animated background layer, a data
subtree chosen by the project hint, and visual depth layers. Every
injected value is a fixed constant or a closed-form expression of the
frame, so augmenting the same text twice gives the same result. Library
names the injected code uses are imported.
"""

import copy
import logging
import re
from dataclasses import dataclass, field

from .imports import add_missing_imports
from .lexer import IDENT, NUMBER, STRING, split_top_level, tokenize
from .mutation import open_element, synthesize_node
from .parser import parse_expression
from .settings import RichnessSettings
from .tree import (
    Document, Node, NumberLiteral, ObjectLiteral, TextSegment,
    iter_nodes, matching_close, walk_expressions,
)

logger = logging.getLogger(__name__)

LARGE_COLLECTION_ELEMENTS = 10
LARGE_COLLECTION_CHARS = 100
MEANINGFUL_DIGITS = 3

BACKGROUND_MARKERS = ("Background",)
FOREGROUND_MARKERS = ("Foreground", "Overlay", "Particle", "Effect", "Depth")

BANDS = ((80, "premium"), (60, "rich"), (40, "moderate"), (0, "basic"))


@dataclass(frozen=True)
class RichnessScore:
    total: int
    data: int
    numbers: int
    layering: int
    components: int
    band: str
    collections: int = 0
    meaningful_numbers: int = 0
    component_names: tuple = ()
    has_background: bool = False
    has_foreground: bool = False


@dataclass
class AugmentResult:
    document: Document
    changes: list = field(default_factory=list)
    before: RichnessScore | None = None
    after: RichnessScore | None = None
    needs_rework: bool = False


def band_for(total: int) -> str:
    for floor, name in BANDS:
        if total >= floor:
            return name
    return "basic"


def _tier(count: int, high: int, low: int) -> int:
    if count >= high:
        return 25
    if count >= low:
        return 10
    return 0


# ── Measurements ───────────────────────────────────────────────────


def count_large_collections(document: Document) -> int:
    """Array literals (not index accesses) large enough to count as data."""
    count = 0
    for expression, _ in walk_expressions(document):
        for part in expression.parts:
            if not isinstance(part, str):
                continue
            tokens = tokenize(part)
            for i, tok in enumerate(tokens):
                if not tok.is_punct("["):
                    continue
                prev = tokens[i - 1] if i else None
                if prev is not None and (
                    (prev.kind in (IDENT, NUMBER, STRING) and not prev.is_keyword)
                    or prev.is_punct(")", "]")
                ):
                    continue
                close = matching_close(tokens, i)
                if close is None:
                    continue
                inner = tokens[i + 1:close]
                elements = [g for g in split_top_level(inner) if g] if inner else []
                length = tokens[close].end - tok.start
                if len(elements) >= LARGE_COLLECTION_ELEMENTS or length >= LARGE_COLLECTION_CHARS:
                    count += 1
    return count


def _is_meaningful(value) -> bool:
    if isinstance(value, bool):
        return False
    return len(str(int(abs(value)))) >= MEANINGFUL_DIGITS


def count_meaningful_numbers(document: Document) -> int:
    """Numbers with three or more integer digits, in code and attributes."""
    count = 0
    for expression, _ in walk_expressions(document):
        for _, tok in expression.code_tokens():
            if tok.kind != NUMBER:
                continue
            digits = re.split(r"[.eE]", tok.value.replace("_", ""))[0]
            if len(digits.lstrip("0")) >= MEANINGFUL_DIGITS:
                count += 1
    for node in iter_nodes(document):
        for value in node.attributes.values():
            count += _literal_numbers(value)
    return count


def _literal_numbers(value) -> int:
    if isinstance(value, NumberLiteral):
        return 1 if _is_meaningful(value.value) else 0
    if isinstance(value, ObjectLiteral):
        return sum(_literal_numbers(entry) for entry in value.entries.values())
    return 0


def component_names(document: Document) -> list[str]:
    """Distinct capitalized components declared as arrow functions,
    function declarations or classes, in declaration order."""
    tokens = [tok for _, tok in document.body.code_tokens()]
    names = []

    def add(name):
        if name not in names:
            names.append(name)

    for i, tok in enumerate(tokens):
        if i + 1 >= len(tokens):
            break
        following = tokens[i + 1]
        if following.kind != IDENT or not following.value[:1].isupper():
            continue
        if tok.is_ident("function", "class"):
            add(following.value)
        elif tok.is_ident("const", "let", "var") and _declares_function(tokens, i + 2):
            add(following.value)
    return names


def _declares_function(tokens: list, index: int) -> bool:
    """True when tokens[index:] is '[: Type] = <function expression>'."""
    depth = 0
    while index < len(tokens):
        tok = tokens[index]
        if tok.is_punct("(", "[", "{"):
            depth += 1
        elif tok.is_punct(")", "]", "}"):
            depth -= 1
        elif tok.is_punct(";") and depth <= 0:
            return False
        elif tok.is_punct("=") and depth == 0:
            break
        index += 1
    else:
        return False
    index += 1
    if index < len(tokens) and tokens[index].is_ident("async"):
        index += 1
    if index >= len(tokens):
        return False
    head = tokens[index]
    if head.is_ident("function"):
        return True
    if head.kind == IDENT and index + 1 < len(tokens) and tokens[index + 1].is_punct("=>"):
        return True
    if head.is_punct("("):
        close = matching_close(tokens, index)
        return close is not None and close + 1 < len(tokens) and tokens[close + 1].is_punct("=>", ":")
    return False


def layer_names(document: Document) -> list[str]:
    names = [node.tag for node in iter_nodes(document) if node.tag]
    return names + component_names(document)


def score(document: Document) -> RichnessScore:
    """Richness score of a document (0-100) with its sub-scores."""
    collections = count_large_collections(document)
    numbers = count_meaningful_numbers(document)
    names = layer_names(document)
    has_background = any(m in n for n in names for m in BACKGROUND_MARKERS)
    has_foreground = any(m in n for n in names for m in FOREGROUND_MARKERS)
    components = component_names(document)

    data = _tier(collections, 3, 1)
    numeric = _tier(numbers, 50, 10)
    if has_background and has_foreground:
        layering = 25
    elif has_background or has_foreground:
        layering = 10
    else:
        layering = 0
    custom = _tier(len(components), 4, 2)

    total = data + numeric + layering + custom
    return RichnessScore(
        total=total, data=data, numbers=numeric, layering=layering,
        components=custom, band=band_for(total), collections=collections,
        meaningful_numbers=numbers, component_names=tuple(components),
        has_background=has_background, has_foreground=has_foreground,
    )


# ── Injected content ───────────────────────────────────────────────

CODE_LINES = [
    "const frame = useCurrentFrame();",
    "const { fps, durationInFrames } = useVideoConfig();",
    "const progress = spring({ frame, fps });",
    "const scale = interpolate(progress, [0, 1], [0.8, 1]);",
    "export const Scene = () => <AbsoluteFill />;",
    "const items = data.map((d, i) => ({ ...d, i }));",
    "const delay = index * 12;",
    "return <Sequence from={delay}>{children}</Sequence>;",
    "const opacity = Math.min(1, frame / 30);",
    "const hue = (index * 137.5) % 360;",
    "const rotation = frame * 0.1;",
    "registerRoot(RemotionRoot);",
]


def _js_string(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _number_rows(values: list[int], per_row: int = 12) -> str:
    rows = [
        "  " + ", ".join(str(v) for v in values[i:i + per_row]) + ","
        for i in range(0, len(values), per_row)
    ]
    return "\n".join(rows)


def _series(count: int, step: int, spread: int, floor: int) -> list[int]:
    return [(i * step + floor // 7) % spread + floor for i in range(count)]


BACKGROUND_SOURCE = """const BACKGROUND_CODE_LINES = [
{lines}
];

const AnimatedBackground = () => {{
  const frame = useCurrentFrame();
  return (
    <AbsoluteFill style={{{{ backgroundColor: "#0d1117", overflow: "hidden" }}}}>
      {{BACKGROUND_CODE_LINES.map((line, i) => (
        <div
          key={{i}}
          style={{{{
            position: "absolute",
            left: 40,
            top: (i * 90 + frame * 2) % 1080,
            opacity: 0.08 + (i % 4) * 0.03,
            fontFamily: "monospace",
            fontSize: 22,
            color: "#58a6ff",
          }}}}
        >
          {{line}}
        </div>
      ))}}
    </AbsoluteFill>
  );
}};
"""

CONTRIBUTION_SOURCE = """const contributionData = [
{values}
];

const ContributionGraph = () => {{
  const frame = useCurrentFrame();
  return (
    <div style={{{{ display: "flex", flexWrap: "wrap", width: 1200, gap: 4, margin: "0 auto" }}}}>
      {{contributionData.map((count, i) => (
        <div
          key={{i}}
          style={{{{
            width: 16,
            height: 16,
            borderRadius: 3,
            backgroundColor: `hsl(140, 60%, ${{20 + (count % 400) / 10}}%)`,
            opacity: Math.min(1, Math.max(0, (frame - i * 0.5) / 10)),
          }}}}
        />
      ))}}
    </div>
  );
}};
"""

SERIES_SOURCE = """const seriesData = [
{values}
];

const SeriesChart = () => {{
  const frame = useCurrentFrame();
  const peak = Math.max(...seriesData);
  return (
    <div style={{{{ display: "flex", alignItems: "flex-end", height: 400, gap: 6, margin: "0 auto" }}}}>
      {{seriesData.map((value, i) => (
        <div
          key={{i}}
          style={{{{
            width: 14,
            height: (value / peak) * 400 * Math.min(1, Math.max(0, (frame - i) / 20)),
            backgroundColor: "#3fb950",
            borderRadius: 2,
          }}}}
        />
      ))}}
    </div>
  );
}};
"""

GENERIC_SOURCE = """const dataPoints = [
{values}
];

const DataGrid = () => {{
  const frame = useCurrentFrame();
  return (
    <div style={{{{ display: "grid", gridTemplateColumns: "repeat(12, 1fr)", gap: 12, margin: "0 auto" }}}}>
      {{dataPoints.map((value, i) => (
        <div
          key={{i}}
          style={{{{
            fontFamily: "monospace",
            fontSize: 20,
            color: "#e6edf3",
            opacity: Math.min(1, Math.max(0, (frame - i * 2) / 15)),
          }}}}
        >
          {{value}}
        </div>
      ))}}
    </div>
  );
}};
"""

DEPTH_SOURCE = """const PARTICLE_SEEDS = [
{values}
];

const ParticleField = () => {{
  const frame = useCurrentFrame();
  return (
    <AbsoluteFill style={{{{ pointerEvents: "none" }}}}>
      {{PARTICLE_SEEDS.map((seed, i) => (
        <div
          key={{i}}
          style={{{{
            position: "absolute",
            left: (seed * 7 + frame) % 1920,
            top: (seed * 3 + i * 40) % 1080,
            width: 4 + (i % 3) * 2,
            height: 4 + (i % 3) * 2,
            borderRadius: "50%",
            backgroundColor: "#ffffff",
            opacity: 0.15 + (i % 5) * 0.05,
          }}}}
        />
      ))}}
    </AbsoluteFill>
  );
}};

const DepthOverlay = () => (
  <AbsoluteFill
    style={{{{
      background: "radial-gradient(ellipse at center, transparent 40%, rgba(0, 0, 0, 0.6) 100%)",
      pointerEvents: "none",
    }}}}
  />
);
"""

# Hint keywords -> (domain, source template, data values, component)
DOMAINS = (
    (("github", "code", "git", "repo"), "contribution", CONTRIBUTION_SOURCE,
     _series(60, 97, 900, 100), "ContributionGraph"),
    (("finance", "stats", "stock", "market", "revenue", "analytics"), "series",
     SERIES_SOURCE, _series(60, 137, 5000, 1000), "SeriesChart"),
)
GENERIC_DOMAIN = ("generic", GENERIC_SOURCE, _series(60, 53, 800, 120), "DataGrid")


def detect_domain(project_hint: str | None) -> tuple:
    """(domain, source, values, component) for a project hint."""
    hint = (project_hint or "").lower()
    for keywords, domain, source, values, component in DOMAINS:
        if any(keyword in hint for keyword in keywords):
            return domain, source, values, component
    return GENERIC_DOMAIN


def background_source() -> str:
    lines = "\n".join(f"  {_js_string(line)}," for line in CODE_LINES)
    return BACKGROUND_SOURCE.format(lines=lines)


def depth_source() -> str:
    return DEPTH_SOURCE.format(values=_number_rows(_series(24, 211, 900, 100)))


# ── Augmentation ───────────────────────────────────────────────────


def _declaration_point(document: Document) -> tuple[int, int, bool]:
    """(part_index, position, after_import) where declarations go."""
    body = document.body
    tokens = body.code_tokens()
    point = None
    for k, (part, tok) in enumerate(tokens):
        if not tok.is_ident("import"):
            continue
        if k + 1 < len(tokens) and tokens[k + 1][1].is_punct("(", "."):
            continue
        j = k + 1
        while j < len(tokens) and tokens[j][1].kind != STRING:
            j += 1
        if j >= len(tokens):
            break
        if j + 1 < len(tokens) and tokens[j + 1][1].is_punct(";"):
            j += 1
        point = (tokens[j][0], tokens[j][1].end)
    if point is None:
        first = next((i for i, p in enumerate(body.parts) if isinstance(p, str)), None)
        if first is None:
            body.parts.insert(0, "")
            body.offsets.insert(0, None)
            first = 0
        return first, 0, False
    return point[0], point[1], True


def _child_separator(root: Node) -> str:
    for child in root.children:
        if isinstance(child, TextSegment) and "\n" in child.text:
            return "\n" + child.text.rsplit("\n", 1)[1]
    return "\n"


def _insert_layer(root: Node, node: Node, at_start: bool) -> None:
    open_element(root)
    separator = TextSegment(_child_separator(root))
    children = root.children
    if at_start:
        root.children = [separator, node] + children
        return
    last = children[-1] if children else None
    if isinstance(last, TextSegment) and not last.text.strip():
        root.children = children[:-1] + [separator, node, last]
    else:
        root.children = children + [separator, node]


def augment(document: Document, project_hint: str | None = None,
            settings: RichnessSettings | None = None) -> AugmentResult:
    """Inject background, data and depth layers into a basic document.

    Args:
        document: parsed composition (not modified).
        project_hint: free text naming the project's domain; 'github' or
            'code' selects contribution data, 'finance' or 'stats' series
            data, anything else a generic data grid.
        settings: thresholds for augmentation and the rework signal.

    Returns:
        AugmentResult. needs_rework is set when an augmented document
        still scores below the rework threshold.
    """
    settings = settings or RichnessSettings()
    working = copy.deepcopy(document)
    before = score(working)
    result = AugmentResult(document=working, before=before, after=before)
    if before.total >= settings.basic_threshold:
        return result

    root = working.root
    declared = set(before.component_names)
    sources, leading, trailing = [], [], []

    if not before.has_background and "AnimatedBackground" not in declared:
        sources.append(background_source())
        leading.append("AnimatedBackground")
        result.changes.append("Added AnimatedBackground layer")

    domain, template, values, component = detect_domain(project_hint)
    if component not in declared:
        sources.append(template.format(values=_number_rows(values)))
        trailing.append(component)
        result.changes.append(
            f"Added {component} with {len(values)} {domain} data points"
        )

    if not declared & {"ParticleField", "DepthOverlay"}:
        sources.append(depth_source())
        trailing += ["ParticleField", "DepthOverlay"]
        result.changes.append("Added ParticleField and DepthOverlay depth layers")

    if sources:
        part, position, after_import = _declaration_point(working)
        text = "\n".join(sources)
        text = "\n\n" + text.rstrip() + "\n" if after_import else text.rstrip() + "\n\n"
        working.body.splice(part, position, parse_expression(text))

    if root is not None:
        for name in leading:
            _insert_layer(root, synthesize_node(name), at_start=True)
        for name in trailing:
            _insert_layer(root, synthesize_node(name), at_start=False)
    else:
        logger.warning("document has no root element; layers declared but not placed")

    if sources:
        result.changes += add_missing_imports(working)

    result.after = score(working)
    result.needs_rework = result.after.total < settings.rework_threshold
    logger.info(
        "richness %d (%s) -> %d (%s)",
        before.total, before.band, result.after.total, result.after.band,
    )
    return result
