"""Five-layer static validation of composition text.

Layers accumulate diagnostics; only a layer-1 parse failure stops the run
(there is no tree to inspect after it).

  1. structure     parse errors, empty or invalid expression containers,
                   duplicate declarations and exports
  2. references    unresolved identifiers, library names used without
                   an import, unused declarations
  3. typing        optional tsc run (see scenecompose.typecheck)
  4. templates     placeholder markers, TODO/FIXME, {undefined}/{null},
                   quote damage in style strings
  5. timing        interpolate arity and ranges, clock usage, x / 0

A document is valid when no diagnostic is critical. It is runtime safe
when it is valid and has no unresolved reference or missing import.
"""

import json
import logging
import re
from dataclasses import dataclass, field

from .common import LineIndex, is_color_value, normalize_style_key, parse_number
from .lexer import NUMBER, PUNCT
from .parser import (
    MISMATCHED_TAG, UNBALANCED_DELIMITER, UNCLOSED_ELEMENT,
    UNTERMINATED_LITERAL, ParseError, parse,
)
from .results import Diagnostic
from .scopes import IMPORT_SOURCES, analyze_references
from .settings import ValidationSettings
from .transitions import format_range, is_strictly_increasing, parse_range, repaired_range, timeline_calls
from .tree import Document, Expression, StringLiteral, iter_nodes, walk_expressions
from .typecheck import run_type_check

logger = logging.getLogger(__name__)

UNDEFINED_REFERENCE = "undefined_reference"
MISSING_IMPORT = "missing_import"

PARSE_FIXES = {
    UNCLOSED_ELEMENT: "Close the element, or make it self-closing (<Tag />)",
    UNTERMINATED_LITERAL: "Terminate the string, template literal or comment",
    UNBALANCED_DELIMITER: "Balance the surrounding brackets and braces",
    MISMATCHED_TAG: "Make the closing tag match its opening tag",
}

# Operators that cannot start an expression.
LEADING_OPERATORS = {
    "*", "**", "%", "&&", "||", "??", "=", "==", "===", "!=", "!==", ">",
    ">=", "<=", "|", "&", "^", ".", ",", "?", ":", "=>", "?.",
}
# Operators that cannot end one.
TRAILING_OPERATORS = LEADING_OPERATORS | {"+", "-", "!", "~", "<", "/", "..."}

PLACEHOLDER_PATTERNS = [
    re.compile(r"\$\{[^}\n]*PLACEHOLDER[^}\n]*\}"),
    re.compile(r"\b__[A-Z][A-Z0-9_]*__\b"),
    re.compile(r"\[\[[A-Z][A-Z0-9_ ]*\]\]"),
]
PENDING_WORK_RE = re.compile(r"(?://|/\*)\s*(TODO|FIXME)\b:?")
# 10pxpx, 50%%, 2remrem
DUPLICATED_UNIT_RE = re.compile(r"(\d+(?:\.\d+)?)(px|%|r?em)\2+")

CLOCK_ACCESSOR = "useCurrentFrame"


@dataclass
class ValidationReport:
    is_valid: bool
    runtime_safe: bool
    diagnostics: list = field(default_factory=list)

    def by_severity(self, severity: str) -> list:
        return [d for d in self.diagnostics if d.severity == severity]

    def by_kind(self, kind: str) -> list:
        return [d for d in self.diagnostics if d.kind == kind]


def validate_document(text: str, settings: ValidationSettings | None = None) -> ValidationReport:
    """Run all validation layers over composition text.

    Args:
        text: composition source.
        settings: validation settings; layer 3 runs only when type_check
            is enabled.

    Returns:
        ValidationReport with diagnostics ordered by layer, then position.
    """
    settings = settings or ValidationSettings()
    try:
        document = parse(text)
    except ParseError as exc:
        diagnostic = Diagnostic(
            kind=exc.kind, severity="critical", message=exc.message,
            line=exc.line, column=exc.column,
            suggested_fix=PARSE_FIXES.get(exc.kind), layer=1,
        )
        return ValidationReport(is_valid=False, runtime_safe=False, diagnostics=[diagnostic])

    lines = LineIndex(text)
    analysis = analyze_references(document)

    diagnostics = []
    diagnostics += check_structure(document, analysis, lines)
    diagnostics += check_references(analysis)
    if settings.type_check:
        diagnostics += run_type_check(
            text, settings.tsc_executable, settings.type_check_timeout,
        )
    diagnostics += check_templates(document, text, lines)
    diagnostics += check_timing(document, lines)

    return build_report(diagnostics)


def build_report(diagnostics: list) -> ValidationReport:
    """Order diagnostics and derive the validity flags."""
    ordered = sorted(
        diagnostics, key=lambda d: (d.layer, d.line or 0, d.column or 0),
    )
    is_valid = not any(d.severity == "critical" for d in ordered)
    runtime_safe = is_valid and not any(
        d.kind in (UNDEFINED_REFERENCE, MISSING_IMPORT) for d in ordered
    )
    return ValidationReport(is_valid=is_valid, runtime_safe=runtime_safe, diagnostics=ordered)


def _container_position(expression: Expression, lines: LineIndex):
    offset = expression.offset_of(0)
    if offset is None:
        return None, None
    # Point at the opening brace.
    return lines.position(max(offset - 1, 0))


# ── Layer 1: structure ─────────────────────────────────────────────


def container_problem(expression: Expression) -> str | None:
    """Why a non-empty expression container is not a single expression."""
    tokens = [tok for _, tok in expression.code_tokens()]
    if not tokens:
        return None
    first_part = expression.parts[0] if expression.parts else None
    if isinstance(first_part, str) and first_part.strip():
        first = tokens[0]
        if first.kind == PUNCT and first.value in LEADING_OPERATORS:
            return f"starts with operator '{first.value}'"
    last_part = expression.parts[-1]
    if isinstance(last_part, str) and last_part.strip():
        last = tokens[-1]
        if last.kind == PUNCT and last.value in TRAILING_OPERATORS:
            return f"ends with dangling operator '{last.value}'"
    depth = 0
    for tok in tokens:
        if tok.kind != PUNCT:
            continue
        if tok.value in ("(", "[", "{"):
            depth += 1
        elif tok.value in (")", "]", "}"):
            depth -= 1
        elif tok.value == ";" and depth == 0:
            return "contains a statement separator ';'"
    return None


def check_structure(document: Document, analysis, lines: LineIndex) -> list[Diagnostic]:
    diagnostics = []
    for expression, context in walk_expressions(document):
        if context.kind not in ("attribute", "child"):
            continue
        line, column = _container_position(expression, lines)
        where = f" in <{context.node.tag}>" if context.node is not None and context.node.tag else ""
        if expression.is_empty():
            diagnostics.append(Diagnostic(
                kind="empty_expression", severity="critical",
                message=f"Empty expression container{where}",
                line=line, column=column,
                suggested_fix="Remove the {} or put an expression inside it",
                layer=1,
            ))
            continue
        if expression.is_blank():
            continue
        problem = container_problem(expression)
        if problem:
            diagnostics.append(Diagnostic(
                kind="invalid_expression", severity="critical",
                message=f"Expression container{where} {problem}",
                line=line, column=column,
                suggested_fix="Reduce the container to a single expression",
                layer=1,
            ))

    for declaration in analysis.duplicates:
        diagnostics.append(Diagnostic(
            kind="duplicate_declaration", severity="critical",
            message=f"'{declaration.name}' is declared more than once in the same scope",
            line=declaration.line, column=declaration.column,
            suggested_fix=f"Rename or remove the second declaration of '{declaration.name}'",
            layer=1,
        ))
    for ref in analysis.duplicate_exports:
        diagnostics.append(Diagnostic(
            kind="duplicate_export", severity="critical",
            message=f"'{ref.name}' is exported more than once",
            line=ref.line, column=ref.column,
            suggested_fix=f"Keep a single export of '{ref.name}'",
            layer=1,
        ))
    return diagnostics


# ── Layer 2: references ────────────────────────────────────────────


def check_references(analysis) -> list[Diagnostic]:
    diagnostics = []
    seen = set()
    for ref in analysis.unresolved:
        if ref.name in seen:
            continue
        seen.add(ref.name)
        diagnostics.append(Diagnostic(
            kind=UNDEFINED_REFERENCE, severity="critical",
            message=f"'{ref.name}' is not defined",
            line=ref.line, column=ref.column,
            suggested_fix=f"Declare it before use, e.g. const {ref.name} = ...;",
            layer=2,
        ))
    for ref in analysis.missing_imports:
        if ref.name in seen:
            continue
        seen.add(ref.name)
        module = IMPORT_SOURCES[ref.name]
        diagnostics.append(Diagnostic(
            kind=MISSING_IMPORT, severity="high",
            message=f"'{ref.name}' is used but not imported from '{module}'",
            line=ref.line, column=ref.column,
            suggested_fix=f'import {{ {ref.name} }} from "{module}";',
            layer=2,
        ))
    for declaration in analysis.unused:
        diagnostics.append(Diagnostic(
            kind="unused_declaration", severity="low",
            message=f"'{declaration.name}' is declared but never used",
            line=declaration.line, column=declaration.column,
            suggested_fix=f"Remove it, or rename it to _{declaration.name}",
            layer=2,
        ))
    return diagnostics


# ── Layer 4: templates ─────────────────────────────────────────────


def check_templates(document: Document, text: str, lines: LineIndex) -> list[Diagnostic]:
    diagnostics = []
    covered: list[tuple[int, int]] = []
    for pattern in PLACEHOLDER_PATTERNS:
        for match in pattern.finditer(text):
            if any(s <= match.start() < e for s, e in covered):
                continue
            covered.append(match.span())
            line, column = lines.position(match.start())
            diagnostics.append(Diagnostic(
                kind="unresolved_placeholder", severity="critical",
                message=f"Unresolved placeholder {match.group(0)}",
                line=line, column=column,
                suggested_fix="Replace the placeholder with a concrete value",
                layer=4,
            ))

    for match in PENDING_WORK_RE.finditer(text):
        line, column = lines.position(match.start())
        diagnostics.append(Diagnostic(
            kind="pending_work_marker", severity="medium",
            message=f"{match.group(1)} marker left in the composition",
            line=line, column=column,
            suggested_fix="Finish the pending work and remove the marker",
            layer=4,
        ))

    for expression, context in walk_expressions(document):
        if context.kind not in ("attribute", "child"):
            continue
        code = expression.text.strip()
        if code not in ("undefined", "null"):
            continue
        line, column = _container_position(expression, lines)
        if context.kind == "attribute":
            fix = f"Give '{context.attribute}' a concrete value or remove the attribute"
        else:
            fix = "Remove the container or render real content"
        diagnostics.append(Diagnostic(
            kind="null_expression", severity="critical",
            message=f"Expression container is literally {{{code}}}",
            line=line, column=column, suggested_fix=fix, layer=4,
        ))
    return diagnostics + check_style_quotes(document)


def check_style_quotes(document: Document) -> list[Diagnostic]:
    """Quote damage in string style values.

    An odd number of either quote in a font family breaks the CSS font
    list (critical); single and double quotes mixed in one value are
    reported as medium, as is a repeated unit such as `10pxpx`.
    """
    diagnostics = []
    for node in iter_nodes(document):
        style = node.style
        if style is None:
            continue
        for key, value in style.entries.items():
            if not isinstance(value, StringLiteral):
                continue
            text = value.value
            if normalize_style_key(key) == "fontFamily" and (
                    text.count('"') % 2 or text.count("'") % 2):
                cleaned = ", ".join(p.strip().strip("'\"") for p in text.split(","))
                diagnostics.append(Diagnostic(
                    kind="unbalanced_quotes", severity="critical",
                    message=f"style.{key} on <{node.tag}> has unbalanced quotes: {text}",
                    line=node.line, column=node.column,
                    suggested_fix=f"Use {json.dumps(cleaned)}", layer=4,
                ))
            elif '"' in text and "'" in text:
                diagnostics.append(Diagnostic(
                    kind="mixed_quotes", severity="medium",
                    message=f"style.{key} on <{node.tag}> mixes single and double quotes",
                    line=node.line, column=node.column,
                    suggested_fix="Use one quote style: " + json.dumps(text.replace("'", '"')),
                    layer=4,
                ))
            if DUPLICATED_UNIT_RE.search(text):
                diagnostics.append(Diagnostic(
                    kind="duplicated_unit", severity="medium",
                    message=f"style.{key} on <{node.tag}> repeats a CSS unit: {text}",
                    line=node.line, column=node.column,
                    suggested_fix="Use " + json.dumps(DUPLICATED_UNIT_RE.sub(r"\1\2", text)),
                    layer=4,
                ))
    return diagnostics


# ── Layer 5: timing ────────────────────────────────────────────────


def _position(lines: LineIndex, offset: int | None):
    if offset is None:
        return None, None
    return lines.position(offset)


def check_timing(document: Document, lines: LineIndex) -> list[Diagnostic]:
    diagnostics = []
    transforms = list(timeline_calls(document))

    for _, _, call in transforms:
        name = call.name.split(".")[-1]
        line, column = _position(lines, call.offset)
        if len(call.args) < 3:
            diagnostics.append(Diagnostic(
                kind="transform_arity", severity="critical",
                message=(
                    f"{name}() needs input, inputRange and outputRange "
                    f"(got {len(call.args)} argument(s))"
                ),
                line=line, column=column,
                suggested_fix=f"{name}(frame, [0, 30], [0, 1])",
                layer=5,
            ))
            continue
        inputs = parse_range(call.args[1])
        outputs = parse_range(call.args[2])
        if inputs is not None and outputs is not None and len(inputs) != len(outputs):
            diagnostics.append(Diagnostic(
                kind="range_length_mismatch", severity="critical",
                message=(
                    f"{name}() inputRange has {len(inputs)} values but "
                    f"outputRange has {len(outputs)}"
                ),
                line=line, column=column,
                suggested_fix="Give both ranges the same number of values",
                layer=5,
            ))
        numeric = inputs is not None and all(
            isinstance(v, (int, float)) for v in inputs
        )
        if numeric and not is_strictly_increasing(inputs):
            diagnostics.append(Diagnostic(
                kind="non_monotonic_range", severity="medium",
                message=f"{name}() inputRange {call.args[1]} is not strictly increasing",
                line=line, column=column,
                suggested_fix=f"Use {format_range(repaired_range(inputs))}",
                layer=5,
            ))
        if name == "interpolate" and outputs and any(is_color_value(v) for v in outputs):
            diagnostics.append(Diagnostic(
                kind="color_in_interpolate", severity="high",
                message="interpolate() output range holds colors",
                line=line, column=column,
                suggested_fix="Use interpolateColors() for color ranges",
                layer=5,
            ))

    if transforms and not _invokes_clock(document):
        _, _, first = transforms[0]
        line, column = _position(lines, first.offset)
        diagnostics.append(Diagnostic(
            kind="missing_clock", severity="critical",
            message=f"Timeline transforms are used but {CLOCK_ACCESSOR}() is never called",
            line=line, column=column,
            suggested_fix=f"const frame = {CLOCK_ACCESSOR}();",
            layer=5,
        ))

    diagnostics += _division_by_zero(document, lines)
    return diagnostics


def _invokes_clock(document: Document) -> bool:
    for expression, _ in walk_expressions(document):
        for call in expression.calls():
            if call.name.split(".")[-1] == CLOCK_ACCESSOR:
                return True
    return False


def _division_by_zero(document: Document, lines: LineIndex) -> list[Diagnostic]:
    diagnostics = []
    for expression, _ in walk_expressions(document):
        tokens = expression.code_tokens()
        for (part, tok), (_, following) in zip(tokens, tokens[1:]):
            if not (tok.kind == PUNCT and tok.value in ("/", "/=")):
                continue
            if following.kind != NUMBER or parse_number(following.value) != 0:
                continue
            base = expression.offset_of(part)
            line, column = _position(lines, None if base is None else base + tok.start)
            diagnostics.append(Diagnostic(
                kind="division_by_zero", severity="critical",
                message=f"Division by literal {following.value}",
                line=line, column=column,
                suggested_fix="Divide by a non-zero value or guard the divisor",
                layer=5,
            ))
    return diagnostics
