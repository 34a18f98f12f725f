"""Array-builder conversion: imperative push loops -> frame-driven generators.

A composition cannot depend on mutable runtime state, so data assembled
with `NAME.push({ ... })` calls is rewritten into a generator that is a
pure function of the timeline clock and the element index:

    const particles = [];
    for (let i = 0; i < 40; i++) {
      particles.push({ x: Math.random() * 800, color: pick() });
    }

becomes

    const particles = Array.from({ length: 40 }, (_, i) => ({
      x: Math.sin(frame * 0.02 + i * 0.3) * 200 + 400,
      color: `hsl(${(i * 137.5 + frame * 2) % 360}, 70%, 60%)`,
    }));

Entry values are classified by property name (scenecompose.semantics);
unknown names keep their original expression. The array's declaration
may be `const NAME = []` or a `useState([])` pair, in which case setter
calls are removed. Push statements are deleted, along with a loop or
effect hook whose body held nothing else. Rewrites are token-span edits
computed from the lexer, never pattern substitution on raw text.
"""

import copy
import logging
from dataclasses import dataclass, field

from .lexer import IDENT, NUMBER, Token, split_top_level, tokenize
from .semantics import CLOCK, classify, synthesize
from .tree import (
    Document, matching_close, parse_object_literal, render_value, walk_expressions,
)

logger = logging.getLogger(__name__)

DEFAULT_LENGTH = 50
DECLARATION_KEYWORDS = ("const", "let", "var")
CLOCK_DECLARATION = f"const {CLOCK} = useCurrentFrame();"


@dataclass
class ConversionResult:
    document: Document
    changes: list = field(default_factory=list)
    warnings: list = field(default_factory=list)
    converted: list = field(default_factory=list)


@dataclass
class _Push:
    name: str
    first: int
    last: int
    entries: dict


@dataclass
class _Declaration:
    kind: str              # "plain" or "state"
    first: int
    last: int
    name: str
    setter: str | None = None


def convert_array_builders(document: Document) -> ConversionResult:
    """Rewrite every push-built array in the document. Pure."""
    working = copy.deepcopy(document)
    result = ConversionResult(document=working)
    insert_clock = not declares(working, CLOCK)
    for expression, _ in list(walk_expressions(working)):
        for index, part in enumerate(expression.parts):
            if not isinstance(part, str):
                continue
            new_text, clock_added = _convert_code(part, result, insert_clock)
            if new_text != part:
                expression.parts[index] = new_text
            if clock_added:
                insert_clock = False
    return result


def find_array_builders(document: Document) -> list[str]:
    """Names of arrays filled by push calls with object-literal arguments."""
    names = []
    for expression, _ in walk_expressions(document):
        for part in expression.parts:
            if not isinstance(part, str):
                continue
            for push in _find_pushes(part, tokenize(part), []):
                if push.name not in names:
                    names.append(push.name)
    return names


def declares(document: Document, name: str) -> bool:
    """True if any code declares `name` with const/let/var."""
    for expression, _ in walk_expressions(document):
        tokens = [tok for _, tok in expression.code_tokens()]
        for prev, tok in zip(tokens, tokens[1:]):
            if tok.is_ident(name) and prev.is_ident(*DECLARATION_KEYWORDS):
                return True
    return False


# ── Detection ──────────────────────────────────────────────────────


def _find_pushes(text: str, tokens: list[Token], warnings: list) -> list[_Push]:
    pushes = []
    for k in range(len(tokens) - 3):
        name, dot, method, paren = tokens[k:k + 4]
        if not (name.kind == IDENT and dot.is_punct(".") and method.is_ident("push")
                and paren.is_punct("(")):
            continue
        if k > 0 and tokens[k - 1].is_punct(".", "?."):
            continue
        close = matching_close(tokens, k + 3)
        if close is None or close == k + 4:
            continue
        arg_open = k + 4
        if not tokens[arg_open].is_punct("{") or matching_close(tokens, arg_open) != close - 1:
            continue
        entries = parse_object_literal(text[tokens[arg_open].start:tokens[close - 1].end])
        if entries is None:
            warnings.append(
                f"{name.value}.push(...) argument is not a plain object literal; skipped"
            )
            continue
        pushes.append(_Push(name.value, k, close, entries))
    return pushes


def _find_declarations(tokens: list[Token]) -> list[_Declaration]:
    found = []
    n = len(tokens)
    for k, tok in enumerate(tokens):
        if not tok.is_ident(*DECLARATION_KEYWORDS) or k + 1 >= n:
            continue
        nxt = tokens[k + 1]
        if nxt.kind == IDENT:
            j = k + 2
            if j < n and tokens[j].is_punct(":"):
                while j < n and not tokens[j].is_punct("=", ";"):
                    j += 1
            if (j + 2 < n and tokens[j].is_punct("=") and tokens[j + 1].is_punct("[")
                    and tokens[j + 2].is_punct("]")):
                found.append(_Declaration("plain", k, _with_semicolon(tokens, j + 2), nxt.value))
        elif nxt.is_punct("[") and k + 6 < n:
            value, comma, setter, close, eq = tokens[k + 2:k + 7]
            if not (value.kind == IDENT and comma.is_punct(",") and setter.kind == IDENT
                    and close.is_punct("]") and eq.is_punct("=")):
                continue
            j = k + 7
            if j + 2 < n and tokens[j].is_ident("React") and tokens[j + 1].is_punct("."):
                j += 2
            if j >= n or not tokens[j].is_ident("useState"):
                continue
            j += 1
            if j < n and tokens[j].is_punct("<"):
                while j < n and not tokens[j].is_punct(">"):
                    j += 1
                j += 1
            if j >= n or not tokens[j].is_punct("("):
                continue
            call_close = matching_close(tokens, j)
            if call_close is None:
                continue
            found.append(_Declaration(
                "state", k, _with_semicolon(tokens, call_close), value.value, setter.value,
            ))
    return found


def _with_semicolon(tokens: list[Token], index: int) -> int:
    if index + 1 < len(tokens) and tokens[index + 1].is_punct(";"):
        return index + 1
    return index


def _setter_calls(tokens: list[Token], setter: str, argument: str | None = None):
    """(first, last) token ranges of `setter(...)` statements."""
    ranges = []
    for k in range(len(tokens) - 1):
        if not (tokens[k].is_ident(setter) and tokens[k + 1].is_punct("(")):
            continue
        if k > 0 and (tokens[k - 1].is_punct(".") or tokens[k - 1].kind == IDENT):
            continue
        close = matching_close(tokens, k + 1)
        if close is None:
            continue
        if argument is not None and not (
            close == k + 3 and tokens[k + 2].is_ident(argument)
        ):
            continue
        ranges.append((k, _with_semicolon(tokens, close)))
    return ranges


def _enclosing_loop(tokens: list[Token], inside: int):
    """Innermost for-loop around token `inside`.

    Returns (first, last, body_open, body_close, header_close) or None.
    body_open/body_close are None for a single-statement body.
    """
    best = None
    for k in range(len(tokens) - 1):
        if not (tokens[k].is_ident("for") and tokens[k + 1].is_punct("(")):
            continue
        header_close = matching_close(tokens, k + 1)
        if header_close is None or header_close + 1 >= len(tokens):
            continue
        if tokens[header_close + 1].is_punct("{"):
            body_open = header_close + 1
            body_close = matching_close(tokens, body_open)
            if body_close is None:
                continue
            last = body_close
        else:
            body_open = body_close = None
            last = header_close + 1
            while last < len(tokens) and not tokens[last].is_punct(";"):
                last += 1
        if k < inside <= last:
            best = (k, last, body_open, body_close, header_close)
    return best


def _loop_bound(tokens: list[Token], loop) -> tuple[int | None, str | None]:
    """(element count, index variable) from a for-loop header."""
    if loop is None:
        return None, None
    first, _, _, _, header_close = loop
    groups = split_top_level(tokens[first + 2:header_close], ";")
    if len(groups) != 3:
        return None, None
    init, condition, _ = groups
    index_var = None
    for a, b in zip(init, init[1:]):
        if a.is_ident(*DECLARATION_KEYWORDS) and b.kind == IDENT:
            index_var = b.value
            break
    if len(condition) != 3 or condition[0].kind != IDENT \
            or not condition[1].is_punct("<", "<="):
        return None, index_var
    bound = condition[2]
    value = None
    if bound.kind == NUMBER:
        value = bound.value
    elif bound.kind == IDENT:
        for k in range(len(tokens) - 3):
            if (tokens[k].is_ident(*DECLARATION_KEYWORDS) and tokens[k + 1].is_ident(bound.value)
                    and tokens[k + 2].is_punct("=") and tokens[k + 3].kind == NUMBER):
                value = tokens[k + 3].value
                break
    if value is None or not value.isdigit():
        return None, index_var
    count = int(value)
    if condition[1].value == "<=":
        count += 1
    return count, index_var


def _effect_hook(tokens: list[Token], inside: int):
    """useEffect(() => { ... }) statement around token `inside`.

    Returns (first, last, body_open, body_close) or None.
    """
    for k in range(len(tokens) - 1):
        if not (tokens[k].is_ident("useEffect") and tokens[k + 1].is_punct("(")):
            continue
        close = matching_close(tokens, k + 1)
        if close is None or not k < inside < close:
            continue
        for j in range(k + 2, close):
            if tokens[j].is_punct("=>") and tokens[j + 1].is_punct("{"):
                body_close = matching_close(tokens, j + 1)
                first = k - 2 if k >= 2 and tokens[k - 1].is_punct(".") else k
                return first, _with_semicolon(tokens, close), j + 1, body_close
    return None


# ── Rewriting ──────────────────────────────────────────────────────


def _convert_code(text: str, result: ConversionResult, insert_clock: bool) -> tuple[str, bool]:
    tokens = tokenize(text)
    pushes = _find_pushes(text, tokens, result.warnings)
    if not pushes:
        return text, False

    by_name: dict[str, list[_Push]] = {}
    for push in pushes:
        by_name.setdefault(push.name, []).append(push)
    declarations = _find_declarations(tokens)

    replacements = []          # (first_token, last_token, text)
    removals = []              # (first_token, last_token)
    clock_added = False

    for name, group in by_name.items():
        own = next((d for d in declarations if d.name == name), None)
        if own is None:
            result.warnings.append(f"No declaration found for array '{name}'; left unchanged")
            continue
        target = own
        if own.kind == "plain":
            for state in (d for d in declarations if d.kind == "state"):
                calls = _setter_calls(tokens, state.setter, argument=name)
                if calls:
                    target = state
                    removals.append((own.first, own.last))
                    removals.extend(calls)
                    break
        if target.kind == "state":
            removals.extend(
                r for r in _setter_calls(tokens, target.setter) if r not in removals
            )

        push_ranges = [(p.first, _with_semicolon(tokens, p.last)) for p in group]
        loop = _enclosing_loop(tokens, group[0].first)
        count, index_var = _loop_bound(tokens, loop)
        if count is None:
            count = DEFAULT_LENGTH
            result.warnings.append(
                f"No loop bound found for '{name}'; generating {DEFAULT_LENGTH} elements"
            )
        index_var = index_var or "i"

        if loop is not None and loop[2] is not None and _all_removed(
            range(loop[2] + 1, loop[3]), push_ranges,
        ):
            removals.append((loop[0], loop[1]))
        else:
            removals.extend(push_ranges)

        effect = _effect_hook(tokens, group[0].first)
        if effect is not None and _all_removed(range(effect[2] + 1, effect[3]), removals):
            removals.append((effect[0], effect[1]))

        entries = group[0].entries
        for other in group[1:]:
            if list(other.entries) != list(entries):
                result.warnings.append(
                    f"'{name}' is pushed with differing shapes; using the first"
                )
                break

        indent = _indent_at(text, tokens[target.first].start)
        generator, roles = _generator(target.name, entries, count, index_var, indent)
        if insert_clock and not clock_added and CLOCK in generator:
            generator = f"{CLOCK_DECLARATION}\n{indent}{generator}"
            clock_added = True
            result.changes.append(f"Declared the timeline clock: {CLOCK_DECLARATION}")
        replacements.append((target.first, target.last, generator))

        result.converted.append(target.name)
        result.changes.append(
            f"Converted {name}.push(...) into a frame-driven generator "
            f"'{target.name}' ({count} elements)"
        )
        for key, role in roles:
            result.changes.append(f"  {key}: {role.value}")
        logger.debug("converted array builder %s -> %s", name, target.name)

    return _apply(text, tokens, replacements, removals), clock_added


def _all_removed(indices, ranges) -> bool:
    covered = set()
    for first, last in ranges:
        covered.update(range(first, last + 1))
    return all(i in covered for i in indices)


def _generator(name: str, entries: dict, count: int, index_var: str,
               indent: str) -> tuple[str, list]:
    lines = [f"const {name} = Array.from({{ length: {count} }}, (_, {index_var}) => ({{"]
    roles = []
    for key, value in entries.items():
        if key.startswith("..."):
            lines.append(f"{indent}  {key},")
            continue
        role = classify(key)
        original = render_value(value)
        expression = synthesize(role, index_var, original=original, name=key)
        roles.append((key, role))
        lines.append(f"{indent}  {key}: {expression},")
    lines.append(f"{indent}}}));")
    return "\n".join(lines), roles


def _indent_at(text: str, offset: int) -> str:
    line_start = text.rfind("\n", 0, offset) + 1
    prefix = text[line_start:offset]
    return prefix if prefix.strip() == "" else ""


def _line_span(text: str, start: int, end: int) -> tuple[int, int]:
    """Widen a statement span to its whole line when it stands alone."""
    s = start
    while s > 0 and text[s - 1] in " \t":
        s -= 1
    e = end
    while e < len(text) and text[e] in " \t":
        e += 1
    if (s == 0 or text[s - 1] == "\n") and (e == len(text) or text[e] == "\n"):
        return s, min(e + 1, len(text))
    return start, end


def _apply(text: str, tokens: list[Token], replacements: list, removals: list) -> str:
    edits = []
    for first, last, new_text in replacements:
        edits.append((tokens[first].start, tokens[last].end, new_text))
    spans = sorted({(first, last) for first, last in removals})
    kept = [
        (a, b) for a, b in spans
        if not any((c <= a and b <= d) and (c, d) != (a, b) for c, d in spans)
    ]
    for first, last in kept:
        start, end = _line_span(text, tokens[first].start, tokens[last].end)
        edits.append((start, end, ""))
    for start, end, new_text in sorted(edits, key=lambda e: e[0], reverse=True):
        text = text[:start] + new_text + text[end:]
    return text
