"""Structural tree for composition documents, and the text generator.

Tree shape:

  Document
    body: Expression            ordered parts: code strings and Nodes
  Node
    tag, attributes (ordered), children, self_closing, line, column
  children: TextSegment | Expression | Node

Attribute values are a tagged union decided once at construction:
StringLiteral, NumberLiteral, BooleanLiteral, ObjectLiteral (ordered
entries of further values) and ExpressionValue (an embedded Expression).

Parsed values remember their source text (`raw`). generate() reuses it
while the value is unchanged, so an untouched parse/generate round trip
reproduces the input. Values built or modified by mutation are rendered
canonically.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Iterator, Union

from .common import format_number, normalize_style_key, parse_number
from .lexer import (
    COMMENT, IDENT, KEYWORDS, NUMBER, PUNCT, STRING, TEMPLATE,
    Token, split_top_level, template_interpolations, tokenize,
)


# ── Attribute values ───────────────────────────────────────────────


@dataclass(frozen=True)
class StringLiteral:
    value: str
    raw: str | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class NumberLiteral:
    value: int | float
    raw: str | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class BooleanLiteral:
    """A boolean. A parsed valueless attribute has raw == ''."""

    value: bool
    raw: str | None = field(default=None, compare=False, repr=False)


@dataclass(eq=False)
class ObjectLiteral:
    entries: dict = field(default_factory=dict)
    raw: str | None = field(default=None, repr=False)
    _sig: str | None = field(default=None, repr=False)

    def get(self, key: str, default=None):
        """Entry lookup in the normalized style key space."""
        wanted = normalize_style_key(key)
        for name, value in self.entries.items():
            if normalize_style_key(name) == wanted:
                return value
        return default

    def to_python(self) -> dict:
        return {key: value_to_python(value) for key, value in self.entries.items()}


@dataclass(eq=False)
class ExpressionValue:
    expression: "Expression"
    braced: bool = True


AttributeValue = Union[
    StringLiteral, NumberLiteral, BooleanLiteral, ObjectLiteral, ExpressionValue,
]


def value_to_python(value):
    """Plain Python view of an attribute value (expressions as source text)."""
    if isinstance(value, ObjectLiteral):
        return value.to_python()
    if isinstance(value, ExpressionValue):
        return value.expression.text
    return value.value


# ── Children ───────────────────────────────────────────────────────


@dataclass
class TextSegment:
    text: str


@dataclass(frozen=True)
class CallSignature:
    """A call found in an expression's code.

    Spans are relative to the code part `part_index`; `args` hold the
    stripped argument texts and `arg_spans` their exact spans.
    """

    name: str
    args: list
    arg_spans: list
    part_index: int
    start: int
    end: int
    assigned_to: str | None = None
    offset: int | None = None


@dataclass(eq=False)
class Expression:
    """Expression container: code text with embedded elements.

    `offsets` holds the absolute source offset of each code part when the
    expression came from the parser (None for synthesized parts).
    """

    parts: list = field(default_factory=list)
    offsets: list = field(default_factory=list, repr=False)

    @property
    def text(self) -> str:
        return "".join(
            part if isinstance(part, str) else render_node(part)
            for part in self.parts
        )

    def offset_of(self, index: int) -> int | None:
        if index < len(self.offsets):
            return self.offsets[index]
        return None

    def nodes(self) -> list["Node"]:
        return [part for part in self.parts if isinstance(part, Node)]

    def code_tokens(self, comments: bool = False) -> list[tuple[int, Token]]:
        """(part_index, token) for every code part, in order."""
        result = []
        for index, part in enumerate(self.parts):
            if isinstance(part, str):
                for tok in tokenize(part, comments=comments):
                    result.append((index, tok))
        return result

    def is_empty(self) -> bool:
        """Nothing at all between the braces, not even a comment."""
        return not self.nodes() and not self.code_tokens(comments=True)

    def is_blank(self) -> bool:
        """Only comments (a JSX comment container)."""
        return not self.nodes() and not self.code_tokens()

    @property
    def references(self) -> set[str]:
        """Identifiers this expression reads, by a local token scan."""
        names = set()
        for index, part in enumerate(self.parts):
            if isinstance(part, Node):
                for node in iter_nodes(part):
                    root = component_root(node.tag)
                    if root:
                        names.add(root)
                continue
            names.update(_free_identifiers(tokenize(part)))
        return names

    def calls(self) -> list[CallSignature]:
        """Call signatures whose argument list lies in one code part."""
        found = []
        for index, part in enumerate(self.parts):
            if not isinstance(part, str):
                continue
            tokens = tokenize(part)
            base = self.offset_of(index)
            for i, tok in enumerate(tokens):
                if not (tok.kind == IDENT and i + 1 < len(tokens)
                        and tokens[i + 1].is_punct("(")):
                    continue
                if tok.value in KEYWORDS:
                    continue
                first = i
                while (first >= 2 and tokens[first - 1].is_punct(".", "?.")
                       and tokens[first - 2].kind == IDENT):
                    first -= 2
                if first >= 1 and (tokens[first - 1].is_punct(".", "?.")
                                   or tokens[first - 1].is_ident("function")):
                    continue
                close = matching_close(tokens, i + 1)
                if close is None:
                    continue
                inner = tokens[i + 2:close]
                args, spans = [], []
                if inner:
                    for group in split_top_level(inner):
                        if not group:
                            continue
                        s, e = group[0].start, group[-1].end
                        args.append(part[s:e])
                        spans.append((s, e))
                name = "".join(t.value for t in tokens[first:i + 1])
                found.append(CallSignature(
                    name=name,
                    args=args,
                    arg_spans=spans,
                    part_index=index,
                    start=tokens[first].start,
                    end=tokens[close].end,
                    assigned_to=_assignment_target(tokens, first),
                    offset=None if base is None else base + tokens[first].start,
                ))
        return found

    def replace_span(self, part_index: int, start: int, end: int, text: str) -> None:
        """Replace part[start:end] of a code part in place."""
        part = self.parts[part_index]
        if not isinstance(part, str):
            raise ValueError(f"Part {part_index} is an element, not code")
        self.parts[part_index] = part[:start] + text + part[end:]

    def splice(self, part_index: int, position: int, other: "Expression") -> None:
        """Insert the parts of `other` at `position` inside a code part."""
        part = self.parts[part_index]
        if not isinstance(part, str):
            raise ValueError(f"Part {part_index} is an element, not code")
        base = self.offset_of(part_index)
        merged = [part[:position], *other.parts, part[position:]]
        parts, offsets = [], []
        for index, piece in enumerate(merged):
            if isinstance(piece, str) and parts and isinstance(parts[-1], str):
                parts[-1] += piece
                continue
            parts.append(piece)
            offsets.append(base if index == 0 else None)
        padded = list(self.offsets) + [None] * (len(self.parts) - len(self.offsets))
        self.parts[part_index:part_index + 1] = parts
        padded[part_index:part_index + 1] = offsets
        self.offsets = padded


def matching_close(tokens: list[Token], open_index: int) -> int | None:
    """Index of the bracket closing tokens[open_index], or None."""
    depth = 0
    for j in range(open_index, len(tokens)):
        tok = tokens[j]
        if tok.kind != PUNCT:
            continue
        if tok.value in "([{":
            depth += 1
        elif tok.value in ")]}":
            depth -= 1
            if depth == 0:
                return j
    return None


def _assignment_target(tokens: list[Token], first: int) -> str | None:
    if first >= 2 and tokens[first - 1].is_punct("=", ":") \
            and tokens[first - 2].kind == IDENT:
        return tokens[first - 2].value
    return None


def _free_identifiers(tokens: list[Token]) -> set[str]:
    names = set()
    for i, tok in enumerate(tokens):
        if tok.kind == TEMPLATE:
            for start, end in template_interpolations(tok):
                inner = tok.value[start - tok.start:end - tok.start]
                names.update(_free_identifiers(tokenize(inner)))
            continue
        if tok.kind != IDENT or tok.value in KEYWORDS:
            continue
        if i > 0 and tokens[i - 1].is_punct(".", "?."):
            continue
        if i + 1 < len(tokens) and tokens[i + 1].is_punct(":") \
                and i > 0 and tokens[i - 1].is_punct("{", ","):
            continue
        names.add(tok.value)
    return names


def component_root(tag: str) -> str | None:
    """Identifier a tag refers to: 'Foo' for Foo and Foo.Bar; None for html."""
    if not tag:
        return None
    root = re.split(r"[.:]", tag)[0]
    if "." in tag or root[:1].isupper():
        return root
    return None


# ── Nodes and documents ────────────────────────────────────────────


@dataclass(eq=False)
class Node:
    tag: str
    attributes: dict = field(default_factory=dict)
    children: list = field(default_factory=list)
    self_closing: bool = False
    line: int | None = None
    column: int | None = None
    raw_open: str | None = field(default=None, repr=False)
    _open_sig: str | None = field(default=None, repr=False)

    @property
    def is_fragment(self) -> bool:
        return self.tag == ""

    def get(self, name: str, default=None):
        return self.attributes.get(name, default)

    @property
    def style(self) -> ObjectLiteral | None:
        value = self.attributes.get("style")
        return value if isinstance(value, ObjectLiteral) else None

    def text_content(self) -> str:
        """Concatenated text of all descendant TextSegments."""
        pieces = []
        for child in self.children:
            if isinstance(child, TextSegment):
                pieces.append(child.text)
            elif isinstance(child, Node):
                pieces.append(child.text_content())
            elif isinstance(child, Expression):
                pieces.extend(n.text_content() for n in child.nodes())
        return "".join(pieces)


@dataclass(eq=False)
class Document:
    """Root of one composition tree. `source` is the text it was parsed from."""

    body: Expression
    source: str = ""

    def nodes(self) -> Iterator[Node]:
        return iter_nodes(self)

    @property
    def root(self) -> Node | None:
        """Outermost element of the composition (first top-level node)."""
        for _, node in _top_level_nodes(self.body):
            return node
        return None


def _top_level_nodes(expression: Expression):
    for index, part in enumerate(expression.parts):
        if isinstance(part, Node):
            yield index, part


# ── Walkers ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ExprContext:
    """Where an expression sits: body, attribute, style entry, or child."""

    kind: str
    node: Node | None = None
    attribute: str | None = None
    key: str | None = None


def iter_nodes(root) -> Iterator[Node]:
    """Pre-order walk over every Node under root, in document order."""
    if isinstance(root, Document):
        root = root.body
    if isinstance(root, Expression):
        for part in root.parts:
            if isinstance(part, Node):
                yield from iter_nodes(part)
        return
    yield root
    for value in root.attributes.values():
        yield from _value_nodes(value)
    for child in root.children:
        if isinstance(child, (Node, Expression)):
            yield from iter_nodes(child)


def _value_nodes(value) -> Iterator[Node]:
    if isinstance(value, ExpressionValue):
        yield from iter_nodes(value.expression)
    elif isinstance(value, ObjectLiteral):
        for entry in value.entries.values():
            yield from _value_nodes(entry)


def walk_expressions(root, context: ExprContext | None = None):
    """Yield (expression, context) for every expression, in document order."""
    if isinstance(root, Document):
        yield from walk_expressions(root.body, ExprContext("body"))
        return
    if isinstance(root, Expression):
        yield root, context or ExprContext("body")
        for part in root.parts:
            if isinstance(part, Node):
                yield from walk_expressions(part)
        return
    for name, value in root.attributes.items():
        yield from _walk_value(value, root, name, None)
    for child in root.children:
        if isinstance(child, Node):
            yield from walk_expressions(child)
        elif isinstance(child, Expression):
            yield from walk_expressions(child, ExprContext("child", root))


def _walk_value(value, node: Node, attribute: str, key: str | None):
    if isinstance(value, ExpressionValue):
        kind = "attribute" if key is None else "entry"
        yield from walk_expressions(
            value.expression, ExprContext(kind, node, attribute, key),
        )
    elif isinstance(value, ObjectLiteral):
        for entry_key, entry in value.entries.items():
            yield from _walk_value(entry, node, attribute, entry_key)


def find_parent(root, target: Node):
    """Locate target: (container_list, index, owner) or None if absent.

    owner is the Expression or Node whose list holds target.
    """
    if isinstance(root, Document):
        root = root.body
    if isinstance(root, Expression):
        for index, part in enumerate(root.parts):
            if part is target:
                return root.parts, index, root
            if isinstance(part, Node):
                found = find_parent(part, target)
                if found:
                    return found
        return None
    for value in root.attributes.values():
        for expression in _value_expressions(value):
            found = find_parent(expression, target)
            if found:
                return found
    for index, child in enumerate(root.children):
        if child is target:
            return root.children, index, root
        if isinstance(child, (Node, Expression)):
            found = find_parent(child, target)
            if found:
                return found
    return None


def _value_expressions(value):
    if isinstance(value, ExpressionValue):
        yield value.expression
    elif isinstance(value, ObjectLiteral):
        for entry in value.entries.values():
            yield from _value_expressions(entry)


# ── Generator ──────────────────────────────────────────────────────

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$]*$")


def generate(document: Document) -> str:
    """Serialize a document tree back to text."""
    return document.body.text


def render_node(node: Node) -> str:
    if node.is_fragment:
        return "<>" + "".join(render_child(c) for c in node.children) + "</>"
    opening = node.raw_open
    if opening is None or node._open_sig != opening_signature(node):
        attrs = "".join(" " + render_attribute(n, v) for n, v in node.attributes.items())
        opening = f"<{node.tag}{attrs}"
        if node.self_closing and not node.children:
            opening += " "
    if node.self_closing and not node.children:
        return opening + "/>"
    inner = "".join(render_child(c) for c in node.children)
    return f"{opening}>{inner}</{node.tag}>"


def opening_signature(node: Node) -> str:
    """Content fingerprint of a node's opening tag, raw text ignored."""
    return node.tag + "\x00" + "\x00".join(
        render_attribute(n, v) for n, v in node.attributes.items()
    )


def render_child(child) -> str:
    if isinstance(child, TextSegment):
        return child.text
    if isinstance(child, Node):
        return render_node(child)
    return "{" + child.text + "}"


def render_attribute(name: str, value) -> str:
    if name.startswith("..."):
        return "{" + value.expression.text + "}"
    if isinstance(value, BooleanLiteral) and value.value and not value.raw:
        return name
    return f"{name}={render_attribute_value(value)}"


def render_attribute_value(value) -> str:
    """Text after '=' for an attribute."""
    if isinstance(value, ExpressionValue):
        if not value.braced:
            return value.expression.text
        return "{" + value.expression.text + "}"
    if value.raw:
        if isinstance(value, ObjectLiteral):
            if value._sig == object_signature(value):
                return value.raw
        else:
            return value.raw
    if isinstance(value, StringLiteral):
        return '"' + value.value.replace('"', "&quot;") + '"'
    if isinstance(value, ObjectLiteral):
        return "{" + _render_object(value) + "}"
    return "{" + render_value(value) + "}"


def render_value(value) -> str:
    """Source text of a value inside code (an object entry or argument)."""
    if isinstance(value, ExpressionValue):
        return value.expression.text
    if isinstance(value, ObjectLiteral):
        if value.raw and value._sig == object_signature(value):
            return value.raw
        return _render_object(value)
    if value.raw:
        return value.raw
    if isinstance(value, StringLiteral):
        return json.dumps(value.value)
    if isinstance(value, BooleanLiteral):
        return "true" if value.value else "false"
    return format_number(value.value)


def object_signature(value: ObjectLiteral) -> str:
    return "\x00".join(
        f"{key}\x01{render_value(entry)}" for key, entry in value.entries.items()
    )


def _render_object(value: ObjectLiteral) -> str:
    if not value.entries:
        return "{}"
    items = []
    for key, entry in value.entries.items():
        if key.startswith("..."):
            items.append(key)
        else:
            items.append(f"{_render_key(key)}: {render_value(entry)}")
    return "{ " + ", ".join(items) + " }"


def _render_key(key: str) -> str:
    if _IDENTIFIER_RE.match(key) or key.startswith("["):
        return key
    return json.dumps(key)


# ── Object literal decomposition ───────────────────────────────────


def parse_object_literal(code: str, base: int | None = None) -> dict | None:
    """Split '{ a: 1, b: x }' source into ordered entry values.

    Returns None when the text is not a plain object literal (methods,
    getters, or anything that is not `key: value`, shorthand or spread).
    Entry values keep their raw text. `base` is the source offset of
    `code`, used to position entry expressions.
    """
    stripped = code.strip()
    if base is not None:
        base += len(code) - len(code.lstrip())
    if not (stripped.startswith("{") and stripped.endswith("}")):
        return None
    tokens = tokenize(stripped)
    if not tokens or matching_close(tokens, 0) != len(tokens) - 1:
        return None
    entries = {}
    for group in split_top_level(tokens[1:-1]):
        if not group:
            continue
        first, last = group[0], group[-1]
        if first.is_punct("..."):
            spread = stripped[first.start:last.end]
            entries[spread] = ExpressionValue(
                Expression([spread], [_shift(base, first.start)])
            )
            continue
        if len(group) == 1 and first.kind == IDENT:
            entries[first.value] = ExpressionValue(
                Expression([first.value], [_shift(base, first.start)])
            )
            continue
        colon = _entry_colon(group)
        if colon is None or colon + 1 >= len(group):
            return None
        key = _entry_key(stripped, group[:colon])
        if key is None:
            return None
        value_text = stripped[group[colon + 1].start:last.end]
        entries[key] = parse_entry_value(value_text, _shift(base, group[colon + 1].start))
    return entries


def _shift(base: int | None, offset: int) -> int | None:
    return None if base is None else base + offset


def _entry_colon(group: list[Token]) -> int | None:
    depth = 0
    for index, tok in enumerate(group):
        if tok.kind != PUNCT:
            continue
        if tok.value in "([{":
            depth += 1
        elif tok.value in ")]}":
            depth -= 1
        elif tok.value == ":" and depth == 0:
            return index
    return None


def _entry_key(text: str, key_tokens: list[Token]) -> str | None:
    if len(key_tokens) == 1:
        tok = key_tokens[0]
        if tok.kind in (IDENT, NUMBER):
            return tok.value
        if tok.kind == STRING:
            return tok.value[1:-1]
        return None
    if key_tokens and key_tokens[0].is_punct("[") and key_tokens[-1].is_punct("]"):
        return text[key_tokens[0].start:key_tokens[-1].end]
    return None


def parse_entry_value(text: str, base: int | None = None):
    """Classify an object entry's value text into an AttributeValue."""
    if base is not None:
        base += len(text) - len(text.lstrip())
    text = text.strip()
    number = parse_number(text)
    if number is not None:
        return NumberLiteral(number, raw=text)
    if text in ("true", "false"):
        return BooleanLiteral(text == "true", raw=text)
    tokens = tokenize(text)
    if len(tokens) == 1 and tokens[0].kind == STRING:
        return StringLiteral(_unquote(tokens[0].value), raw=text)
    if text.startswith("{"):
        entries = parse_object_literal(text, base)
        if entries is not None:
            obj = ObjectLiteral(entries, raw=text)
            obj._sig = object_signature(obj)
            return obj
    return ExpressionValue(Expression([text], [base]))


def _unquote(literal: str) -> str:
    body = literal[1:-1]
    return re.sub(r"\\(.)", lambda m: {"n": "\n", "t": "\t"}.get(m.group(1), m.group(1)), body)

