"""Document parser: composition text -> structural tree.

The document is a TSX-style module. Code regions are tokenized with
scenecompose.lexer; an element starts wherever '<' appears in expression
position followed by a tag-name character or '>' (a fragment). Elements
may nest inside expression containers, which may nest inside elements,
to any depth.

parse() either returns a complete Document or raises ParseError. It never
returns a partial tree.
"""

import re

from .common import LineIndex, parse_number
from .lexer import (
    COMMENT, CLOSERS, IDENT, OPENERS, PUNCT,
    LexError, Lexer, Token,
)
from .tree import (
    BooleanLiteral, Document, Expression, ExpressionValue, Node,
    NumberLiteral, ObjectLiteral, StringLiteral, TextSegment,
    object_signature, opening_signature, parse_object_literal,
)


# Parse error kinds.
UNCLOSED_ELEMENT = "unclosed_element"
UNTERMINATED_LITERAL = "unterminated_literal"
UNBALANCED_DELIMITER = "unbalanced_delimiter"
MISMATCHED_TAG = "mismatched_tag"

# Tokens after which '<' opens an element rather than comparing.
ELEMENT_PRECEDERS = {
    "(", ",", "=", ":", ";", "?", "[", "{", "=>", "&&", "||", "??", "!",
    "return", "default", "yield", "case",
}

_TAG_NAME_RE = re.compile(r"[A-Za-z_$][\w$\-]*(?:[.:][A-Za-z_$][\w$\-]*)*")
_ATTR_NAME_RE = re.compile(r"[A-Za-z_$][\w$\-]*(?::[A-Za-z_$][\w$\-]*)?")


class ParseError(ValueError):
    """Malformed composition text. `kind` is one of the parse error kinds."""

    def __init__(self, message: str, line: int, column: int, kind: str):
        super().__init__(f"{message} (line {line}, column {column})")
        self.message = message
        self.line = line
        self.column = column
        self.kind = kind


def parse(text: str) -> Document:
    """Parse composition text into a Document.

    Raises:
        ParseError: unbalanced delimiters, unterminated literal or comment,
            unclosed or mismatched element.
    """
    parser = _Parser(text)
    body = parser.parse_code(closer=None, opened_at=0)
    return Document(body=body, source=text)


def parse_expression(text: str) -> Expression:
    """Parse a free-standing code fragment (which may contain elements)."""
    return _Parser(text).parse_code(closer=None, opened_at=0)


def parse_element(text: str) -> Node:
    """Parse text holding exactly one element, e.g. '<Title size={3} />'."""
    expression = parse_expression(text.strip())
    nodes = expression.nodes()
    leftover = "".join(p for p in expression.parts if isinstance(p, str)).strip()
    if len(nodes) != 1 or leftover:
        raise ValueError(f"Expected a single element, got: {text!r}")
    return nodes[0]


def element_allowed(prev: Token | None) -> bool:
    """True when '<' after `prev` is in expression position."""
    if prev is None:
        return True
    if prev.kind == PUNCT or prev.kind == IDENT:
        return prev.value in ELEMENT_PRECEDERS
    return False


class _Parser:

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.lines = LineIndex(text)

    def error(self, message: str, offset: int, kind: str) -> ParseError:
        line, column = self.lines.position(offset)
        return ParseError(message, line, column, kind)

    # ── Code regions ──────────────────────────────────────────────

    def parse_code(self, closer: str | None, opened_at: int) -> Expression:
        """Parse code up to `closer` at depth 0 (or the end of text).

        On return self.pos is just past the closer.
        """
        text = self.text
        parts, offsets = [], []
        segment_start = self.pos
        stack: list[tuple[str, int]] = []
        prev: Token | None = None
        lexer = Lexer(text, self.pos)

        while True:
            try:
                tok = lexer.next_token(prev)
            except LexError as exc:
                raise self.error(exc.message, exc.offset, UNTERMINATED_LITERAL)
            if tok is None:
                if stack:
                    char, at = stack[-1]
                    raise self.error(f"Unclosed '{char}'", at, UNBALANCED_DELIMITER)
                if closer is not None:
                    raise self.error(
                        "Unclosed expression container '{'", opened_at,
                        UNBALANCED_DELIMITER,
                    )
                parts.append(text[segment_start:])
                offsets.append(segment_start)
                self.pos = len(text)
                return Expression(parts, offsets)
            if tok.kind == COMMENT:
                continue

            if tok.kind == PUNCT and tok.value in OPENERS:
                stack.append((tok.value, tok.start))
            elif tok.kind == PUNCT and tok.value in CLOSERS:
                if not stack:
                    if closer is not None and tok.value == closer:
                        parts.append(text[segment_start:tok.start])
                        offsets.append(segment_start)
                        self.pos = tok.end
                        return Expression(parts, offsets)
                    raise self.error(
                        f"Unexpected '{tok.value}'", tok.start, UNBALANCED_DELIMITER,
                    )
                char, at = stack.pop()
                if OPENERS[char] != tok.value:
                    raise self.error(
                        f"'{char}' at offset {at} closed by '{tok.value}'",
                        tok.start, UNBALANCED_DELIMITER,
                    )
            elif tok.is_punct("<") and element_allowed(prev) and self._starts_element(tok.end):
                parts.append(text[segment_start:tok.start])
                offsets.append(segment_start)
                parts.append(self.parse_element(tok.start))
                offsets.append(None)
                segment_start = self.pos
                lexer.pos = self.pos
                # An element is an operand: '<' after it compares, '/' divides.
                prev = Token(PUNCT, ")", tok.start, self.pos)
                continue
            prev = tok

    def _starts_element(self, offset: int) -> bool:
        if offset >= len(self.text):
            return False
        ch = self.text[offset]
        return ch == ">" or ch.isalpha() or ch in "_$"

    # ── Elements ──────────────────────────────────────────────────

    def _skip_space(self) -> None:
        text = self.text
        while self.pos < len(text) and text[self.pos].isspace():
            self.pos += 1

    def _peek(self, ahead: int = 0) -> str:
        index = self.pos + ahead
        return self.text[index] if index < len(self.text) else ""

    def parse_element(self, start: int) -> Node:
        """Parse an element whose '<' is at `start`; self.pos ends past it."""
        text = self.text
        line, column = self.lines.position(start)
        self.pos = start + 1

        if self._peek() == ">":
            self.pos += 1
            node = Node(tag="", line=line, column=column)
            node.children = self._parse_children(node, start)
            return node

        match = _TAG_NAME_RE.match(text, self.pos)
        if not match:
            raise self.error("Expected a tag name", self.pos, UNCLOSED_ELEMENT)
        node = Node(tag=match.group(0), line=line, column=column)
        self.pos = match.end()

        while True:
            self._skip_space()
            ch = self._peek()
            if not ch:
                raise self.error(
                    f"Unclosed element <{node.tag}>", start, UNCLOSED_ELEMENT,
                )
            if ch == "/" and self._peek(1) == ">":
                node.raw_open = text[start:self.pos]
                self.pos += 2
                node.self_closing = True
                break
            if ch == ">":
                node.raw_open = text[start:self.pos]
                self.pos += 1
                break
            if ch == "{":
                brace = self.pos
                self.pos += 1
                expression = self.parse_code(closer="}", opened_at=brace)
                spread = expression.text.strip()
                if not spread.startswith("..."):
                    raise self.error(
                        "Expected '...' spread in attribute position",
                        brace, UNBALANCED_DELIMITER,
                    )
                node.attributes[spread] = ExpressionValue(expression)
                continue
            name_match = _ATTR_NAME_RE.match(text, self.pos)
            if not name_match:
                raise self.error(
                    f"Unexpected character {ch!r} in <{node.tag}>",
                    self.pos, UNCLOSED_ELEMENT,
                )
            name = name_match.group(0)
            self.pos = name_match.end()
            self._skip_space()
            if self._peek() != "=":
                node.attributes[name] = BooleanLiteral(True, raw="")
                continue
            self.pos += 1
            self._skip_space()
            node.attributes[name] = self._parse_attribute_value(node, start)

        node._open_sig = opening_signature(node)
        if not node.self_closing:
            node.children = self._parse_children(node, start)
        return node

    def _parse_attribute_value(self, node: Node, element_start: int):
        text = self.text
        ch = self._peek()
        if ch in ("'", '"'):
            end = text.find(ch, self.pos + 1)
            if end == -1:
                raise self.error(
                    "Unterminated attribute string", self.pos, UNTERMINATED_LITERAL,
                )
            raw = text[self.pos:end + 1]
            self.pos = end + 1
            return StringLiteral(raw[1:-1].replace("&quot;", '"'), raw=raw)
        if ch == "{":
            brace = self.pos
            self.pos += 1
            expression = self.parse_code(closer="}", opened_at=brace)
            return classify_container(expression, text[brace:self.pos])
        if ch == "<":
            value_start = self.pos
            element = self.parse_element(value_start)
            return ExpressionValue(Expression([element], [None]), braced=False)
        if not ch:
            raise self.error(
                f"Unclosed element <{node.tag}>", element_start, UNCLOSED_ELEMENT,
            )
        raise self.error(
            f"Invalid value for attribute in <{node.tag}>", self.pos, UNCLOSED_ELEMENT,
        )

    def _parse_children(self, node: Node, start: int) -> list:
        text = self.text
        children = []
        while True:
            if self.pos >= len(text):
                label = node.tag or ""
                raise self.error(f"Unclosed element <{label}>", start, UNCLOSED_ELEMENT)
            ch = text[self.pos]
            if ch == "<" and self._peek(1) == "/":
                close_at = self.pos
                self.pos += 2
                self._skip_space()
                match = _TAG_NAME_RE.match(text, self.pos)
                name = match.group(0) if match else ""
                if match:
                    self.pos = match.end()
                self._skip_space()
                if self._peek() != ">":
                    raise self.error(
                        f"Malformed closing tag for <{node.tag}>", close_at,
                        UNCLOSED_ELEMENT,
                    )
                self.pos += 1
                if name != node.tag:
                    raise self.error(
                        f"Expected </{node.tag}> but found </{name}>",
                        close_at, MISMATCHED_TAG,
                    )
                return children
            if ch == "<":
                children.append(self.parse_element(self.pos))
                continue
            if ch == "{":
                brace = self.pos
                self.pos += 1
                children.append(self.parse_code(closer="}", opened_at=brace))
                continue
            stop = self.pos
            while stop < len(text) and text[stop] not in "<{":
                stop += 1
            children.append(TextSegment(text[self.pos:stop]))
            self.pos = stop


def classify_container(expression: Expression, raw: str):
    """Decide the AttributeValue variant for a parsed `{...}` attribute."""
    if expression.nodes():
        return ExpressionValue(expression)
    code = expression.text.strip()
    number = parse_number(code)
    if number is not None:
        return NumberLiteral(number, raw=raw)
    if code in ("true", "false"):
        return BooleanLiteral(code == "true", raw=raw)
    if code.startswith("{"):
        entries = parse_object_literal(expression.parts[0], expression.offset_of(0))
        if entries is not None:
            value = ObjectLiteral(entries, raw=raw)
            value._sig = object_signature(value)
            return value
    return ExpressionValue(expression)
