"""Tokenizer for the code regions of a composition document.

Code regions are JavaScript/TypeScript text. The lexer recognizes just
enough of the language to let the parser find element boundaries and the
analysis passes find identifiers and calls:

  - identifiers and keywords (IDENT)
  - numeric literals (NUMBER), string literals (STRING)
  - template literals with nested ${...} interpolation (TEMPLATE)
  - regular-expression literals (REGEX)
  - line and block comments (COMMENT)
  - punctuators, longest match first (PUNCT)

Whether '/' starts a regex depends on the previous significant token, so
the lexer is driven one token at a time by callers that track it.
"""

from dataclasses import dataclass


IDENT = "ident"
NUMBER = "number"
STRING = "string"
TEMPLATE = "template"
REGEX = "regex"
COMMENT = "comment"
PUNCT = "punct"

KEYWORDS = {
    "as", "async", "await", "break", "case", "catch", "class", "const",
    "continue", "debugger", "default", "delete", "do", "else", "enum",
    "export", "extends", "false", "finally", "for", "from", "function", "if",
    "implements", "import", "in", "instanceof", "interface", "let", "new",
    "null", "of", "return", "static", "super", "switch", "this", "throw",
    "true", "try", "type", "typeof", "undefined", "var", "void", "while",
    "with", "yield",
}

# Keywords after which an operand (regex, element, object literal) may follow.
OPERAND_KEYWORDS = {
    "return", "typeof", "case", "do", "else", "in", "of", "new", "delete",
    "void", "throw", "yield", "await", "instanceof", "default",
}

PUNCTUATORS = sorted(
    [
        ">>>=", "...", "===", "!==", "**=", "<<=", ">>=", ">>>", "&&=", "||=",
        "??=", "=>", "==", "!=", "<=", ">=", "&&", "||", "??", "?.", "++",
        "--", "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=", "**", "<<", ">>",
        "{", "}", "(", ")", "[", "]", ";", ",", "<", ">", "+", "-", "*", "/",
        "%", "&", "|", "^", "!", "~", "?", ":", "=", ".", "@", "#",
    ],
    key=len,
    reverse=True,
)

OPENERS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = {")": "(", "]": "[", "}": "{"}


class LexError(ValueError):
    """Raised for an unterminated literal or comment.

    `offset` is the absolute offset where the literal started.
    """

    def __init__(self, message: str, offset: int):
        super().__init__(message)
        self.message = message
        self.offset = offset


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    start: int
    end: int

    def is_punct(self, *values: str) -> bool:
        return self.kind == PUNCT and (not values or self.value in values)

    def is_ident(self, *values: str) -> bool:
        return self.kind == IDENT and (not values or self.value in values)

    @property
    def is_keyword(self) -> bool:
        return self.kind == IDENT and self.value in KEYWORDS


def _is_ident_start(ch: str) -> bool:
    return ch.isalpha() or ch in "_$"


def _is_ident_part(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


def regex_allowed(prev: Token | None) -> bool:
    """True when '/' after `prev` starts a regex rather than a division."""
    if prev is None:
        return True
    if prev.kind == PUNCT:
        return prev.value not in (")", "]", "}", "++", "--")
    if prev.kind == IDENT:
        return prev.value in OPERAND_KEYWORDS
    return False


class Lexer:
    """Step-wise tokenizer over `text[start:end]`."""

    def __init__(self, text: str, start: int = 0, end: int | None = None):
        self.text = text
        self.pos = start
        self.end = len(text) if end is None else end

    def skip_whitespace(self) -> None:
        text, end = self.text, self.end
        while self.pos < end and text[self.pos].isspace():
            self.pos += 1

    def next_token(self, prev: Token | None = None) -> Token | None:
        """Return the next token (comments included), or None at the end."""
        self.skip_whitespace()
        if self.pos >= self.end:
            return None
        text, start = self.text, self.pos
        ch = text[start]
        nxt = text[start + 1] if start + 1 < self.end else ""

        if ch == "/" and nxt == "/":
            stop = text.find("\n", start, self.end)
            self.pos = self.end if stop == -1 else stop
            return Token(COMMENT, text[start:self.pos], start, self.pos)
        if ch == "/" and nxt == "*":
            stop = text.find("*/", start + 2, self.end)
            if stop == -1:
                raise LexError("Unterminated block comment", start)
            self.pos = stop + 2
            return Token(COMMENT, text[start:self.pos], start, self.pos)
        if ch in "'\"":
            self.pos = self._scan_string(start)
            return Token(STRING, text[start:self.pos], start, self.pos)
        if ch == "`":
            self.pos = self._scan_template(start)
            return Token(TEMPLATE, text[start:self.pos], start, self.pos)
        if ch.isdigit() or (ch == "." and nxt.isdigit()):
            self.pos = self._scan_number(start)
            return Token(NUMBER, text[start:self.pos], start, self.pos)
        if _is_ident_start(ch):
            pos = start + 1
            while pos < self.end and _is_ident_part(text[pos]):
                pos += 1
            self.pos = pos
            return Token(IDENT, text[start:pos], start, pos)
        if ch == "/" and regex_allowed(prev):
            self.pos = self._scan_regex(start)
            return Token(REGEX, text[start:self.pos], start, self.pos)
        for punct in PUNCTUATORS:
            if text.startswith(punct, start) and start + len(punct) <= self.end:
                self.pos = start + len(punct)
                return Token(PUNCT, punct, start, self.pos)
        # Unknown character: emit it as a one-character punctuator.
        self.pos = start + 1
        return Token(PUNCT, ch, start, self.pos)

    # ── Literal scanners ──────────────────────────────────────────

    def _scan_string(self, start: int) -> int:
        text, quote = self.text, self.text[start]
        pos = start + 1
        while pos < self.end:
            ch = text[pos]
            if ch == "\\":
                pos += 2
                continue
            if ch == quote:
                return pos + 1
            if ch == "\n":
                break
            pos += 1
        raise LexError("Unterminated string literal", start)

    def _scan_template(self, start: int) -> int:
        text = self.text
        pos = start + 1
        while pos < self.end:
            ch = text[pos]
            if ch == "\\":
                pos += 2
                continue
            if ch == "`":
                return pos + 1
            if ch == "$" and pos + 1 < self.end and text[pos + 1] == "{":
                pos = self._scan_interpolation(pos + 2, start)
                continue
            pos += 1
        raise LexError("Unterminated template literal", start)

    def _scan_interpolation(self, pos: int, template_start: int) -> int:
        """Skip a ${...} body; returns the offset just past its '}'."""
        inner = Lexer(self.text, pos, self.end)
        depth = 0
        prev = None
        while True:
            try:
                tok = inner.next_token(prev)
            except LexError:
                raise LexError("Unterminated template literal", template_start)
            if tok is None:
                raise LexError("Unterminated template literal", template_start)
            if tok.kind == COMMENT:
                continue
            if tok.is_punct("{"):
                depth += 1
            elif tok.is_punct("}"):
                if depth == 0:
                    return tok.end
                depth -= 1
            prev = tok

    def _scan_number(self, start: int) -> int:
        text = self.text
        pos = start
        if text.startswith(("0x", "0X", "0b", "0B", "0o", "0O"), start):
            pos += 2
            while pos < self.end and (text[pos].isalnum() or text[pos] == "_"):
                pos += 1
            return pos
        while pos < self.end and (text[pos].isdigit() or text[pos] in "._"):
            pos += 1
        if pos < self.end and text[pos] in "eE":
            ahead = pos + 1
            if ahead < self.end and text[ahead] in "+-":
                ahead += 1
            if ahead < self.end and text[ahead].isdigit():
                pos = ahead
                while pos < self.end and text[pos].isdigit():
                    pos += 1
        if pos < self.end and text[pos] == "n":
            pos += 1
        return pos

    def _scan_regex(self, start: int) -> int:
        text = self.text
        pos = start + 1
        in_class = False
        while pos < self.end:
            ch = text[pos]
            if ch == "\\":
                pos += 2
                continue
            if ch == "\n":
                break
            if ch == "[":
                in_class = True
            elif ch == "]":
                in_class = False
            elif ch == "/" and not in_class:
                pos += 1
                while pos < self.end and _is_ident_part(text[pos]):
                    pos += 1
                return pos
            pos += 1
        raise LexError("Unterminated regular expression literal", start)


def tokenize(text: str, start: int = 0, end: int | None = None,
             comments: bool = False) -> list[Token]:
    """Tokenize a code region with no embedded elements.

    Comments are dropped unless `comments` is set.
    """
    lexer = Lexer(text, start, end)
    tokens = []
    prev = None
    while True:
        tok = lexer.next_token(prev)
        if tok is None:
            return tokens
        if tok.kind == COMMENT:
            if comments:
                tokens.append(tok)
            continue
        tokens.append(tok)
        prev = tok


def template_interpolations(token: Token) -> list[tuple[int, int]]:
    """Absolute (start, end) spans of the ${...} bodies in a template token."""
    text = token.value
    spans = []
    pos = 1
    while pos < len(text) - 1:
        ch = text[pos]
        if ch == "\\":
            pos += 2
            continue
        if ch == "$" and text[pos + 1] == "{":
            lexer = Lexer(text, pos + 2)
            stop = lexer._scan_interpolation(pos + 2, 0)
            spans.append((token.start + pos + 2, token.start + stop - 1))
            pos = stop
            continue
        pos += 1
    return spans


def split_top_level(tokens: list[Token], separator: str = ",") -> list[list[Token]]:
    """Split a token run at `separator` punctuators outside any brackets."""
    groups: list[list[Token]] = [[]]
    depth = 0
    for tok in tokens:
        if tok.kind == PUNCT:
            if tok.value in OPENERS:
                depth += 1
            elif tok.value in CLOSERS:
                depth -= 1
            elif tok.value == separator and depth == 0:
                groups.append([])
                continue
        groups[-1].append(tok)
    return groups
