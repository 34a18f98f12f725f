"""Reference analysis: lexical scopes, declarations and unresolved names.

The whole document (code regions, element attributes and children,
template interpolations) is flattened into one token stream. Element
boundaries and expression holes act as brackets, so an arrow function
whose body is an element still ends where its enclosing bracket closes.

Scopes are opened for blocks, function and arrow bodies (with their
parameters), and catch clauses. Declarations come from const/let/var
(including destructuring patterns), function and class names, imports,
and TypeScript interface/type/enum names.

A reference resolves when some enclosing scope declares it (hoisting is
honored: resolution happens after the whole document is read) or it is a
built-in. Library names (IMPORT_SOURCES) resolve only through an import;
used without one they are reported as missing imports.
"""

from dataclasses import dataclass, field

from .common import LineIndex
from .lexer import IDENT, KEYWORDS, PUNCT, STRING, TEMPLATE, template_interpolations, tokenize
from .tree import Document, Expression, ExpressionValue, Node, ObjectLiteral, component_root

# Clock and config accessors, timeline/element constructors, React, the
# JavaScript global environment, and TypeScript's built-in type names.
BUILTINS = {
    # timeline clock and config
    "frame", "fps", "durationInFrames",
    "useCurrentFrame", "useVideoConfig", "interpolate", "interpolateColors",
    "spring", "measureSpring", "Easing", "random", "staticFile", "delayRender",
    "continueRender", "cancelRender", "getInputProps", "registerRoot",
    # element constructors
    "AbsoluteFill", "Sequence", "Series", "Loop", "Freeze", "Img", "Audio",
    "Video", "OffthreadVideo", "IFrame", "Composition", "Still", "Folder",
    "TransitionSeries",
    # React
    "React", "Fragment", "useState", "useEffect", "useMemo", "useCallback",
    "useRef", "useContext", "useReducer", "useLayoutEffect",
    # JavaScript globals
    "Math", "Array", "Object", "JSON", "Number", "String", "Boolean", "Date",
    "Promise", "Map", "Set", "WeakMap", "WeakSet", "Symbol", "Error",
    "TypeError", "RegExp", "Intl", "BigInt", "Reflect", "Proxy",
    "parseInt", "parseFloat", "isNaN", "isFinite", "encodeURIComponent",
    "decodeURIComponent", "console", "window", "document", "globalThis",
    "setTimeout", "clearTimeout", "setInterval", "clearInterval",
    "requestAnimationFrame", "fetch", "process", "require", "module",
    "exports", "arguments", "Infinity", "NaN",
    # TypeScript types
    "string", "number", "boolean", "any", "unknown", "never", "object",
    "bigint", "symbol", "Record", "Partial", "Required", "Readonly", "Pick",
    "Omit", "Exclude", "Extract", "ReturnType", "Parameters", "NonNullable",
    "JSX",
}

# Names that only exist once imported, and the module that provides them.
IMPORT_SOURCES = {
    **dict.fromkeys((
        "useCurrentFrame", "useVideoConfig", "interpolate", "interpolateColors",
        "spring", "measureSpring", "Easing", "random", "staticFile", "delayRender",
        "continueRender", "cancelRender", "getInputProps", "registerRoot",
        "AbsoluteFill", "Sequence", "Series", "Loop", "Freeze", "Img", "Audio",
        "Video", "OffthreadVideo", "IFrame", "Composition", "Still", "Folder",
    ), "remotion"),
    "TransitionSeries": "@remotion/transitions",
    "Lottie": "@remotion/lottie",
    "Player": "@remotion/player",
    "Trail": "@remotion/motion-blur",
    **dict.fromkeys((
        "getLength", "getPointAtLength", "getSubpaths", "getTangentAtLength",
    ), "@remotion/paths"),
    **dict.fromkeys((
        "useState", "useEffect", "useMemo", "useCallback", "useRef", "useContext",
        "useReducer", "useLayoutEffect",
    ), "react"),
}

# Declaration kinds that are reported when never referenced.
CHECKED_KINDS = {"const", "let", "var", "function", "class", "import"}

CONTROL_WORDS = {"if", "for", "while", "switch", "with", "return", "typeof"}
BLOCK_PRECEDERS = {"else", "do", "try", "finally"}
STATEMENT_WORDS = {
    "const", "let", "var", "function", "class", "export", "import", "return",
    "if", "for", "while", "interface", "type", "enum",
}
MODIFIERS = {"readonly", "public", "private", "protected", "abstract", "declare", "static"}
NON_REFERENCES = (KEYWORDS - {"type"}) | MODIFIERS | {"keyof", "satisfies"}

HOLE_OPEN = "hole_open"
HOLE_CLOSE = "hole_close"
JSX_OPEN = "jsx_open"
JSX_CLOSE = "jsx_close"
OPENING = {"(", "[", "{"}
CLOSING = {")", "]", "}"}


@dataclass
class Declaration:
    name: str
    kind: str
    line: int | None = None
    column: int | None = None
    exported: bool = False
    references: int = 0


@dataclass(frozen=True)
class Reference:
    name: str
    line: int | None = None
    column: int | None = None


@dataclass
class ReferenceAnalysis:
    declarations: list = field(default_factory=list)
    unresolved: list = field(default_factory=list)
    unused: list = field(default_factory=list)
    duplicates: list = field(default_factory=list)
    duplicate_exports: list = field(default_factory=list)
    missing_imports: list = field(default_factory=list)

    def unresolved_names(self) -> list[str]:
        """Distinct unresolved names in order of first use."""
        return _distinct(self.unresolved)

    def missing_import_names(self) -> list[str]:
        """Distinct names used without an import, in order of first use."""
        return _distinct(self.missing_imports)


def _distinct(refs: list) -> list[str]:
    seen = []
    for ref in refs:
        if ref.name not in seen:
            seen.append(ref.name)
    return seen


@dataclass(frozen=True)
class _Tok:
    kind: str
    value: str
    line: int | None = None
    column: int | None = None

    def punct(self, *values: str) -> bool:
        return self.kind == PUNCT and (not values or self.value in values)

    def ident(self, *values: str) -> bool:
        return self.kind == IDENT and (not values or self.value in values)

    @property
    def opens(self) -> bool:
        return (self.kind == PUNCT and self.value in OPENING) or self.kind in (HOLE_OPEN, JSX_OPEN)

    @property
    def closes(self) -> bool:
        return (self.kind == PUNCT and self.value in CLOSING) or self.kind in (HOLE_CLOSE, JSX_CLOSE)


class _Scope:
    def __init__(self, parent: "_Scope | None"):
        self.parent = parent
        self.names: dict[str, Declaration] = {}

    def lookup(self, name: str) -> Declaration | None:
        scope = self
        while scope is not None:
            if name in scope.names:
                return scope.names[name]
            scope = scope.parent
        return None


# ── Flattening ─────────────────────────────────────────────────────


class _Flattener:
    def __init__(self, source: str):
        self.lines = LineIndex(source)
        self.tokens: list[_Tok] = []

    def position(self, offset: int | None) -> tuple[int | None, int | None]:
        if offset is None:
            return None, None
        return self.lines.position(offset)

    def expression(self, expression: Expression) -> None:
        for index, part in enumerate(expression.parts):
            if isinstance(part, Node):
                self.node(part)
            else:
                self.code(part, expression.offset_of(index))

    def code(self, text: str, base: int | None) -> None:
        for tok in tokenize(text):
            offset = None if base is None else base + tok.start
            line, column = self.position(offset)
            if tok.kind == TEMPLATE:
                for start, end in template_interpolations(tok):
                    self.tokens.append(_Tok(HOLE_OPEN, "${", line, column))
                    inner_base = None if base is None else base + start
                    self.code(text[start:end], inner_base)
                    self.tokens.append(_Tok(HOLE_CLOSE, "}", line, column))
                self.tokens.append(_Tok(STRING, "`", line, column))
                continue
            self.tokens.append(_Tok(tok.kind, tok.value, line, column))

    def node(self, node: Node) -> None:
        self.tokens.append(_Tok(JSX_OPEN, node.tag, node.line, node.column))
        for value in node.attributes.values():
            for expression in _value_expressions(value):
                self.hole(expression)
        for child in node.children:
            if isinstance(child, Node):
                self.node(child)
            elif isinstance(child, Expression):
                self.hole(child)
        self.tokens.append(_Tok(JSX_CLOSE, node.tag, node.line, node.column))

    def hole(self, expression: Expression) -> None:
        self.tokens.append(_Tok(HOLE_OPEN, "{", None, None))
        self.expression(expression)
        self.tokens.append(_Tok(HOLE_CLOSE, "}", None, None))


def _value_expressions(value):
    if isinstance(value, ExpressionValue):
        yield value.expression
    elif isinstance(value, ObjectLiteral):
        for entry in value.entries.values():
            yield from _value_expressions(entry)


def _match_brackets(tokens: list[_Tok]) -> dict[int, int]:
    match, stack = {}, []
    for i, tok in enumerate(tokens):
        if tok.opens:
            stack.append(i)
        elif tok.closes and stack:
            match[stack.pop()] = i
    return match


# ── Binding patterns ───────────────────────────────────────────────


def binding_names(tokens: list[_Tok]) -> list[_Tok]:
    """Names bound by a parameter list or destructuring pattern.

    Default values and type annotations are skipped; in object patterns a
    key followed by ':' is a rename source, not a binding.
    """
    names = []
    stack: list[str] = []
    skip_at = None
    for idx, tok in enumerate(tokens):
        if tok.opens:
            stack.append(tok.value)
            continue
        if tok.closes:
            if stack:
                stack.pop()
            if skip_at is not None and len(stack) < skip_at:
                skip_at = None
            continue
        if skip_at is not None:
            if tok.punct(",") and len(stack) == skip_at:
                skip_at = None
            continue
        if tok.punct("="):
            skip_at = len(stack)
            continue
        if tok.punct(":"):
            if not (stack and stack[-1] == "{"):
                skip_at = len(stack)
            continue
        if tok.kind != IDENT or tok.value in NON_REFERENCES:
            continue
        nxt = tokens[idx + 1] if idx + 1 < len(tokens) else None
        if stack and stack[-1] == "{" and nxt is not None and nxt.punct(":"):
            continue
        names.append(tok)
    return names


# ── Analysis ───────────────────────────────────────────────────────


def analyze_references(document: Document) -> ReferenceAnalysis:
    """Declarations, unresolved references, unused and duplicate names."""
    flattener = _Flattener(document.source)
    flattener.expression(document.body)
    return _Analyzer(flattener.tokens).run()


class _Analyzer:

    def __init__(self, tokens: list[_Tok]):
        self.toks = tokens
        self.match = _match_brackets(tokens)
        self.module = _Scope(None)
        self.scope = self.module
        self.stack: list[tuple[str, _Scope | None]] = []
        self.arrows: list[tuple[int, _Scope]] = []
        self.pending: list[_Tok] | None = None
        self.refs: list[tuple[_Tok, _Scope]] = []
        self.result = ReferenceAnalysis()
        self.declaration_depth: int | None = None
        self.declaration_kind: str | None = None
        self.exporting: bool | str = False
        self.export_depth = 0
        self.class_body_next = False
        self.exports: dict[str, _Tok] = {}
        self.params: dict[int, int] = {}
        self.single_params: set[int] = set()
        self.type_skips: dict[int, int] = {}

    # Pass 1: parameter lists and return-type annotations.

    def find_params(self) -> None:
        toks, n = self.toks, len(self.toks)
        for i, tok in enumerate(toks):
            if tok.punct("(") and i in self.match:
                j = self.match[i]
                k = j + 1
                if k >= n:
                    continue
                if toks[k].punct("=>"):
                    self.params[i] = j
                elif toks[k].punct(":"):
                    m = k + 1
                    while m < n and not toks[m].punct("=>", "{", ";"):
                        m = self.match.get(m, m) + 1 if toks[m].opens else m + 1
                    if m < n and (toks[m].punct("=>")
                                  or (toks[m].punct("{") and self._function_head(i))):
                        self.params[i] = j
                        self.type_skips[k] = m
                elif toks[k].punct("{") and self._function_head(i):
                    self.params[i] = j
            elif (tok.kind == IDENT and tok.value not in NON_REFERENCES
                  and i + 1 < n and toks[i + 1].punct("=>")):
                self.single_params.add(i)

    def _function_head(self, i: int) -> bool:
        if i == 0:
            return False
        prev = self.toks[i - 1]
        if prev.ident("function", "catch"):
            return True
        if prev.kind == IDENT and prev.value not in CONTROL_WORDS and prev.value not in KEYWORDS:
            return True
        return prev.ident("constructor")

    # Pass 2: scopes, declarations and references.

    def run(self) -> ReferenceAnalysis:
        self.find_params()
        toks = self.toks
        i, prev = 0, None
        while i < len(toks):
            tok = toks[i]
            if prev is not None and self._new_statement(prev, tok):
                self._end_arrows_at(len(self.stack))
                self._end_declaration()
            if i in self.type_skips:
                i = self.type_skips[i]
                continue
            if i in self.params:
                close = self.params[i]
                self.pending = binding_names(toks[i + 1:close])
                prev = toks[close]
                i = close + 1
                continue
            if i in self.single_params:
                self.pending = [tok]
                prev = tok
                i += 1
                continue
            i = self.step(i, tok, prev)
            prev = toks[i - 1]
        self._resolve()
        return self.result

    def step(self, i: int, tok: _Tok, prev: _Tok | None) -> int:
        toks = self.toks
        nxt = toks[i + 1] if i + 1 < len(toks) else None

        if tok.punct("=>"):
            if nxt is not None and nxt.punct("{"):
                return i + 1
            scope = _Scope(self.scope)
            self._declare_pending(scope)
            self.arrows.append((len(self.stack), self.scope))
            self.scope = scope
            return i + 1

        if tok.opens:
            if tok.punct("{"):
                self._open_brace(prev)
            else:
                self.stack.append((tok.kind if tok.kind != PUNCT else tok.value, None))
                if tok.kind == JSX_OPEN:
                    root = component_root(tok.value)
                    if root:
                        self.refs.append((_Tok(IDENT, root, tok.line, tok.column), self.scope))
            return i + 1

        if tok.closes:
            self._end_arrows_at(len(self.stack))
            if self.stack:
                _, saved = self.stack.pop()
                if saved is not None:
                    self.scope = saved
            if self.declaration_depth is not None and len(self.stack) < self.declaration_depth:
                self._end_declaration()
            return i + 1

        if tok.punct(",", ";"):
            self._end_arrows_at(len(self.stack))
            if tok.value == ";" and len(self.stack) == (self.declaration_depth or 0):
                self._end_declaration()
            if (tok.value == "," and self.declaration_kind is not None
                    and len(self.stack) == self.declaration_depth):
                return self._declare_binding(i + 1, self.declaration_kind)
            return i + 1

        if tok.kind != IDENT:
            return i + 1
        return self._identifier(i, tok, prev, nxt)

    def _identifier(self, i: int, tok: _Tok, prev: _Tok | None, nxt: _Tok | None) -> int:
        toks = self.toks
        value = tok.value
        if value in ("const", "let", "var"):
            self.declaration_kind = value
            self.declaration_depth = len(self.stack)
            return self._declare_binding(i + 1, value)
        if value in ("function", "class"):
            if value == "class":
                self.class_body_next = True
            if nxt is not None and nxt.kind == IDENT and nxt.value not in NON_REFERENCES:
                self._declare(nxt, value, self.scope)
                return i + 2
            return i + 1
        if value in ("interface", "enum") and nxt is not None and nxt.kind == IDENT:
            self._declare(nxt, value, self.scope)
            return self._skip_type_body(i + 2)
        if value == "type" and nxt is not None and nxt.kind == IDENT and i + 2 < len(toks) \
                and toks[i + 2].punct("=", "<"):
            self._declare(nxt, "type", self.scope)
            return self._skip_type_alias(i + 2)
        if value == "import" and not (nxt is not None and nxt.punct("(", ".")):
            return self._import(i + 1)
        if value == "export":
            return self._export(i + 1, nxt)
        if value == "as" and prev is not None and (prev.kind in (IDENT, STRING) or prev.closes):
            return self._skip_type_reference(i + 1)
        if value in NON_REFERENCES:
            return i + 1

        if prev is not None and prev.punct(".", "?."):
            return i + 1
        top = self.stack[-1][0] if self.stack else None
        if top == "object" and nxt is not None and nxt.punct(":") \
                and prev is not None and prev.punct("{", ","):
            return i + 1
        if top == "object" and nxt is not None and nxt.punct("(") and (i + 1) in self.params:
            return i + 1
        if top == "class" and nxt is not None and nxt.punct("(", "=", ":", ";", "?", "!"):
            return i + 1
        if value == "constructor" and nxt is not None and nxt.punct("("):
            return i + 1
        self.refs.append((tok, self.scope))
        return i + 1

    # ── Braces and scopes ─────────────────────────────────────────

    def _open_brace(self, prev: _Tok | None) -> None:
        if self.pending is not None:
            scope = _Scope(self.scope)
            self.stack.append(("block", self.scope))
            self._declare_pending(scope)
            self.scope = scope
            return
        if self.class_body_next:
            self.class_body_next = False
            self.stack.append(("class", self.scope))
            self.scope = _Scope(self.scope)
            return
        is_block = (
            prev is None
            or prev.punct(";", "}", ")", "=>")
            or prev.ident(*BLOCK_PRECEDERS)
        )
        if is_block:
            self.stack.append(("block", self.scope))
            self.scope = _Scope(self.scope)
        else:
            self.stack.append(("object", None))

    def _declare_pending(self, scope: _Scope) -> None:
        for name in self.pending or []:
            self._declare(name, "param", scope)
        self.pending = None

    def _end_arrows_at(self, depth: int) -> None:
        while self.arrows and self.arrows[-1][0] == depth:
            _, parent = self.arrows.pop()
            self.scope = parent

    def _end_declaration(self) -> None:
        self.declaration_kind = None
        self.declaration_depth = None
        self.exporting = False

    def _new_statement(self, prev: _Tok, tok: _Tok) -> bool:
        if tok.kind != IDENT or tok.value not in STATEMENT_WORDS:
            return False
        if prev.line is None or tok.line is None or tok.line <= prev.line:
            return False
        return not prev.punct(".", "=", ",", "(", "[", "?", ":", "=>", "&&", "||")

    # ── Declarations ──────────────────────────────────────────────

    def _declare(self, tok: _Tok, kind: str, scope: _Scope) -> None:
        name = tok.value
        existing = scope.names.get(name)
        exported = (
            bool(self.exporting) and kind != "param"
            and len(self.stack) == self.export_depth
        )
        declaration = Declaration(name, kind, tok.line, tok.column, exported=exported)
        if existing is not None:
            if kind in ("let", "const", "class") or existing.kind in ("let", "const", "class"):
                self.result.duplicates.append(declaration)
            return
        scope.names[name] = declaration
        self.result.declarations.append(declaration)
        if exported and self.exporting != "default":
            self._record_export(tok)

    def _declare_binding(self, i: int, kind: str) -> int:
        toks = self.toks
        if i >= len(toks):
            return i
        tok = toks[i]
        if tok.kind == IDENT and tok.value not in NON_REFERENCES:
            self._declare(tok, kind, self.scope)
            i += 1
            if i < len(toks) and toks[i].punct(":"):
                depth = 0
                while i < len(toks):
                    t = toks[i]
                    if t.opens:
                        depth += 1
                    elif t.closes:
                        if depth == 0:
                            break
                        depth -= 1
                    elif depth == 0 and t.punct("=", ";", ","):
                        break
                    i += 1
            return i
        if tok.punct("{", "[") and i in self.match:
            close = self.match[i]
            for name in binding_names(toks[i:close + 1]):
                self._declare(name, kind, self.scope)
            return close + 1
        return i

    def _record_export(self, tok: _Tok) -> None:
        if tok.value in self.exports:
            self.result.duplicate_exports.append(Reference(tok.value, tok.line, tok.column))
        else:
            self.exports[tok.value] = tok

    def _import(self, i: int) -> int:
        toks = self.toks
        while i < len(toks):
            tok = toks[i]
            if tok.kind == STRING or tok.punct(";"):
                return i + 1
            if tok.ident("from"):
                return i + 2
            if tok.punct("{") and i in self.match:
                close = self.match[i]
                group: list[_Tok] = []
                for t in toks[i + 1:close] + [_Tok(PUNCT, ",")]:
                    if t.punct(","):
                        names = [g for g in group if g.kind == IDENT and g.value not in ("type", "as")]
                        if names:
                            self._declare(names[-1], "import", self.scope)
                        group = []
                    else:
                        group.append(t)
                i = close + 1
                continue
            if tok.kind == IDENT and tok.value not in ("type", "as", "from"):
                self._declare(tok, "import", self.scope)
            i += 1
        return i

    def _export(self, i: int, nxt: _Tok | None) -> int:
        toks = self.toks
        if nxt is None:
            return i
        if nxt.ident("default"):
            self._record_export(_Tok(IDENT, "default", nxt.line, nxt.column))
            self.exporting = "default"
            self.export_depth = len(self.stack)
            return i + 1
        if nxt.punct("{") and i in self.match:
            close = self.match[i]
            reexport = close + 1 < len(toks) and toks[close + 1].ident("from")
            group: list[_Tok] = []
            for t in toks[i + 1:close] + [_Tok(PUNCT, ",")]:
                if t.punct(","):
                    names = [g for g in group if g.kind == IDENT and g.value not in ("type", "as")]
                    if names:
                        if not reexport:
                            self.refs.append((names[0], self.scope))
                        self._record_export(names[-1])
                    group = []
                else:
                    group.append(t)
            if reexport:
                return close + 3
            return close + 1
        if nxt.punct("*"):
            return self._import(i)
        self.exporting = True
        self.export_depth = len(self.stack)
        return i

    # ── Type-only regions ─────────────────────────────────────────

    def _skip_type_body(self, i: int) -> int:
        toks = self.toks
        while i < len(toks) and not toks[i].punct("{"):
            i += 1
        if i in self.match:
            return self.match[i] + 1
        return i

    def _skip_type_alias(self, i: int) -> int:
        toks = self.toks
        depth = 0
        start_line = toks[i].line
        while i < len(toks):
            t = toks[i]
            if t.opens:
                depth += 1
            elif t.closes:
                if depth == 0:
                    return i
                depth -= 1
            elif depth == 0 and t.punct(";"):
                return i + 1
            elif (depth == 0 and t.kind == IDENT and t.value in STATEMENT_WORDS
                  and t.line is not None and start_line is not None and t.line > start_line):
                return i
            i += 1
        return i

    def _skip_type_reference(self, i: int) -> int:
        toks = self.toks
        while i < len(toks) and (toks[i].kind == IDENT or toks[i].punct(".")):
            i += 1
        if i < len(toks) and toks[i].punct("[") and i + 1 < len(toks) and toks[i + 1].punct("]"):
            i += 2
        return i

    # ── Resolution ────────────────────────────────────────────────

    def _resolve(self) -> None:
        for tok, scope in self.refs:
            declaration = scope.lookup(tok.value)
            if declaration is not None:
                declaration.references += 1
            elif tok.value in IMPORT_SOURCES:
                self.result.missing_imports.append(Reference(tok.value, tok.line, tok.column))
            elif tok.value not in BUILTINS:
                self.result.unresolved.append(Reference(tok.value, tok.line, tok.column))
        self.result.unused = [
            d for d in self.result.declarations
            if d.kind in CHECKED_KINDS and d.references == 0
            and not d.exported and not d.name.startswith("_")
        ]
