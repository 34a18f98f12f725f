"""Import correction for library names used without an import.

add_missing_imports() extends an existing named import from the right
module (`import { A } from "remotion"` -> `import { A, B } from "remotion"`)
or, when there is none, adds a new import statement ahead of the first
import (or at the top of the document). Names are added in sorted order.
Type-only imports are never extended.
"""

import logging
from dataclasses import dataclass

from .lexer import IDENT, STRING
from .scopes import IMPORT_SOURCES, analyze_references
from .tree import Document

logger = logging.getLogger(__name__)


@dataclass
class NamedImport:
    module: str
    part_index: int
    # Position where new names go, and the text that joins them on.
    insert_at: int
    separator: str


def named_imports(document: Document) -> tuple[dict, tuple | None]:
    """({module: NamedImport}, (part_index, position) of the first import)."""
    tokens = document.body.code_tokens()
    found: dict[str, NamedImport] = {}
    first = None
    for k, (part, tok) in enumerate(tokens):
        if not tok.is_ident("import"):
            continue
        if k + 1 < len(tokens) and tokens[k + 1][1].is_punct("(", "."):
            continue
        if first is None:
            first = (part, tok.start)
        j = k + 1
        # import React, { useState } from "react"
        if (j + 1 < len(tokens) and tokens[j][1].kind == IDENT
                and not tokens[j][1].is_ident("type") and tokens[j + 1][1].is_punct(",")):
            j += 2
        if j >= len(tokens) or not tokens[j][1].is_punct("{"):
            continue
        close = next(
            (c for c in range(j + 1, len(tokens)) if tokens[c][1].is_punct("}")), None,
        )
        if close is None or close + 2 >= len(tokens) or tokens[close][0] != part:
            continue
        source = tokens[close + 2][1]
        if not tokens[close + 1][1].is_ident("from") or source.kind != STRING:
            continue
        last = tokens[close - 1][1]
        separator = " " if last.is_punct("{", ",") else ", "
        module = source.value[1:-1]
        found.setdefault(module, NamedImport(
            module=module, part_index=part, insert_at=last.end, separator=separator,
        ))
    return found, first


def add_missing_imports(document: Document) -> list[str]:
    """Import every library name the document uses without an import.

    Edits `document` in place and returns one change line per module.
    """
    missing = analyze_references(document).missing_import_names()
    if not missing:
        return []
    by_module: dict[str, list[str]] = {}
    for name in missing:
        by_module.setdefault(IMPORT_SOURCES[name], []).append(name)

    existing, first = named_imports(document)
    body = document.body
    edits, statements, changes = [], [], []
    for module in sorted(by_module):
        names = sorted(by_module[module])
        target = existing.get(module)
        if target is not None:
            edits.append((target.part_index, target.insert_at, target.separator + ", ".join(names)))
        else:
            statements.append(f'import {{ {", ".join(names)} }} from "{module}";\n')
        changes.append(f"Imported {', '.join(names)} from {module}")

    if statements:
        if first is None:
            if not body.parts or not isinstance(body.parts[0], str):
                body.parts.insert(0, "")
                body.offsets.insert(0, None)
            first = (0, 0)
            statements[-1] += "\n"
        edits.append((first[0], first[1], "".join(statements)))

    for part, position, text in sorted(edits, key=lambda e: (e[0], e[1]), reverse=True):
        body.replace_span(part, position, position, text)
    logger.info("added %d missing import(s)", len(missing))
    return changes
