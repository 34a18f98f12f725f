"""Mutation engine: pure edits over a composition tree.

Every operation deep-copies the input document, applies its edit to the
copy and returns a MutationResult carrying the new document, a list of
human-readable changes, and the text of the document before the edit.

Targeting follows one policy everywhere:
  - zero matches -> success=False with a NOT_FOUND failure (no exception)
  - several matches -> every match is edited and a warning reports the
    count (remove_child and replace_child act on a single match)
"""

import copy
from dataclasses import replace

from .common import normalize_style_key, parse_css_declarations
from .parser import parse_expression
from .results import ErrorKind, Failure, MutationResult
from .selector import Criteria, select
from .tree import (
    AttributeValue, BooleanLiteral, Document, Expression, ExpressionValue,
    Node, NumberLiteral, ObjectLiteral, StringLiteral, TextSegment,
    find_parent, generate, render_attribute_value, render_value,
)

VALUE_TYPES = (StringLiteral, NumberLiteral, BooleanLiteral, ObjectLiteral, ExpressionValue)


# ── Value construction ─────────────────────────────────────────────


def value_from_python(value) -> AttributeValue:
    """Infer the AttributeValue variant from a Python value's type.

    bool -> BooleanLiteral (True renders as a flag attribute), int/float ->
    NumberLiteral, str -> StringLiteral, dict -> ObjectLiteral (recursive),
    Expression/Node -> ExpressionValue. AttributeValues pass through.
    """
    if isinstance(value, VALUE_TYPES):
        return value
    if isinstance(value, bool):
        return BooleanLiteral(value)
    if isinstance(value, (int, float)):
        return NumberLiteral(value)
    if isinstance(value, str):
        return StringLiteral(value)
    if isinstance(value, dict):
        return ObjectLiteral({str(k): value_from_python(v) for k, v in value.items()})
    if isinstance(value, Expression):
        return ExpressionValue(value)
    if isinstance(value, Node):
        return ExpressionValue(Expression([value]))
    raise ValueError(
        f"Cannot use {type(value).__name__} value {value!r} as an attribute value"
    )


def code(text: str) -> ExpressionValue:
    """An expression attribute value from source text, e.g. code('frame / 30')."""
    return ExpressionValue(parse_expression(text))


def synthesize_node(tag: str, props: dict | None = None, children=None) -> Node:
    """Build a Node from a flat parameter map.

    Each prop's variant is inferred by value_from_python; a True boolean is
    emitted as a valueless flag. Children may be Nodes, Expressions or
    strings (text runs). With no children the node is self-closing.
    """
    if not tag:
        raise ValueError("synthesize_node: tag must be non-empty")
    node = Node(tag=tag)
    for name, value in (props or {}).items():
        if value is None:
            continue
        node.attributes[name] = value_from_python(value)
    for child in children or []:
        if isinstance(child, str):
            node.children.append(TextSegment(child))
        elif isinstance(child, (Node, Expression)):
            node.children.append(child)
        else:
            raise ValueError(
                f"synthesize_node: unsupported child type {type(child).__name__}"
            )
    node.self_closing = not node.children
    return node


# ── Helpers ────────────────────────────────────────────────────────


def _label(node: Node) -> str:
    return f"<{node.tag}>" if node.tag else "<>"


def _start(document: Document, criteria: Criteria, operation: str):
    """Copy the document and select targets.

    Returns (working_copy, nodes, snapshot, failed_result_or_None).
    """
    snapshot = generate(document)
    working = copy.deepcopy(document)
    nodes = select(working, criteria)
    if not nodes:
        failure = Failure(
            ErrorKind.NOT_FOUND,
            f"{operation}: no node matches {criteria.describe()}",
        )
        return working, [], snapshot, MutationResult(
            success=False, document=document, error=failure, snapshot=snapshot,
        )
    return working, nodes, snapshot, None


def _done(working: Document, nodes: list, changes: list, snapshot: str,
          criteria: Criteria) -> MutationResult:
    warnings = []
    if len(nodes) > 1:
        warnings.append(
            f"{len(nodes)} nodes matched {criteria.describe()}; all were updated"
        )
    return MutationResult(
        success=True, document=working, changes=changes,
        warnings=warnings, snapshot=snapshot,
    )


def open_element(node: Node) -> None:
    """Turn a self-closing node into one that can hold children."""
    if node.self_closing:
        node.self_closing = False
        if node.raw_open:
            node.raw_open = node.raw_open.rstrip()


# ── Attribute and style edits ──────────────────────────────────────


def set_attribute(document: Document, criteria: Criteria, name: str, value) -> MutationResult:
    """Replace an attribute's value on every match, or append it."""
    attr = value_from_python(value)
    working, nodes, snapshot, failed = _start(document, criteria, "set_attribute")
    if failed:
        return failed
    changes = []
    for node in nodes:
        verb = "Updated" if name in node.attributes else "Added"
        node.attributes[name] = copy.deepcopy(attr)
        changes.append(f"{verb} {name}={render_attribute_value(attr)} on {_label(node)}")
    return _done(working, nodes, changes, snapshot, criteria)


def remove_attribute(document: Document, criteria: Criteria, name: str) -> MutationResult:
    working, nodes, snapshot, failed = _start(document, criteria, "remove_attribute")
    if failed:
        return failed
    changes = []
    for node in nodes:
        if node.attributes.pop(name, None) is not None:
            changes.append(f"Removed {name} from {_label(node)}")
    return _done(working, nodes, changes, snapshot, criteria)


def merge_style(document: Document, criteria: Criteria, updates: dict) -> MutationResult:
    """Merge style properties into every match.

    Keys are compared in the normalized (camelCase) key space. An existing
    key keeps its position and spelling; new keys are appended. Unrelated
    existing properties are never dropped. A CSS string style is split into
    its declarations. Any other style value (an expression, a bare number)
    is kept as a leading spread entry.
    """
    if not updates:
        raise ValueError("merge_style: updates must be non-empty")
    working, nodes, snapshot, failed = _start(document, criteria, "merge_style")
    if failed:
        return failed
    changes = []
    for node in nodes:
        current = node.attributes.get("style")
        if isinstance(current, ObjectLiteral):
            entries = dict(current.entries)
        elif isinstance(current, StringLiteral):
            entries = {
                key: StringLiteral(value)
                for key, value in parse_css_declarations(current.value).items()
            }
        elif current is not None:
            spread = "..." + render_value(current).strip()
            entries = {spread: ExpressionValue(Expression([spread]))}
        else:
            entries = {}
        for key, raw_value in updates.items():
            new_value = value_from_python(raw_value)
            normalized = normalize_style_key(key)
            existing = next(
                (k for k in entries
                 if not k.startswith("...") and normalize_style_key(k) == normalized),
                None,
            )
            entries[existing or normalized] = copy.deepcopy(new_value)
            changes.append(
                f"Set style.{existing or normalized} = {render_value(new_value)} "
                f"on {_label(node)}"
            )
        node.attributes["style"] = ObjectLiteral(entries)
    return _done(working, nodes, changes, snapshot, criteria)


def set_text(document: Document, criteria: Criteria, text: str) -> MutationResult:
    """Drop every direct text child, then prepend `text` if non-empty."""
    working, nodes, snapshot, failed = _start(document, criteria, "set_text")
    if failed:
        return failed
    changes = []
    for node in nodes:
        node.children = [c for c in node.children if not isinstance(c, TextSegment)]
        if text:
            open_element(node)
            node.children.insert(0, TextSegment(text))
        changes.append(f"Set text of {_label(node)} to {text!r}")
    return _done(working, nodes, changes, snapshot, criteria)


# ── Child edits ────────────────────────────────────────────────────


def insert_child(document: Document, parent: Criteria, new_node: Node,
                 position="end") -> MutationResult:
    """Insert a copy of new_node into every matching parent.

    position: 'start', 'end', or an index into the parent's children.
    """
    if position not in ("start", "end") and not isinstance(position, int):
        raise ValueError(
            f"insert_child: position must be 'start', 'end' or an int, got {position!r}"
        )
    working, nodes, snapshot, failed = _start(document, parent, "insert_child")
    if failed:
        return failed
    changes = []
    for node in nodes:
        open_element(node)
        if position == "start":
            index = 0
        elif position == "end":
            index = len(node.children)
        else:
            index = max(0, min(position, len(node.children)))
        node.children.insert(index, copy.deepcopy(new_node))
        changes.append(f"Inserted {_label(new_node)} into {_label(node)} at {position}")
    return _done(working, nodes, changes, snapshot, parent)


def remove_child(document: Document, criteria: Criteria, index: int | None = None) -> MutationResult:
    """Remove one matching node: the nth match when index is given, else the first.

    A node removed from inside code is replaced by `null` so the
    surrounding code stays well-formed.
    """
    target_criteria = criteria if index is None else replace(criteria, index=None)
    working, nodes, snapshot, failed = _start(document, target_criteria, "remove_child")
    if failed:
        return failed
    position = 0 if index is None else index
    if not 0 <= position < len(nodes):
        return MutationResult(
            success=False, document=document, snapshot=snapshot,
            error=Failure(
                ErrorKind.NOT_FOUND,
                f"remove_child: match #{position} requested but only "
                f"{len(nodes)} node(s) match {criteria.describe()}",
            ),
        )
    target = nodes[position]
    container, slot, owner = find_parent(working, target)
    if isinstance(owner, Expression):
        container[slot] = "null"
    else:
        del container[slot]
    return MutationResult(
        success=True, document=working, snapshot=snapshot,
        changes=[f"Removed {_label(target)} (match #{position})"],
    )


def replace_child(document: Document, criteria: Criteria, new_node: Node) -> MutationResult:
    """Replace the first matching node with a copy of new_node."""
    working, nodes, snapshot, failed = _start(document, criteria, "replace_child")
    if failed:
        return failed
    target = nodes[0]
    container, slot, _ = find_parent(working, target)
    container[slot] = copy.deepcopy(new_node)
    return MutationResult(
        success=True, document=working, snapshot=snapshot,
        changes=[f"Replaced {_label(target)} with {_label(new_node)}"],
    )
