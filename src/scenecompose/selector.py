"""Selector engine: find nodes in a composition tree.

A Criteria is a conjunction over tag, id-like attribute, class-like
attribute, required attributes and descendant text. Results follow
document order (pre-order walk). An empty Criteria matches nothing.

The id-like attribute is `id`, falling back to `name` then `key`. The
class-like attribute is `className` (or `class`), matched by whitespace
token or substring.
"""

from dataclasses import dataclass, replace

from .common import format_number
from .tree import (
    BooleanLiteral, Document, ExpressionValue, Node, NumberLiteral,
    StringLiteral, iter_nodes,
)

ID_ATTRIBUTES = ("id", "name", "key")
CLASS_ATTRIBUTES = ("className", "class")

# Fallback order for select_with_fallback.
FALLBACK_STRATEGIES = ("id", "class", "tag", "text")


@dataclass(frozen=True)
class Criteria:
    tag: str | None = None
    id_attr: str | None = None
    class_attr: str | None = None
    text_contains: str | None = None
    required_attrs: tuple = ()
    index: int | None = None

    def is_empty(self) -> bool:
        return (
            self.tag is None and self.id_attr is None and self.class_attr is None
            and self.text_contains is None and not self.required_attrs
        )

    def describe(self) -> str:
        parts = []
        if self.tag is not None:
            parts.append(f"tag={self.tag!r}")
        if self.id_attr is not None:
            parts.append(f"id={self.id_attr!r}")
        if self.class_attr is not None:
            parts.append(f"class={self.class_attr!r}")
        if self.text_contains is not None:
            parts.append(f"text~{self.text_contains!r}")
        if self.required_attrs:
            parts.append(f"attrs={list(self.required_attrs)}")
        if self.index is not None:
            parts.append(f"index={self.index}")
        return ", ".join(parts) or "<empty>"


def attribute_text(value) -> str | None:
    """Comparable string form of an attribute value."""
    if isinstance(value, StringLiteral):
        return value.value
    if isinstance(value, NumberLiteral):
        return format_number(value.value)
    if isinstance(value, BooleanLiteral):
        return "true" if value.value else "false"
    if isinstance(value, ExpressionValue):
        return value.expression.text.strip()
    return None


def id_of(node: Node) -> str | None:
    for name in ID_ATTRIBUTES:
        if name in node.attributes:
            return attribute_text(node.attributes[name])
    return None


def classes_of(node: Node) -> str | None:
    for name in CLASS_ATTRIBUTES:
        if name in node.attributes:
            return attribute_text(node.attributes[name])
    return None


def matches(node: Node, criteria: Criteria) -> bool:
    if criteria.is_empty():
        return False
    if criteria.tag is not None and node.tag != criteria.tag:
        return False
    if criteria.id_attr is not None and id_of(node) != criteria.id_attr:
        return False
    if criteria.class_attr is not None:
        classes = classes_of(node)
        if classes is None:
            return False
        wanted = criteria.class_attr
        if wanted not in classes.split() and wanted not in classes:
            return False
    for name in criteria.required_attrs:
        if name not in node.attributes:
            return False
    if criteria.text_contains is not None \
            and criteria.text_contains not in node.text_content():
        return False
    return True


def select(root: Document | Node, criteria: Criteria) -> list[Node]:
    """All nodes matching criteria, in document order.

    When criteria.index is set, only the nth match (0-based) is returned.
    """
    found = [node for node in iter_nodes(root) if matches(node, criteria)]
    if criteria.index is None:
        return found
    if 0 <= criteria.index < len(found):
        return [found[criteria.index]]
    return []


def select_with_fallback(
    root: Document | Node, criteria: Criteria,
) -> tuple[list[Node], str | None]:
    """Try id -> class -> tag -> text-content, first non-empty result wins.

    Each strategy uses only its own field of criteria (plus index).
    Returns (nodes, strategy); strategy is None when nothing matched.
    """
    fields = {
        "id": Criteria(id_attr=criteria.id_attr),
        "class": Criteria(class_attr=criteria.class_attr),
        "tag": Criteria(tag=criteria.tag),
        "text": Criteria(text_contains=criteria.text_contains),
    }
    for strategy in FALLBACK_STRATEGIES:
        single = fields[strategy]
        if single.is_empty():
            continue
        found = select(root, replace(single, index=criteria.index))
        if found:
            return found, strategy
    return [], None
