"""Update planning: targeted edits versus full replacement.

Given the current text of a composition and a proposed new text,
plan_update() decides whether the change can be expressed as per-node
attribute and text edits on the existing tree, or whether the new text
should replace the old one wholesale.

A targeted plan requires structural similarity:

  - the same set of Sequence-like timeline elements in both documents
  - a custom component count that differs by at most `component_cutoff`
  - the same elements, in the same order (matched by tag and ordinal)

and the planned edits, applied through the mutation engine, must
reproduce the new text up to whitespace. Otherwise the plan is
`replace`.
"""

import copy
import logging
import re
from dataclasses import dataclass, field

from .mutation import remove_attribute, set_attribute, set_text
from .parser import ParseError, parse
from .results import ErrorKind, Failure, OperationResult
from .richness import component_names
from .selector import Criteria, id_of
from .tree import Document, TextSegment, generate, iter_nodes, render_attribute_value

logger = logging.getLogger(__name__)

TARGETED = "targeted"
REPLACE = "replace"

DEFAULT_COMPONENT_CUTOFF = 2
SEQUENCE_TAGS = {"Sequence", "Series.Sequence", "TransitionSeries.Sequence"}


@dataclass
class Edit:
    op: str                 # set_attribute | remove_attribute | set_text
    criteria: Criteria
    name: str | None = None
    value: object = None

    def describe(self) -> str:
        target = self.criteria.describe()
        if self.op == "set_attribute":
            return f"set {self.name}={render_attribute_value(self.value)} on [{target}]"
        if self.op == "remove_attribute":
            return f"remove {self.name} from [{target}]"
        return f"set text {self.value!r} on [{target}]"


@dataclass
class UpdatePlan:
    strategy: str
    reasons: list = field(default_factory=list)
    edits: list = field(default_factory=list)
    text: str = ""


def _normalize_space(text: str) -> str:
    return re.sub(r"\s+", "", text)


def _sequence_tags(document: Document) -> set[str]:
    return {node.tag for node in iter_nodes(document) if node.tag in SEQUENCE_TAGS}


def _criteria_for(node, ordinal: int, nodes: list) -> Criteria:
    ident = id_of(node)
    if ident is not None:
        same = [n for n in nodes if n.tag == node.tag and id_of(n) == ident]
        if len(same) == 1:
            return Criteria(tag=node.tag, id_attr=ident)
    return Criteria(tag=node.tag, index=ordinal)


def _only_text(node) -> bool:
    return bool(node.children) and all(isinstance(c, TextSegment) for c in node.children)


def _node_edits(old, new, criteria: Criteria) -> list[Edit]:
    edits = []
    for name, value in new.attributes.items():
        if name.startswith("..."):
            continue
        current = old.attributes.get(name)
        if current is None or render_attribute_value(current) != render_attribute_value(value):
            edits.append(Edit("set_attribute", criteria, name, copy.deepcopy(value)))
    for name in old.attributes:
        if name not in new.attributes and not name.startswith("..."):
            edits.append(Edit("remove_attribute", criteria, name))
    if _only_text(old) and _only_text(new):
        old_text = "".join(c.text for c in old.children)
        new_text = "".join(c.text for c in new.children)
        if old_text != new_text:
            edits.append(Edit("set_text", criteria, value=new_text))
    return edits


def apply_edits(document: Document, edits: list[Edit]) -> Document:
    """Apply planned edits in order through the mutation engine."""
    for edit in edits:
        if edit.op == "set_attribute":
            result = set_attribute(document, edit.criteria, edit.name, edit.value)
        elif edit.op == "remove_attribute":
            result = remove_attribute(document, edit.criteria, edit.name)
        elif edit.op == "set_text":
            result = set_text(document, edit.criteria, edit.value)
        else:
            raise ValueError(f"Unknown edit op '{edit.op}'")
        if not result.success:
            raise LookupError(result.error.message)
        document = result.document
    return document


def plan_update(old_text: str, new_text: str,
                component_cutoff: int = DEFAULT_COMPONENT_CUTOFF) -> UpdatePlan:
    """Plan how to turn old_text into new_text.

    Raises:
        ParseError: either text does not parse.
    """
    old = parse(old_text)
    new = parse(new_text)
    reasons = []

    old_sequences, new_sequences = _sequence_tags(old), _sequence_tags(new)
    if old_sequences != new_sequences:
        reasons.append(
            f"timeline elements changed: {sorted(old_sequences)} -> {sorted(new_sequences)}"
        )
    delta = abs(len(component_names(old)) - len(component_names(new)))
    if delta > component_cutoff:
        reasons.append(f"custom component count changed by {delta} (cutoff {component_cutoff})")

    old_nodes, new_nodes = list(iter_nodes(old)), list(iter_nodes(new))
    if [n.tag for n in old_nodes] != [n.tag for n in new_nodes]:
        reasons.append("element structure differs")
    if reasons:
        return UpdatePlan(REPLACE, reasons=reasons, text=new_text)

    edits = []
    ordinals: dict[str, int] = {}
    for old_node, new_node in zip(old_nodes, new_nodes):
        ordinal = ordinals.get(old_node.tag, 0)
        ordinals[old_node.tag] = ordinal + 1
        if old_node.is_fragment:
            continue
        criteria = _criteria_for(old_node, ordinal, old_nodes)
        edits.extend(_node_edits(old_node, new_node, criteria))

    try:
        text = generate(apply_edits(old, edits))
    except LookupError as exc:
        return UpdatePlan(REPLACE, reasons=[f"edit target not found: {exc}"], text=new_text)
    if _normalize_space(text) != _normalize_space(new_text):
        return UpdatePlan(
            REPLACE, reasons=["targeted edits do not reproduce the new text"], text=new_text,
        )
    return UpdatePlan(TARGETED, edits=edits, text=text)


def apply_update(old_text: str, new_text: str,
                 component_cutoff: int = DEFAULT_COMPONENT_CUTOFF) -> OperationResult:
    """Execute plan_update; the snapshot is always old_text."""
    try:
        plan = plan_update(old_text, new_text, component_cutoff)
    except ParseError as exc:
        return OperationResult(
            success=False,
            snapshot=old_text,
            error=Failure(ErrorKind.PARSE_ERROR, exc.message, exc.line, exc.column),
        )
    if plan.strategy == TARGETED:
        changes = [edit.describe() for edit in plan.edits]
        message = f"Applied {len(plan.edits)} targeted edit(s)"
    else:
        changes = [f"Replaced document ({'; '.join(plan.reasons)})"]
        message = "Replaced document"
    logger.info(message)
    return OperationResult(
        success=True, text=plan.text, changes=changes, snapshot=old_text, message=message,
    )
