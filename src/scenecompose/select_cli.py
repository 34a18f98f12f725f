"""CLI for element selection.

Prints every element matching the criteria, one per line, with its
source position. With --fallback the id -> class -> tag -> text
strategies are tried in turn.

Usage:
    scenecompose select src/Composition.tsx --tag Sequence
    scenecompose select src/Composition.tsx --id title --fallback
    scenecompose select src/Composition.tsx --class card --attr style --index 0
"""

import argparse
import sys

from .cli import read_source
from .parser import ParseError, parse
from .selector import Criteria, id_of, select, select_with_fallback


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Find elements in a composition.",
    )
    parser.add_argument("file", help="Composition file (.tsx)")
    parser.add_argument("--tag", default=None, help="Element tag, e.g. Sequence")
    parser.add_argument("--id", dest="id_attr", default=None, help="id / name / key value")
    parser.add_argument("--class", dest="class_attr", default=None, help="className token")
    parser.add_argument("--text", dest="text_contains", default=None, help="Descendant text")
    parser.add_argument(
        "--attr", dest="required_attrs", action="append", default=[],
        help="Required attribute name (repeatable)",
    )
    parser.add_argument("--index", type=int, default=None, help="Keep only the nth match")
    parser.add_argument(
        "--fallback", action="store_true",
        help="Try id, class, tag, then text until something matches",
    )
    parsed = parser.parse_args(args)

    criteria = Criteria(
        tag=parsed.tag,
        id_attr=parsed.id_attr,
        class_attr=parsed.class_attr,
        text_contains=parsed.text_contains,
        required_attrs=tuple(parsed.required_attrs),
        index=parsed.index,
    )
    if criteria.is_empty():
        parser.error("Give at least one of --tag, --id, --class, --text, --attr")

    try:
        document = parse(read_source(parsed.file))
    except ParseError as exc:
        print(f"Error [parse_error]: {exc}", file=sys.stderr)
        sys.exit(1)

    if parsed.fallback:
        nodes, strategy = select_with_fallback(document, criteria)
    else:
        nodes, strategy = select(document, criteria), None

    for node in nodes:
        ident = id_of(node)
        label = f"<{node.tag}#{ident}>" if ident else f"<{node.tag}>"
        print(f"{node.line}:{node.column}  {label}")

    via = f" via {strategy}" if strategy else ""
    print(f"{len(nodes)} match(es){via} for [{criteria.describe()}]")
    if not nodes:
        sys.exit(1)


if __name__ == "__main__":
    main()
