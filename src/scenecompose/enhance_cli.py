"""CLI for composition enhancement.

Repairs transition timing (overlapping fades, non-increasing input
ranges), augments basic content for the given project domain, and
validates the result.

Usage:
    scenecompose enhance src/Composition.tsx --project-hint github --output out.tsx
"""

import argparse
import time

from .cli import add_common_args, finish, open_session, read_source


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Repair transitions and enrich basic compositions.",
    )
    parser.add_argument("file", help="Composition file (.tsx)")
    parser.add_argument(
        "--project-hint", required=True,
        help="Project domain hint, e.g. 'github', 'finance', 'stats'",
    )
    parser.add_argument(
        "--output", default=None,
        help="Output file path (default: print to stdout)",
    )
    parser.add_argument(
        "--operation-id", default=None,
        help="Explicit operation id (default: generated)",
    )
    add_common_args(parser)
    parsed = parser.parse_args(args)

    session = open_session(parsed)
    text = read_source(parsed.file)

    print(f"Enhancing {parsed.file} (hint: {parsed.project_hint})")
    started = time.monotonic()
    result = session.enhance(
        text, project_hint=parsed.project_hint, operation_id=parsed.operation_id,
    )
    finish(result, parsed.output, started)


if __name__ == "__main__":
    main()
