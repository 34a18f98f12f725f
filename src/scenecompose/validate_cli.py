"""CLI for static validation.

Usage:
    scenecompose validate src/Composition.tsx
    scenecompose validate src/Composition.tsx --type-check --config scenecompose.yaml
"""

import argparse
import dataclasses
import sys

from .cli import add_common_args, open_session, read_source


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Validate a composition across the five static layers.",
    )
    parser.add_argument("file", help="Composition file (.tsx)")
    parser.add_argument(
        "--type-check", action="store_true",
        help="Also run tsc (layer 3) even if the settings disable it",
    )
    add_common_args(parser)
    parsed = parser.parse_args(args)

    session = open_session(parsed)
    if parsed.type_check:
        validation = dataclasses.replace(session.settings.validation, type_check=True)
        session.settings = dataclasses.replace(session.settings, validation=validation)
    text = read_source(parsed.file)

    print(f"Validating {parsed.file}")
    result = session.validate(text)
    for diagnostic in result.diagnostics:
        print(f"  {diagnostic.format()}")

    critical = sum(1 for d in result.diagnostics if d.severity == "critical")
    print(
        f"Valid: {'yes' if result.is_valid else 'no'}  "
        f"Runtime safe: {'yes' if result.runtime_safe else 'no'}  "
        f"({len(result.diagnostics)} diagnostic(s), {critical} critical)"
    )
    if not result.success:
        sys.exit(1)


if __name__ == "__main__":
    main()
