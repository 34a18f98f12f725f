"""CLI for array-builder conversion.

Reads a composition file, converts push-built arrays into frame-driven
generators, augments basic content, validates the result, and writes it.
If the time budget runs out the operation is checkpointed and can be
finished with `scenecompose resume`.

Usage:
    # Convert and write next to the source
    scenecompose convert src/Composition.tsx --output src/Composition.converted.tsx

    # Use settings (checkpoint directory, budget, thresholds)
    scenecompose convert src/Composition.tsx --config scenecompose.yaml

    # Print the converted text instead of writing a file
    scenecompose convert src/Composition.tsx --project github-showcase
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from .checkpoints import YamlCheckpointStore
from .results import ErrorKind
from .session import Session
from .settings import load_settings


# ── Shared CLI helpers ────────────────────────────────────────────


def add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", default=None,
        help="Path to a settings YAML file",
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Log pipeline details to stderr",
    )


def open_session(parsed) -> Session:
    """Session with a YAML checkpoint store, configured from --config."""
    if parsed.verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    settings = load_settings(parsed.config)
    store = YamlCheckpointStore(settings.session.checkpoint_dir)
    return Session(store=store, settings=settings)


def read_source(path: str) -> str:
    source = Path(path)
    if not source.exists():
        raise FileNotFoundError(f"Composition not found: {path}")
    return source.read_text()


def write_result(result, output: str | None) -> None:
    """Print diagnostics and changes, then write or print the text."""
    for change in result.changes:
        print(f"  * {change}")
    for diagnostic in result.diagnostics:
        print(f"  {diagnostic.format()}")
    if result.needs_rework:
        print("  ! content is still below the richness target; rework it by hand")
    if result.text is None:
        return
    if output:
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        Path(output).write_text(result.text)
        print(f"Wrote {output}")
    else:
        sys.stdout.write(result.text)


def finish(result, output: str | None, started: float) -> None:
    """Report an OperationResult and exit non-zero on failure."""
    error = result.error
    if error is not None and error.kind == ErrorKind.RESUMABLE_TIMEOUT:
        print(f"Paused: {error.message}")
        sys.exit(3)
    if error is not None and error.kind != ErrorKind.VALIDATION_FAILURE:
        where = f" (line {error.line}, column {error.column})" if error.line else ""
        print(f"Error [{error.kind.value}]: {error.message}{where}", file=sys.stderr)
        sys.exit(1)
    write_result(result, output)
    elapsed = time.monotonic() - started
    status = "valid" if result.is_valid else "INVALID"
    print(f"Done: {status}, {len(result.changes)} change(s) ({elapsed:.1f}s)")
    if not result.success:
        sys.exit(1)


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Convert push-built arrays into frame-driven generators.",
    )
    parser.add_argument("file", help="Composition file (.tsx)")
    parser.add_argument(
        "--output", default=None,
        help="Output file path (default: print to stdout)",
    )
    parser.add_argument(
        "--project", default=None,
        help="Project name; also used as the domain hint for augmentation",
    )
    parser.add_argument(
        "--operation-id", default=None,
        help="Explicit operation id (default: generated)",
    )
    add_common_args(parser)
    parsed = parser.parse_args(args)

    session = open_session(parsed)
    text = read_source(parsed.file)

    print(f"Converting {parsed.file}")
    started = time.monotonic()
    result = session.convert(text, project_name=parsed.project, operation_id=parsed.operation_id)
    finish(result, parsed.output, started)


if __name__ == "__main__":
    main()
