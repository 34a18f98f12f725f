"""Subcommand dispatcher for scenecompose.

Usage:
    scenecompose convert  composition.tsx --output out.tsx --project github
    scenecompose validate composition.tsx --type-check
    scenecompose enhance  composition.tsx --project-hint finance --output out.tsx
    scenecompose resume   convert-1a2b3c4d5e6f --output out.tsx
    scenecompose list
    scenecompose cancel   convert-1a2b3c4d5e6f
    scenecompose cleanup  --max-age-hours 12
    scenecompose select   composition.tsx --tag Sequence --attr from
"""

import argparse
import sys

COMMANDS = ("convert", "validate", "enhance", "resume", "list", "cancel", "cleanup", "select")


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="scenecompose",
        description="Composition document conversion, validation, and enhancement.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Register subcommands. Each delegates to its own module's main().
    subparsers.add_parser("convert", help="Convert push-built arrays to frame-driven generators")
    subparsers.add_parser("validate", help="Run the five validation layers")
    subparsers.add_parser("enhance", help="Repair transitions and enrich basic content")
    subparsers.add_parser("resume", help="Resume an interrupted operation")
    subparsers.add_parser("list", help="List interrupted operations")
    subparsers.add_parser("cancel", help="Cancel an interrupted operation")
    subparsers.add_parser("cleanup", help="Remove stale checkpoints")
    subparsers.add_parser("select", help="Find elements by tag, id, class, text or attributes")

    # Parse only the subcommand name, pass the rest to the subcommand's parser.
    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None or parsed.command not in COMMANDS:
        parser.print_help()
        sys.exit(1)

    if parsed.command == "convert":
        from .cli import main as convert_main
        convert_main(remaining)
    elif parsed.command == "validate":
        from .validate_cli import main as validate_main
        validate_main(remaining)
    elif parsed.command == "enhance":
        from .enhance_cli import main as enhance_main
        enhance_main(remaining)
    elif parsed.command == "resume":
        from .checkpoint_cli import resume_main
        resume_main(remaining)
    elif parsed.command == "list":
        from .checkpoint_cli import list_main
        list_main(remaining)
    elif parsed.command == "cancel":
        from .checkpoint_cli import cancel_main
        cancel_main(remaining)
    elif parsed.command == "cleanup":
        from .checkpoint_cli import cleanup_main
        cleanup_main(remaining)
    elif parsed.command == "select":
        from .select_cli import main as select_main
        select_main(remaining)


if __name__ == "__main__":
    main()
