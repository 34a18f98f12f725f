"""CLI for interrupted operations: resume, list, cancel, cleanup.

Usage:
    scenecompose list
    scenecompose resume convert-1a2b3c4d5e6f --output out.tsx
    scenecompose cancel convert-1a2b3c4d5e6f
    scenecompose cleanup --max-age-hours 12
"""

import argparse
import time
from datetime import datetime

from .cli import add_common_args, finish, open_session


def resume_main(args=None):
    parser = argparse.ArgumentParser(
        prog="scenecompose resume",
        description="Resume an interrupted operation from its last stage.",
    )
    parser.add_argument("operation_id", help="Operation id printed when it paused")
    parser.add_argument(
        "--output", default=None,
        help="Output file path (default: print to stdout)",
    )
    add_common_args(parser)
    parsed = parser.parse_args(args)

    session = open_session(parsed)
    print(f"Resuming {parsed.operation_id}")
    started = time.monotonic()
    finish(session.resume(parsed.operation_id), parsed.output, started)


def list_main(args=None):
    parser = argparse.ArgumentParser(
        prog="scenecompose list",
        description="List interrupted operations.",
    )
    add_common_args(parser)
    parsed = parser.parse_args(args)

    session = open_session(parsed)
    checkpoints = session.list_interrupted()
    if not checkpoints:
        print("No interrupted operations")
        return
    for cp in checkpoints:
        updated = datetime.fromtimestamp(cp.updated_at).strftime("%Y-%m-%d %H:%M")
        project = cp.project_name or "-"
        print(
            f"{cp.operation_id:<28} {cp.operation:<8} {project:<20} "
            f"{cp.stage:<11} {cp.progress:>3}%  {updated}"
        )


def cancel_main(args=None):
    parser = argparse.ArgumentParser(
        prog="scenecompose cancel",
        description="Cancel an interrupted operation (no-op if it does not exist).",
    )
    parser.add_argument("operation_id", help="Operation to cancel")
    add_common_args(parser)
    parsed = parser.parse_args(args)

    session = open_session(parsed)
    print(session.cancel(parsed.operation_id).message)


def cleanup_main(args=None):
    parser = argparse.ArgumentParser(
        prog="scenecompose cleanup",
        description="Remove checkpoints that have not been updated recently.",
    )
    parser.add_argument(
        "--max-age-hours", type=float, default=None,
        help="Age limit in hours (default: session.stale_after_hours)",
    )
    add_common_args(parser)
    parsed = parser.parse_args(args)

    session = open_session(parsed)
    removed = session.cleanup_stale(parsed.max_age_hours)
    for operation_id in removed:
        print(f"  removed {operation_id}")
    print(f"Done: {len(removed)} stale checkpoint(s) removed")
