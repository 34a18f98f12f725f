"""Checkpointed session controller.

Long operations run as a fixed sequence of stages:

  parsed -> classified -> mutated -> augmented -> validated -> generate

Each stage reads the text left by the previous one, parses it, does its
work on the tree and generates text again. That text is written to the
checkpoint before the next stage starts, so resuming from any boundary
replays exactly the stages an uninterrupted run would have executed, on
exactly the same input, and yields byte-identical output.

A wall-clock budget (settings.session.budget_seconds, or a per-call
override) is checked between stages once at least one stage has run in
the current invocation. When it runs out the checkpoint stays in the
store and the result carries a RESUMABLE_TIMEOUT error with the
operation id.

Expected failures come back as results. Anything unexpected (e.g. a
corrupted checkpoint file) is logged with the operation id and stage and
returned as SYSTEM_ERROR; the checkpoint is kept for inspection.
"""

import logging
import time
import uuid

from .checkpoints import STAGES, Checkpoint, MemoryCheckpointStore
from .common import LineIndex
from .converter import convert_array_builders, find_array_builders
from .parser import ParseError, parse
from .results import Diagnostic, ErrorKind, Failure, OperationResult
from .richness import augment
from .settings import Settings
from .transitions import analyze_document, fix_overlaps, repair_input_ranges
from .tree import generate
from .validation import build_report, validate_document

logger = logging.getLogger(__name__)

CONVERT = "convert"
ENHANCE = "enhance"
OPERATIONS = (CONVERT, ENHANCE)


class Session:
    """Runs convert/enhance operations against a checkpoint store.

    Args:
        store: checkpoint store (MemoryCheckpointStore by default).
        settings: pipeline settings.
        clock: monotonic clock for the per-invocation budget.
        now: wall clock for checkpoint timestamps.
    """

    def __init__(self, store=None, settings: Settings | None = None,
                 clock=time.monotonic, now=time.time):
        self.store = store if store is not None else MemoryCheckpointStore()
        self.settings = settings or Settings()
        self.clock = clock
        self.now = now

    # ── Public operations ─────────────────────────────────────────

    def convert(self, text: str, project_name: str | None = None,
                operation_id: str | None = None,
                budget_seconds: float | None = None) -> OperationResult:
        """Convert push-built arrays to frame-driven generators, augment
        basic content, and validate."""
        return self._start(CONVERT, text, project_name, operation_id,
                           {"project_hint": project_name}, budget_seconds)

    def enhance(self, text: str, project_hint: str | None = None,
                operation_id: str | None = None,
                budget_seconds: float | None = None) -> OperationResult:
        """Repair transition timing, augment basic content, and validate."""
        return self._start(ENHANCE, text, project_hint, operation_id,
                           {"project_hint": project_hint}, budget_seconds)

    def validate(self, text: str) -> OperationResult:
        """Validate text without checkpoints. success iff no critical issue."""
        try:
            report = validate_document(text, self.settings.validation)
        except Exception as exc:
            logger.exception("validation failed unexpectedly")
            return self._system_error(None, exc)
        error = None
        if not report.is_valid:
            critical = len(report.by_severity("critical"))
            error = Failure(
                ErrorKind.VALIDATION_FAILURE,
                f"{critical} critical issue(s) found",
            )
        return OperationResult(
            success=report.is_valid,
            text=text,
            diagnostics=report.diagnostics,
            is_valid=report.is_valid,
            runtime_safe=report.runtime_safe,
            error=error,
        )

    def resume(self, operation_id: str,
               budget_seconds: float | None = None) -> OperationResult:
        """Continue an interrupted operation from its last stage boundary."""
        try:
            checkpoint = self.store.get(operation_id)
        except Exception as exc:
            logger.exception("cannot load checkpoint for operation %s", operation_id)
            return self._system_error(operation_id, exc)
        if checkpoint is None:
            return OperationResult(
                success=False,
                operation_id=operation_id,
                error=Failure(
                    ErrorKind.NOT_FOUND,
                    f"No interrupted operation '{operation_id}'",
                    operation_id=operation_id,
                ),
            )
        logger.info("resuming %s %s after stage %s",
                    checkpoint.operation, operation_id, checkpoint.stage)
        return self._run(checkpoint, budget_seconds)

    def list_interrupted(self) -> list[Checkpoint]:
        return self.store.list()

    def cancel(self, operation_id: str) -> OperationResult:
        """Drop an operation's checkpoint. Cancelling twice is a no-op."""
        removed = self.store.delete(operation_id)
        if removed:
            message = f"Cancelled operation '{operation_id}'"
        else:
            message = f"No operation '{operation_id}' to cancel"
        logger.info(message)
        return OperationResult(success=True, operation_id=operation_id, message=message)

    def cleanup_stale(self, max_age_hours: float | None = None) -> list[str]:
        """Remove checkpoints older than max_age_hours (settings default)."""
        hours = max_age_hours if max_age_hours is not None else self.settings.session.stale_after_hours
        removed = self.store.sweep(hours, now=self.now())
        if removed:
            logger.info("removed %d stale checkpoint(s)", len(removed))
        return removed

    # ── Driver ────────────────────────────────────────────────────

    def _start(self, operation: str, text: str, project_name: str | None,
               operation_id: str | None, options: dict,
               budget_seconds: float | None) -> OperationResult:
        operation_id = operation_id or f"{operation}-{uuid.uuid4().hex[:12]}"
        try:
            existing = self.store.get(operation_id)
            if existing is not None:
                if existing.operation != operation or existing.snapshot != text:
                    return OperationResult(
                        success=False,
                        operation_id=operation_id,
                        error=Failure(
                            ErrorKind.SYSTEM_ERROR,
                            f"Operation id '{operation_id}' is already in use "
                            f"by a different {existing.operation} operation",
                            operation_id=operation_id,
                        ),
                    )
                logger.info("operation %s already started; resuming", operation_id)
                return self._run(existing, budget_seconds)

            stamp = self.now()
            checkpoint = Checkpoint(
                operation_id=operation_id,
                project_name=project_name,
                operation=operation,
                snapshot=text,
                partial_text=text,
                options=options,
                created_at=stamp,
                updated_at=stamp,
            )
            self.store.create(checkpoint)
        except Exception as exc:
            logger.exception("cannot start %s operation %s", operation, operation_id)
            return self._system_error(operation_id, exc)
        return self._run(checkpoint, budget_seconds)

    def _run(self, checkpoint: Checkpoint, budget_seconds: float | None) -> OperationResult:
        budget = budget_seconds if budget_seconds is not None else self.settings.session.budget_seconds
        started = self.clock()
        ran = 0
        stage = checkpoint.next_stage
        try:
            while stage is not None:
                if ran and budget is not None and self.clock() - started >= budget:
                    self.store.update(checkpoint)
                    logger.info("operation %s paused after stage %s",
                                checkpoint.operation_id, checkpoint.stage)
                    return self._timeout(checkpoint)
                handler = getattr(self, f"_{checkpoint.operation}_{stage}")
                text = handler(checkpoint, checkpoint.partial_text)
                checkpoint.advance(stage, text, self.now())
                self.store.update(checkpoint)
                ran += 1
                stage = checkpoint.next_stage
        except ParseError as exc:
            self.store.delete(checkpoint.operation_id)
            return OperationResult(
                success=False,
                operation_id=checkpoint.operation_id,
                snapshot=checkpoint.snapshot,
                error=Failure(
                    ErrorKind.PARSE_ERROR, exc.message, exc.line, exc.column,
                    checkpoint.operation_id,
                ),
            )
        except Exception as exc:
            logger.exception(
                "operation %s failed during stage %s",
                checkpoint.operation_id, stage,
            )
            return self._system_error(checkpoint.operation_id, exc)

        self.store.delete(checkpoint.operation_id)
        return self._finish(checkpoint)

    def _finish(self, checkpoint: Checkpoint) -> OperationResult:
        report = build_report([Diagnostic.from_dict(d) for d in checkpoint.diagnostics])
        error = None
        if not report.is_valid:
            critical = len(report.by_severity("critical"))
            error = Failure(
                ErrorKind.VALIDATION_FAILURE,
                f"{checkpoint.operation} produced text with {critical} critical issue(s)",
                operation_id=checkpoint.operation_id,
            )
        return OperationResult(
            success=report.is_valid,
            text=checkpoint.partial_text,
            changes=list(checkpoint.changes),
            diagnostics=report.diagnostics,
            is_valid=report.is_valid,
            runtime_safe=report.runtime_safe,
            error=error,
            operation_id=checkpoint.operation_id,
            snapshot=checkpoint.snapshot,
            needs_rework=checkpoint.needs_rework,
        )

    def _timeout(self, checkpoint: Checkpoint) -> OperationResult:
        done = STAGES.index(checkpoint.stage) + 1
        return OperationResult(
            success=False,
            operation_id=checkpoint.operation_id,
            snapshot=checkpoint.snapshot,
            changes=list(checkpoint.changes),
            error=Failure(
                ErrorKind.RESUMABLE_TIMEOUT,
                f"Time budget exhausted after stage '{checkpoint.stage}' "
                f"({done}/{len(STAGES)}); resume with operation id "
                f"'{checkpoint.operation_id}'",
                operation_id=checkpoint.operation_id,
            ),
        )

    @staticmethod
    def _system_error(operation_id: str | None, exc: Exception) -> OperationResult:
        return OperationResult(
            success=False,
            operation_id=operation_id,
            error=Failure(
                ErrorKind.SYSTEM_ERROR,
                f"{type(exc).__name__}: {exc}",
                operation_id=operation_id,
            ),
        )

    # ── Shared stages ─────────────────────────────────────────────

    def _parsed(self, checkpoint: Checkpoint, text: str) -> str:
        return generate(parse(text))

    def _augmented(self, checkpoint: Checkpoint, text: str) -> str:
        if checkpoint.operation == CONVERT and not self.settings.richness.augment_on_convert:
            return text
        result = augment(
            parse(text), checkpoint.options.get("project_hint"), self.settings.richness,
        )
        checkpoint.changes.extend(result.changes)
        checkpoint.needs_rework = result.needs_rework
        if result.changes:
            checkpoint.changes.append(
                f"Richness {result.before.total} ({result.before.band}) -> "
                f"{result.after.total} ({result.after.band})"
            )
        return generate(result.document)

    def _validated(self, checkpoint: Checkpoint, text: str, extra=()) -> str:
        report = validate_document(text, self.settings.validation)
        checkpoint.diagnostics = [d.to_dict() for d in [*report.diagnostics, *extra]]
        return text

    # ── convert ───────────────────────────────────────────────────

    def _convert_parsed(self, checkpoint: Checkpoint, text: str) -> str:
        return self._parsed(checkpoint, text)

    def _convert_classified(self, checkpoint: Checkpoint, text: str) -> str:
        builders = find_array_builders(parse(text))
        checkpoint.options["array_builders"] = builders
        logger.debug("%s: %d array builder(s)", checkpoint.operation_id, len(builders))
        return text

    def _convert_mutated(self, checkpoint: Checkpoint, text: str) -> str:
        if not checkpoint.options.get("array_builders"):
            return text
        result = convert_array_builders(parse(text))
        checkpoint.changes.extend(result.changes)
        checkpoint.diagnostics.extend(
            Diagnostic(kind="conversion_warning", severity="low", message=w).to_dict()
            for w in result.warnings
        )
        return generate(result.document)

    def _convert_augmented(self, checkpoint: Checkpoint, text: str) -> str:
        return self._augmented(checkpoint, text)

    def _convert_validated(self, checkpoint: Checkpoint, text: str) -> str:
        warnings = [Diagnostic.from_dict(d) for d in checkpoint.diagnostics
                    if d["kind"] == "conversion_warning"]
        return self._validated(checkpoint, text, warnings)

    # ── enhance ───────────────────────────────────────────────────

    def _enhance_parsed(self, checkpoint: Checkpoint, text: str) -> str:
        return self._parsed(checkpoint, text)

    def _enhance_classified(self, checkpoint: Checkpoint, text: str) -> str:
        defects = analyze_document(parse(text), self.settings.transitions)
        checkpoint.options["transition_defects"] = len(defects)
        return text

    def _enhance_mutated(self, checkpoint: Checkpoint, text: str) -> str:
        repaired = repair_input_ranges(parse(text))
        checkpoint.changes.extend(repaired.changes)
        fixed = fix_overlaps(repaired.document, self.settings.transitions)
        checkpoint.changes.extend(fixed.changes)
        return generate(fixed.document)

    def _enhance_augmented(self, checkpoint: Checkpoint, text: str) -> str:
        return self._augmented(checkpoint, text)

    def _enhance_validated(self, checkpoint: Checkpoint, text: str) -> str:
        lines = LineIndex(text)
        remaining = [
            defect.to_diagnostic(lines)
            for defect in analyze_document(parse(text), self.settings.transitions)
        ]
        return self._validated(checkpoint, text, remaining)
