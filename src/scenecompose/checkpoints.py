"""Checkpoint records and the stores that hold them.

A Checkpoint is the persisted progress of one long operation, keyed by
operation id. The session writes it at every stage boundary, so
`partial_text` is always the generated text of the last completed stage.

Two stores share one interface:

  MemoryCheckpointStore          process-local dict
  YamlCheckpointStore(directory) one <operation_id>.yaml file per
                                 operation, replaced atomically

Both support create-if-absent, get, update, delete, list and a sweep of
entries older than N hours.
"""

import copy
import logging
import os
import re
import tempfile
import time
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

STAGES = ("parsed", "classified", "mutated", "augmented", "validated")
PENDING = "pending"

_OPERATION_ID_RE = re.compile(r"^[A-Za-z0-9_.\-]+$")


@dataclass
class Checkpoint:
    operation_id: str
    project_name: str | None
    operation: str
    stage: str = PENDING
    progress: int = 0
    snapshot: str = ""
    partial_text: str = ""
    changes: list = field(default_factory=list)
    diagnostics: list = field(default_factory=list)
    options: dict = field(default_factory=dict)
    needs_rework: bool | None = None
    created_at: float = 0.0
    updated_at: float = 0.0

    def __post_init__(self):
        if self.stage != PENDING and self.stage not in STAGES:
            raise ValueError(
                f"Checkpoint {self.operation_id}: unknown stage '{self.stage}'. "
                f"Valid: {[PENDING, *STAGES]}"
            )

    @property
    def next_stage(self) -> str | None:
        """First stage not yet completed, or None when all are done."""
        if self.stage == PENDING:
            return STAGES[0]
        index = STAGES.index(self.stage)
        return STAGES[index + 1] if index + 1 < len(STAGES) else None

    def advance(self, stage: str, text: str, now: float) -> None:
        self.stage = stage
        self.partial_text = text
        self.progress = round(100 * (STAGES.index(stage) + 1) / len(STAGES))
        self.updated_at = now

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Checkpoint":
        if not isinstance(data, dict):
            raise ValueError("Checkpoint: record must be a mapping")
        known = {f.name for f in fields(cls)}
        missing = [name for name in ("operation_id", "operation") if name not in data]
        if missing:
            raise ValueError(f"Checkpoint: missing required field(s) {missing}")
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(
                f"Checkpoint {data['operation_id']}: unknown field(s) {unknown}"
            )
        return cls(**data)


def validate_operation_id(operation_id: str) -> str:
    if not isinstance(operation_id, str) or not _OPERATION_ID_RE.match(operation_id):
        raise ValueError(
            f"Invalid operation id {operation_id!r}: use letters, digits, '.', '_' or '-'"
        )
    return operation_id


def _is_stale(checkpoint: Checkpoint, max_age_hours: float, now: float) -> bool:
    return now - checkpoint.updated_at > max_age_hours * 3600


# ── Memory store ───────────────────────────────────────────────────


class MemoryCheckpointStore:
    """Checkpoints in a dict; lives as long as the process."""

    def __init__(self):
        self._items: dict[str, dict] = {}

    def create(self, checkpoint: Checkpoint) -> bool:
        """Store checkpoint unless one exists for its id. True if stored."""
        validate_operation_id(checkpoint.operation_id)
        if checkpoint.operation_id in self._items:
            return False
        self._items[checkpoint.operation_id] = checkpoint.to_dict()
        return True

    def get(self, operation_id: str) -> Checkpoint | None:
        data = self._items.get(operation_id)
        return Checkpoint.from_dict(copy.deepcopy(data)) if data is not None else None

    def update(self, checkpoint: Checkpoint) -> None:
        validate_operation_id(checkpoint.operation_id)
        self._items[checkpoint.operation_id] = checkpoint.to_dict()

    def delete(self, operation_id: str) -> bool:
        return self._items.pop(operation_id, None) is not None

    def sweep(self, max_age_hours: float, now: float | None = None) -> list[str]:
        """Delete checkpoints not updated within max_age_hours."""
        now = time.time() if now is None else now
        removed = [c.operation_id for c in self.list() if _is_stale(c, max_age_hours, now)]
        for operation_id in removed:
            self.delete(operation_id)
        return removed

    def list(self) -> list[Checkpoint]:
        items = [Checkpoint.from_dict(copy.deepcopy(d)) for d in self._items.values()]
        return sorted(items, key=lambda c: (c.created_at, c.operation_id))


# ── YAML store ─────────────────────────────────────────────────────


class YamlCheckpointStore:
    """One YAML file per operation under `directory`.

    Writes go to a temporary file in the same directory and are moved
    into place with os.replace, so a reader never sees a partial file.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def path_for(self, operation_id: str) -> Path:
        return self.directory / f"{validate_operation_id(operation_id)}.yaml"

    def _write(self, checkpoint: Checkpoint) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self.path_for(checkpoint.operation_id)
        fd, tmp = tempfile.mkstemp(
            prefix=f".{checkpoint.operation_id}.", suffix=".tmp", dir=self.directory,
        )
        try:
            with os.fdopen(fd, "w") as f:
                yaml.safe_dump(checkpoint.to_dict(), f, sort_keys=False, allow_unicode=True)
            os.replace(tmp, target)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def _read(self, path: Path) -> Checkpoint:
        with open(path) as f:
            data = yaml.safe_load(f)
        return Checkpoint.from_dict(data)

    def create(self, checkpoint: Checkpoint) -> bool:
        """Store checkpoint unless one exists for its id. True if stored."""
        if self.path_for(checkpoint.operation_id).exists():
            return False
        self._write(checkpoint)
        return True

    def get(self, operation_id: str) -> Checkpoint | None:
        """Load a checkpoint. Raises ValueError for a corrupted file."""
        path = self.path_for(operation_id)
        if not path.exists():
            return None
        return self._read(path)

    def update(self, checkpoint: Checkpoint) -> None:
        self._write(checkpoint)

    def delete(self, operation_id: str) -> bool:
        path = self.path_for(operation_id)
        if not path.exists():
            return False
        path.unlink()
        return True

    def sweep(self, max_age_hours: float, now: float | None = None) -> list[str]:
        """Delete checkpoints not updated within max_age_hours."""
        now = time.time() if now is None else now
        removed = []
        for checkpoint in self.list():
            if _is_stale(checkpoint, max_age_hours, now):
                self.delete(checkpoint.operation_id)
                removed.append(checkpoint.operation_id)
        return removed

    def list(self) -> list[Checkpoint]:
        if not self.directory.exists():
            return []
        items = []
        for path in sorted(self.directory.glob("*.yaml")):
            try:
                items.append(self._read(path))
            except (ValueError, yaml.YAMLError) as exc:
                logger.warning("skipping unreadable checkpoint %s: %s", path.name, exc)
        return sorted(items, key=lambda c: (c.created_at, c.operation_id))
