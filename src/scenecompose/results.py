"""Result and diagnostic types shared across the pipeline.

Every public operation returns a result object with an explicit `success`
flag. Expected failures (malformed text, a selector matching nothing, a
document failing validation, an interrupted session) are reported through
`Failure` with an ErrorKind instead of being raised.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum


class ErrorKind(str, Enum):
    PARSE_ERROR = "parse_error"
    NOT_FOUND = "not_found"
    VALIDATION_FAILURE = "validation_failure"
    RESUMABLE_TIMEOUT = "resumable_timeout"
    SYSTEM_ERROR = "system_error"


SEVERITIES = ("critical", "high", "medium", "low")


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str
    line: int | None = None
    column: int | None = None
    operation_id: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


@dataclass(frozen=True)
class Diagnostic:
    """One observation about a document. Never mutates the tree."""

    kind: str
    severity: str
    message: str
    line: int | None = None
    column: int | None = None
    suggested_fix: str | None = None
    layer: int = 0

    def __post_init__(self):
        if self.severity not in SEVERITIES:
            raise ValueError(
                f"Unknown severity '{self.severity}'. Valid: {list(SEVERITIES)}"
            )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Diagnostic":
        return cls(**data)

    def format(self) -> str:
        where = f"{self.line}:{self.column} " if self.line is not None else ""
        text = f"{where}[{self.severity}] {self.kind}: {self.message}"
        if self.suggested_fix:
            text += f" (fix: {self.suggested_fix})"
        return text


@dataclass
class MutationResult:
    """Outcome of one mutation. `snapshot` is the text before the edit."""

    success: bool
    document: object = None
    changes: list = field(default_factory=list)
    warnings: list = field(default_factory=list)
    error: Failure | None = None
    snapshot: str | None = None


@dataclass
class OperationResult:
    """Outcome of a session operation (convert, validate, enhance, resume)."""

    success: bool
    text: str | None = None
    changes: list = field(default_factory=list)
    diagnostics: list = field(default_factory=list)
    is_valid: bool | None = None
    runtime_safe: bool | None = None
    error: Failure | None = None
    operation_id: str | None = None
    snapshot: str | None = None
    needs_rework: bool | None = None
    message: str | None = None
