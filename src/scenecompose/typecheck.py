"""Optional static type check through the TypeScript compiler.

Writes the composition to a temporary directory and runs
`tsc --noEmit` with a permissive configuration (implicit any tolerated,
library checks skipped). Output lines of the form

  composition.tsx(12,5): error TS2304: Cannot find name 'foo'.

become layer-3 diagnostics. When tsc is not installed the check is
skipped with a low informational diagnostic instead of failing.
"""

import logging
import re
import shutil
import subprocess
import tempfile
from pathlib import Path

from .results import Diagnostic

logger = logging.getLogger(__name__)

LAYER = 3
FILENAME = "composition.tsx"

TSC_FLAGS = [
    "--noEmit",
    "--jsx", "preserve",
    "--strict", "false",
    "--noImplicitAny", "false",
    "--skipLibCheck",
    "--target", "es2020",
    "--module", "esnext",
    "--moduleResolution", "node",
    "--allowJs",
    "--esModuleInterop",
]

# Module resolution failures: the composition's imports are resolved by
# the build layer, not here.
UNRESOLVED_MODULE_CODES = {2307, 2792, 7016}

_DIAGNOSTIC_RE = re.compile(
    r"^(?P<file>.+?)\((?P<line>\d+),(?P<column>\d+)\): "
    r"error TS(?P<code>\d+): (?P<message>.*)$"
)


def classify_code(code: int) -> tuple[str, str]:
    """(kind, severity) for a TypeScript error code."""
    if code in UNRESOLVED_MODULE_CODES:
        return "unresolved_module", "medium"
    if 1000 <= code < 2000:
        return "syntax_error", "high"
    if 2000 <= code < 3000:
        return "type_error", "high"
    return "type_warning", "medium"


def parse_tsc_output(output: str) -> list[Diagnostic]:
    diagnostics = []
    for line in output.splitlines():
        match = _DIAGNOSTIC_RE.match(line.strip())
        if not match:
            continue
        code = int(match.group("code"))
        kind, severity = classify_code(code)
        diagnostics.append(Diagnostic(
            kind=kind,
            severity=severity,
            message=f"TS{code}: {match.group('message')}",
            line=int(match.group("line")),
            column=int(match.group("column")),
            layer=LAYER,
        ))
    return diagnostics


def run_type_check(text: str, executable: str = "tsc",
                   timeout: float = 60) -> list[Diagnostic]:
    """Type-check composition text with tsc.

    Args:
        text: composition source.
        executable: tsc command name or path.
        timeout: seconds before the compiler is abandoned.

    Returns:
        Layer-3 diagnostics (possibly a single informational one when the
        compiler is unavailable or timed out).
    """
    tsc = shutil.which(executable)
    if tsc is None:
        return [Diagnostic(
            kind="type_check_skipped",
            severity="low",
            message=f"'{executable}' not found on PATH; static typing layer skipped",
            suggested_fix="Install TypeScript (npm install -g typescript)",
            layer=LAYER,
        )]

    with tempfile.TemporaryDirectory(prefix="scenecompose-tsc-") as tmp:
        source = Path(tmp) / FILENAME
        source.write_text(text)
        cmd = [tsc, *TSC_FLAGS, str(source)]
        logger.debug("running %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd, capture_output=True, text=True, timeout=timeout, cwd=tmp,
            )
        except subprocess.TimeoutExpired:
            return [Diagnostic(
                kind="type_check_timeout",
                severity="medium",
                message=f"Type check did not finish within {timeout} seconds",
                layer=LAYER,
            )]

    return parse_tsc_output(proc.stdout + proc.stderr)
