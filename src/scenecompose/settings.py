"""Settings loader — pipeline tuning from YAML.

Every field has a default, so an empty or missing file yields the default
Settings. Paths may use ${var} variables declared under `paths`, resolved
the same way as everywhere else in the project.

Settings schema:
  paths:
    work: "/data/compositions"
  transitions:
    recommended_overlap: 15     # frames a fade-in starts before a fade-out ends
    minimum_gap: 5              # gap below this is an overlap defect
    maximum_gap: 30             # gap above this is dead air
    critical_gap: -10           # overlap below this is critical
  richness:
    augment_on_convert: true
    rework_threshold: 60        # re-score below this needs manual rework
    basic_threshold: 40         # score below this triggers augmentation
  validation:
    type_check: false
    tsc_executable: "tsc"
    type_check_timeout: 60
  session:
    budget_seconds: null        # per-invocation wall-clock budget
    stale_after_hours: 24
    checkpoint_dir: "${work}/.scenecompose-checkpoints"
"""

from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from .common import resolve_path_vars


@dataclass(frozen=True)
class TransitionSettings:
    recommended_overlap: int = 15
    minimum_gap: int = 5
    maximum_gap: int = 30
    critical_gap: int = -10


@dataclass(frozen=True)
class RichnessSettings:
    augment_on_convert: bool = True
    rework_threshold: int = 60
    basic_threshold: int = 40


@dataclass(frozen=True)
class ValidationSettings:
    type_check: bool = False
    tsc_executable: str = "tsc"
    type_check_timeout: float = 60.0


@dataclass(frozen=True)
class SessionSettings:
    budget_seconds: float | None = None
    stale_after_hours: float = 24.0
    checkpoint_dir: str = ".scenecompose-checkpoints"


@dataclass(frozen=True)
class Settings:
    transitions: TransitionSettings = field(default_factory=TransitionSettings)
    richness: RichnessSettings = field(default_factory=RichnessSettings)
    validation: ValidationSettings = field(default_factory=ValidationSettings)
    session: SessionSettings = field(default_factory=SessionSettings)


SECTIONS = {
    "transitions": TransitionSettings,
    "richness": RichnessSettings,
    "validation": ValidationSettings,
    "session": SessionSettings,
}


def load_settings(path: str | Path | None = None) -> Settings:
    """Load and validate a settings file.

    Args:
        path: YAML settings file. None returns the defaults.

    Returns:
        Frozen Settings with defaults applied.

    Raises:
        ValueError: Unknown section or field, or a field of the wrong type.
    """
    if path is None:
        return Settings()
    with open(path) as f:
        raw = yaml.safe_load(f)
    return settings_from_dict(raw or {})


def settings_from_dict(raw: dict) -> Settings:
    """Build Settings from an already-parsed mapping."""
    if not isinstance(raw, dict):
        raise ValueError("Settings: top level must be a mapping")

    paths = raw.get("paths", {}) or {}
    if not isinstance(paths, dict):
        raise ValueError("Settings: 'paths' must be a mapping")

    sections = {}
    for name, value in raw.items():
        if name == "paths":
            continue
        if name not in SECTIONS:
            raise ValueError(
                f"Settings: unknown section '{name}'. "
                f"Valid: {sorted(SECTIONS) + ['paths']}"
            )
        if value is None:
            value = {}
        if not isinstance(value, dict):
            raise ValueError(f"Settings: section '{name}' must be a mapping")
        sections[name] = _build_section(name, value, paths)

    settings = Settings(**sections)
    _validate_transitions(settings.transitions)
    _validate_richness(settings.richness)
    _validate_session(settings.session)
    return settings


def _build_section(name: str, values: dict, paths: dict):
    cls = SECTIONS[name]
    known = {f.name: f for f in fields(cls)}
    defaults = cls()
    kwargs = {}
    for key, value in values.items():
        prefix = f"Settings '{name}.{key}'"
        if key not in known:
            raise ValueError(
                f"Settings: unknown field '{name}.{key}'. Valid: {sorted(known)}"
            )
        default = getattr(defaults, key)
        kwargs[key] = _coerce(prefix, value, default, paths)
    return cls(**kwargs)


def _coerce(prefix: str, value, default, paths: dict):
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ValueError(f"{prefix}: must be true or false, got {value!r}")
        return value
    if isinstance(default, str):
        if not isinstance(value, str) or not value:
            raise ValueError(f"{prefix}: must be a non-empty string")
        return resolve_path_vars(value, paths)
    # Numeric fields; budget_seconds may be null.
    if value is None and default is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{prefix}: must be a number, got {value!r}")
    if isinstance(default, int) and not isinstance(value, int):
        raise ValueError(f"{prefix}: must be an integer, got {value!r}")
    return value


def _validate_transitions(section: TransitionSettings) -> None:
    if section.recommended_overlap < 0:
        raise ValueError(
            "Settings 'transitions.recommended_overlap': must be >= 0, "
            f"got {section.recommended_overlap}"
        )
    if section.minimum_gap > section.maximum_gap:
        raise ValueError(
            f"Settings 'transitions': minimum_gap ({section.minimum_gap}) "
            f"must be <= maximum_gap ({section.maximum_gap})"
        )


def _validate_richness(section: RichnessSettings) -> None:
    for name in ("rework_threshold", "basic_threshold"):
        value = getattr(section, name)
        if not 0 <= value <= 100:
            raise ValueError(
                f"Settings 'richness.{name}': must be within 0-100, got {value}"
            )


def _validate_session(section: SessionSettings) -> None:
    if section.budget_seconds is not None and section.budget_seconds <= 0:
        raise ValueError(
            f"Settings 'session.budget_seconds': must be > 0, got {section.budget_seconds}"
        )
    if section.stale_after_hours <= 0:
        raise ValueError(
            "Settings 'session.stale_after_hours': must be > 0, "
            f"got {section.stale_after_hours}"
        )
