"""Module-level entry points.

Thin wrappers over a default Session. The default session holds the only
state these functions share: its checkpoint store, in memory unless
configure() installs another one. Pass `session=` to bypass it.

Usage:
    from scenecompose import api
    from scenecompose.checkpoints import YamlCheckpointStore

    api.configure(store=YamlCheckpointStore(".scenecompose-checkpoints"))
    result = api.convert(text, project_name="demo")
"""

from .edits import apply_update, plan_update
from .parser import ParseError, parse
from .results import ErrorKind, Failure
from .selector import Criteria, select
from .session import Session
from .settings import Settings
from .tree import Node

_default_session: Session | None = None


def default_session() -> Session:
    global _default_session
    if _default_session is None:
        _default_session = Session()
    return _default_session


def configure(store=None, settings: Settings | None = None) -> Session:
    """Replace the default session with one over `store` and `settings`."""
    global _default_session
    _default_session = Session(store, settings)
    return _default_session


def convert(text: str, project_name: str | None = None, operation_id: str | None = None,
            session: Session | None = None):
    return (session or default_session()).convert(text, project_name, operation_id)


def validate(text: str, session: Session | None = None):
    return (session or default_session()).validate(text)


def enhance(text: str, project_hint: str | None = None, operation_id: str | None = None,
            session: Session | None = None):
    return (session or default_session()).enhance(text, project_hint, operation_id)


def resume(operation_id: str, session: Session | None = None):
    return (session or default_session()).resume(operation_id)


def list_interrupted(session: Session | None = None):
    return (session or default_session()).list_interrupted()


def cancel(operation_id: str, session: Session | None = None):
    return (session or default_session()).cancel(operation_id)


def select_nodes(text: str, criteria: Criteria) -> tuple[list[Node], Failure | None]:
    """Parse text and select nodes. Parse and not-found problems come
    back as a Failure instead of an exception."""
    try:
        document = parse(text)
    except ParseError as exc:
        return [], Failure(ErrorKind.PARSE_ERROR, exc.message, exc.line, exc.column)
    nodes = select(document, criteria)
    if not nodes:
        return [], Failure(ErrorKind.NOT_FOUND, f"No node matches [{criteria.describe()}]")
    return nodes, None


__all__ = [
    "apply_update", "cancel", "configure", "convert", "default_session", "enhance",
    "list_interrupted", "plan_update", "resume", "select_nodes", "validate",
]
