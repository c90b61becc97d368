"""Run context construction and dotted-path resolution.

The run context is the single map that condition fields and ``{{path}}``
placeholders are resolved against. It is rebuilt from the persisted run before
every step, so it never holds state of its own.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    from litestar_automation.core.models import WorkflowRun
    from litestar_automation.core.types import Context

__all__ = ["UNDEFINED", "build_context", "resolve_path"]


class _Undefined:
    """Marker for a path that does not resolve to a value."""

    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False


UNDEFINED: Final = _Undefined()
"""Sentinel returned by :func:`resolve_path` for unresolved paths.

Distinct from ``None`` so that a field explicitly set to null is still a
resolved value.
"""


def resolve_path(context: Mapping[str, Any], path: str) -> Any:
    """Walk a dotted path through nested maps and lists.

    Segments address map keys; a purely numeric segment also addresses a list
    index.

    Args:
        context: The map to resolve against.
        path: A dotted path such as ``candidate.tags.0``.

    Returns:
        The resolved value, or :data:`UNDEFINED` when any segment is missing.

    Example:
        >>> resolve_path({"candidate": {"tags": ["python"]}}, "candidate.tags.0")
        'python'
        >>> resolve_path({}, "missing.path")
        UNDEFINED
    """
    if not path:
        return UNDEFINED
    current: Any = context
    for segment in path.split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return UNDEFINED
            current = current[segment]
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            if not segment.isdigit():
                return UNDEFINED
            position = int(segment)
            if position >= len(current):
                return UNDEFINED
            current = current[position]
        else:
            return UNDEFINED
    return current


def build_context(run: WorkflowRun) -> Context:
    """Build the merged context for a run.

    The top level carries the entity fields and the run variables so that bare
    paths such as ``score`` or ``approval_status`` resolve. On top of that sit
    the namespaces ``trigger`` (the raw trigger data), ``entity``, ``variables``
    and ``steps`` (provider outputs keyed by program index), and
    ``triggered_by``, the user who caused the run or ``None``.

    Args:
        run: The run whose context is needed.

    Returns:
        A fresh context map.
    """
    trigger_data = dict(run.trigger_data or {})
    entity = trigger_data.get("entity")
    entity = dict(entity) if isinstance(entity, Mapping) else {}

    context: Context = {}
    context.update(trigger_data)
    context.update(entity)
    context.update(run.variables or {})
    context["trigger"] = trigger_data
    context["entity"] = entity
    context["variables"] = dict(run.variables or {})
    context["steps"] = {str(result.index): result.output for result in run.step_results}
    context["triggered_by"] = run.triggered_by
    return context
