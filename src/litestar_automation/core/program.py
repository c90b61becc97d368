"""Compiled action programs.

A definition stores its actions as open-ended ``{"type", "config"}`` maps. The
executor never works on those directly: each one is compiled into exactly one
variant of the closed :data:`ProgramStep` union, and the executor dispatches on
the variant. Anything that cannot be compiled becomes :class:`UnknownAction`,
which validation rejects at save time.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeAlias, Union

from litestar_automation.core.models import ActionStep, ConditionNode
from litestar_automation.core.types import ActionType, ConditionLogic, ConditionOperator

__all__ = [
    "ApprovalStep",
    "ConditionalSkip",
    "DelayStep",
    "EffectStep",
    "ProgramStep",
    "UnknownAction",
    "compile_program",
    "compile_step",
]


@dataclass(frozen=True)
class EffectStep:
    """A side effect delegated to the action provider.

    Attributes:
        index: Program index.
        action_type: The effectful action kind.
        config: Raw config; placeholders are rendered at dispatch time.
    """

    index: int
    action_type: ActionType
    config: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ApprovalStep:
    """An ``approval_request``: dispatched to the provider, then pauses the run."""

    index: int
    config: dict[str, Any] = field(default_factory=dict)

    @property
    def action_type(self) -> ActionType:
        return ActionType.APPROVAL_REQUEST


@dataclass(frozen=True)
class ConditionalSkip:
    """A ``condition`` step.

    When ``conditions`` fold to ``False`` the program counter jumps over the
    next ``count`` steps.
    """

    index: int
    conditions: tuple[ConditionNode, ...]
    count: int = 0

    @property
    def action_type(self) -> ActionType:
        return ActionType.CONDITION


@dataclass(frozen=True)
class DelayStep:
    """A ``delay`` step; pauses the run until ``seconds`` have elapsed."""

    index: int
    seconds: float

    @property
    def action_type(self) -> ActionType:
        return ActionType.DELAY


@dataclass(frozen=True)
class UnknownAction:
    """A step that cannot be executed.

    Either the action kind is not part of :class:`ActionType`, or a control
    step's config is malformed.

    Attributes:
        index: Program index.
        action_type: The raw action kind string.
        reason: Why the step could not be compiled.
    """

    index: int
    action_type: str
    reason: str


ProgramStep: TypeAlias = Union[EffectStep, ApprovalStep, ConditionalSkip, DelayStep, UnknownAction]

_OPERATORS = frozenset(operator.value for operator in ConditionOperator)
_LOGICS = frozenset(logic.value for logic in ConditionLogic)


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _condition_nodes(config: Mapping[str, Any]) -> list[ConditionNode] | str:
    """Normalize both condition config shapes into nodes, or return an error."""
    raw = config.get("conditions")
    if raw is None and "leftOperand" in config:
        raw = [
            {
                "field": config.get("leftOperand"),
                "operator": config.get("operator"),
                "value": config.get("rightOperand"),
            }
        ]
    if raw is None:
        return "condition needs 'conditions' or 'leftOperand'/'operator'/'rightOperand'"
    if not isinstance(raw, Sequence) or isinstance(raw, str):
        return "'conditions' must be a list"

    nodes: list[ConditionNode] = []
    for position, item in enumerate(raw):
        if isinstance(item, ConditionNode):
            node = item
        elif isinstance(item, Mapping):
            node = ConditionNode.from_dict(dict(item))
        else:
            return f"condition {position} must be an object"
        if not node.field:
            return f"condition {position} has no field"
        if node.operator not in _OPERATORS:
            return f"condition {position} has unknown operator '{node.operator}'"
        if node.logic not in _LOGICS:
            return f"condition {position} has unknown logic '{node.logic}'"
        nodes.append(node)
    return nodes


def compile_step(index: int, action: ActionStep) -> ProgramStep:
    """Compile one stored action into its program variant.

    Args:
        index: The action's position in the program.
        action: The stored action.

    Returns:
        The compiled step. Never raises; problems become :class:`UnknownAction`.

    Example:
        >>> compile_step(0, ActionStep("delay", {"seconds": 60}))
        DelayStep(index=0, seconds=60.0)
    """
    try:
        action_type = ActionType(action.type)
    except ValueError:
        return UnknownAction(index, str(action.type), f"unknown action type '{action.type}'")

    config = dict(action.config or {})

    if action_type == ActionType.CONDITION:
        nodes = _condition_nodes(config)
        if isinstance(nodes, str):
            return UnknownAction(index, action_type, nodes)
        count = config.get("skipActions", 0)
        if count is None:
            count = 0
        if not _is_count(count):
            return UnknownAction(index, action_type, "'skipActions' must be a non-negative integer")
        return ConditionalSkip(index, tuple(nodes), count)

    if action_type == ActionType.DELAY:
        seconds = config.get("seconds")
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)) or seconds < 0:
            return UnknownAction(index, action_type, "'seconds' must be a non-negative number")
        return DelayStep(index, float(seconds))

    if action_type == ActionType.APPROVAL_REQUEST:
        return ApprovalStep(index, config)

    return EffectStep(index, action_type, config)


def compile_program(actions: Sequence[ActionStep]) -> list[ProgramStep]:
    """Compile a whole action list, preserving order and indices."""
    return [compile_step(index, action) for index, action in enumerate(actions)]
