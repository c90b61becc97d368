"""Condition evaluation for ``condition`` steps.

Conditions fail closed: a missing field, an operand of the wrong type or an
unknown operator makes the node ``False`` and is logged, but never raises.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from litestar_automation.core.context import UNDEFINED, resolve_path
from litestar_automation.core.types import ConditionLogic, ConditionOperator
from litestar_automation.exceptions import EvaluationError

if TYPE_CHECKING:
    from litestar_automation.core.models import ConditionNode
    from litestar_automation.core.types import Context

__all__ = ["ConditionEvaluator", "coerce_number", "values_equal"]

logger = logging.getLogger(__name__)


def coerce_number(value: Any) -> float | None:
    """Return ``value`` as a float when it is a number or a numeric string.

    Booleans are not numbers here, and neither are NaN or infinities.

    Example:
        >>> coerce_number(" 42 ")
        42.0
        >>> coerce_number("abc") is None
        True
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def values_equal(left: Any, right: Any) -> bool:
    """Type-aware equality: numeric strings compare equal to the numbers they spell."""
    left_number = coerce_number(left)
    right_number = coerce_number(right)
    if left_number is not None and right_number is not None:
        return left_number == right_number
    return bool(left == right)


def _as_collection(value: Any) -> list[Any]:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",")]
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def _contains(left: Any, right: Any) -> bool:
    if isinstance(left, str):
        if right is None or isinstance(right, (list, dict)):
            msg = f"cannot search a string for {type(right).__name__}"
            raise EvaluationError(msg)
        return str(right).lower() in left.lower()
    if isinstance(left, Sequence) and not isinstance(left, bytes):
        return any(values_equal(item, right) for item in left)
    msg = f"contains needs a string or a list, got {type(left).__name__}"
    raise EvaluationError(msg)


def _compare(left: Any, right: Any, predicate: Callable[[float, float], bool]) -> bool:
    left_number = coerce_number(left)
    right_number = coerce_number(right)
    if left_number is None or right_number is None:
        msg = f"cannot compare {left!r} and {right!r} as numbers"
        raise EvaluationError(msg)
    return predicate(left_number, right_number)


def _in(left: Any, right: Any) -> bool:
    return any(values_equal(left, item) for item in _as_collection(right))


_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    ConditionOperator.EQUALS: values_equal,
    ConditionOperator.NOT_EQUALS: lambda left, right: not values_equal(left, right),
    ConditionOperator.GREATER_THAN: lambda left, right: _compare(left, right, lambda a, b: a > b),
    ConditionOperator.LESS_THAN: lambda left, right: _compare(left, right, lambda a, b: a < b),
    ConditionOperator.CONTAINS: _contains,
    ConditionOperator.NOT_CONTAINS: lambda left, right: not _contains(left, right),
    ConditionOperator.IN: _in,
    ConditionOperator.NOT_IN: lambda left, right: not _in(left, right),
}


class ConditionEvaluator:
    """Evaluates flat lists of :class:`~litestar_automation.core.models.ConditionNode`.

    Nodes are folded left to right; each node's ``logic`` tag says how its
    result combines with the node that follows it. There is no grouping or
    operator precedence, so ``a or b and c`` means ``(a or b) and c``.

    Example:
        >>> from litestar_automation.core.models import ConditionNode
        >>> evaluator = ConditionEvaluator()
        >>> evaluator.evaluate([ConditionNode("score", "greater_than", 70)], {"score": "85"})
        True
    """

    def evaluate(self, conditions: Sequence[ConditionNode], context: Context) -> bool:
        """Evaluate ``conditions`` against ``context``.

        Args:
            conditions: The nodes to fold. An empty list is ``True``.
            context: The merged run context.

        Returns:
            The folded boolean result.
        """
        if not conditions:
            return True

        result = self.evaluate_node(conditions[0], context)
        for previous, node in zip(conditions, conditions[1:]):
            value = self.evaluate_node(node, context)
            if previous.logic == ConditionLogic.OR:
                result = result or value
            else:
                result = result and value
        return result

    def evaluate_node(self, node: ConditionNode, context: Context) -> bool:
        """Evaluate one node, resolving every failure to ``False``."""
        try:
            return self._evaluate(node, context)
        except EvaluationError as exc:
            logger.warning("Condition on %r evaluated to false: %s", node.field, exc)
            return False
        except (TypeError, ValueError) as exc:
            logger.warning("Condition on %r raised %s; treating as false", node.field, exc)
            return False

    def _evaluate(self, node: ConditionNode, context: Context) -> bool:
        comparator = _OPERATORS.get(node.operator)
        if comparator is None:
            msg = f"unknown operator '{node.operator}'"
            raise EvaluationError(msg)

        left = resolve_path(context, node.field)
        if left is UNDEFINED:
            msg = f"field '{node.field}' is not present in the run context"
            raise EvaluationError(msg)

        return comparator(left, node.value)
