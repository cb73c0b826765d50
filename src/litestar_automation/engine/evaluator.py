"""Condition evaluation.

:func:`evaluate` is a pure, total function: whatever the payload or the
condition tree contains, it returns a bool and never raises. Malformed
configuration degrades to False for the smallest enclosing condition.
"""

from __future__ import annotations

import functools
import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from litestar_automation.core.conditions import Condition, normalize_operator
from litestar_automation.core.context import lookup_path
from litestar_automation.core.types import ConditionLogic, ConditionOperator
from litestar_automation.log import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from litestar_automation.core.conditions import ConditionGroup

__all__ = ["ConditionEvaluator", "evaluate"]

logger = get_logger(__name__)

_MISSING = object()

_MISSING_DEFAULTS: dict[str, bool] = {
    ConditionOperator.NOT_EQUALS: True,
    ConditionOperator.IS_NULL: True,
    ConditionOperator.IS_EMPTY: True,
}


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _values_equal(actual: Any, expected: Any) -> bool:
    # Booleans only equal booleans, never 0 or 1.
    if isinstance(actual, bool) or isinstance(expected, bool):
        return type(actual) is type(expected) and actual == expected
    if actual == expected:
        return True
    if isinstance(actual, str) != isinstance(expected, str):
        left, right = _to_number(actual), _to_number(expected)
        return left is not None and left == right
    return False


def _text(value: Any) -> str:
    return value.lower() if isinstance(value, str) else str(value).lower()


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, (list, tuple, set)):
        needle = _text(expected)
        return any(_text(item) == needle for item in actual)
    return _text(expected) in _text(actual)


def _is_empty(value: Any) -> bool:
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return not value
    return False


@functools.lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern)
    except re.error:
        logger.warning("Invalid regex in condition", extra={"pattern": pattern})
        return None


def _regex(actual: Any, pattern: Any) -> bool:
    if not isinstance(pattern, str):
        return False
    compiled = _compile(pattern)
    return compiled is not None and compiled.search(str(actual)) is not None


def _compare_numeric(actual: Any, expected: Any, compare: Callable[[float, float], bool]) -> bool:
    left, right = _to_number(actual), _to_number(expected)
    if left is None or right is None:
        return False
    return compare(left, right)


def _in(actual: Any, expected: Any) -> bool:
    if not isinstance(expected, (list, tuple, set)):
        return False
    return any(_values_equal(actual, item) for item in expected)


_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    ConditionOperator.EQUALS: _values_equal,
    ConditionOperator.NOT_EQUALS: lambda a, e: not _values_equal(a, e),
    ConditionOperator.CONTAINS: _contains,
    ConditionOperator.NOT_CONTAINS: lambda a, e: not _contains(a, e),
    ConditionOperator.STARTS_WITH: lambda a, e: _text(a).startswith(_text(e)),
    ConditionOperator.ENDS_WITH: lambda a, e: _text(a).endswith(_text(e)),
    ConditionOperator.GREATER_THAN: lambda a, e: _compare_numeric(a, e, lambda x, y: x > y),
    ConditionOperator.LESS_THAN: lambda a, e: _compare_numeric(a, e, lambda x, y: x < y),
    ConditionOperator.IN: _in,
    ConditionOperator.NOT_IN: lambda a, e: isinstance(e, (list, tuple, set)) and not _in(a, e),
    ConditionOperator.IS_NULL: lambda a, e: False,
    ConditionOperator.IS_NOT_NULL: lambda a, e: True,
    ConditionOperator.IS_EMPTY: lambda a, e: _is_empty(a),
    ConditionOperator.IS_NOT_EMPTY: lambda a, e: not _is_empty(a),
    ConditionOperator.REGEX: _regex,
}


class ConditionEvaluator:
    """Evaluates condition trees against event payloads.

    The evaluator holds no state besides the compiled-regex cache, so one
    instance can be shared by every workflow.
    """

    def evaluate(self, group: ConditionGroup | None, payload: Mapping[str, Any]) -> bool:
        """Evaluate ``group`` against ``payload``.

        A missing group matches everything. An empty AND group is True and
        an empty OR group is False.

        Args:
            group: The condition tree.
            payload: The event payload.

        Returns:
            Whether the payload satisfies the tree.
        """
        if group is None:
            return True
        try:
            items = [*group.conditions, *group.groups]
            results = (self._evaluate_item(item, payload) for item in items)
            if group.logic == ConditionLogic.OR:
                return any(results)
            return all(results)
        except Exception:
            logger.warning("Condition group evaluation failed", exc_info=True)
            return False

    def _evaluate_item(self, item: Condition | ConditionGroup, payload: Mapping[str, Any]) -> bool:
        if isinstance(item, Condition):
            return self.evaluate_condition(item, payload)
        return self.evaluate(item, payload)

    def evaluate_condition(self, condition: Condition, payload: Mapping[str, Any]) -> bool:
        """Evaluate one condition; never raises.

        Args:
            condition: The condition to evaluate.
            payload: The event payload.

        Returns:
            The comparison result, or the operator's missing-field default
            when the field is absent or null.
        """
        try:
            operator = normalize_operator(str(condition.operator))
            compare = _OPERATORS.get(operator) if operator is not None else None
            if compare is None:
                logger.warning("Unknown condition operator", extra={"operator": condition.operator})
                return False
            actual = self._get_field_value(payload, condition.field)
            if actual is None:
                return _MISSING_DEFAULTS.get(operator, False)
            return bool(compare(actual, condition.value))
        except Exception:
            logger.warning(
                "Condition evaluation failed",
                extra={"field": getattr(condition, "field", None)},
                exc_info=True,
            )
            return False

    @staticmethod
    def _get_field_value(payload: Mapping[str, Any], field: str) -> Any:
        if not isinstance(payload, Mapping) or not isinstance(field, str):
            return None
        value = lookup_path(payload, field, _MISSING)
        return None if value is _MISSING else value


_default_evaluator = ConditionEvaluator()


def evaluate(group: ConditionGroup | None, payload: Mapping[str, Any]) -> bool:
    """Evaluate ``group`` against ``payload`` with the shared evaluator."""
    return _default_evaluator.evaluate(group, payload)
