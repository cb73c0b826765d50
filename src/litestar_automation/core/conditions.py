"""Condition trees attached to workflow definitions and actions.

Conditions arrive as untyped JSON in stored definitions. They are parsed
once, when the registry loads a definition, into a validated tree of
:class:`ConditionGroup` and :class:`Condition` objects. Evaluation lives in
:mod:`litestar_automation.engine.evaluator`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from litestar_automation.core.types import OPERATOR_ALIASES, ConditionLogic, ConditionOperator
from litestar_automation.exceptions import WorkflowValidationError

__all__ = ["Condition", "ConditionGroup", "normalize_operator", "parse_logic"]

_LIST_OPERATORS = frozenset({ConditionOperator.IN, ConditionOperator.NOT_IN})


def normalize_operator(operator: str) -> ConditionOperator | None:
    """Resolve an operator spelling, including aliases, to a ConditionOperator.

    Args:
        operator: The operator as written in configuration.

    Returns:
        The operator, or None when the spelling is unknown.
    """
    key = operator.strip().lower()
    if key in OPERATOR_ALIASES:
        return OPERATOR_ALIASES[key]
    try:
        return ConditionOperator(key)
    except ValueError:
        return None


def parse_logic(logic: Any) -> ConditionLogic:
    """Parse a group's logic string; anything other than OR means AND."""
    if isinstance(logic, str) and logic.strip().lower() == ConditionLogic.OR:
        return ConditionLogic.OR
    return ConditionLogic.AND


@dataclass(frozen=True)
class Condition:
    """A single ``field operator value`` comparison.

    Attributes:
        field: Payload key, or a dotted path into nested payload mappings.
        operator: Comparison operator. Stored as a plain string so a
            hand-built condition with an unknown operator still evaluates
            (to False) instead of failing.
        value: Right-hand side of the comparison.
    """

    field: str
    operator: str
    value: Any = None

    @classmethod
    def from_dict(cls, data: Any, path: str = "condition") -> tuple[Condition | None, list[str]]:
        """Parse and validate a condition from its JSON form.

        Args:
            data: The raw condition mapping.
            path: Location of the condition, used in error messages.

        Returns:
            A tuple of the parsed condition (None when invalid) and the list
            of validation errors.
        """
        if not isinstance(data, dict):
            return None, [f"{path}: expected an object, got {type(data).__name__}"]

        errors: list[str] = []
        field_name = data.get("field")
        if not isinstance(field_name, str) or not field_name:
            errors.append(f"{path}.field: must be a non-empty string")

        raw_operator = data.get("operator")
        operator = normalize_operator(raw_operator) if isinstance(raw_operator, str) else None
        if operator is None:
            errors.append(f"{path}.operator: unknown operator {raw_operator!r}")

        value = data.get("value")
        if operator in _LIST_OPERATORS and not isinstance(value, list):
            errors.append(f"{path}.value: operator '{operator}' requires a list")
        if operator is ConditionOperator.REGEX and not isinstance(value, str):
            errors.append(f"{path}.value: operator 'regex' requires a pattern string")

        if errors:
            return None, errors
        return cls(field=field_name, operator=str(operator), value=value), []

    def to_dict(self) -> dict[str, Any]:
        """Serialize the condition to its JSON form."""
        return {"field": self.field, "operator": self.operator, "value": self.value}


@dataclass(frozen=True)
class ConditionGroup:
    """A boolean combination of conditions and nested groups.

    Attributes:
        logic: AND or OR.
        conditions: Leaf conditions of this group.
        groups: Nested groups, evaluated as further items of this group.

    Example:
        >>> group = ConditionGroup.from_dict(
        ...     {
        ...         "logic": "OR",
        ...         "conditions": [
        ...             {"field": "priority", "operator": "equals", "value": "critical"},
        ...             {"field": "priority", "operator": "equals", "value": "high"},
        ...         ],
        ...     }
        ... )
    """

    logic: ConditionLogic = ConditionLogic.AND
    conditions: tuple[Condition, ...] = field(default_factory=tuple)
    groups: tuple[ConditionGroup, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        """Whether the group has no conditions and no nested groups."""
        return not self.conditions and not self.groups

    @classmethod
    def parse(cls, data: Any, path: str = "conditions") -> tuple[ConditionGroup | None, list[str]]:
        """Parse a group, collecting every validation error in the tree.

        Args:
            data: The raw group mapping.
            path: Location of the group, used in error messages.

        Returns:
            A tuple of the parsed group (None when invalid) and the errors.
        """
        if not isinstance(data, dict):
            return None, [f"{path}: expected an object, got {type(data).__name__}"]

        errors: list[str] = []
        raw_conditions = data.get("conditions") or []
        raw_groups = data.get("groups") or []
        if not isinstance(raw_conditions, list):
            errors.append(f"{path}.conditions: must be a list")
            raw_conditions = []
        if not isinstance(raw_groups, list):
            errors.append(f"{path}.groups: must be a list")
            raw_groups = []

        conditions: list[Condition] = []
        for index, raw in enumerate(raw_conditions):
            condition, condition_errors = Condition.from_dict(raw, f"{path}.conditions[{index}]")
            errors.extend(condition_errors)
            if condition is not None:
                conditions.append(condition)

        groups: list[ConditionGroup] = []
        for index, raw in enumerate(raw_groups):
            group, group_errors = cls.parse(raw, f"{path}.groups[{index}]")
            errors.extend(group_errors)
            if group is not None:
                groups.append(group)

        if errors:
            return None, errors
        return cls(logic=parse_logic(data.get("logic")), conditions=tuple(conditions), groups=tuple(groups)), []

    @classmethod
    def from_dict(cls, data: Any) -> ConditionGroup:
        """Parse a group, raising on any validation error.

        Raises:
            WorkflowValidationError: If the tree contains invalid entries.
        """
        group, errors = cls.parse(data)
        if group is None:
            raise WorkflowValidationError(errors)
        return group

    def to_dict(self) -> dict[str, Any]:
        """Serialize the group to its JSON form."""
        data: dict[str, Any] = {
            "logic": self.logic.value.upper(),
            "conditions": [condition.to_dict() for condition in self.conditions],
        }
        if self.groups:
            data["groups"] = [group.to_dict() for group in self.groups]
        return data
