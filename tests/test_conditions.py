"""Tests for condition parsing and evaluation."""

from __future__ import annotations

import pytest

from litestar_automation.core.conditions import Condition, ConditionGroup, normalize_operator
from litestar_automation.core.types import ConditionLogic, ConditionOperator
from litestar_automation.engine.evaluator import ConditionEvaluator, evaluate
from litestar_automation.exceptions import WorkflowValidationError


def cond(field: str, operator: str, value: object = None) -> Condition:
    return Condition(field=field, operator=operator, value=value)


@pytest.mark.unit
class TestConditionParsing:
    """Tests for parsing conditions from their JSON form."""

    def test_valid_condition(self) -> None:
        """Test that a valid condition parses without errors."""
        condition, errors = Condition.from_dict({"field": "priority", "operator": "equals", "value": "high"})

        assert errors == []
        assert condition == Condition(field="priority", operator="equals", value="high")

    @pytest.mark.parametrize(
        ("spelling", "expected"),
        [
            ("eq", ConditionOperator.EQUALS),
            ("==", ConditionOperator.EQUALS),
            ("!=", ConditionOperator.NOT_EQUALS),
            (">", ConditionOperator.GREATER_THAN),
            ("lt", ConditionOperator.LESS_THAN),
            ("  Contains ", ConditionOperator.CONTAINS),
        ],
    )
    def test_operator_aliases(self, spelling: str, expected: ConditionOperator) -> None:
        """Test that aliases and loose spellings normalize."""
        assert normalize_operator(spelling) is expected

    def test_unknown_operator_is_an_error(self) -> None:
        """Test that an unknown operator fails validation."""
        condition, errors = Condition.from_dict({"field": "priority", "operator": "approximately", "value": 1})

        assert condition is None
        assert errors == ["condition.operator: unknown operator 'approximately'"]

    def test_missing_field_is_an_error(self) -> None:
        """Test that the field is required."""
        _, errors = Condition.from_dict({"operator": "equals", "value": 1})

        assert errors == ["condition.field: must be a non-empty string"]

    def test_in_requires_list(self) -> None:
        """Test that list operators reject scalar values."""
        _, errors = Condition.from_dict({"field": "priority", "operator": "in", "value": "high"}, "c")

        assert errors == ["c.value: operator 'in' requires a list"]

    def test_regex_requires_string(self) -> None:
        """Test that regex needs a pattern string."""
        _, errors = Condition.from_dict({"field": "subject", "operator": "regex", "value": 5})

        assert errors == ["condition.value: operator 'regex' requires a pattern string"]

    def test_non_object_condition(self) -> None:
        """Test that a non-mapping condition is rejected."""
        condition, errors = Condition.from_dict(["priority"])

        assert condition is None
        assert errors == ["condition: expected an object, got list"]


@pytest.mark.unit
class TestConditionGroupParsing:
    """Tests for parsing condition groups."""

    def test_nested_group(self) -> None:
        """Test that nested groups parse with their logic."""
        group = ConditionGroup.from_dict(
            {
                "logic": "and",
                "conditions": [{"field": "status", "operator": "equals", "value": "new"}],
                "groups": [
                    {
                        "logic": "OR",
                        "conditions": [
                            {"field": "priority", "operator": "equals", "value": "critical"},
                            {"field": "priority", "operator": "equals", "value": "high"},
                        ],
                    }
                ],
            }
        )

        assert group.logic is ConditionLogic.AND
        assert len(group.conditions) == 1
        assert group.groups[0].logic is ConditionLogic.OR
        assert len(group.groups[0].conditions) == 2

    def test_logic_defaults_to_and(self) -> None:
        """Test that a group without logic is AND."""
        group = ConditionGroup.from_dict({"conditions": []})

        assert group.logic is ConditionLogic.AND
        assert group.is_empty

    def test_errors_collected_across_tree(self) -> None:
        """Test that every invalid entry is reported with its path."""
        with pytest.raises(WorkflowValidationError) as exc_info:
            ConditionGroup.from_dict(
                {
                    "conditions": [{"field": "a", "operator": "bogus"}],
                    "groups": [{"conditions": [{"field": "", "operator": "equals"}]}],
                }
            )

        assert exc_info.value.errors == [
            "conditions.conditions[0].operator: unknown operator 'bogus'",
            "conditions.groups[0].conditions[0].field: must be a non-empty string",
        ]

    def test_to_dict(self) -> None:
        """Test that serialization writes upper-case logic."""
        group = ConditionGroup(logic=ConditionLogic.OR, conditions=(cond("priority", "equals", "high"),))

        assert group.to_dict() == {
            "logic": "OR",
            "conditions": [{"field": "priority", "operator": "equals", "value": "high"}],
        }


@pytest.mark.unit
class TestConditionEvaluator:
    """Tests for the ConditionEvaluator."""

    @pytest.fixture
    def evaluator(self) -> ConditionEvaluator:
        return ConditionEvaluator()

    def test_no_group_matches(self, evaluator: ConditionEvaluator) -> None:
        """Test that a definition without conditions matches every payload."""
        assert evaluator.evaluate(None, {}) is True

    def test_empty_groups(self, evaluator: ConditionEvaluator) -> None:
        """Test the identity values of empty AND and OR groups."""
        assert evaluator.evaluate(ConditionGroup(logic=ConditionLogic.AND), {}) is True
        assert evaluator.evaluate(ConditionGroup(logic=ConditionLogic.OR), {}) is False

    def test_or_of_priorities(self, evaluator: ConditionEvaluator) -> None:
        """Test an OR group matching either of two priorities."""
        group = ConditionGroup(
            logic=ConditionLogic.OR,
            conditions=(cond("priority", "equals", "critical"), cond("priority", "equals", "high")),
        )

        assert evaluator.evaluate(group, {"priority": "critical"}) is True
        assert evaluator.evaluate(group, {"priority": "high"}) is True
        assert evaluator.evaluate(group, {"priority": "low"}) is False

    def test_nested_group(self, evaluator: ConditionEvaluator) -> None:
        """Test that nested groups combine with the outer logic."""
        group = ConditionGroup(
            conditions=(cond("status", "equals", "new"),),
            groups=(
                ConditionGroup(
                    logic=ConditionLogic.OR,
                    conditions=(cond("client_id", "equals", "acme"), cond("tags", "contains", "vip")),
                ),
            ),
        )

        assert evaluator.evaluate(group, {"status": "new", "client_id": "other", "tags": ["VIP"]}) is True
        assert evaluator.evaluate(group, {"status": "open", "client_id": "acme"}) is False
        assert evaluator.evaluate(group, {"status": "new", "client_id": "other", "tags": []}) is False

    @pytest.mark.parametrize(
        ("operator", "expected"),
        [
            ("equals", False),
            ("not_equals", True),
            ("contains", False),
            ("greater_than", False),
            ("in", False),
            ("not_in", False),
            ("is_null", True),
            ("is_empty", True),
            ("is_not_null", False),
            ("is_not_empty", False),
            ("regex", False),
        ],
    )
    def test_missing_field_defaults(self, evaluator: ConditionEvaluator, operator: str, expected: bool) -> None:
        """Test the result of each operator when the field is absent or null."""
        condition = cond("assigned_to", operator, [] if operator in {"in", "not_in"} else "x")

        assert evaluator.evaluate_condition(condition, {}) is expected
        assert evaluator.evaluate_condition(condition, {"assigned_to": None}) is expected

    def test_unknown_operator_is_false(self, evaluator: ConditionEvaluator) -> None:
        """Test that a hand-built condition with an unknown operator never raises."""
        assert evaluator.evaluate_condition(cond("priority", "approximately", "high"), {"priority": "high"}) is False

    def test_equals_coerces_numbers(self, evaluator: ConditionEvaluator) -> None:
        """Test numeric comparison between strings and numbers."""
        assert evaluator.evaluate_condition(cond("count", "equals", "5"), {"count": 5}) is True
        assert evaluator.evaluate_condition(cond("count", "equals", 5), {"count": "5.0"}) is True
        assert evaluator.evaluate_condition(cond("flag", "equals", 1), {"flag": True}) is False

    def test_booleans_never_equal_numbers(self, evaluator: ConditionEvaluator) -> None:
        """Test that True and False only match booleans in every equality operator."""
        assert evaluator.evaluate_condition(cond("flag", "equals", True), {"flag": True}) is True
        assert evaluator.evaluate_condition(cond("count", "equals", 0), {"count": False}) is False
        assert evaluator.evaluate_condition(cond("flag", "not_equals", 1), {"flag": True}) is True
        assert evaluator.evaluate_condition(cond("flag", "in", [1, 2]), {"flag": True}) is False
        assert evaluator.evaluate_condition(cond("count", "not_in", [True]), {"count": 1}) is True

    def test_contains_is_case_insensitive(self, evaluator: ConditionEvaluator) -> None:
        """Test substring and list membership for contains."""
        assert evaluator.evaluate_condition(cond("subject", "contains", "urgent"), {"subject": "URGENT: VPN"}) is True
        assert evaluator.evaluate_condition(cond("tags", "contains", "vip"), {"tags": ["VIP", "network"]}) is True
        assert evaluator.evaluate_condition(cond("subject", "not_contains", "vpn"), {"subject": "Printer"}) is True

    def test_starts_and_ends_with(self, evaluator: ConditionEvaluator) -> None:
        """Test prefix and suffix matching."""
        payload = {"from": "alerts@acme.example"}

        assert evaluator.evaluate_condition(cond("from", "starts_with", "ALERTS"), payload) is True
        assert evaluator.evaluate_condition(cond("from", "ends_with", "@acme.example"), payload) is True

    def test_numeric_comparisons(self, evaluator: ConditionEvaluator) -> None:
        """Test greater_than and less_than, including non-numeric values."""
        assert evaluator.evaluate_condition(cond("breach_minutes", "greater_than", 30), {"breach_minutes": 45}) is True
        assert evaluator.evaluate_condition(cond("breach_minutes", "less_than", "30"), {"breach_minutes": 45}) is False
        assert evaluator.evaluate_condition(cond("priority", "greater_than", 3), {"priority": "high"}) is False

    def test_in_and_not_in(self, evaluator: ConditionEvaluator) -> None:
        """Test list membership operators."""
        payload = {"priority": "high"}

        assert evaluator.evaluate_condition(cond("priority", "in", ["critical", "high"]), payload) is True
        assert evaluator.evaluate_condition(cond("priority", "not_in", ["critical", "high"]), payload) is False
        assert evaluator.evaluate_condition(cond("priority", "in", "high"), payload) is False

    def test_is_empty(self, evaluator: ConditionEvaluator) -> None:
        """Test emptiness of strings and collections."""
        assert evaluator.evaluate_condition(cond("body", "is_empty"), {"body": "   "}) is True
        assert evaluator.evaluate_condition(cond("tags", "is_not_empty"), {"tags": ["a"]}) is True
        assert evaluator.evaluate_condition(cond("count", "is_empty"), {"count": 0}) is False

    def test_regex(self, evaluator: ConditionEvaluator) -> None:
        """Test regex matching and invalid patterns."""
        payload = {"subject": "Server SRV-042 down"}

        assert evaluator.evaluate_condition(cond("subject", "regex", r"SRV-\d{3}"), payload) is True
        assert evaluator.evaluate_condition(cond("subject", "regex", "[unclosed"), payload) is False

    def test_dotted_field_paths(self, evaluator: ConditionEvaluator) -> None:
        """Test that dotted fields reach into nested payloads."""
        payload = {"data": {"alert": {"severity": "critical"}}}

        assert evaluator.evaluate_condition(cond("data.alert.severity", "equals", "critical"), payload) is True
        assert evaluator.evaluate_condition(cond("data.alert.host", "is_null"), payload) is True

    def test_module_level_evaluate(self) -> None:
        """Test the shared evaluator helper."""
        group = ConditionGroup(conditions=(cond("priority", "eq", "high"),))

        assert evaluate(group, {"priority": "high"}) is True
