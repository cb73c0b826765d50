"""Workflow definition structures.

A workflow definition is a stored rule of the form *trigger + conditions +
ordered actions*. Definitions are kept as JSON by the definition store and
parsed into the frozen dataclasses below when the registry loads them, so
malformed configuration is reported to operators at load time rather than
discovered while an event is being processed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID, uuid4

from litestar_automation.core.conditions import ConditionGroup
from litestar_automation.core.types import ActionType, TriggerType
from litestar_automation.exceptions import WorkflowValidationError

__all__ = [
    "Action",
    "WorkflowDefinition",
    "auto_acknowledge_workflow",
    "escalate_critical_workflow",
    "sla_breach_notification_workflow",
]

DEFAULT_RETRY_DELAY_SECONDS = 30


def _non_negative_int(data: dict[str, Any], key: str, default: int, path: str, errors: list[str]) -> int:
    value = data.get(key, default)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        errors.append(f"{path}.{key}: must be a non-negative integer")
        return default
    return value


@dataclass(frozen=True)
class Action:
    """One step of a workflow.

    Attributes:
        name: Human-readable name, used in logs and error messages.
        action_type: Which handler executes the action.
        parameters: Handler-specific parameters. String values may contain
            ``{{ path }}`` placeholders resolved at execution time.
        delay_seconds: Non-blocking wait before the action runs.
        stop_on_failure: Fail the whole instance if this action fails.
        retry_count: Extra attempts when the handler raises.
        retry_delay_seconds: Wait between attempts.
        condition: Optional guard; the action is skipped when it is False.
    """

    name: str
    action_type: ActionType
    parameters: dict[str, Any] = field(default_factory=dict)
    delay_seconds: int = 0
    stop_on_failure: bool = False
    retry_count: int = 0
    retry_delay_seconds: int = DEFAULT_RETRY_DELAY_SECONDS
    condition: ConditionGroup | None = None

    @classmethod
    def parse(cls, data: Any, path: str = "action") -> tuple[Action | None, list[str]]:
        """Parse and validate an action from its JSON form.

        ``config`` is accepted as an alias of ``parameters``.

        Returns:
            A tuple of the parsed action (None when invalid) and the errors.
        """
        if not isinstance(data, dict):
            return None, [f"{path}: expected an object, got {type(data).__name__}"]

        errors: list[str] = []
        name = data.get("name")
        if not isinstance(name, str) or not name:
            errors.append(f"{path}.name: must be a non-empty string")

        action_type: ActionType | None = None
        try:
            action_type = ActionType(data.get("action_type"))
        except ValueError:
            errors.append(f"{path}.action_type: unknown action type {data.get('action_type')!r}")

        parameters = data.get("parameters", data.get("config")) or {}
        if not isinstance(parameters, dict):
            errors.append(f"{path}.parameters: must be an object")

        delay_seconds = _non_negative_int(data, "delay_seconds", 0, path, errors)
        retry_count = _non_negative_int(data, "retry_count", 0, path, errors)
        retry_delay_seconds = _non_negative_int(
            data, "retry_delay_seconds", DEFAULT_RETRY_DELAY_SECONDS, path, errors
        )

        condition = None
        if data.get("condition") is not None:
            condition, condition_errors = ConditionGroup.parse(data["condition"], f"{path}.condition")
            errors.extend(condition_errors)

        if errors:
            return None, errors
        return (
            cls(
                name=name,
                action_type=action_type,  # type: ignore[arg-type]
                parameters=dict(parameters),
                delay_seconds=delay_seconds,
                stop_on_failure=bool(data.get("stop_on_failure", False)),
                retry_count=retry_count,
                retry_delay_seconds=retry_delay_seconds,
                condition=condition,
            ),
            [],
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize the action to its JSON form."""
        return {
            "name": self.name,
            "action_type": str(self.action_type),
            "parameters": dict(self.parameters),
            "delay_seconds": self.delay_seconds,
            "stop_on_failure": self.stop_on_failure,
            "retry_count": self.retry_count,
            "retry_delay_seconds": self.retry_delay_seconds,
            "condition": self.condition.to_dict() if self.condition else None,
        }


@dataclass(frozen=True)
class WorkflowDefinition:
    """A validated workflow rule.

    Attributes:
        name: Display name of the workflow.
        trigger_type: Event type that can start the workflow.
        actions: Ordered actions; list position fixes execution order.
        id: Unique identifier.
        description: Human-readable description.
        trigger_config: Trigger-specific pre-filter, e.g. ``{"priority": "critical"}``.
        conditions: Optional condition tree evaluated against the payload.
        is_active: Inactive definitions are never loaded into the registry.
        execution_order: Ascending order in which matching is attempted.
        stop_on_first_match: Stop scanning further definitions after this one matches.

    Example:
        >>> definition = WorkflowDefinition.from_dict(
        ...     {
        ...         "name": "Critical tickets",
        ...         "trigger_type": "ticket_created",
        ...         "trigger_config": {"priority": "critical"},
        ...         "actions": [
        ...             {
        ...                 "name": "page on-call",
        ...                 "action_type": "send_notification",
        ...                 "parameters": {"message": "Critical ticket {{ticket_id}}"},
        ...             }
        ...         ],
        ...     }
        ... )
    """

    name: str
    trigger_type: TriggerType
    actions: tuple[Action, ...]
    id: UUID = field(default_factory=uuid4)
    description: str = ""
    trigger_config: dict[str, Any] = field(default_factory=dict)
    conditions: ConditionGroup | None = None
    is_active: bool = True
    execution_order: int = 0
    stop_on_first_match: bool = False

    @property
    def total_actions(self) -> int:
        """Number of actions in the workflow."""
        return len(self.actions)

    @classmethod
    def from_dict(cls, data: Any) -> WorkflowDefinition:
        """Parse and validate a definition from its JSON form.

        Args:
            data: The raw definition mapping.

        Returns:
            The validated definition.

        Raises:
            WorkflowValidationError: Listing every problem found in the definition.
        """
        if not isinstance(data, dict):
            raise WorkflowValidationError([f"definition: expected an object, got {type(data).__name__}"])

        errors: list[str] = []

        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            errors.append("name: must be a non-empty string")

        workflow_id = data.get("id")
        if workflow_id is None:
            workflow_id = uuid4()
        elif not isinstance(workflow_id, UUID):
            try:
                workflow_id = UUID(str(workflow_id))
            except ValueError:
                errors.append(f"id: invalid UUID {workflow_id!r}")

        trigger_type: TriggerType | None = None
        try:
            trigger_type = TriggerType(data.get("trigger_type"))
        except ValueError:
            errors.append(f"trigger_type: unknown trigger type {data.get('trigger_type')!r}")

        trigger_config = data.get("trigger_config") or {}
        if not isinstance(trigger_config, dict):
            errors.append("trigger_config: must be an object")

        conditions = None
        if data.get("conditions") is not None:
            conditions, condition_errors = ConditionGroup.parse(data["conditions"])
            errors.extend(condition_errors)

        raw_actions = data.get("actions")
        actions: list[Action] = []
        if not isinstance(raw_actions, list) or not raw_actions:
            errors.append("actions: must be a non-empty list")
        else:
            for index, raw in enumerate(raw_actions):
                action, action_errors = Action.parse(raw, f"actions[{index}]")
                errors.extend(action_errors)
                if action is not None:
                    actions.append(action)

        execution_order = data.get("execution_order", 0)
        if isinstance(execution_order, bool) or not isinstance(execution_order, int):
            errors.append("execution_order: must be an integer")

        if errors:
            raise WorkflowValidationError(errors)

        return cls(
            id=workflow_id,
            name=name.strip(),
            description=data.get("description") or "",
            trigger_type=trigger_type,  # type: ignore[arg-type]
            trigger_config=dict(trigger_config),
            conditions=conditions,
            actions=tuple(actions),
            is_active=bool(data.get("is_active", True)),
            execution_order=execution_order,
            stop_on_first_match=bool(data.get("stop_on_first_match", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize the definition to its JSON form."""
        return {
            "id": str(self.id),
            "name": self.name,
            "description": self.description,
            "trigger_type": str(self.trigger_type),
            "trigger_config": dict(self.trigger_config),
            "conditions": self.conditions.to_dict() if self.conditions else None,
            "actions": [action.to_dict() for action in self.actions],
            "is_active": self.is_active,
            "execution_order": self.execution_order,
            "stop_on_first_match": self.stop_on_first_match,
        }


def auto_acknowledge_workflow(execution_order: int = 100) -> WorkflowDefinition:
    """Preset that comments on every new ticket and moves it to ``open``."""
    return WorkflowDefinition(
        name="Auto acknowledge new tickets",
        description="Let the client know the ticket was received.",
        trigger_type=TriggerType.TICKET_CREATED,
        execution_order=execution_order,
        actions=(
            Action(
                name="Acknowledge",
                action_type=ActionType.ADD_TICKET_COMMENT,
                parameters={
                    "comment": "Thank you, we have received ticket {{ticket_id}} and will respond shortly.",
                    "internal": False,
                },
            ),
            Action(
                name="Mark open",
                action_type=ActionType.UPDATE_TICKET_STATUS,
                parameters={"status": "open"},
            ),
        ),
    )


def escalate_critical_workflow(escalation_user: str, execution_order: int = 10) -> WorkflowDefinition:
    """Preset that escalates critical tickets to ``escalation_user`` on creation."""
    return WorkflowDefinition(
        name="Escalate critical tickets",
        description="Critical tickets go straight to the escalation owner.",
        trigger_type=TriggerType.TICKET_CREATED,
        trigger_config={"priority": "critical"},
        execution_order=execution_order,
        actions=(
            Action(
                name="Escalate",
                action_type=ActionType.ESCALATE_TICKET,
                parameters={"escalate_to": escalation_user, "reason": "Critical priority"},
                stop_on_failure=True,
            ),
            Action(
                name="Notify owner",
                action_type=ActionType.SEND_NOTIFICATION,
                parameters={
                    "user_id": escalation_user,
                    "message": "Critical ticket {{ticket_id}} was escalated to you",
                },
            ),
        ),
    )


def sla_breach_notification_workflow(
    recipients: list[str],
    breach_type: str | None = None,
    execution_order: int = 50,
) -> WorkflowDefinition:
    """Preset that emails ``recipients`` whenever an SLA is breached."""
    return WorkflowDefinition(
        name="SLA breach notification",
        description="Email the service desk leads when an SLA is breached.",
        trigger_type=TriggerType.SLA_BREACH,
        trigger_config={"breach_type": breach_type} if breach_type else {},
        execution_order=execution_order,
        actions=(
            Action(
                name="Email leads",
                action_type=ActionType.SEND_EMAIL,
                parameters={
                    "to": list(recipients),
                    "subject": "SLA {{breach_type}} breach on ticket {{ticket_id}}",
                    "body": "Ticket {{ticket_id}} is {{breach_minutes}} minutes past its {{breach_type}} target.",
                },
                retry_count=2,
                retry_delay_seconds=10,
            ),
        ),
    )
