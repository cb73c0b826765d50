"""Litestar Automation - Rules-driven ticket automation and SLA tracking for Litestar.

This package provides an event-driven workflow engine for managed service
desks together with SLA breach detection.

Key Features:
    - Declarative workflow definitions stored as JSON
    - Nested AND/OR condition trees over event payloads
    - Ticket, notification, HTTP, SLA and variable actions with retries
    - Concurrent, idempotent workflow instances
    - Periodic SLA breach detection, warnings and auto escalation

Example:
    >>> from litestar_automation import TriggerEvent, WorkflowDefinition
    >>>
    >>> workflow = WorkflowDefinition.from_dict(
    ...     {
    ...         "name": "Escalate critical tickets",
    ...         "trigger_type": "ticket_created",
    ...         "trigger_config": {"priority": "critical"},
    ...         "actions": [
    ...             {"name": "Assign", "action_type": "assign_ticket", "parameters": {"user_id": "oncall"}}
    ...         ],
    ...     }
    ... )
    >>> ids = await engine.process_event(TriggerEvent.ticket_created(ticket_id="42", priority="critical"))
"""

from __future__ import annotations

from litestar_automation.__metadata__ import __project__, __version__
from litestar_automation.core import (
    Action,
    ActionResult,
    ActionType,
    BreachType,
    Condition,
    ConditionGroup,
    InstanceStatus,
    Ticket,
    TriggerEvent,
    TriggerType,
    WorkflowDefinition,
    WorkflowInstanceData,
)
from litestar_automation.engine import ActionExecutor, ConditionEvaluator, WorkflowEngine, WorkflowRegistry
from litestar_automation.exceptions import (
    ActionExecutionError,
    AutomationError,
    NotificationError,
    SlaError,
    SlaRuleNotFoundError,
    SlaTrackingNotFoundError,
    TicketNotFoundError,
    WorkflowInstanceNotFoundError,
    WorkflowNotFoundError,
    WorkflowValidationError,
)
from litestar_automation.plugin import AutomationPlugin, AutomationPluginConfig
from litestar_automation.sla import SlaChecker, SlaCheckerConfig, SlaCheckResult, SlaPolicy, SlaRule, SlaScheduler

__all__ = (
    "Action",
    "ActionExecutionError",
    "ActionExecutor",
    "ActionResult",
    "ActionType",
    "AutomationError",
    "AutomationPlugin",
    "AutomationPluginConfig",
    "BreachType",
    "Condition",
    "ConditionEvaluator",
    "ConditionGroup",
    "InstanceStatus",
    "NotificationError",
    "SlaCheckResult",
    "SlaChecker",
    "SlaCheckerConfig",
    "SlaError",
    "SlaPolicy",
    "SlaRule",
    "SlaRuleNotFoundError",
    "SlaScheduler",
    "SlaTrackingNotFoundError",
    "Ticket",
    "TicketNotFoundError",
    "TriggerEvent",
    "TriggerType",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowInstanceData",
    "WorkflowInstanceNotFoundError",
    "WorkflowNotFoundError",
    "WorkflowRegistry",
    "WorkflowValidationError",
    "__project__",
    "__version__",
)
