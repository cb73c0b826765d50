"""Core domain types for litestar-automation."""

from __future__ import annotations

from litestar_automation.core.conditions import Condition, ConditionGroup
from litestar_automation.core.context import ActionResult, ExecutionContext
from litestar_automation.core.definition import Action, WorkflowDefinition
from litestar_automation.core.events import TriggerEvent
from litestar_automation.core.models import ActionLogEntry, Ticket, WorkflowInstanceData
from litestar_automation.core.types import (
    ActionType,
    BreachType,
    ConditionLogic,
    ConditionOperator,
    EventSource,
    InstanceStatus,
    TicketPriority,
    TriggerType,
)

__all__ = [
    "Action",
    "ActionLogEntry",
    "ActionResult",
    "ActionType",
    "BreachType",
    "Condition",
    "ConditionGroup",
    "ConditionLogic",
    "ConditionOperator",
    "EventSource",
    "ExecutionContext",
    "InstanceStatus",
    "Ticket",
    "TicketPriority",
    "TriggerEvent",
    "TriggerType",
    "WorkflowDefinition",
    "WorkflowInstanceData",
]
