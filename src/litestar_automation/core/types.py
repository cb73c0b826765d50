"""Core type definitions for litestar-automation.

This module defines the enums and type aliases shared by the workflow engine,
the action handlers and the SLA checker. Enum values are the snake_case
strings stored in the database and used in workflow definition JSON.
"""

from __future__ import annotations

from enum import StrEnum, auto
from typing import Any, TypeAlias

__all__ = [
    "ActionType",
    "BreachType",
    "ConditionLogic",
    "ConditionOperator",
    "EventSource",
    "InstanceStatus",
    "Payload",
    "TicketPriority",
    "TriggerType",
    "CLOSED_TICKET_STATUSES",
    "OPERATOR_ALIASES",
    "PRIORITY_RANK",
    "TERMINAL_STATUSES",
]


class TriggerType(StrEnum):
    """Kinds of events that can start a workflow."""

    TICKET_CREATED = auto()
    TICKET_UPDATED = auto()
    TICKET_STATUS_CHANGED = auto()
    TICKET_ASSIGNED = auto()
    TICKET_PRIORITY_CHANGED = auto()
    TICKET_COMMENT_ADDED = auto()
    TICKET_ESCALATED = auto()
    SLA_BREACH = auto()
    SLA_WARNING = auto()
    CLIENT_CREATED = auto()
    CLIENT_UPDATED = auto()
    EMAIL_RECEIVED = auto()
    WEBHOOK_RECEIVED = auto()
    SCHEDULED = auto()
    MANUAL = auto()
    API_CALL = auto()


class EventSource(StrEnum):
    """Origin of a trigger event."""

    SYSTEM = auto()
    USER = auto()
    API = auto()
    EMAIL = auto()
    WEBHOOK = auto()
    SCHEDULER = auto()
    INTEGRATION = auto()


class ActionType(StrEnum):
    """Kinds of actions a workflow can run.

    Ticket actions mutate the ticket referenced by the event payload's
    ``ticket_id``. Variable actions operate on the instance's variables and
    never touch external systems.
    """

    ASSIGN_TICKET = auto()
    ASSIGN_TO_GROUP = auto()
    UPDATE_TICKET_STATUS = auto()
    UPDATE_TICKET_PRIORITY = auto()
    ADD_TICKET_COMMENT = auto()
    ADD_TICKET_TAG = auto()
    REMOVE_TICKET_TAG = auto()
    ESCALATE_TICKET = auto()
    SEND_EMAIL = auto()
    SEND_NOTIFICATION = auto()
    SEND_WEBHOOK = auto()
    CALL_API = auto()
    APPLY_SLA_POLICY = auto()
    PAUSE_SLA = auto()
    RESUME_SLA = auto()
    SET_VARIABLE = auto()
    INCREMENT_VARIABLE = auto()
    COPY_VARIABLE = auto()
    WAIT = auto()
    STOP_WORKFLOW = auto()


class InstanceStatus(StrEnum):
    """Status of a workflow instance.

    Attributes:
        PENDING: Created but not yet executing.
        RUNNING: Actions are being executed.
        COMPLETED: Every action ran, or a stop action ended the run.
        FAILED: An action with ``stop_on_failure`` failed, or execution raised.
        CANCELLED: The running task was cancelled.
    """

    PENDING = auto()
    RUNNING = auto()
    COMPLETED = auto()
    FAILED = auto()
    CANCELLED = auto()


TERMINAL_STATUSES = frozenset({InstanceStatus.COMPLETED, InstanceStatus.FAILED, InstanceStatus.CANCELLED})
"""Statuses an instance never leaves."""


class ConditionLogic(StrEnum):
    """Boolean combinator of a condition group."""

    AND = "and"
    OR = "or"


class ConditionOperator(StrEnum):
    """Comparison operators available to conditions."""

    EQUALS = auto()
    NOT_EQUALS = auto()
    CONTAINS = auto()
    NOT_CONTAINS = auto()
    STARTS_WITH = auto()
    ENDS_WITH = auto()
    GREATER_THAN = auto()
    LESS_THAN = auto()
    IN = auto()
    NOT_IN = auto()
    IS_NULL = auto()
    IS_EMPTY = auto()
    IS_NOT_NULL = auto()
    IS_NOT_EMPTY = auto()
    REGEX = auto()


OPERATOR_ALIASES: dict[str, ConditionOperator] = {
    "eq": ConditionOperator.EQUALS,
    "==": ConditionOperator.EQUALS,
    "ne": ConditionOperator.NOT_EQUALS,
    "!=": ConditionOperator.NOT_EQUALS,
    "gt": ConditionOperator.GREATER_THAN,
    ">": ConditionOperator.GREATER_THAN,
    "lt": ConditionOperator.LESS_THAN,
    "<": ConditionOperator.LESS_THAN,
}
"""Shorthand operator spellings accepted in stored definitions."""


class TicketPriority(StrEnum):
    """Ticket priority levels, most urgent first."""

    CRITICAL = auto()
    HIGH = auto()
    MEDIUM = auto()
    LOW = auto()


PRIORITY_RANK = {str(priority): rank for rank, priority in enumerate(TicketPriority)}
"""Sort key of each priority, critical first; unknown priorities sort last."""

CLOSED_TICKET_STATUSES = frozenset({"resolved", "closed", "cancelled"})
"""Ticket statuses that stop SLA tracking."""


class BreachType(StrEnum):
    """Which SLA deadline a breach or warning refers to."""

    RESPONSE = auto()
    RESOLUTION = auto()


Payload: TypeAlias = dict[str, Any]
"""Type alias for event payloads and action parameters."""
