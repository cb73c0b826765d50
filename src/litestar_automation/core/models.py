"""Data models for workflow instances and the tickets they act on."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from litestar_automation.core.types import TERMINAL_STATUSES, InstanceStatus, TriggerType

__all__ = ["ActionLogEntry", "Ticket", "WorkflowInstanceData"]


@dataclass
class ActionLogEntry:
    """Outcome of one action within a workflow instance.

    Attributes:
        action_index: Position of the action in the definition.
        action_name: Name of the action.
        action_type: Type of the action.
        success: Whether the action succeeded.
        executed_at: When the action finished.
        skipped: The action's guard condition was False.
        error: Error message when the action failed.
        output: Handler output when the action succeeded.
        retry_attempts: Number of retries used.
        duration_ms: Wall-clock duration of the action, retries included.
    """

    action_index: int
    action_name: str
    action_type: str
    success: bool
    executed_at: datetime
    skipped: bool = False
    error: str | None = None
    output: Any = None
    retry_attempts: int = 0
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize the entry to a JSON-compatible dictionary."""
        data = asdict(self)
        data["executed_at"] = self.executed_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActionLogEntry:
        """Rebuild an entry from :meth:`to_dict` output."""
        values = dict(data)
        executed_at = values.get("executed_at")
        if isinstance(executed_at, str):
            values["executed_at"] = datetime.fromisoformat(executed_at)
        return cls(**values)


@dataclass
class WorkflowInstanceData:
    """One execution of a workflow definition against one trigger event.

    Attributes:
        id: Unique identifier of the instance.
        workflow_id: The definition that was executed.
        workflow_name: Denormalized definition name.
        trigger_event_id: The event that started the instance.
        trigger_type: Type of the triggering event.
        status: Current status; advances monotonically.
        started_at: When the instance was created.
        total_actions: Number of actions in the definition.
        actions_completed: Number of actions that have run (or been skipped).
        completed_at: When the instance reached a terminal status.
        error_message: Why the instance failed or was cancelled.
        execution_log: Append-only per-action outcomes.
        variables: Instance variables set by variable actions.
    """

    id: UUID
    workflow_id: UUID
    workflow_name: str
    trigger_event_id: UUID
    trigger_type: TriggerType
    status: InstanceStatus
    started_at: datetime
    total_actions: int = 0
    actions_completed: int = 0
    completed_at: datetime | None = None
    error_message: str | None = None
    execution_log: list[ActionLogEntry] = field(default_factory=list)
    variables: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        """Whether the instance has reached a terminal status."""
        return self.status in TERMINAL_STATUSES

    def record(self, entry: ActionLogEntry) -> None:
        """Append an action outcome and advance ``actions_completed``."""
        self.execution_log.append(entry)
        self.actions_completed = entry.action_index + 1

    def finish(self, status: InstanceStatus, error_message: str | None = None) -> None:
        """Move the instance to a terminal status.

        Args:
            status: The terminal status.
            error_message: Optional reason, stored for failed or cancelled runs.
        """
        self.status = status
        self.error_message = error_message
        self.completed_at = datetime.now(timezone.utc)


@dataclass
class Ticket:
    """The slice of a ticket that workflows and the SLA checker work with.

    Attributes:
        id: Ticket identifier.
        subject: Ticket subject line.
        priority: Priority level (critical, high, medium, low).
        status: Workflow status of the ticket (new, open, resolved, ...).
        client_id: Owning client.
        client_name: Denormalized client name used in notifications.
        assigned_to: Assigned technician.
        assigned_group_id: Assigned team.
        sla_breached: Whether any SLA target was breached.
        escalated: Whether the ticket was escalated.
        tags: Free-form labels.
        created_at: When the ticket was opened.
    """

    id: str
    subject: str
    priority: str
    status: str = "new"
    client_id: str | None = None
    client_name: str | None = None
    assigned_to: str | None = None
    assigned_group_id: str | None = None
    sla_breached: bool = False
    escalated: bool = False
    tags: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
