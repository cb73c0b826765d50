"""Collaborator protocols for litestar-automation.

The workflow engine and the SLA checker depend only on the structural
interfaces below. :mod:`litestar_automation.memory` provides in-process
implementations and :mod:`litestar_automation.db.stores` provides
SQLAlchemy-backed ones; applications may supply their own.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime
    from uuid import UUID

    from litestar_automation.core.context import ActionResult, ExecutionContext
    from litestar_automation.core.models import Ticket, WorkflowInstanceData
    from litestar_automation.core.types import ActionType, BreachType
    from litestar_automation.sla.models import SlaPolicy, TicketSlaTracking, TrackedTicket


__all__ = [
    "ActionHandler",
    "Broadcaster",
    "NotificationSender",
    "SlaStore",
    "TicketStore",
    "UserDirectory",
    "WorkflowDefinitionStore",
    "WorkflowInstanceStore",
]


@runtime_checkable
class ActionHandler(Protocol):
    """Executes one type of workflow action.

    Handlers receive parameters with templates already rendered. They return
    an :class:`ActionResult` for expected failures (missing ticket id, bad
    parameter) and raise for collaborator errors, which the executor retries.
    """

    action_type: ActionType

    async def execute(self, parameters: dict[str, Any], context: ExecutionContext) -> ActionResult:
        """Run the action."""
        ...


@runtime_checkable
class TicketStore(Protocol):
    """Read and mutate tickets."""

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        """Return the ticket, or None if it does not exist."""
        ...

    async def update_ticket(self, ticket_id: str, **changes: Any) -> Ticket:
        """Apply ``changes`` to the ticket and return it.

        Raises:
            TicketNotFoundError: If the ticket does not exist.
        """
        ...

    async def add_comment(
        self,
        ticket_id: str,
        body: str,
        *,
        internal: bool = True,
        author: str | None = None,
    ) -> None:
        """Append a comment to the ticket."""
        ...


@runtime_checkable
class SlaStore(Protocol):
    """SLA policies and per-ticket tracking rows.

    Every ``mark_*``/``record_*``/``pause``/``resume`` method is a conditional
    write: it returns False (or None) instead of overwriting state another
    writer already set, so overlapping checker runs never double count.
    """

    async def get_policy(self, policy_id: UUID | None = None) -> SlaPolicy | None:
        """Return the policy, or the default policy when ``policy_id`` is None."""
        ...

    async def list_tracked_tickets(self) -> Sequence[TrackedTicket]:
        """Return open tickets with SLA tracking.

        Tickets whose status is resolved, closed or cancelled are excluded.
        Results are ordered by priority (critical first) then resolution due date.
        """
        ...

    async def get_tracking(self, ticket_id: str) -> TicketSlaTracking | None:
        """Return the tracking row of a ticket."""
        ...

    async def create_tracking(self, tracking: TicketSlaTracking) -> TicketSlaTracking:
        """Store a new tracking row, replacing any previous row of the ticket."""
        ...

    async def mark_breach(self, tracking_id: UUID, breach_type: BreachType, breach_minutes: int) -> bool:
        """Flag a breach on the tracking row and ``sla_breached`` on the ticket.

        Returns:
            False when the breach flag was already set.
        """
        ...

    async def increment_breach_notifications(self, tracking_id: UUID, count: int) -> None:
        """Add ``count`` to ``breach_notifications_sent``."""
        ...

    async def record_escalation(self, tracking_id: UUID, escalated_to: str, escalated_at: datetime) -> bool:
        """Reassign the ticket and record the escalation.

        Returns:
            False when the ticket was already escalated.
        """
        ...

    async def mark_warning_sent(self, tracking_id: UUID, marker: str) -> bool:
        """Record that the warning ``marker`` was sent.

        Returns:
            False when the marker was already recorded.
        """
        ...

    async def pause_tracking(self, ticket_id: str, paused_at: datetime) -> bool:
        """Start a pause. Returns False when already paused."""
        ...

    async def resume_tracking(self, ticket_id: str, resumed_at: datetime) -> int | None:
        """End a pause.

        Returns:
            The minutes added to ``pause_duration_minutes``, or None when the
            tracking was not paused.
        """
        ...

    async def record_first_response(self, ticket_id: str, responded_at: datetime) -> bool:
        """Set ``first_response_at`` if it is not set yet."""
        ...

    async def record_resolution(self, ticket_id: str, resolved_at: datetime) -> bool:
        """Set ``resolved_at`` if it is not set yet."""
        ...


@runtime_checkable
class UserDirectory(Protocol):
    """Resolve users to contact addresses."""

    async def get_email(self, user_id: str) -> str | None:
        """Return the user's email address, or None if unknown."""
        ...


@runtime_checkable
class NotificationSender(Protocol):
    """Deliver a message to one recipient."""

    async def send(self, recipient: str, subject: str, body: str) -> bool:
        """Send the message.

        Returns:
            True on delivery. Implementations may also raise; callers log and
            continue in both cases.
        """
        ...


@runtime_checkable
class Broadcaster(Protocol):
    """Fire-and-forget publisher for live dashboards."""

    async def publish(self, message: Mapping[str, Any], channel: str | None = None) -> None:
        """Publish ``message``. Delivery is best effort."""
        ...


@runtime_checkable
class WorkflowDefinitionStore(Protocol):
    """Persistent storage of workflow definitions as JSON records."""

    async def list_active(self) -> Sequence[dict[str, Any]]:
        """Return active definitions ordered by ``execution_order`` ascending."""
        ...

    async def get(self, workflow_id: UUID) -> dict[str, Any] | None:
        """Return one definition record."""
        ...

    async def create(self, record: dict[str, Any]) -> dict[str, Any]:
        """Store a new definition record."""
        ...

    async def update(self, workflow_id: UUID, record: dict[str, Any]) -> dict[str, Any] | None:
        """Replace a definition record. Returns None when it does not exist."""
        ...

    async def delete(self, workflow_id: UUID) -> bool:
        """Delete a definition record. Returns False when it does not exist."""
        ...


@runtime_checkable
class WorkflowInstanceStore(Protocol):
    """Persistent storage of workflow instances."""

    async def create(self, instance: WorkflowInstanceData) -> bool:
        """Store a new instance.

        Returns:
            False when an instance for the same workflow and trigger event
            already exists.
        """
        ...

    async def update(self, instance: WorkflowInstanceData) -> None:
        """Persist the instance's progress."""
        ...

    async def get(self, instance_id: UUID) -> WorkflowInstanceData | None:
        """Return one instance."""
        ...

    async def list(self, workflow_id: UUID | None = None, limit: int = 50) -> Sequence[WorkflowInstanceData]:
        """Return instances, newest first."""
        ...
