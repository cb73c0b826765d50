"""In-memory collaborator implementations.

These stores keep everything in process memory. They are suitable for
development, testing and single-instance deployments that do not need
persistence, mirroring the behaviour of the SQLAlchemy stores, including
the conditional writes.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from litestar_automation.core.types import CLOSED_TICKET_STATUSES, PRIORITY_RANK, BreachType
from litestar_automation.exceptions import TicketNotFoundError
from litestar_automation.sla.calculator import minutes_between
from litestar_automation.sla.models import SlaPolicy, TicketSlaTracking, TrackedTicket

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from litestar_automation.core.models import Ticket, WorkflowInstanceData

__all__ = [
    "InMemoryDefinitionStore",
    "InMemoryInstanceStore",
    "InMemoryTicketStore",
    "InMemoryUserDirectory",
    "TicketComment",
]


def _as_uuid(value: UUID | str) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


@dataclass
class TicketComment:
    """A comment added to a ticket."""

    body: str
    internal: bool = True
    author: str | None = None


@dataclass
class InMemoryTicketStore:
    """Ticket and SLA store backed by dictionaries.

    Attributes:
        tickets: Tickets keyed by id.
        policies: SLA policies keyed by id.
        trackings: SLA tracking rows keyed by ticket id.
        comments: Comments added per ticket id.
    """

    tickets: dict[str, Ticket] = field(default_factory=dict)
    policies: dict[UUID, SlaPolicy] = field(default_factory=dict)
    trackings: dict[str, TicketSlaTracking] = field(default_factory=dict)
    comments: dict[str, list[TicketComment]] = field(default_factory=dict)

    def add_ticket(self, ticket: Ticket) -> Ticket:
        """Add or replace a ticket."""
        self.tickets[ticket.id] = ticket
        return ticket

    def add_policy(self, policy: SlaPolicy) -> SlaPolicy:
        """Add or replace an SLA policy."""
        self.policies[policy.id] = policy
        return policy

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        ticket = self.tickets.get(str(ticket_id))
        return copy.deepcopy(ticket) if ticket is not None else None

    async def update_ticket(self, ticket_id: str, **changes: Any) -> Ticket:
        ticket = self.tickets.get(str(ticket_id))
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        for name, value in changes.items():
            if not hasattr(ticket, name):
                msg = f"Ticket has no field '{name}'"
                raise AttributeError(msg)
            setattr(ticket, name, value)
        return copy.deepcopy(ticket)

    async def add_comment(
        self,
        ticket_id: str,
        body: str,
        *,
        internal: bool = True,
        author: str | None = None,
    ) -> None:
        if str(ticket_id) not in self.tickets:
            raise TicketNotFoundError(ticket_id)
        self.comments.setdefault(str(ticket_id), []).append(TicketComment(body, internal, author))

    async def get_policy(self, policy_id: UUID | str | None = None) -> SlaPolicy | None:
        if policy_id is not None:
            return self.policies.get(_as_uuid(policy_id))
        for policy in self.policies.values():
            if policy.is_default:
                return policy
        return next(iter(self.policies.values()), None)

    async def list_tracked_tickets(self) -> Sequence[TrackedTicket]:
        tracked: list[TrackedTicket] = []
        for ticket_id, tracking in self.trackings.items():
            ticket = self.tickets.get(ticket_id)
            if ticket is None or ticket.status in CLOSED_TICKET_STATUSES:
                continue
            policy = await self.get_policy(tracking.policy_id)
            rule = policy.rule_for(ticket.priority) if policy is not None else None
            tracked.append(TrackedTicket(copy.deepcopy(ticket), copy.deepcopy(tracking), rule))
        tracked.sort(
            key=lambda item: (
                PRIORITY_RANK.get(item.ticket.priority, len(PRIORITY_RANK)),
                item.tracking.resolution_due_at,
            )
        )
        return tracked

    async def get_tracking(self, ticket_id: str) -> TicketSlaTracking | None:
        tracking = self.trackings.get(str(ticket_id))
        return copy.deepcopy(tracking) if tracking is not None else None

    async def create_tracking(self, tracking: TicketSlaTracking) -> TicketSlaTracking:
        self.trackings[tracking.ticket_id] = copy.deepcopy(tracking)
        return tracking

    def _tracking_by_id(self, tracking_id: UUID) -> TicketSlaTracking | None:
        for tracking in self.trackings.values():
            if tracking.id == tracking_id:
                return tracking
        return None

    async def mark_breach(self, tracking_id: UUID, breach_type: BreachType, breach_minutes: int) -> bool:
        tracking = self._tracking_by_id(tracking_id)
        if tracking is None or tracking.is_breached(breach_type):
            return False
        if breach_type is BreachType.RESPONSE:
            tracking.response_breached = True
            tracking.response_breach_minutes = breach_minutes
        else:
            tracking.resolution_breached = True
            tracking.resolution_breach_minutes = breach_minutes
        if tracking.ticket_id in self.tickets:
            self.tickets[tracking.ticket_id].sla_breached = True
        return True

    async def increment_breach_notifications(self, tracking_id: UUID, count: int) -> None:
        tracking = self._tracking_by_id(tracking_id)
        if tracking is not None:
            tracking.breach_notifications_sent += count

    async def record_escalation(self, tracking_id: UUID, escalated_to: str, escalated_at: datetime) -> bool:
        tracking = self._tracking_by_id(tracking_id)
        if tracking is None or tracking.escalated_at is not None:
            return False
        tracking.escalated_at = escalated_at
        tracking.escalated_to = escalated_to
        ticket = self.tickets.get(tracking.ticket_id)
        if ticket is not None:
            ticket.assigned_to = escalated_to
            ticket.escalated = True
        return True

    async def mark_warning_sent(self, tracking_id: UUID, marker: str) -> bool:
        tracking = self._tracking_by_id(tracking_id)
        if tracking is None or marker in tracking.warnings_sent:
            return False
        tracking.warnings_sent.add(marker)
        return True

    async def pause_tracking(self, ticket_id: str, paused_at: datetime) -> bool:
        tracking = self.trackings.get(str(ticket_id))
        if tracking is None or tracking.pause_start is not None:
            return False
        tracking.pause_start = paused_at
        return True

    async def resume_tracking(self, ticket_id: str, resumed_at: datetime) -> int | None:
        tracking = self.trackings.get(str(ticket_id))
        if tracking is None or tracking.pause_start is None:
            return None
        added = max(0, minutes_between(tracking.pause_start, resumed_at))
        tracking.pause_duration_minutes += added
        tracking.pause_start = None
        return added

    async def record_first_response(self, ticket_id: str, responded_at: datetime) -> bool:
        tracking = self.trackings.get(str(ticket_id))
        if tracking is None or tracking.first_response_at is not None:
            return False
        tracking.first_response_at = responded_at
        return True

    async def record_resolution(self, ticket_id: str, resolved_at: datetime) -> bool:
        tracking = self.trackings.get(str(ticket_id))
        if tracking is None or tracking.resolved_at is not None:
            return False
        tracking.resolved_at = resolved_at
        return True


@dataclass
class InMemoryUserDirectory:
    """User directory backed by a ``user_id -> email`` mapping."""

    emails: dict[str, str] = field(default_factory=dict)

    async def get_email(self, user_id: str) -> str | None:
        return self.emails.get(str(user_id))


class InMemoryDefinitionStore:
    """Workflow definition store keeping JSON records in a dictionary."""

    def __init__(self, records: Iterable[dict[str, Any]] = ()) -> None:
        self._records: dict[UUID, dict[str, Any]] = {}
        for record in records:
            self._records[_as_uuid(record["id"])] = copy.deepcopy(record)

    async def list_active(self) -> Sequence[dict[str, Any]]:
        active = [copy.deepcopy(record) for record in self._records.values() if record.get("is_active", True)]
        return sorted(active, key=lambda record: record.get("execution_order", 0))

    async def get(self, workflow_id: UUID) -> dict[str, Any] | None:
        record = self._records.get(_as_uuid(workflow_id))
        return copy.deepcopy(record) if record is not None else None

    async def create(self, record: dict[str, Any]) -> dict[str, Any]:
        self._records[_as_uuid(record["id"])] = copy.deepcopy(record)
        return record

    async def update(self, workflow_id: UUID, record: dict[str, Any]) -> dict[str, Any] | None:
        key = _as_uuid(workflow_id)
        if key not in self._records:
            return None
        self._records[key] = copy.deepcopy(record)
        return record

    async def delete(self, workflow_id: UUID) -> bool:
        return self._records.pop(_as_uuid(workflow_id), None) is not None


class InMemoryInstanceStore:
    """Workflow instance store, unique per workflow and trigger event."""

    def __init__(self) -> None:
        self._instances: dict[UUID, WorkflowInstanceData] = {}
        self._keys: set[tuple[UUID, UUID]] = set()

    async def create(self, instance: WorkflowInstanceData) -> bool:
        key = (instance.workflow_id, instance.trigger_event_id)
        if key in self._keys:
            return False
        self._keys.add(key)
        self._instances[instance.id] = copy.deepcopy(instance)
        return True

    async def update(self, instance: WorkflowInstanceData) -> None:
        self._instances[instance.id] = copy.deepcopy(instance)

    async def get(self, instance_id: UUID) -> WorkflowInstanceData | None:
        instance = self._instances.get(instance_id)
        return copy.deepcopy(instance) if instance is not None else None

    async def list(self, workflow_id: UUID | None = None, limit: int = 50) -> Sequence[WorkflowInstanceData]:
        instances = [
            instance
            for instance in self._instances.values()
            if workflow_id is None or instance.workflow_id == workflow_id
        ]
        instances.sort(key=lambda instance: instance.started_at, reverse=True)
        return [copy.deepcopy(instance) for instance in instances[:limit]]
